from atlas_local.config.settings import Settings, settings
from atlas_local.config.logging import configure_logging, get_logger

__all__ = ["Settings", "settings", "configure_logging", "get_logger"]
