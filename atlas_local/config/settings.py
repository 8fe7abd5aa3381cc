"""
Library configuration using Pydantic Settings.
Loads configuration from environment variables with validation.
"""
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """atlas-local settings with environment variable loading."""

    model_config = SettingsConfigDict(
        env_prefix="ATLAS_LOCAL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Library
    app_name: str = Field(default="atlas-local", description="Library name used in log context")
    app_version: str = Field(default="0.1.0", description="Library version")
    environment: str = Field(default="development", description="Environment (development/staging/production)")
    log_level: str = Field(default="INFO", description="Logging level")

    # Docker runtime
    docker_base_url: Optional[str] = Field(
        default=None, description="Docker daemon URL (None to read DOCKER_HOST from the environment)"
    )
    docker_timeout: int = Field(default=60, ge=1, le=600, description="Docker API call timeout in seconds")
    runtime_workers: int = Field(
        default=8, ge=1, le=64, description="Thread pool size for blocking Docker SDK calls"
    )
    runtime_max_retries: int = Field(
        default=3, ge=0, le=10, description="Retries for idempotent runtime reads on transient errors"
    )
    pull_max_attempts: int = Field(default=3, ge=1, le=10, description="Attempts for pulling an image")
    stop_timeout: int = Field(
        default=10, ge=0, le=300, description="Seconds to wait for a graceful stop before the runtime kills"
    )

    # Image
    default_image: str = Field(default="mongodb/mongodb-atlas-local", description="Deployment image")
    default_image_tag: str = Field(default="latest", description="Image tag used when none is requested")

    # Health
    health_poll_interval: float = Field(
        default=1.0, gt=0, le=60, description="Seconds between health polls"
    )
    health_check_timeout: float = Field(
        default=600.0, ge=0, description="Default bound for waiting until a deployment is healthy"
    )
    liveness_log_pattern: str = Field(
        default="Waiting for connections",
        description="Log line marking readiness when the image defines no health check",
    )
    liveness_log_tail: int = Field(
        default=200, ge=1, description="Log lines inspected by the liveness probe"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment."""
        valid_envs = ["development", "testing", "staging", "production"]
        if v.lower() not in valid_envs:
            raise ValueError(f"Environment must be one of {valid_envs}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"


settings = Settings()
