"""
Helpers for the RFC 3339 timestamps reported by the Docker daemon.
"""
import re
from datetime import datetime, timezone
from typing import Optional

# Docker reports nanoseconds; datetime holds microseconds
_FRACTION = re.compile(r"\.(\d+)")

# Zero value reported for containers that never started
DOCKER_ZERO_TIME = "0001-01-01T00:00:00Z"


def parse_docker_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a Docker timestamp such as ``2024-05-01T10:00:00.123456789Z``.

    Returns None for empty, zero or unparsable values.
    """
    if not value or value == DOCKER_ZERO_TIME:
        return None

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
