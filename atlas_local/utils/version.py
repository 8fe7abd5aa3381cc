"""
Version parsing utilities for MongoDB image tags.
Handles the version formats accepted by the atlas-local image.
"""
import re
from typing import Optional, Tuple

VERSION_PARSE_ERROR = (
    "Invalid MongoDB version format. Expected format: <major>[.<minor>[.<patch>]] or 'latest'. "
    "Some examples: 8, 8.2, 8.2.1, latest"
)
IMAGE_TAG_PARSE_ERROR = (
    "Invalid image tag: expected 'preview', 'latest', semver (e.g. 8.2.4), "
    "or semver+datestamp (e.g. 8.2.4-20260217T084055Z)"
)

_COMPONENT = re.compile(r"^\d+$")


def parse_mongodb_version(version: str) -> Optional[Tuple[int, ...]]:
    """
    Parse a MongoDB version string into its numeric components.

    Supports:
    - "latest" -> None
    - "8" -> (8,)
    - "8.2" -> (8, 2)
    - "8.2.1" -> (8, 2, 1)

    Args:
        version: Version string to parse

    Returns:
        Tuple of 1 to 3 components, or None for "latest"

    Raises:
        ValueError: If version string cannot be parsed
    """
    if version == "latest":
        return None

    parts = version.split(".")
    if not 1 <= len(parts) <= 3 or not all(_COMPONENT.match(p) for p in parts):
        raise ValueError(VERSION_PARSE_ERROR)

    components = tuple(int(p) for p in parts)
    # Each component must fit in one byte
    if any(c > 255 for c in components):
        raise ValueError(VERSION_PARSE_ERROR)
    return components


def split_image_tag(tag: str) -> Tuple[str, Optional[str]]:
    """
    Split an image tag into its version part and optional datestamp suffix.

    - "preview" -> ("preview", None)
    - "8.2.4" -> ("8.2.4", None)
    - "8.2.4-20260217T084055Z" -> ("8.2.4", "20260217T084055Z")

    Raises:
        ValueError: If the tag is not one of the accepted forms
    """
    tag = tag.strip()
    if tag in ("preview", "latest"):
        return tag, None

    version, sep, datestamp = tag.partition("-")
    if sep and (not version or not datestamp):
        raise ValueError(IMAGE_TAG_PARSE_ERROR)
    if version == "latest":
        raise ValueError(IMAGE_TAG_PARSE_ERROR)

    try:
        parse_mongodb_version(version)
    except ValueError as e:
        raise ValueError(IMAGE_TAG_PARSE_ERROR) from e

    return version, datestamp or None

