"""
Pydantic models for local deployments.
"""
import ipaddress
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Literal, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from atlas_local.core.state_machine import DeploymentStatus, observe
from atlas_local.utils.timestamps import parse_docker_timestamp
from atlas_local.utils.version import split_image_tag

# Label put on every managed container
LABEL_MARKER_KEY = "mongodb-atlas-local"
LABEL_MARKER_VALUE = "container"
# Labels baked into the image
LABEL_VERSION = "version"
LABEL_MONGODB_TYPE = "mongodb-type"

# Mount point the image scans for init scripts
SEED_MOUNT_TARGET = "/docker-entrypoint-initdb.d"

# Port mongod listens on inside the container
MONGODB_CONTAINER_PORT = "27017/tcp"

ENV_TOOL = "TOOL"
ENV_RUNNER_LOG_FILE = "RUNNER_LOG_FILE"
ENV_INITDB_ROOT_USERNAME = "MONGODB_INITDB_ROOT_USERNAME"
ENV_INITDB_ROOT_USERNAME_FILE = "MONGODB_INITDB_ROOT_USERNAME_FILE"
ENV_INITDB_ROOT_PASSWORD = "MONGODB_INITDB_ROOT_PASSWORD"
ENV_INITDB_ROOT_PASSWORD_FILE = "MONGODB_INITDB_ROOT_PASSWORD_FILE"
ENV_INITDB_DATABASE = "MONGODB_INITDB_DATABASE"
ENV_MONGOT_LOG_FILE = "MONGOT_LOG_FILE"
ENV_DO_NOT_TRACK = "DO_NOT_TRACK"
ENV_TELEMETRY_BASE_URL = "TELEMETRY_BASE_URL"
ENV_LOAD_SAMPLE_DATA = "MONGODB_LOAD_SAMPLE_DATA"


class MongodbType(str, Enum):
    """MongoDB edition shipped in the image."""

    COMMUNITY = "community"
    ENTERPRISE = "enterprise"


class CreationSource(str, Enum):
    """Tool that created the deployment (the TOOL env var)."""

    ATLASCLI = "ATLASCLI"
    CONTAINER = "CONTAINER"
    MCPSERVER = "MCPSERVER"


def parse_creation_source(value: Union[CreationSource, str, None]) -> Union[CreationSource, str, None]:
    """Map a TOOL value to a known source, keeping unknown strings as-is."""
    if value is None or isinstance(value, CreationSource):
        return value
    try:
        return CreationSource(value)
    except ValueError:
        return value


def creation_source_value(value: Union[CreationSource, str]) -> str:
    return value.value if isinstance(value, CreationSource) else value


class BindingType(str, Enum):
    """Host interface a container port is published on."""

    LOOPBACK = "loopback"
    ANY_INTERFACE = "any_interface"
    SPECIFIC = "specific"


class Endpoint(BaseModel):
    """Host-reachable address of the deployment's MongoDB port."""

    model_config = ConfigDict(frozen=True)

    host: str = Field(..., description="Address to connect to")
    port: int = Field(..., ge=1, le=65535, description="Host port")
    family: Literal["ipv4", "ipv6"] = Field(default="ipv4", description="Address family")
    binding_type: BindingType = Field(
        default=BindingType.LOOPBACK, description="Interface the port is published on"
    )


class PortBindingRequest(BaseModel):
    """Requested publication of the MongoDB port on the host."""

    model_config = ConfigDict(frozen=True)

    binding_type: BindingType = Field(default=BindingType.LOOPBACK, description="Host interface")
    host_ip: Optional[str] = Field(
        default=None, description="Host address (required for a specific binding)"
    )
    port: Optional[int] = Field(
        default=None, ge=1, le=65535, description="Host port, runtime-assigned when omitted"
    )

    @field_validator("host_ip")
    @classmethod
    def validate_host_ip(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            ipaddress.ip_address(v)
        return v

    @model_validator(mode="after")
    def validate_specific_host(self) -> "PortBindingRequest":
        if self.binding_type == BindingType.SPECIFIC and not self.host_ip:
            raise ValueError("host_ip is required for a specific port binding")
        if self.binding_type != BindingType.SPECIFIC and self.host_ip:
            raise ValueError("host_ip is only allowed for a specific port binding")
        return self


class Deployment(BaseModel):
    """
    Immutable snapshot of a local deployment.

    Built from a single inspect payload; the runtime stays the source of truth.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Container id")
    name: str = Field(..., description="Container name")
    image: str = Field(..., description="Image reference the container runs")
    image_tag: str = Field(..., description="Tag of the image reference")
    mongodb_version: str = Field(..., description="MongoDB version served")
    mongodb_type: MongodbType = Field(default=MongodbType.COMMUNITY, description="MongoDB edition")
    status: DeploymentStatus = Field(..., description="Derived lifecycle status")
    state: Optional[str] = Field(default=None, description="Raw runtime state")
    health: Optional[str] = Field(default=None, description="Raw runtime health status")
    port_bindings: Tuple[Endpoint, ...] = Field(default=(), description="Resolved endpoints")
    created_at: Optional[datetime] = Field(default=None, description="Container creation time")

    creation_source: Optional[Union[CreationSource, str]] = Field(
        default=None, description="Tool that created the deployment"
    )
    mongodb_initdb_database: Optional[str] = None
    mongodb_initdb_root_username: Optional[str] = None
    mongodb_initdb_root_username_file: Optional[str] = None
    mongodb_initdb_root_password: Optional[str] = Field(default=None, repr=False)
    mongodb_initdb_root_password_file: Optional[str] = None
    local_seed_location: Optional[str] = Field(
        default=None, description="Host directory mounted for init scripts"
    )
    mongot_log_file: Optional[str] = None
    runner_log_file: Optional[str] = None
    do_not_track: Optional[bool] = None
    telemetry_base_url: Optional[str] = None
    load_sample_data: Optional[bool] = None

    @field_validator("creation_source", mode="before")
    @classmethod
    def validate_creation_source(cls, v: Any) -> Any:
        return parse_creation_source(v)

    @property
    def is_running(self) -> bool:
        return self.status in (DeploymentStatus.RUNNING, DeploymentStatus.HEALTHY)

    @property
    def is_healthy(self) -> bool:
        return self.status == DeploymentStatus.HEALTHY

    @classmethod
    def from_inspect(cls, attrs: Mapping[str, Any], endpoints: Iterable[Endpoint] = ()) -> "Deployment":
        """
        Build a snapshot from a container inspect payload.

        Args:
            attrs: Inspect payload of a managed container
            endpoints: Endpoints already resolved from the port bindings
        """
        config = attrs.get("Config") or {}
        state = attrs.get("State") or {}
        labels = config.get("Labels") or {}
        env = parse_env(config.get("Env") or [])

        image = config.get("Image") or attrs.get("Image") or ""
        image_tag = image_tag_of(image)
        mongodb_version = labels.get(LABEL_VERSION) or _version_from_tag(image_tag)

        try:
            mongodb_type = MongodbType(labels.get(LABEL_MONGODB_TYPE, MongodbType.COMMUNITY.value))
        except ValueError:
            mongodb_type = MongodbType.COMMUNITY

        return cls(
            id=attrs["Id"],
            name=(attrs.get("Name") or "").lstrip("/"),
            image=image,
            image_tag=image_tag,
            mongodb_version=mongodb_version,
            mongodb_type=mongodb_type,
            status=observe(attrs),
            state=state.get("Status"),
            health=(state.get("Health") or {}).get("Status"),
            port_bindings=tuple(endpoints),
            created_at=parse_docker_timestamp(attrs.get("Created")),
            creation_source=env.get(ENV_TOOL),
            mongodb_initdb_database=env.get(ENV_INITDB_DATABASE),
            mongodb_initdb_root_username=env.get(ENV_INITDB_ROOT_USERNAME),
            mongodb_initdb_root_username_file=env.get(ENV_INITDB_ROOT_USERNAME_FILE),
            mongodb_initdb_root_password=env.get(ENV_INITDB_ROOT_PASSWORD),
            mongodb_initdb_root_password_file=env.get(ENV_INITDB_ROOT_PASSWORD_FILE),
            local_seed_location=seed_location_of(attrs),
            mongot_log_file=env.get(ENV_MONGOT_LOG_FILE),
            runner_log_file=env.get(ENV_RUNNER_LOG_FILE),
            do_not_track=_parse_bool(env.get(ENV_DO_NOT_TRACK)),
            telemetry_base_url=env.get(ENV_TELEMETRY_BASE_URL),
            load_sample_data=_parse_bool(env.get(ENV_LOAD_SAMPLE_DATA)),
        )


def is_managed(attrs: Mapping[str, Any]) -> bool:
    """Check whether an inspect or list payload carries the library's marker label."""
    labels = (attrs.get("Config") or {}).get("Labels") or attrs.get("Labels") or {}
    return labels.get(LABEL_MARKER_KEY) == LABEL_MARKER_VALUE


def parse_env(entries: Iterable[str]) -> Dict[str, str]:
    """Turn ``KEY=VALUE`` entries into a dict; later entries win."""
    env: Dict[str, str] = {}
    for entry in entries:
        key, sep, value = entry.partition("=")
        if sep:
            env[key] = value
    return env


def image_tag_of(image: str) -> str:
    """Return the tag of an image reference, ``latest`` when untagged."""
    reference = image.split("@", 1)[0]
    name, sep, tag = reference.rpartition(":")
    # A colon before the last slash belongs to a registry port
    if not sep or "/" in tag:
        return "latest"
    return tag


def seed_location_of(attrs: Mapping[str, Any]) -> Optional[str]:
    for mount in attrs.get("Mounts") or []:
        if mount.get("Destination") == SEED_MOUNT_TARGET:
            return mount.get("Source")

    binds: List[str] = (attrs.get("HostConfig") or {}).get("Binds") or []
    for bind in binds:
        parts = bind.split(":")
        if len(parts) >= 2 and parts[1] == SEED_MOUNT_TARGET:
            return parts[0]
    return None


def _version_from_tag(tag: str) -> str:
    try:
        version, _ = split_image_tag(tag)
    except ValueError:
        return tag
    return version


def _parse_bool(value: Optional[str]) -> Optional[bool]:
    if value is None:
        return None
    return value.strip().lower() in ("1", "true", "yes", "on")
