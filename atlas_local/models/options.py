"""
Pydantic models for deployment creation options.
"""
import random
import re
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from atlas_local.models.deployment import CreationSource, PortBindingRequest, parse_creation_source
from atlas_local.utils.version import parse_mongodb_version, split_image_tag

# Container names the runtime accepts
_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_.-]*$")


def generate_deployment_name(rng: Optional[random.Random] = None) -> str:
    """Return a default deployment name such as ``local4821``."""
    rng = rng or random.Random()
    return f"local{rng.randint(0, 9999)}"


class CreateDeploymentOptions(BaseModel):
    """Options for creating a local deployment."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: Optional[str] = Field(
        default=None,
        min_length=1,
        max_length=128,
        description="Deployment name (generated when omitted)",
    )
    image: Optional[str] = Field(default=None, description="Image repository, settings default when omitted")
    image_tag: Optional[str] = Field(default=None, description="Image tag (e.g. 'latest', '8.2.4')")
    mongodb_version: Optional[str] = Field(
        default=None, description="MongoDB version (e.g. '8', '8.2', '8.2.1', 'latest')"
    )
    skip_pull_image: bool = Field(default=False, description="Use the local image without pulling")
    wait_until_healthy: bool = Field(default=True, description="Block until the deployment is healthy")
    wait_until_healthy_timeout: Optional[float] = Field(
        default=None, ge=0, description="Seconds to wait for health, settings default when omitted"
    )
    creation_source: Optional[Union[CreationSource, str]] = Field(
        default=None, description="Tool creating the deployment"
    )
    load_sample_data: Optional[bool] = Field(default=None, description="Load the sample datasets on start")

    mongodb_initdb_database: Optional[str] = None
    mongodb_initdb_root_username: Optional[str] = None
    mongodb_initdb_root_username_file: Optional[str] = None
    mongodb_initdb_root_password: Optional[str] = Field(default=None, repr=False)
    mongodb_initdb_root_password_file: Optional[str] = None

    mongot_log_file: Optional[str] = None
    runner_log_file: Optional[str] = None
    do_not_track: Optional[bool] = None
    telemetry_base_url: Optional[str] = None

    port_binding: Optional[PortBindingRequest] = Field(
        default=None, description="Host publication of the MongoDB port"
    )
    local_seed_location: Optional[str] = Field(
        default=None, description="Host directory with init scripts"
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not _NAME_PATTERN.match(v):
            raise ValueError(
                "Deployment name must start with a letter or digit and contain only "
                "letters, digits, '_', '.' or '-'"
            )
        return v

    @field_validator("image_tag")
    @classmethod
    def validate_image_tag(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            split_image_tag(v)
        return v

    @field_validator("mongodb_version")
    @classmethod
    def validate_mongodb_version(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            parse_mongodb_version(v)
        return v

    @field_validator("creation_source", mode="before")
    @classmethod
    def validate_creation_source(cls, v: Any) -> Any:
        return parse_creation_source(v)

    @model_validator(mode="after")
    def validate_exclusive_fields(self) -> "CreateDeploymentOptions":
        if self.image_tag is not None and self.mongodb_version is not None:
            raise ValueError("image_tag and mongodb_version are mutually exclusive")
        if self.mongodb_initdb_root_username and self.mongodb_initdb_root_username_file:
            raise ValueError(
                "mongodb_initdb_root_username and mongodb_initdb_root_username_file are mutually exclusive"
            )
        if self.mongodb_initdb_root_password and self.mongodb_initdb_root_password_file:
            raise ValueError(
                "mongodb_initdb_root_password and mongodb_initdb_root_password_file are mutually exclusive"
            )
        return self

    def resolve_image_tag(self, default: str) -> str:
        """Return the tag to run: explicit tag, then version, then default."""
        if self.image_tag is not None:
            return self.image_tag
        if self.mongodb_version is not None:
            return self.mongodb_version
        return default
