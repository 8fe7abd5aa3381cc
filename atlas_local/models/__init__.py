"""
Pydantic models for atlas-local.
"""
from atlas_local.models.deployment import (
    BindingType,
    CreationSource,
    Deployment,
    Endpoint,
    MongodbType,
    PortBindingRequest,
)
from atlas_local.models.logs import LogLine, LogsOptions, LogStream
from atlas_local.models.options import CreateDeploymentOptions, generate_deployment_name
from atlas_local.models.progress import CreationProgress, CreationStep, StepOutcome

__all__ = [
    "BindingType",
    "CreateDeploymentOptions",
    "CreationProgress",
    "CreationSource",
    "CreationStep",
    "Deployment",
    "Endpoint",
    "LogLine",
    "LogStream",
    "LogsOptions",
    "MongodbType",
    "PortBindingRequest",
    "StepOutcome",
    "generate_deployment_name",
]
