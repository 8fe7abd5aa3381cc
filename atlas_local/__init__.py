"""
atlas-local - lifecycle management for local MongoDB Atlas deployments on Docker.
"""
from atlas_local.exceptions import (
    AtlasLocalError,
    ConfigurationInvalid,
    CreationFailed,
    HealthCheckFailed,
    HealthCheckTimeout,
    InvalidTransition,
    NotFound,
    NotRunning,
    OperationCancelled,
    RuntimeOperationFailed,
    StartFailed,
)
from atlas_local.core.state_machine import DeploymentStatus
from atlas_local.models import (
    BindingType,
    CreateDeploymentOptions,
    CreationProgress,
    CreationSource,
    CreationStep,
    Deployment,
    Endpoint,
    LogLine,
    LogsOptions,
    LogStream,
    MongodbType,
    PortBindingRequest,
    StepOutcome,
)
from atlas_local.services.deployment_engine import DeploymentEngine
from atlas_local.services.runtime_gateway import DockerRuntimeGateway, RuntimeGateway

__version__ = "0.1.0"

__all__ = [
    "AtlasLocalError",
    "BindingType",
    "ConfigurationInvalid",
    "CreateDeploymentOptions",
    "CreationFailed",
    "CreationProgress",
    "CreationSource",
    "CreationStep",
    "Deployment",
    "DeploymentEngine",
    "DeploymentStatus",
    "DockerRuntimeGateway",
    "Endpoint",
    "HealthCheckFailed",
    "HealthCheckTimeout",
    "InvalidTransition",
    "LogLine",
    "LogStream",
    "LogsOptions",
    "MongodbType",
    "NotFound",
    "NotRunning",
    "OperationCancelled",
    "PortBindingRequest",
    "RuntimeGateway",
    "RuntimeOperationFailed",
    "StartFailed",
    "StepOutcome",
]
