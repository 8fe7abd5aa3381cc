"""
Custom exceptions for the atlas-local deployment library.

This module defines all custom exceptions used throughout the library
for consistent error handling and reporting.
"""
from typing import Optional, Dict, Any


class AtlasLocalError(Exception):
    """
    Base exception for all atlas-local errors.

    All custom exceptions should inherit from this base class.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class NotFound(AtlasLocalError):
    """
    Raised when a deployment does not exist.

    Also raised when a container exists but is not managed by this library.
    """

    def __init__(self, deployment: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"Deployment '{deployment}' not found",
            details=details or {"deployment": deployment},
        )


class InvalidTransition(AtlasLocalError):
    """Raised when the current status does not admit the requested operation."""

    def __init__(
        self,
        deployment: str,
        operation: str,
        status: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=f"Operation {operation} not allowed in status {status} for deployment {deployment}",
            details=details or {
                "deployment": deployment,
                "operation": operation,
                "status": status,
            },
        )


class CreationFailed(AtlasLocalError):
    """Raised when the runtime rejects image pull or container creation."""


class StartFailed(AtlasLocalError):
    """Raised when a freshly created container cannot be started."""


class RuntimeOperationFailed(AtlasLocalError):
    """
    Raised when a container runtime call errors.

    The details always carry the attempted operation and deployment identifier.
    """

    def __init__(
        self,
        operation: str,
        deployment: str,
        reason: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=f"Runtime error during {operation} on deployment {deployment}: {reason}",
            details={"operation": operation, "deployment": deployment, **(details or {})},
        )


class HealthCheckTimeout(AtlasLocalError):
    """
    Raised when a deployment does not become healthy within the bound.

    Recoverable: the container is left in its last observed state.
    """

    def __init__(self, deployment: str, timeout: float, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"Timeout while waiting for deployment {deployment} to become healthy",
            details={"deployment": deployment, "timeout_seconds": timeout, **(details or {})},
        )


class HealthCheckFailed(AtlasLocalError):
    """Raised when the runtime reports the deployment unhealthy or no longer running."""

    def __init__(self, deployment: str, state: Optional[str], health: Optional[str]):
        super().__init__(
            message=f"Deployment {deployment} is not healthy [state: {state}, health: {health}]",
            details={"deployment": deployment, "state": state, "health": health},
        )


class NotRunning(AtlasLocalError):
    """Raised when a deployment has no usable endpoint yet."""

    def __init__(self, deployment: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"Deployment {deployment} is not running or has no reachable endpoint",
            details=details or {"deployment": deployment},
        )


class ConfigurationInvalid(AtlasLocalError):
    """Raised when deployment options or library settings are invalid."""


class OperationCancelled(AtlasLocalError):
    """Raised when the caller cancels a bounded wait."""
