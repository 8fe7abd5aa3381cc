"""
Deployment State Machine for atlas-local

This module implements a strict state machine for deployment lifecycle management.
It prevents invalid state transitions and derives the current status from what
the container runtime reports.

States:
- CREATING: Container creation in progress
- STARTING: Container created or resuming, not yet confirmed running
- RUNNING: Container running
- HEALTHY: Container running and its health check passed
- PAUSING / PAUSED: Pause in progress / container frozen
- STOPPING / STOPPED: Stop in progress / container not running
- REMOVING / REMOVED: Removal in progress / container gone
- FAILED: A step failed or the container crashed, requires delete

Usage:
    >>> from atlas_local.core.state_machine import DeploymentStatus, DeploymentStateMachine
    >>>
    >>> DeploymentStateMachine.can_transition(
    ...     DeploymentStatus.STOPPED,
    ...     DeploymentStatus.STARTING
    ... )
    True
    >>> DeploymentStateMachine.can_perform_operation(
    ...     DeploymentStatus.PAUSED,
    ...     OperationType.PAUSE
    ... )
    False
"""

from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional, Set

import structlog

from atlas_local.exceptions import InvalidTransition

logger = structlog.get_logger(__name__)


class DeploymentStatus(str, Enum):
    """Deployment lifecycle states"""
    CREATING = "creating"
    STARTING = "starting"
    RUNNING = "running"
    HEALTHY = "healthy"
    PAUSING = "pausing"
    PAUSED = "paused"
    STOPPING = "stopping"
    STOPPED = "stopped"
    REMOVING = "removing"
    REMOVED = "removed"
    FAILED = "failed"


class OperationType(str, Enum):
    """Types of deployment operations"""
    CREATE = "create"
    START = "start"
    STOP = "stop"
    PAUSE = "pause"
    UNPAUSE = "unpause"
    DELETE = "delete"
    WAIT = "wait_until_healthy"


# Runtime exit codes produced by a requested stop (clean exit, SIGKILL, SIGTERM)
STOP_EXIT_CODES: FrozenSet[int] = frozenset({0, 137, 143})


class DeploymentStateMachine:
    """
    State machine for deployment lifecycle management.

    Enforces strict state transitions and operation permissions so that
    concurrent callers cannot drive a deployment into an inconsistent status.
    """

    TRANSITIONS: Dict[DeploymentStatus, Set[DeploymentStatus]] = {
        DeploymentStatus.CREATING: {
            DeploymentStatus.STARTING,  # Container created
            DeploymentStatus.FAILED,    # Creation failed
            DeploymentStatus.REMOVING,
        },
        DeploymentStatus.STARTING: {
            DeploymentStatus.RUNNING,   # Start confirmed
            DeploymentStatus.HEALTHY,   # Start confirmed, health check already passing
            DeploymentStatus.FAILED,    # Container did not stay up
            DeploymentStatus.REMOVING,
        },
        DeploymentStatus.RUNNING: {
            DeploymentStatus.HEALTHY,   # Health poll succeeded
            DeploymentStatus.PAUSING,
            DeploymentStatus.STOPPING,
            DeploymentStatus.REMOVING,
            DeploymentStatus.FAILED,
        },
        DeploymentStatus.HEALTHY: {
            DeploymentStatus.RUNNING,   # Health check regressed
            DeploymentStatus.PAUSING,
            DeploymentStatus.STOPPING,
            DeploymentStatus.REMOVING,
            DeploymentStatus.FAILED,
        },
        DeploymentStatus.PAUSING: {
            DeploymentStatus.PAUSED,
            DeploymentStatus.FAILED,
        },
        DeploymentStatus.PAUSED: {
            DeploymentStatus.STARTING,  # Unpause
            DeploymentStatus.STOPPING,
            DeploymentStatus.REMOVING,
        },
        DeploymentStatus.STOPPING: {
            DeploymentStatus.STOPPED,
            DeploymentStatus.FAILED,
        },
        DeploymentStatus.STOPPED: {
            DeploymentStatus.STARTING,
            DeploymentStatus.REMOVING,
        },
        DeploymentStatus.REMOVING: {
            DeploymentStatus.REMOVED,
            DeploymentStatus.FAILED,
        },
        DeploymentStatus.FAILED: {
            DeploymentStatus.REMOVING,  # Explicit delete clears a failed deployment
        },
        DeploymentStatus.REMOVED: set(),  # Terminal state, no transitions
    }

    ALLOWED_OPERATIONS: Dict[DeploymentStatus, Set[OperationType]] = {
        DeploymentStatus.CREATING: {OperationType.DELETE},
        DeploymentStatus.STARTING: {OperationType.DELETE, OperationType.WAIT},
        DeploymentStatus.RUNNING: {
            OperationType.PAUSE,
            OperationType.STOP,
            OperationType.DELETE,
            OperationType.WAIT,
        },
        DeploymentStatus.HEALTHY: {
            OperationType.PAUSE,
            OperationType.STOP,
            OperationType.DELETE,
            OperationType.WAIT,
        },
        DeploymentStatus.PAUSING: set(),  # Wait for pause to complete
        DeploymentStatus.PAUSED: {
            OperationType.UNPAUSE,
            OperationType.STOP,
            OperationType.DELETE,
        },
        DeploymentStatus.STOPPING: set(),  # Wait for stop to complete
        DeploymentStatus.STOPPED: {OperationType.START, OperationType.DELETE},
        DeploymentStatus.REMOVING: set(),  # Irreversible, wait for removal
        DeploymentStatus.REMOVED: set(),   # Terminal state
        DeploymentStatus.FAILED: {OperationType.DELETE},
    }

    # Statuses an operation must land in for the engine to report success
    TARGET_STATES: Dict[OperationType, FrozenSet[DeploymentStatus]] = {
        OperationType.CREATE: frozenset({DeploymentStatus.RUNNING, DeploymentStatus.HEALTHY}),
        OperationType.START: frozenset({DeploymentStatus.RUNNING, DeploymentStatus.HEALTHY}),
        OperationType.UNPAUSE: frozenset({DeploymentStatus.RUNNING, DeploymentStatus.HEALTHY}),
        OperationType.PAUSE: frozenset({DeploymentStatus.PAUSED}),
        OperationType.STOP: frozenset({DeploymentStatus.STOPPED}),
        OperationType.DELETE: frozenset({DeploymentStatus.REMOVED}),
        OperationType.WAIT: frozenset({DeploymentStatus.HEALTHY}),
    }

    @classmethod
    def can_transition(
        cls,
        from_state: DeploymentStatus,
        to_state: DeploymentStatus
    ) -> bool:
        """
        Check if state transition is valid.

        Example:
            >>> DeploymentStateMachine.can_transition(
            ...     DeploymentStatus.REMOVED,
            ...     DeploymentStatus.STARTING
            ... )
            False
        """
        allowed_states = cls.TRANSITIONS.get(from_state, set())
        return to_state in allowed_states

    @classmethod
    def validate_transition(
        cls,
        from_state: DeploymentStatus,
        to_state: DeploymentStatus,
        deployment: Optional[str] = None
    ) -> None:
        """
        Validate state transition and raise exception if invalid.

        Raises:
            InvalidTransition: If transition is not allowed
        """
        if not cls.can_transition(from_state, to_state):
            logger.error(
                "invalid_state_transition",
                deployment=deployment,
                from_state=from_state.value,
                to_state=to_state.value,
                allowed_states=sorted(s.value for s in cls.TRANSITIONS.get(from_state, set())),
            )
            raise InvalidTransition(
                deployment=deployment or "<unknown>",
                operation=f"transition to {to_state.value}",
                status=from_state.value,
            )

        logger.debug(
            "state_transition_validated",
            deployment=deployment,
            from_state=from_state.value,
            to_state=to_state.value
        )

    @classmethod
    def can_perform_operation(
        cls,
        current_state: DeploymentStatus,
        operation: OperationType
    ) -> bool:
        """Check if operation is allowed in current state."""
        allowed_ops = cls.ALLOWED_OPERATIONS.get(current_state, set())
        return operation in allowed_ops

    @classmethod
    def validate_operation(
        cls,
        current_state: DeploymentStatus,
        operation: OperationType,
        deployment: Optional[str] = None
    ) -> None:
        """
        Validate operation and raise exception if not allowed.

        Raises:
            InvalidTransition: If operation is not allowed in current state
        """
        if not cls.can_perform_operation(current_state, operation):
            logger.warning(
                "operation_not_allowed",
                deployment=deployment,
                current_state=current_state.value,
                operation=operation.value,
                allowed_operations=sorted(
                    op.value for op in cls.ALLOWED_OPERATIONS.get(current_state, set())
                ),
            )
            raise InvalidTransition(
                deployment=deployment or "<unknown>",
                operation=operation.value,
                status=current_state.value,
            )

        logger.debug(
            "operation_validated",
            deployment=deployment,
            current_state=current_state.value,
            operation=operation.value
        )

    @classmethod
    def get_state_for_operation(cls, operation: OperationType) -> Optional[DeploymentStatus]:
        """
        Get the intermediate state for an operation.

        Example:
            >>> DeploymentStateMachine.get_state_for_operation(OperationType.PAUSE)
            <DeploymentStatus.PAUSING: 'pausing'>
        """
        operation_state_map = {
            OperationType.CREATE: DeploymentStatus.CREATING,
            OperationType.START: DeploymentStatus.STARTING,
            OperationType.UNPAUSE: DeploymentStatus.STARTING,
            OperationType.PAUSE: DeploymentStatus.PAUSING,
            OperationType.STOP: DeploymentStatus.STOPPING,
            OperationType.DELETE: DeploymentStatus.REMOVING,
        }
        return operation_state_map.get(operation)

    @classmethod
    def is_target(cls, operation: OperationType, status: DeploymentStatus) -> bool:
        return status in cls.TARGET_STATES.get(operation, frozenset())


def observe(attrs: Optional[Mapping[str, Any]]) -> DeploymentStatus:
    """
    Derive the deployment status from one runtime inspect payload.

    ``None`` means the runtime no longer knows the container.
    """
    if attrs is None:
        return DeploymentStatus.REMOVED

    state = attrs.get("State") or {}
    runtime_status = (state.get("Status") or "").lower()
    health = (state.get("Health") or {}).get("Status")

    if runtime_status == "running":
        if health == "healthy":
            return DeploymentStatus.HEALTHY
        return DeploymentStatus.RUNNING
    if runtime_status == "paused":
        return DeploymentStatus.PAUSED
    if runtime_status == "restarting":
        return DeploymentStatus.STARTING
    if runtime_status == "removing":
        return DeploymentStatus.REMOVING
    if runtime_status == "created":
        # Created but never started
        return DeploymentStatus.STOPPED
    if runtime_status == "exited":
        exit_code = state.get("ExitCode", 0)
        if state.get("OOMKilled") or state.get("Error") or exit_code not in STOP_EXIT_CODES:
            return DeploymentStatus.FAILED
        return DeploymentStatus.STOPPED

    # "dead" and anything the runtime invents later
    return DeploymentStatus.FAILED
