"""
Core functionality for atlas-local deployment management.

This package provides the foundation for deployment lifecycle operations:
- State machine for deployment statuses and status reconciliation
- Per-deployment locking to serialize conflicting operations
"""

from atlas_local.core.lock_manager import LockManager
from atlas_local.core.state_machine import (
    DeploymentStateMachine,
    DeploymentStatus,
    OperationType,
    observe,
)

__all__ = [
    "DeploymentStatus",
    "DeploymentStateMachine",
    "OperationType",
    "LockManager",
    "observe",
]
