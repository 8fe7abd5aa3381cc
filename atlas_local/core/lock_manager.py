"""
Per-deployment Lock Manager for atlas-local

This module serializes operations on the same deployment while letting
operations on different deployments run concurrently.

Features:
- Per-deployment locks (no global lock)
- Lock ownership tracking for diagnostics
- Bounded waiting for a busy deployment
- Idle locks are dropped once no holder or waiter remains

Usage:
    >>> from atlas_local.core.lock_manager import LockManager
    >>>
    >>> lock_mgr = LockManager()
    >>>
    >>> async with lock_mgr.hold("local1", operation="stop"):
    ...     await do_something()
"""

import asyncio
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, Optional

import structlog

logger = structlog.get_logger(__name__)


class _DeploymentLock:
    __slots__ = ("lock", "waiters", "owner", "operation", "acquired_at")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.waiters = 0
        self.owner: Optional[str] = None
        self.operation: Optional[str] = None
        self.acquired_at: Optional[datetime] = None


class LockManager:
    """
    In-process lock manager keyed by deployment name.

    Every holder gets an owner token; only the holder can release it.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, _DeploymentLock] = {}

    def _get_entry(self, deployment: str) -> _DeploymentLock:
        entry = self._locks.get(deployment)
        if entry is None:
            entry = _DeploymentLock()
            self._locks[deployment] = entry
        return entry

    def _discard_if_idle(self, deployment: str, entry: _DeploymentLock) -> None:
        if not entry.lock.locked() and entry.waiters == 0 and self._locks.get(deployment) is entry:
            del self._locks[deployment]

    async def acquire_lock(
        self,
        deployment: str,
        operation: str,
        timeout: Optional[float] = None,
    ) -> Optional[str]:
        """
        Acquire the exclusive lock on a deployment.

        Args:
            deployment: Deployment name to lock
            operation: Operation requiring the lock (for diagnostics)
            timeout: Maximum seconds to wait, None to wait indefinitely

        Returns:
            Owner token if the lock was acquired, None if the wait timed out
        """
        entry = self._get_entry(deployment)
        entry.waiters += 1
        try:
            if timeout is None:
                await entry.lock.acquire()
            else:
                await asyncio.wait_for(entry.lock.acquire(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "lock_wait_timeout",
                deployment=deployment,
                operation=operation,
                held_by_operation=entry.operation,
                timeout=timeout,
            )
            return None
        finally:
            entry.waiters -= 1
            self._discard_if_idle(deployment, entry)

        owner = uuid.uuid4().hex
        entry.owner = owner
        entry.operation = operation
        entry.acquired_at = datetime.now(timezone.utc)

        logger.debug("lock_acquired", deployment=deployment, operation=operation)
        return owner

    def release_lock(self, deployment: str, owner: str) -> bool:
        """
        Release the lock on a deployment.

        Only the holder that acquired the lock can release it.

        Returns:
            True if lock released, False if lock not held by this owner
        """
        entry = self._locks.get(deployment)
        if entry is None or not entry.lock.locked():
            logger.warning("lock_release_no_lock", deployment=deployment)
            return False

        if entry.owner != owner:
            logger.error(
                "lock_release_wrong_owner",
                deployment=deployment,
                held_by_operation=entry.operation,
            )
            return False

        operation = entry.operation
        entry.owner = None
        entry.operation = None
        entry.acquired_at = None
        entry.lock.release()
        self._discard_if_idle(deployment, entry)

        logger.debug("lock_released", deployment=deployment, operation=operation)
        return True

    @asynccontextmanager
    async def hold(
        self,
        deployment: str,
        operation: str,
        timeout: Optional[float] = None,
    ) -> AsyncIterator[str]:
        """
        Hold the deployment lock for the duration of the block.

        Raises:
            asyncio.TimeoutError: If the lock could not be acquired in time
        """
        owner = await self.acquire_lock(deployment, operation, timeout=timeout)
        if owner is None:
            raise asyncio.TimeoutError(f"Deployment {deployment} is busy")
        try:
            yield owner
        finally:
            self.release_lock(deployment, owner)

    def is_locked(self, deployment: str) -> bool:
        """Check if deployment is currently locked."""
        entry = self._locks.get(deployment)
        return entry is not None and entry.lock.locked()

    def get_lock_info(self, deployment: str) -> Optional[Dict[str, Any]]:
        """
        Get information about the current lock on a deployment.

        Returns:
            Lock information dict or None if not locked
        """
        entry = self._locks.get(deployment)
        if entry is None or not entry.lock.locked():
            return None

        return {
            "operation": entry.operation,
            "acquired_at": entry.acquired_at.isoformat() if entry.acquired_at else None,
            "waiters": entry.waiters,
        }
