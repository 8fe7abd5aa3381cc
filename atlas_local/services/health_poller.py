"""
Health Poller - bounded wait for a deployment to become ready.

Polls the container until it is running and healthy, the timeout expires,
the container disappears or it turns unhealthy. Time and cancellation are
injectable so waits can be driven without sleeping.
"""
import asyncio
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel

from atlas_local.config.logging import get_logger
from atlas_local.config.settings import Settings, settings as default_settings
from atlas_local.exceptions import OperationCancelled
from atlas_local.services.runtime_gateway import ContainerNotFound, RuntimeGateway
from atlas_local.utils.clock import Clock, SystemClock, sleep_or_cancel

logger = get_logger(__name__)

# Runtime states a container can still become healthy from
_PENDING_STATES = {"running", "restarting", "created"}


class HealthOutcome(str, Enum):
    """Terminal result of a health wait."""

    HEALTHY = "healthy"
    TIMEOUT = "timeout"
    DISAPPEARED = "disappeared"
    UNHEALTHY = "unhealthy"


class HealthResult(BaseModel):
    """Outcome of a health wait with the last observation."""

    outcome: HealthOutcome
    state: Optional[str] = None
    health: Optional[str] = None
    attrs: Optional[Dict[str, Any]] = None
    checks: int = 0


class HealthPoller:
    """
    Poll a container until it is ready.

    Ready means state ``running`` with runtime health ``healthy``. When the
    image defines no health check, a running container is ready once the
    liveness log pattern shows up in its recent logs.
    """

    def __init__(
        self,
        runtime: RuntimeGateway,
        clock: Optional[Clock] = None,
        config: Optional[Settings] = None,
    ):
        self.runtime = runtime
        self.clock = clock or SystemClock()
        self.settings = config or default_settings

    async def poll(
        self,
        container: str,
        timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
        allow_unhealthy_initial_state: bool = False,
    ) -> HealthResult:
        """
        Wait for the container to become ready.

        A zero timeout checks exactly once.

        Args:
            container: Container id or name
            timeout: Seconds to wait, settings default when None
            poll_interval: Seconds between checks, settings default when None
            cancel_event: Event that aborts the wait when set
            allow_unhealthy_initial_state: Treat ``unhealthy`` as still starting

        Returns:
            HealthResult with the terminal outcome

        Raises:
            OperationCancelled: If cancel_event was set
            RuntimeGatewayError: If the runtime errors for a reason other
                than a missing container
        """
        timeout = self.settings.health_check_timeout if timeout is None else timeout
        interval = self.settings.health_poll_interval if poll_interval is None else poll_interval
        deadline = self.clock.monotonic() + timeout
        checks = 0

        logger.debug("health_poll_started", container=container, timeout=timeout, interval=interval)

        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise self._cancelled(container, checks)

            checks += 1
            try:
                attrs = await self.runtime.inspect_container(container)
                outcome = await self._evaluate(container, attrs, allow_unhealthy_initial_state)
            except ContainerNotFound:
                logger.warning("health_poll_container_disappeared", container=container, checks=checks)
                return HealthResult(outcome=HealthOutcome.DISAPPEARED, checks=checks)

            state, health = _state_and_health(attrs)
            if outcome is not None:
                log = logger.info if outcome == HealthOutcome.HEALTHY else logger.warning
                log("health_poll_finished", container=container, outcome=outcome.value,
                    state=state, health=health, checks=checks)
                return HealthResult(outcome=outcome, state=state, health=health, attrs=attrs, checks=checks)

            remaining = deadline - self.clock.monotonic()
            if remaining <= 0:
                logger.warning("health_poll_timeout", container=container, timeout=timeout,
                               state=state, health=health, checks=checks)
                return HealthResult(
                    outcome=HealthOutcome.TIMEOUT, state=state, health=health, attrs=attrs, checks=checks
                )

            if await sleep_or_cancel(self.clock, min(interval, remaining), cancel_event):
                raise self._cancelled(container, checks)

    async def _evaluate(
        self,
        container: str,
        attrs: Mapping[str, Any],
        allow_unhealthy_initial_state: bool,
    ) -> Optional[HealthOutcome]:
        """Return a terminal outcome, or None while the container is still starting."""
        state, health = _state_and_health(attrs)

        if state not in _PENDING_STATES:
            return HealthOutcome.UNHEALTHY

        if health is None:
            if state == "running" and await self._liveness_probe(container):
                return HealthOutcome.HEALTHY
            return None

        if health == "unhealthy" and not allow_unhealthy_initial_state:
            return HealthOutcome.UNHEALTHY
        if health == "healthy" and state == "running":
            return HealthOutcome.HEALTHY
        return None

    async def _liveness_probe(self, container: str) -> bool:
        raw = await self.runtime.container_logs(
            container,
            stdout=True,
            stderr=True,
            tail=self.settings.liveness_log_tail,
        )
        return self.settings.liveness_log_pattern in raw.decode("utf-8", errors="replace")

    def _cancelled(self, container: str, checks: int) -> OperationCancelled:
        logger.info("health_poll_cancelled", container=container, checks=checks)
        return OperationCancelled(
            message=f"Health wait for deployment {container} was cancelled",
            details={"deployment": container, "checks": checks},
        )


def _state_and_health(attrs: Optional[Mapping[str, Any]]):
    state = (attrs or {}).get("State") or {}
    health = (state.get("Health") or {}).get("Status")
    if health in ("", "none"):
        health = None
    return (state.get("Status") or "").lower() or None, health
