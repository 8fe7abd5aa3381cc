"""
Step-by-step progress of a deployment creation.
"""
import asyncio
from enum import Enum
from typing import TYPE_CHECKING, Dict, Optional

if TYPE_CHECKING:
    from atlas_local.models.deployment import Deployment


class CreationStep(str, Enum):
    """Steps of a deployment creation, in execution order."""

    PULL_IMAGE = "pull_image"
    CREATE_CONTAINER = "create_container"
    START_CONTAINER = "start_container"
    WAIT_FOR_HEALTHY = "wait_for_healthy"


class StepOutcome(str, Enum):
    """How a creation step ended."""

    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILURE = "failure"


class CreationProgress:
    """
    Awaitable outcomes of a running deployment creation.

    Each step resolves exactly once. When creation fails, the first unfinished
    step resolves to FAILURE and every later one to SKIPPED.

    Usage:
        >>> progress = await engine.create_deployment_with_progress(options)
        >>> await progress.pull_image()
        <StepOutcome.SUCCESS: 'success'>
        >>> deployment = await progress.deployment()
    """

    def __init__(self) -> None:
        loop = asyncio.get_running_loop()
        self._steps: Dict[CreationStep, "asyncio.Future[StepOutcome]"] = {
            step: loop.create_future() for step in CreationStep
        }
        self._task: Optional["asyncio.Task[Deployment]"] = None

    def attach(self, task: "asyncio.Task[Deployment]") -> None:
        self._task = task
        task.add_done_callback(self._on_done)

    async def step(self, step: CreationStep) -> StepOutcome:
        return await asyncio.shield(self._steps[step])

    async def pull_image(self) -> StepOutcome:
        return await self.step(CreationStep.PULL_IMAGE)

    async def create_container(self) -> StepOutcome:
        return await self.step(CreationStep.CREATE_CONTAINER)

    async def start_container(self) -> StepOutcome:
        return await self.step(CreationStep.START_CONTAINER)

    async def wait_for_healthy(self) -> StepOutcome:
        return await self.step(CreationStep.WAIT_FOR_HEALTHY)

    async def deployment(self) -> "Deployment":
        """Wait for the creation to finish; re-raises its error."""
        if self._task is None:
            raise RuntimeError("Creation has not been started")
        return await asyncio.shield(self._task)

    def resolve(self, step: CreationStep, outcome: StepOutcome) -> None:
        future = self._steps[step]
        if not future.done():
            future.set_result(outcome)

    def fail_remaining(self) -> None:
        failed = False
        for step in CreationStep:
            if self._steps[step].done():
                continue
            self.resolve(step, StepOutcome.SKIPPED if failed else StepOutcome.FAILURE)
            failed = True

    def _on_done(self, task: "asyncio.Task[Deployment]") -> None:
        if task.cancelled() or task.exception() is not None:
            self.fail_remaining()
        else:
            for step in CreationStep:
                self.resolve(step, StepOutcome.SKIPPED)
