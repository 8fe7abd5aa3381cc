"""
Clock abstraction for bounded waits.

Polling loops take a clock so tests can drive time without sleeping.
"""
import asyncio
import time
from typing import Optional, Protocol


class Clock(Protocol):
    """Monotonic time source with an awaitable sleep."""

    def monotonic(self) -> float:
        ...

    async def sleep(self, seconds: float) -> None:
        ...


class SystemClock:
    """Clock backed by the event loop."""

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


async def sleep_or_cancel(
    clock: Clock,
    delay: float,
    cancel_event: Optional[asyncio.Event] = None,
) -> bool:
    """
    Wait for delay seconds or until cancellation is requested.

    Args:
        clock: Clock used for the wait
        delay: Time to wait in seconds
        cancel_event: Optional event signalling cancellation

    Returns:
        True if cancellation was requested, False if wait completed normally
    """
    if cancel_event is None:
        await clock.sleep(delay)
        return False

    if cancel_event.is_set():
        return True

    sleeper = asyncio.ensure_future(clock.sleep(delay))
    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (sleeper, waiter):
            if not task.done():
                task.cancel()
        # Reap the cancelled tasks so nothing outlives the wait
        await asyncio.gather(sleeper, waiter, return_exceptions=True)

    return cancel_event.is_set()
