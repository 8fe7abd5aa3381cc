"""
Retry utilities for container runtime calls.

Provides a decorator to handle transient failures in Docker API calls
with exponential backoff and configurable retry strategies.
"""
import asyncio
import functools
from typing import Callable, Optional, Tuple, Type, TypeVar

import requests
from docker.errors import APIError, NotFound

from atlas_local.config.logging import get_logger

logger = get_logger(__name__)

T = TypeVar('T')

# HTTP status codes that are retryable
RETRYABLE_STATUS_CODES = {
    408,  # Request Timeout
    429,  # Too Many Requests
    500,  # Internal Server Error
    502,  # Bad Gateway
    503,  # Service Unavailable
    504,  # Gateway Timeout
}


def is_retryable_docker_error(exception: BaseException) -> bool:
    """
    Determine if a Docker API exception should trigger a retry.

    Args:
        exception: The exception to check

    Returns:
        True if the exception is retryable, False otherwise
    """
    if isinstance(exception, NotFound):
        return False

    if isinstance(exception, APIError):
        return exception.status_code in RETRYABLE_STATUS_CODES

    # The daemon socket dropped or timed out
    return isinstance(exception, (requests.exceptions.ConnectionError, requests.exceptions.Timeout))


def retry_on_docker_error(
    max_retries: int = 3,
    initial_delay: float = 0.5,
    max_delay: float = 10.0,
    exponential_base: float = 2.0,
    retry_on: Optional[Tuple[Type[Exception], ...]] = None,
) -> Callable:
    """
    Decorator to retry async Docker API calls with exponential backoff.

    Only apply it to idempotent calls (inspect, list, logs).

    Args:
        max_retries: Maximum number of retry attempts (default: 3)
        initial_delay: Initial delay between retries in seconds (default: 0.5)
        max_delay: Maximum delay between retries in seconds (default: 10.0)
        exponential_base: Base for exponential backoff calculation (default: 2.0)
        retry_on: Additional exception types to retry on (default: None)

    Example:
        @retry_on_docker_error(max_retries=5)
        async def inspect_container(self, container: str):
            ...
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            for attempt in range(max_retries + 1):
                try:
                    result = await func(*args, **kwargs)

                    if attempt > 0:
                        logger.info(
                            "docker_api_call_succeeded_after_retry",
                            function=func.__name__,
                            attempt=attempt + 1,
                            max_retries=max_retries,
                        )

                    return result

                except Exception as e:
                    should_retry = is_retryable_docker_error(e)
                    if retry_on and isinstance(e, retry_on):
                        should_retry = True

                    if attempt >= max_retries or not should_retry:
                        if should_retry:
                            logger.error(
                                "docker_api_call_failed_max_retries",
                                function=func.__name__,
                                attempt=attempt + 1,
                                max_retries=max_retries,
                                error_type=type(e).__name__,
                                error=str(e),
                            )
                        raise

                    delay = min(
                        initial_delay * (exponential_base ** attempt),
                        max_delay
                    )

                    logger.warning(
                        "docker_api_call_failed_retrying",
                        function=func.__name__,
                        attempt=attempt + 1,
                        max_retries=max_retries,
                        delay_seconds=delay,
                        error_type=type(e).__name__,
                        error=str(e),
                        status_code=getattr(e, "status_code", None),
                    )

                    await asyncio.sleep(delay)

            raise AssertionError("unreachable")

        return wrapper
    return decorator
