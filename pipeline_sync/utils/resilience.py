"""
Retry helpers for the read-only calls made to GitHub and Jenkins.

Board writes are never retried: a repeated mutation can create a
duplicate item.
"""

import asyncio
import time
from functools import wraps
from typing import Callable, Iterator, Optional, ParamSpec, TypeVar

from pipeline_sync.utils.logging import get_logger

logger = get_logger(__name__)

P = ParamSpec('P')
T = TypeVar('T')


def backoff_delays(
    attempts: int,
    base_delay: float,
    max_delay: float,
    exponential_base: float,
) -> Iterator[float]:
    """Yield the sleep before each retry, capped at max_delay."""
    for attempt in range(attempts - 1):
        yield min(base_delay * (exponential_base ** attempt), max_delay)


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    exceptions: tuple = (Exception,),
):
    """
    Retry a sync or async callable when it raises one of ``exceptions``.

    ``max_retries`` counts total attempts. The last failure is re-raised.

    Example:
        @retry_with_backoff(max_retries=3, exceptions=(httpx.TransportError,))
        async def get_build(self, job_name, number):
            ...
    """
    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        name = func.__qualname__

        def on_failure(attempt: int, error: BaseException, delay: Optional[float]) -> None:
            if delay is None:
                logger.error(
                    f"{name} gave up after {max_retries} attempts: {error}",
                    extra={"operation": name, "attempts": max_retries},
                )
            else:
                logger.warning(
                    f"{name} attempt {attempt}/{max_retries} failed: {error}; retrying in {delay:.1f}s",
                    extra={"operation": name, "attempt": attempt, "retry_delay_seconds": delay},
                )

        if asyncio.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
                delays = backoff_delays(max_retries, base_delay, max_delay, exponential_base)
                attempt = 0
                while True:
                    attempt += 1
                    try:
                        return await func(*args, **kwargs)
                    except exceptions as e:
                        delay = next(delays, None)
                        on_failure(attempt, e, delay)
                        if delay is None:
                            raise
                    await asyncio.sleep(delay)

            return async_wrapper

        @wraps(func)
        def sync_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            delays = backoff_delays(max_retries, base_delay, max_delay, exponential_base)
            attempt = 0
            while True:
                attempt += 1
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    delay = next(delays, None)
                    on_failure(attempt, e, delay)
                    if delay is None:
                        raise
                time.sleep(delay)

        return sync_wrapper

    return decorator
