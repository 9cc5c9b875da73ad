"""Tenacity-based retry for transient network failures.

Used around audio uploads and speech-to-text submissions. Only transient
failures are retried; everything else propagates on the first attempt.
"""

import functools
import logging
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from legalmemo.config import settings

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

RETRIABLE_EXCEPTIONS: tuple[type[BaseException], ...] = (
    ConnectionError,
    TimeoutError,
    httpx.TransportError,
)


def transient_retry(
    attempts: int | None = None,
    min_wait: float | None = None,
    max_wait: float | None = None,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Decorator retrying an async call on transient errors.

    Back-off is exponential between min_wait and max_wait seconds. After the
    last attempt the original exception is re-raised.

    Args:
        attempts: Maximum attempts. Defaults to settings.upload_retry_attempts.
        min_wait: Minimum back-off in seconds
        max_wait: Maximum back-off in seconds
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            retrying = AsyncRetrying(
                stop=stop_after_attempt(attempts or settings.upload_retry_attempts),
                wait=wait_exponential(
                    multiplier=1,
                    min=settings.upload_retry_min_wait if min_wait is None else min_wait,
                    max=settings.upload_retry_max_wait if max_wait is None else max_wait,
                ),
                retry=retry_if_exception_type(RETRIABLE_EXCEPTIONS),
                before_sleep=before_sleep_log(logger, logging.INFO),
                reraise=True,
            )
            return await retrying(func, *args, **kwargs)

        return wrapper

    return decorator
