"""Bounded retry with capped exponential backoff.

Wraps plain functions and coroutine functions alike. Only the exception
types listed as retryable are retried; anything else propagates on the
first failure.
"""

import asyncio
import inspect
import time
from collections.abc import Callable
from functools import wraps
from typing import Any

from sitescan.utils.logger import get_logger

logger = get_logger(__name__)


def compute_delay(
    attempt: int,
    base_delay: float,
    max_delay: float,
    exponential_base: float = 2.0,
) -> float:
    """Return the sleep before retry number ``attempt`` (zero-based)."""
    return min(base_delay * (exponential_base**attempt), max_delay)


def retry_with_backoff(
    max_attempts: int = 3,
    base_delay: float = 0.2,
    max_delay: float = 2.0,
    exponential_base: float = 2.0,
    retryable: tuple[type[BaseException], ...] = (Exception,),
) -> Callable:
    """Decorator for retrying transient failures with exponential backoff.

    Args:
        max_attempts: Total number of calls, including the first one.
        base_delay: Initial delay in seconds.
        max_delay: Maximum delay cap in seconds.
        exponential_base: Base for exponential backoff calculation.
        retryable: Exception types that should trigger a retry.

    Returns:
        Decorator producing a wrapper of the same kind (sync or async)
        as the decorated function.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    def _log_retry(func: Callable, exc: BaseException, attempt: int, delay: float) -> None:
        logger.warning(
            "%s failed with %s, retrying in %.2fs (attempt %d/%d)",
            getattr(func, "__qualname__", repr(func)),
            exc,
            delay,
            attempt + 1,
            max_attempts,
        )

    def decorator(func: Callable) -> Callable:
        if inspect.iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                for attempt in range(max_attempts):
                    try:
                        return await func(*args, **kwargs)
                    except retryable as exc:
                        if attempt + 1 >= max_attempts:
                            raise
                        delay = compute_delay(
                            attempt, base_delay, max_delay, exponential_base
                        )
                        _log_retry(func, exc, attempt, delay)
                        await asyncio.sleep(delay)

            return async_wrapper

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(max_attempts):
                try:
                    return func(*args, **kwargs)
                except retryable as exc:
                    if attempt + 1 >= max_attempts:
                        raise
                    delay = compute_delay(attempt, base_delay, max_delay, exponential_base)
                    _log_retry(func, exc, attempt, delay)
                    time.sleep(delay)

        return wrapper

    return decorator
