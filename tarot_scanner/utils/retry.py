"""
Retry utilities with exponential backoff.

Used for HTTP artifact fetches, where a flaky connection or a 5xx from the
static host should not knock the recognizer straight into local fallback.
"""

import asyncio
import functools
import random
import time
from typing import Any, Callable, Optional, Type, Union


def _backoff_delay(attempt: int, base_delay: float, max_delay: float,
                   exponential_base: float, jitter: bool) -> float:
    delay = min(base_delay * (exponential_base ** (attempt - 1)), max_delay)
    if jitter:
        delay *= (0.5 + random.random() * 0.5)
    return delay


def retry(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    exceptions: Union[Type[Exception], tuple] = Exception,
    should_retry: Optional[Callable[[Exception], bool]] = None,
    logger: Optional[Any] = None
):
    """
    Retry decorator with exponential backoff.

    Args:
        max_attempts: Maximum number of attempts
        base_delay: Initial delay between retries in seconds
        max_delay: Maximum delay between retries in seconds
        exponential_base: Base for exponential backoff calculation
        jitter: Whether to add random jitter to delays
        exceptions: Exception types to retry on
        should_retry: Optional predicate; errors it rejects are raised at once
        logger: structlog logger for retry logging

    Returns:
        Decorated function with retry logic
    """
    def _give_up(e: Exception, attempt: int) -> bool:
        if attempt == max_attempts:
            return True
        return should_retry is not None and not should_retry(e)

    def _log_retry(func: Callable, attempt: int, delay: float, e: Exception):
        if logger:
            logger.warning(
                f"Function {func.__name__} failed (attempt {attempt}/{max_attempts}), "
                f"retrying in {delay:.2f}s",
                function=func.__name__,
                attempt=attempt,
                max_attempts=max_attempts,
                delay=delay,
                exception=str(e),
            )

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if _give_up(e, attempt):
                        raise
                    delay = _backoff_delay(attempt, base_delay, max_delay, exponential_base, jitter)
                    _log_retry(func, attempt, delay, e)
                    time.sleep(delay)

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    if _give_up(e, attempt):
                        raise
                    delay = _backoff_delay(attempt, base_delay, max_delay, exponential_base, jitter)
                    _log_retry(func, attempt, delay, e)
                    await asyncio.sleep(delay)

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return wrapper

    return decorator


def is_retryable_error(error: Exception) -> bool:
    """
    Determine if an error is retryable.

    Missing artifacts (404) are never retryable; connection failures,
    timeouts and 5xx responses are.
    """
    status = getattr(error, "status", None)
    if status is not None:
        return status >= 500 or status == 429

    if isinstance(error, (ConnectionError, TimeoutError, asyncio.TimeoutError)):
        return True

    error_str = str(error).lower()
    retryable_keywords = [
        'timeout', 'connection refused', 'network unreachable',
        'temporary failure', 'service unavailable', 'server error',
    ]
    return any(keyword in error_str for keyword in retryable_keywords)
