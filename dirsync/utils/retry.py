"""Exponential backoff for directory searches that fail in transport."""

import time
from functools import wraps
from typing import Callable, Tuple, Type

import structlog

from dirsync.exceptions import TransportError

log = structlog.stdlib.get_logger()


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Delay before retry number ``attempt`` (zero-based), capped at ``max_delay``."""
    return min(base_delay * (2**attempt), max_delay)


def exponential_backoff_retry(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exceptions: Tuple[Type[Exception], ...] = (TransportError,),
    sleep: Callable[[float], None] = time.sleep,
) -> Callable:
    """
    Decorator that re-runs a function after a retryable failure.

    The wrapped function is called at most ``max_retries + 1`` times. Errors
    outside ``exceptions`` propagate immediately. The last retryable error is
    re-raised once the retries are used up.

    Args:
        max_retries: Maximum number of retry attempts
        base_delay: Delay before the first retry, doubled for each further one
        max_delay: Upper bound for any single delay
        exceptions: Exception types that trigger a retry
        sleep: Function used to wait between attempts

    Returns:
        Decorated function with retry logic
    """

    def decorator(func: Callable) -> Callable:
        name = getattr(func, "__name__", repr(func))

        @wraps(func)
        def wrapper(*args, **kwargs):
            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    # Search failures carry the filter that was sent
                    filter_text = getattr(e, "filter_text", None)
                    if attempt >= max_retries:
                        log.error(
                            "max_retries_reached",
                            function=name,
                            max_retries=max_retries,
                            filter=filter_text,
                            error=str(e),
                        )
                        raise

                    delay = backoff_delay(attempt, base_delay, max_delay)
                    attempt += 1
                    log.warning(
                        "retrying_after_error",
                        function=name,
                        attempt=attempt,
                        max_retries=max_retries,
                        delay_seconds=delay,
                        filter=filter_text,
                        error=str(e),
                    )
                    sleep(delay)

        return wrapper

    return decorator
