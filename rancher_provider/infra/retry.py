"""Retry decorator with exponential backoff for transient API failures.

Used by the Rancher client for throttling and gateway errors. The
convergence poller never retries failed reads; a failure that survives this
decorator reaches the caller.

Example:
    from rancher_provider.infra.retry import on_status_code, retry

    @retry(on=on_status_code(429, 503), max_attempts=3)
    def fetch_volume():
        ...
"""

from __future__ import annotations

import functools
import random
import time
from collections.abc import Callable

from loguru import logger

type RetryPredicate = Callable[[Exception], bool]


def retry[**P, T](
    on: type[Exception] | tuple[type[Exception], ...] | RetryPredicate = Exception,
    max_attempts: int = 5,
    base_delay: float = 1.0,
    exponential_base: float = 2.0,
    max_delay: float = 60.0,
    jitter: bool = True,
    sleep: Callable[[float], None] = time.sleep,
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Decorator that retries functions with exponential backoff.

    Args:
        on: When to retry. An exception class, a tuple of them, or a
            predicate receiving the raised exception.
        max_attempts: Maximum number of attempts (including the first one).
        base_delay: Initial delay in seconds before first retry.
        exponential_base: Multiplier for exponential backoff.
            Delay formula: min(base_delay * (exponential_base ** attempt), max_delay)
        max_delay: Maximum delay cap in seconds.
        jitter: Whether to add random jitter (up to 10%) to the delay.
        sleep: Sleep function called between attempts.
    """
    if isinstance(on, type) and issubclass(on, Exception):
        should_retry: RetryPredicate = lambda e: isinstance(e, on)
    elif isinstance(on, tuple):
        should_retry = lambda e: isinstance(e, on)
    else:
        should_retry = on

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        @functools.wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            for attempt in range(max_attempts):
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    if not should_retry(e) or attempt == max_attempts - 1:
                        raise

                    delay = min(base_delay * (exponential_base**attempt), max_delay)
                    if jitter:
                        delay += random.uniform(0, delay * 0.1)

                    logger.warning(
                        f"Retry {attempt + 1}/{max_attempts} after {type(e).__name__}: "
                        f"{e}. Waiting {delay:.1f}s..."
                    )
                    sleep(delay)

            raise AssertionError("unreachable")

        return wrapper

    return decorator


def on_status_code(*codes: int) -> RetryPredicate:
    """Predicate that retries exceptions exposing a ``status`` in ``codes``."""

    def predicate(e: Exception) -> bool:
        return getattr(e, "status", None) in codes

    return predicate


__all__ = ["on_status_code", "retry"]
