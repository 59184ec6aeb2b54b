"""Retry utilities for the Zotero → Readwise sync.

This module provides a bounded retry policy with exponential backoff for
handling transient failures in network requests, plus a decorator built on it.
The policy is shared by the highlight sender, where rate-limit responses
override the backoff delay with the server-requested wait.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from functools import wraps
import logging
import time
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _always_retry(exception: Exception) -> bool:
    return True


@dataclass
class RetryPolicy:
    """Bounded retry policy with exponential backoff.

    The delay between attempts follows the formula:
    delay = min(initial_delay * (backoff_multiplier ** (attempt - 1)), max_delay)

    so with the defaults the waits are 1s, 2s, 4s, 8s. ``delay_override`` may
    return a delay for a specific exception (for example a Retry-After value),
    which replaces the backoff delay for that attempt. No delay follows the
    final attempt.

    Attributes:
        max_attempts: Maximum number of attempts, including the first.
        initial_delay: Delay in seconds after the first failed attempt.
        backoff_multiplier: Factor applied to the delay on each further attempt.
        max_delay: Upper bound for backoff delays.
        is_retryable: Predicate deciding whether an exception may be retried.
            Non-retryable exceptions propagate immediately.
        delay_override: Optional hook returning a delay for an exception, or
            None to use the backoff delay.
        sleep: Function used to wait; injectable for tests.
    """

    max_attempts: int = 5
    initial_delay: float = 1.0
    backoff_multiplier: float = 2.0
    max_delay: float = 60.0
    is_retryable: Callable[[Exception], bool] = _always_retry
    delay_override: Callable[[Exception], float | None] | None = None
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def __post_init__(self) -> None:
        # Validate parameters at creation time to fail fast on invalid configs
        if self.max_attempts < 1:
            raise ValueError(
                f"max_attempts must be at least 1, got {self.max_attempts}"
            )
        if self.initial_delay <= 0:
            raise ValueError(
                f"initial_delay must be greater than 0, got {self.initial_delay}"
            )
        if self.backoff_multiplier <= 0:
            raise ValueError(
                "backoff_multiplier must be greater than 0, "
                f"got {self.backoff_multiplier}"
            )
        if self.max_delay < self.initial_delay:
            raise ValueError(
                f"max_delay ({self.max_delay}) must be greater than or equal to "
                f"initial_delay ({self.initial_delay})"
            )

    def backoff_delay(self, attempt: int) -> float:
        """Return the backoff delay after the given failed attempt (1-indexed)."""
        return min(
            self.initial_delay * (self.backoff_multiplier ** (attempt - 1)),
            self.max_delay,
        )

    def delay_for(self, attempt: int, exception: Exception) -> float:
        """Return the wait before the next attempt after ``exception``."""
        if self.delay_override is not None:
            override = self.delay_override(exception)
            if override is not None:
                return max(override, 0.0)
        return self.backoff_delay(attempt)

    def call(
        self,
        func: Callable[..., T],
        *args: Any,
        on_retry: Callable[[int, float, Exception], None] | None = None,
        **kwargs: Any,
    ) -> T:
        """Call ``func`` until it succeeds or the attempt budget is spent.

        Args:
            func: Callable to invoke.
            *args: Positional arguments for ``func``.
            on_retry: Optional callback invoked before each wait with the
                attempt number (1-indexed), the delay in seconds, and the
                exception that triggered the retry. If the callback raises,
                the exception propagates and stops the retry loop.
            **kwargs: Keyword arguments for ``func``.

        Returns:
            The return value of the first successful call.

        Raises:
            The last exception raised by ``func`` once all attempts fail, or
            the first exception rejected by ``is_retryable``.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                if not self.is_retryable(e) or attempt == self.max_attempts:
                    raise

                delay = self.delay_for(attempt, e)
                if on_retry is not None:
                    on_retry(attempt, delay, e)
                self.sleep(delay)

        # Unreachable: the loop either returns or raises
        raise RuntimeError("retry loop exited without a result")


def retry_with_backoff(
    max_attempts: int,
    initial_delay: float,
    backoff_multiplier: float,
    max_delay: float,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    on_retry: Callable[[int, float, Exception], None] | None = None,
) -> Callable:
    """Decorator that retries a function with exponential backoff on failure.

    Only exceptions of the given types (or their subclasses) trigger retries;
    anything else propagates immediately.

    Args:
        max_attempts: Maximum number of attempts (including the first attempt).
        initial_delay: Initial delay in seconds before the first retry.
        backoff_multiplier: Multiplier for exponential backoff.
        max_delay: Maximum delay cap in seconds.
        exceptions: Tuple of exception types to catch and retry on.
        on_retry: Optional callback called before each retry attempt with the
            attempt number, delay in seconds, and the triggering exception.

    Returns:
        Decorator function that wraps the target function with retry logic.

    Example:
        >>> @retry_with_backoff(
        ...     max_attempts=3,
        ...     initial_delay=0.5,
        ...     backoff_multiplier=2.0,
        ...     max_delay=4.0,
        ...     exceptions=(OSError,),
        ... )
        ... def write_state(path, content):
        ...     path.write_text(content)
    """
    policy = RetryPolicy(
        max_attempts=max_attempts,
        initial_delay=initial_delay,
        backoff_multiplier=backoff_multiplier,
        max_delay=max_delay,
        is_retryable=lambda e: isinstance(e, exceptions),
    )

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            return policy.call(func, *args, on_retry=on_retry, **kwargs)

        return wrapper

    return decorator
