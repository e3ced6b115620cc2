from __future__ import annotations

import time
import random
from collections.abc import Callable


class RetryError(Exception):
    """Raised when the maximum number of retries is exhausted."""
    pass


class RetryState:
    """State for a single retry attempt."""
    def __init__(self, attempt: int, max_attempts: int):
        self.attempt = attempt
        self.max_attempts = max_attempts

    @property
    def is_last_attempt(self) -> bool:
        return self.attempt >= self.max_attempts - 1

    def next(self) -> RetryState:
        """Return the next retry state."""
        return RetryState(self.attempt + 1, self.max_attempts)


def calculate_backoff_delay(
    attempt: int,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
) -> float:
    """
    Calculate exponential backoff delay with optional jitter.

    Args:
        attempt: Current attempt number (0-based).
        base_delay: Initial delay in seconds.
        max_delay: Maximum delay in seconds.
        exponential_base: Base for exponential backoff.
        jitter: Whether to add random jitter to avoid thundering herd.

    Returns:
        Delay in seconds.
    """
    delay = base_delay * (exponential_base ** attempt)
    delay = min(delay, max_delay)
    if jitter:
        delay *= (0.5 + random.random() * 0.5)  # 50% to 100% of full delay
    return delay


def retry(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    retryable_exceptions: set[type[BaseException]] | None = None,
    on_retry: Callable[[RetryState, Exception, float], None] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Callable:
    """
    Decorator to add retry-with-backoff to a function.

    Args:
        max_attempts: Maximum number of attempts (including initial attempt).
        base_delay: Initial delay in seconds.
        max_delay: Maximum delay in seconds.
        exponential_base: Base for exponential backoff.
        jitter: Whether to add random jitter.
        retryable_exceptions: Exception types that should trigger retries.
            Defaults to connection, timeout and OS errors.
        on_retry: Callback called before each retry (state, exception, delay).
        sleep: Waits between attempts; may raise to abort the sequence.

    Returns:
        Decorated function that retries on failure.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    if retryable_exceptions is None:
        retryable_exceptions = {ConnectionError, TimeoutError, OSError}

    def decorator(func):
        def wrapper(*args, **kwargs):
            state = RetryState(attempt=0, max_attempts=max_attempts)

            while True:
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    if not any(isinstance(e, exc_type) for exc_type in retryable_exceptions):
                        raise  # non-retryable exception

                    if state.is_last_attempt:
                        raise RetryError(f"Max retries ({max_attempts}) exhausted") from e

                    delay = calculate_backoff_delay(
                        state.attempt,
                        base_delay=base_delay,
                        max_delay=max_delay,
                        exponential_base=exponential_base,
                        jitter=jitter,
                    )

                    if on_retry:
                        on_retry(state, e, delay)

                    sleep(delay)
                    state = state.next()

        return wrapper
    return decorator
