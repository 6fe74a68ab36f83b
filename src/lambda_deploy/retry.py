"""
lambda_deploy.retry: Bounded retry combinator.

One loop serves both the readiness wait (precondition polling) and the
publish-conflict recovery; callers differ only in parameters.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TypeVar

T = TypeVar("T")


class RetryExhausted(RuntimeError):
    """Raised when every attempt failed with a retryable error.

    Attributes:
        attempts:   Number of attempts made (equals max_attempts).
        last_error: The retryable exception raised by the final attempt.
    """

    def __init__(self, *, attempts: int, last_error: BaseException) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Gave up after {attempts} attempt(s): {last_error}")


def retry(
    operation: Callable[[], T],
    *,
    max_attempts: int,
    delay: float,
    is_retryable: Callable[[Exception], bool],
    sleep: Callable[[float], None] = time.sleep,
    on_retry: Callable[[int, Exception], None] | None = None,
) -> T:
    """Call operation until it returns, raises a non-retryable error, or the ceiling is hit.

    Between attempts: on_retry(attempt, exc) is called, then sleep(delay).
    Never sleeps after the final attempt, so total waiting is bounded by
    (max_attempts - 1) * delay plus whatever the hooks and calls take.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    for attempt in range(1, max_attempts + 1):
        try:
            return operation()
        except Exception as exc:
            if not is_retryable(exc):
                raise
            if attempt == max_attempts:
                raise RetryExhausted(attempts=attempt, last_error=exc) from exc
            if on_retry is not None:
                on_retry(attempt, exc)
            sleep(delay)

    raise AssertionError("unreachable")  # pragma: no cover
