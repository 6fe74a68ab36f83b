"""Unit tests for lambda_deploy.retry."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from lambda_deploy.retry import RetryExhausted, retry


class _Transient(Exception):
    pass


class _Fatal(Exception):
    pass


def _flaky(failures: int, result: str = "done") -> tuple[list[int], Callable[[], str]]:
    calls: list[int] = []

    def _op() -> str:
        calls.append(1)
        if len(calls) <= failures:
            raise _Transient(f"failure {len(calls)}")
        return result

    return calls, _op


def test_returns_first_success_without_sleeping() -> None:
    sleeps: list[float] = []
    calls, op = _flaky(0)
    result = retry(op, max_attempts=3, delay=2, is_retryable=lambda e: True, sleep=sleeps.append)
    assert result == "done"
    assert len(calls) == 1
    assert sleeps == []


def test_retries_until_success() -> None:
    sleeps: list[float] = []
    seen: list[tuple[int, str]] = []
    calls, op = _flaky(2)

    result = retry(
        op,
        max_attempts=5,
        delay=1.5,
        is_retryable=lambda e: isinstance(e, _Transient),
        sleep=sleeps.append,
        on_retry=lambda attempt, exc: seen.append((attempt, str(exc))),
    )

    assert result == "done"
    assert len(calls) == 3
    assert sleeps == [1.5, 1.5]
    assert seen == [(1, "failure 1"), (2, "failure 2")]


def test_exhaustion_raises_with_last_error_and_no_trailing_sleep() -> None:
    sleeps: list[float] = []
    calls, op = _flaky(10)

    with pytest.raises(RetryExhausted) as exc_info:
        retry(op, max_attempts=4, delay=3, is_retryable=lambda e: True, sleep=sleeps.append)

    assert len(calls) == 4
    assert sleeps == [3, 3, 3]
    assert exc_info.value.attempts == 4
    assert isinstance(exc_info.value.last_error, _Transient)
    assert exc_info.value.__cause__ is exc_info.value.last_error


def test_non_retryable_error_propagates_immediately() -> None:
    sleeps: list[float] = []
    calls: list[int] = []

    def _op() -> None:
        calls.append(1)
        raise _Fatal("no")

    with pytest.raises(_Fatal):
        retry(
            _op,
            max_attempts=5,
            delay=1,
            is_retryable=lambda e: isinstance(e, _Transient),
            sleep=sleeps.append,
        )
    assert len(calls) == 1
    assert sleeps == []


def test_on_retry_errors_propagate() -> None:
    calls, op = _flaky(3)

    def _hook(attempt: int, exc: Exception) -> None:
        raise _Fatal("hook failed")

    with pytest.raises(_Fatal, match="hook failed"):
        retry(
            op,
            max_attempts=5,
            delay=0,
            is_retryable=lambda e: True,
            sleep=lambda _: None,
            on_retry=_hook,
        )
    assert len(calls) == 1


def test_single_attempt_never_sleeps() -> None:
    sleeps: list[float] = []
    _, op = _flaky(1)
    with pytest.raises(RetryExhausted):
        retry(op, max_attempts=1, delay=5, is_retryable=lambda e: True, sleep=sleeps.append)
    assert sleeps == []


def test_rejects_non_positive_ceiling() -> None:
    with pytest.raises(ValueError):
        retry(lambda: None, max_attempts=0, delay=1, is_retryable=lambda e: True)
