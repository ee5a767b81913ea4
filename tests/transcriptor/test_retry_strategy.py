"""Unit tests for the Retry-After aware wait strategy and budget."""

from __future__ import annotations

from unittest.mock import Mock

import pytest

from Transcriptor.config.models import RetrySettings
from Transcriptor.errors import ErrorKind, FetchError
from Transcriptor.net.retry import (
    RetryBudget,
    WaitRetryAfter,
    apply_jitter,
    compute_backoff,
    is_retryable_error,
    parse_retry_after,
)


def _midpoint(low: float, high: float) -> float:
    return (low + high) / 2


def _state(attempt: int, error: Exception | None) -> Mock:
    outcome = Mock()
    outcome.failed = error is not None
    outcome.exception.return_value = error
    return Mock(attempt_number=attempt, outcome=outcome)


@pytest.mark.parametrize(
    "value, expected",
    [("5", 5.0), ("0", 0.0), (" 2.5 ", 2.5), ("-1", None), ("abc", None), (None, None), ("nan", None)],
)
def test_parse_retry_after(value, expected):
    assert parse_retry_after(value) == expected


def test_backoff_grows_exponentially_and_caps():
    settings = RetrySettings()
    delays = [compute_backoff(n, settings, _midpoint) for n in range(1, 6)]
    assert delays == [1.0, 2.0, 4.0, 8.0, 8.0]


def test_jitter_stays_within_quarter_and_floors_at_one_millisecond():
    assert apply_jitter(4.0, 0.25, lambda low, high: low) == 3.0
    assert apply_jitter(4.0, 0.25, lambda low, high: high) == 5.0
    assert apply_jitter(0.0, 0.25, _midpoint) == 0.001


def test_wait_prefers_retry_after_hint():
    wait = WaitRetryAfter(RetrySettings(), _midpoint)
    error = FetchError("slow", kind=ErrorKind.RATE_LIMITED, retry_after="1000")
    assert wait(_state(1, error)) == 60.0


def test_zero_hint_uses_minimum_delay():
    wait = WaitRetryAfter(RetrySettings(), _midpoint)
    error = FetchError("slow", kind=ErrorKind.RATE_LIMITED, retry_after="0")
    assert wait(_state(1, error)) == 0.1


def test_wait_without_hint_uses_backoff():
    wait = WaitRetryAfter(RetrySettings(), _midpoint)
    error = FetchError("slow", kind=ErrorKind.RATE_LIMITED)
    assert wait(_state(2, error)) == 2.0


def test_only_rate_limited_errors_are_retryable():
    assert is_retryable_error(FetchError("x", kind=ErrorKind.RATE_LIMITED))
    assert not is_retryable_error(FetchError("x", kind=ErrorKind.SERVER_ERROR))
    assert not is_retryable_error(ValueError("x"))


def test_budget_uses_injected_clock():
    now = [100.0]
    budget = RetryBudget(60.0, clock=lambda: now[0])
    assert budget.elapsed() == 0.0
    budget.start()
    now[0] = 130.0
    assert not budget.exhausted()
    now[0] = 160.5
    assert budget.exhausted()
