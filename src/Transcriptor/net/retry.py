# === NAVMAP v1 ===
# {
#   "module": "Transcriptor.net.retry",
#   "purpose": "Tenacity retry strategy for rate-limited transcript calls",
#   "sections": [
#     {
#       "id": "parse-retry-after",
#       "name": "parse_retry_after",
#       "anchor": "function-parse-retry-after",
#       "kind": "function"
#     },
#     {
#       "id": "retrybudget",
#       "name": "RetryBudget",
#       "anchor": "class-retrybudget",
#       "kind": "class"
#     },
#     {
#       "id": "waitretryafter",
#       "name": "WaitRetryAfter",
#       "anchor": "class-waitretryafter",
#       "kind": "class"
#     },
#     {
#       "id": "build-retrying",
#       "name": "build_retrying",
#       "anchor": "function-build-retrying",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Retry strategy for the transcript service.

Only ``rate-limited`` failures are retried. The delay before the next attempt
is taken from the service's ``Retry-After`` hint when one is usable (capped at
``retry_after_cap_s``), otherwise it is computed as
``min(max_delay, initial_delay * multiplier ** (attempt - 1))`` with relative
jitter and a 1 ms floor.

A :class:`RetryBudget` caps the total wall time spent on one identifier. The
budget is checked after every failed attempt, before sleeping; once it is
spent no further attempt is made.

Sleeping goes through an injectable coroutine and the budget reads an
injectable monotonic clock, so tests run instantly and deterministically.
"""

from __future__ import annotations

import asyncio
import logging
import math
import random
import time
from typing import Awaitable, Callable, Optional

import tenacity
from tenacity import RetryCallState

from ..config.models import RetrySettings
from ..errors import FetchError

__all__ = [
    "MIN_DELAY_S",
    "parse_retry_after",
    "compute_backoff",
    "apply_jitter",
    "RetryBudget",
    "WaitRetryAfter",
    "StopOnBudget",
    "is_retryable_error",
    "build_retrying",
]

LOGGER = logging.getLogger(__name__)

MIN_DELAY_S = 0.001

SleepFn = Callable[[float], Awaitable[None]]
UniformFn = Callable[[float, float], float]


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a ``Retry-After`` value given in seconds.

    Returns ``None`` for missing, negative, or non-numeric values so callers
    fall back to computed backoff.
    """
    if value is None:
        return None
    try:
        seconds = float(str(value).strip())
    except ValueError:
        return None
    if math.isnan(seconds) or math.isinf(seconds) or seconds < 0:
        return None
    return seconds


def apply_jitter(delay_s: float, jitter: float, uniform: UniformFn = random.uniform) -> float:
    """Spread ``delay_s`` by +/- ``jitter`` and floor the result at 1 ms."""
    spread = delay_s * jitter
    jittered = uniform(delay_s - spread, delay_s + spread)
    return max(MIN_DELAY_S, round(jittered, 3))


def compute_backoff(
    attempt_number: int,
    settings: RetrySettings,
    uniform: UniformFn = random.uniform,
) -> float:
    """Exponential backoff with jitter for the delay after ``attempt_number``."""
    base = settings.initial_delay_s * (settings.multiplier ** (attempt_number - 1))
    return apply_jitter(min(settings.max_delay_s, base), settings.jitter, uniform)


class RetryBudget:
    """Wall-time allowance for retrying a single identifier."""

    def __init__(self, budget_s: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.budget_s = budget_s
        self._clock = clock
        self._started: Optional[float] = None

    def start(self) -> None:
        self._started = self._clock()

    def elapsed(self) -> float:
        if self._started is None:
            return 0.0
        return self._clock() - self._started

    def exhausted(self) -> bool:
        return self.elapsed() > self.budget_s


class WaitRetryAfter(tenacity.wait.wait_base):
    """Wait strategy that prefers the Retry-After hint over exponential backoff."""

    def __init__(self, settings: RetrySettings, uniform: UniformFn = random.uniform) -> None:
        self.settings = settings
        self.uniform = uniform

    def __call__(self, retry_state: RetryCallState) -> float:
        outcome = retry_state.outcome
        error = outcome.exception() if outcome is not None and outcome.failed else None
        hint = parse_retry_after(getattr(error, "retry_after", None))

        if hint is not None:
            if hint == 0:
                return apply_jitter(self.settings.min_delay_s, self.settings.jitter, self.uniform)
            wait_s = min(hint, self.settings.retry_after_cap_s)
            LOGGER.debug(f"Using Retry-After hint: {wait_s}s (capped at {self.settings.retry_after_cap_s}s)")
            return wait_s

        return compute_backoff(retry_state.attempt_number, self.settings, self.uniform)


class StopOnBudget(tenacity.stop.stop_base):
    """Stop retrying once the identifier's retry budget is spent."""

    def __init__(self, budget: RetryBudget) -> None:
        self.budget = budget

    def __call__(self, retry_state: RetryCallState) -> bool:
        if self.budget.exhausted():
            LOGGER.warning(
                f"Retry budget of {self.budget.budget_s}s exhausted "
                f"after {retry_state.attempt_number} attempt(s)"
            )
            return True
        return False


def is_retryable_error(exc: BaseException) -> bool:
    return isinstance(exc, FetchError) and exc.kind.retryable


def _make_before_sleep(max_attempts: int) -> Callable[[RetryCallState], None]:
    def _log_before_sleep(retry_state: RetryCallState) -> None:
        sleep_s = retry_state.next_action.sleep if retry_state.next_action else 0.0
        LOGGER.warning(
            f"Rate limited. Retry {retry_state.attempt_number}/{max_attempts - 1} after {sleep_s:.2f}s"
        )

    return _log_before_sleep


def build_retrying(
    settings: RetrySettings,
    budget: RetryBudget,
    *,
    sleep: SleepFn = asyncio.sleep,
    uniform: UniformFn = random.uniform,
) -> tenacity.AsyncRetrying:
    """Build the tenacity controller for one transcript fetch."""
    return tenacity.AsyncRetrying(
        stop=tenacity.stop_any(
            tenacity.stop_after_attempt(settings.max_attempts),
            StopOnBudget(budget),
        ),
        wait=WaitRetryAfter(settings, uniform),
        retry=tenacity.retry_if_exception(is_retryable_error),
        sleep=sleep,
        before_sleep=_make_before_sleep(settings.max_attempts),
        reraise=True,
    )
