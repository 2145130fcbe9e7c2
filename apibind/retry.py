"""
Retry policies.

A retryer is created fresh for every logical call and only ever sees
`TransportError`s (including errors explicitly marked `RetryableError`).
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol, TypeAlias

from .exceptions import RetryableError, TransportError


@dataclass(slots=True)
class RetryContext:
    """Per-call retry state. `attempt` counts dispatches made so far and only increases."""

    attempt: int = 0
    started_at: float = field(default_factory=time.monotonic)

    def record_attempt(self) -> int:
        self.attempt += 1
        return self.attempt

    def elapsed(self, now: float | None = None) -> float:
        return (time.monotonic() if now is None else now) - self.started_at


class Retryer(Protocol):
    def should_retry(self, error: TransportError, context: RetryContext) -> float | None:
        """Return the delay (seconds) before the next attempt, or None to give up."""
        ...


RetryerFactory: TypeAlias = Callable[[], Retryer]


class NeverRetry:
    """Gives up on the first failure."""

    def should_retry(self, error: TransportError, context: RetryContext) -> float | None:
        return None


class ExponentialBackoffRetryer:
    """
    Bounded exponential backoff.

    The delay before attempt `n + 1` is `period * 1.5 ** (n - 1)` capped at
    `max_period`; a `RetryableError.retry_after` hint replaces the computed
    delay (still capped). The retryer gives up once `max_attempts` dispatches
    have been made, or when waiting would exceed `max_elapsed` seconds since
    the first attempt; `max_elapsed=None` removes that ceiling.
    """

    def __init__(
        self,
        *,
        period: float = 0.1,
        max_period: float = 1.0,
        max_attempts: int = 5,
        max_elapsed: float | None = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if period < 0 or max_period < period:
            raise ValueError("Require 0 <= period <= max_period")
        self.period = period
        self.max_period = max_period
        self.max_attempts = max_attempts
        self.max_elapsed = max_elapsed
        self._clock = clock

    def next_delay(self, attempt: int, error: TransportError) -> float:
        if isinstance(error, RetryableError) and error.retry_after is not None:
            return min(error.retry_after, self.max_period)
        return min(self.period * (1.5 ** (attempt - 1)), self.max_period)

    def should_retry(self, error: TransportError, context: RetryContext) -> float | None:
        if context.attempt >= self.max_attempts:
            return None
        delay = self.next_delay(context.attempt, error)
        if self.max_elapsed is not None:
            if context.elapsed(self._clock()) + delay > self.max_elapsed:
                return None
        return delay

    @classmethod
    def factory(cls, **kwargs: float | int | None) -> RetryerFactory:
        """A zero-argument factory producing identically configured retryers."""

        def create() -> Retryer:
            return cls(**kwargs)  # type: ignore[arg-type]

        return create


__all__ = [
    "ExponentialBackoffRetryer",
    "NeverRetry",
    "RetryContext",
    "Retryer",
    "RetryerFactory",
]
