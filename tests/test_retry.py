from __future__ import annotations

import pytest

from apibind import (
    ExponentialBackoffRetryer,
    NeverRetry,
    RetryableError,
    RetryContext,
    TransportError,
)


def _context(attempt: int, started_at: float = 0.0) -> RetryContext:
    return RetryContext(attempt=attempt, started_at=started_at)


def test_never_retry_gives_up_immediately() -> None:
    assert NeverRetry().should_retry(TransportError("boom"), _context(1)) is None


def test_backoff_grows_and_is_capped() -> None:
    retryer = ExponentialBackoffRetryer(period=0.1, max_period=0.3, max_attempts=10)
    error = TransportError("boom")
    delays = [retryer.should_retry(error, _context(attempt)) for attempt in range(1, 5)]
    assert delays == pytest.approx([0.1, 0.15, 0.225, 0.3])


def test_gives_up_after_max_attempts() -> None:
    retryer = ExponentialBackoffRetryer(max_attempts=3)
    error = TransportError("boom")
    assert retryer.should_retry(error, _context(2)) is not None
    assert retryer.should_retry(error, _context(3)) is None
    assert retryer.should_retry(error, _context(4)) is None


def test_retry_after_hint_replaces_backoff() -> None:
    retryer = ExponentialBackoffRetryer(period=0.1, max_period=2.0)
    assert retryer.should_retry(RetryableError("busy", retry_after=1.5), _context(1)) == 1.5
    assert retryer.should_retry(RetryableError("busy", retry_after=9.0), _context(1)) == 2.0
    assert retryer.should_retry(RetryableError("busy"), _context(1)) == pytest.approx(0.1)


def test_max_elapsed_bounds_total_wait() -> None:
    now = [0.0]
    retryer = ExponentialBackoffRetryer(
        period=1.0, max_period=1.0, max_attempts=100, max_elapsed=5.0, clock=lambda: now[0]
    )
    error = TransportError("boom")
    assert retryer.should_retry(error, _context(1, started_at=0.0)) == 1.0
    now[0] = 4.5
    assert retryer.should_retry(error, _context(5, started_at=0.0)) is None


def test_default_retryer_gives_up_on_elapsed_time() -> None:
    now = [0.0]
    retryer = ExponentialBackoffRetryer(clock=lambda: now[0])
    error = TransportError("boom")
    assert retryer.max_elapsed == 30.0
    assert retryer.should_retry(error, _context(1)) == pytest.approx(0.1)

    now[0] = 29.95
    assert retryer.should_retry(error, _context(2)) is None


def test_elapsed_ceiling_can_be_disabled() -> None:
    now = [3600.0]
    retryer = ExponentialBackoffRetryer(max_elapsed=None, clock=lambda: now[0])
    assert retryer.should_retry(TransportError("boom"), _context(2)) == pytest.approx(0.15)


def test_invalid_configuration_is_rejected() -> None:
    with pytest.raises(ValueError, match="max_attempts"):
        ExponentialBackoffRetryer(max_attempts=0)
    with pytest.raises(ValueError, match="period"):
        ExponentialBackoffRetryer(period=2.0, max_period=1.0)


def test_factory_creates_fresh_retryers() -> None:
    factory = ExponentialBackoffRetryer.factory(max_attempts=2)
    first, second = factory(), factory()
    assert first is not second
    assert isinstance(first, ExponentialBackoffRetryer)
    assert first.max_attempts == 2


def test_retry_context_counts_attempts() -> None:
    context = RetryContext(started_at=10.0)
    assert context.record_attempt() == 1
    assert context.record_attempt() == 2
    assert context.attempt == 2
    assert context.elapsed(now=12.5) == 2.5
