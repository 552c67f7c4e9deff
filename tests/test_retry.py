"""
Tests for the shared retry policy.
"""
import asyncio

import pytest

from seo_sync.utils.retry import (
    RateLimitHit,
    RetryPolicy,
    RetryStats,
    TransientFailure,
    calculate_backoff,
)


class Flaky:
    def __init__(self, failures):
        self.failures = list(failures)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return "page"


def _policy(max_attempts=3):
    delays = []

    async def record(delay):
        delays.append(delay)

    return RetryPolicy(max_attempts=max_attempts, base_delay=1.0, max_delay=30.0, jitter=0.0, sleep=record), delays


def test_retries_then_succeeds():
    policy, delays = _policy()
    operation = Flaky([RateLimitHit("429"), TransientFailure("503")])
    stats = RetryStats()

    result = asyncio.run(policy.run(operation, "gsc page", stats))

    assert result == "page"
    assert operation.calls == 3
    assert delays == [1.0, 2.0]
    assert stats.success
    assert stats.attempts == 3
    assert stats.total_delay_seconds == 3.0


def test_gives_up_after_max_attempts():
    policy, delays = _policy(max_attempts=2)
    operation = Flaky([RateLimitHit("429")] * 5)
    stats = RetryStats()

    with pytest.raises(RateLimitHit):
        asyncio.run(policy.run(operation, "gsc page", stats))

    assert operation.calls == 2
    assert delays == [1.0]
    assert not stats.success
    assert stats.last_error == "RateLimitHit: 429"


def test_non_retryable_error_propagates_immediately():
    policy, delays = _policy()
    operation = Flaky([PermissionError("denied")])

    with pytest.raises(PermissionError):
        asyncio.run(policy.run(operation))

    assert operation.calls == 1
    assert delays == []


def test_backoff_is_exponential_and_capped():
    assert [calculate_backoff(n, base_delay=1.0, max_delay=5.0, jitter=0) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 5.0]


def test_jitter_only_adds_delay():
    for _ in range(20):
        delay = calculate_backoff(2, base_delay=1.0, max_delay=30.0, jitter=0.5)
        assert 2.0 <= delay <= 3.0
