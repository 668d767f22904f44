from datetime import datetime, timedelta, timezone

import pytest

from wrapper_relayer.app.application.services.retry_policy import BackoffPolicy


@pytest.fixture
def policy() -> BackoffPolicy:
    return BackoffPolicy.from_millis(base_delay_ms=1_000, max_delay_ms=60_000, max_attempts=5)


def test_delay_doubles_until_cap(policy):
    assert [policy.delay_for(n).total_seconds() for n in range(0, 9)] == [
        0, 1, 2, 4, 8, 16, 32, 60, 60,
    ]


def test_huge_attempt_counts_stay_capped(policy):
    assert policy.delay_for(10_000) == timedelta(seconds=60)


def test_next_attempt_at(policy):
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)

    assert policy.next_attempt_at(3, now) == now + timedelta(seconds=4)


def test_exhaustion(policy):
    assert not policy.is_exhausted(4)
    assert policy.is_exhausted(5)
    assert policy.is_exhausted(6)


def test_invalid_policy():
    with pytest.raises(ValueError):
        BackoffPolicy.from_millis(base_delay_ms=1, max_delay_ms=1, max_attempts=0)
    with pytest.raises(ValueError):
        BackoffPolicy(base_delay=timedelta(seconds=-1), max_delay=timedelta(0), max_attempts=1)
