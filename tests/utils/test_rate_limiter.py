from __future__ import annotations

import pytest

from classstock.utils.rate_limiter import RateLimiter


class _Clock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def test_allows_max_calls_per_window() -> None:
    clock = _Clock()
    limiter = RateLimiter(max_calls=2, period_sec=1.0, monotonic=clock)

    assert limiter.try_acquire() is True
    assert limiter.try_acquire() is True
    assert limiter.try_acquire() is False

    clock.now += 1.0
    assert limiter.try_acquire() is True


def test_wait_times_out_when_window_is_full() -> None:
    clock = _Clock()
    limiter = RateLimiter(max_calls=1, period_sec=60.0, monotonic=clock)
    limiter.try_acquire()

    assert limiter.wait(timeout=0) is False


def test_wait_returns_immediately_with_free_slot() -> None:
    limiter = RateLimiter(max_calls=1, period_sec=60.0)

    assert limiter.wait(timeout=0.01) is True


def test_rejects_zero_capacity() -> None:
    with pytest.raises(ValueError):
        RateLimiter(max_calls=0, period_sec=1.0)
