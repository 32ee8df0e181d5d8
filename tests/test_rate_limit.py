"""Tests for the sliding-window issuance limiter."""

import pytest

from csrf_guard.rate_limit import SlidingWindowRateLimiter


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def test_allows_up_to_limit_then_reports_retry_after():
    clock = FakeClock()
    limiter = SlidingWindowRateLimiter(3, 60, clock=clock)

    assert [limiter.hit("10.0.0.1") for _ in range(3)] == [None, None, None]

    clock.now += 15
    assert limiter.hit("10.0.0.1") == pytest.approx(45)


def test_clients_are_limited_independently():
    limiter = SlidingWindowRateLimiter(1, 60, clock=FakeClock())

    assert limiter.hit("a") is None
    assert limiter.hit("b") is None
    assert limiter.hit("a") is not None


def test_window_slides():
    clock = FakeClock()
    limiter = SlidingWindowRateLimiter(2, 10, clock=clock)

    limiter.hit("a")
    clock.now += 5
    limiter.hit("a")
    assert limiter.hit("a") is not None

    clock.now += 5
    # The first hit has aged out; rejected hits were never recorded.
    assert limiter.hit("a") is None
    assert limiter.hit("a") is not None


def test_reset():
    limiter = SlidingWindowRateLimiter(1, 60, clock=FakeClock())
    limiter.hit("a")

    limiter.reset("a")

    assert limiter.hit("a") is None


@pytest.mark.parametrize("kwargs", [{"max_requests": 0}, {"window_seconds": 0}])
def test_rejects_invalid_limits(kwargs):
    with pytest.raises(ValueError):
        SlidingWindowRateLimiter(**kwargs)


def test_idle_clients_are_pruned_periodically():
    clock = FakeClock()
    limiter = SlidingWindowRateLimiter(5, 60, prune_every=3, clock=clock)

    limiter.hit("idle")
    clock.now += 61
    limiter.hit("busy")

    # Not yet time for a sweep.
    assert "idle" in limiter._hits

    limiter.hit("busy")

    assert "idle" not in limiter._hits
    assert "busy" in limiter._hits
