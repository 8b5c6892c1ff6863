import asyncio

import pytest

from identity_service.core.rate_limit import FixedWindowRateLimiter


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def test_allows_up_to_max_then_blocks():
    clock = FakeClock()
    limiter = FixedWindowRateLimiter("otp", max_requests=3, window_seconds=900, clock=clock)

    assert [limiter.check("otp:a@b.com").allowed for _ in range(3)] == [True, True, True]

    decision = limiter.check("otp:a@b.com")
    assert decision.allowed is False
    assert decision.retry_after_seconds == 900


def test_retry_after_counts_down_within_window():
    clock = FakeClock()
    limiter = FixedWindowRateLimiter("otp", max_requests=1, window_seconds=900, clock=clock)
    limiter.check("k")

    clock.advance(299.5)
    decision = limiter.check("k")

    assert decision.allowed is False
    assert decision.retry_after_seconds == 601


def test_window_resets_after_elapsed():
    clock = FakeClock()
    limiter = FixedWindowRateLimiter("otp", max_requests=2, window_seconds=60, clock=clock)
    limiter.check("k")
    limiter.check("k")
    assert limiter.check("k").allowed is False

    clock.advance(60.001)

    assert limiter.check("k").allowed is True
    assert limiter.check("k").allowed is True
    assert limiter.check("k").allowed is False


def test_keys_are_counted_independently():
    limiter = FixedWindowRateLimiter("otp", max_requests=1, window_seconds=60, clock=FakeClock())

    assert limiter.check("otp:a@b.com").allowed is True
    assert limiter.check("otp:c@d.com").allowed is True
    assert limiter.check("otp:a@b.com").allowed is False


def test_separate_limiters_do_not_share_counters():
    clock = FakeClock()
    otp = FixedWindowRateLimiter("otp", max_requests=1, window_seconds=60, clock=clock)
    general = FixedWindowRateLimiter("general", max_requests=100, window_seconds=60, clock=clock)

    otp.check("127.0.0.1")
    assert otp.check("127.0.0.1").allowed is False
    assert general.check("127.0.0.1").allowed is True


def test_sweep_drops_only_elapsed_windows():
    clock = FakeClock()
    limiter = FixedWindowRateLimiter("general", max_requests=5, window_seconds=60, clock=clock)
    limiter.check("old")
    clock.advance(30)
    limiter.check("new")

    clock.advance(31)
    removed = limiter.sweep()

    assert removed == 1
    assert len(limiter) == 1


@pytest.mark.asyncio
async def test_background_sweeper_purges_and_stops():
    clock = FakeClock()
    limiter = FixedWindowRateLimiter("general", max_requests=5, window_seconds=1, clock=clock)
    limiter.check("k")
    clock.advance(2)

    limiter.start_sweeper(interval_seconds=0.01)
    await asyncio.sleep(0.05)
    await limiter.stop_sweeper()

    assert len(limiter) == 0
