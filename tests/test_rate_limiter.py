"""Tests for the sliding-window rate limiter."""

from scam_analyzer.core import RateLimiter


class FakeClock:
    """Manually advanced clock."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_window_limit() -> None:
    """Test requests beyond the limit are refused until the window slides."""
    clock = FakeClock()
    limiter = RateLimiter(max_requests=3, window=60.0, clock=clock)

    for _ in range(3):
        assert limiter.try_acquire()
        clock.now += 10

    assert limiter.remaining() == 0
    assert limiter.try_acquire() is False
    assert limiter.time_until_allowed() == 30.0

    clock.now = 60.0
    assert limiter.is_allowed()
    assert limiter.remaining() == 1


def test_is_allowed_does_not_record() -> None:
    """Test checking alone does not consume capacity."""
    limiter = RateLimiter(max_requests=1, clock=FakeClock())

    assert limiter.is_allowed()
    assert limiter.is_allowed()
    assert limiter.time_until_allowed() == 0.0

    limiter.record()
    assert not limiter.is_allowed()


def test_reset() -> None:
    """Test reset clears the window."""
    limiter = RateLimiter(max_requests=1, clock=FakeClock())
    limiter.try_acquire()

    limiter.reset()

    assert limiter.is_allowed()
