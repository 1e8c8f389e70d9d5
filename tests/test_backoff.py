"""Tests for retry configuration and backoff."""

import asyncio

import pytest

from scam_analyzer.core.backoff import RetryConfig, backoff_delay, wait_or_cancel
from scam_analyzer.core.errors import ApiError, ApiErrorKind


def test_exponential_schedule_without_jitter() -> None:
    """Test delays double per attempt and stop at max_delay."""
    config = RetryConfig(initial_delay=1.0, max_delay=30.0, backoff_multiplier=2.0)

    delays = [backoff_delay(attempt, config, jitter=False) for attempt in range(6)]

    assert delays == [1.0, 2.0, 4.0, 8.0, 16.0, 30.0]


def test_jitter_bounds() -> None:
    """Test jitter adds at most initial_delay."""
    config = RetryConfig(initial_delay=1.0, max_delay=30.0)

    for _ in range(50):
        delay = backoff_delay(1, config)
        assert 2.0 <= delay <= 3.0


def test_retry_after_hint_wins() -> None:
    """Test a server hint replaces the exponential schedule."""
    config = RetryConfig(initial_delay=1.0, max_delay=30.0)

    assert backoff_delay(3, config, retry_after=2.0, jitter=False) == 2.0
    for _ in range(50):
        assert 2.0 <= backoff_delay(0, config, retry_after=2.0) <= 3.0


def test_retry_after_hint_is_capped() -> None:
    """Test a large hint is capped at max_delay."""
    config = RetryConfig(max_delay=30.0)

    assert backoff_delay(0, config, retry_after=120.0) == 30.0


def test_retry_config_validation() -> None:
    """Test invalid retry settings are rejected."""
    with pytest.raises(ValueError):
        RetryConfig(max_retries=-1)
    with pytest.raises(ValueError):
        RetryConfig(initial_delay=-0.5)
    with pytest.raises(ValueError):
        RetryConfig(backoff_multiplier=0.5)


def test_retry_config_overrides() -> None:
    """Test per-call overrides leave the original untouched."""
    config = RetryConfig()
    tuned = config.with_overrides(max_retries=0)

    assert tuned.max_retries == 0
    assert tuned.initial_delay == config.initial_delay
    assert config.max_retries == 3


@pytest.mark.asyncio
async def test_wait_or_cancel_sleeps() -> None:
    """Test plain waits complete."""
    await wait_or_cancel(0.01)
    await wait_or_cancel(0.01, asyncio.Event())


@pytest.mark.asyncio
async def test_wait_or_cancel_already_cancelled() -> None:
    """Test a set event aborts immediately."""
    event = asyncio.Event()
    event.set()

    with pytest.raises(ApiError) as exc_info:
        await wait_or_cancel(10, event)

    assert exc_info.value.kind == ApiErrorKind.TIMEOUT
    assert exc_info.value.retryable is False
    assert exc_info.value.message == "Request cancelled"


@pytest.mark.asyncio
async def test_wait_or_cancel_interrupted() -> None:
    """Test cancelling during a wait aborts it early."""
    event = asyncio.Event()
    asyncio.get_running_loop().call_later(0.01, event.set)

    with pytest.raises(ApiError):
        await asyncio.wait_for(wait_or_cancel(10, event), timeout=2)
