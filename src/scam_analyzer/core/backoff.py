"""Retry configuration and exponential backoff with jitter."""

import asyncio
import random
from dataclasses import dataclass, replace
from typing import Optional

from scam_analyzer.core.errors import ApiError, ApiErrorKind

RETRY_AFTER_JITTER = 1.0


@dataclass(frozen=True)
class RetryConfig:
    """Retry policy for one executor; durations in seconds."""

    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 30.0
    backoff_multiplier: float = 2.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be >= 0")
        if self.backoff_multiplier < 1:
            raise ValueError("backoff_multiplier must be >= 1")

    def with_overrides(self, **changes: float) -> "RetryConfig":
        """Return a copy with some fields replaced."""
        return replace(self, **changes)


DEFAULT_RETRY_CONFIG = RetryConfig()


def backoff_delay(
    attempt: int,
    config: RetryConfig,
    retry_after: Optional[float] = None,
    jitter: bool = True,
) -> float:
    """Seconds to wait before the retry following ``attempt`` (zero-indexed).

    A server supplied ``retry_after`` hint wins over the exponential
    schedule. Both are capped at ``config.max_delay``.
    """
    if retry_after is not None and retry_after > 0:
        spread = random.uniform(0, RETRY_AFTER_JITTER) if jitter else 0.0
        return min(retry_after + spread, config.max_delay)

    exponential = config.initial_delay * (config.backoff_multiplier ** attempt)
    spread = random.uniform(0, config.initial_delay) if jitter else 0.0
    return min(exponential + spread, config.max_delay)


def cancelled_error() -> ApiError:
    return ApiError("Request cancelled", ApiErrorKind.TIMEOUT, retryable=False)


async def wait_or_cancel(delay: float, cancel_event: Optional[asyncio.Event] = None) -> None:
    """Sleep for ``delay`` seconds unless ``cancel_event`` fires first."""
    if cancel_event is None:
        await asyncio.sleep(delay)
        return

    if cancel_event.is_set():
        raise cancelled_error()
    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return
    raise cancelled_error()
