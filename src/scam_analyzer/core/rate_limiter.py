"""Sliding-window request counter for local callers."""

import time
from collections import deque
from typing import Callable


class RateLimiter:
    """Allow at most ``max_requests`` within any ``window`` seconds."""

    def __init__(
        self,
        max_requests: int = 10,
        window: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window = window
        self._clock = clock
        self._requests: deque[float] = deque()

    def _prune(self) -> None:
        window_start = self._clock() - self.window
        while self._requests and self._requests[0] <= window_start:
            self._requests.popleft()

    def is_allowed(self) -> bool:
        self._prune()
        return len(self._requests) < self.max_requests

    def record(self) -> None:
        self._requests.append(self._clock())

    def try_acquire(self) -> bool:
        """Check and record in one step."""
        if self.is_allowed():
            self.record()
            return True
        return False

    def remaining(self) -> int:
        self._prune()
        return max(0, self.max_requests - len(self._requests))

    def time_until_allowed(self) -> float:
        """Seconds until the oldest request in the window ages out."""
        if self.is_allowed():
            return 0.0
        if not self._requests:
            return self.window
        return max(0.0, self._requests[0] + self.window - self._clock())

    def reset(self) -> None:
        self._requests.clear()
