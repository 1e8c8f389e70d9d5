"""Bounded admission queue that paces new analysis requests."""

import logging
import time
from collections import deque
from dataclasses import dataclass, replace
from typing import Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

MIN_API_INTERVAL = 2.0
MAX_QUEUE_SIZE = 10
MAX_QUEUE_RETRIES = 2

T = TypeVar("T")


@dataclass(frozen=True)
class QueueItem(Generic[T]):
    """Queued request identified by a caller-supplied id."""

    id: str
    payload: T
    enqueued_at: float
    retries: int = 0


@dataclass(frozen=True)
class QueueStats:
    """Queue counters."""

    pending: int
    processed: int
    failed: int


class AnalysisQueue(Generic[T]):
    """FIFO with duplicate suppression, oldest-first eviction and a rate gate.

    The gate only limits how fast items leave the queue: ``dequeue`` returns
    None until ``min_interval`` seconds have passed since the previous
    successful dequeue.
    """

    def __init__(
        self,
        min_interval: float = MIN_API_INTERVAL,
        max_size: int = MAX_QUEUE_SIZE,
        max_retries: int = MAX_QUEUE_RETRIES,
        clock: Callable[[], float] = time.monotonic,
        on_evict: Optional[Callable[[QueueItem[T]], None]] = None,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self.min_interval = min_interval
        self.max_size = max_size
        self.max_retries = max_retries
        self._clock = clock
        self._on_evict = on_evict
        self._items: deque[QueueItem[T]] = deque()
        self._last_dequeue: Optional[float] = None
        self._processed = 0
        self._failed = 0

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: str) -> bool:
        return any(item.id == item_id for item in self._items)

    def enqueue(self, item_id: str, payload: T) -> bool:
        """Append an item; False if the id is already queued."""
        if item_id in self:
            return False

        if len(self._items) >= self.max_size:
            evicted = self._items.popleft()
            logger.warning("Admission queue full, dropping oldest item %s", evicted.id)
            if self._on_evict is not None:
                self._on_evict(evicted)

        self._items.append(QueueItem(id=item_id, payload=payload, enqueued_at=self._clock()))
        return True

    def dequeue(self) -> Optional[QueueItem[T]]:
        """Pop the front item if the rate gate allows it."""
        if not self._items:
            return None
        if self.time_until_next() > 0:
            return None
        self._last_dequeue = self._clock()
        return self._items.popleft()

    def retry(self, item: QueueItem[T]) -> bool:
        """Requeue at the tail, or count a terminal failure once retries run out."""
        if item.retries >= self.max_retries:
            self._failed += 1
            logger.info("Item %s failed after %d queue retries", item.id, item.retries)
            return False

        self._items.append(replace(item, retries=item.retries + 1, enqueued_at=self._clock()))
        return True

    def time_until_next(self) -> float:
        """Seconds until the gate opens again (0 when open)."""
        if self._last_dequeue is None:
            return 0.0
        elapsed = self._clock() - self._last_dequeue
        return max(0.0, self.min_interval - elapsed)

    def mark_processed(self) -> None:
        self._processed += 1

    def stats(self) -> QueueStats:
        return QueueStats(pending=len(self._items), processed=self._processed, failed=self._failed)

    def clear(self) -> None:
        self._items.clear()

    def is_empty(self) -> bool:
        return not self._items
