"""Tests for the admission queue."""

from scam_analyzer.core import AnalysisQueue, QueueItem


class FakeClock:
    """Manually advanced clock."""

    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def test_fifo_order() -> None:
    """Test items leave in arrival order."""
    queue: AnalysisQueue[str] = AnalysisQueue(min_interval=0)
    queue.enqueue("a", "first")
    queue.enqueue("b", "second")

    assert queue.dequeue().payload == "first"
    assert queue.dequeue().payload == "second"
    assert queue.dequeue() is None


def test_duplicate_ids_rejected() -> None:
    """Test enqueueing an id twice."""
    queue: AnalysisQueue[str] = AnalysisQueue()

    assert queue.enqueue("a", "x") is True
    assert queue.enqueue("a", "y") is False
    assert len(queue) == 1


def test_rate_gate() -> None:
    """Test dequeues are spaced by min_interval."""
    clock = FakeClock()
    queue: AnalysisQueue[str] = AnalysisQueue(min_interval=2.0, clock=clock)
    queue.enqueue("a", "x")
    queue.enqueue("b", "y")

    assert queue.time_until_next() == 0.0
    assert queue.dequeue().id == "a"
    assert queue.dequeue() is None
    assert queue.time_until_next() == 2.0

    clock.now += 1.5
    assert queue.dequeue() is None
    assert queue.time_until_next() == 0.5

    clock.now += 0.5
    assert queue.dequeue().id == "b"


def test_full_queue_evicts_oldest() -> None:
    """Test overflow drops the oldest item and reports it."""
    evicted: list[QueueItem] = []
    queue: AnalysisQueue[int] = AnalysisQueue(max_size=2, on_evict=evicted.append)

    queue.enqueue("a", 1)
    queue.enqueue("b", 2)
    queue.enqueue("c", 3)

    assert [item.id for item in evicted] == ["a"]
    assert "a" not in queue
    assert len(queue) == 2
    assert queue.stats().pending == 2


def test_retry_until_exhausted() -> None:
    """Test items are requeued up to max_retries."""
    queue: AnalysisQueue[str] = AnalysisQueue(min_interval=0, max_retries=2)
    queue.enqueue("a", "x")

    item = queue.dequeue()
    assert queue.retry(item) is True
    item = queue.dequeue()
    assert item.retries == 1
    assert queue.retry(item) is True
    item = queue.dequeue()
    assert item.retries == 2

    assert queue.retry(item) is False
    assert queue.is_empty()
    assert queue.stats().failed == 1


def test_stats_and_clear() -> None:
    """Test counters and clearing."""
    queue: AnalysisQueue[str] = AnalysisQueue(min_interval=0)
    queue.enqueue("a", "x")
    queue.enqueue("b", "y")
    queue.dequeue()
    queue.mark_processed()

    stats = queue.stats()
    assert (stats.pending, stats.processed, stats.failed) == (1, 1, 0)

    queue.clear()
    assert queue.is_empty()
    assert queue.stats().processed == 1
