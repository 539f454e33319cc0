"""Unit tests for the backpressure queue and the consumer worker."""

from __future__ import annotations

import logging
import threading

import pytest

from chain_samples import transaction
from config import BackoffConfig
from pipeline.queue import ConsumerWorker, QueueClosedError, TransactionQueue


class RecordingSleep:
    """Sleep stub that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def _events(count: int):
    return [transaction(f"t{index}", [], block_num=index) for index in range(count)]


def test_put_below_target_does_not_sleep() -> None:
    """No delay while the queue is at or under its target size."""
    sleep = RecordingSleep()
    queue = TransactionQueue(3, sleep=sleep)

    for event in _events(4):
        assert queue.put(event) == 0.0

    assert sleep.delays == []
    assert len(queue) == 4


def test_delay_grows_while_queue_grows() -> None:
    """Each blocked put on a growing queue waits one step longer."""
    sleep = RecordingSleep()
    queue = TransactionQueue(
        1,
        BackoffConfig(initial_ms=100, step_ms=100, minimum_ms=100, maximum_ms=350),
        sleep=sleep,
    )

    for event in _events(6):
        queue.put(event)

    assert sleep.delays == pytest.approx([0.2, 0.3, 0.35, 0.35])
    assert len(queue) == 6


def test_delay_shrinks_when_queue_stops_growing() -> None:
    """A blocked put on a queue that did not grow waits one step less."""
    sleep = RecordingSleep()
    queue = TransactionQueue(
        0,
        BackoffConfig(initial_ms=300, step_ms=100, minimum_ms=100, maximum_ms=1000),
        sleep=sleep,
    )
    events = _events(5)

    queue.put(events[0])
    queue.put(events[1])
    queue.take_batch(timeout=0)
    queue.put(events[2])
    queue.put(events[3])
    queue.take_batch(timeout=0)
    queue.put(events[4])

    assert sleep.delays == pytest.approx([0.4, 0.3])


def test_take_batch_swaps_whole_queue_in_order() -> None:
    """The consumer receives every pending event at once, FIFO."""
    queue = TransactionQueue(10, sleep=RecordingSleep())
    events = _events(3)
    for event in events:
        queue.put(event)

    batch, closing = queue.take_batch(timeout=0)

    assert batch == events
    assert closing is False
    assert len(queue) == 0


def test_put_after_close_raises() -> None:
    """Closed queues reject new events."""
    queue = TransactionQueue(10)
    queue.close()

    with pytest.raises(QueueClosedError):
        queue.put(transaction("late", []))


def test_worker_processes_in_fifo_order_and_drains_on_stop(caplog) -> None:
    """Everything enqueued before stop is processed, in order."""
    queue = TransactionQueue(1000)
    seen: list[int] = []
    worker = ConsumerWorker(queue, lambda event: seen.append(event.block_num))

    with caplog.at_level(logging.INFO, logger="pipeline.queue"):
        worker.start()
        for event in _events(200):
            queue.put(event)
        assert worker.stop(timeout=10)

    assert seen == list(range(200))
    assert worker.processed_count == 200
    assert "consume thread shutdown gracefully" in caplog.text


def test_worker_logs_draining_on_shutdown(caplog) -> None:
    """Events pending at shutdown are drained and reported."""
    queue = TransactionQueue(100)
    seen: list[str] = []
    worker = ConsumerWorker(queue, lambda event: seen.append(event.id))
    for event in _events(3):
        queue.put(event)
    queue.close()

    with caplog.at_level(logging.INFO, logger="pipeline.queue"):
        worker.start()
        assert worker.stop(timeout=10)

    assert seen == ["t0", "t1", "t2"]
    assert "draining queue, size: 3" in caplog.text


def test_worker_warns_on_large_batches(caplog) -> None:
    """A batch above three quarters of the target size is a warning."""
    queue = TransactionQueue(4)
    worker = ConsumerWorker(queue, lambda event: None)
    for event in _events(4):
        queue.put(event)

    with caplog.at_level(logging.WARNING, logger="pipeline.queue"):
        worker.start()
        assert worker.stop(timeout=10)

    assert "queue size: 4" in caplog.text


def test_worker_survives_processing_errors(caplog) -> None:
    """A failing event is logged and the rest of the batch continues."""
    queue = TransactionQueue(100)
    seen: list[str] = []

    def process(event):
        if event.id == "t1":
            raise RuntimeError("bad event")
        seen.append(event.id)

    worker = ConsumerWorker(queue, process)
    for event in _events(3):
        queue.put(event)
    worker.start()

    assert worker.stop(timeout=10)
    assert seen == ["t0", "t2"]
    assert worker.failed_count == 1
    assert worker.processed_count == 3
    assert "Failed to process transaction t1" in caplog.text


def test_backpressure_delays_producer_without_dropping_events() -> None:
    """A slow consumer makes puts wait, yet every event is processed."""
    queue = TransactionQueue(
        2,
        BackoffConfig(initial_ms=1, step_ms=1, minimum_ms=1, maximum_ms=5),
    )
    gate = threading.Event()
    processed: list[str] = []

    def slow(event):
        gate.wait(1)
        processed.append(event.id)

    worker = ConsumerWorker(queue, slow)
    worker.start()
    waited = [queue.put(event) for event in _events(30)]
    gate.set()

    assert worker.stop(timeout=30)
    assert sum(waited) > 0
    assert processed == [f"t{index}" for index in range(30)]
