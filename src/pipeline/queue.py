"""Producer/consumer hand-off between the event source and the writer thread."""

from __future__ import annotations

import logging
import time
from collections import deque
from threading import Condition, Thread
from typing import Any, Callable

from config import BackoffConfig
from pipeline.constants import QUEUE_WARNING_RATIO
from pipeline.errors import PipelineError
from pipeline.events import AcceptedTransaction

LOGGER = logging.getLogger(__name__)


class QueueClosedError(PipelineError):
    """Raised when an event is submitted after shutdown began."""


class TransactionQueue:
    """FIFO of pending events with an adaptive producer delay.

    When the queue is longer than ``target_size`` the producer wakes the
    consumer and sleeps before appending. The delay grows by one step while
    the queue keeps growing between blocked puts and shrinks by one step
    (never below the minimum) otherwise. The event is always appended, so the
    queue throttles the producer but never drops work.
    """

    def __init__(
        self,
        target_size: int,
        backoff: BackoffConfig | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._target_size = target_size
        self._backoff = backoff or BackoffConfig()
        self._sleep = sleep
        self._condition = Condition()
        self._pending: deque[AcceptedTransaction] = deque()
        self._closed = False
        self._delay_ms = self._backoff.initial_ms
        self._last_blocked_size = 0

    @property
    def target_size(self) -> int:
        return self._target_size

    def __len__(self) -> int:
        with self._condition:
            return len(self._pending)

    def put(self, event: AcceptedTransaction) -> float:
        """Append ``event``; return the seconds spent in backpressure."""
        delay = 0.0
        with self._condition:
            if self._closed:
                raise QueueClosedError("queue is closed")
            size = len(self._pending)
            if size > self._target_size:
                delay = self._next_delay(size) / 1000.0
                self._condition.notify()

        if delay > 0:
            self._sleep(delay)

        with self._condition:
            if self._closed:
                raise QueueClosedError("queue is closed")
            self._pending.append(event)
            self._condition.notify()
        return delay

    def _next_delay(self, size: int) -> int:
        backoff = self._backoff
        if size > self._last_blocked_size:
            self._delay_ms += backoff.step_ms
        else:
            self._delay_ms = max(backoff.minimum_ms, self._delay_ms - backoff.step_ms)
        self._delay_ms = min(self._delay_ms, backoff.maximum_ms)
        self._last_blocked_size = size
        return self._delay_ms

    def take_batch(self, timeout: float | None = None) -> tuple[list[AcceptedTransaction], bool]:
        """Wait for work or shutdown, then hand over every pending event.

        Returns the batch in enqueue order and whether the queue was closed
        when it was taken.
        """
        with self._condition:
            self._condition.wait_for(lambda: self._pending or self._closed, timeout=timeout)
            batch = list(self._pending)
            self._pending = deque()
            return batch, self._closed

    def close(self) -> None:
        """Stop accepting events and wake the consumer."""
        with self._condition:
            self._closed = True
            self._condition.notify_all()


class ConsumerWorker:
    """Single background thread draining a ``TransactionQueue``."""

    def __init__(
        self,
        queue: TransactionQueue,
        process: Callable[[AcceptedTransaction], Any],
        *,
        name: str = "filter-consumer",
    ) -> None:
        self._queue = queue
        self._process = process
        self._name = name
        self._thread: Thread | None = None
        self._processed = 0
        self._failed = 0

    @property
    def processed_count(self) -> int:
        return self._processed

    @property
    def failed_count(self) -> int:
        return self._failed

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the consumer thread once."""
        if self._thread is not None:
            return
        self._thread = Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> bool:
        """Close the queue and wait for the thread to drain it.

        Returns True when the thread has exited.
        """
        self._queue.close()
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def _run(self) -> None:
        warn_above = self._queue.target_size * QUEUE_WARNING_RATIO
        while True:
            batch, closing = self._queue.take_batch()
            if not batch:
                if closing:
                    LOGGER.info("consume thread shutdown gracefully")
                    return
                continue

            if len(batch) > warn_above:
                LOGGER.warning("queue size: %d", len(batch))
            elif closing:
                LOGGER.info("draining queue, size: %d", len(batch))

            for event in batch:
                try:
                    self._process(event)
                except Exception:
                    self._failed += 1
                    LOGGER.exception("Failed to process transaction %s", event.id)
                finally:
                    self._processed += 1
