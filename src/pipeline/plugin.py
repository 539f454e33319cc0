"""Lifecycle of the filter pipeline: initialize, startup, accept, shutdown."""

from __future__ import annotations

import logging
import time
from typing import Callable

from sqlalchemy.exc import ArgumentError

from config import Settings
from pipeline.context import PipelineContext, build_context
from pipeline.errors import PipelineConfigurationError
from pipeline.events import AcceptedTransaction
from pipeline.queue import ConsumerWorker, TransactionQueue
from services.database import redact_url
from services.store import DocumentStore

LOGGER = logging.getLogger(__name__)


class FilterPlugin:
    """Owns the pipeline context, the queue and the consumer thread.

    Until ``startup`` is called events are processed inline on the caller's
    thread, so replayed history is written before normal operation begins.
    After ``startup`` events are queued for the consumer thread.
    """

    def __init__(
        self,
        *,
        store_factory: Callable[[str], DocumentStore] = DocumentStore.from_url,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._store_factory = store_factory
        self._sleep = sleep
        self._context: PipelineContext | None = None
        self._queue: TransactionQueue | None = None
        self._worker: ConsumerWorker | None = None
        self._starting = True

    @property
    def configured(self) -> bool:
        return self._context is not None

    @property
    def context(self) -> PipelineContext | None:
        return self._context

    @property
    def queue(self) -> TransactionQueue | None:
        return self._queue

    @property
    def worker(self) -> ConsumerWorker | None:
        return self._worker

    def initialize(self, settings: Settings) -> None:
        """Validate options, connect, optionally wipe and seed the root account.

        Raises ``PipelineConfigurationError`` when a replay is requested
        without the wipe flag or the database URL does not parse. Without a database URL the plugin stays inert.
        """
        filter_config = settings.filter
        if not filter_config.database_url:
            LOGGER.warning("filter.database_url not specified; filter plugin disabled")
            return

        wipe_on_startup = False
        if settings.chain.replay_requested:
            if not filter_config.wipe:
                raise PipelineConfigurationError(
                    "filter.wipe is required when replaying the chain or deleting all blocks; "
                    "it drops every previously indexed account and action"
                )
            wipe_on_startup = True

        try:
            LOGGER.info("Connecting filter store %s", redact_url(filter_config.database_url))
            store = self._store_factory(filter_config.database_url)
        except ArgumentError:
            raise PipelineConfigurationError(
                "filter.database_url is not a valid SQLAlchemy URL"
            ) from None
        store.init_collections()
        if wipe_on_startup:
            store.drop_collections()

        context = build_context(store, filter_config)
        context.registry.seed_root_account()
        if not filter_config.contracts:
            LOGGER.warning("No filter contracts configured; no actions will be persisted")

        self._context = context
        self._queue = TransactionQueue(
            filter_config.queue_size,
            filter_config.backoff,
            sleep=self._sleep,
        )
        self._worker = ConsumerWorker(self._queue, context.processor.process_accepted_transaction)
        self._starting = True

    def startup(self) -> None:
        """Leave the inline phase and start the consumer thread."""
        if self._worker is None:
            return
        self._starting = False
        self._worker.start()

    def accepted_transaction(self, event: AcceptedTransaction) -> None:
        """Producer entry point; never raises into the event source."""
        if self._context is None or self._queue is None:
            return
        try:
            if self._starting:
                self._context.processor.process_accepted_transaction(event)
            else:
                self._queue.put(event)
        except Exception:
            LOGGER.exception("Failed to accept transaction %s", event.id)

    submit = accepted_transaction

    def shutdown(self, timeout: float | None = None) -> None:
        """Drain and join the consumer, then release the store."""
        if self._context is None or self._worker is None:
            return
        if not self._worker.stop(timeout):
            LOGGER.error("Consumer thread did not exit within %s seconds; store left open", timeout)
            return
        self._context.store.dispose()
        self._context = None
