"""Per-transaction processing: registry updates, decoding and filtered writes."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from observability import ACCOUNT, BLOCK_NUM, TRX_ID, log_context
from pipeline.accounts import AccountRegistry
from pipeline.decoder import ActionDecoder
from pipeline.events import Action, AcceptedTransaction
from services.store import DocumentStore, StoreOperationError

LOGGER = logging.getLogger(__name__)


@dataclass
class TransactionDocument:
    """In-memory document assembled for one processed transaction."""

    trx_id: str
    block_num: int | None
    header: dict[str, Any]
    actions: list[dict[str, Any]] = field(default_factory=list)
    filtered: list[dict[str, Any]] = field(default_factory=list)

    def to_document(self) -> dict[str, Any]:
        document = {"trx_id": self.trx_id, "block_num": self.block_num}
        document.update(self.header)
        document["actions"] = list(self.actions)
        return document


@dataclass
class ProcessorStats:
    """Running counters for monitoring."""

    transactions: int = 0
    actions: int = 0
    persisted: int = 0
    write_failures: int = 0
    errors: int = 0


class TransactionProcessor:
    """Turn accepted transactions into persisted filter documents.

    Registry mutation runs for every action. Documents are only built once
    output is enabled, which happens immediately for ``block_start == 0`` or
    at the first transaction whose block number reaches ``block_start``.
    """

    def __init__(
        self,
        store: DocumentStore,
        registry: AccountRegistry,
        decoder: ActionDecoder,
        filter_contracts: Iterable[str],
        *,
        block_start: int = 0,
    ) -> None:
        self._store = store
        self._registry = registry
        self._decoder = decoder
        self._filter = frozenset(filter_contracts)
        self._block_start = block_start
        self._output_enabled = block_start == 0
        self.stats = ProcessorStats()

    @property
    def filter_contracts(self) -> frozenset[str]:
        return self._filter

    @property
    def output_enabled(self) -> bool:
        return self._output_enabled

    def process_accepted_transaction(self, event: AcceptedTransaction) -> TransactionDocument | None:
        """Process one event, logging instead of raising on any failure."""
        with log_context({TRX_ID: event.id, BLOCK_NUM: event.block_num}):
            try:
                return self.process(event)
            except Exception:
                self.stats.errors += 1
                LOGGER.exception("Unhandled error while processing transaction %s", event.id)
                return None

    def process(self, event: AcceptedTransaction) -> TransactionDocument | None:
        """Process one event; return its document when output is enabled."""
        self._update_gate(event)
        self.stats.transactions += 1

        document: TransactionDocument | None = None
        if self._output_enabled:
            document = TransactionDocument(
                trx_id=event.id,
                block_num=event.block_num,
                header=event.header.to_document(),
            )

        for action_num, action in enumerate(event.actions):
            self.stats.actions += 1
            with log_context({ACCOUNT: action.account}):
                self._registry.apply_system_action(action)
                if document is None:
                    continue
                action_document = self._build_action_document(event.id, action_num, action)
            document.actions.append(action_document)
            if action.account in self._filter:
                document.filtered.append(action_document)

        if document is not None and document.filtered:
            self._flush(document)
        return document

    def _update_gate(self, event: AcceptedTransaction) -> None:
        if self._output_enabled or event.block_num is None:
            return
        if event.block_num >= self._block_start:
            LOGGER.info("Reached start block %d; filter output enabled", self._block_start)
            self._output_enabled = True

    def _build_action_document(
        self,
        trx_id: str,
        action_num: int,
        action: Action,
    ) -> dict[str, Any]:
        document: dict[str, Any] = {
            "action_num": action_num,
            "trx_id": trx_id,
            "cfa": False,
            "account": action.account,
            "name": action.name,
            "authorization": action.authorization_documents(),
        }
        document.update(self._decoder.decode(action).as_document_fields())
        return document

    def _flush(self, document: TransactionDocument) -> None:
        try:
            result = self._store.bulk_insert_actions(document.filtered)
        except StoreOperationError as exc:
            self.stats.write_failures += len(document.filtered)
            LOGGER.error("Bulk filter insert failed for transaction: %s: %s", document.trx_id, exc)
            return
        self.stats.persisted += result.inserted
        if not result.ok:
            self.stats.write_failures += result.failed
            LOGGER.error(
                "Bulk filter insert failed for transaction: %s (%d of %d documents rejected)",
                document.trx_id,
                result.failed,
                result.inserted + result.failed,
            )
