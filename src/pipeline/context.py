"""Explicit wiring of the objects shared by the producer and consumer paths."""

from __future__ import annotations

from dataclasses import dataclass

from config import FilterConfig
from pipeline.accounts import AccountRegistry
from pipeline.decoder import ActionDecoder
from pipeline.processor import TransactionProcessor
from pipeline.schema_cache import SchemaCache
from services.store import DocumentStore


@dataclass(frozen=True)
class PipelineContext:
    """Store connection, caches and processor for one pipeline run.

    Built once at initialization and released only after the consumer thread
    has been joined.
    """

    store: DocumentStore
    schema_cache: SchemaCache
    registry: AccountRegistry
    decoder: ActionDecoder
    processor: TransactionProcessor


def build_context(store: DocumentStore, filter_config: FilterConfig) -> PipelineContext:
    """Wire the cache, registry, decoder and processor around ``store``."""
    schema_cache = SchemaCache(store)
    registry = AccountRegistry(store, schema_cache)
    decoder = ActionDecoder(schema_cache)
    processor = TransactionProcessor(
        store,
        registry,
        decoder,
        filter_config.contracts,
        block_start=filter_config.block_start,
    )
    return PipelineContext(
        store=store,
        schema_cache=schema_cache,
        registry=registry,
        decoder=decoder,
        processor=processor,
    )
