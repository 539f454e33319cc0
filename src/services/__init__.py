"""Persistence services for the filtered action indexer."""

from services.database import create_session_factory, create_store_engine, init_schema
from services.store import AccountRecord, BulkWriteResult, DocumentStore, StoreOperationError

__all__ = [
    "AccountRecord",
    "BulkWriteResult",
    "DocumentStore",
    "StoreOperationError",
    "create_session_factory",
    "create_store_engine",
    "init_schema",
]
