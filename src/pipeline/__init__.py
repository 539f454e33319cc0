"""Accepted-transaction filter pipeline."""

from pipeline.accounts import AccountRegistry
from pipeline.context import PipelineContext, build_context
from pipeline.decoder import ActionDecoder, DecodedData
from pipeline.errors import EventParseError, PipelineConfigurationError, PipelineError
from pipeline.events import (
    AcceptedTransaction,
    Action,
    PermissionLevel,
    TransactionHeader,
    parse_accepted_transaction,
)
from pipeline.plugin import FilterPlugin
from pipeline.processor import ProcessorStats, TransactionDocument, TransactionProcessor
from pipeline.queue import ConsumerWorker, QueueClosedError, TransactionQueue
from pipeline.schema_cache import SchemaCache

__all__ = [
    "AcceptedTransaction",
    "AccountRegistry",
    "Action",
    "ActionDecoder",
    "ConsumerWorker",
    "DecodedData",
    "EventParseError",
    "FilterPlugin",
    "PermissionLevel",
    "PipelineConfigurationError",
    "PipelineContext",
    "PipelineError",
    "ProcessorStats",
    "QueueClosedError",
    "SchemaCache",
    "TransactionDocument",
    "TransactionHeader",
    "TransactionProcessor",
    "TransactionQueue",
    "build_context",
    "parse_accepted_transaction",
]
