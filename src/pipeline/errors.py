"""Error types for the filter pipeline."""

from __future__ import annotations

from services.store import StoreOperationError


class PipelineError(RuntimeError):
    """Base class for pipeline failures."""


class PipelineConfigurationError(PipelineError):
    """Raised at initialization when options are unsafe or inconsistent."""


class EventParseError(PipelineError, ValueError):
    """Raised when a serialized accepted-transaction event is malformed."""

    def __init__(self, message: str, line: int | None = None) -> None:
        """Initialize the error with an optional source line number."""
        super().__init__(message if line is None else f"line {line}: {message}")
        self.line = line


__all__ = [
    "EventParseError",
    "PipelineConfigurationError",
    "PipelineError",
    "StoreOperationError",
]
