"""Unit tests for logging configuration and context propagation."""

import json
import logging

import observability


def _record(message: str) -> logging.LogRecord:
    record = logging.LogRecord("pipeline.test", logging.INFO, __file__, 1, message, None, None)
    observability.ContextFilter().filter(record)
    return record


def test_log_context_is_scoped() -> None:
    """Bound fields disappear when the block exits."""
    with observability.log_context({"trx_id": "abc", "block_num": None}):
        assert observability.get_context() == {"trx_id": "abc"}
    assert "trx_id" not in observability.get_context()


def test_json_formatter_includes_context() -> None:
    """JSON output carries core fields plus bound context."""
    with observability.log_context({"trx_id": "abc"}):
        record = _record("processed")

    payload = json.loads(observability.JsonFormatter().format(record))

    assert payload["message"] == "processed"
    assert payload["level"] == "INFO"
    assert payload["trx_id"] == "abc"


def test_plain_formatter_appends_context() -> None:
    """Plain output appends sorted key=value pairs."""
    with observability.log_context({"trx_id": "abc", "account": "alice"}):
        record = _record("processed")

    assert observability.PlainFormatter().format(record).endswith("processed account=alice trx_id=abc")


def test_configure_logging_replaces_handlers() -> None:
    """Repeated configuration leaves a single root handler."""
    root = logging.getLogger()
    saved_handlers = root.handlers[:]
    saved_level = root.level
    try:
        observability.configure_logging(level="debug", json_output=True)
        observability.configure_logging(level="info", json_output=False)

        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, observability.PlainFormatter)
        assert root.level == logging.INFO
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
