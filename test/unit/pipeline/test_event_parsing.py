"""Unit tests for JSON Lines event parsing."""

import pytest

from pipeline.errors import EventParseError
from pipeline.events import PermissionLevel, parse_accepted_transaction


def test_parse_full_event() -> None:
    """Every field maps onto the event dataclasses."""
    event = parse_accepted_transaction(
        {
            "id": "abc",
            "block_num": 10,
            "header": {"expiration": "2026-01-01T00:00:00", "ref_block_num": 3, "delay_sec": 1},
            "actions": [
                {
                    "account": "alice",
                    "name": "hi",
                    "authorization": [{"actor": "alice", "permission": "active"}],
                    "data": "00FF",
                }
            ],
        }
    )

    assert event.id == "abc"
    assert event.block_num == 10
    assert event.header.ref_block_num == 3
    assert event.header.delay_sec == 1
    action = event.actions[0]
    assert action.data == b"\x00\xff"
    assert action.authorization == (PermissionLevel(actor="alice", permission="active"),)
    assert action.authorization_documents() == [{"actor": "alice", "permission": "active"}]


def test_parse_minimal_event() -> None:
    """Header, block number and actions are optional."""
    event = parse_accepted_transaction({"id": "abc"})

    assert event.actions == ()
    assert event.block_num is None


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {},
        {"id": "abc", "block_num": -1},
        {"id": "abc", "block_num": True},
        {"id": "abc", "actions": {}},
        {"id": "abc", "actions": [{"account": "alice", "name": "hi", "data": "zz"}]},
        {"id": "abc", "actions": [{"account": "alice", "data": ""}]},
        {"id": "abc", "header": {"ref_block_num": "x"}},
    ],
)
def test_parse_rejects_malformed_events(payload) -> None:
    """Malformed events raise ``EventParseError``."""
    with pytest.raises(EventParseError):
        parse_accepted_transaction(payload)


def test_parse_error_reports_line() -> None:
    """The source line number is included in the message."""
    with pytest.raises(EventParseError, match="line 4"):
        parse_accepted_transaction({}, line=4)
