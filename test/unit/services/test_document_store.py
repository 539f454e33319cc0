"""Unit tests for the SQLAlchemy-backed document store."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from services.store import DocumentStore, StoreOperationError


def _action(trx_id: str, action_num: int, **overrides) -> dict:
    document = {
        "action_num": action_num,
        "trx_id": trx_id,
        "cfa": False,
        "account": "alice",
        "name": "transfer",
        "authorization": [{"actor": "alice", "permission": "active"}],
        "data": {"memo": "hi"},
    }
    document.update(overrides)
    return document


def test_insert_account_if_absent_is_idempotent(store: DocumentStore) -> None:
    """A second insert of the same name is a no-op."""
    now = datetime.now(timezone.utc)

    assert store.insert_account_if_absent("alice", now) is True
    assert store.insert_account_if_absent("alice", now) is False
    assert store.count_accounts() == 1


def test_update_account_abi_by_id(store: DocumentStore) -> None:
    """ABI updates are applied by internal id."""
    now = datetime.now(timezone.utc)
    store.insert_account_if_absent("bob", now)
    record = store.find_account("bob")

    assert store.update_account_abi(record.id, {"version": "eosio::abi/1.1"}, now) is True

    updated = store.find_account("bob")
    assert updated.abi == {"version": "eosio::abi/1.1"}
    assert updated.updated_at is not None


def test_update_unknown_account_reports_false(store: DocumentStore) -> None:
    """Updating a missing id touches nothing."""
    assert store.update_account_abi(999, {}, datetime.now(timezone.utc)) is False


def test_bulk_insert_keeps_order_and_payload_fields(store: DocumentStore) -> None:
    """Structured and hex payloads persist side by side."""
    result = store.bulk_insert_actions(
        [
            _action("t1", 0),
            _action("t1", 1, data=None, hex_data="0a0b"),
        ]
    )

    assert result.ok
    assert result.inserted == 2
    rows = store.find_actions(trx_id="t1")
    assert [row["action_num"] for row in rows] == [0, 1]
    assert rows[0]["data"] == {"memo": "hi"}
    assert rows[0]["hex_data"] is None
    assert rows[1]["data"] is None
    assert rows[1]["hex_data"] == "0a0b"


def test_bulk_insert_is_unordered(store: DocumentStore) -> None:
    """One invalid document does not block the others."""
    result = store.bulk_insert_actions(
        [
            _action("t2", 0),
            _action("t2", 1, account=None),
            _action("t2", 2),
        ]
    )

    assert result.inserted == 2
    assert result.failed == 1
    assert not result.ok
    assert [row["action_num"] for row in store.find_actions(trx_id="t2")] == [0, 2]


def test_bulk_insert_skips_unbindable_document(store: DocumentStore) -> None:
    """Driver errors other than constraint violations are also contained per document."""
    result = store.bulk_insert_actions(
        [
            _action("t3", 0),
            _action("t3", 1, name={"not": "a name"}),
            _action("t3", 2),
        ]
    )

    assert result.inserted == 2
    assert result.failed == 1
    assert len(result.errors) == 1
    assert [row["action_num"] for row in store.find_actions(trx_id="t3")] == [0, 2]


def test_bulk_insert_empty_batch(store: DocumentStore) -> None:
    """An empty batch writes nothing."""
    result = store.bulk_insert_actions([])

    assert result.inserted == 0
    assert store.count_actions() == 0


def test_drop_collections_recreates_empty_tables(store: DocumentStore) -> None:
    """Wipe removes accounts and actions but leaves usable tables."""
    store.insert_account_if_absent("alice", datetime.now(timezone.utc))
    store.bulk_insert_actions([_action("t3", 0)])

    store.drop_collections()

    assert store.count_accounts() == 0
    assert store.count_actions() == 0


def test_missing_tables_raise_store_error() -> None:
    """Operations on an uninitialized database raise ``StoreOperationError``."""
    bare = DocumentStore.from_url("sqlite://")
    try:
        with pytest.raises(StoreOperationError):
            bare.count_accounts()
    finally:
        bare.dispose()
