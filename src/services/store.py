"""Document store operations over the SQLAlchemy engine."""

from __future__ import annotations

import logging
from contextlib import closing
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Mapping, Sequence

from sqlalchemy import func, insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from models import Account, FilterAction
from services.database import (
    create_session_factory,
    create_store_engine,
    drop_schema,
    init_schema,
)

logger = logging.getLogger(__name__)

_ACTION_FIELDS = (
    "action_num",
    "trx_id",
    "cfa",
    "account",
    "name",
    "authorization",
    "data",
    "hex_data",
)


class StoreOperationError(RuntimeError):
    """Raised when a store operation fails as a whole."""


@dataclass(frozen=True)
class AccountRecord:
    """Read-only snapshot of an account document."""

    id: int
    name: str
    created_at: datetime
    abi: dict[str, Any] | None
    updated_at: datetime | None


@dataclass(frozen=True)
class BulkWriteResult:
    """Outcome of an unordered bulk insert."""

    inserted: int
    failed: int
    errors: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.failed == 0


def _to_record(account: Account) -> AccountRecord:
    return AccountRecord(
        id=account.id,
        name=account.name,
        created_at=account.created_at,
        abi=account.abi,
        updated_at=account.updated_at,
    )


def _action_row(document: Mapping[str, Any]) -> dict[str, Any]:
    row = {field: document.get(field) for field in _ACTION_FIELDS}
    row["cfa"] = bool(row["cfa"])
    row["authorization"] = list(row["authorization"] or [])
    return row


class DocumentStore:
    """Accounts and filtered actions, keyed the way the pipeline looks them up."""

    def __init__(
        self,
        engine: Engine,
        session_factory: Callable[[], Session] | None = None,
    ) -> None:
        self._engine = engine
        self._session_factory = session_factory or create_session_factory(engine)

    @classmethod
    def from_url(cls, url: str) -> "DocumentStore":
        """Build a store for a SQLAlchemy database URL."""
        return cls(create_store_engine(url))

    @property
    def engine(self) -> Engine:
        return self._engine

    def init_collections(self) -> None:
        """Create the accounts and filter collections when missing."""
        try:
            init_schema(self._engine)
        except SQLAlchemyError as exc:
            raise StoreOperationError(f"unable to create collections: {exc}") from exc

    def drop_collections(self) -> None:
        """Drop both collections and recreate them empty."""
        logger.info("wiping filter database")
        try:
            drop_schema(self._engine)
            init_schema(self._engine)
        except SQLAlchemyError as exc:
            raise StoreOperationError(f"unable to drop collections: {exc}") from exc

    def count_accounts(self) -> int:
        """Return the number of account documents."""
        try:
            with closing(self._session_factory()) as session:
                return session.execute(select(func.count(Account.id))).scalar_one()
        except SQLAlchemyError as exc:
            raise StoreOperationError(f"unable to count accounts: {exc}") from exc

    def find_account(self, name: str) -> AccountRecord | None:
        """Look up one account by name."""
        try:
            with closing(self._session_factory()) as session:
                account = session.execute(
                    select(Account).where(Account.name == name)
                ).scalar_one_or_none()
                return _to_record(account) if account is not None else None
        except SQLAlchemyError as exc:
            raise StoreOperationError(f"unable to find account {name}: {exc}") from exc

    def insert_account_if_absent(self, name: str, created_at: datetime) -> bool:
        """Insert an account keyed by name; return False when it already exists."""
        try:
            with closing(self._session_factory()) as session:
                existing = session.execute(
                    select(Account.id).where(Account.name == name)
                ).first()
                if existing is not None:
                    return False
                session.add(Account(name=name, created_at=created_at))
                try:
                    session.commit()
                except IntegrityError:
                    session.rollback()
                    return False
                return True
        except SQLAlchemyError as exc:
            raise StoreOperationError(f"unable to insert account {name}: {exc}") from exc

    def update_account_abi(
        self,
        account_id: int,
        abi: dict[str, Any],
        updated_at: datetime,
    ) -> bool:
        """Set the ABI of the account with the given internal id."""
        try:
            with closing(self._session_factory()) as session:
                result = session.execute(
                    update(Account)
                    .where(Account.id == account_id)
                    .values(abi=abi, updated_at=updated_at)
                )
                session.commit()
                return result.rowcount == 1
        except SQLAlchemyError as exc:
            raise StoreOperationError(f"unable to update account {account_id}: {exc}") from exc

    def bulk_insert_actions(self, documents: Sequence[Mapping[str, Any]]) -> BulkWriteResult:
        """Insert action documents without letting one bad document block the rest.

        The batch is first written in a single transaction. If that fails, each
        document is retried in its own transaction and failures are counted.
        """
        rows = [_action_row(document) for document in documents]
        if not rows:
            return BulkWriteResult(inserted=0, failed=0)
        try:
            with closing(self._session_factory()) as session:
                try:
                    session.execute(insert(FilterAction), rows)
                    session.commit()
                    return BulkWriteResult(inserted=len(rows), failed=0)
                except SQLAlchemyError as exc:
                    session.rollback()
                    logger.debug("bulk insert fell back to per-document inserts: %s", exc)
                return self._insert_individually(session, rows)
        except SQLAlchemyError as exc:
            raise StoreOperationError(f"bulk insert failed: {exc}") from exc

    def _insert_individually(
        self,
        session: Session,
        rows: Sequence[dict[str, Any]],
    ) -> BulkWriteResult:
        inserted = 0
        errors: list[str] = []
        for row in rows:
            try:
                session.execute(insert(FilterAction), [row])
                session.commit()
                inserted += 1
            except SQLAlchemyError as exc:
                session.rollback()
                errors.append(str(getattr(exc, "orig", None) or exc))
        return BulkWriteResult(inserted=inserted, failed=len(errors), errors=tuple(errors))

    def find_actions(
        self,
        *,
        trx_id: str | None = None,
        account: str | None = None,
    ) -> list[dict[str, Any]]:
        """Return persisted action documents in insertion order."""
        query = select(FilterAction).order_by(FilterAction.id)
        if trx_id is not None:
            query = query.where(FilterAction.trx_id == trx_id)
        if account is not None:
            query = query.where(FilterAction.account == account)
        try:
            with closing(self._session_factory()) as session:
                return [
                    {field: getattr(action, field) for field in _ACTION_FIELDS}
                    for action in session.execute(query).scalars()
                ]
        except SQLAlchemyError as exc:
            raise StoreOperationError(f"unable to find actions: {exc}") from exc

    def count_actions(self) -> int:
        """Return the number of persisted action documents."""
        try:
            with closing(self._session_factory()) as session:
                return session.execute(select(func.count(FilterAction.id))).scalar_one()
        except SQLAlchemyError as exc:
            raise StoreOperationError(f"unable to count actions: {exc}") from exc

    def dispose(self) -> None:
        """Release pooled connections."""
        self._engine.dispose()
