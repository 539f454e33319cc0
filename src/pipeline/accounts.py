"""Account registry: creation, ABI attachment and root seeding."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable

from abi import AbiError
from abi.system import NEWACCOUNT, SETABI, unpack_abi_def, unpack_newaccount, unpack_setabi
from pipeline.constants import ROOT_ACCOUNT
from pipeline.events import Action
from pipeline.schema_cache import SchemaCache
from services.store import DocumentStore, StoreOperationError

LOGGER = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccountRegistry:
    """Keep account records in step with native account actions.

    Records move from absent to registered and from registered to
    registered-with-abi. Nothing here deletes an account.
    """

    def __init__(
        self,
        store: DocumentStore,
        schema_cache: SchemaCache,
        *,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._schema_cache = schema_cache
        self._now = now

    def ensure_exists(self, name: str) -> bool:
        """Insert ``name`` if it is not registered yet.

        Returns True when a record was created. Store failures are logged
        and reported as False.
        """
        try:
            created = self._store.insert_account_if_absent(name, self._now())
        except StoreOperationError as exc:
            LOGGER.error("Failed to insert account %s: %s", name, exc)
            return False
        if created:
            LOGGER.debug("Registered account %s", name)
        return created

    def attach_schema(self, name: str, raw_abi: bytes) -> bool:
        """Unpack ``raw_abi`` and store it on account ``name``.

        An ABI that does not unpack is skipped without touching the record.
        Returns True when the stored ABI was updated.
        """
        try:
            abi = unpack_abi_def(raw_abi)
        except AbiError as exc:
            LOGGER.debug("Skipping undecodable abi for %s: %s", name, exc)
            return False

        self.ensure_exists(name)
        try:
            record = self._store.find_account(name)
            if record is None:
                LOGGER.error("Account %s missing after insert; abi not attached", name)
                return False
            updated = self._store.update_account_abi(record.id, abi.to_document(), self._now())
        except StoreOperationError as exc:
            LOGGER.error("Failed to attach abi to %s: %s", name, exc)
            return False
        finally:
            self._schema_cache.invalidate(name)

        if not updated:
            LOGGER.error("Failed to attach abi to %s: no record updated", name)
        return updated

    def seed_root_account(self) -> bool:
        """Insert the root account when the store holds no accounts at all."""
        if self._store.count_accounts() > 0:
            return False
        LOGGER.info("Seeding root account %s", ROOT_ACCOUNT)
        return self.ensure_exists(ROOT_ACCOUNT)

    def apply_system_action(self, action: Action) -> None:
        """Apply the registry side effect of a native root-account action."""
        if action.account != ROOT_ACCOUNT:
            return
        try:
            if action.name == NEWACCOUNT:
                payload = unpack_newaccount(action.data)
                self.ensure_exists(payload["name"])
            elif action.name == SETABI:
                account, raw_abi = unpack_setabi(action.data)
                self.attach_schema(account, raw_abi)
        except AbiError as exc:
            LOGGER.debug("Skipping %s::%s registry update: %s", action.account, action.name, exc)
