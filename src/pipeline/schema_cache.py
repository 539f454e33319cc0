"""Per-account ABI serializers resolved from the account store."""

from __future__ import annotations

import logging
from typing import Protocol

from pydantic import ValidationError

from abi import AbiDef, AbiError, AbiSerializer
from services.store import AccountRecord, StoreOperationError

LOGGER = logging.getLogger(__name__)


class AccountLookup(Protocol):
    """Store capability the cache needs."""

    def find_account(self, name: str) -> AccountRecord | None:
        """Return one account by name."""


class SchemaCache:
    """Resolve the most recently attached ABI of an account.

    Serializers are memoised per account. A stored ABI that fails to parse or
    validate is reported and treated as absent; it is never rewritten here.
    The registry calls ``invalidate`` whenever it attaches a new ABI.
    """

    def __init__(self, store: AccountLookup) -> None:
        self._store = store
        self._serializers: dict[str, AbiSerializer] = {}

    def resolve(self, account: str) -> AbiSerializer | None:
        """Return a serializer for ``account``'s stored ABI, or None."""
        cached = self._serializers.get(account)
        if cached is not None:
            return cached

        try:
            record = self._store.find_account(account)
        except StoreOperationError as exc:
            LOGGER.warning("Unable to look up abi for %s: %s", account, exc)
            return None
        if record is None or not record.abi:
            return None

        try:
            serializer = AbiSerializer(AbiDef.model_validate(record.abi))
        except (ValidationError, AbiError) as exc:
            LOGGER.info("Stored abi for %s is malformed; ignoring it: %s", account, exc)
            return None

        self._serializers[account] = serializer
        return serializer

    def invalidate(self, account: str) -> None:
        """Forget the memoised serializer of one account."""
        self._serializers.pop(account, None)

    def __contains__(self, account: object) -> bool:
        return account in self._serializers
