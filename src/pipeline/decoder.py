"""Tiered action payload decoding.

Each tier either returns a rendering or declines. Tiers run in order and the
first rendering wins; when every tier declines the payload is kept as hex.

1. Native root-account actions with fixed layouts (``newaccount``,
   ``setabi``).
2. The acting account's ABI, resolved through the schema cache.
3. Lowercase hex of the raw payload.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Sequence

from abi import AbiError, action_data_to_variant
from abi.system import NEWACCOUNT, SETABI, unpack_abi_def, unpack_newaccount, unpack_setabi
from pipeline.constants import ONBLOCK, ROOT_ACCOUNT
from pipeline.events import Action
from pipeline.schema_cache import SchemaCache

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecodedData:
    """Exactly one of a structured rendering or a hex string."""

    data: Any = None
    hex_data: str | None = None

    def __post_init__(self) -> None:
        if (self.data is None) == (self.hex_data is None):
            raise ValueError("DecodedData requires exactly one of data or hex_data")

    @property
    def is_structured(self) -> bool:
        return self.data is not None

    def as_document_fields(self) -> dict[str, Any]:
        if self.is_structured:
            return {"data": self.data}
        return {"hex_data": self.hex_data}


class _NotApplicable:
    """Marker returned by a tier that declines an action."""


NOT_APPLICABLE = _NotApplicable()

DecodeTier = Callable[[Action], Any]


class ActionDecoder:
    """Render action payloads, falling back tier by tier."""

    def __init__(self, schema_cache: SchemaCache) -> None:
        self._schema_cache = schema_cache
        self._tiers: Sequence[tuple[str, DecodeTier]] = (
            ("system", self._decode_system),
            ("abi", self._decode_with_abi),
        )

    def decode(self, action: Action) -> DecodedData:
        """Return the first successful rendering of ``action.data``."""
        for tier_name, tier in self._tiers:
            try:
                rendered = tier(action)
            except Exception as exc:  # a bad payload never aborts the transaction
                self._log_miss(action, tier_name, exc)
                continue
            if rendered is not NOT_APPLICABLE and rendered is not None:
                return DecodedData(data=rendered)
        return DecodedData(hex_data=action.data.hex())

    def _decode_system(self, action: Action) -> Any:
        if action.account != ROOT_ACCOUNT:
            return NOT_APPLICABLE
        if action.name == NEWACCOUNT:
            return unpack_newaccount(action.data)
        if action.name == SETABI:
            account, raw_abi = unpack_setabi(action.data)
            try:
                abi = unpack_abi_def(raw_abi)
            except AbiError as exc:
                LOGGER.debug("Embedded abi for %s does not unpack: %s", account, exc)
                return {"account": account}
            return {"account": account, "abi_def": abi.to_document()}
        return NOT_APPLICABLE

    def _decode_with_abi(self, action: Action) -> Any:
        if self._schema_cache.resolve(action.account) is None:
            return NOT_APPLICABLE
        return action_data_to_variant(
            action.account,
            action.name,
            action.data,
            self._schema_cache.resolve,
        )

    @staticmethod
    def _log_miss(action: Action, tier_name: str, exc: Exception) -> None:
        if action.account == ROOT_ACCOUNT and action.name == ONBLOCK:
            LOGGER.debug("No %s decode for %s::%s: %s", tier_name, action.account, action.name, exc)
            return
        LOGGER.info(
            "Unable to decode %s::%s with %s tier: %s",
            action.account,
            action.name,
            tier_name,
            exc,
        )
