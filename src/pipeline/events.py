"""Accepted-transaction event types and their JSON Lines form."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from pipeline.errors import EventParseError


@dataclass(frozen=True)
class PermissionLevel:
    """One actor/permission pair authorizing an action."""

    actor: str
    permission: str

    def to_document(self) -> dict[str, str]:
        return {"actor": self.actor, "permission": self.permission}


@dataclass(frozen=True)
class Action:
    """Single operation addressed to an account with a packed payload."""

    account: str
    name: str
    authorization: tuple[PermissionLevel, ...] = ()
    data: bytes = b""

    def authorization_documents(self) -> list[dict[str, str]]:
        """Return the authorization list in document form."""
        return [level.to_document() for level in self.authorization]


@dataclass(frozen=True)
class TransactionHeader:
    """Header metadata carried by every transaction."""

    expiration: str | None = None
    ref_block_num: int = 0
    ref_block_prefix: int = 0
    max_net_usage_words: int = 0
    max_cpu_usage_ms: int = 0
    delay_sec: int = 0

    def to_document(self) -> dict[str, Any]:
        return {
            "expiration": self.expiration,
            "ref_block_num": self.ref_block_num,
            "ref_block_prefix": self.ref_block_prefix,
            "max_net_usage_words": self.max_net_usage_words,
            "max_cpu_usage_ms": self.max_cpu_usage_ms,
            "delay_sec": self.delay_sec,
        }


@dataclass(frozen=True)
class AcceptedTransaction:
    """Notification emitted once per transaction admitted into the chain."""

    id: str
    actions: tuple[Action, ...] = ()
    header: TransactionHeader = field(default_factory=TransactionHeader)
    block_num: int | None = None


def _require_str(payload: Mapping[str, Any], key: str, line: int | None) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise EventParseError(f"{key} must be a non-empty string", line)
    return value


def _parse_action(payload: Any, line: int | None) -> Action:
    if not isinstance(payload, Mapping):
        raise EventParseError("action must be an object", line)
    authorization = payload.get("authorization") or []
    if not isinstance(authorization, list):
        raise EventParseError("authorization must be a list", line)
    levels = []
    for entry in authorization:
        if not isinstance(entry, Mapping):
            raise EventParseError("authorization entry must be an object", line)
        levels.append(
            PermissionLevel(
                actor=_require_str(entry, "actor", line),
                permission=_require_str(entry, "permission", line),
            )
        )
    raw_data = payload.get("data") or ""
    if not isinstance(raw_data, str):
        raise EventParseError("action data must be a hex string", line)
    try:
        data = bytes.fromhex(raw_data)
    except ValueError:
        raise EventParseError("action data must be a hex string", line) from None
    return Action(
        account=_require_str(payload, "account", line),
        name=_require_str(payload, "name", line),
        authorization=tuple(levels),
        data=data,
    )


def _parse_header(payload: Any, line: int | None) -> TransactionHeader:
    if payload is None:
        return TransactionHeader()
    if not isinstance(payload, Mapping):
        raise EventParseError("header must be an object", line)
    try:
        return TransactionHeader(
            expiration=payload.get("expiration"),
            ref_block_num=int(payload.get("ref_block_num", 0)),
            ref_block_prefix=int(payload.get("ref_block_prefix", 0)),
            max_net_usage_words=int(payload.get("max_net_usage_words", 0)),
            max_cpu_usage_ms=int(payload.get("max_cpu_usage_ms", 0)),
            delay_sec=int(payload.get("delay_sec", 0)),
        )
    except (TypeError, ValueError):
        raise EventParseError("header fields must be integers", line) from None


def parse_accepted_transaction(payload: Any, line: int | None = None) -> AcceptedTransaction:
    """Build an ``AcceptedTransaction`` from its decoded JSON object.

    Action ``data`` is expected as a hex string. ``line`` is only used to
    annotate parse errors.
    """
    if not isinstance(payload, Mapping):
        raise EventParseError("event must be an object", line)
    actions = payload.get("actions") or []
    if not isinstance(actions, list):
        raise EventParseError("actions must be a list", line)
    block_num = payload.get("block_num")
    if block_num is not None and (
        isinstance(block_num, bool) or not isinstance(block_num, int) or block_num < 0
    ):
        raise EventParseError("block_num must be a non-negative integer", line)
    return AcceptedTransaction(
        id=_require_str(payload, "id", line),
        actions=tuple(_parse_action(action, line) for action in actions),
        header=_parse_header(payload.get("header"), line),
        block_num=block_num,
    )
