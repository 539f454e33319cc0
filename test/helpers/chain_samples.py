"""Builders for ABIs, native actions and transactions used across tests."""

from __future__ import annotations

from typing import Any, Sequence

from abi import AbiDef, AbiSerializer, ActionDef, FieldDef, StructDef
from abi.system import NEWACCOUNT, SETABI, SYSTEM_ACCOUNT, pack_abi_def, pack_system_action
from pipeline.events import AcceptedTransaction, Action, PermissionLevel, TransactionHeader


def token_abi() -> AbiDef:
    """Return a small token contract ABI with ``transfer`` and ``hi`` actions."""
    return AbiDef(
        structs=[
            StructDef(
                name="transfer",
                fields=[
                    FieldDef(name="from", type="name"),
                    FieldDef(name="to", type="name"),
                    FieldDef(name="quantity", type="asset"),
                    FieldDef(name="memo", type="string"),
                ],
            ),
            StructDef(name="hi", fields=[FieldDef(name="user", type="name")]),
        ],
        actions=[
            ActionDef(name="transfer", type="transfer"),
            ActionDef(name="hi", type="hi"),
        ],
    )


def stamp_abi() -> AbiDef:
    """Return an ABI whose ``stamp`` action carries a single ``time_point``."""
    return AbiDef(
        structs=[StructDef(name="stamp", fields=[FieldDef(name="at", type="time_point")])],
        actions=[ActionDef(name="stamp", type="stamp")],
    )


def active(actor: str) -> tuple[PermissionLevel, ...]:
    """Return a single ``actor@active`` authorization."""
    return (PermissionLevel(actor=actor, permission="active"),)


def empty_authority() -> dict[str, Any]:
    return {"threshold": 1, "keys": [], "accounts": [], "waits": []}


def newaccount_action(creator: str, name: str) -> Action:
    """Build a native ``eosio::newaccount`` action."""
    data = pack_system_action(
        NEWACCOUNT,
        {
            "creator": creator,
            "name": name,
            "owner": empty_authority(),
            "active": empty_authority(),
        },
    )
    return Action(account=SYSTEM_ACCOUNT, name=NEWACCOUNT, authorization=active(creator), data=data)


def setabi_action(account: str, abi: AbiDef | None = None, raw_abi: bytes | None = None) -> Action:
    """Build a native ``eosio::setabi`` action from an ABI or raw ABI bytes."""
    if raw_abi is None:
        raw_abi = pack_abi_def(abi or token_abi())
    data = pack_system_action(SETABI, {"account": account, "abi": raw_abi})
    return Action(account=SYSTEM_ACCOUNT, name=SETABI, authorization=active(account), data=data)


def contract_action(
    account: str,
    name: str,
    value: dict[str, Any],
    abi: AbiDef | None = None,
    actor: str | None = None,
) -> Action:
    """Build an action whose payload is packed with ``abi``."""
    serializer = AbiSerializer(abi or token_abi())
    data = serializer.variant_to_binary(serializer.get_action_type(name), value)
    return Action(account=account, name=name, authorization=active(actor or account), data=data)


def transfer_value(sender: str = "alice", recipient: str = "bob", memo: str = "rent") -> dict[str, Any]:
    return {"from": sender, "to": recipient, "quantity": "1.2500 EOS", "memo": memo}


def transaction(
    trx_id: str,
    actions: Sequence[Action],
    block_num: int | None = None,
) -> AcceptedTransaction:
    """Wrap actions into an accepted transaction."""
    return AcceptedTransaction(
        id=trx_id,
        actions=tuple(actions),
        header=TransactionHeader(expiration="2026-01-01T00:00:30", ref_block_num=7),
        block_num=block_num,
    )
