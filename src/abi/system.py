"""Fixed layouts for the root account's native actions and for ``abi_def``.

These layouts are known ahead of time, so native actions can be decoded before
any ABI has been published to the store.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from abi.definitions import AbiDef, ActionDef, FieldDef, StructDef
from abi.errors import AbiDecodeError
from abi.serializer import AbiSerializer

SYSTEM_ACCOUNT = "eosio"
NEWACCOUNT = "newaccount"
SETABI = "setabi"


def _struct(name: str, *fields: tuple[str, str], base: str = "") -> StructDef:
    return StructDef(
        name=name,
        base=base,
        fields=[FieldDef(name=field_name, type=field_type) for field_name, field_type in fields],
    )


ABI_DEF_LAYOUT = AbiDef(
    version="eosio::abi/1.1",
    structs=[
        _struct("type_def", ("new_type_name", "string"), ("type", "string")),
        _struct("field_def", ("name", "string"), ("type", "string")),
        _struct("struct_def", ("name", "string"), ("base", "string"), ("fields", "field_def[]")),
        _struct("action_def", ("name", "name"), ("type", "string"), ("ricardian_contract", "string")),
        _struct(
            "table_def",
            ("name", "name"),
            ("index_type", "string"),
            ("key_names", "string[]"),
            ("key_types", "string[]"),
            ("type", "string"),
        ),
        _struct("clause_pair", ("id", "string"), ("body", "string")),
        _struct("error_message", ("error_code", "uint64"), ("error_msg", "string")),
        _struct("extensions_entry", ("tag", "uint16"), ("value", "bytes")),
        _struct("variant_def", ("name", "string"), ("types", "string[]")),
        _struct(
            "abi_def",
            ("version", "string"),
            ("types", "type_def[]"),
            ("structs", "struct_def[]"),
            ("actions", "action_def[]"),
            ("tables", "table_def[]"),
            ("ricardian_clauses", "clause_pair[]"),
            ("error_messages", "error_message[]"),
            ("abi_extensions", "extensions_entry[]"),
            ("variants", "variant_def[]$"),
        ),
    ],
)

SYSTEM_ABI = AbiDef(
    version="eosio::abi/1.1",
    structs=[
        _struct("permission_level", ("actor", "name"), ("permission", "name")),
        _struct("key_weight", ("key", "public_key"), ("weight", "uint16")),
        _struct("permission_level_weight", ("permission", "permission_level"), ("weight", "uint16")),
        _struct("wait_weight", ("wait_sec", "uint32"), ("weight", "uint16")),
        _struct(
            "authority",
            ("threshold", "uint32"),
            ("keys", "key_weight[]"),
            ("accounts", "permission_level_weight[]"),
            ("waits", "wait_weight[]"),
        ),
        _struct(
            NEWACCOUNT,
            ("creator", "name"),
            ("name", "name"),
            ("owner", "authority"),
            ("active", "authority"),
        ),
        _struct(SETABI, ("account", "name"), ("abi", "bytes")),
    ],
    actions=[
        ActionDef(name=NEWACCOUNT, type=NEWACCOUNT),
        ActionDef(name=SETABI, type=SETABI),
    ],
)

_ABI_DEF_SERIALIZER = AbiSerializer(ABI_DEF_LAYOUT)
_SYSTEM_SERIALIZER = AbiSerializer(SYSTEM_ABI)


def unpack_abi_def(data: bytes) -> AbiDef:
    """Unpack a binary ``abi_def``; raise ``AbiDecodeError`` on any mismatch."""
    raw = _ABI_DEF_SERIALIZER.binary_to_variant("abi_def", data)
    if raw.get("variants") is None:
        raw.pop("variants", None)
    try:
        return AbiDef.model_validate(raw)
    except ValidationError as exc:
        raise AbiDecodeError(f"abi_def does not validate: {exc}") from None


def pack_abi_def(abi: AbiDef) -> bytes:
    """Pack an ``AbiDef`` into its binary form."""
    document = abi.to_document()
    if not document["variants"]:
        document.pop("variants")
    return _ABI_DEF_SERIALIZER.variant_to_binary("abi_def", document)


def unpack_newaccount(data: bytes) -> dict[str, Any]:
    """Decode a native ``newaccount`` payload."""
    return _SYSTEM_SERIALIZER.binary_to_variant(NEWACCOUNT, data)


def unpack_setabi(data: bytes) -> tuple[str, bytes]:
    """Decode a native ``setabi`` payload into the target account and raw ABI bytes."""
    value = _SYSTEM_SERIALIZER.binary_to_variant(SETABI, data)
    return value["account"], bytes.fromhex(value["abi"])


def pack_system_action(action_name: str, value: dict[str, Any]) -> bytes:
    """Pack a native action payload; used by tooling and tests."""
    return _SYSTEM_SERIALIZER.variant_to_binary(action_name, value)
