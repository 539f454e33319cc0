"""Pydantic models describing an ABI definition document."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class _AbiModel(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class TypeDef(_AbiModel):
    """Alias of one type name to another."""

    new_type_name: str
    type: str


class FieldDef(_AbiModel):
    """One named, typed field of a struct."""

    name: str
    type: str


class StructDef(_AbiModel):
    """Struct layout with an optional base struct."""

    name: str
    base: str = ""
    fields: list[FieldDef] = Field(default_factory=list)


class ActionDef(_AbiModel):
    """Binding from an action name to the type of its payload."""

    name: str
    type: str
    ricardian_contract: str = ""


class TableDef(_AbiModel):
    """Contract table declaration."""

    name: str
    index_type: str = ""
    key_names: list[str] = Field(default_factory=list)
    key_types: list[str] = Field(default_factory=list)
    type: str


class ClausePair(_AbiModel):
    """Ricardian clause identifier and body."""

    id: str
    body: str = ""


class ErrorMessage(_AbiModel):
    """Contract error code and message."""

    error_code: int
    error_msg: str = ""


class AbiExtension(_AbiModel):
    """Opaque extension entry, kept as a tag and hex payload."""

    tag: int
    value: str = ""


class VariantDef(_AbiModel):
    """Tagged union over a list of types."""

    name: str
    types: list[str] = Field(default_factory=list)


class AbiDef(_AbiModel):
    """Complete ABI for one account."""

    version: str = "eosio::abi/1.1"
    types: list[TypeDef] = Field(default_factory=list)
    structs: list[StructDef] = Field(default_factory=list)
    actions: list[ActionDef] = Field(default_factory=list)
    tables: list[TableDef] = Field(default_factory=list)
    ricardian_clauses: list[ClausePair] = Field(default_factory=list)
    error_messages: list[ErrorMessage] = Field(default_factory=list)
    abi_extensions: list[AbiExtension] = Field(default_factory=list)
    variants: list[VariantDef] = Field(default_factory=list)

    def to_document(self) -> dict:
        """Return the JSON-compatible form stored on account records."""
        return self.model_dump(mode="json")
