"""ABI definitions and the binary codec used to decode action payloads."""

from abi.definitions import AbiDef, ActionDef, FieldDef, StructDef, TypeDef, VariantDef
from abi.errors import (
    AbiDecodeError,
    AbiEncodeError,
    AbiError,
    AbiNameError,
    AbiValidationError,
)
from abi.names import name_to_string, string_to_name
from abi.serializer import AbiResolver, AbiSerializer, action_data_to_variant

__all__ = [
    "AbiDecodeError",
    "AbiDef",
    "AbiEncodeError",
    "AbiError",
    "AbiNameError",
    "AbiResolver",
    "AbiSerializer",
    "AbiValidationError",
    "ActionDef",
    "FieldDef",
    "StructDef",
    "TypeDef",
    "VariantDef",
    "action_data_to_variant",
    "name_to_string",
    "string_to_name",
]
