"""Binary codec driven by an ABI definition.

``AbiSerializer`` turns packed action payloads into JSON-compatible values and
back. Values follow the usual chain JSON conventions: names and symbols are
strings, byte strings and checksums are lowercase hex, 128-bit integers are
decimal strings, and time types are ISO-8601 strings in UTC.
"""

from __future__ import annotations

import struct
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping

from abi.definitions import AbiDef, StructDef
from abi.errors import AbiDecodeError, AbiEncodeError, AbiNameError, AbiValidationError
from abi.names import name_to_string, string_to_name

AbiResolver = Callable[[str], "AbiSerializer | None"]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_BLOCK_TIMESTAMP_EPOCH_MS = 946684800000
_BLOCK_INTERVAL_MS = 500
_KEY_TYPES = ("K1", "R1")


class _Reader:
    """Cursor over an immutable byte buffer."""

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def read(self, size: int) -> bytes:
        if size < 0 or self._pos + size > len(self._data):
            raise AbiDecodeError(
                f"stream ended: wanted {size} bytes at offset {self._pos} of {len(self._data)}"
            )
        chunk = self._data[self._pos : self._pos + size]
        self._pos += size
        return chunk

    def unpack(self, fmt: str) -> Any:
        return struct.unpack(fmt, self.read(struct.calcsize(fmt)))[0]

    def read_varuint32(self) -> int:
        result = 0
        shift = 0
        while True:
            byte = self.read(1)[0]
            result |= (byte & 0x7F) << shift
            if not byte & 0x80:
                break
            shift += 7
            if shift >= 35:
                raise AbiDecodeError("varuint32 is longer than 5 bytes")
        if result > 0xFFFFFFFF:
            raise AbiDecodeError("varuint32 out of range")
        return result


class _Writer:
    """Append-only byte buffer."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def write(self, chunk: bytes) -> None:
        self._buffer.extend(chunk)

    def pack(self, fmt: str, value: Any) -> None:
        try:
            self._buffer.extend(struct.pack(fmt, value))
        except (struct.error, TypeError) as exc:
            raise AbiEncodeError(f"cannot pack {value!r} as {fmt}: {exc}") from None

    def write_varuint32(self, value: int) -> None:
        if not 0 <= value <= 0xFFFFFFFF:
            raise AbiEncodeError(f"varuint32 out of range: {value}")
        while True:
            byte = value & 0x7F
            value >>= 7
            if value:
                self._buffer.append(byte | 0x80)
            else:
                self._buffer.append(byte)
                return

    def getvalue(self) -> bytes:
        return bytes(self._buffer)


def _format_time_ms(milliseconds: int) -> str:
    try:
        moment = _EPOCH + timedelta(milliseconds=milliseconds)
    except OverflowError:
        raise AbiDecodeError(f"time value out of range: {milliseconds} ms") from None
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}"


def _parse_time(value: str) -> datetime:
    if not isinstance(value, str):
        raise AbiEncodeError(f"time value must be a string: {value!r}")
    text = value.rstrip("Z")
    for fmt in ("%Y-%m-%dT%H:%M:%S.%f", "%Y-%m-%dT%H:%M:%S"):
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    raise AbiEncodeError(f"invalid time value: {value!r}")


def _millis_since_epoch(value: str) -> int:
    delta = _parse_time(value) - _EPOCH
    return (delta.days * 86400 + delta.seconds) * 1000 + delta.microseconds // 1000


def _symbol_code_to_string(value: int) -> str:
    chars = []
    while value:
        chars.append(chr(value & 0xFF))
        value >>= 8
    return "".join(chars)


def _symbol_code_from_string(code: str) -> int:
    if not 0 < len(code) <= 7 or not code.isascii() or not code.isupper() or not code.isalpha():
        raise AbiEncodeError(f"invalid symbol code: {code!r}")
    result = 0
    for index, char in enumerate(code):
        result |= ord(char) << (8 * index)
    return result


def _read_symbol(reader: _Reader) -> tuple[int, str]:
    raw = reader.unpack("<Q")
    return raw & 0xFF, _symbol_code_to_string(raw >> 8)


def _write_symbol(writer: _Writer, precision: int, code: str) -> None:
    if not 0 <= precision <= 18:
        raise AbiEncodeError(f"symbol precision out of range: {precision}")
    writer.pack("<Q", precision | (_symbol_code_from_string(code) << 8))


def _format_asset(amount: int, precision: int, code: str) -> str:
    sign = "-" if amount < 0 else ""
    digits = str(abs(amount)).rjust(precision + 1, "0")
    if precision:
        digits = f"{digits[:-precision]}.{digits[-precision:]}"
    return f"{sign}{digits} {code}"


def _parse_asset(value: str) -> tuple[int, int, str]:
    try:
        amount_text, code = value.strip().split(" ")
    except (AttributeError, ValueError):
        raise AbiEncodeError(f"invalid asset: {value!r}") from None
    negative = amount_text.startswith("-")
    amount_text = amount_text.lstrip("-")
    whole, _, fraction = amount_text.partition(".")
    if not (whole + fraction).isdigit():
        raise AbiEncodeError(f"invalid asset amount: {value!r}")
    amount = int(whole + fraction)
    return (-amount if negative else amount), len(fraction), code


def _read_bool(reader: _Reader) -> bool:
    raw = reader.unpack("<B")
    if raw > 1:
        raise AbiDecodeError(f"invalid bool byte: {raw}")
    return raw == 1


def _read_name(reader: _Reader) -> str:
    return name_to_string(reader.unpack("<Q"))


def _write_name(writer: _Writer, value: Any) -> None:
    if not isinstance(value, str):
        raise AbiEncodeError(f"name must be a string: {value!r}")
    try:
        writer.pack("<Q", string_to_name(value))
    except AbiNameError as exc:
        raise AbiEncodeError(str(exc)) from None


def _read_bytes(reader: _Reader) -> str:
    return reader.read(reader.read_varuint32()).hex()


def _write_bytes(writer: _Writer, value: Any) -> None:
    if isinstance(value, str):
        try:
            value = bytes.fromhex(value)
        except ValueError:
            raise AbiEncodeError(f"bytes must be hex encoded: {value!r}") from None
    if not isinstance(value, (bytes, bytearray)):
        raise AbiEncodeError(f"bytes must be hex or bytes: {value!r}")
    writer.write_varuint32(len(value))
    writer.write(bytes(value))


def _read_string(reader: _Reader) -> str:
    raw = reader.read(reader.read_varuint32())
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise AbiDecodeError(f"string is not valid utf-8: {exc}") from None


def _write_string(writer: _Writer, value: Any) -> None:
    if not isinstance(value, str):
        raise AbiEncodeError(f"string expected: {value!r}")
    raw = value.encode("utf-8")
    writer.write_varuint32(len(raw))
    writer.write(raw)


def _read_int128(reader: _Reader, signed: bool) -> str:
    return str(int.from_bytes(reader.read(16), "little", signed=signed))


def _write_int128(writer: _Writer, value: Any, signed: bool) -> None:
    try:
        writer.write(int(value).to_bytes(16, "little", signed=signed))
    except (OverflowError, TypeError, ValueError):
        raise AbiEncodeError(f"value out of range for 128-bit integer: {value!r}") from None


def _read_varint32(reader: _Reader) -> int:
    raw = reader.read_varuint32()
    return (raw >> 1) ^ -(raw & 1)


def _write_varint32(writer: _Writer, value: Any) -> None:
    value = int(value)
    if not -(1 << 31) <= value < 1 << 31:
        raise AbiEncodeError(f"varint32 out of range: {value}")
    writer.write_varuint32(((value << 1) ^ (value >> 31)) & 0xFFFFFFFF)


def _fixed_hex_codec(size: int):
    def read(reader: _Reader) -> str:
        return reader.read(size).hex()

    def write(writer: _Writer, value: Any) -> None:
        try:
            raw = bytes.fromhex(value)
        except (TypeError, ValueError):
            raise AbiEncodeError(f"checksum must be hex encoded: {value!r}") from None
        if len(raw) != size:
            raise AbiEncodeError(f"checksum must be {size} bytes, got {len(raw)}")
        writer.write(raw)

    return read, write


def _prefixed_key_codec(prefix: str, size: int):
    def read(reader: _Reader) -> str:
        key_type = reader.unpack("<B")
        if key_type >= len(_KEY_TYPES):
            raise AbiDecodeError(f"unsupported {prefix} key type: {key_type}")
        return f"{prefix}_{_KEY_TYPES[key_type]}_{reader.read(size).hex()}"

    def write(writer: _Writer, value: Any) -> None:
        try:
            head, key_type, body = str(value).split("_", 2)
            raw = bytes.fromhex(body)
        except ValueError:
            raise AbiEncodeError(f"invalid {prefix} value: {value!r}") from None
        if head != prefix or key_type not in _KEY_TYPES or len(raw) != size:
            raise AbiEncodeError(f"invalid {prefix} value: {value!r}")
        writer.pack("<B", _KEY_TYPES.index(key_type))
        writer.write(raw)

    return read, write


def _read_asset(reader: _Reader) -> str:
    amount = reader.unpack("<q")
    precision, code = _read_symbol(reader)
    return _format_asset(amount, precision, code)


def _write_asset(writer: _Writer, value: Any) -> None:
    amount, precision, code = _parse_asset(value)
    writer.pack("<q", amount)
    _write_symbol(writer, precision, code)


def _write_symbol_value(writer: _Writer, value: Any) -> None:
    try:
        precision_text, code = str(value).split(",")
        precision = int(precision_text)
    except ValueError:
        raise AbiEncodeError(f"invalid symbol: {value!r}") from None
    _write_symbol(writer, precision, code)


def _read_extended_asset(reader: _Reader) -> dict[str, str]:
    return {"quantity": _read_asset(reader), "contract": _read_name(reader)}


def _write_extended_asset(writer: _Writer, value: Any) -> None:
    if not isinstance(value, Mapping):
        raise AbiEncodeError(f"extended_asset must be an object: {value!r}")
    _write_asset(writer, value.get("quantity"))
    _write_name(writer, value.get("contract"))


def _struct_codec(fmt: str):
    def read(reader: _Reader) -> Any:
        return reader.unpack(fmt)

    def write(writer: _Writer, value: Any) -> None:
        if isinstance(value, bool):
            raise AbiEncodeError(f"numeric value expected: {value!r}")
        convert = float if fmt in ("<f", "<d") else int
        try:
            number = convert(value)
        except (TypeError, ValueError):
            raise AbiEncodeError(f"numeric value expected: {value!r}") from None
        writer.pack(fmt, number)

    return read, write


def _write_bool(writer: _Writer, value: Any) -> None:
    if not isinstance(value, bool):
        raise AbiEncodeError(f"bool expected: {value!r}")
    writer.pack("<B", int(value))


BUILTIN_TYPES: dict[str, tuple[Callable[[_Reader], Any], Callable[[_Writer, Any], None]]] = {
    "bool": (_read_bool, _write_bool),
    "int8": _struct_codec("<b"),
    "uint8": _struct_codec("<B"),
    "int16": _struct_codec("<h"),
    "uint16": _struct_codec("<H"),
    "int32": _struct_codec("<i"),
    "uint32": _struct_codec("<I"),
    "int64": _struct_codec("<q"),
    "uint64": _struct_codec("<Q"),
    "int128": (
        lambda reader: _read_int128(reader, True),
        lambda writer, value: _write_int128(writer, value, True),
    ),
    "uint128": (
        lambda reader: _read_int128(reader, False),
        lambda writer, value: _write_int128(writer, value, False),
    ),
    "varint32": (_read_varint32, _write_varint32),
    "varuint32": (
        lambda reader: reader.read_varuint32(),
        lambda writer, value: writer.write_varuint32(int(value)),
    ),
    "float32": _struct_codec("<f"),
    "float64": _struct_codec("<d"),
    "time_point": (
        lambda reader: _format_time_ms(reader.unpack("<q") // 1000),
        lambda writer, value: writer.pack("<q", _millis_since_epoch(value) * 1000),
    ),
    "time_point_sec": (
        lambda reader: _format_time_ms(reader.unpack("<I") * 1000)[:-4],
        lambda writer, value: writer.pack("<I", _millis_since_epoch(value) // 1000),
    ),
    "block_timestamp_type": (
        lambda reader: _format_time_ms(
            reader.unpack("<I") * _BLOCK_INTERVAL_MS + _BLOCK_TIMESTAMP_EPOCH_MS
        ),
        lambda writer, value: writer.pack(
            "<I",
            (_millis_since_epoch(value) - _BLOCK_TIMESTAMP_EPOCH_MS) // _BLOCK_INTERVAL_MS,
        ),
    ),
    "name": (_read_name, _write_name),
    "bytes": (_read_bytes, _write_bytes),
    "string": (_read_string, _write_string),
    "checksum160": _fixed_hex_codec(20),
    "checksum256": _fixed_hex_codec(32),
    "checksum512": _fixed_hex_codec(64),
    "public_key": _prefixed_key_codec("PUB", 33),
    "signature": _prefixed_key_codec("SIG", 65),
    "symbol": (
        lambda reader: "{},{}".format(*_read_symbol(reader)),
        _write_symbol_value,
    ),
    "symbol_code": (
        lambda reader: _symbol_code_to_string(reader.unpack("<Q")),
        lambda writer, value: writer.pack("<Q", _symbol_code_from_string(str(value))),
    ),
    "asset": (_read_asset, _write_asset),
    "extended_asset": (_read_extended_asset, _write_extended_asset),
}


def _strip_modifiers(type_name: str) -> str:
    """Drop array, optional, and binary-extension suffixes from a type name."""
    while True:
        if type_name.endswith("[]"):
            type_name = type_name[:-2]
        elif type_name.endswith("?") or type_name.endswith("$"):
            type_name = type_name[:-1]
        else:
            return type_name


class AbiSerializer:
    """Pack and unpack values according to one account's ABI."""

    def __init__(self, abi: AbiDef) -> None:
        self.abi = abi
        self._typedefs: dict[str, str] = {}
        self._structs: dict[str, StructDef] = {}
        self._variants: dict[str, tuple[str, ...]] = {}
        self._actions: dict[str, str] = {}
        self._load(abi)
        self._validate()

    def _load(self, abi: AbiDef) -> None:
        for typedef in abi.types:
            self._claim(typedef.new_type_name)
            self._typedefs[typedef.new_type_name] = typedef.type
        for struct_def in abi.structs:
            self._claim(struct_def.name)
            self._structs[struct_def.name] = struct_def
        for variant in abi.variants:
            self._claim(variant.name)
            self._variants[variant.name] = tuple(variant.types)
        for action in abi.actions:
            if action.name in self._actions:
                raise AbiValidationError(f"duplicate action definition: {action.name}")
            self._actions[action.name] = action.type

    def _claim(self, type_name: str) -> None:
        if (
            type_name in BUILTIN_TYPES
            or type_name in self._typedefs
            or type_name in self._structs
            or type_name in self._variants
        ):
            raise AbiValidationError(f"duplicate type definition: {type_name}")

    def _validate(self) -> None:
        for alias in self._typedefs:
            self._check_typedef_chain(alias)
            if not self.is_type(self._typedefs[alias]):
                raise AbiValidationError(f"typedef {alias} refers to unknown type")
        for struct_def in self._structs.values():
            self._check_base_chain(struct_def)
            for field in struct_def.fields:
                if not self.is_type(field.type):
                    raise AbiValidationError(
                        f"field {struct_def.name}.{field.name} has unknown type {field.type}"
                    )
        for name, types in self._variants.items():
            for member in types:
                if not self.is_type(member):
                    raise AbiValidationError(f"variant {name} has unknown type {member}")
        for name, type_name in self._actions.items():
            if not self.is_type(type_name):
                raise AbiValidationError(f"action {name} has unknown type {type_name}")

    def _check_typedef_chain(self, alias: str) -> None:
        seen = {alias}
        current = _strip_modifiers(self._typedefs[alias])
        while current in self._typedefs:
            if current in seen:
                raise AbiValidationError(f"circular typedef: {alias}")
            seen.add(current)
            current = _strip_modifiers(self._typedefs[current])

    def _check_base_chain(self, struct_def: StructDef) -> None:
        seen = {struct_def.name}
        current = struct_def
        while current.base:
            base_name = self.resolve_type(current.base)
            if base_name not in self._structs:
                raise AbiValidationError(f"struct {current.name} has unknown base {current.base}")
            if base_name in seen:
                raise AbiValidationError(f"circular struct base: {struct_def.name}")
            seen.add(base_name)
            current = self._structs[base_name]

    def resolve_type(self, type_name: str) -> str:
        """Follow typedefs until a non-alias type name is reached."""
        visited = 0
        while type_name in self._typedefs:
            type_name = self._typedefs[type_name]
            visited += 1
            if visited > len(self._typedefs):
                raise AbiValidationError(f"circular typedef: {type_name}")
        return type_name

    def is_type(self, type_name: str) -> bool:
        """Return True when the type name (with modifiers) is known."""
        seen: set[str] = set()
        current = _strip_modifiers(type_name)
        while current in self._typedefs:
            if current in seen:
                return False
            seen.add(current)
            current = _strip_modifiers(self._typedefs[current])
        return current in BUILTIN_TYPES or current in self._structs or current in self._variants

    def get_action_type(self, action_name: str) -> str | None:
        """Return the payload type declared for an action, if any."""
        return self._actions.get(action_name)

    def binary_to_variant(self, type_name: str, data: bytes) -> Any:
        """Decode ``data`` as ``type_name``; every byte must be consumed."""
        reader = _Reader(data)
        try:
            value = self._read(type_name, reader)
        except RecursionError:
            raise AbiDecodeError(f"recursion limit reached while decoding {type_name}") from None
        if reader.remaining:
            raise AbiDecodeError(f"{reader.remaining} trailing bytes after {type_name}")
        return value

    def variant_to_binary(self, type_name: str, value: Any) -> bytes:
        """Encode a JSON-compatible value as ``type_name``."""
        writer = _Writer()
        self._write(type_name, value, writer)
        return writer.getvalue()

    def _read(self, type_name: str, reader: _Reader) -> Any:
        resolved = self.resolve_type(type_name)
        if resolved.endswith("[]"):
            count = reader.read_varuint32()
            if count > reader.remaining:
                raise AbiDecodeError(f"array length {count} exceeds remaining data")
            return [self._read(resolved[:-2], reader) for _ in range(count)]
        if resolved.endswith("?"):
            present = _read_bool(reader)
            return self._read(resolved[:-1], reader) if present else None
        if resolved in BUILTIN_TYPES:
            return BUILTIN_TYPES[resolved][0](reader)
        if resolved in self._variants:
            members = self._variants[resolved]
            index = reader.read_varuint32()
            if index >= len(members):
                raise AbiDecodeError(f"variant index {index} out of range for {resolved}")
            return [members[index], self._read(members[index], reader)]
        if resolved in self._structs:
            return self._read_struct(self._structs[resolved], reader)
        raise AbiDecodeError(f"unknown type: {type_name}")

    def _read_struct(self, struct_def: StructDef, reader: _Reader) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if struct_def.base:
            result.update(self._read_struct(self._structs[self.resolve_type(struct_def.base)], reader))
        for field in struct_def.fields:
            field_type = field.type
            if field_type.endswith("$"):
                if reader.remaining == 0:
                    break
                field_type = field_type[:-1]
            result[field.name] = self._read(field_type, reader)
        return result

    def _write(self, type_name: str, value: Any, writer: _Writer) -> None:
        resolved = self.resolve_type(type_name)
        if resolved.endswith("[]"):
            if not isinstance(value, (list, tuple)):
                raise AbiEncodeError(f"array expected for {type_name}: {value!r}")
            writer.write_varuint32(len(value))
            for item in value:
                self._write(resolved[:-2], item, writer)
            return
        if resolved.endswith("?"):
            writer.pack("<B", 0 if value is None else 1)
            if value is not None:
                self._write(resolved[:-1], value, writer)
            return
        if resolved in BUILTIN_TYPES:
            BUILTIN_TYPES[resolved][1](writer, value)
            return
        if resolved in self._variants:
            members = self._variants[resolved]
            if not isinstance(value, (list, tuple)) or len(value) != 2 or value[0] not in members:
                raise AbiEncodeError(f"variant {resolved} expects [type, value]: {value!r}")
            writer.write_varuint32(members.index(value[0]))
            self._write(value[0], value[1], writer)
            return
        if resolved in self._structs:
            if not isinstance(value, Mapping):
                raise AbiEncodeError(f"object expected for {resolved}: {value!r}")
            self._write_struct(self._structs[resolved], value, writer)
            return
        raise AbiEncodeError(f"unknown type: {type_name}")

    def _write_struct(
        self,
        struct_def: StructDef,
        value: Mapping[str, Any],
        writer: _Writer,
        extensions_ended: bool = False,
    ) -> bool:
        if struct_def.base:
            base = self._structs[self.resolve_type(struct_def.base)]
            extensions_ended = self._write_struct(base, value, writer, extensions_ended)
        for field in struct_def.fields:
            field_type = field.type
            if field_type.endswith("$"):
                if field.name not in value:
                    extensions_ended = True
                    continue
                if extensions_ended:
                    raise AbiEncodeError(
                        f"{struct_def.name}.{field.name} follows an omitted binary extension"
                    )
                field_type = field_type[:-1]
            elif field.name not in value:
                raise AbiEncodeError(f"missing field {struct_def.name}.{field.name}")
            self._write(field_type, value[field.name], writer)
        return extensions_ended


def action_data_to_variant(
    account: str,
    action_name: str,
    data: bytes,
    resolver: AbiResolver,
) -> Any:
    """Decode action data with the ABI the resolver returns for ``account``.

    Raises ``AbiDecodeError`` when no ABI is available or the ABI does not
    declare the action.
    """
    serializer = resolver(account)
    if serializer is None:
        raise AbiDecodeError(f"no abi available for {account}")
    action_type = serializer.get_action_type(action_name)
    if action_type is None:
        raise AbiDecodeError(f"abi for {account} does not declare action {action_name}")
    return serializer.binary_to_variant(action_type, data)
