"""Encoding helpers for 64-bit base-32 account and action names."""

from __future__ import annotations

from abi.errors import AbiNameError

NAME_CHARSET = ".12345abcdefghijklmnopqrstuvwxyz"
"""Character table; the index of a character is its 5-bit symbol value."""

MAX_NAME_LENGTH = 13

_SYMBOLS = {char: index for index, char in enumerate(NAME_CHARSET)}


def _char_to_symbol(char: str) -> int:
    """Return the symbol value for one name character."""
    try:
        return _SYMBOLS[char]
    except KeyError:
        raise AbiNameError(f"invalid character in name: {char!r}") from None


def string_to_name(value: str) -> int:
    """Encode a name string into its 64-bit integer form.

    The first twelve characters use five bits each, most significant first.
    A thirteenth character may only use the low four bits.
    """
    if len(value) > MAX_NAME_LENGTH:
        raise AbiNameError(f"name is longer than {MAX_NAME_LENGTH} characters: {value!r}")

    result = 0
    for index, char in enumerate(value[:12]):
        result |= (_char_to_symbol(char) & 0x1F) << (64 - 5 * (index + 1))

    if len(value) == MAX_NAME_LENGTH:
        symbol = _char_to_symbol(value[12])
        if symbol > 0x0F:
            raise AbiNameError(f"thirteenth character of name must be in [.1-5a-j]: {value!r}")
        result |= symbol

    return result


def name_to_string(value: int) -> str:
    """Decode a 64-bit integer into its name string, dropping trailing dots."""
    if value < 0 or value >= 1 << 64:
        raise AbiNameError(f"name value out of range: {value}")

    chars = ["."] * MAX_NAME_LENGTH
    remaining = value
    for index in range(MAX_NAME_LENGTH):
        if index == 0:
            chars[12 - index] = NAME_CHARSET[remaining & 0x0F]
            remaining >>= 4
        else:
            chars[12 - index] = NAME_CHARSET[remaining & 0x1F]
            remaining >>= 5
    return "".join(chars).rstrip(".")


def is_valid_name(value: str) -> bool:
    """Return True when the string survives a name encode/decode round trip."""
    try:
        return name_to_string(string_to_name(value)) == value
    except AbiNameError:
        return False
