"""Unit tests for the base-32 name codec."""

import pytest

from abi import AbiNameError, name_to_string, string_to_name
from abi.names import is_valid_name


def test_root_account_encodes_to_known_value() -> None:
    """The root account name has a well-known integer value."""
    assert string_to_name("eosio") == 6138663577826885632
    assert name_to_string(6138663577826885632) == "eosio"


@pytest.mark.parametrize("value", ["alice", "bob", "eosio.token", "a1b2c3d4e5", "zzzzzzzzzzzzj", ""])
def test_names_survive_encoding(value: str) -> None:
    """Valid names decode back to the same string."""
    assert name_to_string(string_to_name(value)) == value


def test_invalid_character_raises() -> None:
    """Uppercase letters are outside the name charset."""
    with pytest.raises(AbiNameError, match="invalid character"):
        string_to_name("Alice")


def test_overlong_name_raises() -> None:
    """Names are limited to thirteen characters."""
    with pytest.raises(AbiNameError, match="longer than"):
        string_to_name("abcdefghijklmn")


def test_thirteenth_character_is_restricted() -> None:
    """Only the first sixteen symbols fit in the last four bits."""
    with pytest.raises(AbiNameError, match="thirteenth"):
        string_to_name("aaaaaaaaaaaaz")


def test_is_valid_name() -> None:
    """Trailing dots do not survive a round trip."""
    assert is_valid_name("alice")
    assert not is_valid_name("alice.")
    assert not is_valid_name("Bad")
