"""Error types raised by the ABI codec."""

from __future__ import annotations


class AbiError(ValueError):
    """Base class for ABI codec failures."""


class AbiNameError(AbiError):
    """Raised when a string cannot be encoded as an account or action name."""


class AbiValidationError(AbiError):
    """Raised when an ABI definition is internally inconsistent."""


class AbiDecodeError(AbiError):
    """Raised when binary data does not match the requested type."""


class AbiEncodeError(AbiError):
    """Raised when a structured value cannot be packed into the requested type."""
