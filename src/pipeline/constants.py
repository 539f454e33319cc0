"""Shared constants for the filter pipeline."""

from __future__ import annotations

from abi.system import SYSTEM_ACCOUNT

ROOT_ACCOUNT = SYSTEM_ACCOUNT
"""Privileged account seeded at initialization and owner of native actions."""

ONBLOCK = "onblock"
"""Implicit per-block action that the system ABI does not declare."""

QUEUE_WARNING_RATIO = 0.75
"""Fraction of the queue target size above which a drained batch is logged as a warning."""
