"""
Keys -- 32-byte identifiers for actors and records.

Responsibility:
    Value types for the two kinds of identifiers the kernel handles:
    actor identifiers (public keys whose control is proven elsewhere) and
    derived record addresses.  Both render as lowercase hex.

Architecture position:
    Kernel > Domain -- pure value objects, zero I/O.

Invariants enforced:
    - Exactly 32 bytes.  ``ActorId`` and ``RecordAddress`` never compare
      equal to each other even when their bytes match.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass

KEY_SIZE = 32


@dataclass(frozen=True)
class Key32:
    """Immutable 32-byte identifier."""

    raw: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.raw, bytes):
            raise TypeError(f"{type(self).__name__} requires bytes, got {type(self.raw).__name__}")
        if len(self.raw) != KEY_SIZE:
            raise ValueError(
                f"{type(self).__name__} must be {KEY_SIZE} bytes, got {len(self.raw)}"
            )

    @classmethod
    def from_hex(cls, value: str):
        """Parse a 64-character hex string."""
        return cls(bytes.fromhex(value))

    @classmethod
    def generate(cls):
        """Random key. For tests, scripts and fixtures."""
        return cls(secrets.token_bytes(KEY_SIZE))

    @property
    def hex(self) -> str:
        return self.raw.hex()

    def __bytes__(self) -> bytes:
        return self.raw

    def __str__(self) -> str:
        return self.raw.hex()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.raw.hex()[:12]}...)"


class ActorId(Key32):
    """Public identifier of an actor (administrator, employee wallet, bot)."""


class RecordAddress(Key32):
    """Derived address of a stored record."""
