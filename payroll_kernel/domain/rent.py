"""
Storage deposits.

A record slot must hold ``(capacity + overhead_bytes) * per_byte`` units of
attached value for as long as it exists.  The payer funds the deposit on
create, tops it up when a resize grows the slot and is refunded when a
resize shrinks it.  Reclaim sweeps whatever the slot holds.
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_PER_BYTE = 6_960
DEFAULT_OVERHEAD_BYTES = 128


@dataclass(frozen=True)
class RentSchedule:
    per_byte: int = DEFAULT_PER_BYTE
    overhead_bytes: int = DEFAULT_OVERHEAD_BYTES

    def __post_init__(self) -> None:
        if self.per_byte < 0 or self.overhead_bytes < 0:
            raise ValueError("Rent parameters must be non-negative")

    def minimum_balance(self, capacity: int) -> int:
        return (capacity + self.overhead_bytes) * self.per_byte
