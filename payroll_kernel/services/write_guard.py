"""
WriteGuard -- enforce an instruction's declared writable set.

Responsibility:
    Holds the writable addresses of the instruction currently being
    processed.  RecordStore and ValueLedger consult it before every
    mutation.

Invariants enforced:
    - While an instruction is active, any write to an address (record
      slot or wallet) it did not declare writable raises
      UndeclaredWriteError.
    - Outside an instruction the guard is inactive and permits writes
      (setup, funding, maintenance scripts).
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from payroll_kernel.domain.instructions import Instruction
from payroll_kernel.domain.keys import Key32
from payroll_kernel.exceptions import UndeclaredWriteError


class WriteGuard:
    def __init__(self) -> None:
        self._writable: frozenset[bytes] | None = None
        self._operation: str | None = None

    @property
    def active(self) -> bool:
        return self._writable is not None

    @property
    def operation(self) -> str | None:
        return self._operation

    @contextmanager
    def scope(self, instruction: Instruction) -> Iterator[WriteGuard]:
        """Activate the guard for the duration of one instruction."""
        previous = (self._writable, self._operation)
        self._writable = instruction.writable_addresses
        self._operation = instruction.operation
        try:
            yield self
        finally:
            self._writable, self._operation = previous

    def check(self, address: Key32) -> None:
        if self._writable is None:
            return
        if address.raw not in self._writable:
            raise UndeclaredWriteError(address.hex, self._operation)
