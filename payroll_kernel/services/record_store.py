"""
RecordStore -- addressed, fixed-capacity, deposit-backed record blocks.

Responsibility:
    Persists Payroll and Employee records as encoded blocks in RecordSlot
    rows.  Supports create-at-address, read, in-place update, explicit
    resize and reclaim (sweep + delete).

Architecture position:
    Kernel > Services -- imperative shell.  Encoding is delegated to
    ``domain.layouts``; value movement to ValueLedger.

Invariants enforced:
    - Create-exclusivity: one record per address (RecordAlreadyExistsError).
    - Creation allocates the kind's maximum capacity and takes a storage
      deposit of ``rent.minimum_balance(capacity)`` from the payer.
    - A block never exceeds its slot; nothing is truncated
      (CapacityExceededError).
    - Resize funds growth from the payer and refunds shrinkage to it.
    - Reclaim sweeps the slot's whole balance to the recipient and deletes
      the slot only once the balance is exactly zero.
    - A Payroll's admin never changes.
    - All mutations go through the WriteGuard.

Failure modes:
    - RecordNotFoundError, RecordAlreadyExistsError, CapacityExceededError,
      RecordKindMismatchError, UndeclaredWriteError, InsufficientFundsError,
      ReclaimError, ImmutabilityViolationError.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, Union

from sqlalchemy import select
from sqlalchemy.orm import Session

from payroll_kernel.domain import layouts
from payroll_kernel.domain.keys import ActorId, RecordAddress
from payroll_kernel.domain.records import EmployeeRecord, PayrollRecord, RecordKind
from payroll_kernel.domain.rent import RentSchedule
from payroll_kernel.exceptions import (
    CapacityExceededError,
    ImmutabilityViolationError,
    RecordAlreadyExistsError,
    RecordKindMismatchError,
    RecordNotFoundError,
    ReclaimError,
)
from payroll_kernel.logging_config import get_logger
from payroll_kernel.models.record_slot import RecordSlot
from payroll_kernel.services.base import BaseService
from payroll_kernel.services.value_ledger import ValueLedger
from payroll_kernel.services.write_guard import WriteGuard

logger = get_logger("services.record_store")

Record = Union[PayrollRecord, EmployeeRecord]


class ResizePolicy(str, Enum):
    """How update() treats the slot capacity."""

    IN_PLACE = "in_place"  # must fit the current capacity
    EXACT = "exact"  # resize to the exact encoded size
    GROW = "grow"  # grow only when the new block does not fit


def record_kind(record: Record) -> RecordKind:
    if isinstance(record, PayrollRecord):
        return RecordKind.PAYROLL
    if isinstance(record, EmployeeRecord):
        return RecordKind.EMPLOYEE
    raise TypeError(f"Not a record: {type(record).__name__}")


def encode_record(record: Record) -> bytes:
    if isinstance(record, PayrollRecord):
        return layouts.encode_payroll(record)
    return layouts.encode_employee(record)


def decode_record(kind: RecordKind, data: bytes, address: str) -> Record:
    if kind is RecordKind.PAYROLL:
        return layouts.decode_payroll(data, address)
    return layouts.decode_employee(data, address)


def _pad(block: bytes, capacity: int) -> bytes:
    if len(block) > capacity:
        raise CapacityExceededError("block", len(block), capacity)
    return block + bytes(capacity - len(block))


class RecordStore(BaseService[RecordSlot]):
    """
    Record persistence over RecordSlot rows.

    Contract:
        Every mutating method flushes and never commits.  ``payer`` is the
        actor funding deposits (create, growth) or receiving refunds
        (shrink).
    """

    def __init__(
        self,
        session: Session,
        ledger: ValueLedger | None = None,
        rent: RentSchedule | None = None,
        guard: WriteGuard | None = None,
    ):
        super().__init__(session)
        self._guard = guard or WriteGuard()
        self._ledger = ledger or ValueLedger(session, self._guard)
        self._rent = rent or RentSchedule()

    @property
    def rent(self) -> RentSchedule:
        return self._rent

    @property
    def ledger(self) -> ValueLedger:
        return self._ledger

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _find_slot(self, address: RecordAddress) -> RecordSlot | None:
        return self.session.execute(
            select(RecordSlot).where(RecordSlot.address == address.hex)
        ).scalar_one_or_none()

    def exists(self, address: RecordAddress) -> bool:
        return self._find_slot(address) is not None

    def read_slot(self, address: RecordAddress, kind: RecordKind | None = None) -> RecordSlot:
        """
        Raw slot at ``address``.

        Raises:
            RecordNotFoundError: No slot at the address.
            RecordKindMismatchError: Slot holds a different kind than ``kind``.
        """
        slot = self._find_slot(address)
        if slot is None:
            raise RecordNotFoundError(address.hex, kind.value if kind else None)
        if kind is not None and slot.kind != kind.value:
            raise RecordKindMismatchError(address.hex, kind.value, slot.kind)
        return slot

    def read(self, address: RecordAddress, kind: RecordKind | None = None) -> Record:
        slot = self.read_slot(address, kind)
        return decode_record(RecordKind(slot.kind), slot.data, slot.address)

    def read_payroll(self, address: RecordAddress) -> PayrollRecord:
        return self.read(address, RecordKind.PAYROLL)

    def read_employee(self, address: RecordAddress) -> EmployeeRecord:
        return self.read(address, RecordKind.EMPLOYEE)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(
        self,
        address: RecordAddress,
        record: Record,
        payer: ActorId,
        capacity: int | None = None,
    ) -> RecordSlot:
        """
        Create a record at ``address``.

        Postconditions:
            - A slot of ``capacity`` bytes (default: the kind's maximum)
              holds the encoded record, zero-padded.
            - The slot holds exactly the storage deposit, paid by ``payer``.

        Raises:
            RecordAlreadyExistsError: The address is occupied.
            CapacityExceededError: The record does not fit ``capacity``.
            InsufficientFundsError: The payer cannot cover the deposit.
        """
        kind = record_kind(record)
        self._guard.check(address)
        if self.exists(address):
            raise RecordAlreadyExistsError(address.hex, kind.value)

        if capacity is None:
            capacity = layouts.MAX_CAPACITY[kind]
        block = encode_record(record)
        data = _pad(block, capacity)

        slot = RecordSlot(
            address=address.hex,
            kind=kind.value,
            layout_version=layouts.layout_version(block),
            capacity=capacity,
            data=data,
            balance=0,
        )
        self.session.add(slot)
        self.session.flush()

        deposit = self._rent.minimum_balance(capacity)
        self._ledger.transfer(payer, address, deposit)

        logger.info(
            "record_created",
            extra={
                "address": address.hex,
                "kind": kind.value,
                "capacity": capacity,
                "deposit": deposit,
            },
        )
        return slot

    # ------------------------------------------------------------------
    # Update / resize
    # ------------------------------------------------------------------

    def resize(
        self,
        address: RecordAddress,
        new_capacity: int,
        payer: ActorId,
    ) -> RecordSlot:
        """
        Change a slot's capacity and settle the deposit difference.

        The current record is re-encoded at the current layout version, so
        the new capacity must hold it.

        Raises:
            CapacityExceededError: ``new_capacity`` cannot hold the record
                or exceeds the kind's maximum.
        """
        self._guard.check(address)
        slot = self.read_slot(address)
        kind = RecordKind(slot.kind)
        limit = layouts.MAX_CAPACITY[kind]
        if new_capacity > limit:
            raise CapacityExceededError("capacity", new_capacity, limit)

        block = encode_record(decode_record(kind, slot.data, slot.address))
        data = _pad(block, new_capacity)

        if new_capacity != slot.capacity:
            self._settle_deposit(slot, address, new_capacity, payer)

        slot.data = data
        slot.layout_version = layouts.layout_version(block)
        self.session.flush()
        return slot

    def write(
        self,
        address: RecordAddress,
        record: Record,
        *,
        policy: ResizePolicy = ResizePolicy.IN_PLACE,
        payer: ActorId | None = None,
    ) -> RecordSlot:
        """
        Overwrite the record at ``address``.

        Raises:
            RecordKindMismatchError: ``record`` is a different kind than the slot.
            CapacityExceededError: IN_PLACE and the block does not fit.
            ImmutabilityViolationError: A Payroll's admin would change.
        """
        self._guard.check(address)
        kind = record_kind(record)
        slot = self.read_slot(address, kind)

        if kind is RecordKind.PAYROLL:
            current = decode_record(kind, slot.data, slot.address)
            if current.admin != record.admin:
                raise ImmutabilityViolationError(
                    entity_type="Payroll",
                    entity_id=address.hex,
                    reason="admin cannot be reassigned",
                )

        block = encode_record(record)
        target = slot.capacity
        if policy is ResizePolicy.EXACT:
            target = len(block)
        elif policy is ResizePolicy.GROW and len(block) > slot.capacity:
            target = len(block)

        if target != slot.capacity:
            if target > layouts.MAX_CAPACITY[kind]:
                raise CapacityExceededError("block", target, layouts.MAX_CAPACITY[kind])
            if payer is None:
                raise CapacityExceededError("block", len(block), slot.capacity)
            # Settle the deposit first, then write the new block into it.
            self._settle_deposit(slot, address, target, payer)

        slot.data = _pad(block, slot.capacity)
        slot.layout_version = layouts.layout_version(block)
        self.session.flush()
        return slot

    def _settle_deposit(
        self,
        slot: RecordSlot,
        address: RecordAddress,
        new_capacity: int,
        payer: ActorId,
    ) -> None:
        old_capacity = slot.capacity
        delta = self._rent.minimum_balance(new_capacity) - self._rent.minimum_balance(
            old_capacity
        )
        if delta > 0:
            self._ledger.transfer(payer, address, delta)
        elif delta < 0:
            self._ledger.transfer(address, payer, min(-delta, slot.balance))
        slot.capacity = new_capacity
        logger.info(
            "record_resized",
            extra={
                "address": address.hex,
                "kind": slot.kind,
                "old_capacity": old_capacity,
                "new_capacity": new_capacity,
                "deposit_delta": delta,
            },
        )

    def update(
        self,
        address: RecordAddress,
        mutator: Callable[[Record], Record],
        *,
        kind: RecordKind | None = None,
        policy: ResizePolicy = ResizePolicy.IN_PLACE,
        payer: ActorId | None = None,
    ) -> Record:
        """
        Read, apply ``mutator``, write back.

        Returns:
            The record as written.
        """
        current = self.read(address, kind)
        updated = mutator(current)
        self.write(address, updated, policy=policy, payer=payer)
        return updated

    # ------------------------------------------------------------------
    # Reclaim
    # ------------------------------------------------------------------

    def reclaim(self, address: RecordAddress, recipient: ActorId) -> int:
        """
        Sweep the slot's balance to ``recipient`` and delete the slot.

        Postconditions:
            - No record lives at ``address``.
            - ``recipient`` gained exactly the slot's prior balance.

        Returns:
            The swept amount.

        Raises:
            ReclaimError: The slot still holds value after the sweep.
        """
        self._guard.check(address)
        slot = self.read_slot(address)
        residual = slot.balance
        self._ledger.transfer(address, recipient, residual)

        if slot.balance != 0:
            raise ReclaimError(address.hex, slot.balance)

        kind = slot.kind
        self.session.delete(slot)
        self.session.flush()

        logger.info(
            "record_reclaimed",
            extra={
                "address": address.hex,
                "kind": kind,
                "recipient": recipient.hex,
                "swept": residual,
            },
        )
        return residual
