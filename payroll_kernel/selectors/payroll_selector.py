"""
Module: payroll_kernel.selectors.payroll_selector
Responsibility: Read-only queries over Payroll and Employee records.
Architecture position: Kernel > Selectors.

Lookups are by derived address: a payroll from its admin, an employee
from (payroll, wallet).  There is no membership index.  scan_employees()
is a full scan over every Employee slot filtered on the payroll
back-reference; its cost grows with the whole store, and no operation
depends on it.  Slots that do not decode are logged and skipped by the
scan; point lookups still raise.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from payroll_kernel.domain import layouts
from payroll_kernel.domain.addressing import AddressDeriver
from payroll_kernel.domain.keys import ActorId, RecordAddress
from payroll_kernel.domain.records import RecordKind
from payroll_kernel.domain.schedule import is_due
from payroll_kernel.exceptions import (
    CorruptRecordError,
    RecordKindMismatchError,
    RecordNotFoundError,
    UnsupportedLayoutVersionError,
)
from payroll_kernel.logging_config import get_logger
from payroll_kernel.models.record_slot import RecordSlot
from payroll_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.payroll")


@dataclass(frozen=True)
class PayrollInfo:
    address: RecordAddress
    admin: ActorId
    employee_count: int
    company_name: str
    capacity: int
    balance: int


@dataclass(frozen=True)
class EmployeeInfo:
    address: RecordAddress
    payroll: RecordAddress
    wallet: ActorId
    name: str
    role: str
    pin: str
    schedule: str
    ciphertext: bytes
    input_type: int
    next_payment_ts: int
    last_paid_ts: int
    layout_version: int
    capacity: int
    balance: int

    @property
    def has_been_paid(self) -> bool:
        return self.last_paid_ts != 0

    def is_due(self, as_of: int) -> bool:
        return is_due(self.next_payment_ts, as_of)


def _payroll_info(slot: RecordSlot) -> PayrollInfo:
    record = layouts.decode_payroll(slot.data, slot.address)
    return PayrollInfo(
        address=RecordAddress.from_hex(slot.address),
        admin=record.admin,
        employee_count=record.employee_count,
        company_name=record.company_name,
        capacity=slot.capacity,
        balance=slot.balance,
    )


def _employee_info(slot: RecordSlot) -> EmployeeInfo:
    record = layouts.decode_employee(slot.data, slot.address)
    return EmployeeInfo(
        address=RecordAddress.from_hex(slot.address),
        payroll=record.payroll,
        wallet=record.wallet,
        name=record.name,
        role=record.role,
        pin=record.pin,
        schedule=record.schedule,
        ciphertext=record.ciphertext,
        input_type=record.input_type,
        next_payment_ts=record.next_payment_ts,
        last_paid_ts=record.last_paid_ts,
        layout_version=slot.layout_version,
        capacity=slot.capacity,
        balance=slot.balance,
    )


class PayrollSelector(BaseSelector[RecordSlot]):
    """Point lookups by derived address, plus the diagnostic scan."""

    def __init__(self, session: Session, deriver: AddressDeriver | None = None):
        super().__init__(session)
        self._deriver = deriver or AddressDeriver()

    def _slot(self, address: RecordAddress) -> RecordSlot | None:
        return self.session.execute(
            select(RecordSlot).where(RecordSlot.address == address.hex)
        ).scalar_one_or_none()

    def _typed_slot(self, address: RecordAddress, kind: RecordKind) -> RecordSlot:
        slot = self._slot(address)
        if slot is None:
            raise RecordNotFoundError(address.hex, kind.value)
        if slot.kind != kind.value:
            raise RecordKindMismatchError(address.hex, kind.value, slot.kind)
        return slot

    def get_payroll(self, address: RecordAddress) -> PayrollInfo:
        """
        Raises:
            RecordNotFoundError: No payroll at ``address``.
        """
        return _payroll_info(self._typed_slot(address, RecordKind.PAYROLL))

    def get_employee(self, address: RecordAddress) -> EmployeeInfo:
        """
        Raises:
            RecordNotFoundError: No employee at ``address``.
        """
        return _employee_info(self._typed_slot(address, RecordKind.EMPLOYEE))

    def find_payroll_for_admin(self, admin: ActorId) -> PayrollInfo | None:
        slot = self._slot(self._deriver.payroll_address(admin))
        if slot is None or slot.kind != RecordKind.PAYROLL.value:
            return None
        return _payroll_info(slot)

    def find_employee(
        self, payroll: RecordAddress, wallet: ActorId
    ) -> EmployeeInfo | None:
        slot = self._slot(self._deriver.employee_address(payroll, wallet))
        if slot is None or slot.kind != RecordKind.EMPLOYEE.value:
            return None
        return _employee_info(slot)

    def scan_employees(self, payroll: RecordAddress) -> list[EmployeeInfo]:
        """Every decodable Employee whose back-reference is ``payroll``, by address."""
        slots = self.session.execute(
            select(RecordSlot)
            .where(RecordSlot.kind == RecordKind.EMPLOYEE.value)
            .order_by(RecordSlot.address)
        ).scalars().all()

        members = []
        for slot in slots:
            try:
                info = _employee_info(slot)
            except (CorruptRecordError, UnsupportedLayoutVersionError) as exc:
                logger.warning(
                    "employee_scan_skipped",
                    extra={"address": slot.address, "error_code": exc.code, "error": str(exc)},
                )
                continue
            if info.payroll == payroll:
                members.append(info)
        return members

    def due_employees(self, payroll: RecordAddress, as_of: int) -> list[EmployeeInfo]:
        """Advisory: employees whose next_payment_ts <= as_of."""
        return [info for info in self.scan_employees(payroll) if info.is_due(as_of)]
