"""
Record values -- the decoded contents of Payroll and Employee blocks.

Architecture position:
    Kernel > Domain -- frozen dataclasses, zero I/O.  Encoding lives in
    ``domain.layouts``; persistence lives in ``services.record_store``.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

from payroll_kernel.domain.keys import ActorId, RecordAddress


class RecordKind(str, Enum):
    """Record kinds held by the store."""

    PAYROLL = "Payroll"
    EMPLOYEE = "Employee"


@dataclass(frozen=True)
class PayrollRecord:
    """
    One per organization.

    Guarantees:
        - ``admin`` is fixed at creation and never reassigned.
        - ``employee_count`` is never negative.
    """

    admin: ActorId
    employee_count: int
    company_name: str

    def with_employee_count(self, count: int) -> PayrollRecord:
        return replace(self, employee_count=count)


@dataclass(frozen=True)
class EmployeeProfile:
    """The administrator-controlled fields of an Employee record."""

    name: str
    role: str
    ciphertext: bytes
    input_type: int
    pin: str
    schedule: str
    next_payment_ts: int


@dataclass(frozen=True)
class EmployeeRecord:
    """
    One per (payroll, wallet) pair.

    ``payroll`` is a non-owning back-reference used for validation only.
    ``last_paid_ts == 0`` means never paid.
    """

    payroll: RecordAddress
    wallet: ActorId
    name: str
    role: str
    pin: str
    schedule: str
    ciphertext: bytes
    input_type: int
    next_payment_ts: int
    last_paid_ts: int = 0

    @classmethod
    def create(
        cls,
        payroll: RecordAddress,
        wallet: ActorId,
        profile: EmployeeProfile,
    ) -> EmployeeRecord:
        return cls(
            payroll=payroll,
            wallet=wallet,
            name=profile.name,
            role=profile.role,
            pin=profile.pin,
            schedule=profile.schedule,
            ciphertext=bytes(profile.ciphertext),
            input_type=profile.input_type,
            next_payment_ts=profile.next_payment_ts,
            last_paid_ts=0,
        )

    def with_profile(self, profile: EmployeeProfile) -> EmployeeRecord:
        """Overwrite every mutable field; payroll, wallet and last_paid_ts stay."""
        return replace(
            self,
            name=profile.name,
            role=profile.role,
            pin=profile.pin,
            schedule=profile.schedule,
            ciphertext=bytes(profile.ciphertext),
            input_type=profile.input_type,
            next_payment_ts=profile.next_payment_ts,
        )

    def with_schedule_state(
        self, schedule: str, next_payment_ts: int, last_paid_ts: int
    ) -> EmployeeRecord:
        return replace(
            self,
            schedule=schedule,
            next_payment_ts=next_payment_ts,
            last_paid_ts=last_paid_ts,
        )

    @property
    def has_been_paid(self) -> bool:
        return self.last_paid_ts != 0
