"""
PayrollService -- the payroll lifecycle operations.

Responsibility:
    Implements initialize_payroll, add_employee, update_employee,
    pay_employee and remove_employee as instruction handlers, and offers
    a convenience method per operation that builds the instruction the
    way a client would and submits it.

Architecture position:
    Kernel > Services -- imperative shell.  Wires RecordStore, ValueLedger,
    EventLog and InstructionProcessor together around one session.

Invariants enforced:
    - employee_count is incremented exactly once per successful add
      (checked u64) and decremented at most once per successful remove,
      floored at zero.
    - An Employee record is only touched through the payroll it points
      back to, at the address (payroll, wallet) derives to.
    - Remove sweeps the employee slot's whole balance to the payroll's
      administrator.
    - pay_employee is PUBLIC: any signer may trigger it.  It advances the
      schedule from the trusted clock and appends exactly one event.  Slot
      growth on pay (a custom tag replaced by "Weekly", a v1 block
      rewritten as v2) is charged to the payroll's administrator, never
      to the signer.

Failure modes:
    - Every kernel error aborts the whole instruction; see
      InstructionProcessor.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from payroll_kernel.domain import schedule
from payroll_kernel.domain.addressing import AddressDeriver
from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.domain.instructions import (
    EMPLOYEE,
    EMPLOYEE_WALLET,
    PAYROLL,
    PAYROLL_ADMIN,
    InitializePayrollArgs,
    Instruction,
    Operation,
    build_add_employee,
    build_initialize_payroll,
    build_pay_employee,
    build_remove_employee,
    build_update_employee,
)
from payroll_kernel.domain.keys import ActorId, RecordAddress
from payroll_kernel.domain.layouts import U64_MAX
from payroll_kernel.domain.records import (
    EmployeeProfile,
    EmployeeRecord,
    PayrollRecord,
    RecordKind,
)
from payroll_kernel.domain.rent import RentSchedule
from payroll_kernel.exceptions import AddressMismatchError, ArithmeticOverflowError
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_kernel.services.event_log import EventLog, PaymentEventInfo
from payroll_kernel.services.instruction_processor import InstructionProcessor
from payroll_kernel.services.record_store import RecordStore, ResizePolicy
from payroll_kernel.services.value_ledger import ValueLedger
from payroll_kernel.services.write_guard import WriteGuard

logger = get_logger("services.payroll")


@dataclass(frozen=True)
class RemovalResult:
    """Outcome of remove_employee."""

    employee: RecordAddress
    swept: int
    employee_count: int


def _increment(count: int) -> int:
    if count >= U64_MAX:
        raise ArithmeticOverflowError("employee_count", Operation.ADD_EMPLOYEE.value)
    return count + 1


def _decrement_floored(count: int) -> int:
    # Removing from an empty payroll leaves the counter at zero.
    if count > 0:
        return count - 1
    return 0


class PayrollService:
    """
    Payroll lifecycle over one session.

    Contract:
        Every public operation runs as one atomic instruction.  The service
        flushes and never commits; the caller owns the transaction.

    Usage:
        service = PayrollService(session, clock=DeterministicClock())
        payroll = service.initialize_payroll(admin, "Acme")
        employee = service.add_employee(admin, payroll, wallet, profile)
        service.pay_employee(bot, payroll, employee)
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        deriver: AddressDeriver | None = None,
        rent: RentSchedule | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._deriver = deriver or AddressDeriver()
        self._guard = WriteGuard()
        self._ledger = ValueLedger(session, self._guard)
        self._store = RecordStore(session, self._ledger, rent or RentSchedule(), self._guard)
        self._events = EventLog(session)
        self._processor = InstructionProcessor(
            session, self._store, self._deriver, self._guard
        )
        self._processor.register(Operation.INITIALIZE_PAYROLL.value, self._handle_initialize)
        self._processor.register(Operation.ADD_EMPLOYEE.value, self._handle_add)
        self._processor.register(Operation.UPDATE_EMPLOYEE.value, self._handle_update)
        self._processor.register(Operation.PAY_EMPLOYEE.value, self._handle_pay)
        self._processor.register(Operation.REMOVE_EMPLOYEE.value, self._handle_remove)

    @classmethod
    def from_config(cls, session: Session, config, clock: Clock | None = None) -> PayrollService:
        """Build a service from a loaded PayrollConfig."""
        return cls(
            session,
            clock=clock,
            deriver=AddressDeriver(config.program_id),
            rent=RentSchedule(
                per_byte=config.rent.per_byte,
                overhead_bytes=config.rent.overhead_bytes,
            ),
        )

    # Collaborators

    @property
    def store(self) -> RecordStore:
        return self._store

    @property
    def ledger(self) -> ValueLedger:
        return self._ledger

    @property
    def events(self) -> EventLog:
        return self._events

    @property
    def deriver(self) -> AddressDeriver:
        return self._deriver

    @property
    def processor(self) -> InstructionProcessor:
        return self._processor

    def payroll_address_for(self, admin: ActorId) -> RecordAddress:
        return self._deriver.payroll_address(admin)

    def employee_address_for(self, payroll: RecordAddress, wallet: ActorId) -> RecordAddress:
        return self._deriver.employee_address(payroll, wallet)

    # ------------------------------------------------------------------
    # Client-side entry points
    # ------------------------------------------------------------------

    def process(self, instruction: Instruction):
        return self._processor.process(instruction)

    def initialize_payroll(self, admin: ActorId, company_name: str) -> RecordAddress:
        return self.process(build_initialize_payroll(self._deriver, admin, company_name))

    def add_employee(
        self,
        signer: ActorId,
        payroll: RecordAddress,
        wallet: ActorId,
        profile: EmployeeProfile,
    ) -> RecordAddress:
        return self.process(
            build_add_employee(self._deriver, signer, payroll, wallet, profile)
        )

    def update_employee(
        self,
        signer: ActorId,
        payroll: RecordAddress,
        employee: RecordAddress,
        profile: EmployeeProfile,
    ) -> EmployeeRecord:
        return self.process(build_update_employee(signer, payroll, employee, profile))

    def pay_employee(
        self,
        signer: ActorId,
        payroll: RecordAddress,
        employee: RecordAddress,
    ) -> PaymentEventInfo:
        admin = self._store.read_payroll(payroll).admin
        return self.process(build_pay_employee(signer, payroll, employee, admin))

    def remove_employee(
        self,
        signer: ActorId,
        payroll: RecordAddress,
        employee: RecordAddress,
    ) -> RemovalResult:
        return self.process(build_remove_employee(signer, payroll, employee))

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    def _load_member(
        self, payroll_address: RecordAddress, employee_address: RecordAddress
    ) -> EmployeeRecord:
        """
        Read an Employee and prove it belongs to ``payroll_address``.

        Raises:
            RecordNotFoundError: No employee at the address.
            AddressMismatchError: Back-reference or derived address differs.
        """
        employee = self._store.read_employee(employee_address)
        if employee.payroll != payroll_address:
            raise AddressMismatchError(
                PAYROLL, employee.payroll.hex, payroll_address.hex
            )
        expected = self._deriver.employee_address(payroll_address, employee.wallet)
        if expected != employee_address:
            raise AddressMismatchError(EMPLOYEE, expected.hex, employee_address.hex)
        return employee

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _handle_initialize(self, instruction: Instruction) -> RecordAddress:
        args: InitializePayrollArgs = instruction.args
        address = instruction.record_address(PAYROLL)
        record = PayrollRecord(
            admin=instruction.signer,
            employee_count=0,
            company_name=args.company_name,
        )
        self._store.create(address, record, payer=instruction.signer)
        logger.info(
            "payroll_initialized",
            extra={"payroll": address.hex, "company_name": args.company_name},
        )
        return address

    def _handle_add(self, instruction: Instruction) -> RecordAddress:
        profile: EmployeeProfile = instruction.args
        payroll_address = instruction.record_address(PAYROLL)
        employee_address = instruction.record_address(EMPLOYEE)
        wallet = instruction.actor(EMPLOYEE_WALLET)

        expected = self._deriver.employee_address(payroll_address, wallet)
        if expected != employee_address:
            raise AddressMismatchError(EMPLOYEE, expected.hex, employee_address.hex)

        record = EmployeeRecord.create(payroll_address, wallet, profile)
        self._store.create(employee_address, record, payer=instruction.signer)
        payroll = self._store.update(
            payroll_address,
            lambda p: p.with_employee_count(_increment(p.employee_count)),
            kind=RecordKind.PAYROLL,
        )

        with LogContext.bind(payroll=payroll_address.hex, employee=employee_address.hex):
            logger.info(
                "employee_added",
                extra={
                    "wallet": wallet.hex,
                    "schedule": profile.schedule,
                    "employee_count": payroll.employee_count,
                },
            )
        return employee_address

    def _handle_update(self, instruction: Instruction) -> EmployeeRecord:
        profile: EmployeeProfile = instruction.args
        payroll_address = instruction.record_address(PAYROLL)
        employee_address = instruction.record_address(EMPLOYEE)

        current = self._load_member(payroll_address, employee_address)
        updated = current.with_profile(profile)
        self._store.write(
            employee_address,
            updated,
            policy=ResizePolicy.EXACT,
            payer=instruction.signer,
        )

        with LogContext.bind(payroll=payroll_address.hex, employee=employee_address.hex):
            logger.info("employee_updated", extra={"schedule": profile.schedule})
        return updated

    def _handle_pay(self, instruction: Instruction) -> PaymentEventInfo:
        payroll_address = instruction.record_address(PAYROLL)
        employee_address = instruction.record_address(EMPLOYEE)

        payroll = self._store.read_payroll(payroll_address)
        admin = instruction.actor(PAYROLL_ADMIN)
        if admin != payroll.admin:
            raise AddressMismatchError(PAYROLL_ADMIN, payroll.admin.hex, admin.hex)
        current = self._load_member(payroll_address, employee_address)

        paid_at = self._clock.now_ts()
        outcome = schedule.advance(current.schedule, paid_at)
        updated = current.with_schedule_state(
            outcome.schedule, outcome.next_payment_ts, outcome.last_paid_ts
        )
        self._store.write(
            employee_address,
            updated,
            policy=ResizePolicy.GROW,
            payer=payroll.admin,
        )
        event = self._events.append(
            payroll_address, employee_address, instruction.signer, outcome
        )

        with LogContext.bind(payroll=payroll_address.hex, employee=employee_address.hex):
            logger.info(
                "employee_paid",
                extra={
                    "paid_at": paid_at,
                    "next_payment_ts": outcome.next_payment_ts,
                    "schedule": outcome.schedule,
                    "downgraded": outcome.downgraded,
                    "seq": event.seq,
                },
            )
        return event

    def _handle_remove(self, instruction: Instruction) -> RemovalResult:
        payroll_address = instruction.record_address(PAYROLL)
        employee_address = instruction.record_address(EMPLOYEE)

        payroll = self._store.read_payroll(payroll_address)
        self._load_member(payroll_address, employee_address)

        swept = self._store.reclaim(employee_address, recipient=payroll.admin)
        payroll = self._store.update(
            payroll_address,
            lambda p: p.with_employee_count(_decrement_floored(p.employee_count)),
            kind=RecordKind.PAYROLL,
        )

        with LogContext.bind(payroll=payroll_address.hex, employee=employee_address.hex):
            logger.info(
                "employee_removed",
                extra={"swept": swept, "employee_count": payroll.employee_count},
            )
        return RemovalResult(
            employee=employee_address,
            swept=swept,
            employee_count=payroll.employee_count,
        )
