"""
Tests for RecordStore.

Verifies:
- Create-exclusivity and the storage deposit taken on create
- Blocks are zero-padded to capacity and never truncated
- Resize policies settle the deposit difference
- Payroll admin is immutable
- Reclaim sweeps the whole balance and frees the address
- Slot identity is protected by ORM listeners
"""

import pytest

from payroll_kernel.domain import layouts
from payroll_kernel.domain.keys import ActorId, RecordAddress
from payroll_kernel.domain.records import EmployeeRecord, PayrollRecord, RecordKind
from payroll_kernel.domain.rent import RentSchedule
from payroll_kernel.exceptions import (
    CapacityExceededError,
    ImmutabilityViolationError,
    InsufficientFundsError,
    ReclaimError,
    RecordAlreadyExistsError,
    RecordKindMismatchError,
    RecordNotFoundError,
)
from payroll_kernel.models.record_slot import RecordSlot
from payroll_kernel.services.record_store import RecordStore, ResizePolicy
from payroll_kernel.services.value_ledger import ValueLedger
from payroll_kernel.services.write_guard import WriteGuard

RENT = RentSchedule(per_byte=10, overhead_bytes=128)


@pytest.fixture
def record_store(session):
    guard = WriteGuard()
    return RecordStore(session, ValueLedger(session, guard), RENT, guard)


@pytest.fixture
def funded_admin(record_store):
    admin = ActorId.generate()
    record_store.ledger.fund(admin, 1_000_000)
    return admin


@pytest.fixture
def payroll_address(record_store, funded_admin, deriver):
    address = deriver.payroll_address(funded_admin)
    record_store.create(address, PayrollRecord(funded_admin, 0, "Acme"), payer=funded_admin)
    return address


def _employee(payroll: RecordAddress, **overrides) -> EmployeeRecord:
    fields = dict(
        payroll=payroll,
        wallet=ActorId.generate(),
        name="W1",
        role="Engineer",
        pin="1234",
        schedule="Weekly",
        ciphertext=b"\x01" * 32,
        input_type=1,
        next_payment_ts=0,
    )
    fields.update(overrides)
    return EmployeeRecord(**fields)


class TestCreate:
    def test_create_and_read(self, record_store, payroll_address, funded_admin):
        payroll = record_store.read_payroll(payroll_address)
        assert payroll.admin == funded_admin
        assert payroll.company_name == "Acme"
        assert payroll.employee_count == 0

    def test_capacity_and_padding(self, record_store, payroll_address):
        slot = record_store.read_slot(payroll_address)
        assert slot.capacity == layouts.PAYROLL_CAPACITY
        assert len(slot.data) == slot.capacity
        assert slot.kind == "Payroll"
        assert slot.layout_version == layouts.PAYROLL_LAYOUT_VERSION

    def test_deposit_taken_from_payer(self, record_store, payroll_address, funded_admin):
        deposit = RENT.minimum_balance(layouts.PAYROLL_CAPACITY)
        assert record_store.ledger.balance_of(payroll_address) == deposit
        assert record_store.ledger.balance_of(funded_admin) == 1_000_000 - deposit

    def test_duplicate_create(self, record_store, payroll_address, funded_admin):
        with pytest.raises(RecordAlreadyExistsError) as exc_info:
            record_store.create(
                payroll_address, PayrollRecord(funded_admin, 0, "Other"), payer=funded_admin
            )
        assert exc_info.value.address == payroll_address.hex
        assert record_store.read_payroll(payroll_address).company_name == "Acme"

    def test_explicit_capacity_too_small(self, record_store, funded_admin, payroll_address):
        record = _employee(payroll_address)
        with pytest.raises(CapacityExceededError):
            record_store.create(RecordAddress.generate(), record, payer=funded_admin, capacity=10)

    def test_payer_without_funds(self, record_store, payroll_address):
        with pytest.raises(InsufficientFundsError):
            record_store.create(
                RecordAddress.generate(), _employee(payroll_address), payer=ActorId.generate()
            )


class TestRead:
    def test_not_found(self, record_store):
        address = RecordAddress.generate()
        assert not record_store.exists(address)
        with pytest.raises(RecordNotFoundError):
            record_store.read(address)

    def test_kind_mismatch(self, record_store, payroll_address):
        with pytest.raises(RecordKindMismatchError):
            record_store.read_employee(payroll_address)


class TestWrite:
    def test_in_place_update(self, record_store, payroll_address):
        updated = record_store.update(
            payroll_address,
            lambda p: p.with_employee_count(p.employee_count + 1),
            kind=RecordKind.PAYROLL,
        )
        assert updated.employee_count == 1
        assert record_store.read_payroll(payroll_address).employee_count == 1

    def test_admin_cannot_change(self, record_store, payroll_address):
        current = record_store.read_payroll(payroll_address)
        hijacked = PayrollRecord(ActorId.generate(), current.employee_count, "Acme")
        with pytest.raises(ImmutabilityViolationError):
            record_store.write(payroll_address, hijacked)
        assert record_store.read_payroll(payroll_address).admin == current.admin

    def test_in_place_overflow(self, record_store, funded_admin, payroll_address):
        address = RecordAddress.generate()
        record = _employee(payroll_address, ciphertext=b"\x01")
        record_store.create(
            address, record, payer=funded_admin, capacity=layouts.employee_capacity(record)
        )
        bigger = _employee(payroll_address, wallet=record.wallet, ciphertext=b"\x01" * 64)
        with pytest.raises(CapacityExceededError):
            record_store.write(address, bigger, policy=ResizePolicy.IN_PLACE)

    def test_exact_shrink_refunds(self, record_store, funded_admin, payroll_address):
        address = RecordAddress.generate()
        record = _employee(payroll_address)
        record_store.create(address, record, payer=funded_admin)
        before = record_store.ledger.balance_of(funded_admin)

        smaller = _employee(payroll_address, wallet=record.wallet, ciphertext=b"")
        record_store.write(address, smaller, policy=ResizePolicy.EXACT, payer=funded_admin)

        slot = record_store.read_slot(address)
        assert slot.capacity == layouts.employee_capacity(smaller)
        refund = (layouts.EMPLOYEE_MAX_CAPACITY - slot.capacity) * RENT.per_byte
        assert record_store.ledger.balance_of(funded_admin) == before + refund
        assert record_store.ledger.balance_of(address) == RENT.minimum_balance(slot.capacity)

    def test_grow_charges_payer(self, record_store, funded_admin, payroll_address):
        address = RecordAddress.generate()
        record = _employee(payroll_address, ciphertext=b"")
        capacity = layouts.employee_capacity(record)
        record_store.create(address, record, payer=funded_admin, capacity=capacity)
        before = record_store.ledger.balance_of(funded_admin)

        bigger = _employee(payroll_address, wallet=record.wallet, ciphertext=b"\x02" * 20)
        record_store.write(address, bigger, policy=ResizePolicy.GROW, payer=funded_admin)

        assert record_store.read_slot(address).capacity == capacity + 20
        assert record_store.ledger.balance_of(funded_admin) == before - 20 * RENT.per_byte
        assert record_store.read_employee(address).ciphertext == b"\x02" * 20

    def test_grow_keeps_capacity_when_it_fits(self, record_store, funded_admin, payroll_address):
        address = RecordAddress.generate()
        record = _employee(payroll_address)
        record_store.create(address, record, payer=funded_admin)
        smaller = _employee(payroll_address, wallet=record.wallet, ciphertext=b"")
        record_store.write(address, smaller, policy=ResizePolicy.GROW, payer=funded_admin)
        assert record_store.read_slot(address).capacity == layouts.EMPLOYEE_MAX_CAPACITY

    def test_resize_without_payer(self, record_store, funded_admin, payroll_address):
        address = RecordAddress.generate()
        record = _employee(payroll_address)
        record_store.create(address, record, payer=funded_admin)
        with pytest.raises(CapacityExceededError):
            record_store.write(address, record, policy=ResizePolicy.EXACT)


class TestResize:
    def test_explicit_resize(self, record_store, funded_admin, payroll_address):
        address = RecordAddress.generate()
        record = _employee(payroll_address)
        record_store.create(address, record, payer=funded_admin)

        exact = layouts.employee_capacity(record)
        slot = record_store.resize(address, exact, payer=funded_admin)
        assert slot.capacity == exact
        assert len(slot.data) == exact
        assert record_store.read_employee(address) == record

    def test_resize_below_record(self, record_store, funded_admin, payroll_address):
        address = RecordAddress.generate()
        record = _employee(payroll_address)
        record_store.create(address, record, payer=funded_admin)
        with pytest.raises(CapacityExceededError):
            record_store.resize(address, 20, payer=funded_admin)

    def test_resize_above_kind_maximum(self, record_store, funded_admin, payroll_address):
        with pytest.raises(CapacityExceededError):
            record_store.resize(
                payroll_address, layouts.PAYROLL_CAPACITY + 1, payer=funded_admin
            )


class TestReclaim:
    def test_sweeps_everything(self, record_store, funded_admin, payroll_address):
        address = RecordAddress.generate()
        record_store.create(address, _employee(payroll_address), payer=funded_admin)
        record_store.ledger.attach_value(funded_admin, address, 5_000)
        slot_balance = record_store.ledger.balance_of(address)
        before = record_store.ledger.balance_of(funded_admin)
        total = record_store.ledger.total_value()

        swept = record_store.reclaim(address, recipient=funded_admin)

        assert swept == slot_balance
        assert record_store.ledger.balance_of(funded_admin) == before + slot_balance
        assert not record_store.exists(address)
        assert record_store.ledger.total_value() == total

    def test_address_reusable_after_reclaim(self, record_store, funded_admin, payroll_address):
        address = RecordAddress.generate()
        record = _employee(payroll_address)
        record_store.create(address, record, payer=funded_admin)
        record_store.reclaim(address, recipient=funded_admin)
        record_store.create(address, record, payer=funded_admin)
        assert record_store.read_employee(address) == record

    def test_reclaim_logs(self, record_store, funded_admin, payroll_address, captured_logs):
        address = RecordAddress.generate()
        record_store.create(address, _employee(payroll_address), payer=funded_admin)
        record_store.reclaim(address, recipient=funded_admin)
        reclaimed = [r for r in captured_logs() if r["message"] == "record_reclaimed"]
        assert reclaimed[-1]["address"] == address.hex


class TestSlotProtection:
    """ORM listeners guard slot identity and balance."""

    def test_address_immutable(self, session, record_store, payroll_address):
        slot = record_store.read_slot(payroll_address)
        slot.address = RecordAddress.generate().hex
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_kind_immutable(self, session, record_store, payroll_address):
        slot = record_store.read_slot(payroll_address)
        slot.kind = RecordKind.EMPLOYEE.value
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_delete_with_balance_blocked(self, session, record_store, payroll_address):
        slot = session.query(RecordSlot).filter_by(address=payroll_address.hex).one()
        session.delete(slot)
        with pytest.raises(ReclaimError):
            session.flush()
