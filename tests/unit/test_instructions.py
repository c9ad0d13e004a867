"""
Unit tests for the operation registry, access classes and instruction builders.

Verifies:
- Exactly one PUBLIC operation (pay_employee)
- Administrator check
- Declared account roles and writable sets per builder
"""

import pytest

from payroll_kernel.domain.addressing import AddressDeriver
from payroll_kernel.domain.authority import AccessClass, authorize, is_admin
from payroll_kernel.domain.instructions import (
    EMPLOYEE,
    EMPLOYEE_WALLET,
    PAYROLL,
    PAYROLL_ADMIN,
    SIGNER,
    Instruction,
    Operation,
    access_class,
    admin_operations,
    build_add_employee,
    build_initialize_payroll,
    build_pay_employee,
    build_remove_employee,
    build_update_employee,
    operation_spec,
    public_operations,
)
from payroll_kernel.domain.keys import ActorId
from payroll_kernel.domain.records import EmployeeProfile, PayrollRecord
from payroll_kernel.exceptions import (
    MissingAccountError,
    UnauthorizedError,
    UnknownOperationError,
)

PROFILE = EmployeeProfile(
    name="W1",
    role="Engineer",
    ciphertext=b"\x01",
    input_type=1,
    pin="0000",
    schedule="Weekly",
    next_payment_ts=0,
)


class TestRegistry:
    def test_pay_is_the_only_public_operation(self):
        assert public_operations() == frozenset({"pay_employee"})

    def test_admin_operations(self):
        assert admin_operations() == frozenset(
            {"initialize_payroll", "add_employee", "update_employee", "remove_employee"}
        )

    def test_every_operation_has_one_access_class(self):
        for op in Operation:
            assert access_class(op.value) in (AccessClass.ADMIN, AccessClass.PUBLIC)

    def test_initialize_establishes_admin(self):
        assert operation_spec("initialize_payroll").establishes_admin
        assert not operation_spec("remove_employee").establishes_admin

    def test_unknown_operation(self):
        with pytest.raises(UnknownOperationError) as exc_info:
            operation_spec("transfer_admin")
        assert exc_info.value.operation == "transfer_admin"


class TestAuthority:
    def test_admin_passes(self):
        admin = ActorId.generate()
        payroll = PayrollRecord(admin=admin, employee_count=0, company_name="Acme")
        assert is_admin(admin, payroll)
        authorize(admin, payroll, AddressDeriver().payroll_address(admin), "add_employee")

    def test_other_actor_rejected(self):
        admin, intruder = ActorId.generate(), ActorId.generate()
        payroll = PayrollRecord(admin=admin, employee_count=0, company_name="Acme")
        address = AddressDeriver().payroll_address(admin)
        with pytest.raises(UnauthorizedError) as exc_info:
            authorize(intruder, payroll, address, "remove_employee")
        assert exc_info.value.actor == intruder.hex
        assert exc_info.value.payroll == address.hex
        assert exc_info.value.operation == "remove_employee"


class TestBuilders:
    def setup_method(self):
        self.deriver = AddressDeriver()
        self.admin = ActorId.generate()
        self.wallet = ActorId.generate()
        self.payroll = self.deriver.payroll_address(self.admin)
        self.employee = self.deriver.employee_address(self.payroll, self.wallet)

    def test_initialize_declares_derived_payroll(self):
        ix = build_initialize_payroll(self.deriver, self.admin, "Acme")
        assert ix.operation == "initialize_payroll"
        assert ix.record_address(PAYROLL) == self.payroll
        assert ix.writable_addresses == {self.payroll.raw, self.admin.raw}
        assert ix.args.company_name == "Acme"

    def test_add_declares_derived_employee(self):
        ix = build_add_employee(self.deriver, self.admin, self.payroll, self.wallet, PROFILE)
        assert ix.record_address(EMPLOYEE) == self.employee
        assert ix.actor(EMPLOYEE_WALLET) == self.wallet
        assert self.wallet.raw not in ix.writable_addresses
        assert self.payroll.raw in ix.writable_addresses

    def test_update_payroll_is_read_only(self):
        ix = build_update_employee(self.admin, self.payroll, self.employee, PROFILE)
        assert self.payroll.raw not in ix.writable_addresses
        assert self.employee.raw in ix.writable_addresses

    def test_pay_never_writes_signer(self):
        bot = ActorId.generate()
        ix = build_pay_employee(bot, self.payroll, self.employee, self.admin)
        assert ix.signer == bot
        assert ix.actor(PAYROLL_ADMIN) == self.admin
        assert ix.writable_addresses == {self.employee.raw, self.admin.raw}

    def test_remove_writes_payroll_and_employee(self):
        ix = build_remove_employee(self.admin, self.payroll, self.employee)
        assert ix.writable_addresses == {
            self.payroll.raw,
            self.employee.raw,
            self.admin.raw,
        }

    def test_each_instruction_gets_a_correlation_id(self):
        a = build_pay_employee(self.admin, self.payroll, self.employee, self.admin)
        b = build_pay_employee(self.admin, self.payroll, self.employee, self.admin)
        assert a.correlation_id != b.correlation_id

    def test_missing_account(self):
        ix = Instruction(operation="pay_employee", signer=self.admin, accounts=())
        with pytest.raises(MissingAccountError) as exc_info:
            ix.account(EMPLOYEE)
        assert exc_info.value.role == EMPLOYEE
        assert exc_info.value.operation == "pay_employee"

    def test_required_accounts_declared_by_builders(self):
        built = {
            "initialize_payroll": build_initialize_payroll(self.deriver, self.admin, "Acme"),
            "add_employee": build_add_employee(
                self.deriver, self.admin, self.payroll, self.wallet, PROFILE
            ),
            "update_employee": build_update_employee(
                self.admin, self.payroll, self.employee, PROFILE
            ),
            "pay_employee": build_pay_employee(self.admin, self.payroll, self.employee, self.admin),
            "remove_employee": build_remove_employee(self.admin, self.payroll, self.employee),
        }
        for name, ix in built.items():
            roles = {meta.role for meta in ix.accounts}
            assert set(operation_spec(name).required_accounts) <= roles
            assert SIGNER in roles
