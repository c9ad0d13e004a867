"""
Tests for InstructionProcessor.

Verifies:
- Unknown operations and undeclared accounts are rejected
- The admin-establishing operation is checked by address derivation
- Writes outside the declared writable set are rejected
- A failing instruction leaves no partial state behind
- Instruction logs carry the correlation id, signer and operation
"""

import pytest

from payroll_kernel.domain.instructions import (
    EMPLOYEE,
    PAYROLL,
    PAYROLL_ADMIN,
    SIGNER,
    AccountMeta,
    InitializePayrollArgs,
    Instruction,
    build_add_employee,
)
from payroll_kernel.domain.keys import ActorId
from payroll_kernel.exceptions import (
    AddressMismatchError,
    InsufficientFundsError,
    MissingAccountError,
    UndeclaredWriteError,
    UnknownOperationError,
)
from payroll_kernel.services.instruction_processor import InstructionProcessor
from payroll_kernel.services.record_store import RecordStore
from payroll_kernel.services.write_guard import WriteGuard


class TestDispatch:
    def test_registered_operations(self, payroll_service):
        assert payroll_service.processor.registered_operations == frozenset(
            {
                "initialize_payroll",
                "add_employee",
                "update_employee",
                "pay_employee",
                "remove_employee",
            }
        )

    def test_unknown_operation(self, payroll_service, admin):
        ix = Instruction(operation="transfer_admin", signer=admin, accounts=())
        with pytest.raises(UnknownOperationError):
            payroll_service.process(ix)

    def test_known_but_unregistered(self, session, deriver, admin):
        guard = WriteGuard()
        processor = InstructionProcessor(session, RecordStore(session, guard=guard), deriver, guard)
        ix = Instruction(operation="pay_employee", signer=admin, accounts=())
        with pytest.raises(UnknownOperationError):
            processor.process(ix)

    def test_register_rejects_unknown_name(self, session, deriver):
        guard = WriteGuard()
        processor = InstructionProcessor(session, RecordStore(session, guard=guard), deriver, guard)
        with pytest.raises(UnknownOperationError):
            processor.register("transfer_admin", lambda ix: None)

    def test_missing_account(self, payroll_service, payroll, bot):
        ix = Instruction(
            operation="pay_employee",
            signer=bot,
            accounts=(
                AccountMeta(PAYROLL, payroll),
                AccountMeta(SIGNER, bot, writable=True),
            ),
        )
        with pytest.raises(MissingAccountError) as exc_info:
            payroll_service.process(ix)
        assert exc_info.value.role == EMPLOYEE


class TestInitializeCheck:
    def test_foreign_payroll_address(self, payroll_service, admin, other_admin, fund):
        """A signer cannot create the payroll that derives from someone else."""
        fund(admin)
        target = payroll_service.payroll_address_for(other_admin)
        ix = Instruction(
            operation="initialize_payroll",
            signer=admin,
            accounts=(
                AccountMeta(PAYROLL, target, writable=True),
                AccountMeta(SIGNER, admin, writable=True),
            ),
            args=InitializePayrollArgs("Hijack"),
        )
        with pytest.raises(AddressMismatchError):
            payroll_service.process(ix)
        assert not payroll_service.store.exists(target)


class TestWriteSet:
    def test_undeclared_employee_write(self, payroll_service, selector, admin, payroll, employee, bot):
        ix = Instruction(
            operation="pay_employee",
            signer=bot,
            accounts=(
                AccountMeta(PAYROLL, payroll),
                AccountMeta(EMPLOYEE, employee),
                AccountMeta(PAYROLL_ADMIN, admin, writable=True),
                AccountMeta(SIGNER, bot),
            ),
        )
        with pytest.raises(UndeclaredWriteError) as exc_info:
            payroll_service.process(ix)
        assert exc_info.value.address == employee.hex
        assert exc_info.value.operation == "pay_employee"
        assert selector.get_employee(employee).last_paid_ts == 0

    def test_read_only_payroll_on_add(self, payroll_service, selector, admin, payroll, make_profile):
        wallet = ActorId.generate()
        built = build_add_employee(payroll_service.deriver, admin, payroll, wallet, make_profile())
        accounts = tuple(
            AccountMeta(m.role, m.address, writable=m.role != PAYROLL) for m in built.accounts
        )
        ix = Instruction(built.operation, admin, accounts, built.args)

        with pytest.raises(UndeclaredWriteError):
            payroll_service.process(ix)
        # The employee slot created before the counter update is rolled back.
        assert selector.find_employee(payroll, wallet) is None
        assert selector.get_payroll(payroll).employee_count == 0

    def test_guard_inactive_after_instruction(self, payroll_service, payroll, employee, bot):
        payroll_service.pay_employee(bot, payroll, employee)
        payroll_service.ledger.fund(ActorId.generate(), 1)


class TestAtomicity:
    def test_failed_add_leaves_nothing(self, payroll_service, selector, ledger, admin, payroll, make_profile):
        """Deposit transfer fails after the slot row is flushed."""
        ledger.transfer(admin, ActorId.generate(), ledger.balance_of(admin))
        wallet = ActorId.generate()

        with pytest.raises(InsufficientFundsError):
            payroll_service.add_employee(admin, payroll, wallet, make_profile())

        assert selector.find_employee(payroll, wallet) is None
        assert selector.get_payroll(payroll).employee_count == 0

    def test_session_usable_after_failure(
        self, payroll_service, selector, admin, payroll, employee, make_profile, bot
    ):
        with pytest.raises(UndeclaredWriteError):
            payroll_service.process(
                Instruction(
                    operation="remove_employee",
                    signer=admin,
                    accounts=(
                        AccountMeta(PAYROLL, payroll, writable=True),
                        AccountMeta(EMPLOYEE, employee),
                        AccountMeta(SIGNER, admin, writable=True),
                    ),
                )
            )
        assert selector.get_employee(employee).balance > 0
        second = payroll_service.add_employee(admin, payroll, bot, make_profile())
        assert selector.get_employee(second).wallet == bot
        assert selector.get_payroll(payroll).employee_count == 2


class TestLogging:
    def test_processed_log(self, payroll_service, payroll, employee, bot, captured_logs):
        payroll_service.pay_employee(bot, payroll, employee)
        processed = [r for r in captured_logs() if r["message"] == "instruction_processed"]
        assert processed[-1]["operation"] == "pay_employee"
        assert processed[-1]["actor_id"] == bot.hex
        assert processed[-1]["correlation_id"]

    def test_failed_log(self, payroll_service, payroll, employee, bot, captured_logs):
        with pytest.raises(Exception):
            payroll_service.remove_employee(bot, payroll, employee)
        failed = [r for r in captured_logs() if r["message"] == "instruction_failed"]
        assert failed[-1]["error_code"] == "UNAUTHORIZED"
        assert failed[-1]["level"] == "WARNING"

    def test_context_cleared_after_instruction(self, payroll_service, payroll, employee, bot):
        from payroll_kernel.logging_config import LogContext

        payroll_service.pay_employee(bot, payroll, employee)
        assert LogContext.get_all() == {}
