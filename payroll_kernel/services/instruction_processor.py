"""
InstructionProcessor -- atomic, access-checked dispatch of one instruction.

Responsibility:
    Executes one instruction at a time: looks up its registered operation,
    applies the operation's access class, activates the write guard for
    the declared accounts and runs the handler inside a savepoint.

Architecture position:
    Kernel > Services -- imperative shell.  Owned by PayrollService, which
    registers the handlers.

Invariants enforced:
    - All-or-nothing: every write an instruction makes (records, balances,
      events) is inside one SAVEPOINT.  Any exception rolls it back and is
      re-raised unchanged.  Nothing retries.
    - ADMIN operations pass only when the signer is the administrator
      stored on the declared payroll.  The operation that establishes the
      admin passes only when the declared payroll address is the one the
      signer derives to.
    - PUBLIC operations skip the signer check entirely.
    - Writes outside the declared writable set raise UndeclaredWriteError.

Failure modes:
    - UnknownOperationError, MissingAccountError, UnauthorizedError,
      AddressMismatchError, plus anything the handler raises.
"""

from __future__ import annotations

from typing import Any, Callable

from sqlalchemy.orm import Session

from payroll_kernel.domain.addressing import AddressDeriver
from payroll_kernel.domain.authority import AccessClass, authorize
from payroll_kernel.domain.instructions import (
    PAYROLL,
    Instruction,
    OperationSpec,
    operation_spec,
)
from payroll_kernel.exceptions import AddressMismatchError, UnknownOperationError
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_kernel.services.record_store import RecordStore
from payroll_kernel.services.write_guard import WriteGuard

logger = get_logger("services.instruction_processor")

Handler = Callable[[Instruction], Any]


class InstructionProcessor:
    """
    Serial, atomic executor for instructions.

    Usage:
        processor = InstructionProcessor(session, store, deriver, guard)
        processor.register("pay_employee", handler)
        processor.process(instruction)
    """

    def __init__(
        self,
        session: Session,
        store: RecordStore,
        deriver: AddressDeriver,
        guard: WriteGuard,
    ):
        self._session = session
        self._store = store
        self._deriver = deriver
        self._guard = guard
        self._handlers: dict[str, Handler] = {}

    def register(self, operation: str, handler: Handler) -> None:
        operation_spec(operation)
        self._handlers[operation] = handler

    @property
    def registered_operations(self) -> frozenset[str]:
        return frozenset(self._handlers)

    def _check_access(self, spec: OperationSpec, instruction: Instruction) -> None:
        for role in spec.required_accounts:
            instruction.account(role)
        payroll_address = instruction.record_address(PAYROLL)

        if spec.establishes_admin:
            expected = self._deriver.payroll_address(instruction.signer)
            if expected != payroll_address:
                raise AddressMismatchError(PAYROLL, expected.hex, payroll_address.hex)
            return

        if spec.access is AccessClass.PUBLIC:
            return

        payroll = self._store.read_payroll(payroll_address)
        authorize(instruction.signer, payroll, payroll_address, instruction.operation)

    def process(self, instruction: Instruction) -> Any:
        """
        Execute ``instruction`` atomically.

        Returns:
            Whatever the operation's handler returns.

        Raises:
            UnknownOperationError: Operation not registered.
            PayrollKernelError: Any kernel error, after rollback.
        """
        spec = operation_spec(instruction.operation)
        handler = self._handlers.get(instruction.operation)
        if handler is None:
            raise UnknownOperationError(instruction.operation)

        with LogContext.bind(
            correlation_id=instruction.correlation_id,
            actor_id=instruction.signer.hex,
            operation=instruction.operation,
        ):
            logger.debug(
                "instruction_started",
                extra={"access": spec.access.value},
            )
            try:
                with self._session.begin_nested():
                    with self._guard.scope(instruction):
                        self._check_access(spec, instruction)
                        result = handler(instruction)
            except Exception as exc:
                logger.warning(
                    "instruction_failed",
                    extra={
                        "error_code": getattr(exc, "code", type(exc).__name__),
                        "error": str(exc),
                    },
                )
                raise

            logger.info("instruction_processed")
            return result
