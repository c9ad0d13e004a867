"""
Instructions -- what a client submits, and how each operation is classified.

Responsibility:
    Defines the instruction envelope (operation, signer, declared accounts,
    typed arguments), the operation registry with its access class, and
    client-side builders that derive and declare addresses.

Architecture position:
    Kernel > Domain -- pure value objects, zero I/O.

Invariants enforced:
    - Every instruction declares, up front, each address it touches and
      whether it may be written.  The record store refuses writes outside
      the writable set.
    - Every registered operation carries exactly one AccessClass, so the
      public/admin split is visible in the registry instead of in handlers.

Account roles::

    initialize_payroll  payroll(w)  signer(w)
    add_employee        payroll(w)  employee(w)  employee_wallet  signer(w)
    update_employee     employee(w) payroll      signer(w)
    pay_employee        payroll     employee(w)  payroll_admin(w)  signer
    remove_employee     payroll(w)  employee(w)  signer(w)

The signer is writable wherever it funds storage deposits, or receives
refunds and swept value.  pay_employee never charges its signer: slot
growth on pay is funded by the payroll_admin wallet.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union
from uuid import uuid4

from payroll_kernel.domain.addressing import AddressDeriver
from payroll_kernel.domain.authority import AccessClass
from payroll_kernel.domain.keys import ActorId, Key32, RecordAddress
from payroll_kernel.domain.records import EmployeeProfile
from payroll_kernel.exceptions import MissingAccountError, UnknownOperationError


class Operation(str, Enum):
    INITIALIZE_PAYROLL = "initialize_payroll"
    ADD_EMPLOYEE = "add_employee"
    UPDATE_EMPLOYEE = "update_employee"
    PAY_EMPLOYEE = "pay_employee"
    REMOVE_EMPLOYEE = "remove_employee"


# Account roles
PAYROLL = "payroll"
EMPLOYEE = "employee"
EMPLOYEE_WALLET = "employee_wallet"
PAYROLL_ADMIN = "payroll_admin"
SIGNER = "signer"


@dataclass(frozen=True)
class OperationSpec:
    """
    Registry entry for one operation.

    ``establishes_admin`` marks the operation whose signer becomes the
    administrator; the admin check for it is the address derivation itself.
    """

    operation: Operation
    access: AccessClass
    required_accounts: tuple[str, ...]
    establishes_admin: bool = False


OPERATIONS: dict[str, OperationSpec] = {
    spec.operation.value: spec
    for spec in (
        OperationSpec(
            Operation.INITIALIZE_PAYROLL,
            AccessClass.ADMIN,
            (PAYROLL, SIGNER),
            establishes_admin=True,
        ),
        OperationSpec(
            Operation.ADD_EMPLOYEE,
            AccessClass.ADMIN,
            (PAYROLL, EMPLOYEE, EMPLOYEE_WALLET, SIGNER),
        ),
        OperationSpec(
            Operation.UPDATE_EMPLOYEE,
            AccessClass.ADMIN,
            (EMPLOYEE, PAYROLL, SIGNER),
        ),
        OperationSpec(
            Operation.PAY_EMPLOYEE,
            AccessClass.PUBLIC,
            (PAYROLL, EMPLOYEE, PAYROLL_ADMIN, SIGNER),
        ),
        OperationSpec(
            Operation.REMOVE_EMPLOYEE,
            AccessClass.ADMIN,
            (PAYROLL, EMPLOYEE, SIGNER),
        ),
    )
}


def operation_spec(operation: str) -> OperationSpec:
    """
    Look up a registered operation.

    Raises:
        UnknownOperationError: If no operation of that name is registered.
    """
    try:
        return OPERATIONS[operation]
    except KeyError:
        raise UnknownOperationError(operation) from None


def access_class(operation: str) -> AccessClass:
    return operation_spec(operation).access


def public_operations() -> frozenset[str]:
    return frozenset(
        name for name, spec in OPERATIONS.items()
        if spec.access is AccessClass.PUBLIC
    )


def admin_operations() -> frozenset[str]:
    return frozenset(
        name for name, spec in OPERATIONS.items()
        if spec.access is AccessClass.ADMIN
    )


@dataclass(frozen=True)
class AccountMeta:
    role: str
    address: Key32
    writable: bool = False


@dataclass(frozen=True)
class InitializePayrollArgs:
    company_name: str


InstructionArgs = Union[InitializePayrollArgs, EmployeeProfile, None]


@dataclass(frozen=True)
class Instruction:
    """One operation submitted by one signer."""

    operation: str
    signer: ActorId
    accounts: tuple[AccountMeta, ...]
    args: InstructionArgs = None
    correlation_id: str = field(default_factory=lambda: str(uuid4()))

    def account(self, role: str) -> Key32:
        """
        Address declared for ``role``.

        Raises:
            MissingAccountError: If the instruction does not declare it.
        """
        for meta in self.accounts:
            if meta.role == role:
                return meta.address
        raise MissingAccountError(self.operation, role)

    def record_address(self, role: str) -> RecordAddress:
        address = self.account(role)
        if isinstance(address, RecordAddress):
            return address
        return RecordAddress(address.raw)

    def actor(self, role: str) -> ActorId:
        address = self.account(role)
        if isinstance(address, ActorId):
            return address
        return ActorId(address.raw)

    @property
    def writable_addresses(self) -> frozenset[bytes]:
        return frozenset(meta.address.raw for meta in self.accounts if meta.writable)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def build_initialize_payroll(
    deriver: AddressDeriver,
    admin: ActorId,
    company_name: str,
) -> Instruction:
    return Instruction(
        operation=Operation.INITIALIZE_PAYROLL.value,
        signer=admin,
        accounts=(
            AccountMeta(PAYROLL, deriver.payroll_address(admin), writable=True),
            AccountMeta(SIGNER, admin, writable=True),
        ),
        args=InitializePayrollArgs(company_name=company_name),
    )


def build_add_employee(
    deriver: AddressDeriver,
    signer: ActorId,
    payroll: RecordAddress,
    wallet: ActorId,
    profile: EmployeeProfile,
) -> Instruction:
    return Instruction(
        operation=Operation.ADD_EMPLOYEE.value,
        signer=signer,
        accounts=(
            AccountMeta(PAYROLL, payroll, writable=True),
            AccountMeta(
                EMPLOYEE, deriver.employee_address(payroll, wallet), writable=True
            ),
            AccountMeta(EMPLOYEE_WALLET, wallet),
            AccountMeta(SIGNER, signer, writable=True),
        ),
        args=profile,
    )


def build_update_employee(
    signer: ActorId,
    payroll: RecordAddress,
    employee: RecordAddress,
    profile: EmployeeProfile,
) -> Instruction:
    return Instruction(
        operation=Operation.UPDATE_EMPLOYEE.value,
        signer=signer,
        accounts=(
            AccountMeta(EMPLOYEE, employee, writable=True),
            AccountMeta(PAYROLL, payroll),
            AccountMeta(SIGNER, signer, writable=True),
        ),
        args=profile,
    )


def build_pay_employee(
    signer: ActorId,
    payroll: RecordAddress,
    employee: RecordAddress,
    admin: ActorId,
) -> Instruction:
    """``admin`` is the payroll's administrator, read from the Payroll record."""
    return Instruction(
        operation=Operation.PAY_EMPLOYEE.value,
        signer=signer,
        accounts=(
            AccountMeta(PAYROLL, payroll),
            AccountMeta(EMPLOYEE, employee, writable=True),
            AccountMeta(PAYROLL_ADMIN, admin, writable=True),
            AccountMeta(SIGNER, signer),
        ),
    )


def build_remove_employee(
    signer: ActorId,
    payroll: RecordAddress,
    employee: RecordAddress,
) -> Instruction:
    return Instruction(
        operation=Operation.REMOVE_EMPLOYEE.value,
        signer=signer,
        accounts=(
            AccountMeta(PAYROLL, payroll, writable=True),
            AccountMeta(EMPLOYEE, employee, writable=True),
            AccountMeta(SIGNER, signer, writable=True),
        ),
    )
