"""
payroll_kernel.domain.authority -- Administrator gate for mutating operations.

Responsibility:
    Classify every operation as ADMIN (signer must be the payroll's stored
    administrator) or PUBLIC (any signer, including unattended automation),
    and perform the administrator check.

Invariants:
    - The kernel does not verify signatures; the host proves the signer
      controls its ActorId before an instruction reaches the kernel.
    - One administrator per payroll, read from the Payroll record.  There
      are no roles or delegation.
    - PUBLIC operations can trigger bookkeeping but never choose where
      value or records go.
"""

from __future__ import annotations

from enum import Enum

from payroll_kernel.domain.keys import ActorId, RecordAddress
from payroll_kernel.domain.records import PayrollRecord
from payroll_kernel.exceptions import UnauthorizedError


class AccessClass(str, Enum):
    """Who may submit an operation."""

    ADMIN = "admin"
    PUBLIC = "public"


def is_admin(actor: ActorId, payroll: PayrollRecord) -> bool:
    return actor == payroll.admin


def authorize(
    actor: ActorId,
    payroll: PayrollRecord,
    payroll_address: RecordAddress,
    operation: str,
) -> None:
    """
    Pass iff ``actor`` is the payroll's administrator.

    Raises:
        UnauthorizedError: Otherwise.
    """
    if not is_admin(actor, payroll):
        raise UnauthorizedError(
            actor=actor.hex,
            payroll=payroll_address.hex,
            operation=operation,
        )
