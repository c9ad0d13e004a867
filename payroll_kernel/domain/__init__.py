"""
Pure domain layer.

This module contains value objects and pure functions with NO
dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock (the trusted timestamp is always passed in)
- I/O

All domain objects are immutable and deterministic.
"""

from payroll_kernel.domain.addressing import (
    DEFAULT_PROGRAM_ID,
    EMPLOYEE_NAMESPACE,
    PAYROLL_NAMESPACE,
    AddressDeriver,
    derive,
)
from payroll_kernel.domain.authority import AccessClass, authorize, is_admin
from payroll_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from payroll_kernel.domain.instructions import (
    OPERATIONS,
    AccountMeta,
    InitializePayrollArgs,
    Instruction,
    Operation,
    OperationSpec,
    build_add_employee,
    build_initialize_payroll,
    build_pay_employee,
    build_remove_employee,
    build_update_employee,
)
from payroll_kernel.domain.keys import ActorId, Key32, RecordAddress
from payroll_kernel.domain.records import (
    EmployeeProfile,
    EmployeeRecord,
    PayrollRecord,
    RecordKind,
)
from payroll_kernel.domain.rent import RentSchedule
from payroll_kernel.domain.schedule import PaySchedule, ScheduleAdvance, advance

__all__ = [
    # Keys and addressing
    "ActorId",
    "Key32",
    "RecordAddress",
    "AddressDeriver",
    "derive",
    "DEFAULT_PROGRAM_ID",
    "PAYROLL_NAMESPACE",
    "EMPLOYEE_NAMESPACE",
    # Records
    "RecordKind",
    "PayrollRecord",
    "EmployeeRecord",
    "EmployeeProfile",
    # Schedule
    "PaySchedule",
    "ScheduleAdvance",
    "advance",
    # Authorization and instructions
    "AccessClass",
    "authorize",
    "is_admin",
    "Operation",
    "OperationSpec",
    "OPERATIONS",
    "AccountMeta",
    "Instruction",
    "InitializePayrollArgs",
    "build_initialize_payroll",
    "build_add_employee",
    "build_update_employee",
    "build_pay_employee",
    "build_remove_employee",
    # Storage deposits and time
    "RentSchedule",
    "Clock",
    "SystemClock",
    "DeterministicClock",
]
