"""Services for the payroll kernel (write side)."""

from payroll_kernel.services.event_log import EventLog, PaymentEventInfo
from payroll_kernel.services.instruction_processor import InstructionProcessor
from payroll_kernel.services.payroll_service import PayrollService, RemovalResult
from payroll_kernel.services.record_store import RecordStore, ResizePolicy
from payroll_kernel.services.sequence_service import SequenceService
from payroll_kernel.services.value_ledger import ValueLedger
from payroll_kernel.services.write_guard import WriteGuard

__all__ = [
    "EventLog",
    "InstructionProcessor",
    "PaymentEventInfo",
    "PayrollService",
    "RecordStore",
    "RemovalResult",
    "ResizePolicy",
    "SequenceService",
    "ValueLedger",
    "WriteGuard",
]
