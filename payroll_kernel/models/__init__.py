"""ORM models for the payroll kernel."""

from payroll_kernel.models.payment_event import PaymentEvent
from payroll_kernel.models.record_slot import RecordSlot
from payroll_kernel.models.sequence import SequenceCounter
from payroll_kernel.models.wallet import WalletBalance

__all__ = [
    "PaymentEvent",
    "RecordSlot",
    "SequenceCounter",
    "WalletBalance",
]
