"""
Module: payroll_kernel.models.payment_event
Responsibility: ORM persistence for the append-only payment event log.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Rows are append-only; no UPDATE or DELETE (ORM listener).
    - seq is monotonically increasing, allocated by SequenceService.
    - hash = H(payroll | employee | paid_at | payload_hash | prev_hash).
      Validated by EventLog.verify_chain().

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.
    - EventChainBrokenError when chain validation detects a mismatch.
"""

from datetime import datetime

from sqlalchemy import JSON, BigInteger, DateTime, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import Base


class PaymentEvent(Base):
    """
    One successful payment, as seen by external observers.

    Guarantees:
        - prev_hash is None only for the genesis event.
        - paid_at is the trusted timestamp the payment was processed at.
    """

    __tablename__ = "payment_events"

    __table_args__ = (
        Index("idx_payment_event_payroll", "payroll"),
        Index("idx_payment_event_employee", "employee"),
    )

    # Monotonic sequence for ordering
    seq: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        unique=True,
    )

    # Payroll record address, lowercase hex
    payroll: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    # Employee record address, lowercase hex
    employee: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    # Actor that triggered the payment (anyone may)
    signer: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    paid_at: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    next_payment_ts: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    schedule: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    payload: Mapped[dict | None] = mapped_column(
        JSON,
        nullable=True,
    )

    payload_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    prev_hash: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<PaymentEvent #{self.seq} {self.employee[:12]}...>"

    @property
    def is_genesis(self) -> bool:
        return self.prev_hash is None
