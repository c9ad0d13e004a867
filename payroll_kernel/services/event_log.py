"""
EventLog -- append-only, hash-chained payment notifications.

Responsibility:
    Appends one PaymentEvent per successful payment and serves the log to
    external observers (disbursement automation, auditors).  Provides
    chain validation for tamper detection.

Architecture position:
    Kernel > Services -- imperative shell, called by PayrollService.

Invariants enforced:
    - seq comes from SequenceService (locked counter row, never max+1).
    - hash = H(payroll | employee | paid_at | payload_hash | prev_hash);
      every event links to its predecessor.
    - Append-only: PaymentEvent is protected by ORM listeners.
    - Events share the instruction's transaction, so a rolled-back
      payment leaves no event behind.

Failure modes:
    - EventChainBrokenError from verify_chain() on any mismatch.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from payroll_kernel.domain.keys import ActorId, RecordAddress
from payroll_kernel.domain.schedule import ScheduleAdvance
from payroll_kernel.exceptions import EventChainBrokenError
from payroll_kernel.logging_config import get_logger
from payroll_kernel.models.payment_event import PaymentEvent
from payroll_kernel.services.base import BaseService
from payroll_kernel.services.sequence_service import SequenceService
from payroll_kernel.utils.hashing import hash_payload, hash_payment_event

logger = get_logger("services.event_log")


@dataclass(frozen=True)
class PaymentEventInfo:
    """Read-only view of one payment event."""

    seq: int
    payroll: RecordAddress
    employee: RecordAddress
    signer: ActorId
    paid_at: int
    next_payment_ts: int
    schedule: str
    payload: dict[str, Any]
    hash: str
    prev_hash: str | None


def _to_info(event: PaymentEvent) -> PaymentEventInfo:
    return PaymentEventInfo(
        seq=event.seq,
        payroll=RecordAddress.from_hex(event.payroll),
        employee=RecordAddress.from_hex(event.employee),
        signer=ActorId.from_hex(event.signer),
        paid_at=event.paid_at,
        next_payment_ts=event.next_payment_ts,
        schedule=event.schedule,
        payload=event.payload or {},
        hash=event.hash,
        prev_hash=event.prev_hash,
    )


class EventLog(BaseService[PaymentEvent]):
    """
    Payment event log.

    Non-goals:
        - Does NOT call ``session.commit()``.
        - Does NOT deliver events anywhere; observers poll.
    """

    def __init__(self, session: Session):
        super().__init__(session)
        self._sequence = SequenceService(session)

    def _last_hash(self) -> str | None:
        last = self.session.execute(
            select(PaymentEvent).order_by(PaymentEvent.seq.desc()).limit(1)
        ).scalar_one_or_none()
        return last.hash if last else None

    def append(
        self,
        payroll: RecordAddress,
        employee: RecordAddress,
        signer: ActorId,
        outcome: ScheduleAdvance,
    ) -> PaymentEventInfo:
        """
        Record a successful payment.

        Postconditions:
            - One new PaymentEvent with a fresh seq, linked to the previous
              event's hash.
        """
        seq = self._sequence.next_value(SequenceService.PAYMENT_EVENT)
        prev_hash = self._last_hash()

        payload = {
            "payroll": payroll.hex,
            "employee": employee.hex,
            "paid_at": outcome.last_paid_ts,
            "next_payment_ts": outcome.next_payment_ts,
            "schedule": outcome.schedule,
            "downgraded": outcome.downgraded,
        }
        payload_hash = hash_payload(payload)
        event_hash = hash_payment_event(
            payroll=payroll.hex,
            employee=employee.hex,
            paid_at=outcome.last_paid_ts,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
        )

        event = PaymentEvent(
            seq=seq,
            payroll=payroll.hex,
            employee=employee.hex,
            signer=signer.hex,
            paid_at=outcome.last_paid_ts,
            next_payment_ts=outcome.next_payment_ts,
            schedule=outcome.schedule,
            payload=payload,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
            hash=event_hash,
        )
        self.session.add(event)
        self.session.flush()

        logger.info(
            "payment_event_appended",
            extra={"seq": seq, "payroll": payroll.hex, "employee": employee.hex},
        )
        return _to_info(event)

    # Queries

    def events(self) -> list[PaymentEventInfo]:
        """All events in commit order."""
        rows = self.session.execute(
            select(PaymentEvent).order_by(PaymentEvent.seq)
        ).scalars().all()
        return [_to_info(row) for row in rows]

    def events_for_employee(self, employee: RecordAddress) -> list[PaymentEventInfo]:
        rows = self.session.execute(
            select(PaymentEvent)
            .where(PaymentEvent.employee == employee.hex)
            .order_by(PaymentEvent.seq)
        ).scalars().all()
        return [_to_info(row) for row in rows]

    def events_for_payroll(self, payroll: RecordAddress) -> list[PaymentEventInfo]:
        rows = self.session.execute(
            select(PaymentEvent)
            .where(PaymentEvent.payroll == payroll.hex)
            .order_by(PaymentEvent.seq)
        ).scalars().all()
        return [_to_info(row) for row in rows]

    def verify_chain(self) -> bool:
        """
        Validate the whole chain.

        Raises:
            EventChainBrokenError: A stored hash, payload hash or link does
                not match its recomputed value.
        """
        rows = self.session.execute(
            select(PaymentEvent).order_by(PaymentEvent.seq)
        ).scalars().all()

        expected_prev: str | None = None
        for row in rows:
            if row.prev_hash != expected_prev:
                logger.critical("event_chain_broken", extra={"seq": row.seq})
                raise EventChainBrokenError(
                    row.seq, expected_prev or "None", row.prev_hash or "None"
                )

            payload_hash = hash_payload(row.payload or {})
            if payload_hash != row.payload_hash:
                logger.critical("event_chain_broken", extra={"seq": row.seq})
                raise EventChainBrokenError(row.seq, payload_hash, row.payload_hash)

            expected_hash = hash_payment_event(
                payroll=row.payroll,
                employee=row.employee,
                paid_at=row.paid_at,
                payload_hash=row.payload_hash,
                prev_hash=row.prev_hash,
            )
            if row.hash != expected_hash:
                logger.critical("event_chain_broken", extra={"seq": row.seq})
                raise EventChainBrokenError(row.seq, expected_hash, row.hash)

            expected_prev = row.hash

        logger.info("event_chain_valid", extra={"event_count": len(rows)})
        return True
