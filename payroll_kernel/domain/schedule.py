"""
Pure schedule evaluation for recurring employee payments.

Contract:
    ``advance(schedule_tag, paid_at)`` is PURE -- no I/O, no clock reads.
    The caller supplies the trusted timestamp.

Transition on every successful payment at time ``t``::

    Weekly    -> next = t + 7d,  tag unchanged
    Bi-Weekly -> next = t + 14d, tag unchanged
    Monthly   -> next = t + 30d, tag unchanged
    anything  -> tag := "Weekly", next = t + 7d
    last_paid := t

A day is a fixed 86,400 seconds; no calendar, timezone or leap-second
adjustment.  ``next_payment_ts`` is advisory metadata for external
schedulers; nothing here gates a payment on it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from payroll_kernel.exceptions import ArithmeticOverflowError

SECONDS_PER_DAY = 86_400

_I64_MIN = -(2**63)
_I64_MAX = 2**63 - 1


class PaySchedule(str, Enum):
    """Recognized payment cadences. CUSTOM covers every other tag."""

    WEEKLY = "Weekly"
    BI_WEEKLY = "Bi-Weekly"
    MONTHLY = "Monthly"
    CUSTOM = "Custom"


INTERVAL_DAYS: dict[PaySchedule, int] = {
    PaySchedule.WEEKLY: 7,
    PaySchedule.BI_WEEKLY: 14,
    PaySchedule.MONTHLY: 30,
}

DEFAULT_SCHEDULE = PaySchedule.WEEKLY


def classify(tag: str) -> PaySchedule:
    """Map a stored schedule tag to its logical state (exact match only)."""
    for schedule in INTERVAL_DAYS:
        if tag == schedule.value:
            return schedule
    return PaySchedule.CUSTOM


def interval_seconds(schedule: PaySchedule) -> int:
    days = INTERVAL_DAYS.get(schedule, INTERVAL_DAYS[DEFAULT_SCHEDULE])
    return days * SECONDS_PER_DAY


@dataclass(frozen=True)
class ScheduleAdvance:
    """Outcome of one payment against a schedule."""

    schedule: str
    next_payment_ts: int
    last_paid_ts: int
    downgraded: bool


def advance(schedule_tag: str, paid_at: int) -> ScheduleAdvance:
    """
    Compute the schedule state after a payment at ``paid_at``.

    Raises:
        ArithmeticOverflowError: If the next timestamp leaves the i64 range.
    """
    state = classify(schedule_tag)
    downgraded = state is PaySchedule.CUSTOM
    if downgraded:
        state = DEFAULT_SCHEDULE

    next_ts = paid_at + interval_seconds(state)
    if not _I64_MIN <= next_ts <= _I64_MAX:
        raise ArithmeticOverflowError("next_payment_ts", "schedule_advance")

    return ScheduleAdvance(
        schedule=state.value,
        next_payment_ts=next_ts,
        last_paid_ts=paid_at,
        downgraded=downgraded,
    )


def is_due(next_payment_ts: int, as_of: int) -> bool:
    """Advisory check for external disbursement automation."""
    return next_payment_ts <= as_of
