"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

Payment events are consumed by external automation and auditors.  Once
written they must never change.  Record slots change constantly, but two
things about them must not: the address a slot lives at (and the kind of
record it holds), and the rule that a slot still holding value is never
dropped on the floor.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events and check our invariants:

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_*_delete() --------> ImmutabilityViolationError
         |                                                / ReclaimError
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity          | Rule
----------------|------------------------------------------------------------
PaymentEvent    | ALWAYS immutable, never deleted
RecordSlot      | address and kind immutable; DELETE only when balance == 0

===============================================================================
USAGE
===============================================================================

Called by create_tables(), or once at startup:

    from payroll_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from payroll_kernel.exceptions import ImmutabilityViolationError, ReclaimError
from payroll_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

RECORD_SLOT_FROZEN_FIELDS = ("address", "kind")


def _check_payment_event_immutability(mapper, connection, target):
    """Prevent any updates to PaymentEvent records."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "PaymentEvent",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="PaymentEvent",
        entity_id=str(target.id),
        reason="Payment events are immutable and cannot be modified",
    )


def _check_payment_event_delete(mapper, connection, target):
    """Prevent deletion of PaymentEvent records."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "PaymentEvent",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="PaymentEvent",
        entity_id=str(target.id),
        reason="Payment events cannot be deleted",
    )


def _check_record_slot_immutability(mapper, connection, target):
    """Block changes to a slot's address or kind."""
    for field_name in RECORD_SLOT_FROZEN_FIELDS:
        history = get_history(target, field_name)
        if history.deleted:
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "RecordSlot",
                    "entity_id": str(target.id),
                    "operation": "UPDATE",
                    "field": field_name,
                },
            )
            raise ImmutabilityViolationError(
                entity_type="RecordSlot",
                entity_id=str(target.id),
                reason=f"{field_name} cannot change after creation",
            )


def _check_record_slot_delete(mapper, connection, target):
    """A slot is freed only after its balance has been swept."""
    if target.balance:
        logger.error(
            "reclaim_blocked",
            extra={
                "address": target.address,
                "remaining": target.balance,
            },
        )
        raise ReclaimError(address=target.address, remaining=target.balance)


_LISTENERS = (
    ("PaymentEvent", "before_update", _check_payment_event_immutability),
    ("PaymentEvent", "before_delete", _check_payment_event_delete),
    ("RecordSlot", "before_update", _check_record_slot_immutability),
    ("RecordSlot", "before_delete", _check_record_slot_delete),
)


def _models() -> dict:
    from payroll_kernel.models.payment_event import PaymentEvent
    from payroll_kernel.models.record_slot import RecordSlot

    return {"PaymentEvent": PaymentEvent, "RecordSlot": RecordSlot}


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Idempotent: listeners already registered are left alone.
    """
    models = _models()
    for model_name, event_name, listener_fn in _LISTENERS:
        target = models[model_name]
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    models = _models()
    for model_name, event_name, listener_fn in _LISTENERS:
        _safe_remove_listener(models[model_name], event_name, listener_fn)
