"""
Deterministic hashing utilities.

All hashing in the payroll kernel must be deterministic and reproducible.
This module provides the canonical hashing functions used throughout.
"""

import hashlib
import json
from datetime import date, datetime
from typing import Any
from uuid import UUID


def _json_serializer(obj: Any) -> Any:
    """
    Custom JSON serializer for types not natively supported.

    Raises:
        TypeError: If object type is not supported.
    """
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, bytes):
        return obj.hex()

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: dict | list | Any) -> str:
    """
    Convert data to canonical JSON string.

    Keys are sorted, no whitespace, bytes rendered as hex.
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def hash_payload(payload: dict) -> str:
    """
    Compute SHA-256 hash of a payload.

    Returns:
        Hex-encoded SHA-256 hash (64 characters).
    """
    canonical = canonicalize_json(payload)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def hash_payment_event(
    payroll: str,
    employee: str,
    paid_at: int,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """
    Compute the chained hash for a payment event.

    The hash includes the previous event's hash, creating a
    tamper-evident chain.

    Args:
        payroll: Payroll address (hex).
        employee: Employee address (hex).
        paid_at: Trusted timestamp of the payment.
        payload_hash: Hash of the event payload.
        prev_hash: Hash of the previous event (None for genesis).

    Returns:
        Hex-encoded SHA-256 hash.
    """
    components = [
        payroll,
        employee,
        str(paid_at),
        payload_hash,
        prev_hash or "GENESIS",
    ]
    data = "|".join(components)
    return hashlib.sha256(data.encode("utf-8")).hexdigest()
