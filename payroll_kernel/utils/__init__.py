"""Utility modules for the payroll kernel."""

from payroll_kernel.utils.hashing import (
    canonicalize_json,
    hash_payload,
    hash_payment_event,
)

__all__ = [
    "canonicalize_json",
    "hash_payload",
    "hash_payment_event",
]
