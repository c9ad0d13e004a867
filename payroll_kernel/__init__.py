"""
Payroll Kernel

A deterministic keyed record store for payroll bookkeeping with:
- Derived record addresses (no central index)
- Administrator-gated mutation, with payment left open to automation
- Scheduled recurring-payment state per employee
- Explicitly sized, resizable and reclaimable storage slots
- Append-only, hash-chained payment event log
"""

__version__ = "0.1.0"
