"""
Payroll configuration schema.

Frozen dataclasses produced by ``payroll_config.loader`` from a YAML
configuration set.  Nothing else constructs them at runtime.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RentConfig:
    """Storage deposit parameters: (capacity + overhead_bytes) * per_byte."""

    per_byte: int
    overhead_bytes: int


@dataclass(frozen=True)
class PayrollConfig:
    """The runtime configuration for one deployment."""

    config_id: str
    version: int
    database_url: str
    program_id: bytes
    rent: RentConfig
    log_level: str
    checksum: str
