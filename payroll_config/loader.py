"""
Configuration Loader (``payroll_config.loader``).

Responsibility
--------------
Loads one YAML configuration set and parses it into a frozen
``PayrollConfig``, then applies environment overrides.  Runtime callers use
``payroll_config.get_active_config()`` instead of calling this directly.

Invariants enforced
-------------------
* No silent defaults for required keys: a missing key raises ``KeyError``.
* Malformed values (negative rent, bad hex, unknown log level) raise
  ``ValueError``.
* ``compute_checksum`` is a deterministic SHA-256 over the parsed document,
  so the same YAML always yields the same checksum.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Mapping

import yaml

from payroll_config.schema import PayrollConfig, RentConfig
from payroll_kernel.domain.addressing import DEFAULT_PROGRAM_ID, MAX_SEED_LEN

ENV_DATABASE_URL = "PAYROLL_DATABASE_URL"
ENV_PROGRAM_ID = "PAYROLL_PROGRAM_ID"
ENV_LOG_LEVEL = "PAYROLL_LOG_LEVEL"

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_program_id(value: str | None) -> bytes:
    """Hex program id; None selects the built-in deployment id."""
    if value is None:
        return DEFAULT_PROGRAM_ID
    try:
        raw = bytes.fromhex(str(value))
    except ValueError as exc:
        raise ValueError(f"program id must be hex, got {value!r}") from exc
    if not 0 < len(raw) <= MAX_SEED_LEN:
        raise ValueError(
            f"program id must be 1..{MAX_SEED_LEN} bytes, got {len(raw)}"
        )
    return raw


def parse_rent(data: dict[str, Any]) -> RentConfig:
    per_byte = int(data["per_byte"])
    overhead_bytes = int(data["overhead_bytes"])
    if per_byte < 0 or overhead_bytes < 0:
        raise ValueError("rent parameters must be non-negative")
    return RentConfig(per_byte=per_byte, overhead_bytes=overhead_bytes)


def parse_log_level(value: str) -> str:
    level = str(value).upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"Unknown log level {value!r}")
    return level


def parse_config(data: dict[str, Any]) -> PayrollConfig:
    """
    Parse a configuration document.

    Raises:
        KeyError: A required key is missing.
        ValueError: A value is malformed.
    """
    return PayrollConfig(
        config_id=data["config_id"],
        version=int(data["version"]),
        database_url=data["database"]["url"],
        program_id=parse_program_id(data["program"].get("id")),
        rent=parse_rent(data["rent"]),
        log_level=parse_log_level(data["logging"]["level"]),
        checksum=compute_checksum(data),
    )


def apply_env_overrides(
    config: PayrollConfig, environ: Mapping[str, str]
) -> PayrollConfig:
    """Environment variables win over the YAML document."""
    changes: dict[str, Any] = {}
    if environ.get(ENV_DATABASE_URL):
        changes["database_url"] = environ[ENV_DATABASE_URL]
    if environ.get(ENV_PROGRAM_ID):
        changes["program_id"] = parse_program_id(environ[ENV_PROGRAM_ID])
    if environ.get(ENV_LOG_LEVEL):
        changes["log_level"] = parse_log_level(environ[ENV_LOG_LEVEL])
    if not changes:
        return config
    return replace(config, **changes)


def log_level_value(config: PayrollConfig) -> int:
    return logging.getLevelName(config.log_level)
