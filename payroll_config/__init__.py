"""
payroll_config -- single public entrypoint for runtime configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or ``PAYROLL_*`` environment variables directly.

Architecture position:
    Configuration sits above ``payroll_kernel``.  The kernel never imports
    from ``payroll_config``; callers hand the loaded values to
    ``PayrollService.from_config()`` and ``init_engine_from_url()``.

Environment overrides:
    PAYROLL_CONFIG_DIR    directory holding ``<config_set>.yaml``
    PAYROLL_DATABASE_URL  replaces database.url
    PAYROLL_PROGRAM_ID    replaces program.id (hex)
    PAYROLL_LOG_LEVEL     replaces logging.level

Failure modes:
    - ``FileNotFoundError`` -- no such configuration set.
    - ``KeyError`` -- required key missing.
    - ``ValueError`` -- malformed value.

Audit relevance:
    Every successful call emits a ``PAYROLL_CONFIG_TRACE`` log entry with
    the config id, version and checksum of the loaded document.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping

from payroll_config.loader import apply_env_overrides, load_yaml_file, parse_config
from payroll_config.schema import PayrollConfig, RentConfig

_logger = logging.getLogger("payroll_kernel.config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"

ENV_CONFIG_DIR = "PAYROLL_CONFIG_DIR"


def get_active_config(
    config_set: str = "default",
    config_dir: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> PayrollConfig:
    """
    Load the named configuration set and apply environment overrides.

    Args:
        config_set: Name of ``<config_set>.yaml`` in the sets directory.
        config_dir: Override path to the sets directory.
        environ: Environment mapping (defaults to ``os.environ``).

    Returns:
        Frozen PayrollConfig.
    """
    env = os.environ if environ is None else environ
    sets_dir = config_dir or Path(env.get(ENV_CONFIG_DIR) or _DEFAULT_CONFIG_DIR)
    path = Path(sets_dir) / f"{config_set}.yaml"
    if not path.is_file():
        raise FileNotFoundError(f"Configuration set not found: {path}")

    config = apply_env_overrides(parse_config(load_yaml_file(path)), env)

    _logger.info(
        "PAYROLL_CONFIG_TRACE",
        extra={
            "trace_type": "PAYROLL_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "program_id": config.program_id.hex(),
        },
    )
    return config


__all__ = ["PayrollConfig", "RentConfig", "get_active_config"]
