"""
inventory_config -- single public entrypoint for inventory configuration.

Responsibility:
    ``get_active_config()`` is the only way services obtain configuration
    at runtime.  It resolves the YAML file (explicit path, then the
    ``INVENTORY_CONFIG`` environment variable, then the packaged default),
    parses and validates it, and emits an ``INVENTORY_CONFIG_TRACE`` log
    entry carrying the file's checksum.

Architecture position:
    Configuration.  Sits above ``inventory_kernel`` and below
    ``inventory_services``.  The kernel MUST NEVER import from
    ``inventory_config``; ``bridges`` translates parsed configuration into
    kernel policy values.

Failure modes:
    - ``FileNotFoundError`` -- the resolved file does not exist.
    - ``ValueError`` -- schema validation failures.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from inventory_config.loader import load_config
from inventory_config.schema import (
    AuditConfig,
    DatabaseConfig,
    InventoryConfig,
    LedgerConfig,
    LoggingConfig,
)

_logger = logging.getLogger("inventory_kernel.config")

CONFIG_ENV_VAR = "INVENTORY_CONFIG"

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "inventory.yaml"


def resolve_config_path(path: Path | str | None = None) -> Path:
    if path is not None:
        return Path(path)
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def get_active_config(path: Path | str | None = None) -> InventoryConfig:
    """The ONLY public configuration entrypoint.

    Raises:
        FileNotFoundError: If the resolved configuration file is missing.
        ValueError: If configuration validation fails.
    """
    config_path = resolve_config_path(path)
    config = load_config(config_path)

    _logger.info(
        "INVENTORY_CONFIG_TRACE",
        extra={
            "trace_type": "INVENTORY_CONFIG_TRACE",
            "config_source": config.source,
            "checksum": config.checksum,
            "archive_inactivity_months": config.ledger.archive_inactivity_months,
            "elevated_roles": list(config.ledger.elevated_roles),
        },
    )
    return config


__all__ = [
    "AuditConfig",
    "CONFIG_ENV_VAR",
    "DEFAULT_CONFIG_PATH",
    "DatabaseConfig",
    "InventoryConfig",
    "LedgerConfig",
    "LoggingConfig",
    "get_active_config",
    "resolve_config_path",
]
