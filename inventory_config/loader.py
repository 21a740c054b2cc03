"""
Configuration Loader (``inventory_config.loader``).

Loads ``inventory.yaml`` and parses it into the frozen dataclasses of
``inventory_config.schema``.  Runtime callers go through
``inventory_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown or invalid keys  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from inventory_config.schema import (
    AuditConfig,
    DatabaseConfig,
    InventoryConfig,
    LedgerConfig,
    LoggingConfig,
)

_SECTIONS = ("database", "ledger", "audit", "logging")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _section(data: dict[str, Any], name: str, allowed: tuple[str, ...]) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"'{name}' must be a mapping")
    unknown = sorted(set(section) - set(allowed))
    if unknown:
        raise ValueError(f"Unknown keys in '{name}': {unknown}")
    return section


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    section = _section(data, "database", ("url", "echo", "pool_size", "max_overflow"))
    return DatabaseConfig(
        url=section.get("url", DatabaseConfig.url),
        echo=bool(section.get("echo", False)),
        pool_size=int(section.get("pool_size", 5)),
        max_overflow=int(section.get("max_overflow", 10)),
    )


def parse_ledger(data: dict[str, Any]) -> LedgerConfig:
    section = _section(data, "ledger", ("archive_inactivity_months", "elevated_roles"))
    defaults = LedgerConfig()
    return LedgerConfig(
        archive_inactivity_months=int(
            section.get("archive_inactivity_months", defaults.archive_inactivity_months)
        ),
        elevated_roles=tuple(section.get("elevated_roles", defaults.elevated_roles)),
    )


def parse_audit(data: dict[str, Any]) -> AuditConfig:
    section = _section(
        data,
        "audit",
        ("period_pattern", "positive_reason_codes", "negative_reason_codes"),
    )
    defaults = AuditConfig()
    return AuditConfig(
        period_pattern=section.get("period_pattern", defaults.period_pattern),
        positive_reason_codes=tuple(
            section.get("positive_reason_codes", defaults.positive_reason_codes)
        ),
        negative_reason_codes=tuple(
            section.get("negative_reason_codes", defaults.negative_reason_codes)
        ),
    )


def parse_logging(data: dict[str, Any]) -> LoggingConfig:
    section = _section(data, "logging", ("level",))
    return LoggingConfig(level=str(section.get("level", "INFO")))


def parse_config(data: dict[str, Any], source: str = "") -> InventoryConfig:
    """Parse a whole configuration mapping."""
    unknown = sorted(set(data) - set(_SECTIONS))
    if unknown:
        raise ValueError(f"Unknown configuration sections: {unknown}")
    return InventoryConfig(
        database=parse_database(data),
        ledger=parse_ledger(data),
        audit=parse_audit(data),
        logging=parse_logging(data),
        checksum=compute_checksum(data),
        source=source,
    )


def load_config(path: Path) -> InventoryConfig:
    return parse_config(load_yaml_file(path), source=str(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    SHA-256 checksum of the canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
