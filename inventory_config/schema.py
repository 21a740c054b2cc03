"""
Inventory configuration schema.

Frozen dataclasses parsed from ``inventory.yaml`` by the loader.  Each
section validates itself in ``__post_init__`` and raises ``ValueError``
with the offending key; nothing is silently defaulted once a value is
present in the file.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from inventory_kernel.domain.actor import Role
from inventory_kernel.domain.audit import DEFAULT_PERIOD_PATTERN
from inventory_kernel.domain.movements import (
    NEGATIVE_ADJUSTMENT_REASONS,
    POSITIVE_ADJUSTMENT_REASONS,
    ReasonCode,
)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _reason_values(codes: frozenset[ReasonCode]) -> tuple[str, ...]:
    return tuple(sorted(code.value for code in codes))


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings passed to ``init_engine_from_url``."""

    url: str = "sqlite:///inventory.db"
    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 10

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("database.url is required")
        if self.pool_size < 1:
            raise ValueError("database.pool_size must be >= 1")
        if self.max_overflow < 0:
            raise ValueError("database.max_overflow cannot be negative")


@dataclass(frozen=True)
class LedgerConfig:
    """Item registry and movement ledger settings."""

    archive_inactivity_months: int = 12
    elevated_roles: tuple[str, ...] = (Role.ADMIN.value, Role.SYSTEM.value)

    def __post_init__(self) -> None:
        if self.archive_inactivity_months < 0:
            raise ValueError("ledger.archive_inactivity_months cannot be negative")
        if not self.elevated_roles:
            raise ValueError("ledger.elevated_roles cannot be empty")
        known = {role.value for role in Role}
        unknown = [role for role in self.elevated_roles if role not in known]
        if unknown:
            raise ValueError(f"ledger.elevated_roles has unknown roles: {unknown}")


@dataclass(frozen=True)
class AuditConfig:
    """Audit workflow settings."""

    period_pattern: str = DEFAULT_PERIOD_PATTERN
    positive_reason_codes: tuple[str, ...] = field(
        default_factory=lambda: _reason_values(POSITIVE_ADJUSTMENT_REASONS)
    )
    negative_reason_codes: tuple[str, ...] = field(
        default_factory=lambda: _reason_values(NEGATIVE_ADJUSTMENT_REASONS)
    )

    def __post_init__(self) -> None:
        try:
            re.compile(self.period_pattern)
        except re.error as exc:
            raise ValueError(f"audit.period_pattern is not a valid regex: {exc}") from exc
        known = {code.value for code in ReasonCode}
        for key in ("positive_reason_codes", "negative_reason_codes"):
            unknown = [code for code in getattr(self, key) if code not in known]
            if unknown:
                raise ValueError(f"audit.{key} has unknown reason codes: {unknown}")


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"

    def __post_init__(self) -> None:
        if self.level.upper() not in _LOG_LEVELS:
            raise ValueError(f"logging.level must be one of {_LOG_LEVELS}")

    @property
    def numeric_level(self) -> int:
        return logging.getLevelName(self.level.upper())


@dataclass(frozen=True)
class InventoryConfig:
    """The whole configuration file."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    checksum: str = ""
    source: str = ""
