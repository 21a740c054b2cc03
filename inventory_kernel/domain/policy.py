"""
Kernel policy inputs (``inventory_kernel.domain.policy``).

The kernel never reads configuration files.  ``inventory_config`` parses
YAML and bridges it into these frozen values, which services accept as
optional constructor arguments and otherwise default.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from inventory_kernel.domain.actor import DEFAULT_ELEVATED_ROLES, Role
from inventory_kernel.domain.audit import DEFAULT_PERIOD_PATTERN
from inventory_kernel.domain.movements import (
    NEGATIVE_ADJUSTMENT_REASONS,
    POSITIVE_ADJUSTMENT_REASONS,
    ReasonCode,
)


@dataclass(frozen=True)
class LedgerPolicy:
    """Item registry and movement ledger settings."""

    archive_inactivity_months: int = 12
    elevated_roles: frozenset[Role] = DEFAULT_ELEVATED_ROLES

    def __post_init__(self) -> None:
        if self.archive_inactivity_months < 0:
            raise ValueError("archive_inactivity_months cannot be negative")
        if not self.elevated_roles:
            raise ValueError("at least one elevated role is required")

    @classmethod
    def with_defaults(cls) -> LedgerPolicy:
        return cls()


@dataclass(frozen=True)
class AuditPolicy:
    """Audit workflow settings."""

    period_pattern: str = DEFAULT_PERIOD_PATTERN
    positive_reason_codes: frozenset[ReasonCode] = field(
        default_factory=lambda: POSITIVE_ADJUSTMENT_REASONS
    )
    negative_reason_codes: frozenset[ReasonCode] = field(
        default_factory=lambda: NEGATIVE_ADJUSTMENT_REASONS
    )

    def __post_init__(self) -> None:
        if not self.period_pattern:
            raise ValueError("period_pattern is required")
        overlap = self.positive_reason_codes & self.negative_reason_codes
        if overlap:
            raise ValueError(
                "reason codes cannot be both positive and negative: "
                + ", ".join(sorted(code.value for code in overlap))
            )
        unknown = (self.positive_reason_codes - POSITIVE_ADJUSTMENT_REASONS) | (
            self.negative_reason_codes - NEGATIVE_ADJUSTMENT_REASONS
        )
        if unknown:
            raise ValueError(
                "reason codes used against their adjustment direction: "
                + ", ".join(sorted(code.value for code in unknown))
            )

    @classmethod
    def with_defaults(cls) -> AuditPolicy:
        return cls()
