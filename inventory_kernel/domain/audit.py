"""
Inventory audit domain types (``inventory_kernel.domain.audit``).

Responsibility
--------------
Pure value objects for the physical-count reconciliation workflow:
the audit state machine, line statuses, reason codes by variance
direction, and the variance summary computed at submission.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``AUDIT_TRANSITIONS`` defines the only valid status transitions.
  Terminal states (approved, rejected) have no outgoing edges.
* At most one audit per outlet is in an ``IN_FLIGHT_AUDIT_STATUSES``
  status at a time (enforced by AuditWorkflow).
* variance = physical - system, never entered by hand.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from inventory_kernel.domain.movements import (
    NEGATIVE_ADJUSTMENT_REASONS,
    POSITIVE_ADJUSTMENT_REASONS,
    ReasonCode,
)


class AuditStatus(str, Enum):
    """Audit lifecycle states."""

    DRAFT = "draft"
    COUNTING = "counting"
    REVIEW = "review"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"


AUDIT_TRANSITIONS: dict[AuditStatus, frozenset[AuditStatus]] = {
    AuditStatus.DRAFT: frozenset({AuditStatus.COUNTING}),
    AuditStatus.COUNTING: frozenset({AuditStatus.REVIEW}),
    AuditStatus.REVIEW: frozenset({
        AuditStatus.PENDING_APPROVAL,
        AuditStatus.APPROVED,
    }),
    AuditStatus.PENDING_APPROVAL: frozenset({
        AuditStatus.APPROVED,
        AuditStatus.REJECTED,
    }),
    AuditStatus.APPROVED: frozenset(),
    AuditStatus.REJECTED: frozenset(),
}

TERMINAL_AUDIT_STATUSES: frozenset[AuditStatus] = frozenset({
    AuditStatus.APPROVED,
    AuditStatus.REJECTED,
})

IN_FLIGHT_AUDIT_STATUSES: frozenset[AuditStatus] = frozenset({
    AuditStatus.COUNTING,
    AuditStatus.REVIEW,
    AuditStatus.PENDING_APPROVAL,
})

# Statuses in which counts may still be entered or corrected.
COUNTABLE_AUDIT_STATUSES: frozenset[AuditStatus] = frozenset({
    AuditStatus.COUNTING,
    AuditStatus.REVIEW,
})

CANCELLABLE_AUDIT_STATUSES: frozenset[AuditStatus] = frozenset({
    AuditStatus.DRAFT,
    AuditStatus.COUNTING,
    AuditStatus.REVIEW,
})


class AuditLineStatus(str, Enum):
    """Per-item count status."""

    PENDING = "pending"
    COUNTED = "counted"
    REVIEWED = "reviewed"


DEFAULT_PERIOD_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


def can_transition(from_status: AuditStatus, to_status: AuditStatus) -> bool:
    return to_status in AUDIT_TRANSITIONS[from_status]


def is_valid_period(period: str, pattern: str = DEFAULT_PERIOD_PATTERN) -> bool:
    return isinstance(period, str) and re.fullmatch(pattern, period) is not None


def reason_fits_variance(
    reason_code: ReasonCode,
    variance: int,
    positive_reasons: frozenset[ReasonCode] = POSITIVE_ADJUSTMENT_REASONS,
    negative_reasons: frozenset[ReasonCode] = NEGATIVE_ADJUSTMENT_REASONS,
) -> bool:
    """Surplus lines take a positive reason, shortage lines a negative one."""
    if variance > 0:
        return reason_code in positive_reasons
    if variance < 0:
        return reason_code in negative_reasons
    return reason_code in positive_reasons | negative_reasons


@dataclass(frozen=True)
class VarianceSummary:
    """Totals stored on the audit at submission."""

    variance_positive: int
    variance_negative: int

    @classmethod
    def of(cls, variances: Iterable[int]) -> VarianceSummary:
        positive = 0
        negative = 0
        for variance in variances:
            if variance > 0:
                positive += variance
            elif variance < 0:
                negative += variance
        return cls(variance_positive=positive, variance_negative=negative)

    @property
    def auto_approves(self) -> bool:
        """No shortages: surpluses and exact matches only."""
        return self.variance_negative == 0


def audit_note(period: str, notes: str | None, negative: bool = False) -> str:
    tag = f"[Audit: {period} - NEGATIVE]" if negative else f"[Audit: {period}]"
    return f"{notes} {tag}" if notes else tag
