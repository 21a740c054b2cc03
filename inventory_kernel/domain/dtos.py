"""
Data transfer objects returned by kernel services and selectors.

Services and selectors never hand ORM rows to callers; they return these
frozen snapshots instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from inventory_kernel.domain.audit import AuditLineStatus, AuditStatus
from inventory_kernel.domain.balances import ItemBalances
from inventory_kernel.domain.lifecycle import ItemLifecycle
from inventory_kernel.domain.movements import (
    MovementCategory,
    MovementSubtype,
    ReasonCode,
    Reference,
)


@dataclass(frozen=True)
class ItemInfo:
    id: UUID
    outlet_id: UUID
    name: str
    category: str
    material: str | None
    unit: str
    lifecycle_status: ItemLifecycle
    is_active: bool
    opening_balance_confirmed: bool
    balances: ItemBalances

    @property
    def available_quantity(self) -> int:
        return self.balances.available

    @property
    def allocated_quantity(self) -> int:
        return self.balances.allocated

    @property
    def total_quantity(self) -> int:
        return self.balances.total


@dataclass(frozen=True)
class MovementInfo:
    id: UUID
    sequence: int
    item_id: UUID
    outlet_id: UUID
    category: MovementCategory
    subtype: MovementSubtype | None
    quantity: int
    reference: Reference
    reason_code: ReasonCode | None
    notes: str | None
    actor_id: UUID
    actor_role: str
    recorded_at: datetime


@dataclass(frozen=True)
class AllocationInfo:
    id: UUID
    item_id: UUID
    outlet_id: UUID
    reference: Reference
    allocated_quantity: int
    outstanding_quantity: int
    is_active: bool


@dataclass(frozen=True)
class DeletionCheck:
    """Answer to "may this item be hard-deleted?"."""

    allowed: bool
    reason: str | None = None
    suggestion: str | None = None


@dataclass(frozen=True)
class AuditLineInfo:
    id: UUID
    audit_id: UUID
    item_id: UUID
    item_name: str
    system_quantity: int
    physical_quantity: int | None
    variance: int | None
    reason_code: ReasonCode | None
    notes: str | None
    status: AuditLineStatus


@dataclass(frozen=True)
class AuditInfo:
    id: UUID
    outlet_id: UUID
    period: str
    status: AuditStatus
    items_total: int
    items_counted: int
    variance_positive: int
    variance_negative: int
    created_by_id: UUID
    submitted_by_id: UUID | None
    submitted_at: datetime | None
    approved_by_id: UUID | None
    approved_at: datetime | None
    rejection_reason: str | None


@dataclass(frozen=True)
class AuditOutcome:
    """Result of submitting or deciding an audit."""

    audit: AuditInfo
    movements: tuple[MovementInfo, ...] = ()
    auto_approved: bool = False
