"""
Module: inventory_kernel.selectors.audit_selector
Responsibility: Read-only queries over inventory audits and audit lines.
Architecture position: Kernel > Selectors.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.domain.audit import (
    IN_FLIGHT_AUDIT_STATUSES,
    AuditLineStatus,
    AuditStatus,
)
from inventory_kernel.domain.dtos import AuditInfo, AuditLineInfo
from inventory_kernel.domain.movements import ReasonCode
from inventory_kernel.models.audit import AuditLine, InventoryAudit
from inventory_kernel.selectors.base import BaseSelector


def to_audit_info(audit: InventoryAudit) -> AuditInfo:
    return AuditInfo(
        id=audit.id,
        outlet_id=audit.outlet_id,
        period=audit.period,
        status=AuditStatus(audit.status),
        items_total=audit.items_total,
        items_counted=audit.items_counted,
        variance_positive=audit.variance_positive,
        variance_negative=audit.variance_negative,
        created_by_id=audit.created_by_id,
        submitted_by_id=audit.submitted_by_id,
        submitted_at=audit.submitted_at,
        approved_by_id=audit.approved_by_id,
        approved_at=audit.approved_at,
        rejection_reason=audit.rejection_reason,
    )


def to_audit_line_info(line: AuditLine) -> AuditLineInfo:
    return AuditLineInfo(
        id=line.id,
        audit_id=line.audit_id,
        item_id=line.item_id,
        item_name=line.item_name,
        system_quantity=line.system_quantity,
        physical_quantity=line.physical_quantity,
        variance=line.variance,
        reason_code=ReasonCode(line.reason_code) if line.reason_code else None,
        notes=line.notes,
        status=AuditLineStatus(line.status),
    )


class AuditSelector(BaseSelector[InventoryAudit]):
    """Audit headers and their lines."""

    def __init__(self, session: Session):
        super().__init__(session)

    def get(self, audit_id: UUID) -> AuditInfo | None:
        audit = self.session.get(InventoryAudit, audit_id)
        return to_audit_info(audit) if audit is not None else None

    def lines(self, audit_id: UUID) -> list[AuditLineInfo]:
        query = (
            select(AuditLine)
            .where(AuditLine.audit_id == audit_id)
            .order_by(AuditLine.position)
        )
        return [to_audit_line_info(line) for line in self.session.scalars(query)]

    def for_period(self, outlet_id: UUID, period: str) -> AuditInfo | None:
        audit = self.session.scalars(
            select(InventoryAudit).where(
                InventoryAudit.outlet_id == outlet_id,
                InventoryAudit.period == period,
            )
        ).one_or_none()
        return to_audit_info(audit) if audit is not None else None

    def in_flight(self, outlet_id: UUID) -> AuditInfo | None:
        """The outlet's audit in counting, review or pending_approval, if any."""
        audit = self.session.scalars(
            select(InventoryAudit)
            .where(
                InventoryAudit.outlet_id == outlet_id,
                InventoryAudit.status.in_([s.value for s in IN_FLIGHT_AUDIT_STATUSES]),
            )
            .limit(1)
        ).one_or_none()
        return to_audit_info(audit) if audit is not None else None

    def list_for_outlet(self, outlet_id: UUID) -> list[AuditInfo]:
        query = (
            select(InventoryAudit)
            .where(InventoryAudit.outlet_id == outlet_id)
            .order_by(InventoryAudit.period.desc())
        )
        return [to_audit_info(a) for a in self.session.scalars(query)]

    def is_item_audited(self, item_id: UUID) -> bool:
        """True if any audit line references the item."""
        return (
            self.session.scalars(
                select(AuditLine.id).where(AuditLine.item_id == item_id).limit(1)
            ).first()
            is not None
        )
