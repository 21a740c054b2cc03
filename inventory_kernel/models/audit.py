"""
Module: inventory_kernel.models.audit
Responsibility: ORM persistence for physical-count audits and their lines.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ value types only.

Invariants enforced:
    - One audit per (outlet, period) (uq_audit_outlet_period).
    - One line per (audit, item) (uq_audit_line_item).
    - variance_positive >= 0, variance_negative <= 0.
    - items_counted <= items_total.
    - Approved and rejected audits are frozen (db/immutability.py).
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import TrackedBase, UUIDString
from inventory_kernel.domain.audit import AuditLineStatus, AuditStatus
from inventory_kernel.domain.movements import ReasonCode


class InventoryAudit(TrackedBase):
    """Monthly physical-count reconciliation for one outlet."""

    __tablename__ = "inventory_audits"
    __table_args__ = (
        UniqueConstraint("outlet_id", "period", name="uq_audit_outlet_period"),
        CheckConstraint("variance_positive >= 0", name="ck_audit_variance_positive"),
        CheckConstraint("variance_negative <= 0", name="ck_audit_variance_negative"),
        CheckConstraint("items_counted <= items_total", name="ck_audit_counted"),
        Index("idx_audit_outlet_status", "outlet_id", "status"),
    )

    outlet_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("outlets.id"), nullable=False
    )
    # Calendar month, YYYY-MM
    period: Mapped[str] = mapped_column(String(7), nullable=False)
    status: Mapped[AuditStatus] = mapped_column(
        String(20), default=AuditStatus.DRAFT.value, nullable=False
    )

    items_total: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    items_counted: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    variance_positive: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    variance_negative: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)

    submitted_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    approved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    lines = relationship(
        "AuditLine",
        back_populates="audit",
        cascade="all, delete-orphan",
        order_by="AuditLine.position",
    )

    def __repr__(self) -> str:
        return f"<InventoryAudit {self.period} ({self.status})>"


class AuditLine(TrackedBase):
    """System snapshot and physical count of one item within an audit."""

    __tablename__ = "inventory_audit_lines"
    __table_args__ = (
        UniqueConstraint("audit_id", "item_id", name="uq_audit_line_item"),
        CheckConstraint("system_quantity >= 0", name="ck_audit_line_system"),
        CheckConstraint(
            "physical_quantity IS NULL OR physical_quantity >= 0",
            name="ck_audit_line_physical",
        ),
    )

    audit_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_audits.id", ondelete="CASCADE"),
        nullable=False,
    )
    item_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("inventory_items.id"), nullable=False
    )
    # Snapshot order (item name at creation)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    item_name: Mapped[str] = mapped_column(String(200), nullable=False)

    system_quantity: Mapped[int] = mapped_column(BigInteger, nullable=False)
    physical_quantity: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    variance: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    reason_code: Mapped[ReasonCode | None] = mapped_column(String(50), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[AuditLineStatus] = mapped_column(
        String(20), default=AuditLineStatus.PENDING.value, nullable=False
    )
    counted_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    counted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    audit = relationship("InventoryAudit", back_populates="lines")

    def __repr__(self) -> str:
        return f"<AuditLine {self.item_name} system={self.system_quantity} physical={self.physical_quantity}>"

    @property
    def is_counted(self) -> bool:
        return self.physical_quantity is not None

    def record_count(self, physical_quantity: int, counted_by_id: UUID, counted_at: datetime) -> None:
        """Store a count; variance is always derived, never entered."""
        self.physical_quantity = physical_quantity
        self.variance = physical_quantity - self.system_quantity
        self.status = AuditLineStatus.COUNTED.value
        self.counted_by_id = counted_by_id
        self.counted_at = counted_at
