"""
Module: inventory_kernel.models.allocation
Responsibility: ORM persistence for holdership grants -- how many units of
    an item were handed to a subscription or event.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One row per (item, reference) pair (uq_allocation_pair).
    - Only subscriptions and events hold allocations (ck_allocation_holder).
    - There is deliberately no outstanding column.  Outstanding is always
      allocated_quantity minus the returns and writeoffs recorded in the
      ledger for the pair (AllocationSelector.outstanding_for).
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase, UUIDString
from inventory_kernel.domain.movements import Reference, ReferenceType


class Allocation(TrackedBase):
    """Units of one item granted to one subscription or event."""

    __tablename__ = "inventory_allocations"
    __table_args__ = (
        UniqueConstraint(
            "item_id", "reference_type", "reference_id", name="uq_allocation_pair"
        ),
        CheckConstraint(
            "reference_type IN ('subscription', 'event')", name="ck_allocation_holder"
        ),
        CheckConstraint("allocated_quantity > 0", name="ck_allocation_quantity"),
        Index("idx_allocation_reference", "reference_type", "reference_id"),
    )

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("inventory_items.id"), nullable=False
    )
    outlet_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("outlets.id"), nullable=False
    )
    reference_type: Mapped[ReferenceType] = mapped_column(String(20), nullable=False)
    reference_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # Cumulative units granted to the pair
    allocated_quantity: Mapped[int] = mapped_column(BigInteger, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    deactivated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return (
            f"<Allocation item={self.item_id} {self.reference_type}={self.reference_id}"
            f" qty={self.allocated_quantity} active={self.is_active}>"
        )

    @property
    def reference(self) -> Reference:
        return Reference(ReferenceType(self.reference_type), self.reference_id)
