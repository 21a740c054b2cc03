"""
Module: inventory_kernel.models.movement
Responsibility: ORM persistence for the append-only stock ledger.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ value types only.

Invariants enforced:
    - quantity > 0 (ck_movement_quantity_positive); direction comes from
      category and subtype.
    - Holder references carry an id (ck_movement_reference_id).
    - sequence is unique and strictly increasing in insertion order.
    - Rows are never updated, and deleted only when their item is deleted
      under the no-stock / no-holder-history condition
      (db/immutability.py, db/sql/01_movement.sql).

Audit relevance:
    This table is the single audit trail: every item balance is a pure fold
    over its rows ordered by sequence.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import Base, UUIDString
from inventory_kernel.domain.balances import MovementFacts
from inventory_kernel.domain.movements import (
    MovementCategory,
    MovementSubtype,
    ReasonCode,
    Reference,
    ReferenceType,
)


class Movement(Base):
    """One immutable stock event."""

    __tablename__ = "inventory_movements"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_movement_quantity_positive"),
        CheckConstraint(
            "reference_type = 'manual' OR reference_id IS NOT NULL",
            name="ck_movement_reference_id",
        ),
        Index("idx_movement_item_sequence", "item_id", "sequence"),
        Index(
            "idx_movement_item_reference",
            "item_id",
            "reference_type",
            "reference_id",
        ),
        Index("idx_movement_outlet_recorded", "outlet_id", "recorded_at"),
    )

    sequence: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_items.id", ondelete="CASCADE"),
        nullable=False,
    )
    outlet_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("outlets.id"), nullable=False
    )

    category: Mapped[MovementCategory] = mapped_column(String(20), nullable=False)
    subtype: Mapped[MovementSubtype | None] = mapped_column(String(30), nullable=True)
    quantity: Mapped[int] = mapped_column(BigInteger, nullable=False)

    reference_type: Mapped[ReferenceType] = mapped_column(
        String(20), default=ReferenceType.MANUAL.value, nullable=False
    )
    reference_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    reason_code: Mapped[ReasonCode | None] = mapped_column(String(50), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    actor_role: Mapped[str] = mapped_column(String(20), nullable=False)
    on_behalf_of_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    item = relationship("Item", back_populates="movements")

    def __repr__(self) -> str:
        return f"<Movement #{self.sequence} {self.category} x{self.quantity}>"

    @property
    def reference(self) -> Reference:
        return Reference(ReferenceType(self.reference_type), self.reference_id)

    def facts(self) -> MovementFacts:
        return MovementFacts(
            category=MovementCategory(self.category),
            subtype=MovementSubtype(self.subtype) if self.subtype else None,
            quantity=self.quantity,
            reference_type=ReferenceType(self.reference_type),
        )
