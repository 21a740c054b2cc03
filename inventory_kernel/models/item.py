"""
Module: inventory_kernel.models.item
Responsibility: ORM persistence for stock-keeping units and their
    materialized balances.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ value types only.

Invariants enforced:
    - Balance equation: total = available + allocated + damaged + in_repair
      (ck_item_balance).
    - No negative stock: every counter >= 0 (ck_item_nonnegative).
    - One item per (outlet, name, category, material) (uq_item_identity).

The quantity columns are a cache of the fold over inventory_movements.
They are written only by MovementLedger through the balance projector;
db/immutability.py rejects any other write to them.
"""

from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import TrackedBase, UUIDString
from inventory_kernel.domain.balances import ItemBalances
from inventory_kernel.domain.lifecycle import ItemLifecycle, is_active_flag

QUANTITY_COLUMNS: tuple[str, ...] = (
    "total_quantity",
    "available_quantity",
    "allocated_quantity",
    "damaged_quantity",
    "in_repair_quantity",
    "lost_quantity",
)


class Item(TrackedBase):
    """
    A dishware SKU scoped to one outlet.

    Guarantees:
        - Created in DRAFT with all counters at zero.
        - is_active mirrors lifecycle_status (true for draft/active).
    """

    __tablename__ = "inventory_items"
    __table_args__ = (
        UniqueConstraint(
            "outlet_id", "name", "category", "material", name="uq_item_identity"
        ),
        CheckConstraint(
            "total_quantity = available_quantity + allocated_quantity"
            " + damaged_quantity + in_repair_quantity",
            name="ck_item_balance",
        ),
        CheckConstraint(
            "total_quantity >= 0 AND available_quantity >= 0"
            " AND allocated_quantity >= 0 AND damaged_quantity >= 0"
            " AND in_repair_quantity >= 0 AND lost_quantity >= 0",
            name="ck_item_nonnegative",
        ),
        Index("idx_item_outlet_lifecycle", "outlet_id", "lifecycle_status"),
    )

    outlet_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("outlets.id"), nullable=False
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    material: Mapped[str | None] = mapped_column(String(50), nullable=True)
    unit: Mapped[str] = mapped_column(String(20), default="pcs", nullable=False)

    lifecycle_status: Mapped[ItemLifecycle] = mapped_column(
        String(20), default=ItemLifecycle.DRAFT.value, nullable=False
    )
    # Legacy flag, derived from lifecycle_status
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    opening_balance_confirmed: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )

    total_quantity: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    available_quantity: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    allocated_quantity: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    damaged_quantity: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    in_repair_quantity: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    lost_quantity: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)

    movements = relationship(
        "Movement",
        back_populates="item",
        cascade="all, delete-orphan",
        order_by="Movement.sequence",
    )

    def __repr__(self) -> str:
        return f"<Item {self.name} ({self.lifecycle_status}) total={self.total_quantity}>"

    @property
    def lifecycle(self) -> ItemLifecycle:
        return ItemLifecycle(self.lifecycle_status)

    @property
    def is_archived(self) -> bool:
        return self.lifecycle == ItemLifecycle.ARCHIVED

    def balances(self) -> ItemBalances:
        return ItemBalances(
            total=self.total_quantity,
            available=self.available_quantity,
            allocated=self.allocated_quantity,
            damaged=self.damaged_quantity,
            in_repair=self.in_repair_quantity,
            lost=self.lost_quantity,
        )

    def store_balances(self, balances: ItemBalances) -> None:
        """Copy projector output onto the row.  MovementLedger only."""
        self.total_quantity = balances.total
        self.available_quantity = balances.available
        self.allocated_quantity = balances.allocated
        self.damaged_quantity = balances.damaged
        self.in_repair_quantity = balances.in_repair
        self.lost_quantity = balances.lost

    def set_lifecycle(self, status: ItemLifecycle) -> None:
        self.lifecycle_status = ItemLifecycle(status).value
        self.is_active = is_active_flag(status)
