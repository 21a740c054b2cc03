"""
Module: inventory_kernel.selectors.item_selector
Responsibility: Read-only item queries and the ORM -> ItemInfo conversion.
Architecture position: Kernel > Selectors.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.domain.dtos import ItemInfo
from inventory_kernel.domain.lifecycle import ItemLifecycle
from inventory_kernel.models.item import Item
from inventory_kernel.selectors.base import BaseSelector


def to_item_info(item: Item) -> ItemInfo:
    return ItemInfo(
        id=item.id,
        outlet_id=item.outlet_id,
        name=item.name,
        category=item.category,
        material=item.material,
        unit=item.unit,
        lifecycle_status=ItemLifecycle(item.lifecycle_status),
        is_active=item.is_active,
        opening_balance_confirmed=item.opening_balance_confirmed,
        balances=item.balances(),
    )


class ItemSelector(BaseSelector[Item]):
    """Item lookups by id and by outlet."""

    def __init__(self, session: Session):
        super().__init__(session)

    def get(self, item_id: UUID) -> ItemInfo | None:
        item = self.session.get(Item, item_id)
        return to_item_info(item) if item is not None else None

    def list_for_outlet(
        self,
        outlet_id: UUID,
        lifecycles: frozenset[ItemLifecycle] | None = None,
    ) -> list[ItemInfo]:
        """Items of one outlet ordered by name, optionally filtered by status."""
        query = select(Item).where(Item.outlet_id == outlet_id)
        if lifecycles is not None:
            query = query.where(
                Item.lifecycle_status.in_([status.value for status in lifecycles])
            )
        query = query.order_by(Item.name, Item.id)
        return [to_item_info(item) for item in self.session.scalars(query)]

    def find(
        self,
        outlet_id: UUID,
        name: str,
        category: str,
        material: str | None = None,
    ) -> ItemInfo | None:
        """The item with this identity in the outlet, if any."""
        query = select(Item).where(
            Item.outlet_id == outlet_id,
            Item.name == name,
            Item.category == category,
        )
        if material is None:
            query = query.where(Item.material.is_(None))
        else:
            query = query.where(Item.material == material)
        item = self.session.scalars(query).one_or_none()
        return to_item_info(item) if item is not None else None
