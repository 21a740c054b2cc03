"""
Module: inventory_kernel.selectors.movement_selector
Responsibility: Read-only queries over the append-only movement ledger.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Ledger order: every listing is ordered by ``sequence`` ascending, the
      definitive audit order.
    - resolved_quantity() is an aggregate over the ledger at query time; it
      is the only input to outstanding quantity besides the allocation's
      cumulative grant.

Audit relevance:
    The reconciliation service folds ``ledger_facts()`` to re-derive item
    balances and compares them with the stored projection.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import exists, func, select
from sqlalchemy.orm import Session

from inventory_kernel.domain.balances import MovementFacts
from inventory_kernel.domain.dtos import MovementInfo
from inventory_kernel.domain.movements import (
    MovementCategory,
    MovementSubtype,
    ReasonCode,
    Reference,
    ReferenceType,
)
from inventory_kernel.models.movement import Movement
from inventory_kernel.selectors.base import BaseSelector

HOLDER_REFERENCE_TYPES = (ReferenceType.SUBSCRIPTION.value, ReferenceType.EVENT.value)

# Categories that settle units held by a subscription or event
SETTLING_CATEGORIES = (MovementCategory.RETURN.value, MovementCategory.WRITEOFF.value)


def to_movement_info(movement: Movement) -> MovementInfo:
    return MovementInfo(
        id=movement.id,
        sequence=movement.sequence,
        item_id=movement.item_id,
        outlet_id=movement.outlet_id,
        category=MovementCategory(movement.category),
        subtype=MovementSubtype(movement.subtype) if movement.subtype else None,
        quantity=movement.quantity,
        reference=movement.reference,
        reason_code=ReasonCode(movement.reason_code) if movement.reason_code else None,
        notes=movement.notes,
        actor_id=movement.actor_id,
        actor_role=movement.actor_role,
        recorded_at=movement.recorded_at,
    )


class MovementSelector(BaseSelector[Movement]):
    """Ledger reads: history, holder lookups and fold inputs."""

    def __init__(self, session: Session):
        super().__init__(session)

    def list_for_item(self, item_id: UUID) -> list[MovementInfo]:
        query = (
            select(Movement)
            .where(Movement.item_id == item_id)
            .order_by(Movement.sequence)
        )
        return [to_movement_info(m) for m in self.session.scalars(query)]

    def list_for_reference(self, reference: Reference) -> list[MovementInfo]:
        """Every movement attributed to a reference, across items."""
        query = select(Movement).where(Movement.reference_type == reference.type.value)
        if reference.id is None:
            query = query.where(Movement.reference_id.is_(None))
        else:
            query = query.where(Movement.reference_id == reference.id)
        query = query.order_by(Movement.sequence)
        return [to_movement_info(m) for m in self.session.scalars(query)]

    def ledger_facts(self, item_id: UUID) -> list[MovementFacts]:
        """Effect-relevant facts of an item's movements, in ledger order."""
        query = (
            select(Movement)
            .where(Movement.item_id == item_id)
            .order_by(Movement.sequence)
        )
        return [m.facts() for m in self.session.scalars(query)]

    def has_holder_history(self, item_id: UUID) -> bool:
        """True if any movement of the item ever referenced a subscription or event."""
        return bool(
            self.session.execute(
                select(
                    exists().where(
                        Movement.item_id == item_id,
                        Movement.reference_type.in_(HOLDER_REFERENCE_TYPES),
                    )
                )
            ).scalar()
        )

    def has_movement_since(self, item_id: UUID, since: datetime) -> bool:
        return bool(
            self.session.execute(
                select(
                    exists().where(
                        Movement.item_id == item_id,
                        Movement.recorded_at >= since,
                    )
                )
            ).scalar()
        )

    def resolved_quantity(self, item_id: UUID, reference: Reference) -> int:
        """Units returned or written off against an (item, holder) pair."""
        total = self.session.execute(
            select(func.coalesce(func.sum(Movement.quantity), 0)).where(
                Movement.item_id == item_id,
                Movement.reference_type == reference.type.value,
                Movement.reference_id == reference.id,
                Movement.category.in_(SETTLING_CATEGORIES),
            )
        ).scalar_one()
        return int(total)
