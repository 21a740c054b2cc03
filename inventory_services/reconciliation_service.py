"""
inventory_services.reconciliation_service -- ledger re-derivation and drift checks.

Responsibility:
    The slow path next to the MovementLedger's incremental projection.
    Folds an item's movements from zero to re-derive its balances, and
    compares the stored projection and the allocation rows against that
    fold.

Architecture position:
    Services -- read-only orchestration over kernel selectors and the pure
    balance projector.  Never writes.

Invariants checked:
    - Stored item counters equal ``replay(ledger)``.
    - allocated_quantity on the item equals the sum of outstanding
      quantities over its active allocations.
    - Inactive allocations hold nothing.

Audit relevance:
    Every discrepancy is logged as ``reconciliation_drift_detected`` at
    ERROR level; callers decide whether to page someone.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.domain.balances import ItemBalances, replay
from inventory_kernel.exceptions import ItemNotFoundError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.item import Item
from inventory_kernel.selectors.allocation_selector import AllocationSelector
from inventory_kernel.selectors.movement_selector import MovementSelector

logger = get_logger("services.reconciliation")


@dataclass(frozen=True)
class ItemReconciliation:
    """Stored versus ledger-derived state of one item."""

    item_id: UUID
    stored: ItemBalances
    derived: ItemBalances
    outstanding_total: int
    inactive_outstanding: int = 0

    @property
    def balances_match(self) -> bool:
        return self.stored == self.derived

    @property
    def allocations_match(self) -> bool:
        return (
            self.derived.allocated == self.outstanding_total
            and self.inactive_outstanding == 0
        )

    @property
    def is_clean(self) -> bool:
        return self.balances_match and self.allocations_match


@dataclass(frozen=True)
class OutletReconciliation:
    outlet_id: UUID
    items: tuple[ItemReconciliation, ...] = field(default_factory=tuple)

    @property
    def drifted(self) -> tuple[ItemReconciliation, ...]:
        return tuple(item for item in self.items if not item.is_clean)

    @property
    def is_clean(self) -> bool:
        return not self.drifted


class ReconciliationService:
    """Re-derives balances from the ledger and reports drift."""

    def __init__(self, session: Session):
        self._session = session
        self._movements = MovementSelector(session)
        self._allocations = AllocationSelector(session)

    def rederive_balances(self, item_id: UUID) -> ItemBalances:
        """Fold the item's movements, in sequence order, from zero."""
        return replay(self._movements.ledger_facts(item_id))

    def verify_item(self, item_id: UUID) -> ItemReconciliation:
        item = self._session.get(Item, item_id)
        if item is None:
            raise ItemNotFoundError(str(item_id))
        return self._verify(item)

    def verify_outlet(self, outlet_id: UUID) -> OutletReconciliation:
        items = self._session.scalars(
            select(Item).where(Item.outlet_id == outlet_id).order_by(Item.name, Item.id)
        ).all()
        report = OutletReconciliation(
            outlet_id=outlet_id,
            items=tuple(self._verify(item) for item in items),
        )
        logger.info(
            "reconciliation_completed",
            extra={
                "outlet_id": str(outlet_id),
                "items_checked": len(report.items),
                "items_drifted": len(report.drifted),
            },
        )
        return report

    def _verify(self, item: Item) -> ItemReconciliation:
        allocations = self._allocations.list_for_item(item.id)
        result = ItemReconciliation(
            item_id=item.id,
            stored=item.balances(),
            derived=self.rederive_balances(item.id),
            outstanding_total=sum(
                a.outstanding_quantity for a in allocations if a.is_active
            ),
            inactive_outstanding=sum(
                a.outstanding_quantity for a in allocations if not a.is_active
            ),
        )
        if not result.is_clean:
            logger.error(
                "reconciliation_drift_detected",
                extra={
                    "item_id": str(item.id),
                    "stored": result.stored.as_dict(),
                    "derived": result.derived.as_dict(),
                    "outstanding_total": result.outstanding_total,
                    "inactive_outstanding": result.inactive_outstanding,
                },
            )
        return result
