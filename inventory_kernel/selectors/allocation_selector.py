"""
Module: inventory_kernel.selectors.allocation_selector
Responsibility: Holdership queries, in particular ``outstanding_for``.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Outstanding is never read from a stored column.  It is the
      allocation's cumulative grant minus the returns and writeoffs the
      ledger records for the pair, computed at call time.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.domain.dtos import AllocationInfo
from inventory_kernel.domain.movements import Reference
from inventory_kernel.models.allocation import Allocation
from inventory_kernel.selectors.base import BaseSelector
from inventory_kernel.selectors.movement_selector import MovementSelector


class AllocationSelector(BaseSelector[Allocation]):
    """Allocation lookups with derived outstanding quantities."""

    def __init__(self, session: Session):
        super().__init__(session)
        self._movements = MovementSelector(session)

    def _row(self, item_id: UUID, reference: Reference) -> Allocation | None:
        return self.session.scalars(
            select(Allocation).where(
                Allocation.item_id == item_id,
                Allocation.reference_type == reference.type.value,
                Allocation.reference_id == reference.id,
            )
        ).one_or_none()

    def _info(self, allocation: Allocation) -> AllocationInfo:
        reference = allocation.reference
        return AllocationInfo(
            id=allocation.id,
            item_id=allocation.item_id,
            outlet_id=allocation.outlet_id,
            reference=reference,
            allocated_quantity=allocation.allocated_quantity,
            outstanding_quantity=self.outstanding_of(allocation),
            is_active=allocation.is_active,
        )

    def outstanding_of(self, allocation: Allocation) -> int:
        resolved = self._movements.resolved_quantity(
            allocation.item_id, allocation.reference
        )
        return allocation.allocated_quantity - resolved

    def outstanding_for(self, item_id: UUID, reference: Reference) -> int:
        """
        Units of the item still held by the reference.

        Returns 0 for a manual reference or a pair that never held stock.
        """
        if not reference.is_holder:
            return 0
        allocation = self._row(item_id, reference)
        if allocation is None:
            return 0
        return self.outstanding_of(allocation)

    def get(self, item_id: UUID, reference: Reference) -> AllocationInfo | None:
        if not reference.is_holder:
            return None
        allocation = self._row(item_id, reference)
        return self._info(allocation) if allocation is not None else None

    def list_for_reference(
        self, reference: Reference, active_only: bool = False
    ) -> list[AllocationInfo]:
        query = select(Allocation).where(
            Allocation.reference_type == reference.type.value,
            Allocation.reference_id == reference.id,
        )
        if active_only:
            query = query.where(Allocation.is_active.is_(True))
        query = query.order_by(Allocation.created_at, Allocation.id)
        return [self._info(row) for row in self.session.scalars(query)]

    def list_for_item(self, item_id: UUID, active_only: bool = False) -> list[AllocationInfo]:
        query = select(Allocation).where(Allocation.item_id == item_id)
        if active_only:
            query = query.where(Allocation.is_active.is_(True))
        query = query.order_by(Allocation.created_at, Allocation.id)
        return [self._info(row) for row in self.session.scalars(query)]
