"""
AllocationTracker -- holdership state per (item, subscription|event) pair.

Responsibility:
    Maintains the allocation rows that say how many units of an item were
    handed to a subscription or event, and deactivates a row once the
    ledger shows every unit came back or was written off.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by MovementLedger inside the movement savepoint, after the
    movement row is flushed, and by ReferenceService on cancellation.

Invariants enforced:
    - One row per pair.  An outflow to a pair whose row was deactivated
      reactivates it and adds to the cumulative grant.
    - Outstanding is derived: cumulative grant minus the returns and
      writeoffs recorded for the pair (AllocationSelector).
    - A row is deactivated, never deleted, when outstanding reaches 0.

Failure modes:
    - AllocationNotFoundError: no active allocation for the pair.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.domain.actor import Actor
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.movements import Reference
from inventory_kernel.exceptions import AllocationNotFoundError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.allocation import Allocation
from inventory_kernel.selectors.allocation_selector import AllocationSelector
from inventory_kernel.services.base import BaseService

logger = get_logger("services.allocation")


class AllocationTracker(BaseService[Allocation]):
    """
    Writes allocation rows in step with the ledger.

    Non-goals:
        - Does NOT validate stock; MovementLedger has already done so under
          the item row lock.
        - Does NOT call ``session.commit()``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._selector = AllocationSelector(session)

    def find_for_update(self, item_id: UUID, reference: Reference) -> Allocation | None:
        """Allocation row for the pair, locked until the transaction ends."""
        return self.session.execute(
            select(Allocation)
            .where(
                Allocation.item_id == item_id,
                Allocation.reference_type == reference.type.value,
                Allocation.reference_id == reference.id,
            )
            .with_for_update()
        ).scalar_one_or_none()

    def require_active(self, item_id: UUID, reference: Reference) -> Allocation:
        allocation = self.find_for_update(item_id, reference)
        if allocation is None or not allocation.is_active:
            raise AllocationNotFoundError(
                str(item_id), reference.type.value, str(reference.id)
            )
        return allocation

    def outstanding_for(self, item_id: UUID, reference: Reference) -> int:
        return self._selector.outstanding_for(item_id, reference)

    def grant(
        self,
        item_id: UUID,
        outlet_id: UUID,
        reference: Reference,
        quantity: int,
        actor: Actor,
    ) -> Allocation:
        """Record an outflow of ``quantity`` units to ``reference``."""
        allocation = self.find_for_update(item_id, reference)

        if allocation is None:
            allocation = Allocation(
                item_id=item_id,
                outlet_id=outlet_id,
                reference_type=reference.type.value,
                reference_id=reference.id,
                allocated_quantity=quantity,
                is_active=True,
                created_by_id=actor.actor_id,
            )
            self.session.add(allocation)
            self.session.flush()
            logger.info(
                "allocation_created",
                extra={
                    "allocation_id": str(allocation.id),
                    "reference_type": reference.type.value,
                    "reference_id": str(reference.id),
                    "allocated_quantity": quantity,
                },
            )
            return allocation

        reactivated = not allocation.is_active
        allocation.allocated_quantity += quantity
        allocation.is_active = True
        allocation.deactivated_at = None
        allocation.updated_by_id = actor.actor_id
        self.session.flush()
        logger.info(
            "allocation_incremented",
            extra={
                "allocation_id": str(allocation.id),
                "reference_type": reference.type.value,
                "reference_id": str(reference.id),
                "quantity": quantity,
                "allocated_quantity": allocation.allocated_quantity,
                "reactivated": reactivated,
            },
        )
        return allocation

    def settle(self, item_id: UUID, reference: Reference, actor: Actor) -> int:
        """
        Re-derive the pair's outstanding quantity after a return or
        writeoff and deactivate the row when nothing is left.

        Returns the outstanding quantity.
        """
        allocation = self.require_active(item_id, reference)
        outstanding = self._selector.outstanding_of(allocation)
        if outstanding == 0:
            self._deactivate(allocation, actor)
        return outstanding

    def deactivate_for_reference(self, reference: Reference, actor: Actor) -> int:
        """Deactivate every active allocation of the reference.

        Callers check outstanding quantities first.  Returns the number of
        rows deactivated.
        """
        rows = self.session.scalars(
            select(Allocation)
            .where(
                Allocation.reference_type == reference.type.value,
                Allocation.reference_id == reference.id,
                Allocation.is_active.is_(True),
            )
            .with_for_update()
        ).all()
        for allocation in rows:
            self._deactivate(allocation, actor)
        return len(rows)

    def _deactivate(self, allocation: Allocation, actor: Actor) -> None:
        allocation.is_active = False
        allocation.deactivated_at = self._clock.now()
        allocation.updated_by_id = actor.actor_id
        self.session.flush()
        logger.info(
            "allocation_deactivated",
            extra={
                "allocation_id": str(allocation.id),
                "reference_type": allocation.reference_type,
                "reference_id": str(allocation.reference_id),
                "allocated_quantity": allocation.allocated_quantity,
            },
        )
