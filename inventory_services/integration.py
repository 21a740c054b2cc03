"""
Integration hooks for the subscription and event services.

The billing and event services dispatch dishware when a subscription
starts or an event is confirmed, and take it back when either ends.  These
hooks turn those business moments into ledger movements:

    allocate_many  -- one outflow per item line, all or none
    return_all     -- return every unit the reference still holds

Cancellation itself lives in ``ReferenceService``; ``InventoryService``
exposes both behind its transaction boundary.

Usage:
    hooks = HolderIntegration(session, ledger)
    hooks.allocate_many(
        Reference.subscription(subscription_id),
        outlet_id,
        [AllocationLine(item_id=plate_id, quantity=30)],
        actor,
    )
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from inventory_kernel.domain.actor import Actor
from inventory_kernel.domain.dtos import MovementInfo
from inventory_kernel.domain.movements import (
    MovementCategory,
    MovementSubtype,
    ReasonCode,
    Reference,
    ReferenceType,
)
from inventory_kernel.exceptions import InvalidMovementError
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.selectors.allocation_selector import AllocationSelector
from inventory_kernel.services.ledger_service import MovementLedger

logger = get_logger("services.integration")

_DISPATCH_REASONS = {
    ReferenceType.SUBSCRIPTION: ReasonCode.SUBSCRIPTION_START,
    ReferenceType.EVENT: ReasonCode.EVENT_DISPATCH,
}


@dataclass(frozen=True)
class AllocationLine:
    """One item and quantity to dispatch."""

    item_id: UUID
    quantity: int
    notes: str | None = None


class HolderIntegration:
    """Multi-item dispatch and return for one subscription or event."""

    def __init__(self, session: Session, ledger: MovementLedger):
        self._session = session
        self._ledger = ledger
        self._allocations = AllocationSelector(session)

    def allocate_many(
        self,
        reference: Reference,
        outlet_id: UUID,
        lines: Sequence[AllocationLine],
        actor: Actor,
        reason_code: ReasonCode | None = None,
    ) -> list[MovementInfo]:
        """
        Dispatch several items to a holder in one savepoint.

        If any line is rejected, none of the outflows remain.
        """
        if not reference.is_holder:
            raise InvalidMovementError(
                MovementCategory.OUTFLOW.value,
                "dispatch requires a subscription or event reference",
            )
        reason = reason_code or _DISPATCH_REASONS[reference.type]

        with LogContext.bind(outlet_id=outlet_id, actor_id=actor.actor_id):
            with self._session.begin_nested():
                movements = [
                    self._ledger.record_movement(
                        item_id=line.item_id,
                        outlet_id=outlet_id,
                        category=MovementCategory.OUTFLOW,
                        quantity=line.quantity,
                        actor=actor,
                        reference=reference,
                        reason_code=reason,
                        notes=line.notes,
                    )
                    for line in lines
                ]
            logger.info(
                "allocation_batch_recorded",
                extra={
                    "reference_type": reference.type.value,
                    "reference_id": str(reference.id),
                    "lines": len(movements),
                    "units": sum(m.quantity for m in movements),
                },
            )
            return movements

    def return_all(
        self,
        reference: Reference,
        actor: Actor,
        subtype: MovementSubtype = MovementSubtype.RETURN_GOOD,
        reason_code: ReasonCode | None = None,
        notes: str | None = None,
    ) -> list[MovementInfo]:
        """Return every outstanding unit held by the reference."""
        with LogContext.bind(actor_id=actor.actor_id):
            with self._session.begin_nested():
                movements = [
                    self._ledger.record_movement(
                        item_id=allocation.item_id,
                        outlet_id=allocation.outlet_id,
                        category=MovementCategory.RETURN,
                        subtype=subtype,
                        quantity=allocation.outstanding_quantity,
                        actor=actor,
                        reference=reference,
                        reason_code=reason_code,
                        notes=notes,
                    )
                    for allocation in self._allocations.list_for_reference(
                        reference, active_only=True
                    )
                    if allocation.outstanding_quantity > 0
                ]
            logger.info(
                "allocation_batch_returned",
                extra={
                    "reference_type": reference.type.value,
                    "reference_id": str(reference.id),
                    "lines": len(movements),
                    "units": sum(m.quantity for m in movements),
                },
            )
            return movements
