"""
ReferenceService -- cancellation guards for subscriptions and events.

Responsibility:
    Applies the inventory side of a subscription or event cancellation.
    A subscription may only be cancelled once every unit it holds has been
    returned or written off; an event cancellation returns its outstanding
    units as good stock first.  Either way every allocation of the
    reference ends up deactivated.

Architecture position:
    Kernel > Services -- imperative shell.  The billing and event services
    own these records; the kernel only flips their status to cancelled.

Failure modes:
    - SubscriptionNotFoundError / EventNotFoundError.
    - OutstandingAllocationsError: the subscription still holds units.
    - Any MovementLedger error while returning an event's units.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.domain.actor import Actor
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import AllocationInfo, MovementInfo
from inventory_kernel.domain.movements import (
    MovementCategory,
    MovementSubtype,
    ReasonCode,
    Reference,
)
from inventory_kernel.domain.policy import LedgerPolicy
from inventory_kernel.exceptions import (
    EventNotFoundError,
    OutstandingAllocationsError,
    SubscriptionNotFoundError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.references import (
    Event,
    EventStatus,
    Subscription,
    SubscriptionStatus,
)
from inventory_kernel.selectors.allocation_selector import AllocationSelector
from inventory_kernel.services.allocation_service import AllocationTracker
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.ledger_service import MovementLedger

logger = get_logger("services.reference")

EVENT_CANCELLED_NOTE = "Event cancelled"


class ReferenceService(BaseService[Subscription]):
    """
    Non-goals:
        - Does NOT implement billing or event scheduling.
        - Does NOT call ``session.commit()``.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: LedgerPolicy | None = None,
        ledger: MovementLedger | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._ledger = ledger or MovementLedger(session, self._clock, policy)
        self._tracker = AllocationTracker(session, self._clock)
        self._allocations = AllocationSelector(session)

    def outstanding_allocations(self, reference: Reference) -> list[AllocationInfo]:
        """Active allocations of the reference that still hold units."""
        return [
            info
            for info in self._allocations.list_for_reference(reference, active_only=True)
            if info.outstanding_quantity > 0
        ]

    def assert_cancellable(self, reference: Reference) -> None:
        """
        Raises:
            OutstandingAllocationsError: the reference still holds units.
        """
        outstanding = sum(
            info.outstanding_quantity for info in self.outstanding_allocations(reference)
        )
        if outstanding > 0:
            raise OutstandingAllocationsError(
                reference.type.value, str(reference.id), outstanding
            )

    def cancel_subscription(self, subscription_id: UUID, actor: Actor) -> int:
        """
        Cancel a subscription whose allocations are fully resolved.

        Returns the number of allocations deactivated.  Cancelling an
        already cancelled subscription is a no-op.
        """
        reference = Reference.subscription(subscription_id)
        with LogContext.bind(actor_id=actor.actor_id):
            subscription = self.session.execute(
                select(Subscription)
                .where(Subscription.id == subscription_id)
                .with_for_update()
            ).scalar_one_or_none()
            if subscription is None:
                raise SubscriptionNotFoundError(str(subscription_id))
            if subscription.status == SubscriptionStatus.CANCELLED.value:
                return 0

            self.assert_cancellable(reference)

            with self.session.begin_nested():
                deactivated = self._tracker.deactivate_for_reference(reference, actor)
                subscription.status = SubscriptionStatus.CANCELLED.value
                subscription.cancelled_at = self._clock.now()
                subscription.updated_by_id = actor.actor_id
                self.session.flush()

            logger.info(
                "subscription_cancelled",
                extra={
                    "subscription_id": str(subscription_id),
                    "outlet_id": str(subscription.outlet_id),
                    "allocations_deactivated": deactivated,
                },
            )
            return deactivated

    def cancel_event(self, event_id: UUID, actor: Actor) -> list[MovementInfo]:
        """
        Cancel an event, returning every outstanding unit as good stock.

        Returns the return movements recorded.  Cancelling an already
        cancelled event is a no-op.
        """
        reference = Reference.event(event_id)
        with LogContext.bind(actor_id=actor.actor_id):
            event = self.session.execute(
                select(Event).where(Event.id == event_id).with_for_update()
            ).scalar_one_or_none()
            if event is None:
                raise EventNotFoundError(str(event_id))
            if event.status == EventStatus.CANCELLED.value:
                return []

            returned: list[MovementInfo] = []
            with self.session.begin_nested():
                for allocation in self.outstanding_allocations(reference):
                    returned.append(
                        self._ledger.record_movement(
                            item_id=allocation.item_id,
                            outlet_id=allocation.outlet_id,
                            category=MovementCategory.RETURN,
                            subtype=MovementSubtype.RETURN_GOOD,
                            quantity=allocation.outstanding_quantity,
                            actor=actor,
                            reference=reference,
                            reason_code=ReasonCode.NORMAL_RETURN,
                            notes=EVENT_CANCELLED_NOTE,
                        )
                    )
                deactivated = self._tracker.deactivate_for_reference(reference, actor)
                event.status = EventStatus.CANCELLED.value
                event.cancelled_at = self._clock.now()
                event.updated_by_id = actor.actor_id
                self.session.flush()

            logger.info(
                "event_cancelled",
                extra={
                    "event_id": str(event_id),
                    "outlet_id": str(event.outlet_id),
                    "units_returned": sum(m.quantity for m in returned),
                    "allocations_deactivated": len(returned) + deactivated,
                },
            )
            return returned
