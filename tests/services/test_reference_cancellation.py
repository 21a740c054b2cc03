"""Subscription and event cancellation guards."""

from uuid import uuid4

import pytest

from inventory_kernel.domain.movements import (
    MovementCategory as C,
    MovementSubtype as S,
    Reference,
)
from inventory_kernel.exceptions import (
    EventNotFoundError,
    OutstandingAllocationsError,
    SubscriptionNotFoundError,
)
from inventory_kernel.models.references import EventStatus, SubscriptionStatus
from inventory_kernel.selectors.allocation_selector import AllocationSelector
from inventory_kernel.selectors.item_selector import ItemSelector
from inventory_services.integration import HolderIntegration


class TestCancelSubscription:

    def test_blocked_while_units_are_out(
        self, reference_service, operator, stocked_item, subscription, record
    ):
        ref = Reference.subscription(subscription.id)
        record(stocked_item, C.OUTFLOW, 20, reference=ref)
        record(stocked_item, C.RETURN, 5, reference=ref)

        with pytest.raises(OutstandingAllocationsError) as exc_info:
            reference_service.cancel_subscription(subscription.id, operator)

        assert exc_info.value.outstanding == 15
        assert subscription.status == SubscriptionStatus.ACTIVE.value

    def test_cancels_once_everything_is_resolved(
        self, reference_service, operator, stocked_item, subscription, record, session
    ):
        ref = Reference.subscription(subscription.id)
        record(stocked_item, C.OUTFLOW, 20, reference=ref)
        record(stocked_item, C.RETURN, 18, reference=ref)
        record(stocked_item, C.WRITEOFF, 2, reference=ref, subtype=S.CLIENT_DAMAGE)

        reference_service.cancel_subscription(subscription.id, operator)

        assert subscription.status == SubscriptionStatus.CANCELLED.value
        assert subscription.cancelled_at is not None
        assert AllocationSelector(session).list_for_reference(ref, active_only=True) == []

    def test_cancel_is_idempotent(self, reference_service, operator, subscription):
        reference_service.cancel_subscription(subscription.id, operator)
        assert reference_service.cancel_subscription(subscription.id, operator) == 0

    def test_unknown_subscription(self, reference_service, operator):
        with pytest.raises(SubscriptionNotFoundError):
            reference_service.cancel_subscription(uuid4(), operator)

    def test_assert_cancellable(self, reference_service, stocked_item, subscription, record):
        ref = Reference.subscription(subscription.id)
        reference_service.assert_cancellable(ref)

        record(stocked_item, C.OUTFLOW, 3, reference=ref)
        with pytest.raises(OutstandingAllocationsError):
            reference_service.assert_cancellable(ref)


class TestCancelEvent:

    def test_outstanding_units_come_back_as_good_stock(
        self, reference_service, operator, create_item, event, record, session
    ):
        plates = create_item("Dinner plate", stock=100)
        bowls = create_item("Soup bowl", category="bowl", stock=50)
        ref = Reference.event(event.id)
        record(plates, C.OUTFLOW, 40, reference=ref)
        record(bowls, C.OUTFLOW, 10, reference=ref)
        record(plates, C.RETURN, 15, reference=ref)

        returned = reference_service.cancel_event(event.id, operator)

        assert sorted(m.quantity for m in returned) == [10, 25]
        assert all(m.subtype == S.RETURN_GOOD for m in returned)
        assert all(m.notes == "Event cancelled" for m in returned)
        assert event.status == EventStatus.CANCELLED.value

        items = ItemSelector(session)
        assert items.get(plates.id).available_quantity == 100
        assert items.get(plates.id).allocated_quantity == 0
        assert items.get(bowls.id).available_quantity == 50
        assert AllocationSelector(session).list_for_reference(ref, active_only=True) == []

    def test_cancel_is_idempotent(self, reference_service, operator, stocked_item, event, record):
        record(stocked_item, C.OUTFLOW, 5, reference=Reference.event(event.id))
        reference_service.cancel_event(event.id, operator)

        assert reference_service.cancel_event(event.id, operator) == []

    def test_unknown_event(self, reference_service, operator):
        with pytest.raises(EventNotFoundError):
            reference_service.cancel_event(uuid4(), operator)


class TestHolderIntegration:

    def test_return_all_settles_every_item(
        self, session, ledger, operator, create_item, subscription, record
    ):
        plates = create_item("Dinner plate", stock=100)
        cups = create_item("Cup", category="cup", stock=30)
        ref = Reference.subscription(subscription.id)
        record(plates, C.OUTFLOW, 12, reference=ref)
        record(cups, C.OUTFLOW, 6, reference=ref)
        record(cups, C.WRITEOFF, 1, reference=ref, subtype=S.CLIENT_DAMAGE)

        movements = HolderIntegration(session, ledger).return_all(ref, operator)

        assert sorted(m.quantity for m in movements) == [5, 12]
        assert AllocationSelector(session).list_for_reference(ref, active_only=True) == []

    def test_return_all_with_nothing_out(self, session, ledger, operator, subscription):
        ref = Reference.subscription(subscription.id)
        assert HolderIntegration(session, ledger).return_all(ref, operator) == []
