"""
Allocation tracking tests.

One allocation row per (item, subscription|event) pair.  Its outstanding
quantity is always derived: cumulative grant minus the returns and
writeoffs recorded against the pair.
"""

import pytest

from inventory_kernel.domain.movements import (
    MANUAL,
    MovementCategory as C,
    MovementSubtype as S,
    ReasonCode as R,
    Reference,
)
from inventory_kernel.exceptions import AllocationNotFoundError
from inventory_kernel.models.allocation import Allocation
from inventory_kernel.selectors.allocation_selector import AllocationSelector
from inventory_kernel.selectors.item_selector import ItemSelector


@pytest.fixture
def allocations(session) -> AllocationSelector:
    return AllocationSelector(session)


class TestOutstanding:

    def test_outflows_accumulate_on_one_row(self, stocked_item, subscription, record, allocations, session):
        ref = Reference.subscription(subscription.id)
        record(stocked_item, C.OUTFLOW, 10, reference=ref)
        record(stocked_item, C.OUTFLOW, 5, reference=ref, reason_code=R.ADDITIONAL_DISPATCH)

        info = allocations.get(stocked_item.id, ref)
        assert info.allocated_quantity == 15
        assert info.outstanding_quantity == 15
        assert session.query(Allocation).filter_by(item_id=stocked_item.id).count() == 1

    def test_returns_and_writeoffs_reduce_outstanding(self, stocked_item, event, record, allocations):
        ref = Reference.event(event.id)
        record(stocked_item, C.OUTFLOW, 20, reference=ref)
        record(stocked_item, C.RETURN, 8, reference=ref)
        record(stocked_item, C.RETURN, 2, subtype=S.RETURN_DAMAGED, reference=ref)
        record(stocked_item, C.WRITEOFF, 1, subtype=S.CLIENT_DAMAGE, reference=ref)
        record(stocked_item, C.WRITEOFF, 1, subtype=S.LOSS, reference=ref)

        assert allocations.outstanding_for(stocked_item.id, ref) == 8
        assert allocations.get(stocked_item.id, ref).is_active

    def test_full_resolution_deactivates(self, stocked_item, subscription, record, allocations):
        ref = Reference.subscription(subscription.id)
        record(stocked_item, C.OUTFLOW, 6, reference=ref)
        record(stocked_item, C.RETURN, 6, reference=ref)

        info = allocations.get(stocked_item.id, ref)
        assert info.outstanding_quantity == 0
        assert not info.is_active
        assert allocations.list_for_reference(ref, active_only=True) == []

    def test_deactivated_pair_rejects_further_returns(self, stocked_item, subscription, record):
        ref = Reference.subscription(subscription.id)
        record(stocked_item, C.OUTFLOW, 6, reference=ref)
        record(stocked_item, C.RETURN, 6, reference=ref)

        with pytest.raises(AllocationNotFoundError):
            record(stocked_item, C.RETURN, 1, reference=ref)

    def test_new_outflow_reactivates_with_cumulative_grant(
        self, stocked_item, subscription, record, allocations
    ):
        ref = Reference.subscription(subscription.id)
        record(stocked_item, C.OUTFLOW, 6, reference=ref)
        record(stocked_item, C.RETURN, 6, reference=ref)
        record(stocked_item, C.OUTFLOW, 4, reference=ref, reason_code=R.ADDITIONAL_DISPATCH)

        info = allocations.get(stocked_item.id, ref)
        assert info.is_active
        assert info.allocated_quantity == 10
        assert info.outstanding_quantity == 4

    def test_manual_reference_holds_nothing(self, stocked_item, allocations):
        assert allocations.outstanding_for(stocked_item.id, MANUAL) == 0
        assert allocations.get(stocked_item.id, MANUAL) is None

    def test_unknown_pair_holds_nothing(self, stocked_item, subscription, allocations):
        assert allocations.outstanding_for(
            stocked_item.id, Reference.subscription(subscription.id)
        ) == 0

    def test_pairs_are_independent(
        self, create_item, create_subscription, record, allocations
    ):
        plate = create_item("Dinner plate", stock=50)
        bowl = create_item("Soup bowl", category="bowl", stock=50)
        first = Reference.subscription(create_subscription().id)
        second = Reference.subscription(create_subscription().id)

        record(plate, C.OUTFLOW, 10, reference=first)
        record(bowl, C.OUTFLOW, 7, reference=first)
        record(plate, C.OUTFLOW, 3, reference=second)
        record(plate, C.RETURN, 3, reference=second)

        assert allocations.outstanding_for(plate.id, first) == 10
        assert allocations.outstanding_for(bowl.id, first) == 7
        assert allocations.outstanding_for(plate.id, second) == 0
        assert len(allocations.list_for_reference(first)) == 2
        assert len(allocations.list_for_item(plate.id, active_only=True)) == 1


class TestAllocatedPoolAgreement:

    def test_allocated_pool_equals_sum_of_outstanding(
        self, stocked_item, create_subscription, create_event, record, allocations, session
    ):
        sub = Reference.subscription(create_subscription().id)
        evt = Reference.event(create_event().id)
        record(stocked_item, C.OUTFLOW, 12, reference=sub)
        record(stocked_item, C.OUTFLOW, 9, reference=evt)
        record(stocked_item, C.RETURN, 5, reference=sub)
        record(stocked_item, C.WRITEOFF, 2, reference=evt, reason_code=R.TRANSIT_LOST)

        outstanding = sum(
            a.outstanding_quantity for a in allocations.list_for_item(stocked_item.id)
        )
        assert ItemSelector(session).get(stocked_item.id).allocated_quantity == outstanding == 14
