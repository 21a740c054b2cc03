"""ItemService tests: creation, lifecycle transitions and hard deletion."""

from uuid import uuid4

import pytest

from inventory_kernel.domain.lifecycle import ItemLifecycle as L
from inventory_kernel.domain.movements import (
    MovementCategory as C,
    MovementSubtype as S,
    ReasonCode as R,
    Reference,
)
from inventory_kernel.exceptions import (
    ArchivedItemError,
    DuplicateItemError,
    InvalidLifecycleTransitionError,
    InvalidQuantityError,
    ItemDeletionBlockedError,
    ItemNotFoundError,
    OutletNotFoundError,
    ValidationError,
)
from inventory_kernel.selectors.movement_selector import MovementSelector
from inventory_kernel.services.item_service import DISCONTINUE_SUGGESTION


class TestCreateItem:

    def test_new_item_starts_in_draft(self, item_service, outlet, operator):
        info = item_service.create_item(
            outlet_id=outlet.id, name="Tea cup", category="cup", actor=operator
        )

        assert info.lifecycle_status == L.DRAFT
        assert info.is_active
        assert not info.opening_balance_confirmed
        assert info.total_quantity == 0
        assert info.unit == "pcs"

    def test_initial_quantity_becomes_opening_inflow(self, item_service, outlet, operator, session):
        info = item_service.create_item(
            outlet_id=outlet.id, name="Tea cup", category="cup",
            actor=operator, initial_quantity=40,
        )

        assert info.available_quantity == 40
        assert info.total_quantity == 40
        [movement] = MovementSelector(session).list_for_item(info.id)
        assert movement.category == C.INFLOW
        assert movement.reason_code == R.OPENING_BALANCE
        assert movement.notes == "Opening balance"

    def test_names_are_trimmed(self, item_service, outlet, operator):
        info = item_service.create_item(
            outlet_id=outlet.id, name="  Tea cup ", category=" cup", actor=operator
        )
        assert info.name == "Tea cup"
        assert info.category == "cup"

    @pytest.mark.parametrize("name, category", [("", "cup"), ("   ", "cup"), ("Tea cup", "")])
    def test_blank_identity_is_rejected(self, item_service, outlet, operator, name, category):
        with pytest.raises(ValidationError):
            item_service.create_item(
                outlet_id=outlet.id, name=name, category=category, actor=operator
            )

    def test_negative_initial_quantity(self, item_service, outlet, operator):
        with pytest.raises(InvalidQuantityError):
            item_service.create_item(
                outlet_id=outlet.id, name="Tea cup", category="cup",
                actor=operator, initial_quantity=-1,
            )

    def test_unknown_outlet(self, item_service, operator):
        with pytest.raises(OutletNotFoundError):
            item_service.create_item(
                outlet_id=uuid4(), name="Tea cup", category="cup", actor=operator
            )

    @pytest.mark.parametrize("material", ["porcelain", None])
    def test_duplicate_identity(self, create_item, material):
        create_item("Tea cup", category="cup", material=material)
        with pytest.raises(DuplicateItemError):
            create_item("Tea cup", category="cup", material=material)

    def test_same_name_with_other_material_is_distinct(self, create_item):
        first = create_item("Tea cup", category="cup", material="porcelain")
        second = create_item("Tea cup", category="cup", material="glass")
        assert first.id != second.id

    def test_same_identity_in_another_outlet(self, create_item, create_outlet):
        create_item("Tea cup", category="cup")
        create_item("Tea cup", category="cup", outlet_id=create_outlet().id)

    def test_creation_is_logged(self, item_service, outlet, operator, captured_logs):
        info = item_service.create_item(
            outlet_id=outlet.id, name="Tea cup", category="cup",
            actor=operator, initial_quantity=12,
        )

        [entry] = [r for r in captured_logs() if r["message"] == "item_created"]
        assert entry["item_id"] == str(info.id)
        assert entry["item_name"] == "Tea cup"
        assert entry["initial_quantity"] == 12


class TestLifecycle:

    def test_activate(self, create_item, item_service, operator):
        item = create_item(activate=False)
        info = item_service.activate_item(item.id, operator)
        assert info.lifecycle_status == L.ACTIVE
        assert info.is_active

    def test_same_state_is_a_no_op(self, stocked_item, item_service, operator):
        info = item_service.activate_item(stocked_item.id, operator)
        assert info.lifecycle_status == L.ACTIVE

    def test_draft_cannot_be_discontinued(self, create_item, item_service, operator):
        item = create_item(activate=False)
        with pytest.raises(InvalidLifecycleTransitionError):
            item_service.discontinue_item(item.id, operator)

    def test_discontinue_and_reactivate(self, stocked_item, item_service, operator):
        info = item_service.discontinue_item(stocked_item.id, operator)
        assert info.lifecycle_status == L.DISCONTINUED
        assert not info.is_active

        info = item_service.activate_item(stocked_item.id, operator)
        assert info.lifecycle_status == L.ACTIVE

    def test_discontinue_blocked_while_allocated(
        self, stocked_item, subscription, record, item_service, operator
    ):
        record(stocked_item, C.OUTFLOW, 3, reference=Reference.subscription(subscription.id))

        with pytest.raises(InvalidLifecycleTransitionError) as exc_info:
            item_service.discontinue_item(stocked_item.id, operator)
        assert "allocated" in str(exc_info.value)

    def test_archive_requires_zero_stock(self, stocked_item, item_service, operator):
        with pytest.raises(InvalidLifecycleTransitionError):
            item_service.archive_item(stocked_item.id, operator)

    def test_archive_requires_inactivity(
        self, create_item, record, item_service, operator, deterministic_clock
    ):
        item = create_item(stock=5)
        record(item, C.WRITEOFF, 5, subtype=S.HANDLING_DAMAGE)
        record(item, C.WRITEOFF, 5, reason_code=R.END_OF_LIFE)

        with pytest.raises(InvalidLifecycleTransitionError) as exc_info:
            item_service.archive_item(item.id, operator)
        assert "12 month" in str(exc_info.value)

        deterministic_clock.advance_days(400)
        info = item_service.archive_item(item.id, operator)
        assert info.lifecycle_status == L.ARCHIVED
        assert not info.is_active

    def test_archived_is_terminal(self, create_item, item_service, operator):
        item = create_item()
        item_service.archive_item(item.id, operator)

        for transition in (
            item_service.activate_item,
            item_service.discontinue_item,
            item_service.archive_item,
        ):
            with pytest.raises(ArchivedItemError):
                transition(item.id, operator)

    def test_string_status_is_accepted(self, stocked_item, item_service, operator):
        info = item_service.change_lifecycle(stocked_item.id, "discontinued", operator)
        assert info.lifecycle_status == L.DISCONTINUED

    def test_unknown_status_is_a_validation_error(self, stocked_item, item_service, operator):
        with pytest.raises(ValidationError):
            item_service.change_lifecycle(stocked_item.id, "retired", operator)
        assert item_service.get_item(stocked_item.id).lifecycle_status == L.ACTIVE

    def test_unknown_item(self, item_service, operator):
        with pytest.raises(ItemNotFoundError):
            item_service.activate_item(uuid4(), operator)

    def test_lifecycle_change_is_logged(self, stocked_item, item_service, operator, captured_logs):
        item_service.discontinue_item(stocked_item.id, operator)

        [entry] = [r for r in captured_logs() if r["message"] == "item_lifecycle_changed"]
        assert entry["from_status"] == "active"
        assert entry["to_status"] == "discontinued"
        assert entry["item_id"] == str(stocked_item.id)


class TestOpeningBalance:

    def test_explicit_confirmation_is_idempotent(self, stocked_item, item_service, operator):
        assert item_service.confirm_opening_balance(stocked_item.id, operator).opening_balance_confirmed
        assert item_service.confirm_opening_balance(stocked_item.id, operator).opening_balance_confirmed


class TestDeletion:

    def test_fresh_item_can_be_deleted(self, create_item, item_service, operator):
        item = create_item(activate=False)

        assert item_service.can_delete_item(item.id).allowed
        item_service.delete_item(item.id, operator)

        with pytest.raises(ItemNotFoundError):
            item_service.get_item(item.id)

    def test_deletion_is_logged(self, create_item, item_service, operator, captured_logs):
        item = create_item("Saucer", activate=False)
        item_service.delete_item(item.id, operator)

        [entry] = [r for r in captured_logs() if r["message"] == "item_deleted"]
        assert entry["item_name"] == "Saucer"

    def test_stock_blocks_deletion(self, stocked_item, item_service, operator):
        check = item_service.can_delete_item(stocked_item.id)
        assert not check.allowed
        assert check.suggestion == DISCONTINUE_SUGGESTION

        with pytest.raises(ItemDeletionBlockedError) as exc_info:
            item_service.delete_item(stocked_item.id, operator)
        assert exc_info.value.suggestion == DISCONTINUE_SUGGESTION

    def test_manual_history_is_deleted_with_the_item(
        self, create_item, record, item_service, operator, session
    ):
        item = create_item(stock=5)
        record(item, C.WRITEOFF, 5, subtype=S.HANDLING_DAMAGE)
        record(item, C.WRITEOFF, 5, subtype=S.DISPOSAL)

        item_service.delete_item(item.id, operator)

        assert MovementSelector(session).list_for_item(item.id) == []

    def test_holder_history_blocks_deletion(self, create_item, subscription, record, item_service):
        item = create_item(stock=5)
        ref = Reference.subscription(subscription.id)
        record(item, C.OUTFLOW, 5, reference=ref)
        record(item, C.RETURN, 5, subtype=S.RETURN_DAMAGED, reference=ref)
        record(item, C.WRITEOFF, 5, subtype=S.DISPOSAL)

        check = item_service.can_delete_item(item.id)
        assert not check.allowed
        assert "subscriptions or events" in check.reason

    def test_audited_item_cannot_be_deleted(
        self, create_item, audit_workflow, outlet, operator, item_service
    ):
        item = create_item()
        audit_workflow.create_audit(outlet.id, "2026-02", operator)

        check = item_service.can_delete_item(item.id)
        assert not check.allowed
        assert "audit" in check.reason

    def test_archived_item_cannot_be_deleted(self, create_item, item_service, operator):
        item = create_item()
        item_service.archive_item(item.id, operator)
        assert not item_service.can_delete_item(item.id).allowed
