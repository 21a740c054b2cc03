"""Tests for subtype resolution and tagged references."""

from uuid import uuid4

import pytest

from inventory_kernel.domain.movements import (
    CATEGORY_REASONS,
    HOLDER_SUBTYPES,
    MANUAL,
    MovementCategory as C,
    MovementSubtype as S,
    ReasonCode as R,
    Reference,
    ReferenceType,
    resolve_subtype,
)
from inventory_kernel.exceptions import InvalidMovementError


class TestResolveSubtype:

    def test_inflow_and_outflow_take_no_subtype(self):
        assert resolve_subtype(C.INFLOW, None, R.NEW_PURCHASE) is None
        assert resolve_subtype(C.OUTFLOW, None, None) is None

    def test_subtype_on_inflow_is_rejected(self):
        with pytest.raises(InvalidMovementError):
            resolve_subtype(C.INFLOW, S.INCREASE, None)

    @pytest.mark.parametrize(
        "category, reason, expected",
        [
            (C.RETURN, R.CLIENT_DAMAGE, S.RETURN_DAMAGED),
            (C.RETURN, R.EARLY_RETURN, S.RETURN_GOOD),
            (C.WRITEOFF, R.THEFT, S.LOSS),
            (C.WRITEOFF, R.STORAGE_DAMAGE, S.HANDLING_DAMAGE),
            (C.WRITEOFF, R.END_OF_LIFE, S.DISPOSAL),
            (C.ADJUSTMENT, R.FOUND_STOCK, S.INCREASE),
            (C.ADJUSTMENT, R.UNRECORDED_LOSS, S.DECREASE),
            (C.REPAIR, R.EXTERNAL_VENDOR, S.SEND_TO_REPAIR),
            (C.REPAIR, R.IRREPARABLE, S.RETURN_IRREPARABLE),
        ],
    )
    def test_reason_code_implies_subtype(self, category, reason, expected):
        assert resolve_subtype(category, None, reason) == expected

    def test_return_defaults_to_good(self):
        assert resolve_subtype(C.RETURN, None, None) == S.RETURN_GOOD

    def test_writeoff_needs_subtype_or_directional_reason(self):
        with pytest.raises(InvalidMovementError):
            resolve_subtype(C.WRITEOFF, None, None)

    def test_neutral_adjustment_reason_needs_subtype(self):
        with pytest.raises(InvalidMovementError):
            resolve_subtype(C.ADJUSTMENT, None, R.OPENING_BALANCE_CORRECTION)
        assert (
            resolve_subtype(C.ADJUSTMENT, S.DECREASE, R.OPENING_BALANCE_CORRECTION)
            == S.DECREASE
        )

    def test_disagreeing_subtype_and_reason_are_rejected(self):
        with pytest.raises(InvalidMovementError) as exc_info:
            resolve_subtype(C.ADJUSTMENT, S.INCREASE, R.AUDIT_SHORTAGE)
        assert "implies decrease" in str(exc_info.value)

    def test_foreign_subtype_is_rejected(self):
        with pytest.raises(InvalidMovementError):
            resolve_subtype(C.RETURN, S.DISPOSAL, None)

    def test_foreign_reason_code_is_rejected(self):
        with pytest.raises(InvalidMovementError):
            resolve_subtype(C.INFLOW, None, R.THEFT)

    def test_every_reason_resolves_or_needs_subtype(self):
        """No reason code listed for a category makes resolution crash."""
        for category, reasons in CATEGORY_REASONS.items():
            for reason in reasons:
                try:
                    resolve_subtype(category, None, reason)
                except InvalidMovementError:
                    pass


class TestReference:

    def test_holder_references_require_an_id(self):
        with pytest.raises(InvalidMovementError):
            Reference(ReferenceType.SUBSCRIPTION)
        with pytest.raises(InvalidMovementError):
            Reference(ReferenceType.EVENT, None)

    def test_manual_reference_may_carry_an_id(self):
        audit_id = uuid4()
        reference = Reference.manual(audit_id)
        assert reference.id == audit_id
        assert not reference.is_holder

    def test_holder_flags(self):
        assert Reference.subscription(uuid4()).is_holder
        assert Reference.event(uuid4()).is_holder
        assert not MANUAL.is_holder

    def test_references_compare_by_value(self):
        event_id = uuid4()
        assert Reference.event(event_id) == Reference.event(event_id)
        assert Reference.event(event_id) != Reference.subscription(event_id)

    def test_holder_subtypes(self):
        assert HOLDER_SUBTYPES == {
            S.RETURN_GOOD,
            S.RETURN_DAMAGED,
            S.CLIENT_DAMAGE,
            S.LOSS,
        }
