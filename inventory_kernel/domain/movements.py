"""
Movement vocabulary (``inventory_kernel.domain.movements``).

Responsibility
--------------
Pure value types describing a ledger movement: its category, the
enumerated subtype that routes its effect on the balance pools, the
reason code kept for traceability, and the tagged reference to the
holder (subscription, event) or to nothing in particular (manual).

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Every category accepts a fixed set of subtypes and a fixed set of
  reason codes (``CATEGORY_SUBTYPES`` / ``CATEGORY_REASONS``).
* Effect routing is decided by the subtype, never by matching reason-code
  text.  A reason code may *imply* a subtype (``REASON_SUBTYPES``); when
  both are supplied they must agree.
* Subscription and event references always carry an id.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from inventory_kernel.exceptions import InvalidMovementError


class MovementCategory(str, Enum):
    """Top-level classification of a ledger entry."""

    INFLOW = "inflow"
    OUTFLOW = "outflow"
    RETURN = "return"
    WRITEOFF = "writeoff"
    ADJUSTMENT = "adjustment"
    REPAIR = "repair"


class MovementSubtype(str, Enum):
    """Routes a movement's effect to specific balance pools."""

    # return
    RETURN_GOOD = "return_good"
    RETURN_DAMAGED = "return_damaged"
    # writeoff
    HANDLING_DAMAGE = "handling_damage"
    CLIENT_DAMAGE = "client_damage"
    LOSS = "loss"
    DISPOSAL = "disposal"
    # adjustment
    INCREASE = "increase"
    DECREASE = "decrease"
    # repair
    SEND_TO_REPAIR = "send_to_repair"
    RETURN_REPAIRED = "return_repaired"
    RETURN_IRREPARABLE = "return_irreparable"


class ReasonCode(str, Enum):
    """Why a movement happened. Kept on every row for the audit trail."""

    # inflow
    OPENING_BALANCE = "opening_balance"
    NEW_PURCHASE = "new_purchase"
    GIFT_RECEIVED = "gift_received"
    TRANSFER_IN = "transfer_in"
    LEGACY_STOCK_IN = "legacy_stock_in"
    # outflow
    SUBSCRIPTION_START = "subscription_start"
    EVENT_DISPATCH = "event_dispatch"
    ADDITIONAL_DISPATCH = "additional_dispatch"
    # return
    NORMAL_RETURN = "normal_return"
    EARLY_RETURN = "early_return"
    CLIENT_DAMAGE = "client_damage"
    TRANSIT_DAMAGE = "transit_damage"
    # writeoff: damage
    HANDLING_DAMAGE = "handling_damage"
    STORAGE_DAMAGE = "storage_damage"
    CLIENT_REPORTED = "client_reported"
    DELIVERY_DAMAGE = "delivery_damage"
    # writeoff: loss
    CLIENT_LOST = "client_lost"
    TRANSIT_LOST = "transit_lost"
    THEFT = "theft"
    MISSING_STOCK = "missing_stock"
    # writeoff: disposal
    END_OF_LIFE = "end_of_life"
    UNREPAIRABLE = "unrepairable"
    AUDIT_WRITEOFF = "audit_writeoff"
    # adjustment
    AUDIT_SURPLUS = "audit_surplus"
    AUDIT_SHORTAGE = "audit_shortage"
    FOUND_STOCK = "found_stock"
    COUNT_CORRECTION = "count_correction"
    COUNT_CORRECTION_NEGATIVE = "count_correction_negative"
    OPENING_BALANCE_CORRECTION = "opening_balance_correction"
    UNRECORDED_DAMAGE = "unrecorded_damage"
    UNRECORDED_LOSS = "unrecorded_loss"
    # repair
    INTERNAL_REPAIR = "internal_repair"
    EXTERNAL_VENDOR = "external_vendor"
    REPAIRED = "repaired"
    IRREPARABLE = "irreparable"


class ReferenceType(str, Enum):
    """Who a movement is attributed to."""

    SUBSCRIPTION = "subscription"
    EVENT = "event"
    MANUAL = "manual"


@dataclass(frozen=True)
class Reference:
    """Tagged reference: Subscription(id) | Event(id) | Manual(optional id).

    A manual reference may still carry an id (an audit id for movements
    emitted by the audit workflow) but that id is never validated as a
    holder.
    """

    type: ReferenceType
    id: UUID | None = None

    def __post_init__(self) -> None:
        if self.type in (ReferenceType.SUBSCRIPTION, ReferenceType.EVENT) and self.id is None:
            raise InvalidMovementError(
                self.type.value, f"a {self.type.value} reference requires an id"
            )

    @classmethod
    def subscription(cls, subscription_id: UUID) -> Reference:
        return cls(ReferenceType.SUBSCRIPTION, subscription_id)

    @classmethod
    def event(cls, event_id: UUID) -> Reference:
        return cls(ReferenceType.EVENT, event_id)

    @classmethod
    def manual(cls, reference_id: UUID | None = None) -> Reference:
        return cls(ReferenceType.MANUAL, reference_id)

    @property
    def is_holder(self) -> bool:
        """True for subscription/event references, which can hold allocations."""
        return self.type in (ReferenceType.SUBSCRIPTION, ReferenceType.EVENT)


MANUAL = Reference.manual()


CATEGORY_SUBTYPES: dict[MovementCategory, frozenset[MovementSubtype]] = {
    MovementCategory.INFLOW: frozenset(),
    MovementCategory.OUTFLOW: frozenset(),
    MovementCategory.RETURN: frozenset({
        MovementSubtype.RETURN_GOOD,
        MovementSubtype.RETURN_DAMAGED,
    }),
    MovementCategory.WRITEOFF: frozenset({
        MovementSubtype.HANDLING_DAMAGE,
        MovementSubtype.CLIENT_DAMAGE,
        MovementSubtype.LOSS,
        MovementSubtype.DISPOSAL,
    }),
    MovementCategory.ADJUSTMENT: frozenset({
        MovementSubtype.INCREASE,
        MovementSubtype.DECREASE,
    }),
    MovementCategory.REPAIR: frozenset({
        MovementSubtype.SEND_TO_REPAIR,
        MovementSubtype.RETURN_REPAIRED,
        MovementSubtype.RETURN_IRREPARABLE,
    }),
}

POSITIVE_ADJUSTMENT_REASONS: frozenset[ReasonCode] = frozenset({
    ReasonCode.AUDIT_SURPLUS,
    ReasonCode.FOUND_STOCK,
    ReasonCode.COUNT_CORRECTION,
})

NEGATIVE_ADJUSTMENT_REASONS: frozenset[ReasonCode] = frozenset({
    ReasonCode.AUDIT_SHORTAGE,
    ReasonCode.MISSING_STOCK,
    ReasonCode.COUNT_CORRECTION_NEGATIVE,
    ReasonCode.UNRECORDED_DAMAGE,
    ReasonCode.UNRECORDED_LOSS,
})

CATEGORY_REASONS: dict[MovementCategory, frozenset[ReasonCode]] = {
    MovementCategory.INFLOW: frozenset({
        ReasonCode.OPENING_BALANCE,
        ReasonCode.NEW_PURCHASE,
        ReasonCode.GIFT_RECEIVED,
        ReasonCode.TRANSFER_IN,
        ReasonCode.LEGACY_STOCK_IN,
    }),
    MovementCategory.OUTFLOW: frozenset({
        ReasonCode.SUBSCRIPTION_START,
        ReasonCode.EVENT_DISPATCH,
        ReasonCode.ADDITIONAL_DISPATCH,
    }),
    MovementCategory.RETURN: frozenset({
        ReasonCode.NORMAL_RETURN,
        ReasonCode.EARLY_RETURN,
        ReasonCode.CLIENT_DAMAGE,
        ReasonCode.TRANSIT_DAMAGE,
    }),
    MovementCategory.WRITEOFF: frozenset({
        ReasonCode.HANDLING_DAMAGE,
        ReasonCode.STORAGE_DAMAGE,
        ReasonCode.CLIENT_REPORTED,
        ReasonCode.CLIENT_DAMAGE,
        ReasonCode.DELIVERY_DAMAGE,
        ReasonCode.CLIENT_LOST,
        ReasonCode.TRANSIT_LOST,
        ReasonCode.THEFT,
        ReasonCode.MISSING_STOCK,
        ReasonCode.END_OF_LIFE,
        ReasonCode.UNREPAIRABLE,
        ReasonCode.AUDIT_WRITEOFF,
    }),
    MovementCategory.ADJUSTMENT: (
        POSITIVE_ADJUSTMENT_REASONS
        | NEGATIVE_ADJUSTMENT_REASONS
        | {ReasonCode.OPENING_BALANCE_CORRECTION}
    ),
    MovementCategory.REPAIR: frozenset({
        ReasonCode.INTERNAL_REPAIR,
        ReasonCode.EXTERNAL_VENDOR,
        ReasonCode.REPAIRED,
        ReasonCode.IRREPARABLE,
    }),
}

# Reason codes that imply a subtype. Codes absent here are direction-neutral.
REASON_SUBTYPES: dict[tuple[MovementCategory, ReasonCode], MovementSubtype] = {
    (MovementCategory.RETURN, ReasonCode.NORMAL_RETURN): MovementSubtype.RETURN_GOOD,
    (MovementCategory.RETURN, ReasonCode.EARLY_RETURN): MovementSubtype.RETURN_GOOD,
    (MovementCategory.RETURN, ReasonCode.CLIENT_DAMAGE): MovementSubtype.RETURN_DAMAGED,
    (MovementCategory.RETURN, ReasonCode.TRANSIT_DAMAGE): MovementSubtype.RETURN_DAMAGED,
    (MovementCategory.WRITEOFF, ReasonCode.HANDLING_DAMAGE): MovementSubtype.HANDLING_DAMAGE,
    (MovementCategory.WRITEOFF, ReasonCode.STORAGE_DAMAGE): MovementSubtype.HANDLING_DAMAGE,
    (MovementCategory.WRITEOFF, ReasonCode.CLIENT_REPORTED): MovementSubtype.CLIENT_DAMAGE,
    (MovementCategory.WRITEOFF, ReasonCode.CLIENT_DAMAGE): MovementSubtype.CLIENT_DAMAGE,
    (MovementCategory.WRITEOFF, ReasonCode.DELIVERY_DAMAGE): MovementSubtype.CLIENT_DAMAGE,
    (MovementCategory.WRITEOFF, ReasonCode.CLIENT_LOST): MovementSubtype.LOSS,
    (MovementCategory.WRITEOFF, ReasonCode.TRANSIT_LOST): MovementSubtype.LOSS,
    (MovementCategory.WRITEOFF, ReasonCode.THEFT): MovementSubtype.LOSS,
    (MovementCategory.WRITEOFF, ReasonCode.MISSING_STOCK): MovementSubtype.LOSS,
    (MovementCategory.WRITEOFF, ReasonCode.END_OF_LIFE): MovementSubtype.DISPOSAL,
    (MovementCategory.WRITEOFF, ReasonCode.UNREPAIRABLE): MovementSubtype.DISPOSAL,
    (MovementCategory.WRITEOFF, ReasonCode.AUDIT_WRITEOFF): MovementSubtype.DISPOSAL,
    (MovementCategory.REPAIR, ReasonCode.INTERNAL_REPAIR): MovementSubtype.SEND_TO_REPAIR,
    (MovementCategory.REPAIR, ReasonCode.EXTERNAL_VENDOR): MovementSubtype.SEND_TO_REPAIR,
    (MovementCategory.REPAIR, ReasonCode.REPAIRED): MovementSubtype.RETURN_REPAIRED,
    (MovementCategory.REPAIR, ReasonCode.IRREPARABLE): MovementSubtype.RETURN_IRREPARABLE,
    **{
        (MovementCategory.ADJUSTMENT, code): MovementSubtype.INCREASE
        for code in POSITIVE_ADJUSTMENT_REASONS
    },
    **{
        (MovementCategory.ADJUSTMENT, code): MovementSubtype.DECREASE
        for code in NEGATIVE_ADJUSTMENT_REASONS
    },
}

# Subtypes that consume units from the allocated pool. Together with
# outflow these are the only movements that may name a holder reference.
HOLDER_SUBTYPES: frozenset[MovementSubtype] = frozenset({
    MovementSubtype.RETURN_GOOD,
    MovementSubtype.RETURN_DAMAGED,
    MovementSubtype.CLIENT_DAMAGE,
    MovementSubtype.LOSS,
})

REPAIR_RETURN_SUBTYPES: frozenset[MovementSubtype] = frozenset({
    MovementSubtype.RETURN_REPAIRED,
    MovementSubtype.RETURN_IRREPARABLE,
})


def resolve_subtype(
    category: MovementCategory,
    subtype: MovementSubtype | None,
    reason_code: ReasonCode | None,
) -> MovementSubtype | None:
    """Return the effective subtype for a movement request.

    Raises:
        InvalidMovementError: reason code or subtype foreign to the
            category, the two disagree, or neither determines a subtype
            where one is needed.
    """
    allowed = CATEGORY_SUBTYPES[category]

    if reason_code is not None and reason_code not in CATEGORY_REASONS[category]:
        raise InvalidMovementError(
            category.value, f"reason code {reason_code.value} does not apply"
        )

    if not allowed:
        if subtype is not None:
            raise InvalidMovementError(
                category.value, f"{category.value} movements take no subtype"
            )
        return None

    implied = (
        REASON_SUBTYPES.get((category, reason_code)) if reason_code is not None else None
    )

    if subtype is None:
        if implied is not None:
            return implied
        if category == MovementCategory.RETURN:
            return MovementSubtype.RETURN_GOOD
        raise InvalidMovementError(
            category.value, "a subtype or a directional reason code is required"
        )

    if subtype not in allowed:
        raise InvalidMovementError(
            category.value, f"subtype {subtype.value} does not apply"
        )
    if implied is not None and implied != subtype:
        raise InvalidMovementError(
            category.value,
            f"reason code {reason_code.value} implies {implied.value}, not {subtype.value}",
        )
    return subtype
