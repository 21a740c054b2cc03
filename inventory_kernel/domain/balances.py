"""
Balance projector (``inventory_kernel.domain.balances``).

Responsibility
--------------
The deterministic function ``apply_movement(balances, movement) ->
balances`` that turns one ledger fact into a new set of item balances,
plus ``replay`` which folds a whole ledger from zero.  The ledger service
runs ``apply_movement`` in the same transaction as the movement insert;
the reconciliation service runs ``replay`` to re-derive balances from the
ledger alone.

Architecture position
---------------------
**Kernel domain layer** -- pure functions over frozen values.  ZERO I/O.

Invariants enforced
-------------------
* total = available + allocated + damaged + in_repair.
* Every pool, lost included, is >= 0.
* Lost units leave total and never come back.

``pool_draws`` names the pools a movement consumes so that validation can
reject an overdraw with ``InsufficientStockError`` before anything is
written.  ``apply_movement`` re-checks the invariant afterwards and raises
``BalanceInvariantError`` if it fails; on the normal path that check never
fires.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Iterable

from inventory_kernel.domain.movements import (
    MovementCategory,
    MovementSubtype,
    ReferenceType,
)
from inventory_kernel.exceptions import BalanceInvariantError

AVAILABLE = "available"
ALLOCATED = "allocated"
DAMAGED = "damaged"
IN_REPAIR = "in_repair"
LOST = "lost"
TOTAL = "total"

POOLS: tuple[str, ...] = (AVAILABLE, ALLOCATED, DAMAGED, IN_REPAIR, LOST)


@dataclass(frozen=True)
class ItemBalances:
    """Quantity counters of one item."""

    total: int = 0
    available: int = 0
    allocated: int = 0
    damaged: int = 0
    in_repair: int = 0
    lost: int = 0

    @classmethod
    def zero(cls) -> ItemBalances:
        return cls()

    @property
    def on_hand(self) -> int:
        return self.available + self.allocated + self.damaged + self.in_repair

    def is_balanced(self) -> bool:
        return self.total == self.on_hand

    def negative_pools(self) -> tuple[str, ...]:
        values = asdict(self)
        return tuple(name for name in (TOTAL, *POOLS) if values[name] < 0)

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class MovementFacts:
    """The parts of a movement that determine its effect on balances."""

    category: MovementCategory
    subtype: MovementSubtype | None
    quantity: int
    reference_type: ReferenceType = ReferenceType.MANUAL


def effect_of(movement: MovementFacts) -> dict[str, int]:
    """Signed per-counter deltas of a movement."""
    q = movement.quantity
    category = movement.category
    subtype = movement.subtype

    if category == MovementCategory.INFLOW:
        return {AVAILABLE: q, TOTAL: q}
    if category == MovementCategory.OUTFLOW:
        return {AVAILABLE: -q, ALLOCATED: q}
    if category == MovementCategory.RETURN:
        if subtype == MovementSubtype.RETURN_DAMAGED:
            return {ALLOCATED: -q, DAMAGED: q}
        return {ALLOCATED: -q, AVAILABLE: q}
    if category == MovementCategory.WRITEOFF:
        if subtype == MovementSubtype.HANDLING_DAMAGE:
            return {AVAILABLE: -q, DAMAGED: q}
        if subtype == MovementSubtype.CLIENT_DAMAGE:
            return {ALLOCATED: -q, DAMAGED: q}
        if subtype == MovementSubtype.LOSS:
            source = (
                ALLOCATED
                if movement.reference_type in (ReferenceType.SUBSCRIPTION, ReferenceType.EVENT)
                else AVAILABLE
            )
            return {source: -q, LOST: q, TOTAL: -q}
        if subtype == MovementSubtype.DISPOSAL:
            return {DAMAGED: -q, TOTAL: -q}
    if category == MovementCategory.ADJUSTMENT:
        if subtype == MovementSubtype.INCREASE:
            return {AVAILABLE: q, TOTAL: q}
        if subtype == MovementSubtype.DECREASE:
            return {AVAILABLE: -q, TOTAL: -q}
    if category == MovementCategory.REPAIR:
        if subtype == MovementSubtype.SEND_TO_REPAIR:
            return {DAMAGED: -q, IN_REPAIR: q}
        if subtype == MovementSubtype.RETURN_REPAIRED:
            return {IN_REPAIR: -q, AVAILABLE: q}
        if subtype == MovementSubtype.RETURN_IRREPARABLE:
            return {IN_REPAIR: -q, TOTAL: -q}

    raise ValueError(
        f"No effect defined for {category.value}/{subtype.value if subtype else None}"
    )


def pool_draws(movement: MovementFacts) -> dict[str, int]:
    """Pools the movement takes units out of, with the amount taken."""
    return {
        pool: -delta
        for pool, delta in effect_of(movement).items()
        if delta < 0 and pool != TOTAL
    }


def apply_movement(
    balances: ItemBalances,
    movement: MovementFacts,
    item_id: str | None = None,
) -> ItemBalances:
    """Apply one movement and verify the balance invariant.

    Raises:
        BalanceInvariantError: a pool went negative or the equation broke.
    """
    current = balances.as_dict()
    for counter, delta in effect_of(movement).items():
        current[counter] += delta
    updated = replace(balances, **current)

    negative = updated.negative_pools()
    if negative:
        raise BalanceInvariantError(
            reason=f"negative {', '.join(negative)}",
            balances=updated.as_dict(),
            item_id=item_id,
        )
    if not updated.is_balanced():
        raise BalanceInvariantError(
            reason="total != available + allocated + damaged + in_repair",
            balances=updated.as_dict(),
            item_id=item_id,
        )
    return updated


def replay(
    movements: Iterable[MovementFacts],
    start: ItemBalances | None = None,
) -> ItemBalances:
    """Fold movements, in ledger order, into balances."""
    balances = start or ItemBalances.zero()
    for movement in movements:
        balances = apply_movement(balances, movement)
    return balances
