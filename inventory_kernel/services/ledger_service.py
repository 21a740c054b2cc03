"""
MovementLedger -- the only write path for stock changes.

Responsibility:
    Validates a movement request against the item registry and the
    allocation tracker, appends the movement, projects it onto the item's
    balance row and updates holdership, all inside one savepoint.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by ItemService (opening stock), AuditWorkflow (corrective
    adjustments), ReferenceService (event cancellation returns) and the
    orchestration layer in inventory_services/.

Invariants enforced:
    - quantity > 0; direction comes from category and subtype.
    - Balance equation and no negative stock: pools are checked before the
      insert (InsufficientStockError) and re-verified by the projector
      afterwards (BalanceInvariantError).
    - Validate-then-apply under a row lock: the item row is selected
      ``FOR UPDATE`` before any check reads its balances, so two concurrent
      movements on one item serialize and cannot both pass a stale check.
    - Append-only ledger with a monotonic sequence from SequenceService.
    - Holder references: outflows name a subscription or event; returns,
      client damage and holder losses settle an active allocation and never
      exceed its outstanding quantity; every other movement is manual.
    - Cancelled subscriptions and events take no new outflows.

Failure modes:
    Any InventoryKernelError subclass from the validation steps, raised
    before anything is written.  The savepoint is rolled back on every
    error so a rejection leaves no partial effect.

Audit relevance:
    Every accepted movement logs ``movement_recorded`` with its sequence,
    category, subtype, quantity, reference and resulting balances.  Every
    rejection logs ``movement_rejected`` with the error code.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.db.immutability import projection_write
from inventory_kernel.domain.actor import Actor, may_adjust
from inventory_kernel.domain.balances import (
    ItemBalances,
    MovementFacts,
    apply_movement,
    pool_draws,
)
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import MovementInfo
from inventory_kernel.domain.lifecycle import accepts
from inventory_kernel.domain.movements import (
    HOLDER_SUBTYPES,
    MANUAL,
    MovementCategory,
    MovementSubtype,
    ReasonCode,
    Reference,
    ReferenceType,
    resolve_subtype,
)
from inventory_kernel.domain.policy import LedgerPolicy
from inventory_kernel.exceptions import (
    ArchivedItemError,
    BalanceInvariantError,
    CancelledHolderError,
    ElevatedRoleRequiredError,
    EventNotFoundError,
    InsufficientStockError,
    InvalidMovementError,
    InvalidQuantityError,
    InvalidReasonCodeError,
    InventoryKernelError,
    ItemLifecycleGateError,
    ItemNotFoundError,
    MissingNotesError,
    MissingReasonError,
    OutletMismatchError,
    OutstandingExceededError,
    SubscriptionNotFoundError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.item import Item
from inventory_kernel.models.movement import Movement
from inventory_kernel.models.references import (
    Event,
    EventStatus,
    Subscription,
    SubscriptionStatus,
)
from inventory_kernel.selectors.movement_selector import to_movement_info
from inventory_kernel.services.allocation_service import AllocationTracker
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.sequence_service import SequenceService

logger = get_logger("services.ledger")

# Subtypes that only make sense against a holder
_HOLDER_ONLY_SUBTYPES = HOLDER_SUBTYPES - {MovementSubtype.LOSS}


def _is_positive_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _coerce_category(category: MovementCategory | str) -> MovementCategory:
    try:
        return MovementCategory(category)
    except ValueError:
        raise InvalidMovementError(str(category), "unknown movement category") from None


def _coerce_subtype(
    category: MovementCategory, subtype: MovementSubtype | str | None
) -> MovementSubtype | None:
    if subtype is None:
        return None
    try:
        return MovementSubtype(subtype)
    except ValueError:
        raise InvalidMovementError(category.value, f"unknown subtype {subtype!r}") from None


def _coerce_reason(reason_code: ReasonCode | str | None) -> ReasonCode | None:
    if reason_code is None:
        return None
    try:
        return ReasonCode(reason_code)
    except ValueError:
        raise InvalidReasonCodeError(str(reason_code), "unknown reason code") from None


class MovementLedger(BaseService[Movement]):
    """
    Records validated movements and keeps the item projection in step.

    Contract:
        ``record_movement`` either appends exactly one movement, updates the
        item's balance row and allocation state and returns a
        ``MovementInfo``, or raises and changes nothing.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT authenticate actors; it only checks their role.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: LedgerPolicy | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._policy = policy or LedgerPolicy.with_defaults()
        self._sequence = SequenceService(session)
        self._allocations = AllocationTracker(session, self._clock)

    def record_movement(
        self,
        *,
        item_id: UUID,
        outlet_id: UUID,
        category: MovementCategory | str,
        quantity: int,
        actor: Actor,
        subtype: MovementSubtype | str | None = None,
        reference: Reference = MANUAL,
        reason_code: ReasonCode | str | None = None,
        notes: str | None = None,
    ) -> MovementInfo:
        """
        Validate and apply one movement.

        Raises:
            InvalidQuantityError, InvalidMovementError, MissingReasonError,
            MissingNotesError: malformed request.
            ItemNotFoundError, OutletMismatchError, SubscriptionNotFoundError,
            EventNotFoundError, AllocationNotFoundError,
            OutstandingExceededError: bad references.
            ArchivedItemError, ItemLifecycleGateError,
            CancelledHolderError: lifecycle gating.
            ElevatedRoleRequiredError: adjustment role rules.
            InsufficientStockError: a pool would go negative.
            BalanceInvariantError: post-apply check failed.
        """
        with LogContext.bind(
            item_id=item_id, outlet_id=outlet_id, actor_id=actor.actor_id
        ):
            try:
                category = _coerce_category(category)
                with self.session.begin_nested():
                    return self._record(
                        item_id=item_id,
                        outlet_id=outlet_id,
                        category=category,
                        quantity=quantity,
                        actor=actor,
                        subtype=_coerce_subtype(category, subtype),
                        reference=reference,
                        reason_code=_coerce_reason(reason_code),
                        notes=notes,
                    )
            except InventoryKernelError as exc:
                logger.warning(
                    "movement_rejected",
                    extra={
                        "category": getattr(category, "value", category),
                        "quantity": quantity,
                        "reference_type": reference.type.value,
                        "reference_id": str(reference.id) if reference.id else None,
                        "error_code": exc.code,
                        "reason": str(exc),
                    },
                )
                raise

    def _record(
        self,
        *,
        item_id: UUID,
        outlet_id: UUID,
        category: MovementCategory,
        quantity: int,
        actor: Actor,
        subtype: MovementSubtype | None,
        reference: Reference,
        reason_code: ReasonCode | None,
        notes: str | None,
    ) -> MovementInfo:
        if not _is_positive_int(quantity):
            raise InvalidQuantityError(quantity)

        if category == MovementCategory.ADJUSTMENT and reason_code is None:
            raise MissingReasonError("adjustment movements")
        subtype = resolve_subtype(category, subtype, reason_code)

        item = self._lock_item(item_id)
        if item.outlet_id != outlet_id:
            raise OutletMismatchError(
                "Item", str(item.id), str(outlet_id), str(item.outlet_id)
            )

        self._check_lifecycle(item, category)
        self._check_reference(item, category, subtype, reference)

        if category == MovementCategory.ADJUSTMENT:
            self._check_adjustment(item, subtype, notes, actor)

        settles_holder = reference.is_holder and category != MovementCategory.OUTFLOW
        if settles_holder:
            self._allocations.require_active(item.id, reference)
            outstanding = self._allocations.outstanding_for(item.id, reference)
            if quantity > outstanding:
                raise OutstandingExceededError(
                    str(item.id),
                    reference.type.value,
                    str(reference.id),
                    outstanding,
                    quantity,
                )

        facts = MovementFacts(category, subtype, quantity, reference.type)
        current = item.balances()
        self._check_pools(item, current, facts)

        try:
            updated = apply_movement(current, facts, item_id=str(item.id))
        except BalanceInvariantError as exc:
            logger.error(
                "balance_invariant_violated",
                extra={"reason": exc.reason, "balances": exc.balances},
            )
            raise

        movement = Movement(
            sequence=self._sequence.next_value(SequenceService.MOVEMENT),
            item_id=item.id,
            outlet_id=item.outlet_id,
            category=category.value,
            subtype=subtype.value if subtype else None,
            quantity=quantity,
            reference_type=reference.type.value,
            reference_id=reference.id,
            reason_code=reason_code.value if reason_code else None,
            notes=notes,
            actor_id=actor.actor_id,
            actor_role=actor.role.value,
            on_behalf_of_id=actor.on_behalf_of,
            recorded_at=self._clock.now(),
        )
        self.session.add(movement)

        confirms_opening = (
            category == MovementCategory.OUTFLOW and not item.opening_balance_confirmed
        )
        with projection_write(self.session):
            item.store_balances(updated)
            if confirms_opening:
                item.opening_balance_confirmed = True
            item.updated_by_id = actor.actor_id
            self.session.flush()

        if confirms_opening:
            logger.info("opening_balance_confirmed", extra={"trigger": "first_outflow"})

        if category == MovementCategory.OUTFLOW:
            self._allocations.grant(item.id, item.outlet_id, reference, quantity, actor)
        elif settles_holder:
            self._allocations.settle(item.id, reference, actor)

        logger.info(
            "movement_recorded",
            extra={
                "movement_id": str(movement.id),
                "sequence": movement.sequence,
                "category": category.value,
                "subtype": subtype.value if subtype else None,
                "quantity": quantity,
                "reference_type": reference.type.value,
                "reference_id": str(reference.id) if reference.id else None,
                "reason_code": reason_code.value if reason_code else None,
                "balances": updated.as_dict(),
            },
        )
        return to_movement_info(movement)

    # ------------------------------------------------------------------
    # Validation steps
    # ------------------------------------------------------------------

    def _lock_item(self, item_id: UUID) -> Item:
        item = self.session.execute(
            select(Item)
            .where(Item.id == item_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if item is None:
            raise ItemNotFoundError(str(item_id))
        return item

    def _check_lifecycle(self, item: Item, category: MovementCategory) -> None:
        if item.is_archived:
            raise ArchivedItemError(str(item.id), f"record {category.value} movement")
        if not accepts(item.lifecycle, category):
            raise ItemLifecycleGateError(
                str(item.id), item.lifecycle.value, category.value
            )

    def _check_reference(
        self,
        item: Item,
        category: MovementCategory,
        subtype: MovementSubtype | None,
        reference: Reference,
    ) -> None:
        holder_allowed = category == MovementCategory.OUTFLOW or subtype in HOLDER_SUBTYPES
        holder_required = (
            category == MovementCategory.OUTFLOW or subtype in _HOLDER_ONLY_SUBTYPES
        )

        if reference.is_holder and not holder_allowed:
            raise InvalidMovementError(
                category.value,
                f"{subtype.value if subtype else category.value} movements "
                "cannot reference a subscription or event",
            )
        if holder_required and not reference.is_holder:
            raise InvalidMovementError(
                category.value,
                f"{subtype.value if subtype else category.value} movements "
                "must reference a subscription or event",
            )

        match reference.type:
            case ReferenceType.SUBSCRIPTION:
                holder = self.session.get(Subscription, reference.id)
                if holder is None:
                    raise SubscriptionNotFoundError(str(reference.id))
                entity_type = "Subscription"
                cancelled = holder.status == SubscriptionStatus.CANCELLED.value
            case ReferenceType.EVENT:
                holder = self.session.get(Event, reference.id)
                if holder is None:
                    raise EventNotFoundError(str(reference.id))
                entity_type = "Event"
                cancelled = holder.status == EventStatus.CANCELLED.value
            case ReferenceType.MANUAL:
                return

        if holder.outlet_id != item.outlet_id:
            raise OutletMismatchError(
                entity_type, str(reference.id), str(item.outlet_id), str(holder.outlet_id)
            )
        if cancelled and category == MovementCategory.OUTFLOW:
            raise CancelledHolderError(reference.type.value, str(reference.id))

    def _check_adjustment(
        self,
        item: Item,
        subtype: MovementSubtype | None,
        notes: str | None,
        actor: Actor,
    ) -> None:
        if notes is None or not notes.strip():
            raise MissingNotesError("adjustment movements")
        if not may_adjust(
            actor, subtype, item.opening_balance_confirmed, self._policy.elevated_roles
        ):
            operation = (
                "negative adjustment"
                if subtype == MovementSubtype.DECREASE
                else "adjustment after opening balance confirmation"
            )
            raise ElevatedRoleRequiredError(
                str(actor.actor_id), actor.role.value, operation
            )

    def _check_pools(
        self, item: Item, current: ItemBalances, facts: MovementFacts
    ) -> None:
        values = current.as_dict()
        for pool, need in pool_draws(facts).items():
            have = values[pool]
            if have < need:
                raise InsufficientStockError(pool, have, need, item_id=str(item.id))
