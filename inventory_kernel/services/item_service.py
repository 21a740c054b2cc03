"""
ItemService -- the item registry.

Responsibility:
    Creates items, drives the lifecycle state machine, confirms opening
    balances and guards hard deletion.  Balances are never written here;
    opening stock goes through MovementLedger as an inflow.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - Items start in DRAFT with every counter at zero.
    - Lifecycle edges come from domain/lifecycle.py; the guards that need
      balances or history are checked here under the item row lock:
        active -> discontinued   requires allocated == 0
        * -> archived            requires total == 0 and no movement in
                                 the trailing inactivity window
    - Archived items are read-only (ArchivedItemError).
    - Hard delete only with total == 0, no subscription/event history and
      no audit line referencing the item.

Failure modes:
    - ItemNotFoundError, OutletNotFoundError, DuplicateItemError.
    - InvalidLifecycleTransitionError, ArchivedItemError.
    - ItemDeletionBlockedError (carries a suggestion to discontinue).

Audit relevance:
    Logs item_created, item_lifecycle_changed, opening_balance_confirmed
    and item_deleted with the acting user bound in LogContext.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_kernel.domain.actor import Actor
from inventory_kernel.domain.clock import Clock, SystemClock, months_before
from inventory_kernel.domain.dtos import DeletionCheck, ItemInfo
from inventory_kernel.domain.lifecycle import ItemLifecycle, can_transition
from inventory_kernel.domain.movements import MovementCategory, ReasonCode
from inventory_kernel.domain.policy import LedgerPolicy
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
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.item import Item
from inventory_kernel.models.references import Outlet
from inventory_kernel.selectors.audit_selector import AuditSelector
from inventory_kernel.selectors.item_selector import ItemSelector, to_item_info
from inventory_kernel.selectors.movement_selector import MovementSelector
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.ledger_service import MovementLedger

logger = get_logger("services.item")

DISCONTINUE_SUGGESTION = "Discontinue the item instead of deleting it"


def _coerce_lifecycle(status: ItemLifecycle | str) -> ItemLifecycle:
    try:
        return ItemLifecycle(status)
    except ValueError:
        raise ValidationError(f"Unknown lifecycle status {status!r}") from None


class ItemService(BaseService[Item]):
    """
    Registry operations over items.

    Non-goals:
        - Does NOT write quantity columns (MovementLedger does).
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
        self._policy = policy or LedgerPolicy.with_defaults()
        self._ledger = ledger or MovementLedger(session, self._clock, self._policy)
        self._items = ItemSelector(session)
        self._movements = MovementSelector(session)
        self._audits = AuditSelector(session)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_item(
        self,
        *,
        outlet_id: UUID,
        name: str,
        category: str,
        actor: Actor,
        material: str | None = None,
        unit: str = "pcs",
        initial_quantity: int = 0,
        notes: str | None = None,
    ) -> ItemInfo:
        """
        Register a new item in DRAFT.

        A positive ``initial_quantity`` is recorded as an inflow with reason
        ``opening_balance`` in the same savepoint.

        Raises:
            ValidationError: blank name or category.
            InvalidQuantityError: negative initial quantity.
            OutletNotFoundError: unknown outlet.
            DuplicateItemError: same (outlet, name, category, material).
        """
        name = (name or "").strip()
        category = (category or "").strip()
        if not name:
            raise ValidationError("Item name is required")
        if not category:
            raise ValidationError("Item category is required")
        if isinstance(initial_quantity, bool) or not isinstance(initial_quantity, int):
            raise InvalidQuantityError(initial_quantity, "initial quantity must be an integer")
        if initial_quantity < 0:
            raise InvalidQuantityError(initial_quantity, "initial quantity cannot be negative")

        with LogContext.bind(outlet_id=outlet_id, actor_id=actor.actor_id):
            if self.session.get(Outlet, outlet_id) is None:
                raise OutletNotFoundError(str(outlet_id))
            if self._items.find(outlet_id, name, category, material) is not None:
                raise DuplicateItemError(str(outlet_id), name, category, material)

            with self.session.begin_nested():
                item = Item(
                    outlet_id=outlet_id,
                    name=name,
                    category=category,
                    material=material,
                    unit=unit or "pcs",
                    lifecycle_status=ItemLifecycle.DRAFT.value,
                    is_active=True,
                    opening_balance_confirmed=False,
                    created_by_id=actor.actor_id,
                )
                self.session.add(item)
                try:
                    self.session.flush()
                except IntegrityError:
                    raise DuplicateItemError(
                        str(outlet_id), name, category, material
                    ) from None

                logger.info(
                    "item_created",
                    extra={
                        "item_id": str(item.id),
                        "item_name": name,
                        "category": category,
                        "initial_quantity": initial_quantity,
                    },
                )

                if initial_quantity > 0:
                    self._ledger.record_movement(
                        item_id=item.id,
                        outlet_id=outlet_id,
                        category=MovementCategory.INFLOW,
                        quantity=initial_quantity,
                        actor=actor,
                        reason_code=ReasonCode.OPENING_BALANCE,
                        notes=notes or "Opening balance",
                    )

            return to_item_info(item)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_item(self, item_id: UUID) -> ItemInfo:
        info = self._items.get(item_id)
        if info is None:
            raise ItemNotFoundError(str(item_id))
        return info

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def activate_item(self, item_id: UUID, actor: Actor) -> ItemInfo:
        return self.change_lifecycle(item_id, ItemLifecycle.ACTIVE, actor)

    def discontinue_item(self, item_id: UUID, actor: Actor) -> ItemInfo:
        return self.change_lifecycle(item_id, ItemLifecycle.DISCONTINUED, actor)

    def archive_item(self, item_id: UUID, actor: Actor) -> ItemInfo:
        return self.change_lifecycle(item_id, ItemLifecycle.ARCHIVED, actor)

    def change_lifecycle(
        self,
        item_id: UUID,
        to_status: ItemLifecycle | str,
        actor: Actor,
    ) -> ItemInfo:
        """
        Move an item along the lifecycle state machine.

        Requesting the current status is a no-op, except on an archived
        item where every request is rejected.

        Raises:
            ValidationError: unknown status.
            InvalidLifecycleTransitionError, ArchivedItemError.
        """
        to_status = _coerce_lifecycle(to_status)

        with LogContext.bind(item_id=item_id, actor_id=actor.actor_id):
            item = self._lock_item(item_id)
            from_status = item.lifecycle

            if from_status == ItemLifecycle.ARCHIVED:
                raise ArchivedItemError(str(item.id), f"transition to {to_status.value}")
            if from_status == to_status:
                return to_item_info(item)
            if not can_transition(from_status, to_status):
                raise InvalidLifecycleTransitionError(
                    str(item.id), from_status.value, to_status.value, "transition not allowed"
                )

            if to_status == ItemLifecycle.DISCONTINUED and item.allocated_quantity != 0:
                raise InvalidLifecycleTransitionError(
                    str(item.id),
                    from_status.value,
                    to_status.value,
                    f"{item.allocated_quantity} unit(s) are still allocated",
                )

            if to_status == ItemLifecycle.ARCHIVED:
                self._check_archivable(item, from_status)

            with self.session.begin_nested():
                item.set_lifecycle(to_status)
                item.updated_by_id = actor.actor_id
                self.session.flush()

            logger.info(
                "item_lifecycle_changed",
                extra={
                    "from_status": from_status.value,
                    "to_status": to_status.value,
                },
            )
            return to_item_info(item)

    def _check_archivable(self, item: Item, from_status: ItemLifecycle) -> None:
        if item.total_quantity != 0:
            raise InvalidLifecycleTransitionError(
                str(item.id),
                from_status.value,
                ItemLifecycle.ARCHIVED.value,
                f"item still holds {item.total_quantity} unit(s)",
            )
        months = self._policy.archive_inactivity_months
        since = months_before(self._clock.now(), months)
        if self._movements.has_movement_since(item.id, since):
            raise InvalidLifecycleTransitionError(
                str(item.id),
                from_status.value,
                ItemLifecycle.ARCHIVED.value,
                f"movements were recorded in the last {months} month(s)",
            )

    def confirm_opening_balance(self, item_id: UUID, actor: Actor) -> ItemInfo:
        """Mark the setup phase over.  Idempotent."""
        with LogContext.bind(item_id=item_id, actor_id=actor.actor_id):
            item = self._lock_item(item_id)
            if item.is_archived:
                raise ArchivedItemError(str(item.id), "confirm opening balance")
            if item.opening_balance_confirmed:
                return to_item_info(item)

            with self.session.begin_nested():
                item.opening_balance_confirmed = True
                item.updated_by_id = actor.actor_id
                self.session.flush()

            logger.info("opening_balance_confirmed", extra={"trigger": "explicit"})
            return to_item_info(item)

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def can_delete_item(self, item_id: UUID) -> DeletionCheck:
        item = self.session.get(Item, item_id)
        if item is None:
            raise ItemNotFoundError(str(item_id))

        if item.is_archived:
            return DeletionCheck(False, "item is archived")
        if item.total_quantity != 0:
            return DeletionCheck(
                False,
                f"item still holds {item.total_quantity} unit(s)",
                DISCONTINUE_SUGGESTION,
            )
        if self._movements.has_holder_history(item.id):
            return DeletionCheck(
                False,
                "item has movements referencing subscriptions or events",
                DISCONTINUE_SUGGESTION,
            )
        if self._audits.is_item_audited(item.id):
            return DeletionCheck(
                False,
                "item appears in an inventory audit",
                DISCONTINUE_SUGGESTION,
            )
        return DeletionCheck(True)

    def delete_item(self, item_id: UUID, actor: Actor) -> None:
        """
        Hard-delete an item together with its manual-only movement history.

        Raises:
            ItemDeletionBlockedError: see ``can_delete_item``.
        """
        with LogContext.bind(item_id=item_id, actor_id=actor.actor_id):
            item = self._lock_item(item_id)
            check = self.can_delete_item(item.id)
            if not check.allowed:
                raise ItemDeletionBlockedError(str(item.id), check.reason, check.suggestion)

            with self.session.begin_nested():
                self.session.delete(item)
                self.session.flush()

            logger.info("item_deleted", extra={"item_name": item.name})

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
