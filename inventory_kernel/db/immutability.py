"""
ORM-Level Immutability Enforcement (Layer 1 of 2).

===============================================================================
WHY THIS EXISTS
===============================================================================

The movement ledger is the single source of truth for stock.  If a row in
it could be edited, every balance derived from it would silently change.

  Layer 1: THIS FILE (ORM event listeners)
    - Catches modifications through Python/SQLAlchemy code
    - Fires BEFORE the SQL is sent to the database

  Layer 2: db/sql/*.sql (PostgreSQL triggers, installed by db/triggers.py)
    - Catches raw SQL, bulk UPDATE statements, direct psql access

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity          | Rule
----------------|----------------------------------------------------------
Movement        | Never updated.  Deleted only together with its item.
Item            | Deletion only with total = 0 and no holder movements.
                | Quantity columns written only inside projection_write().
                | Archived items: no field may change.
InventoryAudit  | Approved/rejected audits: no update, no delete.

updated_at / updated_by_id are audit metadata and may always change.

===============================================================================
USAGE
===============================================================================

    from inventory_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

    with projection_write(session):     # MovementLedger only
        item.store_balances(new_balances)
        session.flush()
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import event, exists, inspect, select
from sqlalchemy.orm import Session, object_session
from sqlalchemy.orm.attributes import get_history

from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

PROJECTION_WRITE_KEY = "inventory_projection_write"

_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})


@contextmanager
def projection_write(session: Session) -> Generator[None, None, None]:
    """Allow item quantity columns to be flushed from within this block."""
    session.info[PROJECTION_WRITE_KEY] = session.info.get(PROJECTION_WRITE_KEY, 0) + 1
    try:
        yield
    finally:
        session.info[PROJECTION_WRITE_KEY] -= 1


def _in_projection_write(target) -> bool:
    session = object_session(target)
    return session is not None and session.info.get(PROJECTION_WRITE_KEY, 0) > 0


def _blocked(entity_type: str, entity_id, operation: str, reason: str) -> ImmutabilityViolationError:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            "reason": reason,
        },
    )
    return ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _previous_value(target, key: str):
    """Value the attribute had before the pending change (or its current value)."""
    hist = get_history(target, key)
    if hist.deleted:
        return hist.deleted[0]
    if hist.unchanged:
        return hist.unchanged[0]
    return getattr(target, key)


def _changed_fields(target) -> list[str]:
    """Column attributes with pending changes, audit metadata excluded."""
    state = inspect(target)
    return [
        column.key
        for column in state.mapper.column_attrs
        if column.key not in _AUDIT_FIELDS
        and state.attrs[column.key].history.has_changes()
    ]


# =============================================================================
# Session-level deletion guards
# =============================================================================


def _check_deletions_before_flush(session, flush_context, instances):
    """
    Guard item and movement deletions before the flush plan is fixed.

    Movements may only disappear as a cascade of their item's deletion, and
    the item may only be deleted when it holds no stock and no movement ever
    referenced a subscription or event.
    """
    from inventory_kernel.models.item import Item
    from inventory_kernel.models.movement import Movement

    deleted = list(session.deleted)
    deleted_item_ids = {obj.id for obj in deleted if isinstance(obj, Item)}

    for obj in deleted:
        if isinstance(obj, Movement) and obj.item_id not in deleted_item_ids:
            raise _blocked(
                "Movement", obj.id, "DELETE", "movements are append-only"
            )

    for obj in deleted:
        if not isinstance(obj, Item):
            continue
        if _previous_value(obj, "total_quantity") != 0:
            raise _blocked(
                "Item", obj.id, "DELETE", "item still holds stock"
            )
        with session.no_autoflush:
            has_holder_history = session.execute(
                select(
                    exists().where(
                        Movement.item_id == obj.id,
                        Movement.reference_type.in_(("subscription", "event")),
                    )
                )
            ).scalar()
        if has_holder_history:
            raise _blocked(
                "Item",
                obj.id,
                "DELETE",
                "item has movements referencing subscriptions or events",
            )


# =============================================================================
# Mapper-level update/delete guards
# =============================================================================


def _check_movement_immutability(mapper, connection, target):
    """Movements are never updated."""
    changed = _changed_fields(target)
    if changed:
        raise _blocked(
            "Movement",
            target.id,
            "UPDATE",
            f"cannot modify field '{changed[0]}' on a ledger movement",
        )


def _check_item_immutability(mapper, connection, target):
    """
    Archived items are frozen; quantity columns move only with the ledger.

    The archive transition itself (active/discontinued -> archived) is
    allowed because the *previous* status is not archived.
    """
    from inventory_kernel.models.item import QUANTITY_COLUMNS

    changed = _changed_fields(target)
    if not changed:
        return

    if _previous_value(target, "lifecycle_status") == "archived":
        raise _blocked(
            "Item",
            target.id,
            "UPDATE",
            f"cannot modify field '{changed[0]}' on an archived item",
        )

    quantity_changes = [name for name in changed if name in QUANTITY_COLUMNS]
    if quantity_changes and not _in_projection_write(target):
        raise _blocked(
            "Item",
            target.id,
            "UPDATE",
            f"'{quantity_changes[0]}' can only change through a ledger movement",
        )


def _check_audit_immutability(mapper, connection, target):
    """Approved and rejected audits are final."""
    if _previous_value(target, "status") in ("approved", "rejected"):
        changed = _changed_fields(target)
        if changed:
            raise _blocked(
                "InventoryAudit",
                target.id,
                "UPDATE",
                f"cannot modify field '{changed[0]}' on a finalized audit",
            )


def _check_audit_delete(mapper, connection, target):
    if _previous_value(target, "status") in ("approved", "rejected"):
        raise _blocked(
            "InventoryAudit", target.id, "DELETE", "finalized audits cannot be deleted"
        )


# =============================================================================
# Registration
# =============================================================================


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Safe to call more than once.
    """
    from inventory_kernel.models.audit import InventoryAudit
    from inventory_kernel.models.item import Item
    from inventory_kernel.models.movement import Movement

    listeners = (
        (Session, "before_flush", _check_deletions_before_flush),
        (Movement, "before_update", _check_movement_immutability),
        (Item, "before_update", _check_item_immutability),
        (InventoryAudit, "before_update", _check_audit_immutability),
        (InventoryAudit, "before_delete", _check_audit_delete),
    )
    for target, event_name, listener_fn in listeners:
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    from inventory_kernel.models.audit import InventoryAudit
    from inventory_kernel.models.item import Item
    from inventory_kernel.models.movement import Movement

    _safe_remove_listener(Session, "before_flush", _check_deletions_before_flush)
    _safe_remove_listener(Movement, "before_update", _check_movement_immutability)
    _safe_remove_listener(Item, "before_update", _check_item_immutability)
    _safe_remove_listener(InventoryAudit, "before_update", _check_audit_immutability)
    _safe_remove_listener(InventoryAudit, "before_delete", _check_audit_delete)
