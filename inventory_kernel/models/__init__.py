"""ORM models for the inventory kernel."""

from inventory_kernel.models.allocation import Allocation
from inventory_kernel.models.audit import AuditLine, InventoryAudit
from inventory_kernel.models.item import Item
from inventory_kernel.models.movement import Movement
from inventory_kernel.models.references import (
    Event,
    EventStatus,
    Outlet,
    Subscription,
    SubscriptionStatus,
)


def import_all_models() -> None:
    """Make sure every mapped table is registered on Base.metadata."""
    import inventory_kernel.services.sequence_service  # noqa: F401


__all__ = [
    "Allocation",
    "AuditLine",
    "InventoryAudit",
    "Item",
    "Movement",
    "Event",
    "EventStatus",
    "Outlet",
    "Subscription",
    "SubscriptionStatus",
    "import_all_models",
]
