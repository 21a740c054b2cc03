"""Read-only query selectors for the inventory kernel."""

from inventory_kernel.selectors.allocation_selector import AllocationSelector
from inventory_kernel.selectors.audit_selector import AuditSelector
from inventory_kernel.selectors.base import BaseSelector
from inventory_kernel.selectors.item_selector import ItemSelector
from inventory_kernel.selectors.movement_selector import MovementSelector

__all__ = [
    "AllocationSelector",
    "AuditSelector",
    "BaseSelector",
    "ItemSelector",
    "MovementSelector",
]
