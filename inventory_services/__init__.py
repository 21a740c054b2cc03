"""
inventory_services -- orchestration over the inventory kernel.

``InventoryService`` is the entrypoint for billing, event and operator
callers; it owns transaction boundaries.  ``HolderIntegration`` and
``ReconciliationService`` are exposed for callers that manage their own.
"""

from inventory_services.integration import AllocationLine, HolderIntegration
from inventory_services.inventory_service import InventoryService
from inventory_services.reconciliation_service import (
    ItemReconciliation,
    OutletReconciliation,
    ReconciliationService,
)

__all__ = [
    "AllocationLine",
    "HolderIntegration",
    "InventoryService",
    "ItemReconciliation",
    "OutletReconciliation",
    "ReconciliationService",
]
