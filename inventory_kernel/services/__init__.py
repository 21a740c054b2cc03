"""Kernel services: the imperative shell around the domain core."""

from inventory_kernel.services.allocation_service import AllocationTracker
from inventory_kernel.services.audit_service import AuditWorkflow
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.item_service import ItemService
from inventory_kernel.services.ledger_service import MovementLedger
from inventory_kernel.services.reference_service import ReferenceService
from inventory_kernel.services.sequence_service import SequenceCounter, SequenceService

__all__ = [
    "AllocationTracker",
    "AuditWorkflow",
    "BaseService",
    "ItemService",
    "MovementLedger",
    "ReferenceService",
    "SequenceCounter",
    "SequenceService",
]
