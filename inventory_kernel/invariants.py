"""
Kernel Invariants Contract.

These invariants are structural law. They are hardcoded in the ledger
boundary, the ORM listeners and the database constraints. No configuration
value may override them.

This module exists solely to declare these invariants explicitly. The
enforcement is distributed across MovementLedger, the balance projector,
AllocationTracker, AuditWorkflow and db/immutability.py.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    BALANCE_EQUATION = "balance_equation"
    """total = available + allocated + damaged + in_repair. Lost units are
    removed from total and never added back. Checked by the projector after
    every movement and by a DB check constraint."""

    NO_NEGATIVE_STOCK = "no_negative_stock"
    """No pool ever goes below zero. Enforced by ledger validation and by
    DB check constraints."""

    APPEND_ONLY_LEDGER = "append_only_ledger"
    """Movements are never updated, and deleted only as part of a guarded
    item deletion. Enforced by ORM listeners and PostgreSQL triggers."""

    POSITIVE_QUANTITY = "positive_quantity"
    """Movement quantity is always > 0; direction is encoded by category
    and subtype."""

    DERIVED_OUTSTANDING = "derived_outstanding"
    """Outstanding allocation quantity is recomputed from the ledger on
    every read and never stored."""

    SEQUENCE_MONOTONICITY = "sequence_monotonicity"
    """Movement sequence numbers are strictly monotonic. Enforced by
    SequenceService with a locked counter row."""

    ONE_AUDIT_IN_FLIGHT = "one_audit_in_flight"
    """At most one audit per outlet is in counting, review or
    pending_approval at a time."""


ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)

# The kernel package may not import from these packages.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "inventory_services",
    "inventory_config",
)
