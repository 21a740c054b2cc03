"""Pure domain core: vocabulary, state machines, balance projector. No I/O."""

from inventory_kernel.domain.actor import Actor, Role
from inventory_kernel.domain.audit import AuditLineStatus, AuditStatus
from inventory_kernel.domain.balances import ItemBalances, MovementFacts, apply_movement, replay
from inventory_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from inventory_kernel.domain.lifecycle import ItemLifecycle
from inventory_kernel.domain.movements import (
    MovementCategory,
    MovementSubtype,
    ReasonCode,
    Reference,
    ReferenceType,
)
from inventory_kernel.domain.policy import AuditPolicy, LedgerPolicy

__all__ = [
    "Actor",
    "Role",
    "AuditStatus",
    "AuditLineStatus",
    "ItemBalances",
    "MovementFacts",
    "apply_movement",
    "replay",
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "ItemLifecycle",
    "MovementCategory",
    "MovementSubtype",
    "ReasonCode",
    "Reference",
    "ReferenceType",
    "AuditPolicy",
    "LedgerPolicy",
]
