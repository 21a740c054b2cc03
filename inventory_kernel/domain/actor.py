"""
Actors and role predicates (``inventory_kernel.domain.actor``).

Every write operation receives an ``Actor``: who is acting and with which
role.  Authentication is the caller's concern; the kernel only checks
capabilities.  The admin-gated rules are expressed as named predicates so
they can be tested without a database.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from inventory_kernel.domain.movements import MovementSubtype


class Role(str, Enum):
    """Actor roles known to the kernel."""

    OPERATOR = "operator"
    MANAGER = "manager"
    ADMIN = "admin"
    # Movements emitted by the kernel itself (audit auto-approval).
    SYSTEM = "system"


DEFAULT_ELEVATED_ROLES: frozenset[Role] = frozenset({Role.ADMIN, Role.SYSTEM})


@dataclass(frozen=True)
class Actor:
    """Identity and role of whoever requests an operation."""

    actor_id: UUID
    role: Role = Role.OPERATOR
    on_behalf_of: UUID | None = None

    @classmethod
    def system(cls, on_behalf_of: Actor) -> Actor:
        """System actor recording kernel-emitted movements for ``on_behalf_of``."""
        return cls(
            actor_id=on_behalf_of.actor_id,
            role=Role.SYSTEM,
            on_behalf_of=on_behalf_of.actor_id,
        )


def is_elevated(actor: Actor, elevated_roles: frozenset[Role] = DEFAULT_ELEVATED_ROLES) -> bool:
    return actor.role in elevated_roles


def is_kernel_emitted(actor: Actor) -> bool:
    """Movements the kernel records itself, such as audit auto-approval.
    Allowed whatever the configured elevated roles."""
    return actor.role == Role.SYSTEM


def adjustment_requires_elevated(
    subtype: MovementSubtype | None,
    opening_balance_confirmed: bool,
) -> bool:
    """Negative adjustments always, and any adjustment once the opening
    balance is confirmed."""
    return opening_balance_confirmed or subtype == MovementSubtype.DECREASE


def may_adjust(
    actor: Actor,
    subtype: MovementSubtype | None,
    opening_balance_confirmed: bool,
    elevated_roles: frozenset[Role] = DEFAULT_ELEVATED_ROLES,
) -> bool:
    if not adjustment_requires_elevated(subtype, opening_balance_confirmed):
        return True
    if is_kernel_emitted(actor):
        return True
    return is_elevated(actor, elevated_roles)


def may_approve_audit(
    actor: Actor,
    elevated_roles: frozenset[Role] = DEFAULT_ELEVATED_ROLES,
) -> bool:
    return is_elevated(actor, elevated_roles)
