"""
Item lifecycle state machine (``inventory_kernel.domain.lifecycle``).

    draft --> active <--> discontinued
                 \\            /
                  +-> archived <-+

``archived`` is terminal and read-only.  Guards that need balances or
ledger history (allocated == 0, total == 0, inactivity window) live in
``ItemService``; this module only knows which edges exist and which
movement categories each state accepts.
"""

from enum import Enum

from inventory_kernel.domain.movements import MovementCategory


class ItemLifecycle(str, Enum):
    """Lifecycle status of an item."""

    DRAFT = "draft"
    ACTIVE = "active"
    DISCONTINUED = "discontinued"
    ARCHIVED = "archived"


LIFECYCLE_TRANSITIONS: dict[ItemLifecycle, frozenset[ItemLifecycle]] = {
    ItemLifecycle.DRAFT: frozenset({ItemLifecycle.ACTIVE}),
    ItemLifecycle.ACTIVE: frozenset({
        ItemLifecycle.DISCONTINUED,
        ItemLifecycle.ARCHIVED,
    }),
    ItemLifecycle.DISCONTINUED: frozenset({
        ItemLifecycle.ACTIVE,
        ItemLifecycle.ARCHIVED,
    }),
    ItemLifecycle.ARCHIVED: frozenset(),
}

TERMINAL_LIFECYCLES: frozenset[ItemLifecycle] = frozenset({ItemLifecycle.ARCHIVED})

# Statuses that keep the legacy is_active flag set, and that audits snapshot.
ACTIVE_FLAG_LIFECYCLES: frozenset[ItemLifecycle] = frozenset({
    ItemLifecycle.DRAFT,
    ItemLifecycle.ACTIVE,
})

_ALL_CATEGORIES = frozenset(MovementCategory)

ACCEPTED_CATEGORIES: dict[ItemLifecycle, frozenset[MovementCategory]] = {
    ItemLifecycle.DRAFT: _ALL_CATEGORIES - {MovementCategory.OUTFLOW},
    ItemLifecycle.ACTIVE: _ALL_CATEGORIES,
    ItemLifecycle.DISCONTINUED: frozenset({
        MovementCategory.RETURN,
        MovementCategory.WRITEOFF,
    }),
    ItemLifecycle.ARCHIVED: frozenset(),
}


def can_transition(from_status: ItemLifecycle, to_status: ItemLifecycle) -> bool:
    return to_status in LIFECYCLE_TRANSITIONS[from_status]


def accepts(status: ItemLifecycle, category: MovementCategory) -> bool:
    return category in ACCEPTED_CATEGORIES[status]


def is_active_flag(status: ItemLifecycle) -> bool:
    return status in ACTIVE_FLAG_LIFECYCLES
