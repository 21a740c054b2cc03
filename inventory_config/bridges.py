"""
Config -> Kernel Bridges.

Convert parsed configuration into the kernel's policy values.  These live
in inventory_config (the producer) because the kernel must NEVER import
inventory_config.

Usage:
    from inventory_config.bridges import build_audit_policy, build_ledger_policy

    config = get_active_config()
    ledger_policy = build_ledger_policy(config)
    audit_policy = build_audit_policy(config)
"""

from __future__ import annotations

from inventory_config.schema import InventoryConfig
from inventory_kernel.domain.actor import Role
from inventory_kernel.domain.movements import ReasonCode
from inventory_kernel.domain.policy import AuditPolicy, LedgerPolicy


def build_ledger_policy(config: InventoryConfig) -> LedgerPolicy:
    return LedgerPolicy(
        archive_inactivity_months=config.ledger.archive_inactivity_months,
        elevated_roles=frozenset(Role(role) for role in config.ledger.elevated_roles),
    )


def build_audit_policy(config: InventoryConfig) -> AuditPolicy:
    """
    Raises:
        ValueError: a reason code listed under the wrong direction, or
            under both.
    """
    return AuditPolicy(
        period_pattern=config.audit.period_pattern,
        positive_reason_codes=frozenset(
            ReasonCode(code) for code in config.audit.positive_reason_codes
        ),
        negative_reason_codes=frozenset(
            ReasonCode(code) for code in config.audit.negative_reason_codes
        ),
    )
