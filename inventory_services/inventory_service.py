"""
InventoryService -- caller-facing facade over the inventory kernel.

Thin glue layer that:
1. Wires every kernel service once, sharing one session, clock and policy
2. Runs each operation and commits on success
3. Rolls back and logs ``transaction_rolled_back`` on any failure

All rules live in the kernel.  This service owns the transaction boundary.

Usage:
    service = InventoryService(session, clock=clock)
    item = service.create_item(
        outlet_id=outlet_id, name="Dinner plate", category="plate",
        actor=actor, initial_quantity=100,
    )
    service.activate_item(item.id, actor)
    service.record_movement(
        item_id=item.id, outlet_id=outlet_id, category="outflow",
        quantity=30, actor=actor,
        reference=Reference.subscription(subscription_id),
    )
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, Sequence, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

from inventory_config.bridges import build_audit_policy, build_ledger_policy
from inventory_config.schema import InventoryConfig
from inventory_kernel.domain.actor import Actor
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import (
    AllocationInfo,
    AuditInfo,
    AuditLineInfo,
    AuditOutcome,
    DeletionCheck,
    ItemInfo,
    MovementInfo,
)
from inventory_kernel.domain.lifecycle import ItemLifecycle
from inventory_kernel.domain.movements import (
    MANUAL,
    MovementCategory,
    MovementSubtype,
    ReasonCode,
    Reference,
)
from inventory_kernel.domain.policy import AuditPolicy, LedgerPolicy
from inventory_kernel.logging_config import get_logger
from inventory_kernel.selectors.allocation_selector import AllocationSelector
from inventory_kernel.selectors.item_selector import ItemSelector
from inventory_kernel.selectors.movement_selector import MovementSelector
from inventory_kernel.services.audit_service import AuditWorkflow
from inventory_kernel.services.item_service import ItemService
from inventory_kernel.services.ledger_service import MovementLedger
from inventory_kernel.services.reference_service import ReferenceService
from inventory_services.integration import AllocationLine, HolderIntegration
from inventory_services.reconciliation_service import (
    ItemReconciliation,
    OutletReconciliation,
    ReconciliationService,
)

logger = get_logger("services.inventory")

T = TypeVar("T")


class InventoryService:
    """
    Public operations of the inventory ledger and allocation engine.

    Transaction boundary: every write method commits on success and rolls
    back on failure.  With ``auto_commit=False`` the caller owns the
    boundary and this service only flushes, like the kernel services.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        ledger_policy: LedgerPolicy | None = None,
        audit_policy: AuditPolicy | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._auto_commit = auto_commit
        ledger_policy = ledger_policy or LedgerPolicy.with_defaults()
        audit_policy = audit_policy or AuditPolicy.with_defaults()

        self.ledger = MovementLedger(session, self._clock, ledger_policy)
        self.items = ItemService(session, self._clock, ledger_policy, self.ledger)
        self.audits = AuditWorkflow(
            session, self._clock, audit_policy, ledger_policy, self.ledger
        )
        self.references = ReferenceService(
            session, self._clock, ledger_policy, self.ledger
        )
        self.integration = HolderIntegration(session, self.ledger)
        self.reconciliation = ReconciliationService(session)

        self._item_selector = ItemSelector(session)
        self._movement_selector = MovementSelector(session)
        self._allocation_selector = AllocationSelector(session)

    @classmethod
    def from_config(
        cls,
        session: Session,
        config: InventoryConfig,
        clock: Clock | None = None,
        auto_commit: bool = True,
    ) -> InventoryService:
        return cls(
            session,
            clock=clock,
            ledger_policy=build_ledger_policy(config),
            audit_policy=build_audit_policy(config),
            auto_commit=auto_commit,
        )

    def _run(self, operation: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            result = fn(*args, **kwargs)
            if self._auto_commit:
                self._session.commit()
            return result
        except Exception as exc:
            if self._auto_commit:
                self._session.rollback()
            logger.warning(
                "transaction_rolled_back",
                extra={
                    "operation": operation,
                    "error_code": getattr(exc, "code", type(exc).__name__),
                    "error": str(exc),
                },
            )
            raise

    # =========================================================================
    # Item registry
    # =========================================================================

    def create_item(
        self,
        *,
        outlet_id: UUID,
        name: str,
        category: str,
        actor: Actor,
        material: str | None = None,
        unit: str = "pcs",
        initial_quantity: int = 0,
        notes: str | None = None,
    ) -> ItemInfo:
        return self._run(
            "create_item",
            self.items.create_item,
            outlet_id=outlet_id,
            name=name,
            category=category,
            actor=actor,
            material=material,
            unit=unit,
            initial_quantity=initial_quantity,
            notes=notes,
        )

    def activate_item(self, item_id: UUID, actor: Actor) -> ItemInfo:
        return self._run("activate_item", self.items.activate_item, item_id, actor)

    def discontinue_item(self, item_id: UUID, actor: Actor) -> ItemInfo:
        return self._run("discontinue_item", self.items.discontinue_item, item_id, actor)

    def archive_item(self, item_id: UUID, actor: Actor) -> ItemInfo:
        return self._run("archive_item", self.items.archive_item, item_id, actor)

    def change_lifecycle(
        self, item_id: UUID, to_status: ItemLifecycle | str, actor: Actor
    ) -> ItemInfo:
        return self._run(
            "change_lifecycle", self.items.change_lifecycle, item_id, to_status, actor
        )

    def confirm_opening_balance(self, item_id: UUID, actor: Actor) -> ItemInfo:
        return self._run(
            "confirm_opening_balance", self.items.confirm_opening_balance, item_id, actor
        )

    def can_delete_item(self, item_id: UUID) -> DeletionCheck:
        return self.items.can_delete_item(item_id)

    def delete_item(self, item_id: UUID, actor: Actor) -> None:
        self._run("delete_item", self.items.delete_item, item_id, actor)

    def get_item(self, item_id: UUID) -> ItemInfo:
        return self.items.get_item(item_id)

    def list_items(
        self,
        outlet_id: UUID,
        lifecycles: frozenset[ItemLifecycle] | None = None,
    ) -> list[ItemInfo]:
        return self._item_selector.list_for_outlet(outlet_id, lifecycles)

    # =========================================================================
    # Movement ledger
    # =========================================================================

    def record_movement(
        self,
        *,
        item_id: UUID,
        outlet_id: UUID,
        category: MovementCategory | str,
        quantity: int,
        actor: Actor,
        subtype: MovementSubtype | str | None = None,
        reference: Reference = MANUAL,
        reason_code: ReasonCode | str | None = None,
        notes: str | None = None,
    ) -> MovementInfo:
        return self._run(
            "record_movement",
            self.ledger.record_movement,
            item_id=item_id,
            outlet_id=outlet_id,
            category=category,
            quantity=quantity,
            actor=actor,
            subtype=subtype,
            reference=reference,
            reason_code=reason_code,
            notes=notes,
        )

    def movement_history(self, item_id: UUID) -> list[MovementInfo]:
        return self._movement_selector.list_for_item(item_id)

    def movements_for_reference(self, reference: Reference) -> list[MovementInfo]:
        return self._movement_selector.list_for_reference(reference)

    # =========================================================================
    # Allocations and holder integration
    # =========================================================================

    def outstanding_for(self, item_id: UUID, reference: Reference) -> int:
        return self._allocation_selector.outstanding_for(item_id, reference)

    def get_allocation(self, item_id: UUID, reference: Reference) -> AllocationInfo | None:
        return self._allocation_selector.get(item_id, reference)

    def allocations_for(
        self, reference: Reference, active_only: bool = False
    ) -> list[AllocationInfo]:
        return self._allocation_selector.list_for_reference(reference, active_only)

    def allocate_many(
        self,
        reference: Reference,
        outlet_id: UUID,
        lines: Sequence[AllocationLine],
        actor: Actor,
        reason_code: ReasonCode | None = None,
    ) -> list[MovementInfo]:
        return self._run(
            "allocate_many",
            self.integration.allocate_many,
            reference,
            outlet_id,
            lines,
            actor,
            reason_code,
        )

    def return_all(
        self,
        reference: Reference,
        actor: Actor,
        subtype: MovementSubtype = MovementSubtype.RETURN_GOOD,
        reason_code: ReasonCode | None = None,
        notes: str | None = None,
    ) -> list[MovementInfo]:
        return self._run(
            "return_all",
            self.integration.return_all,
            reference,
            actor,
            subtype,
            reason_code,
            notes,
        )

    def assert_cancellable(self, reference: Reference) -> None:
        self.references.assert_cancellable(reference)

    def cancel_subscription(self, subscription_id: UUID, actor: Actor) -> int:
        return self._run(
            "cancel_subscription",
            self.references.cancel_subscription,
            subscription_id,
            actor,
        )

    def cancel_event(self, event_id: UUID, actor: Actor) -> list[MovementInfo]:
        return self._run("cancel_event", self.references.cancel_event, event_id, actor)

    # =========================================================================
    # Audit workflow
    # =========================================================================

    def create_audit(self, outlet_id: UUID, period: str, actor: Actor) -> AuditInfo:
        return self._run("create_audit", self.audits.create_audit, outlet_id, period, actor)

    def record_count(
        self, audit_id: UUID, item_id: UUID, physical_quantity: int, actor: Actor
    ) -> AuditLineInfo:
        return self._run(
            "record_count",
            self.audits.record_count,
            audit_id,
            item_id,
            physical_quantity,
            actor,
        )

    def record_counts(
        self, audit_id: UUID, counts: Mapping[UUID, int], actor: Actor
    ) -> list[AuditLineInfo]:
        return self._run(
            "record_counts", self.audits.record_counts, audit_id, counts, actor
        )

    def set_variance_reason(
        self,
        audit_id: UUID,
        item_id: UUID,
        reason_code: ReasonCode | str,
        actor: Actor,
        notes: str | None = None,
    ) -> AuditLineInfo:
        return self._run(
            "set_variance_reason",
            self.audits.set_variance_reason,
            audit_id,
            item_id,
            reason_code,
            actor,
            notes,
        )

    def begin_review(self, audit_id: UUID, actor: Actor) -> AuditInfo:
        return self._run("begin_review", self.audits.begin_review, audit_id, actor)

    def submit_audit(self, audit_id: UUID, actor: Actor) -> AuditOutcome:
        return self._run("submit_audit", self.audits.submit_audit, audit_id, actor)

    def approve_audit(
        self,
        audit_id: UUID,
        actor: Actor,
        approved: bool,
        rejection_reason: str | None = None,
    ) -> AuditOutcome:
        return self._run(
            "approve_audit",
            self.audits.approve_audit,
            audit_id,
            actor,
            approved,
            rejection_reason,
        )

    def cancel_audit(self, audit_id: UUID, actor: Actor) -> None:
        self._run("cancel_audit", self.audits.cancel_audit, audit_id, actor)

    def get_audit(self, audit_id: UUID) -> AuditInfo:
        return self.audits.get_audit(audit_id)

    def get_audit_lines(self, audit_id: UUID) -> list[AuditLineInfo]:
        return self.audits.get_lines(audit_id)

    def list_audits(self, outlet_id: UUID) -> list[AuditInfo]:
        return self.audits.list_audits(outlet_id)

    # =========================================================================
    # Reconciliation
    # =========================================================================

    def verify_item(self, item_id: UUID) -> ItemReconciliation:
        return self.reconciliation.verify_item(item_id)

    def verify_outlet(self, outlet_id: UUID) -> OutletReconciliation:
        return self.reconciliation.verify_outlet(outlet_id)
