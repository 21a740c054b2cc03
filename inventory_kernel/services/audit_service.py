"""
AuditWorkflow -- monthly physical-count reconciliation.

Responsibility:
    Snapshots an outlet's items, collects physical counts, derives
    variances, and turns them into corrective adjustment movements through
    the MovementLedger once the audit is approved (automatically when there
    are no shortages, by an elevated actor otherwise).

Architecture position:
    Kernel > Services -- imperative shell.

State machine (domain/audit.py):

    draft -> counting -> review -> approved
                                \\-> pending_approval -> approved | rejected

    Submitting from counting passes through review in the same savepoint.

Invariants enforced:
    - One audit per (outlet, period); one audit in flight per outlet.  The
      outlet row is locked while these are checked.
    - variance = physical - system, derived by AuditLine.record_count().
    - Submission requires every line counted and a reason code on every
      non-zero variance line.
    - Emitted movements are adjustments with a manual reference carrying
      the audit id and a note naming the period.
    - Approved and rejected audits are frozen (db/immutability.py).

Failure modes:
    - InvalidPeriodError, OutletNotFoundError, DuplicateAuditError,
      AuditInFlightError on creation.
    - AuditNotFoundError, AuditLineNotFoundError, InvalidAuditTransitionError.
    - IncompleteAuditError, MissingReasonError, InvalidReasonCodeError.
    - ElevatedRoleRequiredError on approval by a non-elevated actor.
    - Any MovementLedger error while emitting corrections; the whole
      submission or approval rolls back.

Audit relevance:
    Logs audit_created, audit_count_recorded, audit_submitted,
    audit_auto_approved, audit_approved, audit_rejected and audit_cancelled.
"""

from typing import Mapping
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_kernel.domain.actor import Actor, may_approve_audit
from inventory_kernel.domain.audit import (
    CANCELLABLE_AUDIT_STATUSES,
    COUNTABLE_AUDIT_STATUSES,
    AuditLineStatus,
    AuditStatus,
    VarianceSummary,
    audit_note,
    can_transition,
    is_valid_period,
    reason_fits_variance,
)
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import AuditInfo, AuditLineInfo, AuditOutcome, MovementInfo
from inventory_kernel.domain.lifecycle import ACTIVE_FLAG_LIFECYCLES
from inventory_kernel.domain.movements import (
    MovementCategory,
    MovementSubtype,
    ReasonCode,
    Reference,
)
from inventory_kernel.domain.policy import AuditPolicy, LedgerPolicy
from inventory_kernel.exceptions import (
    AuditInFlightError,
    AuditLineNotFoundError,
    AuditNotFoundError,
    DuplicateAuditError,
    ElevatedRoleRequiredError,
    IncompleteAuditError,
    InvalidAuditTransitionError,
    InvalidPeriodError,
    InvalidQuantityError,
    InvalidReasonCodeError,
    MissingReasonError,
    OutletNotFoundError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.audit import AuditLine, InventoryAudit
from inventory_kernel.models.item import Item
from inventory_kernel.models.references import Outlet
from inventory_kernel.selectors.audit_selector import (
    AuditSelector,
    to_audit_info,
    to_audit_line_info,
)
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.ledger_service import MovementLedger

logger = get_logger("services.audit")


class AuditWorkflow(BaseService[InventoryAudit]):
    """
    Drives one audit from snapshot to corrective movements.

    Non-goals:
        - Does NOT write balances directly; corrections go through the
          MovementLedger like any other movement.
        - Does NOT call ``session.commit()``.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: AuditPolicy | None = None,
        ledger_policy: LedgerPolicy | None = None,
        ledger: MovementLedger | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._policy = policy or AuditPolicy.with_defaults()
        self._ledger_policy = ledger_policy or LedgerPolicy.with_defaults()
        self._ledger = ledger or MovementLedger(session, self._clock, self._ledger_policy)
        self._audits = AuditSelector(session)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_audit(self, outlet_id: UUID, period: str, actor: Actor) -> AuditInfo:
        """
        Open the audit for ``period`` and snapshot every draft/active item's
        available quantity, one line per item in name order.  The audit is
        returned in ``counting``.
        """
        if not is_valid_period(period, self._policy.period_pattern):
            raise InvalidPeriodError(period)

        with LogContext.bind(outlet_id=outlet_id, actor_id=actor.actor_id):
            outlet = self.session.execute(
                select(Outlet).where(Outlet.id == outlet_id).with_for_update()
            ).scalar_one_or_none()
            if outlet is None:
                raise OutletNotFoundError(str(outlet_id))

            if self._audits.for_period(outlet_id, period) is not None:
                raise DuplicateAuditError(str(outlet_id), period)
            in_flight = self._audits.in_flight(outlet_id)
            if in_flight is not None:
                raise AuditInFlightError(
                    str(outlet_id), str(in_flight.id), in_flight.status.value
                )

            with self.session.begin_nested():
                audit = InventoryAudit(
                    outlet_id=outlet_id,
                    period=period,
                    status=AuditStatus.DRAFT.value,
                    created_by_id=actor.actor_id,
                )
                self.session.add(audit)
                try:
                    self.session.flush()
                except IntegrityError:
                    raise DuplicateAuditError(str(outlet_id), period) from None

                items = self.session.scalars(
                    select(Item)
                    .where(
                        Item.outlet_id == outlet_id,
                        Item.lifecycle_status.in_(
                            [status.value for status in ACTIVE_FLAG_LIFECYCLES]
                        ),
                    )
                    .order_by(Item.name, Item.id)
                ).all()
                for position, item in enumerate(items):
                    self.session.add(
                        AuditLine(
                            audit_id=audit.id,
                            item_id=item.id,
                            position=position,
                            item_name=item.name,
                            system_quantity=item.available_quantity,
                            status=AuditLineStatus.PENDING.value,
                            created_by_id=actor.actor_id,
                        )
                    )
                audit.items_total = len(items)
                self._transition(audit, AuditStatus.COUNTING, "start counting")
                self.session.flush()

            logger.info(
                "audit_created",
                extra={
                    "audit_id": str(audit.id),
                    "period": period,
                    "items_total": audit.items_total,
                },
            )
            return to_audit_info(audit)

    # ------------------------------------------------------------------
    # Counting
    # ------------------------------------------------------------------

    def record_count(
        self,
        audit_id: UUID,
        item_id: UUID,
        physical_quantity: int,
        actor: Actor,
    ) -> AuditLineInfo:
        """Enter or correct the physical count of one item."""
        with LogContext.bind(audit_id=audit_id, item_id=item_id, actor_id=actor.actor_id):
            audit = self._lock_audit(audit_id)
            self._require_countable(audit, "record count")
            with self.session.begin_nested():
                line = self._count(audit, item_id, physical_quantity, actor)
                self.session.flush()
            return to_audit_line_info(line)

    def record_counts(
        self,
        audit_id: UUID,
        counts: Mapping[UUID, int],
        actor: Actor,
    ) -> list[AuditLineInfo]:
        """Enter several counts at once; all or none are stored."""
        with LogContext.bind(audit_id=audit_id, actor_id=actor.actor_id):
            audit = self._lock_audit(audit_id)
            self._require_countable(audit, "record count")
            with self.session.begin_nested():
                lines = [
                    self._count(audit, item_id, physical, actor)
                    for item_id, physical in counts.items()
                ]
                self.session.flush()
            return [to_audit_line_info(line) for line in lines]

    def _count(
        self,
        audit: InventoryAudit,
        item_id: UUID,
        physical_quantity: int,
        actor: Actor,
    ) -> AuditLine:
        if (
            isinstance(physical_quantity, bool)
            or not isinstance(physical_quantity, int)
            or physical_quantity < 0
        ):
            raise InvalidQuantityError(
                physical_quantity, "physical count must be a non-negative integer"
            )

        line = self._line(audit, item_id)
        first_count = not line.is_counted
        line.record_count(physical_quantity, actor.actor_id, self._clock.now())
        line.updated_by_id = actor.actor_id

        # A recount can flip the variance direction
        if line.reason_code and not self._reason_fits(
            ReasonCode(line.reason_code), line.variance
        ):
            line.reason_code = None

        if first_count:
            audit.items_counted += 1
        audit.updated_by_id = actor.actor_id

        logger.info(
            "audit_count_recorded",
            extra={
                "audit_id": str(audit.id),
                "item_id": str(item_id),
                "system_quantity": line.system_quantity,
                "physical_quantity": physical_quantity,
                "variance": line.variance,
            },
        )
        return line

    def set_variance_reason(
        self,
        audit_id: UUID,
        item_id: UUID,
        reason_code: ReasonCode | str,
        actor: Actor,
        notes: str | None = None,
    ) -> AuditLineInfo:
        """
        Explain a counted line's variance.  The line becomes ``reviewed``.

        Raises:
            InvalidReasonCodeError: unknown code, or one whose direction
                does not match the variance.
        """
        try:
            reason = ReasonCode(reason_code)
        except ValueError:
            raise InvalidReasonCodeError(str(reason_code), "unknown reason code") from None

        with LogContext.bind(audit_id=audit_id, item_id=item_id, actor_id=actor.actor_id):
            audit = self._lock_audit(audit_id)
            self._require_countable(audit, "set variance reason")
            line = self._line(audit, item_id)
            if not line.is_counted:
                raise IncompleteAuditError(
                    str(audit.id), f"item {line.item_name} has not been counted"
                )
            if not self._reason_fits(reason, line.variance):
                direction = (
                    "surplus" if line.variance > 0
                    else "shortage" if line.variance < 0
                    else "audit"
                )
                raise InvalidReasonCodeError(
                    reason.value, f"not a {direction} reason for variance {line.variance}"
                )

            with self.session.begin_nested():
                line.reason_code = reason.value
                if notes is not None:
                    line.notes = notes
                line.status = AuditLineStatus.REVIEWED.value
                line.updated_by_id = actor.actor_id
                self.session.flush()
            return to_audit_line_info(line)

    def begin_review(self, audit_id: UUID, actor: Actor) -> AuditInfo:
        with LogContext.bind(audit_id=audit_id, actor_id=actor.actor_id):
            audit = self._lock_audit(audit_id)
            with self.session.begin_nested():
                self._transition(audit, AuditStatus.REVIEW, "begin review")
                audit.updated_by_id = actor.actor_id
                self.session.flush()
            logger.info("audit_review_started", extra={"audit_id": str(audit.id)})
            return to_audit_info(audit)

    # ------------------------------------------------------------------
    # Submission and approval
    # ------------------------------------------------------------------

    def submit_audit(self, audit_id: UUID, actor: Actor) -> AuditOutcome:
        """
        Close counting and compute the variance totals.

        Without shortages the audit approves itself and emits one positive
        adjustment per surplus line, recorded by the system on behalf of
        the submitter.  Otherwise it waits in ``pending_approval``.
        """
        with LogContext.bind(audit_id=audit_id, actor_id=actor.actor_id):
            audit = self._lock_audit(audit_id)
            status = AuditStatus(audit.status)
            if status not in COUNTABLE_AUDIT_STATUSES:
                raise InvalidAuditTransitionError(str(audit.id), status.value, "submit")

            if audit.items_counted != audit.items_total:
                raise IncompleteAuditError(
                    str(audit.id),
                    f"{audit.items_counted} of {audit.items_total} items counted",
                )
            lines = list(audit.lines)
            for line in lines:
                if line.variance and not line.reason_code:
                    raise MissingReasonError(
                        f"audit line {line.item_name} (variance {line.variance:+d})"
                    )

            summary = VarianceSummary.of(line.variance for line in lines)
            now = self._clock.now()

            with self.session.begin_nested():
                if status == AuditStatus.COUNTING:
                    self._transition(audit, AuditStatus.REVIEW, "submit")
                audit.variance_positive = summary.variance_positive
                audit.variance_negative = summary.variance_negative
                audit.submitted_by_id = actor.actor_id
                audit.submitted_at = now
                audit.updated_by_id = actor.actor_id

                movements: tuple[MovementInfo, ...] = ()
                if summary.auto_approves:
                    surplus_lines = [line for line in lines if line.variance > 0]
                    movements = self._emit(audit, surplus_lines, Actor.system(actor))
                    self._transition(audit, AuditStatus.APPROVED, "auto-approve")
                    audit.approved_by_id = actor.actor_id
                    audit.approved_at = now
                else:
                    self._transition(audit, AuditStatus.PENDING_APPROVAL, "submit")
                self.session.flush()

            logger.info(
                "audit_submitted",
                extra={
                    "audit_id": str(audit.id),
                    "period": audit.period,
                    "variance_positive": summary.variance_positive,
                    "variance_negative": summary.variance_negative,
                    "status": audit.status,
                },
            )
            if summary.auto_approves:
                logger.info(
                    "audit_auto_approved",
                    extra={"audit_id": str(audit.id), "movements": len(movements)},
                )
            return AuditOutcome(
                audit=to_audit_info(audit),
                movements=movements,
                auto_approved=summary.auto_approves,
            )

    def approve_audit(
        self,
        audit_id: UUID,
        actor: Actor,
        approved: bool,
        rejection_reason: str | None = None,
    ) -> AuditOutcome:
        """
        Decide an audit in ``pending_approval``.

        Approval emits one adjustment per non-zero variance line: surpluses
        as increases, shortages as decreases under their shortage reason
        code.  Rejection records the reason and emits nothing.
        """
        action = "approve" if approved else "reject"
        if not may_approve_audit(actor, self._ledger_policy.elevated_roles):
            raise ElevatedRoleRequiredError(
                str(actor.actor_id), actor.role.value, f"{action} audit"
            )

        with LogContext.bind(audit_id=audit_id, actor_id=actor.actor_id):
            audit = self._lock_audit(audit_id)
            if AuditStatus(audit.status) != AuditStatus.PENDING_APPROVAL:
                raise InvalidAuditTransitionError(str(audit.id), audit.status, action)
            if not approved and not (rejection_reason or "").strip():
                raise MissingReasonError("audit rejection")

            now = self._clock.now()
            movements: tuple[MovementInfo, ...] = ()
            with self.session.begin_nested():
                if approved:
                    movements = self._emit(
                        audit, [line for line in audit.lines if line.variance], actor
                    )
                    self._transition(audit, AuditStatus.APPROVED, action)
                else:
                    self._transition(audit, AuditStatus.REJECTED, action)
                    audit.rejection_reason = rejection_reason.strip()
                audit.approved_by_id = actor.actor_id
                audit.approved_at = now
                audit.updated_by_id = actor.actor_id
                self.session.flush()

            logger.info(
                "audit_approved" if approved else "audit_rejected",
                extra={
                    "audit_id": str(audit.id),
                    "period": audit.period,
                    "movements": len(movements),
                },
            )
            return AuditOutcome(audit=to_audit_info(audit), movements=movements)

    def cancel_audit(self, audit_id: UUID, actor: Actor) -> None:
        """Discard an audit that has not been submitted yet."""
        with LogContext.bind(audit_id=audit_id, actor_id=actor.actor_id):
            audit = self._lock_audit(audit_id)
            status = AuditStatus(audit.status)
            if status not in CANCELLABLE_AUDIT_STATUSES:
                raise InvalidAuditTransitionError(str(audit.id), status.value, "cancel")
            period = audit.period
            with self.session.begin_nested():
                self.session.delete(audit)
                self.session.flush()
            logger.info(
                "audit_cancelled",
                extra={"audit_id": str(audit_id), "period": period, "status": status.value},
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_audit(self, audit_id: UUID) -> AuditInfo:
        info = self._audits.get(audit_id)
        if info is None:
            raise AuditNotFoundError(str(audit_id))
        return info

    def get_lines(self, audit_id: UUID) -> list[AuditLineInfo]:
        self.get_audit(audit_id)
        return self._audits.lines(audit_id)

    def list_audits(self, outlet_id: UUID) -> list[AuditInfo]:
        """Audits of the outlet, newest period first."""
        return self._audits.list_for_outlet(outlet_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _emit(
        self,
        audit: InventoryAudit,
        lines: list[AuditLine],
        actor: Actor,
    ) -> tuple[MovementInfo, ...]:
        """One adjustment movement per line, in line order."""
        emitted = []
        for line in lines:
            negative = line.variance < 0
            emitted.append(
                self._ledger.record_movement(
                    item_id=line.item_id,
                    outlet_id=audit.outlet_id,
                    category=MovementCategory.ADJUSTMENT,
                    subtype=(
                        MovementSubtype.DECREASE if negative else MovementSubtype.INCREASE
                    ),
                    quantity=abs(line.variance),
                    actor=actor,
                    reference=Reference.manual(audit.id),
                    reason_code=ReasonCode(line.reason_code),
                    notes=audit_note(audit.period, line.notes, negative=negative),
                )
            )
        return tuple(emitted)

    def _reason_fits(self, reason: ReasonCode, variance: int) -> bool:
        return reason_fits_variance(
            reason,
            variance,
            self._policy.positive_reason_codes,
            self._policy.negative_reason_codes,
        )

    def _transition(self, audit: InventoryAudit, to_status: AuditStatus, action: str) -> None:
        current = AuditStatus(audit.status)
        if not can_transition(current, to_status):
            raise InvalidAuditTransitionError(str(audit.id), current.value, action)
        audit.status = to_status.value

    def _require_countable(self, audit: InventoryAudit, action: str) -> None:
        status = AuditStatus(audit.status)
        if status not in COUNTABLE_AUDIT_STATUSES:
            raise InvalidAuditTransitionError(str(audit.id), status.value, action)

    def _lock_audit(self, audit_id: UUID) -> InventoryAudit:
        audit = self.session.execute(
            select(InventoryAudit)
            .where(InventoryAudit.id == audit_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if audit is None:
            raise AuditNotFoundError(str(audit_id))
        return audit

    def _line(self, audit: InventoryAudit, item_id: UUID) -> AuditLine:
        line = self.session.execute(
            select(AuditLine).where(
                AuditLine.audit_id == audit.id,
                AuditLine.item_id == item_id,
            )
        ).scalar_one_or_none()
        if line is None:
            raise AuditLineNotFoundError(str(audit.id), str(item_id))
        return line
