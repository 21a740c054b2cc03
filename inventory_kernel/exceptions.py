"""
Typed Exception Hierarchy for the Inventory Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every rejected stock operation must tell the caller exactly *why* it was
rejected, so that operators can choose between correcting the request and
escalating to an adjustment or an audit. Callers build user messages from
the exception type and its attributes, never by parsing message strings.

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        ledger.record_movement(...)
    except InsufficientStockError as e:
        show(f"{e.pool}: have {e.have}, need {e.need}")

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from InventoryKernelError:

    InventoryKernelError (base)
    |
    +-- ValidationError
    |   +-- InvalidQuantityError
    |   +-- MissingReasonError
    |   +-- MissingNotesError
    |   +-- InvalidMovementError
    |   +-- InvalidReasonCodeError
    |   +-- InvalidPeriodError
    |   +-- IncompleteAuditError
    |
    +-- LifecycleError
    |   +-- ArchivedItemError
    |   +-- ItemLifecycleGateError
    |   +-- InvalidLifecycleTransitionError
    |   +-- ItemDeletionBlockedError
    |   +-- InvalidAuditTransitionError
    |   +-- OutstandingAllocationsError
    |   +-- CancelledHolderError
    |
    +-- InsufficientStockError
    |
    +-- AuthorizationError
    |   +-- ElevatedRoleRequiredError
    |
    +-- InvalidReferenceError
    |   +-- ItemNotFoundError
    |   +-- OutletNotFoundError
    |   +-- SubscriptionNotFoundError
    |   +-- EventNotFoundError
    |   +-- AuditNotFoundError
    |   +-- AuditLineNotFoundError
    |   +-- OutletMismatchError
    |   +-- AllocationNotFoundError
    |   +-- OutstandingExceededError
    |
    +-- ConsistencyError
    |   +-- BalanceInvariantError
    |
    +-- DuplicateError
    |   +-- DuplicateItemError
    |   +-- DuplicateAuditError
    |   +-- AuditInFlightError
    |
    +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | INVALID_QUANTITY            | Quantity <= 0, or negative count
                | MISSING_REASON              | Reason code required but absent
                | MISSING_NOTES               | Notes required but absent
                | INVALID_MOVEMENT            | Category/subtype/reason/reference mismatch
                | INVALID_REASON_CODE         | Variance reason against variance direction
                | INVALID_PERIOD              | Audit period not YYYY-MM
                | INCOMPLETE_AUDIT            | Uncounted lines or unexplained variances
----------------|-----------------------------|-----------------------------------------
Lifecycle       | ARCHIVED_ITEM               | Any mutation of an archived item
                | LIFECYCLE_GATE              | Category not allowed in item's state
                | INVALID_LIFECYCLE_TRANSITION| Transition not in the state machine
                | ITEM_DELETION_BLOCKED       | Item has stock or reference history
                | INVALID_AUDIT_TRANSITION    | Wrong audit status for the operation
                | OUTSTANDING_ALLOCATIONS     | Reference cancelled with units out
                | CANCELLED_HOLDER            | Outflow to a cancelled subscription/event
----------------|-----------------------------|-----------------------------------------
Stock           | INSUFFICIENT_STOCK          | A pool would go negative
----------------|-----------------------------|-----------------------------------------
Authorization   | ELEVATED_ROLE_REQUIRED      | Admin-gated operation, ordinary actor
----------------|-----------------------------|-----------------------------------------
Reference       | ITEM_NOT_FOUND              | Item ID doesn't exist
                | OUTLET_NOT_FOUND            | Outlet ID doesn't exist / inactive
                | SUBSCRIPTION_NOT_FOUND      | Subscription ID doesn't exist
                | EVENT_NOT_FOUND             | Event ID doesn't exist
                | AUDIT_NOT_FOUND             | Audit ID doesn't exist
                | AUDIT_LINE_NOT_FOUND        | Item not part of the audit
                | OUTLET_MISMATCH             | Entity belongs to another outlet
                | ALLOCATION_NOT_FOUND        | No active allocation for the pair
                | OUTSTANDING_EXCEEDED        | Return/writeoff above outstanding
----------------|-----------------------------|-----------------------------------------
Consistency     | BALANCE_INVARIANT_VIOLATED  | Post-apply balance check failed (bug)
----------------|-----------------------------|-----------------------------------------
Duplicate       | DUPLICATE_ITEM              | Same name/category/material in outlet
                | DUPLICATE_AUDIT             | Audit exists for (outlet, period)
                | AUDIT_IN_FLIGHT             | Another audit is open for the outlet
----------------|-----------------------------|-----------------------------------------
Storage         | IMMUTABILITY_VIOLATION      | Ledger row update/delete attempted

===============================================================================
"""


class InventoryKernelError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses must have a `code` class attribute for
    machine-readable error identification.
    """

    code: str = "INVENTORY_KERNEL_ERROR"


# Validation


class ValidationError(InventoryKernelError):
    """Malformed input."""

    code: str = "VALIDATION_ERROR"


class InvalidQuantityError(ValidationError):
    """Quantity is not a positive integer."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: object, reason: str = "quantity must be > 0"):
        self.quantity = quantity
        self.reason = reason
        super().__init__(f"Invalid quantity {quantity!r}: {reason}")


class MissingReasonError(ValidationError):
    """A reason code is required for this operation."""

    code: str = "MISSING_REASON"

    def __init__(self, context: str):
        self.context = context
        super().__init__(f"A reason code is required for {context}")


class MissingNotesError(ValidationError):
    """Notes are required for this operation."""

    code: str = "MISSING_NOTES"

    def __init__(self, context: str):
        self.context = context
        super().__init__(f"Notes are required for {context}")


class InvalidMovementError(ValidationError):
    """Category, subtype, reason code and reference do not fit together."""

    code: str = "INVALID_MOVEMENT"

    def __init__(self, category: str, reason: str):
        self.category = category
        self.reason = reason
        super().__init__(f"Invalid {category} movement: {reason}")


class InvalidReasonCodeError(ValidationError):
    """Reason code does not fit the variance or movement it explains."""

    code: str = "INVALID_REASON_CODE"

    def __init__(self, reason_code: str, reason: str):
        self.reason_code = reason_code
        self.reason = reason
        super().__init__(f"Reason code {reason_code!r} not accepted: {reason}")


class InvalidPeriodError(ValidationError):
    """Audit period is not a calendar month in YYYY-MM form."""

    code: str = "INVALID_PERIOD"

    def __init__(self, period: str):
        self.period = period
        super().__init__(f"Invalid audit period {period!r}: expected YYYY-MM")


class IncompleteAuditError(ValidationError):
    """Audit cannot be submitted yet."""

    code: str = "INCOMPLETE_AUDIT"

    def __init__(self, audit_id: str, reason: str):
        self.audit_id = audit_id
        self.reason = reason
        super().__init__(f"Audit {audit_id} cannot be submitted: {reason}")


# Lifecycle


class LifecycleError(InventoryKernelError):
    """Operation not permitted in the current item/audit state."""

    code: str = "LIFECYCLE_ERROR"


class ArchivedItemError(LifecycleError):
    """Archived items are read-only."""

    code: str = "ARCHIVED_ITEM"

    def __init__(self, item_id: str, operation: str):
        self.item_id = item_id
        self.operation = operation
        super().__init__(
            f"Item {item_id} is archived and read-only; cannot {operation}"
        )


class ItemLifecycleGateError(LifecycleError):
    """Movement category not accepted in the item's lifecycle state."""

    code: str = "LIFECYCLE_GATE"

    def __init__(self, item_id: str, lifecycle_status: str, category: str):
        self.item_id = item_id
        self.lifecycle_status = lifecycle_status
        self.category = category
        super().__init__(
            f"Item {item_id} is {lifecycle_status}: {category} movements are not allowed"
        )


class InvalidLifecycleTransitionError(LifecycleError):
    """Lifecycle transition is not allowed."""

    code: str = "INVALID_LIFECYCLE_TRANSITION"

    def __init__(self, item_id: str, from_status: str, to_status: str, reason: str):
        self.item_id = item_id
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        super().__init__(
            f"Cannot move item {item_id} from {from_status} to {to_status}: {reason}"
        )


class ItemDeletionBlockedError(LifecycleError):
    """Item cannot be hard-deleted."""

    code: str = "ITEM_DELETION_BLOCKED"

    def __init__(self, item_id: str, reason: str, suggestion: str | None = None):
        self.item_id = item_id
        self.reason = reason
        self.suggestion = suggestion
        message = f"Cannot delete item {item_id}: {reason}"
        if suggestion:
            message = f"{message}. {suggestion}"
        super().__init__(message)


class InvalidAuditTransitionError(LifecycleError):
    """Audit is not in a status that allows the requested operation."""

    code: str = "INVALID_AUDIT_TRANSITION"

    def __init__(self, audit_id: str, current_status: str, action: str):
        self.audit_id = audit_id
        self.current_status = current_status
        self.action = action
        super().__init__(
            f"Cannot {action} audit {audit_id} in status {current_status}"
        )


class OutstandingAllocationsError(LifecycleError):
    """Reference still holds unreturned units."""

    code: str = "OUTSTANDING_ALLOCATIONS"

    def __init__(self, reference_type: str, reference_id: str, outstanding: int):
        self.reference_type = reference_type
        self.reference_id = reference_id
        self.outstanding = outstanding
        super().__init__(
            f"Cannot cancel {reference_type} {reference_id}: "
            f"{outstanding} unit(s) still outstanding"
        )


class CancelledHolderError(LifecycleError):
    """Cancelled subscriptions and events cannot take new allocations."""

    code: str = "CANCELLED_HOLDER"

    def __init__(self, reference_type: str, reference_id: str):
        self.reference_type = reference_type
        self.reference_id = reference_id
        super().__init__(
            f"Cannot allocate to {reference_type} {reference_id}: it is cancelled"
        )


# Stock


class InsufficientStockError(InventoryKernelError):
    """A balance pool would go negative."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, pool: str, have: int, need: int, item_id: str | None = None):
        self.pool = pool
        self.have = have
        self.need = need
        self.item_id = item_id
        super().__init__(f"insufficient {pool} stock: have {have}, need {need}")


# Authorization


class AuthorizationError(InventoryKernelError):
    """Actor lacks the role required for the operation."""

    code: str = "AUTHORIZATION_ERROR"


class ElevatedRoleRequiredError(AuthorizationError):
    """Operation is restricted to elevated actors."""

    code: str = "ELEVATED_ROLE_REQUIRED"

    def __init__(self, actor_id: str, role: str, operation: str):
        self.actor_id = actor_id
        self.role = role
        self.operation = operation
        super().__init__(
            f"Actor {actor_id} with role {role} may not {operation}: elevated role required"
        )


# Reference


class InvalidReferenceError(InventoryKernelError):
    """Referenced entity is missing, foreign to the outlet, or not allocated."""

    code: str = "INVALID_REFERENCE"


class ItemNotFoundError(InvalidReferenceError):
    """Item with given ID was not found."""

    code: str = "ITEM_NOT_FOUND"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Item not found: {item_id}")


class OutletNotFoundError(InvalidReferenceError):
    """Outlet does not exist or is inactive."""

    code: str = "OUTLET_NOT_FOUND"

    def __init__(self, outlet_id: str):
        self.outlet_id = outlet_id
        super().__init__(f"Outlet not found: {outlet_id}")


class SubscriptionNotFoundError(InvalidReferenceError):
    """Subscription with given ID was not found."""

    code: str = "SUBSCRIPTION_NOT_FOUND"

    def __init__(self, subscription_id: str):
        self.subscription_id = subscription_id
        super().__init__(f"Subscription not found: {subscription_id}")


class EventNotFoundError(InvalidReferenceError):
    """Event with given ID was not found."""

    code: str = "EVENT_NOT_FOUND"

    def __init__(self, event_id: str):
        self.event_id = event_id
        super().__init__(f"Event not found: {event_id}")


class AuditNotFoundError(InvalidReferenceError):
    """Audit with given ID was not found."""

    code: str = "AUDIT_NOT_FOUND"

    def __init__(self, audit_id: str):
        self.audit_id = audit_id
        super().__init__(f"Audit not found: {audit_id}")


class AuditLineNotFoundError(InvalidReferenceError):
    """Item is not part of the audit."""

    code: str = "AUDIT_LINE_NOT_FOUND"

    def __init__(self, audit_id: str, item_id: str):
        self.audit_id = audit_id
        self.item_id = item_id
        super().__init__(f"Item {item_id} is not part of audit {audit_id}")


class OutletMismatchError(InvalidReferenceError):
    """Entity belongs to a different outlet."""

    code: str = "OUTLET_MISMATCH"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        expected_outlet_id: str,
        actual_outlet_id: str,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_outlet_id = expected_outlet_id
        self.actual_outlet_id = actual_outlet_id
        super().__init__(
            f"{entity_type} {entity_id} belongs to outlet {actual_outlet_id}, "
            f"not {expected_outlet_id}"
        )


class AllocationNotFoundError(InvalidReferenceError):
    """No active allocation exists for the (item, reference) pair."""

    code: str = "ALLOCATION_NOT_FOUND"

    def __init__(self, item_id: str, reference_type: str, reference_id: str):
        self.item_id = item_id
        self.reference_type = reference_type
        self.reference_id = reference_id
        super().__init__(
            f"No active allocation of item {item_id} to {reference_type} {reference_id}"
        )


class OutstandingExceededError(InvalidReferenceError):
    """Requested quantity exceeds what the reference still holds."""

    code: str = "OUTSTANDING_EXCEEDED"

    def __init__(
        self,
        item_id: str,
        reference_type: str,
        reference_id: str,
        outstanding: int,
        requested: int,
    ):
        self.item_id = item_id
        self.reference_type = reference_type
        self.reference_id = reference_id
        self.outstanding = outstanding
        self.requested = requested
        super().__init__(
            f"{reference_type} {reference_id} holds {outstanding} unit(s) of item "
            f"{item_id}, cannot resolve {requested}"
        )


# Consistency


class ConsistencyError(InventoryKernelError):
    """Post-condition check failed after apply. Indicates a bug."""

    code: str = "CONSISTENCY_ERROR"


class BalanceInvariantError(ConsistencyError):
    """total != available + allocated + damaged + in_repair, or a pool < 0."""

    code: str = "BALANCE_INVARIANT_VIOLATED"

    def __init__(self, reason: str, balances: dict[str, int], item_id: str | None = None):
        self.reason = reason
        self.balances = balances
        self.item_id = item_id
        super().__init__(f"Balance invariant violated ({reason}): {balances}")


# Duplicates


class DuplicateError(InventoryKernelError):
    """Conflicting record already exists."""

    code: str = "DUPLICATE_ERROR"


class DuplicateItemError(DuplicateError):
    """Item with the same name/category/material exists in the outlet."""

    code: str = "DUPLICATE_ITEM"

    def __init__(self, outlet_id: str, name: str, category: str, material: str | None):
        self.outlet_id = outlet_id
        self.name = name
        self.category = category
        self.material = material
        super().__init__(
            f"Item {name!r} ({category}, {material or 'no material'}) "
            f"already exists in outlet {outlet_id}"
        )


class DuplicateAuditError(DuplicateError):
    """Audit already exists for the (outlet, period)."""

    code: str = "DUPLICATE_AUDIT"

    def __init__(self, outlet_id: str, period: str):
        self.outlet_id = outlet_id
        self.period = period
        super().__init__(f"Audit for outlet {outlet_id} period {period} already exists")


class AuditInFlightError(DuplicateError):
    """Another audit for the outlet is still open."""

    code: str = "AUDIT_IN_FLIGHT"

    def __init__(self, outlet_id: str, audit_id: str, status: str):
        self.outlet_id = outlet_id
        self.audit_id = audit_id
        self.status = status
        super().__init__(
            f"Outlet {outlet_id} already has audit {audit_id} in status {status}"
        )


# Storage


class ImmutabilityViolationError(InventoryKernelError):
    """
    Attempted to modify or delete an immutable record.

    Movements are append-only, archived items are read-only and finalized
    audits are frozen.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
