"""
Typed Exception Hierarchy for the Asset Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (the request layer, batch tools, tests) must react to failures
precisely. A transfer rejected because one serial is already frozen by
another order needs a different response from one rejected because the
actor has no access to the source branch. Parsing message text is fragile,
so every failure here:

  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA (serials, order numbers, branch ids) so a
     presentation layer can render a localized message without querying
     the kernel again

Example:
    try:
        orchestrator.create_transfer_order(request, actor)
    except ConflictError as e:
        for violation in e.conflicts:
            render(violation.serial_number, violation.details["order_number"])

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    AssetKernelError (base)
    |
    +-- ValidationError
    |   +-- ConflictError
    |
    +-- ForbiddenError
    |
    +-- NotFoundError
    |   +-- OrderNotFoundError
    |   +-- OrderItemNotFoundError
    |   +-- NoPendingItemsError
    |   +-- AssetNotFoundError
    |   +-- BranchNotFoundError
    |
    +-- InvalidTransitionError
    |   +-- TransitionGuardError
    |
    +-- OrderStateError
    |
    +-- ImmutabilityViolationError
    |
    +-- StoreError
        +-- TransientStoreError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                   | When Raised
-----------------------|------------------------------------------------------
VALIDATION_FAILED      | One or more item/branch violations on a transfer
TRANSFER_CONFLICT      | A serial is already held by a PENDING/PARTIAL order
FORBIDDEN              | Source or destination branch outside actor's scope
ORDER_NOT_FOUND        | Order id unknown or not visible to the actor
ORDER_ITEM_NOT_FOUND   | Serial not part of the order, or already received
NO_PENDING_ITEMS       | Receive called on an order with nothing left
ASSET_NOT_FOUND        | Machine/SIM id unknown
BRANCH_NOT_FOUND       | Branch id unknown
INVALID_TRANSITION     | Lifecycle edge not in the transition table
TRANSITION_GUARD       | Edge exists but its guard is not satisfied
ORDER_STATE_INVALID    | Operation not allowed in the order's current status
IMMUTABILITY_VIOLATION | Update/delete attempted on an append-only record
STORE_ERROR            | Backing store failure (constraint, programming error)
STORE_UNAVAILABLE      | Retryable store failure (timeout, lost connection)
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from asset_kernel.domain.dtos import Violation


class AssetKernelError(Exception):
    """
    Base exception for all asset kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "ASSET_KERNEL_ERROR"

    def to_dict(self) -> dict[str, Any]:
        """Serializable view used by the error envelope."""
        return {"error": str(self), "code": self.code}


# Validation-related exceptions


class ValidationError(AssetKernelError):
    """
    One or more violations reported by the transfer validation engine.

    The full violation set is always carried; it is never truncated to
    the first failure.
    """

    code: str = "VALIDATION_FAILED"

    def __init__(self, violations: Iterable[Violation], message: str | None = None):
        self.violations: tuple[Violation, ...] = tuple(violations)
        summary = "; ".join(v.message for v in self.violations)
        super().__init__(message or f"Transfer validation failed: {summary}")

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["details"] = [v.to_dict() for v in self.violations]
        return data


class ConflictError(ValidationError):
    """
    At least one serial is already referenced by a PENDING or PARTIAL order.

    ``violations`` holds every violation found; ``conflicts`` narrows that
    to the duplicate-transfer ones.
    """

    code: str = "TRANSFER_CONFLICT"

    @property
    def conflicts(self) -> tuple[Violation, ...]:
        from asset_kernel.domain.dtos import ViolationCode

        return tuple(
            v for v in self.violations
            if v.code == ViolationCode.ASSET_IN_PENDING_TRANSFER
        )


class ForbiddenError(AssetKernelError):
    """Branch is outside the actor's authorized set."""

    code: str = "FORBIDDEN"

    def __init__(
        self,
        branch_id: Any,
        user_id: Any,
        reason: str = "Branch is outside the caller's authorized set",
        violations: Iterable[Violation] = (),
    ):
        self.branch_id = branch_id
        self.user_id = user_id
        self.reason = reason
        self.violations: tuple[Violation, ...] = tuple(violations)
        super().__init__(f"Forbidden for user {user_id} on branch {branch_id}: {reason}")

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["details"] = [v.to_dict() for v in self.violations]
        return data


# Lookup exceptions


class NotFoundError(AssetKernelError):
    """Base exception for unknown orders, items, assets and branches."""

    code: str = "NOT_FOUND"


class OrderNotFoundError(NotFoundError):
    """Transfer order does not exist or is not visible to the actor."""

    code: str = "ORDER_NOT_FOUND"

    def __init__(self, order_id: Any):
        self.order_id = order_id
        super().__init__(f"Transfer order not found: {order_id}")


class OrderItemNotFoundError(NotFoundError):
    """A serial is not part of the order, or was already received."""

    code: str = "ORDER_ITEM_NOT_FOUND"

    def __init__(
        self,
        order_id: Any,
        serial_numbers: Iterable[str],
        reason: str = "not_in_order",
    ):
        self.order_id = order_id
        self.serial_numbers = tuple(serial_numbers)
        self.reason = reason
        super().__init__(
            f"Items {list(self.serial_numbers)} on order {order_id}: {reason}"
        )


class NoPendingItemsError(NotFoundError):
    """Receive was requested but the order has nothing left to receive."""

    code: str = "NO_PENDING_ITEMS"

    def __init__(self, order_id: Any, order_number: str | None = None):
        self.order_id = order_id
        self.order_number = order_number
        super().__init__(f"No pending items on order {order_number or order_id}")


class AssetNotFoundError(NotFoundError):
    """Machine or SIM card not found."""

    code: str = "ASSET_NOT_FOUND"

    def __init__(self, asset_id: Any, asset_family: str = "MACHINE"):
        self.asset_id = asset_id
        self.asset_family = asset_family
        super().__init__(f"{asset_family} not found: {asset_id}")


class BranchNotFoundError(NotFoundError):
    """Branch id is unknown."""

    code: str = "BRANCH_NOT_FOUND"

    def __init__(self, branch_id: Any):
        self.branch_id = branch_id
        super().__init__(f"Branch not found: {branch_id}")


# Lifecycle exceptions


class InvalidTransitionError(AssetKernelError):
    """Requested status change is not an edge of the transition table."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        from_status: str,
        to_status: str,
        allowed: Iterable[str] = (),
        reason: str | None = None,
        asset_id: Any = None,
    ):
        self.from_status = from_status
        self.to_status = to_status
        self.allowed = tuple(allowed)
        self.asset_id = asset_id
        self.reason = reason or (
            f"Transition {from_status} -> {to_status} is not allowed; "
            f"allowed targets: {list(self.allowed)}"
        )
        super().__init__(self.reason)


class TransitionGuardError(InvalidTransitionError):
    """Edge exists, but the data required to take it is missing."""

    code: str = "TRANSITION_GUARD"

    def __init__(
        self,
        from_status: str,
        to_status: str,
        guard: str,
        reason: str,
        asset_id: Any = None,
    ):
        self.guard = guard
        super().__init__(
            from_status, to_status, allowed=(to_status,), reason=reason, asset_id=asset_id
        )


# Order-state exceptions


class OrderStateError(AssetKernelError):
    """Operation is not allowed in the order's current status."""

    code: str = "ORDER_STATE_INVALID"

    def __init__(self, order_id: Any, status: str, operation: str):
        self.order_id = order_id
        self.status = status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} transfer order {order_id} in status {status}"
        )


# Immutability exceptions


class ImmutabilityViolationError(AssetKernelError):
    """
    Attempted to modify or delete an append-only or terminal record.

    Movement and system log entries are immutable from creation; terminal
    transfer orders keep their final status.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Store exceptions


class StoreError(AssetKernelError):
    """The backing store rejected the unit of work; nothing was committed."""

    code: str = "STORE_ERROR"
    retryable: bool = False

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Store failure during {operation}: {detail}")


class TransientStoreError(StoreError):
    """Store unavailable or statement timed out. Safe to retry."""

    code: str = "STORE_UNAVAILABLE"
    retryable: bool = True
