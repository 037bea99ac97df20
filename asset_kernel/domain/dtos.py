"""
Domain DTOs -- pure data structures for the transfer and lifecycle kernel.

Responsibility:
    Frozen dataclasses that cross the service boundary: requests coming in,
    violations and validation results produced by the validator, and the
    read-side Info objects returned instead of ORM rows.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  No imports from
    db/, models/, services/ or selectors/.  Status and type fields are plain
    strings holding the enum values defined in models/.

Invariants enforced:
    - ValidationResult.is_valid is True iff there are no violations.
    - Violations are never dropped when results are merged.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID

if TYPE_CHECKING:
    from asset_kernel.domain.actor import ActorContext


class ViolationCode(str, Enum):
    """Machine-readable reason codes for transfer and payload validation."""

    # Item checks
    EMPTY_ITEMS = "EMPTY_ITEMS"
    DUPLICATE_SERIAL_IN_REQUEST = "DUPLICATE_SERIAL_IN_REQUEST"
    ASSET_NOT_FOUND = "ASSET_NOT_FOUND"
    ASSET_NOT_IN_SOURCE_BRANCH = "ASSET_NOT_IN_SOURCE_BRANCH"
    ASSET_STATUS_LOCKED = "ASSET_STATUS_LOCKED"
    ASSET_IN_PENDING_TRANSFER = "ASSET_IN_PENDING_TRANSFER"
    INVALID_TRANSFER_TYPE = "INVALID_TRANSFER_TYPE"
    INVALID_PAYLOAD = "INVALID_PAYLOAD"
    WAYBILL_REQUIRED = "WAYBILL_REQUIRED"
    REASON_REQUIRED = "REASON_REQUIRED"

    # Warning only; never blocks a transfer
    OPEN_MAINTENANCE_REQUEST = "OPEN_MAINTENANCE_REQUEST"

    # Branch checks
    SAME_BRANCH = "SAME_BRANCH"
    BRANCH_REQUIRED = "BRANCH_REQUIRED"
    BRANCH_NOT_FOUND = "BRANCH_NOT_FOUND"
    BRANCH_INACTIVE = "BRANCH_INACTIVE"
    DESTINATION_NOT_MAINTENANCE_CENTER = "DESTINATION_NOT_MAINTENANCE_CENTER"

    # Permission checks
    BRANCH_NOT_AUTHORIZED = "BRANCH_NOT_AUTHORIZED"


@dataclass(frozen=True)
class Violation:
    """
    A single validation failure.

    ``details`` carries whatever a presentation layer needs to render a
    precise message (actual branch id, current status, conflicting order
    number and branches).
    """

    code: ViolationCode
    message: str
    serial_number: str | None = None
    details: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "serial_number": self.serial_number,
            "details": {
                k: (str(v) if isinstance(v, UUID) else v)
                for k, v in self.details.items()
            },
        }


@dataclass(frozen=True)
class ValidationResult:
    """
    Result of validation.

    Guarantees:
        - violations and warnings are always tuples (never None).
        - bool(result) == result.is_valid.
        - Warnings never make a result invalid.
    """

    is_valid: bool
    violations: tuple[Violation, ...] = ()
    warnings: tuple[Violation, ...] = ()

    @classmethod
    def success(cls, warnings: Iterable[Violation] = ()) -> ValidationResult:
        return cls(is_valid=True, violations=(), warnings=tuple(warnings))

    @classmethod
    def failure(cls, *violations: Violation) -> ValidationResult:
        return cls(is_valid=False, violations=tuple(violations))

    @classmethod
    def from_violations(
        cls,
        violations: Iterable[Violation],
        warnings: Iterable[Violation] = (),
    ) -> ValidationResult:
        violations = tuple(violations)
        return cls(
            is_valid=not violations,
            violations=violations,
            warnings=tuple(warnings),
        )

    @classmethod
    def merge(cls, *results: ValidationResult) -> ValidationResult:
        """Concatenate violations and warnings of several results, in order."""
        return cls.from_violations(
            [v for r in results for v in r.violations],
            [w for r in results for w in r.warnings],
        )

    def has_code(self, code: ViolationCode) -> bool:
        return any(v.code == code for v in self.violations)

    def serials_with(self, code: ViolationCode) -> tuple[str, ...]:
        return tuple(
            v.serial_number for v in self.violations
            if v.code == code and v.serial_number is not None
        )

    def __bool__(self) -> bool:
        return self.is_valid


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TransferRequest:
    """Input for create_transfer_order."""

    from_branch_id: UUID | None
    to_branch_id: UUID | None
    transfer_type: str
    serial_numbers: tuple[str, ...]
    notes: str | None = None
    waybill_number: str | None = None


@dataclass(frozen=True)
class BulkTransferRequest:
    """
    Input for create_bulk_transfer (maintenance shipment under one waybill).

    from_branch_id defaults to the actor's home branch.
    """

    serial_numbers: tuple[str, ...]
    to_branch_id: UUID | None
    waybill_number: str
    from_branch_id: UUID | None = None
    transfer_type: str = "MAINTENANCE"
    notes: str | None = None


@dataclass(frozen=True)
class TransferFilter:
    """Filters for list_transfer_orders.  All fields optional."""

    branch_id: UUID | None = None
    status: str | None = None
    transfer_type: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    q: str | None = None
    limit: int | None = None
    offset: int = 0


@dataclass(frozen=True)
class TransitionContext:
    """
    Input for a lifecycle transition.

    payload keys understood by the lifecycle service: resolution, cost,
    parts, technician_id.  Everything in payload is copied into the log
    entry details.
    """

    actor: ActorContext
    notes: str | None = None
    payload: Mapping[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Read-side DTOs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TransferOrderItemInfo:
    id: UUID
    serial_number: str
    item_type: str
    is_received: bool
    received_at: datetime | None
    previous_status: str | None


@dataclass(frozen=True)
class TransferOrderInfo:
    """Immutable view of a transfer order with its items."""

    id: UUID
    order_number: str
    from_branch_id: UUID
    to_branch_id: UUID
    transfer_type: str
    status: str
    created_by_id: UUID | None
    created_by_name: str | None
    created_at: datetime | None
    received_by_id: UUID | None
    received_by_name: str | None
    received_at: datetime | None
    waybill_number: str | None
    notes: str | None
    rejection_reason: str | None
    items: tuple[TransferOrderItemInfo, ...] = ()

    @property
    def pending_serials(self) -> tuple[str, ...]:
        return tuple(i.serial_number for i in self.items if not i.is_received)

    @property
    def received_serials(self) -> tuple[str, ...]:
        return tuple(i.serial_number for i in self.items if i.is_received)

    def to_dict(self) -> dict[str, Any]:
        def _plain(value: Any) -> Any:
            if isinstance(value, UUID):
                return str(value)
            if isinstance(value, datetime):
                return value.isoformat()
            return value

        return {
            "id": str(self.id),
            "order_number": self.order_number,
            "from_branch_id": str(self.from_branch_id),
            "to_branch_id": str(self.to_branch_id),
            "transfer_type": self.transfer_type,
            "status": self.status,
            "created_by_id": _plain(self.created_by_id),
            "created_by_name": self.created_by_name,
            "created_at": _plain(self.created_at),
            "received_by_id": _plain(self.received_by_id),
            "received_by_name": self.received_by_name,
            "received_at": _plain(self.received_at),
            "waybill_number": self.waybill_number,
            "notes": self.notes,
            "rejection_reason": self.rejection_reason,
            "items": [
                {
                    "id": str(i.id),
                    "serial_number": i.serial_number,
                    "item_type": i.item_type,
                    "is_received": i.is_received,
                    "received_at": _plain(i.received_at),
                }
                for i in self.items
            ],
        }


@dataclass(frozen=True)
class PendingSerial:
    """A serial currently frozen by an open order."""

    serial_number: str
    item_type: str
    order_id: UUID
    order_number: str
    from_branch_id: UUID
    to_branch_id: UUID


@dataclass(frozen=True)
class TransferStatsSummary:
    """Order counts by status plus item receive progress."""

    total_orders: int
    by_status: Mapping[str, int]
    received_items: int
    pending_items: int


@dataclass(frozen=True)
class AssetInfo:
    """Snapshot of a machine or SIM after a mutation."""

    id: UUID
    serial_number: str
    asset_family: str
    branch_id: UUID
    status: str
    resolution: str | None = None
    technician_id: UUID | None = None
    origin_branch_id: UUID | None = None


@dataclass(frozen=True)
class MovementEntryInfo:
    id: UUID
    asset_family: str
    serial_number: str
    action: str
    from_branch_id: UUID | None
    to_branch_id: UUID | None
    performed_by_id: UUID | None
    performed_by_name: str | None
    order_id: UUID | None
    occurred_at: datetime
    details: Mapping[str, Any]


@dataclass(frozen=True)
class SystemEntryInfo:
    id: UUID
    entity_type: str
    entity_id: str
    action: str
    actor_id: UUID | None
    actor_name: str | None
    branch_id: UUID | None
    occurred_at: datetime
    details: Mapping[str, Any]
