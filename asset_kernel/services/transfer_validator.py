"""
TransferValidator -- pre-write checks for transfer orders.

Responsibility:
    Decides whether a set of serials may move from one branch to another
    and reports every reason it may not.  The validator reads the registry,
    the branch table and the open orders; it never writes.

Architecture position:
    Kernel > Services.  Called by TransferOrderOrchestrator inside the
    writing transaction (lock=True) and usable on its own for dry runs.

Invariants enforced:
    - Violations are collected, never short-circuited on the first one.
      The exceptions are SAME_BRANCH and BRANCH_REQUIRED, which make the
      remaining branch checks meaningless.
    - When permission or branch checks fail, item checks are skipped.
    - A serial held by a PENDING or PARTIAL order (and not yet received
      there) is in a pending transfer, whatever branch the order is in.
      Status and pending checks run even when the serial sits outside the
      requested source branch.
    - With lock=True the asset rows are read with SELECT ... FOR UPDATE in
      serial order, so concurrent creators serialize on the same rows.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from asset_kernel.domain.actor import ActorContext
from asset_kernel.domain.dtos import (
    TransferRequest,
    ValidationResult,
    Violation,
    ViolationCode,
)
from asset_kernel.logging_config import get_logger
from asset_kernel.models.asset import AssetFamily, Machine, MachineStatus, SimCard, SimStatus
from asset_kernel.models.branch import Branch
from asset_kernel.models.maintenance import FINISHED_REQUEST_STATUSES, MaintenanceRequest
from asset_kernel.models.transfer_order import (
    OPEN_ORDER_STATUSES,
    TransferOrder,
    TransferOrderItem,
    TransferType,
)
from asset_kernel.utils.serialization import enum_value

logger = get_logger("services.transfer_validator")

_FAMILY_BY_TYPE: dict[str, AssetFamily] = {
    TransferType.MACHINE.value: AssetFamily.MACHINE,
    TransferType.MAINTENANCE.value: AssetFamily.MACHINE,
    TransferType.SEND_TO_CENTER.value: AssetFamily.MACHINE,
    TransferType.SIM.value: AssetFamily.SIM,
}

MAINTENANCE_TRANSFER_TYPES = frozenset(
    {TransferType.MAINTENANCE.value, TransferType.SEND_TO_CENTER.value}
)

_LOCKED_STATUSES: dict[AssetFamily, frozenset[str]] = {
    AssetFamily.MACHINE: frozenset(
        s.value for s in (
            MachineStatus.IN_TRANSIT,
            MachineStatus.SOLD,
            MachineStatus.ASSIGNED,
            MachineStatus.UNDER_MAINTENANCE,
        )
    ),
    AssetFamily.SIM: frozenset(
        s.value for s in (SimStatus.IN_TRANSIT, SimStatus.SOLD, SimStatus.ASSIGNED)
    ),
}

_OPEN_STATUS_VALUES = tuple(s.value for s in OPEN_ORDER_STATUSES)
_FINISHED_REQUEST_VALUES = tuple(s.value for s in FINISHED_REQUEST_STATUSES)


def asset_family_for(transfer_type: str) -> AssetFamily | None:
    """MACHINE / MAINTENANCE / SEND_TO_CENTER -> MACHINE, SIM -> SIM, else None."""
    return _FAMILY_BY_TYPE.get(enum_value(transfer_type))


def asset_model_for(family: AssetFamily) -> type[Machine] | type[SimCard]:
    return Machine if family == AssetFamily.MACHINE else SimCard


def normalize_serials(serial_numbers: Iterable[str]) -> list[str]:
    """Strip whitespace and drop blanks; order and duplicates are kept."""
    return [s.strip() for s in serial_numbers if s and s.strip()]


class TransferValidator:
    """
    Read-only validation of transfer requests.

    Usage:
        result = TransferValidator(session).validate_transfer_order(request, actor)
        if not result:
            for v in result.violations: ...
    """

    def __init__(self, session: Session):
        self._session = session

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def validate_items_for_transfer(
        self,
        serial_numbers: Sequence[str],
        transfer_type: str,
        from_branch_id: UUID | None,
        *,
        lock: bool = False,
    ) -> ValidationResult:
        """
        Check every serial against the registry and the open orders.

        Returns:
            ValidationResult with one violation per problem found, and
            OPEN_MAINTENANCE_REQUEST warnings for machines that still have
            an in-flight request on a non-maintenance transfer.
        """
        family = asset_family_for(transfer_type)
        if family is None:
            return ValidationResult.failure(
                Violation(
                    code=ViolationCode.INVALID_TRANSFER_TYPE,
                    message=f"Unknown transfer type: {enum_value(transfer_type)}",
                    details={"transfer_type": enum_value(transfer_type)},
                )
            )

        serials = normalize_serials(serial_numbers)
        if not serials:
            return ValidationResult.failure(
                Violation(
                    code=ViolationCode.EMPTY_ITEMS,
                    message="At least one serial number is required",
                )
            )

        violations: list[Violation] = []
        warnings: list[Violation] = []

        counts = Counter(serials)
        for serial in sorted(s for s, n in counts.items() if n > 1):
            violations.append(
                Violation(
                    code=ViolationCode.DUPLICATE_SERIAL_IN_REQUEST,
                    message=f"Serial {serial} appears {counts[serial]} times in the request",
                    serial_number=serial,
                    details={"count": counts[serial]},
                )
            )

        unique_serials = sorted(counts)
        model = asset_model_for(family)
        stmt = (
            select(model)
            .where(model.serial_number.in_(unique_serials))
            .order_by(model.serial_number)
        )
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        assets = {a.serial_number: a for a in self._session.execute(stmt).scalars().all()}

        pending = self._pending_orders_by_serial(unique_serials, family)
        locked_statuses = _LOCKED_STATUSES[family]

        for serial in unique_serials:
            asset = assets.get(serial)
            if asset is None:
                violations.append(
                    Violation(
                        code=ViolationCode.ASSET_NOT_FOUND,
                        message=f"{family.value} {serial} not found",
                        serial_number=serial,
                    )
                )
                continue

            if from_branch_id is not None and asset.branch_id != from_branch_id:
                violations.append(
                    Violation(
                        code=ViolationCode.ASSET_NOT_IN_SOURCE_BRANCH,
                        message=f"{serial} is not held by the source branch",
                        serial_number=serial,
                        details={
                            "actual_branch_id": asset.branch_id,
                            "expected_branch_id": from_branch_id,
                        },
                    )
                )

            status = enum_value(asset.status)
            if status in locked_statuses:
                violations.append(
                    Violation(
                        code=ViolationCode.ASSET_STATUS_LOCKED,
                        message=f"{serial} cannot be transferred while {status}",
                        serial_number=serial,
                        details={"current_status": status},
                    )
                )

            order = pending.get(serial)
            if order is not None:
                violations.append(
                    Violation(
                        code=ViolationCode.ASSET_IN_PENDING_TRANSFER,
                        message=f"{serial} is already on open order {order.order_number}",
                        serial_number=serial,
                        details={
                            "order_id": order.id,
                            "order_number": order.order_number,
                            "from_branch_id": order.from_branch_id,
                            "to_branch_id": order.to_branch_id,
                        },
                    )
                )

        if (
            family == AssetFamily.MACHINE
            and enum_value(transfer_type) not in MAINTENANCE_TRANSFER_TYPES
        ):
            for serial in self._serials_with_open_request(unique_serials):
                warnings.append(
                    Violation(
                        code=ViolationCode.OPEN_MAINTENANCE_REQUEST,
                        message=f"{serial} has an open maintenance request",
                        serial_number=serial,
                    )
                )

        return ValidationResult.from_violations(violations, warnings)

    def _pending_orders_by_serial(
        self,
        serials: Sequence[str],
        family: AssetFamily,
    ) -> dict[str, TransferOrder]:
        rows = self._session.execute(
            select(TransferOrderItem.serial_number, TransferOrder)
            .join(TransferOrder, TransferOrderItem.order_id == TransferOrder.id)
            .where(
                TransferOrderItem.serial_number.in_(serials),
                TransferOrderItem.item_type == family.value,
                TransferOrderItem.is_received.is_(False),
                TransferOrder.status.in_(_OPEN_STATUS_VALUES),
            )
            .order_by(TransferOrder.created_at)
        ).all()
        found: dict[str, TransferOrder] = {}
        for serial, order in rows:
            found.setdefault(serial, order)
        return found

    def _serials_with_open_request(self, serials: Sequence[str]) -> list[str]:
        rows = self._session.execute(
            select(MaintenanceRequest.serial_number)
            .where(
                MaintenanceRequest.serial_number.in_(serials),
                MaintenanceRequest.status.not_in(_FINISHED_REQUEST_VALUES),
            )
            .distinct()
            .order_by(MaintenanceRequest.serial_number)
        ).scalars().all()
        return list(rows)

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    def validate_branches(
        self,
        from_branch_id: UUID | None,
        to_branch_id: UUID | None,
        transfer_type: str,
    ) -> ValidationResult:
        """Existence, activity and role of source and destination."""
        missing = [
            name for name, value in (
                ("from_branch_id", from_branch_id),
                ("to_branch_id", to_branch_id),
            )
            if value is None
        ]
        if missing:
            return ValidationResult.failure(
                Violation(
                    code=ViolationCode.BRANCH_REQUIRED,
                    message=f"Missing branch: {', '.join(missing)}",
                    details={"missing": missing},
                )
            )

        if from_branch_id == to_branch_id:
            return ValidationResult.failure(
                Violation(
                    code=ViolationCode.SAME_BRANCH,
                    message="Source and destination branch are the same",
                    details={"branch_id": from_branch_id},
                )
            )

        violations: list[Violation] = []
        branches: dict[str, Branch | None] = {}
        for role, branch_id in (("source", from_branch_id), ("destination", to_branch_id)):
            branch = self._session.get(Branch, branch_id)
            branches[role] = branch
            if branch is None:
                violations.append(
                    Violation(
                        code=ViolationCode.BRANCH_NOT_FOUND,
                        message=f"{role.capitalize()} branch not found",
                        details={"branch_id": branch_id, "role": role},
                    )
                )
            elif not branch.is_active:
                violations.append(
                    Violation(
                        code=ViolationCode.BRANCH_INACTIVE,
                        message=f"{role.capitalize()} branch {branch.code} is inactive",
                        details={"branch_id": branch_id, "role": role},
                    )
                )

        destination = branches["destination"]
        if (
            destination is not None
            and enum_value(transfer_type) in MAINTENANCE_TRANSFER_TYPES
            and not destination.is_maintenance_center
        ):
            violations.append(
                Violation(
                    code=ViolationCode.DESTINATION_NOT_MAINTENANCE_CENTER,
                    message=f"Destination {destination.code} is not a maintenance center",
                    details={
                        "branch_id": to_branch_id,
                        "branch_type": enum_value(destination.branch_type),
                    },
                )
            )

        return ValidationResult.from_violations(violations)

    # ------------------------------------------------------------------
    # Permission
    # ------------------------------------------------------------------

    def validate_user_permission(
        self,
        actor: ActorContext,
        from_branch_id: UUID | None,
    ) -> ValidationResult:
        """Global roles pass; everyone else needs the source in their authorized set."""
        if actor.is_global or from_branch_id is None:
            return ValidationResult.success()
        if from_branch_id in actor.authorized_branch_ids:
            return ValidationResult.success()
        return ValidationResult.failure(
            Violation(
                code=ViolationCode.BRANCH_NOT_AUTHORIZED,
                message="Source branch is outside the caller's authorized branches",
                details={"branch_id": from_branch_id, "user_id": actor.user_id},
            )
        )

    # ------------------------------------------------------------------
    # Full request
    # ------------------------------------------------------------------

    def validate_transfer_order(
        self,
        request: TransferRequest,
        actor: ActorContext,
        *,
        lock: bool = False,
    ) -> ValidationResult:
        """Permission and branch checks, then item checks if those passed."""
        header = ValidationResult.merge(
            self.validate_user_permission(actor, request.from_branch_id),
            self.validate_branches(
                request.from_branch_id, request.to_branch_id, request.transfer_type
            ),
        )
        if asset_family_for(request.transfer_type) is None:
            header = ValidationResult.merge(
                header,
                ValidationResult.failure(
                    Violation(
                        code=ViolationCode.INVALID_TRANSFER_TYPE,
                        message=f"Unknown transfer type: {enum_value(request.transfer_type)}",
                        details={"transfer_type": enum_value(request.transfer_type)},
                    )
                ),
            )

        if not header.is_valid:
            logger.info(
                "transfer_validation_failed",
                extra={
                    "stage": "header",
                    "codes": sorted({v.code.value for v in header.violations}),
                },
            )
            return header

        items = self.validate_items_for_transfer(
            request.serial_numbers,
            request.transfer_type,
            request.from_branch_id,
            lock=lock,
        )
        result = ValidationResult.merge(header, items)
        if not result.is_valid:
            logger.info(
                "transfer_validation_failed",
                extra={
                    "stage": "items",
                    "codes": sorted({v.code.value for v in result.violations}),
                    "serial_count": len(request.serial_numbers),
                },
            )
        return result
