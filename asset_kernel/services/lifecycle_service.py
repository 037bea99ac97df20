"""
AssetLifecycleService -- applies repair-workflow transitions to machines.

Responsibility:
    Moves a machine along the maintenance workflow defined in
    ``domain.lifecycle``.  Each transition changes the machine status,
    applies the target's side effects (approval quote, technician,
    resolution, request closure) and appends one movement entry and one
    system entry, all in a single unit of work.

Architecture position:
    Kernel > Services.  The transition table itself is pure data in the
    domain layer; this service is the only writer of repair statuses.

Invariants enforced:
    - Only edges of the workflow table are taken; same-state transitions
      are rejected.
    - An invalid transition performs no write.
    - Status change and log entries commit together or not at all.

Failure modes:
    - AssetNotFoundError: unknown machine id.
    - InvalidTransitionError: edge not in the table (carries allowed targets).
    - TransitionGuardError: edge exists but its guard is not satisfied.
    - OrderStateError: an IN_TRANSIT machine is still held by an open
      transfer order; receiving that order takes it in.
    - ValidationError (INVALID_PAYLOAD): malformed cost or technician id.
"""

from __future__ import annotations

import time
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from asset_kernel.db.engine import unit_of_work
from asset_kernel.domain.clock import Clock, SystemClock
from asset_kernel.domain.dtos import AssetInfo, TransitionContext, Violation, ViolationCode
from asset_kernel.domain.lifecycle import (
    KANBAN_STATES,
    MAINTENANCE_WORKFLOW,
    RESOLUTION_RECORDED,
    RESOLUTION_REQUIRED,
    RESOLUTIONS,
    Transition,
)
from asset_kernel.domain.lifecycle import is_valid_transition as _is_valid_transition
from asset_kernel.domain.notifications import EventPublisher, NotificationEvent, NotificationType
from asset_kernel.domain.settings import DEFAULT_SETTINGS, KernelSettings
from asset_kernel.exceptions import (
    AssetNotFoundError,
    InvalidTransitionError,
    OrderStateError,
    TransitionGuardError,
    ValidationError,
)
from asset_kernel.logging_config import LogContext, get_logger
from asset_kernel.models.asset import AssetFamily, Machine, MachineStatus
from asset_kernel.models.maintenance import (
    FINISHED_REQUEST_STATUSES,
    ApprovalStatus,
    MaintenanceApproval,
    MaintenanceRequest,
    MaintenanceRequestStatus,
)
from asset_kernel.models.movement_log import MovementAction
from asset_kernel.models.transfer_order import (
    OPEN_ORDER_STATUSES,
    TransferOrder,
    TransferOrderItem,
)
from asset_kernel.services.audit_log_service import AuditLogService
from asset_kernel.services.notification_outbox import NotificationOutbox
from asset_kernel.utils.serialization import enum_value

logger = get_logger("services.lifecycle")

_FINISHED_REQUEST_VALUES = tuple(s.value for s in FINISHED_REQUEST_STATUSES)
_OPEN_ORDER_VALUES = tuple(s.value for s in OPEN_ORDER_STATUSES)

_TECHNICIAN_STATES = frozenset(
    {MachineStatus.IN_PROGRESS.value, MachineStatus.UNDER_INSPECTION.value}
)


def _invalid_payload(field: str, value: Any, message: str) -> ValidationError:
    return ValidationError(
        [
            Violation(
                code=ViolationCode.INVALID_PAYLOAD,
                message=message,
                details={"field": field, "value": str(value)},
            )
        ],
        message=f"Invalid transition payload: {message}",
    )


def _as_decimal(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise _invalid_payload("cost", value, f"cost is not a decimal number: {value!r}") from exc


def _as_uuid(field: str, value: Any) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError as exc:
        raise _invalid_payload(field, value, f"{field} is not a UUID: {value!r}") from exc


class AssetLifecycleService:
    """
    Repair workflow for machines at the maintenance center.

    Usage:
        service = AssetLifecycleService(session, clock=clock, publisher=publisher)
        info = service.transition(
            machine_id, "READY_FOR_RETURN",
            TransitionContext(actor, payload={"resolution": "REPAIRED"}),
        )
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        publisher: EventPublisher | None = None,
        settings: KernelSettings | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._settings = settings or DEFAULT_SETTINGS
        self._auto_commit = auto_commit
        self._audit = AuditLogService(session, self._clock)
        self._outbox = NotificationOutbox(session, publisher)

    @staticmethod
    def is_valid_transition(from_status: str, to_status: str) -> bool:
        return _is_valid_transition(from_status, to_status)

    def transition(
        self,
        asset_id: UUID,
        target_status: str,
        context: TransitionContext,
    ) -> AssetInfo:
        """
        Apply one workflow edge to a machine.

        Postconditions:
            - On success the machine carries ``target_status``, side effects
              are applied and one ``transition`` movement entry plus one
              system entry exist for it.
            - On failure nothing was written.
        """
        target = enum_value(target_status)
        actor = context.actor
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=str(actor.user_id),
            operation="transition",
            asset_id=str(asset_id),
        ):
            logger.info("transition_started", extra={"target_status": target})
            t0 = time.monotonic()
            try:
                with unit_of_work(
                    self._session, operation="transition", auto_commit=self._auto_commit
                ):
                    info = self._apply(asset_id, target, context)
            except (
                InvalidTransitionError,
                AssetNotFoundError,
                OrderStateError,
                ValidationError,
            ) as exc:
                logger.warning(
                    "transition_rejected",
                    extra={
                        "target_status": target,
                        "error_code": exc.code,
                        "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                    },
                )
                raise
            except Exception:
                logger.error(
                    "transition_failed",
                    extra={"duration_ms": round((time.monotonic() - t0) * 1000, 2)},
                    exc_info=True,
                )
                raise

            logger.info(
                "transition_completed",
                extra={
                    "serial_number": info.serial_number,
                    "status": info.status,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
            return info

    def _apply(self, asset_id: UUID, target: str, context: TransitionContext) -> AssetInfo:
        machine = self._session.execute(
            select(Machine)
            .where(Machine.id == asset_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if machine is None:
            raise AssetNotFoundError(asset_id, AssetFamily.MACHINE.value)

        current = enum_value(machine.status)
        edge = MAINTENANCE_WORKFLOW.find_transition(current, target)
        if edge is None:
            raise InvalidTransitionError(
                current,
                target,
                allowed=MAINTENANCE_WORKFLOW.allowed_targets(current),
                asset_id=machine.id,
            )
        self._check_guard(edge, machine, context)
        if current == MachineStatus.IN_TRANSIT.value:
            self._check_not_held_by_order(machine)

        payload = dict(context.payload)
        request = self._linked_request(machine.serial_number)

        if target == MachineStatus.AWAITING_APPROVAL.value:
            self._upsert_approval(request, payload, context.notes)
        if target in _TECHNICIAN_STATES and payload.get("technician_id") is not None:
            machine.technician_id = _as_uuid("technician_id", payload["technician_id"])
        if target == MachineStatus.READY_FOR_RETURN.value:
            machine.resolution = enum_value(payload["resolution"])
        if target == MachineStatus.COMPLETED.value:
            machine.technician_id = None
            if request is not None:
                request.status = MaintenanceRequestStatus.CLOSED.value
                request.updated_by_id = context.actor.user_id
        machine.status = target
        machine.updated_by_id = context.actor.user_id

        details = {
            "from_status": current,
            "to_status": target,
            "workflow_action": edge.action,
            "notes": context.notes,
            "request_id": request.id if request is not None else None,
            "payload": payload,
        }
        self._audit.record_movement(
            asset_family=AssetFamily.MACHINE,
            asset_id=machine.id,
            serial_number=machine.serial_number,
            action=MovementAction.TRANSITION,
            actor=context.actor,
            from_branch_id=machine.branch_id,
            to_branch_id=machine.branch_id,
            details=details,
        )
        self._audit.record_system(
            entity_type="Machine",
            entity_id=machine.id,
            action=f"TRANSITION_{target}",
            actor=context.actor,
            branch_id=machine.branch_id,
            details=details,
        )
        self._session.flush()

        self._outbox.enqueue(
            NotificationEvent(
                type=NotificationType.MAINTENANCE_TRANSITION,
                title="Maintenance status changed",
                message=f"Machine {machine.serial_number} moved from {current} to {target}",
                branch_id=machine.origin_branch_id or machine.branch_id,
                data={
                    "machine_id": str(machine.id),
                    "serial_number": machine.serial_number,
                    "from_status": current,
                    "to_status": target,
                },
                link=self._settings.machine_link(machine.serial_number),
            )
        )

        return AssetInfo(
            id=machine.id,
            serial_number=machine.serial_number,
            asset_family=AssetFamily.MACHINE.value,
            branch_id=machine.branch_id,
            status=target,
            resolution=enum_value(machine.resolution),
            technician_id=machine.technician_id,
            origin_branch_id=machine.origin_branch_id,
        )

    def _check_guard(self, edge: Transition, machine: Machine, context: TransitionContext) -> None:
        if edge.guard is None:
            return
        if edge.guard == RESOLUTION_REQUIRED:
            resolution = enum_value(context.payload.get("resolution"))
            if resolution not in RESOLUTIONS:
                raise TransitionGuardError(
                    edge.from_state,
                    edge.to_state,
                    guard=edge.guard.name,
                    reason=f"resolution must be one of {list(RESOLUTIONS)}, got {resolution!r}",
                    asset_id=machine.id,
                )
        elif edge.guard == RESOLUTION_RECORDED:
            if enum_value(machine.resolution) not in RESOLUTIONS:
                raise TransitionGuardError(
                    edge.from_state,
                    edge.to_state,
                    guard=edge.guard.name,
                    reason="machine has no recorded resolution",
                    asset_id=machine.id,
                )

    def _check_not_held_by_order(self, machine: Machine) -> None:
        """A machine still on an open order is taken in by receiving that order."""
        order = self._session.execute(
            select(TransferOrder)
            .join(TransferOrderItem, TransferOrderItem.order_id == TransferOrder.id)
            .where(
                TransferOrderItem.serial_number == machine.serial_number,
                TransferOrderItem.item_type == AssetFamily.MACHINE.value,
                TransferOrderItem.is_received.is_(False),
                TransferOrder.status.in_(_OPEN_ORDER_VALUES),
            )
            .order_by(TransferOrder.created_at)
            .limit(1)
        ).scalar_one_or_none()
        if order is not None:
            raise OrderStateError(order.id, enum_value(order.status), "transition machines held by")

    def _linked_request(self, serial_number: str) -> MaintenanceRequest | None:
        """Most recent in-flight request for the serial."""
        return self._session.execute(
            select(MaintenanceRequest)
            .where(
                MaintenanceRequest.serial_number == serial_number,
                MaintenanceRequest.status.not_in(_FINISHED_REQUEST_VALUES),
            )
            .order_by(MaintenanceRequest.created_at.desc())
            .limit(1)
        ).scalar_one_or_none()

    def _upsert_approval(
        self,
        request: MaintenanceRequest | None,
        payload: dict[str, Any],
        notes: str | None,
    ) -> None:
        if request is None:
            logger.info("approval_skipped_no_request")
            return
        cost = _as_decimal(payload.get("cost"))
        parts = list(payload.get("parts") or [])
        approval = self._session.execute(
            select(MaintenanceApproval).where(MaintenanceApproval.request_id == request.id)
        ).scalar_one_or_none()
        if approval is None:
            approval = MaintenanceApproval(request_id=request.id)
            self._session.add(approval)
        approval.cost = cost
        approval.parts = parts
        approval.status = ApprovalStatus.PENDING.value
        approval.notes = notes
        payload["cost"] = cost

    def get_kanban_stats(self, branch_id: UUID | None = None) -> dict[str, int]:
        """Machine count per Kanban column; columns with no machines are 0."""
        stmt = (
            select(Machine.status, func.count(Machine.id))
            .where(Machine.status.in_(KANBAN_STATES))
            .group_by(Machine.status)
        )
        if branch_id is not None:
            stmt = stmt.where(Machine.branch_id == branch_id)
        counts = {state: 0 for state in KANBAN_STATES}
        for status, count in self._session.execute(stmt).all():
            counts[enum_value(status)] = count
        return counts
