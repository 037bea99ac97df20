"""
TransferOrderOrchestrator -- create, receive, cancel and reject transfer orders.

Responsibility:
    Runs every mutating transfer operation as one unit of work: validation,
    asset freeze, order rows, maintenance request updates, movement and
    system log entries.  Either all of it commits or none of it does.  The
    notification for the operation is published only after the commit.

Architecture position:
    Kernel > Services.  Composes TransferValidator, SequenceService,
    AuditLogService and the notification outbox.  Read projections are
    delegated to TransferOrderSelector.

Invariants enforced:
    - A serial is on at most one PENDING/PARTIAL order: candidate asset rows
      are locked (FOR UPDATE, serial order) and re-validated inside the
      writing transaction.
    - Validation failure means zero writes.
    - Every asset status or branch change has a movement entry in the same
      transaction.
    - Order status is derived from item flags after each receive; CANCELLED
      and REJECTED are reachable only from PENDING.
    - Cancel and reject restore each frozen asset to its status captured at
      freeze time.

Failure modes:
    - ForbiddenError: source/destination outside the actor's scope.
    - ConflictError: a serial is held by another open order.
    - ValidationError: any other violation (full list attached).
    - OrderNotFoundError / OrderItemNotFoundError / NoPendingItemsError.
    - OrderStateError: operation not allowed in the order's status.
    - StoreError / TransientStoreError from the unit of work.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from typing import Any, TypeVar
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from asset_kernel.db.engine import unit_of_work
from asset_kernel.domain.actor import ActorContext
from asset_kernel.domain.clock import Clock, SystemClock
from asset_kernel.domain.dtos import (
    BulkTransferRequest,
    PendingSerial,
    TransferFilter,
    TransferOrderInfo,
    TransferRequest,
    TransferStatsSummary,
    ValidationResult,
    Violation,
    ViolationCode,
)
from asset_kernel.domain.lifecycle import allowed_targets, is_valid_transition
from asset_kernel.domain.notifications import EventPublisher, NotificationEvent, NotificationType
from asset_kernel.domain.order_status import derive_order_status
from asset_kernel.domain.settings import DEFAULT_SETTINGS, KernelSettings
from asset_kernel.exceptions import (
    AssetKernelError,
    AssetNotFoundError,
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NoPendingItemsError,
    OrderItemNotFoundError,
    OrderNotFoundError,
    OrderStateError,
    StoreError,
    ValidationError,
)
from asset_kernel.logging_config import LogContext, get_logger
from asset_kernel.models.asset import AssetFamily, Machine, MachineStatus, SimStatus
from asset_kernel.models.maintenance import MaintenanceRequest, MaintenanceRequestStatus
from asset_kernel.models.movement_log import MovementAction
from asset_kernel.models.transfer_order import (
    TransferOrder,
    TransferOrderItem,
    TransferOrderStatus,
    TransferType,
)
from asset_kernel.selectors.transfer_selector import TransferOrderSelector, order_to_dto
from asset_kernel.services.audit_log_service import AuditLogService
from asset_kernel.services.notification_outbox import NotificationOutbox
from asset_kernel.services.sequence_service import SequenceService
from asset_kernel.services.transfer_validator import (
    MAINTENANCE_TRANSFER_TYPES,
    TransferValidator,
    asset_family_for,
    asset_model_for,
    normalize_serials,
)
from asset_kernel.utils.serialization import enum_value

logger = get_logger("services.transfer_orchestrator")

T = TypeVar("T")

ORDER_ENTITY = "TransferOrder"


def _elapsed_ms(t0: float) -> float:
    return round((time.monotonic() - t0) * 1000, 2)


class TransferOrderOrchestrator:
    """
    Entry point for transfer order operations.

    With auto_commit=True (default) each call commits on success and rolls
    back on failure.  With auto_commit=False the call only flushes and the
    caller owns the transaction; notifications then wait for the caller's
    commit.
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

        self._validator = TransferValidator(session)
        self._sequence = SequenceService(session)
        self._audit = AuditLogService(session, self._clock)
        self._selector = TransferOrderSelector(session)
        self._outbox = NotificationOutbox(session, publisher)

    @property
    def validator(self) -> TransferValidator:
        return self._validator

    # ------------------------------------------------------------------
    # Execution wrapper
    # ------------------------------------------------------------------

    def _execute(
        self,
        operation: str,
        actor: ActorContext,
        work: Callable[[], T],
        *,
        order_id: UUID | None = None,
        log_fields: dict[str, Any] | None = None,
    ) -> T:
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=str(actor.user_id),
            operation=operation,
            order_id=str(order_id) if order_id else None,
        ):
            logger.info(f"{operation}_started", extra=log_fields or {})
            t0 = time.monotonic()
            try:
                with unit_of_work(
                    self._session, operation=operation, auto_commit=self._auto_commit
                ):
                    result = work()
            except StoreError as exc:
                logger.error(
                    f"{operation}_failed",
                    extra={
                        "duration_ms": _elapsed_ms(t0),
                        "error_code": exc.code,
                        "retryable": exc.retryable,
                    },
                    exc_info=True,
                )
                raise
            except AssetKernelError as exc:
                logger.warning(
                    f"{operation}_rejected",
                    extra={"duration_ms": _elapsed_ms(t0), "error_code": exc.code},
                )
                raise
            except Exception:
                logger.error(
                    f"{operation}_failed",
                    extra={"duration_ms": _elapsed_ms(t0)},
                    exc_info=True,
                )
                raise

            extra: dict[str, Any] = {"duration_ms": _elapsed_ms(t0)}
            if isinstance(result, TransferOrderInfo):
                extra.update(
                    order_id=str(result.id),
                    order_number=result.order_number,
                    status=result.status,
                    item_count=len(result.items),
                )
            logger.info(f"{operation}_completed", extra=extra)
            return result

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_transfer_order(
        self,
        request: TransferRequest,
        actor: ActorContext,
    ) -> TransferOrderInfo:
        """
        Validate, freeze the assets and create a PENDING order.

        Postconditions:
            - Every serial on the order is IN_TRANSIT, with its prior status
              kept on the order item.
            - One ``created`` movement entry per item plus one
              TRANSFER_ORDER_CREATED system entry.
            - A TRANSFER_ORDER notification for the destination branch is
              published after commit.
        """
        return self._execute(
            "create_transfer_order",
            actor,
            lambda: self._freeze_and_create(
                request,
                actor,
                prefix=self._settings.order_number_prefix,
                system_action="TRANSFER_ORDER_CREATED",
            ),
            log_fields={
                "transfer_type": enum_value(request.transfer_type),
                "from_branch_id": request.from_branch_id,
                "to_branch_id": request.to_branch_id,
                "serial_count": len(request.serial_numbers),
            },
        )

    def create_bulk_transfer(
        self,
        request: BulkTransferRequest,
        actor: ActorContext,
    ) -> TransferOrderInfo:
        """
        Ship machines to a maintenance center under one waybill.

        The source defaults to the actor's home branch and the order number
        uses the bulk prefix (``TO-MT-YYYYMMDD-NNN``).
        """
        from_branch_id = request.from_branch_id or actor.branch_id

        def work() -> TransferOrderInfo:
            violations: list[Violation] = []
            transfer_type = enum_value(request.transfer_type)
            if transfer_type not in MAINTENANCE_TRANSFER_TYPES:
                violations.append(
                    Violation(
                        code=ViolationCode.INVALID_TRANSFER_TYPE,
                        message=f"Bulk transfers must be MAINTENANCE or SEND_TO_CENTER, got {transfer_type}",
                        details={"transfer_type": transfer_type},
                    )
                )
            waybill = (request.waybill_number or "").strip()
            if not waybill:
                violations.append(
                    Violation(
                        code=ViolationCode.WAYBILL_REQUIRED,
                        message="A waybill number is required for bulk transfers",
                    )
                )
            if violations:
                raise ValidationError(violations)

            transfer = TransferRequest(
                from_branch_id=from_branch_id,
                to_branch_id=request.to_branch_id,
                transfer_type=transfer_type,
                serial_numbers=tuple(request.serial_numbers),
                notes=request.notes,
                waybill_number=waybill,
            )
            return self._freeze_and_create(
                transfer,
                actor,
                prefix=self._settings.bulk_order_number_prefix,
                system_action="BULK_TRANSFER_TO_MAINTENANCE",
            )

        return self._execute(
            "create_bulk_transfer",
            actor,
            work,
            log_fields={
                "transfer_type": enum_value(request.transfer_type),
                "from_branch_id": from_branch_id,
                "to_branch_id": request.to_branch_id,
                "serial_count": len(request.serial_numbers),
                "waybill_number": request.waybill_number,
            },
        )

    def _validation_error(
        self,
        result: ValidationResult,
        actor: ActorContext,
        branch_id: UUID | None,
    ) -> AssetKernelError:
        if result.has_code(ViolationCode.BRANCH_NOT_AUTHORIZED):
            return ForbiddenError(branch_id, actor.user_id, violations=result.violations)
        if result.has_code(ViolationCode.ASSET_IN_PENDING_TRANSFER):
            return ConflictError(result.violations)
        return ValidationError(result.violations)

    def _freeze_and_create(
        self,
        request: TransferRequest,
        actor: ActorContext,
        *,
        prefix: str,
        system_action: str,
    ) -> TransferOrderInfo:
        result = self._validator.validate_transfer_order(request, actor, lock=True)
        if not result.is_valid:
            raise self._validation_error(result, actor, request.from_branch_id)

        transfer_type = enum_value(request.transfer_type)
        family = asset_family_for(transfer_type)
        model = asset_model_for(family)
        serials = sorted(set(normalize_serials(request.serial_numbers)))

        # Rows are already locked by the validator; this reads the identity map.
        assets = self._session.execute(
            select(model).where(model.serial_number.in_(serials)).order_by(model.serial_number)
        ).scalars().all()

        now = self._clock.now()
        order_number = self._sequence.next_order_number(
            prefix, self._clock.business_date(), self._settings.order_number_padding
        )
        in_transit = (
            MachineStatus.IN_TRANSIT.value
            if family == AssetFamily.MACHINE
            else SimStatus.IN_TRANSIT.value
        )

        order = TransferOrder(
            order_number=order_number,
            from_branch_id=request.from_branch_id,
            to_branch_id=request.to_branch_id,
            transfer_type=transfer_type,
            status=TransferOrderStatus.PENDING.value,
            created_at=now,
            created_by_id=actor.user_id,
            created_by_name=actor.label,
            waybill_number=request.waybill_number,
            notes=request.notes,
        )
        for asset in assets:
            order.items.append(
                TransferOrderItem(
                    serial_number=asset.serial_number,
                    item_type=family.value,
                    is_received=False,
                    previous_status=enum_value(asset.status),
                )
            )
        self._session.add(order)
        self._session.flush()

        for asset, item in zip(assets, order.items):
            asset.status = in_transit
            asset.updated_by_id = actor.user_id
            self._audit.record_movement(
                asset_family=family,
                asset_id=asset.id,
                serial_number=asset.serial_number,
                action=MovementAction.CREATED,
                actor=actor,
                from_branch_id=order.from_branch_id,
                to_branch_id=order.to_branch_id,
                order_id=order.id,
                details={
                    "order_number": order_number,
                    "transfer_type": transfer_type,
                    "previous_status": item.previous_status,
                    "waybill_number": order.waybill_number,
                },
            )

        if family == AssetFamily.MACHINE:
            held = self._requests_for(
                serials,
                order.from_branch_id,
                exclude=(
                    MaintenanceRequestStatus.CLOSED.value,
                    MaintenanceRequestStatus.CANCELLED.value,
                ),
            )
            for maintenance_request in held:
                maintenance_request.status = MaintenanceRequestStatus.PENDING_TRANSFER.value

        self._audit.record_system(
            entity_type=ORDER_ENTITY,
            entity_id=order.id,
            action=system_action,
            actor=actor,
            branch_id=order.from_branch_id,
            details={
                "order_number": order_number,
                "transfer_type": transfer_type,
                "to_branch_id": order.to_branch_id,
                "serial_numbers": serials,
                "waybill_number": order.waybill_number,
            },
        )
        self._session.flush()

        logger.info(
            "transfer_order_created",
            extra={
                "order_id": str(order.id),
                "order_number": order_number,
                "item_count": len(order.items),
            },
        )

        self._outbox.enqueue(
            NotificationEvent(
                type=NotificationType.TRANSFER_ORDER,
                title="New transfer order",
                message=f"Transfer order {order_number} with {len(order.items)} item(s) is on its way",
                branch_id=order.to_branch_id,
                data={"order_id": str(order.id), "order_number": order_number},
                link=self._settings.receive_link(order.id),
            )
        )
        return order_to_dto(order)

    # ------------------------------------------------------------------
    # Receive
    # ------------------------------------------------------------------

    def receive_transfer_order(
        self,
        order_id: UUID,
        actor: ActorContext,
        received_serials: Sequence[str] | None = None,
        received_by_name: str | None = None,
    ) -> TransferOrderInfo:
        """
        Receive all pending items, or only ``received_serials``.

        Postconditions:
            - Received assets belong to the destination branch with the
              destination status of the transfer type.
            - Order status is RECEIVED when every item is received, else
              PARTIAL.
            - A TRANSFER_RECEIVED notification for the source branch is
              published after commit.
        """
        return self._execute(
            "receive_transfer_order",
            actor,
            lambda: self._receive(order_id, actor, received_serials, received_by_name),
            order_id=order_id,
            log_fields={
                "serial_count": None if received_serials is None else len(received_serials)
            },
        )

    def _receive(
        self,
        order_id: UUID,
        actor: ActorContext,
        received_serials: Sequence[str] | None,
        received_by_name: str | None,
    ) -> TransferOrderInfo:
        order = self._lock_visible_order(order_id, actor)
        if not actor.can_access_branch(order.to_branch_id):
            raise ForbiddenError(
                order.to_branch_id,
                actor.user_id,
                reason="Only the destination branch can receive this order",
            )
        status = enum_value(order.status)
        if status in (TransferOrderStatus.CANCELLED.value, TransferOrderStatus.REJECTED.value):
            raise OrderStateError(order.id, status, "receive")

        targets = self._items_to_receive(order, received_serials)

        transfer_type = enum_value(order.transfer_type)
        to_center = transfer_type in MAINTENANCE_TRANSFER_TYPES
        family = AssetFamily(targets[0].item_type)
        model = asset_model_for(family)
        serials = [item.serial_number for item in targets]
        assets = {
            a.serial_number: a
            for a in self._session.execute(
                select(model)
                .where(model.serial_number.in_(serials))
                .order_by(model.serial_number)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalars().all()
        }

        now = self._clock.now()
        for item in targets:
            asset = assets.get(item.serial_number)
            if asset is None:
                raise AssetNotFoundError(item.serial_number, family.value)
            from_status = enum_value(asset.status)
            new_status = self._destination_status(transfer_type, asset, from_status)

            asset.status = new_status
            asset.branch_id = order.to_branch_id
            asset.updated_by_id = actor.user_id
            if to_center and isinstance(asset, Machine):
                asset.origin_branch_id = order.from_branch_id

            item.is_received = True
            item.received_at = now

            self._audit.record_movement(
                asset_family=family,
                asset_id=asset.id,
                serial_number=asset.serial_number,
                action=MovementAction.RECEIVED,
                actor=actor,
                from_branch_id=order.from_branch_id,
                to_branch_id=order.to_branch_id,
                order_id=order.id,
                details={
                    "order_number": order.order_number,
                    "transfer_type": transfer_type,
                    "from_status": from_status,
                    "to_status": new_status,
                },
            )

        if family == AssetFamily.MACHINE:
            for maintenance_request in self._requests_for(
                serials,
                order.from_branch_id,
                only=(MaintenanceRequestStatus.PENDING_TRANSFER.value,),
            ):
                maintenance_request.status = MaintenanceRequestStatus.OPEN.value
                if to_center:
                    maintenance_request.serviced_by_branch_id = order.to_branch_id

        order.status = derive_order_status(i.is_received for i in order.items)
        order.received_by_id = actor.user_id
        order.received_by_name = received_by_name or actor.label
        order.received_at = now
        order.updated_by_id = actor.user_id

        self._audit.record_system(
            entity_type=ORDER_ENTITY,
            entity_id=order.id,
            action="TRANSFER_ORDER_RECEIVED",
            actor=actor,
            branch_id=order.to_branch_id,
            details={
                "order_number": order.order_number,
                "received_serials": serials,
                "status": order.status,
            },
        )
        self._session.flush()

        logger.info(
            "transfer_order_received",
            extra={
                "order_number": order.order_number,
                "received_count": len(targets),
                "status": order.status,
            },
        )

        self._outbox.enqueue(
            NotificationEvent(
                type=NotificationType.TRANSFER_RECEIVED,
                title="Transfer order received",
                message=(
                    f"{len(targets)} item(s) of transfer order {order.order_number} "
                    f"were received ({order.status})"
                ),
                branch_id=order.from_branch_id,
                data={
                    "order_id": str(order.id),
                    "order_number": order.order_number,
                    "status": order.status,
                },
                link=self._settings.order_link(order.id),
            )
        )
        return order_to_dto(order)

    def _items_to_receive(
        self,
        order: TransferOrder,
        received_serials: Sequence[str] | None,
    ) -> list[TransferOrderItem]:
        if received_serials is None:
            targets = [item for item in order.items if not item.is_received]
            if not targets:
                raise NoPendingItemsError(order.id, order.order_number)
            return targets

        requested = normalize_serials(received_serials)
        if not requested:
            raise ValidationError(
                [
                    Violation(
                        code=ViolationCode.EMPTY_ITEMS,
                        message="At least one serial number is required",
                    )
                ]
            )
        by_serial = {item.serial_number: item for item in order.items}
        unknown = sorted({s for s in requested if s not in by_serial})
        if unknown:
            raise OrderItemNotFoundError(order.id, unknown)
        already = sorted({s for s in requested if by_serial[s].is_received})
        if already:
            raise OrderItemNotFoundError(order.id, already, reason="already_received")
        return [by_serial[s] for s in sorted(set(requested))]

    def _destination_status(self, transfer_type: str, asset: Any, from_status: str) -> str:
        if transfer_type == TransferType.SIM.value:
            return SimStatus.ACTIVE.value
        if transfer_type == TransferType.MACHINE.value:
            return MachineStatus.STANDBY.value

        target = MachineStatus.RECEIVED_AT_CENTER.value
        if not is_valid_transition(from_status, target):
            raise InvalidTransitionError(
                from_status,
                target,
                allowed=allowed_targets(from_status),
                asset_id=asset.id,
            )
        return target

    # ------------------------------------------------------------------
    # Cancel / reject
    # ------------------------------------------------------------------

    def cancel_transfer_order(
        self,
        order_id: UUID,
        actor: ActorContext,
        reason: str | None = None,
    ) -> TransferOrderInfo:
        """Withdraw a PENDING order.  Creator or privileged roles only."""

        def work() -> TransferOrderInfo:
            order = self._lock_visible_order(order_id, actor)
            if not (actor.is_privileged or order.created_by_id == actor.user_id):
                raise ForbiddenError(
                    order.from_branch_id,
                    actor.user_id,
                    reason="Only the creator or a privileged role can cancel this order",
                )
            status = enum_value(order.status)
            if status != TransferOrderStatus.PENDING.value:
                raise OrderStateError(order.id, status, "cancel")

            self._release_items(order, actor, MovementAction.CANCELLED, reason)
            order.status = TransferOrderStatus.CANCELLED.value
            order.updated_by_id = actor.user_id

            self._audit.record_system(
                entity_type=ORDER_ENTITY,
                entity_id=order.id,
                action="TRANSFER_ORDER_CANCELLED",
                actor=actor,
                branch_id=order.from_branch_id,
                details={"order_number": order.order_number, "reason": reason},
            )
            self._session.flush()

            self._outbox.enqueue(
                NotificationEvent(
                    type=NotificationType.TRANSFER_CANCELLED,
                    title="Transfer order cancelled",
                    message=f"Transfer order {order.order_number} was cancelled by the sender",
                    branch_id=order.to_branch_id,
                    data={"order_id": str(order.id), "order_number": order.order_number},
                    link=self._settings.order_link(order.id),
                )
            )
            return order_to_dto(order)

        return self._execute("cancel_transfer_order", actor, work, order_id=order_id)

    def reject_transfer_order(
        self,
        order_id: UUID,
        actor: ActorContext,
        reason: str,
    ) -> TransferOrderInfo:
        """Refuse a PENDING order at the destination.  A reason is required."""

        def work() -> TransferOrderInfo:
            if not reason or not reason.strip():
                raise ValidationError(
                    [
                        Violation(
                            code=ViolationCode.REASON_REQUIRED,
                            message="A rejection reason is required",
                        )
                    ]
                )
            order = self._lock_visible_order(order_id, actor)
            if not actor.can_access_branch(order.to_branch_id):
                raise ForbiddenError(
                    order.to_branch_id,
                    actor.user_id,
                    reason="Only the destination branch can reject this order",
                )
            status = enum_value(order.status)
            if status != TransferOrderStatus.PENDING.value:
                raise OrderStateError(order.id, status, "reject")

            self._release_items(order, actor, MovementAction.REJECTED, reason)
            order.status = TransferOrderStatus.REJECTED.value
            order.rejection_reason = reason.strip()
            order.updated_by_id = actor.user_id

            self._audit.record_system(
                entity_type=ORDER_ENTITY,
                entity_id=order.id,
                action="TRANSFER_ORDER_REJECTED",
                actor=actor,
                branch_id=order.to_branch_id,
                details={"order_number": order.order_number, "reason": order.rejection_reason},
            )
            self._session.flush()

            self._outbox.enqueue(
                NotificationEvent(
                    type=NotificationType.TRANSFER_REJECTED,
                    title="Transfer order rejected",
                    message=f"Transfer order {order.order_number} was rejected: {order.rejection_reason}",
                    branch_id=order.from_branch_id,
                    data={
                        "order_id": str(order.id),
                        "order_number": order.order_number,
                        "reason": order.rejection_reason,
                    },
                    link=self._settings.order_link(order.id),
                )
            )
            return order_to_dto(order)

        return self._execute("reject_transfer_order", actor, work, order_id=order_id)

    def _release_items(
        self,
        order: TransferOrder,
        actor: ActorContext,
        action: MovementAction,
        reason: str | None,
    ) -> None:
        """Put every unreceived asset back to its status before the freeze."""
        pending = [item for item in order.items if not item.is_received]
        if not pending:
            return
        family = AssetFamily(pending[0].item_type)
        model = asset_model_for(family)
        serials = [item.serial_number for item in pending]
        assets = {
            a.serial_number: a
            for a in self._session.execute(
                select(model)
                .where(model.serial_number.in_(serials))
                .order_by(model.serial_number)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalars().all()
        }
        fallback = self._fallback_status(enum_value(order.transfer_type))

        for item in pending:
            asset = assets.get(item.serial_number)
            restored = None
            if asset is not None and enum_value(asset.status) == "IN_TRANSIT":
                restored = item.previous_status or fallback
                asset.status = restored
                asset.updated_by_id = actor.user_id
            self._audit.record_movement(
                asset_family=family,
                asset_id=asset.id if asset is not None else None,
                serial_number=item.serial_number,
                action=action,
                actor=actor,
                from_branch_id=order.from_branch_id,
                to_branch_id=order.to_branch_id,
                order_id=order.id,
                details={
                    "order_number": order.order_number,
                    "reason": reason,
                    "restored_status": restored,
                },
            )

        if family == AssetFamily.MACHINE:
            for maintenance_request in self._requests_for(
                serials,
                order.from_branch_id,
                only=(MaintenanceRequestStatus.PENDING_TRANSFER.value,),
            ):
                maintenance_request.status = MaintenanceRequestStatus.OPEN.value

    @staticmethod
    def _fallback_status(transfer_type: str) -> str:
        if transfer_type == TransferType.SIM.value:
            return SimStatus.ACTIVE.value
        if transfer_type in MAINTENANCE_TRANSFER_TYPES:
            return MachineStatus.DEFECTIVE.value
        return MachineStatus.NEW.value

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _lock_visible_order(self, order_id: UUID, actor: ActorContext) -> TransferOrder:
        order = self._session.execute(
            select(TransferOrder)
            .where(TransferOrder.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if order is None or not (
            actor.can_access_branch(order.from_branch_id)
            or actor.can_access_branch(order.to_branch_id)
        ):
            raise OrderNotFoundError(order_id)
        return order

    def _requests_for(
        self,
        serials: Sequence[str],
        branch_id: UUID,
        *,
        only: Sequence[str] | None = None,
        exclude: Sequence[str] | None = None,
    ) -> list[MaintenanceRequest]:
        stmt = select(MaintenanceRequest).where(
            MaintenanceRequest.serial_number.in_(serials),
            MaintenanceRequest.branch_id == branch_id,
        )
        if only is not None:
            stmt = stmt.where(MaintenanceRequest.status.in_(only))
        if exclude is not None:
            stmt = stmt.where(MaintenanceRequest.status.not_in(exclude))
        return list(self._session.execute(stmt).scalars().all())

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def list_transfer_orders(
        self,
        filters: TransferFilter,
        actor: ActorContext,
    ) -> list[TransferOrderInfo]:
        return self._selector.list_transfer_orders(filters, actor)

    def get_pending_orders(
        self,
        actor: ActorContext,
        branch_id: UUID | None = None,
        transfer_type: str | None = None,
    ) -> list[TransferOrderInfo]:
        return self._selector.get_pending_orders(actor, branch_id, transfer_type)

    def get_pending_serials(
        self,
        actor: ActorContext,
        branch_id: UUID | None = None,
        transfer_type: str | None = None,
    ) -> list[PendingSerial]:
        return self._selector.get_pending_serials(actor, branch_id, transfer_type)

    def get_transfer_order_by_id(
        self,
        order_id: UUID,
        actor: ActorContext,
    ) -> TransferOrderInfo:
        return self._selector.get_transfer_order_by_id(order_id, actor)

    def get_stats_summary(
        self,
        actor: ActorContext,
        branch_id: UUID | None = None,
        date_from=None,
        date_to=None,
    ) -> TransferStatsSummary:
        return self._selector.get_stats_summary(actor, branch_id, date_from, date_to)
