"""
Module: asset_kernel.selectors.transfer_selector
Responsibility: Read-only projections over transfer orders: filtered
    listing, open (pending) orders and serials, single-order lookup and the
    status summary.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Branch scoping: unless the actor holds a global role, only orders whose
      source or destination is in the actor's authorized set are visible.
      An order outside that set behaves exactly like an unknown id.
    - No locking; listing never blocks writers.
"""

from __future__ import annotations

from collections import Counter
from uuid import UUID

from sqlalchemy import and_, func, or_, select
from sqlalchemy.sql import Select

from asset_kernel.domain.actor import ActorContext
from asset_kernel.domain.dtos import (
    PendingSerial,
    TransferFilter,
    TransferOrderInfo,
    TransferOrderItemInfo,
    TransferStatsSummary,
)
from asset_kernel.exceptions import OrderNotFoundError
from asset_kernel.models.transfer_order import (
    OPEN_ORDER_STATUSES,
    TransferOrder,
    TransferOrderItem,
)
from asset_kernel.selectors.base import BaseSelector
from asset_kernel.utils.serialization import enum_value

_OPEN_STATUS_VALUES = tuple(s.value for s in OPEN_ORDER_STATUSES)


def order_to_dto(order: TransferOrder) -> TransferOrderInfo:
    """Convert ORM TransferOrder (with items) to TransferOrderInfo."""
    return TransferOrderInfo(
        id=order.id,
        order_number=order.order_number,
        from_branch_id=order.from_branch_id,
        to_branch_id=order.to_branch_id,
        transfer_type=enum_value(order.transfer_type),
        status=enum_value(order.status),
        created_by_id=order.created_by_id,
        created_by_name=order.created_by_name,
        created_at=order.created_at,
        received_by_id=order.received_by_id,
        received_by_name=order.received_by_name,
        received_at=order.received_at,
        waybill_number=order.waybill_number,
        notes=order.notes,
        rejection_reason=order.rejection_reason,
        items=tuple(
            TransferOrderItemInfo(
                id=item.id,
                serial_number=item.serial_number,
                item_type=item.item_type,
                is_received=item.is_received,
                received_at=item.received_at,
                previous_status=item.previous_status,
            )
            for item in order.items
        ),
    )


class TransferOrderSelector(BaseSelector[TransferOrder]):
    """Read side for transfer orders."""

    def _scope(self, stmt: Select, actor: ActorContext, branch_id: UUID | None = None) -> Select:
        stmt = self._visible_to(
            stmt, actor, TransferOrder.from_branch_id, TransferOrder.to_branch_id
        )
        if branch_id is not None:
            stmt = stmt.where(
                or_(
                    TransferOrder.from_branch_id == branch_id,
                    TransferOrder.to_branch_id == branch_id,
                )
            )
        return stmt

    def list_transfer_orders(
        self,
        filters: TransferFilter,
        actor: ActorContext,
    ) -> list[TransferOrderInfo]:
        """Orders matching ``filters``, newest first."""
        stmt = self._scope(select(TransferOrder), actor, filters.branch_id)

        if filters.status:
            stmt = stmt.where(TransferOrder.status == enum_value(filters.status))
        if filters.transfer_type:
            stmt = stmt.where(TransferOrder.transfer_type == enum_value(filters.transfer_type))
        if filters.date_from is not None:
            stmt = stmt.where(TransferOrder.created_at >= filters.date_from)
        if filters.date_to is not None:
            stmt = stmt.where(TransferOrder.created_at <= filters.date_to)
        if filters.q:
            pattern = f"%{filters.q.strip()}%"
            item_match = (
                select(TransferOrderItem.id)
                .where(
                    and_(
                        TransferOrderItem.order_id == TransferOrder.id,
                        TransferOrderItem.serial_number.ilike(pattern),
                    )
                )
                .exists()
            )
            stmt = stmt.where(or_(TransferOrder.order_number.ilike(pattern), item_match))

        stmt = stmt.order_by(
            TransferOrder.created_at.desc(), TransferOrder.order_number.desc()
        )
        stmt = self._page(stmt, filters.limit, filters.offset)

        return [order_to_dto(o) for o in self.session.execute(stmt).scalars().all()]

    def get_pending_orders(
        self,
        actor: ActorContext,
        branch_id: UUID | None = None,
        transfer_type: str | None = None,
    ) -> list[TransferOrderInfo]:
        """PENDING and PARTIAL orders visible to the actor, newest first."""
        stmt = self._scope(
            select(TransferOrder).where(TransferOrder.status.in_(_OPEN_STATUS_VALUES)),
            actor,
            branch_id,
        )
        if transfer_type:
            stmt = stmt.where(TransferOrder.transfer_type == enum_value(transfer_type))
        stmt = stmt.order_by(TransferOrder.created_at.desc(), TransferOrder.order_number.desc())
        return [order_to_dto(o) for o in self.session.execute(stmt).scalars().all()]

    def get_pending_serials(
        self,
        actor: ActorContext,
        branch_id: UUID | None = None,
        transfer_type: str | None = None,
    ) -> list[PendingSerial]:
        """Not-yet-received items on open orders visible to the actor."""
        stmt = self._scope(
            select(TransferOrderItem, TransferOrder)
            .join(TransferOrder, TransferOrderItem.order_id == TransferOrder.id)
            .where(
                TransferOrder.status.in_(_OPEN_STATUS_VALUES),
                TransferOrderItem.is_received.is_(False),
            ),
            actor,
            branch_id,
        )
        if transfer_type:
            stmt = stmt.where(TransferOrder.transfer_type == enum_value(transfer_type))
        stmt = stmt.order_by(TransferOrderItem.serial_number)

        return [
            PendingSerial(
                serial_number=item.serial_number,
                item_type=item.item_type,
                order_id=order.id,
                order_number=order.order_number,
                from_branch_id=order.from_branch_id,
                to_branch_id=order.to_branch_id,
            )
            for item, order in self.session.execute(stmt).all()
        ]

    def get_transfer_order_by_id(
        self,
        order_id: UUID,
        actor: ActorContext,
    ) -> TransferOrderInfo:
        """
        Raises:
            OrderNotFoundError: unknown id, or order not visible to the actor.
        """
        stmt = self._scope(select(TransferOrder).where(TransferOrder.id == order_id), actor)
        order = self.session.execute(stmt).scalar_one_or_none()
        if order is None:
            raise OrderNotFoundError(order_id)
        return order_to_dto(order)

    def get_stats_summary(
        self,
        actor: ActorContext,
        branch_id: UUID | None = None,
        date_from=None,
        date_to=None,
    ) -> TransferStatsSummary:
        """Order counts by status; received items, and items still pending on open orders."""
        stmt = self._scope(
            select(TransferOrder.status, func.count(TransferOrder.id)).group_by(
                TransferOrder.status
            ),
            actor,
            branch_id,
        )
        if date_from is not None:
            stmt = stmt.where(TransferOrder.created_at >= date_from)
        if date_to is not None:
            stmt = stmt.where(TransferOrder.created_at <= date_to)
        by_status: Counter[str] = Counter()
        for status, count in self.session.execute(stmt).all():
            by_status[enum_value(status)] += count

        item_stmt = self._scope(
            select(
                TransferOrderItem.is_received,
                TransferOrder.status,
                func.count(TransferOrderItem.id),
            )
            .join(TransferOrder, TransferOrderItem.order_id == TransferOrder.id)
            .group_by(TransferOrderItem.is_received, TransferOrder.status),
            actor,
            branch_id,
        )
        if date_from is not None:
            item_stmt = item_stmt.where(TransferOrder.created_at >= date_from)
        if date_to is not None:
            item_stmt = item_stmt.where(TransferOrder.created_at <= date_to)

        received = pending = 0
        for is_received, status, count in self.session.execute(item_stmt).all():
            if is_received:
                received += count
            elif enum_value(status) in _OPEN_STATUS_VALUES:
                pending += count

        return TransferStatsSummary(
            total_orders=sum(by_status.values()),
            by_status=dict(by_status),
            received_items=received,
            pending_items=pending,
        )
