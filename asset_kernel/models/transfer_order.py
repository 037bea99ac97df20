"""
Module: asset_kernel.models.transfer_order
Responsibility: ORM persistence for transfer orders and their line items.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - order_number is unique (uq_transfer_order_number).
    - A serial appears at most once per order (uq_transfer_item_serial).
    - Order status is derived from item received flags (PENDING / PARTIAL /
      RECEIVED); CANCELLED and REJECTED are set explicitly and only from
      PENDING.
    - Terminal orders (RECEIVED, CANCELLED, REJECTED) keep their status and
      a received item is never un-received (db/immutability.py).

Failure modes:
    - IntegrityError on duplicate order_number or duplicate serial per order.

Audit relevance:
    previous_status captures each asset's status at freeze time, so cancel
    and reject restore it exactly.  Every item change is mirrored by a
    MovementLogEntry carrying the order id.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from asset_kernel.db.base import TrackedBase


class TransferType(str, Enum):
    """Kind of transfer.  Decides the asset family and destination status."""

    MACHINE = "MACHINE"
    SIM = "SIM"
    MAINTENANCE = "MAINTENANCE"
    SEND_TO_CENTER = "SEND_TO_CENTER"


class TransferOrderStatus(str, Enum):
    """Order status.

    Contract: PENDING -> {PARTIAL -> RECEIVED, RECEIVED, CANCELLED, REJECTED}.
    """

    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    RECEIVED = "RECEIVED"
    CANCELLED = "CANCELLED"
    REJECTED = "REJECTED"


TERMINAL_ORDER_STATUSES = frozenset(
    {
        TransferOrderStatus.RECEIVED,
        TransferOrderStatus.CANCELLED,
        TransferOrderStatus.REJECTED,
    }
)

OPEN_ORDER_STATUSES = frozenset(
    {TransferOrderStatus.PENDING, TransferOrderStatus.PARTIAL}
)


class TransferOrder(TrackedBase):
    """
    The unit of inter-branch asset movement.

    Guarantees:
        - from_branch_id != to_branch_id (enforced by validation).
        - items are loaded eagerly and ordered by serial_number.
    """

    __tablename__ = "transfer_orders"

    __table_args__ = (
        UniqueConstraint("order_number", name="uq_transfer_order_number"),
        Index("idx_transfer_order_status", "status"),
        Index("idx_transfer_order_from", "from_branch_id"),
        Index("idx_transfer_order_to", "to_branch_id"),
        Index("idx_transfer_order_created", "created_at"),
    )

    order_number: Mapped[str] = mapped_column(String(40), nullable=False)

    from_branch_id: Mapped[UUID] = mapped_column(
        ForeignKey("branches.id"),
        nullable=False,
    )

    to_branch_id: Mapped[UUID] = mapped_column(
        ForeignKey("branches.id"),
        nullable=False,
    )

    transfer_type: Mapped[TransferType] = mapped_column(
        String(20),
        nullable=False,
    )

    status: Mapped[TransferOrderStatus] = mapped_column(
        String(20),
        nullable=False,
        default=TransferOrderStatus.PENDING,
    )

    created_by_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    received_by_id: Mapped[UUID | None] = mapped_column(nullable=True)

    received_by_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    received_at: Mapped[datetime | None] = mapped_column(nullable=True)

    waybill_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    items: Mapped[list["TransferOrderItem"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="TransferOrderItem.serial_number",
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_ORDER_STATUSES

    def __repr__(self) -> str:
        return f"<TransferOrder {self.order_number} status={self.status}>"


class TransferOrderItem(TrackedBase):
    """One serial on a transfer order."""

    __tablename__ = "transfer_order_items"

    __table_args__ = (
        UniqueConstraint("order_id", "serial_number", name="uq_transfer_item_serial"),
        Index("idx_transfer_item_serial", "serial_number"),
    )

    order_id: Mapped[UUID] = mapped_column(
        ForeignKey("transfer_orders.id"),
        nullable=False,
    )

    serial_number: Mapped[str] = mapped_column(String(64), nullable=False)

    # AssetFamily value (MACHINE | SIM)
    item_type: Mapped[str] = mapped_column(String(20), nullable=False)

    is_received: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    received_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Asset status before the freeze; restored on cancel/reject
    previous_status: Mapped[str | None] = mapped_column(String(30), nullable=True)

    order: Mapped["TransferOrder"] = relationship(back_populates="items")

    def __repr__(self) -> str:
        return f"<TransferOrderItem {self.serial_number} received={self.is_received}>"
