"""
Module: asset_kernel.models.maintenance
Responsibility: Maintenance requests raised against machines, and the
    repair-cost approvals the center asks for.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - At most one approval per request (uq_approval_request).
    - A request is "in flight" while its status is not CLOSED or CANCELLED.

Audit relevance:
    Request status changes made by the transfer orchestrator and the
    lifecycle service happen inside the same transaction as the asset
    change that caused them.
"""

from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from asset_kernel.db.base import TrackedBase


class MaintenanceRequestStatus(str, Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    PENDING_TRANSFER = "PENDING_TRANSFER"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"


FINISHED_REQUEST_STATUSES = frozenset(
    {MaintenanceRequestStatus.CLOSED, MaintenanceRequestStatus.CANCELLED}
)


class ApprovalStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class MaintenanceRequest(TrackedBase):
    """A customer or branch request to repair a machine."""

    __tablename__ = "maintenance_requests"

    __table_args__ = (
        Index("idx_maintenance_request_serial", "serial_number"),
        Index("idx_maintenance_request_status", "status"),
    )

    serial_number: Mapped[str] = mapped_column(String(64), nullable=False)

    branch_id: Mapped[UUID] = mapped_column(
        ForeignKey("branches.id"),
        nullable=False,
    )

    status: Mapped[MaintenanceRequestStatus] = mapped_column(
        String(30),
        nullable=False,
        default=MaintenanceRequestStatus.OPEN,
    )

    serviced_by_branch_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("branches.id"),
        nullable=True,
    )

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def is_in_flight(self) -> bool:
        return self.status not in FINISHED_REQUEST_STATUSES

    def __repr__(self) -> str:
        return f"<MaintenanceRequest {self.serial_number} status={self.status}>"


class MaintenanceApproval(TrackedBase):
    """Cost and parts quote awaiting customer approval."""

    __tablename__ = "maintenance_approvals"

    __table_args__ = (
        UniqueConstraint("request_id", name="uq_approval_request"),
    )

    request_id: Mapped[UUID] = mapped_column(
        ForeignKey("maintenance_requests.id"),
        nullable=False,
    )

    cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    parts: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)

    status: Mapped[ApprovalStatus] = mapped_column(
        String(20),
        nullable=False,
        default=ApprovalStatus.PENDING,
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
