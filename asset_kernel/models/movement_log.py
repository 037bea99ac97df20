"""
Module: asset_kernel.models.movement_log
Responsibility: The append-only audit ledger.  Two parallel records per
    mutating operation: a fine-grained asset-centric MovementLogEntry and a
    coarse SystemLogEntry.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Rows are immutable from creation: UPDATE and DELETE are rejected by the
      ORM listeners in db/immutability.py.
    - Rows are written only inside the transaction of the mutation they
      describe.  If that transaction rolls back, neither entry exists.

Audit relevance:
    history_for_serial() over movement_log_entries reconstructs the full
    path of an asset: every freeze, receive, cancel, reject and repair
    transition with actor, branches and timestamp.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from asset_kernel.db.base import Base


class MovementAction(str, Enum):
    CREATED = "created"
    RECEIVED = "received"
    CANCELLED = "cancelled"
    REJECTED = "rejected"
    TRANSITION = "transition"


class MovementLogEntry(Base):
    """One asset-centric history record."""

    __tablename__ = "movement_log_entries"

    __table_args__ = (
        Index("idx_movement_serial_time", "serial_number", "occurred_at"),
        Index("idx_movement_order", "order_id"),
        Index("idx_movement_action", "action"),
    )

    # AssetFamily value (MACHINE | SIM)
    asset_family: Mapped[str] = mapped_column(String(20), nullable=False)

    asset_id: Mapped[UUID | None] = mapped_column(nullable=True)

    serial_number: Mapped[str] = mapped_column(String(64), nullable=False)

    action: Mapped[str] = mapped_column(String(50), nullable=False)

    from_branch_id: Mapped[UUID | None] = mapped_column(nullable=True)

    to_branch_id: Mapped[UUID | None] = mapped_column(nullable=True)

    performed_by_id: Mapped[UUID | None] = mapped_column(nullable=True)

    performed_by_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    order_id: Mapped[UUID | None] = mapped_column(nullable=True)

    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    def __repr__(self) -> str:
        return f"<MovementLogEntry {self.serial_number} {self.action}>"


class SystemLogEntry(Base):
    """One coarse audit record per entity touched by an operation."""

    __tablename__ = "system_log_entries"

    __table_args__ = (
        Index("idx_system_log_entity", "entity_type", "entity_id"),
        Index("idx_system_log_time", "occurred_at"),
    )

    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)

    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)

    action: Mapped[str] = mapped_column(String(50), nullable=False)

    actor_id: Mapped[UUID | None] = mapped_column(nullable=True)

    actor_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    branch_id: Mapped[UUID | None] = mapped_column(nullable=True)

    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    def __repr__(self) -> str:
        return f"<SystemLogEntry {self.entity_type}:{self.entity_id} {self.action}>"
