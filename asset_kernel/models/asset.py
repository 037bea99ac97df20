"""
Module: asset_kernel.models.asset
Responsibility: ORM persistence for the asset registry -- POS machines and
    SIM cards.  The two families share a shape (serial, home branch, status)
    but have separate status vocabularies.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - serial_number is unique within its family (uq_machine_serial,
      uq_sim_serial).
    - status holds only values of the family enum.  IN_TRANSIT is written
      only by the transfer orchestrator; repair statuses only by the
      lifecycle service.

Failure modes:
    - IntegrityError on duplicate serial.

Audit relevance:
    Every status or branch change on these rows is paired with a
    MovementLogEntry written in the same transaction.
"""

from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from asset_kernel.db.base import TrackedBase


class AssetFamily(str, Enum):
    """The two tracked asset families (also the transfer item type)."""

    MACHINE = "MACHINE"
    SIM = "SIM"


class MachineStatus(str, Enum):
    """Machine status: stock states plus the repair (Kanban) workflow states."""

    NEW = "NEW"
    STANDBY = "STANDBY"
    DEFECTIVE = "DEFECTIVE"
    CLIENT_REPAIR = "CLIENT_REPAIR"
    ASSIGNED = "ASSIGNED"
    SOLD = "SOLD"
    UNDER_MAINTENANCE = "UNDER_MAINTENANCE"
    IN_TRANSIT = "IN_TRANSIT"
    RETURNING = "RETURNING"
    RECEIVED_AT_CENTER = "RECEIVED_AT_CENTER"
    UNDER_INSPECTION = "UNDER_INSPECTION"
    AWAITING_APPROVAL = "AWAITING_APPROVAL"
    IN_PROGRESS = "IN_PROGRESS"
    READY_FOR_RETURN = "READY_FOR_RETURN"
    COMPLETED = "COMPLETED"


class SimStatus(str, Enum):
    """SIM card status."""

    ACTIVE = "ACTIVE"
    DEFECTIVE = "DEFECTIVE"
    ASSIGNED = "ASSIGNED"
    SOLD = "SOLD"
    IN_TRANSIT = "IN_TRANSIT"


class Resolution(str, Enum):
    """Outcome recorded when a repair is ready to go back."""

    REPAIRED = "REPAIRED"
    SCRAPPED = "SCRAPPED"
    REJECTED_REPAIR = "REJECTED_REPAIR"


class Machine(TrackedBase):
    """
    A POS terminal.

    Guarantees:
        - serial_number is unique among machines.
        - branch_id is the current home branch; it changes only on receive.
        - origin_branch_id records the branch a machine came from when it
          was taken in at the maintenance center.
    """

    __tablename__ = "machines"

    __table_args__ = (
        UniqueConstraint("serial_number", name="uq_machine_serial"),
        Index("idx_machine_branch_status", "branch_id", "status"),
    )

    serial_number: Mapped[str] = mapped_column(String(64), nullable=False)

    model: Mapped[str | None] = mapped_column(String(100), nullable=True)

    manufacturer: Mapped[str | None] = mapped_column(String(100), nullable=True)

    branch_id: Mapped[UUID] = mapped_column(
        ForeignKey("branches.id"),
        nullable=False,
    )

    origin_branch_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("branches.id"),
        nullable=True,
    )

    status: Mapped[MachineStatus] = mapped_column(
        String(30),
        nullable=False,
        default=MachineStatus.NEW,
    )

    resolution: Mapped[Resolution | None] = mapped_column(
        String(30),
        nullable=True,
    )

    customer_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    technician_id: Mapped[UUID | None] = mapped_column(nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Machine {self.serial_number} status={self.status}>"


class SimCard(TrackedBase):
    """A SIM card.  Same registry shape as Machine, without repair fields."""

    __tablename__ = "sim_cards"

    __table_args__ = (
        UniqueConstraint("serial_number", name="uq_sim_serial"),
        Index("idx_sim_branch_status", "branch_id", "status"),
    )

    serial_number: Mapped[str] = mapped_column(String(64), nullable=False)

    sim_type: Mapped[str | None] = mapped_column(String(50), nullable=True)

    branch_id: Mapped[UUID] = mapped_column(
        ForeignKey("branches.id"),
        nullable=False,
    )

    status: Mapped[SimStatus] = mapped_column(
        String(30),
        nullable=False,
        default=SimStatus.ACTIVE,
    )

    customer_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<SimCard {self.serial_number} status={self.status}>"
