"""
Module: asset_kernel.models.branch
Responsibility: ORM persistence for organizational branches (operating
    branches, the maintenance center, administrative affairs).  Branch rows
    are the scope anchor for every permission check in the kernel.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - code is unique (uq_branch_code).
    - The parent_branch_id graph is a forest.  The hierarchy resolver walks
      it with a visited set, so a corrupted cycle degrades to a bounded walk
      instead of an infinite loop.

Failure modes:
    - IntegrityError on duplicate code.

Audit relevance:
    Movement and system log entries reference branch ids; branches are never
    deleted, only deactivated (is_active=False).
"""

from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from asset_kernel.db.base import TrackedBase


class BranchType(str, Enum):
    """Classification of branches.

    Contract: MAINTENANCE_CENTER is the only valid destination for
    MAINTENANCE and SEND_TO_CENTER transfers.
    """

    BRANCH = "BRANCH"
    MAINTENANCE_CENTER = "MAINTENANCE_CENTER"
    ADMIN_AFFAIRS = "ADMIN_AFFAIRS"


class Branch(TrackedBase):
    """
    An organizational unit that holds assets.

    Guarantees:
        - code is globally unique.
        - parent_branch_id is nullable; roots have no parent.
        - Inactive branches are neither valid sources nor destinations.
    """

    __tablename__ = "branches"

    __table_args__ = (
        UniqueConstraint("code", name="uq_branch_code"),
        Index("idx_branch_parent", "parent_branch_id"),
        Index("idx_branch_type", "branch_type"),
    )

    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    branch_type: Mapped[BranchType] = mapped_column(
        String(30),
        nullable=False,
        default=BranchType.BRANCH,
    )

    parent_branch_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("branches.id"),
        nullable=True,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    @property
    def is_maintenance_center(self) -> bool:
        return self.branch_type == BranchType.MAINTENANCE_CENTER

    def __repr__(self) -> str:
        return f"<Branch {self.code}: {self.name} ({self.branch_type})>"
