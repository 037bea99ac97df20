"""
Branch Hierarchy Resolver.

Loads the (id, parent) pairs once and computes the caller's authorized
branch set: the home branch plus every descendant.  The result is attached
to an ActorContext for the lifetime of one request.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select

from asset_kernel.domain.actor import ActorContext
from asset_kernel.domain.hierarchy import build_children_index, descendant_closure
from asset_kernel.domain.roles import Role
from asset_kernel.exceptions import BranchNotFoundError
from asset_kernel.logging_config import get_logger
from asset_kernel.models.branch import Branch
from asset_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.branch")


@dataclass(frozen=True)
class BranchInfo:
    id: UUID
    code: str
    name: str
    branch_type: str
    parent_branch_id: UUID | None
    is_active: bool


class BranchHierarchyResolver(BaseSelector[Branch]):
    """Read side of the branch forest."""

    def _to_dto(self, branch: Branch) -> BranchInfo:
        return BranchInfo(
            id=branch.id,
            code=branch.code,
            name=branch.name,
            branch_type=getattr(branch.branch_type, "value", branch.branch_type),
            parent_branch_id=branch.parent_branch_id,
            is_active=branch.is_active,
        )

    def find_branch(self, branch_id: UUID) -> BranchInfo | None:
        branch = self.session.get(Branch, branch_id)
        return self._to_dto(branch) if branch is not None else None

    def get_branch(self, branch_id: UUID) -> BranchInfo:
        info = self.find_branch(branch_id)
        if info is None:
            raise BranchNotFoundError(branch_id)
        return info

    def authorized_branch_ids(self, branch_id: UUID | None) -> frozenset[UUID]:
        """Home branch plus all descendants.  Empty for users without a branch."""
        if branch_id is None:
            return frozenset()
        rows = self.session.execute(select(Branch.id, Branch.parent_branch_id)).all()
        children = build_children_index((row[0], row[1]) for row in rows)
        return descendant_closure(branch_id, children)

    def resolve_actor(
        self,
        user_id: UUID,
        role: Role | str,
        branch_id: UUID | None,
        display_name: str | None = None,
    ) -> ActorContext:
        """Build the request-scoped ActorContext with its authorized set."""
        authorized = self.authorized_branch_ids(branch_id)
        actor = ActorContext(
            user_id=user_id,
            role=Role(role),
            branch_id=branch_id,
            authorized_branch_ids=authorized,
            display_name=display_name,
        )
        logger.debug(
            "actor_resolved",
            extra={
                "user_id": str(user_id),
                "role": actor.role.value,
                "authorized_branch_count": len(authorized),
            },
        )
        return actor
