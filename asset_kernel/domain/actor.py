"""
ActorContext -- the caller identity every kernel operation receives.

The authorized branch set is computed once per request (see
``BranchHierarchyResolver.resolve_actor``) and carried here, so validation
and listing never walk the hierarchy themselves.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from asset_kernel.domain.roles import (
    Role,
    is_center_role,
    is_global_role,
    is_privileged_role,
)


@dataclass(frozen=True)
class ActorContext:
    user_id: UUID
    role: Role
    branch_id: UUID | None = None
    authorized_branch_ids: frozenset[UUID] = field(default_factory=frozenset)
    display_name: str | None = None

    @property
    def is_global(self) -> bool:
        return is_global_role(self.role)

    @property
    def is_center(self) -> bool:
        return is_center_role(self.role)

    @property
    def is_privileged(self) -> bool:
        return is_privileged_role(self.role)

    def can_access_branch(self, branch_id: UUID | None) -> bool:
        """True for global roles, else membership in the authorized set."""
        if self.is_global:
            return True
        return branch_id is not None and branch_id in self.authorized_branch_ids

    @property
    def label(self) -> str:
        return self.display_name or str(self.user_id)
