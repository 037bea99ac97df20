"""
Roles and capability predicates (``asset_kernel.domain.roles``).

Responsibility
--------------
The closed set of user roles and the three capability predicates the kernel
branches on.  Every role maps to exactly one RoleCapabilities row; the table
is checked for completeness at import time, so adding a Role without
deciding its capabilities fails immediately rather than silently denying
(or granting) access.

Architecture position
---------------------
**Kernel domain layer** -- pure.  ZERO I/O.

Capabilities
------------
* global      -- bypasses branch scoping (sees and acts on every branch).
* center      -- works at the maintenance center.
* privileged  -- may cancel other users' orders and act outside scope on
                 center intake.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    MANAGEMENT = "MANAGEMENT"
    ADMIN_AFFAIRS = "ADMIN_AFFAIRS"
    CENTER_MANAGER = "CENTER_MANAGER"
    CENTER_TECH = "CENTER_TECH"
    BRANCH_MANAGER = "BRANCH_MANAGER"
    CS_SUPERVISOR = "CS_SUPERVISOR"
    CS_AGENT = "CS_AGENT"
    BRANCH_TECH = "BRANCH_TECH"
    TECHNICIAN = "TECHNICIAN"


@dataclass(frozen=True)
class RoleCapabilities:
    is_global: bool = False
    is_center: bool = False
    is_privileged: bool = False


_CAPABILITIES: dict[Role, RoleCapabilities] = {
    Role.SUPER_ADMIN: RoleCapabilities(is_global=True, is_privileged=True),
    Role.MANAGEMENT: RoleCapabilities(is_global=True, is_privileged=True),
    Role.ADMIN_AFFAIRS: RoleCapabilities(is_global=True),
    Role.CENTER_MANAGER: RoleCapabilities(is_center=True, is_privileged=True),
    Role.CENTER_TECH: RoleCapabilities(is_center=True),
    Role.BRANCH_MANAGER: RoleCapabilities(),
    Role.CS_SUPERVISOR: RoleCapabilities(),
    Role.CS_AGENT: RoleCapabilities(),
    Role.BRANCH_TECH: RoleCapabilities(),
    Role.TECHNICIAN: RoleCapabilities(),
}

_missing = set(Role) - set(_CAPABILITIES)
if _missing:
    raise RuntimeError(
        f"Roles without capabilities: {sorted(r.value for r in _missing)}"
    )


def capabilities_for(role: Role | str) -> RoleCapabilities:
    """Look up capabilities.  Raises ValueError for an unknown role string."""
    return _CAPABILITIES[Role(role)]


def is_global_role(role: Role | str) -> bool:
    return capabilities_for(role).is_global


def is_center_role(role: Role | str) -> bool:
    return capabilities_for(role).is_center


def is_privileged_role(role: Role | str) -> bool:
    return capabilities_for(role).is_privileged
