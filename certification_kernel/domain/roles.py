"""
Actor roles and the role-lookup boundary.

Architecture position:
    Kernel > Domain -- pure.  ``RoleDirectory`` is a Protocol; the kernel
    never resolves identity itself.  Implementations live in the service
    layer (``certification_services.role_directory``) or in tests.

Team roles are project-scoped: holding ``inspector`` means holding it on a
specific project via a team assignment.  ``head_consultant`` and
``superadmin`` are global roles granted by the identity provider.  ``client``
is scoped by the project's ``client_id``.
"""

from __future__ import annotations

from enum import Enum
from typing import Protocol, runtime_checkable
from uuid import UUID


class Role(str, Enum):
    INSPECTOR = "inspector"
    DRAFTER = "drafter"
    PROJECT_LEAD = "project_lead"
    ADMIN_TEAM = "admin_team"
    ADMIN_LEAD = "admin_lead"
    HEAD_CONSULTANT = "head_consultant"
    CLIENT = "client"
    SUPERADMIN = "superadmin"


# Roles that can appear on a team assignment row
TEAM_ROLES: frozenset[Role] = frozenset({
    Role.INSPECTOR,
    Role.DRAFTER,
    Role.PROJECT_LEAD,
    Role.ADMIN_TEAM,
    Role.ADMIN_LEAD,
})

GLOBAL_ROLES: frozenset[Role] = frozenset({
    Role.HEAD_CONSULTANT,
    Role.SUPERADMIN,
})

# Roles allowed to manage team assignments and create projects
ADMIN_ROLES: frozenset[Role] = frozenset({
    Role.ADMIN_LEAD,
    Role.SUPERADMIN,
})


def parse_role(value: Role | str) -> Role:
    """Resolve a role token.

    Raises:
        ValueError: if the token is not a known role.
    """
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        raise ValueError(f"Unknown role: {value!r}") from None


@runtime_checkable
class RoleDirectory(Protocol):
    """Identity/role lookup consumed by the orchestrator and services."""

    def holds_role(
        self,
        actor_id: UUID,
        role: Role,
        project_id: UUID | None = None,
    ) -> bool:
        """True if the actor holds ``role`` (on ``project_id`` when scoped)."""
        ...

    def projects_for(self, actor_id: UUID, role: Role) -> frozenset[UUID]:
        """Project ids on which the actor holds ``role``."""
        ...
