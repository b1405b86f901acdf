"""
certification_services.role_directory -- resolves who holds which role.

Responsibility:
    Implements the kernel's ``RoleDirectory`` protocol by combining three
    sources: the identity provider (organisation-level roles such as
    head_consultant), team assignments (project-scoped team roles), and the
    project's ``client_id`` (client role).

Architecture position:
    Services layer.  The kernel never resolves identity; the orchestrator
    receives an instance of ``ProjectRoleDirectory`` (or a test double).
"""

from __future__ import annotations

from typing import Iterable, Mapping, Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from certification_kernel.domain.roles import GLOBAL_ROLES, TEAM_ROLES, Role, parse_role
from certification_kernel.logging_config import get_logger
from certification_kernel.models.project import Project
from certification_kernel.services.team_assignment_service import TeamAssignmentService

logger = get_logger("services.role_directory")


@runtime_checkable
class IdentityProvider(Protocol):
    """Organisation-level role lookup (the external identity system)."""

    def get_actor_roles(self, actor_id: UUID) -> frozenset[Role]:
        ...


class StaticIdentityProvider:
    """In-memory identity provider for tests, scripts and single-tenant setups."""

    def __init__(self, roles: Mapping[UUID, Iterable[Role | str]] | None = None):
        self._roles: dict[UUID, frozenset[Role]] = {
            actor_id: frozenset(parse_role(r) for r in granted)
            for actor_id, granted in (roles or {}).items()
        }

    def grant(self, actor_id: UUID, *roles: Role | str) -> None:
        current = self._roles.get(actor_id, frozenset())
        self._roles[actor_id] = current | frozenset(parse_role(r) for r in roles)

    def revoke(self, actor_id: UUID, role: Role | str) -> None:
        self._roles[actor_id] = self._roles.get(actor_id, frozenset()) - {parse_role(role)}

    def get_actor_roles(self, actor_id: UUID) -> frozenset[Role]:
        return self._roles.get(actor_id, frozenset())


class ProjectRoleDirectory:
    """``RoleDirectory`` backed by the identity provider and the database.

    Resolution rules:
        - global roles (head_consultant, superadmin): identity provider only;
        - client: the project's ``client_id``;
        - team roles on a project: a team assignment row;
        - team roles without a project (e.g. opening a new project): the
          identity provider's organisation-level grant.
    """

    def __init__(self, session: Session, identity: IdentityProvider):
        self._session = session
        self._identity = identity
        self._team = TeamAssignmentService(session)

    def holds_role(
        self,
        actor_id: UUID,
        role: Role,
        project_id: UUID | None = None,
    ) -> bool:
        role = parse_role(role)
        if role in GLOBAL_ROLES:
            held = role in self._identity.get_actor_roles(actor_id)
        elif role is Role.CLIENT:
            held = project_id is not None and self._is_client(actor_id, project_id)
        elif project_id is None:
            held = role in self._identity.get_actor_roles(actor_id)
        else:
            held = self._team.holds_assignment(project_id, actor_id, role)

        if not held:
            logger.debug(
                "role_check_denied",
                extra={
                    "actor_id": str(actor_id),
                    "role": role.value,
                    "scope_project_id": str(project_id) if project_id else None,
                },
            )
        return held

    def projects_for(self, actor_id: UUID, role: Role) -> frozenset[UUID]:
        role = parse_role(role)
        if role in TEAM_ROLES:
            return self._team.projects_for(actor_id, role)
        if role is Role.CLIENT:
            stmt = select(Project.id).where(Project.client_id == actor_id)
        elif role in self._identity.get_actor_roles(actor_id):
            stmt = select(Project.id)
        else:
            return frozenset()
        return frozenset(self._session.scalars(stmt))

    def _is_client(self, actor_id: UUID, project_id: UUID) -> bool:
        client_id = self._session.execute(
            select(Project.client_id).where(Project.id == project_id)
        ).scalar_one_or_none()
        return client_id is not None and client_id == actor_id
