"""
TeamAssignmentService -- the (project, user, role) relation.

Assignments are created and removed explicitly; nothing cascades.  Who may
manage assignments is decided by the orchestrator, not here.
"""

from uuid import UUID

from sqlalchemy import select

from certification_kernel.domain.roles import TEAM_ROLES, Role, parse_role
from certification_kernel.exceptions import (
    TeamAssignmentNotFoundError,
    ValidationError,
)
from certification_kernel.logging_config import get_logger
from certification_kernel.models.project import TeamAssignment
from certification_kernel.services.base import BaseService

logger = get_logger("services.team_assignment")


class TeamAssignmentService(BaseService[TeamAssignment]):
    """Create, remove, and query team assignments."""

    def assign(
        self,
        project_id: UUID,
        user_id: UUID,
        role: Role | str,
        assigned_by: UUID,
    ) -> TeamAssignment:
        """Assign ``user_id`` to ``project_id`` in ``role``.

        Assigning an existing triple returns the existing row.

        Raises:
            ValidationError: ``role`` is not a team role.
        """
        team_role = self._team_role(role)
        existing = self._find(project_id, user_id, team_role)
        if existing is not None:
            return existing

        assignment = TeamAssignment(
            project_id=project_id,
            user_id=user_id,
            role=team_role.value,
            created_by_id=assigned_by,
        )
        self.session.add(assignment)
        self.session.flush()

        logger.info(
            "team_member_assigned",
            extra={
                "project_id": str(project_id),
                "user_id": str(user_id),
                "role": team_role.value,
                "assigned_by": str(assigned_by),
            },
        )
        return assignment

    def remove(self, project_id: UUID, user_id: UUID, role: Role | str) -> None:
        """Remove one assignment.

        Raises:
            TeamAssignmentNotFoundError: no such assignment.
        """
        team_role = self._team_role(role)
        assignment = self._find(project_id, user_id, team_role)
        if assignment is None:
            raise TeamAssignmentNotFoundError(str(project_id), str(user_id), team_role.value)
        self.session.delete(assignment)
        self.session.flush()
        logger.info(
            "team_member_removed",
            extra={
                "project_id": str(project_id),
                "user_id": str(user_id),
                "role": team_role.value,
            },
        )

    def holds_assignment(self, project_id: UUID, user_id: UUID, role: Role | str) -> bool:
        team_role = parse_role(role)
        if team_role not in TEAM_ROLES:
            return False
        return self._find(project_id, user_id, team_role) is not None

    def roles_on_project(self, project_id: UUID, user_id: UUID) -> frozenset[Role]:
        rows = self.session.scalars(
            select(TeamAssignment.role).where(
                TeamAssignment.project_id == project_id,
                TeamAssignment.user_id == user_id,
            )
        )
        return frozenset(Role(r) for r in rows)

    def members(self, project_id: UUID, role: Role | str | None = None) -> list[TeamAssignment]:
        stmt = select(TeamAssignment).where(TeamAssignment.project_id == project_id)
        if role is not None:
            stmt = stmt.where(TeamAssignment.role == parse_role(role).value)
        return list(self.session.scalars(stmt.order_by(TeamAssignment.role)))

    def projects_for(self, user_id: UUID, role: Role | str) -> frozenset[UUID]:
        rows = self.session.scalars(
            select(TeamAssignment.project_id).where(
                TeamAssignment.user_id == user_id,
                TeamAssignment.role == parse_role(role).value,
            )
        )
        return frozenset(rows)

    def _find(self, project_id: UUID, user_id: UUID, role: Role) -> TeamAssignment | None:
        return self.session.scalars(
            select(TeamAssignment).where(
                TeamAssignment.project_id == project_id,
                TeamAssignment.user_id == user_id,
                TeamAssignment.role == role.value,
            )
        ).first()

    @staticmethod
    def _team_role(role: Role | str) -> Role:
        try:
            parsed = parse_role(role)
        except ValueError as exc:
            raise ValidationError("role", str(exc)) from None
        if parsed not in TEAM_ROLES:
            raise ValidationError(
                "role", f"{parsed.value!r} is not a team role"
            )
        return parsed
