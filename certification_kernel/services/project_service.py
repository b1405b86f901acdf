"""
ProjectService -- project creation and reads.

This service never writes ``Project.status``; status moves belong to the
WorkflowOrchestrator alone.
"""

from uuid import UUID

from sqlalchemy import select

from certification_kernel.domain.events import EntityType
from certification_kernel.domain.roles import Role
from certification_kernel.domain.status_registry import INITIAL_STATUS, ProjectStatus, parse_status
from certification_kernel.exceptions import ProjectNotFoundError, ValidationError
from certification_kernel.logging_config import get_logger
from certification_kernel.models.project import Project
from certification_kernel.services.base import BaseService

logger = get_logger("services.project")


class ProjectService(BaseService[Project]):
    """Create projects in ``draft`` and load them."""

    def create(
        self,
        name: str,
        application_type: str,
        client_id: UUID,
        created_by: UUID,
        is_special_function: bool = False,
        creator_role: Role = Role.ADMIN_LEAD,
    ) -> Project:
        """Create a project in the initial status and record its history row.

        Raises:
            ValidationError: blank name or application type.
        """
        if not name or not name.strip():
            raise ValidationError("name", "must be a non-empty string")
        if not application_type or not application_type.strip():
            raise ValidationError("application_type", "must be a non-empty string")

        now = self.clock.now()
        project = Project(
            name=name.strip(),
            application_type=application_type.strip().upper(),
            client_id=client_id,
            is_special_function=is_special_function,
            status=INITIAL_STATUS.value,
            version=1,
            status_changed_at=now,
            created_by_id=created_by,
        )
        self.session.add(project)
        self.session.flush()

        self._record_transition(
            entity_type=EntityType.PROJECT.value,
            entity_id=project.id,
            project_id=project.id,
            from_status=None,
            to_status=project.status,
            action="create",
            actor_id=created_by,
            actor_role=creator_role.value,
            occurred_at=now,
        )

        logger.info(
            "project_created",
            extra={
                "project_id": str(project.id),
                "application_type": project.application_type,
                "created_by": str(created_by),
            },
        )
        return project

    def get(self, project_id: UUID) -> Project:
        """Load a project.

        Raises:
            ProjectNotFoundError: unknown id.
        """
        project = self.session.get(Project, project_id)
        if project is None:
            raise ProjectNotFoundError(str(project_id))
        return project

    def reload(self, project_id: UUID) -> Project:
        """Load a project, bypassing the identity map's cached state."""
        project = self.session.get(Project, project_id, populate_existing=True)
        if project is None:
            raise ProjectNotFoundError(str(project_id))
        return project

    def list_by_status(self, status: ProjectStatus | str) -> list[Project]:
        """Projects currently in ``status``, oldest first.

        Raises:
            UnknownStatusError: unknown status token.
        """
        token = parse_status(status).value
        return list(
            self.session.scalars(
                select(Project).where(Project.status == token).order_by(Project.created_at)
            )
        )
