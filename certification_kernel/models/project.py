"""
Project and TeamAssignment ORM models.

Module: certification_kernel.models.project
Architecture position: Kernel > Models.  Imports from db/base.py and the
    pure domain registries only.

Invariants enforced:
    - ``Project.status`` is a Status Registry token (CHECK constraint).
    - Status is written only through compare-and-set in the services
      layer; the mapped attribute is never assigned directly.
    - Projects are never deleted (see db/immutability.py).
    - (project_id, user_id, role) is unique on team assignments.
"""

from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from certification_kernel.db.base import TrackedBase, UUIDString, VersionedStatus
from certification_kernel.domain.roles import TEAM_ROLES
from certification_kernel.domain.status_registry import (
    INITIAL_STATUS,
    ProjectStatus,
    known_statuses,
    phase_of,
)

_STATUS_VALUES = ", ".join(f"'{s}'" for s in known_statuses())
_TEAM_ROLE_VALUES = ", ".join(f"'{r.value}'" for r in sorted(TEAM_ROLES, key=lambda r: r.value))


class Project(VersionedStatus, TrackedBase):
    """A building-certification case."""

    __tablename__ = "projects"

    __table_args__ = (
        CheckConstraint(f"status IN ({_STATUS_VALUES})", name="ck_projects_status"),
        Index("idx_projects_status", "status"),
        Index("idx_projects_client", "client_id"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    status: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=INITIAL_STATUS.value,
    )

    application_type: Mapped[str] = mapped_column(String(50), nullable=False)

    is_special_function: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    client_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    @property
    def project_status(self) -> ProjectStatus:
        return ProjectStatus(self.status)

    @property
    def phase(self) -> int:
        return int(phase_of(self.status))

    @property
    def issues_slf(self) -> bool:
        """True when the application type includes an SLF certificate."""
        return "SLF" in self.application_type.upper().split("_")

    def __repr__(self) -> str:
        return f"<Project {self.id} {self.name!r} status={self.status}>"


class TeamAssignment(TrackedBase):
    """The (project, user, role) relation authorizing an actor on a project."""

    __tablename__ = "team_assignments"

    __table_args__ = (
        UniqueConstraint("project_id", "user_id", "role", name="uq_team_assignment"),
        CheckConstraint(f"role IN ({_TEAM_ROLE_VALUES})", name="ck_team_assignment_role"),
        Index("idx_team_assignment_user", "user_id", "role"),
    )

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("projects.id"),
        nullable=False,
    )

    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    role: Mapped[str] = mapped_column(String(50), nullable=False)

    def __repr__(self) -> str:
        return f"<TeamAssignment project={self.project_id} user={self.user_id} role={self.role}>"
