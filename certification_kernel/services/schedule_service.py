"""
ScheduleCoordinator -- inspections, meetings, deadlines, verifications.

Responsibility:
    Creates schedule events for a project with an assignee whose team role
    fits the event type, and moves each event through its own state machine
    (scheduled -> in_progress -> completed, or cancelled).  Exposes the
    read-only inspection completeness query used by the orchestrator.

Architecture position:
    Kernel > Services.  Reads the project's phase (never writes it) and
    team assignments.

Invariants enforced:
    - ``end_date`` never precedes ``schedule_date``.
    - Only project leads and admins on the project create events; only the
      assignee or creator mutates one.
    - An event cannot be completed while its project is still in intake.
    - Completed events are never deleted.
"""

from datetime import datetime
from typing import Mapping
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from certification_kernel.domain.clock import Clock
from certification_kernel.domain.events import EntityType
from certification_kernel.domain.roles import Role
from certification_kernel.domain.schedule import (
    SCHEDULER_ROLES,
    TERMINAL_SCHEDULE_STATUSES,
    ScheduleStatus,
    ScheduleType,
    check_schedule_transition,
    parse_schedule_status,
    parse_schedule_type,
    required_assignee_roles,
    validate_window,
)
from certification_kernel.domain.status_registry import Phase, phase_of
from certification_kernel.exceptions import (
    IllegalTransitionError,
    ImmutabilityViolationError,
    IncompatibleAssigneeError,
    PreconditionNotMetError,
    ProjectNotFoundError,
    ScheduleEventNotFoundError,
    TerminalStateError,
    UnauthorizedActorError,
    ValidationError,
)
from certification_kernel.logging_config import get_logger
from certification_kernel.models.checklist_response import ChecklistResponse
from certification_kernel.models.project import Project
from certification_kernel.models.schedule_event import ScheduleEvent
from certification_kernel.services.base import BaseService
from certification_kernel.services.team_assignment_service import TeamAssignmentService

logger = get_logger("services.schedule")

_ENTITY = EntityType.SCHEDULE_EVENT.value

# Recorded as actor_role on history rows for event mutations
_ASSIGNEE = "assignee"
_CREATOR = "creator"


class ScheduleCoordinator(BaseService[ScheduleEvent]):
    """Schedule event lifecycle and inspection completeness."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        team: TeamAssignmentService | None = None,
        assignee_roles: Mapping[ScheduleType, frozenset[Role]] | None = None,
    ):
        super().__init__(session, clock)
        self._team = team or TeamAssignmentService(session, self.clock)
        self._assignee_roles = assignee_roles

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create(
        self,
        project_id: UUID,
        assignee_id: UUID,
        schedule_date: datetime,
        schedule_type: ScheduleType | str,
        created_by: UUID,
        title: str | None = None,
        end_date: datetime | None = None,
        description: str | None = None,
    ) -> ScheduleEvent:
        """Put an event on the project's calendar.

        Raises:
            ProjectNotFoundError: unknown project.
            ValidationError: unknown type, or ``end_date`` before
                ``schedule_date``.
            UnauthorizedActorError: creator is not a project lead or admin
                on the project.
            IncompatibleAssigneeError: assignee lacks a role for the type.
        """
        kind = parse_schedule_type(schedule_type)
        if self.session.get(Project, project_id) is None:
            raise ProjectNotFoundError(str(project_id))
        validate_window(schedule_date, end_date)

        creator_roles = self._team.roles_on_project(project_id, created_by)
        if not creator_roles & SCHEDULER_ROLES:
            raise UnauthorizedActorError(
                str(created_by), "|".join(sorted(r.value for r in SCHEDULER_ROLES)), str(project_id)
            )

        required = required_assignee_roles(kind, self._assignee_roles)
        if not self._team.roles_on_project(project_id, assignee_id) & required:
            raise IncompatibleAssigneeError(
                str(assignee_id), kind.value, sorted(r.value for r in required)
            )

        now = self.clock.now()
        event = ScheduleEvent(
            project_id=project_id,
            schedule_type=kind.value,
            title=(title or kind.value.replace("_", " ")).strip(),
            description=description,
            schedule_date=schedule_date,
            end_date=end_date,
            assigned_to=assignee_id,
            status=ScheduleStatus.SCHEDULED.value,
            version=1,
            status_changed_at=now,
            created_by_id=created_by,
        )
        self.session.add(event)
        self.session.flush()
        self._record_transition(
            entity_type=_ENTITY,
            entity_id=event.id,
            project_id=project_id,
            from_status=None,
            to_status=event.status,
            action="create",
            actor_id=created_by,
            actor_role=_CREATOR,
            occurred_at=now,
        )
        logger.info(
            "schedule_event_created",
            extra={
                "event_id": str(event.id),
                "project_id": str(project_id),
                "schedule_type": kind.value,
                "assigned_to": str(assignee_id),
            },
        )
        return event

    # ------------------------------------------------------------------
    # Status moves
    # ------------------------------------------------------------------

    def start(self, event_id: UUID, actor_id: UUID) -> ScheduleEvent:
        return self._move(event_id, actor_id, ScheduleStatus.IN_PROGRESS, "start")

    def complete(self, event_id: UUID, actor_id: UUID, notes: str | None = None) -> ScheduleEvent:
        """Mark the event done.

        Raises:
            PreconditionNotMetError: the project is still in intake.
        """
        event = self.get(event_id)
        project = self.session.get(Project, event.project_id)
        if project is None:
            raise ProjectNotFoundError(str(event.project_id))
        if phase_of(project.status) is Phase.INTAKE:
            raise PreconditionNotMetError(
                "project_past_intake",
                f"project is {project.status!r}; events cannot be completed during intake",
            )
        return self._move(event_id, actor_id, ScheduleStatus.COMPLETED, "complete", notes)

    def cancel(self, event_id: UUID, actor_id: UUID, notes: str | None = None) -> ScheduleEvent:
        return self._move(event_id, actor_id, ScheduleStatus.CANCELLED, "cancel", notes)

    def reschedule(
        self,
        event_id: UUID,
        actor_id: UUID,
        schedule_date: datetime,
        end_date: datetime | None = None,
    ) -> ScheduleEvent:
        """Move the event's window.  Only while ``scheduled``.

        Raises:
            TerminalStateError: the event is completed or cancelled.
            IllegalTransitionError: the event is already in progress.
            StaleTransitionError: the event left ``scheduled`` concurrently.
        """
        event = self.get(event_id)
        role = self._mutator_role(event, actor_id)
        current = parse_schedule_status(event.status)
        if current in TERMINAL_SCHEDULE_STATUSES:
            raise TerminalStateError(current.value, entity_type=_ENTITY)
        if current is not ScheduleStatus.SCHEDULED:
            raise IllegalTransitionError(
                current.value, current.value,
                "only scheduled events can be rescheduled",
                entity_type=_ENTITY,
            )
        validate_window(schedule_date, end_date)

        self._compare_and_set(
            event, _ENTITY,
            expected_status=ScheduleStatus.SCHEDULED.value,
            actor_id=actor_id,
            schedule_date=schedule_date,
            end_date=end_date,
        )
        logger.info(
            "schedule_event_rescheduled",
            extra={
                "event_id": str(event.id),
                "schedule_date": schedule_date,
                "actor_role": role,
            },
        )
        return event

    def delete(self, event_id: UUID, actor_id: UUID) -> None:
        """Hard-delete an event that has no recorded field work.

        Raises:
            UnauthorizedActorError: actor is not the creator.
            ImmutabilityViolationError: the event is completed.
            ValidationError: checklist responses reference the event.
        """
        event = self.get(event_id)
        if event.created_by_id != actor_id:
            raise UnauthorizedActorError(str(actor_id), _CREATOR, str(event.project_id))
        if event.status == ScheduleStatus.COMPLETED.value:
            raise ImmutabilityViolationError(
                _ENTITY, str(event.id), "completed events cannot be deleted"
            )
        referenced = self.session.execute(
            select(func.count(ChecklistResponse.id)).where(
                ChecklistResponse.inspection_id == event.id
            )
        ).scalar_one()
        if referenced:
            raise ValidationError(
                "event_id",
                f"{referenced} checklist response(s) reference this event; cancel it instead",
            )
        self.session.delete(event)
        self.session.flush()
        logger.info(
            "schedule_event_deleted",
            extra={"event_id": str(event_id), "project_id": str(event.project_id)},
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, event_id: UUID) -> ScheduleEvent:
        event = self.session.get(ScheduleEvent, event_id)
        if event is None:
            raise ScheduleEventNotFoundError(str(event_id))
        return event

    def events_for(
        self,
        project_id: UUID,
        schedule_type: ScheduleType | str | None = None,
    ) -> list[ScheduleEvent]:
        stmt = select(ScheduleEvent).where(ScheduleEvent.project_id == project_id)
        if schedule_type is not None:
            stmt = stmt.where(
                ScheduleEvent.schedule_type == parse_schedule_type(schedule_type).value
            )
        return list(self.session.scalars(stmt.order_by(ScheduleEvent.schedule_date)))

    def pending_inspections(self, project_id: UUID) -> list[ScheduleEvent]:
        """Inspections that are neither completed nor cancelled."""
        return [
            e for e in self.events_for(project_id, ScheduleType.INSPECTION)
            if e.status not in (ScheduleStatus.COMPLETED.value, ScheduleStatus.CANCELLED.value)
        ]

    def has_completed_required_inspections(self, project_id: UUID) -> bool:
        """At least one non-cancelled inspection exists and all are completed."""
        live = [
            e for e in self.events_for(project_id, ScheduleType.INSPECTION)
            if e.status != ScheduleStatus.CANCELLED.value
        ]
        return bool(live) and all(e.status == ScheduleStatus.COMPLETED.value for e in live)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _mutator_role(event: ScheduleEvent, actor_id: UUID) -> str:
        if event.assigned_to == actor_id:
            return _ASSIGNEE
        if event.created_by_id == actor_id:
            return _CREATOR
        raise UnauthorizedActorError(
            str(actor_id), f"{_ASSIGNEE}|{_CREATOR}", str(event.project_id)
        )

    def _move(
        self,
        event_id: UUID,
        actor_id: UUID,
        target: ScheduleStatus,
        action: str,
        notes: str | None = None,
    ) -> ScheduleEvent:
        event = self.get(event_id)
        role = self._mutator_role(event, actor_id)
        from_status = event.status
        check_schedule_transition(str(event.id), from_status, target)

        now = self._compare_and_set(
            event, _ENTITY,
            expected_status=from_status,
            new_status=target.value,
            actor_id=actor_id,
        )
        self._record_transition(
            entity_type=_ENTITY,
            entity_id=event.id,
            project_id=event.project_id,
            from_status=from_status,
            to_status=target.value,
            action=action,
            actor_id=actor_id,
            actor_role=role,
            occurred_at=now,
            notes=notes.strip() if notes and notes.strip() else None,
        )
        logger.info(
            "schedule_event_transitioned",
            extra={
                "event_id": str(event.id),
                "project_id": str(event.project_id),
                "from_status": from_status,
                "to_status": target.value,
                "actor_role": role,
            },
        )
        return event
