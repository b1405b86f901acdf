"""
ChecklistService -- per-item checklist approval sub-workflow.

Responsibility:
    Inspectors record findings (``save_draft``) and submit them once;
    project leads assigned to the project approve or reject; ``reopen``
    returns an item to draft for further edits.  Exposes read-only
    completeness queries for the orchestrator.

Architecture position:
    Kernel > Services.  Reads team assignments for authorization; never
    reads or writes report or project status.

Invariants enforced:
    - submit only by the response's inspector, only from ``draft``, only
      with a non-empty response body.
    - approve/reject only by a project lead on the same project; reject
      needs non-empty notes.
    - Findings are only recorded against an open (not completed or
      cancelled) inspection.
    - Every status write is a compare-and-set with a history row.
"""

from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from certification_kernel.domain.checklist import (
    PENDING_STATUSES,
    ChecklistAction,
    ChecklistStatus,
    has_response_body,
    resolve_checklist_step,
)
from certification_kernel.domain.clock import Clock
from certification_kernel.domain.events import EntityType
from certification_kernel.domain.roles import Role
from certification_kernel.domain.schedule import (
    TERMINAL_SCHEDULE_STATUSES,
    ScheduleType,
    parse_schedule_status,
)
from certification_kernel.domain.workflow import require_notes
from certification_kernel.exceptions import (
    ChecklistResponseNotFoundError,
    IllegalTransitionError,
    PreconditionNotMetError,
    ScheduleEventNotFoundError,
    UnauthorizedActorError,
    ValidationError,
)
from certification_kernel.logging_config import get_logger
from certification_kernel.models.checklist_response import ChecklistResponse
from certification_kernel.models.schedule_event import ScheduleEvent
from certification_kernel.services.base import BaseService
from certification_kernel.services.team_assignment_service import TeamAssignmentService

logger = get_logger("services.checklist")

_ENTITY = EntityType.CHECKLIST_RESPONSE.value


class ChecklistService(BaseService[ChecklistResponse]):
    """Checklist response lifecycle and completeness queries."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        team: TeamAssignmentService | None = None,
    ):
        super().__init__(session, clock)
        self._team = team or TeamAssignmentService(session, self.clock)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save_draft(
        self,
        inspection_id: UUID,
        item_id: str,
        inspector_id: UUID,
        response: dict[str, Any] | None = None,
        notes: str | None = None,
    ) -> ChecklistResponse:
        """Create or update the draft finding for one checklist item.

        Raises:
            ScheduleEventNotFoundError: unknown inspection.
            ValidationError: the event is not an inspection, or blank item id.
            PreconditionNotMetError: the inspection is completed or cancelled.
            UnauthorizedActorError: actor is not an inspector on the project,
                or the row belongs to another inspector.
            IllegalTransitionError: the row is no longer a draft (reopen it).
            StaleTransitionError: the row left draft while being edited.
        """
        if not item_id or not item_id.strip():
            raise ValidationError("item_id", "must be a non-empty string")

        inspection = self.session.get(ScheduleEvent, inspection_id)
        if inspection is None:
            raise ScheduleEventNotFoundError(str(inspection_id))
        if inspection.schedule_type != ScheduleType.INSPECTION.value:
            raise ValidationError(
                "inspection_id",
                f"event {inspection_id} is a {inspection.schedule_type!r}, not an inspection",
            )
        if parse_schedule_status(inspection.status) in TERMINAL_SCHEDULE_STATUSES:
            raise PreconditionNotMetError(
                "inspection_open",
                f"inspection {inspection_id} is {inspection.status!r}; no new findings",
                blockers=[str(inspection_id)],
            )
        project_id = inspection.project_id
        self._require_team_role(inspector_id, Role.INSPECTOR, project_id)

        row = self.session.scalars(
            select(ChecklistResponse).where(
                ChecklistResponse.inspection_id == inspection_id,
                ChecklistResponse.item_id == item_id,
            )
        ).first()

        if row is None:
            row = ChecklistResponse(
                project_id=project_id,
                inspection_id=inspection_id,
                item_id=item_id,
                inspector_id=inspector_id,
                response=response,
                notes=notes,
                status=ChecklistStatus.DRAFT.value,
                version=1,
                created_by_id=inspector_id,
            )
            self.session.add(row)
            self.session.flush()
            logger.info(
                "checklist_draft_created",
                extra={"response_id": str(row.id), "item_id": item_id, "project_id": str(project_id)},
            )
            return row

        if row.inspector_id != inspector_id:
            raise UnauthorizedActorError(str(inspector_id), "assigned_inspector", str(project_id))
        if row.status != ChecklistStatus.DRAFT.value:
            raise IllegalTransitionError(
                row.status, row.status,
                "only draft checklist responses can be edited; reopen it first",
                entity_type=_ENTITY,
            )

        self._compare_and_set(
            row, _ENTITY,
            expected_status=ChecklistStatus.DRAFT.value,
            actor_id=inspector_id,
            response=response if response is not None else row.response,
            notes=notes if notes is not None else row.notes,
        )
        return row

    def submit(
        self,
        response_id: UUID,
        actor_id: UUID,
        response: dict[str, Any] | None = None,
        notes: str | None = None,
    ) -> ChecklistResponse:
        """Submit a draft response for project-lead review.

        Raises:
            UnauthorizedActorError: actor is not the assigned inspector.
            ValidationError: empty response body.
            StaleTransitionError: already submitted.
        """
        row = self.get(response_id)
        if row.inspector_id != actor_id:
            raise UnauthorizedActorError(str(actor_id), "assigned_inspector", str(row.project_id))
        self._require_team_role(actor_id, Role.INSPECTOR, row.project_id)

        body = response if response is not None else row.response
        if not has_response_body(body):
            raise ValidationError("response", "a submitted checklist response must not be empty")

        step = resolve_checklist_step(str(row.id), row.status, ChecklistAction.SUBMIT, Role.INSPECTOR)
        now = self.clock.now()
        self._apply(
            row, step.from_state, step.to_state, step.action, actor_id, Role.INSPECTOR,
            response=body,
            notes=notes if notes is not None else row.notes,
            submitted_at=now,
        )
        return row

    def approve(self, response_id: UUID, actor_id: UUID) -> ChecklistResponse:
        """Project-lead approval of a submitted response."""
        row = self.get(response_id)
        self._require_team_role(actor_id, Role.PROJECT_LEAD, row.project_id)
        step = resolve_checklist_step(str(row.id), row.status, ChecklistAction.APPROVE, Role.PROJECT_LEAD)
        self._apply(
            row, step.from_state, step.to_state, step.action, actor_id, Role.PROJECT_LEAD,
            reviewed_by_id=actor_id,
            reviewed_at=self.clock.now(),
        )
        return row

    def reject(self, response_id: UUID, actor_id: UUID, notes: str | None) -> ChecklistResponse:
        """Project-lead rejection; ``notes`` must be non-empty.

        Raises:
            ValidationError: blank notes.
        """
        row = self.get(response_id)
        self._require_team_role(actor_id, Role.PROJECT_LEAD, row.project_id)
        cleaned = require_notes(notes)
        step = resolve_checklist_step(str(row.id), row.status, ChecklistAction.REJECT, Role.PROJECT_LEAD)
        self._apply(
            row, step.from_state, step.to_state, step.action, actor_id, Role.PROJECT_LEAD,
            notes_for_history=cleaned,
            reviewed_by_id=actor_id,
            reviewed_at=self.clock.now(),
            review_notes=cleaned,
        )
        return row

    def reopen(self, response_id: UUID, actor_id: UUID) -> ChecklistResponse:
        """Return a submitted or rejected response to draft."""
        row = self.get(response_id)
        if row.inspector_id == actor_id:
            role = Role.INSPECTOR
        elif self._team.holds_assignment(row.project_id, actor_id, Role.PROJECT_LEAD):
            role = Role.PROJECT_LEAD
        else:
            raise UnauthorizedActorError(str(actor_id), "assigned_inspector", str(row.project_id))
        step = resolve_checklist_step(str(row.id), row.status, ChecklistAction.REOPEN, role)
        self._apply(
            row, step.from_state, step.to_state, step.action, actor_id, role,
            submitted_at=None,
        )
        return row

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, response_id: UUID) -> ChecklistResponse:
        row = self.session.get(ChecklistResponse, response_id)
        if row is None:
            raise ChecklistResponseNotFoundError(str(response_id))
        return row

    def responses_for(
        self,
        project_id: UUID,
        inspection_id: UUID | None = None,
    ) -> list[ChecklistResponse]:
        stmt = select(ChecklistResponse).where(ChecklistResponse.project_id == project_id)
        if inspection_id is not None:
            stmt = stmt.where(ChecklistResponse.inspection_id == inspection_id)
        return list(self.session.scalars(stmt.order_by(ChecklistResponse.item_id)))

    def draft_items(
        self,
        project_id: UUID,
        inspection_id: UUID | None = None,
    ) -> list[ChecklistResponse]:
        """Responses still pending (``draft``), ordered by item id."""
        stmt = select(ChecklistResponse).where(
            ChecklistResponse.project_id == project_id,
            ChecklistResponse.status.in_([s.value for s in PENDING_STATUSES]),
        )
        if inspection_id is not None:
            stmt = stmt.where(ChecklistResponse.inspection_id == inspection_id)
        return list(self.session.scalars(stmt.order_by(ChecklistResponse.item_id)))

    def is_complete(self, project_id: UUID, inspection_id: UUID | None = None) -> bool:
        """At least one response exists and none is still a draft."""
        stmt = select(func.count(ChecklistResponse.id)).where(
            ChecklistResponse.project_id == project_id
        )
        if inspection_id is not None:
            stmt = stmt.where(ChecklistResponse.inspection_id == inspection_id)
        total = self.session.execute(stmt).scalar_one()
        return total > 0 and not self.draft_items(project_id, inspection_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_team_role(self, actor_id: UUID, role: Role, project_id: UUID) -> None:
        if not self._team.holds_assignment(project_id, actor_id, role):
            raise UnauthorizedActorError(str(actor_id), role.value, str(project_id))

    def _apply(
        self,
        row: ChecklistResponse,
        from_status: str,
        to_status: str,
        action: str,
        actor_id: UUID,
        role: Role,
        notes_for_history: str | None = None,
        **values: Any,
    ) -> None:
        now = self._compare_and_set(
            row, _ENTITY,
            expected_status=from_status,
            new_status=to_status,
            actor_id=actor_id,
            **values,
        )
        self._record_transition(
            entity_type=_ENTITY,
            entity_id=row.id,
            project_id=row.project_id,
            from_status=from_status,
            to_status=to_status,
            action=action,
            actor_id=actor_id,
            actor_role=role.value,
            occurred_at=now,
            notes=notes_for_history,
        )
        logger.info(
            "checklist_step_applied",
            extra={
                "response_id": str(row.id),
                "item_id": row.item_id,
                "action": action,
                "from_status": from_status,
                "to_status": to_status,
            },
        )
