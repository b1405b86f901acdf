"""
WorkflowOrchestrator -- the only writer of ``Project.status``.

Responsibility:
    Turns a transition request into a committed project status change:
    load, authorize, ask the transition engine, evaluate cross-workflow
    preconditions, compare-and-set write with a history row, commit, then
    emit a workflow event.  Also fronts the report chain, checklist,
    schedule and team management so every write they make shares the same
    authorization, transaction, and event path.

Architecture position:
    Kernel > Services -- imperative shell, owns transaction boundaries
    (when ``auto_commit`` is set).  Delegates rules to the pure domain
    layer and completeness checks to the sub-workflow services, which it
    only reads.

Request flow:
    request_transition(project_id, target_status, actor_id, actor_role, ...)
      1. Load the project                 (ProjectNotFoundError)
      2. Verify the actor's role          (UnauthorizedActorError)
      3. Transition engine decision       (IllegalTransitionError / TerminalStateError)
      4. Cross-workflow preconditions     (PreconditionNotMetError / ValidationError)
      5. Compare-and-set + history row    (StaleTransitionError)
      6. Commit, then emit WorkflowEvent  (best-effort)

Invariants enforced:
    - Business-rule refusals are never retried.  A stale write is retried
      at most ``max_stale_retries`` times and only when the caller opts in.
    - A failing event sink never undoes a committed transition.
    - A report approval and the project move it triggers commit together.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Mapping, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from certification_kernel.domain.checklist import ChecklistAction
from certification_kernel.domain.clock import Clock
from certification_kernel.domain.events import (
    EntityType,
    EventSink,
    NullEventSink,
    WorkflowEvent,
)
from certification_kernel.domain.report_chain import (
    ReportStatus,
    is_pl_approved,
    parse_report_status,
)
from certification_kernel.domain.roles import ADMIN_ROLES, Role, RoleDirectory
from certification_kernel.domain.schedule import ScheduleType
from certification_kernel.domain.status_registry import (
    Phase,
    ProjectStatus,
    is_terminal,
    parse_status,
    phase_of,
)
from certification_kernel.domain.transition_engine import require_transition
from certification_kernel.domain.workflow import Transition, require_notes
from certification_kernel.exceptions import (
    CertificationKernelError,
    PreconditionNotMetError,
    StaleTransitionError,
    UnauthorizedActorError,
    ValidationError,
)
from certification_kernel.logging_config import LogContext, get_logger
from certification_kernel.models.checklist_response import ChecklistResponse
from certification_kernel.models.inspection_report import InspectionReport
from certification_kernel.models.project import Project, TeamAssignment
from certification_kernel.models.schedule_event import ScheduleEvent
from certification_kernel.services.base import BaseService
from certification_kernel.services.checklist_service import ChecklistService
from certification_kernel.services.project_service import ProjectService
from certification_kernel.services.report_approval_service import (
    ReportApprovalChain,
    ReportStepResult,
)
from certification_kernel.services.schedule_service import ScheduleCoordinator
from certification_kernel.services.team_assignment_service import TeamAssignmentService

logger = get_logger("services.workflow_orchestrator")

T = TypeVar("T")

S = ProjectStatus


class OutcomeStatus(str, Enum):
    """How an applied request got there."""

    APPLIED = "applied"
    RETRIED = "retried"


@dataclass(frozen=True)
class TransitionOutcome:
    """Result of an orchestrated status change.

    ``project_transition`` is set when a report step also moved the
    project (e.g. project-lead approval sending it to head-consultant
    review).
    """

    status: OutcomeStatus
    entity_type: EntityType
    entity_id: UUID
    from_status: str | None
    to_status: str
    phase: Phase
    event_delivered: bool = True
    message: str | None = None
    project_transition: TransitionOutcome | None = None

    @property
    def is_success(self) -> bool:
        return self.status in (OutcomeStatus.APPLIED, OutcomeStatus.RETRIED)


class WorkflowOrchestrator(BaseService[Project]):
    """
    Coordinates the project lifecycle with its sub-workflows.

    Contract:
        Every public method either commits one consistent unit of work
        (when ``auto_commit``) and returns its outcome, or rolls back and
        raises a typed ``CertificationKernelError``.

    Non-goals:
        - Does NOT decide legality itself (transition engine, report chain).
        - Does NOT resolve identity (``RoleDirectory``).
        - Does NOT deliver notifications (``EventSink``).
    """

    def __init__(
        self,
        session: Session,
        role_directory: RoleDirectory,
        clock: Clock | None = None,
        event_sink: EventSink | None = None,
        checklist: ChecklistService | None = None,
        reports: ReportApprovalChain | None = None,
        schedules: ScheduleCoordinator | None = None,
        team: TeamAssignmentService | None = None,
        projects: ProjectService | None = None,
        auto_commit: bool = True,
        max_stale_retries: int = 1,
    ):
        super().__init__(session, clock)
        self._roles = role_directory
        self._sink = event_sink or NullEventSink()
        self._team = team or TeamAssignmentService(session, self.clock)
        self._projects = projects or ProjectService(session, self.clock)
        self._checklist = checklist or ChecklistService(session, self.clock, self._team)
        self._reports = reports or ReportApprovalChain(session, self.clock)
        self._schedules = schedules or ScheduleCoordinator(session, self.clock, self._team)
        self._auto_commit = auto_commit
        self._max_stale_retries = max_stale_retries

    # ------------------------------------------------------------------
    # Project lifecycle
    # ------------------------------------------------------------------

    def request_transition(
        self,
        project_id: UUID,
        target_status: ProjectStatus | str,
        actor_id: UUID,
        actor_role: Role | str,
        context: Mapping[str, Any] | None = None,
        expected_status: ProjectStatus | str | None = None,
        retry_stale: bool = False,
    ) -> TransitionOutcome:
        """Move a project to ``target_status``.

        ``context`` may carry ``report_id``, ``inspection_id`` and
        ``notes``.  With ``retry_stale`` a lost compare-and-set is re-read
        and re-decided once; every other refusal propagates unchanged.

        Raises:
            ProjectNotFoundError, UnauthorizedActorError,
            IllegalTransitionError, TerminalStateError, UnknownStatusError,
            PreconditionNotMetError, ValidationError, StaleTransitionError.
        """
        ctx = dict(context or {})

        def work() -> tuple[TransitionOutcome, list[WorkflowEvent]]:
            expected = expected_status
            attempts = 0
            while True:
                try:
                    project = self._projects.get(project_id)
                    outcome, event = self._transition_project(
                        project, target_status, actor_id, actor_role, ctx, expected
                    )
                    break
                except StaleTransitionError as exc:
                    if not retry_stale or attempts >= self._max_stale_retries:
                        raise
                    attempts += 1
                    logger.warning(
                        "stale_transition_retry",
                        extra={
                            "attempt": attempts,
                            "expected_status": exc.expected_status,
                            "actual_status": exc.actual_status,
                        },
                    )
                    if self._auto_commit:
                        self.session.rollback()
                    else:
                        self.session.expire_all()
                    expected = None
            if attempts:
                outcome = replace(outcome, status=OutcomeStatus.RETRIED)
            return outcome, [event]

        outcome, delivered = self._run("project_transition", project_id, actor_id, work)
        return replace(outcome, event_delivered=delivered)

    def open_project(
        self,
        name: str,
        application_type: str,
        client_id: UUID,
        actor_id: UUID,
        actor_role: Role | str = Role.ADMIN_LEAD,
        is_special_function: bool = False,
    ) -> Project:
        """Create a project in ``draft``.

        An admin lead who opens a project is recorded as its admin_lead
        team member.

        Raises:
            UnauthorizedActorError: actor is not an admin lead or superadmin.
        """

        def work() -> tuple[Project, list[WorkflowEvent]]:
            role = self._admin_role(actor_id, actor_role, None)
            project = self._projects.create(
                name=name,
                application_type=application_type,
                client_id=client_id,
                created_by=actor_id,
                is_special_function=is_special_function,
                creator_role=role,
            )
            if role is Role.ADMIN_LEAD:
                self._team.assign(project.id, actor_id, Role.ADMIN_LEAD, actor_id)
            event = self._event(
                EntityType.PROJECT, project.id, project.id,
                None, project.status, actor_id, "create",
            )
            return project, [event]

        project, _ = self._run("project_open", None, actor_id, work)
        return project

    # ------------------------------------------------------------------
    # Team management
    # ------------------------------------------------------------------

    def assign_team_member(
        self,
        project_id: UUID,
        user_id: UUID,
        role: Role | str,
        actor_id: UUID,
        actor_role: Role | str = Role.ADMIN_LEAD,
    ) -> TeamAssignment:
        """Assign a team role on a project (admin lead of that project)."""

        def work() -> tuple[TeamAssignment, list[WorkflowEvent]]:
            self._projects.get(project_id)
            self._admin_role(actor_id, actor_role, project_id)
            assignment = self._team.assign(project_id, user_id, role, actor_id)
            event = self._event(
                EntityType.TEAM_ASSIGNMENT, assignment.id, project_id,
                None, "assigned", actor_id, "assign",
                metadata={"user_id": str(user_id), "role": assignment.role},
            )
            return assignment, [event]

        assignment, _ = self._run("team_assignment", project_id, actor_id, work)
        return assignment

    def remove_team_member(
        self,
        project_id: UUID,
        user_id: UUID,
        role: Role | str,
        actor_id: UUID,
        actor_role: Role | str = Role.ADMIN_LEAD,
    ) -> None:
        """Remove a team role from a project (admin lead of that project)."""

        def work() -> tuple[None, list[WorkflowEvent]]:
            self._projects.get(project_id)
            self._admin_role(actor_id, actor_role, project_id)
            self._team.remove(project_id, user_id, role)
            event = self._event(
                EntityType.TEAM_ASSIGNMENT, user_id, project_id,
                "assigned", "removed", actor_id, "remove",
                metadata={"user_id": str(user_id), "role": Role(role).value},
            )
            return None, [event]

        self._run("team_removal", project_id, actor_id, work)

    # ------------------------------------------------------------------
    # Report chain
    # ------------------------------------------------------------------

    def draft_report(
        self,
        project_id: UUID,
        actor_id: UUID,
        title: str,
        inspection_id: UUID | None = None,
    ) -> InspectionReport:
        """Open a new report draft on an active project (drafter)."""

        def work() -> tuple[InspectionReport, list[WorkflowEvent]]:
            project = self._projects.get(project_id)
            self._authorize(actor_id, Role.DRAFTER, project.id)
            if is_terminal(project.status):
                raise PreconditionNotMetError(
                    "project_active", f"project is {project.status!r}"
                )
            if inspection_id is not None:
                inspection = self._schedules.get(inspection_id)
                if inspection.project_id != project.id:
                    raise ValidationError(
                        "inspection_id", f"event {inspection_id} belongs to another project"
                    )
            report = self._reports.create_draft(project.id, actor_id, title, inspection_id)
            event = self._event(
                EntityType.REPORT, report.id, project.id,
                None, report.status, actor_id, "create",
            )
            return report, [event]

        report, _ = self._run("report_create", project_id, actor_id, work)
        return report

    def submit_report(
        self,
        report_id: UUID,
        actor_id: UUID,
        expected_status: str | None = None,
    ) -> TransitionOutcome:
        """Drafter submits a report.

        Raises:
            PreconditionNotMetError: checklist items of the report's
                inspection (or of the project, for reports without one) are
                still in draft.
        """

        def step(report: InspectionReport) -> ReportStepResult:
            self._authorize(actor_id, Role.DRAFTER, report.project_id)
            drafts = self._checklist.draft_items(report.project_id, report.inspection_id)
            if drafts:
                raise PreconditionNotMetError(
                    "checklist_complete",
                    "checklist responses are still in draft",
                    blockers=[r.item_id for r in drafts],
                )
            return self._reports.submit(report.id, actor_id, expected_status)

        return self._report_operation("report_submit", report_id, actor_id, step)

    def verify_report(
        self,
        report_id: UUID,
        actor_id: UUID,
        feedback: str | None = None,
        expected_status: str | None = None,
    ) -> TransitionOutcome:
        """Admin-team verification of a submitted report."""

        def step(report: InspectionReport) -> ReportStepResult:
            self._authorize(actor_id, Role.ADMIN_TEAM, report.project_id)
            return self._reports.verify(report.id, actor_id, feedback, expected_status)

        return self._report_operation("report_verify", report_id, actor_id, step)

    def request_report_revision(
        self,
        report_id: UUID,
        actor_id: UUID,
        notes: str | None,
        expected_status: str | None = None,
    ) -> TransitionOutcome:
        """Admin team sends a submitted report back to the drafter."""

        def step(report: InspectionReport) -> ReportStepResult:
            self._authorize(actor_id, Role.ADMIN_TEAM, report.project_id)
            return self._reports.request_revision(report.id, actor_id, notes, expected_status)

        return self._report_operation("report_revision", report_id, actor_id, step)

    def review_report(
        self,
        report_id: UUID,
        actor_id: UUID,
        actor_role: Role | str,
        approve: bool,
        notes: str | None = None,
        expected_status: str | None = None,
    ) -> TransitionOutcome:
        """Project-lead or head-consultant review.

        Approval by the project lead moves the project from
        ``report_draft`` to ``head_consultant_review``; approval by the head
        consultant moves it on to ``client_review``; rejection by the head
        consultant returns it to ``report_draft``.  The project only moves
        when it is in the matching status, and both writes commit together.
        """

        def step(report: InspectionReport) -> ReportStepResult:
            role = self._authorize(actor_id, actor_role, report.project_id)
            if approve:
                return self._reports.approve(report.id, actor_id, role, notes, expected_status)
            return self._reports.reject(report.id, actor_id, role, notes, expected_status)

        def follow_up(result: ReportStepResult) -> tuple[ProjectStatus, Role] | None:
            if result.is_project_lead_approval:
                return S.HEAD_CONSULTANT_REVIEW, Role.PROJECT_LEAD
            if result.actor_role is Role.HEAD_CONSULTANT:
                if result.is_final_approval:
                    return S.CLIENT_REVIEW, Role.HEAD_CONSULTANT
                return S.REPORT_DRAFT, Role.HEAD_CONSULTANT
            return None

        return self._report_operation(
            "report_review", report_id, actor_id, step, follow_up, notes
        )

    # ------------------------------------------------------------------
    # Checklist
    # ------------------------------------------------------------------

    def record_checklist_response(
        self,
        inspection_id: UUID,
        item_id: str,
        actor_id: UUID,
        response: dict[str, Any] | None = None,
        notes: str | None = None,
    ) -> ChecklistResponse:
        """Create or edit the draft finding for one checklist item (inspector).

        A new row emits a ``checklist_response`` event into ``draft``; edits
        of an existing draft keep its status and emit nothing.

        Raises:
            PreconditionNotMetError: the inspection is completed or cancelled.
        """

        def work() -> tuple[ChecklistResponse, list[WorkflowEvent]]:
            row = self._checklist.save_draft(inspection_id, item_id, actor_id, response, notes)
            if row.version > 1:
                return row, []
            event = self._event(
                EntityType.CHECKLIST_RESPONSE, row.id, row.project_id,
                None, row.status, actor_id, "create",
                metadata={"item_id": row.item_id, "inspection_id": str(inspection_id)},
            )
            return row, [event]

        row, _ = self._run("checklist_record", None, actor_id, work, entity_id=inspection_id)
        return row

    def submit_checklist_response(
        self,
        response_id: UUID,
        actor_id: UUID,
        response: dict[str, Any] | None = None,
        notes: str | None = None,
    ) -> TransitionOutcome:
        return self._step_operation(
            "checklist_submit", EntityType.CHECKLIST_RESPONSE, response_id, actor_id,
            self._checklist.get, ChecklistAction.SUBMIT.value,
            lambda: self._checklist.submit(response_id, actor_id, response, notes),
        )

    def approve_checklist_response(self, response_id: UUID, actor_id: UUID) -> TransitionOutcome:
        return self._step_operation(
            "checklist_approve", EntityType.CHECKLIST_RESPONSE, response_id, actor_id,
            self._checklist.get, ChecklistAction.APPROVE.value,
            lambda: self._checklist.approve(response_id, actor_id),
        )

    def reject_checklist_response(
        self,
        response_id: UUID,
        actor_id: UUID,
        notes: str | None,
    ) -> TransitionOutcome:
        return self._step_operation(
            "checklist_reject", EntityType.CHECKLIST_RESPONSE, response_id, actor_id,
            self._checklist.get, ChecklistAction.REJECT.value,
            lambda: self._checklist.reject(response_id, actor_id, notes),
        )

    def reopen_checklist_response(self, response_id: UUID, actor_id: UUID) -> TransitionOutcome:
        """Return a submitted or rejected finding to draft.

        The project cannot enter client review again until it is
        resubmitted.
        """
        return self._step_operation(
            "checklist_reopen", EntityType.CHECKLIST_RESPONSE, response_id, actor_id,
            self._checklist.get, ChecklistAction.REOPEN.value,
            lambda: self._checklist.reopen(response_id, actor_id),
        )

    # ------------------------------------------------------------------
    # Schedule
    # ------------------------------------------------------------------

    def schedule_event(
        self,
        project_id: UUID,
        assignee_id: UUID,
        schedule_date: datetime,
        schedule_type: ScheduleType | str,
        actor_id: UUID,
        title: str | None = None,
        end_date: datetime | None = None,
        description: str | None = None,
    ) -> ScheduleEvent:
        """Put an inspection, meeting, deadline or verification on the calendar."""

        def work() -> tuple[ScheduleEvent, list[WorkflowEvent]]:
            created = self._schedules.create(
                project_id, assignee_id, schedule_date, schedule_type, actor_id,
                title=title, end_date=end_date, description=description,
            )
            event = self._event(
                EntityType.SCHEDULE_EVENT, created.id, project_id,
                None, created.status, actor_id, "create",
                metadata={
                    "schedule_type": created.schedule_type,
                    "assigned_to": str(assignee_id),
                },
            )
            return created, [event]

        created, _ = self._run("schedule_create", project_id, actor_id, work)
        return created

    def start_event(self, event_id: UUID, actor_id: UUID) -> TransitionOutcome:
        return self._step_operation(
            "schedule_start", EntityType.SCHEDULE_EVENT, event_id, actor_id,
            self._schedules.get, "start",
            lambda: self._schedules.start(event_id, actor_id),
        )

    def complete_event(
        self,
        event_id: UUID,
        actor_id: UUID,
        notes: str | None = None,
    ) -> TransitionOutcome:
        return self._step_operation(
            "schedule_complete", EntityType.SCHEDULE_EVENT, event_id, actor_id,
            self._schedules.get, "complete",
            lambda: self._schedules.complete(event_id, actor_id, notes),
        )

    def cancel_event(
        self,
        event_id: UUID,
        actor_id: UUID,
        notes: str | None = None,
    ) -> TransitionOutcome:
        return self._step_operation(
            "schedule_cancel", EntityType.SCHEDULE_EVENT, event_id, actor_id,
            self._schedules.get, "cancel",
            lambda: self._schedules.cancel(event_id, actor_id, notes),
        )

    def reschedule_event(
        self,
        event_id: UUID,
        actor_id: UUID,
        schedule_date: datetime,
        end_date: datetime | None = None,
    ) -> ScheduleEvent:
        """Move a scheduled event's window; no status change, no event."""

        def work() -> tuple[ScheduleEvent, list[WorkflowEvent]]:
            return self._schedules.reschedule(event_id, actor_id, schedule_date, end_date), []

        moved, _ = self._run("schedule_reschedule", None, actor_id, work, entity_id=event_id)
        return moved

    def delete_event(self, event_id: UUID, actor_id: UUID) -> None:
        """Remove an event that has no recorded findings (creator only)."""

        def work() -> tuple[None, list[WorkflowEvent]]:
            self._schedules.delete(event_id, actor_id)
            return None, []

        self._run("schedule_delete", None, actor_id, work, entity_id=event_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _run(
        self,
        operation: str,
        project_id: UUID | None,
        actor_id: UUID,
        work: Callable[[], tuple[T, list[WorkflowEvent]]],
        entity_id: UUID | None = None,
    ) -> tuple[T, bool]:
        """Run ``work`` as one unit: commit, then emit its events."""
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=actor_id,
            project_id=project_id,
            entity_id=entity_id,
        ):
            logger.info(f"{operation}_started")
            t0 = time.monotonic()
            try:
                result, events = work()
                if self._auto_commit:
                    self.session.commit()
            except CertificationKernelError as exc:
                if self._auto_commit:
                    self.session.rollback()
                logger.warning(
                    f"{operation}_refused",
                    extra={
                        "error_code": exc.code,
                        "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                    },
                )
                raise
            except Exception:
                if self._auto_commit:
                    self.session.rollback()
                logger.error(
                    f"{operation}_failed",
                    extra={"duration_ms": round((time.monotonic() - t0) * 1000, 2)},
                    exc_info=True,
                )
                raise

            delivered = all([self._emit(event) for event in events])
            logger.info(
                f"{operation}_completed",
                extra={
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                    "event_delivered": delivered,
                },
            )
            return result, delivered

    def _report_operation(
        self,
        operation: str,
        report_id: UUID,
        actor_id: UUID,
        step: Callable[[InspectionReport], ReportStepResult],
        follow_up: Callable[[ReportStepResult], tuple[ProjectStatus, Role] | None] | None = None,
        notes: str | None = None,
    ) -> TransitionOutcome:

        def work() -> tuple[TransitionOutcome, list[WorkflowEvent]]:
            report = self._reports.get(report_id)
            project_id = report.project_id
            with LogContext.bind(project_id=project_id):
                return self._report_step(report, actor_id, step, follow_up, notes)

        outcome, delivered = self._run(operation, None, actor_id, work, entity_id=report_id)
        if outcome.project_transition is not None:
            outcome = replace(
                outcome,
                project_transition=replace(outcome.project_transition, event_delivered=delivered),
            )
        return replace(outcome, event_delivered=delivered)

    def _report_step(
        self,
        report: InspectionReport,
        actor_id: UUID,
        step: Callable[[InspectionReport], ReportStepResult],
        follow_up: Callable[[ReportStepResult], tuple[ProjectStatus, Role] | None] | None,
        notes: str | None,
    ) -> tuple[TransitionOutcome, list[WorkflowEvent]]:
        project_id = report.project_id
        result = step(report)
        events = [
            self._event(
                EntityType.REPORT, result.report_id, result.project_id,
                result.from_status, result.to_status, actor_id, result.action.value,
                metadata={"actor_role": result.actor_role.value},
            )
        ]
        project = self._projects.get(project_id)
        project_outcome = None

        target = follow_up(result) if follow_up is not None else None
        if target is not None and self._triggers(project, target[0]):
            project_outcome, project_event = self._transition_project(
                project, target[0], actor_id, target[1],
                {"report_id": result.report_id, "notes": notes}, None,
            )
            events.append(project_event)

        outcome = TransitionOutcome(
            status=OutcomeStatus.APPLIED,
            entity_type=EntityType.REPORT,
            entity_id=result.report_id,
            from_status=result.from_status,
            to_status=result.to_status,
            phase=phase_of(project.status),
            message=f"report {result.from_status} -> {result.to_status}",
            project_transition=project_outcome,
        )
        return outcome, events

    def _step_operation(
        self,
        operation: str,
        entity_type: EntityType,
        entity_id: UUID,
        actor_id: UUID,
        load: Callable[[UUID], Any],
        action: str,
        apply: Callable[[], Any],
    ) -> TransitionOutcome:
        """One checklist or schedule status step as a committed unit."""

        def work() -> tuple[TransitionOutcome, list[WorkflowEvent]]:
            entity = load(entity_id)
            from_status = entity.status
            with LogContext.bind(project_id=entity.project_id):
                apply()
            project = self._projects.get(entity.project_id)
            event = self._event(
                entity_type, entity.id, entity.project_id,
                from_status, entity.status, actor_id, action,
            )
            outcome = TransitionOutcome(
                status=OutcomeStatus.APPLIED,
                entity_type=entity_type,
                entity_id=entity.id,
                from_status=from_status,
                to_status=entity.status,
                phase=phase_of(project.status),
                message=f"{entity_type.value} {from_status} -> {entity.status}",
            )
            return outcome, [event]

        outcome, delivered = self._run(operation, None, actor_id, work, entity_id=entity_id)
        return replace(outcome, event_delivered=delivered)

    @staticmethod
    def _triggers(project: Project, target: ProjectStatus) -> bool:
        source = {
            S.HEAD_CONSULTANT_REVIEW: S.REPORT_DRAFT,
            S.CLIENT_REVIEW: S.HEAD_CONSULTANT_REVIEW,
            S.REPORT_DRAFT: S.HEAD_CONSULTANT_REVIEW,
        }[target]
        return project.status == source.value

    def _transition_project(
        self,
        project: Project,
        target_status: ProjectStatus | str,
        actor_id: UUID,
        actor_role: Role | str,
        context: Mapping[str, Any],
        expected_status: ProjectStatus | str | None,
    ) -> tuple[TransitionOutcome, WorkflowEvent]:
        """Steps 2-5 against an already loaded project; no commit."""
        target = parse_status(target_status)
        current = parse_status(project.status)
        if expected_status is not None:
            expected = parse_status(expected_status)
            if expected is not current:
                raise StaleTransitionError(
                    EntityType.PROJECT.value, str(project.id), expected.value, current.value
                )

        role = self._authorize(actor_id, actor_role, project.id)
        edge = require_transition(current, target, role)
        notes = self._notes_for(edge, context)
        self._check_preconditions(project, edge, context)

        now = self._compare_and_set(
            project, EntityType.PROJECT.value,
            expected_status=current.value,
            new_status=target.value,
            actor_id=actor_id,
        )
        self._record_transition(
            entity_type=EntityType.PROJECT.value,
            entity_id=project.id,
            project_id=project.id,
            from_status=current.value,
            to_status=target.value,
            action=edge.action,
            actor_id=actor_id,
            actor_role=role.value,
            occurred_at=now,
            notes=notes,
        )

        phase = phase_of(target)
        logger.info(
            "project_transition_applied",
            extra={
                "from_status": current.value,
                "to_status": target.value,
                "action": edge.action,
                "actor_role": role.value,
                "phase": phase.token,
                "version": project.version,
            },
        )
        event = self._event(
            EntityType.PROJECT, project.id, project.id,
            current.value, target.value, actor_id, edge.action,
            metadata={"phase": phase.token, "actor_role": role.value},
        )
        outcome = TransitionOutcome(
            status=OutcomeStatus.APPLIED,
            entity_type=EntityType.PROJECT,
            entity_id=project.id,
            from_status=current.value,
            to_status=target.value,
            phase=phase,
            message=f"{current.value} -> {target.value}",
        )
        return outcome, event

    @staticmethod
    def _notes_for(edge: Transition, context: Mapping[str, Any]) -> str | None:
        notes = context.get("notes")
        if edge.requires_notes:
            return require_notes(notes)
        return notes.strip() if isinstance(notes, str) and notes.strip() else None

    def _check_preconditions(
        self,
        project: Project,
        edge: Transition,
        context: Mapping[str, Any],
    ) -> None:
        """Read-only cross-workflow checks for entering ``edge.to_state``.

        Raises:
            PreconditionNotMetError: naming the missing step and blockers.
        """
        target = ProjectStatus(edge.to_state)
        if edge.kind.moves_backward:
            return

        if target is S.REPORT_DRAFT:
            self._require_checklist_complete(project, context.get("inspection_id"))
            if not self._schedules.has_completed_required_inspections(project.id):
                pending = self._schedules.pending_inspections(project.id)
                raise PreconditionNotMetError(
                    "inspections_completed",
                    "every scheduled inspection must be completed",
                    blockers=[str(e.id) for e in pending],
                )

        elif target is S.HEAD_CONSULTANT_REVIEW:
            report = self._report_for(project, context)
            if not is_pl_approved(report.status):
                raise PreconditionNotMetError(
                    "report_approved_by_project_lead",
                    f"report {report.id} is {report.status!r}",
                    blockers=[str(report.id)],
                )

        elif target is S.CLIENT_REVIEW:
            report = self._report_for(project, context)
            self._require_checklist_complete(project, None)
            inspection_id = context.get("inspection_id") or report.inspection_id
            if inspection_id is not None:
                self._require_checklist_complete(project, inspection_id)
            self._require_report_completed(report)

        elif target is S.GOVERNMENT_SUBMITTED:
            self._require_report_completed(self._report_for(project, context))

        elif target is S.SLF_ISSUED:
            if not project.issues_slf:
                raise PreconditionNotMetError(
                    "application_includes_slf",
                    f"application type {project.application_type!r} does not issue an SLF",
                )

    def _require_checklist_complete(self, project: Project, inspection_id: UUID | None) -> None:
        if self._checklist.is_complete(project.id, inspection_id):
            return
        drafts = self._checklist.draft_items(project.id, inspection_id)
        detail = (
            "checklist responses are still in draft" if drafts
            else "no checklist responses have been recorded"
        )
        raise PreconditionNotMetError(
            "checklist_complete", detail, blockers=[r.item_id for r in drafts]
        )

    @staticmethod
    def _require_report_completed(report: InspectionReport) -> None:
        if parse_report_status(report.status) is not ReportStatus.COMPLETED:
            raise PreconditionNotMetError(
                "report_completed",
                f"report {report.id} is {report.status!r}",
                blockers=[str(report.id)],
            )

    def _report_for(self, project: Project, context: Mapping[str, Any]) -> InspectionReport:
        """The report named in ``context``, else the project's latest one."""
        report_id = context.get("report_id")
        if report_id is not None:
            report = self._reports.get(report_id)
            if report.project_id != project.id:
                raise ValidationError("report_id", f"report {report_id} belongs to another project")
            return report
        reports = self._reports.reports_for(project.id)
        if not reports:
            raise PreconditionNotMetError("report_exists", "the project has no inspection report")
        return reports[-1]

    def _authorize(self, actor_id: UUID, actor_role: Role | str, project_id: UUID | None) -> Role:
        try:
            role = Role(actor_role)
        except ValueError:
            raise UnauthorizedActorError(str(actor_id), str(actor_role), str(project_id)) from None
        if not self._roles.holds_role(actor_id, role, project_id):
            raise UnauthorizedActorError(
                str(actor_id), role.value, str(project_id) if project_id else None
            )
        return role

    def _admin_role(self, actor_id: UUID, actor_role: Role | str, project_id: UUID | None) -> Role:
        role = self._authorize(actor_id, actor_role, project_id)
        if role not in ADMIN_ROLES:
            raise UnauthorizedActorError(
                str(actor_id), "|".join(sorted(r.value for r in ADMIN_ROLES)),
                str(project_id) if project_id else None,
            )
        return role

    def _event(
        self,
        entity_type: EntityType,
        entity_id: UUID,
        project_id: UUID,
        from_status: str | None,
        to_status: str,
        actor_id: UUID,
        action: str,
        metadata: dict[str, Any] | None = None,
    ) -> WorkflowEvent:
        return WorkflowEvent(
            entity_type=entity_type,
            entity_id=entity_id,
            from_status=from_status,
            to_status=to_status,
            actor_id=actor_id,
            timestamp=self.clock.now(),
            project_id=project_id,
            action=action,
            metadata=metadata or {},
        )

    def _emit(self, event: WorkflowEvent) -> bool:
        try:
            self._sink.emit(event)
        except Exception:
            logger.warning(
                "workflow_event_delivery_failed",
                extra={
                    "entity_type": event.entity_type.value,
                    "entity_id": str(event.entity_id),
                    "to_status": event.to_status,
                },
                exc_info=True,
            )
            return False
        return True
