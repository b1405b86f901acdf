"""
ReportApprovalChain -- sequential sign-off on inspection reports.

Responsibility:
    Applies the chain steps (submit, verify, request_revision, approve,
    reject) to a report with compare-and-set writes, stores who signed off
    at each step, and keeps the latest rejection notes for the drafter.

Architecture position:
    Kernel > Services.  Role-gated by the ``actor_role`` argument; whether
    the actor really holds that role on the project is checked by the
    orchestrator before it calls in.  Has no knowledge of Project state and
    never writes it, so report approvals are testable in isolation.

Invariants enforced:
    - Strict order: submitted -> verified_by_admin_team -> approved_by_pl
      -> completed.  No step can be skipped.
    - Rejections need non-empty notes and return the report to ``draft``.
    - Repeating an applied step raises ``StaleTransitionError``.
"""

from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy import select

from certification_kernel.domain.events import EntityType
from certification_kernel.domain.report_chain import (
    ReportAction,
    ReportStatus,
    resolve_step,
)
from certification_kernel.domain.roles import Role
from certification_kernel.domain.workflow import EdgeKind, require_notes
from certification_kernel.exceptions import ReportNotFoundError, ValidationError
from certification_kernel.logging_config import get_logger
from certification_kernel.models.inspection_report import InspectionReport
from certification_kernel.services.base import BaseService

logger = get_logger("services.report_approval")

_ENTITY = EntityType.REPORT.value


@dataclass(frozen=True)
class ReportStepResult:
    """An applied chain step."""

    report_id: UUID
    project_id: UUID
    action: ReportAction
    actor_role: Role
    from_status: str
    to_status: str
    version: int
    notes: str | None = None

    @property
    def is_rejection(self) -> bool:
        return self.to_status == ReportStatus.DRAFT.value

    @property
    def is_project_lead_approval(self) -> bool:
        return (
            self.actor_role is Role.PROJECT_LEAD
            and self.to_status == ReportStatus.APPROVED_BY_PL.value
        )

    @property
    def is_final_approval(self) -> bool:
        return self.to_status == ReportStatus.COMPLETED.value


class ReportApprovalChain(BaseService[InspectionReport]):
    """The admin-team -> project-lead -> head-consultant chain."""

    def create_draft(
        self,
        project_id: UUID,
        drafter_id: UUID,
        title: str,
        inspection_id: UUID | None = None,
    ) -> InspectionReport:
        if not title or not title.strip():
            raise ValidationError("title", "must be a non-empty string")
        now = self.clock.now()
        report = InspectionReport(
            project_id=project_id,
            inspection_id=inspection_id,
            drafter_id=drafter_id,
            title=title.strip(),
            status=ReportStatus.DRAFT.value,
            version=1,
            status_changed_at=now,
            created_by_id=drafter_id,
        )
        self.session.add(report)
        self.session.flush()
        self._record_transition(
            entity_type=_ENTITY,
            entity_id=report.id,
            project_id=project_id,
            from_status=None,
            to_status=report.status,
            action="create",
            actor_id=drafter_id,
            actor_role=Role.DRAFTER.value,
            occurred_at=now,
        )
        logger.info(
            "report_draft_created",
            extra={"report_id": str(report.id), "project_id": str(project_id)},
        )
        return report

    # ------------------------------------------------------------------
    # Chain steps
    # ------------------------------------------------------------------

    def submit(
        self,
        report_id: UUID,
        actor_id: UUID,
        expected_status: str | None = None,
    ) -> ReportStepResult:
        """Drafter submits (or resubmits) for admin-team verification."""
        return self._step(
            report_id, ReportAction.SUBMIT, actor_id, Role.DRAFTER, expected_status,
            lambda now: {"submitted_at": now},
        )

    def verify(
        self,
        report_id: UUID,
        actor_id: UUID,
        feedback: str | None = None,
        expected_status: str | None = None,
    ) -> ReportStepResult:
        """Admin-team verification; ``feedback`` is optional."""
        cleaned = feedback.strip() if feedback and feedback.strip() else None
        return self._step(
            report_id, ReportAction.VERIFY, actor_id, Role.ADMIN_TEAM, expected_status,
            lambda now: {
                "verified_by_admin_team_id": actor_id,
                "verified_at": now,
                "admin_team_feedback": cleaned,
            },
            notes=cleaned,
        )

    def request_revision(
        self,
        report_id: UUID,
        actor_id: UUID,
        notes: str | None,
        expected_status: str | None = None,
    ) -> ReportStepResult:
        """Admin team sends a submitted report back to the drafter."""
        cleaned = require_notes(notes)
        return self._step(
            report_id, ReportAction.REQUEST_REVISION, actor_id, Role.ADMIN_TEAM,
            expected_status,
            lambda now: {
                "admin_team_feedback": cleaned,
                **self._rejection_values(cleaned, Role.ADMIN_TEAM, now),
            },
            notes=cleaned,
        )

    def approve(
        self,
        report_id: UUID,
        actor_id: UUID,
        actor_role: Role | str,
        notes: str | None = None,
        expected_status: str | None = None,
    ) -> ReportStepResult:
        """Project-lead or head-consultant approval, depending on ``actor_role``."""
        role = self._reviewer_role(actor_role)
        cleaned = notes.strip() if notes and notes.strip() else None
        return self._step(
            report_id, ReportAction.APPROVE, actor_id, role, expected_status,
            lambda now: self._review_values(role, actor_id, now, cleaned),
            notes=cleaned,
        )

    def reject(
        self,
        report_id: UUID,
        actor_id: UUID,
        actor_role: Role | str,
        notes: str | None,
        expected_status: str | None = None,
    ) -> ReportStepResult:
        """Project-lead or head-consultant rejection back to ``draft``.

        Raises:
            ValidationError: blank notes.
        """
        role = self._reviewer_role(actor_role)
        cleaned = require_notes(notes)
        return self._step(
            report_id, ReportAction.REJECT, actor_id, role, expected_status,
            lambda now: {
                **self._review_values(role, actor_id, now, cleaned),
                **self._rejection_values(cleaned, role, now),
            },
            notes=cleaned,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, report_id: UUID) -> InspectionReport:
        report = self.session.get(InspectionReport, report_id)
        if report is None:
            raise ReportNotFoundError(str(report_id))
        return report

    def reports_for(self, project_id: UUID) -> list[InspectionReport]:
        return list(
            self.session.scalars(
                select(InspectionReport)
                .where(InspectionReport.project_id == project_id)
                .order_by(InspectionReport.created_at)
            )
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _reviewer_role(actor_role: Role | str) -> Role:
        role = Role(actor_role)
        if role not in (Role.PROJECT_LEAD, Role.HEAD_CONSULTANT):
            raise ValidationError(
                "actor_role", f"{role.value!r} does not review reports"
            )
        return role

    @staticmethod
    def _review_values(role: Role, actor_id: UUID, now, notes: str | None) -> dict[str, Any]:
        if role is Role.PROJECT_LEAD:
            return {
                "project_lead_id": actor_id,
                "project_lead_reviewed_at": now,
                "project_lead_notes": notes,
            }
        return {
            "head_consultant_id": actor_id,
            "head_consultant_reviewed_at": now,
            "head_consultant_notes": notes,
        }

    @staticmethod
    def _rejection_values(notes: str, role: Role, now) -> dict[str, Any]:
        return {
            "rejection_notes": notes,
            "rejected_by_role": role.value,
            "rejected_at": now,
        }

    def _step(
        self,
        report_id: UUID,
        action: ReportAction,
        actor_id: UUID,
        role: Role,
        expected_status: str | None,
        values_for,
        notes: str | None = None,
    ) -> ReportStepResult:
        report = self.get(report_id)
        step = resolve_step(str(report.id), report.status, action, role, expected_status)
        from_status = report.status

        # Field values share the CAS timestamp
        now = self.clock.now()
        self._compare_and_set(
            report, _ENTITY,
            expected_status=from_status,
            new_status=step.to_state,
            actor_id=actor_id,
            **values_for(now),
        )
        self._record_transition(
            entity_type=_ENTITY,
            entity_id=report.id,
            project_id=report.project_id,
            from_status=from_status,
            to_status=step.to_state,
            action=step.action,
            actor_id=actor_id,
            actor_role=role.value,
            occurred_at=now,
            notes=notes,
        )

        log = logger.warning if step.kind is EdgeKind.REJECTION else logger.info
        log(
            "report_step_applied",
            extra={
                "report_id": str(report.id),
                "project_id": str(report.project_id),
                "action": step.action,
                "actor_role": role.value,
                "from_status": from_status,
                "to_status": step.to_state,
                "version": report.version,
            },
        )

        return ReportStepResult(
            report_id=report.id,
            project_id=report.project_id,
            action=action,
            actor_role=role,
            from_status=from_status,
            to_status=step.to_state,
            version=report.version,
            notes=notes,
        )
