"""
Concurrency tests for compare-and-set status writes.

Covers:
- Two reviewers approving the same report: one wins, the other gets
  StaleTransitionError and exactly one approval row is recorded
- A project move racing another writer: refused as stale by default,
  re-read and re-decided when the caller opts into retry_stale
- Retry never hides a business-rule refusal

Test infrastructure:
- File-backed SQLite; each actor gets its own session, so one side holds
  a cached status that the other side has already changed
"""

import pytest

from certification_kernel.domain.roles import Role
from certification_kernel.domain.status_registry import ProjectStatus
from certification_kernel.exceptions import IllegalTransitionError, StaleTransitionError
from certification_kernel.models.project import Project
from certification_kernel.services.report_approval_service import ReportApprovalChain
from certification_kernel.services.workflow_orchestrator import (
    OutcomeStatus,
    WorkflowOrchestrator,
)
from certification_services.role_directory import ProjectRoleDirectory


def _orchestrator(session, identity, clock, **kwargs):
    return WorkflowOrchestrator(
        session, ProjectRoleDirectory(session, identity), clock=clock, **kwargs,
    )


@pytest.fixture
def seeded(file_session_factory, identity, deterministic_clock, actors):
    """A staffed project and a verified report, committed."""
    with file_session_factory() as setup:
        orchestrator = _orchestrator(setup, identity, deterministic_clock)
        project = orchestrator.open_project(
            "Hotel Melati", "slf", actors.client, actors.admin_lead,
        )
        for user_id, role in (
            (actors.project_lead, Role.PROJECT_LEAD),
            (actors.drafter, Role.DRAFTER),
            (actors.admin_team, Role.ADMIN_TEAM),
        ):
            orchestrator.assign_team_member(project.id, user_id, role, actors.admin_lead)
        chain = ReportApprovalChain(setup, deterministic_clock)
        report = chain.create_draft(project.id, actors.drafter, "Laporan")
        chain.submit(report.id, actors.drafter)
        chain.verify(report.id, actors.admin_team)
        setup.commit()
        return project.id, report.id


@pytest.fixture
def two_sessions(file_session_factory):
    first, second = file_session_factory(), file_session_factory()
    yield first, second
    first.close()
    second.close()


class TestConcurrentReportApproval:
    def test_second_approval_is_stale(
        self, seeded, two_sessions, identity, deterministic_clock, actors,
    ):
        _, report_id = seeded
        session_a, session_b = two_sessions
        orch_a = _orchestrator(session_a, identity, deterministic_clock)
        orch_b = _orchestrator(session_b, identity, deterministic_clock)

        # Both reviewers have read the verified report
        assert ReportApprovalChain(session_a).get(report_id).status == "verified_by_admin_team"
        assert ReportApprovalChain(session_b).get(report_id).status == "verified_by_admin_team"

        won = orch_b.review_report(report_id, actors.project_lead, Role.PROJECT_LEAD, approve=True)
        assert won.to_status == "approved_by_pl"

        with pytest.raises(StaleTransitionError) as exc_info:
            orch_a.review_report(report_id, actors.project_lead, Role.PROJECT_LEAD, approve=True)
        assert exc_info.value.actual_status == "approved_by_pl"

        history = ReportApprovalChain(session_a).history(report_id)
        assert [h.to_status for h in history].count("approved_by_pl") == 1


class TestStaleProjectTransition:
    @pytest.fixture
    def raced(self, seeded, two_sessions, identity, deterministic_clock, actors):
        """Session A holds the project at draft; session B submits it."""
        project_id, _ = seeded
        session_a, session_b = two_sessions
        assert session_a.get(Project, project_id).status == "draft"
        _orchestrator(session_b, identity, deterministic_clock).request_transition(
            project_id, ProjectStatus.SUBMITTED, actors.admin_lead, Role.ADMIN_LEAD,
        )
        return project_id, session_a

    def test_refused_without_retry(self, raced, identity, deterministic_clock, actors):
        project_id, session_a = raced
        orchestrator = _orchestrator(session_a, identity, deterministic_clock)
        with pytest.raises(StaleTransitionError) as exc_info:
            orchestrator.request_transition(
                project_id, ProjectStatus.CANCELLED, actors.admin_lead, Role.ADMIN_LEAD,
            )
        assert exc_info.value.expected_status == "draft"
        assert exc_info.value.actual_status == "submitted"

    def test_retry_redecides_against_fresh_status(
        self, raced, identity, deterministic_clock, actors, captured_logs,
    ):
        project_id, session_a = raced
        orchestrator = _orchestrator(session_a, identity, deterministic_clock)
        outcome = orchestrator.request_transition(
            project_id, ProjectStatus.CANCELLED, actors.admin_lead, Role.ADMIN_LEAD,
            retry_stale=True,
        )
        assert outcome.status is OutcomeStatus.RETRIED
        assert outcome.from_status == "submitted"
        assert any(r["message"] == "stale_transition_retry" for r in captured_logs())

    def test_retry_surfaces_rule_refusal(self, raced, identity, deterministic_clock, actors):
        project_id, session_a = raced
        orchestrator = _orchestrator(session_a, identity, deterministic_clock)
        # draft -> submitted is legal on the cached row but not after B's write
        with pytest.raises(IllegalTransitionError):
            orchestrator.request_transition(
                project_id, ProjectStatus.SUBMITTED, actors.admin_lead, Role.ADMIN_LEAD,
                retry_stale=True,
            )

    def test_retry_budget_zero(self, raced, identity, deterministic_clock, actors):
        project_id, session_a = raced
        orchestrator = _orchestrator(
            session_a, identity, deterministic_clock, max_stale_retries=0,
        )
        with pytest.raises(StaleTransitionError):
            orchestrator.request_transition(
                project_id, ProjectStatus.CANCELLED, actors.admin_lead, Role.ADMIN_LEAD,
                retry_stale=True,
            )
