"""
Pytest fixtures for the certification workflow test suite.

Provides:
- A fresh database per test (schema created and dropped around each test)
- Structured-log capture and a deterministic clock
- Seeded actors, identity provider, role directory and an orchestrator
- ``WorkflowDriver`` for walking a project along the happy path through
  the orchestrator

Environment Variables:
- DATABASE_URL: SQLAlchemy URL.  Defaults to in-memory SQLite; set it to a
  PostgreSQL URL (with the ``postgres`` extra installed) to run the suite
  against PostgreSQL.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import timedelta
from io import StringIO
from uuid import UUID, uuid4

import pytest

from certification_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from certification_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from certification_kernel.domain.clock import DeterministicClock
from certification_kernel.domain.events import WorkflowEvent
from certification_kernel.domain.roles import Role
from certification_kernel.domain.schedule import ScheduleType
from certification_kernel.domain.status_registry import ProjectStatus
from certification_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from certification_kernel.services.checklist_service import ChecklistService
from certification_kernel.services.report_approval_service import ReportApprovalChain
from certification_kernel.services.schedule_service import ScheduleCoordinator
from certification_kernel.services.team_assignment_service import TeamAssignmentService
from certification_kernel.services.workflow_orchestrator import WorkflowOrchestrator
from certification_services.role_directory import (
    ProjectRoleDirectory,
    StaticIdentityProvider,
)

DEFAULT_DATABASE_URL = "sqlite://"


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture certification_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, orchestrator):
            orchestrator.request_transition(...)
            logs = captured_logs()
            assert any(r["message"] == "project_transition_applied" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("certification_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def db_engine():
    """Fresh schema for every test; immutability listeners registered."""
    eng = init_engine_from_url(get_database_url(), echo=False)
    drop_tables()
    create_tables()
    register_immutability_listeners()
    yield eng
    unregister_immutability_listeners()
    drop_tables()
    reset_engine()


@pytest.fixture
def session(db_engine):
    sess = get_session()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def file_session_factory(tmp_path):
    """File-backed SQLite with independent connections per session.

    Used by concurrency scenarios where two callers must not share an
    identity map or a connection.
    """
    init_engine_from_url(f"sqlite:///{tmp_path / 'certification.db'}")
    create_tables()
    register_immutability_listeners()
    yield get_session_factory()
    unregister_immutability_listeners()
    reset_engine()


@pytest.fixture
def deterministic_clock():
    return DeterministicClock()


# =============================================================================
# Actors and wiring
# =============================================================================


@dataclass(frozen=True)
class Actors:
    admin_lead: UUID = field(default_factory=uuid4)
    project_lead: UUID = field(default_factory=uuid4)
    inspector: UUID = field(default_factory=uuid4)
    drafter: UUID = field(default_factory=uuid4)
    admin_team: UUID = field(default_factory=uuid4)
    head_consultant: UUID = field(default_factory=uuid4)
    client: UUID = field(default_factory=uuid4)
    superadmin: UUID = field(default_factory=uuid4)
    outsider: UUID = field(default_factory=uuid4)


class RecordingSink:
    """EventSink that keeps every event it receives."""

    def __init__(self):
        self.events: list[WorkflowEvent] = []

    def emit(self, event: WorkflowEvent) -> None:
        self.events.append(event)

    def for_entity(self, entity_id: UUID) -> list[WorkflowEvent]:
        return [e for e in self.events if e.entity_id == entity_id]


class FailingSink:
    def emit(self, event: WorkflowEvent) -> None:
        raise RuntimeError("notification channel down")


@pytest.fixture
def actors() -> Actors:
    return Actors()


@pytest.fixture
def identity(actors) -> StaticIdentityProvider:
    return StaticIdentityProvider({
        actors.admin_lead: [Role.ADMIN_LEAD],
        actors.head_consultant: [Role.HEAD_CONSULTANT],
        actors.superadmin: [Role.SUPERADMIN],
    })


@pytest.fixture
def role_directory(session, identity) -> ProjectRoleDirectory:
    return ProjectRoleDirectory(session, identity)


@pytest.fixture
def event_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def failing_sink() -> FailingSink:
    return FailingSink()


@pytest.fixture
def team(session, deterministic_clock) -> TeamAssignmentService:
    return TeamAssignmentService(session, deterministic_clock)


@pytest.fixture
def checklist(session, deterministic_clock, team) -> ChecklistService:
    return ChecklistService(session, deterministic_clock, team)


@pytest.fixture
def reports(session, deterministic_clock) -> ReportApprovalChain:
    return ReportApprovalChain(session, deterministic_clock)


@pytest.fixture
def schedules(session, deterministic_clock, team) -> ScheduleCoordinator:
    return ScheduleCoordinator(session, deterministic_clock, team)


@pytest.fixture
def orchestrator(
    session, role_directory, deterministic_clock, event_sink,
    checklist, reports, schedules, team,
) -> WorkflowOrchestrator:
    return WorkflowOrchestrator(
        session,
        role_directory,
        clock=deterministic_clock,
        event_sink=event_sink,
        checklist=checklist,
        reports=reports,
        schedules=schedules,
        team=team,
    )


@pytest.fixture
def staffed_project(orchestrator, actors):
    """Factory: a draft project with a full team assigned."""

    def _open(application_type: str = "slf", name: str = "Gedung Serbaguna"):
        created = orchestrator.open_project(
            name=name,
            application_type=application_type,
            client_id=actors.client,
            actor_id=actors.admin_lead,
        )
        for user_id, role in (
            (actors.project_lead, Role.PROJECT_LEAD),
            (actors.inspector, Role.INSPECTOR),
            (actors.drafter, Role.DRAFTER),
            (actors.admin_team, Role.ADMIN_TEAM),
        ):
            orchestrator.assign_team_member(created.id, user_id, role, actors.admin_lead)
        return created

    return _open


@pytest.fixture
def project(staffed_project):
    """A draft SLF project with a full team assigned."""
    return staffed_project()


# =============================================================================
# Happy-path driver
# =============================================================================


class WorkflowDriver:
    """Walks a project forward one phase at a time through the orchestrator."""

    def __init__(self, orchestrator, actors, clock, project):
        self.orchestrator = orchestrator
        self.actors = actors
        self.clock = clock
        self.project = project
        self.inspection = None
        self.report = None

    def move(self, target: ProjectStatus, actor_id: UUID, role: Role, **context):
        return self.orchestrator.request_transition(
            self.project.id, target, actor_id, role, context=context or None,
        )

    def to_project_lead_review(self):
        self.move(ProjectStatus.SUBMITTED, self.actors.admin_lead, Role.ADMIN_LEAD)
        self.move(ProjectStatus.PROJECT_LEAD_REVIEW, self.actors.project_lead, Role.PROJECT_LEAD)

    def schedule_inspection(self, title: str = "Site inspection"):
        return self.orchestrator.schedule_event(
            project_id=self.project.id,
            assignee_id=self.actors.inspector,
            schedule_date=self.clock.now() + timedelta(days=1),
            schedule_type=ScheduleType.INSPECTION,
            actor_id=self.actors.project_lead,
            title=title,
        )

    def to_inspection_in_progress(self):
        self.to_project_lead_review()
        self.move(ProjectStatus.INSPECTION_SCHEDULED, self.actors.project_lead, Role.PROJECT_LEAD)
        self.inspection = self.schedule_inspection()
        self.move(ProjectStatus.INSPECTION_IN_PROGRESS, self.actors.inspector, Role.INSPECTOR)

    def record_checklist(self, *item_ids: str, submit: bool = True, inspection=None):
        inspection = inspection or self.inspection
        rows = []
        for item_id in item_ids:
            row = self.orchestrator.record_checklist_response(
                inspection.id, item_id, self.actors.inspector,
                response={"condition": "good"},
            )
            if submit:
                self.orchestrator.submit_checklist_response(row.id, self.actors.inspector)
            rows.append(row)
        return rows

    def finish_inspection(self, inspection=None):
        inspection = inspection or self.inspection
        self.orchestrator.start_event(inspection.id, self.actors.inspector)
        self.orchestrator.complete_event(inspection.id, self.actors.inspector)

    def to_report_draft(self):
        self.to_inspection_in_progress()
        self.record_checklist("structure-01", "fire-02")
        self.finish_inspection()
        self.move(ProjectStatus.REPORT_DRAFT, self.actors.inspector, Role.INSPECTOR)

    def draft_and_verify_report(self):
        self.report = self.orchestrator.draft_report(
            self.project.id, self.actors.drafter, "Laporan Pemeriksaan", self.inspection.id,
        )
        self.orchestrator.submit_report(self.report.id, self.actors.drafter)
        self.orchestrator.verify_report(self.report.id, self.actors.admin_team)
        return self.report

    def to_head_consultant_review(self):
        self.to_report_draft()
        self.draft_and_verify_report()
        self.orchestrator.review_report(
            self.report.id, self.actors.project_lead, Role.PROJECT_LEAD, approve=True,
        )

    def to_client_review(self):
        self.to_head_consultant_review()
        self.orchestrator.review_report(
            self.report.id, self.actors.head_consultant, Role.HEAD_CONSULTANT, approve=True,
        )

    def to_government_submitted(self):
        self.to_client_review()
        self.move(ProjectStatus.GOVERNMENT_SUBMITTED, self.actors.admin_lead, Role.ADMIN_LEAD)


@pytest.fixture
def make_driver(orchestrator, actors, deterministic_clock):
    def _make(project):
        return WorkflowDriver(
            orchestrator, actors, deterministic_clock, project,
        )

    return _make


@pytest.fixture
def driver(make_driver, project):
    return make_driver(project)
