"""
certification_services.bootstrap -- wire the kernel from configuration.

Responsibility:
    Translates a ``CertificationConfig`` into kernel calls and constructor
    arguments.  This is the only place where ``certification_config`` and
    ``certification_kernel`` meet.

Usage:
    config = get_active_config()
    init_database(config)
    with session_scope() as session:
        orchestrator = build_orchestrator(session, config, identity)
"""

from __future__ import annotations

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from certification_config import CertificationConfig
from certification_kernel.db.engine import create_tables, init_engine_from_url
from certification_kernel.db.immutability import register_immutability_listeners
from certification_kernel.domain.clock import Clock
from certification_kernel.domain.events import EventSink
from certification_kernel.domain.roles import TEAM_ROLES, Role, parse_role
from certification_kernel.domain.schedule import ScheduleType, parse_schedule_type
from certification_kernel.exceptions import ValidationError
from certification_kernel.logging_config import configure_logging, get_logger
from certification_kernel.services.schedule_service import ScheduleCoordinator
from certification_kernel.services.team_assignment_service import TeamAssignmentService
from certification_kernel.services.workflow_orchestrator import WorkflowOrchestrator
from certification_services.event_dispatch import LoggingEventSink
from certification_services.role_directory import IdentityProvider, ProjectRoleDirectory

logger = get_logger("services.bootstrap")


def assignee_roles_from(config: CertificationConfig) -> dict[ScheduleType, frozenset[Role]]:
    """Schedule assignee compatibility from configuration tokens.

    Raises:
        ValueError: unknown schedule type, unknown role, or a non-team role.
    """
    table: dict[ScheduleType, frozenset[Role]] = {}
    for type_token, role_tokens in config.schedule.assignee_roles.items():
        try:
            schedule_type = parse_schedule_type(type_token)
        except ValidationError as exc:
            raise ValueError(f"schedule.assignee_roles: {exc.reason}") from None
        roles = frozenset(parse_role(r) for r in role_tokens)
        outside = roles - TEAM_ROLES
        if outside:
            raise ValueError(
                f"schedule.assignee_roles.{type_token}: not team roles: "
                f"{', '.join(sorted(r.value for r in outside))}"
            )
        table[schedule_type] = roles
    return table


def init_database(config: CertificationConfig, create_schema: bool = True) -> Engine:
    """Configure logging, create the engine and (optionally) the schema."""
    configure_logging(level=config.logging.level)
    db = config.database
    engine = init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
    )
    register_immutability_listeners()
    if create_schema:
        create_tables()
    logger.info(
        "database_initialized",
        extra={"config_id": config.config_id, "schema_created": create_schema},
    )
    return engine


def build_orchestrator(
    session: Session,
    config: CertificationConfig,
    identity: IdentityProvider,
    event_sink: EventSink | None = None,
    clock: Clock | None = None,
) -> WorkflowOrchestrator:
    """A ``WorkflowOrchestrator`` bound to ``session`` and configured by ``config``."""
    team = TeamAssignmentService(session, clock)
    schedules = ScheduleCoordinator(
        session, clock, team, assignee_roles=assignee_roles_from(config)
    )
    return WorkflowOrchestrator(
        session,
        ProjectRoleDirectory(session, identity),
        clock=clock,
        event_sink=event_sink or LoggingEventSink(),
        schedules=schedules,
        team=team,
        auto_commit=config.workflow.auto_commit,
        max_stale_retries=config.workflow.stale_retry_limit,
    )
