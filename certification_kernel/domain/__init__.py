"""
Pure domain layer.

Status registry, transition rules, and sub-workflow rules with NO
dependencies on:
- ORM (SQLAlchemy)
- Database
- Wall-clock time
- I/O
"""

from certification_kernel.domain.checklist import ChecklistAction, ChecklistStatus
from certification_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from certification_kernel.domain.events import (
    EntityType,
    EventSink,
    NullEventSink,
    WorkflowEvent,
)
from certification_kernel.domain.report_chain import ReportAction, ReportStatus
from certification_kernel.domain.roles import Role, RoleDirectory
from certification_kernel.domain.schedule import ScheduleStatus, ScheduleType
from certification_kernel.domain.status_registry import (
    Phase,
    ProjectStatus,
    is_terminal,
    parse_status,
    phase_of,
)
from certification_kernel.domain.transition_engine import (
    PROJECT_WORKFLOW,
    available_transitions,
    can_transition,
    require_transition,
)
from certification_kernel.domain.workflow import (
    EdgeKind,
    Transition,
    TransitionDecision,
    Workflow,
)

__all__ = [
    "ChecklistAction",
    "ChecklistStatus",
    "Clock",
    "DeterministicClock",
    "EdgeKind",
    "EntityType",
    "EventSink",
    "NullEventSink",
    "PROJECT_WORKFLOW",
    "Phase",
    "ProjectStatus",
    "ReportAction",
    "ReportStatus",
    "Role",
    "RoleDirectory",
    "ScheduleStatus",
    "ScheduleType",
    "SystemClock",
    "Transition",
    "TransitionDecision",
    "Workflow",
    "WorkflowEvent",
    "available_transitions",
    "can_transition",
    "is_terminal",
    "parse_status",
    "phase_of",
    "require_transition",
]
