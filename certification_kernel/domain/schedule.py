"""
Schedule event rules (``certification_kernel.domain.schedule``).

Each event has its own four-state machine, independent of the project::

    scheduled -> in_progress -> completed
    scheduled | in_progress -> cancelled

Which team role an assignee must hold depends on the event type.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Mapping

from certification_kernel.domain.roles import TEAM_ROLES, Role
from certification_kernel.domain.status_registry import parse_token
from certification_kernel.exceptions import (
    IllegalTransitionError,
    StaleTransitionError,
    TerminalStateError,
    ValidationError,
)


class ScheduleStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ScheduleType(str, Enum):
    INSPECTION = "inspection"
    MEETING = "meeting"
    DEADLINE = "deadline"
    DOCUMENT_VERIFICATION = "document_verification"


SCHEDULE_TRANSITIONS: dict[ScheduleStatus, frozenset[ScheduleStatus]] = {
    ScheduleStatus.SCHEDULED: frozenset({
        ScheduleStatus.IN_PROGRESS,
        ScheduleStatus.CANCELLED,
    }),
    ScheduleStatus.IN_PROGRESS: frozenset({
        ScheduleStatus.COMPLETED,
        ScheduleStatus.CANCELLED,
    }),
    ScheduleStatus.COMPLETED: frozenset(),
    ScheduleStatus.CANCELLED: frozenset(),
}

TERMINAL_SCHEDULE_STATUSES: frozenset[ScheduleStatus] = frozenset({
    ScheduleStatus.COMPLETED,
    ScheduleStatus.CANCELLED,
})

_ORDER: dict[ScheduleStatus, int] = {
    ScheduleStatus.SCHEDULED: 0,
    ScheduleStatus.IN_PROGRESS: 1,
    ScheduleStatus.COMPLETED: 2,
}

DEFAULT_ASSIGNEE_ROLES: dict[ScheduleType, frozenset[Role]] = {
    ScheduleType.INSPECTION: frozenset({Role.INSPECTOR}),
    ScheduleType.DOCUMENT_VERIFICATION: frozenset({Role.ADMIN_TEAM}),
    ScheduleType.MEETING: TEAM_ROLES,
    ScheduleType.DEADLINE: TEAM_ROLES,
}

# Team roles allowed to put events on a project's calendar
SCHEDULER_ROLES: frozenset[Role] = frozenset({
    Role.PROJECT_LEAD,
    Role.ADMIN_LEAD,
    Role.ADMIN_TEAM,
})


def parse_schedule_status(token: ScheduleStatus | str) -> ScheduleStatus:
    return parse_token(ScheduleStatus, token, "schedule_event")


def parse_schedule_type(token: ScheduleType | str) -> ScheduleType:
    try:
        return ScheduleType(token)
    except ValueError:
        raise ValidationError("schedule_type", f"unknown event type {token!r}") from None


def required_assignee_roles(
    schedule_type: ScheduleType | str,
    overrides: Mapping[ScheduleType, frozenset[Role]] | None = None,
) -> frozenset[Role]:
    kind = parse_schedule_type(schedule_type)
    table = overrides if overrides is not None else DEFAULT_ASSIGNEE_ROLES
    return table.get(kind, DEFAULT_ASSIGNEE_ROLES[kind])


def validate_window(start: datetime, end: datetime | None) -> None:
    """``end`` must not precede ``start`` when both are supplied."""
    if end is not None and end < start:
        raise ValidationError(
            "end_date",
            f"end {end.isoformat()} is before start {start.isoformat()}",
        )


def check_schedule_transition(
    event_id: str,
    current_status: ScheduleStatus | str,
    target_status: ScheduleStatus | str,
) -> ScheduleStatus:
    """Validate a schedule status move and return the parsed target.

    Raises:
        StaleTransitionError: the event already reached ``target_status``
            (or moved past it).
        TerminalStateError: the event is completed or cancelled.
        IllegalTransitionError: any other move outside the state machine.
    """
    current = parse_schedule_status(current_status)
    target = parse_schedule_status(target_status)

    if target in SCHEDULE_TRANSITIONS[current]:
        return target
    if current is target or (
        current in _ORDER and target in _ORDER and _ORDER[current] > _ORDER[target]
    ):
        raise StaleTransitionError("schedule_event", event_id, _previous(target), current.value)
    if current in TERMINAL_SCHEDULE_STATUSES:
        raise TerminalStateError(current.value, entity_type="schedule_event")
    raise IllegalTransitionError(
        current.value, target.value,
        "schedule events move scheduled -> in_progress -> completed",
        entity_type="schedule_event",
    )


def _previous(target: ScheduleStatus) -> str:
    for status, targets in SCHEDULE_TRANSITIONS.items():
        if target in targets:
            return status.value
    return target.value
