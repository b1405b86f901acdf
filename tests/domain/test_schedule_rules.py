"""
Tests for schedule event rules (``certification_kernel.domain.schedule``).

Covers:
- scheduled -> in_progress -> completed, and cancellation from either
- Terminal events refuse moves; repeated moves are stale
- Assignee role table per event type, with overrides
- Date window validation
"""

from datetime import datetime, timedelta, timezone

import pytest

from certification_kernel.domain.roles import TEAM_ROLES, Role
from certification_kernel.domain.schedule import (
    DEFAULT_ASSIGNEE_ROLES,
    ScheduleStatus,
    ScheduleType,
    check_schedule_transition,
    parse_schedule_type,
    required_assignee_roles,
    validate_window,
)
from certification_kernel.exceptions import (
    IllegalTransitionError,
    StaleTransitionError,
    TerminalStateError,
    UnknownStatusError,
    ValidationError,
)

S = ScheduleStatus


class TestScheduleTransitions:
    @pytest.mark.parametrize(
        "current, target",
        [
            (S.SCHEDULED, S.IN_PROGRESS),
            (S.IN_PROGRESS, S.COMPLETED),
            (S.SCHEDULED, S.CANCELLED),
            (S.IN_PROGRESS, S.CANCELLED),
        ],
    )
    def test_allowed(self, current, target):
        assert check_schedule_transition("evt-1", current, target) is target

    def test_skip_to_completed_is_illegal(self):
        with pytest.raises(IllegalTransitionError) as exc_info:
            check_schedule_transition("evt-1", S.SCHEDULED, S.COMPLETED)
        assert exc_info.value.entity_type == "schedule_event"

    def test_repeated_start_is_stale(self):
        with pytest.raises(StaleTransitionError) as exc_info:
            check_schedule_transition("evt-1", S.IN_PROGRESS, S.IN_PROGRESS)
        assert exc_info.value.expected_status == "scheduled"

    def test_start_after_completion_is_stale(self):
        with pytest.raises(StaleTransitionError):
            check_schedule_transition("evt-1", S.COMPLETED, S.IN_PROGRESS)

    def test_completed_refuses_cancel(self):
        with pytest.raises(TerminalStateError):
            check_schedule_transition("evt-1", S.COMPLETED, S.CANCELLED)

    def test_repeated_cancel_is_stale(self):
        with pytest.raises(StaleTransitionError):
            check_schedule_transition("evt-1", S.CANCELLED, S.CANCELLED)

    def test_cancelled_cannot_restart(self):
        with pytest.raises(TerminalStateError):
            check_schedule_transition("evt-1", S.CANCELLED, S.IN_PROGRESS)

    def test_unknown_token(self):
        with pytest.raises(UnknownStatusError) as exc_info:
            check_schedule_transition("evt-1", "postponed", S.CANCELLED)
        assert exc_info.value.entity_type == "schedule_event"


class TestAssigneeRoles:
    def test_inspection_needs_inspector(self):
        assert required_assignee_roles(ScheduleType.INSPECTION) == frozenset({Role.INSPECTOR})

    def test_document_verification_needs_admin_team(self):
        assert required_assignee_roles("document_verification") == frozenset({Role.ADMIN_TEAM})

    @pytest.mark.parametrize("kind", [ScheduleType.MEETING, ScheduleType.DEADLINE])
    def test_meetings_and_deadlines_take_any_team_role(self, kind):
        assert required_assignee_roles(kind) == TEAM_ROLES

    def test_override_table(self):
        overrides = {ScheduleType.INSPECTION: frozenset({Role.INSPECTOR, Role.PROJECT_LEAD})}
        assert Role.PROJECT_LEAD in required_assignee_roles(ScheduleType.INSPECTION, overrides)

    def test_override_falls_back_for_missing_types(self):
        overrides = {ScheduleType.INSPECTION: frozenset({Role.INSPECTOR})}
        assert (
            required_assignee_roles(ScheduleType.MEETING, overrides)
            == DEFAULT_ASSIGNEE_ROLES[ScheduleType.MEETING]
        )

    def test_unknown_type(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_schedule_type("site_visit")
        assert exc_info.value.field == "schedule_type"


class TestWindow:
    start = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)

    def test_open_ended(self):
        validate_window(self.start, None)

    def test_same_instant(self):
        validate_window(self.start, self.start)

    def test_end_before_start(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_window(self.start, self.start - timedelta(hours=1))
        assert exc_info.value.field == "end_date"
