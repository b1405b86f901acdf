"""
Tests for the report approval chain rules (``certification_kernel.domain.report_chain``).

Covers:
- The happy path draft -> submitted -> verified -> approved_by_pl -> completed
- Every rejection landing on ``draft``
- Repeated steps are stale; steps whose prerequisite was never reached are illegal
- Legacy rejected tokens accepted on read and resubmittable
"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from certification_kernel.domain.report_chain import (
    CHAIN_ORDER,
    REPORT_WORKFLOW,
    ReportAction,
    ReportStatus,
    is_pl_approved,
    parse_report_status,
    rank,
    resolve_step,
)
from certification_kernel.domain.roles import Role
from certification_kernel.domain.workflow import EdgeKind
from certification_kernel.exceptions import (
    IllegalTransitionError,
    StaleTransitionError,
    UnknownStatusError,
)

R = ReportStatus
A = ReportAction
REPORT_ID = "rpt-1"


class TestHappyPath:
    @pytest.mark.parametrize(
        "current, action, role, target",
        [
            (R.DRAFT, A.SUBMIT, Role.DRAFTER, R.SUBMITTED),
            (R.SUBMITTED, A.VERIFY, Role.ADMIN_TEAM, R.VERIFIED_BY_ADMIN_TEAM),
            (R.VERIFIED_BY_ADMIN_TEAM, A.APPROVE, Role.PROJECT_LEAD, R.APPROVED_BY_PL),
            (R.APPROVED_BY_PL, A.APPROVE, Role.HEAD_CONSULTANT, R.COMPLETED),
        ],
    )
    def test_forward_step(self, current, action, role, target):
        step = resolve_step(REPORT_ID, current, action, role)
        assert step.to_state == target.value
        assert step.kind is EdgeKind.FORWARD

    def test_head_consultant_is_last_step(self):
        assert REPORT_WORKFLOW.edges_from(R.COMPLETED.value) == ()


class TestRejections:
    """Every rejection goes back to draft and needs notes."""

    @pytest.mark.parametrize(
        "current, action, role",
        [
            (R.SUBMITTED, A.REQUEST_REVISION, Role.ADMIN_TEAM),
            (R.VERIFIED_BY_ADMIN_TEAM, A.REJECT, Role.PROJECT_LEAD),
            (R.APPROVED_BY_PL, A.REJECT, Role.HEAD_CONSULTANT),
        ],
    )
    def test_rejection_returns_to_draft(self, current, action, role):
        step = resolve_step(REPORT_ID, current, action, role)
        assert step.to_state == R.DRAFT.value
        assert step.requires_notes

    def test_no_rejection_lands_on_submitted(self):
        for t in REPORT_WORKFLOW.transitions:
            if t.kind is EdgeKind.REJECTION:
                assert t.to_state != R.SUBMITTED.value


class TestOrdering:
    """Scenario B: skipped prerequisites and repeated steps."""

    def test_project_lead_cannot_approve_draft(self):
        with pytest.raises(IllegalTransitionError) as exc_info:
            resolve_step(REPORT_ID, R.DRAFT, A.APPROVE, Role.PROJECT_LEAD)
        assert exc_info.value.entity_type == "report"
        assert "verified_by_admin_team" in exc_info.value.reason

    def test_project_lead_cannot_approve_submitted(self):
        with pytest.raises(IllegalTransitionError):
            resolve_step(REPORT_ID, R.SUBMITTED, A.APPROVE, Role.PROJECT_LEAD)

    def test_repeated_project_lead_approval_is_stale(self):
        with pytest.raises(StaleTransitionError) as exc_info:
            resolve_step(REPORT_ID, R.APPROVED_BY_PL, A.APPROVE, Role.PROJECT_LEAD)
        assert exc_info.value.expected_status == "verified_by_admin_team"
        assert exc_info.value.actual_status == "approved_by_pl"

    def test_second_submit_is_stale(self):
        with pytest.raises(StaleTransitionError):
            resolve_step(REPORT_ID, R.SUBMITTED, A.SUBMIT, Role.DRAFTER)

    def test_verify_after_revision_request_is_illegal(self):
        with pytest.raises(IllegalTransitionError):
            resolve_step(REPORT_ID, R.DRAFT, A.VERIFY, Role.ADMIN_TEAM)

    def test_second_rejection_is_stale(self):
        with pytest.raises(StaleTransitionError):
            resolve_step(REPORT_ID, R.DRAFT, A.REJECT, Role.PROJECT_LEAD)

    def test_role_that_never_performs_action(self):
        with pytest.raises(IllegalTransitionError) as exc_info:
            resolve_step(REPORT_ID, R.DRAFT, A.SUBMIT, Role.HEAD_CONSULTANT)
        assert "does not submit" in exc_info.value.reason

    def test_expected_status_mismatch_is_stale(self):
        with pytest.raises(StaleTransitionError):
            resolve_step(
                REPORT_ID, R.VERIFIED_BY_ADMIN_TEAM, A.APPROVE, Role.PROJECT_LEAD,
                expected_status=R.SUBMITTED,
            )

    @given(st.sampled_from(list(R)), st.sampled_from(list(A)), st.sampled_from(list(Role)))
    def test_allowed_steps_never_skip_the_chain(self, current, action, role):
        try:
            step = resolve_step(REPORT_ID, current, action, role)
        except (IllegalTransitionError, StaleTransitionError):
            return
        if step.kind is EdgeKind.FORWARD:
            assert rank(step.to_state) == rank(step.from_state) + 1
        else:
            assert step.to_state == R.DRAFT.value


class TestLegacyTokens:
    @pytest.mark.parametrize("legacy", [R.REJECTED_BY_PL, R.REJECTED])
    def test_legacy_token_resubmittable(self, legacy):
        step = resolve_step(REPORT_ID, legacy, A.SUBMIT, Role.DRAFTER)
        assert step.to_state == R.SUBMITTED.value

    @pytest.mark.parametrize("legacy", ["rejected_by_pl", "rejected"])
    def test_legacy_token_ranks_with_draft(self, legacy):
        assert rank(legacy) == 0

    def test_unknown_report_token(self):
        with pytest.raises(UnknownStatusError) as exc_info:
            parse_report_status("approved_by_hc")
        assert exc_info.value.entity_type == "report"


class TestProjectLeadApproval:
    @pytest.mark.parametrize(
        "status, expected",
        [
            (R.DRAFT, False),
            (R.SUBMITTED, False),
            (R.VERIFIED_BY_ADMIN_TEAM, False),
            (R.APPROVED_BY_PL, True),
            (R.COMPLETED, True),
        ],
    )
    def test_is_pl_approved(self, status, expected):
        assert is_pl_approved(status) is expected

    def test_chain_order_is_ranked(self):
        assert [rank(s) for s in CHAIN_ORDER] == list(range(len(CHAIN_ORDER)))
