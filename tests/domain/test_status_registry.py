"""
Tests for the Status Registry (``certification_kernel.domain.status_registry``).

Covers:
- The phase table for every lifecycle status
- ``cancelled`` as phase 0 and absorbing
- Unknown tokens raising ``UnknownStatusError`` (never defaulted)
- Phase monotonicity over the canonical order
"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from certification_kernel.domain.checklist import ChecklistStatus
from certification_kernel.domain.status_registry import (
    INITIAL_STATUS,
    Phase,
    ProjectStatus,
    canonical_order,
    is_terminal,
    known_statuses,
    ordinal,
    parse_status,
    parse_token,
    phase_of,
    statuses_in_phase,
)
from certification_kernel.exceptions import UnknownStatusError


class TestPhaseTable:
    """phase_of over the whole registry."""

    @pytest.mark.parametrize(
        "status, phase",
        [
            ("draft", Phase.INTAKE),
            ("submitted", Phase.INTAKE),
            ("project_lead_review", Phase.INTAKE),
            ("inspection_scheduled", Phase.FIELD_WORK),
            ("inspection_in_progress", Phase.FIELD_WORK),
            ("report_draft", Phase.REPORTING),
            ("head_consultant_review", Phase.REPORTING),
            ("client_review", Phase.CLIENT_SIGN_OFF),
            ("government_submitted", Phase.CLOSEOUT),
            ("slf_issued", Phase.CLOSEOUT),
            ("completed", Phase.CLOSEOUT),
        ],
    )
    def test_phase_of_lifecycle_status(self, status, phase):
        """Every lifecycle status maps to its documented phase."""
        assert phase_of(status) is phase

    def test_cancelled_is_phase_zero(self):
        """cancelled sits outside the table as phase 0."""
        assert phase_of(ProjectStatus.CANCELLED) is Phase.CANCELLED
        assert int(phase_of("cancelled")) == 0

    def test_cancelled_is_terminal(self):
        assert is_terminal("cancelled")

    def test_phase_tokens_are_stable_machine_names(self):
        assert [p.token for p in Phase] == [
            "cancelled", "intake", "field_work", "reporting", "client_sign_off", "closeout",
        ]

    def test_statuses_in_phase(self):
        assert statuses_in_phase(Phase.REPORTING) == (
            ProjectStatus.REPORT_DRAFT,
            ProjectStatus.HEAD_CONSULTANT_REVIEW,
        )

    def test_initial_status_is_draft(self):
        assert INITIAL_STATUS is ProjectStatus.DRAFT


class TestUnknownTokens:
    """Unknown tokens are refused, never silently defaulted."""

    @pytest.mark.parametrize("token", ["", "Draft", "approved", "phase_1", "reviewed"])
    def test_phase_of_unknown_token_raises(self, token):
        with pytest.raises(UnknownStatusError) as exc_info:
            phase_of(token)
        assert exc_info.value.status == token
        assert exc_info.value.code == "UNKNOWN_STATUS"

    def test_parse_status_unknown_raises(self):
        with pytest.raises(UnknownStatusError):
            parse_status("under_review")

    def test_parse_token_names_entity_type(self):
        """The shared parser reports which workflow rejected the token."""
        with pytest.raises(UnknownStatusError) as exc_info:
            parse_token(ChecklistStatus, "approved", "checklist_response")
        assert exc_info.value.entity_type == "checklist_response"

    @given(st.text().filter(lambda t: t not in known_statuses()))
    def test_any_non_registry_text_raises(self, token):
        with pytest.raises(UnknownStatusError):
            phase_of(token)


class TestCanonicalOrder:
    """Phase numbers never decrease along the canonical order."""

    def test_canonical_order_excludes_cancelled(self):
        assert ProjectStatus.CANCELLED not in canonical_order()
        assert len(canonical_order()) == len(ProjectStatus) - 1

    def test_phases_monotonic(self):
        phases = [phase_of(s) for s in canonical_order()]
        assert phases == sorted(phases)

    def test_ordinal_of_cancelled(self):
        assert ordinal("cancelled") == -1

    @given(
        st.sampled_from(canonical_order()),
        st.sampled_from(canonical_order()),
    )
    def test_ordinal_order_implies_phase_order(self, a, b):
        if ordinal(a) <= ordinal(b):
            assert phase_of(a) <= phase_of(b)
