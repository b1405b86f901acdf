"""
Report approval chain rules (``certification_kernel.domain.report_chain``).

Responsibility
--------------
The strictly sequential sign-off on an inspection report::

    draft --submit--> submitted --verify--> verified_by_admin_team
          --approve (project lead)--> approved_by_pl
          --approve (head consultant)--> completed

Every rejection (admin-team revision request, project-lead reject,
head-consultant reject) sends the report back to ``draft``, never to
``submitted``; the drafter must resubmit.

Architecture position
---------------------
**Kernel domain layer** -- pure.  Knows nothing about projects.

Invariants enforced
-------------------
* ``verified_by_admin_team`` is unreachable without ``submitted``;
  ``approved_by_pl`` is unreachable without ``verified_by_admin_team``.
* Repeating a step that was already applied is a stale request
  (``StaleTransitionError``); a step whose prerequisite was never reached is
  illegal (``IllegalTransitionError``).
* ``rejected_by_pl`` and ``rejected`` are legacy tokens.  Nothing writes
  them; a stored report carrying one is treated as awaiting resubmission.
"""

from __future__ import annotations

from enum import Enum

from certification_kernel.domain.roles import Role
from certification_kernel.domain.status_registry import parse_token
from certification_kernel.domain.workflow import EdgeKind, Transition, Workflow
from certification_kernel.exceptions import IllegalTransitionError, StaleTransitionError


class ReportStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    VERIFIED_BY_ADMIN_TEAM = "verified_by_admin_team"
    APPROVED_BY_PL = "approved_by_pl"
    COMPLETED = "completed"
    # Legacy tokens, accepted on read only
    REJECTED_BY_PL = "rejected_by_pl"
    REJECTED = "rejected"


class ReportAction(str, Enum):
    SUBMIT = "submit"
    VERIFY = "verify"
    REQUEST_REVISION = "request_revision"
    APPROVE = "approve"
    REJECT = "reject"


LEGACY_REJECTED_STATUSES: frozenset[ReportStatus] = frozenset({
    ReportStatus.REJECTED_BY_PL,
    ReportStatus.REJECTED,
})

CHAIN_ORDER: tuple[ReportStatus, ...] = (
    ReportStatus.DRAFT,
    ReportStatus.SUBMITTED,
    ReportStatus.VERIFIED_BY_ADMIN_TEAM,
    ReportStatus.APPROVED_BY_PL,
    ReportStatus.COMPLETED,
)

# Statuses at which a project-lead approval has happened
PL_APPROVED_STATUSES: frozenset[ReportStatus] = frozenset({
    ReportStatus.APPROVED_BY_PL,
    ReportStatus.COMPLETED,
})

R = ReportStatus


def _step(
    from_status: ReportStatus,
    to_status: ReportStatus,
    action: ReportAction,
    role: Role,
    kind: EdgeKind = EdgeKind.FORWARD,
) -> Transition:
    return Transition(
        from_state=from_status.value,
        to_state=to_status.value,
        action=action.value,
        roles=frozenset({role}),
        kind=kind,
        requires_notes=kind is EdgeKind.REJECTION,
    )


REPORT_WORKFLOW = Workflow(
    name="inspection_report",
    initial_state=R.DRAFT.value,
    states=tuple(s.value for s in R),
    transitions=(
        _step(R.DRAFT, R.SUBMITTED, ReportAction.SUBMIT, Role.DRAFTER),
        _step(R.REJECTED_BY_PL, R.SUBMITTED, ReportAction.SUBMIT, Role.DRAFTER),
        _step(R.REJECTED, R.SUBMITTED, ReportAction.SUBMIT, Role.DRAFTER),
        _step(R.SUBMITTED, R.VERIFIED_BY_ADMIN_TEAM, ReportAction.VERIFY, Role.ADMIN_TEAM),
        _step(
            R.SUBMITTED, R.DRAFT, ReportAction.REQUEST_REVISION, Role.ADMIN_TEAM,
            kind=EdgeKind.REJECTION,
        ),
        _step(R.VERIFIED_BY_ADMIN_TEAM, R.APPROVED_BY_PL, ReportAction.APPROVE, Role.PROJECT_LEAD),
        _step(
            R.VERIFIED_BY_ADMIN_TEAM, R.DRAFT, ReportAction.REJECT, Role.PROJECT_LEAD,
            kind=EdgeKind.REJECTION,
        ),
        _step(R.APPROVED_BY_PL, R.COMPLETED, ReportAction.APPROVE, Role.HEAD_CONSULTANT),
        _step(
            R.APPROVED_BY_PL, R.DRAFT, ReportAction.REJECT, Role.HEAD_CONSULTANT,
            kind=EdgeKind.REJECTION,
        ),
    ),
    terminal_states=frozenset({R.COMPLETED.value}),
)


def parse_report_status(token: ReportStatus | str) -> ReportStatus:
    return parse_token(ReportStatus, token, "report")


def rank(status: ReportStatus | str) -> int:
    """Position in the chain; legacy rejected tokens rank with ``draft``."""
    parsed = parse_report_status(status)
    if parsed in LEGACY_REJECTED_STATUSES:
        return 0
    return CHAIN_ORDER.index(parsed)


def is_pl_approved(status: ReportStatus | str) -> bool:
    return parse_report_status(status) in PL_APPROVED_STATUSES


def resolve_step(
    report_id: str,
    current_status: ReportStatus | str,
    action: ReportAction | str,
    actor_role: Role | str,
    expected_status: ReportStatus | str | None = None,
) -> Transition:
    """Find the chain step ``actor_role`` is asking for, or raise.

    Raises:
        UnknownStatusError: unknown report status token.
        StaleTransitionError: the report moved since the caller read it, or
            the step was already applied.
        IllegalTransitionError: the role never performs this action, or the
            step's prerequisite status was never reached.
    """
    current = parse_report_status(current_status)
    action = ReportAction(action)
    role = Role(actor_role)

    if expected_status is not None:
        expected = parse_report_status(expected_status)
        if expected is not current:
            raise StaleTransitionError("report", report_id, expected.value, current.value)

    step = REPORT_WORKFLOW.find_action(current.value, action.value)
    if step is not None and step.permits(role):
        return step

    role_steps = [
        t for t in REPORT_WORKFLOW.transitions
        if t.action == action.value and t.permits(role)
    ]
    if not role_steps:
        raise IllegalTransitionError(
            current.value,
            action.value,
            f"role {role.value!r} does not {action.value.replace('_', ' ')} reports",
            entity_type="report",
            actor_role=role.value,
        )

    primary = role_steps[0]
    if primary.kind is EdgeKind.REJECTION:
        already_moved = rank(current) > rank(primary.from_state) or rank(current) == 0
    else:
        already_moved = rank(current) >= rank(primary.to_state)

    if already_moved:
        raise StaleTransitionError(
            "report", report_id, primary.from_state, current.value
        )
    raise IllegalTransitionError(
        current.value,
        primary.to_state,
        f"{action.value.replace('_', ' ')} by {role.value} requires status "
        f"{primary.from_state!r}",
        entity_type="report",
        actor_role=role.value,
    )
