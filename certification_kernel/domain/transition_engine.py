"""
Transition Engine (``certification_kernel.domain.transition_engine``).

Responsibility
--------------
Decides, from (current status, requested status, actor role) alone, whether
a project may move and which edge the move uses.  It never looks at
sub-workflow state (that is the orchestrator's precondition step) and it
never writes anything.

Architecture position
---------------------
**Kernel domain layer** -- pure functions.  ZERO I/O.

Invariants enforced
-------------------
* Forward-only, one step at a time.  The only backward edges are the
  designated rejection/return edges in ``PROJECT_WORKFLOW``.
* No phase skipping, for any role.  There is no override.
* ``cancelled`` is reachable from every non-terminal status by an admin lead
  or project lead.
* Terminal statuses accept nothing (``TerminalStateError``).
* Unknown tokens raise ``UnknownStatusError``; they are never defaulted.
"""

from __future__ import annotations

from certification_kernel.domain.roles import Role
from certification_kernel.domain.status_registry import (
    TERMINAL_STATUSES,
    ProjectStatus,
    ordinal,
    parse_status,
    phase_of,
)
from certification_kernel.domain.workflow import (
    EdgeKind,
    Transition,
    TransitionDecision,
    Workflow,
)
from certification_kernel.exceptions import (
    IllegalTransitionError,
    TerminalStateError,
)

S = ProjectStatus

CANCELLING_ROLES: frozenset[Role] = frozenset({Role.ADMIN_LEAD, Role.PROJECT_LEAD})


def _edge(
    from_status: ProjectStatus,
    to_status: ProjectStatus,
    action: str,
    *roles: Role,
    kind: EdgeKind = EdgeKind.FORWARD,
) -> Transition:
    return Transition(
        from_state=from_status.value,
        to_state=to_status.value,
        action=action,
        roles=frozenset(roles),
        kind=kind,
        requires_notes=kind.moves_backward,
    )


_LIFECYCLE_EDGES: tuple[Transition, ...] = (
    _edge(S.DRAFT, S.SUBMITTED, "submit", Role.ADMIN_LEAD),
    _edge(S.SUBMITTED, S.PROJECT_LEAD_REVIEW, "start_review", Role.PROJECT_LEAD),
    _edge(
        S.PROJECT_LEAD_REVIEW, S.SUBMITTED, "return_to_intake",
        Role.PROJECT_LEAD, kind=EdgeKind.RETURN,
    ),
    _edge(
        S.PROJECT_LEAD_REVIEW, S.INSPECTION_SCHEDULED, "schedule_inspection",
        Role.PROJECT_LEAD, Role.ADMIN_LEAD,
    ),
    _edge(
        S.INSPECTION_SCHEDULED, S.INSPECTION_IN_PROGRESS, "start_inspection",
        Role.INSPECTOR, Role.PROJECT_LEAD,
    ),
    _edge(
        S.INSPECTION_IN_PROGRESS, S.REPORT_DRAFT, "finish_inspection",
        Role.INSPECTOR, Role.PROJECT_LEAD,
    ),
    _edge(
        S.REPORT_DRAFT, S.HEAD_CONSULTANT_REVIEW, "send_to_head_consultant",
        Role.PROJECT_LEAD,
    ),
    _edge(
        S.HEAD_CONSULTANT_REVIEW, S.CLIENT_REVIEW, "approve_for_client",
        Role.HEAD_CONSULTANT,
    ),
    _edge(
        S.HEAD_CONSULTANT_REVIEW, S.REPORT_DRAFT, "reject_report",
        Role.HEAD_CONSULTANT, kind=EdgeKind.REJECTION,
    ),
    _edge(
        S.CLIENT_REVIEW, S.REPORT_DRAFT, "request_revision",
        Role.CLIENT, Role.ADMIN_LEAD, kind=EdgeKind.REJECTION,
    ),
    _edge(
        S.CLIENT_REVIEW, S.GOVERNMENT_SUBMITTED, "submit_to_government",
        Role.ADMIN_LEAD,
    ),
    _edge(S.GOVERNMENT_SUBMITTED, S.SLF_ISSUED, "issue_slf", Role.ADMIN_LEAD),
    _edge(S.GOVERNMENT_SUBMITTED, S.COMPLETED, "complete", Role.ADMIN_LEAD),
)

_CANCELLATION_EDGES: tuple[Transition, ...] = tuple(
    _edge(status, S.CANCELLED, "cancel", *CANCELLING_ROLES, kind=EdgeKind.CANCELLATION)
    for status in S
    if status not in TERMINAL_STATUSES
)

PROJECT_WORKFLOW = Workflow(
    name="project_certification",
    initial_state=S.DRAFT.value,
    states=tuple(s.value for s in S),
    transitions=_LIFECYCLE_EDGES + _CANCELLATION_EDGES,
    terminal_states=frozenset(s.value for s in TERMINAL_STATUSES),
)


def _refuse(
    current: ProjectStatus,
    requested: ProjectStatus,
    reason: str,
    code: str = IllegalTransitionError.code,
) -> TransitionDecision:
    return TransitionDecision(
        allowed=False,
        from_state=current.value,
        to_state=requested.value,
        reason=reason,
        code=code,
    )


def _next_steps(current: ProjectStatus) -> str:
    targets = [
        t.to_state
        for t in PROJECT_WORKFLOW.edges_from(current.value)
        if t.kind is not EdgeKind.CANCELLATION
    ]
    return ", ".join(targets) or "none"


def can_transition(
    current_status: ProjectStatus | str,
    requested_status: ProjectStatus | str,
    actor_role: Role | str,
) -> TransitionDecision:
    """Decide whether ``actor_role`` may move a project between statuses.

    Pure.  Returns a refusal decision for role/order/terminal violations so
    callers can explain *why*; only unknown status tokens raise.

    Raises:
        UnknownStatusError: if either status is not in the registry.
    """
    current = parse_status(current_status)
    requested = parse_status(requested_status)

    if current in TERMINAL_STATUSES:
        return _refuse(
            current, requested,
            f"project is in terminal status {current.value!r}",
            code=TerminalStateError.code,
        )

    try:
        role = Role(actor_role)
    except ValueError:
        return _refuse(current, requested, f"unknown actor role {actor_role!r}")

    if current is requested:
        return _refuse(current, requested, f"project is already {current.value!r}")

    edge = PROJECT_WORKFLOW.find(current.value, requested.value)
    if edge is None:
        if requested is not S.CANCELLED and ordinal(requested) > ordinal(current):
            reason = (
                f"cannot skip from {current.value!r} (phase {int(phase_of(current))}) "
                f"to {requested.value!r} (phase {int(phase_of(requested))}); "
                f"next step: {_next_steps(current)}"
            )
        else:
            reason = (
                f"{current.value!r} -> {requested.value!r} is not a designated "
                "rejection or revision edge"
            )
        return _refuse(current, requested, reason)

    if not edge.permits(role):
        permitted = ", ".join(sorted(r.value for r in edge.roles))
        return _refuse(
            current, requested,
            f"role {role.value!r} may not {edge.action.replace('_', ' ')}; "
            f"permitted: {permitted}",
        )

    return TransitionDecision(
        allowed=True,
        from_state=current.value,
        to_state=requested.value,
        transition=edge,
    )


def require_transition(
    current_status: ProjectStatus | str,
    requested_status: ProjectStatus | str,
    actor_role: Role | str,
) -> Transition:
    """Like ``can_transition`` but raises the typed error on refusal.

    Raises:
        UnknownStatusError: unknown status token.
        TerminalStateError: current status is terminal.
        IllegalTransitionError: ordering or role violation.
    """
    decision = can_transition(current_status, requested_status, actor_role)
    if decision.allowed:
        assert decision.transition is not None
        return decision.transition
    if decision.code == TerminalStateError.code:
        raise TerminalStateError(decision.from_state)
    raise IllegalTransitionError(
        decision.from_state,
        decision.to_state,
        decision.reason,
        actor_role=str(getattr(actor_role, "value", actor_role)),
    )


def available_transitions(
    current_status: ProjectStatus | str,
    actor_role: Role | str,
) -> tuple[Transition, ...]:
    """Edges out of ``current_status`` that ``actor_role`` may trigger.

    An unknown role may trigger nothing, as in ``can_transition``.

    Raises:
        UnknownStatusError: unknown status token.
    """
    current = parse_status(current_status)
    if current in TERMINAL_STATUSES:
        return ()
    try:
        role = Role(actor_role)
    except ValueError:
        return ()
    return tuple(t for t in PROJECT_WORKFLOW.edges_from(current.value) if t.permits(role))
