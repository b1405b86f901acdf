"""
Checklist response rules (``certification_kernel.domain.checklist``).

Per-item state machine::

    draft --submit--> submitted --approve--> project_lead_approved
                                --reject---> rejected
    submitted|rejected --reopen--> draft

A response moves to ``submitted`` once; changing it afterwards needs an
explicit ``reopen``.  ``project_lead_approved`` is final.

Pure: the aggregate "checklist complete" rule is evaluated by the service
over rows it loads, and consumed by the orchestrator, never by this module.
"""

from __future__ import annotations

from enum import Enum

from certification_kernel.domain.roles import Role
from certification_kernel.domain.status_registry import parse_token
from certification_kernel.domain.workflow import EdgeKind, Transition, Workflow
from certification_kernel.exceptions import (
    IllegalTransitionError,
    StaleTransitionError,
    TerminalStateError,
)


class ChecklistStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    PROJECT_LEAD_APPROVED = "project_lead_approved"
    REJECTED = "rejected"


class ChecklistAction(str, Enum):
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    REOPEN = "reopen"


C = ChecklistStatus

CHECKLIST_WORKFLOW = Workflow(
    name="checklist_response",
    initial_state=C.DRAFT.value,
    states=tuple(s.value for s in C),
    transitions=(
        Transition(C.DRAFT.value, C.SUBMITTED.value, "submit", frozenset({Role.INSPECTOR})),
        Transition(
            C.SUBMITTED.value, C.PROJECT_LEAD_APPROVED.value, "approve",
            frozenset({Role.PROJECT_LEAD}),
        ),
        Transition(
            C.SUBMITTED.value, C.REJECTED.value, "reject",
            frozenset({Role.PROJECT_LEAD}), kind=EdgeKind.REJECTION, requires_notes=True,
        ),
        Transition(
            C.SUBMITTED.value, C.DRAFT.value, "reopen",
            frozenset({Role.INSPECTOR, Role.PROJECT_LEAD}), kind=EdgeKind.RETURN,
        ),
        Transition(
            C.REJECTED.value, C.DRAFT.value, "reopen",
            frozenset({Role.INSPECTOR, Role.PROJECT_LEAD}), kind=EdgeKind.RETURN,
        ),
    ),
    terminal_states=frozenset({C.PROJECT_LEAD_APPROVED.value}),
)

# Statuses meaning "this action has already happened"
_ALREADY_APPLIED: dict[ChecklistAction, frozenset[ChecklistStatus]] = {
    ChecklistAction.SUBMIT: frozenset({C.SUBMITTED, C.PROJECT_LEAD_APPROVED, C.REJECTED}),
    ChecklistAction.APPROVE: frozenset({C.PROJECT_LEAD_APPROVED, C.REJECTED}),
    ChecklistAction.REJECT: frozenset({C.PROJECT_LEAD_APPROVED, C.REJECTED}),
    ChecklistAction.REOPEN: frozenset({C.DRAFT}),
}

# Statuses that block checklist completeness
PENDING_STATUSES: frozenset[ChecklistStatus] = frozenset({C.DRAFT})


def parse_checklist_status(token: ChecklistStatus | str) -> ChecklistStatus:
    return parse_token(ChecklistStatus, token, "checklist_response")


def resolve_checklist_step(
    response_id: str,
    current_status: ChecklistStatus | str,
    action: ChecklistAction | str,
    actor_role: Role | str,
) -> Transition:
    """Find the edge for ``action`` from the current status, or raise."""
    current = parse_checklist_status(current_status)
    action = ChecklistAction(action)
    role = Role(actor_role)

    step = CHECKLIST_WORKFLOW.find_action(current.value, action.value)
    if step is not None:
        if step.permits(role):
            return step
        raise IllegalTransitionError(
            current.value, step.to_state,
            f"role {role.value!r} may not {action.value} checklist responses",
            entity_type="checklist_response",
            actor_role=role.value,
        )

    if current in _ALREADY_APPLIED[action]:
        raise StaleTransitionError(
            "checklist_response", response_id,
            _expected_from(action), current.value,
        )
    if current.value in CHECKLIST_WORKFLOW.terminal_states:
        raise TerminalStateError(current.value, entity_type="checklist_response")
    raise IllegalTransitionError(
        current.value, action.value,
        f"cannot {action.value} a checklist response in status {current.value!r}",
        entity_type="checklist_response",
        actor_role=role.value,
    )


def _expected_from(action: ChecklistAction) -> str:
    for t in CHECKLIST_WORKFLOW.transitions:
        if t.action == action.value:
            return t.from_state
    return C.DRAFT.value


def has_response_body(response: object) -> bool:
    """True if a structured response carries something to review."""
    if response is None:
        return False
    if isinstance(response, str):
        return bool(response.strip())
    if isinstance(response, dict):
        return any(has_response_body(v) for v in response.values())
    if isinstance(response, (list, tuple)):
        return any(has_response_body(v) for v in response)
    return True
