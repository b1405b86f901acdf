"""
Canonical workflow types (``certification_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for the role-gated state machines used by the project
lifecycle and the three sub-workflows, so that an edge, its permitted
roles, and its kind are described once.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from certification_kernel.domain.roles import Role
from certification_kernel.exceptions import ValidationError


class EdgeKind(str, Enum):
    """How an edge relates to the forward order of its workflow."""

    FORWARD = "forward"
    REJECTION = "rejection"
    RETURN = "return"
    CANCELLATION = "cancellation"

    @property
    def moves_backward(self) -> bool:
        return self in (EdgeKind.REJECTION, EdgeKind.RETURN)


@dataclass(frozen=True)
class Transition:
    """A permitted edge and the roles allowed to trigger it."""

    from_state: str
    to_state: str
    action: str
    roles: frozenset[Role]
    kind: EdgeKind = EdgeKind.FORWARD
    requires_notes: bool = False

    def permits(self, role: Role) -> bool:
        return role in self.roles


@dataclass(frozen=True)
class Workflow:
    """A state machine definition.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    """

    name: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"Workflow {self.name}: initial state {self.initial_state!r} "
                "is not a declared state"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Workflow {self.name}: transition {t.action!r} references "
                    f"undeclared state ({t.from_state} -> {t.to_state})"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Workflow {self.name}: terminal state {t.from_state!r} "
                    "has an outgoing transition"
                )

    def edges_from(self, state: str) -> tuple[Transition, ...]:
        return tuple(t for t in self.transitions if t.from_state == state)

    def find(self, from_state: str, to_state: str) -> Transition | None:
        for t in self.transitions:
            if t.from_state == from_state and t.to_state == to_state:
                return t
        return None

    def find_action(self, from_state: str, action: str) -> Transition | None:
        for t in self.transitions:
            if t.from_state == from_state and t.action == action:
                return t
        return None


@dataclass(frozen=True)
class TransitionDecision:
    """Outcome of asking whether a move is legal.

    ``code`` mirrors the exception code the refusal maps to, so callers can
    surface the specific reason without raising.
    """

    allowed: bool
    from_state: str
    to_state: str
    reason: str = ""
    code: str = ""
    transition: Transition | None = None

    @property
    def requires_notes(self) -> bool:
        return self.transition is not None and self.transition.requires_notes


def require_notes(notes: str | None, field: str = "notes") -> str:
    """Return stripped notes or raise ``ValidationError`` when blank."""
    if notes is None or not notes.strip():
        raise ValidationError(field, "must be a non-empty string")
    return notes.strip()
