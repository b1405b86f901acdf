"""
Status Registry (``certification_kernel.domain.status_registry``).

Responsibility
--------------
The one canonical list of project lifecycle statuses and the phase each
status belongs to.  Every other component (transition engine, orchestrator,
sub-workflow preconditions, persistence CHECK constraints) reads phases and
status tokens from here; nothing keeps its own copy of the table.

Architecture position
---------------------
**Kernel domain layer** -- pure.  ZERO I/O.  No imports from ``db/``,
``models/``, ``services/`` or outer packages.

Invariants enforced
-------------------
* ``phase_of`` is total over the registry and raises ``UnknownStatusError``
  for anything else.  Display layers may default; the core never does.
* Phase numbers are monotonic over ``canonical_order()``.
* ``cancelled`` is phase 0 and absorbing.
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import TypeVar

from certification_kernel.exceptions import UnknownStatusError


class ProjectStatus(str, Enum):
    """Lifecycle status of a certification project."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    PROJECT_LEAD_REVIEW = "project_lead_review"
    INSPECTION_SCHEDULED = "inspection_scheduled"
    INSPECTION_IN_PROGRESS = "inspection_in_progress"
    REPORT_DRAFT = "report_draft"
    HEAD_CONSULTANT_REVIEW = "head_consultant_review"
    CLIENT_REVIEW = "client_review"
    GOVERNMENT_SUBMITTED = "government_submitted"
    SLF_ISSUED = "slf_issued"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Phase(IntEnum):
    """Coarse grouping of statuses.  Higher is strictly later."""

    CANCELLED = 0
    INTAKE = 1
    FIELD_WORK = 2
    REPORTING = 3
    CLIENT_SIGN_OFF = 4
    CLOSEOUT = 5

    @property
    def token(self) -> str:
        return self.name.lower()


_CANONICAL_ORDER: tuple[ProjectStatus, ...] = (
    ProjectStatus.DRAFT,
    ProjectStatus.SUBMITTED,
    ProjectStatus.PROJECT_LEAD_REVIEW,
    ProjectStatus.INSPECTION_SCHEDULED,
    ProjectStatus.INSPECTION_IN_PROGRESS,
    ProjectStatus.REPORT_DRAFT,
    ProjectStatus.HEAD_CONSULTANT_REVIEW,
    ProjectStatus.CLIENT_REVIEW,
    ProjectStatus.GOVERNMENT_SUBMITTED,
    ProjectStatus.SLF_ISSUED,
    ProjectStatus.COMPLETED,
)

_PHASE_TABLE: dict[ProjectStatus, Phase] = {
    ProjectStatus.DRAFT: Phase.INTAKE,
    ProjectStatus.SUBMITTED: Phase.INTAKE,
    ProjectStatus.PROJECT_LEAD_REVIEW: Phase.INTAKE,
    ProjectStatus.INSPECTION_SCHEDULED: Phase.FIELD_WORK,
    ProjectStatus.INSPECTION_IN_PROGRESS: Phase.FIELD_WORK,
    ProjectStatus.REPORT_DRAFT: Phase.REPORTING,
    ProjectStatus.HEAD_CONSULTANT_REVIEW: Phase.REPORTING,
    ProjectStatus.CLIENT_REVIEW: Phase.CLIENT_SIGN_OFF,
    ProjectStatus.GOVERNMENT_SUBMITTED: Phase.CLOSEOUT,
    ProjectStatus.SLF_ISSUED: Phase.CLOSEOUT,
    ProjectStatus.COMPLETED: Phase.CLOSEOUT,
    ProjectStatus.CANCELLED: Phase.CANCELLED,
}

TERMINAL_STATUSES: frozenset[ProjectStatus] = frozenset({
    ProjectStatus.COMPLETED,
    ProjectStatus.CANCELLED,
    ProjectStatus.SLF_ISSUED,
})

INITIAL_STATUS = ProjectStatus.DRAFT


E = TypeVar("E", bound=Enum)


def parse_token(enum_cls: type[E], token: E | str, entity_type: str) -> E:
    """Resolve a stable string token to a member of ``enum_cls``.

    Shared by every sub-workflow so unknown tokens are rejected the same way
    everywhere.

    Raises:
        UnknownStatusError: if ``token`` is not a value of ``enum_cls``.
    """
    if isinstance(token, enum_cls):
        return token
    try:
        return enum_cls(token)
    except ValueError:
        raise UnknownStatusError(str(token), entity_type=entity_type) from None


def parse_status(token: ProjectStatus | str) -> ProjectStatus:
    """Resolve a project status token or raise ``UnknownStatusError``."""
    return parse_token(ProjectStatus, token, "project")


def phase_of(status: ProjectStatus | str) -> Phase:
    """Return the phase of a project status.

    Total and pure over the registry; ``cancelled`` is ``Phase.CANCELLED``
    (0).

    Raises:
        UnknownStatusError: for tokens outside the registry.
    """
    return _PHASE_TABLE[parse_status(status)]


def is_terminal(status: ProjectStatus | str) -> bool:
    return parse_status(status) in TERMINAL_STATUSES


def canonical_order() -> tuple[ProjectStatus, ...]:
    """Every non-cancelled status in workflow order."""
    return _CANONICAL_ORDER


def ordinal(status: ProjectStatus | str) -> int:
    """Position in ``canonical_order()``; ``cancelled`` is -1."""
    parsed = parse_status(status)
    if parsed is ProjectStatus.CANCELLED:
        return -1
    return _CANONICAL_ORDER.index(parsed)


def statuses_in_phase(phase: Phase) -> tuple[ProjectStatus, ...]:
    return tuple(s for s, p in _PHASE_TABLE.items() if p is phase)


def known_statuses() -> tuple[str, ...]:
    """Every registry token, for persistence constraints."""
    return tuple(s.value for s in ProjectStatus)
