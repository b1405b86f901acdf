"""
Typed Exception Hierarchy for the Certification Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every refused transition must tell the actor *why* it was refused. A UI that
receives a generic failure can only say "something went wrong"; a UI that
receives ``PreconditionNotMetError(precondition="checklist_complete",
blockers=("item-7",))`` can say "checklist item 7 is still in draft".

Every exception in this module therefore:
  1. Has its own class (catch by type, not by message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA (entity ids, statuses, reasons)

Example:
    try:
        orchestrator.request_transition(project_id, "client_review", ...)
    except PreconditionNotMetError as e:
        api_response(code=e.code, missing=e.precondition, blockers=e.blockers)
    except StaleTransitionError:
        reload_and_ask_again()

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    CertificationKernelError (base)
    |
    +-- StatusError
    |   +-- UnknownStatusError
    |
    +-- TransitionError
    |   +-- IllegalTransitionError
    |   +-- TerminalStateError
    |   +-- PreconditionNotMetError
    |
    +-- ConcurrencyError
    |   +-- StaleTransitionError
    |
    +-- AuthorizationError
    |   +-- UnauthorizedActorError
    |
    +-- ScheduleError
    |   +-- IncompatibleAssigneeError
    |
    +-- ValidationError
    |
    +-- NotFoundError
    |   +-- ProjectNotFoundError
    |   +-- ReportNotFoundError
    |   +-- ChecklistResponseNotFoundError
    |   +-- ScheduleEventNotFoundError
    |   +-- TeamAssignmentNotFoundError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                   | When Raised
--------------|------------------------|---------------------------------------
Status        | UNKNOWN_STATUS         | Token not in the registry
--------------|------------------------|---------------------------------------
Transition    | ILLEGAL_TRANSITION     | Role or ordering violation
              | TERMINAL_STATE         | Entity already completed/cancelled
              | PRECONDITION_NOT_MET   | Sub-workflow completeness check failed
--------------|------------------------|---------------------------------------
Concurrency   | STALE_TRANSITION       | Compare-and-set lost (re-read state)
--------------|------------------------|---------------------------------------
Authorization | UNAUTHORIZED_ACTOR     | Actor does not hold the claimed role
--------------|------------------------|---------------------------------------
Schedule      | INCOMPATIBLE_ASSIGNEE  | Assignee lacks role for event type
--------------|------------------------|---------------------------------------
Validation    | VALIDATION_ERROR       | Empty notes, empty response, bad dates
--------------|------------------------|---------------------------------------
Not found     | PROJECT_NOT_FOUND      | Unknown project id
              | REPORT_NOT_FOUND       | Unknown report id
              | CHECKLIST_RESPONSE_... | Unknown checklist response id
              | SCHEDULE_EVENT_...     | Unknown schedule event id
              | TEAM_ASSIGNMENT_...    | No such (project, user, role) row
--------------|------------------------|---------------------------------------
Immutability  | IMMUTABILITY_VIOLATION | History rows, completed events, projects

All of these are recoverable by the caller. None is fatal to the process.
"""

from typing import Sequence


class CertificationKernelError(Exception):
    """Base exception for all certification kernel errors."""

    code: str = "CERTIFICATION_KERNEL_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# Status-related exceptions


class StatusError(CertificationKernelError):
    """Base exception for status registry errors."""

    code: str = "STATUS_ERROR"


class UnknownStatusError(StatusError):
    """A status token is not a member of the registry."""

    code: str = "UNKNOWN_STATUS"

    def __init__(self, status: str, entity_type: str = "project"):
        self.status = status
        self.entity_type = entity_type
        super().__init__(f"Unknown {entity_type} status: {status!r}")


# Transition-related exceptions


class TransitionError(CertificationKernelError):
    """Base exception for refused transitions."""

    code: str = "TRANSITION_ERROR"


class IllegalTransitionError(TransitionError):
    """The requested move violates ordering or role rules."""

    code: str = "ILLEGAL_TRANSITION"

    def __init__(
        self,
        from_status: str,
        to_status: str,
        reason: str,
        entity_type: str = "project",
        actor_role: str | None = None,
    ):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        self.entity_type = entity_type
        self.actor_role = actor_role
        super().__init__(
            f"Illegal {entity_type} transition {from_status} -> {to_status}: {reason}"
        )


class TerminalStateError(TransitionError):
    """The entity is in a terminal state and accepts no further moves."""

    code: str = "TERMINAL_STATE"

    def __init__(self, status: str, entity_type: str = "project"):
        self.status = status
        self.entity_type = entity_type
        super().__init__(
            f"{entity_type.capitalize()} is in terminal state {status!r}; "
            "no further transitions are allowed"
        )


class PreconditionNotMetError(TransitionError):
    """A sub-workflow completeness check failed."""

    code: str = "PRECONDITION_NOT_MET"

    def __init__(
        self,
        precondition: str,
        detail: str,
        blockers: Sequence[str] = (),
    ):
        self.precondition = precondition
        self.detail = detail
        self.blockers = tuple(blockers)
        message = f"Precondition {precondition!r} not met: {detail}"
        if self.blockers:
            message += f" (blocking: {', '.join(self.blockers)})"
        super().__init__(message)


# Concurrency-related exceptions


class ConcurrencyError(CertificationKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class StaleTransitionError(ConcurrencyError):
    """A compare-and-set status write found a different status than expected.

    The caller must re-read the entity and decide again.
    """

    code: str = "STALE_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        expected_status: str,
        actual_status: str | None,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_status = expected_status
        self.actual_status = actual_status
        super().__init__(
            f"Stale transition on {entity_type} {entity_id}: expected status "
            f"{expected_status!r}, found {actual_status!r}"
        )


# Authorization-related exceptions


class AuthorizationError(CertificationKernelError):
    """Base exception for actor authorization failures."""

    code: str = "AUTHORIZATION_ERROR"


class UnauthorizedActorError(AuthorizationError):
    """The actor does not hold the role it claims for this project."""

    code: str = "UNAUTHORIZED_ACTOR"

    def __init__(self, actor_id: str, role: str, project_id: str | None = None):
        self.actor_id = actor_id
        self.role = role
        self.project_id = project_id
        scope = f" on project {project_id}" if project_id else ""
        super().__init__(f"Actor {actor_id} does not hold role {role!r}{scope}")


# Schedule-related exceptions


class ScheduleError(CertificationKernelError):
    """Base exception for schedule coordination errors."""

    code: str = "SCHEDULE_ERROR"


class IncompatibleAssigneeError(ScheduleError):
    """The assignee lacks a team role compatible with the event type."""

    code: str = "INCOMPATIBLE_ASSIGNEE"

    def __init__(
        self,
        assignee_id: str,
        schedule_type: str,
        required_roles: Sequence[str],
    ):
        self.assignee_id = assignee_id
        self.schedule_type = schedule_type
        self.required_roles = tuple(required_roles)
        super().__init__(
            f"Assignee {assignee_id} cannot take a {schedule_type!r} event; "
            f"requires one of: {', '.join(self.required_roles)}"
        )


# Validation


class ValidationError(CertificationKernelError):
    """Input failed validation (empty notes, empty response, bad dates)."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


# Not-found exceptions


class NotFoundError(CertificationKernelError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"


class ProjectNotFoundError(NotFoundError):
    """Project does not exist."""

    code: str = "PROJECT_NOT_FOUND"

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Project not found: {project_id}")


class ReportNotFoundError(NotFoundError):
    """Inspection report does not exist."""

    code: str = "REPORT_NOT_FOUND"

    def __init__(self, report_id: str):
        self.report_id = report_id
        super().__init__(f"Report not found: {report_id}")


class ChecklistResponseNotFoundError(NotFoundError):
    """Checklist response does not exist."""

    code: str = "CHECKLIST_RESPONSE_NOT_FOUND"

    def __init__(self, response_id: str):
        self.response_id = response_id
        super().__init__(f"Checklist response not found: {response_id}")


class ScheduleEventNotFoundError(NotFoundError):
    """Schedule event does not exist."""

    code: str = "SCHEDULE_EVENT_NOT_FOUND"

    def __init__(self, event_id: str):
        self.event_id = event_id
        super().__init__(f"Schedule event not found: {event_id}")


class TeamAssignmentNotFoundError(NotFoundError):
    """No team assignment for the (project, user, role) triple."""

    code: str = "TEAM_ASSIGNMENT_NOT_FOUND"

    def __init__(self, project_id: str, user_id: str, role: str):
        self.project_id = project_id
        self.user_id = user_id
        self.role = role
        super().__init__(
            f"No {role!r} assignment for user {user_id} on project {project_id}"
        )


# Immutability-related exceptions


class ImmutabilityError(CertificationKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Transition history rows are append-only, projects are never deleted,
    and completed schedule events are never hard-deleted.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify immutable {entity_type} {entity_id}: {reason}"
        )
