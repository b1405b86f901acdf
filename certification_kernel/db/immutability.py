"""
ORM-Level Immutability Enforcement.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity               | When Immutable              | Why
---------------------|-----------------------------|------------------------------
WorkflowTransition   | ALWAYS (from creation)      | History is append-only
Project              | Never deleted               | Cases end terminal, not gone
ScheduleEvent        | Not deletable once completed| Completed field work is record

===============================================================================
HOW IT WORKS
===============================================================================

SQLAlchemy fires mapper events before UPDATE/DELETE statements are sent
during ``session.flush()``.  The listeners below raise
``ImmutabilityViolationError`` and the flush is aborted, so the database is
never modified.

Core ``update()``/``delete()`` statements do not fire mapper events; the
services never issue those against protected tables except the
compare-and-set status write on ScheduleEvent, which is not a delete.

===============================================================================
USAGE
===============================================================================

    from certification_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

    unregister_immutability_listeners()  # TESTS ONLY
"""

from sqlalchemy import event

from certification_kernel.domain.schedule import ScheduleStatus
from certification_kernel.exceptions import ImmutabilityViolationError
from certification_kernel.logging_config import get_logger
from certification_kernel.models.project import Project
from certification_kernel.models.schedule_event import ScheduleEvent
from certification_kernel.models.workflow_transition import WorkflowTransition

logger = get_logger("db.immutability")


def _reject(entity_type: str, target, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={"entity_type": entity_type, "entity_id": str(target.id), "reason": reason},
    )
    raise ImmutabilityViolationError(entity_type, str(target.id), reason)


def _check_transition_update(mapper, connection, target: WorkflowTransition) -> None:
    _reject("workflow_transition", target, "transition history is append-only")


def _check_transition_delete(mapper, connection, target: WorkflowTransition) -> None:
    _reject("workflow_transition", target, "transition history is append-only")


def _check_project_delete(mapper, connection, target: Project) -> None:
    _reject("project", target, "projects are never deleted; cancel instead")


def _check_schedule_event_delete(mapper, connection, target: ScheduleEvent) -> None:
    if target.status == ScheduleStatus.COMPLETED.value:
        _reject("schedule_event", target, "completed events cannot be deleted")


_LISTENERS = (
    (WorkflowTransition, "before_update", _check_transition_update),
    (WorkflowTransition, "before_delete", _check_transition_delete),
    (Project, "before_delete", _check_project_delete),
    (ScheduleEvent, "before_delete", _check_schedule_event_delete),
)


def register_immutability_listeners() -> None:
    """Register all immutability listeners (idempotent)."""
    for model, identifier, fn in _LISTENERS:
        if not event.contains(model, identifier, fn):
            event.listen(model, identifier, fn)
    logger.debug("immutability_listeners_registered")


def unregister_immutability_listeners() -> None:
    """Remove all immutability listeners. FOR TESTING ONLY."""
    for model, identifier, fn in _LISTENERS:
        if event.contains(model, identifier, fn):
            event.remove(model, identifier, fn)
