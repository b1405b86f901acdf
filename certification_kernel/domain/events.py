"""
Workflow events and the event sink boundary.

Every committed status write produces one ``WorkflowEvent``.  Consumers
(notification dispatch, audit feeds) sit behind ``EventSink`` and are
best-effort: a failing sink never undoes a committed transition.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol, runtime_checkable
from uuid import UUID


class EntityType(str, Enum):
    PROJECT = "project"
    REPORT = "report"
    CHECKLIST_RESPONSE = "checklist_response"
    SCHEDULE_EVENT = "schedule_event"
    TEAM_ASSIGNMENT = "team_assignment"


@dataclass(frozen=True)
class WorkflowEvent:
    """``(entity_type, entity_id, from_status, to_status, actor_id, timestamp)``.

    ``project_id`` and ``action`` are carried so consumers can route
    without reloading the entity.
    """

    entity_type: EntityType
    entity_id: UUID
    from_status: str | None
    to_status: str
    actor_id: UUID
    timestamp: datetime
    project_id: UUID | None = None
    action: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    def as_tuple(self) -> tuple[str, UUID, str | None, str, UUID, datetime]:
        return (
            self.entity_type.value,
            self.entity_id,
            self.from_status,
            self.to_status,
            self.actor_id,
            self.timestamp,
        )


@runtime_checkable
class EventSink(Protocol):
    def emit(self, event: WorkflowEvent) -> None:
        ...


class NullEventSink:
    """Discards every event."""

    def emit(self, event: WorkflowEvent) -> None:
        return None
