"""
certification_services.event_dispatch -- consumers of workflow events.

Responsibility:
    ``LoggingEventSink`` writes every committed workflow event as one
    structured log line.  ``NotificationDispatcher`` turns events into
    notifications for the people who must act next (admin team when a
    report is submitted, project leads and admin leads when it is verified,
    the drafter when it is sent back, the client when the project reaches
    client review, a member when assigned to a project) and hands them to a
    ``Notifier``.

Architecture position:
    Services layer.  Both classes satisfy the kernel's ``EventSink``
    protocol.  Delivery is best-effort: each failed notification is logged
    and skipped, and nothing here touches workflow state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol, Sequence, runtime_checkable
from uuid import UUID

from sqlalchemy.orm import Session

from certification_kernel.domain.events import EntityType, WorkflowEvent
from certification_kernel.domain.report_chain import ReportStatus
from certification_kernel.domain.roles import Role
from certification_kernel.domain.status_registry import ProjectStatus
from certification_kernel.logging_config import get_logger
from certification_kernel.models.inspection_report import InspectionReport
from certification_kernel.models.project import Project
from certification_kernel.services.team_assignment_service import TeamAssignmentService

logger = get_logger("services.event_dispatch")


@dataclass(frozen=True)
class Notification:
    recipient_id: UUID
    type: str
    message: str
    related_id: UUID
    related_type: str
    actor_id: UUID
    project_id: UUID | None = None


@runtime_checkable
class Notifier(Protocol):
    def send(self, notification: Notification) -> None:
        ...


class LoggingNotifier:
    """Notifier that only logs; the default when no channel is configured."""

    def send(self, notification: Notification) -> None:
        logger.info(
            "notification_sent",
            extra={
                "recipient_id": str(notification.recipient_id),
                "notification_type": notification.type,
                "related_type": notification.related_type,
                "related_id": str(notification.related_id),
            },
        )


class LoggingEventSink:
    """Writes each workflow event as a ``workflow_event`` log line."""

    def emit(self, event: WorkflowEvent) -> None:
        logger.info(
            "workflow_event",
            extra={
                "entity_type": event.entity_type.value,
                "entity_id": str(event.entity_id),
                "from_status": event.from_status,
                "to_status": event.to_status,
                "actor_id": str(event.actor_id),
                "event_action": event.action,
                "event_timestamp": event.timestamp,
                "event_project_id": str(event.project_id) if event.project_id else None,
            },
        )


Rule = Callable[[WorkflowEvent], list[Notification]]


class NotificationDispatcher:
    """Resolves recipients for workflow events and sends notifications.

    ``downstream`` sinks receive every event after notification fan-out,
    so a dispatcher can be chained with a ``LoggingEventSink``.
    """

    def __init__(
        self,
        session: Session,
        notifier: Notifier | None = None,
        downstream: Sequence[object] = (),
    ):
        self._session = session
        self._notifier = notifier or LoggingNotifier()
        self._team = TeamAssignmentService(session)
        self._downstream = tuple(downstream)
        self._rules: dict[tuple[EntityType, str], Rule] = {
            (EntityType.REPORT, ReportStatus.SUBMITTED.value): self._report_submitted,
            (EntityType.REPORT, ReportStatus.VERIFIED_BY_ADMIN_TEAM.value): self._report_verified,
            (EntityType.REPORT, ReportStatus.DRAFT.value): self._report_returned,
            (EntityType.PROJECT, ProjectStatus.CLIENT_REVIEW.value): self._client_review,
            (EntityType.TEAM_ASSIGNMENT, "assigned"): self._member_assigned,
        }

    def emit(self, event: WorkflowEvent) -> None:
        rule = self._rules.get((event.entity_type, event.to_status))
        notifications = rule(event) if rule is not None else []
        delivered = sum(self._deliver(n) for n in notifications)
        if notifications:
            logger.info(
                "notifications_dispatched",
                extra={
                    "entity_type": event.entity_type.value,
                    "to_status": event.to_status,
                    "notification_count": len(notifications),
                    "delivered_count": delivered,
                },
            )
        for sink in self._downstream:
            sink.emit(event)

    def recipients_for(self, event: WorkflowEvent) -> list[UUID]:
        rule = self._rules.get((event.entity_type, event.to_status))
        return [n.recipient_id for n in rule(event)] if rule is not None else []

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def _report_submitted(self, event: WorkflowEvent) -> list[Notification]:
        return self._to_members(
            event, (Role.ADMIN_TEAM,), "report_verification_needed",
            "A submitted report needs admin-team verification",
        )

    def _report_verified(self, event: WorkflowEvent) -> list[Notification]:
        return self._to_members(
            event, (Role.PROJECT_LEAD, Role.ADMIN_LEAD), "report_approval_needed",
            "A verified report is waiting for project-lead approval",
        )

    def _report_returned(self, event: WorkflowEvent) -> list[Notification]:
        if event.from_status is None:
            return []
        report = self._session.get(InspectionReport, event.entity_id)
        if report is None:
            return []
        return [
            self._notification(
                event, report.drafter_id, "report_returned",
                f"Report returned to draft: {report.rejection_notes or 'see review notes'}",
            )
        ]

    def _client_review(self, event: WorkflowEvent) -> list[Notification]:
        project = self._session.get(Project, event.entity_id)
        if project is None:
            return []
        return [
            self._notification(
                event, project.client_id, "client_review_requested",
                f"Project {project.name!r} is ready for your review",
            )
        ]

    def _member_assigned(self, event: WorkflowEvent) -> list[Notification]:
        user_id = event.metadata.get("user_id")
        if not user_id:
            return []
        return [
            self._notification(
                event, UUID(str(user_id)), "project_assigned",
                f"You were assigned to a project as {event.metadata.get('role', 'member')}",
            )
        ]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _to_members(
        self,
        event: WorkflowEvent,
        roles: Sequence[Role],
        kind: str,
        message: str,
    ) -> list[Notification]:
        if event.project_id is None:
            return []
        recipients: list[UUID] = []
        for role in roles:
            for member in self._team.members(event.project_id, role):
                if member.user_id not in recipients and member.user_id != event.actor_id:
                    recipients.append(member.user_id)
        return [self._notification(event, r, kind, message) for r in recipients]

    @staticmethod
    def _notification(
        event: WorkflowEvent,
        recipient_id: UUID,
        kind: str,
        message: str,
    ) -> Notification:
        return Notification(
            recipient_id=recipient_id,
            type=kind,
            message=message,
            related_id=event.entity_id,
            related_type=event.entity_type.value,
            actor_id=event.actor_id,
            project_id=event.project_id,
        )

    def _deliver(self, notification: Notification) -> bool:
        try:
            self._notifier.send(notification)
        except Exception:
            logger.warning(
                "notification_delivery_failed",
                extra={
                    "recipient_id": str(notification.recipient_id),
                    "notification_type": notification.type,
                },
                exc_info=True,
            )
            return False
        return True
