"""Schedule event ORM model (inspections, meetings, deadlines)."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from certification_kernel.db.base import TrackedBase, UUIDString, VersionedStatus
from certification_kernel.domain.schedule import ScheduleStatus, ScheduleType

_STATUS_VALUES = ", ".join(f"'{s.value}'" for s in ScheduleStatus)
_TYPE_VALUES = ", ".join(f"'{t.value}'" for t in ScheduleType)


class ScheduleEvent(VersionedStatus, TrackedBase):
    """A calendar-bound activity tied to a project and an assignee.

    ``created_by_id`` doubles as the event's creator for mutation rights.
    """

    __tablename__ = "schedule_events"

    __table_args__ = (
        CheckConstraint(f"status IN ({_STATUS_VALUES})", name="ck_schedule_events_status"),
        CheckConstraint(f"schedule_type IN ({_TYPE_VALUES})", name="ck_schedule_events_type"),
        CheckConstraint(
            "end_date IS NULL OR end_date >= schedule_date",
            name="ck_schedule_events_window",
        ),
        Index("idx_schedule_events_project", "project_id", "schedule_type"),
        Index("idx_schedule_events_assignee", "assigned_to"),
    )

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("projects.id"),
        nullable=False,
    )

    schedule_type: Mapped[str] = mapped_column(String(50), nullable=False)

    title: Mapped[str] = mapped_column(String(255), nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    schedule_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    assigned_to: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ScheduleStatus.SCHEDULED.value,
    )

    def __repr__(self) -> str:
        return f"<ScheduleEvent {self.id} {self.schedule_type} status={self.status}>"
