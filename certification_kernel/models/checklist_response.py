"""Checklist response ORM model -- one row per (inspection, checklist item)."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from certification_kernel.db.base import TrackedBase, UUIDString, VersionedStatus
from certification_kernel.domain.checklist import ChecklistStatus

_STATUS_VALUES = ", ".join(f"'{s.value}'" for s in ChecklistStatus)


class ChecklistResponse(VersionedStatus, TrackedBase):
    """An inspector's finding against one checklist item."""

    __tablename__ = "checklist_responses"

    __table_args__ = (
        CheckConstraint(
            f"status IN ({_STATUS_VALUES})", name="ck_checklist_responses_status"
        ),
        UniqueConstraint("inspection_id", "item_id", name="uq_checklist_item_per_inspection"),
        Index("idx_checklist_project_status", "project_id", "status"),
    )

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("projects.id"),
        nullable=False,
    )

    inspection_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("schedule_events.id"),
        nullable=False,
    )

    item_id: Mapped[str] = mapped_column(String(100), nullable=False)

    response: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default=ChecklistStatus.DRAFT.value,
    )

    inspector_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    reviewed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<ChecklistResponse {self.item_id} status={self.status}>"
