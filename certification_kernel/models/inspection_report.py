"""
Inspection report ORM model.

The sign-off columns record who performed each chain step and when; the
``rejection_*`` columns keep the most recent rejection so the drafter sees
why the report came back.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from certification_kernel.db.base import TrackedBase, UUIDString, VersionedStatus
from certification_kernel.domain.report_chain import ReportStatus

_STATUS_VALUES = ", ".join(f"'{s.value}'" for s in ReportStatus)


class InspectionReport(VersionedStatus, TrackedBase):
    """A drafted inspection report moving through the approval chain."""

    __tablename__ = "inspection_reports"

    __table_args__ = (
        CheckConstraint(
            f"status IN ({_STATUS_VALUES})", name="ck_inspection_reports_status"
        ),
        Index("idx_inspection_reports_project", "project_id", "status"),
    )

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("projects.id"),
        nullable=False,
    )

    inspection_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("schedule_events.id"),
        nullable=True,
    )

    drafter_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    title: Mapped[str] = mapped_column(String(255), nullable=False)

    status: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default=ReportStatus.DRAFT.value,
    )

    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Admin-team verification
    verified_by_admin_team_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    admin_team_feedback: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Project-lead approval
    project_lead_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    project_lead_reviewed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    project_lead_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Head-consultant approval
    head_consultant_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    head_consultant_reviewed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    head_consultant_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Most recent rejection
    rejection_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejected_by_role: Mapped[str | None] = mapped_column(String(50), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<InspectionReport {self.id} status={self.status}>"
