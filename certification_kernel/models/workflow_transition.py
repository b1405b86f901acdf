"""
Workflow transition history -- append-only.

One row per successful status write on a project, report, checklist response,
or schedule event, written in the same transaction as the write itself.
Rows are immutable from creation (see db/immutability.py).
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from certification_kernel.db.base import Base, UUIDString


class WorkflowTransition(Base):
    """A single applied status change."""

    __tablename__ = "workflow_transitions"

    __table_args__ = (
        Index("idx_workflow_transitions_entity", "entity_type", "entity_id"),
        Index("idx_workflow_transitions_project", "project_id", "occurred_at"),
        UniqueConstraint("entity_type", "entity_id", "sequence", name="uq_workflow_transition_sequence"),
    )

    entity_type: Mapped[str] = mapped_column(String(30), nullable=False)

    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # 1-based position in this entity's history
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    project_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    from_status: Mapped[str | None] = mapped_column(String(50), nullable=True)

    to_status: Mapped[str] = mapped_column(String(50), nullable=False)

    action: Mapped[str] = mapped_column(String(50), nullable=False)

    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    actor_role: Mapped[str] = mapped_column(String(50), nullable=False)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<WorkflowTransition {self.entity_type} {self.entity_id} "
            f"{self.from_status}->{self.to_status}>"
        )
