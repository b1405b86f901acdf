"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor, the compare-and-set status write, and
    the transition-history append shared by every service that moves an
    entity between statuses.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - Services flush within the caller's transaction and never commit or
      roll back themselves.  The orchestrator (or test harness) owns the
      transaction boundary.
    - Every status write is ``UPDATE ... WHERE id = :id AND status =
      :expected``.  Zero affected rows raises ``StaleTransitionError``;
      there is no blind update path.
    - Every successful status write appends one ``WorkflowTransition`` row
      in the same transaction.
"""

from abc import ABC
from datetime import datetime
from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from certification_kernel.db.base import Base
from certification_kernel.domain.clock import Clock, SystemClock
from certification_kernel.exceptions import StaleTransitionError
from certification_kernel.logging_config import get_logger
from certification_kernel.models.workflow_transition import WorkflowTransition

ModelType = TypeVar("ModelType", bound=Base)

logger = get_logger("services.base")


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()

    def _compare_and_set(
        self,
        entity: ModelType,
        entity_type: str,
        expected_status: str,
        new_status: str | None = None,
        actor_id: UUID | None = None,
        **values: Any,
    ) -> datetime:
        """Write ``values`` (and ``new_status``) only if status is unchanged.

        With ``new_status=None`` the status is kept; this guards field edits
        that are only valid in one status (e.g. editing a draft).

        Returns the timestamp used for ``status_changed_at``.

        Raises:
            StaleTransitionError: the stored status differs from
                ``expected_status`` (another writer got there first).
        """
        model = type(entity)
        now = self.clock.now()

        assignments: dict[str, Any] = dict(values)
        assignments["version"] = model.version + 1
        if actor_id is not None:
            assignments["updated_by_id"] = actor_id
        if new_status is not None:
            assignments["status"] = new_status
            assignments["status_changed_at"] = now

        stmt = (
            update(model)
            .where(model.id == entity.id, model.status == expected_status)
            .values(**assignments)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)

        if result.rowcount != 1:
            actual = self.session.execute(
                select(model.status).where(model.id == entity.id)
            ).scalar_one_or_none()
            logger.warning(
                "stale_transition_detected",
                extra={
                    "entity_type": entity_type,
                    "entity_id": str(entity.id),
                    "expected_status": expected_status,
                    "actual_status": actual,
                    "requested_status": new_status,
                },
            )
            raise StaleTransitionError(entity_type, str(entity.id), expected_status, actual)

        self.session.refresh(entity)
        return now

    def _record_transition(
        self,
        *,
        entity_type: str,
        entity_id: UUID,
        project_id: UUID,
        from_status: str | None,
        to_status: str,
        action: str,
        actor_id: UUID,
        actor_role: str,
        occurred_at: datetime,
        notes: str | None = None,
    ) -> WorkflowTransition:
        sequence = self.session.execute(
            select(func.count(WorkflowTransition.id)).where(
                WorkflowTransition.entity_type == entity_type,
                WorkflowTransition.entity_id == entity_id,
            )
        ).scalar_one() + 1
        record = WorkflowTransition(
            entity_type=entity_type,
            entity_id=entity_id,
            sequence=sequence,
            project_id=project_id,
            from_status=from_status,
            to_status=to_status,
            action=action,
            actor_id=actor_id,
            actor_role=actor_role,
            notes=notes,
            occurred_at=occurred_at,
        )
        self.session.add(record)
        self.session.flush()
        return record

    def history(self, entity_id: UUID) -> list[WorkflowTransition]:
        """Applied transitions for one entity, oldest first."""
        return list(
            self.session.scalars(
                select(WorkflowTransition)
                .where(WorkflowTransition.entity_id == entity_id)
                .order_by(WorkflowTransition.entity_type, WorkflowTransition.sequence)
            )
        )
