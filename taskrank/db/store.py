"""
Task storage port and its SQLAlchemy implementation.

The sweep needs exactly two things from storage: a bounded page of stale
active tasks, and a conditional score write that is a no-op if the task was
completed or deleted in the meantime.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Protocol, runtime_checkable

from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from taskrank.db.models import TaskRecord
from taskrank.db.session import session_scope
from taskrank.domain.task import TaskSnapshot, TaskStatus, as_utc
from taskrank.engine.errors import TaskRankStoreError

logger = logging.getLogger("taskrank.db.store")

_SNAPSHOT_COLUMNS = (
    "id", "status", "user_priority", "created_at", "due_date", "estimated_effort",
    "bump_count", "priority_score", "at_risk", "score_calculated_at",
    "completed_at", "updated_at",
)


@runtime_checkable
class TaskStore(Protocol):
    def find_stale_active(
        self,
        cutoff: datetime,
        limit: int,
        after_id: Optional[int] = None,
    ) -> List[TaskSnapshot]:
        """Active tasks scored before *cutoff* (or never), ordered by id."""
        ...

    def update_score_if_active(
        self,
        task_id: int,
        score: float,
        at_risk: bool,
        calculated_at: datetime,
    ) -> bool:
        """Write the score only if the task is still active. True if written."""
        ...


def _to_snapshot(record: TaskRecord) -> TaskSnapshot:
    return TaskSnapshot.model_validate({c: getattr(record, c) for c in _SNAPSHOT_COLUMNS})


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    return as_utc(value) if value is not None else None


class SqlTaskStore:
    """TaskStore over the `tasks` table."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def add(self, snapshot: TaskSnapshot) -> TaskSnapshot:
        """Insert a new task and return it with its id."""
        try:
            with session_scope(self._session_factory) as session:
                record = TaskRecord()
                self._copy_into(record, snapshot)
                record.created_at = as_utc(snapshot.created_at)
                session.add(record)
                session.flush()
                return _to_snapshot(record)
        except SQLAlchemyError as e:
            raise TaskRankStoreError(f"Failed to insert task: {e}", operation="add") from e

    def get(self, task_id: int) -> Optional[TaskSnapshot]:
        try:
            with session_scope(self._session_factory) as session:
                record = session.get(TaskRecord, task_id)
                if record is None or record.is_deleted:
                    return None
                return _to_snapshot(record)
        except SQLAlchemyError as e:
            raise TaskRankStoreError(f"Failed to load task: {e}", task_id=task_id, operation="get") from e

    def save(self, snapshot: TaskSnapshot) -> TaskSnapshot:
        """Write back a snapshot returned by the lifecycle orchestrator."""
        if snapshot.id is None:
            return self.add(snapshot)
        try:
            with session_scope(self._session_factory) as session:
                record = session.get(TaskRecord, snapshot.id)
                if record is None or record.is_deleted:
                    raise TaskRankStoreError(
                        f"Task {snapshot.id} not found", task_id=snapshot.id, operation="save",
                    )
                self._copy_into(record, snapshot)
                session.flush()
                return _to_snapshot(record)
        except SQLAlchemyError as e:
            raise TaskRankStoreError(f"Failed to save task: {e}", task_id=snapshot.id, operation="save") from e

    def soft_delete(self, task_id: int, now: datetime) -> bool:
        try:
            with session_scope(self._session_factory) as session:
                result = session.execute(
                    update(TaskRecord)
                    .where(TaskRecord.id == task_id, TaskRecord.is_deleted.is_(False))
                    .values(is_deleted=True, deleted_at=as_utc(now), updated_at=as_utc(now))
                )
                return result.rowcount > 0
        except SQLAlchemyError as e:
            raise TaskRankStoreError(f"Failed to delete task: {e}", task_id=task_id, operation="delete") from e

    def list_active(self) -> List[TaskSnapshot]:
        try:
            with session_scope(self._session_factory) as session:
                rows = session.scalars(
                    select(TaskRecord)
                    .where(TaskRecord.is_deleted.is_(False), TaskRecord.status != TaskStatus.DONE.value)
                    .order_by(TaskRecord.priority_score.desc(), TaskRecord.created_at.desc())
                ).all()
                return [_to_snapshot(r) for r in rows]
        except SQLAlchemyError as e:
            raise TaskRankStoreError(f"Failed to list tasks: {e}", operation="list_active") from e

    # ── Sweep port ──

    def find_stale_active(
        self,
        cutoff: datetime,
        limit: int,
        after_id: Optional[int] = None,
    ) -> List[TaskSnapshot]:
        stmt = (
            select(TaskRecord)
            .where(
                TaskRecord.is_deleted.is_(False),
                TaskRecord.status != TaskStatus.DONE.value,
                or_(
                    TaskRecord.score_calculated_at.is_(None),
                    TaskRecord.score_calculated_at < as_utc(cutoff),
                ),
            )
            .order_by(TaskRecord.id)
            .limit(limit)
        )
        if after_id is not None:
            stmt = stmt.where(TaskRecord.id > after_id)
        try:
            with session_scope(self._session_factory) as session:
                return [_to_snapshot(r) for r in session.scalars(stmt).all()]
        except SQLAlchemyError as e:
            raise TaskRankStoreError(
                f"Failed to select stale tasks: {e}", operation="find_stale_active",
            ) from e

    def update_score_if_active(
        self,
        task_id: int,
        score: float,
        at_risk: bool,
        calculated_at: datetime,
    ) -> bool:
        stmt = (
            update(TaskRecord)
            .where(
                TaskRecord.id == task_id,
                TaskRecord.is_deleted.is_(False),
                TaskRecord.status != TaskStatus.DONE.value,
            )
            .values(
                priority_score=score,
                at_risk=at_risk,
                score_calculated_at=as_utc(calculated_at),
                # keep the column as is; onupdate would stamp the wall clock
                updated_at=TaskRecord.updated_at,
            )
        )
        try:
            with session_scope(self._session_factory) as session:
                written = session.execute(stmt).rowcount > 0
        except SQLAlchemyError as e:
            raise TaskRankStoreError(
                f"Failed to update score: {e}", task_id=task_id, operation="update_score",
            ) from e
        if not written:
            logger.debug(f"Score update skipped for task {task_id}: no longer active")
        return written

    @staticmethod
    def _copy_into(record: TaskRecord, snapshot: TaskSnapshot) -> None:
        record.status = snapshot.status.value
        record.user_priority = snapshot.user_priority
        record.due_date = _utc(snapshot.due_date)
        record.estimated_effort = snapshot.estimated_effort.value if snapshot.estimated_effort else None
        record.bump_count = snapshot.bump_count
        record.priority_score = snapshot.priority_score
        record.at_risk = snapshot.at_risk
        record.score_calculated_at = _utc(snapshot.score_calculated_at)
        record.completed_at = _utc(snapshot.completed_at)
        if snapshot.updated_at is not None:
            record.updated_at = as_utc(snapshot.updated_at)
