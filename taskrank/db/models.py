"""
TaskRank storage model — the `tasks` table read and written by the store.

Only the columns the scoring engine consumes or produces are modelled here;
titles, categories and the rest belong to the surrounding application.
"""

from __future__ import annotations

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
)

from taskrank.db.base import AuditMixin, Base, SoftDeleteMixin


class TaskRecord(Base, AuditMixin, SoftDeleteMixin):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    status = Column(String(20), default="todo", nullable=False, index=True)
    user_priority = Column(Integer, default=50, nullable=False)
    due_date = Column(DateTime(timezone=True), nullable=True, index=True)
    estimated_effort = Column(String(10), nullable=True)
    bump_count = Column(Integer, default=0, nullable=False)
    priority_score = Column(Numeric(5, 2, asdecimal=False), default=0, nullable=False)
    at_risk = Column(Boolean, default=False, nullable=False)
    score_calculated_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('todo', 'in_progress', 'done')",
            name="ck_tasks_status",
        ),
        CheckConstraint(
            "estimated_effort IS NULL OR estimated_effort IN ('small', 'medium', 'large', 'xlarge')",
            name="ck_tasks_estimated_effort",
        ),
        CheckConstraint("bump_count >= 0", name="ck_tasks_bump_count"),
        CheckConstraint("user_priority BETWEEN 0 AND 100", name="ck_tasks_user_priority"),
        Index("ix_tasks_priority_order", "priority_score", "created_at"),
        Index("ix_tasks_stale_scan", "status", "score_calculated_at"),
    )

    def __repr__(self) -> str:
        return f"<TaskRecord(id={self.id}, status='{self.status}', score={self.priority_score})>"
