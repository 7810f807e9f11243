"""Task snapshot — the only entity the scoring engine reads and writes."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"

    @property
    def is_active(self) -> bool:
        return self is not TaskStatus.DONE


class TaskEffort(str, Enum):
    """Estimated effort. A task with no estimate has no enum value at all."""

    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    XLARGE = "xlarge"

    @property
    def multiplier(self) -> float:
        return EFFORT_BOOST[self]


EFFORT_BOOST = {
    TaskEffort.SMALL: 1.3,
    TaskEffort.MEDIUM: 1.15,
    TaskEffort.LARGE: 1.0,
    TaskEffort.XLARGE: 0.95,
}

DEFAULT_USER_PRIORITY = 50


def as_utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskSnapshot(BaseModel):
    """
    Point-in-time view of a task's scoring inputs and outputs.

    Scoring inputs: user_priority, created_at, due_date, estimated_effort,
    bump_count. Outputs: priority_score, at_risk, score_calculated_at.
    Range checks on the inputs belong to the lifecycle layer, so a malformed
    snapshot can still be constructed and then rejected with field errors.
    """

    id: Optional[int] = None
    user_priority: int = DEFAULT_USER_PRIORITY
    created_at: datetime
    due_date: Optional[datetime] = None
    estimated_effort: Optional[TaskEffort] = None
    bump_count: int = 0
    status: TaskStatus = TaskStatus.TODO

    priority_score: float = Field(default=0.0)
    at_risk: bool = False
    score_calculated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator(
        "created_at", "due_date", "score_calculated_at", "completed_at", "updated_at",
    )
    @classmethod
    def _normalize_timestamp(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is None:
            return None
        return as_utc(v)

    @property
    def is_active(self) -> bool:
        return self.status.is_active

    @property
    def is_done(self) -> bool:
        return self.status is TaskStatus.DONE

    def __repr__(self) -> str:
        return (
            f"<TaskSnapshot(id={self.id}, status='{self.status.value}', "
            f"score={self.priority_score}, bumps={self.bump_count})>"
        )
