"""
Task ordering — the sort order used by every task listing.

Primary key priority_score descending; ties go to the newer task
(created_at descending). The service never recalculates: it trusts the
persisted score.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional

from pydantic import BaseModel, Field

from taskrank.domain.task import TaskSnapshot, TaskStatus, as_utc
from taskrank.engine.errors import TaskRankValidationError
from taskrank.priority.risk import AtRiskClassifier


def _sort_key(task: TaskSnapshot):
    return (task.priority_score, as_utc(task.created_at))


class TaskListFilter(BaseModel):
    """Listing filter; limit=None means the configured default page size."""

    status: Optional[TaskStatus] = None
    min_priority: Optional[float] = None
    max_priority: Optional[float] = None
    due_date_start: Optional[datetime] = None
    due_date_end: Optional[datetime] = None
    at_risk_only: bool = False
    limit: Optional[int] = None
    offset: int = 0


class TaskPage(BaseModel):
    tasks: List[TaskSnapshot] = Field(default_factory=list)
    total: int = 0
    limit: int = 0
    offset: int = 0

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.tasks) < self.total


class TaskOrderingService:
    def __init__(
        self,
        classifier: Optional[AtRiskClassifier] = None,
        default_page_size: int = 25,
        max_page_size: int = 100,
    ):
        self._classifier = classifier or AtRiskClassifier()
        self._default_page_size = default_page_size
        self._max_page_size = max_page_size

    @classmethod
    def from_config(cls, config=None) -> "TaskOrderingService":
        if config is None:
            from taskrank.engine.config import get_config
            config = get_config()
        return cls(
            default_page_size=config.ordering.default_page_size,
            max_page_size=config.ordering.max_page_size,
        )

    def order(self, tasks: Iterable[TaskSnapshot]) -> List[TaskSnapshot]:
        """Stable sort: score desc, then created_at desc."""
        return sorted(tasks, key=_sort_key, reverse=True)

    def at_risk(self, tasks: Iterable[TaskSnapshot], now: datetime) -> List[TaskSnapshot]:
        """Active at-risk tasks, ordered."""
        return self.order(
            t for t in tasks
            if t.is_active and self._classifier.is_at_risk(t, now)
        )

    def _matches(self, task: TaskSnapshot, flt: TaskListFilter, now: datetime) -> bool:
        if flt.status is not None and task.status is not flt.status:
            return False
        if flt.min_priority is not None and task.priority_score < flt.min_priority:
            return False
        if flt.max_priority is not None and task.priority_score > flt.max_priority:
            return False
        if flt.due_date_start is not None or flt.due_date_end is not None:
            if task.due_date is None:
                return False
            due = as_utc(task.due_date)
            if flt.due_date_start is not None and due < as_utc(flt.due_date_start):
                return False
            if flt.due_date_end is not None and due > as_utc(flt.due_date_end):
                return False
        if flt.at_risk_only and not self._classifier.is_at_risk(task, now):
            return False
        return True

    def list_view(
        self,
        tasks: Iterable[TaskSnapshot],
        flt: Optional[TaskListFilter] = None,
        now: Optional[datetime] = None,
    ) -> TaskPage:
        """Filter, order and paginate. `now` is required for at_risk_only."""
        flt = flt or TaskListFilter()
        if flt.at_risk_only and now is None:
            raise TaskRankValidationError(
                "at_risk_only listing needs an explicit 'now'",
                validation_errors=[{"field": "at_risk_only", "error": "now is required"}],
            )
        limit = flt.limit if flt.limit is not None else self._default_page_size
        errors = []
        if limit < 1 or limit > self._max_page_size:
            errors.append({"field": "limit", "error": f"must be between 1 and {self._max_page_size}"})
        if flt.offset < 0:
            errors.append({"field": "offset", "error": "must be >= 0"})
        if errors:
            raise TaskRankValidationError("Invalid listing filter", validation_errors=errors)

        matched = self.order(t for t in tasks if self._matches(t, flt, now))
        return TaskPage(
            tasks=matched[flt.offset:flt.offset + limit],
            total=len(matched),
            limit=limit,
            offset=flt.offset,
        )


_default_service = TaskOrderingService()


def order_tasks(tasks: Iterable[TaskSnapshot]) -> List[TaskSnapshot]:
    """Pure, synchronous ordering of *tasks*."""
    return _default_service.order(tasks)
