"""At-risk classification — chronically delayed or imminently due tasks."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import List

from taskrank.domain.task import TaskSnapshot, as_utc

AT_RISK_BUMP_THRESHOLD = 3
AT_RISK_DUE_WINDOW = timedelta(days=3)

REASON_BUMPED = "bumped"
REASON_DUE_SOON = "due_soon"


class AtRiskClassifier:
    """
    A task is at risk iff bump_count >= 3 OR its due date falls before
    now + 3 days (overdue tasks included). Independent of priority_score.
    """

    def reasons(self, snapshot: TaskSnapshot, now: datetime) -> List[str]:
        found: List[str] = []
        if snapshot.bump_count >= AT_RISK_BUMP_THRESHOLD:
            found.append(REASON_BUMPED)
        if snapshot.due_date is not None and as_utc(snapshot.due_date) < as_utc(now) + AT_RISK_DUE_WINDOW:
            found.append(REASON_DUE_SOON)
        return found

    def is_at_risk(self, snapshot: TaskSnapshot, now: datetime) -> bool:
        return bool(self.reasons(snapshot, now))


_default_classifier = AtRiskClassifier()


def compute_risk(snapshot: TaskSnapshot, now: datetime) -> bool:
    """Pure, synchronous at-risk flag for *snapshot* evaluated at *now*."""
    return _default_classifier.is_at_risk(snapshot, now)
