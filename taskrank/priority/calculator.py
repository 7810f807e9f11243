"""
Priority Calculator — numeric priority score (0-100) for a task snapshot.

Scoring formula:
    score = clamp(
        (user_priority * 0.4 + time_decay * 0.3
         + deadline_urgency * 0.2 + bump_penalty * 0.1) * effort_boost,
        0, 100,
    )
rounded to 2 decimal places.

Components:
  - time_decay (0-100): linear ramp over the first 30 days of a task's life
  - deadline_urgency (0-100): piecewise; 100 when overdue, 50-100 over the
    final 3 days, 0-50 between 7 and 3 days out, 0 otherwise
  - bump_penalty (0-50): 10 per bump, capped
  - effort_boost: multiplier applied after the weighted sum

The calculator is pure: "now" is always passed in, nothing is read from the
clock and the snapshot is never mutated.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel

from taskrank.domain.task import TaskEffort, TaskSnapshot, as_utc

USER_PRIORITY_WEIGHT = 0.4
TIME_DECAY_WEIGHT = 0.3
DEADLINE_URGENCY_WEIGHT = 0.2
BUMP_PENALTY_WEIGHT = 0.1

TIME_DECAY_RAMP_DAYS = 30.0
URGENT_WINDOW_DAYS = 3.0
WARNING_WINDOW_DAYS = 7.0
BUMP_PENALTY_PER_BUMP = 10.0
BUMP_PENALTY_CAP = 50.0

MIN_SCORE = 0.0
MAX_SCORE = 100.0

_SECONDS_PER_DAY = 86400.0


def _days(delta: timedelta) -> float:
    return delta.total_seconds() / _SECONDS_PER_DAY


class PriorityBreakdown(BaseModel):
    """Individual components of one priority calculation."""

    user_priority: float
    time_decay: float
    deadline_urgency: float
    bump_penalty: float
    effort_boost: float

    user_priority_weighted: float
    time_decay_weighted: float
    deadline_urgency_weighted: float
    bump_penalty_weighted: float

    weighted_sum: float
    boosted_sum: float
    score: float


class PriorityCalculator:
    """Stateless; one instance can be shared across threads."""

    def time_decay(self, created_at: datetime, now: datetime) -> float:
        age_days = _days(as_utc(now) - as_utc(created_at))
        decay = age_days / TIME_DECAY_RAMP_DAYS * 100.0
        return max(0.0, min(100.0, decay))

    def deadline_urgency(self, due_date: Optional[datetime], now: datetime) -> float:
        if due_date is None:
            return 0.0

        days_until_due = _days(as_utc(due_date) - as_utc(now))

        if days_until_due < 0:
            return 100.0
        if days_until_due <= URGENT_WINDOW_DAYS:
            # 100 at the deadline down to 50 three days out
            return 100.0 - (days_until_due / URGENT_WINDOW_DAYS) * 50.0
        if days_until_due <= WARNING_WINDOW_DAYS:
            # 50 three days out down to 0 seven days out
            window = WARNING_WINDOW_DAYS - URGENT_WINDOW_DAYS
            return ((WARNING_WINDOW_DAYS - days_until_due) / window) * 50.0
        return 0.0

    def bump_penalty(self, bump_count: int) -> float:
        return min(BUMP_PENALTY_CAP, bump_count * BUMP_PENALTY_PER_BUMP)

    def effort_boost(self, effort: Optional[TaskEffort]) -> float:
        if effort is None:
            return 1.0
        return effort.multiplier

    def breakdown(self, snapshot: TaskSnapshot, now: datetime) -> PriorityBreakdown:
        """Compute every component and the final score for *snapshot* at *now*."""
        user_priority = float(snapshot.user_priority)
        time_decay = self.time_decay(snapshot.created_at, now)
        deadline_urgency = self.deadline_urgency(snapshot.due_date, now)
        bump_penalty = self.bump_penalty(snapshot.bump_count)
        effort_boost = self.effort_boost(snapshot.estimated_effort)

        up_w = user_priority * USER_PRIORITY_WEIGHT
        td_w = time_decay * TIME_DECAY_WEIGHT
        du_w = deadline_urgency * DEADLINE_URGENCY_WEIGHT
        bp_w = bump_penalty * BUMP_PENALTY_WEIGHT

        weighted_sum = up_w + td_w + du_w + bp_w
        boosted_sum = weighted_sum * effort_boost
        score = round(max(MIN_SCORE, min(MAX_SCORE, boosted_sum)), 2)

        return PriorityBreakdown(
            user_priority=user_priority,
            time_decay=time_decay,
            deadline_urgency=deadline_urgency,
            bump_penalty=bump_penalty,
            effort_boost=effort_boost,
            user_priority_weighted=up_w,
            time_decay_weighted=td_w,
            deadline_urgency_weighted=du_w,
            bump_penalty_weighted=bp_w,
            weighted_sum=weighted_sum,
            boosted_sum=boosted_sum,
            score=score,
        )

    def calculate(self, snapshot: TaskSnapshot, now: datetime) -> float:
        """Return the priority score in [0, 100], rounded to 2 decimals."""
        return self.breakdown(snapshot, now).score


_default_calculator = PriorityCalculator()


def compute_score(snapshot: TaskSnapshot, now: datetime) -> float:
    """Pure, synchronous score for *snapshot* evaluated at *now*."""
    return _default_calculator.calculate(snapshot, now)
