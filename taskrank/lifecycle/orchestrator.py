"""
Lifecycle Orchestrator — decides when a task's score is recomputed.

State machine over task status:

    todo ⇄ in_progress → done      (reopen: done → todo)

| Trigger   | Action                                                    |
|-----------|-----------------------------------------------------------|
| create    | score with bump_count=0 before first persistence          |
| update    | recompute synchronously if a scoring input changed        |
| bump      | bump_count += 1, then recompute                           |
| complete  | status → done; scoring stops                              |
| reopen    | status → todo; recompute, bump_count is kept              |

Every operation takes a snapshot and returns a new one; the caller persists
it. Operations on a done task (other than reopen) return it unchanged.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, List, Mapping, Optional

from taskrank.domain.task import TaskSnapshot, TaskStatus, as_utc
from taskrank.engine.errors import TaskRankValidationError
from taskrank.engine.logging import log, log_lifecycle_event
from taskrank.lifecycle.bump import BumpTracker
from taskrank.lifecycle.events import (
    TASK_BUMPED,
    TASK_COMPLETED,
    TASK_CREATED,
    TASK_REOPENED,
    TASK_UPDATED,
    LifecycleEvent,
    LifecycleEventRegistry,
    get_event_registry,
)
from taskrank.lifecycle.validation import apply_changes, validate_snapshot, validate_transition
from taskrank.priority.calculator import PriorityCalculator
from taskrank.priority.risk import AtRiskClassifier

logger = logging.getLogger("taskrank.lifecycle.orchestrator")

SCORING_FIELDS = frozenset({"user_priority", "due_date", "estimated_effort"})
EDITABLE_FIELDS = SCORING_FIELDS | {"status"}


class LifecycleOrchestrator:
    def __init__(
        self,
        calculator: Optional[PriorityCalculator] = None,
        classifier: Optional[AtRiskClassifier] = None,
        bump_tracker: Optional[BumpTracker] = None,
        events: Optional[LifecycleEventRegistry] = None,
    ):
        self.calculator = calculator or PriorityCalculator()
        self.classifier = classifier or AtRiskClassifier()
        self.bump_tracker = bump_tracker or BumpTracker()
        self.events = events if events is not None else get_event_registry()

    # ── Scoring ──

    def _score(self, snapshot: TaskSnapshot, now: datetime) -> TaskSnapshot:
        return snapshot.model_copy(update={
            "priority_score": self.calculator.calculate(snapshot, now),
            "at_risk": self.classifier.is_at_risk(snapshot, now),
            "score_calculated_at": as_utc(now),
        })

    def recalculate(self, snapshot: TaskSnapshot, now: datetime) -> TaskSnapshot:
        """Full recompute of score and risk. No-op for done tasks."""
        if snapshot.is_done:
            return snapshot
        validate_snapshot(snapshot, operation="recalculate")
        return self._score(snapshot, now)

    # ── Mutations ──

    def create(self, snapshot: TaskSnapshot, now: datetime) -> TaskSnapshot:
        validate_snapshot(snapshot, operation="create")
        errors = []
        if snapshot.bump_count != 0:
            errors.append({"field": "bump_count", "error": "new tasks start with bump_count 0"})
        if snapshot.is_done:
            errors.append({"field": "status", "error": "cannot create a completed task"})
        if errors:
            raise TaskRankValidationError(
                f"Invalid new task: {errors[0]['error']}",
                task_id=snapshot.id,
                operation="create",
                validation_errors=errors,
            )

        created = self._score(snapshot, now).model_copy(update={"updated_at": as_utc(now)})
        self._emit(TASK_CREATED, created, now)
        return created

    def update(self, snapshot: TaskSnapshot, changes: Mapping[str, Any], now: datetime) -> TaskSnapshot:
        """
        Apply field edits. A change to any scoring input recomputes the score
        in the same call; status "done" is routed through complete().
        A completed task is returned unchanged; reopen() is the way back.
        """
        unknown = sorted(set(changes) - EDITABLE_FIELDS)
        if unknown:
            raise TaskRankValidationError(
                f"Fields cannot be edited: {', '.join(unknown)}",
                task_id=snapshot.id,
                operation="update",
                validation_errors=[{"field": f, "error": "not editable"} for f in unknown],
            )
        validate_snapshot(snapshot, operation="update")

        edits = dict(changes)
        target: Optional[TaskStatus] = None
        if "status" in edits:
            target = self._coerce_status(snapshot, edits.pop("status"))
            validate_transition(snapshot, target, operation="update")

        if snapshot.is_done:
            logger.debug(f"Update ignored for completed task {snapshot.id}")
            return snapshot

        updated = apply_changes(snapshot, edits) if edits else snapshot
        changed = [f for f in edits if getattr(updated, f) != getattr(snapshot, f)]

        if target is TaskStatus.DONE:
            return self.complete(updated, now, fields_changed=changed)

        if target is not None and target is not snapshot.status:
            updated = updated.model_copy(update={"status": target})
            changed.append("status")

        if not changed:
            return snapshot

        if SCORING_FIELDS.intersection(changed):
            updated = self._score(updated, now)

        updated = updated.model_copy(update={"updated_at": as_utc(now)})
        self._emit(TASK_UPDATED, updated, now, previous=snapshot, fields_changed=changed)
        return updated

    def bump(self, snapshot: TaskSnapshot, now: datetime) -> TaskSnapshot:
        if snapshot.is_done:
            logger.debug(f"Bump ignored for completed task {snapshot.id}")
            return snapshot
        bumped = self.bump_tracker.bump(snapshot, now, self._score)
        bumped = bumped.model_copy(update={"updated_at": as_utc(now)})
        self._emit(TASK_BUMPED, bumped, now, previous=snapshot, fields_changed=["bump_count"])
        return bumped

    def complete(
        self,
        snapshot: TaskSnapshot,
        now: datetime,
        fields_changed: Optional[List[str]] = None,
    ) -> TaskSnapshot:
        if snapshot.is_done:
            return snapshot
        validate_snapshot(snapshot, operation="complete")
        completed = snapshot.model_copy(update={
            "status": TaskStatus.DONE,
            "completed_at": as_utc(now),
            "updated_at": as_utc(now),
        })
        changed = list(fields_changed or []) + ["status"]
        self._emit(TASK_COMPLETED, completed, now, previous=snapshot, fields_changed=changed)
        return completed

    def reopen(self, snapshot: TaskSnapshot, now: datetime) -> TaskSnapshot:
        """Move a done task back to todo. The bump penalty carries over."""
        if not snapshot.is_done:
            return snapshot
        validate_snapshot(snapshot, operation="reopen")
        reopened = snapshot.model_copy(update={
            "status": TaskStatus.TODO,
            "completed_at": None,
        })
        reopened = self._score(reopened, now).model_copy(update={"updated_at": as_utc(now)})
        self._emit(TASK_REOPENED, reopened, now, previous=snapshot, fields_changed=["status"])
        return reopened

    # ── Helpers ──

    @staticmethod
    def _coerce_status(snapshot: TaskSnapshot, value: Any) -> TaskStatus:
        try:
            return TaskStatus(value)
        except ValueError:
            raise TaskRankValidationError(
                f"Unknown status '{value}'",
                task_id=snapshot.id,
                operation="update",
                validation_errors=[{"field": "status", "error": f"unknown status {value!r}"}],
            ) from None

    def _emit(
        self,
        event_name: str,
        task: TaskSnapshot,
        now: datetime,
        previous: Optional[TaskSnapshot] = None,
        fields_changed: Optional[List[str]] = None,
    ) -> None:
        log(log_lifecycle_event(
            event=event_name,
            task_id=task.id,
            status=task.status.value,
            priority_score=task.priority_score,
            bump_count=task.bump_count,
            at_risk=task.at_risk,
            fields_changed=fields_changed,
            risk_reasons=self.classifier.reasons(task, now) if task.at_risk else None,
        ))
        self.events.fire(LifecycleEvent(
            name=event_name,
            task=task,
            occurred_at=as_utc(now),
            previous=previous,
            fields_changed=list(fields_changed or []),
        ))
