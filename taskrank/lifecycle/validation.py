"""Snapshot validation for the lifecycle paths. Nothing here clamps or corrects."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping

from pydantic import ValidationError

from taskrank.domain.task import TaskSnapshot, TaskStatus
from taskrank.engine.errors import TaskRankValidationError

MIN_USER_PRIORITY = 0
MAX_USER_PRIORITY = 100

ALLOWED_TRANSITIONS = {
    TaskStatus.TODO: {TaskStatus.IN_PROGRESS, TaskStatus.DONE},
    TaskStatus.IN_PROGRESS: {TaskStatus.TODO, TaskStatus.DONE},
    TaskStatus.DONE: set(),
}


def snapshot_errors(snapshot: TaskSnapshot) -> List[Dict[str, Any]]:
    """Field-level problems with *snapshot*; empty when valid."""
    errors: List[Dict[str, Any]] = []
    if not MIN_USER_PRIORITY <= snapshot.user_priority <= MAX_USER_PRIORITY:
        errors.append({
            "field": "user_priority",
            "error": f"invalid priority value {snapshot.user_priority}, "
                     f"expected {MIN_USER_PRIORITY}-{MAX_USER_PRIORITY}",
        })
    if snapshot.bump_count < 0:
        errors.append({
            "field": "bump_count",
            "error": f"bump count cannot be negative, got {snapshot.bump_count}",
        })
    if not isinstance(snapshot.status, TaskStatus):
        errors.append({"field": "status", "error": f"unknown status {snapshot.status!r}"})
    return errors


def validate_snapshot(snapshot: TaskSnapshot, operation: str = "validate") -> TaskSnapshot:
    """Raise TaskRankValidationError if *snapshot* is malformed, else return it."""
    errors = snapshot_errors(snapshot)
    if errors:
        raise TaskRankValidationError(
            f"Invalid task snapshot: {errors[0]['error']}",
            task_id=snapshot.id,
            operation=operation,
            validation_errors=errors,
        )
    return snapshot


def validate_transition(snapshot: TaskSnapshot, target: TaskStatus, operation: str = "update") -> None:
    if target is snapshot.status:
        return
    if target not in ALLOWED_TRANSITIONS[snapshot.status]:
        raise TaskRankValidationError(
            f"Cannot move task from '{snapshot.status.value}' to '{target.value}'",
            task_id=snapshot.id,
            operation=operation,
            validation_errors=[{
                "field": "status",
                "error": f"transition {snapshot.status.value} -> {target.value} not allowed",
            }],
        )


def _pydantic_errors(exc: ValidationError) -> List[Dict[str, Any]]:
    return [
        {"field": ".".join(str(p) for p in err["loc"]), "error": err["msg"]}
        for err in exc.errors()
    ]


def load_snapshot(data: Mapping[str, Any], operation: str = "load") -> TaskSnapshot:
    """Build and validate a snapshot from raw caller data (dict / DB row)."""
    try:
        snapshot = TaskSnapshot.model_validate(dict(data))
    except ValidationError as e:
        errors = _pydantic_errors(e)
        raise TaskRankValidationError(
            f"Invalid task data: {errors[0]['field']} {errors[0]['error']}",
            task_id=data.get("id"),
            operation=operation,
            validation_errors=errors,
        ) from e
    return validate_snapshot(snapshot, operation=operation)


def apply_changes(snapshot: TaskSnapshot, changes: Mapping[str, Any], operation: str = "update") -> TaskSnapshot:
    """
    Return a re-validated copy of *snapshot* with *changes* applied.
    Goes through model_validate so enum and timestamp coercion still apply.
    """
    merged = snapshot.model_dump()
    merged.update(changes)
    merged["id"] = snapshot.id
    return load_snapshot(merged, operation=operation)
