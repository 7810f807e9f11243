"""
TaskRank Error Hierarchy — Structured exceptions for the scoring engine.

Every error is serialisable to JSON so that lifecycle handlers can return it
as a rejected mutation and the sweep can write it to the structured log.

Hierarchy:
    TaskRankError
    ├── TaskRankValidationError  — Malformed snapshot or edit
    ├── TaskRankStoreError       — Storage adapter failure
    ├── TaskRankConfigError      — Invalid taskrank.yaml
    └── TaskRankSweepError       — Sweep item exhausted its retries
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


class TaskRankError(Exception):
    """
    Base error for all TaskRank engine failures.
    All context is kept as keyword arguments and serialised by to_dict().
    """

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.task_id: Optional[Any] = context.get("task_id")
        self.operation: Optional[str] = context.get("operation")
        self.error_type: str = self.__class__.__name__
        self.context: Dict[str, Any] = context
        self.timestamp: str = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize error to a JSON-compatible dict for logging."""
        return {
            "error_type": self.error_type,
            "message": self.message,
            "task_id": self.task_id,
            "operation": self.operation,
            "timestamp": self.timestamp,
            "context": {
                k: str(v) for k, v in self.context.items()
                if k not in ("task_id", "operation", "validation_errors")
            },
        }

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), default=str)

    def __repr__(self) -> str:
        parts = [f"{self.error_type}: {self.message}"]
        if self.task_id is not None:
            parts.append(f"task_id={self.task_id}")
        if self.operation:
            parts.append(f"operation={self.operation}")
        return " | ".join(parts)


class TaskRankValidationError(TaskRankError):
    """
    Snapshot or edit failed validation (range, enum, transition).
    Includes field-level error details: [{"field": ..., "error": ...}].
    """

    def __init__(self, message: str, **context: Any):
        self.validation_errors: List[Dict[str, Any]] = context.get("validation_errors") or []
        super().__init__(message, **context)

    @property
    def fields(self) -> List[str]:
        return [e.get("field", "") for e in self.validation_errors]

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["validation_errors"] = self.validation_errors
        return d


class TaskRankStoreError(TaskRankError):
    """Storage adapter call failed (select or conditional update)."""
    pass


class TaskRankConfigError(TaskRankError):
    """Configuration error — invalid taskrank.yaml."""
    pass


class TaskRankSweepError(TaskRankError):
    """A sweep item failed on every attempt."""

    def __init__(self, message: str, **context: Any):
        self.attempts: Optional[int] = context.get("attempts")
        self.last_error: Optional[str] = context.get("last_error")
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["attempts"] = self.attempts
        d["last_error"] = self.last_error
        return d
