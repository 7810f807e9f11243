"""TaskRank Engine — errors, configuration and structured logging."""

from taskrank.engine.errors import (  # noqa: F401
    TaskRankConfigError,
    TaskRankError,
    TaskRankStoreError,
    TaskRankSweepError,
    TaskRankValidationError,
)

__all__ = [
    "TaskRankConfigError",
    "TaskRankError",
    "TaskRankStoreError",
    "TaskRankSweepError",
    "TaskRankValidationError",
]
