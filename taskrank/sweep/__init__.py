"""TaskRank sweep — periodic re-scoring of tasks that drifted with time."""

from taskrank.sweep.recalculation import RecalculationSweep, SweepResult  # noqa: F401
from taskrank.sweep.runner import SweepRunner  # noqa: F401

__all__ = ["RecalculationSweep", "SweepResult", "SweepRunner"]
