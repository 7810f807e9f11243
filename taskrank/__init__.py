"""
TaskRank — Priority Scoring & Lifecycle Engine.

Three pure call shapes for collaborators:

    compute_score(snapshot, now) -> float
    compute_risk(snapshot, now)  -> bool
    order_tasks(snapshots)       -> list

plus LifecycleOrchestrator for the create / update / bump / complete paths
and RecalculationSweep for time-driven re-scoring.
"""

__version__ = "1.0.0"

from taskrank.domain.task import TaskEffort, TaskSnapshot, TaskStatus  # noqa: E402,F401
from taskrank.lifecycle.orchestrator import LifecycleOrchestrator  # noqa: E402,F401
from taskrank.priority.calculator import compute_score  # noqa: E402,F401
from taskrank.priority.ordering import order_tasks  # noqa: E402,F401
from taskrank.priority.risk import compute_risk  # noqa: E402,F401

__all__ = [
    "LifecycleOrchestrator",
    "TaskEffort",
    "TaskSnapshot",
    "TaskStatus",
    "compute_risk",
    "compute_score",
    "order_tasks",
]
