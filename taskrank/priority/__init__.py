"""TaskRank priority — scoring, risk classification and ordering."""

from taskrank.priority.calculator import PriorityBreakdown, PriorityCalculator, compute_score  # noqa: F401
from taskrank.priority.ordering import TaskListFilter, TaskOrderingService, TaskPage, order_tasks  # noqa: F401
from taskrank.priority.risk import AtRiskClassifier, compute_risk  # noqa: F401

__all__ = [
    "AtRiskClassifier",
    "PriorityBreakdown",
    "PriorityCalculator",
    "TaskListFilter",
    "TaskOrderingService",
    "TaskPage",
    "compute_risk",
    "compute_score",
    "order_tasks",
]
