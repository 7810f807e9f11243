"""TaskRank storage adapter — SQLAlchemy model, sessions and the sweep's store port."""

from taskrank.db.session import init_task_db, session_scope  # noqa: F401
from taskrank.db.store import SqlTaskStore, TaskStore  # noqa: F401

__all__ = ["SqlTaskStore", "TaskStore", "init_task_db", "session_scope"]
