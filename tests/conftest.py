"""
TaskRank Test Suite — Shared fixtures and configuration.

Run:  pytest tests/ -v
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from taskrank.domain.task import TaskSnapshot


NOW = datetime(2026, 3, 10, 12, 0, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Global singletons — reset between tests
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _isolate_globals():
    """Reset config, log queue and lifecycle handlers between tests."""
    import taskrank.engine.config as cfg_mod
    import taskrank.engine.logging as log_mod
    from taskrank.lifecycle.events import get_event_registry

    cfg_mod._config = None
    log_mod._global_queue = None
    get_event_registry().clear()
    yield
    log_mod.shutdown_logging()
    get_event_registry().clear()


@pytest.fixture
def now():
    """A fixed, timezone-aware 'now'."""
    return NOW


@pytest.fixture
def make_task(now):
    """
    Factory for TaskSnapshot with sensible defaults.

    Example:
        task = make_task(user_priority=80, due_in=timedelta(days=2))
    """
    def _make(
        age: timedelta = timedelta(0),
        due_in=None,
        **fields,
    ) -> TaskSnapshot:
        data = {
            "created_at": now - age,
            "due_date": (now + due_in) if due_in is not None else None,
        }
        data.update(fields)
        return TaskSnapshot(**data)

    return _make


@pytest.fixture
def sql_store(tmp_path):
    """A SqlTaskStore over a fresh SQLite file."""
    from taskrank.db.session import close_all_sessions, init_task_db
    from taskrank.db.store import SqlTaskStore

    factory = init_task_db(f"sqlite:///{tmp_path / 'tasks.db'}", create_tables=True, name="test_tasks")
    yield SqlTaskStore(factory)
    close_all_sessions()


@pytest.fixture
def project_root(tmp_path):
    """A project directory containing a taskrank.yaml."""
    root = tmp_path / "project"
    root.mkdir()
    (root / "taskrank.yaml").write_text(
        "name: TestRank\n"
        "environment: staging\n"
        "database:\n"
        "  url: sqlite:///tasks.db\n"
        "sweep:\n"
        "  interval_hours: 2\n"
        "  batch_size: 10\n"
        "  max_retries: 1\n"
        "ordering:\n"
        "  default_page_size: 5\n",
        encoding="utf-8",
    )
    return root
