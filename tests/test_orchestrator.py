"""Unit tests for taskrank.lifecycle.orchestrator — create/update/bump/complete/reopen."""

from datetime import timedelta

import pytest

from taskrank.domain.task import TaskEffort, TaskStatus
from taskrank.engine.errors import TaskRankValidationError
from taskrank.engine.logging import FileLogger, init_logging, shutdown_logging
from taskrank.lifecycle.events import (
    LIFECYCLE_EVENTS,
    TASK_BUMPED,
    TASK_COMPLETED,
    TASK_CREATED,
    TASK_REOPENED,
    TASK_UPDATED,
    LifecycleEventRegistry,
)
from taskrank.lifecycle.orchestrator import LifecycleOrchestrator


@pytest.fixture
def fired():
    return []


@pytest.fixture
def orchestrator(fired):
    registry = LifecycleEventRegistry()
    for name in LIFECYCLE_EVENTS:
        registry.register(name, "recorder", fired.append)
    return LifecycleOrchestrator(events=registry)


@pytest.fixture
def created(orchestrator, make_task, now, fired):
    task = orchestrator.create(make_task(id=1, user_priority=50), now)
    fired.clear()
    return task


class TestCreate:
    def test_scores_before_persistence(self, orchestrator, make_task, now, fired):
        task = orchestrator.create(make_task(id=1, user_priority=50), now)
        assert task.priority_score == 20.0
        assert task.at_risk is False
        assert task.score_calculated_at == now
        assert task.updated_at == now
        assert [e.name for e in fired] == [TASK_CREATED]

    def test_due_soon_is_at_risk(self, orchestrator, make_task, now):
        task = orchestrator.create(make_task(due_in=timedelta(days=1)), now)
        assert task.at_risk is True

    def test_rejects_nonzero_bump_count(self, orchestrator, make_task, now, fired):
        with pytest.raises(TaskRankValidationError) as exc:
            orchestrator.create(make_task(bump_count=2), now)
        assert exc.value.fields == ["bump_count"]
        assert fired == []

    def test_rejects_done_task(self, orchestrator, make_task, now):
        with pytest.raises(TaskRankValidationError) as exc:
            orchestrator.create(make_task(status=TaskStatus.DONE), now)
        assert exc.value.fields == ["status"]

    def test_rejects_out_of_range_priority(self, orchestrator, make_task, now):
        with pytest.raises(TaskRankValidationError):
            orchestrator.create(make_task(user_priority=120), now)


class TestUpdate:
    def test_scoring_field_recomputes(self, orchestrator, created, now, fired):
        later = now + timedelta(hours=1)
        task = orchestrator.update(created, {"user_priority": 100}, later)
        # 100*0.4 + (1h / 30d * 100)*0.3
        assert task.priority_score == pytest.approx(40.04)
        assert task.score_calculated_at == later
        assert fired[0].name == TASK_UPDATED
        assert fired[0].fields_changed == ["user_priority"]
        assert fired[0].previous is created

    def test_effort_accepts_raw_value(self, orchestrator, created, now):
        task = orchestrator.update(created, {"estimated_effort": "small"}, now)
        assert task.estimated_effort is TaskEffort.SMALL
        assert task.priority_score == 26.0

    def test_due_date_updates_risk(self, orchestrator, created, now):
        task = orchestrator.update(created, {"due_date": now + timedelta(hours=5)}, now)
        assert task.at_risk is True

    def test_status_only_does_not_rescore(self, orchestrator, created, now, fired):
        later = now + timedelta(days=2)
        task = orchestrator.update(created, {"status": "in_progress"}, later)
        assert task.status is TaskStatus.IN_PROGRESS
        assert task.priority_score == created.priority_score
        assert task.score_calculated_at == created.score_calculated_at
        assert task.updated_at == later
        assert fired[0].fields_changed == ["status"]

    def test_no_change_returns_same_snapshot(self, orchestrator, created, now, fired):
        assert orchestrator.update(created, {"user_priority": 50}, now) is created
        assert fired == []

    def test_unknown_field(self, orchestrator, created, now):
        with pytest.raises(TaskRankValidationError) as exc:
            orchestrator.update(created, {"bump_count": 0, "priority_score": 99}, now)
        assert exc.value.fields == ["bump_count", "priority_score"]

    def test_unknown_status(self, orchestrator, created, now):
        with pytest.raises(TaskRankValidationError, match="Unknown status"):
            orchestrator.update(created, {"status": "archived"}, now)

    def test_out_of_range_priority_rejected(self, orchestrator, created, now):
        with pytest.raises(TaskRankValidationError):
            orchestrator.update(created, {"user_priority": 101}, now)

    def test_status_done_routes_to_complete(self, orchestrator, created, now, fired):
        task = orchestrator.update(created, {"status": "done", "user_priority": 90}, now)
        assert task.status is TaskStatus.DONE
        assert task.completed_at == now
        assert task.user_priority == 90
        assert [e.name for e in fired] == [TASK_COMPLETED]
        assert fired[0].fields_changed == ["user_priority", "status"]

    def test_done_task_edit_is_noop(self, orchestrator, created, now, fired):
        done = orchestrator.complete(created, now)
        fired.clear()
        edited = orchestrator.update(done, {"user_priority": 100}, now + timedelta(days=1))
        assert edited is done
        assert edited.user_priority == 50
        assert edited.updated_at == now
        assert fired == []

    def test_done_task_status_done_is_noop(self, orchestrator, created, now, fired):
        done = orchestrator.complete(created, now)
        fired.clear()
        assert orchestrator.update(done, {"status": "done", "due_date": now}, now) is done
        assert fired == []

    def test_explicit_none_status_rejected(self, orchestrator, created, now, fired):
        with pytest.raises(TaskRankValidationError) as exc:
            orchestrator.update(created, {"status": None}, now)
        assert exc.value.fields == ["status"]
        assert fired == []

    def test_leaving_done_through_update_rejected(self, orchestrator, created, now):
        done = orchestrator.complete(created, now)
        with pytest.raises(TaskRankValidationError, match="Cannot move task"):
            orchestrator.update(done, {"status": "todo"}, now)


class TestBump:
    def test_increments_and_rescores(self, orchestrator, created, now, fired):
        task = orchestrator.bump(created, now)
        assert task.bump_count == 1
        assert task.priority_score == 21.0
        assert [e.name for e in fired] == [TASK_BUMPED]

    def test_third_bump_marks_at_risk(self, orchestrator, created, now):
        task = created
        for _ in range(3):
            task = orchestrator.bump(task, now)
        assert task.bump_count == 3
        assert task.at_risk is True

    def test_bump_penalty_caps(self, orchestrator, created, now):
        task = created
        for _ in range(8):
            task = orchestrator.bump(task, now)
        assert task.bump_count == 8
        assert task.priority_score == 25.0

    def test_done_task_ignored(self, orchestrator, created, now, fired):
        done = orchestrator.complete(created, now)
        fired.clear()
        assert orchestrator.bump(done, now) is done
        assert fired == []


class TestComplete:
    def test_marks_done_and_keeps_score(self, orchestrator, created, now, fired):
        later = now + timedelta(days=10)
        task = orchestrator.complete(created, later)
        assert task.status is TaskStatus.DONE
        assert task.completed_at == later
        assert task.priority_score == created.priority_score
        assert [e.name for e in fired] == [TASK_COMPLETED]

    def test_idempotent(self, orchestrator, created, now, fired):
        done = orchestrator.complete(created, now)
        assert orchestrator.complete(done, now + timedelta(days=1)) is done
        assert len(fired) == 1

    def test_recalculate_is_noop_when_done(self, orchestrator, created, now):
        done = orchestrator.complete(created, now)
        assert orchestrator.recalculate(done, now + timedelta(days=40)) is done


class TestReopen:
    def test_back_to_todo_with_bumps_kept(self, orchestrator, created, now, fired):
        task = orchestrator.bump(orchestrator.bump(created, now), now)
        done = orchestrator.complete(task, now)
        fired.clear()

        later = now + timedelta(days=15)
        reopened = orchestrator.reopen(done, later)
        assert reopened.status is TaskStatus.TODO
        assert reopened.completed_at is None
        assert reopened.bump_count == 2
        assert reopened.score_calculated_at == later
        # 50*0.4 + 50*0.3 + 20*0.1
        assert reopened.priority_score == 37.0
        assert [e.name for e in fired] == [TASK_REOPENED]

    def test_active_task_unchanged(self, orchestrator, created, now):
        assert orchestrator.reopen(created, now) is created


class TestRecalculate:
    def test_full_recompute(self, orchestrator, created, now):
        later = now + timedelta(days=30)
        task = orchestrator.recalculate(created, later)
        assert task.priority_score == 50.0
        assert task.score_calculated_at == later


class TestStructuredLog:
    def test_lifecycle_events_written(self, orchestrator, make_task, now, tmp_path):
        log_dir = tmp_path / "logs"
        init_logging(log_dir=str(log_dir), flush_interval_ms=10)
        task = orchestrator.create(make_task(id=11, bump_count=0), now)
        orchestrator.bump(task, now)
        shutdown_logging()

        rows = FileLogger(log_dir=str(log_dir)).query("tasks", "execution", filters={"task_id": 11})
        assert [r["event"] for r in rows] == [TASK_CREATED, TASK_BUMPED]
        assert rows[1]["bump_count"] == 1
