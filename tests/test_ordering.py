"""Unit tests for taskrank.priority.ordering — listing order, filters and pages."""

from datetime import timedelta

import pytest

from taskrank.domain.task import TaskStatus
from taskrank.engine.config import TaskRankConfig
from taskrank.engine.errors import TaskRankValidationError
from taskrank.priority.ordering import TaskListFilter, TaskOrderingService, order_tasks


@pytest.fixture
def service():
    return TaskOrderingService(default_page_size=3, max_page_size=10)


@pytest.fixture
def tasks(make_task):
    return [
        make_task(id=1, priority_score=40.0, age=timedelta(days=2)),
        make_task(id=2, priority_score=80.0, age=timedelta(days=1), bump_count=3),
        make_task(id=3, priority_score=40.0, age=timedelta(hours=1), due_in=timedelta(days=1)),
        make_task(id=4, priority_score=10.0, status=TaskStatus.DONE, bump_count=5),
        make_task(id=5, priority_score=60.0, status=TaskStatus.IN_PROGRESS, due_in=timedelta(days=20)),
    ]


class TestOrder:
    def test_score_desc_then_newest_first(self, tasks):
        assert [t.id for t in order_tasks(tasks)] == [2, 5, 3, 1, 4]

    def test_scenario_tie_break(self, make_task):
        a = make_task(id=1, priority_score=50.0, age=timedelta(days=1))
        b = make_task(id=2, priority_score=50.0)
        assert [t.id for t in order_tasks([a, b])] == [2, 1]

    def test_stable_for_full_ties(self, make_task):
        same = [make_task(id=i, priority_score=30.0) for i in range(5)]
        assert [t.id for t in order_tasks(same)] == [0, 1, 2, 3, 4]

    def test_does_not_recalculate(self, make_task):
        stale = make_task(id=1, priority_score=1.0, bump_count=5, user_priority=100)
        fresh = make_task(id=2, priority_score=2.0)
        assert [t.id for t in order_tasks([stale, fresh])] == [2, 1]

    def test_empty(self):
        assert order_tasks([]) == []


class TestAtRisk:
    def test_active_at_risk_only(self, service, tasks, now):
        assert [t.id for t in service.at_risk(tasks, now)] == [2, 3]


class TestListView:
    def test_default_page(self, service, tasks):
        page = service.list_view(tasks)
        assert [t.id for t in page.tasks] == [2, 5, 3]
        assert page.total == 5
        assert page.limit == 3
        assert page.has_more is True

    def test_offset(self, service, tasks):
        page = service.list_view(tasks, TaskListFilter(offset=3))
        assert [t.id for t in page.tasks] == [1, 4]
        assert page.has_more is False

    def test_status_filter(self, service, tasks):
        page = service.list_view(tasks, TaskListFilter(status=TaskStatus.TODO, limit=10))
        assert [t.id for t in page.tasks] == [2, 3, 1]

    def test_priority_range(self, service, tasks):
        page = service.list_view(tasks, TaskListFilter(min_priority=40, max_priority=60, limit=10))
        assert [t.id for t in page.tasks] == [5, 3, 1]

    def test_due_window_excludes_undated(self, service, tasks, now):
        flt = TaskListFilter(due_date_start=now, due_date_end=now + timedelta(days=7), limit=10)
        assert [t.id for t in service.list_view(tasks, flt).tasks] == [3]

    def test_at_risk_only(self, service, tasks, now):
        page = service.list_view(tasks, TaskListFilter(at_risk_only=True, limit=10), now=now)
        assert [t.id for t in page.tasks] == [2, 3, 4]

    def test_at_risk_only_requires_now(self, service, tasks):
        with pytest.raises(TaskRankValidationError) as exc:
            service.list_view(tasks, TaskListFilter(at_risk_only=True))
        assert exc.value.fields == ["at_risk_only"]

    @pytest.mark.parametrize("limit", [0, 11])
    def test_limit_bounds(self, service, tasks, limit):
        with pytest.raises(TaskRankValidationError) as exc:
            service.list_view(tasks, TaskListFilter(limit=limit))
        assert "limit" in exc.value.fields

    def test_negative_offset(self, service, tasks):
        with pytest.raises(TaskRankValidationError) as exc:
            service.list_view(tasks, TaskListFilter(offset=-1))
        assert exc.value.fields == ["offset"]

    def test_from_config(self, tasks):
        cfg = TaskRankConfig(ordering={"default_page_size": 2, "max_page_size": 4})
        page = TaskOrderingService.from_config(cfg).list_view(tasks)
        assert page.limit == 2
        assert len(page.tasks) == 2
