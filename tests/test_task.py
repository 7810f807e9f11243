"""Unit tests for taskrank.domain.task — TaskSnapshot and enums."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from taskrank.domain.task import TaskEffort, TaskSnapshot, TaskStatus, as_utc


class TestEnums:
    def test_status_active(self):
        assert TaskStatus.TODO.is_active
        assert TaskStatus.IN_PROGRESS.is_active
        assert not TaskStatus.DONE.is_active

    def test_effort_multiplier(self):
        assert TaskEffort.SMALL.multiplier == 1.3
        assert TaskEffort("xlarge").multiplier == 0.95


class TestAsUtc:
    def test_naive_taken_as_utc(self):
        assert as_utc(datetime(2026, 1, 1, 9)) == datetime(2026, 1, 1, 9, tzinfo=timezone.utc)

    def test_converts_offsets(self):
        plus_two = timezone(timedelta(hours=2))
        converted = as_utc(datetime(2026, 1, 1, 9, tzinfo=plus_two))
        assert converted.hour == 7
        assert converted.tzinfo is timezone.utc


class TestTaskSnapshot:
    def test_defaults(self, now):
        task = TaskSnapshot(created_at=now)
        assert task.user_priority == 50
        assert task.bump_count == 0
        assert task.status is TaskStatus.TODO
        assert task.estimated_effort is None
        assert task.priority_score == 0.0
        assert task.is_active
        assert not task.is_done

    def test_timestamps_normalised(self):
        task = TaskSnapshot(created_at=datetime(2026, 3, 1), due_date="2026-03-05T10:00:00+01:00")
        assert task.created_at.tzinfo is timezone.utc
        assert task.due_date == datetime(2026, 3, 5, 9, tzinfo=timezone.utc)

    def test_created_at_required(self):
        with pytest.raises(ValidationError):
            TaskSnapshot()

    def test_unknown_status(self, now):
        with pytest.raises(ValidationError):
            TaskSnapshot(created_at=now, status="archived")

    def test_repr(self, now):
        r = repr(TaskSnapshot(id=5, created_at=now, bump_count=2))
        assert "id=5" in r
        assert "bumps=2" in r
