"""Unit tests for taskrank.engine.errors — Error hierarchy & serialization."""

import json

import pytest

from taskrank.engine.errors import (
    TaskRankConfigError,
    TaskRankError,
    TaskRankStoreError,
    TaskRankSweepError,
    TaskRankValidationError,
)


class TestTaskRankError:
    """Base error class tests."""

    def test_basic_creation(self):
        err = TaskRankError("something broke")
        assert err.message == "something broke"
        assert str(err) == "something broke"
        assert err.error_type == "TaskRankError"
        assert err.task_id is None
        assert err.operation is None

    def test_context_fields(self):
        err = TaskRankError("fail", task_id=42, operation="bump")
        assert err.task_id == 42
        assert err.operation == "bump"

    def test_to_dict(self):
        err = TaskRankError("fail", task_id=7, operation="create")
        d = err.to_dict()
        assert d["error_type"] == "TaskRankError"
        assert d["message"] == "fail"
        assert d["task_id"] == 7
        assert d["operation"] == "create"
        assert "timestamp" in d

    def test_to_json(self):
        err = TaskRankError("fail")
        parsed = json.loads(err.to_json())
        assert parsed["error_type"] == "TaskRankError"
        assert parsed["message"] == "fail"

    def test_repr(self):
        err = TaskRankError("fail", task_id=9, operation="update")
        r = repr(err)
        assert "TaskRankError" in r
        assert "task_id=9" in r
        assert "operation=update" in r

    def test_extra_context_serialized(self):
        err = TaskRankError("fail", sweep_id="sweep_abc")
        d = err.to_dict()
        assert d["context"]["sweep_id"] == "sweep_abc"
        assert "task_id" not in d["context"]


class TestTaskRankValidationError:
    def test_validation_errors(self):
        err = TaskRankValidationError(
            "bad input",
            validation_errors=[{"field": "user_priority", "error": "out of range"}],
        )
        assert err.validation_errors == [{"field": "user_priority", "error": "out of range"}]
        assert err.fields == ["user_priority"]
        d = err.to_dict()
        assert d["validation_errors"][0]["field"] == "user_priority"
        assert "validation_errors" not in d["context"]

    def test_defaults_to_empty_list(self):
        err = TaskRankValidationError("bad input")
        assert err.validation_errors == []
        assert err.fields == []


class TestTaskRankSweepError:
    def test_sweep_fields(self):
        err = TaskRankSweepError("gave up", task_id=3, attempts=3, last_error="db down")
        assert err.attempts == 3
        assert err.last_error == "db down"
        d = err.to_dict()
        assert d["attempts"] == 3
        assert d["last_error"] == "db down"
        assert d["task_id"] == 3


class TestSimpleSubclasses:
    def test_store_error(self):
        assert isinstance(TaskRankStoreError("down"), TaskRankError)

    def test_config_error(self):
        assert isinstance(TaskRankConfigError("bad config"), TaskRankError)


class TestErrorRaiseCatch:
    """Ensure errors can be raised and caught via hierarchy."""

    def test_catch_base(self):
        with pytest.raises(TaskRankError):
            raise TaskRankValidationError("bad")

    def test_does_not_match_sibling(self):
        with pytest.raises(TaskRankStoreError):
            try:
                raise TaskRankStoreError("down")
            except TaskRankValidationError:
                pytest.fail("Should not have caught as ValidationError")
