"""Tests for snapshot and plan parsing."""

from __future__ import annotations

import pytest

from plan_monitor.models import ExecutionStatus, JobSnapshot, JobStatus, PlanProgress, Task


class TestTask:
    def test_full_task(self) -> None:
        task = Task.from_dict(
            {
                "task_id": "t3",
                "task_description": "Search knowledge base",
                "task_type": "Tool call",
                "execution_status": "in_progress",
                "dependencies": ["t2", "t2", "t1"],
                "progress_percentage": 42,
                "started_at": "2024-05-01T10:00:00Z",
                "estimated_time": "3s",
            }
        )
        assert task.execution_status is ExecutionStatus.IN_PROGRESS
        assert task.dependencies == ("t2", "t1")
        assert task.progress_percentage == 42
        assert task.completion_time is None

    def test_missing_fields_default(self) -> None:
        task = Task.from_dict({"task_id": "t1"})
        assert task.task_description == ""
        assert task.execution_status is ExecutionStatus.PENDING
        assert task.dependencies == ()
        assert task.progress_percentage is None

    @pytest.mark.parametrize("raw", ["COMPLETED", " completed ", "completed"])
    def test_status_is_case_insensitive(self, raw: str) -> None:
        assert Task.from_dict({"task_id": "t", "execution_status": raw}).execution_status is ExecutionStatus.COMPLETED

    def test_unknown_status_is_pending(self) -> None:
        assert Task.from_dict({"task_id": "t", "execution_status": "queued"}).execution_status is ExecutionStatus.PENDING

    def test_bad_progress_is_dropped(self) -> None:
        assert Task.from_dict({"task_id": "t", "progress_percentage": "lots"}).progress_percentage is None
        assert Task.from_dict({"task_id": "t", "progress_percentage": 12.5}).progress_percentage == 12.5

    def test_to_dict_omits_unset_optionals(self) -> None:
        data = Task.from_dict({"task_id": "t1", "task_type": "Reasoning"}).to_dict()
        assert data == {
            "task_id": "t1",
            "task_description": "",
            "task_type": "Reasoning",
            "execution_status": "pending",
            "dependencies": [],
        }


class TestSnapshot:
    def test_status_only(self) -> None:
        snapshot = JobSnapshot.from_dict({"status": "IN_PROGRESS"})
        assert snapshot.plan is None
        assert snapshot.tasks is None
        assert snapshot.result is None
        assert snapshot.metadata == {}
        assert snapshot.is_terminal is False

    @pytest.mark.parametrize("status", ["COMPLETED", "FAILED", "ERROR", "completed"])
    def test_terminal_statuses(self, status: str) -> None:
        assert JobSnapshot.from_dict({"status": status}).is_terminal is True

    @pytest.mark.parametrize("payload", [{}, {"status": "PAUSED"}, {"status": None}])
    def test_unknown_status_is_rejected(self, payload) -> None:
        with pytest.raises(ValueError):
            JobSnapshot.from_dict(payload)

    def test_non_mapping_payload_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            JobSnapshot.from_dict(["IN_PROGRESS"])  # type: ignore[arg-type]

    def test_plan_parsing_skips_junk_tasks(self) -> None:
        snapshot = JobSnapshot.from_dict(
            {
                "status": "IN_PROGRESS",
                "plan": {
                    "tasks": [{"task_id": "t1"}, "garbage", {"task_id": "t2", "dependencies": ["t1"]}],
                    "progress": {"completed_tasks": 1, "total_tasks": 2, "percentage": 50},
                    "last_updated": "2024-05-01T10:00:00Z",
                },
                "result": None,
                "metadata": {"query_length": 16},
            }
        )
        assert [task.task_id for task in snapshot.tasks] == ["t1", "t2"]
        assert snapshot.plan.get_task("t2").dependencies == ("t1",)
        assert snapshot.plan.get_task("nope") is None
        assert snapshot.plan.progress.percent_complete() == 50
        assert snapshot.metadata["query_length"] == 16

    def test_plan_without_task_list_has_no_tasks(self) -> None:
        snapshot = JobSnapshot.from_dict({"status": "IN_PROGRESS", "plan": {}})
        assert snapshot.plan is not None
        assert snapshot.tasks is None
        assert snapshot.plan.get_task("t1") is None
        assert JobSnapshot.from_dict(snapshot.to_dict()) == snapshot

    def test_plan_with_empty_task_list(self) -> None:
        snapshot = JobSnapshot.from_dict({"status": "IN_PROGRESS", "plan": {"tasks": []}})
        assert snapshot.tasks == ()

    def test_round_trip_keeps_status(self) -> None:
        data = {"status": "COMPLETED", "plan": {"tasks": [{"task_id": "t1"}]}, "result": "done", "metadata": {}}
        snapshot = JobSnapshot.from_dict(data)
        assert snapshot.status is JobStatus.COMPLETED
        assert JobSnapshot.from_dict(snapshot.to_dict()) == snapshot


def test_progress_percent_complete() -> None:
    assert PlanProgress().percent_complete() == 0
    assert PlanProgress(completed_tasks=2, total_tasks=7).percent_complete() == 29
    assert PlanProgress.from_dict("bad") == PlanProgress()
