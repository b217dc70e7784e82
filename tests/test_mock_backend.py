"""Tests for the in-process mock backend and its client."""

from __future__ import annotations

import random
import re

import pytest

from plan_monitor.client.mock import MockJobBackend, MockJobClient, generate_task_list
from plan_monitor.errors import TransportError, UnknownJobError
from plan_monitor.models import JobStatus


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend(clock: FakeClock) -> MockJobBackend:
    return MockJobBackend(seconds_per_task=3.0, clock=clock, rng=random.Random(7))


class TestTaskList:
    def test_short_query_has_seven_chained_tasks(self) -> None:
        tasks = generate_task_list("weather tomorrow")
        assert [t["task_id"] for t in tasks] == ["t1", "t2", "t3", "t4", "t5", "t6", "t7"]
        assert tasks[0]["dependencies"] == []
        for prev, task in zip(tasks, tasks[1:]):
            assert task["dependencies"] == [prev["task_id"]]

    def test_long_query_adds_checks_before_verification(self) -> None:
        tasks = generate_task_list("x" * 101)
        ids = [t["task_id"] for t in tasks]
        assert ids == ["t1", "t2", "t3", "t4", "t5", "t4a", "t4b", "t6", "t7"]
        assert tasks[ids.index("t6")]["dependencies"] == ["t4b"]
        assert generate_task_list("x" * 100)[5]["task_id"] == "t6"


class TestBackend:
    def test_job_ids(self, backend: MockJobBackend) -> None:
        first = backend.start_job("q")
        second = backend.start_job("q")
        assert re.fullmatch(r"chat-[a-z0-9]{8}", first)
        assert first != second
        assert backend.session_count == 2

    def test_unknown_job(self, backend: MockJobBackend) -> None:
        with pytest.raises(UnknownJobError):
            backend.job_status("chat-missing")

    def test_progress_by_request_count(self, backend: MockJobBackend) -> None:
        job_id = backend.start_job("weather tomorrow")
        first = backend.job_status(job_id)
        assert first["status"] == "IN_PROGRESS"
        assert first["plan"]["progress"] == {"completed_tasks": 0, "total_tasks": 7, "percentage": 0}
        statuses = [t["execution_status"] for t in first["plan"]["tasks"]]
        assert statuses == ["in_progress"] + ["pending"] * 6
        assert 30 <= first["plan"]["tasks"][0]["progress_percentage"] <= 69

        backend.job_status(job_id)
        third = backend.job_status(job_id)
        assert third["plan"]["progress"]["completed_tasks"] == 1
        done = third["plan"]["tasks"][0]
        assert done["execution_status"] == "completed"
        assert done["execution_details"] == "Executed reasoning successfully"
        assert "completion_time" in done

    def test_progress_by_elapsed_time(self, backend: MockJobBackend, clock: FakeClock) -> None:
        job_id = backend.start_job("weather tomorrow")
        clock.now += 7.0
        payload = backend.job_status(job_id)
        assert payload["plan"]["progress"]["completed_tasks"] == 2
        assert payload["metadata"]["processing_time"] == "7.00s"

    def test_completes_with_result(self, backend: MockJobBackend, clock: FakeClock) -> None:
        job_id = backend.start_job("what will the weather be like tomorrow in Lisbon?")
        clock.now += 60
        payload = backend.job_status(job_id)
        assert payload["status"] == "COMPLETED"
        assert payload["plan"]["progress"]["percentage"] == 100
        assert all(t["execution_status"] == "completed" for t in payload["plan"]["tasks"])
        assert payload["result"].startswith(
            'I\'ve completed processing your query about "what will the weather be like ...".'
        )

    def test_sessions_are_bounded(self, clock: FakeClock) -> None:
        backend = MockJobBackend(max_sessions=2, clock=clock)
        oldest = backend.start_job("a")
        backend.start_job("b")
        backend.start_job("c")
        assert backend.session_count == 2
        with pytest.raises(UnknownJobError):
            backend.job_status(oldest)

    def test_discard(self, backend: MockJobBackend) -> None:
        job_id = backend.start_job("q")
        assert backend.discard(job_id) is True
        assert backend.discard(job_id) is False

    def test_backends_do_not_share_state(self, clock: FakeClock) -> None:
        job_id = MockJobBackend(clock=clock).start_job("q")
        with pytest.raises(UnknownJobError):
            MockJobBackend(clock=clock).job_status(job_id)


@pytest.mark.anyio
class TestMockClient:
    async def test_parses_snapshots(self, backend: MockJobBackend, clock: FakeClock) -> None:
        client = MockJobClient(backend)
        job_id = await client.start_job("q", "general", None)
        snapshot = await client.get_job_status(job_id)
        assert snapshot.status is JobStatus.IN_PROGRESS
        assert len(snapshot.tasks) == 7

        clock.now += 60
        snapshot = await client.get_job_status(job_id)
        assert snapshot.is_terminal
        assert snapshot.result

    async def test_unknown_job_is_transport_error(self, backend: MockJobBackend) -> None:
        with pytest.raises(TransportError) as excinfo:
            await MockJobClient(backend).get_job_status("chat-nope")
        assert excinfo.value.status_code == 404
