"""In-process backend simulator and the job client that wraps it.

The simulator advances a fixed chain of tasks based on elapsed time and on
how many times the status was requested, so a session completes even when
polled faster than real time. State is scoped per backend instance and
bounded by ``max_sessions``.
"""

from __future__ import annotations

import random
import string
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from loguru import logger

from ..constants import (
    DEFAULT_SECONDS_PER_TASK,
    MOCK_JOB_ID_PREFIX,
    MOCK_LONG_QUERY_CHARS,
    MOCK_MAX_SESSIONS,
    MOCK_REQUESTS_PER_TASK,
)
from ..errors import TransportError, UnknownJobError
from ..models import JobSnapshot


_BASE_TASKS: tuple[dict[str, str], ...] = (
    {"task_id": "t1", "task_description": "Parse user query", "task_type": "Reasoning", "estimated_time": "1s"},
    {"task_id": "t2", "task_description": "Identify query intent", "task_type": "Reasoning", "estimated_time": "2s"},
    {"task_id": "t3", "task_description": "Search knowledge base", "task_type": "Tool call", "estimated_time": "3s"},
    {"task_id": "t4", "task_description": "Process and filter search results", "task_type": "Reasoning", "estimated_time": "2s"},
    {"task_id": "t5", "task_description": "Generate initial response", "task_type": "Reasoning", "estimated_time": "3s"},
    {"task_id": "t6", "task_description": "Verify response accuracy", "task_type": "Reasoning", "estimated_time": "2s"},
    {"task_id": "t7", "task_description": "Format final response", "task_type": "Reasoning", "estimated_time": "2s"},
)

_EXTRA_CHECKS: tuple[dict[str, str], ...] = (
    {"task_id": "t4a", "task_description": "Perform fact-checking", "task_type": "Tool call", "estimated_time": "3s"},
    {"task_id": "t4b", "task_description": "Validate logical consistency", "task_type": "Reasoning", "estimated_time": "2s"},
)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_task_list(query: str) -> list[dict[str, Any]]:
    """Return the task chain for ``query``; each task depends on the one before it."""
    tasks = [dict(task) for task in _BASE_TASKS]
    if len(query) > MOCK_LONG_QUERY_CHARS:
        tasks[5:5] = [dict(task) for task in _EXTRA_CHECKS]
    for index, task in enumerate(tasks):
        task["dependencies"] = [] if index == 0 else [tasks[index - 1]["task_id"]]
    return tasks


def _iso_at(epoch_seconds: float) -> str:
    return datetime.fromtimestamp(epoch_seconds, tz=timezone.utc).isoformat()


@dataclass
class _MockSession:
    query: str
    domain: str
    solution_hint: Optional[str]
    started_at: float
    requests: int = 0
    tasks: list[dict[str, Any]] = field(default_factory=list)


class MockJobBackend:
    """Simulate the chat job API without a network."""

    def __init__(
        self,
        *,
        seconds_per_task: float = DEFAULT_SECONDS_PER_TASK,
        max_sessions: int = MOCK_MAX_SESSIONS,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.seconds_per_task = seconds_per_task
        self.max_sessions = max_sessions
        self._clock = clock
        self._rng = rng or random.Random()
        self._sessions: OrderedDict[str, _MockSession] = OrderedDict()

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    def _new_id(self) -> str:
        while True:
            job_id = MOCK_JOB_ID_PREFIX + "".join(self._rng.choice(_ID_ALPHABET) for _ in range(8))
            if job_id not in self._sessions:
                return job_id

    def start_job(self, query: str, domain: str = "general", solution_hint: Optional[str] = None) -> str:
        job_id = self._new_id()
        self._sessions[job_id] = _MockSession(
            query=query,
            domain=domain,
            solution_hint=solution_hint,
            started_at=self._clock(),
            tasks=generate_task_list(query),
        )
        while len(self._sessions) > self.max_sessions:
            evicted, _ = self._sessions.popitem(last=False)
            logger.debug("Mock backend evicted session {}", evicted)
        return job_id

    def discard(self, job_id: str) -> bool:
        return self._sessions.pop(job_id, None) is not None

    def job_status(self, job_id: str) -> dict[str, Any]:
        """Return the wire payload for the next status request of ``job_id``.

        Raises:
            UnknownJobError: If no session exists for ``job_id``.
        """
        session = self._sessions.get(job_id)
        if session is None:
            raise UnknownJobError(job_id)
        session.requests += 1

        now = self._clock()
        elapsed = max(0.0, now - session.started_at)
        total = len(session.tasks)
        completed = min(
            int(elapsed // self.seconds_per_task) + session.requests // MOCK_REQUESTS_PER_TASK,
            total,
        )

        tasks: list[dict[str, Any]] = []
        for index, base in enumerate(session.tasks):
            task = dict(base, dependencies=list(base["dependencies"]))
            if index < completed:
                task["execution_status"] = "completed"
                task["completion_time"] = _iso_at(session.started_at + (index + 1) * self.seconds_per_task)
                task["execution_details"] = f"Executed {task['task_type'].lower()} successfully"
            elif index == completed:
                task["execution_status"] = "in_progress"
                task["started_at"] = _iso_at(session.started_at + completed * self.seconds_per_task)
                task["progress_percentage"] = self._rng.randint(30, 69)
            else:
                task["execution_status"] = "pending"
            tasks.append(task)

        status = "IN_PROGRESS"
        result = None
        estimated_completion = _iso_at(session.started_at + total * self.seconds_per_task)
        if completed >= total:
            status = "COMPLETED"
            estimated_completion = None
            result = (
                f'I\'ve completed processing your query about "{session.query[:30]}...". '
                "The answer incorporates the latest available information and considers "
                "multiple perspectives on the topic."
            )

        return {
            "plan": {
                "tasks": tasks,
                "progress": {
                    "completed_tasks": completed,
                    "total_tasks": total,
                    "percentage": int(completed / total * 100) if total else 0,
                },
                "last_updated": _iso_at(now),
                "estimated_completion_time": estimated_completion,
            },
            "result": result,
            "status": status,
            "metadata": {
                "query_length": len(session.query),
                "processing_time": f"{elapsed:.2f}s",
                "request_count": session.requests,
            },
        }


class MockJobClient:
    """Job client backed by an in-process :class:`MockJobBackend`."""

    def __init__(self, backend: Optional[MockJobBackend] = None) -> None:
        self.backend = backend or MockJobBackend()

    async def start_job(self, query: str, domain: str, solution_hint: Optional[str]) -> str:
        return self.backend.start_job(query, domain, solution_hint)

    async def get_job_status(self, job_id: str) -> JobSnapshot:
        try:
            payload = self.backend.job_status(job_id)
        except UnknownJobError as exc:
            raise TransportError(f"Unknown job: {job_id}", status_code=404) from exc
        return JobSnapshot.from_dict(payload)
