"""Domain model for job snapshots, plans and positioned tasks.

Snapshots are parsed leniently from the backend payload: absent ``plan``,
``result`` or optional task fields resolve to safe defaults rather than
errors. All models are frozen, since a snapshot is never mutated after
receipt.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class JobStatus(str, Enum):
    """Overall status of a remote job."""

    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    ERROR = "ERROR"

    @property
    def is_terminal(self) -> bool:
        return self is not JobStatus.IN_PROGRESS


class ExecutionStatus(str, Enum):
    """Execution state of a single task within a plan."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @classmethod
    def parse(cls, value: Any) -> "ExecutionStatus":
        """Map a wire value onto a status; unknown values count as pending."""
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.PENDING


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _opt_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text if text else None


def _opt_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return int(number) if number.is_integer() else number


def _int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _dedupe(ids: Any) -> tuple[str, ...]:
    if not isinstance(ids, (list, tuple, set, frozenset)):
        return ()
    seen: set[str] = set()
    ordered: list[str] = []
    for raw in ids:
        dep = str(raw)
        if dep in seen:
            continue
        seen.add(dep)
        ordered.append(dep)
    return tuple(ordered)


# ---------------------------------------------------------------------------
# Plan / snapshot
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Task:
    """A unit of work in a job's plan."""

    task_id: str
    task_description: str = ""
    task_type: str = ""
    execution_status: ExecutionStatus = ExecutionStatus.PENDING
    dependencies: tuple[str, ...] = ()
    progress_percentage: Optional[float] = None
    started_at: Optional[str] = None
    completion_time: Optional[str] = None
    estimated_time: Optional[str] = None
    execution_details: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Task":
        return cls(
            task_id=str(data.get("task_id") or ""),
            task_description=str(data.get("task_description") or ""),
            task_type=str(data.get("task_type") or ""),
            execution_status=ExecutionStatus.parse(data.get("execution_status")),
            dependencies=_dedupe(data.get("dependencies")),
            progress_percentage=_opt_number(data.get("progress_percentage")),
            started_at=_opt_str(data.get("started_at")),
            completion_time=_opt_str(data.get("completion_time")),
            estimated_time=_opt_str(data.get("estimated_time")),
            execution_details=_opt_str(data.get("execution_details")),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "task_id": self.task_id,
            "task_description": self.task_description,
            "task_type": self.task_type,
            "execution_status": self.execution_status.value,
            "dependencies": list(self.dependencies),
        }
        for key in ("progress_percentage", "started_at", "completion_time", "estimated_time", "execution_details"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


@dataclass(frozen=True)
class PlanProgress:
    completed_tasks: int = 0
    total_tasks: int = 0
    percentage: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Any) -> "PlanProgress":
        if not isinstance(data, Mapping):
            return cls()
        return cls(
            completed_tasks=_int(data.get("completed_tasks")),
            total_tasks=_int(data.get("total_tasks")),
            percentage=_opt_number(data.get("percentage")),
        )

    def percent_complete(self) -> int:
        """Rounded completion percentage; 0 for an empty plan."""
        if self.total_tasks <= 0:
            return 0
        return round(self.completed_tasks / self.total_tasks * 100)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"completed_tasks": self.completed_tasks, "total_tasks": self.total_tasks}
        if self.percentage is not None:
            data["percentage"] = self.percentage
        return data


@dataclass(frozen=True)
class Plan:
    # None when the payload carries no task list; () for an explicit empty one
    tasks: Optional[tuple[Task, ...]] = None
    progress: PlanProgress = field(default_factory=PlanProgress)
    last_updated: Optional[str] = None
    estimated_completion_time: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Plan":
        raw_tasks = data.get("tasks")
        tasks = None
        if isinstance(raw_tasks, list):
            tasks = tuple(Task.from_dict(item) for item in raw_tasks if isinstance(item, Mapping))
        return cls(
            tasks=tasks,
            progress=PlanProgress.from_dict(data.get("progress")),
            last_updated=_opt_str(data.get("last_updated")),
            estimated_completion_time=_opt_str(data.get("estimated_completion_time")),
        )

    def get_task(self, task_id: str) -> Optional[Task]:
        for task in self.tasks or ():
            if task.task_id == task_id:
                return task
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "tasks": [task.to_dict() for task in self.tasks] if self.tasks is not None else None,
            "progress": self.progress.to_dict(),
            "last_updated": self.last_updated,
            "estimated_completion_time": self.estimated_completion_time,
        }


@dataclass(frozen=True)
class JobSnapshot:
    """The status payload returned by one poll of a remote job."""

    status: JobStatus
    plan: Optional[Plan] = None
    result: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def tasks(self) -> Optional[tuple[Task, ...]]:
        """Task list of the plan, or None when no plan is available yet."""
        return self.plan.tasks if self.plan is not None else None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "JobSnapshot":
        """Parse a wire payload.

        Raises:
            ValueError: If ``status`` is missing or not a known job status.
        """
        if not isinstance(data, Mapping):
            raise ValueError(f"snapshot payload must be an object, got {type(data).__name__}")
        raw_status = data.get("status")
        try:
            status = JobStatus(str(raw_status).strip().upper())
        except ValueError:
            raise ValueError(f"unknown job status: {raw_status!r}") from None
        plan_raw = data.get("plan")
        result = data.get("result")
        metadata = data.get("metadata")
        return cls(
            status=status,
            plan=Plan.from_dict(plan_raw) if isinstance(plan_raw, Mapping) else None,
            result=str(result) if result is not None else None,
            metadata=dict(metadata) if isinstance(metadata, Mapping) else {},
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "plan": self.plan.to_dict() if self.plan is not None else None,
            "result": self.result,
            "metadata": dict(self.metadata),
        }


# ---------------------------------------------------------------------------
# Layout output
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PositionedTask:
    """A task placed on the layered canvas."""

    task: Task
    level: int
    x: float
    y: float

    @property
    def task_id(self) -> str:
        return self.task.task_id

    def to_dict(self) -> dict[str, Any]:
        data = self.task.to_dict()
        data.update({"level": self.level, "x": self.x, "y": self.y})
        return data


@dataclass(frozen=True)
class Edge:
    """Connector from a dependency's bottom-center to a task's top-center."""

    source_id: str
    target_id: str
    start: tuple[float, float]
    end: tuple[float, float]

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_id": self.source_id,
            "target_id": self.target_id,
            "start": list(self.start),
            "end": list(self.end),
        }


@dataclass(frozen=True)
class PlanLayout:
    nodes: tuple[PositionedTask, ...] = ()
    edges: tuple[Edge, ...] = ()
    width: float = 0
    height: float = 0

    @property
    def level_count(self) -> int:
        return max((node.level for node in self.nodes), default=-1) + 1

    def by_level(self) -> list[list[PositionedTask]]:
        """Nodes grouped per level, preserving input order within a level."""
        rows: list[list[PositionedTask]] = [[] for _ in range(self.level_count)]
        for node in self.nodes:
            rows[node.level].append(node)
        return rows

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
            "width": self.width,
            "height": self.height,
        }
