"""Decide whether a freshly polled snapshot differs materially from the last one."""

from __future__ import annotations

from typing import Optional

from .models import JobSnapshot, Task


def has_changed(new: JobSnapshot, prev: Optional[JobSnapshot]) -> bool:
    """Return True when ``new`` should be published over ``prev``.

    Only job status, plan presence, the task id set, per-task execution
    status and progress, and the result text are tracked. Descriptions,
    timestamps and metadata never count as a change.
    """
    if prev is None:
        return True

    if new.status != prev.status:
        return True

    new_tasks = new.tasks
    prev_tasks = prev.tasks
    if (new_tasks is None) != (prev_tasks is None):
        return True

    if new_tasks is not None and prev_tasks is not None:
        if len(new_tasks) != len(prev_tasks):
            return True
        prev_by_id: dict[str, Task] = {}
        for task in prev_tasks:
            prev_by_id.setdefault(task.task_id, task)
        for task in new_tasks:
            before = prev_by_id.get(task.task_id)
            if before is None:
                return True
            if task.execution_status != before.execution_status:
                return True
            if task.progress_percentage != before.progress_percentage:
                return True

    return new.result != prev.result
