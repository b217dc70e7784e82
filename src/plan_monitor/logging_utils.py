"""Configure logging and summarize snapshots for log output."""

import json
import sys
from typing import Any, Optional

from loguru import logger

from .models import JobSnapshot


def configure_logging(level: str = "INFO") -> None:
    """Configure the loguru logger with the specified level."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{module}</cyan>:<cyan>{line}</cyan>\n"
            "{message}"
        ),
    )


def summarize_snapshot(snapshot: Optional[JobSnapshot], job_id: Optional[str] = None) -> dict[str, Any]:
    """Render a compact, JSON-friendly summary of a snapshot.

    Args:
        snapshot: Snapshot to summarize (or None).
        job_id: Optional job id to include.

    Returns:
        A dictionary suitable for logging or serialization.
    """
    if snapshot is None:
        return {"snapshot": None}

    d: dict[str, Any] = {"status": snapshot.status.value}
    if job_id is not None:
        d["job_id"] = job_id

    plan = snapshot.plan
    if plan is None:
        d["plan"] = None
    else:
        tasks = plan.tasks or ()
        d["tasks_n"] = len(plan.tasks) if plan.tasks is not None else None
        d["progress"] = f"{plan.progress.completed_tasks}/{plan.progress.total_tasks}"
        active = [task.task_id for task in tasks if task.execution_status.value == "in_progress"]
        if active:
            d["active"] = active
        failed = [task.task_id for task in tasks if task.execution_status.value == "failed"]
        if failed:
            d["failed"] = failed

    if snapshot.result:
        result = snapshot.result
        d["result"] = (result[:120] + "…") if len(result) > 120 else result

    return d


def pretty(obj: Any, *, indent: int = 2) -> str:
    """Serialize an object as indented JSON for logs and terminal output.

    Args:
        obj: Object to serialize.
        indent: Indentation level for JSON output.

    Returns:
        A JSON string when possible; otherwise `str(obj)`.
    """
    try:
        return json.dumps(obj, indent=indent, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(obj)
