from __future__ import annotations

from typing import Optional, Protocol

from ..models import JobSnapshot


class JobClient(Protocol):
    """Remote job API consumed by the polling synchronizer.

    Implementations raise :class:`~plan_monitor.errors.TransportError` for
    any failure to reach the backend or to understand its response.
    """

    async def start_job(self, query: str, domain: str, solution_hint: Optional[str]) -> str:
        ...

    async def get_job_status(self, job_id: str) -> JobSnapshot:
        ...
