"""HTTP implementation of the job client on top of httpx."""

from __future__ import annotations

from typing import Any, Optional

import httpx
from loguru import logger

from ..constants import CHAT_STATUS_PATH, DEFAULT_API_TIMEOUT_SECONDS, START_CHAT_PATH
from ..errors import TransportError
from ..models import JobSnapshot


class HttpJobClient:
    """Talk to the chat backend over HTTP.

    Usage::

        async with HttpJobClient("http://localhost:8000") as client:
            job_id = await client.start_job("weather tomorrow", "general", None)
            snapshot = await client.get_job_status(job_id)
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = DEFAULT_API_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url + "/",
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )

    async def __aenter__(self) -> "HttpJobClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, payload: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        try:
            response = await self._client.request(method, path, json=payload)
        except httpx.HTTPError as exc:
            raise TransportError(f"Network error: {exc.__class__.__name__}: {exc}") from exc

        if response.status_code >= 400:
            body = response.text[:240]
            raise TransportError(
                f"API request failed: {response.status_code} {response.reason_phrase}. {body}".rstrip(),
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise TransportError(f"Invalid JSON response: {exc}", status_code=response.status_code) from exc
        if not isinstance(data, dict):
            raise TransportError(
                f"Invalid response: expected object, got {type(data).__name__}",
                status_code=response.status_code,
            )
        return data

    async def start_job(self, query: str, domain: str, solution_hint: Optional[str]) -> str:
        data = await self._request("POST", START_CHAT_PATH, {"query": query, "domain": domain, "solution": solution_hint})
        job_id = data.get("id")
        if not job_id:
            raise TransportError("Invalid response: missing job id")
        logger.debug("Started job {} at {}", job_id, self.base_url)
        return str(job_id)

    async def get_job_status(self, job_id: str) -> JobSnapshot:
        data = await self._request("GET", CHAT_STATUS_PATH.format(job_id=job_id))
        try:
            return JobSnapshot.from_dict(data)
        except ValueError as exc:
            raise TransportError(f"Invalid status payload for {job_id}: {exc}") from exc
