"""Error taxonomy for job transport and session synchronization."""

from __future__ import annotations

from typing import Optional


class TransportError(Exception):
    """Raised by a job client when a backend request cannot be completed.

    Covers network failures, non-2xx responses and payloads that cannot be
    parsed into the expected shape.
    """

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SyncError(Exception):
    """Base class for failures surfaced by the polling synchronizer."""

    def __init__(self, message: str, *, job_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.job_id = job_id

    @property
    def user_message(self) -> str:
        return str(self)


class StartFailure(SyncError):
    """Job creation failed; the session never reached polling."""

    @property
    def user_message(self) -> str:
        return f"Failed to start chat: {self}"


class FetchFailure(SyncError):
    """A status fetch failed or timed out; the session was terminated."""

    @property
    def user_message(self) -> str:
        return f"Failed to fetch chat status: {self}"


class SessionReplaced(SyncError):
    """A pending ``start()`` was superseded by a newer ``start()`` or ``stop()``."""


class UnknownJobError(KeyError):
    """The mock backend has no session for the requested job id."""
