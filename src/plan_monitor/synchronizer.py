"""Polling synchronizer: keeps a local view of one remote job up to date.

A session moves ``IDLE -> STARTING -> POLLING -> TERMINATED``. While polling,
a timer task wakes every ``interval_seconds`` and schedules a status fetch
unless one is already outstanding, so at most one fetch per session is ever
in flight and poll *n* is fully processed before poll *n + 1*.

Every fetch is tagged with the session that issued it. A result arriving
after the session was replaced (``start()``) or stopped (``stop()``) is
dropped without touching the published state.

Usage::

    sync = PollingSynchronizer(client, listeners=[console])
    await sync.start("weather tomorrow")
    await sync.wait_terminated()
    await sync.aclose()
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Optional

from loguru import logger

from .change_detector import has_changed
from .client.interfaces import JobClient
from .constants import (
    DEFAULT_DOMAIN,
    DEFAULT_FETCH_TIMEOUT_SECONDS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    MSG_MANUAL_REFRESH,
    MSG_PLAN_AVAILABLE,
    MSG_RESULT_RECEIVED,
    MSG_STARTED,
)
from .errors import FetchFailure, SessionReplaced, StartFailure, SyncError, TransportError
from .layout import LayoutConfig, build_layout, find_cycle, layout
from .logging_utils import summarize_snapshot
from .models import JobSnapshot, JobStatus, PlanLayout, PositionedTask


class SessionState(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    POLLING = "polling"
    TERMINATED = "terminated"


class TerminationReason(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    ERROR = "error"
    START_FAILURE = "start_failure"
    FETCH_FAILURE = "fetch_failure"
    STOPPED = "stopped"


_REASON_BY_STATUS = {
    JobStatus.COMPLETED: TerminationReason.COMPLETED,
    JobStatus.FAILED: TerminationReason.FAILED,
    JobStatus.ERROR: TerminationReason.ERROR,
}


class SyncListener:
    """Receives synchronizer output. Override only the hooks you need."""

    def on_snapshot_changed(self, snapshot: JobSnapshot) -> None:
        """A materially different snapshot was published."""

    def on_notification(self, message: str) -> None:
        """A short status line for the user."""

    def on_result_message(self, text: str) -> None:
        """A new result text arrived; sent once per distinct result."""

    def on_error(self, error: SyncError) -> None:
        """The session failed and has been terminated."""

    def on_state_changed(self, state: SessionState) -> None:
        """The current session moved to ``state``."""


@dataclass(eq=False)
class _Session:
    query: str
    domain: str
    solution_hint: Optional[str]
    state: SessionState = SessionState.STARTING
    job_id: Optional[str] = None
    snapshot: Optional[JobSnapshot] = None
    last_result: Optional[str] = None
    update_count: int = 0
    # set on the first terminal snapshot; silences "plan updated"
    latched: bool = False
    plan_announced: bool = False
    error: Optional[SyncError] = None
    termination_reason: Optional[TerminationReason] = None
    timer: Optional[asyncio.Task] = None
    fetch: Optional[asyncio.Task] = None
    terminated: Optional[asyncio.Event] = None


class PollingSynchronizer:
    """Drive one job session at a time against a :class:`JobClient`."""

    def __init__(
        self,
        client: JobClient,
        *,
        interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        fetch_timeout_seconds: Optional[float] = DEFAULT_FETCH_TIMEOUT_SECONDS,
        layout_config: Optional[LayoutConfig] = None,
        listeners: Optional[Iterable[SyncListener]] = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._client = client
        self.interval_seconds = interval_seconds
        self.fetch_timeout_seconds = fetch_timeout_seconds
        self.layout_config = layout_config
        self._listeners: list[SyncListener] = list(listeners or [])
        self._session: Optional[_Session] = None
        self._retired: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: SyncListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SyncListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, hook: str, *args: Any) -> None:
        for listener in list(self._listeners):
            try:
                getattr(listener, hook)(*args)
            except Exception:
                logger.exception("Listener {} failed in {}", type(listener).__name__, hook)

    def _notify(self, message: str) -> None:
        logger.debug("Notification: {}", message)
        self._emit("on_notification", message)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._session.state if self._session is not None else SessionState.IDLE

    @property
    def job_id(self) -> Optional[str]:
        return self._session.job_id if self._session is not None else None

    @property
    def snapshot(self) -> Optional[JobSnapshot]:
        """Last published snapshot of the current session."""
        return self._session.snapshot if self._session is not None else None

    @property
    def update_count(self) -> int:
        return self._session.update_count if self._session is not None else 0

    @property
    def error(self) -> Optional[SyncError]:
        return self._session.error if self._session is not None else None

    @property
    def termination_reason(self) -> Optional[TerminationReason]:
        return self._session.termination_reason if self._session is not None else None

    def current_positioned_layout(self) -> list[PositionedTask]:
        snapshot = self.snapshot
        if snapshot is None or not snapshot.tasks:
            return []
        return layout(snapshot.tasks, self.layout_config)

    def current_plan_layout(self) -> PlanLayout:
        snapshot = self.snapshot
        return build_layout(snapshot.tasks if snapshot is not None and snapshot.tasks else (), self.layout_config)

    async def wait_terminated(self, timeout: Optional[float] = None) -> bool:
        """Wait until the current session terminates.

        Returns:
            True once terminated, False on timeout or when no session exists.
        """
        session = self._session
        if session is None or session.terminated is None:
            return False
        try:
            await asyncio.wait_for(session.terminated.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _is_live(self, session: _Session) -> bool:
        return session is self._session and session.state is SessionState.POLLING

    def _set_state(self, session: _Session, state: SessionState) -> None:
        if session.state is state:
            return
        logger.info("Session {} {} -> {}", session.job_id or "<new>", session.state.value, state.value)
        session.state = state
        if session is self._session:
            self._emit("on_state_changed", state)

    def _cancel_timer(self, session: _Session) -> None:
        timer = session.timer
        session.timer = None
        if timer is not None and not timer.done() and timer is not asyncio.current_task():
            timer.cancel()
            self._retire(timer)

    def _retire(self, task: Optional[asyncio.Task]) -> None:
        if task is None or task.done() or task is asyncio.current_task():
            return
        self._retired.add(task)
        task.add_done_callback(self._retired.discard)

    def _terminate(self, session: _Session, reason: TerminationReason) -> None:
        """Move ``session`` to TERMINATED; safe to call more than once."""
        self._cancel_timer(session)
        self._retire(session.fetch)
        if session.state is SessionState.TERMINATED:
            return
        session.termination_reason = reason
        self._set_state(session, SessionState.TERMINATED)
        if session.terminated is not None:
            session.terminated.set()

    def _fail(self, session: _Session, error: SyncError, reason: TerminationReason) -> None:
        session.error = error
        logger.error("{}", error.user_message)
        self._terminate(session, reason)
        self._emit("on_error", error)

    async def start(
        self,
        query: str,
        domain: str = DEFAULT_DOMAIN,
        solution_hint: Optional[str] = None,
    ) -> str:
        """Create a remote job and begin polling it.

        Any current session is stopped first; its in-flight results are
        discarded.

        Returns:
            The remote job id.

        Raises:
            StartFailure: If the job could not be created.
            FetchFailure: If the immediate first status fetch failed.
            SessionReplaced: If ``start()`` or ``stop()`` was called again
                while this call was waiting for the backend.
        """
        previous = self._session
        if previous is not None:
            self._terminate(previous, TerminationReason.STOPPED)

        session = _Session(query=query, domain=domain or DEFAULT_DOMAIN, solution_hint=solution_hint)
        session.terminated = asyncio.Event()
        self._session = session
        self._emit("on_state_changed", session.state)
        logger.info("Starting job for query {!r} (domain={})", query, session.domain)

        try:
            job_id = await self._client.start_job(query, session.domain, solution_hint)
        except TransportError as exc:
            if session is not self._session or session.state is not SessionState.STARTING:
                raise SessionReplaced("Start superseded before the backend answered") from exc
            failure = StartFailure(str(exc))
            self._fail(session, failure, TerminationReason.START_FAILURE)
            raise failure from exc
        except Exception as exc:
            logger.exception("Job client raised while starting {!r}", query)
            if session is not self._session or session.state is not SessionState.STARTING:
                raise SessionReplaced("Start superseded before the backend answered") from exc
            failure = StartFailure(f"{type(exc).__name__}: {exc}")
            self._fail(session, failure, TerminationReason.START_FAILURE)
            raise failure from exc
        except asyncio.CancelledError:
            if session is self._session:
                self._terminate(session, TerminationReason.STOPPED)
            raise

        if session is not self._session or session.state is not SessionState.STARTING:
            raise SessionReplaced(f"Start of {job_id} superseded", job_id=job_id)

        session.job_id = job_id
        self._set_state(session, SessionState.POLLING)
        self._notify(MSG_STARTED)

        try:
            await self._await_fetch(session)
        except asyncio.CancelledError:
            if session is self._session:
                self._terminate(session, TerminationReason.STOPPED)
            raise

        if self._is_live(session):
            session.timer = asyncio.create_task(self._timer_loop(session))
        return job_id

    async def refresh(self) -> bool:
        """Fetch status now, outside the timer cadence.

        Waits for an outstanding fetch instead of racing it.

        Returns:
            False if there is no polling session; True once a fetch has
            been applied.

        Raises:
            FetchFailure: If the fetch failed; the session is terminated.
        """
        session = self._session
        if session is None or session.state is not SessionState.POLLING:
            logger.debug("Refresh ignored in state {}", self.state.value)
            return False
        self._notify(MSG_MANUAL_REFRESH)
        while session.fetch is not None and not session.fetch.done():
            await asyncio.wait({session.fetch})
        if not self._is_live(session):
            return False
        return await self._await_fetch(session)

    def stop(self) -> None:
        """Stop the current session; pending results are discarded."""
        session = self._session
        if session is None:
            return
        self._terminate(session, TerminationReason.STOPPED)

    async def aclose(self) -> None:
        """Stop and wait for the timer and any outstanding fetch to finish."""
        self.stop()
        pending = {task for task in self._retired if not task.done()}
        if pending:
            await asyncio.wait(pending)

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    async def _timer_loop(self, session: _Session) -> None:
        while self._is_live(session):
            await asyncio.sleep(self.interval_seconds)
            if not self._is_live(session):
                break
            if session.fetch is not None and not session.fetch.done():
                logger.debug("Skipping tick for {}: fetch outstanding", session.job_id)
                continue
            self._spawn_fetch(session)

    def _spawn_fetch(self, session: _Session) -> asyncio.Task:
        if session.job_id is None:
            raise RuntimeError("Cannot fetch status before the job has been created")
        task = asyncio.create_task(self._fetch_once(session, session.job_id))
        session.fetch = task
        task.add_done_callback(self._fetch_done)
        return task

    @staticmethod
    def _fetch_done(task: asyncio.Task) -> None:
        # _fetch_once terminates the session before raising; mark the error retrieved.
        if not task.cancelled():
            task.exception()

    async def _await_fetch(self, session: _Session) -> bool:
        task = self._spawn_fetch(session)
        await asyncio.wait({task})
        return task.result()

    async def _get_status(self, job_id: str) -> JobSnapshot:
        if self.fetch_timeout_seconds is None:
            return await self._client.get_job_status(job_id)
        return await asyncio.wait_for(self._client.get_job_status(job_id), self.fetch_timeout_seconds)

    async def _fetch_once(self, session: _Session, job_id: str) -> bool:
        try:
            snapshot = await self._get_status(job_id)
        except (TransportError, asyncio.TimeoutError) as exc:
            if not self._is_live(session):
                logger.warning("Dropping failed fetch for replaced session {}", job_id)
                return False
            if isinstance(exc, TransportError):
                message = str(exc)
            else:
                message = f"timed out after {self.fetch_timeout_seconds:g}s"
            failure = FetchFailure(message, job_id=job_id)
            self._fail(session, failure, TerminationReason.FETCH_FAILURE)
            raise failure from exc
        except Exception as exc:
            logger.exception("Job client raised while fetching {}", job_id)
            if not self._is_live(session):
                return False
            failure = FetchFailure(f"{type(exc).__name__}: {exc}", job_id=job_id)
            self._fail(session, failure, TerminationReason.FETCH_FAILURE)
            raise failure from exc

        if not self._is_live(session):
            logger.warning("Dropping stale status for {}", job_id)
            return False

        logger.debug("Polled {}", summarize_snapshot(snapshot, job_id))
        self._apply(session, snapshot)
        return True

    def _apply(self, session: _Session, snapshot: JobSnapshot) -> None:
        previous = session.snapshot
        if has_changed(snapshot, previous):
            session.snapshot = snapshot
            session.update_count += 1
            self._emit("on_snapshot_changed", snapshot)
            self._warn_on_cycle(session, snapshot)

            if previous is not None and not snapshot.is_terminal and not session.latched:
                stamp = datetime.now().strftime("%H:%M:%S")
                self._notify(f"Plan updated ({session.update_count}): {stamp}")

            if not session.plan_announced and not snapshot.is_terminal and snapshot.tasks:
                session.plan_announced = True
                self._notify(MSG_PLAN_AVAILABLE)

        result = snapshot.result
        if result and result != session.last_result:
            session.last_result = result
            self._emit("on_result_message", result)
            self._notify(MSG_RESULT_RECEIVED)

        if snapshot.is_terminal and not session.latched:
            session.latched = True
            session.plan_announced = True
            logger.info("Job {} finished with status {}", session.job_id, snapshot.status.value)
            self._terminate(session, _REASON_BY_STATUS[snapshot.status])
            self._notify(f"Chat processing {snapshot.status.value.lower()}. No more updates.")

    def _warn_on_cycle(self, session: _Session, snapshot: JobSnapshot) -> None:
        if not snapshot.tasks:
            return
        cycle = find_cycle(snapshot.tasks)
        if cycle:
            logger.warning("Plan for {} has a dependency cycle: {}", session.job_id, " -> ".join(cycle))
