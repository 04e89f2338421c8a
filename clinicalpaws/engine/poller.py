"""Status polling for outstanding backend jobs."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

from ..api.errors import (
    AuthenticationMissingError,
    ClinicalPawsError,
    JobFailedError,
    PollTimeoutError,
    TransientPollError,
)
from ..api.types import JobSnapshot, JobStatus
from ..settings import PollingSettings
from ..telemetry import log_event
from ..util.cancellation import CancellationEvent

logger = logging.getLogger(__name__)


class StatusBackend(Protocol):
    """Subset of :class:`~clinicalpaws.api.client.BackendClient` used here."""

    async def fetch_status(self, job_id: str) -> JobSnapshot:  # pragma: no cover - protocol
        ...


@dataclass(slots=True)
class PollHandle:
    """Cancellable handle for one job's polling loop."""

    handle_id: int
    job_id: str
    cancel_event: CancellationEvent
    task: asyncio.Task[Any] | None = None
    attempts: int = 0
    result: JobSnapshot | None = None

    @property
    def is_cancelled(self) -> bool:
        return self.cancel_event.is_set()

    @property
    def done(self) -> bool:
        return self.task is not None and self.task.done()

    def cancel(self) -> None:
        self.cancel_event.set()
        task = self.task
        if task is not None and not task.done():
            task.cancel()

    async def wait(self) -> JobSnapshot | None:
        """Wait for the loop to finish; ``None`` when it was cancelled."""
        task = self.task
        if task is None:
            return self.result
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                return None
            raise


CompletionCallback = Callable[[PollHandle, JobSnapshot], None]
ErrorCallback = Callable[[PollHandle, ClinicalPawsError], None]


class JobPoller:
    """Poll job status on a fixed interval until a terminal state.

    Single failed attempts are logged and skipped: the job may still finish
    server-side, so a network blip must not orphan it. Polling is unbounded
    unless :attr:`PollingSettings.max_attempts` is configured.
    """

    def __init__(self, backend: StatusBackend, settings: PollingSettings | None = None) -> None:
        self._backend = backend
        self._settings = settings or PollingSettings()
        self._counter = 0
        self._active: dict[str, PollHandle] = {}

    # ------------------------------------------------------------------
    async def poll(self, job_id: str) -> JobSnapshot:
        """Query the backend once for *job_id*."""
        return await self._backend.fetch_status(job_id)

    # ------------------------------------------------------------------
    def start(
        self,
        job_id: str,
        on_complete: CompletionCallback,
        on_error: ErrorCallback | None = None,
    ) -> PollHandle:
        """Schedule a polling loop for *job_id* on the running event loop.

        A loop already running for the same job is cancelled first, so at
        most one loop per job is ever active.
        """
        previous = self._active.pop(job_id, None)
        if previous is not None:
            logger.debug("Replacing polling loop %s for job %s", previous.handle_id, job_id)
            previous.cancel()
        self._counter += 1
        handle = PollHandle(
            handle_id=self._counter,
            job_id=job_id,
            cancel_event=CancellationEvent(),
        )
        self._active[job_id] = handle
        loop = asyncio.get_running_loop()
        handle.task = loop.create_task(
            self._loop(handle, on_complete, on_error),
            name=f"poll-{job_id}-{handle.handle_id}",
        )
        # Runs even when the task is cancelled before its first step.
        handle.task.add_done_callback(lambda _task: self._forget(handle))
        return handle

    # ------------------------------------------------------------------
    def cancel_all(self) -> None:
        for handle in list(self._active.values()):
            handle.cancel()
        self._active.clear()

    # ------------------------------------------------------------------
    def _forget(self, handle: PollHandle) -> None:
        if self._active.get(handle.job_id) is handle:
            del self._active[handle.job_id]

    async def _loop(
        self,
        handle: PollHandle,
        on_complete: CompletionCallback,
        on_error: ErrorCallback | None,
    ) -> JobSnapshot | None:
        interval = self._settings.interval_seconds
        max_attempts = self._settings.max_attempts
        while True:
            if await handle.cancel_event.wait(interval):
                return None
            handle.attempts += 1
            try:
                snapshot = await self.poll(handle.job_id)
            except TransientPollError as exc:
                log_event(
                    "POLL_ERROR",
                    {
                        "order_id": handle.job_id,
                        "attempt": handle.attempts,
                        "status": exc.status_code,
                        "error": str(exc),
                    },
                    level=logging.WARNING,
                )
                snapshot = None
            except AuthenticationMissingError as exc:
                self._notify_error(handle, exc, on_error)
                return None

            if handle.is_cancelled:
                return None
            if snapshot is not None and snapshot.status.is_terminal:
                handle.result = snapshot
                if snapshot.status is JobStatus.COMPLETED:
                    log_event(
                        "JOB_COMPLETED",
                        {"order_id": handle.job_id, "attempts": handle.attempts},
                    )
                    on_complete(handle, snapshot)
                else:
                    self._notify_error(
                        handle, JobFailedError(handle.job_id, snapshot.detail), on_error
                    )
                return snapshot
            if max_attempts is not None and handle.attempts >= max_attempts:
                self._notify_error(
                    handle, PollTimeoutError(handle.job_id, handle.attempts), on_error
                )
                return None

    @staticmethod
    def _notify_error(
        handle: PollHandle,
        error: ClinicalPawsError,
        on_error: ErrorCallback | None,
    ) -> None:
        log_event(
            "JOB_FAILED",
            {"order_id": handle.job_id, "attempts": handle.attempts, "error": str(error)},
            level=logging.ERROR,
        )
        if on_error is not None:
            on_error(handle, error)


__all__ = ["CompletionCallback", "ErrorCallback", "JobPoller", "PollHandle", "StatusBackend"]
