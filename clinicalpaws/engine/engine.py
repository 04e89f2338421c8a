"""Orchestration of submissions, polling, continuity and history."""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from ..api.client import BackendClient
from ..api.errors import (
    AuthenticationMissingError,
    ClinicalPawsError,
    HistoryFetchError,
    InvalidInputError,
    SubmissionInProgressError,
)
from ..api.types import ContinuityFields, HistoryPage, JobSnapshot, SubmissionInput
from ..credentials import CredentialAccessor
from ..settings import AppSettings
from ..telemetry import log_event
from .continuity import ContinuityTracker
from .dispatcher import JobDispatcher
from .events import EngineEvents
from .history import HistoryFetcher
from .models import Conversation, ConversationThread, HistoryEntry, Turn
from .poller import JobPoller, PollHandle
from .threads import reconstruct

logger = logging.getLogger(__name__)

AUDIO_USER_TEXT = "[voice recording]"
IMAGE_USER_TEXT = "[image]"


class ConsultationBackend(Protocol):
    """Backend operations the engine depends on."""

    async def submit(
        self, payload: SubmissionInput, continuity: ContinuityFields
    ) -> str:  # pragma: no cover - protocol
        ...

    async def fetch_status(self, job_id: str) -> JobSnapshot:  # pragma: no cover - protocol
        ...

    async def fetch_history(self, page: int, size: int) -> HistoryPage:  # pragma: no cover - protocol
        ...


class ConsultationEngine:
    """Explicit owner of the active conversation and the history cache.

    All methods must be called from the event loop that runs the engine.
    Completed turns are appended in completion order. Only one polling loop
    is active at a time: a newer submission, :meth:`start_new_conversation`
    and :meth:`select_history_entry` all cancel the previous loop so a stale
    result can never land in a conversation it no longer belongs to.
    """

    def __init__(
        self,
        backend: ConsultationBackend,
        settings: AppSettings | None = None,
        *,
        events: EngineEvents | None = None,
    ) -> None:
        self.settings = settings or AppSettings()
        self.events = events or EngineEvents()
        self._dispatcher = JobDispatcher(backend)
        self._poller = JobPoller(backend, self.settings.polling)
        self._history = HistoryFetcher(backend, self.settings.history)
        self._tracker = ContinuityTracker()
        self._active_poll: PollHandle | None = None
        self._pending_inputs: dict[str, SubmissionInput] = {}
        self._is_submitting = False
        self._generation = 0
        self._last_error: ClinicalPawsError | None = None

    @classmethod
    def from_settings(
        cls,
        settings: AppSettings,
        credentials: CredentialAccessor,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> ConsultationEngine:
        """Build an engine talking to the backend configured in *settings*."""
        client = BackendClient(settings.backend, credentials, transport=transport)
        return cls(client, settings)

    # ------------------------------------------------------------------
    @property
    def conversation(self) -> Conversation:
        """Copy of the active conversation."""
        return self._tracker.conversation.snapshot()

    @property
    def history_data(self) -> tuple[HistoryEntry, ...]:
        return self._history.entries

    @property
    def has_more_history(self) -> bool:
        return self._history.has_more

    @property
    def is_submitting(self) -> bool:
        return self._is_submitting

    @property
    def is_processing(self) -> bool:
        return self._active_poll is not None

    @property
    def active_poll(self) -> PollHandle | None:
        return self._active_poll

    @property
    def last_error(self) -> ClinicalPawsError | None:
        return self._last_error

    # ------------------------------------------------------------------
    async def submit_audio(self, data: bytes, *, filename: str = "recording.wav") -> str:
        return await self.submit(SubmissionInput.from_audio(data, filename=filename))

    async def submit_text(self, text: str) -> str:
        return await self.submit(SubmissionInput.from_text(text))

    async def submit_image(
        self, data: bytes, image_type: str, *, filename: str = "image"
    ) -> str:
        return await self.submit(
            SubmissionInput.from_image(data, image_type, filename=filename)
        )

    async def submit(self, payload: SubmissionInput) -> str:
        """Dispatch *payload* and start polling the resulting job.

        Submissions are never interleaved: a call made while another upload
        is in flight raises :class:`SubmissionInProgressError`. On failure
        the conversation is left exactly as it was.
        """
        if self._is_submitting:
            raise SubmissionInProgressError()
        generation = self._generation
        continuity = self._tracker.continuity_fields()
        self._set_submitting(True)
        try:
            job_id = await self._dispatcher.submit(payload, continuity)
        except AuthenticationMissingError as exc:
            self._last_error = exc
            self.events.auth_required.emit(None)
            raise
        except ClinicalPawsError as exc:
            self._last_error = exc
            raise
        finally:
            self._set_submitting(False)

        self._last_error = None
        if generation != self._generation:
            logger.info(
                "Conversation changed while job %s was uploading; not tracking it",
                job_id,
            )
            return job_id
        self._tracker.on_submission_accepted(job_id)
        self._pending_inputs[job_id] = payload
        self._start_polling(job_id)
        self.events.conversation_changed.emit(self.conversation)
        return job_id

    # ------------------------------------------------------------------
    def start_new_conversation(self) -> None:
        """Abandon the active conversation and any job still being polled."""
        was_processing = self._cancel_active_poll()
        self._generation += 1
        self._pending_inputs.clear()
        self._last_error = None
        self._tracker.reset()
        log_event("CONVERSATION_RESET")
        if was_processing:
            self.events.processing_changed.emit(False)
        self.events.conversation_changed.emit(self.conversation)

    def resume_job(self, job_id: str) -> None:
        """Link the next submission to *job_id*, e.g. one given on a command line."""
        was_processing = self._cancel_active_poll()
        self._generation += 1
        self._pending_inputs.clear()
        self._tracker.resume(job_id)
        if was_processing:
            self.events.processing_changed.emit(False)
        self.events.conversation_changed.emit(self.conversation)

    # ------------------------------------------------------------------
    async def load_more_history(self) -> list[HistoryEntry] | None:
        """Fetch the next history page; ``None`` when nothing was requested."""
        try:
            entries = await self._history.load_more()
        except AuthenticationMissingError as exc:
            self._last_error = exc
            self.events.auth_required.emit(None)
            raise
        except HistoryFetchError as exc:
            self._last_error = exc
            raise
        if entries is not None:
            self.events.history_changed.emit(self.history_data)
        return entries

    async def refresh_history(self) -> list[HistoryEntry] | None:
        """Drop cached pages and load the feed again from page 1."""
        self._history.reset()
        self.events.history_changed.emit(self.history_data)
        return await self.load_more_history()

    # ------------------------------------------------------------------
    def toggle_history_entry(self, entry_id: str) -> bool:
        """Flip the UI-only ``expanded`` flag and return the new value."""
        entry = self._require_entry(entry_id)
        entry.expanded = not entry.expanded
        self.events.history_changed.emit(self.history_data)
        return entry.expanded

    def select_history_entry(self, entry_id: str) -> ConversationThread:
        """Resume the conversation stored under *entry_id*."""
        entry = self._require_entry(entry_id)
        thread = reconstruct(entry)
        was_processing = self._cancel_active_poll()
        self._generation += 1
        self._pending_inputs.clear()
        self._tracker.on_history_selected(thread)
        log_event(
            "HISTORY_SELECTED",
            {"entry_id": entry_id, "turns": len(thread.turns), "last_job_id": thread.last_job_id},
        )
        if was_processing:
            self.events.processing_changed.emit(False)
        self.events.conversation_changed.emit(self.conversation)
        return thread

    # ------------------------------------------------------------------
    async def wait_until_processed(self) -> Turn | None:
        """Wait for the active job and return its turn when one was added."""
        handle = self._active_poll
        if handle is None:
            return None
        snapshot = await handle.wait()
        if snapshot is None:
            return None
        for turn in reversed(self._tracker.conversation.turns):
            if turn.job_id == snapshot.job_id:
                return turn
        return None

    def close(self) -> None:
        """Cancel every polling loop owned by the engine."""
        self._cancel_active_poll()
        self._poller.cancel_all()

    # ------------------------------------------------------------------
    def _require_entry(self, entry_id: str) -> HistoryEntry:
        entry = self._history.get(entry_id)
        if entry is None:
            raise InvalidInputError(f"Unknown history entry: {entry_id}")
        return entry

    def _set_submitting(self, value: bool) -> None:
        if self._is_submitting == value:
            return
        self._is_submitting = value
        self.events.submitting_changed.emit(value)

    def _cancel_active_poll(self) -> bool:
        handle = self._active_poll
        if handle is None:
            return False
        self._active_poll = None
        handle.cancel()
        return True

    def _start_polling(self, job_id: str) -> None:
        was_processing = self._cancel_active_poll()
        self._active_poll = self._poller.start(
            job_id, self._handle_completion, self._handle_failure
        )
        if not was_processing:
            self.events.processing_changed.emit(True)

    def _user_text_for(self, payload: SubmissionInput | None) -> str:
        if payload is None:
            return ""
        text = payload.normalized_text
        if text:
            return text
        if payload.audio is not None:
            return AUDIO_USER_TEXT
        if payload.image is not None:
            return IMAGE_USER_TEXT
        return ""

    def _finish_poll(self, handle: PollHandle) -> SubmissionInput | None:
        self._active_poll = None
        payload = self._pending_inputs.pop(handle.job_id, None)
        self.events.processing_changed.emit(False)
        return payload

    def _handle_completion(self, handle: PollHandle, snapshot: JobSnapshot) -> None:
        if handle is not self._active_poll:
            logger.debug("Ignoring completion of superseded job %s", handle.job_id)
            return
        payload = self._finish_poll(handle)
        turn = Turn.from_snapshot(snapshot, user_text=self._user_text_for(payload))
        if self._tracker.on_job_completed(turn):
            self.events.conversation_changed.emit(self.conversation)

    def _handle_failure(self, handle: PollHandle, error: ClinicalPawsError) -> None:
        if handle is not self._active_poll:
            logger.debug("Ignoring failure of superseded job %s", handle.job_id)
            return
        self._finish_poll(handle)
        self._last_error = error
        self.events.error.emit(error)
        if isinstance(error, AuthenticationMissingError):
            self.events.auth_required.emit(None)


__all__ = ["ConsultationBackend", "ConsultationEngine"]
