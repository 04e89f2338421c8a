"""Single authority for conversation linkage state."""

from __future__ import annotations

import logging

from ..api.types import ContinuityFields
from .models import Conversation, ConversationThread, Turn

logger = logging.getLogger(__name__)


class ContinuityTracker:
    """Decide whether the next submission starts or continues a conversation.

    The tracker owns the active :class:`Conversation`. Once a submission has
    been accepted the conversation stays a continuation until :meth:`reset`.
    """

    def __init__(self, conversation: Conversation | None = None) -> None:
        self._conversation = conversation if conversation is not None else Conversation()

    # ------------------------------------------------------------------
    @property
    def conversation(self) -> Conversation:
        return self._conversation

    @property
    def is_new_conversation(self) -> bool:
        return self._conversation.is_new_conversation

    @property
    def last_job_id(self) -> str | None:
        return self._conversation.last_job_id

    # ------------------------------------------------------------------
    def continuity_fields(self) -> ContinuityFields:
        """Return the linkage to send with the next submission."""
        return ContinuityFields(
            is_new=self._conversation.is_new_conversation,
            last_job_id=self._conversation.last_job_id,
        )

    # ------------------------------------------------------------------
    def on_submission_accepted(self, job_id: str) -> None:
        if not job_id:
            raise ValueError("Accepted submissions must carry a job id")
        self._conversation.last_job_id = job_id
        self._conversation.is_new_conversation = False

    # ------------------------------------------------------------------
    def on_job_completed(self, turn: Turn) -> bool:
        """Append *turn*; returns ``False`` for a duplicate completion."""
        appended = self._conversation.append_turn(turn)
        if not appended:
            logger.debug("Dropping duplicate completion for job %s", turn.job_id)
        return appended

    # ------------------------------------------------------------------
    def on_history_selected(self, thread: ConversationThread) -> None:
        """Resume *thread*: its turns replace the active ones wholesale."""
        self._conversation.replace_turns(thread.turns)
        self._conversation.last_job_id = thread.last_job_id
        self._conversation.is_new_conversation = False

    # ------------------------------------------------------------------
    def resume(self, job_id: str) -> None:
        """Continue from a known *job_id* without any locally known turns."""
        if not job_id:
            raise ValueError("Resuming requires a job id")
        self._conversation.turns.clear()
        self._conversation.last_job_id = job_id
        self._conversation.is_new_conversation = False

    # ------------------------------------------------------------------
    def reset(self) -> None:
        self._conversation.is_new_conversation = True
        self._conversation.last_job_id = None
        self._conversation.turns.clear()


__all__ = ["ContinuityTracker"]
