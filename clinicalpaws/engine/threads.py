"""Rebuild conversation threads from history entries."""

from __future__ import annotations

from .models import ConversationThread, HistoryEntry, SimpleHistoryEntry, Turn


def entry_to_turn(entry: SimpleHistoryEntry | HistoryEntry) -> Turn:
    """Render one history item as a turn.

    Items without a final answer are kept: the turn shows the processing
    placeholder until the backend finishes the job.
    """
    return Turn(
        id=entry.entry_id,
        job_id=entry.entry_id,
        user_text=entry.transcribed_text or "",
        assistant_text=entry.final_answer,
        created_at=entry.created_at,
    )


def reconstruct(entry: HistoryEntry) -> ConversationThread:
    """Return the root turn followed by follow-ups in feed order."""
    turns = [entry_to_turn(entry)]
    turns.extend(entry_to_turn(follow_up) for follow_up in entry.follow_ups)
    return ConversationThread(root_id=entry.entry_id, turns=tuple(turns))


__all__ = ["entry_to_turn", "reconstruct"]
