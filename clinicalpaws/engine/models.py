"""Conversation and history data structures owned by the engine."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import ClassVar, TypeAlias
from uuid import uuid4

from ..api.types import JobSnapshot
from ..util.time import utc_now_iso

PROCESSING_PLACEHOLDER = "Still processing..."


@dataclass(slots=True)
class Turn:
    """One rendered exchange: what the user asked and what came back."""

    id: str
    job_id: str
    user_text: str
    assistant_text: str | None
    created_at: str

    @classmethod
    def from_snapshot(cls, snapshot: JobSnapshot, *, user_text: str = "") -> Turn:
        """Build a turn for a completed job.

        The backend transcript wins over the locally submitted text because
        audio submissions only become readable after transcription.
        """
        return cls(
            id=str(uuid4()),
            job_id=snapshot.job_id,
            user_text=snapshot.transcribed_text or user_text,
            assistant_text=snapshot.final_answer,
            created_at=utc_now_iso(),
        )

    @property
    def is_processing(self) -> bool:
        return self.assistant_text is None

    @property
    def display_text(self) -> str:
        """Assistant text, or the placeholder while the answer is pending."""
        if self.assistant_text is None:
            return PROCESSING_PLACEHOLDER
        return self.assistant_text


@dataclass(slots=True)
class Conversation:
    """The sequence of turns currently presented as one interaction."""

    is_new_conversation: bool = True
    last_job_id: str | None = None
    turns: list[Turn] = field(default_factory=list)

    def has_turn_for(self, job_id: str) -> bool:
        return any(turn.job_id == job_id for turn in self.turns)

    def append_turn(self, turn: Turn) -> bool:
        """Append *turn* unless one for the same job exists already."""
        if self.has_turn_for(turn.job_id):
            return False
        self.turns.append(turn)
        return True

    def replace_turns(self, turns: Iterable[Turn]) -> None:
        self.turns = list(turns)

    def snapshot(self) -> Conversation:
        """Return a copy that observers can keep without seeing later edits."""
        return Conversation(
            is_new_conversation=self.is_new_conversation,
            last_job_id=self.last_job_id,
            turns=list(self.turns),
        )


@dataclass(slots=True)
class SimpleHistoryEntry:
    """History item without follow-up messages."""

    kind: ClassVar[str] = "simple"

    entry_id: str
    transcribed_text: str | None
    final_answer: str | None
    created_at: str
    expanded: bool = False

    @property
    def follow_ups(self) -> tuple[SimpleHistoryEntry, ...]:
        return ()

    @property
    def has_follow_ups(self) -> bool:
        return False


@dataclass(slots=True)
class ThreadedHistoryEntry:
    """History item that carries follow-up messages in feed order."""

    kind: ClassVar[str] = "threaded"

    entry_id: str
    transcribed_text: str | None
    final_answer: str | None
    created_at: str
    follow_ups: tuple[SimpleHistoryEntry, ...]
    expanded: bool = False

    def __post_init__(self) -> None:
        self.follow_ups = tuple(self.follow_ups)
        if not self.follow_ups:
            raise ValueError("Threaded history entries require follow-ups")

    @property
    def has_follow_ups(self) -> bool:
        return True


HistoryEntry: TypeAlias = SimpleHistoryEntry | ThreadedHistoryEntry


@dataclass(frozen=True, slots=True)
class ConversationThread:
    """Flattened, chronological view of a history entry; never persisted."""

    root_id: str
    turns: tuple[Turn, ...]

    @property
    def last_job_id(self) -> str:
        """Identifier that a continuation of this thread must reference."""
        return self.turns[-1].job_id


__all__ = [
    "Conversation",
    "ConversationThread",
    "HistoryEntry",
    "PROCESSING_PLACEHOLDER",
    "SimpleHistoryEntry",
    "ThreadedHistoryEntry",
    "Turn",
]
