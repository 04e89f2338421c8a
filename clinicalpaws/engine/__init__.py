"""Submission and continuity orchestration engine."""

from .continuity import ContinuityTracker
from .dispatcher import JobDispatcher
from .engine import ConsultationEngine
from .events import EngineEvents, SessionEvent
from .history import HistoryFetcher, normalize_entry
from .models import (
    PROCESSING_PLACEHOLDER,
    Conversation,
    ConversationThread,
    HistoryEntry,
    SimpleHistoryEntry,
    ThreadedHistoryEntry,
    Turn,
)
from .poller import JobPoller, PollHandle
from .threads import reconstruct

__all__ = [
    "ConsultationEngine",
    "ContinuityTracker",
    "Conversation",
    "ConversationThread",
    "EngineEvents",
    "HistoryEntry",
    "HistoryFetcher",
    "JobDispatcher",
    "JobPoller",
    "PROCESSING_PLACEHOLDER",
    "PollHandle",
    "SessionEvent",
    "SimpleHistoryEntry",
    "ThreadedHistoryEntry",
    "Turn",
    "normalize_entry",
    "reconstruct",
]
