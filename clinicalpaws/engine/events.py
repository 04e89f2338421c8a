"""Observable signals exposed to the presentation layer."""

from __future__ import annotations

from collections.abc import Callable
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class SessionEvent(Generic[T]):
    """Simple signal implementation for engine state changes."""

    __slots__ = ("_listeners",)

    def __init__(self) -> None:
        self._listeners: list[Callable[[T], Any]] = []

    def connect(self, callback: Callable[[T], Any]) -> None:
        self._listeners.append(callback)

    def disconnect(self, callback: Callable[[T], Any]) -> None:
        with suppress(ValueError):
            self._listeners.remove(callback)

    def emit(self, payload: T) -> None:
        for listener in list(self._listeners):
            listener(payload)


@dataclass(slots=True)
class EngineEvents:
    """Expose observable hooks for the engine lifecycle."""

    conversation_changed: SessionEvent[Any] = field(default_factory=SessionEvent)
    history_changed: SessionEvent[Any] = field(default_factory=SessionEvent)
    submitting_changed: SessionEvent[bool] = field(default_factory=SessionEvent)
    processing_changed: SessionEvent[bool] = field(default_factory=SessionEvent)
    error: SessionEvent[Exception] = field(default_factory=SessionEvent)
    auth_required: SessionEvent[None] = field(default_factory=SessionEvent)


__all__ = ["EngineEvents", "SessionEvent"]
