"""Cancellation primitive for cooperative poll loops."""

from __future__ import annotations

import asyncio

__all__ = ["CancellationEvent"]


class CancellationEvent:
    """Lightweight wrapper around :class:`asyncio.Event` for cancellations."""

    __slots__ = ("_event",)

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def is_set(self) -> bool:
        return self._event.is_set()

    def set(self) -> None:
        """Signal cancellation."""

        self._event.set()

    async def wait(self, timeout: float | None = None) -> bool:
        """Wait until cancellation occurs or *timeout* elapses.

        Returns ``True`` when cancellation was signalled.
        """

        if timeout is None:
            await self._event.wait()
            return True
        if timeout <= 0:
            await asyncio.sleep(0)
            return self._event.is_set()
        try:
            await asyncio.wait_for(self._event.wait(), timeout)
        except TimeoutError:
            return False
        return True
