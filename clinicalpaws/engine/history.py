"""Paginated history feed and entry normalisation."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from ..api.errors import HistoryFetchError
from ..api.types import HistoryPage
from ..settings import HistorySettings
from .models import HistoryEntry, SimpleHistoryEntry, ThreadedHistoryEntry

logger = logging.getLogger(__name__)


class HistoryBackend(Protocol):
    """Subset of :class:`~clinicalpaws.api.client.BackendClient` used here."""

    async def fetch_history(self, page: int, size: int) -> HistoryPage:  # pragma: no cover - protocol
        ...


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = value if isinstance(value, str) else str(value)
    return text if text.strip() else None


def _entry_id(payload: Mapping[str, Any]) -> str | None:
    raw = payload.get("id")
    if raw is None:
        raw = payload.get("order_id")
    if raw is None:
        return None
    text = str(raw).strip()
    return text or None


def _simple_entry(payload: Mapping[str, Any]) -> SimpleHistoryEntry | None:
    entry_id = _entry_id(payload)
    if entry_id is None:
        return None
    created_at = payload.get("created_at")
    return SimpleHistoryEntry(
        entry_id=entry_id,
        transcribed_text=_text(payload.get("transcribed_text")),
        final_answer=_text(payload.get("final_answer")),
        created_at=created_at if isinstance(created_at, str) else "",
    )


def normalize_entry(payload: Mapping[str, Any]) -> HistoryEntry | None:
    """Turn a raw feed item into a tagged history entry.

    Items with a non-empty ``messages`` array become
    :class:`ThreadedHistoryEntry`; follow-ups keep the feed order. Items
    without an identifier cannot be resumed and are dropped.
    """
    root = _simple_entry(payload)
    if root is None:
        logger.warning("Skipping history item without an id: %r", dict(payload))
        return None

    messages = payload.get("messages")
    follow_ups: list[SimpleHistoryEntry] = []
    if isinstance(messages, Sequence) and not isinstance(messages, (str, bytes)):
        for message in messages:
            if not isinstance(message, Mapping):
                continue
            follow_up = _simple_entry(message)
            if follow_up is None:
                logger.warning(
                    "Skipping follow-up without an id in history entry %s",
                    root.entry_id,
                )
                continue
            follow_ups.append(follow_up)
    if not follow_ups:
        return root
    return ThreadedHistoryEntry(
        entry_id=root.entry_id,
        transcribed_text=root.transcribed_text,
        final_answer=root.final_answer,
        created_at=root.created_at,
        follow_ups=tuple(follow_ups),
    )


class HistoryFetcher:
    """Accumulate history pages in insertion order.

    ``page`` is the next 1-indexed page to request. A page shorter than the
    page size ends the feed; a failed fetch leaves the cursor untouched so
    the same page can be retried.
    """

    def __init__(self, backend: HistoryBackend, settings: HistorySettings | None = None) -> None:
        self._backend = backend
        self._page_size = (settings or HistorySettings()).page_size
        self._entries: list[HistoryEntry] = []
        self._page = 1
        self._has_more = True
        self._loading = False
        self._generation = 0

    # ------------------------------------------------------------------
    @property
    def entries(self) -> tuple[HistoryEntry, ...]:
        return tuple(self._entries)

    @property
    def page(self) -> int:
        return self._page

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def has_more(self) -> bool:
        return self._has_more

    @property
    def is_loading(self) -> bool:
        return self._loading

    # ------------------------------------------------------------------
    async def fetch_page(
        self, page: int, page_size: int
    ) -> tuple[list[HistoryEntry], HistoryPage]:
        """Fetch and normalise one page without touching the cursor."""
        raw = await self._backend.fetch_history(page, page_size)
        entries: list[HistoryEntry] = []
        for item in raw.items:
            if not isinstance(item, Mapping):
                logger.warning("Skipping malformed history item on page %s", page)
                continue
            entry = normalize_entry(item)
            if entry is not None:
                entries.append(entry)
        return entries, raw

    # ------------------------------------------------------------------
    async def load_more(self) -> list[HistoryEntry] | None:
        """Fetch the next page.

        Returns the newly appended entries, or ``None`` when no request was
        issued because the feed is exhausted or a fetch is already running,
        and when the page (or its failure) belongs to a feed reset meanwhile.
        """
        if self._loading or not self._has_more:
            return None
        generation = self._generation
        self._loading = True
        try:
            entries, raw = await self.fetch_page(self._page, self._page_size)
        except HistoryFetchError:
            if generation != self._generation:
                logger.debug("Ignoring failed history page requested before a reset")
                return None
            raise
        finally:
            if generation == self._generation:
                self._loading = False
        if generation != self._generation:
            logger.debug("Discarding history page fetched before a reset")
            return None
        self._entries.extend(entries)
        self._page += 1
        if raw.is_last:
            self._has_more = False
        return entries

    # ------------------------------------------------------------------
    def get(self, entry_id: str) -> HistoryEntry | None:
        for entry in self._entries:
            if entry.entry_id == entry_id:
                return entry
        return None

    # ------------------------------------------------------------------
    def reset(self) -> None:
        """Forget every loaded page so the feed restarts from page 1."""
        self._generation += 1
        self._entries.clear()
        self._page = 1
        self._has_more = True
        self._loading = False


__all__ = ["HistoryBackend", "HistoryFetcher", "normalize_entry"]
