"""Time-related helpers for the consultation client."""

from __future__ import annotations

import datetime


def utc_now_iso() -> str:
    """Return current UTC time in ISO format without sub-second precision."""
    return datetime.datetime.now(datetime.UTC).isoformat(timespec="seconds")


def normalize_timestamp(value: str | None) -> str:
    """Normalize backend ``value`` to ``YYYY-MM-DD HH:MM:SS``.

    Empty input returns an empty string. Values that do not parse as ISO
    datetimes are returned stripped but otherwise untouched so that history
    entries with unexpected formats still render.
    """

    if not value:
        return ""
    text = value.strip()
    candidate = text[:-1] + "+00:00" if text.endswith("Z") else text
    try:
        dt = datetime.datetime.fromisoformat(candidate)
    except ValueError:
        return text
    return dt.strftime("%Y-%m-%d %H:%M:%S")
