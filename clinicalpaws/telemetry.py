"""Telemetry events for backend calls and conversation changes.

Every event is a log record whose message is the event name and whose
``json`` extra carries the redacted payload, so the console formatter can
print it compactly and the JSONL sink can store it verbatim.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Mapping
from typing import Any

from .log import logger
from .util.json import make_json_safe

REDACTED = "[REDACTED]"

_SECRET_KEYS = frozenset({"authorization", "cookie", "set_cookie", "password", "credential", "token"})

# Transcripts and answers can be long clinical notes; keep log lines bounded.
_MAX_LOGGED_STRING = 2000


def _is_secret(key: Any) -> bool:
    if not isinstance(key, str):
        return False
    name = key.lower().replace("-", "_")
    return name in _SECRET_KEYS or name.endswith("_token")


def _mask(value: Any) -> str:
    # Keep the auth scheme ("Bearer") so a missing prefix is still visible.
    if isinstance(value, str) and " " in value.strip():
        return f"{value.split(' ', 1)[0]} {REDACTED}"
    return REDACTED


def redact(value: Any) -> Any:
    """Return a copy of *value* with secret-looking mapping entries masked."""
    if isinstance(value, Mapping):
        return {
            key: _mask(item) if _is_secret(key) else redact(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(item) for item in value]
    return value


def _encoded_size(payload: Any) -> int:
    if not payload:
        return 0
    return len(json.dumps(payload, ensure_ascii=False).encode("utf-8"))


def log_event(
    event: str,
    payload: Mapping[str, Any] | None = None,
    *,
    start_time: float | None = None,
    level: int = logging.INFO,
) -> None:
    """Emit *event* with its redacted *payload*.

    ``start_time`` is a :func:`time.monotonic` reading; when given the
    record gets ``duration_ms``.
    """
    safe = make_json_safe(redact(payload or {}), max_string_length=_MAX_LOGGED_STRING)
    record: dict[str, Any] = {
        "event": event,
        "payload": safe,
        "size_bytes": _encoded_size(safe),
    }
    if start_time is not None:
        record["duration_ms"] = int((time.monotonic() - start_time) * 1000)
    logger.log(level, event, extra={"json": record})


def log_debug_payload(event: str, payload: Mapping[str, Any]) -> None:
    """Emit the full, untruncated request details of *event* at ``DEBUG``."""
    if not logger.isEnabledFor(logging.DEBUG):
        return
    record = {"event": event, "payload": make_json_safe(redact(payload)), "debug": True}
    logger.debug(event, extra={"json": record})


__all__ = ["REDACTED", "log_debug_payload", "log_event", "redact"]
