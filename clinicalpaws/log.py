"""Logging setup for the ClinicalPaws command-line client.

Two sinks are attached to the ``clinicalpaws`` logger:

* the console, where telemetry events render as a single
  ``EVENT key=value`` line so ``--verbose`` output stays readable;
* one rotating JSONL file that keeps every record at ``DEBUG`` for
  diagnostics after the process exits.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

LOG_DIR_ENV = "CLINICALPAWS_LOG_DIR"
LOG_FILE_NAME = "clinicalpaws.jsonl"
_MAX_BYTES = 2 * 1024 * 1024
_BACKUPS = 3
# Console values longer than this are cut; the JSONL file keeps them whole.
_CONSOLE_VALUE_WIDTH = 60

logger = logging.getLogger("clinicalpaws")

_log_path: Path | None = None


def _console_value(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, str):
        bare = value and not any(ch.isspace() for ch in value)
        text = value if bare else json.dumps(value, ensure_ascii=False)
    else:
        text = json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)
    if len(text) > _CONSOLE_VALUE_WIDTH:
        text = text[: _CONSOLE_VALUE_WIDTH - 3] + "..."
    return text


class ConsoleFormatter(logging.Formatter):
    """Render telemetry events as ``LEVEL EVENT key=value ... (N ms)``."""

    def format(self, record: logging.LogRecord) -> str:
        data = getattr(record, "json", None)
        message = record.getMessage()
        if isinstance(data, dict) and data.get("event") == message:
            parts = [message]
            payload = data.get("payload")
            if isinstance(payload, dict):
                parts.extend(f"{key}={_console_value(value)}" for key, value in payload.items())
            if "duration_ms" in data:
                parts.append(f"({data['duration_ms']} ms)")
            message = " ".join(parts)
        line = f"{record.levelname} {message}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class JsonLineFormatter(logging.Formatter):
    """Serialise a record, and its telemetry data if any, as one JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
        }
        data = getattr(record, "json", None)
        if isinstance(data, dict):
            entry.update(data)
        else:
            entry["message"] = record.getMessage()
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def open_jsonl_handler(
    path: Path | str, *, max_bytes: int = _MAX_BYTES, backups: int = _BACKUPS
) -> RotatingFileHandler:
    """Return a rotating handler that writes JSON lines to *path*."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backups, encoding="utf-8"
    )
    handler.setFormatter(JsonLineFormatter())
    return handler


def default_log_dir() -> Path:
    """Directory from ``$CLINICALPAWS_LOG_DIR`` or ``~/.clinicalpaws/logs``."""
    override = os.environ.get(LOG_DIR_ENV, "").strip()
    if override:
        return Path(override).expanduser()
    return Path.home() / ".clinicalpaws" / "logs"


def configure_logging(
    level: int = logging.WARNING, *, log_dir: str | Path | None = None
) -> Path:
    """Attach the console and JSONL sinks once and return the log file path.

    *level* only applies to the console; the file always records ``DEBUG``
    so transient poll failures can be inspected later.
    """
    global _log_path

    if logger.handlers and _log_path is not None:
        return _log_path

    directory = Path(log_dir).expanduser() if log_dir is not None else default_log_dir()
    _log_path = directory.resolve() / LOG_FILE_NAME

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(ConsoleFormatter())
    logger.addHandler(console)

    file_handler = open_jsonl_handler(_log_path)
    file_handler.setLevel(logging.DEBUG)
    logger.addHandler(file_handler)

    logger.setLevel(logging.DEBUG)
    return _log_path


__all__ = [
    "ConsoleFormatter",
    "JsonLineFormatter",
    "LOG_DIR_ENV",
    "LOG_FILE_NAME",
    "configure_logging",
    "default_log_dir",
    "logger",
    "open_jsonl_handler",
]
