"""Typed client settings with Pydantic validation."""

from __future__ import annotations

import json
from pathlib import Path

import tomllib
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

DEFAULT_BASE_URL = "https://clinicalpaws.com/api/signup"
DEFAULT_POLL_INTERVAL_SECONDS = 5.0
DEFAULT_HISTORY_PAGE_SIZE = 10


class BackendSettings(BaseModel):
    """Location of the analysis backend and its endpoints."""

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    base_url: str = Field(DEFAULT_BASE_URL, alias="api_base")
    submit_path: str = "/upload_audio_file"
    status_path: str = "/order"
    history_path: str = "/history"
    timeout_seconds: float = Field(60.0, gt=0)

    @field_validator("base_url", mode="before")
    @classmethod
    def _strip_base_url(cls, value: str | None) -> str:
        text = (value or "").strip()
        if not text:
            return DEFAULT_BASE_URL
        return text.rstrip("/")

    @field_validator("submit_path", "status_path", "history_path", mode="before")
    @classmethod
    def _normalise_path(cls, value: str) -> str:
        text = str(value).strip()
        if not text.startswith("/"):
            text = "/" + text
        return text


class PollingSettings(BaseModel):
    """Cadence and limits for job status polling."""

    model_config = ConfigDict(validate_assignment=True)

    interval_seconds: float = Field(DEFAULT_POLL_INTERVAL_SECONDS, ge=0)
    max_attempts: int | None = None

    @field_validator("max_attempts", mode="before")
    @classmethod
    def _normalise_max_attempts(cls, value: int | str | None) -> int | None:
        """Treat empty, zero and negative limits as "poll until terminal"."""
        if value is None:
            return None
        if isinstance(value, bool):
            raise ValueError("Boolean is not a valid max_attempts value")
        if isinstance(value, str):
            raw = value.strip()
            if not raw:
                return None
            try:
                numeric = int(raw)
            except ValueError:  # pragma: no cover - delegated to Pydantic
                return value
        else:
            numeric = int(value)
        if numeric <= 0:
            return None
        return numeric


class HistorySettings(BaseModel):
    """Pagination of the history feed."""

    model_config = ConfigDict(validate_assignment=True)

    page_size: int = Field(DEFAULT_HISTORY_PAGE_SIZE, ge=1)


class AppSettings(BaseModel):
    """Aggregate settings for the client."""

    model_config = ConfigDict(validate_assignment=True)

    backend: BackendSettings = Field(default_factory=BackendSettings)
    polling: PollingSettings = Field(default_factory=PollingSettings)
    history: HistorySettings = Field(default_factory=HistorySettings)


def load_app_settings(path: str | Path) -> AppSettings:
    """Load :class:`AppSettings` from *path* with validation.

    Format is detected by file extension: ``.toml`` uses :mod:`tomllib`,
    everything else is treated as JSON.  Validation errors are wrapped into
    :class:`ValueError` with a human-friendly message.
    """
    p = Path(path)
    with p.open("rb") as fh:
        data = tomllib.load(fh) if p.suffix.lower() == ".toml" else json.load(fh)
    try:
        return AppSettings.model_validate(data)
    except ValidationError as exc:
        raise ValueError(str(exc)) from exc


__all__ = [
    "AppSettings",
    "BackendSettings",
    "DEFAULT_BASE_URL",
    "HistorySettings",
    "PollingSettings",
    "load_app_settings",
]
