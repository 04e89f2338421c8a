"""Error taxonomy shared by the backend client and the engine."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

GENERIC_ERROR_MESSAGE = "Something went wrong"


def extract_error_message(payload: Any, default: str = GENERIC_ERROR_MESSAGE) -> str:
    """Return the human readable message from a backend error *payload*.

    The backend reports failures as ``{"detail": ...}`` (FastAPI) or
    ``{"message": ...}``; ``detail`` wins when both are present.
    """
    if isinstance(payload, Mapping):
        for key in ("detail", "message"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
            if value and not isinstance(value, str):
                # FastAPI validation errors carry a list of problems.
                return str(value)
    return default


class ClinicalPawsError(RuntimeError):
    """Base class for failures raised by the consultation client."""


class InvalidInputError(ClinicalPawsError):
    """Raised before any network call when there is nothing to submit."""


class SubmissionInProgressError(InvalidInputError):
    """Raised when a submission arrives while another one is still uploading."""

    def __init__(self) -> None:
        super().__init__("A submission is already being uploaded")


class AuthenticationMissingError(ClinicalPawsError):
    """Raised when no bearer credential is available for a network call."""

    def __init__(self, message: str = "No access token found, please log in again.") -> None:
        super().__init__(message)


class _BackendResponseError(ClinicalPawsError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SubmissionError(_BackendResponseError):
    """Raised when the submission API rejects a payload or is unreachable."""


class HistoryFetchError(_BackendResponseError):
    """Raised when a history page cannot be fetched."""


class TransientPollError(_BackendResponseError):
    """A single failed status poll; never surfaced to the user."""


class JobFailedError(ClinicalPawsError):
    """Raised when the backend reports a job as permanently failed."""

    def __init__(self, job_id: str, message: str | None = None) -> None:
        super().__init__(message or f"Analysis {job_id} failed")
        self.job_id = job_id


class PollTimeoutError(ClinicalPawsError):
    """Raised when a job is still pending after the configured poll attempts."""

    def __init__(self, job_id: str, attempts: int) -> None:
        super().__init__(f"Analysis {job_id} did not finish after {attempts} status checks")
        self.job_id = job_id
        self.attempts = attempts


__all__ = [
    "AuthenticationMissingError",
    "ClinicalPawsError",
    "GENERIC_ERROR_MESSAGE",
    "HistoryFetchError",
    "InvalidInputError",
    "JobFailedError",
    "PollTimeoutError",
    "SubmissionError",
    "SubmissionInProgressError",
    "TransientPollError",
    "extract_error_message",
]
