"""HTTP access to the consultation backend."""

from .client import BackendClient
from .errors import (
    AuthenticationMissingError,
    ClinicalPawsError,
    HistoryFetchError,
    InvalidInputError,
    JobFailedError,
    PollTimeoutError,
    SubmissionError,
    SubmissionInProgressError,
    TransientPollError,
)
from .types import (
    AudioInput,
    ContinuityFields,
    HistoryPage,
    ImageInput,
    JobSnapshot,
    JobStatus,
    SubmissionInput,
)

__all__ = [
    "AudioInput",
    "AuthenticationMissingError",
    "BackendClient",
    "ClinicalPawsError",
    "ContinuityFields",
    "HistoryFetchError",
    "HistoryPage",
    "ImageInput",
    "InvalidInputError",
    "JobFailedError",
    "JobSnapshot",
    "JobStatus",
    "PollTimeoutError",
    "SubmissionError",
    "SubmissionInProgressError",
    "SubmissionInput",
    "TransientPollError",
]
