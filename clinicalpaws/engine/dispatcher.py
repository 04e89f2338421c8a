"""Submission of user input units to the backend."""

from __future__ import annotations

import logging
from typing import Protocol

from ..api.errors import InvalidInputError
from ..api.types import ContinuityFields, SubmissionInput

logger = logging.getLogger(__name__)


class SubmissionBackend(Protocol):
    """Subset of :class:`~clinicalpaws.api.client.BackendClient` used here."""

    async def submit(
        self, payload: SubmissionInput, continuity: ContinuityFields
    ) -> str:  # pragma: no cover - protocol
        ...


class JobDispatcher:
    """Validate a submission and hand it to the backend.

    The dispatcher is stateless: it never touches the conversation. The
    engine feeds the returned job id into the continuity tracker.
    """

    def __init__(self, backend: SubmissionBackend) -> None:
        self._backend = backend

    async def submit(
        self, payload: SubmissionInput, continuity: ContinuityFields
    ) -> str:
        """Send *payload* with *continuity* and return the new job id.

        Raises :class:`InvalidInputError` without any network traffic when
        the payload is empty. Backend failures surface as
        :class:`~clinicalpaws.api.errors.SubmissionError`.
        """
        if payload.is_empty:
            raise InvalidInputError("Nothing to submit: record audio, type a question or attach an image")
        if not continuity.is_new and not continuity.last_job_id:
            # A continuation without linkage would silently start a new chat.
            raise InvalidInputError("Cannot continue a conversation without a previous job id")
        job_id = await self._backend.submit(payload, continuity)
        logger.info("Submission accepted as job %s (%s)", job_id, payload.kind)
        return job_id


__all__ = ["JobDispatcher", "SubmissionBackend"]
