"""HTTP client for the consultation backend."""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import Any

import httpx

from ..credentials import CredentialAccessor
from ..settings import BackendSettings
from ..telemetry import log_debug_payload, log_event
from .errors import (
    AuthenticationMissingError,
    HistoryFetchError,
    SubmissionError,
    TransientPollError,
    extract_error_message,
)
from .types import ContinuityFields, HistoryPage, JobSnapshot, SubmissionInput

logger = logging.getLogger(__name__)


class BackendClient:
    """Thin async wrapper over the submission, status and history APIs."""

    def __init__(
        self,
        settings: BackendSettings,
        credentials: CredentialAccessor,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialise the client; *transport* lets tests replace the network."""
        self.settings = settings
        self._credentials = credentials
        self._transport = transport

    # ------------------------------------------------------------------
    def _headers(self) -> dict[str, str]:
        """Return request headers carrying a freshly read bearer token."""
        token = self._credentials.get()
        if not token:
            raise AuthenticationMissingError()
        return {"Authorization": f"Bearer {token}", "Accept": "application/json"}

    async def _request_async(
        self,
        method: str,
        path: str,
        *,
        headers: Mapping[str, str],
        params: Mapping[str, Any] | None = None,
        data: Mapping[str, Any] | None = None,
        files: Mapping[str, tuple[str, bytes, str]] | None = None,
    ) -> httpx.Response:
        """Execute *method* request and return the response."""
        async with httpx.AsyncClient(
            base_url=self.settings.base_url,
            timeout=httpx.Timeout(self.settings.timeout_seconds),
            transport=self._transport,
        ) as client:
            return await client.request(
                method,
                path,
                headers=dict(headers),
                params=dict(params) if params else None,
                data=dict(data) if data else None,
                files=dict(files) if files else None,
            )

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        """Return the JSON body of *response* or ``None`` when it has none."""
        try:
            return response.json()
        except ValueError:
            return None

    # ------------------------------------------------------------------
    async def submit(
        self, payload: SubmissionInput, continuity: ContinuityFields
    ) -> str:
        """Upload *payload* and return the backend-assigned job identifier."""
        headers = self._headers()
        form: dict[str, Any] = continuity.to_form()
        files: dict[str, tuple[str, bytes, str]] = {}
        text = payload.normalized_text
        if text:
            form["text"] = text
        if payload.audio is not None and payload.audio.data:
            files["audio_file"] = (
                payload.audio.filename,
                payload.audio.data,
                payload.audio.content_type,
            )
        if payload.image is not None and payload.image.data:
            form["image_type"] = payload.image.image_type
            files["image"] = (
                payload.image.filename,
                payload.image.data,
                payload.image.image_type,
            )

        start = time.monotonic()
        log_event(
            "SUBMIT_REQUEST",
            {"kind": payload.kind, **continuity.to_form()},
        )
        log_debug_payload(
            "SUBMIT_HTTP",
            {
                "path": self.settings.submit_path,
                "headers": headers,
                "form": form,
                "files": {name: (part[0], part[2], len(part[1])) for name, part in files.items()},
            },
        )
        try:
            resp = await self._request_async(
                "POST",
                self.settings.submit_path,
                headers=headers,
                data=form,
                files=files or None,
            )
        except httpx.HTTPError as exc:
            log_event("SUBMIT_RESULT", {"error": str(exc)}, start_time=start, level=logging.ERROR)
            raise SubmissionError(f"Upload failed: {exc}") from exc

        body = self._decode(resp)
        if not resp.is_success:
            message = extract_error_message(body)
            log_event(
                "SUBMIT_RESULT",
                {"status": resp.status_code, "error": message},
                start_time=start,
                level=logging.ERROR,
            )
            raise SubmissionError(message, status_code=resp.status_code)

        order_id = body.get("order_id") if isinstance(body, Mapping) else None
        if order_id is None or not str(order_id).strip():
            log_event(
                "SUBMIT_RESULT",
                {"status": resp.status_code, "error": "missing order_id"},
                start_time=start,
                level=logging.ERROR,
            )
            raise SubmissionError(
                "Upload succeeded but no order id was returned",
                status_code=resp.status_code,
            )
        job_id = str(order_id).strip()
        log_event("SUBMIT_RESULT", {"status": resp.status_code, "order_id": job_id}, start_time=start)
        return job_id

    # ------------------------------------------------------------------
    async def fetch_status(self, job_id: str) -> JobSnapshot:
        """Return the current :class:`JobSnapshot` for *job_id*.

        Transport failures and non-success responses raise
        :class:`TransientPollError`; the caller decides whether to retry.
        """
        headers = self._headers()
        start = time.monotonic()
        log_debug_payload("POLL_REQUEST", {"order_id": job_id, "headers": headers})
        try:
            resp = await self._request_async(
                "GET",
                self.settings.status_path,
                headers=headers,
                params={"id": job_id},
            )
        except httpx.HTTPError as exc:
            raise TransientPollError(str(exc)) from exc

        body = self._decode(resp)
        if not resp.is_success:
            raise TransientPollError(
                extract_error_message(body), status_code=resp.status_code
            )
        if not isinstance(body, Mapping):
            raise TransientPollError(
                "Malformed status response", status_code=resp.status_code
            )
        snapshot = JobSnapshot.from_payload(job_id, body)
        log_event(
            "POLL_RESULT",
            {"order_id": job_id, "status": snapshot.raw_status or snapshot.status.value},
            start_time=start,
            level=logging.DEBUG,
        )
        return snapshot

    # ------------------------------------------------------------------
    async def fetch_history(self, page: int, size: int) -> HistoryPage:
        """Return raw history items for the 1-indexed *page*."""
        headers = self._headers()
        start = time.monotonic()
        log_event("HISTORY_REQUEST", {"page": page, "size": size})
        try:
            resp = await self._request_async(
                "GET",
                self.settings.history_path,
                headers=headers,
                params={"page": page, "size": size},
            )
        except httpx.HTTPError as exc:
            log_event("HISTORY_RESULT", {"page": page, "error": str(exc)}, start_time=start, level=logging.ERROR)
            raise HistoryFetchError(f"Failed to load history: {exc}") from exc

        body = self._decode(resp)
        if not resp.is_success:
            message = extract_error_message(body)
            log_event(
                "HISTORY_RESULT",
                {"page": page, "status": resp.status_code, "error": message},
                start_time=start,
                level=logging.ERROR,
            )
            raise HistoryFetchError(message, status_code=resp.status_code)

        if isinstance(body, list):
            items, reported = body, None
        elif isinstance(body, Mapping):
            items, reported = body.get("items") or [], body.get("size")
        else:
            items, reported = None, None
        if not isinstance(items, list):
            raise HistoryFetchError(
                "Malformed history response", status_code=resp.status_code
            )
        history_page = HistoryPage(
            page=page,
            page_size=size,
            items=tuple(items),
            reported_size=reported if isinstance(reported, int) else None,
        )
        log_event(
            "HISTORY_RESULT",
            {"page": page, "returned": history_page.returned_count},
            start_time=start,
        )
        return history_page


__all__ = ["BackendClient"]
