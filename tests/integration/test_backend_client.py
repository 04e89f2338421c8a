"""HTTP-level tests for :class:`clinicalpaws.api.client.BackendClient`."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import httpx
import pytest

from clinicalpaws.api import (
    AuthenticationMissingError,
    BackendClient,
    ContinuityFields,
    HistoryFetchError,
    JobStatus,
    SubmissionError,
    SubmissionInput,
    TransientPollError,
)
from clinicalpaws.credentials import EnvironmentCredentialAccessor, StaticCredentialAccessor
from clinicalpaws.log import logger, open_jsonl_handler
from clinicalpaws.settings import BackendSettings
from tests.backend_utils import BASE_URL, MockBackendServer

pytestmark = pytest.mark.integration

NEW = ContinuityFields(is_new=True)
CONTINUE_O1 = ContinuityFields(is_new=False, last_job_id="o1")


def _client(server: MockBackendServer, token: str | None = "tok") -> tuple[BackendClient, StaticCredentialAccessor]:
    credentials = StaticCredentialAccessor(token)
    client = BackendClient(BackendSettings(base_url=BASE_URL), credentials, transport=server.transport)
    return client, credentials


def test_text_submission_sends_typed_form() -> None:
    server = MockBackendServer(order_ids=["o1"])
    client, _ = _client(server)

    job_id = asyncio.run(client.submit(SubmissionInput.from_text(" vomiting dog "), NEW))

    assert job_id == "o1"
    [request] = server.requests
    assert request.method == "POST"
    assert request.path == "/api/signup/upload_audio_file"
    assert request.headers["authorization"] == "Bearer tok"
    assert request.form() == {"is_new_chat": "true", "text": "vomiting dog"}


def test_follow_up_carries_previous_order_id() -> None:
    server = MockBackendServer(order_ids=["o2"])
    client, _ = _client(server)

    asyncio.run(client.submit(SubmissionInput.from_text("now lethargic too"), CONTINUE_O1))

    assert server.requests[0].form() == {
        "is_new_chat": "false",
        "previous_order_id": "o1",
        "text": "now lethargic too",
    }


def test_audio_submission_is_multipart() -> None:
    server = MockBackendServer(order_ids=["o3"])
    client, _ = _client(server)

    asyncio.run(client.submit(SubmissionInput.from_audio(b"RIFF0000WAVE"), CONTINUE_O1))

    request = server.requests[0]
    assert request.content_type.startswith("multipart/form-data")
    body = request.body
    assert b'name="audio_file"; filename="recording.wav"' in body
    assert b"Content-Type: audio/wav" in body
    assert b"RIFF0000WAVE" in body
    assert b'name="is_new_chat"\r\n\r\nfalse' in body
    assert b'name="previous_order_id"\r\n\r\no1' in body
    assert b'name="text"' not in body


def test_image_submission_includes_type() -> None:
    server = MockBackendServer(order_ids=["o4"])
    client, _ = _client(server)

    asyncio.run(client.submit(SubmissionInput.from_image(b"\x89PNG", "image/png", filename="rash.png"), NEW))

    body = server.requests[0].body
    assert b'name="image"; filename="rash.png"' in body
    assert b'name="image_type"\r\n\r\nimage/png' in body
    assert b"previous_order_id" not in body


def test_missing_token_fails_before_network() -> None:
    server = MockBackendServer()
    client, _ = _client(server, token=None)

    with pytest.raises(AuthenticationMissingError):
        asyncio.run(client.submit(SubmissionInput.from_text("hi"), NEW))
    with pytest.raises(AuthenticationMissingError):
        asyncio.run(client.fetch_status("o1"))
    assert server.requests == []


def test_token_is_read_for_every_request(monkeypatch) -> None:
    monkeypatch.setenv("CP_TEST_TOKEN", "first")
    server = MockBackendServer()
    credentials = EnvironmentCredentialAccessor("CP_TEST_TOKEN")
    client = BackendClient(BackendSettings(base_url=BASE_URL), credentials, transport=server.transport)

    asyncio.run(client.fetch_status("o1"))
    monkeypatch.setenv("CP_TEST_TOKEN", "second")
    asyncio.run(client.fetch_status("o1"))
    credentials.clear()
    with pytest.raises(AuthenticationMissingError):
        asyncio.run(client.fetch_status("o1"))

    assert [r.headers["authorization"] for r in server.requests] == [
        "Bearer first",
        "Bearer second",
    ]


@pytest.mark.parametrize(
    "response, message",
    [
        ((400, {"detail": "Invalid audio format"}), "Invalid audio format"),
        ((422, {"message": "Missing text"}), "Missing text"),
        ((500, "<html>oops</html>"), "Something went wrong"),
        ((200, {"status": "queued"}), "Upload succeeded but no order id was returned"),
    ],
)
def test_submission_errors(response, message) -> None:
    server = MockBackendServer(submit_response=response)
    client, _ = _client(server)

    with pytest.raises(SubmissionError) as excinfo:
        asyncio.run(client.submit(SubmissionInput.from_text("hi"), NEW))

    assert str(excinfo.value) == message
    assert excinfo.value.status_code == response[0]


def test_submission_transport_failure() -> None:
    server = MockBackendServer(raise_on=lambda request: httpx.ConnectError("unreachable", request=request))
    client, _ = _client(server)

    with pytest.raises(SubmissionError, match="Upload failed"):
        asyncio.run(client.submit(SubmissionInput.from_text("hi"), NEW))


def test_numeric_order_id_is_stringified() -> None:
    server = MockBackendServer(submit_response=(200, {"order_id": 123}))
    client, _ = _client(server)

    assert asyncio.run(client.submit(SubmissionInput.from_text("hi"), NEW)) == "123"


def test_fetch_status_maps_payload() -> None:
    server = MockBackendServer(
        statuses={
            "o1": [
                (200, {"status": "completed", "transcribed_text": "q", "final_answer": "a"}),
            ]
        }
    )
    client, _ = _client(server)

    snapshot = asyncio.run(client.fetch_status("o1"))

    assert snapshot.status is JobStatus.COMPLETED
    assert (snapshot.transcribed_text, snapshot.final_answer) == ("q", "a")
    assert server.requests[0].params == {"id": "o1"}
    assert server.requests[0].path == "/api/signup/order"


@pytest.mark.parametrize(
    "response",
    [(503, {"detail": "Service Unavailable"}), (200, "not json"), (200, ["list"])],
)
def test_fetch_status_failures_are_transient(response) -> None:
    server = MockBackendServer(statuses={"o1": [response]})
    client, _ = _client(server)

    with pytest.raises(TransientPollError):
        asyncio.run(client.fetch_status("o1"))


def test_fetch_status_transport_failure_is_transient() -> None:
    server = MockBackendServer(raise_on=lambda request: httpx.ReadTimeout("slow", request=request))
    client, _ = _client(server)

    with pytest.raises(TransientPollError):
        asyncio.run(client.fetch_status("o1"))


def test_fetch_history_accepts_wrapped_and_bare_lists() -> None:
    server = MockBackendServer(
        history_pages={
            1: (200, {"items": [{"id": "h1"}, {"id": "h2"}], "size": 2}),
            2: (200, [{"id": "h3"}]),
        }
    )
    client, _ = _client(server)

    first = asyncio.run(client.fetch_history(1, 2))
    second = asyncio.run(client.fetch_history(2, 2))

    assert [item["id"] for item in first.items] == ["h1", "h2"]
    assert first.reported_size == 2
    assert not first.is_last
    assert second.returned_count == 1
    assert second.is_last
    assert server.requests[0].params == {"page": "1", "size": "2"}


@pytest.mark.parametrize(
    "response, message",
    [
        ((500, {"detail": "boom"}), "boom"),
        ((200, {"items": "nope"}), "Malformed history response"),
    ],
)
def test_fetch_history_errors(response, message) -> None:
    server = MockBackendServer(history_pages={1: response})
    client, _ = _client(server)

    with pytest.raises(HistoryFetchError, match=message):
        asyncio.run(client.fetch_history(1, 10))


def test_request_logging_redacts_token(tmp_path: Path) -> None:
    server = MockBackendServer(order_ids=["o1"])
    client, _ = _client(server, token="super-secret")
    log_file = tmp_path / "client.jsonl"
    handler = open_jsonl_handler(log_file)
    logger.addHandler(handler)
    prev_level = logger.level
    logger.setLevel(logging.DEBUG)
    try:
        asyncio.run(client.submit(SubmissionInput.from_audio(b"RIFF"), NEW))
    finally:
        logger.setLevel(prev_level)
        logger.removeHandler(handler)
        handler.close()
    text = log_file.read_text()
    entries = [json.loads(line) for line in text.splitlines()]
    assert "super-secret" not in text
    events = [e.get("event") for e in entries]
    assert "SUBMIT_REQUEST" in events
    result = next(e for e in entries if e.get("event") == "SUBMIT_RESULT")
    assert result["payload"]["order_id"] == "o1"
    assert "duration_ms" in result
