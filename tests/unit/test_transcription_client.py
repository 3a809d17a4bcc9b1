from __future__ import annotations

import io

import httpx
import pytest

from srtflow.core.errors import RemoteRejection, SubmissionError, SubmissionTransportError, TransportError
from srtflow.schemas.config import ServiceConfig
from srtflow.services.transcription_client import (
    TranscriptionServiceClient,
    extract_detail,
    parse_upload_response,
)


def _client(handler) -> TranscriptionServiceClient:
    cfg = ServiceConfig(base_url="http://svc.test/", timeout_s=5)
    return TranscriptionServiceClient(cfg, transport=httpx.MockTransport(handler))


def _upload(client: TranscriptionServiceClient, token: str | None = None):
    return client.upload(
        fields={"program_name": "Lecture 1"},
        files=[("file", ("lecture.mp4", io.BytesIO(b"fake-video"), "video/mp4"))],
        access_token=token,
    )


def test_extract_detail_variants() -> None:
    assert extract_detail(httpx.Response(400, json={"detail": "File too large"})) == "File too large"
    assert (
        extract_detail(httpx.Response(422, json={"detail": [{"msg": "field required"}, {"msg": "bad type"}]}))
        == "field required; bad type"
    )
    assert extract_detail(httpx.Response(500, text="<html>oops</html>")) is None


def test_parse_upload_response() -> None:
    receipt = parse_upload_response({"job_id": "abc", "estimated_time": "3"})
    assert receipt.job_id == "abc"
    assert receipt.estimated_time == 3.0
    assert receipt.status.value == "processing"

    assert parse_upload_response({"job_id": 17}).job_id == "17"
    with pytest.raises(SubmissionError):
        parse_upload_response({"estimated_time": 2})


def test_upload_posts_to_upload_endpoint_with_bearer() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"job_id": "job-1", "estimated_time": 4})

    receipt = _upload(_client(handler), token="tok-123")

    assert receipt.job_id == "job-1"
    assert str(seen[0].url) == "http://svc.test/upload"
    assert seen[0].headers["Authorization"] == "Bearer tok-123"
    body = seen[0].read()
    assert b'name="program_name"' in body
    assert b'filename="lecture.mp4"' in body


def test_upload_without_token_sends_no_authorization() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"job_id": "job-1"})

    _upload(_client(handler))
    assert "Authorization" not in seen[0].headers


def test_remote_rejection_carries_detail() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"detail": "Unsupported file type"})

    with pytest.raises(RemoteRejection) as exc_info:
        _upload(_client(handler))
    assert str(exc_info.value) == "Unsupported file type"
    assert exc_info.value.status_code == 400


def test_remote_rejection_without_detail_uses_generic_message() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="upstream down")

    with pytest.raises(RemoteRejection) as exc_info:
        _upload(_client(handler))
    assert exc_info.value.detail is None
    assert "Upload failed: 503" in str(exc_info.value)


def test_unreachable_service_is_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(SubmissionTransportError) as exc_info:
        _upload(_client(handler))
    assert isinstance(exc_info.value, TransportError)
    assert isinstance(exc_info.value, SubmissionError)
