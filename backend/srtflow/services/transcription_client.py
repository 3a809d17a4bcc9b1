"""HTTP client for the remote transcription service."""

from __future__ import annotations

import logging
from typing import Any, BinaryIO, Optional

import httpx

from srtflow.core.errors import RemoteRejection, SubmissionError, SubmissionTransportError
from srtflow.schemas.config import ServiceConfig
from srtflow.schemas.job import SubmissionReceipt

logger = logging.getLogger(__name__)

FilePart = tuple[str, tuple[str, BinaryIO, str]]


def _first_string(values: list[Any]) -> Optional[str]:
    for value in values:
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def extract_detail(response: httpx.Response) -> Optional[str]:
    """Pull the diagnostic out of an error body: `{"detail": ...}`."""
    try:
        payload = response.json()
    except Exception:
        return None
    if not isinstance(payload, dict):
        return None

    detail = payload.get("detail")
    if isinstance(detail, str) and detail.strip():
        return detail.strip()
    # FastAPI request validation errors come back as a list of {loc, msg, type}.
    if isinstance(detail, list):
        messages = [item.get("msg") for item in detail if isinstance(item, dict)]
        joined = "; ".join(message for message in messages if isinstance(message, str) and message)
        return joined or None
    return _first_string([payload.get("message"), payload.get("error")])


def parse_upload_response(payload: Any) -> SubmissionReceipt:
    if not isinstance(payload, dict):
        raise SubmissionError("Upload response is not a JSON object")

    job_id = payload.get("job_id")
    if isinstance(job_id, int):
        job_id = str(job_id)
    if not isinstance(job_id, str) or not job_id.strip():
        raise SubmissionError("Upload response missing job_id")

    estimated = payload.get("estimated_time")
    try:
        estimated_time = float(estimated) if estimated is not None else None
    except (TypeError, ValueError):
        estimated_time = None

    return SubmissionReceipt(job_id=job_id.strip(), estimated_time=estimated_time)


class TranscriptionServiceClient:
    def __init__(self, cfg: ServiceConfig, *, transport: Optional[httpx.BaseTransport] = None) -> None:
        self.cfg = cfg
        self._transport = transport

    @property
    def upload_url(self) -> str:
        return f"{self.cfg.base_url.rstrip('/')}/upload"

    def _build_headers(self, access_token: Optional[str]) -> dict[str, str]:
        if access_token is None:
            return {}
        return {"Authorization": f"Bearer {access_token}"}

    def upload(
        self,
        *,
        fields: dict[str, str],
        files: list[FilePart],
        access_token: Optional[str] = None,
    ) -> SubmissionReceipt:
        headers = self._build_headers(access_token)
        try:
            with httpx.Client(timeout=self.cfg.timeout_s, transport=self._transport) as client:
                resp = client.post(self.upload_url, headers=headers, data=fields, files=files)
        except httpx.TimeoutException as exc:
            raise SubmissionTransportError(f"Upload timed out after {self.cfg.timeout_s}s") from exc
        except httpx.HTTPError as exc:
            raise SubmissionTransportError(f"Upload failed: transcription service unreachable ({exc})") from exc

        if resp.status_code >= 400:
            detail = extract_detail(resp)
            message = detail or f"Upload failed: {resp.status_code} {resp.text[:500]}"
            raise RemoteRejection(message, status_code=resp.status_code, detail=detail)

        try:
            payload = resp.json()
        except ValueError as exc:
            raise SubmissionError(f"Upload response is not JSON: {resp.text[:500]}") from exc

        receipt = parse_upload_response(payload)
        logger.info("Transcription service accepted upload as job %s", receipt.job_id)
        return receipt
