"""Error taxonomy shared by the submission and status-tracking services."""

from __future__ import annotations

from typing import Optional


class SrtflowError(RuntimeError):
    pass


class ValidationError(SrtflowError, ValueError):
    """Bad local input. Raised before anything is sent over the wire."""


class NotFoundError(SrtflowError):
    pass


class TransportError(SrtflowError):
    """The transcription service or job store could not be reached."""


class SubmissionError(SrtflowError):
    pass


class SubmissionTransportError(SubmissionError, TransportError):
    pass


class RemoteRejection(SubmissionError):
    def __init__(self, message: str, *, status_code: int, detail: Optional[str] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail
