"""Build and send transcription job submissions."""

from __future__ import annotations

import io
import json
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Any, BinaryIO, Iterable, Optional, Union

from srtflow.core.errors import ValidationError
from srtflow.schemas.config import UploadConfig
from srtflow.schemas.job import Speaker, SubmissionReceipt
from srtflow.services.job_store import JobStore
from srtflow.services.transcription_client import FilePart, TranscriptionServiceClient

logger = logging.getLogger(__name__)


def guess_content_type(filename: str) -> str:
    content_type, _ = mimetypes.guess_type(filename)
    return content_type or "application/octet-stream"


@dataclass
class MediaFile:
    filename: str
    size: int
    stream: BinaryIO
    content_type: str = "application/octet-stream"

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "MediaFile":
        path = Path(path)
        return cls(
            filename=path.name,
            size=path.stat().st_size,
            stream=path.open("rb"),
            content_type=guess_content_type(path.name),
        )

    @classmethod
    def from_bytes(cls, filename: str, data: bytes, content_type: Optional[str] = None) -> "MediaFile":
        return cls(
            filename=filename,
            size=len(data),
            stream=io.BytesIO(data),
            content_type=content_type or guess_content_type(filename),
        )

    @property
    def extension(self) -> str:
        return Path(self.filename).suffix.lower().lstrip(".")

    def as_part(self, field: str) -> FilePart:
        return (field, (self.filename, self.stream, self.content_type))

    def close(self) -> None:
        self.stream.close()


@dataclass(frozen=True)
class CallerIdentity:
    access_token: str
    user_id: Optional[str] = None


def default_program_name(filename: str) -> str:
    return Path(filename).stem


def _check_extension(media: MediaFile, allowed: Iterable[str], label: str) -> None:
    allowed_set = {ext.lower().lstrip(".") for ext in allowed}
    if media.extension not in allowed_set:
        accepted = ", ".join(f".{ext}" for ext in sorted(allowed_set))
        raise ValidationError(f"{label} must be one of {accepted} (got {media.filename!r})")


def select_speakers(speakers: Iterable[Union[Speaker, dict[str, Any]]]) -> list[Speaker]:
    """Drop speakers without an id or a name; keep order and duplicates."""
    selected: list[Speaker] = []
    for item in speakers:
        speaker = item if isinstance(item, Speaker) else Speaker.model_validate(item)
        if speaker.id.strip() and speaker.name.strip():
            selected.append(speaker)
    return selected


def serialize_speakers(speakers: list[Speaker]) -> str:
    return json.dumps([speaker.model_dump() for speaker in speakers], ensure_ascii=False)


class SubmissionOrchestrator:
    def __init__(
        self,
        client: TranscriptionServiceClient,
        upload_cfg: UploadConfig,
        store: Optional[JobStore] = None,
    ) -> None:
        self.client = client
        self.upload_cfg = upload_cfg
        self.store = store

    def validate(
        self,
        file: Optional[MediaFile],
        program_name: str,
        teach_transcript: Optional[MediaFile] = None,
        teach_audio: Optional[MediaFile] = None,
    ) -> str:
        if file is None:
            raise ValidationError("a media file is required")
        if file.size <= 0:
            raise ValidationError(f"{file.filename} is empty")
        max_bytes = self.upload_cfg.max_upload_bytes
        if file.size > max_bytes:
            raise ValidationError(f"{file.filename} exceeds the {self.upload_cfg.max_upload_mb}MB upload limit")
        _check_extension(file, self.upload_cfg.media_extensions, "media file")

        if teach_transcript is not None:
            _check_extension(teach_transcript, self.upload_cfg.teach_transcript_extensions, "teaching transcript")
        if teach_audio is not None:
            _check_extension(teach_audio, self.upload_cfg.teach_audio_extensions, "teaching audio")

        name = (program_name or "").strip()
        if not name:
            raise ValidationError("program name is required")
        return name

    def submit(
        self,
        file: Optional[MediaFile],
        program_name: str,
        teach_transcript: Optional[MediaFile] = None,
        teach_audio: Optional[MediaFile] = None,
        speakers: Iterable[Union[Speaker, dict[str, Any]]] = (),
        caller: Optional[CallerIdentity] = None,
    ) -> SubmissionReceipt:
        name = self.validate(file, program_name, teach_transcript, teach_audio)
        selected = select_speakers(speakers)

        fields = {"program_name": name}
        if selected:
            fields["speakers_json"] = serialize_speakers(selected)

        files: list[FilePart] = [file.as_part("file")]
        if teach_transcript is not None:
            files.append(teach_transcript.as_part("teach_txt_file"))
        if teach_audio is not None:
            files.append(teach_audio.as_part("teach_audio_file"))

        receipt = self.client.upload(
            fields=fields,
            files=files,
            access_token=caller.access_token if caller else None,
        )
        logger.info(
            "Submitted %s as job %s (program=%r, speakers=%d)",
            file.filename,
            receipt.job_id,
            name,
            len(selected),
        )

        if caller and caller.user_id:
            self._stamp_owner(receipt.job_id, caller.user_id)
        return receipt

    def _stamp_owner(self, job_id: str, user_id: str) -> None:
        if self.store is None:
            return
        try:
            self.store.set_owner(job_id, user_id)
        except Exception:  # noqa: BLE001
            logger.warning("Could not stamp owner %s on job %s", user_id, job_id, exc_info=True)
