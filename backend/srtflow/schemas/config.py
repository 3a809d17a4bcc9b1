"""Pydantic schemas for persisted app configuration."""

from __future__ import annotations

from pydantic import BaseModel, Field

from srtflow.core.constants import (
    DEFAULT_MAX_UPLOAD_MB,
    MEDIA_EXTENSIONS,
    TEACH_AUDIO_EXTENSIONS,
    TEACH_TRANSCRIPT_EXTENSIONS,
)


class ServiceConfig(BaseModel):
    base_url: str = "http://127.0.0.1:7860"
    timeout_s: int = 300
    callback_token: str = ""


class UploadConfig(BaseModel):
    max_upload_mb: int = DEFAULT_MAX_UPLOAD_MB
    media_extensions: list[str] = Field(default_factory=lambda: list(MEDIA_EXTENSIONS))
    teach_transcript_extensions: list[str] = Field(default_factory=lambda: list(TEACH_TRANSCRIPT_EXTENSIONS))
    teach_audio_extensions: list[str] = Field(default_factory=lambda: list(TEACH_AUDIO_EXTENSIONS))

    @property
    def max_upload_bytes(self) -> int:
        return int(self.max_upload_mb) * 1024 * 1024


class StoreConfig(BaseModel):
    database_url: str = ""
    recent_jobs_limit: int = 5


class AppConfig(BaseModel):
    service: ServiceConfig = Field(default_factory=ServiceConfig)
    upload: UploadConfig = Field(default_factory=UploadConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
