"""Pydantic schemas for job records, submissions and API responses."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from srtflow.core.constants import PERSISTED_STATES, SUBTITLE_SUFFIX, JobStatus, StepState


class Speaker(BaseModel):
    id: str
    name: str
    comment: str = ""


class Job(BaseModel):
    id: str
    owner: Optional[str] = Field(default=None, validation_alias=AliasChoices("owner", "user_id"))
    filename: str
    program_name: str = ""
    status: JobStatus
    file_size: Optional[int] = None
    result_ref: Optional[str] = Field(default=None, validation_alias=AliasChoices("result_ref", "srt_url"))
    error_message: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None

    @field_validator("status")
    @classmethod
    def _persisted_status(cls, value: JobStatus) -> JobStatus:
        if value not in PERSISTED_STATES:
            raise ValueError(f"status `{value.value}` is never stored on a job record")
        return value

    def subtitle_filename(self) -> str:
        stem = self.program_name.strip() or Path(self.filename).stem or self.id
        return f"{stem}{SUBTITLE_SUFFIX}"


class SubmissionReceipt(BaseModel):
    job_id: str
    estimated_time: Optional[float] = None
    status: JobStatus = JobStatus.PROCESSING


class JobStatusUpdate(BaseModel):
    status: JobStatus
    filename: Optional[str] = None
    program_name: Optional[str] = None
    file_size: Optional[int] = None
    result_ref: Optional[str] = Field(default=None, validation_alias=AliasChoices("result_ref", "srt_url"))
    error_message: Optional[str] = None


class StepOut(BaseModel):
    status: JobStatus
    state: StepState
    reached: bool
