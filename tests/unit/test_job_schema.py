from __future__ import annotations

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError as SchemaError

from srtflow.core.constants import JobStatus
from srtflow.schemas.job import Job


def _completed_job() -> Job:
    return Job(
        id="job-42",
        owner="user-7",
        filename="lecture.mp4",
        program_name="Lecture 1",
        status=JobStatus.COMPLETED,
        file_size=52_428_800,
        result_ref="https://cdn.example/out.srt",
        created_at=datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc),
        completed_at=datetime(2026, 3, 1, 9, 12, tzinfo=timezone.utc),
    )


def test_job_json_round_trip() -> None:
    job = _completed_job()
    parsed = Job.model_validate_json(job.model_dump_json())
    assert parsed == job
    assert parsed.model_dump() == job.model_dump()


def test_job_accepts_store_column_names() -> None:
    job = Job.model_validate(
        {
            "id": "job-1",
            "user_id": "user-1",
            "filename": "a.mp3",
            "program_name": "Show",
            "status": "completed",
            "srt_url": "https://cdn.example/a.srt",
            "created_at": "2026-03-01T09:00:00+00:00",
            "completed_at": "2026-03-01T09:10:00+00:00",
        }
    )
    assert job.owner == "user-1"
    assert job.result_ref == "https://cdn.example/a.srt"


def test_uploading_is_never_a_stored_status() -> None:
    with pytest.raises(SchemaError):
        Job(
            id="job-1",
            filename="a.mp3",
            status=JobStatus.UPLOADING,
            created_at=datetime(2026, 3, 1, tzinfo=timezone.utc),
        )


def test_subtitle_filename_prefers_program_name() -> None:
    job = _completed_job()
    assert job.subtitle_filename() == "Lecture 1.srt"
    assert job.model_copy(update={"program_name": ""}).subtitle_filename() == "lecture.srt"
