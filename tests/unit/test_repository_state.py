from __future__ import annotations

import logging

import pytest
from sqlalchemy.orm import Session, sessionmaker

from srtflow.core.constants import JobStatus
from srtflow.core.errors import NotFoundError, ValidationError
from srtflow.schemas.job import JobStatusUpdate
from srtflow.services import repository
from srtflow.services.job_store import SqlJobStore


def _create(db: Session, job_id: str = "job_1") -> None:
    repository.create_job(
        db,
        job_id=job_id,
        filename="lecture.mp4",
        program_name="Lecture 1",
        file_size=50 * 1024 * 1024,
    )
    db.commit()


def test_job_status_flow_in_memory(session_factory: sessionmaker[Session]) -> None:
    with session_factory() as db:
        _create(db)

        job = repository.get_job(db, "job_1")
        assert job is not None
        assert job.status == JobStatus.PROCESSING.value
        assert job.completed_at is None

        repository.apply_status(db, "job_1", JobStatusUpdate(status=JobStatus.PROCESSING_AUDIO))
        repository.apply_status(
            db,
            "job_1",
            JobStatusUpdate(status=JobStatus.COMPLETED, result_ref="https://cdn.example/out.srt"),
        )
        db.commit()

        out = repository.to_job_out(repository.require_job(db, "job_1"))
        assert out.status == JobStatus.COMPLETED
        assert out.result_ref == "https://cdn.example/out.srt"
        assert out.error_message is None
        assert out.completed_at is not None


def test_terminal_job_cannot_move(session_factory: sessionmaker[Session]) -> None:
    with session_factory() as db:
        _create(db)
        repository.apply_status(
            db,
            "job_1",
            JobStatusUpdate(status=JobStatus.ERROR, error_message="decode failed"),
        )
        db.commit()
        first_completed_at = repository.require_job(db, "job_1").completed_at
        assert first_completed_at is not None

        with pytest.raises(ValidationError):
            repository.apply_status(
                db,
                "job_1",
                JobStatusUpdate(status=JobStatus.COMPLETED, result_ref="https://cdn.example/out.srt"),
            )

        job = repository.require_job(db, "job_1")
        assert job.status == JobStatus.ERROR.value
        assert job.completed_at == first_completed_at


def test_status_cannot_move_backwards(session_factory: sessionmaker[Session]) -> None:
    with session_factory() as db:
        _create(db)
        repository.apply_status(db, "job_1", JobStatusUpdate(status=JobStatus.PROCESSING_AUDIO))
        db.commit()

        with pytest.raises(ValidationError):
            repository.apply_status(db, "job_1", JobStatusUpdate(status=JobStatus.PROCESSING))


def test_terminal_status_requires_its_field(session_factory: sessionmaker[Session]) -> None:
    with session_factory() as db:
        _create(db)
        with pytest.raises(ValidationError):
            repository.apply_status(db, "job_1", JobStatusUpdate(status=JobStatus.COMPLETED))
        with pytest.raises(ValidationError):
            repository.apply_status(db, "job_1", JobStatusUpdate(status=JobStatus.ERROR))
        assert repository.require_job(db, "job_1").status == JobStatus.PROCESSING.value


def test_set_owner_once_while_running(session_factory: sessionmaker[Session]) -> None:
    with session_factory() as db:
        _create(db)
        repository.set_owner(db, "job_1", "user-1")
        repository.set_owner(db, "job_1", "user-1")
        db.commit()
        assert repository.require_job(db, "job_1").user_id == "user-1"

        with pytest.raises(ValidationError):
            repository.set_owner(db, "job_1", "user-2")

        _create(db, "job_2")
        repository.apply_status(
            db,
            "job_2",
            JobStatusUpdate(status=JobStatus.COMPLETED, result_ref="https://cdn.example/out.srt"),
        )
        db.commit()
        with pytest.raises(ValidationError):
            repository.set_owner(db, "job_2", "user-1")


def test_missing_job_raises_not_found(session_factory: sessionmaker[Session]) -> None:
    with session_factory() as db:
        with pytest.raises(NotFoundError):
            repository.require_job(db, "nope")
        with pytest.raises(NotFoundError):
            repository.set_owner(db, "nope", "user-1")


def test_list_recent_jobs_is_limited(session_factory: sessionmaker[Session]) -> None:
    with session_factory() as db:
        for idx in range(7):
            _create(db, f"job_{idx}")
        assert repository.count_jobs(db) == 7
        recent = repository.list_recent_jobs(db, limit=5)
        assert len(recent) == 5


def test_register_existing_job_stamps_missing_owner(store: SqlJobStore) -> None:
    store.register_job("job_2", filename="lecture.mp4", program_name="Lecture 1")
    job = store.register_job("job_2", filename="lecture.mp4", program_name="Lecture 1", owner="user-1")

    assert job.owner == "user-1"
    assert store.get_job("job_2").owner == "user-1"


def test_register_existing_job_keeps_other_owner(store: SqlJobStore, caplog: pytest.LogCaptureFixture) -> None:
    store.register_job("job_3", filename="lecture.mp4", program_name="Lecture 1", owner="user-1")

    with caplog.at_level(logging.WARNING, logger="srtflow.services.job_store"):
        job = store.register_job("job_3", filename="lecture.mp4", program_name="Lecture 1", owner="user-2")

    assert job.owner == "user-1"
    assert "Could not stamp owner user-2 on job job_3" in caplog.text
