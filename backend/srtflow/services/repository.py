"""Persistence helpers for job records."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from srtflow.core.constants import INITIAL_STATUS, RECENT_JOBS_LIMIT, TERMINAL_STATES, JobStatus
from srtflow.core.errors import NotFoundError, ValidationError
from srtflow.models.job import Job
from srtflow.schemas.job import Job as JobOut
from srtflow.schemas.job import JobStatusUpdate
from srtflow.services.state_machine import check_invariants, parse_status, validate_transition


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_job_out(job: Job) -> JobOut:
    return JobOut(
        id=job.id,
        owner=job.user_id,
        filename=job.filename,
        program_name=job.program_name,
        status=job.status,
        file_size=job.file_size,
        result_ref=job.srt_url,
        error_message=job.error_message,
        created_at=job.created_at,
        completed_at=job.completed_at,
    )


def create_job(
    db: Session,
    *,
    job_id: str,
    filename: str,
    program_name: str,
    file_size: Optional[int] = None,
    owner: Optional[str] = None,
) -> Job:
    job = Job(
        id=job_id,
        user_id=owner,
        filename=filename,
        program_name=program_name,
        status=INITIAL_STATUS.value,
        file_size=file_size,
        created_at=_utc_now(),
    )
    db.add(job)
    db.flush()
    return job


def get_job(db: Session, job_id: str) -> Optional[Job]:
    return db.get(Job, job_id)


def require_job(db: Session, job_id: str) -> Job:
    job = get_job(db, job_id)
    if not job:
        raise NotFoundError(f"job not found: {job_id}")
    return job


def list_recent_jobs(db: Session, limit: int = RECENT_JOBS_LIMIT) -> list[Job]:
    stmt = select(Job).order_by(Job.created_at.desc(), Job.id.desc()).limit(limit)
    return list(db.scalars(stmt))


def count_jobs(db: Session) -> int:
    return int(db.scalar(select(func.count()).select_from(Job)) or 0)


def set_owner(db: Session, job_id: str, owner: str) -> Job:
    job = require_job(db, job_id)
    if job.user_id == owner:
        return job
    if job.user_id:
        raise ValidationError(f"job {job_id} already has an owner")
    if parse_status(job.status) in TERMINAL_STATES:
        raise ValidationError(f"job {job_id} is {job.status}; owner can no longer be set")
    job.user_id = owner
    db.flush()
    return job


def apply_status(db: Session, job_id: str, update: JobStatusUpdate) -> Job:
    job = require_job(db, job_id)
    current = parse_status(job.status)
    validate_transition(current, update.status)
    if update.status == current:
        return job

    if update.status == JobStatus.COMPLETED and not update.result_ref:
        raise ValidationError("completed status requires result_ref")
    if update.status == JobStatus.ERROR and not update.error_message:
        raise ValidationError("error status requires error_message")

    job.status = update.status.value
    if update.status == JobStatus.COMPLETED:
        job.srt_url = update.result_ref
    elif update.status == JobStatus.ERROR:
        job.error_message = update.error_message
    if update.status in TERMINAL_STATES and job.completed_at is None:
        job.completed_at = _utc_now()

    check_invariants(to_job_out(job))
    db.flush()
    return job
