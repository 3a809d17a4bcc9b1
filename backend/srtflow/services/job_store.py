"""Job store interfaces and the SQLAlchemy-backed adapter."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from srtflow.core.constants import RECENT_JOBS_LIMIT
from srtflow.core.errors import TransportError, ValidationError
from srtflow.db.base import Base
from srtflow.db.session import SessionLocal, session_scope
from srtflow.schemas.job import Job, JobStatusUpdate
from srtflow.services import repository
from srtflow.services.notifications import JobChannel, JobEventHub

logger = logging.getLogger(__name__)


class JobStore(Protocol):
    """Point reads and owner updates on persisted jobs."""

    def get_job(self, job_id: str) -> Job:
        """Return the current record; raise NotFoundError or TransportError."""
        ...

    def set_owner(self, job_id: str, owner: str) -> Job:
        ...


class JobNotifier(Protocol):
    """Change notifications for a single job id."""

    def subscribe(self, job_id: str) -> JobChannel:
        ...


class SqlJobStore:
    def __init__(
        self,
        session_factory: sessionmaker[Session] = SessionLocal,
        hub: Optional[JobEventHub] = None,
    ) -> None:
        self._session_factory = session_factory
        self.hub = hub if hub is not None else JobEventHub()

    def create_schema(self) -> None:
        with self._session_factory() as db:
            Base.metadata.create_all(bind=db.get_bind())

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with session_scope(self._session_factory) as db:
                yield db
        except SQLAlchemyError as exc:
            raise TransportError(f"job store unavailable: {exc}") from exc

    def get_job(self, job_id: str) -> Job:
        with self._session() as db:
            return repository.to_job_out(repository.require_job(db, job_id))

    def list_recent(self, limit: int = RECENT_JOBS_LIMIT) -> list[Job]:
        with self._session() as db:
            return [repository.to_job_out(job) for job in repository.list_recent_jobs(db, limit)]

    def count(self) -> int:
        with self._session() as db:
            return repository.count_jobs(db)

    def register_job(
        self,
        job_id: str,
        *,
        filename: str,
        program_name: str,
        file_size: Optional[int] = None,
        owner: Optional[str] = None,
    ) -> Job:
        with self._session() as db:
            existing = repository.get_job(db, job_id)
            if existing is None:
                job = repository.to_job_out(
                    repository.create_job(
                        db,
                        job_id=job_id,
                        filename=filename,
                        program_name=program_name,
                        file_size=file_size,
                        owner=owner,
                    )
                )
            elif owner and existing.user_id != owner:
                # Registered earlier by a status callback; the submitter still owns it.
                try:
                    job = repository.to_job_out(repository.set_owner(db, job_id, owner))
                except ValidationError:
                    logger.warning("Could not stamp owner %s on job %s", owner, job_id, exc_info=True)
                    return repository.to_job_out(existing)
            else:
                return repository.to_job_out(existing)
        self.hub.publish(job)
        return job

    def set_owner(self, job_id: str, owner: str) -> Job:
        with self._session() as db:
            job = repository.to_job_out(repository.set_owner(db, job_id, owner))
        self.hub.publish(job)
        return job

    def apply_status(self, job_id: str, update: JobStatusUpdate) -> Job:
        with self._session() as db:
            job = repository.to_job_out(repository.apply_status(db, job_id, update))
        self.hub.publish(job)
        return job

    def subscribe(self, job_id: str) -> JobChannel:
        return self.hub.subscribe(job_id)
