"""FastAPI route definitions."""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, Form, Header, HTTPException, Request, UploadFile
from fastapi.responses import FileResponse, RedirectResponse
from sse_starlette.sse import EventSourceResponse

from srtflow.core.constants import JobStatus
from srtflow.core.errors import NotFoundError, RemoteRejection, TransportError, ValidationError
from srtflow.core.settings import APP_VERSION
from srtflow.schemas.config import AppConfig
from srtflow.schemas.job import Job, JobStatusUpdate, StepOut, SubmissionReceipt
from srtflow.services.config_store import load_config, save_config
from srtflow.services.job_store import SqlJobStore
from srtflow.services.observer import JobObserver
from srtflow.services.state_machine import display_steps, is_terminal
from srtflow.services.submission import CallerIdentity, MediaFile, SubmissionOrchestrator, default_program_name
from srtflow.services.transcription_client import TranscriptionServiceClient

router = APIRouter(prefix="/api", tags=["api"])


def get_store(request: Request) -> SqlJobStore:
    return request.app.state.job_store


def get_orchestrator() -> SubmissionOrchestrator:
    config = load_config()
    # Ownership is written when the job is registered locally, see create_job.
    return SubmissionOrchestrator(TranscriptionServiceClient(config.service), config.upload)


def _media_from_upload(upload: Optional[UploadFile]) -> Optional[MediaFile]:
    if upload is None or not upload.filename:
        return None
    stream = upload.file
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return MediaFile(
        filename=Path(upload.filename).name,
        size=size,
        stream=stream,
        content_type=upload.content_type or "application/octet-stream",
    )


def _parse_speakers(raw: str) -> list[dict[str, Any]]:
    if not raw.strip():
        return []
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise HTTPException(status_code=400, detail=f"speakers_json is not valid JSON: {exc.msg}") from exc
    if not isinstance(payload, list) or not all(isinstance(item, dict) for item in payload):
        raise HTTPException(status_code=400, detail="speakers_json must be an array of objects")
    return payload


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=401, detail="Authorization header must be a bearer token")
    return token.strip()


def _require_job(store: SqlJobStore, job_id: str) -> Job:
    try:
        return store.get_job(job_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail="Job not found") from exc
    except TransportError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc


@router.get("/health")
def health(store: SqlJobStore = Depends(get_store)) -> dict[str, object]:
    config = load_config()
    return {
        "version": APP_VERSION,
        "service_url": config.service.base_url,
        "jobs": store.count(),
    }


@router.get("/config", response_model=AppConfig)
def get_config() -> AppConfig:
    return load_config()


@router.put("/config", response_model=AppConfig)
def put_config(config: AppConfig) -> AppConfig:
    return save_config(config)


@router.post("/jobs", response_model=SubmissionReceipt)
def create_job(
    file: UploadFile = File(...),
    program_name: Optional[str] = Form(None),
    teach_txt_file: Optional[UploadFile] = File(None),
    teach_audio_file: Optional[UploadFile] = File(None),
    speakers_json: str = Form(""),
    authorization: Optional[str] = Header(None),
    x_user_id: Optional[str] = Header(None),
    orchestrator: SubmissionOrchestrator = Depends(get_orchestrator),
    store: SqlJobStore = Depends(get_store),
) -> SubmissionReceipt:
    token = _bearer_token(authorization)
    caller = CallerIdentity(access_token=token, user_id=x_user_id) if token else None
    media = _media_from_upload(file)
    speakers = _parse_speakers(speakers_json)
    if program_name is None and media is not None:
        program_name = default_program_name(media.filename)

    try:
        receipt = orchestrator.submit(
            media,
            program_name or "",
            teach_transcript=_media_from_upload(teach_txt_file),
            teach_audio=_media_from_upload(teach_audio_file),
            speakers=speakers,
            caller=caller,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except RemoteRejection as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except TransportError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    try:
        store.register_job(
            receipt.job_id,
            filename=media.filename,
            program_name=program_name.strip(),
            file_size=media.size,
            owner=caller.user_id if caller else None,
        )
    except TransportError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return receipt


@router.get("/jobs", response_model=list[Job])
def list_jobs(store: SqlJobStore = Depends(get_store)) -> list[Job]:
    return store.list_recent(load_config().store.recent_jobs_limit)


@router.get("/jobs/{job_id}", response_model=Job)
def get_job(job_id: str, store: SqlJobStore = Depends(get_store)) -> Job:
    return _require_job(store, job_id)


@router.get("/jobs/{job_id}/steps", response_model=list[StepOut])
def get_job_steps(job_id: str, store: SqlJobStore = Depends(get_store)) -> list[StepOut]:
    return display_steps(_require_job(store, job_id).status)


@router.post("/jobs/{job_id}/status", response_model=Job)
def report_job_status(
    job_id: str,
    update: JobStatusUpdate,
    x_callback_token: Optional[str] = Header(None),
    store: SqlJobStore = Depends(get_store),
) -> Job:
    expected = load_config().service.callback_token
    if expected and x_callback_token != expected:
        raise HTTPException(status_code=403, detail="Invalid callback token")

    try:
        try:
            return store.apply_status(job_id, update)
        except NotFoundError:
            if update.status != JobStatus.PROCESSING or not update.filename:
                raise
            return store.register_job(
                job_id,
                filename=update.filename,
                program_name=update.program_name or "",
                file_size=update.file_size,
            )
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail="Job not found") from exc
    except ValidationError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except TransportError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc


@router.get("/jobs/{job_id}/events")
async def stream_job_events(job_id: str, store: SqlJobStore = Depends(get_store)) -> EventSourceResponse:
    queue: asyncio.Queue[tuple[str, Job]] = asyncio.Queue()
    observer = JobObserver(store, notifier=store)
    try:
        subscription = await observer.observe(
            job_id,
            on_update=lambda job: queue.put_nowait(("job", job)),
            on_complete=lambda job: queue.put_nowait(("complete", job)),
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail="Job not found") from exc
    except TransportError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    def _message(kind: str, job: Job) -> dict[str, str]:
        return {"event": kind, "data": job.model_dump_json()}

    async def event_generator():
        try:
            while True:
                try:
                    kind, job = await asyncio.wait_for(queue.get(), timeout=1)
                except asyncio.TimeoutError:
                    if subscription.closed:
                        break
                    continue

                yield _message(kind, job)
                if kind == "job" and is_terminal(job.status):
                    while not queue.empty():
                        yield _message(*queue.get_nowait())
                    break

            yield {"event": "end", "data": json.dumps({"job_id": job_id})}
        finally:
            subscription.cancel()

    return EventSourceResponse(event_generator())


@router.get("/jobs/{job_id}/subtitle")
def download_subtitle(job_id: str, store: SqlJobStore = Depends(get_store)):
    job = _require_job(store, job_id)
    if job.status != JobStatus.COMPLETED or not job.result_ref:
        raise HTTPException(status_code=404, detail="Subtitle not available")

    if job.result_ref.startswith(("http://", "https://")):
        return RedirectResponse(job.result_ref, status_code=307)

    subtitle_path = Path(job.result_ref)
    if not subtitle_path.exists():
        raise HTTPException(status_code=404, detail="Subtitle file does not exist")
    return FileResponse(
        path=str(subtitle_path),
        media_type="application/x-subrip",
        filename=job.subtitle_filename(),
    )
