"""Submit-then-track session state."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional, Union

from starlette.concurrency import run_in_threadpool

from srtflow.core.errors import ValidationError
from srtflow.schemas.job import Job, Speaker, SubmissionReceipt
from srtflow.services.observer import JobCallback, JobObserver, Subscription, invoke_callback
from srtflow.services.submission import CallerIdentity, MediaFile, SubmissionOrchestrator


@dataclass(frozen=True)
class NotStarted:
    pass


@dataclass(frozen=True)
class Tracking:
    job_id: str


@dataclass(frozen=True)
class Finished:
    job: Job


TrackerState = Union[NotStarted, Tracking, Finished]


class JobTracker:
    """Drives one job from submission to completion.

    The state is always exactly one of `NotStarted`, `Tracking(job_id)` or
    `Finished(job)`.
    """

    def __init__(
        self,
        orchestrator: SubmissionOrchestrator,
        observer: Optional[JobObserver] = None,
        on_update: Optional[JobCallback] = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.observer = observer
        self.state: TrackerState = NotStarted()
        self.latest: Optional[Job] = None
        self._on_update = on_update
        self._subscription: Optional[Subscription] = None

    @property
    def subscription(self) -> Optional[Subscription]:
        return self._subscription

    async def start(
        self,
        file: Optional[MediaFile],
        program_name: str,
        teach_transcript: Optional[MediaFile] = None,
        teach_audio: Optional[MediaFile] = None,
        speakers: Iterable[Union[Speaker, dict[str, Any]]] = (),
        caller: Optional[CallerIdentity] = None,
    ) -> SubmissionReceipt:
        if not isinstance(self.state, NotStarted):
            raise ValidationError("a job is already tracked; call reset() first")

        # Blocking upload, kept off the event loop.
        receipt = await run_in_threadpool(
            self.orchestrator.submit,
            file,
            program_name,
            teach_transcript=teach_transcript,
            teach_audio=teach_audio,
            speakers=speakers,
            caller=caller,
        )
        await self.attach(receipt.job_id)
        return receipt

    async def attach(self, job_id: str) -> None:
        self.reset()
        if self.observer is not None:
            try:
                subscription = await self.observer.observe(job_id, self._handle_update, self._handle_complete)
            except BaseException:
                self.reset()
                raise
            self._subscription = subscription
        if isinstance(self.state, NotStarted):
            self.state = Tracking(job_id)

    def reset(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        self.state = NotStarted()
        self.latest = None

    async def _handle_update(self, job: Job) -> None:
        self.latest = job
        await invoke_callback(self._on_update, job)

    def _handle_complete(self, job: Job) -> None:
        self.state = Finished(job)
