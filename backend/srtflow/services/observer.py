"""Live view of a single job: initial fetch plus pushed changes."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, Optional

from srtflow.core.constants import JobStatus
from srtflow.schemas.job import Job
from srtflow.services.job_store import JobNotifier, JobStore
from srtflow.services.notifications import JobChannel
from srtflow.services.state_machine import is_terminal

logger = logging.getLogger(__name__)

JobCallback = Callable[[Job], Any]


async def invoke_callback(callback: Optional[JobCallback], job: Job) -> None:
    if callback is None:
        return
    result = callback(job)
    if inspect.isawaitable(result):
        await result


class Subscription:
    """Handle returned by `JobObserver.observe`.

    Callbacks for one subscription run one at a time on a single reader task.
    After `cancel()` no further callbacks are made.
    """

    def __init__(
        self,
        job_id: str,
        channel: Optional[JobChannel],
        on_update: JobCallback,
        on_complete: Optional[JobCallback],
    ) -> None:
        self.job_id = job_id
        self.snapshot: Optional[Job] = None
        self._channel = channel
        self._on_update = on_update
        self._on_complete = on_complete
        self._completed = False
        self._cancelled = False
        self._error: Optional[BaseException] = None
        self._done = asyncio.Event()
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def closed(self) -> bool:
        return self._done.is_set()

    @property
    def completed(self) -> bool:
        return self._completed

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._release()

    async def wait_closed(self) -> None:
        await self._done.wait()
        if self._error is not None:
            raise self._error

    def _release(self) -> None:
        if self._channel is not None:
            self._channel.close()
        self._done.set()

    async def _emit(self, job: Job) -> None:
        if self._cancelled or self.closed:
            return
        self.snapshot = job
        await invoke_callback(self._on_update, job)
        if self._cancelled:
            return
        if job.status == JobStatus.COMPLETED and not self._completed:
            self._completed = True
            await invoke_callback(self._on_complete, job)
        if is_terminal(job.status):
            logger.info("Job %s reached %s", job.id, job.status.value)
            self._release()

    def _start(self) -> None:
        if self._channel is None or self.closed:
            return
        self._task = asyncio.get_running_loop().create_task(self._pump())

    async def _pump(self) -> None:
        channel = self._channel
        if channel is None:
            return
        try:
            async for job in channel:
                await self._emit(job)
                if self.closed:
                    break
            else:
                if not self._cancelled and not self.closed:
                    logger.warning("Notification channel for job %s closed; no further updates", self.job_id)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Job %s update callback failed", self.job_id)
            self._error = exc
        finally:
            self._release()


class JobObserver:
    def __init__(self, store: JobStore, notifier: Optional[JobNotifier] = None) -> None:
        self.store = store
        self.notifier = notifier

    async def observe(
        self,
        job_id: str,
        on_update: JobCallback,
        on_complete: Optional[JobCallback] = None,
    ) -> Subscription:
        # Subscribe before the fetch so a change landing in between is not missed.
        channel = self.notifier.subscribe(job_id) if self.notifier is not None else None
        subscription = Subscription(job_id, channel, on_update, on_complete)
        try:
            job = self.store.get_job(job_id)
            await subscription._emit(job)
        except BaseException:
            subscription.cancel()
            raise

        if channel is None:
            logger.info("No job notifier configured; job %s will not receive live updates", job_id)
        subscription._start()
        return subscription
