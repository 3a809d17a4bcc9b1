"""In-process push channel for job record changes."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import defaultdict
from typing import Callable, Optional

from srtflow.schemas.job import Job

logger = logging.getLogger(__name__)


class JobChannel:
    """Delivers full job records for a single job id to one async reader.

    `deliver` may be called from any thread; records are handed to the
    owning event loop. Closing wakes the reader, which then sees `None`.
    """

    def __init__(
        self,
        job_id: str,
        *,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        on_close: Optional[Callable[["JobChannel"], None]] = None,
    ) -> None:
        self.job_id = job_id
        self._loop = loop or asyncio.get_running_loop()
        self._queue: asyncio.Queue[Optional[Job]] = asyncio.Queue()
        self._closed = False
        self._on_close = on_close

    @property
    def closed(self) -> bool:
        return self._closed

    def deliver(self, job: Job) -> None:
        if self._closed or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._put, job)

    def _put(self, job: Optional[Job]) -> None:
        if job is not None and self._closed:
            return
        self._queue.put_nowait(job)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._on_close:
            self._on_close(self)
        if self._loop.is_closed():
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._put(None)
        else:
            self._loop.call_soon_threadsafe(self._put, None)

    async def receive(self) -> Optional[Job]:
        if self._closed:
            return None
        job = await self._queue.get()
        if job is None or self._closed:
            return None
        return job

    def __aiter__(self) -> "JobChannel":
        return self

    async def __anext__(self) -> Job:
        job = await self.receive()
        if job is None:
            raise StopAsyncIteration
        return job


class JobEventHub:
    """Publish/subscribe registry keyed by job id."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._channels: dict[str, set[JobChannel]] = defaultdict(set)

    def subscribe(self, job_id: str) -> JobChannel:
        channel = JobChannel(job_id, on_close=self._discard)
        with self._lock:
            self._channels[job_id].add(channel)
        return channel

    def publish(self, job: Job) -> int:
        with self._lock:
            channels = list(self._channels.get(job.id, ()))
        for channel in channels:
            channel.deliver(job)
        return len(channels)

    def subscriber_count(self, job_id: str) -> int:
        with self._lock:
            return len(self._channels.get(job_id, ()))

    def close_all(self) -> None:
        with self._lock:
            channels = [channel for group in self._channels.values() for channel in group]
        for channel in channels:
            channel.close()
        if channels:
            logger.info("Closed %d job channel(s)", len(channels))

    def _discard(self, channel: JobChannel) -> None:
        with self._lock:
            group = self._channels.get(channel.job_id)
            if group is None:
                return
            group.discard(channel)
            if not group:
                del self._channels[channel.job_id]
