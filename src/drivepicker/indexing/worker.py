"""Queue consumer: one worker per job queue."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from drivepicker.errors import DrivePickerError
from drivepicker.models import JobResult

from .job import IndexingJob
from .queue import IndexingQueue
from .status import JobKind

logger = logging.getLogger(__name__)

# Performs the remote call for one job. May return a knowledge_base_id.
JobExecutor = Callable[[IndexingJob], Awaitable[Optional[str]]]


class QueueWorker:
    """
    Drains one queue of an IndexingQueue, one remote call at a time.

    drain() is safe to call again while a call is outstanding: activation is
    refused while a job is active, so the second call returns immediately.
    Job failures are settled as "error" and never escape the worker.
    Cancelling drain() or run() waits for the active call to settle; jobs
    still queued stay queued.
    """

    def __init__(self, kind: JobKind, queue: IndexingQueue, executor: JobExecutor) -> None:
        self._kind = kind
        self._queue = queue
        self._executor = executor

    @property
    def kind(self) -> JobKind:
        return self._kind

    async def drain(self) -> list[JobResult]:
        """Process jobs until the queue is empty (or owned by another drain)."""
        results: list[JobResult] = []
        while True:
            job = self._queue.activate_next(self._kind)
            if job is None:
                return results
            results.append(await self._process(job))

    async def run(self) -> None:
        """Consume forever; cancel the task to stop."""
        while True:
            await self._queue.wait_for_work(self._kind)
            await self.drain()

    async def _process(self, job: IndexingJob) -> JobResult:
        call = asyncio.ensure_future(self._executor(job))
        interrupted = False
        while not call.done():
            try:
                await asyncio.wait({call})
            except asyncio.CancelledError:
                # An activated job is never abandoned; stop once it settles.
                interrupted = True

        result = self._settle(job, call)
        if interrupted:
            raise asyncio.CancelledError()
        return result

    def _settle(self, job: IndexingJob, call: asyncio.Future[Optional[str]]) -> JobResult:
        if call.cancelled():
            return self._queue.fail(job, asyncio.CancelledError())

        exc = call.exception()
        if exc is None:
            return self._queue.complete(job, knowledge_base_id=call.result())

        if isinstance(exc, DrivePickerError):
            logger.warning(
                "%s job for %s failed: %s: %s",
                self._kind.value,
                job.resource_id,
                exc.__class__.__name__,
                exc,
            )
        else:
            logger.error(
                "%s job for %s failed unexpectedly",
                self._kind.value,
                job.resource_id,
                exc_info=exc,
            )
        return self._queue.fail(job, exc)
