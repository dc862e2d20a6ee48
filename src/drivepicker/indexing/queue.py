"""IndexingQueue: per-resource job status and the two FIFO job queues."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Iterable, Optional

from drivepicker.errors import InvalidStateError
from drivepicker.models import JobResult, Resource

from .job import IndexingJob
from .status import ACTIVE_STATUS, SUCCESS_STATUS, JobKind, JobStatus

logger = logging.getLogger(__name__)


class IndexingQueue:
    """
    State machine for index/remove jobs (no external I/O).

    Rules:
        - A resource is in at most one queue; a second request for either
          queue is rejected until the first job leaves its queue.
        - Each queue is FIFO with at most one active job.
        - Settling a job pops it from its queue and unblocks the next head.
        - indexed_resource_ids changes only on confirmed remote success.
    """

    def __init__(self, *, history_limit: int = 100) -> None:
        self._queues: dict[JobKind, deque[str]] = {kind: deque() for kind in JobKind}
        self._active: dict[JobKind, Optional[str]] = {kind: None for kind in JobKind}
        self._wakeups: dict[JobKind, asyncio.Event] = {kind: asyncio.Event() for kind in JobKind}
        self._jobs: dict[str, IndexingJob] = {}
        self._status: dict[str, JobStatus] = {}
        self._indexed: set[str] = set()

        self.knowledge_base_id: Optional[str] = None
        self.history: deque[JobResult] = deque(maxlen=history_limit)

    # ----------------------------
    # Read APIs
    # ----------------------------
    @property
    def index_queue(self) -> list[str]:
        return list(self._queues[JobKind.INDEX])

    @property
    def remove_queue(self) -> list[str]:
        return list(self._queues[JobKind.REMOVE])

    @property
    def indexed_resource_ids(self) -> frozenset[str]:
        return frozenset(self._indexed)

    def active(self, kind: JobKind) -> Optional[str]:
        return self._active[kind]

    def get_job(self, resource_id: str) -> Optional[IndexingJob]:
        return self._jobs.get(resource_id)

    def get_status(self, resource_id: str) -> JobStatus:
        return self._status.get(resource_id, JobStatus.IDLE)

    def is_resource_indexed(self, resource_id: str) -> bool:
        return resource_id in self._indexed

    def is_queued(self, resource_id: str) -> bool:
        return resource_id in self._jobs

    def has_pending(self, kind: JobKind) -> bool:
        """True when the queue has a head waiting and nothing is active."""
        return bool(self._queues[kind]) and self._active[kind] is None

    # ----------------------------
    # Queueing
    # ----------------------------
    def queue_indexing(
        self,
        resource_id: str,
        *,
        connection_id: Optional[str] = None,
        resource: Optional[Resource] = None,
    ) -> bool:
        """Queue an index job. Returns False (no-op) if the id is already queued."""
        return self._enqueue(JobKind.INDEX, resource_id, connection_id, resource)

    def queue_removing(
        self,
        resource_id: str,
        *,
        connection_id: Optional[str] = None,
        resource: Optional[Resource] = None,
    ) -> bool:
        """Queue a removal job. Returns False (no-op) if the id is already queued."""
        return self._enqueue(JobKind.REMOVE, resource_id, connection_id, resource)

    def cancel(self, resource_id: str) -> bool:
        """
        Drop a job that has not been activated yet.

        Returns:
            False if there is no such job or it is already running.
        """
        job = self._jobs.get(resource_id)
        if job is None or self._active[job.kind] == resource_id:
            return False

        self._queues[job.kind].remove(resource_id)
        del self._jobs[resource_id]
        self._status[resource_id] = (
            JobStatus.DONE if resource_id in self._indexed else JobStatus.IDLE
        )
        logger.debug("Cancelled %s job for %s", job.kind.value, resource_id)
        return True

    # ----------------------------
    # Job lifecycle (driven by QueueWorker)
    # ----------------------------
    def activate_next(self, kind: JobKind) -> Optional[IndexingJob]:
        """
        Move the head of a queue to its active state.

        Returns:
            The activated job, or None if the queue is empty or already busy.
        """
        if not self.has_pending(kind):
            return None

        resource_id = self._queues[kind][0]
        self._active[kind] = resource_id
        self._status[resource_id] = ACTIVE_STATUS[kind]
        logger.debug("Activated %s job for %s", kind.value, resource_id)
        return self._jobs[resource_id]

    def complete(
        self,
        job: IndexingJob,
        *,
        knowledge_base_id: Optional[str] = None,
    ) -> JobResult:
        """Settle an active job after the remote call succeeded."""
        self._require_active(job)

        if job.kind is JobKind.INDEX:
            self._indexed.add(job.resource_id)
            if knowledge_base_id:
                self.knowledge_base_id = knowledge_base_id
        else:
            self._indexed.discard(job.resource_id)

        status = SUCCESS_STATUS[job.kind]
        result = JobResult(
            resource_id=job.resource_id,
            kind=job.kind.value,
            status=status.value,
            knowledge_base_id=knowledge_base_id or self.knowledge_base_id,
        )
        self._retire(job, status, result)
        return result

    def fail(self, job: IndexingJob, exc: BaseException) -> JobResult:
        """
        Settle an active job after the remote call failed.

        Membership is left as it was: a failed index is not indexed, a failed
        removal stays indexed.
        """
        self._require_active(job)

        result = JobResult(
            resource_id=job.resource_id,
            kind=job.kind.value,
            status=JobStatus.ERROR.value,
            error_type=exc.__class__.__name__,
            error_message=str(exc),
            knowledge_base_id=self.knowledge_base_id,
        )
        self._retire(job, JobStatus.ERROR, result)
        return result

    async def wait_for_work(self, kind: JobKind) -> None:
        """Block until the queue has an activatable head."""
        event = self._wakeups[kind]
        while not self.has_pending(kind):
            event.clear()
            await event.wait()

    # ----------------------------
    # Index membership
    # ----------------------------
    def set_knowledge_base_id(self, knowledge_base_id: Optional[str]) -> None:
        self.knowledge_base_id = knowledge_base_id

    def add_indexed_resource(self, resource_id: str) -> None:
        self._indexed.add(resource_id)
        if resource_id not in self._jobs:
            self._status[resource_id] = JobStatus.DONE

    def remove_indexed_resource(self, resource_id: str) -> None:
        self._indexed.discard(resource_id)
        if resource_id not in self._jobs:
            self._status.pop(resource_id, None)

    def set_indexed_resources(self, resource_ids: Iterable[str]) -> None:
        """Replace the membership set (initial load of a knowledge base)."""
        new_ids = set(resource_ids)
        for resource_id in self._indexed - new_ids:
            if resource_id not in self._jobs:
                self._status.pop(resource_id, None)
        self._indexed = new_ids
        for resource_id in new_ids:
            if resource_id not in self._jobs:
                self._status[resource_id] = JobStatus.DONE

    def clear(self) -> None:
        """
        Forget all jobs, statuses and membership.

        Raises:
            InvalidStateError: if a job is running.
        """
        if any(self._active.values()):
            raise InvalidStateError("A job is running. Wait for it to settle first.")

        for queue in self._queues.values():
            queue.clear()
        self._jobs.clear()
        self._status.clear()
        self._indexed.clear()
        self.knowledge_base_id = None
        self.history.clear()

    # ----------------------------
    # Internals
    # ----------------------------
    def _enqueue(
        self,
        kind: JobKind,
        resource_id: str,
        connection_id: Optional[str],
        resource: Optional[Resource],
    ) -> bool:
        existing = self._jobs.get(resource_id)
        if existing is not None:
            if existing.kind is not kind:
                logger.info(
                    "Rejected %s request for %s: already in the %s queue",
                    kind.value,
                    resource_id,
                    existing.kind.value,
                )
            return False

        self._jobs[resource_id] = IndexingJob(
            resource_id=resource_id,
            kind=kind,
            connection_id=connection_id,
            resource=resource,
        )
        self._queues[kind].append(resource_id)
        self._status[resource_id] = JobStatus.QUEUED
        self._wakeups[kind].set()
        return True

    def _require_active(self, job: IndexingJob) -> None:
        if self._active[job.kind] != job.resource_id:
            raise InvalidStateError(
                "Job is not the active job of its queue",
                details={"resource_id": job.resource_id, "kind": job.kind.value},
            )

    def _retire(self, job: IndexingJob, status: JobStatus, result: JobResult) -> None:
        queue = self._queues[job.kind]
        queue.popleft()
        del self._jobs[job.resource_id]
        self._active[job.kind] = None
        self._status[job.resource_id] = status
        self.history.append(result)
        if queue:
            self._wakeups[job.kind].set()
        logger.debug("Settled %s job for %s as %s", job.kind.value, job.resource_id, status.value)
