"""Indexing queue exports for drivepicker."""

from __future__ import annotations

from .job import IndexingJob
from .queue import IndexingQueue
from .status import JobKind, JobStatus
from .worker import JobExecutor, QueueWorker

__all__ = [
    "JobKind",
    "JobStatus",
    "IndexingJob",
    "IndexingQueue",
    "QueueWorker",
    "JobExecutor",
]
