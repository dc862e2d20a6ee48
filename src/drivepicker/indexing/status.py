"""Indexing job kinds and lifecycle states."""

from __future__ import annotations

from enum import Enum


class JobKind(str, Enum):
    """Which queue a job belongs to."""

    INDEX = "index"
    REMOVE = "remove"


class JobStatus(str, Enum):
    """Per-resource lifecycle status."""

    IDLE = "idle"
    QUEUED = "queued"
    INDEXING = "indexing"
    REMOVING = "removing"
    DONE = "done"
    ERROR = "error"


ACTIVE_STATUS: dict[JobKind, JobStatus] = {
    JobKind.INDEX: JobStatus.INDEXING,
    JobKind.REMOVE: JobStatus.REMOVING,
}

SUCCESS_STATUS: dict[JobKind, JobStatus] = {
    JobKind.INDEX: JobStatus.DONE,
    JobKind.REMOVE: JobStatus.IDLE,
}
