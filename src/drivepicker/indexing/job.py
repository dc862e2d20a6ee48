"""Indexing job model."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from drivepicker.models import Resource

from .status import JobKind


@dataclass(slots=True)
class IndexingJob:
    """
    A queued add/remove request for one resource.

    connection_id and resource are captured at queue time so the job can
    still run after the tree was collapsed or reloaded.
    """

    resource_id: str
    kind: JobKind

    connection_id: Optional[str] = None
    resource: Optional[Resource] = None
