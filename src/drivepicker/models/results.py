"""Result model for settled indexing jobs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(slots=True)
class JobResult:
    """Outcome of one indexing or removal job after it left its queue."""

    resource_id: str
    kind: str
    status: str

    error_type: Optional[str] = None
    error_message: Optional[str] = None
    knowledge_base_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error_type is None
