"""Runtime configuration for drivepicker."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from drivepicker.errors import InvalidArgumentError

DEFAULT_API_BASE_URL: str = "https://api.stack-ai.com"
DEFAULT_INDEX_DESCRIPTION: str = "File indexed for search and retrieval"
DEFAULT_CONTENT_MIME: str = "application/octet-stream"


def default_indexing_params() -> dict[str, Any]:
    return {
        "ocr": False,
        "unstructured": True,
        "embedding_params": {"embedding_model": "text-embedding-ada-002"},
        "chunker_params": {
            "chunk_size": 1500,
            "chunk_overlap": 500,
            "chunker_type": "sentence",
        },
    }


@dataclass(slots=True, frozen=True)
class PickerConfig:
    """
    Configuration shared by the gateway, the listing cache and the session.

    Attributes:
        api_base_url: Base URL of the knowledge-base service.
        timeout_sec: Per-request timeout.
        dedup_interval_sec: Identical folder listings within this window reuse
            the previous response.
        cache_ttl_sec: How long a listing stays available to peek() for prefetch.
        history_limit: Number of settled JobResults kept by the indexing queue.
        index_description: Description sent when creating an index.
        indexing_params: Body fragment sent with every index creation.
        state_file: Optional JSON file persisting the navigation position.
        eager_prefetch: Prefetch every top-level directory after a folder loads.
    """

    api_base_url: str = DEFAULT_API_BASE_URL
    timeout_sec: float = 30.0
    dedup_interval_sec: float = 5.0
    cache_ttl_sec: float = 30.0
    history_limit: int = 100
    index_description: str = DEFAULT_INDEX_DESCRIPTION
    indexing_params: dict[str, Any] = field(default_factory=default_indexing_params)
    state_file: Optional[str] = None
    eager_prefetch: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.api_base_url, str) or not self.api_base_url.strip():
            raise InvalidArgumentError("api_base_url must be a non-empty string")
        if self.timeout_sec <= 0:
            raise InvalidArgumentError("timeout_sec must be positive")
        if self.dedup_interval_sec < 0 or self.cache_ttl_sec < 0:
            raise InvalidArgumentError("cache intervals must not be negative")
        if self.dedup_interval_sec > self.cache_ttl_sec:
            raise InvalidArgumentError(
                "dedup_interval_sec must not exceed cache_ttl_sec",
                details={
                    "dedup_interval_sec": self.dedup_interval_sec,
                    "cache_ttl_sec": self.cache_ttl_sec,
                },
            )
        if self.history_limit < 0:
            raise InvalidArgumentError("history_limit must not be negative")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> PickerConfig:
        """
        Build config from DRIVEPICKER_* environment variables.

        Recognized:
            DRIVEPICKER_API_BASE_URL, DRIVEPICKER_TIMEOUT_SEC,
            DRIVEPICKER_DEDUP_INTERVAL_SEC, DRIVEPICKER_CACHE_TTL_SEC,
            DRIVEPICKER_HISTORY_LIMIT, DRIVEPICKER_STATE_FILE,
            DRIVEPICKER_EAGER_PREFETCH ("0" disables)
        """
        env = os.environ if environ is None else environ
        kwargs: dict[str, Any] = {}

        base_url = env.get("DRIVEPICKER_API_BASE_URL", "").strip()
        if base_url:
            kwargs["api_base_url"] = base_url

        for key, attr, conv in (
            ("DRIVEPICKER_TIMEOUT_SEC", "timeout_sec", float),
            ("DRIVEPICKER_DEDUP_INTERVAL_SEC", "dedup_interval_sec", float),
            ("DRIVEPICKER_CACHE_TTL_SEC", "cache_ttl_sec", float),
            ("DRIVEPICKER_HISTORY_LIMIT", "history_limit", int),
        ):
            raw = env.get(key, "").strip()
            if not raw:
                continue
            try:
                kwargs[attr] = conv(raw)
            except ValueError as exc:
                raise InvalidArgumentError(
                    f"Invalid value for {key}",
                    details={"value": raw},
                    cause=exc,
                ) from exc

        state_file = env.get("DRIVEPICKER_STATE_FILE", "").strip()
        if state_file:
            kwargs["state_file"] = state_file

        eager = env.get("DRIVEPICKER_EAGER_PREFETCH", "").strip()
        if eager:
            kwargs["eager_prefetch"] = eager.lower() not in ("0", "false", "no")

        return cls(**kwargs)
