"""Request dedup cache for folder listings."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from drivepicker.gateway.endpoints import ROOT_FOLDER_SENTINEL
from drivepicker.models import Resource

logger = logging.getLogger(__name__)

ListingKey = tuple[str, Optional[str]]
FetchListing = Callable[[str, Optional[str]], Awaitable[list[Resource]]]


@dataclass(slots=True)
class _Entry:
    resources: list[Resource]
    fetched_at: float


def listing_key(connection_id: str, folder_id: Optional[str]) -> ListingKey:
    if folder_id == ROOT_FOLDER_SENTINEL:
        folder_id = None
    return (connection_id, folder_id)


class ListingCache:
    """
    Dedupes folder listings by (connection_id, folder_id).

    Rules:
        - Concurrent get() calls for the same key share one in-flight request.
        - A result younger than dedup_interval_sec is returned without a fetch.
        - peek() returns a result younger than ttl_sec without ever fetching.
        - Entries older than ttl_sec are dropped on the next get() or peek().
        - Failures are not cached; every caller of the failed request sees the error.
    """

    def __init__(
        self,
        fetch: FetchListing,
        *,
        dedup_interval_sec: float = 5.0,
        ttl_sec: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetch = fetch
        self._dedup_interval = dedup_interval_sec
        self._ttl = ttl_sec
        self._clock = clock
        self._entries: dict[ListingKey, _Entry] = {}
        self._inflight: dict[ListingKey, asyncio.Task[list[Resource]]] = {}
        self._generation = 0

    async def get(
        self,
        connection_id: str,
        folder_id: Optional[str],
        *,
        force: bool = False,
    ) -> list[Resource]:
        """
        Return the listing for a folder, fetching at most once per key at a time.

        Args:
            force: Skip the dedup window (still joins an in-flight request).
        """
        key = listing_key(connection_id, folder_id)
        self._evict_expired()

        if not force:
            entry = self._entries.get(key)
            if entry is not None and self._clock() - entry.fetched_at < self._dedup_interval:
                return list(entry.resources)

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch_and_store(key, self._generation))
            self._inflight[key] = task
            task.add_done_callback(self._make_done_callback(key))
        else:
            logger.debug("Joining in-flight listing for %s", key)

        resources = await asyncio.shield(task)
        return list(resources)

    def peek(self, connection_id: str, folder_id: Optional[str]) -> Optional[list[Resource]]:
        """Return a cached listing if one is still within the TTL, else None."""
        self._evict_expired()
        entry = self._entries.get(listing_key(connection_id, folder_id))
        if entry is None:
            return None
        return list(entry.resources)

    def __len__(self) -> int:
        return len(self._entries)

    def is_inflight(self, connection_id: str, folder_id: Optional[str]) -> bool:
        return listing_key(connection_id, folder_id) in self._inflight

    def invalidate(self, connection_id: Optional[str] = None) -> None:
        """
        Drop cached listings (all, or only those of one connection).

        In-flight requests still resolve for their waiters but are not stored.
        """
        self._generation += 1
        if connection_id is None:
            self._entries.clear()
            return
        for key in [k for k in self._entries if k[0] == connection_id]:
            self._entries.pop(key, None)

    async def _fetch_and_store(self, key: ListingKey, generation: int) -> list[Resource]:
        connection_id, folder_id = key
        resources = await self._fetch(connection_id, folder_id)
        if generation == self._generation:
            self._entries[key] = _Entry(resources=list(resources), fetched_at=self._clock())
        return resources

    def _evict_expired(self) -> None:
        now = self._clock()
        for key in [k for k, e in self._entries.items() if now - e.fetched_at >= self._ttl]:
            del self._entries[key]

    def _make_done_callback(
        self,
        key: ListingKey,
    ) -> Callable[[asyncio.Task[list[Resource]]], None]:
        def _done(task: asyncio.Task[list[Resource]]) -> None:
            if self._inflight.get(key) is task:
                self._inflight.pop(key, None)
            # Mark the exception as retrieved; waiters re-raise it themselves.
            if not task.cancelled():
                task.exception()

        return _done
