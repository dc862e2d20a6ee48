"""PickerSession: one tree, one indexing queue and their workers per user session."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine, Iterable, Optional

import httpx

from drivepicker.auth import AuthInfo
from drivepicker.config import DEFAULT_CONTENT_MIME, PickerConfig
from drivepicker.errors import AuthError, DrivePickerError, InvalidStateError, NotFoundError
from drivepicker.gateway import ListingCache, ResourceGateway
from drivepicker.indexing import IndexingJob, IndexingQueue, JobKind, JobStatus, QueueWorker
from drivepicker.models import JobResult, Resource, ResourceKind, TreeNode
from drivepicker.tree import NavigationStateStore, ResourceTree, SortKey

logger = logging.getLogger(__name__)


class PickerSession:
    """
    High-level session: browse a connection and queue index/remove jobs.

    Policy:
        - Remote mutations are confirmed before local state changes.
        - Listing failures are recorded on the tree (prior tree kept) and not
          raised, except AuthError which always propagates.
        - Job failures end in the "error" status; nothing is retried.
    """

    def __init__(
        self,
        auth_info: AuthInfo,
        config: Optional[PickerConfig] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        config = config or PickerConfig()
        self._setup(ResourceGateway(auth_info, config, transport=transport), config)

    @classmethod
    def from_gateway(
        cls,
        gateway: ResourceGateway,
        *,
        config: Optional[PickerConfig] = None,
    ) -> "PickerSession":
        """Create session with an injected gateway (useful for tests)."""
        obj = cls.__new__(cls)
        obj._setup(gateway, config or PickerConfig())
        return obj

    def _setup(self, gateway: ResourceGateway, config: PickerConfig) -> None:
        self._gateway = gateway
        self._config = config
        self.tree = ResourceTree()
        self.queue = IndexingQueue(history_limit=config.history_limit)
        self._cache = ListingCache(
            gateway.list_children,
            dedup_interval_sec=config.dedup_interval_sec,
            ttl_sec=config.cache_ttl_sec,
        )
        self._nav_store = NavigationStateStore(config.state_file) if config.state_file else None

        self._connection_id: Optional[str] = None
        self._prefetched: set[str] = set()
        self._prefetching: set[str] = set()
        self._expanding: set[str] = set()
        self._background: set[asyncio.Task[Any]] = set()

        self._workers = {
            JobKind.INDEX: QueueWorker(JobKind.INDEX, self.queue, self._run_index_job),
            JobKind.REMOVE: QueueWorker(JobKind.REMOVE, self.queue, self._run_remove_job),
        }
        self._worker_tasks: dict[JobKind, asyncio.Task[None]] = {}

    @property
    def connection_id(self) -> Optional[str]:
        return self._connection_id

    @property
    def prefetched_folders(self) -> frozenset[str]:
        return frozenset(self._prefetched)

    @property
    def listing_cache(self) -> ListingCache:
        return self._cache

    # ----------------------------
    # Lifecycle
    # ----------------------------
    async def __aenter__(self) -> "PickerSession":
        self.start_workers()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def start_workers(self) -> None:
        """Start one consumer task per queue (idempotent)."""
        for kind, worker in self._workers.items():
            task = self._worker_tasks.get(kind)
            if task is None or task.done():
                self._worker_tasks[kind] = asyncio.ensure_future(worker.run())

    async def stop_workers(self) -> None:
        """Stop the consumers; a job already running settles before its worker exits."""
        tasks = list(self._worker_tasks.values())
        self._worker_tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def drain(self) -> list[JobResult]:
        """Drain both queues now (for callers that do not run workers)."""
        batches = await asyncio.gather(*(w.drain() for w in self._workers.values()))
        return [result for batch in batches for result in batch]

    async def wait_for_background(self) -> None:
        """Wait until spawned prefetch tasks have finished."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def close(self) -> None:
        await self.stop_workers()
        for task in list(self._background):
            task.cancel()
        await asyncio.gather(*list(self._background), return_exceptions=True)
        await self._gateway.close()

    # ----------------------------
    # Navigation
    # ----------------------------
    async def open_connection(self, connection_id: str, *, restore_navigation: bool = True) -> bool:
        """
        Switch to a connection: full tree reset, then load the saved position or root.

        Returns:
            True if the folder listing loaded without error.
        """
        if not connection_id:
            raise InvalidStateError("connection_id must be a non-empty string")

        if self._connection_id is not None and self._connection_id != connection_id:
            self._cache.invalidate(self._connection_id)
        self._connection_id = connection_id
        self.tree.reset()
        self._prefetched.clear()

        crumbs = None
        if restore_navigation and self._nav_store is not None:
            crumbs = self._nav_store.load(connection_id)
        if crumbs:
            self.tree.restore_navigation(crumbs)

        return await self.refresh()

    async def load_folder(self, folder_id: Optional[str] = None, name: str = "Root") -> bool:
        """Navigate to folder_id (None = root) and load its listing."""
        self._require_connection()
        self.tree.navigate_to_folder(folder_id, name)
        self._prefetched.clear()
        self._save_navigation()
        return await self.refresh()

    async def refresh(self, *, force: bool = False) -> bool:
        """
        (Re)load the current folder's listing into the tree.

        Returns:
            False if the listing failed; the error is on tree.error.
        """
        connection_id = self._require_connection()
        folder_id = self.tree.current_folder_id

        try:
            resources = await self._cache.get(connection_id, folder_id, force=force)
        except AuthError:
            raise
        except DrivePickerError as exc:
            logger.warning("Listing folder %s failed: %s", folder_id, exc)
            self.tree.set_error(str(exc))
            return False

        if self._connection_id != connection_id or self.tree.current_folder_id != folder_id:
            logger.debug("Discarding stale listing for folder %s", folder_id)
            return False

        self.tree.set_resources(resources)
        self._forget_missing_prefetched()

        if self._config.eager_prefetch:
            self._spawn(self.prefetch_top_level())
        return True

    # ----------------------------
    # Expansion / prefetch
    # ----------------------------
    async def expand_folder(self, folder_id: str) -> None:
        """
        Click on a folder row.

        - Expanded: collapse (descendants are dropped).
        - Children already known, or prefetched: expand without fetching.
        - Otherwise: fetch, merge and expand; failures go to tree.folder_errors.
        """
        node = self.tree.find(folder_id)
        if node is None or not node.is_directory or folder_id in self._expanding:
            return

        if node.is_expanded:
            self.tree.toggle_folder_expanded(folder_id)
            self._forget_missing_prefetched()
            self._prefetched.discard(folder_id)
            return

        if self.tree.has_children(folder_id) or folder_id in self._prefetched:
            self.tree.toggle_folder_expanded(folder_id)
            return

        connection_id = self._require_connection()
        self._expanding.add(folder_id)
        try:
            children = await self._cache.get(connection_id, folder_id)
        except AuthError:
            raise
        except DrivePickerError as exc:
            logger.warning("Loading children of %s failed: %s", folder_id, exc)
            self.tree.set_folder_error(folder_id, str(exc))
            return
        finally:
            self._expanding.discard(folder_id)

        if self._connection_id != connection_id or not self.tree.has(folder_id):
            return
        self.tree.clear_folder_error(folder_id)
        self.tree.add_children_and_expand(folder_id, children)

    async def prefetch_folder(self, folder_id: str) -> bool:
        """
        Speculatively load a directory's children without expanding it.

        Returns:
            True if children were merged. Failures are logged and swallowed.
        """
        node = self.tree.find(folder_id)
        if (
            node is None
            or not node.is_directory
            or node.is_expanded
            or folder_id in self._prefetched
            or folder_id in self._prefetching
            or self._connection_id is None
        ):
            return False

        connection_id = self._connection_id
        self._prefetching.add(folder_id)
        try:
            children = self._cache.peek(connection_id, folder_id)
            if children is None:
                children = await self._cache.get(connection_id, folder_id)
        except DrivePickerError as exc:
            logger.warning("Prefetch of %s failed: %s", folder_id, exc)
            return False
        finally:
            self._prefetching.discard(folder_id)

        if self._connection_id != connection_id or not self.tree.has(folder_id):
            return False
        self.tree.add_children_to_folder(folder_id, children)
        self._prefetched.add(folder_id)
        return True

    async def prefetch_top_level(self) -> None:
        folder_ids = [n.resource_id for n in self.tree.children_of(None) if n.is_directory]
        if folder_ids:
            await asyncio.gather(*(self.prefetch_folder(fid) for fid in folder_ids))

    def visible_rows(
        self,
        *,
        sort_key: SortKey = SortKey.NAME,
        descending: bool = False,
        kind_filter: Optional[ResourceKind] = None,
        search: Optional[str] = None,
    ) -> list[TreeNode]:
        return self.tree.visible(
            sort_key=sort_key,
            descending=descending,
            kind_filter=kind_filter,
            search=search,
        )

    # ----------------------------
    # Indexing
    # ----------------------------
    def queue_index(self, resource_id: str) -> bool:
        node = self.tree.find(resource_id)
        return self.queue.queue_indexing(
            resource_id,
            connection_id=self._connection_id,
            resource=node.resource if node is not None else None,
        )

    def queue_remove(self, resource_id: str) -> bool:
        node = self.tree.find(resource_id)
        return self.queue.queue_removing(
            resource_id,
            connection_id=self._connection_id,
            resource=node.resource if node is not None else None,
        )

    def cancel(self, resource_id: str) -> bool:
        return self.queue.cancel(resource_id)

    def status_of(self, resource_id: str) -> JobStatus:
        return self.queue.get_status(resource_id)

    async def load_knowledge_base(self, knowledge_base_id: str) -> list[str]:
        """Select a knowledge base and load its member ids as indexed."""
        self.queue.set_knowledge_base_id(knowledge_base_id)
        members = await self._gateway.list_indexed_resources(knowledge_base_id)
        if self.queue.knowledge_base_id != knowledge_base_id:
            return []
        ids = [r.resource_id for r in members]
        self.queue.set_indexed_resources(ids)
        return ids

    async def probe_index_status(self, resource_ids: Optional[Iterable[str]] = None) -> set[str]:
        """
        Best-effort check of resources not known to be indexed.

        Returns:
            Ids newly found indexed. Probe failures are logged and skipped.
        """
        if resource_ids is None:
            resource_ids = [n.resource_id for n in self.tree.snapshot()]
        candidates = [
            rid
            for rid in dict.fromkeys(resource_ids)
            if not self.queue.is_resource_indexed(rid) and not self.queue.is_queued(rid)
        ]

        async def _probe(rid: str) -> Optional[str]:
            try:
                return rid if await self._gateway.probe_indexed(rid) else None
            except DrivePickerError as exc:
                logger.warning("Index status probe for %s failed: %s", rid, exc)
                return None

        found: set[str] = set()
        for rid in await asyncio.gather(*(_probe(r) for r in candidates)):
            if rid is not None and not self.queue.is_queued(rid):
                self.queue.add_indexed_resource(rid)
                found.add(rid)
        return found

    # ----------------------------
    # Internals
    # ----------------------------
    async def _run_index_job(self, job: IndexingJob) -> Optional[str]:
        resource = self._resolve_resource(job)
        org_id = self._gateway.organization_id
        if not org_id:
            raise InvalidStateError("Organization id is not known")
        connection_id = job.connection_id or self._connection_id
        if not connection_id:
            raise InvalidStateError("No connection for index job")

        knowledge_base_id = await self._gateway.create_or_extend_index(
            connection_id,
            [resource.resource_id],
            resource.path or resource.name,
            self._config.index_description,
            org_id,
            content_mime_hint=resource.content_mime or DEFAULT_CONTENT_MIME,
        )
        self.tree.annotate(job.resource_id, knowledge_base_id=knowledge_base_id)
        return knowledge_base_id

    async def _run_remove_job(self, job: IndexingJob) -> Optional[str]:
        knowledge_base_id = self.queue.knowledge_base_id
        if not knowledge_base_id:
            raise InvalidStateError("No knowledge base selected")
        resource = self._resolve_resource(job)
        if not resource.path:
            raise NotFoundError(
                "Resource path is unknown",
                details={"resource_id": job.resource_id},
            )

        await self._gateway.delete_indexed_resource(knowledge_base_id, resource.path)
        self.tree.annotate(job.resource_id, knowledge_base_id=None)
        return None

    def _resolve_resource(self, job: IndexingJob) -> Resource:
        node = self.tree.find(job.resource_id)
        if node is not None:
            return node.resource
        if job.resource is not None:
            return job.resource
        raise NotFoundError("Resource not found", details={"resource_id": job.resource_id})

    def _require_connection(self) -> str:
        if self._connection_id is None:
            raise InvalidStateError("No connection opened. Call open_connection() first.")
        return self._connection_id

    def _forget_missing_prefetched(self) -> None:
        self._prefetched = {fid for fid in self._prefetched if self.tree.has(fid)}

    def _save_navigation(self) -> None:
        if self._nav_store is None:
            return
        try:
            self._nav_store.save(self._connection_id, self.tree.breadcrumbs)
        except InvalidStateError as exc:
            logger.warning("Navigation position not saved: %s", exc)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
