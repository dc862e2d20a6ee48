import asyncio
import os
import tempfile
import unittest
from typing import Any, Optional, Sequence

from drivepicker import PickerConfig, PickerSession
from drivepicker.errors import ApiError, AuthError, InvalidStateError, NetworkError
from drivepicker.indexing import JobStatus
from drivepicker.models import Resource, ResourceKind


def d(rid: str, path: Optional[str] = None) -> Resource:
    return Resource(resource_id=rid, kind=ResourceKind.DIRECTORY, path=path or rid)


def f(rid: str, path: Optional[str] = None, mime: Optional[str] = None) -> Resource:
    return Resource(resource_id=rid, kind=ResourceKind.FILE, path=path or rid, content_mime=mime)


class FakeGateway:
    """In-memory stand-in for ResourceGateway."""

    def __init__(self, listings: dict[Optional[str], list[Resource]], org_id: str = "org-1") -> None:
        self.listings = listings
        self.organization_id = org_id
        self.list_calls: list[tuple[str, Optional[str]]] = []
        self.created: list[dict[str, Any]] = []
        self.deleted: list[tuple[str, str]] = []
        self.members: list[Resource] = []
        self.indexed_probe: set[str] = set()
        self.list_errors: dict[Optional[str], Exception] = {}
        self.create_error: Optional[Exception] = None
        self.create_gate: Optional[asyncio.Event] = None
        self.create_started = asyncio.Event()
        self.delete_error: Optional[Exception] = None
        self.closed = False

    async def list_children(self, connection_id: str, folder_id: Optional[str] = None) -> list[Resource]:
        self.list_calls.append((connection_id, folder_id))
        await asyncio.sleep(0)
        err = self.list_errors.get(folder_id)
        if err is not None:
            raise err
        return list(self.listings.get(folder_id, []))

    async def list_indexed_resources(self, knowledge_base_id: str) -> list[Resource]:
        return list(self.members)

    async def create_or_extend_index(
        self,
        connection_id: str,
        resource_ids: Sequence[str],
        name: str,
        description: str,
        org_id: str,
        content_mime_hint: Optional[str] = None,
    ) -> str:
        self.create_started.set()
        await asyncio.sleep(0)
        if self.create_gate is not None:
            await self.create_gate.wait()
        if self.create_error is not None:
            raise self.create_error
        self.created.append(
            {
                "connection_id": connection_id,
                "resource_ids": list(resource_ids),
                "name": name,
                "org_id": org_id,
                "content_mime_hint": content_mime_hint,
            }
        )
        return "kb-1"

    async def delete_indexed_resource(self, knowledge_base_id: str, resource_path: str) -> None:
        await asyncio.sleep(0)
        if self.delete_error is not None:
            raise self.delete_error
        self.deleted.append((knowledge_base_id, resource_path))

    async def probe_indexed(self, resource_id: str) -> bool:
        if resource_id == "boom":
            raise NetworkError("probe failed")
        return resource_id in self.indexed_probe

    async def close(self) -> None:
        self.closed = True


def listings() -> dict[Optional[str], list[Resource]]:
    return {
        None: [d("F1"), d("F2"), f("X", mime="text/plain")],
        "F1": [f("G1", "F1/G1")],
        "F2": [],
    }


def visible_ids(session: PickerSession) -> list[str]:
    return [n.resource_id for n in session.visible_rows()]


class TestPickerSessionBrowsing(unittest.IsolatedAsyncioTestCase):
    def make_session(self, **config: Any) -> tuple[PickerSession, FakeGateway]:
        config.setdefault("eager_prefetch", False)
        gw = FakeGateway(listings())
        return PickerSession.from_gateway(gw, config=PickerConfig(**config)), gw  # type: ignore[arg-type]

    async def test_open_connection_loads_root(self) -> None:
        session, gw = self.make_session()
        self.assertTrue(await session.open_connection("conn-1"))
        self.assertEqual(visible_ids(session), ["F1", "F2", "X"])
        self.assertEqual(gw.list_calls, [("conn-1", None)])

    async def test_expand_fetches_once_and_collapse_removes_children(self) -> None:
        session, gw = self.make_session()
        await session.open_connection("conn-1")

        await session.expand_folder("F1")
        self.assertEqual(visible_ids(session), ["F1", "G1", "F2", "X"])

        await session.expand_folder("F1")
        self.assertEqual(visible_ids(session), ["F1", "F2", "X"])
        self.assertFalse(session.tree.has("G1"))

        # Re-expanding within the dedup window is served by the cache.
        await session.expand_folder("F1")
        self.assertEqual(visible_ids(session), ["F1", "G1", "F2", "X"])
        self.assertEqual(gw.list_calls.count(("conn-1", "F1")), 1)

    async def test_expand_failure_is_recorded_per_folder(self) -> None:
        session, gw = self.make_session()
        await session.open_connection("conn-1")
        gw.list_errors["F1"] = ApiError("server broke")

        await session.expand_folder("F1")

        self.assertEqual(session.tree.folder_errors["F1"], "server broke")
        self.assertFalse(session.tree.get("F1").is_expanded)

        del gw.list_errors["F1"]
        await session.expand_folder("F1")
        self.assertNotIn("F1", session.tree.folder_errors)
        self.assertTrue(session.tree.get("F1").is_expanded)

    async def test_concurrent_expand_of_same_folder_is_ignored(self) -> None:
        session, gw = self.make_session()
        await session.open_connection("conn-1")

        await asyncio.gather(session.expand_folder("F1"), session.expand_folder("F1"))

        self.assertTrue(session.tree.get("F1").is_expanded)
        self.assertEqual(gw.list_calls.count(("conn-1", "F1")), 1)

    async def test_eager_prefetch_makes_expand_local(self) -> None:
        session, gw = self.make_session(eager_prefetch=True)
        await session.open_connection("conn-1")
        await session.wait_for_background()

        self.assertEqual(session.prefetched_folders, frozenset({"F1", "F2"}))
        self.assertTrue(session.tree.has("G1"))
        self.assertEqual(visible_ids(session), ["F1", "F2", "X"])

        calls_before = len(gw.list_calls)
        await session.expand_folder("F1")
        self.assertEqual(len(gw.list_calls), calls_before)
        self.assertEqual(visible_ids(session), ["F1", "G1", "F2", "X"])

    async def test_prefetch_skips_files_expanded_and_repeats(self) -> None:
        session, _ = self.make_session()
        await session.open_connection("conn-1")

        self.assertFalse(await session.prefetch_folder("X"))
        self.assertFalse(await session.prefetch_folder("missing"))
        self.assertTrue(await session.prefetch_folder("F1"))
        self.assertFalse(await session.prefetch_folder("F1"))

    async def test_prefetch_failure_is_swallowed(self) -> None:
        session, gw = self.make_session()
        await session.open_connection("conn-1")
        gw.list_errors["F1"] = NetworkError("down")

        with self.assertLogs("drivepicker.session", level="WARNING"):
            self.assertFalse(await session.prefetch_folder("F1"))
        self.assertNotIn("F1", session.prefetched_folders)

    async def test_listing_failure_keeps_previous_tree(self) -> None:
        session, gw = self.make_session()
        await session.open_connection("conn-1")
        gw.list_errors[None] = ApiError("server broke")

        self.assertFalse(await session.refresh(force=True))
        self.assertEqual(session.tree.error, "server broke")
        self.assertEqual(visible_ids(session), ["F1", "F2", "X"])

    async def test_auth_error_propagates(self) -> None:
        session, gw = self.make_session()
        gw.list_errors[None] = AuthError("expired")
        with self.assertRaises(AuthError):
            await session.open_connection("conn-1")

    async def test_load_folder_updates_breadcrumbs(self) -> None:
        session, gw = self.make_session()
        await session.open_connection("conn-1")

        await session.load_folder("F1", "F1")
        self.assertEqual([c.folder_id for c in session.tree.breadcrumbs], [None, "F1"])
        self.assertEqual(visible_ids(session), ["G1"])

        await session.load_folder(None)
        self.assertEqual([c.folder_id for c in session.tree.breadcrumbs], [None])
        self.assertEqual(visible_ids(session), ["F1", "F2", "X"])

    async def test_stale_listing_is_discarded(self) -> None:
        session, gw = self.make_session()
        await session.open_connection("conn-1")

        slow = asyncio.ensure_future(session.refresh(force=True))
        await asyncio.sleep(0)
        session.tree.navigate_to_folder("F1", "F1")
        self.assertFalse(await slow)
        self.assertEqual(len(session.tree), 0)

    async def test_methods_require_connection(self) -> None:
        session, _ = self.make_session()
        with self.assertRaises(InvalidStateError):
            await session.refresh()

    async def test_navigation_is_restored_per_connection(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            state_file = os.path.join(tmp, "nav.json")
            session, _ = self.make_session(state_file=state_file)
            await session.open_connection("conn-1")
            await session.load_folder("F1", "F1")

            again, _ = self.make_session(state_file=state_file)
            await again.open_connection("conn-1")
            self.assertEqual(again.tree.current_folder_id, "F1")
            self.assertEqual(visible_ids(again), ["G1"])

            other, _ = self.make_session(state_file=state_file)
            await other.open_connection("conn-2")
            self.assertIsNone(other.tree.current_folder_id)


class TestPickerSessionIndexing(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.gw = FakeGateway(listings())
        self.session = PickerSession.from_gateway(
            self.gw,  # type: ignore[arg-type]
            config=PickerConfig(eager_prefetch=False),
        )
        await self.session.open_connection("conn-1")

    async def test_index_then_remove(self) -> None:
        self.assertTrue(self.session.queue_index("X"))
        self.assertEqual(self.session.status_of("X"), JobStatus.QUEUED)

        results = await self.session.drain()

        self.assertEqual([r.status for r in results], ["done"])
        self.assertEqual(self.session.status_of("X"), JobStatus.DONE)
        self.assertIn("X", self.session.queue.indexed_resource_ids)
        self.assertEqual(self.session.queue.knowledge_base_id, "kb-1")
        self.assertEqual(self.session.tree.get("X").resource.knowledge_base_id, "kb-1")
        self.assertEqual(self.gw.created[0]["content_mime_hint"], "text/plain")
        self.assertEqual(self.gw.created[0]["org_id"], "org-1")

        self.assertTrue(self.session.queue_remove("X"))
        await self.session.drain()

        self.assertEqual(self.gw.deleted, [("kb-1", "X")])
        self.assertEqual(self.session.status_of("X"), JobStatus.IDLE)
        self.assertNotIn("X", self.session.queue.indexed_resource_ids)
        self.assertIsNone(self.session.tree.get("X").resource.knowledge_base_id)

    async def test_default_mime_hint(self) -> None:
        self.session.queue_index("F1")
        await self.session.drain()
        self.assertEqual(self.gw.created[0]["content_mime_hint"], "application/octet-stream")

    async def test_queue_remove_rejected_while_indexing_queued(self) -> None:
        self.session.queue_index("X")
        self.assertFalse(self.session.queue_remove("X"))
        self.assertEqual(self.session.queue.remove_queue, [])

    async def test_failed_index_sets_error(self) -> None:
        self.gw.create_error = ApiError("nope")
        self.session.queue_index("X")
        await self.session.drain()
        self.assertEqual(self.session.status_of("X"), JobStatus.ERROR)
        self.assertNotIn("X", self.session.queue.indexed_resource_ids)

    async def test_failed_remove_keeps_membership(self) -> None:
        await self.session.load_knowledge_base("kb-1")
        self.session.queue.add_indexed_resource("X")
        self.gw.delete_error = NetworkError("down")

        self.session.queue_remove("X")
        await self.session.drain()

        self.assertEqual(self.session.status_of("X"), JobStatus.ERROR)
        self.assertIn("X", self.session.queue.indexed_resource_ids)

    async def test_remove_without_knowledge_base_fails(self) -> None:
        self.session.queue_remove("X")
        await self.session.drain()
        self.assertEqual(self.session.status_of("X"), JobStatus.ERROR)
        self.assertEqual(self.session.queue.history[-1].error_type, "InvalidStateError")

    async def test_index_job_survives_tree_reset(self) -> None:
        await self.session.expand_folder("F1")
        self.session.queue_index("G1")
        await self.session.load_folder("F2", "F2")
        await self.session.drain()
        self.assertEqual(self.session.status_of("G1"), JobStatus.DONE)
        self.assertEqual(self.gw.created[0]["name"], "F1/G1")

    async def test_workers_process_in_background(self) -> None:
        async with self.session:
            self.session.queue_index("X")
            self.session.queue_index("F1")
            for _ in range(100):
                if not self.session.queue.index_queue:
                    break
                await asyncio.sleep(0)
            self.assertEqual(self.session.queue.index_queue, [])
            self.assertEqual([c["resource_ids"] for c in self.gw.created], [["X"], ["F1"]])
        self.assertTrue(self.gw.closed)

    async def test_stop_workers_waits_for_running_job(self) -> None:
        self.gw.create_gate = asyncio.Event()
        self.session.start_workers()
        self.session.queue_index("X")
        await asyncio.wait_for(self.gw.create_started.wait(), timeout=1)
        self.assertEqual(self.session.status_of("X"), JobStatus.INDEXING)

        stopping = asyncio.ensure_future(self.session.stop_workers())
        await asyncio.sleep(0)
        self.assertFalse(stopping.done())

        self.gw.create_gate.set()
        await asyncio.wait_for(stopping, timeout=1)

        self.assertEqual(self.session.status_of("X"), JobStatus.DONE)
        self.assertEqual([c["resource_ids"] for c in self.gw.created], [["X"]])

    async def test_load_knowledge_base_marks_members(self) -> None:
        self.gw.members = [f("X"), f("elsewhere")]
        ids = await self.session.load_knowledge_base("kb-7")
        self.assertEqual(ids, ["X", "elsewhere"])
        self.assertEqual(self.session.queue.knowledge_base_id, "kb-7")
        self.assertEqual(self.session.status_of("X"), JobStatus.DONE)

    async def test_probe_index_status(self) -> None:
        self.gw.indexed_probe = {"X"}
        with self.assertLogs("drivepicker.session", level="WARNING"):
            found = await self.session.probe_index_status(["X", "F1", "boom"])
        self.assertEqual(found, {"X"})
        self.assertEqual(self.session.status_of("X"), JobStatus.DONE)
        self.assertEqual(self.session.status_of("F1"), JobStatus.IDLE)

    async def test_cancel_pending_job(self) -> None:
        self.session.queue_index("X")
        self.assertTrue(self.session.cancel("X"))
        self.assertEqual(await self.session.drain(), [])
        self.assertEqual(self.gw.created, [])


if __name__ == "__main__":
    unittest.main()
