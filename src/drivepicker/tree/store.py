"""ResourceTree: lazily materialized projection of a connection's resources."""

from __future__ import annotations

import dataclasses
import logging
from collections import deque
from typing import Any, Iterable, Optional, Sequence

from drivepicker.errors import NotFoundError
from drivepicker.models import ROOT_BREADCRUMB, Breadcrumb, Resource, ResourceKind, TreeNode

from .ordering import SortKey, build_visible_order

logger = logging.getLogger(__name__)


class ResourceTree:
    """
    In-memory tree of the resources listed so far (no external I/O).

    Indexes:
        - nodes by resource_id (one node per id across the whole tree)
        - children by parent id (None key = the current folder's listing)
        - backing sequence (insertion order; children follow their parent)

    Expanding is a flag flip only. Fetching children is the caller's job, so
    "known children" and "rendered children" stay separate.
    """

    def __init__(self) -> None:
        self._nodes: dict[str, TreeNode] = {}
        self._children: dict[Optional[str], list[str]] = {}
        self._order: list[str] = []

        self.current_folder_id: Optional[str] = None
        self.breadcrumbs: list[Breadcrumb] = [ROOT_BREADCRUMB]
        self.error: Optional[str] = None
        self.folder_errors: dict[str, str] = {}

    # ----------------------------
    # Read APIs
    # ----------------------------
    def __len__(self) -> int:
        return len(self._nodes)

    def has(self, resource_id: str) -> bool:
        return resource_id in self._nodes

    def get(self, resource_id: str) -> TreeNode:
        node = self._nodes.get(resource_id)
        if node is None:
            raise NotFoundError(
                f"Resource is not in the tree: {resource_id}",
                details={"resource_id": resource_id},
            )
        return node

    def find(self, resource_id: str) -> Optional[TreeNode]:
        return self._nodes.get(resource_id)

    def children_of(self, folder_id: Optional[str]) -> list[TreeNode]:
        return [self._nodes[cid] for cid in self._children.get(folder_id, [])]

    def has_children(self, folder_id: str) -> bool:
        return bool(self._children.get(folder_id))

    def descendant_ids(self, folder_id: str) -> list[str]:
        """All materialized descendants of folder_id (BFS order)."""
        result: list[str] = []
        q: deque[str] = deque(self._children.get(folder_id, []))
        while q:
            cur = q.popleft()
            result.append(cur)
            q.extend(self._children.get(cur, []))
        return result

    def depth_of(self, resource_id: str) -> int:
        """Number of ancestors of a node (0 for the current folder's listing)."""
        depth = 0
        node = self.get(resource_id)
        while node.parent_id is not None:
            parent = self._nodes.get(node.parent_id)
            if parent is None:
                break
            depth += 1
            node = parent
        return depth

    def snapshot(self) -> list[TreeNode]:
        """Copies of all nodes in backing order; safe to hand to readers."""
        return [dataclasses.replace(self._nodes[rid]) for rid in self._order]

    def visible(
        self,
        *,
        sort_key: SortKey = SortKey.NAME,
        descending: bool = False,
        kind_filter: Optional[ResourceKind] = None,
        search: Optional[str] = None,
    ) -> list[TreeNode]:
        """Rows to render, recomputed from scratch on every call."""
        return build_visible_order(
            self.snapshot(),
            sort_key=sort_key,
            descending=descending,
            kind_filter=kind_filter,
            search=search,
        )

    # ----------------------------
    # Navigation
    # ----------------------------
    def navigate_to_folder(self, folder_id: Optional[str], name: str) -> None:
        """
        Make folder_id the active folder.

        Breadcrumbs:
            - None resets to [Root].
            - A folder already on the path truncates the path to it.
            - Anything else is appended.
        The previous listing is dropped pending a refresh.
        """
        if folder_id is None:
            crumbs = [ROOT_BREADCRUMB]
        else:
            index = next(
                (i for i, crumb in enumerate(self.breadcrumbs) if crumb.folder_id == folder_id),
                -1,
            )
            if index != -1:
                crumbs = self.breadcrumbs[: index + 1]
            else:
                crumbs = [*self.breadcrumbs, Breadcrumb(folder_id=folder_id, name=name)]

        self.current_folder_id = folder_id
        self.breadcrumbs = crumbs
        self._clear_nodes()
        self.error = None
        self.folder_errors.clear()

    def restore_navigation(self, breadcrumbs: Sequence[Breadcrumb]) -> None:
        """Restore a persisted navigation position (tree contents are not restored)."""
        crumbs = list(breadcrumbs)
        if not crumbs or crumbs[0].folder_id is not None:
            crumbs = [ROOT_BREADCRUMB, *crumbs]
        self.breadcrumbs = crumbs
        self.current_folder_id = crumbs[-1].folder_id
        self._clear_nodes()

    def reset(self) -> None:
        """Full reset (connection switch)."""
        self.current_folder_id = None
        self.breadcrumbs = [ROOT_BREADCRUMB]
        self._clear_nodes()
        self.error = None
        self.folder_errors.clear()

    # ----------------------------
    # Mutations
    # ----------------------------
    def set_resources(self, resources: Iterable[Resource]) -> None:
        """
        Replace the current folder's direct listing.

        Listed nodes come back collapsed. A listed directory that was already
        present keeps its materialized descendants; previously listed nodes
        missing from the new listing are dropped with their subtrees.
        """
        new_root_ids: list[str] = []
        keep: set[str] = set()
        for resource in resources:
            rid = resource.resource_id
            if rid in keep:
                continue
            keep.add(rid)

            node = self._nodes.get(rid)
            if node is None:
                node = TreeNode(resource=resource)
                self._nodes[rid] = node
            else:
                if node.parent_id is not None:
                    self._detach(rid)
                node.resource = resource
                node.parent_id = None
            node.is_expanded = False
            new_root_ids.append(rid)

        for rid in list(self._children.get(None, [])):
            if rid not in keep:
                self._remove_subtree(rid, include_self=True)

        self._children[None] = new_root_ids
        rest = [rid for rid in self._order if rid not in keep and rid in self._nodes]
        self._order = new_root_ids + rest
        self.error = None

    def toggle_folder_expanded(self, folder_id: str) -> None:
        """
        Flip is_expanded of a directory.

        Collapsing removes every materialized descendant. Unknown ids and files
        are ignored.
        """
        node = self._nodes.get(folder_id)
        if node is None or not node.is_directory:
            return

        if node.is_expanded:
            removed = self._remove_subtree(folder_id, include_self=False)
            logger.debug("Collapsed %s, dropped %d descendants", folder_id, removed)
        node.is_expanded = not node.is_expanded

    def add_children_to_folder(self, folder_id: str, children: Iterable[Resource]) -> list[str]:
        """
        Merge a listing under folder_id without touching is_expanded.

        Returns:
            Ids that were inserted (empty when the parent is unknown or a file).
        """
        return self._merge_children(folder_id, children)

    def add_children_and_expand(self, folder_id: str, children: Iterable[Resource]) -> list[str]:
        """Merge a listing under folder_id, then expand it."""
        added = self._merge_children(folder_id, children)
        node = self._nodes.get(folder_id)
        if node is not None and node.is_directory:
            node.is_expanded = True
        return added

    def annotate(self, resource_id: str, **changes: Any) -> bool:
        """Replace a node's Resource snapshot with updated fields (e.g. knowledge_base_id)."""
        node = self._nodes.get(resource_id)
        if node is None:
            return False
        node.resource = dataclasses.replace(node.resource, **changes)
        return True

    def set_error(self, message: Optional[str]) -> None:
        self.error = message

    def set_folder_error(self, folder_id: str, message: str) -> None:
        self.folder_errors[folder_id] = message

    def clear_folder_error(self, folder_id: str) -> None:
        self.folder_errors.pop(folder_id, None)

    # ----------------------------
    # Internal index maintenance
    # ----------------------------
    def _merge_children(self, folder_id: str, children: Iterable[Resource]) -> list[str]:
        parent = self._nodes.get(folder_id)
        if parent is None or not parent.is_directory:
            return []

        siblings = self._children.setdefault(folder_id, [])
        present = set(siblings)
        added: list[str] = []

        for child in children:
            cid = child.resource_id
            if cid in present:
                continue

            node = self._nodes.get(cid)
            if node is None:
                node = TreeNode(resource=child, parent_id=folder_id)
                self._nodes[cid] = node
            else:
                # Already materialized elsewhere: move it here with its subtree.
                if self._is_ancestor_or_self(cid, folder_id):
                    logger.warning(
                        "Skipping %s under %s: it is an ancestor of the folder", cid, folder_id
                    )
                    continue
                self._detach(cid)
                self._order.remove(cid)
                node.resource = child
                node.parent_id = folder_id

            siblings.append(cid)
            present.add(cid)
            added.append(cid)

        if added:
            at = self._order.index(folder_id) + 1
            self._order[at:at] = added
        return added

    def _is_ancestor_or_self(self, candidate_id: str, node_id: str) -> bool:
        cur: Optional[str] = node_id
        while cur is not None:
            if cur == candidate_id:
                return True
            node = self._nodes.get(cur)
            cur = node.parent_id if node is not None else None
        return False

    def _detach(self, resource_id: str) -> None:
        node = self._nodes[resource_id]
        siblings = self._children.get(node.parent_id)
        if siblings and resource_id in siblings:
            siblings.remove(resource_id)

    def _remove_subtree(self, resource_id: str, *, include_self: bool) -> int:
        doomed = self.descendant_ids(resource_id)
        if include_self:
            self._detach(resource_id)
            doomed.append(resource_id)
        else:
            self._children.pop(resource_id, None)

        if not doomed:
            return 0

        gone = set(doomed)
        for rid in doomed:
            self._nodes.pop(rid, None)
            self._children.pop(rid, None)
        self._order = [rid for rid in self._order if rid not in gone]
        return len(doomed)

    def _clear_nodes(self) -> None:
        self._nodes.clear()
        self._children.clear()
        self._order.clear()
