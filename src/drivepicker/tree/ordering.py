"""Visible-order materialization for the resource tree."""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional

from drivepicker.models import ResourceKind, TreeNode
from drivepicker.util.time import sort_timestamp


class SortKey(str, Enum):
    """Sibling ordering keys."""

    NAME = "name"
    DATE = "date"


def build_visible_order(
    nodes: Iterable[TreeNode],
    *,
    sort_key: SortKey = SortKey.NAME,
    descending: bool = False,
    kind_filter: Optional[ResourceKind] = None,
    search: Optional[str] = None,
) -> list[TreeNode]:
    """
    Build the rendered row order from a flat node collection.

    Rules:
        - Filter first (kind, case-insensitive path substring). A filtered-out
          directory hides its whole subtree.
        - Group by parent_id and sort each sibling group by sort_key; ties are
          broken by resource_id ascending in both directions.
        - Pre-order walk from the root, descending only into expanded directories.
    """
    term = search.strip().casefold() if search else ""

    groups: dict[Optional[str], list[TreeNode]] = {}
    for node in nodes:
        if kind_filter is not None and node.resource.kind is not kind_filter:
            continue
        if term and term not in node.resource.path.casefold():
            continue
        groups.setdefault(node.parent_id, []).append(node)

    for group in groups.values():
        _sort_group(group, sort_key, descending)

    result: list[TreeNode] = []
    stack: list[TreeNode] = list(reversed(groups.get(None, [])))
    while stack:
        node = stack.pop()
        result.append(node)
        if node.is_directory and node.is_expanded:
            stack.extend(reversed(groups.get(node.resource_id, [])))
    return result


def _sort_group(group: list[TreeNode], sort_key: SortKey, descending: bool) -> None:
    # Two stable passes: the tie-break order survives reverse=True.
    group.sort(key=lambda n: n.resource_id)
    if sort_key is SortKey.DATE:
        group.sort(key=_date_key, reverse=descending)
    else:
        group.sort(key=lambda n: n.resource.path.casefold(), reverse=descending)


def _date_key(node: TreeNode) -> float:
    resource = node.resource
    return sort_timestamp(resource.modified_time or resource.created_time)
