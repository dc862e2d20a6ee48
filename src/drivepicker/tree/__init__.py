"""Resource tree exports for drivepicker."""

from __future__ import annotations

from .navigation import NavigationStateStore
from .ordering import SortKey, build_visible_order
from .store import ResourceTree

__all__ = [
    "ResourceTree",
    "SortKey",
    "build_visible_order",
    "NavigationStateStore",
]
