"""Public model exports for drivepicker."""

from __future__ import annotations

from .resource import ROOT_BREADCRUMB, Breadcrumb, Resource, ResourceKind, TreeNode
from .results import JobResult

__all__ = [
    "ResourceKind",
    "Resource",
    "TreeNode",
    "Breadcrumb",
    "ROOT_BREADCRUMB",
    "JobResult",
]
