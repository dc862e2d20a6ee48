"""drivepicker public API."""

from __future__ import annotations

from drivepicker.auth import AuthInfo, build_http_client
from drivepicker.config import PickerConfig
from drivepicker.errors import (
    ApiError,
    AuthError,
    ConflictError,
    DrivePickerError,
    HttpErrorInfo,
    InvalidArgumentError,
    InvalidStateError,
    MalformedResponseError,
    NetworkError,
    NotFoundError,
    PermissionError,
    RateLimitError,
    map_http_error,
)
from drivepicker.gateway import ListingCache, ResourceGateway
from drivepicker.indexing import IndexingJob, IndexingQueue, JobKind, JobStatus, QueueWorker
from drivepicker.models import Breadcrumb, JobResult, Resource, ResourceKind, TreeNode
from drivepicker.session import PickerSession
from drivepicker.tree import NavigationStateStore, ResourceTree, SortKey

__all__ = [
    # High-level
    "PickerSession",
    "PickerConfig",
    # Auth
    "AuthInfo",
    "build_http_client",
    # Remote
    "ResourceGateway",
    "ListingCache",
    # Tree
    "ResourceTree",
    "SortKey",
    "NavigationStateStore",
    # Indexing
    "IndexingQueue",
    "IndexingJob",
    "QueueWorker",
    "JobKind",
    "JobStatus",
    # Models
    "Resource",
    "ResourceKind",
    "TreeNode",
    "Breadcrumb",
    "JobResult",
    # Errors
    "DrivePickerError",
    "InvalidStateError",
    "AuthError",
    "PermissionError",
    "InvalidArgumentError",
    "NotFoundError",
    "ConflictError",
    "RateLimitError",
    "NetworkError",
    "ApiError",
    "MalformedResponseError",
    "HttpErrorInfo",
    "map_http_error",
]
