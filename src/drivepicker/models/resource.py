"""Data model for remote resources and their local tree projection."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from drivepicker.util.paths import name_from_path


class ResourceKind(str, Enum):
    """Kind of a remote resource (`inode_type` on the wire)."""

    FILE = "file"
    DIRECTORY = "directory"


@dataclass(slots=True, frozen=True)
class Resource:
    """
    Immutable snapshot of a remote file or directory.

    Notes:
        - resource_id is the only stable identity within a connection.
        - path reflects the position at listing time and may change remotely.
    """

    resource_id: str
    kind: ResourceKind
    path: str

    size: Optional[int] = None
    modified_time: Optional[datetime] = None
    created_time: Optional[datetime] = None
    content_mime: Optional[str] = None
    knowledge_base_id: Optional[str] = None

    @property
    def name(self) -> str:
        return name_from_path(self.path) or self.resource_id

    @property
    def is_directory(self) -> bool:
        return self.kind is ResourceKind.DIRECTORY


@dataclass(slots=True)
class TreeNode:
    """A Resource materialized in the local tree."""

    resource: Resource
    parent_id: Optional[str] = None
    is_expanded: bool = False

    @property
    def resource_id(self) -> str:
        return self.resource.resource_id

    @property
    def is_directory(self) -> bool:
        return self.resource.is_directory


@dataclass(slots=True, frozen=True)
class Breadcrumb:
    """One step of the navigation path. folder_id None is the connection root."""

    folder_id: Optional[str]
    name: str


ROOT_BREADCRUMB = Breadcrumb(folder_id=None, name="Root")
