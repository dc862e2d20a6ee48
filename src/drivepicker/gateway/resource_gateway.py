"""Knowledge-base service gateway (async, pre-authenticated)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

import httpx

from drivepicker.auth import AuthInfo, build_http_client
from drivepicker.config import PickerConfig
from drivepicker.errors import (
    HttpErrorInfo,
    InvalidArgumentError,
    MalformedResponseError,
    NetworkError,
    NotFoundError,
    map_http_error,
)
from drivepicker.models import Resource, ResourceKind
from drivepicker.util.time import parse_timestamp

from .endpoints import (
    CONNECTIONS_PATH,
    KNOWLEDGE_BASES_PATH,
    connection_children_params,
    connection_children_path,
    index_status_path,
    knowledge_base_children_path,
    knowledge_base_resources_path,
)

logger = logging.getLogger(__name__)

_LIST_KEYS: tuple[str, ...] = ("data", "items", "resources")


@dataclass(slots=True, frozen=True)
class Connection:
    """A configured link to a remote storage provider."""

    connection_id: str
    name: str


@dataclass(slots=True, frozen=True)
class KnowledgeBase:
    """A knowledge base visible to the current user."""

    knowledge_base_id: str
    name: str
    connection_id: Optional[str] = None
    connection_source_ids: tuple[str, ...] = field(default_factory=tuple)


class ResourceGateway:
    """
    Request/response access to the knowledge-base service.

    Notes:
        - The underlying httpx client is NOT exposed.
        - No request is retried here; retry is an explicit caller decision.
        - Listings are forgiving (missing folder or malformed payload -> []),
          mutations are strict.
    """

    def __init__(
        self,
        auth_info: AuthInfo,
        config: Optional[PickerConfig] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config or PickerConfig()
        self._organization_id = auth_info.organization_id
        self._client = build_http_client(auth_info, self._config, transport=transport)

    @classmethod
    def from_client(
        cls,
        client: httpx.AsyncClient,
        *,
        config: Optional[PickerConfig] = None,
        organization_id: Optional[str] = None,
    ) -> "ResourceGateway":
        """Create gateway from a pre-built client (useful for tests)."""
        obj = cls.__new__(cls)
        obj._config = config or PickerConfig()
        obj._organization_id = organization_id
        obj._client = client
        return obj

    @property
    def organization_id(self) -> Optional[str]:
        return self._organization_id

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ResourceGateway":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # ----------------------------
    # Listings
    # ----------------------------
    async def list_children(
        self,
        connection_id: str,
        folder_id: Optional[str] = None,
    ) -> list[Resource]:
        """List the direct children of folder_id (None lists the top level)."""
        if not connection_id:
            raise InvalidArgumentError("connection_id must be a non-empty string")

        try:
            payload = await self._request(
                "GET",
                connection_children_path(connection_id),
                params=connection_children_params(folder_id),
            )
        except NotFoundError:
            logger.info(
                "Folder %s not found in connection %s; treating as empty",
                folder_id,
                connection_id,
            )
            return []
        except MalformedResponseError as exc:
            logger.warning("Malformed listing for folder %s: %s", folder_id, exc)
            return []

        return _payload_to_resources(payload)

    async def list_indexed_resources(self, knowledge_base_id: str) -> list[Resource]:
        """List the resources currently indexed in a knowledge base."""
        if not knowledge_base_id:
            raise InvalidArgumentError("knowledge_base_id must be a non-empty string")

        try:
            payload = await self._request(
                "GET",
                knowledge_base_children_path(knowledge_base_id),
                params={"resource_path": "/"},
            )
        except NotFoundError:
            logger.info("Knowledge base %s not found; treating as empty", knowledge_base_id)
            return []
        except MalformedResponseError as exc:
            logger.warning("Malformed member listing for %s: %s", knowledge_base_id, exc)
            return []

        return _payload_to_resources(payload)

    async def list_connections(
        self,
        *,
        provider: str = "gdrive",
        limit: int = 5,
    ) -> list[Connection]:
        payload = await self._request(
            "GET",
            CONNECTIONS_PATH,
            params={"connection_provider": provider, "limit": str(limit)},
        )
        connections: list[Connection] = []
        for item in _payload_items(payload):
            connection_id = item.get("connection_id")
            if not isinstance(connection_id, str) or not connection_id:
                continue
            name = item.get("name")
            connections.append(
                Connection(
                    connection_id=connection_id,
                    name=name if isinstance(name, str) else connection_id,
                )
            )
        return connections

    async def list_knowledge_bases(self) -> list[KnowledgeBase]:
        payload = await self._request("GET", KNOWLEDGE_BASES_PATH)
        bases: list[KnowledgeBase] = []
        for item in _payload_items(payload):
            kb_id = item.get("knowledge_base_id")
            if not isinstance(kb_id, str) or not kb_id:
                continue
            name = item.get("name")
            connection_id = item.get("connection_id")
            source_ids = item.get("connection_source_ids") or []
            bases.append(
                KnowledgeBase(
                    knowledge_base_id=kb_id,
                    name=name if isinstance(name, str) else "",
                    connection_id=connection_id if isinstance(connection_id, str) else None,
                    connection_source_ids=tuple(
                        s for s in source_ids if isinstance(s, str)
                    ) if isinstance(source_ids, list) else (),
                )
            )
        return bases

    # ----------------------------
    # Index mutations
    # ----------------------------
    async def create_or_extend_index(
        self,
        connection_id: str,
        resource_ids: Sequence[str],
        name: str,
        description: str,
        org_id: str,
        content_mime_hint: Optional[str] = None,
    ) -> str:
        """
        Create (or extend) an index from the given resources.

        Returns:
            The knowledge_base_id reported by the service.

        Raises:
            MalformedResponseError: if the response carries no knowledge_base_id.
        """
        if not resource_ids:
            raise InvalidArgumentError("resource_ids must not be empty")
        if not org_id:
            raise InvalidArgumentError("org_id must be a non-empty string")

        body: dict[str, Any] = {
            "connection_id": connection_id,
            "connection_source_ids": list(resource_ids),
            "name": name,
            "description": description,
            "org_id": org_id,
            "indexing_params": self._config.indexing_params,
        }
        if content_mime_hint:
            body["content_mime_hint"] = content_mime_hint

        payload = await self._request("POST", KNOWLEDGE_BASES_PATH, json_body=body)
        kb_id = payload.get("knowledge_base_id") if isinstance(payload, dict) else None
        if not isinstance(kb_id, str) or not kb_id:
            raise MalformedResponseError(
                "Index creation response has no knowledge_base_id",
                details={"connection_id": connection_id},
            )
        return kb_id

    async def delete_indexed_resource(self, knowledge_base_id: str, resource_path: str) -> None:
        """Delete a resource (keyed by its current path) from a knowledge base."""
        if not knowledge_base_id:
            raise InvalidArgumentError("knowledge_base_id must be a non-empty string")
        if not resource_path:
            raise InvalidArgumentError("resource_path must be a non-empty string")

        await self._request(
            "DELETE",
            knowledge_base_resources_path(knowledge_base_id),
            params={"resource_path": resource_path},
        )

    async def probe_indexed(self, resource_id: str) -> bool:
        """Best-effort membership check; an unreadable answer counts as False."""
        try:
            payload = await self._request("GET", index_status_path(resource_id))
        except MalformedResponseError:
            return False
        if isinstance(payload, dict):
            return payload.get("isIndexed") is True
        return False

    # ----------------------------
    # Internals
    # ----------------------------
    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, str]] = None,
        json_body: Optional[dict[str, Any]] = None,
    ) -> Any:
        try:
            response = await self._client.request(method, path, params=params, json=json_body)
        except httpx.TimeoutException as exc:
            raise NetworkError(
                "Request timed out",
                details={"method": method, "path": path},
                cause=exc,
            ) from exc
        except httpx.TransportError as exc:
            raise NetworkError(
                "Network error",
                details={"method": method, "path": path},
                cause=exc,
            ) from exc

        if response.is_error:
            raise map_http_error(_response_to_info(response))

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise MalformedResponseError(
                "Response body is not valid JSON",
                details={"method": method, "path": path},
                cause=exc,
            ) from exc


def _payload_items(payload: Any) -> list[dict[str, Any]]:
    items: Any = payload
    if isinstance(payload, dict):
        items = None
        for key in _LIST_KEYS:
            if isinstance(payload.get(key), list):
                items = payload[key]
                break
    if not isinstance(items, list):
        if payload is not None:
            logger.warning("Unexpected listing payload of type %s", type(payload).__name__)
        return []
    return [item for item in items if isinstance(item, dict)]


def _payload_to_resources(payload: Any) -> list[Resource]:
    resources: list[Resource] = []
    for item in _payload_items(payload):
        resource = _resource_dict_to_resource(item)
        if resource is not None:
            resources.append(resource)
    return resources


def _resource_dict_to_resource(data: dict[str, Any]) -> Optional[Resource]:
    resource_id = data.get("resource_id")
    if not isinstance(resource_id, str) or not resource_id:
        return None

    kind = ResourceKind.DIRECTORY if data.get("inode_type") == "directory" else ResourceKind.FILE

    inode_path = data.get("inode_path")
    path = inode_path.get("path") if isinstance(inode_path, dict) else None
    if not isinstance(path, str):
        path = ""

    metadata = data.get("dataloader_metadata")
    if not isinstance(metadata, dict):
        metadata = {}

    modified_time = (
        parse_timestamp(data.get("modified_time"))
        or parse_timestamp(data.get("modified_at"))
        or parse_timestamp(metadata.get("last_modified_at"))
    )
    created_time = parse_timestamp(data.get("created_at")) or parse_timestamp(
        metadata.get("created_at")
    )

    size = data.get("size")
    if isinstance(size, bool) or not isinstance(size, int):
        size = None

    content_mime = metadata.get("content_mime") or data.get("mime_type")
    knowledge_base_id = data.get("knowledge_base_id")

    return Resource(
        resource_id=resource_id,
        kind=kind,
        path=path,
        size=size,
        modified_time=modified_time,
        created_time=created_time,
        content_mime=content_mime if isinstance(content_mime, str) else None,
        knowledge_base_id=knowledge_base_id if isinstance(knowledge_base_id, str) else None,
    )


def _response_to_info(response: httpx.Response) -> HttpErrorInfo:
    message = None
    details: dict[str, Any] = {}

    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        for key in ("detail", "message", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                message = value
                break

    if response.reason_phrase:
        details["reason"] = response.reason_phrase

    return HttpErrorInfo(
        status_code=response.status_code,
        method=response.request.method,
        url=str(response.request.url),
        message=message,
        details=details or None,
    )
