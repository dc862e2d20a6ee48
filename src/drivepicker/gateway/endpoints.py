"""Endpoint paths of the knowledge-base service."""

from __future__ import annotations

from typing import Optional

CONNECTIONS_PATH: str = "/connections"
KNOWLEDGE_BASES_PATH: str = "/knowledge_bases"

# A folder id of None or "/" lists the top level of a connection.
ROOT_FOLDER_SENTINEL: str = "/"


def connection_children_path(connection_id: str) -> str:
    return f"{CONNECTIONS_PATH}/{connection_id}/resources/children"


def connection_children_params(folder_id: Optional[str]) -> dict[str, str]:
    if folder_id is None or folder_id == ROOT_FOLDER_SENTINEL:
        return {}
    return {"resource_id": folder_id}


def knowledge_base_children_path(knowledge_base_id: str) -> str:
    return f"{KNOWLEDGE_BASES_PATH}/{knowledge_base_id}/resources/children"


def knowledge_base_resources_path(knowledge_base_id: str) -> str:
    return f"{KNOWLEDGE_BASES_PATH}/{knowledge_base_id}/resources"


def index_status_path(resource_id: str) -> str:
    return f"/index/status/{resource_id}"
