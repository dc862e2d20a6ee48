"""Persistence of the navigation position (breadcrumbs only)."""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Optional

from drivepicker.errors import InvalidStateError
from drivepicker.models import Breadcrumb

logger = logging.getLogger(__name__)

_STATE_VERSION = 1


class NavigationStateStore:
    """
    Save/load the breadcrumb path as JSON, one entry per connection.

    Tree contents are never written; after a restore the caller reloads the
    current folder from the gateway.
    """

    def __init__(self, path: str) -> None:
        if not path:
            raise InvalidStateError("Navigation state path must be a non-empty string")
        self._path = path

    @property
    def path(self) -> str:
        return self._path

    def save(self, connection_id: Optional[str], breadcrumbs: list[Breadcrumb]) -> None:
        """Store the position for connection_id; other connections' positions are kept."""
        state_dir = os.path.dirname(self._path)
        if state_dir:
            os.makedirs(state_dir, exist_ok=True)

        connections = self._read_connections() or {}
        connections[_connection_key(connection_id)] = {
            "current_folder_id": breadcrumbs[-1].folder_id if breadcrumbs else None,
            "breadcrumbs": [{"id": c.folder_id, "name": c.name} for c in breadcrumbs],
        }
        payload = {"version": _STATE_VERSION, "connections": connections}
        try:
            with open(self._path, "w", encoding="utf-8") as f:
                json.dump(payload, f)
        except OSError as exc:
            raise InvalidStateError(
                "Failed to save navigation state",
                details={"path": self._path},
                cause=exc,
            ) from exc

    def load(self, connection_id: Optional[str]) -> Optional[list[Breadcrumb]]:
        """Return the breadcrumbs saved for connection_id, or None if absent or unreadable."""
        connections = self._read_connections()
        if connections is None:
            return None

        entry = connections.get(_connection_key(connection_id))
        if not isinstance(entry, dict):
            return None

        raw = entry.get("breadcrumbs")
        if not isinstance(raw, list):
            logger.warning("Ignoring navigation state without breadcrumbs: %s", self._path)
            return None

        crumbs: list[Breadcrumb] = []
        for item in raw:
            if not isinstance(item, dict):
                return None
            folder_id = item.get("id")
            name = item.get("name")
            if folder_id is not None and not isinstance(folder_id, str):
                return None
            crumbs.append(Breadcrumb(folder_id=folder_id, name=name if isinstance(name, str) else ""))
        return crumbs or None

    def clear(self) -> None:
        try:
            os.remove(self._path)
        except FileNotFoundError:
            pass

    def _read_connections(self) -> Optional[dict[str, Any]]:
        if not os.path.exists(self._path):
            return None

        try:
            with open(self._path, encoding="utf-8") as f:
                payload = json.load(f)
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable navigation state %s: %s", self._path, exc)
            return None

        connections = payload.get("connections") if isinstance(payload, dict) else None
        if not isinstance(connections, dict):
            logger.warning("Ignoring malformed navigation state: %s", self._path)
            return None
        return connections


def _connection_key(connection_id: Optional[str]) -> str:
    return connection_id or ""
