from __future__ import annotations


def name_from_path(path: str) -> str:
    """Return the last segment of a slash-separated resource path."""
    if not path:
        return ""
    return path.rstrip("/").rsplit("/", 1)[-1]
