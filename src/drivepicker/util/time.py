from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def parse_timestamp(value: object) -> Optional[datetime]:
    """
    Parse an ISO-8601/RFC3339 timestamp from a listing payload.

    Listing payloads are not trusted: anything that is not a parseable string
    yields None instead of raising. Naive values are taken as UTC.

    Accepts strings like:
      - 2025-01-01T12:34:56Z
      - 2025-01-01T12:34:56.123456+09:00
      - 2025-01-01 12:34:56
    """
    if not isinstance(value, str) or not value.strip():
        return None

    s = value.strip()
    # fromisoformat only learned 'Z' in 3.11.
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def sort_timestamp(dt: Optional[datetime]) -> float:
    """Chronological sort key; unknown times sort as the epoch, naive times as UTC."""
    if dt is None:
        return 0.0
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return (dt - _EPOCH).total_seconds()
