"""Public auth exports for drivepicker."""

from __future__ import annotations

from .auth_info import AuthInfo
from .http_client import build_http_client

__all__ = ["AuthInfo", "build_http_client"]
