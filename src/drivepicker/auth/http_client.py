"""HTTP client construction for drivepicker."""

from __future__ import annotations

from typing import Optional

import httpx

from drivepicker.config import PickerConfig

from .auth_info import AuthInfo


def build_http_client(
    auth_info: AuthInfo,
    config: PickerConfig,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """
    Build the authenticated async client used by the gateway.

    Args:
        auth_info: Session credentials.
        config: Base URL and timeout.
        transport: Optional transport override (tests use httpx.MockTransport).
    """
    headers = {
        **auth_info.headers,
        "Accept": "application/json",
    }
    return httpx.AsyncClient(
        base_url=config.api_base_url.rstrip("/"),
        headers=headers,
        timeout=httpx.Timeout(config.timeout_sec),
        follow_redirects=True,
        transport=transport,
    )
