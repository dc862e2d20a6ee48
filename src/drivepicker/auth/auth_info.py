"""Authentication information for drivepicker (bearer token only)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from drivepicker.errors import AuthError


@dataclass(slots=True, frozen=True)
class AuthInfo:
    """
    Session credentials obtained by an external login flow.

    The library never logs in by itself: the caller passes an access token
    that is already valid for the knowledge-base service.
    """

    access_token: str = field(repr=False)
    organization_id: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.access_token, str) or not self.access_token.strip():
            raise AuthError("AuthInfo.access_token must be a non-empty string")
        if self.organization_id is not None and not str(self.organization_id).strip():
            raise AuthError("AuthInfo.organization_id must not be blank")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> AuthInfo:
        """Read DRIVEPICKER_ACCESS_TOKEN and DRIVEPICKER_ORG_ID."""
        env = os.environ if environ is None else environ
        token = env.get("DRIVEPICKER_ACCESS_TOKEN", "").strip()
        if not token:
            raise AuthError("Not authenticated: DRIVEPICKER_ACCESS_TOKEN is not set")
        org_id = env.get("DRIVEPICKER_ORG_ID", "").strip() or None
        return cls(access_token=token, organization_id=org_id)

    @property
    def headers(self) -> dict[str, str]:
        """Authorization headers for every request."""
        return {"Authorization": f"Bearer {self.access_token}"}
