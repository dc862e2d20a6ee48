"""Public error exports for drivepicker."""

from __future__ import annotations

from .exceptions import (
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

__all__ = [
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
