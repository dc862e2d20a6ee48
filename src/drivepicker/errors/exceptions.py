"""Exception hierarchy and HTTP error mapping for drivepicker."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


class DrivePickerError(Exception):
    """
    Base exception for drivepicker.

    Attributes:
        details: Optional structured information (e.g., HTTP status, endpoint).
        cause: Optional original exception that triggered this error.
    """

    def __init__(
        self,
        message: str,
        *,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.details = details or {}
        self.cause = cause


class InvalidStateError(DrivePickerError):
    """Raised when a store is used in an invalid state (e.g., clearing an active queue)."""


class AuthError(DrivePickerError):
    """Raised when no valid session token is available (HTTP 401). Never retried."""


class PermissionError(DrivePickerError):
    """Raised when access to a connection or knowledge base is denied (HTTP 403)."""


class InvalidArgumentError(DrivePickerError):
    """Raised when request arguments are invalid (HTTP 400, bad config values)."""


class NotFoundError(DrivePickerError):
    """Raised when a resource, folder or knowledge base is not found (HTTP 404)."""


class ConflictError(DrivePickerError):
    """Raised when the service reports a conflicting change (HTTP 409)."""


class RateLimitError(DrivePickerError):
    """Raised when rate-limited (HTTP 429)."""


class NetworkError(DrivePickerError):
    """Raised when network/timeout issues prevent the request."""


class ApiError(DrivePickerError):
    """Raised for unclassified service errors (5xx, unknown 4xx, etc.)."""


class MalformedResponseError(DrivePickerError):
    """Raised when a response body cannot be interpreted where a value is required."""


@dataclass(frozen=True)
class HttpErrorInfo:
    """Lightweight HTTP error information for mapping to drivepicker exceptions."""

    status_code: int
    method: str | None = None
    url: str | None = None
    message: str | None = None
    details: dict[str, Any] | None = None


def map_http_error(
    info: HttpErrorInfo,
    *,
    cause: Optional[BaseException] = None,
) -> DrivePickerError:
    """
    Map an HTTP error to a drivepicker exception.

    Policy:
        - 400 -> InvalidArgumentError
        - 401 -> AuthError
        - 403 -> PermissionError
        - 404 -> NotFoundError
        - 409 -> ConflictError
        - 429 -> RateLimitError
        - otherwise (5xx, unknown 4xx) -> ApiError
    """
    details: dict[str, Any] = {
        "status_code": info.status_code,
        "method": info.method,
        "url": info.url,
    }
    if info.details:
        details.update(info.details)

    message = info.message or f"HTTP error {info.status_code}"

    if info.status_code == 400:
        return InvalidArgumentError(message, details=details, cause=cause)
    if info.status_code == 401:
        return AuthError(message, details=details, cause=cause)
    if info.status_code == 403:
        return PermissionError(message, details=details, cause=cause)
    if info.status_code == 404:
        return NotFoundError(message, details=details, cause=cause)
    if info.status_code == 409:
        return ConflictError(message, details=details, cause=cause)
    if info.status_code == 429:
        return RateLimitError(message, details=details, cause=cause)

    return ApiError(message, details=details, cause=cause)
