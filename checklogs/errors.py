"""
Error types for the CheckLogs SDK.

Every failure surfaced by the SDK is a CheckLogsError. The delivery layer
uses classify_failure() to decide whether a failed send may be retried.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

import httpx

CONNECTION_ERRORS = (httpx.ConnectError, httpx.RemoteProtocolError, httpx.ReadError)


class CheckLogsError(Exception):
    """Base error for all SDK failures."""

    def __init__(self, message: str, code: str | None = None, details: Any = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details
        self.timestamp = datetime.now(UTC).isoformat()

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": type(self).__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details,
            "timestamp": self.timestamp,
        }


class ValidationError(CheckLogsError):
    """Raised when a log record or client argument is malformed."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message, "VALIDATION_ERROR")
        self.field = field

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "field": self.field}


class ApiError(CheckLogsError):
    """Raised when the CheckLogs API answers with an error status."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
        response: Any = None,
    ):
        super().__init__(message, error_code)
        self.status_code = status_code
        self.response = response

    def is_auth_error(self) -> bool:
        return self.status_code == 401 or self.code == "INVALID_API_KEY"

    def is_rate_limit_error(self) -> bool:
        return self.status_code == 429 or self.code == "RATE_LIMIT_EXCEEDED"

    def is_server_error(self) -> bool:
        return self.status_code is not None and 500 <= self.status_code < 600

    def is_client_error(self) -> bool:
        return self.status_code is not None and 400 <= self.status_code < 500

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "status_code": self.status_code, "response": self.response}


class NetworkError(CheckLogsError):
    """Raised when the request never produced an HTTP response."""

    def __init__(self, message: str, original_error: BaseException | None = None):
        super().__init__(message, "NETWORK_ERROR")
        self.original_error = original_error

    def is_timeout_error(self) -> bool:
        if self.original_error is None:
            return False
        return isinstance(self.original_error, httpx.TimeoutException) or "timeout" in str(
            self.original_error
        ).lower()

    def is_connection_error(self) -> bool:
        return isinstance(self.original_error, CONNECTION_ERRORS)

    def to_dict(self) -> dict[str, Any]:
        original = None
        if self.original_error is not None:
            original = {
                "type": type(self.original_error).__name__,
                "message": str(self.original_error),
            }
        return {**super().to_dict(), "original_error": original}


def error_from_response(response: httpx.Response) -> ApiError:
    """Build an ApiError from an error response, reading the API error body if any."""
    try:
        data = response.json()
    except ValueError:
        data = None

    message = "API request failed"
    error_code = None
    if isinstance(data, dict):
        error = data.get("error") if isinstance(data.get("error"), dict) else {}
        message = error.get("message") or data.get("message") or message
        error_code = error.get("code")

    return ApiError(message, response.status_code, error_code, data)


def error_from_httpx(exc: httpx.HTTPError) -> CheckLogsError:
    """Map an httpx exception onto the SDK error hierarchy."""
    if isinstance(exc, httpx.HTTPStatusError):
        return error_from_response(exc.response)
    if isinstance(exc, httpx.RequestError):
        return NetworkError("Network request failed", exc)
    return NetworkError("Request setup failed", exc)


class FailureKind(Enum):
    """How a failed send is treated by the delivery layer."""

    VALIDATION = "validation"  # Never retried
    NETWORK = "network"
    SERVER = "server"
    UNKNOWN = "unknown"  # Wrapped, retried like a transient failure

    @property
    def retryable(self) -> bool:
        return self is not FailureKind.VALIDATION


def classify_failure(exc: BaseException) -> FailureKind:
    """Classify an exception raised by a transport."""
    if isinstance(exc, ValidationError):
        return FailureKind.VALIDATION
    if isinstance(exc, NetworkError):
        return FailureKind.NETWORK
    if isinstance(exc, ApiError):
        # The server rejected the record itself; resending cannot help
        if exc.is_client_error() and exc.status_code != 408 and not exc.is_rate_limit_error():
            return FailureKind.VALIDATION
        return FailureKind.SERVER
    return FailureKind.UNKNOWN


def wrap_unknown(exc: BaseException) -> CheckLogsError:
    """Return exc unchanged if it is already an SDK error, else wrap it."""
    if isinstance(exc, CheckLogsError):
        return exc
    if isinstance(exc, httpx.HTTPError):
        return error_from_httpx(exc)
    return CheckLogsError(str(exc) or type(exc).__name__, "UNKNOWN_ERROR", {"original_error": repr(exc)})
