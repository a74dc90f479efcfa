"""
Remote exceptions for akv-tui.

Defines the error taxonomy surfaced to the UI and the classification
used by the retry policy.
"""

import asyncio
from enum import Enum

import httpx


class FailureType(Enum):
    """Classification of remote failures for retry decisions."""

    AUTH_ERROR = "auth_error"
    PERMISSION_DENIED = "permission_denied"
    NOT_FOUND = "not_found"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    RATE_LIMIT = "rate_limit"
    SERVER_ERROR = "server_error"
    VALIDATION = "validation"
    INTERNAL = "internal"
    UNKNOWN = "unknown"


class AkvError(Exception):
    """Base exception for akv-tui errors."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AuthenticationError(AkvError):
    """Credential acquisition failed or the token was rejected."""

    pass


class PermissionDeniedError(AkvError):
    """Authenticated, but not authorized for the operation."""

    pass


class NotFoundError(AkvError):
    """Vault or secret no longer exists."""

    pass


class NetworkError(AkvError):
    """Connection-level failure (transient)."""

    pass


class RequestTimeoutError(NetworkError):
    """A remote call exceeded its time budget (transient)."""

    pass


class ServerError(NetworkError):
    """Remote service error (5xx status codes, transient)."""

    pass


class RateLimitedError(AkvError):
    """Remote service throttled the request (transient)."""

    def __init__(
        self,
        message: str,
        status_code: int | None = 429,
        retry_after: float | None = None,
    ):
        super().__init__(message, status_code)
        self.retry_after = retry_after


class ValidationError(AkvError):
    """Input rejected, either locally or by the service."""

    pass


class InternalError(AkvError):
    """An invariant was violated."""

    pass


_FAILURE_TYPES: list[tuple[type[AkvError], FailureType]] = [
    # subclasses before their bases
    (RequestTimeoutError, FailureType.TIMEOUT),
    (ServerError, FailureType.SERVER_ERROR),
    (NetworkError, FailureType.NETWORK_ERROR),
    (RateLimitedError, FailureType.RATE_LIMIT),
    (AuthenticationError, FailureType.AUTH_ERROR),
    (PermissionDeniedError, FailureType.PERMISSION_DENIED),
    (NotFoundError, FailureType.NOT_FOUND),
    (ValidationError, FailureType.VALIDATION),
    (InternalError, FailureType.INTERNAL),
]


def classify_error(error: BaseException) -> FailureType:
    """
    Classify an exception into a failure type for retry decisions.

    Args:
        error: The exception to classify.

    Returns:
        The failure type classification.
    """
    if not isinstance(error, AkvError):
        error = translate_error(error)

    for error_type, failure_type in _FAILURE_TYPES:
        if isinstance(error, error_type):
            return failure_type

    return FailureType.UNKNOWN


def should_retry(failure_type: FailureType) -> bool:
    """
    Determine if a failure type is transient.

    Args:
        failure_type: The classified failure type.

    Returns:
        True if the operation should be retried.
    """
    transient = {
        FailureType.NETWORK_ERROR,
        FailureType.TIMEOUT,
        FailureType.RATE_LIMIT,
        FailureType.SERVER_ERROR,
    }
    return failure_type in transient


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("retry-after")
    if value is None:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def _service_message(response: httpx.Response) -> str:
    """Extract the ``error.message`` from an Azure error body, if any."""
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return response.reason_phrase or f"HTTP {response.status_code}"


def error_for_response(response: httpx.Response) -> AkvError:
    """
    Map an unsuccessful HTTP response to the error taxonomy.

    Args:
        response: A response with a 4xx or 5xx status.

    Returns:
        The matching AkvError instance.
    """
    status = response.status_code
    message = _service_message(response)

    if status == 401:
        return AuthenticationError(message, status)
    if status == 403:
        return PermissionDeniedError(message, status)
    if status == 404:
        return NotFoundError(message, status)
    if status == 408:
        return RequestTimeoutError(message, status)
    if status == 429:
        return RateLimitedError(message, status, retry_after=_retry_after(response))
    if status >= 500:
        return ServerError(message, status)
    return ValidationError(message, status)


def translate_error(error: BaseException) -> AkvError:
    """
    Translate transport-level exceptions into the error taxonomy.

    Args:
        error: Any exception raised while talking to the remote service.

    Returns:
        An AkvError (``error`` itself when it already is one).
    """
    if isinstance(error, AkvError):
        return error
    if isinstance(error, httpx.HTTPStatusError):
        return error_for_response(error.response)
    if isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError)):
        return RequestTimeoutError(f"Request timed out: {error}" if str(error) else "Request timed out")
    if isinstance(error, httpx.TransportError):
        return NetworkError(f"Network error: {error}")
    return InternalError(f"Unexpected error: {error!r}")
