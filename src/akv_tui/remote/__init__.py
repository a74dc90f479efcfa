"""Remote secret-store access for akv-tui.

Architecture:
    CredentialProvider → TokenCache → RemoteClient → SecretStoreTransport

Key Components:
    - CredentialProvider / SecretStoreTransport: Capabilities the client depends on
    - RemoteClient: Token acquisition, timeouts, retries and error translation
    - AzureCredentialProvider / AzureRestTransport: Azure implementations
"""

from akv_tui.remote.exceptions import (
    AkvError,
    AuthenticationError,
    FailureType,
    InternalError,
    NetworkError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitedError,
    RequestTimeoutError,
    ServerError,
    ValidationError,
    classify_error,
    should_retry,
)
from akv_tui.remote.models import Page, Secret, Token, Vault
from akv_tui.remote.protocol import CredentialProvider, SecretStoreTransport

__all__ = [
    # Models
    "Page",
    "Secret",
    "Token",
    "Vault",
    # Capabilities
    "CredentialProvider",
    "SecretStoreTransport",
    # Errors
    "AkvError",
    "AuthenticationError",
    "FailureType",
    "InternalError",
    "NetworkError",
    "NotFoundError",
    "PermissionDeniedError",
    "RateLimitedError",
    "RequestTimeoutError",
    "ServerError",
    "ValidationError",
    "classify_error",
    "should_retry",
]
