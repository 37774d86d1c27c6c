"""Provider-facing HTTP layer.

Every backend gets its own ``AsyncApiClient`` (base URL, timeout, auth
header), a single attempt by default, and ``ApiError`` subclasses carrying
the status code and a bounded body snippet.
"""

from rendergate.core.api.http.auth import ApiKeyAuth
from rendergate.core.api.http.client import AsyncApiClient
from rendergate.core.api.http.config import HttpClientConfig
from rendergate.core.api.http.errors import (
    ApiError,
    AuthError,
    ClientError,
    DecodeError,
    NetworkError,
    RateLimitError,
    ServerError,
    StatusError,
    TimeoutError,
)
from rendergate.core.api.http.retry import RetryPolicy

__all__ = [
    "ApiError",
    "ApiKeyAuth",
    "AsyncApiClient",
    "AuthError",
    "ClientError",
    "DecodeError",
    "HttpClientConfig",
    "NetworkError",
    "RateLimitError",
    "RetryPolicy",
    "ServerError",
    "StatusError",
    "TimeoutError",
]
