from __future__ import annotations

from urllib.parse import urlsplit

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator

from rendergate.core.config.models import ProviderConfig

# Every key header a rendering backend uses, plus the usual suspects
DEFAULT_REDACTED_HEADERS = (
    "authorization",
    "proxy-authorization",
    "cookie",
    "set-cookie",
    "x-key",
    "x-rd-token",
    "x-api-key",
)


class HttpClientConfig(BaseModel):
    """Transport settings for one ``AsyncApiClient``.

    Adapters derive theirs from a ``ProviderConfig`` via ``for_provider``;
    the remote image fetcher builds one from a bare timeout.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    base_url: str
    timeout: httpx.Timeout = Field(default_factory=lambda: httpx.Timeout(60.0, connect=10.0))
    follow_redirects: bool = True
    headers: dict[str, str] = Field(default_factory=dict)
    user_agent: str = "rendergate/0.1"
    redact_headers: tuple[str, ...] = DEFAULT_REDACTED_HEADERS
    # Bytes of an error body kept on ApiError
    max_response_body_for_error: int = Field(default=500, ge=0)

    @field_validator("base_url")
    @classmethod
    def _require_http_url(cls, v: str) -> str:
        parts = urlsplit(v)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError(f"base_url must be an absolute http(s) URL, got {v!r}")
        return v

    @classmethod
    def with_timeout(cls, base_url: str, timeout_s: float, **kwargs) -> HttpClientConfig:
        """One overall timeout in seconds; connecting gets at most 10s of it."""
        return cls(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_s, connect=min(10.0, timeout_s)),
            **kwargs,
        )

    @classmethod
    def for_provider(cls, provider: ProviderConfig) -> HttpClientConfig:
        return cls.with_timeout(provider.base_url, provider.timeout_s)
