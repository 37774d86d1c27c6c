"""Adapter contract shared by every rendering backend.

Each adapter exposes ``generate(prompt, options)`` and returns a decodable
image with its true pixel dimensions, or fails with an ``AdapterError``
carrying the provider's status code and a truncated body.
"""

from __future__ import annotations

import base64
import binascii
import logging
import random
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from rendergate.core.api.http import (
    ApiError,
    ApiKeyAuth,
    AsyncApiClient,
    HttpClientConfig,
    RetryPolicy,
)
from rendergate.core.config.models import ProviderConfig
from rendergate.core.gateway.errors import AdapterError, truncate_detail

logger = logging.getLogger(__name__)


class AdapterImage(BaseModel):
    """Finished asset returned by an adapter."""

    model_config = ConfigDict(frozen=True)

    data: bytes = Field(repr=False)
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    duration_ms: int | None = None
    poll_count: int | None = None
    # Encoding of ``data`` as a PIL format name, lower case
    format: str = "png"
    metadata: dict[str, Any] = Field(default_factory=dict)


@runtime_checkable
class ImageAdapter(Protocol):
    """One rendering backend."""

    name: str

    async def generate(self, prompt: str, options: Mapping[str, Any]) -> AdapterImage: ...

    async def aclose(self) -> None: ...


def random_seed(rng: random.Random | None = None) -> int:
    """Random 10-digit positive seed."""
    return (rng or random).randrange(10**9, 10**10)


def decode_base64_image(value: str) -> bytes:
    """Decode raw base64 or a ``data:image/...;base64,`` URL.

    Raises:
        ValueError: If the payload is not valid base64
    """
    payload = value.split(",", 1)[1] if "," in value else value
    try:
        return base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 image payload: {e}") from e


class HttpImageAdapter:
    """Base for synchronous single-call backends.

    Owns one ``AsyncApiClient`` built from the adapter's ``ProviderConfig``.
    Subclasses set ``name`` and the auth header layout.

    Args:
        provider: Base URL, API key and timeout
        transport: Optional custom transport (useful for testing)
    """

    name = "provider"
    auth_header = "Authorization"
    auth_prefix: str | None = "Bearer"
    env_key = "API_KEY"

    def __init__(self, provider: ProviderConfig, *, transport=None) -> None:
        self.provider = provider
        auth = ApiKeyAuth.for_provider(provider, self.auth_header, self.auth_prefix)
        self._client = AsyncApiClient(
            HttpClientConfig.for_provider(provider),
            auth=auth,
            retry_policy=RetryPolicy(max_attempts=provider.max_attempts),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def require_credentials(self) -> None:
        if not self.provider.has_credentials:
            raise AdapterError(f"{self.env_key} missing", provider=self.name)

    async def post_json(
        self, path: str, body: Mapping[str, Any], *, headers: Mapping[str, str] | None = None
    ) -> Any:
        """POST ``body`` and decode the JSON answer.

        Raises:
            AdapterError: On any HTTP or decode failure
        """
        try:
            resp = await self._client.post(path, json_body=dict(body), headers=headers)
            return self._client.json(resp)
        except ApiError as e:
            raise self.error_from(e) from e

    def error_from(self, error: ApiError) -> AdapterError:
        # Logging a provider body must never fail the request
        logger.warning(
            "%s API error: status=%s body=%s",
            self.name,
            error.status_code,
            truncate_detail(error.response_body_snippet),
        )
        label = f"{self.name} API error: {error.status_code or error.message}"
        if error.response_body_snippet:
            label += f" {error.response_body_snippet[:200]}"
        return AdapterError(
            label,
            provider=self.name,
            status_code=error.status_code,
            detail=error.response_body_snippet,
        )
