from __future__ import annotations

from collections.abc import Generator

import httpx
from pydantic import BaseModel, ConfigDict, Field

from rendergate.core.config.models import ProviderConfig


class ApiKeyAuth(httpx.Auth, BaseModel):
    """Sets one static key header on every request.

    Backends disagree on the header: ``x-key`` for Flux, ``X-RD-Token`` for
    Retro Diffusion, ``Authorization: Bearer`` for PixelLab and Replicate.
    httpx's default async flow drives ``auth_flow``, so one method covers
    both clients.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    header_name: str
    api_key: str = Field(repr=False)
    prefix: str | None = None

    @classmethod
    def for_provider(
        cls, provider: ProviderConfig, header_name: str, prefix: str | None = None
    ) -> ApiKeyAuth | None:
        """Auth for ``provider``, or None when it has no usable key."""
        if not provider.has_credentials:
            return None
        return cls(header_name=header_name, api_key=provider.api_key.strip(), prefix=prefix)

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        value = f"{self.prefix} {self.api_key}" if self.prefix else self.api_key
        request.headers[self.header_name] = value
        yield request
