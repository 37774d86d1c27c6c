"""OpenAI image generation (DALL-E 3)."""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import Any

from openai import AsyncOpenAI, OpenAIError

from rendergate.core.config.models import ProviderConfig
from rendergate.core.gateway.errors import AdapterError
from rendergate.core.imaging.codec import read_metadata
from rendergate.core.providers.base import AdapterImage, decode_base64_image
from rendergate.core.providers.fetch import RemoteImageFetcher
from rendergate.core.providers.prompt_writer import OpenAIService

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_MODEL = "dall-e-3"
IMAGE_SIZE = 1024


class OpenAIImageAdapter(OpenAIService):
    """Square images from the OpenAI Images API.

    Base64 payloads are requested; a hosted URL in the answer is downloaded
    with ``fetcher``.

    Args:
        provider: OpenAI base URL, key and timeout
        client: Optional pre-built AsyncOpenAI client (useful for testing)
        fetcher: Downloader for URL answers; one is built when omitted
        transport: Transport for the built fetcher (useful for testing)
        model: Image model name
    """

    def __init__(
        self,
        provider: ProviderConfig,
        *,
        client: AsyncOpenAI | None = None,
        fetcher: RemoteImageFetcher | None = None,
        transport=None,
        model: str = DEFAULT_IMAGE_MODEL,
    ) -> None:
        super().__init__(provider, client=client)
        self.model = model
        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or RemoteImageFetcher(provider.timeout_s, transport=transport)

    async def aclose(self) -> None:
        await super().aclose()
        if self._owns_fetcher:
            await self.fetcher.aclose()

    async def generate(self, prompt: str, options: Mapping[str, Any] | None = None) -> AdapterImage:
        """Generate one 1024x1024 image.

        Raises:
            AdapterError: On API failure or an answer without image data
        """
        client = self._get_client()
        start = time.perf_counter()
        try:
            response = await client.images.generate(
                model=self.model,
                prompt=prompt,
                n=1,
                size=f"{IMAGE_SIZE}x{IMAGE_SIZE}",
                response_format="b64_json",
            )
        except OpenAIError as e:
            raise self.error_from("OpenAI image generation", e) from e

        items = getattr(response, "data", None) or []
        if not items:
            raise AdapterError("No image data in response", provider=self.name)
        first = items[0]

        if getattr(first, "b64_json", None):
            try:
                data = decode_base64_image(first.b64_json)
            except ValueError as e:
                raise AdapterError(str(e), provider=self.name) from e
        elif getattr(first, "url", None):
            data = await self.fetcher.fetch(first.url)
        else:
            raise AdapterError("No image URL or base64 data in response", provider=self.name)

        meta = read_metadata(data)
        if meta is None:
            raise AdapterError("Image payload could not be decoded", provider=self.name)
        revised = getattr(first, "revised_prompt", None)
        return AdapterImage(
            data=data,
            width=meta.width,
            height=meta.height,
            format=meta.format or "png",
            duration_ms=int((time.perf_counter() - start) * 1000),
            metadata={"revised_prompt": revised} if revised else {},
        )
