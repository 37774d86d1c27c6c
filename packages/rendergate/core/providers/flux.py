"""Black Forest Labs (Flux) adapter.

Every Flux call is a polled job run through ``ExternalJobClient``. Text-to-image
requests always ask for 1024x1024; lower resolution tiers are produced
locally by the resolution pipeline afterwards.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from collections.abc import Mapping
from typing import Any

from rendergate.core.config.models import MAX_INPUT_BYTES, GatewayConfig
from rendergate.core.gateway.errors import AdapterError, FetchError, ValidationError
from rendergate.core.imaging.codec import ImageDecodeError, decode_image, encode_png
from rendergate.core.imaging.crop import cover_crop
from rendergate.core.imaging.resolution import (
    CANONICAL_SIZE,
    ResolutionProfile,
    get_profile,
    normalize_bytes,
    style_prompt,
)
from rendergate.core.providers.base import AdapterImage
from rendergate.core.providers.fetch import RemoteImageFetcher
from rendergate.core.providers.jobs import ExternalJobClient, ProviderAsset, Sleep

logger = logging.getLogger(__name__)

FLUX_MODEL_ENDPOINTS: dict[str, str] = {
    "flux2Pro": "/flux-2-pro",
    "fluxKlein": "/flux-2-klein-9b",
    "flux2Flex": "/flux-2-flex",
}
DEFAULT_FLUX_MODEL = "flux2Pro"
FLUX_FILL_ENDPOINT = "/flux-pro-1.0-fill"


def flux_endpoint(model: str | None) -> str:
    """Submit path for ``model``; unknown names use Flux 2 Pro."""
    return FLUX_MODEL_ENDPOINTS.get(model or "", FLUX_MODEL_ENDPOINTS[DEFAULT_FLUX_MODEL])


def check_input_size(data: bytes, limit: int, *, stage: str = "") -> None:
    """Reject source images above ``limit`` bytes.

    Raises:
        ValidationError: If ``data`` is too large
    """
    if len(data) > limit:
        suffix = f" {stage}" if stage else ""
        raise ValidationError(
            f"Input image too large{suffix}: {len(data)} bytes (max {limit})",
            code="input_too_large",
            invalid_fields=["image_url"],
        )


def prepare_square_source(data: bytes, size: int = CANONICAL_SIZE) -> bytes:
    """Cover-crop ``data`` to ``size`` x ``size`` PNG; square input of that size passes through.

    Raises:
        ValidationError: If ``data`` is not a decodable image
    """
    try:
        image = decode_image(data)
    except ImageDecodeError as e:
        raise ValidationError(str(e), code="invalid_image", invalid_fields=["image_url"]) from e
    if image.size == (size, size):
        return data
    logger.debug("Normalizing source %dx%d -> %dx%d (cover+entropy)", *image.size, size, size)
    return encode_png(cover_crop(image, size, size))


class FluxAdapter:
    """Flux text-to-image, image edit and fill.

    Args:
        jobs: Job client bound to the Flux API
        fetcher: Downloader for caller-supplied source images
        max_input_bytes: Ceiling for source images
    """

    name = "flux"

    def __init__(
        self,
        jobs: ExternalJobClient,
        fetcher: RemoteImageFetcher | None = None,
        *,
        max_input_bytes: int = MAX_INPUT_BYTES,
    ) -> None:
        self.jobs = jobs
        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or RemoteImageFetcher(jobs.provider.timeout_s)
        self.max_input_bytes = max_input_bytes

    @classmethod
    def from_config(
        cls, config: GatewayConfig, *, transport=None, sleep: Sleep | None = None
    ) -> FluxAdapter:
        fetcher = RemoteImageFetcher(config.flux.timeout_s, transport=transport)
        jobs = ExternalJobClient(
            config.flux, config.polling, transport=transport, sleep=sleep, fetcher=fetcher
        )
        adapter = cls(jobs, fetcher, max_input_bytes=config.max_input_bytes)
        adapter._owns_fetcher = True
        return adapter

    async def aclose(self) -> None:
        await self.jobs.aclose()
        if self._owns_fetcher:
            await self.fetcher.aclose()

    async def submit_generation(
        self,
        prompt: str,
        *,
        model: str | None = None,
        width: int = CANONICAL_SIZE,
        height: int = CANONICAL_SIZE,
    ) -> ProviderAsset:
        """Raw Flux text-to-image job, no post-processing."""
        return await self.jobs.generate(
            flux_endpoint(model),
            {
                "prompt": prompt,
                "seed": 0,
                "width": width,
                "height": height,
                "output_format": "png",
            },
        )

    async def submit_fill(self, image_b64: str, prompt: str | None = None) -> ProviderAsset:
        return await self.jobs.fill(
            FLUX_FILL_ENDPOINT,
            {"image": image_b64, "prompt": prompt, "output_format": "png"},
        )

    async def generate(self, prompt: str, options: Mapping[str, Any]) -> AdapterImage:
        """Text-to-image through the resolution pipeline.

        Options:
            model: ``flux2Pro`` (default), ``fluxKlein`` or ``flux2Flex``
            resolution: Resolution profile key (default ``ai_latest``)
        """
        profile = get_profile(options.get("resolution"))
        asset = await self.submit_generation(
            style_prompt(prompt, profile), model=options.get("model")
        )
        return await self.normalize(asset, profile)

    async def normalize(self, asset: ProviderAsset, profile: ResolutionProfile) -> AdapterImage:
        data = await asyncio.to_thread(normalize_bytes, asset.data, profile)
        return AdapterImage(
            data=data,
            width=CANONICAL_SIZE,
            height=CANONICAL_SIZE,
            duration_ms=asset.duration_ms,
            poll_count=asset.poll_count,
            metadata={**asset.metadata(), "resolution": profile.key},
        )

    async def fetch_source(self, image_url: str) -> bytes:
        """Download a caller-supplied image.

        Raises:
            ValidationError: If the URL is invalid or cannot be downloaded
        """
        try:
            return await self.fetcher.fetch(image_url)
        except FetchError as e:
            raise ValidationError(
                e.message, code="image_unavailable", invalid_fields=["image_url"]
            ) from e

    async def load_source(self, image_url: str) -> bytes:
        """Fetch a caller image and prepare it as a 1024x1024 source.

        The byte ceiling is checked on the download and again after
        re-encoding.
        """
        data = await self.fetch_source(image_url)
        check_input_size(data, self.max_input_bytes)
        data = await asyncio.to_thread(prepare_square_source, data)
        check_input_size(data, self.max_input_bytes, stage="after resize")
        return data

    async def edit(self, prompt: str, image_url: str) -> AdapterImage:
        """Prompted edit of a caller-supplied image.

        Raises:
            AdapterError: If the output dimensions cannot be determined
        """
        source = await self.load_source(image_url)
        asset = await self.jobs.generate(
            flux_endpoint(DEFAULT_FLUX_MODEL),
            {
                "prompt": prompt,
                "input_image": base64.b64encode(source).decode("ascii"),
                "seed": 0,
                "output_format": "png",
            },
        )
        if asset.width is None or asset.height is None:
            raise AdapterError(
                "Unable to determine output image dimensions",
                provider=self.name,
                job_id=asset.job_id,
            )
        return AdapterImage(
            data=asset.data,
            width=asset.width,
            height=asset.height,
            duration_ms=asset.duration_ms,
            poll_count=asset.poll_count,
            format=asset.format or "png",
            metadata=asset.metadata(),
        )
