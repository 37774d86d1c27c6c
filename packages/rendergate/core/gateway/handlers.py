"""Bound handlers for every registered method.

Each handler receives a validated ``PreparedCall`` and returns a
``RenderedImage``. Provider errors pass through unchanged.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
import time
from typing import Any

from rendergate.core.config.models import GatewayConfig
from rendergate.core.gateway.errors import AdapterError, ValidationError
from rendergate.core.gateway.models import PreparedCall, RenderedImage
from rendergate.core.gateway.outpaint import OutpaintCompositor
from rendergate.core.imaging.annotate import annotate_poem
from rendergate.core.imaging.codec import ImageDecodeError, decode_image, encode_png
from rendergate.core.imaging.crop import cover_crop
from rendergate.core.imaging.procedural import (
    DEFAULT_TEXT_COLOR,
    is_hex_color,
    render_gradient_circle,
    render_text_card,
)
from rendergate.core.imaging.resolution import CANONICAL_SIZE
from rendergate.core.providers.base import AdapterImage
from rendergate.core.providers.flux import DEFAULT_FLUX_MODEL, FluxAdapter, check_input_size
from rendergate.core.providers.jobs import Sleep
from rendergate.core.providers.openai_images import OpenAIImageAdapter
from rendergate.core.providers.pixellab import PixelLabAdapter
from rendergate.core.providers.poetry import image_poem_prompt, seed_poem, styled_prompt
from rendergate.core.providers.prompt_writer import PromptWriter
from rendergate.core.providers.replicate import ReplicateAdapter
from rendergate.core.providers.retro_diffusion import RetroDiffusionAdapter

logger = logging.getLogger(__name__)

THUMB_SIZE = 1000


def rendered(image: AdapterImage, color_hex: str = "#000000", **extra: Any) -> RenderedImage:
    return RenderedImage(
        data=image.data,
        width=image.width,
        height=image.height,
        format=image.format,
        color_hex=color_hex,
        duration_ms=image.duration_ms,
        poll_count=image.poll_count,
        provider_metadata={**image.metadata, **extra},
    )


def parse_items(value: Any) -> Any:
    """``items`` may arrive as structured data or as a JSON string."""
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return [value] if value.strip() else []
    return value if value is not None else []


def caption_png(data: bytes, poem: str) -> tuple[bytes, int, int]:
    """Decode, caption and re-encode as PNG; returns (png_bytes, width, height)."""
    captioned = annotate_poem(decode_image(data), poem)
    return encode_png(captioned), captioned.width, captioned.height


def normalize_upload(data: bytes) -> bytes:
    """Cover-crop to 1024x1024, or re-encode as PNG when already that size."""
    try:
        image = decode_image(data)
    except ImageDecodeError as e:
        raise ValidationError(str(e), code="invalid_image", invalid_fields=["image_url"]) from e
    if image.size != (CANONICAL_SIZE, CANONICAL_SIZE):
        logger.debug("Resizing upload %dx%d to %d square", *image.size, CANONICAL_SIZE)
        image = cover_crop(image, CANONICAL_SIZE, CANONICAL_SIZE)
    return encode_png(image)


class GatewayHandlers:
    """Handler set wired to explicitly configured providers.

    Args:
        config: Gateway configuration (ceilings, default resolution)
        flux: Flux adapter (text-to-image, edit, fill)
        pixellab: PixelLab adapter
        retro_diffusion: Retro Diffusion adapter
        replicate: Replicate model proxy
        prompt_writer: LLM prompt writer for advanced generation and poem rewrites
        openai_images: DALL-E image adapter for the poetic method
        rng: Random source for procedural images
    """

    def __init__(
        self,
        config: GatewayConfig,
        *,
        flux: FluxAdapter,
        pixellab: PixelLabAdapter,
        retro_diffusion: RetroDiffusionAdapter,
        replicate: ReplicateAdapter,
        prompt_writer: PromptWriter,
        openai_images: OpenAIImageAdapter,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config
        self.flux = flux
        self.pixellab = pixellab
        self.retro_diffusion = retro_diffusion
        self.replicate_adapter = replicate
        self.prompt_writer = prompt_writer
        self.openai_images = openai_images
        self.outpaint = OutpaintCompositor(flux, max_input_bytes=config.max_input_bytes)
        self._rng = rng or random.Random()

    @classmethod
    def from_config(
        cls,
        config: GatewayConfig,
        *,
        transport=None,
        sleep: Sleep | None = None,
        openai_client=None,
        rng: random.Random | None = None,
    ) -> GatewayHandlers:
        """Build every adapter from ``config``; ``transport`` is shared for testing."""
        return cls(
            config,
            flux=FluxAdapter.from_config(config, transport=transport, sleep=sleep),
            pixellab=PixelLabAdapter(config.pixellab, transport=transport, rng=rng),
            retro_diffusion=RetroDiffusionAdapter(
                config.retro_diffusion, transport=transport, rng=rng
            ),
            replicate=ReplicateAdapter(config.replicate, transport=transport),
            prompt_writer=PromptWriter(config.openai, client=openai_client),
            openai_images=OpenAIImageAdapter(
                config.openai,
                client=openai_client,
                transport=transport,
            ),
            rng=rng,
        )

    async def aclose(self) -> None:
        await asyncio.gather(
            self.flux.aclose(),
            self.pixellab.aclose(),
            self.retro_diffusion.aclose(),
            self.replicate_adapter.aclose(),
            self.prompt_writer.aclose(),
            self.openai_images.aclose(),
        )

    # ------------------------------------------------------------------
    # Provider-backed methods
    # ------------------------------------------------------------------

    async def flux_image(self, call: PreparedCall) -> RenderedImage:
        args = call.args
        image = await self.flux.generate(
            str(args["prompt"]),
            {
                "model": args.get("model"),
                "resolution": args.get("resolution") or self.config.default_resolution,
            },
        )
        return rendered(image, prompt=str(args["prompt"]).strip())

    async def flux_image_edit(self, call: PreparedCall) -> RenderedImage:
        prompt = str(call.args["prompt"]).strip()
        image = await self.flux.edit(prompt, call.args["image_url"])
        return rendered(image, prompt=prompt, image_url=call.args["image_url"])

    async def pixel_lab_image(self, call: PreparedCall) -> RenderedImage:
        args = call.args
        image = await self.pixellab.generate(str(args["prompt"]), args)
        return rendered(image, prompt=str(args["prompt"]).strip())

    async def retro_diffusion_image(self, call: PreparedCall) -> RenderedImage:
        args = call.args
        image = await self.retro_diffusion.generate(str(args["prompt"]), args)
        return rendered(image, prompt=str(args["prompt"]).strip())

    async def replicate(self, call: PreparedCall) -> RenderedImage:
        image = await self.replicate_adapter.generate(call.args["prompt"], call.args)
        return rendered(image)

    async def advanced_generate(self, call: PreparedCall) -> RenderedImage:
        args = call.args
        prompt = args.get("prompt")
        prompt = prompt.strip() if isinstance(prompt, str) else ""

        if call.operation == "outpaint":
            image = await self.outpaint.outpaint(image_url=args.get("image_url"), prompt=prompt)
            return rendered(image)

        if call.operation == "generate_thumb":
            asset = await self.flux.submit_generation(
                prompt, model=DEFAULT_FLUX_MODEL, width=THUMB_SIZE, height=THUMB_SIZE
            )
            return RenderedImage(
                data=asset.data,
                width=asset.width or THUMB_SIZE,
                height=asset.height or THUMB_SIZE,
                format=asset.format or "png",
                duration_ms=asset.duration_ms,
                poll_count=asset.poll_count,
                provider_metadata=asset.metadata(),
            )

        flux_prompt = await self.prompt_writer.write(parse_items(args.get("items")), prompt)
        image = await self.flux.generate(
            flux_prompt,
            {"model": DEFAULT_FLUX_MODEL, "resolution": self.config.default_resolution},
        )
        return rendered(image, prompt=flux_prompt)

    async def poetic_image_flux(self, call: PreparedCall) -> RenderedImage:
        style = call.args.get("style")
        poem = await self.prompt_writer.rewrite_poem(seed_poem(self._rng))
        prompt = styled_prompt(poem, style if isinstance(style, str) else None)
        image = await self.flux.generate(
            prompt, {"model": DEFAULT_FLUX_MODEL, "resolution": self.config.default_resolution}
        )
        return await self._captioned(image, poem, prompt)

    async def poetic_image(self, call: PreparedCall) -> RenderedImage:
        style = call.args.get("style")
        poem = await self.prompt_writer.rewrite_poem(seed_poem(self._rng))
        prompt = image_poem_prompt(poem, style if isinstance(style, str) else None)
        image = await self.openai_images.generate(prompt)
        return await self._captioned(image, poem, prompt)

    async def _captioned(self, image: AdapterImage, poem: str, prompt: str) -> RenderedImage:
        """Print ``poem`` in the bottom band; the poem is returned as ``description``."""
        try:
            data, width, height = await asyncio.to_thread(caption_png, image.data, poem)
        except ImageDecodeError as e:
            raise AdapterError(f"Failed to annotate poem: {e}") from e
        captioned = image.model_copy(
            update={"data": data, "width": width, "height": height, "format": "png"}
        )
        return rendered(captioned, description=poem, prompt=prompt)

    # ------------------------------------------------------------------
    # Local methods
    # ------------------------------------------------------------------

    async def upload_image(self, call: PreparedCall) -> RenderedImage:
        start = time.perf_counter()
        data = await self.flux.fetch_source(call.args["image_url"])
        check_input_size(data, self.config.max_input_bytes)
        data = await asyncio.to_thread(normalize_upload, data)
        check_input_size(data, self.config.max_input_bytes, stage="after resize")
        return RenderedImage(
            data=data,
            width=CANONICAL_SIZE,
            height=CANONICAL_SIZE,
            duration_ms=int((time.perf_counter() - start) * 1000),
        )

    async def gradient_circle(self, call: PreparedCall) -> RenderedImage:
        result = render_gradient_circle(rng=self._rng)
        data = await asyncio.to_thread(encode_png, result.image)
        return RenderedImage(
            data=data,
            width=result.image.width,
            height=result.image.height,
            color_hex=result.corners[0],
            provider_metadata={
                "colors": {"corners": list(result.corners), "circle": result.circle}
            },
        )

    async def centered_text(self, call: PreparedCall) -> RenderedImage:
        text = call.args["text"]
        if not isinstance(text, str):
            raise ValidationError.invalid_arguments(["text"], "text must be a string")
        color = call.args.get("color") or DEFAULT_TEXT_COLOR
        if not isinstance(color, str) or not is_hex_color(color):
            raise ValidationError(
                f"Invalid hex color format: {color}. Must be in format #RRGGBB or #RGB",
                code="invalid_arguments",
                invalid_fields=["color"],
            )

        image = await asyncio.to_thread(render_text_card, text, color)
        data = await asyncio.to_thread(encode_png, image)
        return RenderedImage(data=data, width=image.width, height=image.height, color_hex=color)
