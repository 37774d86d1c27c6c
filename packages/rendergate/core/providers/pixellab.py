"""PixelLab adapter (Pixflux and Bitforge pixel-art models)."""

from __future__ import annotations

import asyncio
import logging
import math
import random
import time
from collections.abc import Mapping
from typing import Any

from rendergate.core.gateway.errors import AdapterError
from rendergate.core.imaging.resolution import CANONICAL_SIZE, upscale_to_canonical
from rendergate.core.providers.base import (
    AdapterImage,
    HttpImageAdapter,
    decode_base64_image,
    random_seed,
)
from rendergate.core.utils.math import clamp

logger = logging.getLogger(__name__)

DEFAULT_SIZE = 64
MIN_SIZE = 16

# model -> (endpoint, max edge)
PIXELLAB_MODELS: dict[str, tuple[str, int]] = {
    "pixflux": ("/generate-image-pixflux", 400),
    "bitforge": ("/generate-image-bitforge", 200),
}
DEFAULT_PIXELLAB_MODEL = "pixflux"


def pixel_art_prompt(prompt: str) -> str:
    return f"PIXEL ART STYLE:\n\n {prompt}"


def _number(value: Any, default: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return number or default


class PixelLabAdapter(HttpImageAdapter):
    """Single-call PixelLab generation, upscaled to canonical size.

    Options:
        model: ``pixflux`` (default, up to 400px) or ``bitforge`` (up to 200px)
        width, height: Requested tile size, clamped to [16, model max]
        no_background: Ask for a transparent background
        style_guidance_scale, style_strength, text_guidance_scale: Bitforge only
    """

    name = "pixellab"
    env_key = "PIXEL_LAB_API_KEY"

    def __init__(self, provider, *, transport=None, rng: random.Random | None = None) -> None:
        super().__init__(provider, transport=transport)
        self._rng = rng

    def build_payload(
        self, prompt: str, options: Mapping[str, Any]
    ) -> tuple[str, dict[str, Any]]:
        model = str(options.get("model") or DEFAULT_PIXELLAB_MODEL).lower()
        if model not in PIXELLAB_MODELS:
            model = DEFAULT_PIXELLAB_MODEL
        path, max_size = PIXELLAB_MODELS[model]

        width = int(clamp(round(_number(options.get("width"), DEFAULT_SIZE)), MIN_SIZE, max_size))
        height = int(
            clamp(round(_number(options.get("height"), DEFAULT_SIZE)), MIN_SIZE, max_size)
        )

        payload: dict[str, Any] = {
            "description": pixel_art_prompt(prompt),
            "image_size": {"width": width, "height": height},
            "no_background": bool(options.get("no_background")),
            "seed": random_seed(self._rng),
        }
        if model == "bitforge":
            payload["style_guidance_scale"] = _number(options.get("style_guidance_scale"), 3)
            payload["style_strength"] = _number(options.get("style_strength"), 20)
            payload["text_guidance_scale"] = _number(options.get("text_guidance_scale"), 3)
        return path, payload

    async def generate(self, prompt: str, options: Mapping[str, Any]) -> AdapterImage:
        self.require_credentials()
        prompt = (prompt or "").strip()
        if not prompt:
            raise AdapterError("A prompt string is required", provider=self.name)

        path, payload = self.build_payload(prompt, options)
        start = time.perf_counter()
        data = await self.post_json(path, payload)

        image = data.get("image") if isinstance(data, dict) else None
        encoded = image.get("base64") if isinstance(image, dict) else None
        if not isinstance(encoded, str) or not encoded:
            raise AdapterError(
                "PixelLab response missing image.base64", provider=self.name, detail=data
            )
        try:
            raw = decode_base64_image(encoded)
            png = await asyncio.to_thread(upscale_to_canonical, raw)
        except ValueError as e:
            raise AdapterError(
                f"PixelLab returned an undecodable image: {e}", provider=self.name
            ) from e

        duration_ms = int((time.perf_counter() - start) * 1000)
        usage = data.get("usage")
        logger.info(
            "PixelLab ready: usd=%s duration_ms=%d",
            usage.get("usd") if isinstance(usage, dict) else None,
            duration_ms,
        )
        return AdapterImage(
            data=png,
            width=CANONICAL_SIZE,
            height=CANONICAL_SIZE,
            duration_ms=duration_ms,
            metadata={"usage": usage, "tile": payload["image_size"]},
        )
