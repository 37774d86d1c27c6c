"""Retro Diffusion adapter."""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import random
import time
from collections.abc import Mapping
from typing import Any

from rendergate.core.gateway.errors import AdapterError
from rendergate.core.imaging.resolution import CANONICAL_SIZE, upscale_to_canonical
from rendergate.core.providers.base import AdapterImage, HttpImageAdapter, random_seed

logger = logging.getLogger(__name__)

INFERENCES_PATH = "/inferences"
DEFAULT_SIZE = 256
RD_MODEL = "RD_CLASSIC"
RD_PROMPT_STYLE = "rd_plus__default"


class RetroDiffusionAdapter(HttpImageAdapter):
    """Single-call Retro Diffusion generation with background removal.

    The requested tile (default 256x256) is upscaled to canonical size with
    nearest neighbor.
    """

    name = "retro_diffusion"
    auth_header = "X-RD-Token"
    auth_prefix = None
    env_key = "RETRO_DIFFUSION_API_KEY"

    def __init__(self, provider, *, transport=None, rng: random.Random | None = None) -> None:
        super().__init__(provider, transport=transport)
        self._rng = rng

    def build_payload(self, prompt: str, options: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "width": int(options.get("width") or DEFAULT_SIZE),
            "height": int(options.get("height") or DEFAULT_SIZE),
            "model": RD_MODEL,
            "prompt": prompt,
            "prompt_style": RD_PROMPT_STYLE,
            "num_images": int(options.get("num_images") or 1),
            "seed": random_seed(self._rng),
            "tile_x": False,
            "tile_y": False,
            "remove_bg": True,
        }

    async def generate(self, prompt: str, options: Mapping[str, Any]) -> AdapterImage:
        self.require_credentials()
        prompt = (prompt or "").strip()
        if not prompt:
            raise AdapterError("A prompt string is required", provider=self.name)

        payload = self.build_payload(prompt, options)
        start = time.perf_counter()
        data = await self.post_json(INFERENCES_PATH, payload)

        images = data.get("base64_images") if isinstance(data, dict) else None
        if not isinstance(images, list) or not images:
            raise AdapterError(
                "Retro Diffusion response missing base64_images", provider=self.name, detail=data
            )
        try:
            raw = base64.b64decode(images[0])
            png = await asyncio.to_thread(upscale_to_canonical, raw)
        except (binascii.Error, ValueError) as e:
            raise AdapterError(
                f"Retro Diffusion returned an undecodable image: {e}", provider=self.name
            ) from e

        duration_ms = int((time.perf_counter() - start) * 1000)
        logger.info(
            "Retro Diffusion ready: credit_cost=%s remaining_credits=%s duration_ms=%d",
            data.get("credit_cost"),
            data.get("remaining_credits"),
            duration_ms,
        )
        return AdapterImage(
            data=png,
            width=CANONICAL_SIZE,
            height=CANONICAL_SIZE,
            duration_ms=duration_ms,
            metadata={
                k: data[k]
                for k in ("credit_cost", "remaining_credits", "created_at", "type")
                if data.get(k) is not None
            },
        )
