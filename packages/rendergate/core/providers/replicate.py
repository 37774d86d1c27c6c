"""Replicate model proxy.

Runs any Replicate model by name through the predictions API in
synchronous mode (``Prefer: wait``), downloads the first output image and
re-encodes it as PNG with its true dimensions.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping
from typing import Any

from rendergate.core.gateway.errors import AdapterError, GatewayError
from rendergate.core.imaging.codec import reencode_png
from rendergate.core.providers.base import AdapterImage, HttpImageAdapter, decode_base64_image
from rendergate.core.providers.fetch import RemoteImageFetcher

logger = logging.getLogger(__name__)

# Terminal prediction states that carry no output
_FAILED_STATES = frozenset({"failed", "canceled", "aborted"})


def prediction_path(model: str) -> tuple[str, dict[str, Any]]:
    """Endpoint and extra body keys for ``owner/model`` or ``owner/model:version``."""
    if ":" in model:
        _, version = model.split(":", 1)
        return "/predictions", {"version": version}
    return f"/models/{model}/predictions", {}


def first_output_url(output: Any) -> str:
    """First image URL in a prediction output (string, list, or ``{"url": ...}``).

    Raises:
        ValueError: If no URL can be found
    """
    if output is None:
        raise ValueError("Replicate run returned no output")
    if isinstance(output, list) and not output:
        raise ValueError("Replicate run returned empty output")
    first = output[0] if isinstance(output, list) else output
    if isinstance(first, dict) and isinstance(first.get("url"), str):
        first = first["url"]
    if isinstance(first, str) and first.startswith(("http", "data:")):
        return first
    raise ValueError("Replicate output did not contain an image URL")


class ReplicateAdapter(HttpImageAdapter):
    """Model proxy over the Replicate predictions API.

    Args:
        provider: Replicate base URL, token and timeout
        fetcher: Downloader for output URLs
        transport: Optional custom transport (useful for testing)
    """

    name = "replicate"
    env_key = "REPLICATE_API_TOKEN"

    def __init__(
        self, provider, *, fetcher: RemoteImageFetcher | None = None, transport=None
    ) -> None:
        super().__init__(provider, transport=transport)
        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or RemoteImageFetcher(provider.timeout_s, transport=transport)

    async def aclose(self) -> None:
        await super().aclose()
        if self._owns_fetcher:
            await self.fetcher.aclose()

    async def generate(self, prompt: str, options: Mapping[str, Any]) -> AdapterImage:
        """Run ``options["model"]`` with ``prompt`` plus the remaining options as input."""
        self.require_credentials()
        model = str(options.get("model") or "").strip()
        if not model:
            raise AdapterError(
                "Replicate args must include a non-empty model "
                '(e.g. "owner/model" or "owner/model:version")',
                provider=self.name,
            )

        model_input = {k: v for k, v in options.items() if k != "model"}
        model_input.setdefault("prompt", prompt)
        path, extra = prediction_path(model)

        logger.info("Replicate run: model=%s input_keys=%s", model, sorted(model_input))
        start = time.perf_counter()
        prediction = await self.post_json(
            path, {**extra, "input": model_input}, headers={"Prefer": "wait"}
        )

        if not isinstance(prediction, dict):
            raise AdapterError(
                "Replicate returned a non-object prediction", provider=self.name, detail=prediction
            )
        status = prediction.get("status")
        if status in _FAILED_STATES:
            raise AdapterError(
                f"Replicate prediction {status}",
                provider=self.name,
                job_id=prediction.get("id"),
                status=status,
                detail=prediction.get("error"),
            )

        try:
            url = first_output_url(prediction.get("output"))
        except ValueError as e:
            raise AdapterError(str(e), provider=self.name, status=status, detail=prediction) from e

        try:
            if url.startswith("data:"):
                raw = decode_base64_image(url)
            else:
                raw = await self.fetcher.fetch(url)
            png, width, height = await asyncio.to_thread(reencode_png, raw)
        except ValueError as e:
            raise AdapterError(f"Replicate output is not an image: {e}", provider=self.name) from e
        except GatewayError as e:
            raise AdapterError(
                f"Replicate output download failed: {e.message}",
                provider=self.name,
                status_code=getattr(e, "status_code", None),
                detail=getattr(e, "detail", None),
            ) from e

        duration_ms = int((time.perf_counter() - start) * 1000)
        logger.info("Replicate ready: model=%s duration_ms=%d", model, duration_ms)
        return AdapterImage(
            data=png,
            width=width,
            height=height,
            duration_ms=duration_ms,
            metadata={"model": model, "prediction_id": prediction.get("id")},
        )
