"""Outpaint compositor: widen a square image to 1824x1024.

The source is normalized to 1024x1024 (entropy cover-crop, never padded),
centered on a transparent canvas, and the transparent bands are filled by
the Flux fill job.
"""

from __future__ import annotations

import asyncio
import base64
import logging

from rendergate.core.config.models import MAX_INPUT_BYTES
from rendergate.core.gateway.errors import ValidationError
from rendergate.core.imaging.codec import ImageDecodeError, decode_image, encode_png
from rendergate.core.imaging.compose import (
    OUTPAINT_HEIGHT,
    OUTPAINT_INPUT_SIZE,
    OUTPAINT_WIDTH,
    build_outpaint_canvas,
)
from rendergate.core.imaging.crop import cover_crop
from rendergate.core.providers.base import AdapterImage
from rendergate.core.providers.flux import FluxAdapter, check_input_size

logger = logging.getLogger(__name__)

DEFAULT_INFILL_PROMPT = """
Outpaint only the transparent/masked areas to extend the existing image to widescreen (16:9).
Preserve the original image exactly as-is; do not alter, restyle, recolor, or reposition the central subject.

Continue the environment logically beyond the current borders.
Match perspective, horizon line, depth, lighting direction, color temperature, texture detail, noise level, and rendering quality.
Maintain consistent camera distance and lens characteristics.

No new focal points.
No new elements.
No additional characters.
No compositional changes to the subject.
If the image does not include menus or UI elements, do not include them in the extended image.

AVOID: text, captions, logos, watermarks, signatures, frames, borders, UI elements, dramatic lighting shifts, style changes.
"""


def compose_outpaint_canvas(data: bytes) -> bytes:
    """Normalize ``data`` to 1024x1024 and center it on the transparent canvas (PNG).

    Raises:
        ValidationError: If ``data`` is not a decodable image
    """
    try:
        source = decode_image(data)
    except ImageDecodeError as e:
        raise ValidationError(str(e), code="invalid_image", invalid_fields=["image_url"]) from e

    if source.size != (OUTPAINT_INPUT_SIZE, OUTPAINT_INPUT_SIZE):
        logger.debug("Cover-cropping outpaint source %dx%d", *source.size)
        source = cover_crop(source, OUTPAINT_INPUT_SIZE, OUTPAINT_INPUT_SIZE)
    return encode_png(build_outpaint_canvas(source))


class OutpaintCompositor:
    """Build the padded canvas and have the fill job paint the padding.

    Args:
        flux: Flux adapter providing the fill job and the image fetcher
        max_input_bytes: Source byte ceiling, checked before any processing
    """

    def __init__(self, flux: FluxAdapter, *, max_input_bytes: int = MAX_INPUT_BYTES) -> None:
        self.flux = flux
        self.max_input_bytes = max_input_bytes

    async def outpaint(
        self,
        *,
        image_url: str | None = None,
        image_bytes: bytes | None = None,
        prompt: str | None = None,
    ) -> AdapterImage:
        """Extend a source image to 1824x1024.

        Exactly one source is used: ``image_bytes`` when non-empty, otherwise
        ``image_url``.

        Raises:
            ValidationError: No source, invalid URL, undecodable or oversized input
            SubmissionError, PollError, FetchError: From the fill job, unchanged
        """
        if image_bytes:
            data = image_bytes
        elif image_url and image_url.strip():
            data = await self.flux.fetch_source(image_url)
        else:
            raise ValidationError.missing_arguments(["image_url"])

        check_input_size(data, self.max_input_bytes)
        canvas = await asyncio.to_thread(compose_outpaint_canvas, data)

        fill_prompt = prompt.strip() if isinstance(prompt, str) else ""
        asset = await self.flux.submit_fill(
            base64.b64encode(canvas).decode("ascii"),
            fill_prompt or DEFAULT_INFILL_PROMPT,
        )

        # The provider honors the canvas size; reported dimensions are not trusted
        return AdapterImage(
            data=asset.data,
            width=OUTPAINT_WIDTH,
            height=OUTPAINT_HEIGHT,
            duration_ms=asset.duration_ms,
            poll_count=asset.poll_count,
            format=asset.format or "png",
            metadata=asset.metadata(),
        )
