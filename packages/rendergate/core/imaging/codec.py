"""Image decode/encode helpers shared by the pipeline and the adapters."""

from __future__ import annotations

from io import BytesIO
import logging

from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


class ImageDecodeError(ValueError):
    """Bytes could not be decoded as an image."""


class ImageMetadata(BaseModel):
    """Basic properties read from encoded image bytes."""

    model_config = ConfigDict(frozen=True)

    width: int
    height: int
    format: str | None = None
    mode: str | None = None


def decode_image(data: bytes) -> Image.Image:
    """Decode bytes into a fully loaded PIL image.

    Raises:
        ImageDecodeError: If the bytes are empty or not a supported image
    """
    if not data:
        raise ImageDecodeError("Image data is empty")
    try:
        img = Image.open(BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as e:
        raise ImageDecodeError(f"Unable to decode image: {e}") from e
    return img


def encode_png(image: Image.Image) -> bytes:
    """Encode an image as PNG bytes, keeping alpha when present."""
    if image.mode not in ("RGB", "RGBA", "L", "LA", "P"):
        image = image.convert("RGBA")
    buf = BytesIO()
    image.save(buf, "PNG")
    return buf.getvalue()


def read_metadata(data: bytes) -> ImageMetadata | None:
    """Best-effort metadata read.

    Returns None instead of raising: metadata is optional, the asset bytes
    are what the caller must have.
    """
    try:
        with Image.open(BytesIO(data)) as img:
            return ImageMetadata(
                width=img.width,
                height=img.height,
                format=img.format.lower() if img.format else None,
                mode=img.mode,
            )
    except Exception as e:  # noqa: BLE001 - any decoder failure just means "unknown"
        logger.debug("Image metadata unavailable: %s", e)
        return None


def reencode_png(data: bytes) -> tuple[bytes, int, int]:
    """Decode any supported image and return (png_bytes, width, height)."""
    img = decode_image(data)
    return encode_png(img), img.width, img.height
