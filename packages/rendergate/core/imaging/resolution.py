"""Resolution pipeline.

Every generation result leaves the gateway at the canonical 1024x1024
size. Lower "pixel art" tiers are produced by a nearest-neighbor downscale to
the tier's logical size, an optional palette cap, and a nearest-neighbor
upscale back to canonical size, which gives blocky output on a fixed canvas.

All functions here are pure and deterministic (no I/O).
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType

from PIL import Image
from pydantic import BaseModel, ConfigDict, Field

from rendergate.core.imaging.codec import decode_image, encode_png

CANONICAL_SIZE = 1024

DEFAULT_RESOLUTION_KEY = "ai_latest"

PIXEL_ART_PROMPT = """
VERY BOLD AND THICK OUTLINES
flat colors
simple shading
limited color palette
very limited details
very limited textures
no gradients
no soft lighting
no reflections
no shadows
no highlights
no borders
no backgrounds
"""


class ResolutionProfile(BaseModel):
    """Target logical resolution with an optional palette cap.

    Attributes:
        key: Short label used in requests (e.g. ``nes_8bit``).
        width: Logical width in pixels.
        height: Logical height in pixels.
        palette_size: Maximum number of colors, or None for no cap.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    key: str
    width: int = Field(gt=0, le=CANONICAL_SIZE)
    height: int = Field(gt=0, le=CANONICAL_SIZE)
    palette_size: int | None = Field(default=None, ge=2, le=256)

    @property
    def is_canonical(self) -> bool:
        return self.width == CANONICAL_SIZE and self.height == CANONICAL_SIZE


RESOLUTION_PROFILES: Mapping[str, ResolutionProfile] = MappingProxyType(
    {
        p.key: p
        for p in (
            ResolutionProfile(key="nes_8bit", width=32, height=32, palette_size=16),
            ResolutionProfile(key="snes_16bit", width=64, height=64, palette_size=256),
            ResolutionProfile(key="ai_legacy", width=512, height=512),
            ResolutionProfile(key="ai_classic", width=768, height=768),
            ResolutionProfile(key="ai_latest", width=1024, height=1024),
        )
    }
)


def get_profile(key: str | None) -> ResolutionProfile:
    """Look up a profile by key, case-insensitively.

    Unknown or empty keys fall back to the canonical ``ai_latest`` profile.
    """
    normalized = str(key or DEFAULT_RESOLUTION_KEY).strip().lower()
    return RESOLUTION_PROFILES.get(normalized, RESOLUTION_PROFILES[DEFAULT_RESOLUTION_KEY])


def style_prompt(prompt: str, profile: ResolutionProfile) -> str:
    """Append the flat-color pixel-art directive for sub-canonical profiles."""
    if profile.is_canonical:
        return prompt
    return f"{prompt}, {PIXEL_ART_PROMPT}"


def nearest_resize(image: Image.Image, width: int, height: int) -> Image.Image:
    if image.size == (width, height):
        return image
    return image.resize((width, height), Image.Resampling.NEAREST)


def quantize(image: Image.Image, colors: int) -> Image.Image:
    """Reduce an image to at most ``colors`` distinct colors.

    Alpha is preserved: RGBA input goes through the octree quantizer, which
    supports transparency; other modes use median cut on RGB.
    """
    if image.mode == "RGBA":
        paletted = image.quantize(colors=colors, method=Image.Quantize.FASTOCTREE)
        return paletted.convert("RGBA")
    rgb = image.convert("RGB")
    paletted = rgb.quantize(colors=colors, method=Image.Quantize.MEDIANCUT)
    return paletted.convert("RGB")


def downsample(image: Image.Image, profile: ResolutionProfile) -> Image.Image:
    """Nearest-neighbor downscale to the profile's logical size, then cap the palette."""
    if image.mode not in ("RGB", "RGBA"):
        image = image.convert("RGBA" if "A" in image.getbands() else "RGB")
    tile = nearest_resize(image, profile.width, profile.height)
    if profile.palette_size is not None:
        tile = quantize(tile, profile.palette_size)
    return tile


def normalize(image: Image.Image, profile: ResolutionProfile) -> Image.Image:
    """Produce the canonical-size image for ``profile``.

    The result is always exactly CANONICAL_SIZE x CANONICAL_SIZE.
    """
    if profile.is_canonical:
        return nearest_resize(image, CANONICAL_SIZE, CANONICAL_SIZE)
    tile = downsample(image, profile)
    return nearest_resize(tile, CANONICAL_SIZE, CANONICAL_SIZE)


def normalize_bytes(data: bytes, profile: ResolutionProfile) -> bytes:
    """Decode, normalize and re-encode as PNG.

    Canonical-size PNG input under the canonical profile is returned
    untouched; any other encoding is converted so the result is always PNG.
    """
    image = decode_image(data)
    if (
        profile.is_canonical
        and image.format == "PNG"
        and image.size == (CANONICAL_SIZE, CANONICAL_SIZE)
    ):
        return data
    return encode_png(normalize(image, profile))


def upscale_to_canonical(data: bytes) -> bytes:
    """Nearest-neighbor upscale of a small provider tile to canonical size."""
    image = decode_image(data)
    if image.size == (CANONICAL_SIZE, CANONICAL_SIZE):
        return encode_png(image)
    return encode_png(nearest_resize(image, CANONICAL_SIZE, CANONICAL_SIZE))
