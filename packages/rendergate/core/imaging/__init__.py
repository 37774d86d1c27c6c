"""Deterministic image processing: codec, resolution pipeline, crop, compositing."""

from rendergate.core.imaging.annotate import annotate_poem
from rendergate.core.imaging.codec import (
    ImageDecodeError,
    ImageMetadata,
    decode_image,
    encode_png,
    read_metadata,
)
from rendergate.core.imaging.compose import (
    OUTPAINT_HEIGHT,
    OUTPAINT_LEFT_OFFSET,
    OUTPAINT_WIDTH,
    build_outpaint_canvas,
)
from rendergate.core.imaging.crop import cover_crop
from rendergate.core.imaging.resolution import (
    CANONICAL_SIZE,
    RESOLUTION_PROFILES,
    ResolutionProfile,
    get_profile,
    normalize,
    normalize_bytes,
    style_prompt,
)

__all__ = [
    "CANONICAL_SIZE",
    "OUTPAINT_HEIGHT",
    "OUTPAINT_LEFT_OFFSET",
    "OUTPAINT_WIDTH",
    "RESOLUTION_PROFILES",
    "ImageDecodeError",
    "ImageMetadata",
    "ResolutionProfile",
    "annotate_poem",
    "build_outpaint_canvas",
    "cover_crop",
    "decode_image",
    "encode_png",
    "get_profile",
    "normalize",
    "normalize_bytes",
    "read_metadata",
    "style_prompt",
]
