"""Locally rendered images that need no provider.

- Gradient circle: four-corner gradient background with a solid circle
- Text card: text centered on a light background
"""

from __future__ import annotations

import random
import re

import numpy as np
from PIL import Image, ImageDraw, ImageFont
from pydantic import BaseModel, ConfigDict

from rendergate.core.imaging.resolution import CANONICAL_SIZE

TEXT_BACKGROUND = "#f0f0f0"
DEFAULT_TEXT_COLOR = "#000000"

# Minimum font size to attempt
_MIN_FONT_SIZE = 12

# Padding ratio (fraction of canvas dimension)
_PADDING_RATIO = 0.1

_HEX_COLOR = re.compile(r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$")


class GradientCircle(BaseModel):
    """Rendered gradient circle plus the colors that produced it."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    image: Image.Image
    corners: tuple[str, str, str, str]
    circle: str


def is_hex_color(value: str) -> bool:
    return bool(_HEX_COLOR.match(value))


def hex_to_rgb(value: str) -> tuple[int, int, int]:
    """Parse ``#RGB`` or ``#RRGGBB``.

    Raises:
        ValueError: If the value is not a hex color
    """
    if not is_hex_color(value):
        raise ValueError(f"Invalid hex color format: {value}. Must be in format #RRGGBB or #RGB")
    digits = value[1:]
    if len(digits) == 3:
        digits = "".join(c * 2 for c in digits)
    return int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16)


def random_hex_color(rng: random.Random) -> str:
    return f"#{rng.randrange(0x1000000):06x}"


def _horizontal_gradient(left: str, right: str, width: int, height: int) -> np.ndarray:
    start = np.array(hex_to_rgb(left), dtype=np.float64)
    stop = np.array(hex_to_rgb(right), dtype=np.float64)
    t = np.linspace(0.0, 1.0, width)[:, None]
    row = start + (stop - start) * t
    return np.broadcast_to(row, (height, width, 3))


def render_gradient_circle(
    size: int = CANONICAL_SIZE, rng: random.Random | None = None
) -> GradientCircle:
    """Render a two-band gradient with a solid centered circle.

    The top half blends corner 0 -> 1, the bottom half corner 2 -> 3. The
    circle radius is a third of the canvas.

    Args:
        size: Canvas edge length
        rng: Random source (pass a seeded one for reproducible output)
    """
    rng = rng or random.Random()
    corners = tuple(random_hex_color(rng) for _ in range(4))
    circle = random_hex_color(rng)

    half = size // 2
    pixels = np.concatenate(
        [
            _horizontal_gradient(corners[0], corners[1], size, half),
            _horizontal_gradient(corners[2], corners[3], size, size - half),
        ],
        axis=0,
    )
    image = Image.fromarray(np.rint(pixels).astype(np.uint8))

    radius = size // 3
    cx = cy = size / 2
    ImageDraw.Draw(image).ellipse(
        (cx - radius, cy - radius, cx + radius, cy + radius), fill=hex_to_rgb(circle)
    )

    return GradientCircle(image=image, corners=corners, circle=circle)  # type: ignore[arg-type]


def wrap_text(draw: ImageDraw.ImageDraw, text: str, font, max_width: int) -> list[str]:
    """Greedy word wrap; words wider than a line stay on their own line."""
    lines: list[str] = []
    for paragraph in text.splitlines() or [""]:
        current = ""
        for word in paragraph.split():
            candidate = f"{current} {word}" if current else word
            if current and draw.textlength(candidate, font=font) > max_width:
                lines.append(current)
                current = word
            else:
                current = candidate
        lines.append(current)
    return lines


def _fit_text(
    draw: ImageDraw.ImageDraw, text: str, max_width: int, max_height: int
) -> tuple[ImageFont.FreeTypeFont | ImageFont.ImageFont, str]:
    """Binary search the largest default-font size whose wrapped text fits the box."""
    lo, hi = _MIN_FONT_SIZE, max(max_height, _MIN_FONT_SIZE)
    best_font = ImageFont.load_default(size=_MIN_FONT_SIZE)
    best_text = "\n".join(wrap_text(draw, text, best_font, max_width))

    while lo <= hi:
        mid = (lo + hi) // 2
        font = ImageFont.load_default(size=mid)
        wrapped = "\n".join(wrap_text(draw, text, font, max_width))
        bbox = draw.multiline_textbbox((0, 0), wrapped, font=font, align="center")
        if bbox[2] - bbox[0] <= max_width and bbox[3] - bbox[1] <= max_height:
            best_font, best_text = font, wrapped
            lo = mid + 1
        else:
            hi = mid - 1

    return best_font, best_text


def render_text_card(
    text: str,
    color: str = DEFAULT_TEXT_COLOR,
    size: int = CANONICAL_SIZE,
    background: str = TEXT_BACKGROUND,
) -> Image.Image:
    """Render ``text`` centered on a light square canvas.

    Raises:
        ValueError: If ``text`` is blank or ``color`` is not a hex color
    """
    if not text or not text.strip():
        raise ValueError("Text must be a non-empty string")
    fill = hex_to_rgb(color)

    image = Image.new("RGB", (size, size), hex_to_rgb(background))
    draw = ImageDraw.Draw(image)

    pad = int(size * _PADDING_RATIO)
    font, wrapped = _fit_text(draw, text.strip(), size - 2 * pad, size - 2 * pad)

    bbox = draw.multiline_textbbox((0, 0), wrapped, font=font, align="center")
    x = (size - (bbox[2] - bbox[0])) // 2 - bbox[0]
    y = (size - (bbox[3] - bbox[1])) // 2 - bbox[1]
    draw.multiline_text((x, y), wrapped, fill=fill, font=font, align="center")

    return image
