"""Caption band drawn over the bottom of a generated image."""

from __future__ import annotations

from PIL import Image, ImageDraw, ImageFont

from rendergate.core.imaging.procedural import wrap_text

POEM_BAND_FILL = (0x20, 0x00, 0x20, 0xB0)
POEM_FONT_SIZE = 32
POEM_TEXT_FILL = (255, 255, 255, 255)

# Captions are printed with ASCII punctuation only
_TYPOGRAPHY = str.maketrans(
    {
        "\u2018": "'",
        "\u2019": "'",
        "\u201c": '"',
        "\u201d": '"',
        "\u2013": "-",
        "\u2014": "--",
        "\u2026": "...",
        "\u00a0": " ",
    }
)


def normalize_typography(text: str) -> str:
    """Replace curly quotes, dashes, ellipses and non-breaking spaces with ASCII."""
    return text.translate(_TYPOGRAPHY)


def band_height(height: int) -> int:
    """The caption band covers the bottom fifth."""
    return max(1, height // 5)


def annotate_poem(image: Image.Image, poem: str) -> Image.Image:
    """Draw a translucent band over the bottom fifth and print ``poem`` in it.

    The text is white, left-aligned, wrapped to the image width and
    centered vertically in the band. Returns a new RGBA image.
    """
    base = image.convert("RGBA")
    width, height = base.size
    band = band_height(height)
    top = height - band

    overlay = Image.new("RGBA", base.size, (0, 0, 0, 0))
    ImageDraw.Draw(overlay).rectangle((0, top, width, height), fill=POEM_BAND_FILL)
    composed = Image.alpha_composite(base, overlay)

    draw = ImageDraw.Draw(composed)
    font = ImageFont.load_default(size=POEM_FONT_SIZE)
    text = "\n".join(wrap_text(draw, normalize_typography(poem).strip(), font, width))
    if text.strip():
        bbox = draw.multiline_textbbox((0, 0), text, font=font)
        y = top + (band - (bbox[3] - bbox[1])) / 2 - bbox[1]
        draw.multiline_text((0, y), text, font=font, fill=POEM_TEXT_FILL)
    return composed
