"""Canvas compositing for widescreen outpainting."""

from __future__ import annotations

from PIL import Image

OUTPAINT_INPUT_SIZE = 1024
OUTPAINT_WIDTH = 1824
OUTPAINT_HEIGHT = 1024
OUTPAINT_LEFT_OFFSET = (OUTPAINT_WIDTH - OUTPAINT_INPUT_SIZE) // 2


def build_outpaint_canvas(source: Image.Image) -> Image.Image:
    """Center a 1024x1024 source on a transparent 1824x1024 canvas.

    The transparent side bands are the mask the fill provider paints into.

    Raises:
        ValueError: If ``source`` is not 1024x1024
    """
    if source.size != (OUTPAINT_INPUT_SIZE, OUTPAINT_INPUT_SIZE):
        raise ValueError(
            f"Outpaint source must be {OUTPAINT_INPUT_SIZE}x{OUTPAINT_INPUT_SIZE}, "
            f"got {source.width}x{source.height}"
        )
    canvas = Image.new("RGBA", (OUTPAINT_WIDTH, OUTPAINT_HEIGHT), (0, 0, 0, 0))
    canvas.paste(source.convert("RGBA"), (OUTPAINT_LEFT_OFFSET, 0))
    return canvas
