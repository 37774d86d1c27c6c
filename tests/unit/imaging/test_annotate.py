"""Tests for the poem caption band."""

from __future__ import annotations

import numpy as np
from PIL import Image
import pytest

from rendergate.core.imaging.annotate import (
    POEM_BAND_FILL,
    annotate_poem,
    band_height,
    normalize_typography,
)


def test_normalize_typography() -> None:
    text = "\u201cDon\u2019t\u201d \u2013 wait\u2014now\u2026 go"
    assert normalize_typography(text) == "\"Don't\" - wait--now... go"


@pytest.mark.parametrize(("height", "band"), [(1024, 204), (500, 100), (3, 1)])
def test_band_is_bottom_fifth(height: int, band: int) -> None:
    assert band_height(height) == band


def test_band_darkens_only_the_bottom_fifth() -> None:
    source = Image.new("RGB", (400, 500), (250, 250, 250))
    out = annotate_poem(source, "")
    pixels = np.asarray(out).astype(int)

    assert out.mode == "RGBA"
    assert out.size == (400, 500)
    assert (pixels[:400, :, :3] == 250).all()
    r, g, b, alpha = POEM_BAND_FILL
    expected = [(c * alpha + 250 * (255 - alpha)) / 255 for c in (r, g, b)]
    assert np.abs(pixels[450, 200, :3] - expected).max() <= 2
    assert (pixels[400:, :, 3] == 255).all()


def test_caption_is_white_and_inside_band() -> None:
    source = Image.new("RGB", (1024, 1024), (0, 0, 0))
    out = annotate_poem(source, "Under the copper moon,\na paper heron sang.")
    pixels = np.asarray(out.convert("RGB"))
    bright = pixels.min(axis=2) > 240

    assert not bright[:820].any()
    assert bright[820:].any()
    rows = np.flatnonzero(bright.any(axis=1))
    # Vertically centered in the band
    assert abs((rows.min() + rows.max()) / 2 - (820 + 1024) / 2) < 24
    # Left aligned
    assert np.flatnonzero(bright.any(axis=0)).min() < 16


def test_long_poem_wraps_to_image_width() -> None:
    source = Image.new("RGB", (300, 600), (0, 0, 0))
    out = annotate_poem(source, "the luminous switchboard hums " * 3)
    bright = np.asarray(out.convert("RGB")).min(axis=2) > 240
    assert np.flatnonzero(bright.any(axis=1)).size > 40
