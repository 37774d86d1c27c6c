"""Tests for image codec helpers and the procedural generators."""

from __future__ import annotations

import random

import numpy as np
import pytest

from rendergate.core.imaging.codec import (
    ImageDecodeError,
    decode_image,
    encode_png,
    read_metadata,
    reencode_png,
)
from rendergate.core.imaging.procedural import (
    hex_to_rgb,
    is_hex_color,
    render_gradient_circle,
    render_text_card,
)
from tests.conftest import make_png


def test_decode_image_rejects_garbage() -> None:
    with pytest.raises(ImageDecodeError):
        decode_image(b"")
    with pytest.raises(ImageDecodeError):
        decode_image(b"definitely not an image")


def test_read_metadata_is_best_effort() -> None:
    meta = read_metadata(make_png(40, 30))
    assert meta is not None
    assert (meta.width, meta.height, meta.format) == (40, 30, "png")

    assert read_metadata(b"\x89PNG truncated") is None
    assert read_metadata(b"") is None


def test_reencode_png_reports_true_dimensions() -> None:
    data, width, height = reencode_png(make_png(17, 9))
    assert (width, height) == (17, 9)
    assert data.startswith(b"\x89PNG")


def test_encode_png_keeps_alpha() -> None:
    image = decode_image(make_png(8, 8, (1, 2, 3, 0), mode="RGBA"))
    assert decode_image(encode_png(image)).mode == "RGBA"


@pytest.mark.parametrize(
    ("value", "expected"),
    [("#000000", (0, 0, 0)), ("#fff", (255, 255, 255)), ("#1A2b3C", (26, 43, 60))],
)
def test_hex_to_rgb(value: str, expected: tuple[int, int, int]) -> None:
    assert hex_to_rgb(value) == expected


@pytest.mark.parametrize("value", ["000000", "#12345", "#ggg", "red", ""])
def test_invalid_hex_colors(value: str) -> None:
    assert not is_hex_color(value)
    with pytest.raises(ValueError, match="Invalid hex color format"):
        hex_to_rgb(value)


def test_gradient_circle_is_reproducible_with_seed() -> None:
    first = render_gradient_circle(rng=random.Random(42))
    second = render_gradient_circle(rng=random.Random(42))

    assert first.corners == second.corners
    assert first.circle == second.circle
    assert first.image.size == (1024, 1024)
    assert all(is_hex_color(c) for c in (*first.corners, first.circle))


def test_gradient_circle_layout() -> None:
    result = render_gradient_circle(size=300, rng=random.Random(1))
    pixels = np.asarray(result.image)

    assert tuple(pixels[150, 150]) == hex_to_rgb(result.circle)
    assert tuple(pixels[0, 0]) == hex_to_rgb(result.corners[0])
    assert tuple(pixels[0, 299]) == hex_to_rgb(result.corners[1])
    assert tuple(pixels[299, 0]) == hex_to_rgb(result.corners[2])


def test_text_card_draws_text_centered() -> None:
    image = render_text_card("Hello gateway", color="#ff0000", size=256)
    pixels = np.asarray(image)

    assert image.size == (256, 256)
    assert tuple(pixels[0, 0]) == (240, 240, 240)
    red = (pixels[:, :, 0] > 200) & (pixels[:, :, 1] < 60) & (pixels[:, :, 2] < 60)
    ys, xs = np.nonzero(red)
    assert len(xs) > 0
    assert abs(xs.mean() - 128) < 32
    assert abs(ys.mean() - 128) < 32


def test_text_card_rejects_blank_text() -> None:
    with pytest.raises(ValueError):
        render_text_card("   ")
