"""Tests for the Flux adapter (text-to-image, edit, fill)."""

from __future__ import annotations

import base64
import json

import httpx
import pytest

from rendergate.core.config.models import GatewayConfig
from rendergate.core.gateway.errors import AdapterError, ValidationError
from rendergate.core.providers.flux import (
    FluxAdapter,
    check_input_size,
    flux_endpoint,
    prepare_square_source,
)
from tests.conftest import FLUX_BASE, FakeProvider, RecordingSleep, make_png, open_png

POLL_URL = "https://api.bfl.ai/v1/get_result?id=job-1"
SAMPLE_URL = "https://delivery.bfl.ai/job-1/sample.png"
SOURCE_URL = "https://images.example.com/source.jpg"


def script_job(fake: FakeProvider, endpoint: str, result: bytes) -> None:
    fake.add(
        "POST",
        f"{FLUX_BASE}{endpoint}",
        httpx.Response(200, json={"id": "job-1", "polling_url": POLL_URL, "cost": 0.03}),
    )
    fake.add(
        "GET",
        POLL_URL,
        httpx.Response(200, json={"status": "Ready", "result": {"sample": SAMPLE_URL}}),
    )
    fake.add("GET", SAMPLE_URL, httpx.Response(200, content=result))


@pytest.fixture
def flux(
    gateway_config: GatewayConfig, fake_provider: FakeProvider, recording_sleep: RecordingSleep
) -> FluxAdapter:
    return FluxAdapter.from_config(
        gateway_config, transport=fake_provider.transport, sleep=recording_sleep
    )


def test_flux_endpoint() -> None:
    assert flux_endpoint("flux2Pro") == "/flux-2-pro"
    assert flux_endpoint("fluxKlein") == "/flux-2-klein-9b"
    assert flux_endpoint("flux2Flex") == "/flux-2-flex"
    assert flux_endpoint(None) == "/flux-2-pro"
    assert flux_endpoint("mystery") == "/flux-2-pro"


def test_check_input_size() -> None:
    check_input_size(b"x" * 10, 10)
    with pytest.raises(ValidationError) as ei:
        check_input_size(b"x" * 11, 10, stage="after resize")
    assert ei.value.code == "input_too_large"
    assert "after resize" in ei.value.message


def test_prepare_square_source() -> None:
    square = make_png(1024, 1024)
    assert prepare_square_source(square) is square
    assert open_png(prepare_square_source(make_png(1600, 900))).size == (1024, 1024)
    with pytest.raises(ValidationError) as ei:
        prepare_square_source(b"garbage")
    assert ei.value.code == "invalid_image"


@pytest.mark.asyncio
async def test_generate_at_pixel_art_tier(flux: FluxAdapter, fake_provider: FakeProvider) -> None:
    script_job(fake_provider, "/flux-2-klein-9b", make_png(1024, 1024, (90, 10, 200)))

    image = await flux.generate("a knight", {"model": "fluxKlein", "resolution": "nes_8bit"})
    await flux.aclose()

    body = json.loads(fake_provider.calls("POST", f"{FLUX_BASE}/flux-2-klein-9b")[0].content)
    assert body["width"] == 1024
    assert body["height"] == 1024
    assert body["seed"] == 0
    assert body["prompt_upsampling"] is False
    assert body["prompt"].startswith("a knight, ")
    assert "no gradients" in body["prompt"]

    assert (image.width, image.height) == (1024, 1024)
    assert open_png(image.data).size == (1024, 1024)
    assert image.poll_count == 1
    assert image.metadata["resolution"] == "nes_8bit"
    assert image.metadata["job_id"] == "job-1"


@pytest.mark.asyncio
async def test_generate_at_canonical_tier_keeps_prompt(
    flux: FluxAdapter, fake_provider: FakeProvider
) -> None:
    result = make_png(1024, 1024)
    script_job(fake_provider, "/flux-2-pro", result)

    image = await flux.generate("a lighthouse", {})
    await flux.aclose()

    body = json.loads(fake_provider.calls("POST", f"{FLUX_BASE}/flux-2-pro")[0].content)
    assert body["prompt"] == "a lighthouse"
    assert image.data == result


@pytest.mark.asyncio
async def test_edit_sends_normalized_source(flux: FluxAdapter, fake_provider: FakeProvider) -> None:
    fake_provider.add("GET", SOURCE_URL, httpx.Response(200, content=make_png(800, 600)))
    script_job(fake_provider, "/flux-2-pro", make_png(1024, 1024))

    image = await flux.edit("make it snow", SOURCE_URL)
    await flux.aclose()

    body = json.loads(fake_provider.calls("POST", f"{FLUX_BASE}/flux-2-pro")[0].content)
    source = open_png(base64.b64decode(body["input_image"]))
    assert source.size == (1024, 1024)
    assert body["prompt"] == "make it snow"
    assert body["output_format"] == "png"
    assert (image.width, image.height) == (1024, 1024)


@pytest.mark.asyncio
async def test_edit_fails_when_output_dimensions_unknown(
    flux: FluxAdapter, fake_provider: FakeProvider
) -> None:
    fake_provider.add("GET", SOURCE_URL, httpx.Response(200, content=make_png(1024, 1024)))
    script_job(fake_provider, "/flux-2-pro", b"corrupt")

    with pytest.raises(AdapterError, match="Unable to determine output image dimensions"):
        await flux.edit("x", SOURCE_URL)
    await flux.aclose()


@pytest.mark.asyncio
async def test_edit_rejects_oversized_source_before_submit(
    gateway_config: GatewayConfig, fake_provider: FakeProvider, recording_sleep: RecordingSleep
) -> None:
    config = gateway_config.model_copy(update={"max_input_bytes": 20})
    flux = FluxAdapter.from_config(config, transport=fake_provider.transport, sleep=recording_sleep)
    fake_provider.add("GET", SOURCE_URL, httpx.Response(200, content=make_png(64, 64)))

    with pytest.raises(ValidationError) as ei:
        await flux.edit("x", SOURCE_URL)
    await flux.aclose()

    assert ei.value.code == "input_too_large"
    assert fake_provider.calls("POST", f"{FLUX_BASE}/flux-2-pro") == []


@pytest.mark.asyncio
async def test_unfetchable_source_is_validation_error(
    flux: FluxAdapter, fake_provider: FakeProvider
) -> None:
    fake_provider.add("GET", SOURCE_URL, httpx.Response(404, text="missing"))

    with pytest.raises(ValidationError) as ei:
        await flux.edit("x", SOURCE_URL)
    await flux.aclose()

    assert ei.value.code == "image_unavailable"
    assert ei.value.invalid_fields == ["image_url"]
