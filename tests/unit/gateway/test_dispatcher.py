"""End-to-end dispatcher tests against a scripted provider backend."""

from __future__ import annotations

import base64
import json
import random
from io import BytesIO
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import numpy as np
from PIL import Image
import pytest
import pytest_asyncio

from rendergate.core.config.models import GatewayConfig
from rendergate.core.gateway.dispatcher import Dispatcher, coerce_request
from rendergate.core.gateway.errors import AdapterError, SubmissionError, ValidationError
from rendergate.core.gateway.handlers import GatewayHandlers
from rendergate.core.gateway.models import GenerationRequest
from rendergate.core.gateway.registry import build_default_registry
from rendergate.core.imaging.procedural import is_hex_color
from rendergate.core.providers.flux import FLUX_FILL_ENDPOINT
from rendergate.core.providers.poetry import REWRITE_POEM_MODEL
from tests.conftest import FLUX_BASE, FakeProvider, make_png, open_png

POLL_URL = "https://api.bfl.ai/v1/get_result?id=job-9"
SAMPLE_URL = "https://delivery.bfl.ai/job-9/sample.png"
SOURCE_URL = "https://images.example.com/square.png"
WRITTEN = "Ada and Lin chatting in a neon cafe"


def make_jpeg(width: int, height: int, color: tuple[int, int, int] = (30, 90, 160)) -> bytes:
    buf = BytesIO()
    Image.new("RGB", (width, height), color).save(buf, "JPEG")
    return buf.getvalue()


def script_flux(fake: FakeProvider, endpoint: str, result: bytes) -> None:
    fake.add(
        "POST",
        f"{FLUX_BASE}{endpoint}",
        httpx.Response(200, json={"id": "job-9", "polling_url": POLL_URL, "cost": 0.04}),
    )
    fake.add(
        "GET",
        POLL_URL,
        httpx.Response(200, json={"status": "Pending"}),
        httpx.Response(200, json={"status": "Ready", "result": {"sample": SAMPLE_URL}}),
    )
    fake.add("GET", SAMPLE_URL, httpx.Response(200, content=result))


@pytest.fixture
def openai_client() -> MagicMock:
    client = MagicMock()
    client.responses.create = AsyncMock(
        return_value=SimpleNamespace(output_text=WRITTEN)
    )
    return client


@pytest_asyncio.fixture
async def handlers(
    fast_polling_config: GatewayConfig, fake_provider: FakeProvider, openai_client: MagicMock
):
    handlers = GatewayHandlers.from_config(
        fast_polling_config,
        transport=fake_provider.transport,
        openai_client=openai_client,
        rng=random.Random(7),
    )
    yield handlers
    await handlers.aclose()


@pytest.fixture
def dispatcher(handlers: GatewayHandlers) -> Dispatcher:
    return Dispatcher(build_default_registry(handlers))


class TestValidation:
    @pytest.mark.asyncio
    async def test_missing_method(self, dispatcher: Dispatcher) -> None:
        with pytest.raises(ValidationError) as ei:
            await dispatcher.handle({"args": {}})
        assert ei.value.code == "missing_method"
        assert ei.value.http_status == 400

    @pytest.mark.asyncio
    async def test_unknown_method_lists_available(self, dispatcher: Dispatcher) -> None:
        with pytest.raises(ValidationError) as ei:
            await dispatcher.handle({"method": "dalle", "args": {}})
        assert ei.value.message == "Unknown method: dalle"
        assert ei.value.available_methods == dispatcher.registry.names
        assert ei.value.to_payload()["available_methods"][0] == "fluxImage"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("args", [{}, {"prompt": "   "}, {"prompt": None}])
    async def test_missing_prompt_never_reaches_provider(
        self, dispatcher: Dispatcher, fake_provider: FakeProvider, args: dict
    ) -> None:
        with pytest.raises(ValidationError) as ei:
            await dispatcher.handle({"method": "fluxImage", "args": args})
        assert ei.value.message == "Missing required arguments: prompt"
        assert ei.value.missing_fields == ["prompt"]
        assert fake_provider.requests == []

    def test_args_must_be_an_object(self) -> None:
        with pytest.raises(ValidationError) as ei:
            coerce_request({"method": "fluxImage", "args": ["prompt"]})
        assert ei.value.invalid_fields == ["args"]

    @pytest.mark.asyncio
    async def test_prepare_leaves_caller_args_alone(self, dispatcher: Dispatcher) -> None:
        args = {"prompt": "a lighthouse"}
        _, call = dispatcher.prepare(GenerationRequest(method="fluxImage", args=args))
        assert args == {"prompt": "a lighthouse"}
        assert call.args["model"] == "flux2Pro"
        assert call.args["resolution"] == "ai_latest"


class TestQuote:
    @pytest.mark.asyncio
    async def test_simple_method(self, dispatcher: Dispatcher) -> None:
        quote = dispatcher.quote({"method": "fluxImage", "args": {}})
        assert (quote.method, quote.operation, quote.cost, quote.supported) == (
            "fluxImage",
            None,
            1,
            True,
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("operation", "expected_op", "cost"),
        [
            (None, "generate", 3),
            ("generate_thumb", "generate_thumb", 3),
            ("outpaint", "outpaint", 7),
            ("zoom", "generate", 3),
        ],
    )
    async def test_multi_operation(
        self, dispatcher: Dispatcher, operation: str | None, expected_op: str, cost: float
    ) -> None:
        quote = dispatcher.quote({"method": "advancedGenerate", "args": {"operation": operation}})
        assert quote.operation == expected_op
        assert quote.cost == cost

    @pytest.mark.asyncio
    async def test_unknown_method(self, dispatcher: Dispatcher) -> None:
        with pytest.raises(ValidationError):
            dispatcher.quote({"method": "nope"})


class TestHandle:
    @pytest.mark.asyncio
    async def test_flux_image(self, dispatcher: Dispatcher, fake_provider: FakeProvider) -> None:
        script_flux(fake_provider, "/flux-2-pro", make_png(1024, 1024))

        result = await dispatcher.handle(
            GenerationRequest(method="fluxImage", args={"prompt": " a lighthouse "})
        )

        assert result.method == "fluxImage"
        assert result.credit_cost == 1
        assert (result.width, result.height) == (1024, 1024)
        assert result.poll_count == 2
        assert result.duration_ms is not None
        assert result.provider_metadata["prompt"] == "a lighthouse"
        assert result.provider_metadata["job_id"] == "job-9"

    @pytest.mark.asyncio
    async def test_provider_errors_pass_through(
        self, dispatcher: Dispatcher, fake_provider: FakeProvider
    ) -> None:
        fake_provider.add(
            "POST", f"{FLUX_BASE}/flux-2-pro", httpx.Response(401, json={"detail": "bad key"})
        )

        with pytest.raises(SubmissionError) as ei:
            await dispatcher.handle({"method": "fluxImage", "args": {"prompt": "x"}})

        assert ei.value.http_status == 502
        assert ei.value.to_payload()["provider_status"] == 401

    @pytest.mark.asyncio
    async def test_gradient_circle_is_local(
        self, dispatcher: Dispatcher, fake_provider: FakeProvider
    ) -> None:
        result = await dispatcher.handle({"method": "gradientCircle"})

        assert fake_provider.requests == []
        assert result.credit_cost == 0.5
        assert open_png(result.data).size == (1024, 1024)
        assert is_hex_color(result.color_hex)
        assert result.color_hex == result.provider_metadata["colors"]["corners"][0]

    @pytest.mark.asyncio
    async def test_centered_text(self, dispatcher: Dispatcher) -> None:
        result = await dispatcher.handle(
            {"method": "centeredTextOnWhite", "args": {"text": "Hello"}}
        )
        assert result.color_hex == "#000000"
        assert (result.width, result.height) == (1024, 1024)

    @pytest.mark.asyncio
    async def test_centered_text_rejects_bad_color(self, dispatcher: Dispatcher) -> None:
        with pytest.raises(ValidationError) as ei:
            await dispatcher.handle(
                {"method": "centeredTextOnWhite", "args": {"text": "Hello", "color": "red"}}
            )
        assert ei.value.invalid_fields == ["color"]
        assert "Invalid hex color format: red" in ei.value.message

    @pytest.mark.asyncio
    async def test_upload_image_cover_crops(
        self, dispatcher: Dispatcher, fake_provider: FakeProvider
    ) -> None:
        url = "https://images.example.com/wide.png"
        fake_provider.add("GET", url, httpx.Response(200, content=make_png(1600, 900)))

        result = await dispatcher.handle({"method": "uploadImage", "args": {"image_url": url}})

        assert open_png(result.data).size == (1024, 1024)
        assert result.credit_cost == 0.5

    @pytest.mark.asyncio
    async def test_replicate_proxy(
        self, dispatcher: Dispatcher, fake_provider: FakeProvider
    ) -> None:
        encoded = base64.b64encode(make_png(512, 768)).decode("ascii")
        fake_provider.add(
            "POST",
            "https://api.replicate.com/v1/models/owner/model/predictions",
            httpx.Response(
                201,
                json={
                    "id": "p7",
                    "status": "succeeded",
                    "output": f"data:image/png;base64,{encoded}",
                },
            ),
        )

        result = await dispatcher.handle(
            {
                "method": "replicate",
                "args": {"model": "owner/model", "prompt": "fox", "input": '{"steps": 4}'},
            }
        )

        body = json.loads(fake_provider.requests[0].content)
        assert body == {"input": {"prompt": "fox", "steps": 4}}
        assert (result.width, result.height) == (512, 768)
        assert result.credit_cost == 2

    @pytest.mark.asyncio
    async def test_advanced_generate_writes_prompt(
        self,
        dispatcher: Dispatcher,
        fake_provider: FakeProvider,
        openai_client: MagicMock,
    ) -> None:
        script_flux(fake_provider, "/flux-2-pro", make_png(1024, 1024))

        result = await dispatcher.handle(
            {
                "method": "advancedGenerate",
                "args": {"items": '[{"name": "Ada"}, {"name": "Lin"}]'},
            }
        )

        writer_input = json.loads(openai_client.responses.create.await_args.kwargs["input"])
        assert writer_input == {"items": [{"name": "Ada"}, {"name": "Lin"}]}
        body = json.loads(fake_provider.calls("POST", f"{FLUX_BASE}/flux-2-pro")[0].content)
        assert body["prompt"] == "Ada and Lin chatting in a neon cafe"
        assert (result.operation, result.credit_cost) == ("generate", 3)

    @pytest.mark.asyncio
    async def test_advanced_thumbnail(
        self, dispatcher: Dispatcher, fake_provider: FakeProvider, openai_client: MagicMock
    ) -> None:
        script_flux(fake_provider, "/flux-2-pro", make_png(1000, 1000))

        result = await dispatcher.handle(
            {"method": "advancedGenerate", "args": {"operation": "generate_thumb", "prompt": "owl"}}
        )

        body = json.loads(fake_provider.calls("POST", f"{FLUX_BASE}/flux-2-pro")[0].content)
        assert (body["width"], body["height"]) == (1000, 1000)
        assert (result.width, result.height) == (1000, 1000)
        assert result.operation == "generate_thumb"
        openai_client.responses.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_jpeg_sample_is_delivered_as_png(
        self, dispatcher: Dispatcher, fake_provider: FakeProvider
    ) -> None:
        script_flux(fake_provider, "/flux-2-pro", make_jpeg(1024, 1024))

        result = await dispatcher.handle({"method": "fluxImage", "args": {"prompt": "fox"}})

        body = json.loads(fake_provider.calls("POST", f"{FLUX_BASE}/flux-2-pro")[0].content)
        assert body["output_format"] == "png"
        assert result.data.startswith(b"\x89PNG")
        assert (result.format, result.content_type) == ("png", "image/png")
        assert open_png(result.data).format == "PNG"

    @pytest.mark.asyncio
    async def test_advanced_outpaint(
        self, dispatcher: Dispatcher, fake_provider: FakeProvider, openai_client: MagicMock
    ) -> None:
        fake_provider.add("GET", SOURCE_URL, httpx.Response(200, content=make_png(1024, 1024)))
        script_flux(fake_provider, FLUX_FILL_ENDPOINT, make_png(1824, 1024))

        result = await dispatcher.handle(
            {
                "method": "advancedGenerate",
                "args": {"operation": "outpaint", "image_url": SOURCE_URL},
            }
        )

        assert (result.operation, result.credit_cost) == ("outpaint", 7)
        assert (result.width, result.height) == (1824, 1024)
        assert open_png(result.data).size == (1824, 1024)
        assert result.content_type == "image/png"
        fill = fake_provider.calls("POST", f"{FLUX_BASE}{FLUX_FILL_ENDPOINT}")
        body = json.loads(fill[0].content)
        assert body["output_format"] == "png"
        openai_client.responses.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_outpaint_keeps_jpeg_label(
        self, dispatcher: Dispatcher, fake_provider: FakeProvider
    ) -> None:
        fake_provider.add("GET", SOURCE_URL, httpx.Response(200, content=make_png(1024, 1024)))
        script_flux(fake_provider, FLUX_FILL_ENDPOINT, make_jpeg(1824, 1024))

        result = await dispatcher.handle(
            {
                "method": "advancedGenerate",
                "args": {"operation": "outpaint", "image_url": SOURCE_URL},
            }
        )

        assert result.format == "jpeg"
        assert result.content_type == "image/jpeg"


class TestPoeticImages:
    @staticmethod
    def assert_captioned(data: bytes, background: tuple[int, int, int]) -> None:
        image = open_png(data)
        assert image.size == (1024, 1024)
        pixels = np.asarray(image.convert("RGB")).astype(int)
        # Top four fifths untouched
        assert (pixels[:800] == background).all()
        # Band: 0x200020 at alpha 0xb0 over the background
        band = (0x20, 0x00, 0x20)
        expected = [(c * 0xB0 + b * (255 - 0xB0)) / 255 for c, b in zip(band, background)]
        assert np.abs(pixels[1023, 1023] - expected).max() <= 2
        # White caption text inside the band
        assert (pixels[820:].min(axis=2) > 240).any()

    @pytest.mark.asyncio
    async def test_poetic_image_flux(
        self, dispatcher: Dispatcher, fake_provider: FakeProvider, openai_client: MagicMock
    ) -> None:
        script_flux(fake_provider, "/flux-2-pro", make_png(1024, 1024, (10, 120, 200)))

        result = await dispatcher.handle(
            {"method": "poeticImageFlux", "args": {"style": " woodcut "}}
        )

        rewrite = openai_client.responses.create.await_args.kwargs
        assert rewrite["model"] == REWRITE_POEM_MODEL
        assert (rewrite["temperature"], rewrite["max_output_tokens"]) == (0.65, 300)
        assert "INPUT POEM:\n<<<\n" in rewrite["input"]

        body = json.loads(fake_provider.calls("POST", f"{FLUX_BASE}/flux-2-pro")[0].content)
        assert body["prompt"] == f"{WRITTEN}\n\nstyle\n-----\nwoodcut"
        assert result.credit_cost == 2
        assert result.provider_metadata["description"] == WRITTEN
        assert result.content_type == "image/png"
        self.assert_captioned(result.data, (10, 120, 200))

    @pytest.mark.asyncio
    async def test_poetic_image_flux_without_style(
        self, dispatcher: Dispatcher, fake_provider: FakeProvider
    ) -> None:
        script_flux(fake_provider, "/flux-2-pro", make_png(1024, 1024, (10, 120, 200)))

        await dispatcher.handle({"method": "poeticImageFlux"})

        body = json.loads(fake_provider.calls("POST", f"{FLUX_BASE}/flux-2-pro")[0].content)
        assert body["prompt"] == WRITTEN

    @pytest.mark.asyncio
    async def test_poetic_image_with_dalle(
        self, dispatcher: Dispatcher, fake_provider: FakeProvider, openai_client: MagicMock
    ) -> None:
        encoded = base64.b64encode(make_png(1024, 1024, (200, 180, 40))).decode("ascii")
        openai_client.images.generate = AsyncMock(
            return_value=SimpleNamespace(
                data=[SimpleNamespace(b64_json=encoded, url=None, revised_prompt="a fox at dusk")]
            )
        )

        result = await dispatcher.handle({"method": "poeticImage", "args": {"style": "linocut"}})

        kwargs = openai_client.images.generate.await_args.kwargs
        assert kwargs["model"] == "dall-e-3"
        assert (kwargs["n"], kwargs["size"], kwargs["response_format"]) == (
            1,
            "1024x1024",
            "b64_json",
        )
        assert "lower 1/5 of the image blank" in kwargs["prompt"]
        assert kwargs["prompt"].rstrip().endswith(f"POEM:\n{WRITTEN}")
        assert "STYLE:\nlinocut" in kwargs["prompt"]
        assert fake_provider.requests == []
        assert result.credit_cost == 2
        assert result.provider_metadata["description"] == WRITTEN
        assert result.provider_metadata["revised_prompt"] == "a fox at dusk"
        self.assert_captioned(result.data, (200, 180, 40))

    @pytest.mark.asyncio
    async def test_rewrite_failure_stops_before_rendering(
        self, dispatcher: Dispatcher, fake_provider: FakeProvider, openai_client: MagicMock
    ) -> None:
        openai_client.responses.create = AsyncMock(return_value=SimpleNamespace(output_text=""))

        with pytest.raises(AdapterError, match="Failed to generate"):
            await dispatcher.handle({"method": "poeticImageFlux"})
        assert fake_provider.requests == []
