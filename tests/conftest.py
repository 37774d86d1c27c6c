"""Shared pytest fixtures for rendergate tests."""

from __future__ import annotations

from collections.abc import Callable
from io import BytesIO
from typing import Any

import httpx
from PIL import Image
import pytest

from rendergate.core.config.loader import apply_env_api_keys
from rendergate.core.config.models import GatewayConfig, PollingConfig

FLUX_BASE = "https://api.bfl.ai/v1"
FAKE_KEYS = {
    "FLUX_API_KEY": "flux-key",
    "PIXEL_LAB_API_KEY": "pixellab-key",
    "RETRO_DIFFUSION_API_KEY": "rd-key",
    "REPLICATE_API_TOKEN": "replicate-key",
    "OPENAI_API_KEY": "openai-key",
}


def make_png(
    width: int = 64,
    height: int = 64,
    color: tuple[int, ...] = (200, 30, 30),
    mode: str = "RGB",
) -> bytes:
    """Encode a solid-color test image."""
    buf = BytesIO()
    Image.new(mode, (width, height), color).save(buf, "PNG")
    return buf.getvalue()


def open_png(data: bytes) -> Image.Image:
    img = Image.open(BytesIO(data))
    img.load()
    return img


ResponseSpec = httpx.Response | Callable[[httpx.Request], httpx.Response]


class FakeProvider:
    """Scripted HTTP backend for ``httpx.MockTransport``.

    Each (method, url) route holds a queue of responses; the last one repeats.
    Every request is recorded.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[ResponseSpec]] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, url: str, *responses: ResponseSpec) -> FakeProvider:
        self.routes.setdefault((method.upper(), url), []).extend(responses)
        return self

    def calls(self, method: str, url: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method.upper() and str(r.url) == url]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, str(request.url)))
        if not queue:
            return httpx.Response(404, json={"detail": f"no route for {request.url}"})
        spec = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(spec) and not isinstance(spec, httpx.Response):
            return spec(request)
        return httpx.Response(spec.status_code, headers=spec.headers, content=spec.content)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


class RecordingSleep:
    """Drop-in for asyncio.sleep that returns immediately and records waits."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def gateway_config() -> GatewayConfig:
    """Config with fake credentials for every backend and default polling."""
    return apply_env_api_keys(GatewayConfig(), FAKE_KEYS)


@pytest.fixture
def fast_polling_config(gateway_config: GatewayConfig) -> GatewayConfig:
    return gateway_config.model_copy(
        update={"polling": PollingConfig(initial_delay_s=0.0, interval_s=0.0)}
    )


@pytest.fixture
def png_1024() -> bytes:
    return make_png(1024, 1024, (10, 120, 200))


@pytest.fixture
def json_response() -> Callable[..., httpx.Response]:
    def _build(body: Any, status: int = 200) -> httpx.Response:
        return httpx.Response(status, json=body)

    return _build
