"""LLM text for the gateway via the OpenAI Responses API.

Turns a caller's ``items`` (plus an optional free-text prompt) into one
Flux prompt for advanced generation, and rewrites seed poems for the
poetic image methods.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any

from openai import AsyncOpenAI, OpenAIError

from rendergate.core.config.models import ProviderConfig
from rendergate.core.gateway.errors import AdapterError
from rendergate.core.providers.poetry import (
    REWRITE_POEM_MAX_TOKENS,
    REWRITE_POEM_MODEL,
    REWRITE_POEM_TEMPERATURE,
    rewrite_poem_prompt,
)

logger = logging.getLogger(__name__)

DEFAULT_PROMPT_MODEL = "gpt-5-mini"
MAX_OUTPUT_TOKENS = 600

PROMPT_WRITER_INSTRUCTIONS = "\n".join(
    [
        "You write a single Flux 2 Pro image prompt. Output ONLY that prompt, with no JSON, "
        "explanations or labels.",
        "",
        "Use the values from the input (names, text, titles) in your prompt, but never spell "
        "out data-structure terms. Do NOT put field names, type names or keys from the data "
        "into the image. The image should feel like real content, not a schema or debug view.",
        "",
        "First choose ONE output style (or use input.mode when provided), then follow that "
        "style's rules exactly.",
        "",
        "--- STYLE 1: UI WITH TEXT ---",
        "For app screens, interfaces, dashboards or UI with visible text. Describe only the "
        "inner layout: panels, sections, buttons, labels, and the exact text and where it goes. "
        "No OS windows, title bars or desktop. End with 'clean UI, readable text, [era/style].'",
        "",
        "--- STYLE 2: PICTURE ---",
        "For a standalone illustration, scene, portrait or mood piece. Describe subject, "
        "composition, lighting, mood and medium. No UI elements, speech bubbles or dialogue.",
        "",
        "--- STYLE 3: CHARACTERS TALKING ---",
        "For conversation or characters interacting. Name each character and the setting, make "
        "it clear they are talking, and label each speaker by name.",
        "",
        "--- GENERAL ---",
        "Base the image on the user's items and prompt. Use actual names and content, never data "
        "keys. Infer each person's likely depiction from context in the input. Output only the "
        "Flux prompt: one paragraph, concrete and vivid.",
    ]
)


def build_writer_input(items: Any, prompt: str | None = None) -> str:
    """Serialize the writer input as pretty JSON."""
    payload: dict[str, Any] = {"items": items if items is not None else []}
    if prompt and prompt.strip():
        payload["prompt"] = prompt.strip()
    return json.dumps(payload, indent=2, default=str)


def extract_output_text(response: Any) -> str:
    """``output_text`` when present, else the first text part of the output list."""
    text = getattr(response, "output_text", None)
    if isinstance(text, str) and text.strip():
        return text.strip()
    for item in getattr(response, "output", None) or []:
        for part in getattr(item, "content", None) or []:
            part_text = getattr(part, "text", None)
            if isinstance(part_text, str) and part_text.strip():
                return part_text.strip()
    return ""


class OpenAIService:
    """Lazily built ``AsyncOpenAI`` client shared by the OpenAI-backed services.

    Args:
        provider: OpenAI base URL, key, timeout and model
        client: Optional pre-built AsyncOpenAI client (useful for testing)
    """

    name = "openai"

    def __init__(self, provider: ProviderConfig, *, client: AsyncOpenAI | None = None) -> None:
        self.provider = provider
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self.provider.has_credentials:
                raise AdapterError("OPENAI_API_KEY missing", provider=self.name)
            self._client = AsyncOpenAI(
                api_key=self.provider.api_key,
                base_url=self.provider.base_url,
                timeout=self.provider.timeout_s,
                max_retries=self.provider.max_attempts - 1,
            )
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.close()

    def error_from(self, label: str, error: OpenAIError) -> AdapterError:
        return AdapterError(
            f"{label} failed: {error}",
            provider=self.name,
            status_code=getattr(error, "status_code", None),
        )


class PromptWriter(OpenAIService):
    """Write a Flux prompt with an OpenAI model, and rewrite seed poems."""

    def __init__(self, provider: ProviderConfig, *, client: AsyncOpenAI | None = None) -> None:
        super().__init__(provider, client=client)
        self.model = provider.model or DEFAULT_PROMPT_MODEL

    async def _respond(self, label: str, **request: Any) -> str:
        client = self._get_client()
        start = time.perf_counter()
        try:
            response = await client.responses.create(**request)
        except OpenAIError as e:
            raise self.error_from(label, e) from e
        finally:
            logger.debug("%s finished in %dms", label, (time.perf_counter() - start) * 1000)

        text = extract_output_text(response)
        if not text:
            raise AdapterError("Failed to generate", provider=self.name)
        logger.debug("%s output: %s", label, text[:500])
        return text

    async def write(self, items: Any, prompt: str | None = None) -> str:
        """Return the generated Flux prompt.

        Raises:
            AdapterError: If the API call fails or returns no text
        """
        return await self._respond(
            "OpenAI prompt writer",
            model=self.model,
            instructions=PROMPT_WRITER_INSTRUCTIONS,
            input=build_writer_input(items, prompt),
            reasoning={"effort": "minimal"},
            max_output_tokens=MAX_OUTPUT_TOKENS,
        )

    async def rewrite_poem(self, poem: str) -> str:
        """Rewrite a seed poem into readable lines, keeping its odd vocabulary.

        Raises:
            AdapterError: If the API call fails or returns no text
        """
        return await self._respond(
            "OpenAI poem rewrite",
            model=REWRITE_POEM_MODEL,
            input=rewrite_poem_prompt(poem),
            temperature=REWRITE_POEM_TEMPERATURE,
            max_output_tokens=REWRITE_POEM_MAX_TOKENS,
        )
