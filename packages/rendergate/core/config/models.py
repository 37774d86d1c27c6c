"""Configuration models for rendergate."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

MAX_INPUT_BYTES = 20 * 1024 * 1024


class ProviderConfig(BaseModel):
    """Credentials and transport settings for one rendering backend.

    Passed explicitly into each adapter and into the job client; nothing in
    the gateway reads credentials from process-wide state at call time.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    base_url: str = Field(description="Base URL of the provider API")
    api_key: str | None = Field(default=None, repr=False, description="Provider API key")
    timeout_s: float = Field(default=60.0, gt=0, description="Per-request timeout in seconds")
    max_attempts: int = Field(
        default=1, ge=1, description="HTTP attempts per request (1 = never retry)"
    )
    model: str | None = Field(default=None, description="Default model name, if any")

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key and self.api_key.strip())


class PollingConfig(BaseModel):
    """Timing of the submit/poll protocol.

    ``max_polls`` and ``max_duration_s`` are unset by default, which keeps
    polling unbounded. Setting either one turns an over-long job into a
    ``JobTimeoutError``.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    initial_delay_s: float = Field(default=5.0, ge=0.0, description="Wait before first poll")
    interval_s: float = Field(default=1.0, ge=0.0, description="Wait between polls")
    max_polls: int | None = Field(default=None, ge=1, description="Optional poll cap")
    max_duration_s: float | None = Field(
        default=None, gt=0, description="Optional wall-clock cap, submit to last poll"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level",
    )

    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format",
    )

    structured: bool = Field(default=False, description="Emit one JSON object per line")


class GatewayConfig(BaseModel):
    """Top-level gateway configuration.

    Example:
        >>> config = GatewayConfig()
        >>> config.polling.initial_delay_s
        5.0
        >>> config.flux.base_url
        'https://api.bfl.ai/v1'
    """

    model_config = ConfigDict(extra="forbid")

    flux: ProviderConfig = Field(
        default_factory=lambda: ProviderConfig(base_url="https://api.bfl.ai/v1")
    )
    pixellab: ProviderConfig = Field(
        default_factory=lambda: ProviderConfig(
            base_url="https://api.pixellab.ai/v1", timeout_s=90.0
        )
    )
    retro_diffusion: ProviderConfig = Field(
        default_factory=lambda: ProviderConfig(
            base_url="https://api.retrodiffusion.ai/v1", timeout_s=90.0
        )
    )
    replicate: ProviderConfig = Field(
        default_factory=lambda: ProviderConfig(
            base_url="https://api.replicate.com/v1", timeout_s=120.0
        )
    )
    openai: ProviderConfig = Field(
        default_factory=lambda: ProviderConfig(
            base_url="https://api.openai.com/v1", model="gpt-5-mini"
        )
    )
    polling: PollingConfig = Field(default_factory=PollingConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    max_input_bytes: int = Field(
        default=MAX_INPUT_BYTES, gt=0, description="Ceiling for caller-supplied source images"
    )
    default_resolution: str = Field(
        default="ai_latest", description="Resolution profile used when a request names none"
    )
