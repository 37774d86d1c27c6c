"""Gateway configuration: provider credentials, polling timing, logging."""

from rendergate.core.config.loader import load_config, load_gateway_config
from rendergate.core.config.models import (
    MAX_INPUT_BYTES,
    GatewayConfig,
    LoggingConfig,
    PollingConfig,
    ProviderConfig,
)

__all__ = [
    "MAX_INPUT_BYTES",
    "GatewayConfig",
    "LoggingConfig",
    "PollingConfig",
    "ProviderConfig",
    "load_config",
    "load_gateway_config",
]
