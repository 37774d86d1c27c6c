"""Gateway configuration from a JSON/YAML file plus provider keys from the environment."""

from __future__ import annotations

from collections.abc import Callable, Mapping
import json
import logging
import os
from pathlib import Path
from typing import Any

import yaml

from rendergate.core.config.models import GatewayConfig

logger = logging.getLogger(__name__)

# Provider section -> environment variables consulted, in order, for its API key
ENV_API_KEYS: dict[str, tuple[str, ...]] = {
    "flux": ("FLUX_API_KEY",),
    "pixellab": ("PIXEL_LAB_API_KEY",),
    "retro_diffusion": ("RETRO_DIFFUSION_API_KEY",),
    "replicate": ("REPLICATE_API_TOKEN",),
    "openai": ("OPENAI_API_KEY",),
}

_FORMATS = {".json": "json", ".yaml": "yaml", ".yml": "yaml"}


def _parse_json(text: str) -> Any:
    try:
        return json.loads(text) if text.strip() else None
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON: {e}") from e


def _parse_yaml(text: str) -> Any:
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML: {e}") from e


_PARSERS: dict[str, Callable[[str], Any]] = {"json": _parse_json, "yaml": _parse_yaml}


def detect_format(file_path: Path | str) -> str:
    """``"json"`` or ``"yaml"`` by extension, case-insensitive.

    Raises:
        ValueError: For any other extension
    """
    suffix = Path(file_path).suffix.lower()
    try:
        return _FORMATS[suffix]
    except KeyError:
        raise ValueError(f"Unsupported config format: {suffix or '(none)'}") from None


def load_config(path: str | Path) -> dict[str, Any]:
    """Parse a config file into a plain mapping; an empty file gives ``{}``.

    Raises:
        FileNotFoundError: If ``path`` does not exist
        ValueError: Unknown extension, unparsable content, or a non-mapping root
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Config file does not exist: {path}")

    parse = _PARSERS[detect_format(path)]
    try:
        content = parse(path.read_text(encoding="utf-8"))
    except ValueError as e:
        raise ValueError(f"{e} ({path})") from e

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ValueError(f"Config root must be a mapping: {path}")
    return content


def load_gateway_config(
    path: str | Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> GatewayConfig:
    """Load and validate gateway configuration.

    A missing file is not an error: every section has defaults. API keys
    left unset in the file are filled from the environment.

    Args:
        path: Optional path to a .json/.yaml/.yml config file
        environ: Environment mapping (defaults to ``os.environ``)

    Returns:
        Validated GatewayConfig

    Raises:
        pydantic.ValidationError: If config is invalid
    """
    if path is not None and Path(path).exists():
        config = GatewayConfig.model_validate(load_config(path))
    else:
        if path is not None:
            logger.warning("Config file %s not found, using defaults", path)
        config = GatewayConfig()

    return apply_env_api_keys(config, os.environ if environ is None else environ)


def apply_env_api_keys(config: GatewayConfig, environ: Mapping[str, str]) -> GatewayConfig:
    """Return a copy of ``config`` with missing provider keys taken from ``environ``."""
    updates: dict[str, Any] = {}

    for section, env_names in ENV_API_KEYS.items():
        provider = getattr(config, section)
        if provider.has_credentials:
            continue
        for env_name in env_names:
            value = environ.get(env_name)
            if value:
                logger.debug("Loaded %s from environment", env_name)
                updates[section] = provider.model_copy(update={"api_key": value})
                break

    return config.model_copy(update=updates) if updates else config
