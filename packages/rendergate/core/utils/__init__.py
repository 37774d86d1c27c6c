"""Shared utilities for rendergate."""

from rendergate.core.utils.logging import configure_logging, get_logger
from rendergate.core.utils.math import clamp

__all__ = [
    "clamp",
    "configure_logging",
    "get_logger",
]
