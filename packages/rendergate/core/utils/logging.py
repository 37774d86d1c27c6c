"""Root logging setup for the gateway.

``configure_logging`` installs exactly one handler on the root logger, text
or JSON lines, on stdout or a file. Gateway modules log through plain
``logging.getLogger(__name__)`` and pass request context (method, job id,
poll count) via ``extra``; the JSON formatter lifts those fields into the
record's ``context`` object.
"""

from __future__ import annotations

from collections.abc import Mapping, MutableMapping
import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

from rendergate.core.config.models import LoggingConfig

DEFAULT_TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Attributes every LogRecord has; anything else arrived through ``extra``
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", logging.NOTSET, "", 0, "", (), None).__dict__
) | {"message", "asctime", "taskName"}

# Third-party loggers that drown out provider traces at DEBUG
QUIET_LOGGERS: Mapping[str, int] = {
    "httpx": logging.ERROR,
    "httpcore": logging.ERROR,
    "openai": logging.ERROR,
    "asyncio": logging.ERROR,
    "PIL": logging.WARNING,
}


def _record_context(record: logging.LogRecord) -> dict[str, Any]:
    context: dict[str, Any] = {
        "logger_name": record.name,
        "module": record.module,
        "function": record.funcName,
        "line": record.lineno,
    }
    context.update(
        (key, value)
        for key, value in vars(record).items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    )
    return context


class StructuredJSONFormatter(logging.Formatter):
    """One JSON object per line: ``level``, ``message``, ``timestamp``, ``context``.

    Exceptions add ``error_type``, ``error_message`` and ``stack_trace`` to
    the context.
    """

    def format(self, record: logging.LogRecord) -> str:
        context = _record_context(record)

        if record.exc_info and record.exc_info[1] is not None:
            exc_type, exc, _ = record.exc_info
            context["error_type"] = exc_type.__name__ if exc_type else type(exc).__name__
            context["error_message"] = str(exc)
            context["stack_trace"] = record.exc_text or self.formatException(record.exc_info)

        return json.dumps(
            {
                "level": record.levelname,
                "message": record.getMessage(),
                "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
                "context": context,
            },
            default=str,
        )


class ContextAdapter(logging.LoggerAdapter):
    """LoggerAdapter that merges its context with per-call ``extra``.

    The stock adapter replaces a call's ``extra`` with its own; here the
    call's keys win and the adapter's fill in the rest.
    """

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**(self.extra or {}), **kwargs.get("extra", {})}
        return msg, kwargs


def _build_handler(filename: str | None, formatter: logging.Formatter) -> logging.Handler:
    handler: logging.Handler = (
        logging.FileHandler(filename) if filename else logging.StreamHandler(sys.stdout)
    )
    handler.setFormatter(formatter)
    return handler


def configure_logging(
    level: str = "INFO",
    format_string: str | None = None,
    filename: str | None = None,
    structured: bool = False,
) -> None:
    """Replace the root handlers with a single text or JSON handler.

    Args:
        level: Level name, any case
        format_string: Text layout; ignored when ``structured`` is set
        filename: Append to this file instead of stdout
        structured: Emit JSON lines via ``StructuredJSONFormatter``
    """
    formatter = (
        StructuredJSONFormatter()
        if structured
        else logging.Formatter(format_string or DEFAULT_TEXT_FORMAT)
    )
    logging.basicConfig(
        level=logging.getLevelName(level.upper()),
        handlers=[_build_handler(filename, formatter)],
        force=True,
    )
    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)


def configure_logging_from_config(config: LoggingConfig, filename: str | None = None) -> None:
    configure_logging(
        level=config.level,
        format_string=config.format,
        filename=filename,
        structured=config.structured,
    )


def get_logger(name: str, **context: Any) -> logging.Logger | logging.LoggerAdapter:
    """``logging.getLogger(name)``, wrapped in a ``ContextAdapter`` when context is given."""
    logger = logging.getLogger(name)
    return ContextAdapter(logger, context) if context else logger
