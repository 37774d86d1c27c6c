"""Debug-level tracing of provider HTTP traffic.

Records carry ``provider_host``, ``method``, ``url``, ``attempt`` and, for
requests, the outgoing headers with credentials masked. Query parameters
that look like credentials are masked in the logged URL as well.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Mapping
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger("rendergate.core.api.http")

REDACTED = "***REDACTED***"

# Query keys masked in logged URLs (signed asset links, key-in-query APIs)
SECRET_QUERY_KEYS = frozenset({"key", "api_key", "token", "signature", "sig", "x-amz-signature"})


def redact_headers(headers: Mapping[str, str], redact: Iterable[str]) -> dict[str, str]:
    """Copy ``headers`` with every name in ``redact`` (any case) masked."""
    masked = {name.lower() for name in redact}
    return {name: REDACTED if name.lower() in masked else value for name, value in headers.items()}


def redact_url(url: str) -> str:
    """Mask credential-like query values; other URLs come back unchanged."""
    parts = urlsplit(url)
    if not parts.query:
        return url
    query = [
        (k, REDACTED if k.lower() in SECRET_QUERY_KEYS else v)
        for k, v in parse_qsl(parts.query, keep_blank_values=True)
    ]
    return urlunsplit(parts._replace(query=urlencode(query, safe="*")))


class RequestTrace(BaseModel):
    """One attempt of one request, from send to response."""

    model_config = ConfigDict(frozen=True)

    method: str
    url: str
    attempt: int = 1
    started: float = Field(default_factory=time.perf_counter)

    @property
    def provider_host(self) -> str:
        return urlsplit(self.url).netloc

    def _fields(self) -> dict[str, object]:
        return {
            "provider_host": self.provider_host,
            "method": self.method,
            "url": redact_url(self.url),
            "attempt": self.attempt,
        }

    def sent(self, headers: Mapping[str, str], redact: Iterable[str]) -> None:
        logger.debug(
            "HTTP request",
            extra={**self._fields(), "headers": redact_headers(headers, redact)},
        )

    def received(self, status_code: int) -> int:
        """Log the response status and return the elapsed milliseconds."""
        elapsed_ms = int((time.perf_counter() - self.started) * 1000)
        logger.debug(
            "HTTP response",
            extra={**self._fields(), "status_code": status_code, "elapsed_ms": elapsed_ms},
        )
        return elapsed_ms
