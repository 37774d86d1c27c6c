from __future__ import annotations

import random

import httpx
from pydantic import BaseModel, Field, model_validator


class RetryPolicy(BaseModel):
    """When ``AsyncApiClient`` may repeat a failed attempt, and how long it waits.

    The default is a single attempt: submit, poll and fetch failures surface
    to the gateway as stage errors. A provider's ``max_attempts`` setting
    raises the limit for that backend's client.

    Only idempotent reads are repeated, and only after a transport failure
    or one of ``retry_on_status``.
    """

    model_config = {"frozen": True}

    max_attempts: int = Field(default=1, ge=1)
    base_delay_s: float = Field(default=0.25, ge=0.0)
    max_delay_s: float = Field(default=5.0, ge=0.0)
    # Fraction of the delay, e.g. 0.15 = +/-15%
    jitter: float = Field(default=0.15, ge=0.0, le=1.0)
    retry_on_status: frozenset[int] = frozenset({429, 500, 502, 503, 504})
    retry_methods: frozenset[str] = frozenset({"GET", "HEAD"})

    @model_validator(mode="after")
    def _check_delay_bounds(self) -> RetryPolicy:
        if self.max_delay_s < self.base_delay_s:
            raise ValueError("max_delay_s must be >= base_delay_s")
        return self

    def should_retry(self, method: str, attempt: int, status_code: int | None = None) -> bool:
        """True if attempt number ``attempt`` (1-indexed) may be followed by another.

        ``status_code`` is None for timeouts and connection failures.
        """
        return (
            attempt < self.max_attempts
            and method.upper() in self.retry_methods
            and (status_code is None or status_code in self.retry_on_status)
        )

    def compute_delay(self, attempt: int) -> float:
        delay = min(self.max_delay_s, self.base_delay_s * 2 ** (attempt - 1))
        if not self.jitter:
            return delay
        spread = delay * self.jitter
        return max(0.0, delay + random.uniform(-spread, spread))

    def delay_after(self, attempt: int, response: httpx.Response | None = None) -> float:
        """Backoff before the next attempt; a numeric Retry-After wins, capped at ``max_delay_s``."""
        if response is not None:
            hinted = parse_retry_after_seconds(response.headers.get("Retry-After"))
            if hinted is not None:
                return min(hinted, self.max_delay_s)
        return self.compute_delay(attempt)


def parse_retry_after_seconds(value: str | None) -> float | None:
    """Seconds from a numeric Retry-After value; HTTP-date and junk give None."""
    try:
        seconds = float((value or "").strip())
    except ValueError:
        return None
    return seconds if seconds >= 0 else None
