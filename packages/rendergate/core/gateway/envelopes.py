"""Response envelopes for the HTTP layer.

The gateway does not serve HTTP itself; these helpers give the web layer
the exact shapes it returns.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from rendergate.core.gateway.errors import GatewayError
from rendergate.core.gateway.models import GenerationResult, MethodDescriptor


def capability_listing(
    methods: Mapping[str, MethodDescriptor], *, now: datetime | None = None
) -> dict[str, Any]:
    """``{status, timestamp, methods}`` envelope for capability discovery."""
    timestamp = (now or datetime.now(UTC)).isoformat()
    return {
        "status": "ok",
        "timestamp": timestamp,
        "methods": {name: d.to_listing() for name, d in methods.items()},
    }


def error_envelope(error: GatewayError) -> tuple[int, dict[str, Any]]:
    """HTTP status and JSON body for a failed call."""
    return error.http_status, error.to_payload()


def _format_cost(cost: float) -> str:
    return str(int(cost)) if float(cost).is_integer() else f"{cost:g}"


def result_headers(result: GenerationResult) -> dict[str, str]:
    """Metadata headers sent alongside the image body."""
    headers = {
        "Content-Type": result.content_type,
        "X-Image-Color": result.color_hex,
        "X-Image-Width": str(result.width),
        "X-Image-Height": str(result.height),
        "X-Credit-Cost": _format_cost(result.credit_cost),
    }
    if result.duration_ms is not None:
        headers["X-Duration-Ms"] = str(result.duration_ms)
    if result.poll_count is not None:
        headers["X-Poll-Count"] = str(result.poll_count)
    return headers


def result_summary(result: GenerationResult) -> dict[str, Any]:
    """JSON-friendly description of a result, without the image bytes."""
    summary = result.model_dump(mode="json", exclude={"data"}, exclude_none=True)
    summary["bytes"] = len(result.data)
    return summary
