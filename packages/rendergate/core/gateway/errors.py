"""Gateway error taxonomy.

Two stages, so operators can tell bad input from a failing backend without
parsing messages:

- ``validation``: the caller's request is malformed (4xx-equivalent)
- ``provider``: a backend failed while producing the asset (5xx-equivalent)

Every error renders to one structured payload via ``to_payload()``.
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum
from typing import Any

# Provider bodies attached to errors and logs are cut to this many characters
MAX_DETAIL_CHARS = 500


class ErrorStage(str, Enum):
    """Which side of the gateway a failure belongs to."""

    VALIDATION = "validation"
    PROVIDER = "provider"


def truncate_detail(value: Any, limit: int = MAX_DETAIL_CHARS) -> str | None:
    """Render a provider body as a bounded string; never raises."""
    if value is None:
        return None
    try:
        if isinstance(value, bytes):
            text = value[:limit].decode("utf-8", errors="replace")
        else:
            text = value if isinstance(value, str) else repr(value)
    except Exception:  # noqa: BLE001 - diagnostics must not fail the caller
        return None
    return text[:limit]


class GatewayError(Exception):
    """Base class for every failure surfaced by the gateway."""

    stage: ErrorStage = ErrorStage.PROVIDER
    code: str = "gateway_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    @property
    def http_status(self) -> int:
        return 400 if self.stage is ErrorStage.VALIDATION else 502

    def to_payload(self) -> dict[str, Any]:
        """Structured error object for the HTTP layer."""
        return {"error": self.message, "code": self.code, "stage": self.stage.value}


class ValidationError(GatewayError):
    """The request is malformed. Detected locally and never retried.

    Args:
        message: Human-readable message, stable for a given reason
        code: Machine-readable reason (e.g. ``missing_arguments``)
        missing_fields: Required fields that were absent
        invalid_fields: Fields whose values were rejected
        available_methods: Registered method names (unknown-method errors)
    """

    stage = ErrorStage.VALIDATION
    code = "invalid_request"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        missing_fields: Sequence[str] | None = None,
        invalid_fields: Sequence[str] | None = None,
        available_methods: Sequence[str] | None = None,
    ) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code
        self.missing_fields = list(missing_fields) if missing_fields is not None else None
        self.invalid_fields = list(invalid_fields) if invalid_fields is not None else None
        self.available_methods = (
            list(available_methods) if available_methods is not None else None
        )

    @classmethod
    def missing_method(cls) -> ValidationError:
        return cls("Missing method", code="missing_method")

    @classmethod
    def unknown_method(cls, method: str, available: Sequence[str]) -> ValidationError:
        return cls(
            f"Unknown method: {method}",
            code="unknown_method",
            available_methods=available,
        )

    @classmethod
    def missing_arguments(cls, fields: Sequence[str]) -> ValidationError:
        return cls(
            f"Missing required arguments: {', '.join(fields)}",
            code="missing_arguments",
            missing_fields=fields,
        )

    @classmethod
    def invalid_arguments(cls, fields: Sequence[str], reason: str = "") -> ValidationError:
        message = f"Invalid arguments: {', '.join(fields)}"
        if reason:
            message = f"{message} ({reason})"
        return cls(message, code="invalid_arguments", invalid_fields=fields)

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        if self.missing_fields is not None:
            payload["missing_fields"] = self.missing_fields
        if self.invalid_fields is not None:
            payload["invalid_fields"] = self.invalid_fields
        if self.available_methods is not None:
            payload["available_methods"] = self.available_methods
        return payload


class ProviderError(GatewayError):
    """A backend failed. Reported upward, never retried silently.

    Args:
        message: Human-readable message
        provider: Backend name (e.g. ``flux``)
        job_id: Provider job id, when the failure happened after submission
        status: Provider-level job status (e.g. ``"Error"``)
        status_code: HTTP status code of the failing call
        detail: Raw provider body; stored truncated
    """

    code = "provider_error"

    def __init__(
        self,
        message: str,
        *,
        provider: str | None = None,
        job_id: str | None = None,
        status: str | None = None,
        status_code: int | None = None,
        detail: Any = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.job_id = job_id
        self.status = status
        self.status_code = status_code
        self.detail = truncate_detail(detail)

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        for key in ("provider", "job_id", "status", "detail"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        if self.status_code is not None:
            payload["provider_status"] = self.status_code
        return payload


class SubmissionError(ProviderError):
    """Job submission was rejected (bad request, auth, missing payload)."""

    code = "submission_failed"


class PollError(ProviderError):
    """A poll returned a terminal status other than Ready, or the poll call failed."""

    code = "job_failed"


class FetchError(ProviderError):
    """The asset could not be downloaded after the job became Ready."""

    code = "fetch_failed"


class JobTimeoutError(ProviderError):
    """The job exceeded the configured poll count or duration."""

    code = "job_timeout"


class AdapterError(ProviderError):
    """A synchronous provider adapter failed in its single call."""

    code = "adapter_failed"
