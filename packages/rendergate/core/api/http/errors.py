"""Transport-level errors raised by ``AsyncApiClient``.

These never leave the provider layer: adapters and the job client translate
them into the gateway taxonomy (``SubmissionError``, ``PollError``,
``FetchError``, ``AdapterError``).
"""

from __future__ import annotations

import httpx

from rendergate.core.api.http.utils import safe_snippet


class ApiError(Exception):
    """A provider call failed at the HTTP level.

    Attributes:
        message: Short description of the failure
        method: HTTP method
        url: Request URL
        status_code: Response status, None for transport failures
        content_type: Response content type, when there was a response
        response_body_snippet: Bounded prefix of the response body
        cause: Underlying httpx exception, if any
    """

    def __init__(
        self,
        *,
        message: str,
        method: str,
        url: str,
        status_code: int | None = None,
        content_type: str | None = None,
        response_body_snippet: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.message = message
        self.method = method
        self.url = url
        self.status_code = status_code
        self.content_type = content_type
        self.response_body_snippet = response_body_snippet
        self.cause = cause
        super().__init__(str(self))

    @classmethod
    def from_response(cls, message: str, response: httpx.Response, limit: int) -> ApiError:
        return cls(
            message=message,
            method=response.request.method,
            url=str(response.request.url),
            status_code=response.status_code,
            content_type=response.headers.get("content-type"),
            response_body_snippet=safe_snippet(response.content or b"", limit),
        )

    @property
    def is_auth_failure(self) -> bool:
        return self.status_code in (401, 403)

    def __str__(self) -> str:
        text = f"{self.message} ({self.method} {self.url}"
        if self.status_code is not None:
            text += f", status={self.status_code}"
        text += ")"
        if self.response_body_snippet:
            text += f": {self.response_body_snippet}"
        return text


class NetworkError(ApiError):
    """Connection-level failure (DNS, refused, reset)."""


class TimeoutError(ApiError):
    """No response within the configured timeout."""


class DecodeError(ApiError):
    """Response body was empty or not JSON."""


class StatusError(ApiError):
    """Non-success HTTP status."""


class AuthError(StatusError):
    """401/403: missing, wrong or unauthorized key."""


class RateLimitError(StatusError):
    """429: provider-side throttling."""


class ClientError(StatusError):
    """Other 4xx: the provider rejected the payload."""


class ServerError(StatusError):
    """5xx, or any status outside 4xx handled above."""


def error_class_for_status(status_code: int) -> type[StatusError]:
    if status_code in (401, 403):
        return AuthError
    if status_code == 429:
        return RateLimitError
    if 400 <= status_code < 500:
        return ClientError
    return ServerError
