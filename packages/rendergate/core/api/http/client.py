"""HTTPX-backed client shared by every provider backend.

One ``AsyncApiClient`` per backend: base URL, key header, timeout and retry
policy are fixed at construction. Failures surface as ``ApiError``
subclasses; the callers in ``rendergate.core.providers`` translate them
into stage errors.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

import httpx

from rendergate.core.api.http.config import HttpClientConfig
from rendergate.core.api.http.errors import (
    ApiError,
    DecodeError,
    NetworkError,
    TimeoutError,
    error_class_for_status,
)
from rendergate.core.api.http.logging_utils import RequestTrace
from rendergate.core.api.http.retry import RetryPolicy
from rendergate.core.api.http.utils import join_url


class AsyncApiClient:
    """Async JSON/bytes client for one provider.

    Any status >= 400 raises; a 3xx only reaches the caller when redirects
    are disabled in the config.

    Example:
        >>> flux = AsyncApiClient(
        ...     HttpClientConfig(base_url="https://api.bfl.ai/v1"),
        ...     auth=ApiKeyAuth(header_name="x-key", api_key="k"),
        ... )
        >>> data = flux.json(await flux.post("/flux-2-pro", json_body={"prompt": "a cat"}))
    """

    def __init__(
        self,
        config: HttpClientConfig,
        *,
        auth: httpx.Auth | None = None,
        retry_policy: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self.retry_policy = retry_policy or RetryPolicy()
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            headers={"User-Agent": config.user_agent, **config.headers},
            timeout=config.timeout,
            follow_redirects=config.follow_redirects,
            auth=auth,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> AsyncApiClient:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def _attempt(
        self, trace: RequestTrace, headers: Mapping[str, str] | None, **kwargs: Any
    ) -> httpx.Response:
        """Send once; transport failures come back as ``TimeoutError``/``NetworkError``."""
        trace.sent({**self._client.headers, **(headers or {})}, self.config.redact_headers)
        try:
            resp = await self._client.request(trace.method, trace.url, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            raise TimeoutError(
                message="Request timed out", method=trace.method, url=trace.url, cause=e
            ) from e
        except httpx.RequestError as e:
            raise NetworkError(
                message="Network error while sending request",
                method=trace.method,
                url=trace.url,
                cause=e,
            ) from e
        trace.received(resp.status_code)
        return resp

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        json_body: Any = None,
    ) -> httpx.Response:
        """Send ``method path`` and return the first successful response.

        ``path`` is joined onto the base URL unless it is already absolute.
        Attempts are repeated only as ``retry_policy`` allows.

        Raises:
            ApiError: The last attempt's failure (status, timeout or network)
        """
        method = method.upper()
        url = join_url(str(self._client.base_url), path)

        attempt = 0
        while True:
            attempt += 1
            trace = RequestTrace(method=method, url=url, attempt=attempt)
            try:
                resp = await self._attempt(trace, headers, params=params, json=json_body)
            except ApiError:
                if not self.retry_policy.should_retry(method, attempt):
                    raise
                await asyncio.sleep(self.retry_policy.delay_after(attempt))
                continue

            if resp.status_code < 400:
                return resp
            if not self.retry_policy.should_retry(method, attempt, resp.status_code):
                raise error_class_for_status(resp.status_code).from_response(
                    "HTTP error response", resp, self.config.max_response_body_for_error
                )
            await asyncio.sleep(self.retry_policy.delay_after(attempt, resp))

    async def get(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", path, **kwargs)

    async def download(self, url: str, **kwargs: Any) -> bytes:
        """Body bytes of ``GET url``."""
        return (await self.get(url, **kwargs)).content

    def json(self, response: httpx.Response) -> Any:
        """Decoded JSON body; an empty or malformed body raises ``DecodeError``."""
        limit = self.config.max_response_body_for_error
        if not response.content:
            raise DecodeError.from_response("Empty response body", response, limit)
        try:
            return response.json()
        except ValueError as e:
            err = DecodeError.from_response("Failed to parse JSON response", response, limit)
            err.cause = e
            raise err from e
