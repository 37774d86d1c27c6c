"""Download caller-supplied and provider-hosted images."""

from __future__ import annotations

import logging
from urllib.parse import urlparse

from rendergate.core.api.http import ApiError, AsyncApiClient, HttpClientConfig
from rendergate.core.api.http.utils import is_absolute_url
from rendergate.core.gateway.errors import FetchError, ValidationError

logger = logging.getLogger(__name__)

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/121.0 Safari/537.36"
)
BROWSER_ACCEPT = "image/avif,image/webp,image/apng,image/*,*/*;q=0.8"


def browser_headers(url: str) -> dict[str, str]:
    """Headers that let hotlink-protected hosts serve the image."""
    parsed = urlparse(url)
    origin = f"{parsed.scheme}://{parsed.netloc}"
    return {
        "User-Agent": BROWSER_USER_AGENT,
        "Accept": BROWSER_ACCEPT,
        "Referer": f"{origin}/",
        "Origin": origin,
    }


def describe_failure(error: ApiError) -> str:
    if error.status_code is None:
        return f"Failed to download image: {error.message}"
    message = f"Failed to download image: status={error.status_code} "
    message += f"content-type={error.content_type or 'unknown'}"
    if error.response_body_snippet:
        message += f" body={error.response_body_snippet}"
    return message


class RemoteImageFetcher:
    """Fetch image bytes from absolute URLs.

    Redirects are followed. A 401/403 answer is retried once with browser-like
    headers. The client carries no provider credentials.

    Args:
        timeout_s: Per-request timeout
        transport: Optional custom transport (useful for testing)
    """

    def __init__(self, timeout_s: float = 60.0, *, transport=None) -> None:
        self._client = AsyncApiClient(
            HttpClientConfig.with_timeout("https://fetch.invalid", timeout_s),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> RemoteImageFetcher:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def fetch(self, url: str, *, job_id: str | None = None) -> bytes:
        """Download ``url``.

        Raises:
            ValidationError: If ``url`` is not an absolute http(s) URL
            FetchError: If the download fails
        """
        url = (url or "").strip()
        if not is_absolute_url(url):
            raise ValidationError(
                "image_url must be a valid URL", code="invalid_url", invalid_fields=["image_url"]
            )

        try:
            return await self._client.download(url)
        except ApiError as e:
            if not e.is_auth_failure:
                raise self._fetch_error(e, job_id) from e
            logger.debug("Retrying %s with browser headers after %s", url, e.status_code)

        try:
            return await self._client.download(url, headers=browser_headers(url))
        except ApiError as e:
            raise self._fetch_error(e, job_id) from e

    @staticmethod
    def _fetch_error(error: ApiError, job_id: str | None) -> FetchError:
        return FetchError(
            describe_failure(error),
            job_id=job_id,
            status_code=error.status_code,
            detail=error.response_body_snippet,
        )
