"""URL and body helpers shared by the HTTP client and the gateway."""

from __future__ import annotations

from urllib.parse import urlsplit


def is_absolute_url(value: str) -> bool:
    """True for ``http://host/...`` or ``https://host/...``; False for anything unparsable."""
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def join_url(base_url: str, path: str) -> str:
    """Resolve ``path`` under ``base_url``.

    Polling handles and asset links arrive as absolute URLs and are returned
    as-is. Relative paths always extend the base, so ``/flux-2-pro`` under
    ``https://api.bfl.ai/v1`` gives ``https://api.bfl.ai/v1/flux-2-pro``.
    """
    if is_absolute_url(path):
        return path
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def safe_snippet(content: bytes | str, limit: int) -> str:
    """At most ``limit`` characters of a response body, undecodable bytes replaced."""
    if isinstance(content, bytes):
        content = content[:limit].decode("utf-8", errors="replace")
    return content[:limit]
