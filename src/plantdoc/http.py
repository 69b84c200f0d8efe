"""HTTP access for plantdoc.

Provides a shared httpx client (connection pooling across tag occurrences)
and the fetch used for URL-shaped diagram content.
"""

from __future__ import annotations

import threading
from pathlib import Path
from urllib.parse import unquote, urlparse

import httpx

from plantdoc.errors import RemoteFetchError
from plantdoc.logging import log

USER_AGENT = "plantdoc/1.0"

# Global client instance (lazy initialized)
_client: httpx.Client | None = None
_client_lock = threading.Lock()


def get_client() -> httpx.Client:
    """Get or create the shared HTTP client.

    Uses httpx's default timeout; redirects are followed.
    """
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                _client = httpx.Client(
                    follow_redirects=True,
                    headers={"User-Agent": USER_AGENT},
                )
    return _client


def close_client() -> None:
    """Close the shared client; the next get_client() creates a new one."""
    global _client
    with _client_lock:
        if _client is not None:
            _client.close()
            _client = None


def _read_file_url(url: str, path: str) -> bytes:
    try:
        return Path(unquote(path)).read_bytes()
    except OSError as e:
        raise RemoteFetchError(url, f"cannot read file: {e}", e) from e


def fetch_bytes(url: str) -> bytes:
    """Fetch the raw bytes behind ``url``.

    Supports http, https and file URLs.

    Raises:
        RemoteFetchError: If the resource is unreachable, unsupported or empty.
    """
    scheme = urlparse(url).scheme.lower()

    with log("http.fetch", url=url, scheme=scheme) as span:
        if scheme == "file":
            data = _read_file_url(url, urlparse(url).path)
        elif scheme in ("http", "https"):
            try:
                response = get_client().get(url)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise RemoteFetchError(
                    url, f"HTTP error {e.response.status_code}", e
                ) from e
            except httpx.HTTPError as e:
                raise RemoteFetchError(url, f"request failed: {e}", e) from e
            span.add(status=response.status_code)
            data = response.content
        else:
            raise RemoteFetchError(url, f"unsupported URL scheme '{scheme}'")

        if not data:
            raise RemoteFetchError(url, "resource not found or empty")

        span.add(bytes=len(data))
        return data


def fetch_text(url: str) -> str:
    """Fetch ``url`` and decode it as UTF-8 diagram source."""
    return fetch_bytes(url).decode("utf-8", errors="replace")
