"""HTTP page fetcher.

All plain-HTTP network I/O goes through a single Fetcher instance shared
across tool calls. The Fetcher receives an httpx.AsyncClient from the server
lifespan, which owns the client lifecycle.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING
from urllib.parse import urldefrag

import httpx
import structlog

from sectionfetch.errors import FetchFailure

if TYPE_CHECKING:
    from sectionfetch.config import FetcherSettings

log = structlog.get_logger()

_ACCEPT_HTML = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"


def build_http_client(settings: FetcherSettings) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once at startup."""
    if settings.proxy_url:
        log.info("http_proxy_configured", proxy_url=settings.proxy_url)
    return httpx.AsyncClient(
        follow_redirects=True,
        max_redirects=settings.max_redirects,
        timeout=httpx.Timeout(settings.timeout_seconds),
        proxy=settings.proxy_url or None,
        headers={"User-Agent": settings.user_agent, "Accept": _ACCEPT_HTML},
        limits=httpx.Limits(
            max_connections=10,
            max_keepalive_connections=5,
        ),
    )


class Fetcher:
    """Plain HTTP fetcher implementing FetcherProtocol."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def fetch(self, url: str) -> str:
        """GET *url* and return the response body.

        Raises FetchFailure on network errors, timeouts, redirect loops and
        non-2xx responses. The fragment is never sent over the wire.
        """
        started = time.monotonic()
        try:
            response = await self._client.get(urldefrag(url).url)
        except httpx.TimeoutException as exc:
            raise FetchFailure(
                f"Timed out fetching {url}",
                suggestion="The site may be slow; retry or increase the timeout.",
                recoverable=True,
            ) from exc
        except httpx.HTTPError as exc:
            raise FetchFailure(
                f"Network error fetching {url}: {exc}",
                suggestion="The site may be temporarily unavailable.",
                recoverable=True,
            ) from exc

        if not response.is_success:
            log.warning(
                "fetch_http_error",
                url=url,
                status_code=response.status_code,
                duration_ms=_elapsed_ms(started),
            )
            raise FetchFailure(
                f"HTTP {response.status_code} fetching {url}",
                suggestion="Check the URL; the page may not exist or may block automated clients.",
                recoverable=response.status_code >= 500,
            )

        log.debug(
            "fetch_complete",
            url=url,
            status_code=response.status_code,
            content_length=len(response.text),
            duration_ms=_elapsed_ms(started),
        )
        return response.text


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
