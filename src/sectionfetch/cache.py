"""In-memory page cache keyed by (fetch mode, normalised URL).

Fragment narrowing happens after the fetch, so ``https://a/doc#x`` and
``https://A/doc#y`` share one entry.
Entries are evicted least-recently-used when capacity is exceeded, and
dropped on access once their TTL has elapsed. All bookkeeping happens under
an ``asyncio.Lock``; no I/O is performed while holding it.
"""

from __future__ import annotations

import asyncio
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib.parse import urlsplit, urlunsplit

import structlog

if TYPE_CHECKING:
    from sectionfetch.protocols import FetchMode

log = structlog.get_logger()

DEFAULT_TTL_SECONDS = 600
DEFAULT_MAX_ENTRIES = 100

_DEFAULT_PORTS: dict[str, int] = {"http": 80, "https": 443}


@dataclass(frozen=True)
class CacheStats:
    size: int
    max_size: int


def normalise_url(url: str) -> str:
    """Canonical form of *url* for cache lookups.

    Drops the fragment, lowercases scheme and host, drops the scheme's default
    port and turns an empty path into "/".
    """
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    host = parts.hostname or ""
    netloc = f"[{host}]" if ":" in host else host
    if parts.username is not None:
        userinfo = parts.username
        if parts.password is not None:
            userinfo += f":{parts.password}"
        netloc = f"{userinfo}@{netloc}"
    port = parts.port
    if port is not None and port != _DEFAULT_PORTS.get(scheme):
        netloc += f":{port}"
    return urlunsplit((scheme, netloc, parts.path or "/", parts.query, ""))


def make_cache_key(url: str, mode: FetchMode) -> str:
    """Return ``"<mode>:<normalised url>"``."""
    return f"{mode}:{normalise_url(url)}"


class PageCache:
    """LRU cache with per-entry TTL implementing CacheProtocol."""

    def __init__(
        self,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ) -> None:
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._store: OrderedDict[str, tuple[str, float]] = OrderedDict()
        self._lock = asyncio.Lock()

    async def get(self, url: str, mode: FetchMode) -> str | None:
        """Return cached content, or None on miss, expiry or an empty entry."""
        key = make_cache_key(url, mode)
        async with self._lock:
            if key not in self._store:
                return None
            content, expires_at = self._store[key]
            if time.monotonic() >= expires_at:
                del self._store[key]
                log.debug("cache_expired", url=url, mode=mode)
                return None
            # Move to end (most recently used)
            self._store.move_to_end(key)

        if not content:
            return None
        log.info("cache_hit", url=url, mode=mode)
        return content

    async def set(self, url: str, mode: FetchMode, content: str) -> None:
        key = make_cache_key(url, mode)
        async with self._lock:
            if key in self._store:
                self._store.move_to_end(key)
            self._store[key] = (content, time.monotonic() + self._ttl)
            while len(self._store) > self._max_entries:
                evicted, _ = self._store.popitem(last=False)
                log.debug("cache_evicted", key=evicted)
        log.info("cache_set", url=url, mode=mode, content_length=len(content))

    async def clear(self) -> None:
        async with self._lock:
            self._store.clear()
        log.debug("cache_cleared")

    def stats(self) -> CacheStats:
        return CacheStats(size=len(self._store), max_size=self._max_entries)
