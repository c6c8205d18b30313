"""Application state container.

AppState is created once at server startup (inside the FastMCP lifespan context
manager) and injected into every tool handler via the MCP Context object.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from sectionfetch.config import Settings
    from sectionfetch.pipeline import Pipeline
    from sectionfetch.protocols import CacheProtocol, FetcherProtocol


@dataclass
class AppState:
    """Holds all shared runtime state. Passed to every tool handler."""

    settings: Settings

    http_client: httpx.AsyncClient | None = None
    cache: CacheProtocol | None = None
    # Plain HTTP fetcher; browser fetchers are built per call from settings.browser
    fetcher: FetcherProtocol | None = None
    pipeline: Pipeline | None = None
