"""Protocol interfaces for swappable components.

The pipeline and AppState reference these protocols, not the concrete
implementations. This allows:
- Tests to use lightweight fakes for fetching, extraction and conversion
- The HTTP and browser fetchers to be used interchangeably
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal, Protocol

if TYPE_CHECKING:
    from bs4 import BeautifulSoup

    from sectionfetch.cache import CacheStats
    from sectionfetch.document import Article

FetchMode = Literal["http", "browser"]


class CacheProtocol(Protocol):
    """Interface for the fetched-page cache."""

    async def get(self, url: str, mode: FetchMode) -> str | None: ...

    async def set(self, url: str, mode: FetchMode, content: str) -> None: ...

    async def clear(self) -> None: ...

    def stats(self) -> CacheStats: ...


class FetcherProtocol(Protocol):
    """Interface for anything that turns a URL into raw HTML."""

    async def fetch(self, url: str) -> str: ...


class BuilderProtocol(Protocol):
    """Interface for the HTML → document parser."""

    def build(self, html: str) -> BeautifulSoup: ...

    def narrow(self, document: BeautifulSoup, fragment_html: str) -> BeautifulSoup: ...


class ExtractorProtocol(Protocol):
    """Interface for main-content (article) detection."""

    def extract(self, document: BeautifulSoup) -> Article | None: ...


class TransformerProtocol(Protocol):
    """Interface for the HTML → Markdown serialiser."""

    def transform(self, html: str) -> str: ...
