"""Integration test fixtures.

Provides a fully wired AppState: real cache, builder, transformer and HTTP
fetcher (respx intercepts the network), with a passthrough article extractor
so assertions do not depend on trafilatura's content heuristics.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest

from sectionfetch.cache import PageCache
from sectionfetch.config import Settings
from sectionfetch.document import Article, DocumentBuilder, MarkdownTransformer
from sectionfetch.fetcher import Fetcher, build_http_client
from sectionfetch.pipeline import Pipeline
from sectionfetch.state import AppState

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path

    from bs4 import BeautifulSoup


class PassthroughExtractor:
    """Treats the whole <body> as the article."""

    def extract(self, document: BeautifulSoup) -> Article | None:
        root = document.body or document
        if not root.get_text(strip=True):
            return None
        return Article(content_html=root.decode_contents())


@pytest.fixture()
def extractor() -> PassthroughExtractor:
    return PassthroughExtractor()


@pytest.fixture()
def pipeline(page_cache: PageCache, extractor: PassthroughExtractor) -> Pipeline:
    return Pipeline(
        cache=page_cache,
        builder=DocumentBuilder(),
        extractor=extractor,
        transformer=MarkdownTransformer(),
    )


@pytest.fixture()
async def app_state(
    pipeline: Pipeline, page_cache: PageCache
) -> AsyncGenerator[AppState, None]:
    settings = Settings()
    http_client = build_http_client(settings.fetcher)
    state = AppState(
        settings=settings,
        http_client=http_client,
        cache=page_cache,
        fetcher=Fetcher(http_client),
        pipeline=pipeline,
    )
    yield state
    await http_client.aclose()


@pytest.fixture()
def subprocess_env(tmp_path: Path) -> dict[str, str]:
    """Baseline env for subprocess-based MCP tests.

    Forces stdio transport and runs from an empty directory so a local
    sectionfetch.yaml cannot leak in.
    """
    env = os.environ.copy()
    env["SECTIONFETCH__SERVER__TRANSPORT"] = "stdio"
    env["SECTIONFETCH__LOGGING__LEVEL"] = "WARNING"
    env["SECTIONFETCH__FETCHER__TIMEOUT_SECONDS"] = "2"
    env["XDG_CONFIG_HOME"] = str(tmp_path / "config")
    return env
