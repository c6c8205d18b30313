"""Shared test fixtures for the sectionfetch test suite."""

from __future__ import annotations

import pytest
from bs4 import BeautifulSoup

from sectionfetch.cache import PageCache

BASE_URL = "https://docs.example.com/guide"

GUIDE_HTML = """<!DOCTYPE html>
<html>
<head><title>Guide</title></head>
<body>
<nav><a href="/">Home</a><h3>Site menu</h3></nav>
<div id="content"><h1 id="top">Guide</h1><p>Welcome to the guide.</p><h2 id="intro">Intro</h2><p>First intro paragraph.</p><p>Second intro paragraph.</p><h2 id="setup">Setup</h2><p>Install it.</p><h3 id="setup-linux">Linux</h3><p>Use the package manager.</p><h2 id="usage">Usage</h2><p>Run it.</p></div>
<footer><p>Copyright</p></footer>
</body>
</html>
"""


@pytest.fixture()
def guide_html() -> str:
    return GUIDE_HTML


@pytest.fixture()
def guide_document() -> BeautifulSoup:
    return BeautifulSoup(GUIDE_HTML, "lxml")


@pytest.fixture()
def page_cache() -> PageCache:
    return PageCache(ttl_seconds=600, max_entries=3)


@pytest.fixture()
def base_url() -> str:
    return BASE_URL
