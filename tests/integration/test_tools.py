"""Integration tests for the tool handlers against a wired AppState."""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING

import httpx
import pytest
import respx

import sectionfetch.tools.fetch as t_fetch
import sectionfetch.tools.fetch_browser as t_fetch_browser
import sectionfetch.tools.fetch_toc as t_fetch_toc
from sectionfetch.errors import ErrorCode, FetchFailure, SectionFetchError
from sectionfetch.formatter import NO_MORE_CONTENT

if TYPE_CHECKING:
    from sectionfetch.state import AppState

URL = "https://docs.example.com/guide"


class FakeBrowserFetcher:
    """Stands in for BrowserFetcher; records the options it was built with."""

    html = ""
    error: Exception | None = None
    instances: list[FakeBrowserFetcher] = []

    def __init__(
        self,
        settings: object,
        *,
        timeout_seconds: float | None = None,
        use_system_chrome: bool | None = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.use_system_chrome = use_system_chrome
        self.calls: list[str] = []
        FakeBrowserFetcher.instances.append(self)

    async def fetch(self, url: str) -> str:
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        return self.html


@pytest.fixture()
def fake_browser(monkeypatch: pytest.MonkeyPatch, guide_html: str) -> type[FakeBrowserFetcher]:
    FakeBrowserFetcher.html = guide_html
    FakeBrowserFetcher.error = None
    FakeBrowserFetcher.instances = []
    monkeypatch.setattr(t_fetch_browser, "BrowserFetcher", FakeBrowserFetcher)
    monkeypatch.setattr(t_fetch_toc, "BrowserFetcher", FakeBrowserFetcher)
    return FakeBrowserFetcher


# ---------------------------------------------------------------------------
# fetch
# ---------------------------------------------------------------------------


class TestFetch:
    async def test_section_markdown(self, app_state: AppState, guide_html: str) -> None:
        with respx.mock:
            respx.get(URL).mock(return_value=httpx.Response(200, text=guide_html))
            text = await t_fetch.handle(f"{URL}#intro", 5000, 0, False, app_state)

        header, _, body = text.partition("\n")
        assert header == f"Contents of {URL}#intro:"
        assert body.startswith("## Intro")
        assert "Setup" not in body
        assert "Content truncated" not in text

    async def test_raw(self, app_state: AppState, guide_html: str) -> None:
        with respx.mock:
            respx.get(URL).mock(return_value=httpx.Response(200, text=guide_html))
            text = await t_fetch.handle(URL, 100_000, 0, True, app_state)
        assert text == f"Raw HTML content of {URL}:\n{guide_html}"

    async def test_pagination_walks_content(self, app_state: AppState, guide_html: str) -> None:
        with respx.mock:
            route = respx.get(URL).mock(return_value=httpx.Response(200, text=guide_html))
            first = await t_fetch.handle(URL, 40, 0, False, app_state)
            second = await t_fetch.handle(URL, 40, 40, False, app_state)
            past_end = await t_fetch.handle(URL, 40, 1_000_000, False, app_state)

        assert "Call fetch with start_index=40 to get more content." in first
        assert "start_index=80" in second
        assert past_end == NO_MORE_CONTENT
        # Later windows are served from the cache
        assert route.call_count == 1

    async def test_http_error_is_fetch_failure(self, app_state: AppState) -> None:
        with respx.mock:
            respx.get(URL).mock(return_value=httpx.Response(404))
            with pytest.raises(SectionFetchError) as exc_info:
                await t_fetch.handle(URL, 5000, 0, False, app_state)
        assert exc_info.value.code == ErrorCode.FETCH_FAILED
        assert exc_info.value.render() == "<error>Failed to fetch URL</error>"
        assert exc_info.value.suggestion.startswith("Check the URL")

    async def test_later_phase_failure_reported_as_processing(self, app_state: AppState) -> None:
        with respx.mock:
            respx.get(URL).mock(return_value=httpx.Response(200, text="<html><body></body></html>"))
            with pytest.raises(SectionFetchError) as exc_info:
                await t_fetch.handle(URL, 5000, 0, False, app_state)
        assert exc_info.value.code == ErrorCode.PROCESS_FAILED
        assert exc_info.value.render() == "<error>Failed to process URL content</error>"

    async def test_unexpected_error_is_wrapped(
        self, app_state: AppState, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        async def explode(*args: object, **kwargs: object) -> None:
            raise RuntimeError("kaboom")

        monkeypatch.setattr(app_state.pipeline, "render", explode)
        with pytest.raises(SectionFetchError) as exc_info:
            await t_fetch.handle(URL, 5000, 0, False, app_state)
        assert exc_info.value.code == ErrorCode.UNEXPECTED_ERROR
        assert exc_info.value.render() == f"<error>Failed to fetch {URL}: kaboom</error>"

    @pytest.mark.parametrize(
        ("url", "max_length", "start_index"),
        [
            ("ftp://docs.example.com/file", 5000, 0),
            ("not a url", 5000, 0),
            ("https://docs.example.com/" + "a" * 2100, 5000, 0),
            (URL, 0, 0),
            (URL, 1_000_001, 0),
            (URL, 5000, -1),
        ],
    )
    async def test_invalid_input(
        self, app_state: AppState, url: str, max_length: int, start_index: int
    ) -> None:
        with pytest.raises(SectionFetchError) as exc_info:
            await t_fetch.handle(url, max_length, start_index, False, app_state)
        assert exc_info.value.code == ErrorCode.INVALID_INPUT


# ---------------------------------------------------------------------------
# fetch_browser
# ---------------------------------------------------------------------------


class TestFetchBrowser:
    async def test_renders_with_browser_options(
        self, app_state: AppState, fake_browser: type[FakeBrowserFetcher]
    ) -> None:
        text = await t_fetch_browser.handle(f"{URL}#usage", 5000, 0, False, 12.5, False, app_state)

        assert text.startswith(f"Contents (browser-rendered) of {URL}#usage:\n## Usage")
        [instance] = fake_browser.instances
        assert instance.timeout_seconds == 12.5
        assert instance.use_system_chrome is False
        # The browser needs the fragment to scroll to it
        assert instance.calls == [f"{URL}#usage"]

    async def test_truncation_notice_names_browser_tool(
        self, app_state: AppState, fake_browser: type[FakeBrowserFetcher]
    ) -> None:
        text = await t_fetch_browser.handle(URL, 10, 0, False, 30.0, True, app_state)
        assert "Call fetch_browser with start_index=10" in text

    async def test_browser_cache_is_separate_from_http(
        self, app_state: AppState, fake_browser: type[FakeBrowserFetcher], guide_html: str
    ) -> None:
        with respx.mock:
            route = respx.get(URL).mock(return_value=httpx.Response(200, text=guide_html))
            await t_fetch.handle(URL, 5000, 0, False, app_state)
        await t_fetch_browser.handle(URL, 5000, 0, False, 30.0, True, app_state)

        assert route.call_count == 1
        assert fake_browser.instances[0].calls == [URL]

    async def test_browser_failure(
        self, app_state: AppState, fake_browser: type[FakeBrowserFetcher]
    ) -> None:
        fake_browser.error = FetchFailure("navigation timeout")
        with pytest.raises(SectionFetchError) as exc_info:
            await t_fetch_browser.handle(URL, 5000, 0, False, 30.0, True, app_state)
        assert exc_info.value.render() == "<error>Failed to fetch URL (browser)</error>"

    async def test_browser_timeout_suggests_longer_timeout(
        self,
        app_state: AppState,
        fake_browser: type[FakeBrowserFetcher],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        async def hang(self: FakeBrowserFetcher, url: str) -> str:
            await asyncio.sleep(5)
            return ""

        monkeypatch.setattr(FakeBrowserFetcher, "fetch", hang)
        with pytest.raises(SectionFetchError) as exc_info:
            await t_fetch_browser.handle(URL, 5000, 0, False, 0.05, True, app_state)
        assert exc_info.value.code == ErrorCode.FETCH_FAILED
        assert exc_info.value.suggestion == "Retry with a longer timeout."
        assert exc_info.value.recoverable is True

    async def test_unexpected_error_names_browser(
        self, app_state: AppState, fake_browser: type[FakeBrowserFetcher]
    ) -> None:
        fake_browser.error = RuntimeError("crashed")
        with pytest.raises(SectionFetchError) as exc_info:
            await t_fetch_browser.handle(URL, 5000, 0, False, 30.0, True, app_state)
        assert exc_info.value.code == ErrorCode.UNEXPECTED_ERROR
        assert exc_info.value.render() == f"<error>Failed to fetch {URL} with browser: crashed</error>"

    @pytest.mark.parametrize("timeout", [0, -1, 121])
    async def test_invalid_timeout(
        self, app_state: AppState, fake_browser: type[FakeBrowserFetcher], timeout: float
    ) -> None:
        with pytest.raises(SectionFetchError) as exc_info:
            await t_fetch_browser.handle(URL, 5000, 0, False, timeout, True, app_state)
        assert exc_info.value.code == ErrorCode.INVALID_INPUT


# ---------------------------------------------------------------------------
# fetch_toc
# ---------------------------------------------------------------------------


class TestFetchToc:
    async def test_markdown_outline_in_one_window(
        self, app_state: AppState, guide_html: str
    ) -> None:
        with respx.mock:
            respx.get(URL).mock(return_value=httpx.Response(200, text=guide_html))
            text = await t_fetch_toc.handle(URL, "markdown", False, 30.0, app_state)

        header, _, body = text.partition("\n")
        assert header == f"Contents of {URL}:"
        assert body.startswith("# Table of Contents")
        assert "- Usage (#usage)" in body
        assert "Content truncated" not in text

    async def test_json_outline(self, app_state: AppState, guide_html: str) -> None:
        with respx.mock:
            respx.get(URL).mock(return_value=httpx.Response(200, text=guide_html))
            text = await t_fetch_toc.handle(f"{URL}#setup", "json", False, 30.0, app_state)

        items = json.loads(text.partition("\n")[2])
        ids = [item["id"] for item in items]
        assert ids[-4:] == ["intro", "setup", "setup-linux", "usage"]
        assert all(item["href"].startswith(f"{URL}#") for item in items)

    async def test_browser_outline(
        self, app_state: AppState, fake_browser: type[FakeBrowserFetcher]
    ) -> None:
        text = await t_fetch_toc.handle(URL, "markdown", True, 20.0, app_state)
        assert "- Intro (#intro)" in text
        assert fake_browser.instances[0].timeout_seconds == 20.0

    async def test_extraction_failure(self, app_state: AppState) -> None:
        with respx.mock:
            respx.get(URL).mock(return_value=httpx.Response(200, text="<html><body></body></html>"))
            with pytest.raises(SectionFetchError) as exc_info:
                await t_fetch_toc.handle(URL, "markdown", False, 30.0, app_state)
        assert exc_info.value.code == ErrorCode.EXTRACT_FAILED
        assert exc_info.value.render() == "<error>Failed to extract content from page</error>"

    async def test_fetch_failure(self, app_state: AppState) -> None:
        with respx.mock:
            respx.get(URL).mock(side_effect=httpx.ConnectError("Connection refused"))
            with pytest.raises(SectionFetchError) as exc_info:
                await t_fetch_toc.handle(URL, "markdown", False, 30.0, app_state)
        assert exc_info.value.code == ErrorCode.FETCH_FAILED

    async def test_invalid_format(self, app_state: AppState) -> None:
        with pytest.raises(SectionFetchError) as exc_info:
            await t_fetch_toc.handle(URL, "yaml", False, 30.0, app_state)
        assert exc_info.value.code == ErrorCode.INVALID_INPUT
