"""Headless-browser page fetcher (Playwright).

Used for JavaScript-rendered pages. Each fetch launches its own browser and
closes the page and browser on every exit path. Launch preference:

  1. An explicit executable path from settings
  2. The system Chrome install (``channel="chrome"``), then well-known paths
  3. Playwright's bundled Chromium
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import unquote, urldefrag

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from sectionfetch.errors import FetchFailure

if TYPE_CHECKING:
    from playwright.async_api import Browser, Page, Playwright

    from sectionfetch.config import BrowserSettings

log = structlog.get_logger()

_LAUNCH_ARGS = ["--no-sandbox", "--disable-setuid-sandbox", "--disable-dev-shm-usage"]

SYSTEM_CHROME_PATHS: tuple[str, ...] = (
    # macOS
    "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
    "/Applications/Chromium.app/Contents/MacOS/Chromium",
    # Linux
    "/usr/bin/google-chrome",
    "/usr/bin/chromium",
    "/usr/bin/chromium-browser",
    # Windows
    "C:\\Program Files\\Google\\Chrome\\Application\\chrome.exe",
    "C:\\Program Files (x86)\\Google\\Chrome\\Application\\chrome.exe",
)

# Scroll the fragment target into view so lazy sections render before capture
_SCROLL_TO_FRAGMENT_JS = """
(id) => {
  const el = document.getElementById(id) || document.querySelector(`a[name="${CSS.escape(id)}"]`);
  if (el) { el.scrollIntoView({block: "start"}); return true; }
  return false;
}
"""


def find_system_chrome() -> str | None:
    """Return the first existing Chrome/Chromium executable path, or None."""
    for candidate in SYSTEM_CHROME_PATHS:
        if Path(candidate).exists():
            return candidate
    return None


class BrowserFetcher:
    """Playwright-backed fetcher implementing FetcherProtocol."""

    def __init__(
        self,
        settings: BrowserSettings,
        *,
        timeout_seconds: float | None = None,
        use_system_chrome: bool | None = None,
    ) -> None:
        self._settings = settings
        self._timeout_ms = int((timeout_seconds or settings.timeout_seconds) * 1000)
        self._use_system_chrome = (
            settings.use_system_chrome if use_system_chrome is None else use_system_chrome
        )

    async def fetch(self, url: str) -> str:
        """Render *url* in headless Chromium and return the resulting HTML."""
        started = time.monotonic()
        try:
            async with async_playwright() as playwright:
                browser = await self._launch(playwright)
                try:
                    page = await browser.new_page()
                    try:
                        html = await self._render(page, url)
                    finally:
                        await page.close()
                finally:
                    await browser.close()
        except PlaywrightError as exc:
            log.warning("browser_fetch_failed", url=url, error=str(exc))
            raise FetchFailure(
                f"Browser failed to load {url}: {exc}",
                suggestion="Retry with a longer timeout, or use the plain fetch tool.",
                recoverable=True,
            ) from exc

        log.info(
            "browser_fetch_complete",
            url=url,
            content_length=len(html),
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        return html

    async def _render(self, page: Page, url: str) -> str:
        page.set_default_timeout(self._timeout_ms)
        await page.goto(url, timeout=self._timeout_ms, wait_until="domcontentloaded")
        try:
            await page.wait_for_load_state("load", timeout=self._timeout_ms)
        except PlaywrightError:
            # Pages that never fire "load" are still usable once the DOM is ready
            log.debug("browser_load_state_timeout", url=url)
        await page.wait_for_timeout(self._settings.settle_ms)

        fragment = urldefrag(url).fragment
        if fragment:
            found = await page.evaluate(_SCROLL_TO_FRAGMENT_JS, unquote(fragment))
            log.debug("browser_fragment_scrolled", url=url, fragment=fragment, found=found)
            await page.wait_for_timeout(500)

        return await page.content()

    async def _launch(self, playwright: Playwright) -> Browser:
        chromium = playwright.chromium

        if self._settings.executable_path:
            log.info("browser_launch", strategy="executable_path", path=self._settings.executable_path)
            return await chromium.launch(
                headless=True,
                executable_path=self._settings.executable_path,
                args=_LAUNCH_ARGS,
            )

        if self._use_system_chrome:
            try:
                log.info("browser_launch", strategy="chrome_channel")
                return await chromium.launch(headless=True, channel="chrome", args=_LAUNCH_ARGS)
            except PlaywrightError as exc:
                log.warning("browser_launch_failed", strategy="chrome_channel", error=str(exc))

            chrome_path = find_system_chrome()
            if chrome_path is not None:
                try:
                    log.info("browser_launch", strategy="system_path", path=chrome_path)
                    return await chromium.launch(
                        headless=True, executable_path=chrome_path, args=_LAUNCH_ARGS
                    )
                except PlaywrightError as exc:
                    log.warning("browser_launch_failed", strategy="system_path", error=str(exc))

        log.info("browser_launch", strategy="bundled_chromium")
        try:
            return await chromium.launch(headless=True, args=_LAUNCH_ARGS)
        except PlaywrightError as exc:
            if "Executable doesn't exist" in str(exc):
                raise FetchFailure(
                    "Playwright browsers are not installed.",
                    suggestion="Run: playwright install chromium",
                    recoverable=False,
                ) from exc
            raise
