"""Content pipeline: fetch → parse → fragment narrowing → article → output.

Two request modes share one Pipeline instance, created in the server
lifespan:

- render:  fetch (through cache) → parse → [resolve fragment + select boundary
           → narrowed document] → raw HTML, or article extract → Markdown
- outline: fetch (through cache) → parse → article extract → re-parse the
           article HTML → outline → Markdown/JSON. Fragments are ignored; the
           outline always covers the whole page.

Each step that yields nothing stops the chain with a phase-tagged
PipelineResult. Expected collaborator failures (SectionFetchError) are turned
into the same results; unexpected exceptions are logged and re-raised for the
tool handler to convert.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal
from urllib.parse import urldefrag

import structlog

from sectionfetch.boundary import select_boundary
from sectionfetch.errors import (
    FetchFailure,
    NoContentFailure,
    ParseFailure,
    Phase,
    SectionFetchError,
    TransformFailure,
)
from sectionfetch.outline import build_outline, format_as_json, format_as_markdown
from sectionfetch.resolver import resolve

if TYPE_CHECKING:
    from collections.abc import Callable

    from bs4 import BeautifulSoup

    from sectionfetch.protocols import (
        BuilderProtocol,
        CacheProtocol,
        ExtractorProtocol,
        FetcherProtocol,
        FetchMode,
        TransformerProtocol,
    )

log = structlog.get_logger()

OutlineFormat = Literal["markdown", "json"]

_FAILURE_PHASES: dict[type[SectionFetchError], Phase] = {
    FetchFailure: Phase.FETCH,
    ParseFailure: Phase.BUILD,
    NoContentFailure: Phase.EXTRACT,
    TransformFailure: Phase.TRANSFORM,
}


@dataclass(frozen=True)
class PipelineResult:
    """Either output content or the phase at which the pipeline stopped."""

    content: str | None = None
    failure: Phase | None = None
    detail: str = ""
    suggestion: str = ""

    @property
    def ok(self) -> bool:
        return self.failure is None and self.content is not None

    @classmethod
    def success(cls, content: str) -> PipelineResult:
        return cls(content=content)

    @classmethod
    def failed(cls, phase: Phase, detail: str = "", suggestion: str = "") -> PipelineResult:
        return cls(failure=phase, detail=detail, suggestion=suggestion)


class _Stop(Exception):
    """Internal short-circuit carrying the failure result."""

    def __init__(self, result: PipelineResult) -> None:
        super().__init__(result.detail)
        self.result = result


def url_fragment(url: str) -> str:
    return urldefrag(url).fragment


class Pipeline:
    """Orchestrates the collaborators for both request modes."""

    def __init__(
        self,
        *,
        cache: CacheProtocol,
        builder: BuilderProtocol,
        extractor: ExtractorProtocol,
        transformer: TransformerProtocol,
    ) -> None:
        self._cache = cache
        self._builder = builder
        self._extractor = extractor
        self._transformer = transformer

    # ------------------------------------------------------------------
    # Fetch
    # ------------------------------------------------------------------

    async def fetch_html(
        self,
        url: str,
        fetcher: FetcherProtocol,
        *,
        mode: FetchMode,
        timeout: float,
    ) -> PipelineResult:
        """Return raw HTML for *url*, from the cache when possible."""
        cached = await self._cache.get(url, mode)
        if cached is not None:
            return PipelineResult.success(cached)

        try:
            html = await asyncio.wait_for(fetcher.fetch(url), timeout=timeout)
        except TimeoutError:
            log.warning("pipeline_fetch_timeout", url=url, mode=mode, timeout=timeout)
            return PipelineResult.failed(
                Phase.FETCH, f"Timed out after {timeout:g}s", "Retry with a longer timeout."
            )
        except FetchFailure as exc:
            log.warning("pipeline_step_failed", url=url, phase=Phase.FETCH, error=exc.message)
            return PipelineResult.failed(Phase.FETCH, exc.message, exc.suggestion)

        if not html:
            log.warning("pipeline_step_failed", url=url, phase=Phase.FETCH, error="empty response")
            return PipelineResult.failed(Phase.FETCH, "Empty response body")

        await self._cache.set(url, mode, html)
        return PipelineResult.success(html)

    # ------------------------------------------------------------------
    # Render (Markdown / raw)
    # ------------------------------------------------------------------

    async def render(
        self,
        url: str,
        fetcher: FetcherProtocol,
        *,
        mode: FetchMode,
        raw: bool = False,
        timeout: float = 30.0,
    ) -> PipelineResult:
        fetched = await self.fetch_html(url, fetcher, mode=mode, timeout=timeout)
        if fetched.content is None:
            return fetched
        return self.process_html(url, fetched.content, raw=raw)

    def process_html(self, url: str, html: str, *, raw: bool = False) -> PipelineResult:
        """Run the synchronous part of the render chain on already-fetched HTML."""
        return self._run(url, "render", lambda: self._render_steps(url, html, raw=raw))

    def _render_steps(self, url: str, html: str, *, raw: bool) -> str:
        document = self._build(url, html)

        fragment = url_fragment(url)
        narrowed = self._narrow(url, document, fragment) if fragment else None

        if raw:
            # Unnarrowed pages go back exactly as fetched
            return html if narrowed is None else str(narrowed)

        article_html = self._extract(url, document if narrowed is None else narrowed)

        try:
            markdown = self._transformer.transform(article_html)
        except TransformFailure as exc:
            raise self._stop(url, Phase.TRANSFORM, exc.message, exc.suggestion) from exc
        if not markdown:
            raise self._stop(url, Phase.TRANSFORM, "Markdown output was empty")
        return markdown

    def _narrow(self, url: str, document: BeautifulSoup, fragment: str) -> BeautifulSoup | None:
        target = resolve(document, fragment)
        boundary_html = select_boundary(document, target)
        if not boundary_html:
            log.debug("fragment_not_narrowed", url=url, fragment=fragment)
            return None
        log.debug(
            "fragment_narrowed",
            url=url,
            fragment=fragment,
            boundary_length=len(boundary_html),
        )
        return self._builder.narrow(document, boundary_html)

    # ------------------------------------------------------------------
    # Outline
    # ------------------------------------------------------------------

    async def outline(
        self,
        url: str,
        fetcher: FetcherProtocol,
        *,
        mode: FetchMode,
        output_format: OutlineFormat = "markdown",
        timeout: float = 30.0,
    ) -> PipelineResult:
        fetched = await self.fetch_html(url, fetcher, mode=mode, timeout=timeout)
        if fetched.content is None:
            return fetched
        return self.outline_html(url, fetched.content, output_format=output_format)

    def outline_html(
        self, url: str, html: str, *, output_format: OutlineFormat = "markdown"
    ) -> PipelineResult:
        """Run the synchronous part of the outline chain on already-fetched HTML."""
        return self._run(
            url, "outline", lambda: self._outline_steps(url, html, output_format=output_format)
        )

    def _outline_steps(self, url: str, html: str, *, output_format: OutlineFormat) -> str:
        # Article extraction drops navigation, sidebar and footer headings
        article_html = self._extract(url, self._build(url, html))
        article_document = self._build(url, article_html)

        items = build_outline(article_document, url)
        if output_format == "json":
            return format_as_json(items)
        return format_as_markdown(items)

    # ------------------------------------------------------------------
    # Shared steps
    # ------------------------------------------------------------------

    def _build(self, url: str, html: str) -> BeautifulSoup:
        try:
            document = self._builder.build(html)
        except ParseFailure as exc:
            raise self._stop(url, Phase.BUILD, exc.message, exc.suggestion) from exc
        if document is None:
            raise self._stop(url, Phase.BUILD, "Parser returned no document")
        return document

    def _extract(self, url: str, document: BeautifulSoup) -> str:
        try:
            article = self._extractor.extract(document)
        except NoContentFailure as exc:
            raise self._stop(url, Phase.EXTRACT, exc.message, exc.suggestion) from exc
        if article is None or not article.content_html:
            raise self._stop(url, Phase.EXTRACT, "No article content extracted")
        return article.content_html

    def _stop(self, url: str, phase: Phase, detail: str, suggestion: str = "") -> _Stop:
        log.warning("pipeline_step_failed", url=url, phase=phase, error=detail)
        return _Stop(PipelineResult.failed(phase, detail, suggestion))

    def _run(self, url: str, mode: str, steps: Callable[[], str]) -> PipelineResult:
        started = time.monotonic()
        try:
            content = steps()
        except _Stop as stop:
            return stop.result
        except SectionFetchError as exc:
            phase = _FAILURE_PHASES.get(type(exc), Phase.PROCESS)
            log.warning("pipeline_step_failed", url=url, phase=phase, error=exc.message)
            return PipelineResult.failed(phase, exc.message, exc.suggestion)
        except Exception:
            log.error(
                "pipeline_error",
                url=url,
                mode=mode,
                duration_ms=_elapsed_ms(started),
                exc_info=True,
            )
            raise

        log.debug(
            "pipeline_complete",
            url=url,
            mode=mode,
            content_length=len(content),
            duration_ms=_elapsed_ms(started),
        )
        return PipelineResult.success(content)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
