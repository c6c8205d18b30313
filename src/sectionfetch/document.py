"""Adapters for the parsing-side collaborators.

- DocumentBuilder    — HTML → BeautifulSoup document
- ArticleExtractor   — main-content detection (trafilatura), returns HTML
- MarkdownTransformer — HTML → Markdown (markdownify)

Each adapter is a thin wrapper so the pipeline only sees the protocols in
``sectionfetch.protocols``. Expected failures are raised as the matching
SectionFetchError subclass; anything else propagates.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import structlog
import trafilatura
from bs4 import BeautifulSoup, ParserRejectedMarkup
from markdownify import ATX, markdownify

from sectionfetch.errors import ParseFailure, TransformFailure

log = structlog.get_logger()

HTML_PARSER = "lxml"

_MULTI_NEWLINE_RE = re.compile(r"\n{3,}")


@dataclass(frozen=True)
class Article:
    """Main content region isolated from a page."""

    content_html: str


class DocumentBuilder:
    """Parse HTML into a BeautifulSoup document."""

    def build(self, html: str) -> BeautifulSoup:
        try:
            return BeautifulSoup(html, HTML_PARSER)
        except ParserRejectedMarkup as exc:
            raise ParseFailure(f"Unparseable markup: {exc}") from exc

    def narrow(self, document: BeautifulSoup, fragment_html: str) -> BeautifulSoup:
        """Return a new document whose body holds only *fragment_html*.

        The original document is left untouched; its <head> is carried over so
        the title and metadata stay available to article extraction.
        """
        head = document.head
        head_html = str(head) if head is not None else "<head></head>"
        return self.build(f"<html>{head_html}<body>{fragment_html}</body></html>")


class ArticleExtractor:
    """Isolate the main article of a document with trafilatura."""

    def __init__(self, *, include_tables: bool = True, include_images: bool = False) -> None:
        self._include_tables = include_tables
        self._include_images = include_images

    def extract(self, document: BeautifulSoup) -> Article | None:
        """Return the article as HTML, or None when no content region is found."""
        html = str(document)
        content = trafilatura.extract(
            html,
            output_format="html",
            include_comments=False,
            include_tables=self._include_tables,
            include_images=self._include_images,
            include_formatting=True,
            include_links=True,
            favor_recall=True,
        )
        if not content:
            log.debug("article_not_found", html_length=len(html))
            return None
        return Article(content_html=content)


class MarkdownTransformer:
    """Serialise HTML to Markdown: ATX headings, "-" bullets, fenced code."""

    def transform(self, html: str) -> str:
        try:
            markdown = markdownify(
                html,
                heading_style=ATX,
                bullets="-",
            )
        except (AttributeError, TypeError, ValueError) as exc:
            raise TransformFailure(f"Markdown conversion failed: {exc}") from exc
        return _collapse_blank_lines(markdown).strip()


def _collapse_blank_lines(text: str) -> str:
    return _MULTI_NEWLINE_RE.sub("\n\n", text)
