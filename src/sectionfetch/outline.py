"""Table-of-contents extraction from a document's heading index.

The identifier for each heading is, in order of preference: the heading's own
``id``, the ``id``/``name`` of an anchor inside it, or a slug synthesized from
its text. Synthesized slugs are a best-effort guess and may not exist on the
live page.
"""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING
from urllib.parse import urldefrag

import structlog

from sectionfetch.headings import attr_value, iter_headings
from sectionfetch.models.toc import TocItem

if TYPE_CHECKING:
    from bs4 import Tag

    from sectionfetch.models.toc import HeadingEntry

log = structlog.get_logger()

NO_HEADINGS_MESSAGE = "No headings found."
MARKDOWN_TITLE = "# Table of Contents"

# ASCII word characters only; non-ASCII letters are dropped, Unicode spaces still split
_SLUG_STRIP_RE = re.compile(r"[^0-9A-Za-z_\s-]")
_SLUG_SPACE_RE = re.compile(r"\s+")


def slugify(text: str) -> str:
    """Derive a GitHub-style anchor slug from heading text."""
    slug = text.lower()
    slug = _SLUG_STRIP_RE.sub("", slug)
    slug = _SLUG_SPACE_RE.sub("-", slug)
    return slug.strip("-")


def _anchor_identifier(heading: Tag) -> str:
    for anchor in heading.find_all("a"):
        if anchor.has_attr("id") or anchor.has_attr("name"):
            return attr_value(anchor, "id") or attr_value(anchor, "name")
    return ""


def _resolve_identifier(entry: HeadingEntry) -> str:
    return entry.identifier or _anchor_identifier(entry.element) or slugify(entry.text)


def build_outline(document: Tag, base_url: str) -> list[TocItem]:
    """Build the flat outline of *document*. Never raises; returns [] on error."""
    try:
        page_url = urldefrag(base_url).url
        items: list[TocItem] = []
        for entry in iter_headings(document):
            identifier = _resolve_identifier(entry)
            items.append(
                TocItem(
                    level=entry.level,
                    text=entry.text,
                    id=identifier,
                    href=f"{page_url}#{identifier}" if identifier else page_url,
                )
            )
    except Exception:
        log.error("outline_build_error", url=base_url, exc_info=True)
        return []

    log.debug("outline_built", url=base_url, item_count=len(items))
    return items


def format_as_markdown(items: list[TocItem]) -> str:
    """Render *items* as a nested bullet list, indented by heading level."""
    if not items:
        return NO_HEADINGS_MESSAGE

    lines = [MARKDOWN_TITLE, ""]
    for item in items:
        indent = "  " * (item.level - 1)
        anchor = f" (#{item.id})" if item.id else ""
        lines.append(f"{indent}- {item.text}{anchor}")
        if item.id:
            lines.append(f"{indent}  URL: {item.href}")
    return "\n".join(lines)


def format_as_json(items: list[TocItem]) -> str:
    """Render *items* as a JSON array of {level, text, id, href} records."""
    return json.dumps([item.model_dump() for item in items], indent=2, ensure_ascii=False)
