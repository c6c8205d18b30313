"""Heading index for parsed HTML documents.

Single-pass scan that collects h1–h6 elements in document order. Shared by
the boundary selector (heading tests on siblings) and the outline builder.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from bs4 import BeautifulSoup, Tag

from sectionfetch.models.toc import HeadingEntry

if TYPE_CHECKING:
    from bs4.element import PageElement

_HEADING_TAG_RE = re.compile(r"^h[1-6]$")

# Level assigned to anything that is not a heading; deeper than any real one.
NON_HEADING_LEVEL = 7


def is_heading(element: PageElement | None) -> bool:
    """Return True if *element* is an h1–h6 tag."""
    return isinstance(element, Tag) and bool(_HEADING_TAG_RE.match(element.name.lower()))


def heading_level(element: Tag) -> int:
    """Return the numeral from the heading tag name, or NON_HEADING_LEVEL."""
    if not is_heading(element):
        return NON_HEADING_LEVEL
    return int(element.name[1])


def has_parent(element: Tag) -> bool:
    """True when *element* sits under another element (the soup root does not count)."""
    parent = element.parent
    return parent is not None and not isinstance(parent, BeautifulSoup)


def find_headings(root: Tag) -> list[Tag]:
    """Return every heading below *root*, in document order."""
    return root.find_all(_HEADING_TAG_RE)


def iter_headings(document: Tag) -> list[HeadingEntry]:
    """Build the heading index for *document*."""
    entries: list[HeadingEntry] = []
    for element in find_headings(document):
        entries.append(
            HeadingEntry(
                level=heading_level(element),
                text=element.get_text().strip(),
                element=element,
                identifier=attr_value(element, "id"),
            )
        )
    return entries


def attr_value(element: Tag, name: str) -> str:
    """Return attribute *name* as a string, "" when absent."""
    value = element.get(name)
    if value is None:
        return ""
    # Multi-valued attributes come back as lists
    if isinstance(value, list):
        return " ".join(value)
    return value
