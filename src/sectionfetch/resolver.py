"""URL fragment → target element resolution.

Pure business logic — receives a parsed document and a raw fragment, returns
the element the fragment points at (or None). No knowledge of AppState, MCP,
or I/O.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING
from urllib.parse import quote, unquote

import structlog

if TYPE_CHECKING:
    from bs4 import BeautifulSoup, Tag

log = structlog.get_logger()

# Left unescaped when re-encoding a fragment
_URI_COMPONENT_SAFE = "-_.!~*'()"

# A "%" that does not start a two-digit hex escape
_MALFORMED_ESCAPE_RE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def normalise_fragment(raw: str) -> str | None:
    """Normalise a raw URL fragment for lookup.

    Steps (order matters):
      1. Strip one leading "#"
      2. Trim whitespace; empty → None
      3. Percent-decode; on a malformed escape or invalid UTF-8 log
         ``fragment_decode_failed`` and keep the trimmed value
    """
    trimmed = raw.removeprefix("#").strip()
    if not trimmed:
        return None

    try:
        return _decode_uri_component(trimmed)
    except ValueError as exc:
        log.warning("fragment_decode_failed", fragment=trimmed, error=str(exc))
        return trimmed


def is_non_element_fragment(fragment: str) -> bool:
    """True for fragments that are router paths, text directives or query-like.

    ``#/docs``, ``#!/home``, ``#:~:text=foo`` and ``#page=2`` never name an
    element; callers should fall back to the whole document.
    """
    return (
        fragment.startswith("/")
        or fragment.startswith("!/")
        or ":~:text=" in fragment
        or "=" in fragment
    )


def fragment_candidates(fragment: str) -> list[str]:
    """Return the decoded fragment, then its percent-encoded form if different."""
    candidates = [fragment]
    encoded = quote(fragment, safe=_URI_COMPONENT_SAFE)
    if encoded != fragment:
        candidates.append(encoded)
    return candidates


def resolve(document: BeautifulSoup, raw_fragment: str) -> Tag | None:
    """Locate the element *raw_fragment* refers to.

    Tries ``id`` lookups for each candidate first, then legacy
    ``<a name="...">`` anchors in document order.
    """
    fragment = normalise_fragment(raw_fragment)
    if fragment is None:
        return None

    if is_non_element_fragment(fragment):
        log.debug("fragment_skipped", fragment=fragment, reason="not_an_element_id")
        return None

    candidates = fragment_candidates(fragment)

    for candidate in candidates:
        target = document.find(attrs={"id": candidate})
        if target is not None:
            return target

    for anchor in document.find_all("a"):
        name = anchor.get("name")
        if name and name in candidates:
            return anchor

    return None


def _decode_uri_component(value: str) -> str:
    # unquote() silently passes malformed escapes through; treat them as
    # decode errors so the caller falls back to the raw value.
    if _MALFORMED_ESCAPE_RE.search(value):
        raise ValueError(f"malformed percent-escape in {value!r}")
    try:
        return unquote(value, errors="strict")
    except UnicodeDecodeError as exc:
        raise ValueError(f"invalid UTF-8 in {value!r}") from exc
