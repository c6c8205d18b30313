from __future__ import annotations

from sectionfetch.models.toc import HeadingEntry, TocItem
from sectionfetch.models.tools import FetchBrowserInput, FetchInput, FetchTocInput

__all__ = [
    # toc
    "HeadingEntry",
    "TocItem",
    # tools
    "FetchInput",
    "FetchBrowserInput",
    "FetchTocInput",
]
