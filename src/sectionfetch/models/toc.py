from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from bs4 import Tag


@dataclass(frozen=True)
class HeadingEntry:
    """A heading element found in a document, in document order."""

    level: int  # 1–6, the numeral in the tag name
    text: str
    element: Tag
    identifier: str  # The element's own id attribute, "" if absent


class TocItem(BaseModel):
    """Single table-of-contents entry returned by fetch_toc."""

    model_config = ConfigDict(frozen=True)

    level: int = Field(ge=1, le=6)
    text: str
    id: str  # Own id, descendant anchor id/name, or a synthesized slug
    href: str  # Base URL without fragment, plus "#id" when id is non-empty
