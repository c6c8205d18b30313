"""Section boundary selection for a resolved fragment target.

Given the element a fragment resolved to, decide which well-formed slice of
the document is "the section the caller meant". Rules are evaluated top-down
and the first applicable one wins:

  1. structural_container         — nearest section/article/main/aside
  2. named_anchor_before_heading  — <a name> directly followed by a heading
  3. heading_section              — heading plus siblings up to a peer heading
  4. preceding_heading            — section of the nearest earlier heading
  5. detached_target              — no parent: the target alone
  6. parent_without_heading       — parent has no heading children: the target alone
  7. anchor_to_next_heading       — target plus siblings up to the next heading

Every rule returns non-empty markup, so a resolved target is never lost.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, NamedTuple

from sectionfetch.headings import find_headings, has_parent, heading_level, is_heading

if TYPE_CHECKING:
    from bs4 import BeautifulSoup, Tag

STRUCTURAL_CONTAINERS: frozenset[str] = frozenset({"section", "article", "main", "aside"})

# Containers trusted as the section scope even when the target is a heading
_ALWAYS_TRUSTED_CONTAINERS: frozenset[str] = frozenset({"section", "aside"})


class BoundaryRule(NamedTuple):
    name: str
    applies: Callable[[Tag], bool]
    select: Callable[[Tag], str]


# ---------------------------------------------------------------------------
# Tree helpers
# ---------------------------------------------------------------------------


def find_structural_container(element: Tag) -> Tag | None:
    """Return the nearest of *element* and its ancestors that is a structural container."""
    current: Tag | None = element
    while current is not None and current.name != "[document]":
        if current.name in STRUCTURAL_CONTAINERS:
            return current
        current = current.parent
    return None


def find_preceding_heading(element: Tag) -> Tag | None:
    for sibling in element.find_previous_siblings():
        if is_heading(sibling):
            return sibling
    return None


def collect_heading_section(heading: Tag) -> str:
    """Heading markup plus following siblings, stopping before a heading at level <= its own."""
    level = heading_level(heading)
    parts = [str(heading)]
    for sibling in heading.find_next_siblings():
        if is_heading(sibling) and heading_level(sibling) <= level:
            break
        parts.append(str(sibling))
    return "".join(parts)


def collect_until_next_heading(element: Tag) -> str:
    parts = [str(element)]
    for sibling in element.find_next_siblings():
        if is_heading(sibling):
            break
        parts.append(str(sibling))
    return "".join(parts)


def _is_named_anchor(element: Tag) -> bool:
    return element.name == "a" and element.has_attr("name")


def _trusts_container(target: Tag, container: Tag) -> bool:
    if not is_heading(target):
        return True
    if container.name in _ALWAYS_TRUSTED_CONTAINERS:
        return True
    # A main/article with several headings is too coarse for a heading target.
    # Note: a single heading is trusted without checking it is the target.
    return len(find_headings(container)) <= 1


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def _structural_container_applies(target: Tag) -> bool:
    container = find_structural_container(target)
    return container is not None and _trusts_container(target, container)


def _structural_container_select(target: Tag) -> str:
    container = find_structural_container(target)
    return str(container) if container is not None else str(target)


def _named_anchor_applies(target: Tag) -> bool:
    return _is_named_anchor(target) and is_heading(target.find_next_sibling())


def _named_anchor_select(target: Tag) -> str:
    heading = target.find_next_sibling()
    return collect_heading_section(heading) if heading is not None else str(target)


def _preceding_heading_applies(target: Tag) -> bool:
    return find_preceding_heading(target) is not None


def _preceding_heading_select(target: Tag) -> str:
    heading = find_preceding_heading(target)
    return collect_heading_section(heading) if heading is not None else str(target)


def _parent_without_heading_applies(target: Tag) -> bool:
    parent = target.parent
    if parent is None:
        return False
    return not any(is_heading(child) for child in parent.find_all(recursive=False))


RULES: tuple[BoundaryRule, ...] = (
    BoundaryRule("structural_container", _structural_container_applies, _structural_container_select),
    BoundaryRule("named_anchor_before_heading", _named_anchor_applies, _named_anchor_select),
    BoundaryRule("heading_section", is_heading, collect_heading_section),
    BoundaryRule("preceding_heading", _preceding_heading_applies, _preceding_heading_select),
    BoundaryRule("detached_target", lambda target: not has_parent(target), str),
    BoundaryRule("parent_without_heading", _parent_without_heading_applies, str),
    BoundaryRule("anchor_to_next_heading", lambda target: True, collect_until_next_heading),
)


def match_rule(target: Tag) -> BoundaryRule:
    """Return the first rule that applies to *target*; the last rule always applies."""
    return next(rule for rule in RULES if rule.applies(target))


def select_boundary(document: BeautifulSoup, target: Tag | None) -> str | None:
    """Return the markup of the section *target* belongs to, or None without a target."""
    if target is None:
        return None
    return match_rule(target).select(target)
