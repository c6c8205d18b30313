"""Response text formatting: pagination windows and phase failure messages.

Pure functions; the tool handlers wrap the returned text in the MCP result.
"""

from __future__ import annotations

from dataclasses import dataclass

from sectionfetch.errors import Phase

NO_MORE_CONTENT = "<error>No more content available.</error>"

BROWSER_TOOL = "fetch_browser"

PHASE_MESSAGES: dict[Phase, str] = {
    Phase.FETCH: "Failed to fetch URL",
    Phase.PROCESS: "Failed to process URL content",
    Phase.BUILD: "Failed to build document",
    Phase.EXTRACT: "Failed to extract content from page",
    Phase.TRANSFORM: "Failed to transform content to markdown",
}


@dataclass(frozen=True)
class PageWindow:
    text: str
    truncated: bool = False
    exhausted: bool = False  # start_index was at or past the end of the content
    returned_length: int = 0


def provenance_line(url: str, *, raw: bool, tool_name: str) -> str:
    """Return the ``"Contents of <url>:"`` header that precedes every window."""
    browser = tool_name == BROWSER_TOOL
    if raw:
        prefix = "Raw HTML content (browser-rendered) of" if browser else "Raw HTML content of"
    else:
        prefix = "Contents (browser-rendered) of" if browser else "Contents of"
    return f"{prefix} {url}:"


def continuation_notice(tool_name: str, next_start: int) -> str:
    return (
        f"<error>Content truncated. Call {tool_name} with start_index={next_start} "
        "to get more content.</error>"
    )


def paginate(
    content: str,
    *,
    url: str,
    start_index: int,
    max_length: int,
    raw: bool = False,
    tool_name: str = "fetch",
) -> PageWindow:
    """Slice *content* to ``[start_index, start_index + max_length)``.

    A window that is exactly *max_length* long with content remaining after it
    gets a continuation notice naming the next start_index. A start_index at or
    past the end returns the NO_MORE_CONTENT sentinel rather than empty text.
    """
    if start_index >= len(content):
        return PageWindow(text=NO_MORE_CONTENT, exhausted=True)

    window = content[start_index : start_index + max_length]
    next_start = start_index + len(window)
    truncated = len(window) == max_length and next_start < len(content)

    body = window
    if truncated:
        body += "\n\n" + continuation_notice(tool_name, next_start)

    header = provenance_line(url, raw=raw, tool_name=tool_name)
    return PageWindow(
        text=f"{header}\n{body}",
        truncated=truncated,
        returned_length=len(window),
    )


def failure_message(phase: Phase, *, tool_name: str = "fetch") -> str:
    """Return the user-facing message for a pipeline failure at *phase*."""
    message = PHASE_MESSAGES.get(phase, f"Failed at {phase} phase")
    suffix = " (browser)" if tool_name == BROWSER_TOOL else ""
    return f"{message}{suffix}"


def render_failure(phase: Phase, *, tool_name: str = "fetch") -> str:
    return f"<error>{failure_message(phase, tool_name=tool_name)}</error>"


def unexpected_failure_message(url: str, error: BaseException, *, tool_name: str = "fetch") -> str:
    qualifier = " with browser" if tool_name == BROWSER_TOOL else ""
    return f"Failed to fetch {url}{qualifier}: {error}"
