"""Unit tests for pagination and failure messages."""

from __future__ import annotations

from sectionfetch.errors import Phase
from sectionfetch.formatter import (
    NO_MORE_CONTENT,
    continuation_notice,
    paginate,
    provenance_line,
    render_failure,
    unexpected_failure_message,
)

URL = "https://docs.example.com/page"
CONTENT = "".join(str(i % 10) for i in range(100))


def _body(text: str) -> str:
    """Strip the provenance line."""
    header, _, body = text.partition("\n")
    assert header.endswith(f"{URL}:")
    return body


class TestPaginate:
    def test_tail_window_is_short_and_final(self) -> None:
        window = paginate(CONTENT, url=URL, start_index=95, max_length=10)
        assert _body(window.text) == CONTENT[95:]
        assert window.returned_length == 5
        assert window.truncated is False
        assert "Content truncated" not in window.text

    def test_start_at_end_returns_sentinel(self) -> None:
        window = paginate(CONTENT, url=URL, start_index=100, max_length=10)
        assert window.text == NO_MORE_CONTENT
        assert window.exhausted is True
        assert window.returned_length == 0

    def test_start_past_end_returns_sentinel(self) -> None:
        window = paginate(CONTENT, url=URL, start_index=500, max_length=10)
        assert window.text == NO_MORE_CONTENT

    def test_truncated_window_names_next_start(self) -> None:
        window = paginate(CONTENT, url=URL, start_index=20, max_length=30)
        assert window.truncated is True
        assert window.returned_length == 30
        assert window.text == (
            f"Contents of {URL}:\n{CONTENT[20:50]}\n\n" + continuation_notice("fetch", 50)
        )

    def test_window_ending_exactly_at_end_is_not_truncated(self) -> None:
        window = paginate(CONTENT, url=URL, start_index=90, max_length=10)
        assert window.truncated is False
        assert _body(window.text) == CONTENT[90:]

    def test_whole_content_in_one_window(self) -> None:
        window = paginate(CONTENT, url=URL, start_index=0, max_length=len(CONTENT))
        assert _body(window.text) == CONTENT
        assert window.truncated is False

    def test_notice_names_calling_tool(self) -> None:
        window = paginate(CONTENT, url=URL, start_index=0, max_length=10, tool_name="fetch_browser")
        assert "Call fetch_browser with start_index=10" in window.text


class TestProvenanceLine:
    def test_markdown_http(self) -> None:
        assert provenance_line(URL, raw=False, tool_name="fetch") == f"Contents of {URL}:"

    def test_raw_http(self) -> None:
        assert provenance_line(URL, raw=True, tool_name="fetch") == f"Raw HTML content of {URL}:"

    def test_browser_qualifier(self) -> None:
        assert (
            provenance_line(URL, raw=False, tool_name="fetch_browser")
            == f"Contents (browser-rendered) of {URL}:"
        )
        assert (
            provenance_line(URL, raw=True, tool_name="fetch_browser")
            == f"Raw HTML content (browser-rendered) of {URL}:"
        )


class TestFailureMessages:
    def test_phase_messages(self) -> None:
        assert render_failure(Phase.FETCH) == "<error>Failed to fetch URL</error>"
        assert render_failure(Phase.PROCESS) == "<error>Failed to process URL content</error>"
        assert render_failure(Phase.BUILD) == "<error>Failed to build document</error>"
        assert render_failure(Phase.EXTRACT) == "<error>Failed to extract content from page</error>"
        assert (
            render_failure(Phase.TRANSFORM)
            == "<error>Failed to transform content to markdown</error>"
        )

    def test_browser_suffix(self) -> None:
        assert (
            render_failure(Phase.FETCH, tool_name="fetch_browser")
            == "<error>Failed to fetch URL (browser)</error>"
        )

    def test_unexpected_failure(self) -> None:
        error = RuntimeError("boom")
        assert unexpected_failure_message(URL, error) == f"Failed to fetch {URL}: boom"
        assert (
            unexpected_failure_message(URL, error, tool_name="fetch_browser")
            == f"Failed to fetch {URL} with browser: boom"
        )
