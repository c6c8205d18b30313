"""Tool handler for fetch_toc.

Builds the heading outline of a page's main content and returns it whole,
as a Markdown list or a JSON array. URL fragments are ignored.
"""

from __future__ import annotations

import time
import uuid
from typing import TYPE_CHECKING

import structlog

from sectionfetch.browser import BrowserFetcher
from sectionfetch.errors import PHASE_ERROR_CODES, ErrorCode, Phase, SectionFetchError
from sectionfetch.formatter import failure_message, paginate, unexpected_failure_message
from sectionfetch.models.tools import FetchTocInput

if TYPE_CHECKING:
    from sectionfetch.protocols import FetcherProtocol, FetchMode
    from sectionfetch.state import AppState

TOOL_NAME = "fetch_toc"


async def handle(
    url: str,
    format: str,
    use_browser: bool,
    timeout: float,
    state: AppState,
) -> str:
    """Handle a fetch_toc tool call."""
    log = structlog.get_logger()

    try:
        validated = FetchTocInput(url=url, format=format, use_browser=use_browser, timeout=timeout)
    except ValueError as exc:
        raise SectionFetchError(
            str(exc),
            code=ErrorCode.INVALID_INPUT,
            suggestion=(
                "Provide a valid URL (http/https, max 2048 chars), format 'markdown' "
                "or 'json' and a timeout of at most 120 seconds."
            ),
        ) from exc

    if state.pipeline is None or state.fetcher is None:
        raise RuntimeError("Pipeline components (pipeline, fetcher) not initialized")

    fetcher: FetcherProtocol
    mode: FetchMode
    if validated.use_browser:
        fetcher = BrowserFetcher(state.settings.browser, timeout_seconds=validated.timeout)
        mode = "browser"
    else:
        fetcher = state.fetcher
        mode = "http"

    with structlog.contextvars.bound_contextvars(
        request_id=str(uuid.uuid4()), tool=TOOL_NAME, url=validated.url
    ):
        log.info("request_started", format=validated.format, use_browser=validated.use_browser)
        started = time.monotonic()

        try:
            result = await state.pipeline.outline(
                validated.url,
                fetcher,
                mode=mode,
                output_format=validated.format,
                timeout=validated.timeout,
            )
        except Exception as exc:
            log.error(
                "request_failed",
                duration_ms=int((time.monotonic() - started) * 1000),
                exc_info=True,
            )
            raise SectionFetchError(
                unexpected_failure_message(validated.url, exc, tool_name=TOOL_NAME),
                code=ErrorCode.UNEXPECTED_ERROR,
            ) from exc

        if result.content is None:
            phase = Phase.FETCH if result.failure is Phase.FETCH else Phase.EXTRACT
            log.warning(
                "request_failed",
                phase=result.failure,
                detail=result.detail,
                duration_ms=int((time.monotonic() - started) * 1000),
            )
            raise SectionFetchError(
                failure_message(phase, tool_name=TOOL_NAME),
                code=PHASE_ERROR_CODES[phase],
                suggestion=result.suggestion,
                recoverable=phase is Phase.FETCH,
            )

        # The outline is always returned in a single window
        window = paginate(
            result.content,
            url=validated.url,
            start_index=0,
            max_length=len(result.content),
            tool_name=TOOL_NAME,
        )
        log.info(
            "request_completed",
            duration_ms=int((time.monotonic() - started) * 1000),
            content_length=len(result.content),
            returned_length=window.returned_length,
            truncated=window.truncated,
        )
        return window.text
