"""Tool handler for fetch.

Fetches a page over plain HTTP, narrows it to the URL fragment's section when
one is present, converts it to Markdown (or returns the HTML when raw=True)
and returns one pagination window of the result.
No MCP or FastMCP imports — server.py handles the MCP wiring.
"""

from __future__ import annotations

import time
import uuid
from typing import TYPE_CHECKING

import structlog

from sectionfetch.errors import PHASE_ERROR_CODES, ErrorCode, Phase, SectionFetchError
from sectionfetch.formatter import failure_message, paginate, unexpected_failure_message
from sectionfetch.models.tools import FetchInput

if TYPE_CHECKING:
    from sectionfetch.state import AppState

TOOL_NAME = "fetch"


async def handle(
    url: str,
    max_length: int,
    start_index: int,
    raw: bool,
    state: AppState,
) -> str:
    """Handle a fetch tool call."""
    log = structlog.get_logger()

    try:
        validated = FetchInput(url=url, max_length=max_length, start_index=start_index, raw=raw)
    except ValueError as exc:
        raise SectionFetchError(
            str(exc),
            code=ErrorCode.INVALID_INPUT,
            suggestion=(
                "Provide a valid URL (http/https, max 2048 chars), "
                "max_length between 1 and 1000000, start_index >= 0."
            ),
        ) from exc

    if state.pipeline is None or state.fetcher is None:
        raise RuntimeError("Pipeline components (pipeline, fetcher) not initialized")

    with structlog.contextvars.bound_contextvars(
        request_id=str(uuid.uuid4()), tool=TOOL_NAME, url=validated.url
    ):
        log.info(
            "request_started",
            raw=validated.raw,
            start_index=validated.start_index,
            max_length=validated.max_length,
        )
        started = time.monotonic()

        try:
            result = await state.pipeline.render(
                validated.url,
                state.fetcher,
                mode="http",
                raw=validated.raw,
                timeout=state.settings.fetcher.timeout_seconds,
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
            # Anything past the fetch is reported as a processing failure
            phase = Phase.FETCH if result.failure is Phase.FETCH else Phase.PROCESS
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

        window = paginate(
            result.content,
            url=validated.url,
            start_index=validated.start_index,
            max_length=validated.max_length,
            raw=validated.raw,
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
