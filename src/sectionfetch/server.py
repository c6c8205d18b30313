"""MCP server entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Create AppState via the FastMCP lifespan context manager
- Register tools
- Start the correct transport (stdio or HTTP)
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog
from mcp.server.fastmcp import Context, FastMCP
from mcp.types import CallToolResult, TextContent

import sectionfetch.tools.fetch as t_fetch
import sectionfetch.tools.fetch_browser as t_fetch_browser
import sectionfetch.tools.fetch_toc as t_fetch_toc
from sectionfetch import __version__
from sectionfetch.cache import PageCache
from sectionfetch.config import Settings
from sectionfetch.document import ArticleExtractor, DocumentBuilder, MarkdownTransformer
from sectionfetch.errors import SectionFetchError
from sectionfetch.fetcher import Fetcher, build_http_client
from sectionfetch.pipeline import Pipeline
from sectionfetch.state import AppState
from sectionfetch.transport import run_http_server

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Sequence

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # Logs go to stderr — stdout is reserved for the MCP JSON-RPC stream
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncGenerator[AppState, None]:
    """Create and tear down all shared resources for the server's lifetime."""
    settings = Settings()
    _setup_logging(settings)

    log.info(
        "server_starting",
        version=__version__,
        transport=settings.server.transport,
    )

    http_client = build_http_client(settings.fetcher)
    cache = PageCache(
        ttl_seconds=settings.cache.ttl_seconds,
        max_entries=settings.cache.max_entries,
    )
    pipeline = Pipeline(
        cache=cache,
        builder=DocumentBuilder(),
        extractor=ArticleExtractor(),
        transformer=MarkdownTransformer(),
    )

    state = AppState(
        settings=settings,
        http_client=http_client,
        cache=cache,
        fetcher=Fetcher(http_client),
        pipeline=pipeline,
    )

    log.info(
        "server_started",
        version=__version__,
        transport=settings.server.transport,
        cache_ttl_seconds=settings.cache.ttl_seconds,
        cache_max_entries=settings.cache.max_entries,
    )

    try:
        yield state
    finally:
        await http_client.aclose()
        log.info("server_stopping", cache_size=cache.stats().size)


# ---------------------------------------------------------------------------
# FastMCP instance and tool registration
# ---------------------------------------------------------------------------

mcp = FastMCP("sectionfetch", lifespan=lifespan)
# FastMCP doesn't expose a version kwarg — set it on the underlying Server
# so the MCP initialize handshake reports our version, not the SDK's.
mcp._mcp_server.version = __version__  # pyright: ignore[reportPrivateUsage]


def _serialise_tool_error(error: SectionFetchError) -> CallToolResult:
    """Convert a SectionFetchError to the MCP tool error result envelope.

    The text block carries the tagged message; code, suggestion and
    recoverable travel in the structured content.
    """
    return CallToolResult(
        content=[TextContent(type="text", text=error.render())],
        structuredContent=error.to_dict(),
        isError=True,
    )


def _tool_error(tool: str, exc: SectionFetchError) -> CallToolResult:
    log.warning(
        "tool_error",
        tool=tool,
        code=exc.code,
        message=exc.message,
        suggestion=exc.suggestion,
        recoverable=exc.recoverable,
    )
    return _serialise_tool_error(exc)


@mcp.tool()
async def fetch(
    url: str,
    ctx: Context,
    max_length: int = 5000,
    start_index: int = 0,
    raw: bool = False,
) -> object:
    """Fetch a URL and return its main content as Markdown.

    If the URL has a #fragment, only the section it points to is returned.
    Long content is paginated: call again with the start_index named in the
    truncation notice to continue. Set raw=True for HTML instead of Markdown.
    """
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_fetch.handle(url, max_length, start_index, raw, state)
    except SectionFetchError as exc:
        return _tool_error("fetch", exc)
    except Exception:
        log.error("tool_unexpected_error", tool="fetch", exc_info=True)
        raise


@mcp.tool()
async def fetch_browser(
    url: str,
    ctx: Context,
    max_length: int = 5000,
    start_index: int = 0,
    raw: bool = False,
    timeout: float = 30.0,
    use_system_chrome: bool = True,
) -> object:
    """Render a URL in a headless browser, then return it like fetch does.

    Use this for pages whose content is built by JavaScript. timeout is in
    seconds (max 120).
    """
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_fetch_browser.handle(
            url, max_length, start_index, raw, timeout, use_system_chrome, state
        )
    except SectionFetchError as exc:
        return _tool_error("fetch_browser", exc)
    except Exception:
        log.error("tool_unexpected_error", tool="fetch_browser", exc_info=True)
        raise


@mcp.tool()
async def fetch_toc(
    url: str,
    ctx: Context,
    format: str = "markdown",
    use_browser: bool = False,
    timeout: float = 30.0,
) -> object:
    """Return the table of contents (heading outline) of a page.

    Each entry carries a section URL with a #fragment that can be passed to
    fetch to read just that section. format is "markdown" or "json".
    """
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_fetch_toc.handle(url, format, use_browser, timeout, state)
    except SectionFetchError as exc:
        return _tool_error("fetch_toc", exc)
    except Exception:
        log.error("tool_unexpected_error", tool="fetch_toc", exc_info=True)
        raise


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="sectionfetch",
        description="MCP server for fetching web pages, page sections and outlines.",
    )
    parser.add_argument("--transport", choices=["stdio", "http"])
    parser.add_argument("--host")
    parser.add_argument("--port", type=int)
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def _apply_cli_overrides(args: argparse.Namespace) -> None:
    """Export CLI flags as env vars so the lifespan's Settings() sees them too."""
    for field in ("transport", "host", "port"):
        value = getattr(args, field)
        if value is not None:
            os.environ[f"SECTIONFETCH__SERVER__{field.upper()}"] = str(value)


def main(argv: Sequence[str] | None = None) -> None:
    _apply_cli_overrides(_parse_args(argv))
    settings = Settings()

    if settings.server.transport == "http":
        _setup_logging(settings)
        run_http_server(mcp, settings)
        return

    mcp.run()


if __name__ == "__main__":
    main()
