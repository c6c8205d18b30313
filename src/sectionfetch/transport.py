"""Streamable HTTP transport and security middleware for the MCP server."""

from __future__ import annotations

import re
import secrets
from typing import TYPE_CHECKING

import structlog
import uvicorn
from starlette.datastructures import Headers
from starlette.responses import Response

if TYPE_CHECKING:
    from mcp.server.fastmcp import FastMCP
    from starlette.types import ASGIApp, Receive, Scope, Send

    from sectionfetch.config import Settings

log = structlog.get_logger()

SUPPORTED_PROTOCOL_VERSIONS: frozenset[str] = frozenset({"2025-11-25", "2025-06-18", "2025-03-26"})
_LOCALHOST_ORIGIN = re.compile(r"^https?://(localhost|127\.0\.0\.1|\[::1\])(:\d+)?$")


class MCPSecurityMiddleware:
    """Pure ASGI middleware guarding the HTTP transport.

    Rejects a request when, in order:
    1. bearer auth is enabled and the Authorization header does not match;
    2. an Origin header is present and is not a localhost origin;
    3. an MCP-Protocol-Version header names a version we do not speak.

    Pure ASGI rather than BaseHTTPMiddleware, so streamed SSE responses pass
    through unbuffered.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        auth_enabled: bool,
        auth_key: str | None = None,
    ) -> None:
        self.app = app
        self.auth_enabled = auth_enabled
        self.auth_key = auth_key

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        rejection = self._check(Headers(scope=scope))
        if rejection is not None:
            await rejection(scope, receive, send)
            return

        await self.app(scope, receive, send)

    def _check(self, headers: Headers) -> Response | None:
        if self.auth_enabled:
            scheme, _, supplied = headers.get("authorization", "").partition(" ")
            if (
                scheme != "Bearer"
                or not self.auth_key
                or not secrets.compare_digest(supplied.encode(), self.auth_key.encode())
            ):
                return Response("Unauthorized", status_code=401)

        origin = headers.get("origin", "")
        if origin and not _LOCALHOST_ORIGIN.match(origin):
            return Response("Forbidden", status_code=403)

        proto_version = headers.get("mcp-protocol-version", "")
        if proto_version and proto_version not in SUPPORTED_PROTOCOL_VERSIONS:
            return Response(f"Unsupported protocol version: {proto_version}", status_code=400)

        return None


def resolve_auth_key(settings: Settings) -> str | None:
    """Return the bearer key to enforce, generating one if auth is on without a key."""
    if not settings.server.auth_enabled:
        log.warning("http_auth_disabled", transport="http")
        return None
    if settings.server.auth_key:
        return settings.server.auth_key
    auth_key = secrets.token_urlsafe(32)
    log.warning("http_auth_key_auto_generated", transport="http", auth_key=auth_key)
    return auth_key


def run_http_server(mcp: FastMCP, settings: Settings) -> None:
    """Serve *mcp* over Streamable HTTP with uvicorn."""
    secured_app = MCPSecurityMiddleware(
        mcp.streamable_http_app(),
        auth_enabled=settings.server.auth_enabled,
        auth_key=resolve_auth_key(settings),
    )

    log.info(
        "http_server_starting",
        host=settings.server.host,
        port=settings.server.port,
    )
    uvicorn.run(
        secured_app,
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,  # structlog owns logging
    )
