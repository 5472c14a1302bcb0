"""Streamable HTTP transport.

A Starlette app served by uvicorn. One catch-all route hands every request
to :class:`McpEndpoint`, which

- 404s anything outside the configured path (repeated copies such as
  ``/mcp/mcp`` are accepted for reverse proxies that prepend the mount),
- screens ``Host``/``Origin`` when DNS-rebinding protection is on,
- answers ``OPTIONS`` preflight and the legacy ``list_actions`` discovery call,
- forwards ``GET``/``POST``/``DELETE`` to the :class:`SessionManager`.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import socket
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any, Optional

import uvicorn
from mcp.server.lowlevel import Server
from mcp.server.transport_security import TransportSecurityMiddleware
from mcp.shared.exceptions import McpError
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.routing import Route
from starlette.types import Message, Receive, Scope, Send

from obsidian_mcp.config import HttpSettings, normalize_http_path
from obsidian_mcp.constants import (
    ALLOWED_HTTP_METHODS,
    GRACEFUL_SHUTDOWN_SECONDS,
    LEGACY_DISCOVERY_SEGMENT,
)
from obsidian_mcp.transports.base import Transport
from obsidian_mcp.transports.sessions import SessionManager

if TYPE_CHECKING:
    from obsidian_mcp.dispatcher import Dispatcher

logger = logging.getLogger(__name__)

JSON_MEDIA_TYPE = "application/json"
SSE_MEDIA_TYPE = "text/event-stream"
SESSION_METHODS = ("GET", "POST", "DELETE")


class RouteMatcher:
    """Matches the configured path, optionally repeated.

    For ``/mcp`` this accepts ``/mcp``, ``/mcp/mcp``, ``/mcp/mcp/mcp`` and so
    on. Empty segments (``//``, trailing ``/``) never match.
    """

    def __init__(self, base_path: str) -> None:
        self.base_path = normalize_http_path(base_path)
        self._segments = self.base_path.strip("/").split("/")

    def matches(self, path: str) -> bool:
        if not path.startswith("/"):
            return False
        parts = path[1:].split("/")
        if "" in parts or len(parts) % len(self._segments):
            return False
        return all(part == self._segments[i % len(self._segments)] for i, part in enumerate(parts))

    @staticmethod
    def split_legacy(path: str) -> tuple[str, bool]:
        """Strip a trailing ``/list_actions`` segment, reporting whether it was there."""
        suffix = f"/{LEGACY_DISCOVERY_SEGMENT}"
        if path.endswith(suffix):
            return path[: -len(suffix)], True
        return path, False


def _negotiate_accept(scope: Scope) -> Scope:
    """Advertise both JSON and SSE on POSTs that name only one of them."""
    headers = [(key, value) for key, value in scope["headers"] if key != b"accept"]
    accept = b", ".join(value for key, value in scope["headers"] if key == b"accept").decode("latin-1")
    if JSON_MEDIA_TYPE in accept and SSE_MEDIA_TYPE in accept:
        return scope
    headers.append((b"accept", f"{JSON_MEDIA_TYPE}, {SSE_MEDIA_TYPE}".encode("latin-1")))
    return {**scope, "headers": headers}


class McpEndpoint:
    """Raw ASGI endpoint for the MCP route."""

    def __init__(self, transport: HttpTransport) -> None:
        self.transport = transport

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        response_started = False

        async def tracking_send(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self._handle(scope, receive, tracking_send)
        except Exception:
            logger.exception("Failed to handle HTTP request %s %s", scope.get("method"), scope.get("path"))
            if not response_started:
                await PlainTextResponse("Internal Server Error", status_code=500)(scope, receive, send)

    async def _handle(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        method = request.method.upper()
        path, legacy = self.transport.matcher.split_legacy(request.url.path)

        if not self.transport.matcher.matches(path):
            await PlainTextResponse("Not Found", status_code=404)(scope, receive, send)
            return

        rejection = await self.transport.security.validate_request(request, is_post=method == "POST")
        if rejection is not None:
            await rejection(scope, receive, send)
            return

        if legacy:
            if method != "POST":
                await PlainTextResponse("Not Found", status_code=404)(scope, receive, send)
                return
            response = await self.transport.list_actions()
            await response(scope, receive, send)
            return

        if method == "OPTIONS":
            await Response(status_code=204, headers={"Allow": ALLOWED_HTTP_METHODS})(scope, receive, send)
            return

        if method not in SESSION_METHODS:
            await PlainTextResponse("Not Found", status_code=404)(scope, receive, send)
            return

        if method == "POST":
            scope = _negotiate_accept(scope)
        await self.transport.sessions.handle_request(scope, receive, send)


class HttpTransport(Transport):
    """Multi-session HTTP binding for the protocol server."""

    def __init__(self, protocol: Server, dispatcher: Dispatcher, settings: HttpSettings) -> None:
        super().__init__(protocol)
        self.dispatcher = dispatcher
        self.settings = settings
        self.matcher = RouteMatcher(settings.path)
        self.security = TransportSecurityMiddleware(settings.security_settings())
        self.sessions = SessionManager(
            protocol,
            dispatcher,
            json_response=settings.json_response,
            idle_timeout=settings.session_idle_timeout,
        )
        self.app = self.build_app()
        self.port: Optional[int] = None
        self._server: Optional[uvicorn.Server] = None
        self._task: Optional[asyncio.Task[None]] = None

    def build_app(self) -> Starlette:
        @contextlib.asynccontextmanager
        async def lifespan(app: Starlette) -> AsyncIterator[None]:
            async with self.sessions.run():
                yield

        return Starlette(
            routes=[Route("/{path:path}", endpoint=McpEndpoint(self))],
            lifespan=lifespan,
        )

    async def list_actions(self) -> Response:
        """Tool listing in the older ``actions`` vocabulary.

        Built from the same dispatcher call as ``tools/list`` so ``parameters``
        is exactly each tool's ``inputSchema``.
        """
        try:
            result = await self.dispatcher.dispatch(
                {"jsonrpc": "2.0", "id": LEGACY_DISCOVERY_SEGMENT, "method": "tools/list"}
            )
        except McpError as exc:
            return JSONResponse(
                {"error": {"code": exc.error.code, "message": exc.error.message}},
                status_code=400,
            )

        actions: list[dict[str, Any]] = [
            {
                "id": tool.name,
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.inputSchema,
            }
            for tool in result.root.tools
        ]
        return JSONResponse({"actions": actions})

    def _bind_socket(self) -> socket.socket:
        family = socket.AF_INET6 if ":" in self.settings.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.settings.host, self.settings.port))
        except OSError:
            sock.close()
            raise
        sock.set_inheritable(True)
        return sock

    async def start(self) -> None:
        """Bind the listener and wait until uvicorn accepts connections.

        Raises:
            OSError: If the host/port cannot be bound.
        """
        sock = self._bind_socket()
        self.port = sock.getsockname()[1]

        config = uvicorn.Config(
            self.app,
            log_config=None,
            access_log=False,
            lifespan="on",
            timeout_graceful_shutdown=GRACEFUL_SHUTDOWN_SECONDS,
        )
        self._server = uvicorn.Server(config)
        self._task = asyncio.create_task(self._server.serve(sockets=[sock]), name="obsidian-mcp-http")
        self._task.add_done_callback(lambda _: self._closed.set())

        while not self._server.started:
            if self._task.done():
                self._task.result()
                raise RuntimeError(f"HTTP server on {self.describe()} exited during startup")
            await asyncio.sleep(0.05)

        if self.settings.unprotected:
            logger.warning(
                "No DNS rebinding protection configured. Use --allowed-host/--allowed-origin "
                "with --enable-dns-rebinding-protection when exposing the server to untrusted networks."
            )

    async def close(self) -> None:
        await self.sessions.close_all()

    async def close_listener(self) -> None:
        server, task = self._server, self._task
        self._server = self._task = None
        if server is not None:
            server.should_exit = True
        if task is not None:
            await task
        self._closed.set()

    def describe(self) -> str:
        host = "localhost" if self.settings.host in ("0.0.0.0", "::") else self.settings.host
        return f"http://{host}:{self.port or self.settings.port}{self.settings.path}"
