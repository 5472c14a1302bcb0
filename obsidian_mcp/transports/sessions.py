"""HTTP session table.

Each ``initialize`` POST without a session header creates one
:class:`~mcp.server.streamable_http.StreamableHTTPServerTransport` with a
fresh opaque id and runs a protocol session on it inside the manager's task
group. Later requests carrying the ``mcp-session-id`` header are routed to
their transport. A session leaves the table when the client sends
``DELETE``, when it has been idle longer than ``idle_timeout``, or when the
manager shuts down. Any other request without a session header is refused
with 400 and leaves the table untouched.
"""

from __future__ import annotations

import contextlib
import json
import logging
import time
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional
from uuid import uuid4

import anyio
from anyio.abc import TaskGroup, TaskStatus
from mcp.server.lowlevel import Server
from mcp.server.streamable_http import StreamableHTTPServerTransport
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.types import Message, Receive, Scope, Send

from obsidian_mcp.constants import IDLE_CHECK_INTERVAL_SECONDS, SESSION_HEADER, SESSION_IDLE_TIMEOUT_SECONDS

if TYPE_CHECKING:
    from obsidian_mcp.dispatcher import Dispatcher

logger = logging.getLogger(__name__)


@dataclass
class SessionEntry:
    transport: StreamableHTTPServerTransport
    last_seen: float = field(default_factory=time.monotonic)


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        {"jsonrpc": "2.0", "error": {"code": -32000, "message": message}, "id": None},
        status_code=status_code,
    )


def _is_initialize(body: bytes) -> bool:
    try:
        message: Any = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError):
        return False
    return isinstance(message, dict) and message.get("method") == "initialize"


def _replay(body: bytes, receive: Receive) -> Receive:
    """Hand an already-read body to the next reader, then defer to ``receive``."""
    pending = True

    async def replay() -> Message:
        nonlocal pending
        if pending:
            pending = False
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return replay


class SessionManager:
    """Concurrent map of session id to streamable HTTP transport."""

    def __init__(
        self,
        protocol: Server,
        dispatcher: Dispatcher,
        json_response: bool = False,
        idle_timeout: float = SESSION_IDLE_TIMEOUT_SECONDS,
        reap_interval: float = IDLE_CHECK_INTERVAL_SECONDS,
        time_source: Callable[[], float] = time.monotonic,
    ) -> None:
        self.protocol = protocol
        self.dispatcher = dispatcher
        self.json_response = json_response
        self.idle_timeout = idle_timeout
        self.reap_interval = reap_interval
        self._now = time_source
        self._sessions: dict[str, SessionEntry] = {}
        self._creation_lock = anyio.Lock()
        self._task_group: Optional[TaskGroup] = None

    @property
    def session_ids(self) -> list[str]:
        return list(self._sessions)

    def __len__(self) -> int:
        return len(self._sessions)

    @contextlib.asynccontextmanager
    async def run(self) -> AsyncIterator[None]:
        """Own the task group that session loops run in."""
        if self._task_group is not None:
            raise RuntimeError("Session manager is already running")

        async with anyio.create_task_group() as task_group:
            self._task_group = task_group
            if self.idle_timeout > 0:
                task_group.start_soon(self._reap_idle)
            logger.debug("HTTP session manager started")
            try:
                yield
            finally:
                await self.close_all()
                task_group.cancel_scope.cancel()
                self._task_group = None
                logger.debug("HTTP session manager stopped")

    async def handle_request(self, scope: Scope, receive: Receive, send: Send) -> None:
        if self._task_group is None:
            raise RuntimeError("Session manager is not running")

        request = Request(scope, receive)
        session_id = request.headers.get(SESSION_HEADER)

        if session_id is None:
            if request.method != "POST":
                response = _error_response(400, "Bad Request: Missing session ID")
                await response(scope, receive, send)
                return
            body = await request.body()
            if not _is_initialize(body):
                response = _error_response(400, "Bad Request: Missing session ID")
                await response(scope, receive, send)
                return
            transport = await self._create_session()
            await transport.handle_request(scope, _replay(body, receive), send)
            return

        entry = self._sessions.get(session_id)
        if entry is None:
            response = _error_response(404, "Session not found")
            await response(scope, receive, send)
            return

        entry.last_seen = self._now()
        await entry.transport.handle_request(scope, receive, send)
        if entry.transport.is_terminated:
            self._forget(session_id, "terminated by client")

    async def _create_session(self) -> StreamableHTTPServerTransport:
        async with self._creation_lock:
            session_id = uuid4().hex
            transport = StreamableHTTPServerTransport(
                mcp_session_id=session_id,
                is_json_response_enabled=self.json_response,
            )
            self._sessions[session_id] = SessionEntry(transport=transport, last_seen=self._now())
            assert self._task_group is not None
            await self._task_group.start(self._run_session, session_id, transport)
            logger.info("Opened HTTP session %s", session_id)
            return transport

    async def _run_session(
        self,
        session_id: str,
        transport: StreamableHTTPServerTransport,
        *,
        task_status: TaskStatus[None] = anyio.TASK_STATUS_IGNORED,
    ) -> None:
        async with transport.connect() as (read_stream, write_stream):
            task_status.started()
            try:
                async with self.dispatcher.screen_methods(read_stream, write_stream) as screened:
                    await self.protocol.run(
                        screened,
                        write_stream,
                        self.protocol.create_initialization_options(),
                        stateless=False,
                    )
            except Exception:
                logger.exception("HTTP session %s crashed", session_id)
            finally:
                self._forget(session_id, "session ended")

    def _forget(self, session_id: str, reason: str) -> None:
        if self._sessions.pop(session_id, None) is not None:
            logger.info("Closed HTTP session %s (%s)", session_id, reason)

    async def terminate(self, session_id: str, reason: str = "terminated") -> None:
        entry = self._sessions.get(session_id)
        if entry is None:
            return
        try:
            await entry.transport.terminate()
        finally:
            self._forget(session_id, reason)

    def expired_sessions(self) -> list[str]:
        cutoff = self._now() - self.idle_timeout
        return [sid for sid, entry in self._sessions.items() if entry.last_seen < cutoff]

    async def reap_idle(self) -> list[str]:
        """Terminate sessions idle past ``idle_timeout``; returns their ids."""
        expired = self.expired_sessions()
        for session_id in expired:
            await self.terminate(session_id, "idle")
        return expired

    async def _reap_idle(self) -> None:
        while True:
            await anyio.sleep(self.reap_interval)
            await self.reap_idle()

    async def close_all(self) -> None:
        for session_id in list(self._sessions):
            try:
                await self.terminate(session_id, "shutdown")
            except Exception:
                logger.exception("Failed to terminate HTTP session %s", session_id)
