"""Stdio transport: one implicit session over the process's stdin/stdout."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING, Optional

from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server

from obsidian_mcp.transports.base import Transport

if TYPE_CHECKING:
    from obsidian_mcp.dispatcher import Dispatcher

logger = logging.getLogger(__name__)


class StdioTransport(Transport):
    """Serves the protocol over stdin/stdout until either side closes.

    The SDK session starts a task per incoming request, so the dispatcher is
    switched to serialized calls: each request on this channel completes
    before the next one starts.
    """

    _task: Optional[asyncio.Task[None]] = None

    def __init__(self, protocol: Server, dispatcher: Dispatcher) -> None:
        super().__init__(protocol)
        self.dispatcher = dispatcher
        dispatcher.serialize_calls()

    async def start(self) -> None:
        self._task = asyncio.create_task(self._serve(), name="obsidian-mcp-stdio")

    async def _serve(self) -> None:
        try:
            async with stdio_server() as (read_stream, write_stream):
                async with self.dispatcher.screen_methods(read_stream, write_stream) as screened:
                    await self.protocol.run(
                        screened,
                        write_stream,
                        self.protocol.create_initialization_options(),
                    )
            logger.info("stdio channel closed by peer")
        except Exception:
            logger.exception("stdio transport failed")
        finally:
            self._closed.set()

    async def close(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._closed.set()

    def describe(self) -> str:
        return "stdio"
