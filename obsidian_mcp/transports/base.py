"""Transport interface shared by the stdio and HTTP bindings."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod

from mcp.server.lowlevel import Server


class Transport(ABC):
    """Connects a protocol :class:`Server` to a byte channel.

    ``start`` returns once the transport accepts traffic; it raises if the
    channel could not be opened. ``wait_closed`` resolves when the channel
    ends, whether by ``close`` or by the peer going away.
    """

    def __init__(self, protocol: Server) -> None:
        self.protocol = protocol
        self._closed = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @abstractmethod
    async def start(self) -> None:
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release session resources. Safe to call more than once."""

    async def close_listener(self) -> None:
        """Stop accepting new connections. No-op for listener-less transports."""

    async def wait_closed(self) -> None:
        await self._closed.wait()

    @abstractmethod
    def describe(self) -> str:
        """Human-readable address for log lines."""
