"""Protocol server lifecycle.

:class:`ObsidianServer` owns the vault registry, the capability registries,
admission control, and one active transport. Construction validates the
vaults and fails without leaving a partial server behind.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Optional

from mcp.server.lowlevel import Server

from obsidian_mcp.config import AdmissionSettings, HttpSettings
from obsidian_mcp.constants import SERVER_NAME, SERVER_VERSION
from obsidian_mcp.data_models import VaultConfig, VaultRegistry
from obsidian_mcp.dispatcher import Dispatcher
from obsidian_mcp.errors import DuplicateRegistration, VaultPathError, invalid_request
from obsidian_mcp.prompts import list_vaults_prompt
from obsidian_mcp.registry import PromptDescriptor, PromptRegistry, ToolDescriptor, ToolRegistry
from obsidian_mcp.security.admission import (
    ActivityClock,
    AdmissionController,
    ConnectionMonitor,
    RateLimiter,
    TimeSource,
)
from obsidian_mcp.transports import HttpTransport, StdioTransport, Transport

logger = logging.getLogger(__name__)


class ObsidianServer:
    """MCP server exposing one or more Obsidian vaults.

    Args:
        vault_configs: Ordered ``VaultConfig`` entries; at least one.
        limits: Admission and idle-timeout settings.
        time_source: Clock for activity tracking and rate limiting; tests
            substitute a controllable one.

    Raises:
        McpError: InvalidRequest if no configs are given, a vault lacks its
            ``.obsidian`` directory, two vaults overlap, or a name repeats.
    """

    def __init__(
        self,
        vault_configs: Sequence[VaultConfig],
        limits: Optional[AdmissionSettings] = None,
        time_source: Optional[TimeSource] = None,
    ) -> None:
        if not vault_configs:
            raise invalid_request(
                "No vault configurations provided. At least one valid Obsidian vault is required."
            )

        try:
            self.vaults = VaultRegistry.from_configs(vault_configs)
        except (VaultPathError, DuplicateRegistration) as exc:
            raise invalid_request(str(exc)) from exc

        self.limits = limits or AdmissionSettings()
        clock_kwargs = {"time_source": time_source} if time_source is not None else {}
        self.clock = ActivityClock(**clock_kwargs)
        self.rate_limiter = RateLimiter(
            max_requests=self.limits.rate_limit,
            window_seconds=self.limits.rate_window_seconds,
            **clock_kwargs,
        )
        self.admission = AdmissionController(
            self.clock, self.rate_limiter, max_message_bytes=self.limits.max_message_bytes
        )
        self.monitor = ConnectionMonitor(
            self.clock,
            on_idle=self._on_idle,
            idle_timeout=self.limits.idle_timeout_seconds,
            startup_grace=self.limits.startup_grace_seconds,
            check_interval=self.limits.check_interval_seconds,
        )

        self.tools = ToolRegistry()
        self.prompts = PromptRegistry()
        self.dispatcher = Dispatcher(self.tools, self.prompts, self.vaults, self.admission)
        self.protocol = Server(SERVER_NAME, version=SERVER_VERSION)
        self.dispatcher.bind(self.protocol)

        self.transport: Optional[Transport] = None
        self._stopping = False
        self._stopped = False
        self._idle_stop: Optional[asyncio.Task[None]] = None

        self.register_prompt(list_vaults_prompt)
        logger.info("Server initialized with %d vault(s): %s", len(self.vaults), ", ".join(self.vaults.names()))

    # ==========================================================================
    # REGISTRATION
    # ==========================================================================

    def register_tool(self, tool: ToolDescriptor) -> None:
        """Add a tool. Raises ``DuplicateRegistration`` if the name is taken."""
        logger.debug("Registering tool: %s", tool.name)
        self.tools.register(tool)

    def register_prompt(self, prompt: PromptDescriptor) -> None:
        self.prompts.register(prompt)

    # ==========================================================================
    # LIFECYCLE
    # ==========================================================================

    async def start(self, http: Optional[HttpSettings] = None) -> None:
        """Open the transport and start the idle watchdog.

        Args:
            http: Serve over HTTP with these settings; stdio when omitted.

        Raises:
            OSError: If the HTTP listener cannot bind.
        """
        if self.transport is not None:
            raise RuntimeError("Server is already started")

        if http is not None:
            transport: Transport = HttpTransport(self.protocol, self.dispatcher, http)
        else:
            transport = StdioTransport(self.protocol, self.dispatcher)

        await transport.start()
        self.transport = transport
        self.monitor.start()
        logger.info("Obsidian MCP Server running on %s", transport.describe())

    async def wait_closed(self) -> None:
        if self.transport is not None:
            await self.transport.wait_closed()

    async def serve(self, http: Optional[HttpSettings] = None) -> None:
        """Start, run until the transport closes, then stop."""
        await self.start(http)
        try:
            await self.wait_closed()
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Stop the watchdog, the transport, and the listener, in that order.

        Each step runs even if an earlier one failed; failures are logged.
        Calling ``stop`` again is a no-op.
        """
        if self._stopping:
            return
        self._stopping = True

        try:
            self.monitor.stop()
        except Exception:
            logger.exception("Error stopping connection monitor")

        transport, self.transport = self.transport, None
        if transport is not None:
            try:
                await transport.close()
            except Exception:
                logger.exception("Error closing transport")
            try:
                await transport.close_listener()
            except Exception:
                logger.exception("Error closing listener")

        self._stopped = True
        logger.info("Obsidian MCP Server stopped")

    @property
    def stopped(self) -> bool:
        return self._stopped

    def _on_idle(self) -> None:
        self._idle_stop = asyncio.get_running_loop().create_task(self.stop())
