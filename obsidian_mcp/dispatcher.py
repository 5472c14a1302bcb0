"""Request dispatcher.

Routes admitted requests to the tool, prompt, and resource handlers and
wraps their results in protocol envelopes. The same handlers serve both
entry points:

- :meth:`Dispatcher.bind` installs them on an ``mcp`` low-level ``Server``,
  which both transports drive.
- :meth:`Dispatcher.dispatch` takes a raw JSON-RPC request dict, for callers
  that sit outside a protocol session (the legacy HTTP discovery route).
- :meth:`Dispatcher.screen_methods` sits in front of a live session and
  answers requests for methods nothing handles.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import datetime, timezone
from typing import Any, Optional, Union

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from mcp import types
from mcp.server.lowlevel import Server
from mcp.shared.exceptions import McpError
from mcp.shared.message import SessionMessage
from pydantic import ValidationError

from obsidian_mcp import resources
from obsidian_mcp.constants import VAULT_URI_SCHEME
from obsidian_mcp.data_models import VaultRegistry
from obsidian_mcp.errors import (
    format_validation_error,
    internal_error,
    invalid_params,
    method_not_found,
)
from obsidian_mcp.registry import PromptRegistry, ToolRegistry
from obsidian_mcp.security.admission import AdmissionController

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Awaitable[types.ServerResult]]

# Answered by the SDK session itself rather than by a routed handler.
PROTOCOL_METHODS = frozenset({"initialize", "ping"})


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class Dispatcher:
    """Admission, routing, validation, and envelope wrapping for one server."""

    def __init__(
        self,
        tools: ToolRegistry,
        prompts: PromptRegistry,
        vaults: VaultRegistry,
        admission: AdmissionController,
    ) -> None:
        self.tools = tools
        self.prompts = prompts
        self.vaults = vaults
        self.admission = admission
        self._protocol: Optional[Server] = None
        self._call_lock: Optional[anyio.Lock] = None
        self.routes: dict[str, tuple[type[types.Request], Handler]] = {
            "tools/list": (types.ListToolsRequest, self.list_tools),
            "tools/call": (types.CallToolRequest, self.call_tool),
            "prompts/list": (types.ListPromptsRequest, self.list_prompts),
            "prompts/get": (types.GetPromptRequest, self.get_prompt),
            "resources/list": (types.ListResourcesRequest, self.list_resources),
            "resources/read": (types.ReadResourceRequest, self.read_resource),
        }

    # ==========================================================================
    # ENTRY POINTS
    # ==========================================================================

    def bind(self, protocol: Server) -> None:
        """Install admission-guarded handlers on ``protocol``."""
        for method, (request_type, handler) in self.routes.items():
            protocol.request_handlers[request_type] = self._guarded(method, handler)
        self._protocol = protocol

    def serialize_calls(self) -> None:
        """Run bound handlers one at a time, in arrival order."""
        if self._call_lock is None:
            self._call_lock = anyio.Lock()

    def _guarded(self, method: str, handler: Handler) -> Handler:
        async def guarded(request: types.Request) -> types.ServerResult:
            if self._call_lock is None:
                self.admission.admit(method, request)
                return await handler(request)
            async with self._call_lock:
                self.admission.admit(method, request)
                return await handler(request)

        return guarded

    def knows(self, method: str) -> bool:
        """Whether a live session can answer ``method``."""
        if method in self.routes or method in PROTOCOL_METHODS:
            return True
        if self._protocol is None:
            return False
        return any(
            request_type.model_fields["method"].default == method
            for request_type in self._protocol.request_handlers
        )

    @contextlib.asynccontextmanager
    async def screen_methods(
        self,
        read_stream: MemoryObjectReceiveStream[Union[SessionMessage, Exception]],
        write_stream: MemoryObjectSendStream[SessionMessage],
    ) -> AsyncIterator[MemoryObjectReceiveStream[Union[SessionMessage, Exception]]]:
        """Answer requests for unknown methods before the SDK session sees them.

        The session validates every request against its closed set of method
        types and reports anything else as invalid params. Requests it could
        not route are answered here with ``method not found`` instead; all
        other traffic is forwarded unchanged on the yielded stream.
        """
        forward_send, forward_receive = anyio.create_memory_object_stream(0)

        async def pump() -> None:
            async with forward_send:
                try:
                    async for item in read_stream:
                        if isinstance(item, SessionMessage):
                            root = item.message.root
                            if isinstance(root, types.JSONRPCRequest) and not self.knows(root.method):
                                await write_stream.send(self._reject(root))
                                continue
                        await forward_send.send(item)
                except (anyio.BrokenResourceError, anyio.ClosedResourceError):
                    logger.debug("Session streams closed while screening methods")

        async with anyio.create_task_group() as task_group:
            task_group.start_soon(pump)
            try:
                yield forward_receive
            finally:
                task_group.cancel_scope.cancel()

    def _reject(self, request: types.JSONRPCRequest) -> SessionMessage:
        try:
            self.admission.admit(request.method, request)
        except McpError as exc:
            rejection = exc
        else:
            rejection = method_not_found(f"Method not found: {request.method}")
        logger.warning("Rejected request %s: %s", request.id, rejection.error.message)
        error = types.JSONRPCError(jsonrpc="2.0", id=request.id, error=rejection.error)
        return SessionMessage(types.JSONRPCMessage(error))

    async def dispatch(self, message: dict[str, Any]) -> types.ServerResult:
        """Handle one raw JSON-RPC request.

        Raises:
            McpError: With the JSON-RPC error the caller should send back.
        """
        try:
            envelope = types.JSONRPCRequest.model_validate(message)
        except ValidationError as exc:
            raise invalid_params(format_validation_error("Invalid request", exc)) from exc

        self.admission.admit(envelope.method, message)

        route = self.routes.get(envelope.method)
        if route is None:
            raise method_not_found(f"Method not found: {envelope.method}")
        request_type, handler = route

        try:
            request = request_type.model_validate(
                {"method": envelope.method, "params": envelope.params}
            )
        except ValidationError as exc:
            raise invalid_params(format_validation_error("Invalid request parameters", exc)) from exc

        return await handler(request)

    # ==========================================================================
    # TOOLS
    # ==========================================================================

    async def list_tools(self, request: types.ListToolsRequest) -> types.ServerResult:
        return types.ServerResult(types.ListToolsResult(tools=self.tools.list_tools()))

    async def call_tool(self, request: types.CallToolRequest) -> types.ServerResult:
        name = request.params.name
        tool = self.tools.get(name)
        if tool is None:
            raise method_not_found(f"Unknown tool: {name}")

        try:
            arguments = tool.parse(request.params.arguments)
        except ValidationError as exc:
            raise invalid_params(format_validation_error("Invalid arguments", exc)) from exc

        try:
            content = await tool.handler(arguments)
        except McpError:
            raise
        except Exception as exc:
            logger.error("Tool '%s' failed: %s", name, exc)
            raise internal_error(f"Tool execution failed: {exc}") from exc

        return types.ServerResult(
            types.CallToolResult(
                content=content,
                _meta={"toolName": name, "timestamp": _timestamp(), "success": True},
            )
        )

    # ==========================================================================
    # PROMPTS
    # ==========================================================================

    async def list_prompts(self, request: types.ListPromptsRequest) -> types.ServerResult:
        return types.ServerResult(types.ListPromptsResult(prompts=self.prompts.list_prompts()))

    async def get_prompt(self, request: types.GetPromptRequest) -> types.ServerResult:
        name = request.params.name
        prompt = self.prompts.get(name)
        if prompt is None:
            raise method_not_found(f"Prompt not found: {name}")

        arguments = dict(request.params.arguments or {})
        if prompt.argument_model is not None:
            try:
                prompt.argument_model.model_validate(arguments)
            except ValidationError as exc:
                raise invalid_params(format_validation_error("Invalid arguments", exc)) from exc

        try:
            result = await prompt.render(self.vaults, arguments)
        except McpError:
            raise
        except Exception as exc:
            logger.error("Prompt '%s' failed: %s", name, exc)
            raise internal_error(f"Prompt rendering failed: {exc}") from exc

        meta = {**(result.meta or {}), "promptName": name, "timestamp": _timestamp()}
        return types.ServerResult(result.model_copy(update={"meta": meta}))

    # ==========================================================================
    # RESOURCES
    # ==========================================================================

    async def list_resources(self, request: types.ListResourcesRequest) -> types.ServerResult:
        return types.ServerResult(
            types.ListResourcesResult(resources=resources.list_vault_resources(self.vaults))
        )

    async def read_resource(self, request: types.ReadResourceRequest) -> types.ServerResult:
        uri = str(request.params.uri)
        if not uri.startswith(VAULT_URI_SCHEME):
            raise invalid_params("Invalid URI format. Only vault resources are supported.")
        contents = resources.read_vault_resource(self.vaults, uri)
        return types.ServerResult(types.ReadResourceResult(contents=[contents]))
