"""Tests for request routing, validation, and envelope wrapping."""

import json

import pytest
from mcp import types
from mcp.shared.exceptions import McpError
from pydantic import BaseModel, Field

from obsidian_mcp.config import AdmissionSettings
from obsidian_mcp.errors import PayloadTooLarge, RateLimitExceeded
from obsidian_mcp.registry import ToolDescriptor, text_content
from obsidian_mcp.server import ObsidianServer


class EchoInput(BaseModel):
    message: str = Field(description="Text to echo back.")


class PairInput(BaseModel):
    left: int
    right: int


def request(method, params=None, request_id=1):
    message = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        message["params"] = params
    return message


@pytest.fixture
def calls():
    return []


@pytest.fixture
def server(vault, calls):
    server = ObsidianServer([vault])

    async def echo(arguments: EchoInput):
        calls.append(arguments)
        return text_content(arguments.message)

    async def add(arguments: PairInput):
        calls.append(arguments)
        return text_content({"sum": arguments.left + arguments.right})

    async def explode(arguments: EchoInput):
        raise ValueError("boom")

    server.register_tool(ToolDescriptor("echo", "Echo a message", EchoInput, echo))
    server.register_tool(ToolDescriptor("add", "Add two integers", PairInput, add))
    server.register_tool(ToolDescriptor("explode", "Always fails", EchoInput, explode))
    return server


@pytest.fixture
def dispatcher(server):
    return server.dispatcher


class TestTools:
    @pytest.mark.asyncio
    async def test_list_tools(self, dispatcher):
        result = await dispatcher.dispatch(request("tools/list"))
        assert [tool.name for tool in result.root.tools] == ["echo", "add", "explode"]

    @pytest.mark.asyncio
    async def test_call_tool_success_carries_meta(self, dispatcher):
        result = await dispatcher.dispatch(
            request("tools/call", {"name": "echo", "arguments": {"message": "hi"}})
        )
        call_result = result.root
        assert call_result.content[0].text == "hi"
        assert call_result.meta["toolName"] == "echo"
        assert call_result.meta["success"] is True
        assert "timestamp" in call_result.meta

    @pytest.mark.asyncio
    async def test_arguments_are_coerced(self, dispatcher):
        result = await dispatcher.dispatch(
            request("tools/call", {"name": "add", "arguments": {"left": "2", "right": 3}})
        )
        assert json.loads(result.root.content[0].text) == {"sum": 5}

    @pytest.mark.asyncio
    async def test_unknown_tool_is_method_not_found(self, dispatcher):
        with pytest.raises(McpError) as info:
            await dispatcher.dispatch(request("tools/call", {"name": "nope", "arguments": {}}))
        assert info.value.error.code == types.METHOD_NOT_FOUND
        assert info.value.error.message == "Unknown tool: nope"

    @pytest.mark.asyncio
    async def test_validation_lists_every_field_and_skips_handler(self, dispatcher, calls):
        with pytest.raises(McpError) as info:
            await dispatcher.dispatch(
                request("tools/call", {"name": "add", "arguments": {"right": "not a number"}})
            )
        error = info.value.error
        assert error.code == types.INVALID_PARAMS
        assert error.message.startswith("Invalid arguments:")
        assert "left" in error.message
        assert "right" in error.message
        assert calls == []

    @pytest.mark.asyncio
    async def test_handler_failure_is_internal_error(self, dispatcher):
        with pytest.raises(McpError) as info:
            await dispatcher.dispatch(
                request("tools/call", {"name": "explode", "arguments": {"message": "x"}})
            )
        assert info.value.error.code == types.INTERNAL_ERROR
        assert info.value.error.message == "Tool execution failed: boom"


class TestEnvelope:
    @pytest.mark.asyncio
    async def test_unknown_method(self, dispatcher):
        with pytest.raises(McpError) as info:
            await dispatcher.dispatch(request("vaults/explode"))
        assert info.value.error.code == types.METHOD_NOT_FOUND
        assert info.value.error.message == "Method not found: vaults/explode"

    @pytest.mark.asyncio
    async def test_malformed_envelope(self, dispatcher):
        with pytest.raises(McpError) as info:
            await dispatcher.dispatch({"method": "tools/list"})
        assert info.value.error.code == types.INVALID_PARAMS
        assert info.value.error.message.startswith("Invalid request")

    @pytest.mark.asyncio
    async def test_bad_params_for_known_method(self, dispatcher):
        with pytest.raises(McpError) as info:
            await dispatcher.dispatch(request("tools/call", {"arguments": {}}))
        assert info.value.error.code == types.INVALID_PARAMS
        assert "Invalid request parameters" in info.value.error.message

    @pytest.mark.asyncio
    async def test_bound_handlers_go_through_admission(self, server):
        handler = server.protocol.request_handlers[types.ListToolsRequest]
        result = await handler(types.ListToolsRequest(method="tools/list"))
        assert len(result.root.tools) == 3
        assert server.clock.touched

    @pytest.mark.parametrize(
        "method, known",
        [("tools/call", True), ("initialize", True), ("ping", True), ("logging/setLevel", False), ("nope", False)],
    )
    def test_knows_only_handled_methods(self, dispatcher, method, known):
        assert dispatcher.knows(method) is known


class TestAdmission:
    @pytest.mark.asyncio
    async def test_rate_limit_applies_per_method(self, vault):
        server = ObsidianServer([vault], limits=AdmissionSettings(rate_limit=2))
        for _ in range(2):
            await server.dispatcher.dispatch(request("tools/list"))
        with pytest.raises(RateLimitExceeded):
            await server.dispatcher.dispatch(request("tools/list"))
        await server.dispatcher.dispatch(request("prompts/list"))

    @pytest.mark.asyncio
    async def test_oversized_message_is_rejected(self, vault):
        server = ObsidianServer([vault], limits=AdmissionSettings(max_message_bytes=200))
        with pytest.raises(PayloadTooLarge) as info:
            await server.dispatcher.dispatch(
                request("tools/call", {"name": "echo", "arguments": {"message": "x" * 500}})
            )
        assert info.value.error.code == types.INVALID_REQUEST


class TestPromptsAndResources:
    @pytest.mark.asyncio
    async def test_list_vaults_prompt(self, dispatcher):
        result = await dispatcher.dispatch(request("prompts/get", {"name": "list-vaults"}))
        prompt = result.root
        text = prompt.messages[0].content.text
        assert "The following Obsidian vaults are available:\n- work" in text
        assert prompt.meta["promptName"] == "list-vaults"

    @pytest.mark.asyncio
    async def test_unknown_prompt(self, dispatcher):
        with pytest.raises(McpError) as info:
            await dispatcher.dispatch(request("prompts/get", {"name": "nope"}))
        assert info.value.error.code == types.METHOD_NOT_FOUND
        assert info.value.error.message == "Prompt not found: nope"

    @pytest.mark.asyncio
    async def test_list_resources(self, dispatcher, vault):
        result = await dispatcher.dispatch(request("resources/list"))
        (resource,) = result.root.resources
        assert str(resource.uri).rstrip("/") == "obsidian-vault://work"
        assert resource.mimeType == "application/json"
        assert resource.description == f"Obsidian vault at {vault.path} (3 notes)"

    @pytest.mark.asyncio
    async def test_read_resource(self, dispatcher, vault):
        result = await dispatcher.dispatch(
            request("resources/read", {"uri": "obsidian-vault://work"})
        )
        payload = json.loads(result.root.contents[0].text)
        assert payload["name"] == "work"
        assert payload["path"] == str(vault.path)
        assert payload["type"] == "obsidian_vault"
        assert payload["metadata"]["noteCount"] == 3

    @pytest.mark.asyncio
    async def test_read_resource_rejects_other_schemes(self, dispatcher):
        with pytest.raises(McpError) as info:
            await dispatcher.dispatch(request("resources/read", {"uri": "file:///etc/passwd"}))
        assert info.value.error.code == types.INVALID_PARAMS
        assert info.value.error.message == "Invalid URI format. Only vault resources are supported."

    @pytest.mark.asyncio
    async def test_read_resource_unknown_vault(self, dispatcher):
        with pytest.raises(McpError) as info:
            await dispatcher.dispatch(
                request("resources/read", {"uri": "obsidian-vault://personal"})
            )
        assert info.value.error.message == "Unknown vault: personal"
