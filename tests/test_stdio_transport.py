"""Tests for the stdio transport, driven over in-memory streams."""

import asyncio
import contextlib

import anyio
import pytest
import pytest_asyncio
from mcp import types
from mcp.shared.message import SessionMessage
from pydantic import BaseModel

from obsidian_mcp.constants import SERVER_NAME
from obsidian_mcp.registry import ToolDescriptor, text_content
from obsidian_mcp.server import ObsidianServer
from obsidian_mcp.transports import stdio

INITIALIZE = {
    "jsonrpc": "2.0",
    "id": 1,
    "method": "initialize",
    "params": {
        "protocolVersion": types.LATEST_PROTOCOL_VERSION,
        "capabilities": {},
        "clientInfo": {"name": "pytest", "version": "0.0.0"},
    },
}


class NoInput(BaseModel):
    pass


class Channel:
    """Both ends of a fake stdin/stdout pair."""

    def __init__(self):
        self.to_server, self.server_in = anyio.create_memory_object_stream(16)
        self.server_out, self.from_server = anyio.create_memory_object_stream(16)

    @contextlib.asynccontextmanager
    async def open(self):
        yield self.server_in, self.server_out

    async def send(self, payload):
        await self.to_server.send(SessionMessage(types.JSONRPCMessage.model_validate(payload)))

    async def receive(self):
        with anyio.fail_after(5):
            message = await self.from_server.receive()
        return message.message.model_dump(by_alias=True, exclude_none=True)


def call(request_id, name):
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "method": "tools/call",
        "params": {"name": name, "arguments": {}},
    }


@pytest.fixture
def events():
    return []


@pytest.fixture
def server(vault, events):
    server = ObsidianServer([vault])

    async def slow(arguments):
        events.append("first-start")
        await anyio.sleep(0.05)
        events.append("first-end")
        return text_content("slow")

    async def quick(arguments):
        events.append("second")
        return text_content("quick")

    server.register_tool(ToolDescriptor("slow", "Sleeps before answering", NoInput, slow))
    server.register_tool(ToolDescriptor("quick", "Answers at once", NoInput, quick))
    return server


@pytest.fixture
def channel(monkeypatch):
    channel = Channel()
    monkeypatch.setattr(stdio, "stdio_server", channel.open)
    return channel


@pytest_asyncio.fixture
async def serving(server, channel):
    task = asyncio.create_task(server.serve())
    await channel.send(INITIALIZE)
    response = await channel.receive()
    assert response["result"]["serverInfo"]["name"] == SERVER_NAME
    await channel.send({"jsonrpc": "2.0", "method": "notifications/initialized"})
    try:
        yield task
    finally:
        await channel.to_server.aclose()
        with anyio.fail_after(5):
            await task


class TestStdioTransport:
    @pytest.mark.asyncio
    async def test_calls_run_one_at_a_time(self, serving, channel, events):
        await channel.send(call(2, "slow"))
        await channel.send(call(3, "quick"))

        responses = [await channel.receive(), await channel.receive()]
        first, second = sorted(responses, key=lambda response: response["id"])

        assert sorted(events) == ["first-end", "first-start", "second"]
        assert events.index("first-end") == events.index("first-start") + 1
        assert [first["id"], second["id"]] == [2, 3]
        assert first["result"]["content"][0]["text"] == "slow"
        assert second["result"]["content"][0]["text"] == "quick"

    @pytest.mark.asyncio
    async def test_unknown_method_is_method_not_found(self, serving, channel):
        await channel.send({"jsonrpc": "2.0", "id": 4, "method": "nope/whatever"})
        response = await channel.receive()

        assert response["id"] == 4
        assert response["error"]["code"] == types.METHOD_NOT_FOUND
        assert response["error"]["message"] == "Method not found: nope/whatever"

    @pytest.mark.asyncio
    async def test_session_continues_after_unknown_method(self, serving, channel):
        await channel.send({"jsonrpc": "2.0", "id": 5, "method": "nope/whatever"})
        await channel.receive()
        await channel.send({"jsonrpc": "2.0", "id": 6, "method": "tools/list"})
        response = await channel.receive()

        assert response["id"] == 6
        assert [tool["name"] for tool in response["result"]["tools"]] == ["slow", "quick"]


@pytest.mark.asyncio
async def test_server_stops_when_channel_closes(server, channel):
    task = asyncio.create_task(server.serve())
    await channel.send(INITIALIZE)
    await channel.receive()
    transport = server.transport

    await channel.to_server.aclose()
    with anyio.fail_after(5):
        await task

    assert transport.closed
    assert server.stopped
    assert server.transport is None
