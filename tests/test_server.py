"""Tests for server construction and lifecycle."""

import asyncio

import pytest
from mcp import types
from mcp.shared.exceptions import McpError

from obsidian_mcp.config import AdmissionSettings
from obsidian_mcp.data_models import VaultConfig
from obsidian_mcp.errors import DuplicateRegistration
from obsidian_mcp.server import ObsidianServer
from obsidian_mcp.tools import build_tools


class RecordingTransport:
    """Stands in for a transport; records lifecycle calls."""

    def __init__(self, fail_close: bool = False) -> None:
        self.events = []
        self.fail_close = fail_close

    async def close(self):
        self.events.append("close")
        if self.fail_close:
            raise RuntimeError("close failed")

    async def close_listener(self):
        self.events.append("close_listener")

    async def wait_closed(self):
        return None

    def describe(self):
        return "recording"


class TestConstruction:
    def test_requires_at_least_one_vault(self):
        with pytest.raises(McpError) as info:
            ObsidianServer([])
        assert info.value.error.code == types.INVALID_REQUEST
        assert info.value.error.message.startswith("No vault configurations provided")

    def test_missing_marker_is_rejected(self, tmp_path):
        bare = tmp_path / "bare"
        bare.mkdir()
        with pytest.raises(McpError) as info:
            ObsidianServer([VaultConfig("bare", bare)])
        assert info.value.error.code == types.INVALID_REQUEST
        assert "Missing .obsidian directory" in info.value.error.message

    def test_marker_must_be_directory(self, tmp_path):
        root = tmp_path / "odd"
        root.mkdir()
        (root / ".obsidian").write_text("not a directory")
        with pytest.raises(McpError) as info:
            ObsidianServer([VaultConfig("odd", root)])
        assert "exists but is not a directory" in info.value.error.message

    def test_overlapping_vaults_are_rejected(self, vault_factory):
        outer = vault_factory("a/b")
        inner = vault_factory("a/b/c")
        with pytest.raises(McpError) as info:
            ObsidianServer([VaultConfig("outer", outer), VaultConfig("inner", inner)])
        assert info.value.error.code == types.INVALID_REQUEST
        assert "cannot overlap" in info.value.error.message

    def test_duplicate_vault_names_are_rejected(self, vault_factory):
        first = vault_factory("one")
        second = vault_factory("two")
        with pytest.raises(McpError):
            ObsidianServer([VaultConfig("same", first), VaultConfig("same", second)])

    def test_registers_builtin_prompt(self, vault):
        server = ObsidianServer([vault])
        assert server.prompts.names() == ["list-vaults"]

    def test_duplicate_tool_registration(self, vault):
        server = ObsidianServer([vault])
        tools = build_tools(server.vaults)
        for tool in tools:
            server.register_tool(tool)
        with pytest.raises(DuplicateRegistration):
            server.register_tool(tools[0])
        assert len(server.tools.list_tools()) == len(tools)

    def test_full_tool_set(self, vault):
        server = ObsidianServer([vault])
        for tool in build_tools(server.vaults):
            server.register_tool(tool)
        assert server.tools.names() == [
            "list-available-vaults",
            "read-note",
            "create-note",
            "edit-note",
            "delete-note",
            "move-note",
            "create-directory",
            "search-vault",
            "add-tags",
            "remove-tags",
            "rename-tag",
        ]


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_stop_before_start_is_safe(self, vault):
        server = ObsidianServer([vault])
        await server.stop()
        assert server.stopped

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, vault):
        server = ObsidianServer([vault])
        transport = RecordingTransport()
        server.transport = transport
        await server.stop()
        await server.stop()
        assert transport.events == ["close", "close_listener"]

    @pytest.mark.asyncio
    async def test_stop_continues_after_failure(self, vault, caplog):
        server = ObsidianServer([vault])
        transport = RecordingTransport(fail_close=True)
        server.transport = transport
        await server.stop()
        assert transport.events == ["close", "close_listener"]
        assert server.stopped
        assert "Error closing transport" in caplog.text

    @pytest.mark.asyncio
    async def test_idle_watchdog_stops_server(self, vault):
        now = [0.0]
        server = ObsidianServer(
            [vault],
            limits=AdmissionSettings(
                idle_timeout_seconds=60,
                startup_grace_seconds=60,
                check_interval_seconds=0.01,
            ),
            time_source=lambda: now[0],
        )
        transport = RecordingTransport()
        server.transport = transport
        server.monitor.start()

        now[0] = 61.0
        for _ in range(200):
            if server.stopped:
                break
            await asyncio.sleep(0.01)

        assert server.stopped
        assert transport.events == ["close", "close_listener"]
