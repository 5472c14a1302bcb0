"""Vault discovery tools."""

from __future__ import annotations

from obsidian_mcp.core.vault_operations import list_vaults
from obsidian_mcp.data_models import VaultRegistry
from obsidian_mcp.models import ListVaultsInput
from obsidian_mcp.registry import Content, ToolDescriptor, text_content
from obsidian_mcp.tools.context import ToolSet


def build_vault_tools(vaults: VaultRegistry) -> list[ToolDescriptor]:
    tools = ToolSet()

    @tools.tool("list-available-vaults", ListVaultsInput)
    async def list_available_vaults(input: ListVaultsInput) -> Content:
        """List every configured Obsidian vault.

        Returns:
            {"vaults": [{"name": str, "path": str, "exists": bool}, ...]}

        Use the returned names as the "vault" argument of the other tools.
        """
        return text_content(list_vaults(vaults))

    return tools.descriptors
