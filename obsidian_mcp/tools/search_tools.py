"""Search tools."""

from __future__ import annotations

import logging

from obsidian_mcp.core.search_operations import search_vault
from obsidian_mcp.data_models import VaultRegistry
from obsidian_mcp.models import SearchVaultInput
from obsidian_mcp.registry import Content, ToolDescriptor, text_content
from obsidian_mcp.tools.context import ToolSet, resolve_vault

logger = logging.getLogger(__name__)


def build_search_tools(vaults: VaultRegistry) -> list[ToolDescriptor]:
    tools = ToolSet()

    @tools.tool("search-vault", SearchVaultInput)
    async def search_vault_tool(input: SearchVaultInput) -> Content:
        """Search notes for literal text in their content, their path, or both.

        Results are ranked by number of matches and include up to three
        snippets of surrounding context per note. At most 50 notes are returned.

        Args:
            input (SearchVaultInput): Validated input containing:
                - vault (str): Vault name
                - query (str): Text to find (not a regular expression)
                - path (str, optional): Folder to restrict the search to
                - case_sensitive (bool): Default false
                - search_type (str): "content" (default), "filename", or "both"

        Returns:
            {
                "vault": str,
                "query": str,
                "total_matches": int,
                "file_count": int,
                "truncated": bool,
                "results": [{"path": str, "match_count": int, "filename_match": bool, "snippets": [str]}]
            }
        """
        vault = resolve_vault(vaults, input.vault)
        logger.debug("search-vault query=%r vault=%s", input.query, vault.name)
        return text_content(
            search_vault(
                vault,
                input.query,
                folder=input.path,
                case_sensitive=input.case_sensitive,
                search_type=input.search_type.value,
            )
        )

    return tools.descriptors
