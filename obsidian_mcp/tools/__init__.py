"""Tool definitions for Obsidian vault operations.

Each submodule exposes a ``build_*_tools`` function returning descriptors
bound to a vault registry; :func:`build_tools` gathers them in listing order.
"""

from __future__ import annotations

from obsidian_mcp.data_models import VaultRegistry
from obsidian_mcp.registry import ToolDescriptor
from obsidian_mcp.tools.note_tools import build_note_tools
from obsidian_mcp.tools.search_tools import build_search_tools
from obsidian_mcp.tools.tag_tools import build_tag_tools
from obsidian_mcp.tools.vault_tools import build_vault_tools


def build_tools(vaults: VaultRegistry) -> list[ToolDescriptor]:
    return [
        *build_vault_tools(vaults),
        *build_note_tools(vaults),
        *build_search_tools(vaults),
        *build_tag_tools(vaults),
    ]


__all__ = [
    "build_note_tools",
    "build_search_tools",
    "build_tag_tools",
    "build_tools",
    "build_vault_tools",
]
