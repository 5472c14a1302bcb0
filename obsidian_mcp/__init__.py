"""Obsidian MCP Server.

Exposes one or more Obsidian vaults to MCP clients over stdio or HTTP:
note CRUD, search, and tag management, sandboxed to the configured vaults.
"""

from obsidian_mcp.constants import SERVER_VERSION
from obsidian_mcp.data_models import VaultConfig, VaultRegistry
from obsidian_mcp.server import ObsidianServer

__version__ = SERVER_VERSION

__all__ = ["ObsidianServer", "VaultConfig", "VaultRegistry", "__version__"]
