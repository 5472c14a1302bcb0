"""Prompt definitions."""

from obsidian_mcp.prompts.list_vaults import list_vaults_prompt

__all__ = ["list_vaults_prompt"]
