"""The ``list-vaults`` prompt: tells the model which vaults it can address."""

from __future__ import annotations

from mcp import types

from obsidian_mcp.data_models import VaultRegistry
from obsidian_mcp.registry import PromptDescriptor


async def render_list_vaults(vaults: VaultRegistry, arguments: dict[str, str]) -> types.GetPromptResult:
    if len(vaults):
        listing = "\n".join(f"- {vault.name}" for vault in vaults)
        text = (
            f"The following Obsidian vaults are available:\n{listing}\n\n"
            "You can use these vault names when working with tools. "
            'For example, to read a note in the first vault, use that vault\'s name as the "vault" argument.'
        )
    else:
        text = "No vaults are currently available"

    return types.GetPromptResult(
        description="Available Obsidian vaults",
        messages=[
            types.PromptMessage(
                role="user",
                content=types.TextContent(type="text", text=text),
            )
        ],
    )


list_vaults_prompt = PromptDescriptor(
    name="list-vaults",
    description="Show available Obsidian vaults. Use this prompt to discover which vaults you can work with.",
    render=render_list_vaults,
)
