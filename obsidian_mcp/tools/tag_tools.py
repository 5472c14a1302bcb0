"""Tag management tools.

- add-tags: merge tags into frontmatter
- remove-tags: drop tags from frontmatter and inline occurrences
- rename-tag: rename a tag (and its nested children) vault-wide
"""

from __future__ import annotations

from obsidian_mcp.core.tag_operations import add_tags, remove_tags, rename_tag
from obsidian_mcp.data_models import VaultRegistry
from obsidian_mcp.models import AddTagsInput, RemoveTagsInput, RenameTagInput
from obsidian_mcp.registry import Content, ToolDescriptor, text_content
from obsidian_mcp.tools.context import ToolSet, resolve_vault


def build_tag_tools(vaults: VaultRegistry) -> list[ToolDescriptor]:
    tools = ToolSet()

    @tools.tool("add-tags", AddTagsInput)
    async def add_tags_tool(input: AddTagsInput) -> Content:
        """Add tags to the frontmatter of one or more notes.

        Tags may be given with or without '#'. A frontmatter block is created
        when a note has none. Per-file failures are reported without aborting
        the remaining files.

        Returns:
            {"vault": str, "tags": [str], "updated_files": [str], "errors": [{"path", "error"}], "status": str}
        """
        vault = resolve_vault(vaults, input.vault)
        return text_content(add_tags(vault, input.files, input.tags))

    @tools.tool("remove-tags", RemoveTagsInput)
    async def remove_tags_tool(input: RemoveTagsInput) -> Content:
        """Remove tags from notes, both frontmatter entries and inline #tags.

        Inline tags inside fenced code blocks are left untouched.
        """
        vault = resolve_vault(vaults, input.vault)
        return text_content(remove_tags(vault, input.files, input.tags))

    @tools.tool("rename-tag", RenameTagInput)
    async def rename_tag_tool(input: RenameTagInput) -> Content:
        """Rename a tag everywhere in the vault, or only inside `folder`.

        Nested tags move with their parent: renaming 'project' to 'work'
        turns '#project/active' into '#work/active'.

        Returns:
            {"vault": str, "old_tag": str, "new_tag": str, "updated_files": [str], "errors": [...], "status": str}
        """
        vault = resolve_vault(vaults, input.vault)
        return text_content(rename_tag(vault, input.old_tag, input.new_tag, folder=input.folder))

    return tools.descriptors
