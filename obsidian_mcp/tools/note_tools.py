"""Note management tools.

This module provides tool handlers for note CRUD operations:
- read-note
- create-note
- edit-note (append, prepend, replace)
- delete-note (to .trash or permanently)
- move-note (with backlink updates)
- create-directory

All tools delegate to core operations in obsidian_mcp.core.note_operations.
"""

from __future__ import annotations

from obsidian_mcp.core.note_operations import (
    create_directory,
    create_note,
    delete_note,
    edit_note,
    move_note,
    read_note,
)
from obsidian_mcp.data_models import VaultRegistry
from obsidian_mcp.models import (
    CreateDirectoryInput,
    CreateNoteInput,
    DeleteNoteInput,
    EditNoteInput,
    MoveNoteInput,
    ReadNoteInput,
)
from obsidian_mcp.registry import Content, ToolDescriptor, text_content
from obsidian_mcp.tools.context import ToolSet, resolve_vault


def build_note_tools(vaults: VaultRegistry) -> list[ToolDescriptor]:
    tools = ToolSet()

    # ==========================================================================
    # READ / CREATE / EDIT
    # ==========================================================================

    @tools.tool("read-note", ReadNoteInput)
    async def read_note_tool(input: ReadNoteInput) -> Content:
        """Read the raw markdown of a note, frontmatter included.

        Args:
            input (ReadNoteInput): Validated input containing:
                - vault (str): Vault name
                - filename (str): Note file name (.md optional)
                - folder (str, optional): Folder relative to the vault root

        Error Handling:
            - Unknown vault → InvalidParams listing the available vaults
            - Note not found → error naming the note path
        """
        vault = resolve_vault(vaults, input.vault)
        return text_content(read_note(vault, input.relative_path)["content"])

    @tools.tool("create-note", CreateNoteInput)
    async def create_note_tool(input: CreateNoteInput) -> Content:
        """Create a new note. Fails if the note already exists.

        Missing folders are created.

        Returns:
            {"vault": str, "path": str, "status": "created"}
        """
        vault = resolve_vault(vaults, input.vault)
        return text_content(create_note(vault, input.relative_path, input.content))

    @tools.tool("edit-note", EditNoteInput)
    async def edit_note_tool(input: EditNoteInput) -> Content:
        """Append to, prepend to, or replace the content of an existing note.

        Append and prepend insert a newline separator when needed. Replace
        overwrites the whole file, frontmatter included.

        Returns:
            {"vault": str, "path": str, "operation": str, "status": "updated"}
        """
        vault = resolve_vault(vaults, input.vault)
        return text_content(
            edit_note(vault, input.relative_path, input.operation.value, input.content)
        )

    # ==========================================================================
    # DELETE / MOVE / DIRECTORIES
    # ==========================================================================

    @tools.tool("delete-note", DeleteNoteInput)
    async def delete_note_tool(input: DeleteNoteInput) -> Content:
        """Delete a note (destructive). Confirm with the user first.

        By default the note is moved to the vault's .trash folder; set
        permanent=true to remove the file outright.

        Returns:
            {"vault": str, "path": str, "status": "trashed" | "deleted", "trash_path": str | null}
        """
        vault = resolve_vault(vaults, input.vault)
        return text_content(
            delete_note(vault, input.path, permanent=input.permanent, reason=input.reason)
        )

    @tools.tool("move-note", MoveNoteInput)
    async def move_note_tool(input: MoveNoteInput) -> Content:
        """Move or rename a note and update links that point to it.

        Wikilinks ([[Note]], [[Folder/Note|alias]]) and markdown links
        ([text](Folder/Note.md)) across the vault are rewritten.

        Returns:
            {"vault": str, "old_path": str, "new_path": str, "links_updated": int, "status": "moved"}
        """
        vault = resolve_vault(vaults, input.vault)
        return text_content(move_note(vault, input.source, input.destination))

    @tools.tool("create-directory", CreateDirectoryInput)
    async def create_directory_tool(input: CreateDirectoryInput) -> Content:
        """Create a folder inside the vault."""
        vault = resolve_vault(vaults, input.vault)
        return text_content(create_directory(vault, input.path, recursive=input.recursive))

    return tools.descriptors
