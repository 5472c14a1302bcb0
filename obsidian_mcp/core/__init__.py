"""Filesystem operations behind the vault tools.

Architecture:
- vault_operations: sandboxed path resolution and vault listing
- note_operations: note CRUD, trash, move with backlink updates
- search_operations: literal search over contents and paths
- tag_operations: frontmatter and inline tag management
"""

from .note_operations import (
    create_directory,
    create_note,
    delete_note,
    edit_note,
    move_note,
    read_note,
)
from .search_operations import search_vault
from .tag_operations import add_tags, remove_tags, rename_tag
from .vault_operations import (
    ensure_vault_ready,
    iter_notes,
    list_vaults,
    resolve_in_vault,
    resolve_note_path,
    vault_relative,
)

__all__ = [
    "add_tags",
    "create_directory",
    "create_note",
    "delete_note",
    "edit_note",
    "ensure_vault_ready",
    "iter_notes",
    "list_vaults",
    "move_note",
    "read_note",
    "remove_tags",
    "rename_tag",
    "resolve_in_vault",
    "resolve_note_path",
    "search_vault",
    "vault_relative",
]
