"""Pydantic input models for MCP tool validation.

Each model is the input schema of one tool: field-level validation, type
coercion, and descriptive error messages. The JSON schema clients see as a
tool's ``inputSchema`` is generated from these models.

Architecture:
- base: VaultInput and BaseNoteInput, shared path validation
- note_models: note CRUD and directory creation
- search_models: vault search
- tag_models: tag add/remove/rename
- vault_models: vault discovery
"""

from .base import BaseNoteInput, VaultInput, validate_relative_path
from .note_models import (
    CreateDirectoryInput,
    CreateNoteInput,
    DeleteNoteInput,
    EditNoteInput,
    EditOperation,
    MoveNoteInput,
    ReadNoteInput,
)
from .search_models import SearchType, SearchVaultInput
from .tag_models import AddTagsInput, RemoveTagsInput, RenameTagInput, normalize_tag
from .vault_models import ListVaultsInput

__all__ = [
    # Base models
    "BaseNoteInput",
    "VaultInput",
    "validate_relative_path",
    # Note models
    "CreateDirectoryInput",
    "CreateNoteInput",
    "DeleteNoteInput",
    "EditNoteInput",
    "EditOperation",
    "MoveNoteInput",
    "ReadNoteInput",
    # Search models
    "SearchType",
    "SearchVaultInput",
    # Tag models
    "AddTagsInput",
    "RemoveTagsInput",
    "RenameTagInput",
    "normalize_tag",
    # Vault models
    "ListVaultsInput",
]
