"""Pydantic input models for note and directory operations.

This module defines input models for:
- Read note content
- Create new notes
- Edit notes (append, prepend, replace)
- Delete notes (to trash or permanently)
- Move/rename notes
- Create directories
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import ConfigDict, Field, field_validator, model_validator

from .base import BaseNoteInput, VaultInput, validate_relative_path


class EditOperation(str, Enum):
    APPEND = "append"
    PREPEND = "prepend"
    REPLACE = "replace"


class ReadNoteInput(BaseNoteInput):
    """Input model for the read-note tool.

    Examples:
        >>> ReadNoteInput(vault="personal", filename="Reflections.md")
        >>> ReadNoteInput(vault="work", filename="Roadmap", folder="Projects")
    """

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {"vault": "personal", "filename": "Reflections.md"},
                {"vault": "work", "filename": "Roadmap.md", "folder": "Projects"},
            ]
        }
    )


class CreateNoteInput(BaseNoteInput):
    """Input model for the create-note tool.

    Creates a new markdown file; fails if the note already exists. Missing
    parent folders are created.

    Examples:
        >>> CreateNoteInput(vault="work", filename="New Project", content="# New Project")
    """

    content: str = Field(
        description=(
            "Full markdown content for the note. "
            "Can be empty string to create a blank note."
        )
    )

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "vault": "work",
                    "filename": "New Project.md",
                    "folder": "Projects",
                    "content": "# New Project\n\nGoals:\n- Goal 1",
                }
            ]
        }
    )


class EditNoteInput(BaseNoteInput):
    """Input model for the edit-note tool.

    ``append`` and ``prepend`` insert a single newline separator when needed;
    ``replace`` overwrites the whole note.

    Examples:
        >>> EditNoteInput(vault="personal", filename="Log", operation="append", content="- 3 PM: review")
    """

    operation: EditOperation = Field(
        description="How to apply 'content': 'append', 'prepend', or 'replace'."
    )

    content: str = Field(
        description=(
            "Markdown to add or, for 'replace', the complete new note body. "
            "Must not be empty for append and prepend."
        )
    )

    @model_validator(mode="after")
    def validate_content_for_operation(self) -> "EditNoteInput":
        """Reject empty content unless the operation is ``replace``.

        Raises:
            ValueError: If appending or prepending only whitespace.
        """
        if self.operation is not EditOperation.REPLACE and not self.content.strip():
            raise ValueError(
                f"Content cannot be empty when using '{self.operation.value}'. "
                "Provide the text you want to add to the note."
            )
        return self


class DeleteNoteInput(VaultInput):
    """Input model for the delete-note tool.

    Notes are moved to the vault's ``.trash`` folder unless ``permanent`` is
    set. Always confirm with the user before calling.

    Examples:
        >>> DeleteNoteInput(vault="work", path="Archive/Old Project.md")
    """

    path: str = Field(
        min_length=1,
        description="Path of the note relative to the vault root, e.g. 'Archive/Old.md'.",
    )

    reason: Optional[str] = Field(
        None,
        description="Optional reason for the deletion, recorded in the server log.",
    )

    permanent: bool = Field(
        False,
        description="Delete the file outright instead of moving it to .trash.",
    )

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        cleaned = validate_relative_path(v, "Path")
        if not cleaned.lower().endswith(".md"):
            cleaned = f"{cleaned}.md"
        return cleaned


class MoveNoteInput(VaultInput):
    """Input model for the move-note tool.

    Moves or renames a note and rewrites wikilinks and markdown links that
    pointed at the old location.

    Examples:
        >>> MoveNoteInput(vault="work", source="Inbox/Idea.md", destination="Projects/Idea.md")
    """

    source: str = Field(
        min_length=1,
        description="Current note path relative to the vault root.",
    )

    destination: str = Field(
        min_length=1,
        description="New note path relative to the vault root.",
    )

    @field_validator("source", "destination")
    @classmethod
    def validate_note_path(cls, v: str) -> str:
        cleaned = validate_relative_path(v, "Note path")
        if not cleaned.lower().endswith(".md"):
            cleaned = f"{cleaned}.md"
        return cleaned

    @model_validator(mode="after")
    def validate_paths_different(self) -> "MoveNoteInput":
        if self.source == self.destination:
            raise ValueError(
                "Source and destination must be different. "
                f"Both are set to '{self.source}'."
            )
        return self


class CreateDirectoryInput(VaultInput):
    """Input model for the create-directory tool.

    Examples:
        >>> CreateDirectoryInput(vault="work", path="Projects/2025/Q1")
    """

    path: str = Field(
        min_length=1,
        description="Directory path relative to the vault root, e.g. 'Projects/2025'.",
    )

    recursive: bool = Field(
        True,
        description="Create missing parent directories as well.",
    )

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        return validate_relative_path(v, "Directory path")
