"""Pydantic input models for tag operations.

Tags are accepted with or without a leading ``#`` and stored without it.
Nested tags use ``/`` (``project/active``).
"""

from __future__ import annotations

import re
from typing import Optional

from pydantic import Field, field_validator, model_validator

from .base import VaultInput, validate_relative_path

TAG_PATTERN = re.compile(r"^[\w\-/]+$")


def normalize_tag(value: str) -> str:
    """Strip whitespace and a leading ``#``, then validate the tag.

    Examples:
        >>> normalize_tag("#project/active")
        'project/active'

    Raises:
        ValueError: If the tag is empty, purely numeric, or has invalid characters.
    """
    cleaned = value.strip().lstrip("#").strip()
    if not cleaned:
        raise ValueError("Tag cannot be empty.")
    if not TAG_PATTERN.match(cleaned) or cleaned.startswith("/") or cleaned.endswith("/") or "//" in cleaned:
        raise ValueError(
            f"Invalid tag '{value}'. Tags may contain letters, numbers, '_', '-', "
            "and '/' between nested parts."
        )
    if cleaned.replace("/", "").isdigit():
        raise ValueError(f"Invalid tag '{value}'. Tags must contain at least one non-numeric character.")
    return cleaned


class TagFilesInput(VaultInput):
    """Shared shape of the add-tags and remove-tags tools."""

    files: list[str] = Field(
        min_length=1,
        description="Note paths relative to the vault root, e.g. ['Projects/Roadmap.md'].",
    )

    tags: list[str] = Field(
        min_length=1,
        description="Tags to apply, with or without '#'. Example: ['project', 'status/active']",
    )

    @field_validator("files")
    @classmethod
    def validate_files(cls, v: list[str]) -> list[str]:
        cleaned = []
        for entry in v:
            path = validate_relative_path(entry, "File path")
            cleaned.append(path if path.lower().endswith(".md") else f"{path}.md")
        return cleaned

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: list[str]) -> list[str]:
        normalized: list[str] = []
        for tag in v:
            value = normalize_tag(tag)
            if value not in normalized:
                normalized.append(value)
        return normalized


class AddTagsInput(TagFilesInput):
    """Input model for the add-tags tool.

    Tags are merged into each note's frontmatter ``tags`` list.

    Examples:
        >>> AddTagsInput(vault="work", files=["Roadmap.md"], tags=["planning"])
    """


class RemoveTagsInput(TagFilesInput):
    """Input model for the remove-tags tool.

    Removes tags from frontmatter and from inline ``#tag`` occurrences.

    Examples:
        >>> RemoveTagsInput(vault="work", files=["Roadmap.md"], tags=["draft"])
    """


class RenameTagInput(VaultInput):
    """Input model for the rename-tag tool.

    Renames a tag across the whole vault, in frontmatter and inline. Nested
    tags under the old name move with it (``old/child`` becomes ``new/child``).

    Examples:
        >>> RenameTagInput(vault="work", old_tag="todo", new_tag="tasks/open")
    """

    old_tag: str = Field(min_length=1, description="Tag to rename, with or without '#'.")
    new_tag: str = Field(min_length=1, description="New tag name, with or without '#'.")

    folder: Optional[str] = Field(
        None,
        description="Only rename inside this folder (relative to the vault root). Defaults to the whole vault.",
    )

    @field_validator("old_tag", "new_tag")
    @classmethod
    def validate_tag(cls, v: str) -> str:
        return normalize_tag(v)

    @field_validator("folder")
    @classmethod
    def validate_folder(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip() or v.strip() in {"/", "."}:
            return None
        return validate_relative_path(v, "Folder")

    @model_validator(mode="after")
    def validate_tags_different(self) -> "RenameTagInput":
        if self.old_tag == self.new_tag:
            raise ValueError(f"New tag must differ from the old tag ('{self.old_tag}').")
        return self
