"""Base Pydantic models for MCP tool input validation.

Every tool input names its target vault; note-level inputs add a filename
and an optional folder. Validation here rejects traversal and absolute paths
before any filesystem access. The core operations still enforce the vault
sandbox after resolving symlinks.

Base Models:
- VaultInput: Required vault name
- BaseNoteInput: Vault plus filename and optional folder
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator


def validate_relative_path(value: str, label: str = "Path") -> str:
    """Check a vault-relative path supplied by a client.

    Enforces:
    - Non-empty after trimming
    - Forward slashes only (backslashes are normalized)
    - No ``.`` or ``..`` segments
    - Relative (no leading ``/`` or drive letter)

    Args:
        value: The raw path.
        label: Field label used in error messages.

    Returns:
        The cleaned path, without leading/trailing slashes.

    Raises:
        ValueError: If the path is empty, absolute, or contains traversal segments.
    """
    cleaned = value.strip().replace("\\", "/")
    if not cleaned:
        raise ValueError(f"{label} cannot be empty.")

    if cleaned.startswith("/") or (len(cleaned) > 1 and cleaned[1] == ":"):
        raise ValueError(
            f"{label} must be relative to the vault root. "
            "Do not start with '/' or a drive letter. "
            f"Invalid value: '{cleaned}'"
        )

    cleaned = cleaned.strip("/")
    parts = cleaned.split("/")
    if any(part in {".", ".."} for part in parts):
        raise ValueError(
            f"{label} cannot contain '.' or '..' path segments. "
            f"Invalid value: '{cleaned}'"
        )
    if any(not part.strip() for part in parts):
        raise ValueError(f"{label} cannot contain empty path segments. Invalid value: '{cleaned}'")

    return cleaned


class VaultInput(BaseModel):
    """Base model for every tool that operates on a vault."""

    vault: str = Field(
        min_length=1,
        description=(
            "Name of the vault to operate on. "
            "Use list-available-vaults to discover valid names."
        ),
        examples=["personal", "work"],
    )

    @field_validator("vault")
    @classmethod
    def validate_vault(cls, v: str) -> str:
        cleaned = v.strip()
        if not cleaned:
            raise ValueError(
                "Vault name cannot be empty. "
                "Use list-available-vaults to see the configured vaults."
            )
        return cleaned


class BaseNoteInput(VaultInput):
    """Base model for operations on a single note.

    The note lives at ``<folder>/<filename>`` inside the vault. ``.md`` is
    appended to the filename when missing.
    """

    filename: str = Field(
        min_length=1,
        description=(
            "Note file name, with or without the .md extension. "
            "Must not contain folder separators; use 'folder' for that."
        ),
        examples=["Meeting Notes.md", "2025-10-27"],
    )

    folder: Optional[str] = Field(
        None,
        description=(
            "Folder path relative to the vault root. "
            "Omit for the vault root. Example: 'Projects/Active'"
        ),
        examples=["Daily Notes", "Projects/Active"],
    )

    @field_validator("filename")
    @classmethod
    def validate_filename(cls, v: str) -> str:
        """Normalize the filename to end in ``.md``.

        Raises:
            ValueError: If empty, contains a separator, or is a reserved segment.
        """
        cleaned = v.strip()
        if not cleaned:
            raise ValueError("Filename cannot be empty.")
        if "/" in cleaned or "\\" in cleaned:
            raise ValueError(
                "Filename cannot contain path separators. "
                f"Put folders in the 'folder' argument instead. Invalid filename: '{cleaned}'"
            )
        if cleaned in {".", ".."}:
            raise ValueError(f"Invalid filename: '{cleaned}'")
        if not cleaned.lower().endswith(".md"):
            cleaned = f"{cleaned}.md"
        if cleaned.lower() == ".md":
            raise ValueError("Filename cannot be just '.md'.")
        return cleaned

    @field_validator("folder")
    @classmethod
    def validate_folder(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip() or v.strip() in {"/", "."}:
            return None
        return validate_relative_path(v, "Folder")

    @property
    def relative_path(self) -> str:
        """Vault-relative path of the note, using forward slashes."""
        return f"{self.folder}/{self.filename}" if self.folder else self.filename
