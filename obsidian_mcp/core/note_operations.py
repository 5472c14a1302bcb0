"""Core business logic for note CRUD operations."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from obsidian_mcp.constants import TRASH_DIR
from obsidian_mcp.core.vault_operations import (
    ensure_vault_ready,
    iter_notes,
    resolve_in_vault,
    resolve_note_path,
    vault_relative,
)
from obsidian_mcp.data_models import VaultConfig

logger = logging.getLogger(__name__)


# ==============================================================================
# HELPER FUNCTIONS
# ==============================================================================


def _combine_with_newline(left: str, right: str) -> str:
    """Concatenate two strings, inserting a single newline between them when needed.

    Args:
        left: Existing text.
        right: Text to append.

    Returns:
        The combined text with at most one newline separating the segments.
    """
    if not left:
        return right
    if not right:
        return left
    if not left.endswith("\n") and not right.startswith("\n"):
        return f"{left}\n{right}"
    return left + right


def _require_note(vault: VaultConfig, relative: str) -> Path:
    ensure_vault_ready(vault)
    target_path = resolve_note_path(vault, relative)
    if not target_path.is_file():
        raise FileNotFoundError(f"Note '{relative}' not found in vault '{vault.name}'.")
    return target_path


def _link_target(relative: str) -> str:
    """Link form of a note path: no ``.md`` suffix."""
    return relative[:-3] if relative.lower().endswith(".md") else relative


def _update_backlinks(vault: VaultConfig, old_relative: str, new_relative: str) -> int:
    """Update wikilinks and markdown links that reference a moved note.

    Both the full-path form (``[[Folder/Note]]``) and, when the file name
    changed, the bare-name form (``[[Note]]``) are rewritten. Aliases and
    heading anchors are preserved.

    Returns:
        Number of notes that were modified.
    """
    old_target = _link_target(old_relative)
    new_target = _link_target(new_relative)
    old_name = old_target.rsplit("/", 1)[-1]
    new_name = new_target.rsplit("/", 1)[-1]

    targets = [(old_target, new_target)]
    if old_name != new_name and old_name != old_target:
        targets.append((old_name, new_name))

    patterns = []
    for old, new in targets:
        wikilink = re.compile(
            r"\[\[" + re.escape(old) + r"(?:\.md)?(?P<suffix>[#|][^\]]*)?\]\]"
        )
        markdown_link = re.compile(
            r"\[(?P<label>[^\]]+)\]\(" + re.escape(old.replace(" ", "%20")) + r"(?P<ext>\.md)?(?P<anchor>#[^)]*)?\)"
        )
        patterns.append((wikilink, markdown_link, new))

    updated_count = 0
    for note_path in iter_notes(vault):
        try:
            content = note_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not read note '%s' while updating backlinks: %s", note_path, exc)
            continue

        updated_content = content
        for wikilink, markdown_link, new in patterns:
            updated_content = wikilink.sub(
                lambda match, new=new: f"[[{new}{match.group('suffix') or ''}]]",
                updated_content,
            )
            updated_content = markdown_link.sub(
                lambda match, new=new: (
                    f"[{match.group('label')}]({new.replace(' ', '%20')}"
                    f"{match.group('ext') or ''}{match.group('anchor') or ''})"
                ),
                updated_content,
            )

        if updated_content != content:
            try:
                note_path.write_text(updated_content, encoding="utf-8")
                updated_count += 1
            except OSError as exc:
                logger.warning("Failed to write updated backlinks to '%s': %s", note_path, exc)

    return updated_count


# ==============================================================================
# NOTE OPERATIONS
# ==============================================================================


def read_note(vault: VaultConfig, relative: str) -> dict[str, Any]:
    """Retrieve the content of a markdown note.

    Args:
        vault: Vault config.
        relative: Note path relative to the vault root.

    Returns:
        A dictionary containing vault name, note path, and the raw content.

    Raises:
        FileNotFoundError: If the note cannot be located.
    """
    target_path = _require_note(vault, relative)
    return {
        "vault": vault.name,
        "path": vault_relative(vault, target_path),
        "content": target_path.read_text(encoding="utf-8"),
    }


def create_note(vault: VaultConfig, relative: str, content: str) -> dict[str, Any]:
    """Create a markdown note, creating parent folders as needed.

    Raises:
        FileExistsError: If the note already exists.
        FileNotFoundError: If the vault directory is missing.
        ValueError: If the path escapes the vault.
    """
    ensure_vault_ready(vault)
    target_path = resolve_note_path(vault, relative)
    if target_path.exists():
        raise FileExistsError(f"Note '{relative}' already exists in vault '{vault.name}'.")

    target_path.parent.mkdir(parents=True, exist_ok=True)
    target_path.write_text(content, encoding="utf-8")
    logger.info("Created note '%s' in vault '%s'", relative, vault.name)
    return {
        "vault": vault.name,
        "path": vault_relative(vault, target_path),
        "status": "created",
    }


def edit_note(vault: VaultConfig, relative: str, operation: str, content: str) -> dict[str, Any]:
    """Append to, prepend to, or replace an existing note.

    Args:
        vault: Vault config.
        relative: Note path relative to the vault root.
        operation: ``"append"``, ``"prepend"``, or ``"replace"``.
        content: Markdown to apply.

    Raises:
        FileNotFoundError: If the note does not exist.
        ValueError: If ``operation`` is unknown.
    """
    target_path = _require_note(vault, relative)

    if operation == "replace":
        updated = content
    else:
        existing = target_path.read_text(encoding="utf-8")
        if operation == "append":
            updated = _combine_with_newline(existing, content)
        elif operation == "prepend":
            updated = _combine_with_newline(content, existing)
        else:
            raise ValueError(f"Unknown edit operation '{operation}'.")

    target_path.write_text(updated, encoding="utf-8")
    logger.info("Applied '%s' to note '%s' in vault '%s'", operation, relative, vault.name)
    return {
        "vault": vault.name,
        "path": vault_relative(vault, target_path),
        "operation": operation,
        "status": "updated",
    }


def delete_note(
    vault: VaultConfig,
    relative: str,
    permanent: bool = False,
    reason: Optional[str] = None,
) -> dict[str, Any]:
    """Delete a note, by default by moving it into the vault's ``.trash`` folder.

    A timestamp is added to the trashed file name when one with the same name
    is already there.

    Raises:
        FileNotFoundError: If the note does not exist.
    """
    target_path = _require_note(vault, relative)
    note_path = vault_relative(vault, target_path)

    if permanent:
        target_path.unlink()
        destination = None
    else:
        trash_path = resolve_in_vault(vault, f"{TRASH_DIR}/{note_path}")
        if trash_path.exists():
            stamp = datetime.now().strftime("%Y%m%d%H%M%S")
            trash_path = trash_path.with_name(f"{trash_path.stem} {stamp}{trash_path.suffix}")
        trash_path.parent.mkdir(parents=True, exist_ok=True)
        target_path.rename(trash_path)
        destination = vault_relative(vault, trash_path)

    logger.info(
        "Deleted note '%s' in vault '%s' (permanent=%s, reason=%s)",
        note_path,
        vault.name,
        permanent,
        reason or "none given",
    )
    return {
        "vault": vault.name,
        "path": note_path,
        "status": "deleted" if permanent else "trashed",
        "trash_path": destination,
    }


def move_note(vault: VaultConfig, source: str, destination: str) -> dict[str, Any]:
    """Move or rename a note and update backlinks across the vault.

    Returns:
        A dictionary summarizing the outcome, including the number of notes
        whose links were rewritten.

    Raises:
        FileNotFoundError: If the source note cannot be located.
        FileExistsError: If a note already exists at the destination.
        ValueError: If either path fails the sandbox check.
    """
    old_path = _require_note(vault, source)
    new_path = resolve_note_path(vault, destination)

    if new_path.exists():
        raise FileExistsError(f"Note '{destination}' already exists in vault '{vault.name}'.")

    old_display = vault_relative(vault, old_path)
    new_path.parent.mkdir(parents=True, exist_ok=True)
    old_path.rename(new_path)
    new_display = vault_relative(vault, new_path)

    links_updated = _update_backlinks(vault, old_display, new_display)
    logger.info(
        "Moved note from '%s' to '%s' in vault '%s' (%d links updated)",
        old_display,
        new_display,
        vault.name,
        links_updated,
    )
    return {
        "vault": vault.name,
        "old_path": old_display,
        "new_path": new_display,
        "links_updated": links_updated,
        "status": "moved",
    }


def create_directory(vault: VaultConfig, relative: str, recursive: bool = True) -> dict[str, Any]:
    """Create a directory inside the vault.

    Raises:
        FileExistsError: If the directory (or a file with that name) exists.
        FileNotFoundError: If the parent is missing and ``recursive`` is false.
        ValueError: If the path escapes the vault or targets a reserved folder.
    """
    ensure_vault_ready(vault)
    target_path = resolve_note_path(vault, relative)
    if target_path.exists():
        raise FileExistsError(f"Directory '{relative}' already exists in vault '{vault.name}'.")

    try:
        target_path.mkdir(parents=recursive)
    except FileNotFoundError as exc:
        raise FileNotFoundError(
            f"Parent directory of '{relative}' does not exist. Use recursive=true to create it."
        ) from exc

    logger.info("Created directory '%s' in vault '%s'", relative, vault.name)
    return {
        "vault": vault.name,
        "path": vault_relative(vault, target_path),
        "status": "created",
    }
