"""Tag management over YAML frontmatter and inline ``#tags``."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping
from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional

import frontmatter
import yaml

from obsidian_mcp.constants import MAX_FRONTMATTER_BYTES
from obsidian_mcp.core.vault_operations import (
    ensure_vault_ready,
    iter_notes,
    resolve_in_vault,
    resolve_note_path,
    vault_relative,
)
from obsidian_mcp.data_models import VaultConfig

logger = logging.getLogger(__name__)

FENCE_PATTERN = re.compile(r"^\s*(```|~~~)")
TAG_SPLIT_PATTERN = re.compile(r"[,\s]+")


# ==============================================================================
# HELPER FUNCTIONS
# ==============================================================================


def _parse_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Extract YAML frontmatter metadata and note body from raw text.

    Args:
        text: Raw markdown text, possibly containing a frontmatter block.

    Returns:
        A tuple of ``(metadata, content)``. ``metadata`` is empty when the note
        has no frontmatter.

    Raises:
        ValueError: If the frontmatter block exists but cannot be parsed as YAML.
    """
    if not text:
        return {}, ""

    try:
        post = frontmatter.loads(text)
    except yaml.YAMLError as exc:
        raise ValueError(f"Frontmatter contains invalid YAML: {exc}") from exc

    metadata = dict(post.metadata or {})
    content = post.content if post.content is not None else ""
    return metadata, content


def _sanitize(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_sanitize(item) for item in value]
    if isinstance(value, Mapping):
        return {key: _sanitize(item) for key, item in value.items()}
    return value


def _serialize_frontmatter(metadata: dict[str, Any], content: str) -> str:
    """Serialize metadata and body back into markdown.

    An empty ``metadata`` drops the frontmatter block.

    Raises:
        ValueError: If the metadata exceeds the frontmatter size limit.
    """
    if not metadata:
        return content

    sanitized = {key: _sanitize(value) for key, value in metadata.items()}
    dumped = yaml.safe_dump(sanitized, sort_keys=False, allow_unicode=True)
    if len(dumped.encode("utf-8")) > MAX_FRONTMATTER_BYTES:
        raise ValueError(
            f"Frontmatter exceeds maximum size of {MAX_FRONTMATTER_BYTES // 1024}KB."
        )

    post = frontmatter.Post(content)
    post.metadata.update(sanitized)
    return frontmatter.dumps(post)


def _frontmatter_tags(metadata: dict[str, Any]) -> list[str]:
    """Read the ``tags`` field, which may be a list or a comma/space separated string."""
    raw = metadata.get("tags")
    if raw is None:
        return []
    if isinstance(raw, str):
        values = TAG_SPLIT_PATTERN.split(raw)
    elif isinstance(raw, (list, tuple)):
        values = [str(item) for item in raw if item is not None]
    else:
        values = [str(raw)]
    return [value.strip().lstrip("#") for value in values if value.strip().lstrip("#")]


def _inline_tag_pattern(tag: str, nested: bool = False) -> re.Pattern[str]:
    """Match ``#tag`` as a whole tag; with ``nested`` also ``#tag/child``."""
    tail = r"(?P<child>/[\w\-/]+)?" if nested else ""
    return re.compile(r"(?<![\w#&/])#" + re.escape(tag) + tail + r"(?![\w\-/])")


def _rewrite_outside_code(content: str, rewrite: Callable[[str], str]) -> str:
    """Apply ``rewrite`` to every line not inside a fenced code block."""
    lines = content.splitlines(keepends=True)
    in_fence = False
    for index, line in enumerate(lines):
        if FENCE_PATTERN.match(line):
            in_fence = not in_fence
            continue
        if not in_fence:
            lines[index] = rewrite(line)
    return "".join(lines)


def _load_note(vault: VaultConfig, relative: str) -> tuple[Path, str, dict[str, Any], str]:
    target_path = resolve_note_path(vault, relative)
    if not target_path.is_file():
        raise FileNotFoundError(f"Note '{relative}' not found in vault '{vault.name}'.")

    try:
        raw_text = target_path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ValueError(f"Note '{relative}' is not UTF-8 encoded and cannot be processed.") from exc

    metadata, content = _parse_frontmatter(raw_text)
    return target_path, raw_text, metadata, content


def _process_files(
    vault: VaultConfig,
    files: list[str],
    apply: Callable[[dict[str, Any], str], tuple[dict[str, Any], str]],
) -> tuple[list[str], list[dict[str, str]]]:
    """Run ``apply`` over each file; failures are reported per file."""
    updated: list[str] = []
    errors: list[dict[str, str]] = []
    for relative in files:
        try:
            target_path, raw_text, metadata, content = _load_note(vault, relative)
            new_metadata, new_content = apply(metadata, content)
            rendered = _serialize_frontmatter(new_metadata, new_content)
        except (OSError, ValueError) as exc:
            logger.warning("Tag update failed for '%s' in vault '%s': %s", relative, vault.name, exc)
            errors.append({"path": relative, "error": str(exc)})
            continue

        if new_metadata != metadata or new_content != content:
            if raw_text.endswith("\n") and not rendered.endswith("\n"):
                rendered += "\n"
            target_path.write_text(rendered, encoding="utf-8")
            updated.append(vault_relative(vault, target_path))
    return updated, errors


# ==============================================================================
# TAG OPERATIONS
# ==============================================================================


def add_tags(vault: VaultConfig, files: list[str], tags: list[str]) -> dict[str, Any]:
    """Merge tags into the frontmatter ``tags`` list of each note.

    Existing tags keep their order; new ones are appended. A string-valued
    ``tags`` field is converted to a list.

    Args:
        vault: Vault config.
        files: Vault-relative note paths.
        tags: Normalized tag names (no leading ``#``).

    Returns:
        A summary with the notes that changed and per-file errors.
    """
    ensure_vault_ready(vault)

    def apply(metadata: dict[str, Any], content: str) -> tuple[dict[str, Any], str]:
        current = _frontmatter_tags(metadata)
        merged = current + [tag for tag in tags if tag not in current]
        if merged == current and isinstance(metadata.get("tags"), list):
            return metadata, content
        return {**metadata, "tags": merged}, content

    updated, errors = _process_files(vault, files, apply)
    logger.info("Added tags %s to %d note(s) in vault '%s'", tags, len(updated), vault.name)
    return {
        "vault": vault.name,
        "tags": tags,
        "updated_files": updated,
        "errors": errors,
        "status": "updated" if updated else "unchanged",
    }


def remove_tags(vault: VaultConfig, files: list[str], tags: list[str]) -> dict[str, Any]:
    """Remove tags from frontmatter and inline ``#tag`` occurrences.

    Inline tags inside fenced code blocks are left alone. An emptied ``tags``
    field is dropped from the frontmatter.

    Returns:
        A summary with the notes that changed and per-file errors.
    """
    ensure_vault_ready(vault)
    patterns = [_inline_tag_pattern(tag) for tag in tags]

    def strip_inline(line: str) -> str:
        for pattern in patterns:
            line = pattern.sub("", line)
        return line

    def apply(metadata: dict[str, Any], content: str) -> tuple[dict[str, Any], str]:
        new_metadata = dict(metadata)
        if "tags" in metadata:
            current = _frontmatter_tags(metadata)
            remaining = [tag for tag in current if tag not in tags]
            if remaining != current:
                if remaining:
                    new_metadata["tags"] = remaining
                else:
                    del new_metadata["tags"]
        return new_metadata, _rewrite_outside_code(content, strip_inline)

    updated, errors = _process_files(vault, files, apply)
    logger.info("Removed tags %s from %d note(s) in vault '%s'", tags, len(updated), vault.name)
    return {
        "vault": vault.name,
        "tags": tags,
        "updated_files": updated,
        "errors": errors,
        "status": "updated" if updated else "unchanged",
    }


def _rename_in_list(values: list[str], old_tag: str, new_tag: str) -> list[str]:
    renamed: list[str] = []
    for value in values:
        if value == old_tag:
            value = new_tag
        elif value.startswith(f"{old_tag}/"):
            value = new_tag + value[len(old_tag):]
        if value not in renamed:
            renamed.append(value)
    return renamed


def rename_tag(
    vault: VaultConfig,
    old_tag: str,
    new_tag: str,
    folder: Optional[str] = None,
) -> dict[str, Any]:
    """Rename a tag in every note of the vault (or of one folder).

    Nested tags follow their parent: ``#old/child`` becomes ``#new/child``.
    Both frontmatter and inline occurrences are rewritten; fenced code is not.

    Args:
        vault: Vault config.
        old_tag: Existing tag name (no leading ``#``).
        new_tag: Replacement tag name.
        folder: Optional folder, relative to the vault root, to limit the rename.

    Returns:
        A summary with the notes that changed and per-file errors.

    Raises:
        ValueError: If ``folder`` does not exist.
    """
    ensure_vault_ready(vault)
    root = None
    if folder:
        root = resolve_in_vault(vault, folder)
        if not root.is_dir():
            raise ValueError(f"Folder '{folder}' not found in vault '{vault.name}'.")
    pattern = _inline_tag_pattern(old_tag, nested=True)

    def replace_inline(line: str) -> str:
        return pattern.sub(lambda match: f"#{new_tag}{match.group('child') or ''}", line)

    def apply(metadata: dict[str, Any], content: str) -> tuple[dict[str, Any], str]:
        new_metadata = dict(metadata)
        if "tags" in metadata:
            current = _frontmatter_tags(metadata)
            renamed = _rename_in_list(current, old_tag, new_tag)
            if renamed != current:
                new_metadata["tags"] = renamed
        return new_metadata, _rewrite_outside_code(content, replace_inline)

    files = [vault_relative(vault, path) for path in iter_notes(vault, root)]
    updated, errors = _process_files(vault, files, apply)
    logger.info(
        "Renamed tag '%s' to '%s' in %d note(s) of vault '%s'",
        old_tag,
        new_tag,
        len(updated),
        vault.name,
    )
    return {
        "vault": vault.name,
        "old_tag": old_tag,
        "new_tag": new_tag,
        "updated_files": updated,
        "errors": errors,
        "status": "updated" if updated else "unchanged",
    }
