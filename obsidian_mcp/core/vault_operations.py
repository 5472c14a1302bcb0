"""Core vault operations and sandbox enforcement."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import Any, Optional

from obsidian_mcp.constants import MARKER_DIR, TRASH_DIR
from obsidian_mcp.data_models import VaultConfig, VaultRegistry

EXCLUDED_DIRS = (MARKER_DIR, TRASH_DIR)


def ensure_vault_ready(vault: VaultConfig) -> None:
    """Ensure the target vault directory is accessible before performing operations.

    Raises:
        FileNotFoundError: If the vault path does not exist or is not a directory.
    """
    if not vault.path.is_dir():
        raise FileNotFoundError(f"Vault '{vault.name}' is not accessible at {vault.path}")


def resolve_in_vault(vault: VaultConfig, relative: str) -> Path:
    """Resolve a pre-validated vault-relative path to an absolute path.

    Input validation (empty, traversal segments, absolute paths) happens in
    the Pydantic models. This is the filesystem-level check: after following
    symlinks the target must still be inside the vault.

    Args:
        vault: Vault config.
        relative: Forward-slash path relative to the vault root.

    Returns:
        The absolute :class:`Path` inside ``vault``.

    Raises:
        ValueError: If the resolved path escapes the vault root.
    """
    candidate = (vault.path / Path(*relative.split("/"))).resolve(strict=False)
    vault_root = vault.path.resolve(strict=False)
    if not candidate.is_relative_to(vault_root):
        raise ValueError(f"Path '{relative}' escapes vault '{vault.name}'.")
    return candidate


def resolve_note_path(vault: VaultConfig, relative: str) -> Path:
    """Like :func:`resolve_in_vault`, but refuses the vault's internal folders.

    Raises:
        ValueError: If the path escapes the vault or points into ``.obsidian``
            or ``.trash``.
    """
    candidate = resolve_in_vault(vault, relative)
    parts = candidate.relative_to(vault.path.resolve(strict=False)).parts
    if parts and parts[0] in EXCLUDED_DIRS:
        raise ValueError(f"Path '{relative}' points into the reserved '{parts[0]}' folder.")
    return candidate


def vault_relative(vault: VaultConfig, path: Path) -> str:
    """Forward-slash path of ``path`` relative to the vault root."""
    return path.relative_to(vault.path.resolve(strict=False)).as_posix()


def iter_notes(vault: VaultConfig, root: Optional[Path] = None) -> Iterator[Path]:
    """Yield markdown files under ``root`` (default: the vault), sorted.

    Files inside ``.obsidian`` and ``.trash`` are skipped.
    """
    vault_root = vault.path.resolve(strict=False)
    for path in sorted((root or vault_root).rglob("*.md")):
        if not path.is_file():
            continue
        relative = path.relative_to(vault_root)
        if relative.parts and relative.parts[0] in EXCLUDED_DIRS:
            continue
        yield path


def list_vaults(vaults: VaultRegistry) -> dict[str, Any]:
    """Describe every configured vault.

    Returns:
        ``{"vaults": [{"name", "path", "exists"}]}`` in registration order.
    """
    return vaults.as_payload()
