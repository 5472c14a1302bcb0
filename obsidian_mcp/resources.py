"""Vault resources.

Each registered vault is exposed as ``obsidian-vault://<name>``; reading it
returns a JSON summary of the vault.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from mcp import types

from obsidian_mcp.constants import VAULT_URI_SCHEME
from obsidian_mcp.core.vault_operations import iter_notes
from obsidian_mcp.data_models import VaultConfig, VaultRegistry
from obsidian_mcp.errors import invalid_params

logger = logging.getLogger(__name__)

RESOURCE_MIME_TYPE = "application/json"


def vault_uri(name: str) -> str:
    return f"{VAULT_URI_SCHEME}{name}"


def collect_vault_stats(vault: VaultConfig) -> dict[str, Any]:
    """Count notes and sum their sizes.

    Unreadable files are skipped.
    """
    note_count = 0
    total_size = 0
    last_modified = 0.0
    for note in iter_notes(vault):
        try:
            stat = note.stat()
        except OSError as exc:
            logger.debug("Skipping unreadable note %s: %s", note, exc)
            continue
        note_count += 1
        total_size += stat.st_size
        last_modified = max(last_modified, stat.st_mtime)

    return {
        "noteCount": note_count,
        "totalSize": total_size,
        "lastModified": (
            datetime.fromtimestamp(last_modified, tz=timezone.utc).isoformat()
            if note_count
            else None
        ),
    }


def list_vault_resources(vaults: VaultRegistry) -> list[types.Resource]:
    resources = []
    for vault in vaults:
        stats = collect_vault_stats(vault)
        resources.append(
            types.Resource(
                uri=vault_uri(vault.name),
                name=vault.name,
                mimeType=RESOURCE_MIME_TYPE,
                description=f"Obsidian vault at {vault.path} ({stats['noteCount']} notes)",
            )
        )
    return resources


def read_vault_resource(vaults: VaultRegistry, uri: str) -> types.TextResourceContents:
    """Describe the vault addressed by ``uri``.

    Raises:
        McpError: InvalidParams if ``uri`` names no registered vault.
    """
    name = uri[len(VAULT_URI_SCHEME):].rstrip("/")
    try:
        vault = vaults.get(name)
    except KeyError:
        raise invalid_params(f"Unknown vault: {name}") from None

    payload = {
        "name": vault.name,
        "path": str(vault.path),
        "type": "obsidian_vault",
        "metadata": collect_vault_stats(vault),
    }
    return types.TextResourceContents(
        uri=vault_uri(vault.name),
        mimeType=RESOURCE_MIME_TYPE,
        text=json.dumps(payload, indent=2),
    )
