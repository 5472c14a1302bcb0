"""Search operations over note contents and paths."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

from obsidian_mcp.constants import MAX_SEARCH_RESULTS
from obsidian_mcp.core.vault_operations import (
    ensure_vault_ready,
    iter_notes,
    resolve_in_vault,
    vault_relative,
)
from obsidian_mcp.data_models import VaultConfig

logger = logging.getLogger(__name__)

SNIPPET_RADIUS = 100
MAX_SNIPPETS = 3


# ==============================================================================
# HELPER FUNCTIONS
# ==============================================================================


def _find_positions(haystack: str, needle: str) -> list[int]:
    """Start offsets of non-overlapping occurrences of ``needle``."""
    positions: list[int] = []
    start_index = 0
    while True:
        index = haystack.find(needle, start_index)
        if index == -1:
            return positions
        positions.append(index)
        start_index = index + len(needle)


def _snippets(text: str, positions: list[int], length: int) -> list[str]:
    """Up to three excerpts around the first matches, ellipsized at the cuts."""
    snippets: list[str] = []
    for position in positions[:MAX_SNIPPETS]:
        snippet_start = max(0, position - SNIPPET_RADIUS)
        snippet_end = min(len(text), position + length + SNIPPET_RADIUS)
        snippet = text[snippet_start:snippet_end]

        if snippet_start > 0:
            snippet = "..." + snippet
        if snippet_end < len(text):
            snippet = snippet + "..."

        snippets.append(snippet)
    return snippets


def _resolve_search_root(vault: VaultConfig, folder: Optional[str]) -> Path:
    if not folder:
        return vault.path
    root = resolve_in_vault(vault, folder)
    if not root.is_dir():
        raise ValueError(f"Folder '{folder}' not found in vault '{vault.name}'.")
    return root


# ==============================================================================
# SEARCH OPERATIONS
# ==============================================================================


def search_vault(
    vault: VaultConfig,
    query: str,
    folder: Optional[str] = None,
    case_sensitive: bool = False,
    search_type: str = "content",
) -> dict[str, Any]:
    """Search note contents and/or paths for a literal string.

    Args:
        vault: Vault config.
        query: Text to search for.
        folder: Optional folder (relative to the vault root) to restrict the search.
        case_sensitive: Match letter case exactly.
        search_type: ``"content"``, ``"filename"``, or ``"both"``.

    Returns:
        A dictionary with the query, total match count, and results ranked by
        match count (ties by path). Each result carries the vault-relative path,
        its match count, whether the path matched, and up to three snippets.

    Raises:
        ValueError: If the query is empty or the folder does not exist.
    """
    ensure_vault_ready(vault)

    trimmed_query = query.strip()
    if not trimmed_query:
        raise ValueError("Search query cannot be empty.")
    if search_type not in ("content", "filename", "both"):
        raise ValueError(f"Unknown search type '{search_type}'.")

    needle = trimmed_query if case_sensitive else trimmed_query.lower()
    root = _resolve_search_root(vault, folder)
    results: list[dict[str, Any]] = []

    for path in iter_notes(vault, root):
        relative = vault_relative(vault, path)
        filename_match = False
        match_count = 0
        snippets: list[str] = []

        if search_type in ("filename", "both"):
            haystack = relative if case_sensitive else relative.lower()
            if needle in haystack:
                filename_match = True
                match_count += 1

        if search_type in ("content", "both"):
            try:
                text = path.read_text(encoding="utf-8", errors="ignore")
            except OSError as exc:
                logger.warning(
                    "Skipping file '%s' in vault '%s' due to read error: %s",
                    path,
                    vault.name,
                    exc,
                )
                text = ""

            if text:
                positions = _find_positions(text if case_sensitive else text.lower(), needle)
                match_count += len(positions)
                snippets = _snippets(text, positions, len(trimmed_query))

        if not match_count:
            continue

        results.append(
            {
                "path": relative,
                "match_count": match_count,
                "filename_match": filename_match,
                "snippets": snippets,
            }
        )

    results.sort(key=lambda item: (-item["match_count"], item["path"]))
    total_matches = sum(item["match_count"] for item in results)

    logger.debug(
        "Search for '%s' in vault '%s' matched %d file(s)", trimmed_query, vault.name, len(results)
    )
    return {
        "vault": vault.name,
        "query": trimmed_query,
        "search_type": search_type,
        "total_matches": total_matches,
        "file_count": len(results),
        "truncated": len(results) > MAX_SEARCH_RESULTS,
        "results": results[:MAX_SEARCH_RESULTS],
    }
