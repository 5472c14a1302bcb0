"""Tests for vault search: ranking, snippets, modes, and limits."""

import pytest

from obsidian_mcp.constants import MAX_SEARCH_RESULTS
from obsidian_mcp.core.search_operations import search_vault
from obsidian_mcp.data_models import VaultConfig


def paths_of(result):
    return [item["path"] for item in result["results"]]


class TestContentSearch:
    def test_ranked_by_match_count_then_path(self, vault):
        result = search_vault(vault, "roadmap")

        assert paths_of(result) == ["Projects/Roadmap.md", "Daily/2025-01-01.md", "Welcome.md"]
        assert [item["match_count"] for item in result["results"]] == [2, 1, 1]
        assert result["total_matches"] == 4
        assert result["file_count"] == 3
        assert result["truncated"] is False

    def test_case_sensitive(self, vault):
        result = search_vault(vault, "Roadmap", case_sensitive=True)
        assert paths_of(result) == ["Projects/Roadmap.md", "Welcome.md"]
        assert result["total_matches"] == 2

    def test_query_is_trimmed(self, vault):
        assert search_vault(vault, "  roadmap  ")["query"] == "roadmap"

    def test_empty_query(self, vault):
        with pytest.raises(ValueError, match="cannot be empty"):
            search_vault(vault, "   ")

    def test_unknown_search_type(self, vault):
        with pytest.raises(ValueError, match="Unknown search type"):
            search_vault(vault, "roadmap", search_type="regex")

    def test_no_matches(self, vault):
        result = search_vault(vault, "zebra")
        assert result["results"] == []
        assert result["total_matches"] == 0


class TestSnippets:
    def test_long_context_is_ellipsized(self, vault_factory):
        root = vault_factory("Long", {"Note.md": "a" * 150 + "needle" + "b" * 150})
        snippet = search_vault(VaultConfig("long", root), "needle")["results"][0]["snippets"][0]

        assert snippet.startswith("...")
        assert snippet.endswith("...")
        assert snippet == "..." + "a" * 100 + "needle" + "b" * 100 + "..."

    def test_short_note_has_no_ellipsis(self, vault_factory):
        root = vault_factory("Short", {"Note.md": "find the needle here"})
        snippet = search_vault(VaultConfig("short", root), "needle")["results"][0]["snippets"][0]
        assert snippet == "find the needle here"

    def test_at_most_three_snippets(self, vault_factory):
        root = vault_factory("Many", {"Note.md": "x x x x x"})
        item = search_vault(VaultConfig("many", root), "x")["results"][0]
        assert item["match_count"] == 5
        assert len(item["snippets"]) == 3

    def test_snippet_keeps_original_case(self, vault):
        item = search_vault(vault, "ROADMAP")["results"][0]
        assert any("Q1 roadmap items" in snippet for snippet in item["snippets"])


class TestSearchModes:
    def test_filename_only(self, vault):
        result = search_vault(vault, "roadmap", search_type="filename")

        assert result["results"] == [
            {
                "path": "Projects/Roadmap.md",
                "match_count": 1,
                "filename_match": True,
                "snippets": [],
            }
        ]

    def test_folder_names_count_as_paths(self, vault):
        result = search_vault(vault, "daily", search_type="filename")
        assert paths_of(result) == ["Daily/2025-01-01.md"]

    def test_both_adds_filename_match(self, vault):
        result = search_vault(vault, "roadmap", search_type="both")
        top = result["results"][0]
        assert top["path"] == "Projects/Roadmap.md"
        assert top["match_count"] == 3
        assert top["filename_match"] is True


class TestSearchScope:
    def test_folder_restriction(self, vault):
        result = search_vault(vault, "roadmap", folder="Projects")
        assert paths_of(result) == ["Projects/Roadmap.md"]

    def test_missing_folder(self, vault):
        with pytest.raises(ValueError, match="Folder 'Archive' not found in vault 'work'"):
            search_vault(vault, "roadmap", folder="Archive")

    def test_internal_folders_are_skipped(self, vault, vault_root):
        (vault_root / ".obsidian" / "cache.md").write_text("roadmap roadmap roadmap")
        result = search_vault(vault, "roadmap")
        assert all(not path.startswith(".obsidian") for path in paths_of(result))

    def test_results_are_capped(self, vault_factory):
        notes = {f"Hit {index:02d}.md": "hit" for index in range(MAX_SEARCH_RESULTS + 5)}
        root = vault_factory("Big", notes)

        result = search_vault(VaultConfig("big", root), "hit")

        assert result["file_count"] == MAX_SEARCH_RESULTS + 5
        assert result["truncated"] is True
        assert len(result["results"]) == MAX_SEARCH_RESULTS
        assert result["results"][0]["path"] == "Hit 00.md"
