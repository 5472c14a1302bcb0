"""Shared fixtures: throwaway vaults under pytest's tmp_path."""

from pathlib import Path
from typing import Optional

import pytest

from obsidian_mcp.data_models import VaultConfig, VaultRegistry
from obsidian_mcp.security import paths


def make_vault(root: Path, notes: Optional[dict[str, str]] = None) -> Path:
    """Create an initialized vault at ``root`` holding ``notes``."""
    (root / ".obsidian").mkdir(parents=True, exist_ok=True)
    for relative, content in (notes or {}).items():
        note_path = root / relative
        note_path.parent.mkdir(parents=True, exist_ok=True)
        note_path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture(autouse=True)
def allow_tmp_vaults(monkeypatch):
    """tmp_path lives under a system directory; let tests use it as a vault home."""
    monkeypatch.setattr(paths, "SYSTEM_DIRECTORIES", ())


@pytest.fixture
def vault_root(tmp_path):
    return make_vault(
        tmp_path / "Work Vault",
        {
            "Welcome.md": "# Welcome\n\nStart with [[Projects/Roadmap]].\n",
            "Projects/Roadmap.md": "---\ntags: [planning]\n---\n# Roadmap\n\nQ1 roadmap items.\n",
            "Daily/2025-01-01.md": "Meeting notes about the roadmap. #daily\n",
        },
    ).resolve()


@pytest.fixture
def vault(vault_root):
    return VaultConfig(name="work", path=vault_root)


@pytest.fixture
def vaults(vault):
    return VaultRegistry.from_configs([vault])


@pytest.fixture
def vault_factory(tmp_path):
    """Build extra vaults: ``vault_factory("Personal", {"a.md": "..."})``."""

    def factory(name: str, notes: Optional[dict[str, str]] = None) -> Path:
        return make_vault(tmp_path / name, notes).resolve()

    return factory
