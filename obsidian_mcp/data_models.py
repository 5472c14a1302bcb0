"""Data models for vault configuration and the vault registry."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from obsidian_mcp.constants import MARKER_DIR
from obsidian_mcp.errors import DuplicateRegistration, VaultNotInitialized
from obsidian_mcp.security.paths import check_path_overlap, expand_home

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VaultConfig:
    """A named vault root."""

    name: str
    path: Path

    def as_payload(self) -> dict[str, Any]:
        """Return a serializable payload representation."""
        return {
            "name": self.name,
            "path": str(self.path),
            "exists": self.path.is_dir(),
        }


def _require_marker(config: VaultConfig) -> Path:
    """Resolve ``config.path`` and confirm it holds the ``.obsidian`` directory.

    Raises:
        VaultNotInitialized: If the marker is missing, is not a directory, or
            cannot be inspected.
    """
    resolved = Path(expand_home(str(config.path))).resolve()
    marker = resolved / MARKER_DIR
    try:
        if not marker.is_dir():
            if marker.exists():
                raise VaultNotInitialized(
                    f"Invalid Obsidian vault at {config.path}: "
                    f"{MARKER_DIR} exists but is not a directory",
                    config.path,
                )
            raise VaultNotInitialized(
                f"Invalid Obsidian vault at {config.path}: Missing {MARKER_DIR} directory. "
                "Please open this folder in Obsidian first to initialize it.",
                config.path,
            )
    except OSError as exc:
        raise VaultNotInitialized(
            f"Error accessing vault at {config.path}: {exc}", config.path
        ) from exc
    return resolved


class VaultRegistry:
    """Ordered, immutable mapping of vault names to resolved vault roots.

    Built once at startup. Every entry has passed the marker check and no two
    entries overlap. Tools and resources read it; nothing writes to it after
    construction.
    """

    def __init__(self, vaults: dict[str, VaultConfig]) -> None:
        self._vaults = dict(vaults)

    @classmethod
    def from_configs(cls, configs: Iterable[VaultConfig]) -> VaultRegistry:
        """Validate ``configs`` and build a registry.

        Raises:
            VaultNotInitialized: If any vault lacks its ``.obsidian`` directory.
            OverlappingVaults: If two vault roots are equal or nested.
            DuplicateRegistration: If two configs share a name.
        """
        vaults: dict[str, VaultConfig] = {}
        for config in configs:
            if config.name in vaults:
                raise DuplicateRegistration(f"Vault name '{config.name}' is already registered")
            vaults[config.name] = VaultConfig(name=config.name, path=_require_marker(config))

        check_path_overlap([vault.path for vault in vaults.values()])
        for vault in vaults.values():
            logger.debug("Vault '%s' registered at %s", vault.name, vault.path)
        return cls(vaults)

    def get(self, name: str) -> VaultConfig:
        """Get a vault by name.

        Raises:
            KeyError: If ``name`` is not registered.
        """
        return self._vaults[name]

    def resolve(self, name: str) -> VaultConfig:
        """Get a vault by name for a tool call.

        Raises:
            ValueError: If ``name`` is unknown; the message lists the valid names.
        """
        try:
            return self._vaults[name]
        except KeyError as exc:
            available = ", ".join(self._vaults) or "none"
            raise ValueError(f"Unknown vault '{name}'. Available vaults: {available}") from exc

    def names(self) -> list[str]:
        return list(self._vaults)

    def __iter__(self) -> Iterator[VaultConfig]:
        return iter(self._vaults.values())

    def __len__(self) -> int:
        return len(self._vaults)

    def __contains__(self, name: object) -> bool:
        return name in self._vaults

    def as_payload(self) -> dict[str, Any]:
        """Return serializable registry payload."""
        return {"vaults": [vault.as_payload() for vault in self]}
