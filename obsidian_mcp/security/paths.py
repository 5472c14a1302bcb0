"""Vault path screening.

Candidate vault roots come straight from the command line, so every path is
checked before the server trusts it:

1. format: characters and segments the filesystem cannot hold
2. local filesystem: no network shares, no symlinks escaping their directory
3. suspicious location: no system, hidden, or home-root directories
4. overlap: across all accepted paths, no duplicates and no nesting

Steps 1-3 run per path; a failing path is dropped and reported without
stopping its siblings. Step 4 needs the full accepted set and raises.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path, PurePath

from obsidian_mcp.constants import MARKER_DIR, MAX_VAULTS
from obsidian_mcp.errors import (
    InvalidPathFormat,
    NotLocalFilesystem,
    OverlappingVaults,
    SuspiciousPath,
    TooManyVaults,
    VaultNotInitialized,
    VaultPathError,
)

logger = logging.getLogger(__name__)

IS_WINDOWS = os.name == "nt"
MAX_PATH_LENGTH = 260 if IS_WINDOWS else 4096
MAX_SEGMENT_LENGTH = 255

NETWORK_MOUNT_PREFIXES = ("/net", "/mnt", "/media", "/Volumes")

SYSTEM_DIRECTORIES: tuple[str, ...] = (
    "/bin",
    "/boot",
    "/dev",
    "/etc",
    "/lib",
    "/lib64",
    "/opt",
    "/proc",
    "/root/.config",
    "/run",
    "/sbin",
    "/sys",
    "/tmp",
    "/usr",
    "/var",
    "/System",
    "/Library",
    "/private",
    "C:\\Windows",
    "C:\\Program Files",
    "C:\\Program Files (x86)",
    "C:\\ProgramData",
)

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_WINDOWS_RESERVED = re.compile(r"^(con|prn|aux|nul|com[1-9]|lpt[1-9])(\..*)?$", re.IGNORECASE)
_WINDOWS_INVALID = re.compile(r'[<>"|?*]')
_NAME_SEPARATORS = re.compile(r"[^a-z0-9]+")


def expand_home(raw: str) -> str:
    """Expand a leading ``~`` to the user's home directory."""
    if raw == "~" or raw.startswith("~/") or raw.startswith("~\\"):
        return str(Path.home()) + raw[1:]
    return raw


# ==============================================================================
# PER-PATH CHECKS
# ==============================================================================


def check_path_characters(path: str) -> None:
    """Reject paths the host filesystem cannot represent.

    Raises:
        InvalidPathFormat: On control characters, over-long paths or segments,
            the filesystem root, ``.``/``..`` segments, or Windows-reserved names.
    """
    if _CONTROL_CHARS.search(path):
        raise InvalidPathFormat("Contains non-printable characters", path)

    if len(path) > MAX_PATH_LENGTH:
        raise InvalidPathFormat(f"Path exceeds maximum length ({MAX_PATH_LENGTH} characters)", path)

    segments = re.split(r"[\\/]", path)
    for segment in segments:
        if len(segment) > MAX_SEGMENT_LENGTH:
            raise InvalidPathFormat(f'Directory name too long: "{segment[:50]}..."', path)

    if path in ("/", "\\") or re.fullmatch(r"[A-Za-z]:[\\/]?", path):
        raise InvalidPathFormat("Cannot use filesystem root as vault location", path)

    if any(segment in (".", "..") for segment in segments):
        raise InvalidPathFormat("Path cannot contain relative components (. or ..)", path)

    if IS_WINDOWS:
        if any(_WINDOWS_RESERVED.match(segment) for segment in segments):
            raise InvalidPathFormat("Contains Windows reserved names (CON, PRN, etc)", path)
        # A colon is only legal as the drive separator.
        if _WINDOWS_INVALID.search(path) or ":" in path[2:]:
            raise InvalidPathFormat("Contains characters not allowed on Windows", path)


def _on_network_mount(path: str) -> bool:
    if path.startswith(("\\\\", "//")):
        return True
    if IS_WINDOWS:
        return False
    return any(path == prefix or path.startswith(prefix + "/") for prefix in NETWORK_MOUNT_PREFIXES)


def check_local_path(path: Path) -> None:
    """Reject network locations and symlinks that leave their directory.

    A path that does not exist yet passes; existence is checked separately.

    Raises:
        NotLocalFilesystem: If ``path`` or its real location is on a network
            share or mount, or resolves outside its parent directory.
    """
    if _on_network_mount(str(path)):
        raise NotLocalFilesystem("Network path or mount", path)

    try:
        real = path.resolve(strict=True)
    except FileNotFoundError:
        return
    except (OSError, RuntimeError) as exc:
        raise NotLocalFilesystem(f"Cannot resolve path: {exc}", path) from exc

    if real != path and not real.is_relative_to(path.parent):
        raise NotLocalFilesystem("Symlink points outside of its directory", path)

    if _on_network_mount(str(real)):
        raise NotLocalFilesystem("Resolves to a network path or mount", path)


def check_suspicious_path(path: Path) -> None:
    """Reject system directories, hidden directories, and the home root.

    Raises:
        SuspiciousPath: If ``path`` is one of those locations.
    """
    if any(part.startswith(".") and part != MARKER_DIR for part in path.parts[1:]):
        raise SuspiciousPath("Contains hidden directories", path)

    for system_dir in SYSTEM_DIRECTORIES:
        candidate = PurePath(system_dir)
        if IS_WINDOWS:
            matches = str(path).lower().startswith(str(candidate).lower())
        else:
            matches = path == candidate or path.is_relative_to(candidate)
        if matches:
            raise SuspiciousPath("Points to a system directory", path)

    if path == Path.home():
        raise SuspiciousPath("Points to home directory root", path)


def check_vault_directory(path: Path) -> None:
    """Confirm ``path`` is an accessible, initialized Obsidian vault.

    Raises:
        VaultNotInitialized: If the directory is missing, not readable and
            writable, or lacks the ``.obsidian`` marker directory.
    """
    if not path.exists():
        raise VaultNotInitialized(f"Vault directory does not exist: {path}", path)
    if not path.is_dir():
        raise VaultNotInitialized(f"Vault path must be a directory: {path}", path)
    if not os.access(path, os.R_OK | os.W_OK):
        raise VaultNotInitialized(f"No permission to access vault directory: {path}", path)

    marker = path / MARKER_DIR
    if marker.exists() and not marker.is_dir():
        raise VaultNotInitialized(
            f"Invalid Obsidian vault configuration in {path}\n"
            f"The {MARKER_DIR} folder exists but is not a directory\n"
            "Try removing it and reopening the vault in Obsidian",
            path,
        )
    if not marker.is_dir():
        raise VaultNotInitialized(
            f"Not a valid Obsidian vault ({path})\n"
            f"Missing {MARKER_DIR} configuration\n\n"
            "To fix this:\n"
            "1. Open Obsidian\n"
            '2. Click "Open folder as vault"\n'
            f"3. Select the directory: {path}\n"
            "4. Wait for Obsidian to initialize the vault\n"
            "5. Try running this command again",
            path,
        )


def validate_vault_path(raw: str) -> Path:
    """Run the per-path checks in order and return the resolved vault root.

    Raises:
        VaultPathError: The first check that failed.
    """
    absolute = os.path.abspath(os.path.normpath(expand_home(raw.strip())))
    check_path_characters(absolute)

    candidate = Path(absolute)
    check_local_path(candidate)
    check_suspicious_path(candidate)
    check_vault_directory(candidate)
    return candidate.resolve()


# ==============================================================================
# SET-LEVEL CHECKS
# ==============================================================================


def check_path_overlap(paths: Sequence[PurePath]) -> None:
    """Reject duplicate or nested vault roots.

    The comparison is lexical; callers pass resolved paths.

    Raises:
        OverlappingVaults: On the first equal or nested pair.
    """
    for index, first in enumerate(paths):
        for second in paths[index + 1:]:
            if first == second:
                raise OverlappingVaults(
                    f"Duplicate vault path provided:\n  {first}\n  {second}", first
                )
            if first.is_relative_to(second) or second.is_relative_to(first):
                raise OverlappingVaults(
                    f"Vault paths cannot overlap:\n  {first}\n  {second}\n"
                    "(One vault directory cannot be inside another)",
                    first,
                )


@dataclass
class ScreeningResult:
    """Outcome of screening a batch of vault paths."""

    accepted: list[Path] = field(default_factory=list)
    rejected: list[VaultPathError] = field(default_factory=list)


def screen_vault_paths(raw_paths: Sequence[str], max_vaults: int = MAX_VAULTS) -> ScreeningResult:
    """Screen command-line vault paths.

    Args:
        raw_paths: Paths as typed by the user; ``~`` is expanded.
        max_vaults: Upper bound on the number of paths, checked before any
            path is inspected.

    Returns:
        The accepted (resolved) paths in input order, plus the rejections.

    Raises:
        TooManyVaults: If more than ``max_vaults`` paths were given.
        VaultPathError: If no path survived the per-path checks.
        OverlappingVaults: If accepted paths duplicate or contain each other.
    """
    if len(raw_paths) > max_vaults:
        raise TooManyVaults(
            f"Too many vaults specified ({len(raw_paths)})\n"
            f"Maximum number of vaults allowed: {max_vaults}\n"
            "This limit helps prevent performance issues and resource exhaustion"
        )

    result = ScreeningResult()
    for raw in raw_paths:
        try:
            result.accepted.append(validate_vault_path(raw))
        except VaultPathError as exc:
            logger.error("Invalid vault path (%s): %s", exc, raw)
            result.rejected.append(exc)

    if not result.accepted:
        reasons = "\n".join(f"- {exc}" for exc in result.rejected)
        raise VaultPathError(
            "No valid vault paths provided\n"
            "Make sure at least one path points to a valid Obsidian vault"
            + (f"\n{reasons}" if reasons else "")
        )
    if result.rejected:
        logger.warning(
            "Only %d out of %d paths were valid; some vaults will not be available",
            len(result.accepted),
            len(raw_paths),
        )

    check_path_overlap(result.accepted)
    return result


# ==============================================================================
# NAMING
# ==============================================================================


def sanitize_vault_name(name: str) -> str:
    """Derive a vault identifier from a directory name.

    Examples:
        >>> sanitize_vault_name("My Work Vault")
        'my-work-vault'
        >>> sanitize_vault_name("--Notes!!")
        'notes'
    """
    return _NAME_SEPARATORS.sub("-", name.lower()).strip("-") or "unnamed-vault"


def assign_vault_names(paths: Iterable[Path]) -> dict[str, Path]:
    """Name each vault after its last path segment, disambiguating collisions.

    The first occurrence keeps the bare name; later ones get ``-1``, ``-2``, ...
    in arrival order.
    """
    named: dict[str, Path] = {}
    for path in paths:
        base = sanitize_vault_name(path.name)
        unique = base
        counter = 1
        while unique in named:
            unique = f"{base}-{counter}"
            counter += 1
        if unique != base:
            logger.info("Duplicate vault name '%s', using '%s' instead", base, unique)
        logger.info("Vault '%s' registered as '%s'", path.name, unique)
        named[unique] = path
    return named
