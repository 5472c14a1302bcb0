"""Error types shared across the server.

Two families live here:

- Configuration errors (``VaultPathError`` and subclasses) are raised while
  vault paths are screened at startup. They are fatal: the server refuses to
  construct.
- Protocol errors are :class:`mcp.shared.exceptions.McpError` instances carrying
  a JSON-RPC error code. The helpers below build them so call sites read as
  ``raise invalid_params("...")``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

from mcp.shared.exceptions import McpError
from mcp.types import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    ErrorData,
)
from pydantic import ValidationError


# ==============================================================================
# CONFIGURATION ERRORS
# ==============================================================================


class VaultPathError(ValueError):
    """A candidate vault path was rejected."""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None) -> None:
        super().__init__(message)
        self.path = path


class InvalidPathFormat(VaultPathError):
    """Path contains characters or segments the host filesystem cannot accept."""


class NotLocalFilesystem(VaultPathError):
    """Path lives on a network share or escapes its directory through a symlink."""


class SuspiciousPath(VaultPathError):
    """Path points at a system, hidden, or home-root directory."""


class OverlappingVaults(VaultPathError):
    """Two vault paths are equal or one contains the other."""


class TooManyVaults(VaultPathError):
    """More vault paths were supplied than the server accepts."""


class VaultNotInitialized(VaultPathError):
    """Directory is missing, inaccessible, or lacks the ``.obsidian`` marker."""


class DuplicateRegistration(ValueError):
    """A capability name was registered twice."""


# ==============================================================================
# PROTOCOL ERRORS
# ==============================================================================


def protocol_error(code: int, message: str) -> McpError:
    return McpError(ErrorData(code=code, message=message))


def invalid_request(message: str) -> McpError:
    return protocol_error(INVALID_REQUEST, message)


def invalid_params(message: str) -> McpError:
    return protocol_error(INVALID_PARAMS, message)


def method_not_found(message: str) -> McpError:
    return protocol_error(METHOD_NOT_FOUND, message)


def internal_error(message: str) -> McpError:
    return protocol_error(INTERNAL_ERROR, message)


class PayloadTooLarge(McpError):
    """Inbound message exceeded the configured size ceiling."""

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(
            ErrorData(
                code=INVALID_REQUEST,
                message=f"Message size {size} bytes exceeds limit of {limit} bytes",
            )
        )
        self.size = size
        self.limit = limit


class RateLimitExceeded(McpError):
    """Too many calls of one method inside the sliding window."""

    def __init__(self, method: str) -> None:
        super().__init__(ErrorData(code=INVALID_REQUEST, message="Rate limit exceeded"))
        self.method = method


def format_validation_error(prefix: str, exc: ValidationError) -> str:
    """Render every pydantic violation on its own ``field.path: message`` line."""
    lines = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        message = error.get("msg", "invalid value")
        lines.append(f"{location}: {message}" if location else message)
    return f"{prefix}:\n" + "\n".join(lines)
