"""Startup path screening and per-request admission control."""

from obsidian_mcp.security.admission import (
    ActivityClock,
    AdmissionController,
    ConnectionMonitor,
    RateLimiter,
    validate_message_size,
)
from obsidian_mcp.security.paths import (
    assign_vault_names,
    check_local_path,
    check_path_characters,
    check_path_overlap,
    check_suspicious_path,
    sanitize_vault_name,
    screen_vault_paths,
)

__all__ = [
    "ActivityClock",
    "AdmissionController",
    "ConnectionMonitor",
    "RateLimiter",
    "validate_message_size",
    "assign_vault_names",
    "check_local_path",
    "check_path_characters",
    "check_path_overlap",
    "check_suspicious_path",
    "sanitize_vault_name",
    "screen_vault_paths",
]
