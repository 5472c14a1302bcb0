"""Runtime configuration and logging setup.

Settings come from three layers, later ones winning: the defaults in
``constants.py``, an optional YAML file, and command-line flags.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import yaml
from mcp.server.transport_security import TransportSecuritySettings

from obsidian_mcp.constants import (
    DEFAULT_HTTP_HOST,
    DEFAULT_HTTP_PATH,
    DEFAULT_HTTP_PORT,
    IDLE_CHECK_INTERVAL_SECONDS,
    IDLE_TIMEOUT_SECONDS,
    LOG_FORMAT,
    LOG_LEVEL,
    MAX_MESSAGE_BYTES,
    RATE_LIMIT_REQUESTS,
    RATE_LIMIT_WINDOW_SECONDS,
    SESSION_IDLE_TIMEOUT_SECONDS,
    STARTUP_GRACE_SECONDS,
)

logger = logging.getLogger(__name__)

TRANSPORTS = ("stdio", "http")


def normalize_http_path(value: str) -> str:
    """Give ``value`` exactly one leading slash and no trailing slash.

    Examples:
        >>> normalize_http_path("mcp/")
        '/mcp'
    """
    cleaned = value.strip().strip("/")
    return f"/{cleaned}" if cleaned else DEFAULT_HTTP_PATH


@dataclass
class AdmissionSettings:
    """Limits applied to every inbound request."""

    max_message_bytes: int = MAX_MESSAGE_BYTES
    rate_limit: int = RATE_LIMIT_REQUESTS
    rate_window_seconds: float = RATE_LIMIT_WINDOW_SECONDS
    idle_timeout_seconds: float = IDLE_TIMEOUT_SECONDS
    startup_grace_seconds: float = STARTUP_GRACE_SECONDS
    check_interval_seconds: float = IDLE_CHECK_INTERVAL_SECONDS


@dataclass
class HttpSettings:
    """Listener and request-screening options for the HTTP transport."""

    host: str = DEFAULT_HTTP_HOST
    port: int = DEFAULT_HTTP_PORT
    path: str = DEFAULT_HTTP_PATH
    allowed_origins: list[str] = field(default_factory=list)
    allowed_hosts: list[str] = field(default_factory=list)
    enable_dns_rebinding_protection: bool = False
    json_response: bool = False
    session_idle_timeout: float = SESSION_IDLE_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        self.path = normalize_http_path(self.path)

    @property
    def unprotected(self) -> bool:
        return not (self.enable_dns_rebinding_protection or self.allowed_hosts or self.allowed_origins)

    def security_settings(self) -> TransportSecuritySettings:
        return TransportSecuritySettings(
            enable_dns_rebinding_protection=self.enable_dns_rebinding_protection,
            allowed_hosts=list(self.allowed_hosts),
            allowed_origins=list(self.allowed_origins),
        )


@dataclass
class ServerConfig:
    """Everything the command line and config file can set."""

    vault_paths: list[str] = field(default_factory=list)
    transport: str = "stdio"
    http: HttpSettings = field(default_factory=HttpSettings)
    limits: AdmissionSettings = field(default_factory=AdmissionSettings)
    log_level: str = LOG_LEVEL


def _section(raw: dict[str, Any], key: str) -> dict[str, Any]:
    value = raw.get(key) or {}
    if not isinstance(value, dict):
        raise ValueError(f"Configuration section '{key}' must be a mapping")
    return value


def _apply(target: Any, values: dict[str, Any], section: str) -> None:
    known = {item.name for item in fields(target)}
    for key, value in values.items():
        attribute = key.replace("-", "_")
        if attribute not in known:
            raise ValueError(f"Unknown setting '{section}.{key}'")
        setattr(target, attribute, value)


def load_config_file(config_path: Path) -> ServerConfig:
    """Load server settings from a YAML file.

    Expected layout::

        vaults:
          - ~/Documents/Obsidian/Personal
        transport: http
        http:
          port: 8080
          allowed_hosts: [localhost]
        limits:
          idle_timeout_seconds: 0
        log_level: DEBUG

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        A :class:`ServerConfig` with file values applied over the defaults.

    Raises:
        FileNotFoundError: If the file is missing.
        ValueError: If the file does not have the expected structure.
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found at {config_path}")

    raw = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ValueError("Configuration file must contain a mapping at the top level")

    config = ServerConfig()

    vaults = raw.get("vaults", [])
    if not isinstance(vaults, list) or not all(isinstance(entry, str) for entry in vaults):
        raise ValueError("Configuration 'vaults' must be a list of path strings")
    config.vault_paths = list(vaults)

    transport = str(raw.get("transport", config.transport)).lower()
    if transport not in TRANSPORTS:
        raise ValueError(f"Invalid transport \"{transport}\". Supported transports: stdio, http.")
    config.transport = transport

    _apply(config.http, _section(raw, "http"), "http")
    config.http.path = normalize_http_path(config.http.path)
    _apply(config.limits, _section(raw, "limits"), "limits")

    log_level = raw.get("log_level")
    if log_level is not None:
        config.log_level = str(log_level).upper()

    logger.debug("Loaded configuration from %s", config_path)
    return config


def configure_logging(level: Optional[str] = None) -> None:
    """Send log records to stderr; stdout carries protocol traffic under stdio."""
    logging.basicConfig(
        level=(level or LOG_LEVEL).upper(),
        format=LOG_FORMAT,
        stream=sys.stderr,
        force=True,
    )
