"""Command-line entry point.

Parses flags and vault paths, screens the paths, builds the server and its
tools, then runs until the transport closes or a signal arrives.

Fatal startup errors are reported twice: readable text on stderr and a
single JSON-RPC error line on stdout, so a client reading stdout sees why
the server went away.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any, NoReturn, Optional

from mcp import types
from mcp.shared.exceptions import McpError

from obsidian_mcp.config import (
    TRANSPORTS,
    ServerConfig,
    configure_logging,
    load_config_file,
    normalize_http_path,
)
from obsidian_mcp.constants import (
    DEFAULT_HTTP_HOST,
    DEFAULT_HTTP_PATH,
    DEFAULT_HTTP_PORT,
    MAX_VAULTS,
    SERVER_VERSION,
)
from obsidian_mcp.data_models import VaultConfig
from obsidian_mcp.errors import DuplicateRegistration, VaultPathError
from obsidian_mcp.security.paths import assign_vault_names, screen_vault_paths
from obsidian_mcp.server import ObsidianServer
from obsidian_mcp.tools import build_tools

logger = logging.getLogger(__name__)

NO_VAULTS_MESSAGE = "No vault paths provided. Please provide at least one valid Obsidian vault path."

USAGE_NOTES = f"""\
Vault paths:
  Each path must be an existing Obsidian vault (contains a .obsidian folder).
  At most {MAX_VAULTS} vaults; paths may not be nested inside each other.

Notes:
  - Use --transport http when connecting from ChatGPT Desktop.
  - Configure --allowed-host/--allowed-origin with --enable-dns-rebinding-protection
    for public exposure.
"""


class CliError(Exception):
    """Invalid command-line usage."""


class ArgumentParser(argparse.ArgumentParser):
    """Raises :class:`CliError` instead of exiting, so usage errors get the JSON report."""

    def error(self, message: str) -> NoReturn:
        raise CliError(message)


def _port(value: str) -> int:
    try:
        port = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f'Invalid port "{value}". Must be an integer between 1 and 65535.') from exc
    if not 1 <= port <= 65535:
        raise argparse.ArgumentTypeError(f'Invalid port "{value}". Must be an integer between 1 and 65535.')
    return port


def _seconds(value: str) -> float:
    try:
        seconds = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f'Invalid duration "{value}".') from exc
    if seconds < 0:
        raise argparse.ArgumentTypeError(f'Invalid duration "{value}". Must not be negative.')
    return seconds


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog="obsidian-mcp",
        description="Serve Obsidian vaults over the Model Context Protocol.",
        epilog=USAGE_NOTES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("vaults", nargs="*", metavar="vault_path", help="Path to an Obsidian vault.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {SERVER_VERSION}")
    parser.add_argument("--config", type=Path, help="YAML configuration file.")
    parser.add_argument("--transport", choices=TRANSPORTS, help="Transport layer (default: stdio).")
    parser.add_argument("--host", help=f"HTTP host/interface (default: {DEFAULT_HTTP_HOST}).")
    parser.add_argument("--port", type=_port, help=f"HTTP port (default: {DEFAULT_HTTP_PORT}).")
    parser.add_argument("--http-path", help=f"HTTP endpoint path (default: {DEFAULT_HTTP_PATH}).")
    parser.add_argument(
        "--allowed-origin",
        action="append",
        dest="allowed_origins",
        metavar="ORIGIN",
        help="Allow an Origin header (repeatable, http only).",
    )
    parser.add_argument(
        "--allowed-host",
        action="append",
        dest="allowed_hosts",
        metavar="HOST",
        help="Allow a Host header (repeatable, http only).",
    )
    parser.add_argument(
        "--enable-dns-rebinding-protection",
        action="store_true",
        default=None,
        help="Enforce Host/Origin validation (http only).",
    )
    parser.add_argument(
        "--json-response",
        action="store_true",
        default=None,
        help="Answer HTTP POSTs with a single JSON body instead of an SSE stream.",
    )
    parser.add_argument(
        "--idle-timeout",
        type=_seconds,
        metavar="SECONDS",
        help="Shut down after this long without requests; 0 disables.",
    )
    parser.add_argument("--log-level", type=str.upper, help="Logging level (default: INFO).")
    return parser


def resolve_config(args: argparse.Namespace) -> ServerConfig:
    """Merge the optional config file with command-line flags.

    Raises:
        FileNotFoundError: If ``--config`` names a missing file.
        ValueError: If the config file is malformed.
    """
    config = load_config_file(args.config) if args.config else ServerConfig()

    if args.vaults:
        config.vault_paths = list(args.vaults)
    if args.transport:
        config.transport = args.transport
    if args.host:
        config.http.host = args.host
    if args.port is not None:
        config.http.port = args.port
    if args.http_path is not None:
        config.http.path = normalize_http_path(args.http_path)
    if args.allowed_origins:
        config.http.allowed_origins = list(args.allowed_origins)
    if args.allowed_hosts:
        config.http.allowed_hosts = list(args.allowed_hosts)
    if args.enable_dns_rebinding_protection:
        config.http.enable_dns_rebinding_protection = True
    if args.json_response:
        config.http.json_response = True
    if args.idle_timeout is not None:
        config.limits.idle_timeout_seconds = args.idle_timeout
    if args.log_level:
        config.log_level = args.log_level
    return config


def build_vault_configs(raw_paths: Sequence[str]) -> list[VaultConfig]:
    """Screen the raw paths and name the surviving vaults.

    Raises:
        VaultPathError: If too many paths were given, none is valid, or they overlap.
    """
    screening = screen_vault_paths(raw_paths)
    named = assign_vault_names(screening.accepted)
    return [VaultConfig(name=name, path=path) for name, path in named.items()]


def build_server(config: ServerConfig) -> ObsidianServer:
    """Construct the server for ``config`` with every tool registered.

    Raises:
        VaultPathError: If vault screening fails.
        McpError: If the server rejects the vault set.
    """
    vault_configs = build_vault_configs(config.vault_paths)
    server = ObsidianServer(vault_configs, limits=config.limits)
    for tool in build_tools(server.vaults):
        server.register_tool(tool)
    return server


def report_fatal(message: str, code: int = types.INVALID_REQUEST) -> None:
    """Print ``message`` to stderr and a JSON-RPC error line to stdout."""
    print(f"Error: {message}", file=sys.stderr)
    payload: dict[str, Any] = {
        "jsonrpc": "2.0",
        "error": {"code": code, "message": message},
        "id": None,
    }
    sys.stdout.write(json.dumps(payload) + "\n")
    sys.stdout.flush()


def _install_signal_handlers(server: ObsidianServer) -> None:
    loop = asyncio.get_running_loop()

    def shutdown(signame: str) -> None:
        logger.info("Received %s, shutting down...", signame)
        loop.create_task(server.stop())

    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, shutdown, signum.name)
        except NotImplementedError:
            # Windows event loops have no signal handler support.
            logger.debug("Signal handlers unavailable for %s", signum.name)


async def run(config: ServerConfig) -> int:
    server = build_server(config)

    if config.transport == "http":
        logger.info(
            "HTTP transport enabled on %s:%d%s",
            config.http.host,
            config.http.port,
            config.http.path,
        )

    await server.start(config.http if config.transport == "http" else None)
    _install_signal_handlers(server)
    try:
        await server.wait_closed()
    finally:
        await server.stop()
    logger.info("Server stopped cleanly")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
        config = resolve_config(args)
    except (CliError, FileNotFoundError, ValueError) as exc:
        report_fatal(str(exc))
        return 1

    configure_logging(config.log_level)

    if not config.vault_paths:
        parser.print_help(sys.stderr)
        report_fatal(NO_VAULTS_MESSAGE)
        return 1

    try:
        return asyncio.run(run(config))
    except McpError as exc:
        report_fatal(exc.error.message, exc.error.code)
    except (VaultPathError, DuplicateRegistration) as exc:
        report_fatal(str(exc))
    except OSError as exc:
        report_fatal(f"Failed to start server: {exc}", types.INTERNAL_ERROR)
    except Exception as exc:
        logger.exception("Server terminated unexpectedly")
        report_fatal(str(exc), types.INTERNAL_ERROR)
    return 1


if __name__ == "__main__":
    sys.exit(main())
