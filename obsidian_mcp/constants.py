"""Module-level constants for the Obsidian MCP server."""

# Identity
SERVER_NAME = "obsidian-mcp"
SERVER_VERSION = "1.1.0"

# Vaults
MARKER_DIR = ".obsidian"
MAX_VAULTS = 10
VAULT_URI_SCHEME = "obsidian-vault://"
TRASH_DIR = ".trash"

# Admission limits
MAX_MESSAGE_BYTES = 5 * 1024 * 1024
RATE_LIMIT_REQUESTS = 1000
RATE_LIMIT_WINDOW_SECONDS = 60.0
IDLE_TIMEOUT_SECONDS = 600.0
STARTUP_GRACE_SECONDS = 900.0
IDLE_CHECK_INTERVAL_SECONDS = 10.0

# HTTP transport
DEFAULT_HTTP_HOST = "0.0.0.0"
DEFAULT_HTTP_PORT = 8080
DEFAULT_HTTP_PATH = "/mcp"
ALLOWED_HTTP_METHODS = "GET,POST,DELETE,OPTIONS"
LEGACY_DISCOVERY_SEGMENT = "list_actions"
SESSION_HEADER = "mcp-session-id"
GRACEFUL_SHUTDOWN_SECONDS = 5
SESSION_IDLE_TIMEOUT_SECONDS = 1800.0

# Tool limits
MAX_FRONTMATTER_BYTES = 10_240
MAX_SEARCH_RESULTS = 50

# Logging
LOG_LEVEL = "INFO"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
