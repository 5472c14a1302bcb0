"""Run the server with ``python -m obsidian_mcp``."""

import sys

from obsidian_mcp.cli import main

sys.exit(main())
