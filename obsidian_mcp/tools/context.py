"""Shared plumbing for tool modules.

:class:`ToolSet` collects handlers the way a ``@mcp.tool()`` decorator does:
the handler's docstring becomes the tool description and the input model
supplies the schema.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable

from pydantic import BaseModel

from obsidian_mcp.data_models import VaultConfig, VaultRegistry
from obsidian_mcp.errors import invalid_params
from obsidian_mcp.registry import ToolDescriptor, ToolHandler


def resolve_vault(vaults: VaultRegistry, name: str) -> VaultConfig:
    """Resolve a vault name supplied by a client.

    Raises:
        McpError: InvalidParams naming the configured vaults when ``name`` is unknown.
    """
    try:
        return vaults.resolve(name)
    except ValueError as exc:
        raise invalid_params(str(exc)) from exc


class ToolSet:
    """Ordered collection of tool descriptors built from decorated handlers."""

    def __init__(self) -> None:
        self.descriptors: list[ToolDescriptor] = []

    def tool(self, name: str, input_model: type[BaseModel]) -> Callable[[ToolHandler], ToolHandler]:
        def decorator(handler: ToolHandler) -> ToolHandler:
            description = inspect.getdoc(handler) or ""
            self.descriptors.append(
                ToolDescriptor(
                    name=name,
                    description=description,
                    input_model=input_model,
                    handler=handler,
                )
            )
            return handler

        return decorator
