"""Tool and prompt registries.

A capability is registered once, at startup, and looked up by exact name on
every call. Registration order is preserved for listing.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, Optional, Protocol, TypeVar

from mcp import types
from pydantic import BaseModel

from obsidian_mcp.errors import DuplicateRegistration

if TYPE_CHECKING:
    from obsidian_mcp.data_models import VaultRegistry

logger = logging.getLogger(__name__)

Content = list[types.TextContent]
ToolHandler = Callable[[Any], Awaitable[Content]]
PromptRenderer = Callable[["VaultRegistry", dict[str, str]], Awaitable[types.GetPromptResult]]


def text_content(payload: Any) -> Content:
    """Wrap a tool result as a single text content block.

    Strings pass through unchanged; anything else is rendered as indented JSON.
    """
    text = payload if isinstance(payload, str) else json.dumps(payload, indent=2, default=str)
    return [types.TextContent(type="text", text=text)]


@dataclass(frozen=True)
class ToolDescriptor:
    """A named operation callable through ``tools/call``.

    ``input_model`` validates and coerces raw arguments; its JSON schema is
    what clients see as ``inputSchema``.
    """

    name: str
    description: str
    input_model: type[BaseModel]
    handler: ToolHandler

    def parse(self, arguments: Optional[dict[str, Any]]) -> BaseModel:
        """Validate raw arguments.

        Raises:
            pydantic.ValidationError: Listing every invalid field.
        """
        return self.input_model.model_validate(arguments or {})

    @property
    def json_schema(self) -> dict[str, Any]:
        return self.input_model.model_json_schema()

    def as_tool(self) -> types.Tool:
        return types.Tool(name=self.name, description=self.description, inputSchema=self.json_schema)


@dataclass(frozen=True)
class PromptDescriptor:
    """A parameterized message template served through ``prompts/get``."""

    name: str
    description: str
    render: PromptRenderer
    argument_model: Optional[type[BaseModel]] = None

    def as_prompt(self) -> types.Prompt:
        arguments = None
        if self.argument_model is not None:
            arguments = [
                types.PromptArgument(
                    name=field_name,
                    description=field.description,
                    required=field.is_required(),
                )
                for field_name, field in self.argument_model.model_fields.items()
            ]
        return types.Prompt(name=self.name, description=self.description, arguments=arguments)


class _Named(Protocol):
    name: str


T = TypeVar("T", bound=_Named)


class CapabilityRegistry(Generic[T]):
    """Ordered, insert-or-fail registry of named capabilities."""

    def __init__(self, kind: str) -> None:
        self.kind = kind
        self._items: dict[str, T] = {}

    def register(self, item: T) -> None:
        """Add ``item``.

        Raises:
            DuplicateRegistration: If the name is taken; the registry is unchanged.
        """
        if item.name in self._items:
            raise DuplicateRegistration(f"{self.kind.capitalize()} '{item.name}' is already registered")
        self._items[item.name] = item
        logger.debug("Registered %s '%s'", self.kind, item.name)

    def get(self, name: str) -> Optional[T]:
        return self._items.get(name)

    def names(self) -> list[str]:
        return list(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, name: object) -> bool:
        return name in self._items


class ToolRegistry(CapabilityRegistry[ToolDescriptor]):
    def __init__(self) -> None:
        super().__init__("tool")

    def list_tools(self) -> list[types.Tool]:
        return [tool.as_tool() for tool in self]


class PromptRegistry(CapabilityRegistry[PromptDescriptor]):
    def __init__(self) -> None:
        super().__init__("prompt")

    def list_prompts(self) -> list[types.Prompt]:
        return [prompt.as_prompt() for prompt in self]
