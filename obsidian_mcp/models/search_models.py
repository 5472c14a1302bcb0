"""Pydantic input models for vault search."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import ConfigDict, Field, field_validator

from .base import VaultInput, validate_relative_path


class SearchType(str, Enum):
    CONTENT = "content"
    FILENAME = "filename"
    BOTH = "both"


class SearchVaultInput(VaultInput):
    """Input model for the search-vault tool.

    Matches a literal substring against note contents, note paths, or both.
    Results are ranked by match count and carry up to three snippets each.

    Examples:
        >>> SearchVaultInput(vault="work", query="roadmap")
        >>> SearchVaultInput(vault="work", query="TODO", path="Projects", case_sensitive=True)
    """

    query: str = Field(
        min_length=1,
        description="Text to search for. Matched literally, not as a regular expression.",
        examples=["meeting", "TODO"],
    )

    path: Optional[str] = Field(
        None,
        description="Restrict the search to this folder (relative to the vault root).",
    )

    case_sensitive: bool = Field(
        False,
        description="Match letter case exactly.",
    )

    search_type: SearchType = Field(
        SearchType.CONTENT,
        description="Where to look: 'content', 'filename', or 'both'.",
    )

    @field_validator("query")
    @classmethod
    def validate_query(cls, v: str) -> str:
        if not v.strip():
            raise ValueError(
                "Search query cannot be empty or only whitespace. "
                "Provide the text you want to find."
            )
        return v.strip()

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip() or v.strip() in {"/", "."}:
            return None
        return validate_relative_path(v, "Search path")

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {"vault": "work", "query": "roadmap"},
                {"vault": "personal", "query": "Journal", "search_type": "filename"},
            ]
        }
    )
