"""Pydantic input models for vault discovery."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class ListVaultsInput(BaseModel):
    """Input model for the list-available-vaults tool.

    Takes no parameters; the model keeps every tool's schema uniform.

    Examples:
        >>> ListVaultsInput()
    """

    model_config = ConfigDict(json_schema_extra={"examples": [{}]})
