"""Pydantic schema helpers shared by the console packages."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class ConsoleModel(BaseModel):
    """Base model accepting both camelCase wire names and snake_case fields."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True, coerce_numbers_to_str=True)

    def dict_for_api(self, **kwargs: Any) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, **kwargs)


class LabelledOption(ConsoleModel):
    """One selectable ``{code, label}`` pair."""

    code: str
    label: str


def unwrap_content(body: Any) -> Any:
    """Strip the ``{"content": ...}`` envelope the API wraps most responses in.

    When ``content`` is missing or null the body itself is the payload.
    """

    if isinstance(body, dict) and body.get("content") is not None:
        return body["content"]
    return body


__all__ = ["ConsoleModel", "LabelledOption", "unwrap_content"]
