"""ExchangeElement — a building element recovered from an IFC text file.

The IFC file is optional input; when present, each recognised element
(wall, beam, door, ...) carries the flattened property values and the
resolved material name that enrich the matching AR annotation.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class ExchangeElement(BaseModel):
    """One recognised building element."""

    entity_id: int
    guid: str = ""
    name: str = ""
    ifc_type: str = ""
    properties: dict[str, str] = Field(default_factory=dict)


class ExchangeIndex(BaseModel):
    """Everything the property/material indexer derives from one file.

    ``properties`` and ``materials`` are keyed by entity id and cover every
    related object, not only recognised elements.
    """

    properties: dict[int, dict[str, str]] = Field(default_factory=dict)
    materials: dict[int, str] = Field(default_factory=dict)
    elements: list[ExchangeElement] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.elements
