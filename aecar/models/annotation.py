"""Annotation — a labelled point with metadata for AR display."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Position(BaseModel):
    """Model-space position in metres."""

    model_config = ConfigDict(frozen=True)

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


class Annotation(BaseModel):
    """One per named scene node; immutable once extracted."""

    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    position: Position = Field(default_factory=Position)
    metadata: dict[str, str] = Field(default_factory=dict)


class AnnotationResult(BaseModel):
    """Annotations plus how many were enriched from the IFC file."""

    annotations: list[Annotation] = Field(default_factory=list)
    ifc_enriched: int = 0
    glb_only: int = 0
