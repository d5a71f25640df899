"""Reports and the upload result value object."""

from __future__ import annotations

from pydantic import BaseModel, Field

from aecar.models.annotation import Annotation


class PassReport(BaseModel):
    """Outcome of one optimization pass."""

    name: str
    applied: bool = True
    message: str = ""


class OptimizationReport(BaseModel):
    passes: list[PassReport] = Field(default_factory=list)
    patched_accessors: int = 0

    @property
    def failed(self) -> list[PassReport]:
        return [p for p in self.passes if not p.applied]


class UploadResult(BaseModel):
    """Artifacts produced for one uploaded model.

    ``usdz`` is None when archive synthesis failed; the optimized GLB is
    still usable in that case.
    """

    annotations: list[Annotation] = Field(default_factory=list)
    ifc_enriched: int = 0
    glb_only: int = 0
    optimized_glb: bytes = b""
    usdz: bytes | None = None
    warnings: list[str] = Field(default_factory=list)
    optimization: OptimizationReport = Field(default_factory=OptimizationReport)
