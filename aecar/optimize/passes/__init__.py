"""Optimization passes in the order the AR pipeline applies them."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from aecar.optimize.passes.base import OptimizationPass
from aecar.optimize.passes.cleanup import (
    DedupPass,
    FlattenPass,
    PrunePass,
    StripExtensionsPass,
    StripExtrasPass,
)
from aecar.optimize.passes.geometry import (
    ComputeNormalsPass,
    StripAnimationPass,
    StripNonTrianglesPass,
    SynthesizeUVPass,
    WeldPass,
)
from aecar.optimize.passes.materials import (
    ApplyColorMapPass,
    AssignDefaultMaterialPass,
    ClampPBRPass,
    MetalRoughPass,
)


def default_passes(
    color_map: Mapping[str, Sequence[float]] | None = None,
    weld_tolerance: float = 0.0001,
) -> list[OptimizationPass]:
    """Return the standard AR-compatibility pass sequence."""
    passes: list[OptimizationPass] = [
        StripNonTrianglesPass(),
        StripAnimationPass(),
    ]
    if color_map:
        passes.append(ApplyColorMapPass(color_map))
    passes.extend([
        MetalRoughPass(),
        DedupPass(),
        FlattenPass(),
        PrunePass(),
        WeldPass(weld_tolerance),
        ComputeNormalsPass(),
        SynthesizeUVPass(),
        StripExtrasPass(),
        ClampPBRPass(),
        AssignDefaultMaterialPass(),
        StripExtensionsPass(),
    ])
    return passes


__all__ = [
    "ApplyColorMapPass",
    "AssignDefaultMaterialPass",
    "ClampPBRPass",
    "ComputeNormalsPass",
    "DedupPass",
    "FlattenPass",
    "MetalRoughPass",
    "OptimizationPass",
    "PrunePass",
    "StripAnimationPass",
    "StripExtensionsPass",
    "StripExtrasPass",
    "StripNonTrianglesPass",
    "SynthesizeUVPass",
    "WeldPass",
    "default_passes",
]
