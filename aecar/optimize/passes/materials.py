"""Material passes: colour injection, metal/rough conversion, PBR repair."""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence

from aecar.config import DEFAULT_BASE_COLOR, DEFAULT_METALLIC, DEFAULT_ROUGHNESS
from aecar.optimize.passes.base import OptimizationPass
from aecar.scene.graph import SceneGraph, TextureSlot

SPEC_GLOSS = "KHR_materials_pbrSpecularGlossiness"


def _rgba(color: Sequence[float]) -> list[float]:
    values = [float(c) for c in color]
    if len(values) == 3:
        values.append(1.0)
    if len(values) != 4:
        raise ValueError(f"expected 3 or 4 colour components, got {len(values)}")
    return values


class ApplyColorMapPass(OptimizationPass):
    """Override base colours by case-insensitive material name.

    Runs before deduplication so materials that only differ by name are not
    merged before they receive their distinct colours.
    """

    def __init__(self, color_map: Mapping[str, Sequence[float]]) -> None:
        self.color_map = {name.lower(): _rgba(color) for name, color in color_map.items()}

    @property
    def name(self) -> str:
        return "color_map"

    def apply(self, graph: SceneGraph) -> str:
        applied = 0
        for material in graph.materials:
            color = self.color_map.get((material.name or "").lower())
            if color is not None:
                material.base_color = list(color)
                spec_gloss = material.extensions.get(SPEC_GLOSS)
                if isinstance(spec_gloss, dict):
                    spec_gloss["diffuseFactor"] = list(color)
                applied += 1
        return f"recoloured {applied} materials"


class MetalRoughPass(OptimizationPass):
    """Convert specular/glossiness materials to metallic/roughness."""

    @property
    def name(self) -> str:
        return "metal_rough"

    def apply(self, graph: SceneGraph) -> str:
        converted = 0
        for material in graph.materials:
            ext = material.extensions.pop(SPEC_GLOSS, None)
            if ext is None:
                continue
            material.base_color = list(ext.get("diffuseFactor", [1.0, 1.0, 1.0, 1.0]))
            material.metallic = 0.0
            material.roughness = 1.0 - float(ext.get("glossinessFactor", 1.0))
            diffuse = ext.get("diffuseTexture")
            if diffuse and 0 <= diffuse.get("index", -1) < len(graph.textures):
                material.textures["baseColorTexture"] = TextureSlot(
                    texture=graph.textures[diffuse["index"]],
                    tex_coord=diffuse.get("texCoord", 0),
                )
            converted += 1
        if SPEC_GLOSS in graph.extensions_used:
            graph.extensions_used.remove(SPEC_GLOSS)
        if SPEC_GLOSS in graph.extensions_required:
            graph.extensions_required.remove(SPEC_GLOSS)
        return f"converted {converted} materials"


def _valid_color(color: Sequence[float]) -> bool:
    return len(color) == 4 and all(
        isinstance(c, (int, float)) and math.isfinite(c) and 0.0 <= c <= 1.0 for c in color
    )


def _factor(value: object, default: float) -> float:
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        return default
    return min(max(float(value), 0.0), 1.0)


class ClampPBRPass(OptimizationPass):
    """Reset invalid base colours and clamp metallic/roughness to [0, 1]."""

    @property
    def name(self) -> str:
        return "clamp_pbr"

    def apply(self, graph: SceneGraph) -> str:
        fixed = 0
        for material in graph.materials:
            before = (list(material.base_color), material.metallic, material.roughness)
            if not _valid_color(material.base_color):
                material.base_color = list(DEFAULT_BASE_COLOR)
            material.metallic = _factor(material.metallic, DEFAULT_METALLIC)
            material.roughness = _factor(material.roughness, DEFAULT_ROUGHNESS)
            if before != (material.base_color, material.metallic, material.roughness):
                fixed += 1
        return f"repaired {fixed} materials"


class AssignDefaultMaterialPass(OptimizationPass):
    """Bind the shared default material to primitives without one."""

    @property
    def name(self) -> str:
        return "default_material"

    def apply(self, graph: SceneGraph) -> str:
        assigned = 0
        for prim in graph.primitives():
            if prim.material is None:
                prim.material = graph.default_material()
                assigned += 1
        return f"assigned default material to {assigned} primitives"
