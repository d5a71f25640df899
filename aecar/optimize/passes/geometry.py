"""Geometry passes: topology filtering, welding, normals, UVs."""

from __future__ import annotations

import math
from typing import Any

from aecar.errors import MissingAttribute, UnsupportedTopology
from aecar.optimize.passes.base import OptimizationPass
from aecar.scene.accessors import Accessor, ComponentType, ElementShape
from aecar.scene.graph import Primitive, PrimitiveMode, SceneGraph


def check_primitive(prim: Primitive) -> None:
    """Raise if *prim* cannot be carried into an AR export."""
    if prim.mode is not PrimitiveMode.TRIANGLES:
        raise UnsupportedTopology(f"mode {prim.mode.name} is not TRIANGLES")
    if prim.vertex_count == 0:
        raise MissingAttribute("primitive has no POSITION data")


def _truncated(acc: Accessor, count: int) -> Accessor:
    n = acc.shape.components
    return Accessor(
        component_type=acc.component_type,
        shape=acc.shape,
        data=acc.data[:count * n],
        normalized=acc.normalized,
        name=acc.name,
    )


def trim_incomplete_triangle(prim: Primitive, graph: SceneGraph) -> bool:
    """Drop a trailing partial triangle so counts are multiples of three."""
    if prim.indices is not None:
        count = prim.indices.count
        if count % 3 == 0:
            return False
        prim.indices = _truncated(prim.indices, count - count % 3)
        graph.accessors.append(prim.indices)
        return True

    count = prim.vertex_count
    if count % 3 == 0:
        return False
    keep = count - count % 3
    for semantic, acc in list(prim.attributes.items()):
        prim.attributes[semantic] = _truncated(acc, keep)
        graph.accessors.append(prim.attributes[semantic])
    return True


class StripNonTrianglesPass(OptimizationPass):
    """Delete point/line/strip/fan primitives and those without positions."""

    @property
    def name(self) -> str:
        return "strip_non_triangles"

    def apply(self, graph: SceneGraph) -> str:
        topology = missing = trimmed = 0
        for mesh in graph.meshes:
            kept: list[Primitive] = []
            for prim in mesh.primitives:
                try:
                    check_primitive(prim)
                except UnsupportedTopology:
                    topology += 1
                    continue
                except MissingAttribute:
                    missing += 1
                    continue
                if trim_incomplete_triangle(prim, graph):
                    trimmed += 1
                kept.append(prim)
            mesh.primitives = kept
        return (
            f"removed {topology} non-triangle and {missing} position-less primitives, "
            f"trimmed {trimmed}"
        )


class StripAnimationPass(OptimizationPass):
    """Remove animations, skins, joint/weight attributes, and cameras."""

    @property
    def name(self) -> str:
        return "strip_animation"

    def apply(self, graph: SceneGraph) -> str:
        counts = (len(graph.animations), len(graph.skins), len(graph.cameras))
        graph.animations.clear()
        graph.skins.clear()
        graph.cameras.clear()
        for node in graph.nodes:
            node.skin = None
            node.camera = None
        for prim in graph.primitives():
            for semantic in list(prim.attributes):
                if semantic.startswith(("JOINTS_", "WEIGHTS_")):
                    del prim.attributes[semantic]
        return "removed %d animations, %d skins, %d cameras" % counts


def _quantize(value: float, tolerance: float) -> Any:
    if tolerance <= 0 or not math.isfinite(value):
        return value
    return round(value / tolerance)


class WeldPass(OptimizationPass):
    """Merge vertices that agree on every attribute and index the result."""

    def __init__(self, tolerance: float = 0.0001) -> None:
        self.tolerance = tolerance

    @property
    def name(self) -> str:
        return "weld"

    def _weld(self, prim: Primitive, graph: SceneGraph) -> int:
        count = prim.vertex_count
        attrs = list(prim.attributes.items())
        if any(acc.count != count for _, acc in attrs):
            return 0

        remap: list[int] = []
        first_of: list[int] = []
        seen: dict[tuple[Any, ...], int] = {}
        for i in range(count):
            key = tuple(
                tuple(
                    _quantize(v, self.tolerance) if acc.component_type.is_float else v
                    for v in acc.element(i)
                )
                for _, acc in attrs
            )
            target = seen.get(key)
            if target is None:
                target = len(first_of)
                seen[key] = target
                first_of.append(i)
            remap.append(target)

        unique = len(first_of)
        source_indices = prim.index_list()
        if unique == count and prim.indices is not None:
            return 0

        if unique < count:
            for semantic, acc in attrs:
                welded = Accessor.from_elements(
                    acc.component_type, acc.shape,
                    (acc.element(i) for i in first_of),
                    normalized=acc.normalized, name=acc.name,
                )
                prim.attributes[semantic] = welded
                graph.accessors.append(welded)

        index_type = (
            ComponentType.UNSIGNED_SHORT if unique < 65535 else ComponentType.UNSIGNED_INT
        )
        prim.indices = Accessor.scalars(index_type, (remap[i] for i in source_indices))
        graph.accessors.append(prim.indices)
        return count - unique

    def apply(self, graph: SceneGraph) -> str:
        merged = 0
        for prim in graph.primitives():
            if prim.mode is PrimitiveMode.TRIANGLES and prim.vertex_count:
                merged += self._weld(prim, graph)
        return f"merged {merged} vertices"


def _sub(a: tuple[float, ...], b: tuple[float, ...]) -> tuple[float, float, float]:
    return (a[0] - b[0], a[1] - b[1], a[2] - b[2])


def _cross(a: tuple[float, ...], b: tuple[float, ...]) -> tuple[float, float, float]:
    return (
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    )


def compute_vertex_normals(prim: Primitive) -> Accessor:
    """Area-weighted smooth normals for a triangle primitive."""
    pos = prim.position
    count = pos.count
    acc = [[0.0, 0.0, 0.0] for _ in range(count)]
    indices = prim.index_list()
    for t in range(0, len(indices) - 2, 3):
        a, b, c = indices[t], indices[t + 1], indices[t + 2]
        if max(a, b, c) >= count:
            continue
        pa = pos.float_element(a)
        face = _cross(_sub(pos.float_element(b), pa), _sub(pos.float_element(c), pa))
        for v in (a, b, c):
            acc[v][0] += face[0]
            acc[v][1] += face[1]
            acc[v][2] += face[2]

    normals = []
    for x, y, z in acc:
        length = math.sqrt(x * x + y * y + z * z)
        normals.append((x / length, y / length, z / length) if length > 0 else (0.0, 0.0, 1.0))
    return Accessor.from_elements(ComponentType.FLOAT, ElementShape.VEC3, normals)


class ComputeNormalsPass(OptimizationPass):
    """Add NORMAL to primitives that lack it; authored normals are kept."""

    @property
    def name(self) -> str:
        return "normals"

    def apply(self, graph: SceneGraph) -> str:
        added = 0
        for prim in graph.primitives():
            if "NORMAL" in prim.attributes or not prim.vertex_count:
                continue
            prim.attributes["NORMAL"] = compute_vertex_normals(prim)
            graph.accessors.append(prim.attributes["NORMAL"])
            added += 1
        return f"computed normals for {added} primitives"


class SynthesizeUVPass(OptimizationPass):
    """Add an all-zero TEXCOORD_0 where missing; some viewers require UVs."""

    @property
    def name(self) -> str:
        return "synthesize_uv"

    def apply(self, graph: SceneGraph) -> str:
        added = 0
        for prim in graph.primitives():
            count = prim.vertex_count
            if "TEXCOORD_0" in prim.attributes or not count:
                continue
            uv = Accessor.from_elements(
                ComponentType.FLOAT, ElementShape.VEC2, ((0.0, 0.0) for _ in range(count))
            )
            prim.attributes["TEXCOORD_0"] = uv
            graph.accessors.append(uv)
            added += 1
        return f"added UVs to {added} primitives"
