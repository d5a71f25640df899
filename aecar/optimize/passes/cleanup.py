"""Structural passes: dedup, flatten, prune, strip extras and extensions."""

from __future__ import annotations

from typing import Any

from aecar.optimize.passes.base import OptimizationPass
from aecar.scene.accessors import Accessor
from aecar.scene.graph import Material, Mesh, Node, SceneGraph
from aecar.scene.transforms import (
    decompose_mat4,
    is_identity_rotation,
    is_identity_scale,
    is_identity_translation,
    mat4_identity,
    mat4_mul,
)


class DedupPass(OptimizationPass):
    """Merge accessors, materials, and meshes with identical content."""

    @property
    def name(self) -> str:
        return "dedup"

    def apply(self, graph: SceneGraph) -> str:
        acc_map: dict[Accessor, Accessor] = {}
        acc_seen: dict[tuple[Any, ...], Accessor] = {}
        for acc in graph.accessors:
            acc_map[acc] = acc_seen.setdefault(acc.content_key(), acc)

        mat_map: dict[Material, Material] = {}
        mat_seen: dict[tuple[Any, ...], Material] = {}
        for mat in graph.materials:
            mat_map[mat] = mat_seen.setdefault(mat.content_key(), mat)

        for prim in graph.primitives():
            prim.attributes = {k: acc_map.get(a, a) for k, a in prim.attributes.items()}
            if prim.indices is not None:
                prim.indices = acc_map.get(prim.indices, prim.indices)
            if prim.material is not None:
                prim.material = mat_map.get(prim.material, prim.material)
        for skin in graph.skins:
            if skin.inverse_bind_matrices is not None:
                skin.inverse_bind_matrices = acc_map.get(
                    skin.inverse_bind_matrices, skin.inverse_bind_matrices
                )
        for anim in graph.animations:
            for sampler in anim.samplers:
                sampler.input = acc_map.get(sampler.input, sampler.input)
                sampler.output = acc_map.get(sampler.output, sampler.output)

        mesh_map: dict[Mesh, Mesh] = {}
        mesh_seen: dict[tuple[Any, ...], Mesh] = {}
        for mesh in graph.meshes:
            key = tuple(
                (
                    prim.mode,
                    tuple(sorted((k, id(a)) for k, a in prim.attributes.items())),
                    id(prim.indices),
                    id(prim.material),
                )
                for prim in mesh.primitives
            )
            mesh_map[mesh] = mesh_seen.setdefault(key, mesh)
        for node in graph.nodes:
            if node.mesh is not None:
                node.mesh = mesh_map.get(node.mesh, node.mesh)

        removed = (
            len(graph.accessors) - len(acc_seen),
            len(graph.materials) - len(mat_seen),
            len(graph.meshes) - len(mesh_seen),
        )
        graph.accessors = list(acc_seen.values())
        graph.materials = list(mat_seen.values())
        graph.meshes = list(mesh_seen.values())
        return "merged %d accessors, %d materials, %d meshes" % removed


class FlattenPass(OptimizationPass):
    """Reparent every node directly under its scene with a baked transform.

    Skin joints and animated nodes keep their hierarchy.
    """

    @property
    def name(self) -> str:
        return "flatten"

    def apply(self, graph: SceneGraph) -> str:
        pinned: set[Node] = set()
        for skin in graph.skins:
            pinned.update(skin.joints)
        for anim in graph.animations:
            pinned.update(c.node for c in anim.channels if c.node is not None)

        moved = 0
        for scene in graph.scenes:
            world: dict[Node, list[float]] = {}
            parent_of: dict[Node, Node] = {}
            order: list[Node] = []
            stack = [(root, mat4_identity()) for root in reversed(scene.nodes)]
            while stack:
                node, parent_matrix = stack.pop()
                if node in world:
                    continue
                world[node] = mat4_mul(parent_matrix, node.local_matrix())
                order.append(node)
                for child in reversed(node.children):
                    parent_of.setdefault(child, node)
                    stack.append((child, world[node]))

            for node in order:
                parent = parent_of.get(node)
                if parent is None or node in pinned or parent in pinned:
                    continue
                parent.children.remove(node)
                scene.nodes.append(node)
                t, r, s = decompose_mat4(world[node])
                node.set_trs(
                    None if is_identity_translation(t) else t,
                    None if is_identity_rotation(r) else r,
                    None if is_identity_scale(s) else s,
                )
                moved += 1
        return f"moved {moved} nodes to scene roots"


class PrunePass(OptimizationPass):
    """Remove empty meshes, empty leaf nodes, and unreferenced resources."""

    @property
    def name(self) -> str:
        return "prune"

    def apply(self, graph: SceneGraph) -> str:
        for node in graph.nodes:
            if node.mesh is not None and not node.mesh.primitives:
                node.mesh = None

        joints = {j for skin in graph.skins for j in skin.joints}
        animated = {c.node for a in graph.animations for c in a.channels}
        removed_nodes = 0
        while True:
            leaves = {
                n for n in graph.nodes
                if n.mesh is None and n.camera is None and n.skin is None
                and not n.children and n not in joints and n not in animated
            }
            if not leaves:
                break
            for node in graph.nodes:
                node.children = [c for c in node.children if c not in leaves]
            for scene in graph.scenes:
                scene.nodes = [n for n in scene.nodes if n not in leaves]
            graph.nodes = [n for n in graph.nodes if n not in leaves]
            removed_nodes += len(leaves)

        meshes = {n.mesh for n in graph.nodes if n.mesh is not None}
        graph.meshes = [m for m in graph.meshes if m in meshes]
        graph.cameras = [c for c in graph.cameras if any(n.camera is c for n in graph.nodes)]

        used_acc: set[Accessor] = set()
        used_mat: set[Material] = set()
        for mesh in graph.meshes:
            for prim in mesh.primitives:
                used_acc.update(prim.attributes.values())
                if prim.indices is not None:
                    used_acc.add(prim.indices)
                if prim.material is not None:
                    used_mat.add(prim.material)
        for skin in graph.skins:
            if skin.inverse_bind_matrices is not None:
                used_acc.add(skin.inverse_bind_matrices)
        for anim in graph.animations:
            for sampler in anim.samplers:
                used_acc.update((sampler.input, sampler.output))

        removed = len(graph.accessors) - len([a for a in graph.accessors if a in used_acc])
        graph.accessors = [a for a in graph.accessors if a in used_acc]
        graph.materials = [m for m in graph.materials if m in used_mat]
        textures = {slot.texture for m in graph.materials for slot in m.textures.values()}
        graph.textures = [t for t in graph.textures if t in textures]
        images = {t.source for t in graph.textures if t.source is not None}
        graph.images = [i for i in graph.images if i in images]
        return f"removed {removed_nodes} nodes and {removed} accessors"


def _graph_objects(graph: SceneGraph) -> list[Any]:
    objects: list[Any] = [graph, *graph.scenes, *graph.nodes, *graph.meshes]
    objects.extend(graph.primitives())
    for material in graph.materials:
        objects.append(material)
        objects.extend(material.textures.values())
    objects.extend(graph.textures)
    objects.extend(graph.images)
    objects.extend(graph.accessors)
    return objects


def _raw_dicts(graph: SceneGraph) -> list[dict[str, Any]]:
    """Pass-through JSON dicts (asset header, texture samplers)."""
    dicts = [graph.asset]
    dicts.extend(t.sampler for t in graph.textures if t.sampler)
    return dicts


class StripExtrasPass(OptimizationPass):
    """Clear free-form ``extras`` on every object."""

    @property
    def name(self) -> str:
        return "strip_extras"

    def apply(self, graph: SceneGraph) -> str:
        cleared = 0
        for obj in _graph_objects(graph):
            if obj.extras:
                obj.extras = {}
                cleared += 1
        for raw in _raw_dicts(graph):
            if raw.pop("extras", None) is not None:
                cleared += 1
        return f"cleared extras on {cleared} objects"


class StripExtensionsPass(OptimizationPass):
    """Remove every extension; only core glTF 2.0 data is kept."""

    @property
    def name(self) -> str:
        return "strip_extensions"

    def apply(self, graph: SceneGraph) -> str:
        names = set(graph.extensions_used) | set(graph.extensions_required)
        for obj in _graph_objects(graph):
            names.update(obj.extensions)
            obj.extensions = {}
        for raw in _raw_dicts(graph):
            names.update(raw.pop("extensions", None) or {})
        graph.extensions_used = []
        graph.extensions_required = []
        return f"removed {len(names)} extensions"
