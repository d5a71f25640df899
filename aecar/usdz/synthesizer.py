"""Scene graph -> USDZ archive for AR Quick Look.

Every triangle primitive becomes an ``Xform`` + ``Mesh`` pair under
``/Root/Geom``, placed with its node's accumulated world transform.
Materials become ``UsdPreviewSurface`` networks under ``/Root/Materials``.
"""

from __future__ import annotations

import logging

from aecar.config import DEFAULT_MATERIAL_NAME, Settings, load_settings
from aecar.container.codec import read_container
from aecar.errors import ArchiveSynthesisFailure
from aecar.scene.graph import Material, Node, Primitive, PrimitiveMode, SceneGraph
from aecar.scene.io import read_scene_graph
from aecar.scene.transforms import (
    IDENTITY_ROTATION,
    IDENTITY_SCALE,
    IDENTITY_TRANSLATION,
    Quat,
    Vec3,
    is_identity_rotation,
    is_identity_scale,
    is_identity_translation,
    quat_mul,
    quat_normalize,
)
from aecar.usdz.archive import build_usdz
from aecar.usdz.document import MaterialPrim, MeshPrim, UniqueNames, render_stage

logger = logging.getLogger(__name__)

WorldTransform = tuple[Vec3, Quat, Vec3]

IDENTITY_TRANSFORM: WorldTransform = (IDENTITY_TRANSLATION, IDENTITY_ROTATION, IDENTITY_SCALE)


def compose(parent: WorldTransform, local: WorldTransform) -> WorldTransform:
    """Accumulate a child's local TRS onto its parent's world TRS.

    The parent's scale is applied to the child offset but its rotation is
    not.  The child rotation only contributes when it is not identity.
    """
    pt, pr, ps = parent
    ct, cr, cs = local
    translation = (
        pt[0] + ps[0] * ct[0],
        pt[1] + ps[1] * ct[1],
        pt[2] + ps[2] * ct[2],
    )
    scale = (ps[0] * cs[0], ps[1] * cs[1], ps[2] * cs[2])
    rotation = pr if is_identity_rotation(cr) else quat_normalize(quat_mul(pr, cr))
    return translation, rotation, scale


class _StageBuilder:
    def __init__(self, graph: SceneGraph) -> None:
        self.graph = graph
        self.prim_names = UniqueNames()
        self.material_names = UniqueNames()
        self.materials: dict[Material, MaterialPrim] = {}
        self.meshes: list[MeshPrim] = []
        self._default: MaterialPrim | None = None

    def build(self) -> str:
        self._collect_materials()
        visited: set[Node] = set()
        for root in self.graph.root_nodes():
            self._visit(root, IDENTITY_TRANSFORM, visited)
        materials = self._material_prims()
        logger.debug("USDA stage: %d meshes, %d materials", len(self.meshes), len(materials))
        return render_stage(self.meshes, materials)

    def _collect_materials(self) -> None:
        graph_default = next(
            (m for m in self.graph.materials if m.name == DEFAULT_MATERIAL_NAME), None
        )
        self._default = self._material_prim(
            graph_default or Material.default(), DEFAULT_MATERIAL_NAME
        )
        if graph_default is not None:
            self.materials[graph_default] = self._default
        for index, material in enumerate(self.graph.materials):
            if material not in self.materials:
                self._register(material, f"Material_{index}")

    def _register(self, material: Material, fallback: str) -> MaterialPrim:
        prim = self._material_prim(material, material.name or fallback)
        self.materials[material] = prim
        return prim

    def _material_prim(self, material: Material, raw_name: str) -> MaterialPrim:
        r, g, b, a = (list(material.base_color) + [1.0, 1.0, 1.0, 1.0])[:4]
        return MaterialPrim(
            name=self.material_names.claim(raw_name),
            diffuse_color=(r, g, b),
            metallic=material.metallic,
            roughness=material.roughness,
            opacity=a,
        )

    def _material_prims(self) -> list[MaterialPrim]:
        prims = [self._default]
        prims.extend(p for p in self.materials.values() if p is not self._default)
        return prims

    def _binding(self, material: Material | None) -> str:
        if material is None:
            return self._default.path
        prim = self.materials.get(material)
        if prim is None and material.name == DEFAULT_MATERIAL_NAME:
            prim = self.materials[material] = self._default
        elif prim is None:
            prim = self._register(material, f"Material_{len(self.materials)}")
        return prim.path

    def _visit(self, node: Node, parent: WorldTransform, visited: set[Node]) -> None:
        if node in visited:
            return
        visited.add(node)
        world = compose(parent, node.trs())
        if node.mesh is not None:
            for primitive in node.mesh.primitives:
                raw_name = node.name or node.mesh.name or f"Mesh_{len(self.meshes)}"
                self._emit(primitive, raw_name, world)
        for child in node.children:
            self._visit(child, world, visited)

    def _emit(self, primitive: Primitive, raw_name: str, world: WorldTransform) -> None:
        position = primitive.position
        if primitive.mode is not PrimitiveMode.TRIANGLES or position is None or position.count == 0:
            return
        indices = primitive.index_list()
        del indices[len(indices) - len(indices) % 3:]

        normal = primitive.attributes.get("NORMAL")
        uv = primitive.attributes.get("TEXCOORD_0")
        translation, rotation, scale = world
        self.meshes.append(MeshPrim(
            name=self.prim_names.claim(raw_name),
            points=[position.float_element(i) for i in range(position.count)],
            face_vertex_indices=indices,
            material_path=self._binding(primitive.material),
            normals=[normal.float_element(i) for i in range(normal.count)] if normal else [],
            uvs=[uv.float_element(i) for i in range(uv.count)] if uv else [],
            translate=None if is_identity_translation(translation) else translation,
            orient=None if is_identity_rotation(rotation) else rotation,
            scale=None if is_identity_scale(scale) else scale,
        ))


def build_stage(graph: SceneGraph) -> str:
    """Return the USDA text for *graph*."""
    return _StageBuilder(graph).build()


def synthesize_usdz(graph: SceneGraph, entry_name: str = "model.usda") -> bytes:
    """Build the USDZ archive for *graph*.

    Raises :class:`~aecar.errors.ArchiveSynthesisFailure` on any failure.
    """
    try:
        stage = build_stage(graph)
        archive = build_usdz(stage.encode("utf-8"), entry_name)
    except Exception as exc:
        raise ArchiveSynthesisFailure(f"USDZ synthesis failed: {exc}") from exc
    logger.info("USDZ archive: %d bytes", len(archive))
    return archive


def convert_to_usdz(glb: bytes, settings: Settings | None = None) -> bytes:
    """Convert a GLB (optimized or not) straight to USDZ.

    Raises :class:`~aecar.errors.MalformedContainer` for invalid input and
    :class:`~aecar.errors.ArchiveSynthesisFailure` if conversion fails.
    """
    settings = settings or load_settings()
    graph = read_scene_graph(read_container(glb))
    return synthesize_usdz(graph, settings.usdz_entry_name)
