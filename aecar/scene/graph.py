"""Scene graph model — nodes, meshes, primitives, materials for AR export.

Objects reference each other directly (a primitive holds its Accessor and
Material, a node holds its Mesh and child Nodes).  Index bookkeeping only
happens when reading from or writing to a container.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

import pygltflib

from aecar.config import (
    DEFAULT_BASE_COLOR,
    DEFAULT_MATERIAL_NAME,
    DEFAULT_METALLIC,
    DEFAULT_ROUGHNESS,
)
from aecar.scene.accessors import Accessor
from aecar.scene.transforms import (
    IDENTITY_ROTATION,
    IDENTITY_SCALE,
    IDENTITY_TRANSLATION,
    Quat,
    Vec3,
    decompose_mat4,
    trs_to_mat4,
)


class PrimitiveMode(IntEnum):
    """Primitive topology.  Only TRIANGLES survives the AR pipeline."""

    POINTS = pygltflib.POINTS
    LINES = pygltflib.LINES
    LINE_LOOP = pygltflib.LINE_LOOP
    LINE_STRIP = pygltflib.LINE_STRIP
    TRIANGLES = pygltflib.TRIANGLES
    TRIANGLE_STRIP = pygltflib.TRIANGLE_STRIP
    TRIANGLE_FAN = pygltflib.TRIANGLE_FAN


TEXTURE_SLOTS = (
    "baseColorTexture",
    "metallicRoughnessTexture",
    "normalTexture",
    "occlusionTexture",
    "emissiveTexture",
)


@dataclass(eq=False)
class Image:
    name: str | None = None
    mime_type: str | None = None
    data: bytes | None = None
    uri: str | None = None
    extras: dict[str, Any] = field(default_factory=dict)
    extensions: dict[str, Any] = field(default_factory=dict)


@dataclass(eq=False)
class Texture:
    source: Image | None = None
    sampler: dict[str, Any] | None = None
    name: str | None = None
    extras: dict[str, Any] = field(default_factory=dict)
    extensions: dict[str, Any] = field(default_factory=dict)


@dataclass(eq=False)
class TextureSlot:
    """A material's reference to a texture (glTF ``textureInfo``)."""

    texture: Texture
    tex_coord: int = 0
    scale: float | None = None
    strength: float | None = None
    extras: dict[str, Any] = field(default_factory=dict)
    extensions: dict[str, Any] = field(default_factory=dict)


@dataclass(eq=False)
class Material:
    name: str | None = None
    base_color: list[float] = field(default_factory=lambda: [1.0, 1.0, 1.0, 1.0])
    metallic: float = 1.0
    roughness: float = 1.0
    emissive: list[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])
    alpha_mode: str = "OPAQUE"
    alpha_cutoff: float | None = None
    double_sided: bool = False
    textures: dict[str, TextureSlot] = field(default_factory=dict)
    extras: dict[str, Any] = field(default_factory=dict)
    extensions: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def default(cls) -> Material:
        """The neutral material bound to primitives that have none."""
        return cls(
            name=DEFAULT_MATERIAL_NAME,
            base_color=list(DEFAULT_BASE_COLOR),
            metallic=DEFAULT_METALLIC,
            roughness=DEFAULT_ROUGHNESS,
        )

    def content_key(self) -> tuple[Any, ...]:
        """Everything that affects appearance; the name is ignored."""
        return (
            tuple(self.base_color),
            self.metallic,
            self.roughness,
            tuple(self.emissive),
            self.alpha_mode,
            self.alpha_cutoff,
            self.double_sided,
            tuple(
                (slot_name, id(slot.texture), slot.tex_coord, slot.scale, slot.strength)
                for slot_name, slot in sorted(self.textures.items())
            ),
            repr(sorted(self.extensions.items())),
        )


@dataclass(eq=False)
class Primitive:
    mode: PrimitiveMode = PrimitiveMode.TRIANGLES
    attributes: dict[str, Accessor] = field(default_factory=dict)
    indices: Accessor | None = None
    material: Material | None = None
    extras: dict[str, Any] = field(default_factory=dict)
    extensions: dict[str, Any] = field(default_factory=dict)

    @property
    def position(self) -> Accessor | None:
        return self.attributes.get("POSITION")

    @property
    def vertex_count(self) -> int:
        pos = self.position
        return pos.count if pos is not None else 0

    def index_list(self) -> list[int]:
        """Triangle-list indices, generated trivially when not indexed."""
        if self.indices is not None:
            return [int(v) for v in self.indices.data]
        return list(range(self.vertex_count))


@dataclass(eq=False)
class Mesh:
    name: str | None = None
    primitives: list[Primitive] = field(default_factory=list)
    extras: dict[str, Any] = field(default_factory=dict)
    extensions: dict[str, Any] = field(default_factory=dict)


@dataclass(eq=False)
class Camera:
    name: str | None = None
    definition: dict[str, Any] = field(default_factory=dict)


@dataclass(eq=False)
class Skin:
    name: str | None = None
    joints: list[Node] = field(default_factory=list)
    inverse_bind_matrices: Accessor | None = None
    skeleton: Node | None = None


@dataclass(eq=False)
class AnimationSampler:
    input: Accessor
    output: Accessor
    interpolation: str = "LINEAR"


@dataclass(eq=False)
class AnimationChannel:
    sampler: AnimationSampler
    node: Node | None
    path: str


@dataclass(eq=False)
class Animation:
    name: str | None = None
    channels: list[AnimationChannel] = field(default_factory=list)
    samplers: list[AnimationSampler] = field(default_factory=list)


@dataclass(eq=False)
class Node:
    """A scene node with either a TRS local transform or a 4x4 matrix.

    ``None`` transform components mean "absent" (identity).  When a matrix
    is present it takes precedence over TRS.
    """

    name: str | None = None
    mesh: Mesh | None = None
    children: list[Node] = field(default_factory=list)
    translation: Vec3 | None = None
    rotation: Quat | None = None
    scale: Vec3 | None = None
    matrix: list[float] | None = None
    camera: Camera | None = None
    skin: Skin | None = None
    extras: dict[str, Any] = field(default_factory=dict)
    extensions: dict[str, Any] = field(default_factory=dict)

    def local_matrix(self) -> list[float]:
        if self.matrix is not None:
            return list(self.matrix)
        t, r, s = self.trs()
        return trs_to_mat4(t, r, s)

    def trs(self) -> tuple[Vec3, Quat, Vec3]:
        if self.matrix is not None:
            return decompose_mat4(self.matrix)
        return (
            self.translation or IDENTITY_TRANSLATION,
            self.rotation or IDENTITY_ROTATION,
            self.scale or IDENTITY_SCALE,
        )

    def set_trs(self, t: Vec3 | None, r: Quat | None, s: Vec3 | None) -> None:
        """Replace the local transform; None leaves a component at identity."""
        self.matrix = None
        self.translation = tuple(t) if t is not None else None
        self.rotation = tuple(r) if r is not None else None
        self.scale = tuple(s) if s is not None else None


@dataclass(eq=False)
class Scene:
    name: str | None = None
    nodes: list[Node] = field(default_factory=list)
    extras: dict[str, Any] = field(default_factory=dict)
    extensions: dict[str, Any] = field(default_factory=dict)


@dataclass(eq=False)
class SceneGraph:
    """In-memory document owning every object of one container."""

    asset: dict[str, Any] = field(default_factory=lambda: {"version": "2.0"})
    scenes: list[Scene] = field(default_factory=list)
    scene: Scene | None = None
    nodes: list[Node] = field(default_factory=list)
    meshes: list[Mesh] = field(default_factory=list)
    accessors: list[Accessor] = field(default_factory=list)
    materials: list[Material] = field(default_factory=list)
    textures: list[Texture] = field(default_factory=list)
    images: list[Image] = field(default_factory=list)
    cameras: list[Camera] = field(default_factory=list)
    skins: list[Skin] = field(default_factory=list)
    animations: list[Animation] = field(default_factory=list)
    extensions_used: list[str] = field(default_factory=list)
    extensions_required: list[str] = field(default_factory=list)
    extras: dict[str, Any] = field(default_factory=dict)
    extensions: dict[str, Any] = field(default_factory=dict)

    def primitives(self) -> Iterator[Primitive]:
        for mesh in self.meshes:
            yield from mesh.primitives

    def parent_map(self) -> dict[Node, Node]:
        parents: dict[Node, Node] = {}
        for node in self.nodes:
            for child in node.children:
                parents[child] = node
        return parents

    def root_nodes(self) -> list[Node]:
        """Roots of the default scene, else every node without a parent."""
        scene = self.scene or (self.scenes[0] if self.scenes else None)
        if scene is not None:
            return list(scene.nodes)
        parents = self.parent_map()
        return [node for node in self.nodes if node not in parents]

    def default_material(self) -> Material:
        """Return the shared default material, creating it on first use."""
        for material in self.materials:
            if material.name == DEFAULT_MATERIAL_NAME:
                return material
        material = Material.default()
        self.materials.append(material)
        return material
