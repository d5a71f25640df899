"""Convert between a decoded GLB container and the SceneGraph model."""

from __future__ import annotations

import base64
import logging
from typing import Any

import pygltflib

from aecar.container.codec import Container
from aecar.scene.accessors import Accessor, ComponentType, ElementShape, decode_elements
from aecar.scene.graph import (
    TEXTURE_SLOTS,
    Animation,
    AnimationChannel,
    AnimationSampler,
    Camera,
    Image,
    Material,
    Mesh,
    Node,
    Primitive,
    PrimitiveMode,
    Scene,
    SceneGraph,
    Skin,
    Texture,
    TextureSlot,
)

logger = logging.getLogger(__name__)

_PBR_SLOTS = ("baseColorTexture", "metallicRoughnessTexture")


def _at(items: list[Any], index: Any) -> Any:
    """Return ``items[index]`` or None for a missing / invalid index."""
    if isinstance(index, bool) or not isinstance(index, int):
        return None
    if 0 <= index < len(items):
        return items[index]
    return None


def _decode_data_uri(uri: str) -> bytes | None:
    if not uri.startswith("data:") or ";base64," not in uri:
        return None
    return base64.b64decode(uri.split(";base64,", 1)[1])


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------


def _read_buffers(doc: dict[str, Any], container: Container) -> list[bytes | None]:
    buffers: list[bytes | None] = []
    for i, buf in enumerate(doc.get("buffers", [])):
        uri = buf.get("uri")
        if uri is None:
            buffers.append(container.binary if i == 0 else None)
        else:
            data = _decode_data_uri(uri)
            if data is None:
                logger.warning("Buffer %d references external uri; its data is unavailable", i)
            buffers.append(data)
    return buffers


def _view_bytes(
    doc: dict[str, Any], buffers: list[bytes | None], view_index: Any
) -> tuple[bytes, int | None]:
    view = _at(doc.get("bufferViews", []), view_index)
    if view is None:
        raise ValueError(f"bufferView {view_index} does not exist")
    buffer = _at(buffers, view.get("buffer", 0))
    if buffer is None:
        raise ValueError(f"buffer {view.get('buffer', 0)} has no data")
    start = view.get("byteOffset", 0)
    end = start + view["byteLength"]
    if end > len(buffer):
        raise ValueError(f"bufferView {view_index} exceeds its buffer")
    return buffer[start:end], view.get("byteStride")


def _read_accessor(
    raw: dict[str, Any], doc: dict[str, Any], buffers: list[bytes | None]
) -> Accessor:
    component_type = ComponentType(raw["componentType"])
    shape = ElementShape(raw["type"])
    count = int(raw.get("count", 0))

    if "bufferView" in raw:
        payload, stride = _view_bytes(doc, buffers, raw["bufferView"])
        data = decode_elements(
            payload, component_type, shape, count, raw.get("byteOffset", 0), stride
        )
    else:
        data = decode_elements(
            bytes(component_type.size * shape.components * count),
            component_type, shape, count,
        )

    sparse = raw.get("sparse")
    if sparse:
        n = shape.components
        sp_idx = sparse["indices"]
        sp_val = sparse["values"]
        idx_payload, _ = _view_bytes(doc, buffers, sp_idx["bufferView"])
        val_payload, _ = _view_bytes(doc, buffers, sp_val["bufferView"])
        indices = decode_elements(
            idx_payload, ComponentType(sp_idx["componentType"]), ElementShape.SCALAR,
            sparse["count"], sp_idx.get("byteOffset", 0),
        )
        values = decode_elements(
            val_payload, component_type, shape, sparse["count"], sp_val.get("byteOffset", 0)
        )
        for k, target in enumerate(indices):
            data[target * n:(target + 1) * n] = values[k * n:(k + 1) * n]

    return Accessor(
        component_type=component_type,
        shape=shape,
        data=data,
        normalized=bool(raw.get("normalized", False)),
        min=list(raw["min"]) if "min" in raw else None,
        max=list(raw["max"]) if "max" in raw else None,
        name=raw.get("name"),
        extras=dict(raw.get("extras") or {}),
        extensions=dict(raw.get("extensions") or {}),
    )


def _read_slot(raw: dict[str, Any] | None, textures: list[Texture]) -> TextureSlot | None:
    if not raw:
        return None
    texture = _at(textures, raw.get("index"))
    if texture is None:
        return None
    return TextureSlot(
        texture=texture,
        tex_coord=raw.get("texCoord", 0),
        scale=raw.get("scale"),
        strength=raw.get("strength"),
        extras=dict(raw.get("extras") or {}),
        extensions=dict(raw.get("extensions") or {}),
    )


def _read_material(raw: dict[str, Any], textures: list[Texture]) -> Material:
    pbr = raw.get("pbrMetallicRoughness") or {}
    slots: dict[str, TextureSlot] = {}
    for slot_name in TEXTURE_SLOTS:
        source = pbr if slot_name in _PBR_SLOTS else raw
        slot = _read_slot(source.get(slot_name), textures)
        if slot is not None:
            slots[slot_name] = slot
    return Material(
        name=raw.get("name"),
        base_color=list(pbr.get("baseColorFactor", [1.0, 1.0, 1.0, 1.0])),
        metallic=pbr.get("metallicFactor", 1.0),
        roughness=pbr.get("roughnessFactor", 1.0),
        emissive=list(raw.get("emissiveFactor", [0.0, 0.0, 0.0])),
        alpha_mode=raw.get("alphaMode", "OPAQUE"),
        alpha_cutoff=raw.get("alphaCutoff"),
        double_sided=bool(raw.get("doubleSided", False)),
        textures=slots,
        extras=dict(raw.get("extras") or {}),
        extensions=dict(raw.get("extensions") or {}),
    )


def _read_primitive(
    raw: dict[str, Any], accessors: list[Accessor], materials: list[Material]
) -> Primitive | None:
    try:
        mode = PrimitiveMode(raw.get("mode", pygltflib.TRIANGLES))
    except ValueError:
        logger.warning("Dropping primitive with unknown mode %r", raw.get("mode"))
        return None
    if raw.get("targets"):
        logger.debug("Ignoring %d morph targets", len(raw["targets"]))

    attributes: dict[str, Accessor] = {}
    for semantic, index in (raw.get("attributes") or {}).items():
        accessor = _at(accessors, index)
        if accessor is not None:
            attributes[semantic] = accessor
    return Primitive(
        mode=mode,
        attributes=attributes,
        indices=_at(accessors, raw.get("indices")),
        material=_at(materials, raw.get("material")),
        extras=dict(raw.get("extras") or {}),
        extensions=dict(raw.get("extensions") or {}),
    )


def read_scene_graph(container: Container) -> SceneGraph:
    """Build a SceneGraph from a decoded container.

    Accessors whose data cannot be located are kept but empty, so the
    primitives using them are dropped later instead of failing the read.
    """
    doc = container.document
    buffers = _read_buffers(doc, container)

    accessors: list[Accessor] = []
    for i, raw in enumerate(doc.get("accessors", [])):
        try:
            accessors.append(_read_accessor(raw, doc, buffers))
        except (KeyError, ValueError, TypeError, IndexError) as exc:
            logger.warning("Accessor %d unreadable (%s); treating it as empty", i, exc)
            accessors.append(
                Accessor.scalars(ComponentType.FLOAT, [], name=raw.get("name"))
            )

    images: list[Image] = []
    for raw in doc.get("images", []):
        data = None
        uri = raw.get("uri")
        try:
            if "bufferView" in raw:
                data, _ = _view_bytes(doc, buffers, raw["bufferView"])
            elif uri is not None:
                data = _decode_data_uri(uri)
        except (KeyError, ValueError) as exc:
            logger.debug("Image data unavailable: %s", exc)
        images.append(Image(
            name=raw.get("name"),
            mime_type=raw.get("mimeType"),
            data=data,
            uri=uri if data is None else None,
            extras=dict(raw.get("extras") or {}),
            extensions=dict(raw.get("extensions") or {}),
        ))

    samplers = doc.get("samplers", [])
    textures = [
        Texture(
            source=_at(images, raw.get("source")),
            sampler=dict(_at(samplers, raw.get("sampler")) or {}) or None,
            name=raw.get("name"),
            extras=dict(raw.get("extras") or {}),
            extensions=dict(raw.get("extensions") or {}),
        )
        for raw in doc.get("textures", [])
    ]

    materials = [_read_material(raw, textures) for raw in doc.get("materials", [])]

    meshes: list[Mesh] = []
    for raw in doc.get("meshes", []):
        prims = [_read_primitive(p, accessors, materials) for p in raw.get("primitives", [])]
        meshes.append(Mesh(
            name=raw.get("name"),
            primitives=[p for p in prims if p is not None],
            extras=dict(raw.get("extras") or {}),
            extensions=dict(raw.get("extensions") or {}),
        ))

    cameras = [
        Camera(name=raw.get("name"), definition={k: v for k, v in raw.items() if k != "name"})
        for raw in doc.get("cameras", [])
    ]

    raw_nodes = doc.get("nodes", [])
    nodes = [
        Node(
            name=raw.get("name"),
            mesh=_at(meshes, raw.get("mesh")),
            translation=tuple(raw["translation"]) if "translation" in raw else None,
            rotation=tuple(raw["rotation"]) if "rotation" in raw else None,
            scale=tuple(raw["scale"]) if "scale" in raw else None,
            matrix=list(raw["matrix"]) if len(raw.get("matrix") or []) == 16 else None,
            camera=_at(cameras, raw.get("camera")),
            extras=dict(raw["extras"]) if isinstance(raw.get("extras"), dict) else {},
            extensions=dict(raw.get("extensions") or {}),
        )
        for raw in raw_nodes
    ]
    for node, raw in zip(nodes, raw_nodes):
        node.children = [c for c in (_at(nodes, i) for i in raw.get("children", [])) if c is not None]

    skins = [
        Skin(
            name=raw.get("name"),
            joints=[j for j in (_at(nodes, i) for i in raw.get("joints", [])) if j is not None],
            inverse_bind_matrices=_at(accessors, raw.get("inverseBindMatrices")),
            skeleton=_at(nodes, raw.get("skeleton")),
        )
        for raw in doc.get("skins", [])
    ]
    for node, raw in zip(nodes, raw_nodes):
        node.skin = _at(skins, raw.get("skin"))

    animations: list[Animation] = []
    for raw in doc.get("animations", []):
        anim_samplers = []
        for s in raw.get("samplers", []):
            inp, out = _at(accessors, s.get("input")), _at(accessors, s.get("output"))
            if inp is not None and out is not None:
                anim_samplers.append(
                    AnimationSampler(inp, out, s.get("interpolation", "LINEAR"))
                )
        channels = []
        for c in raw.get("channels", []):
            sampler = _at(anim_samplers, c.get("sampler"))
            target = c.get("target") or {}
            if sampler is not None:
                channels.append(
                    AnimationChannel(sampler, _at(nodes, target.get("node")), target.get("path", ""))
                )
        animations.append(Animation(name=raw.get("name"), channels=channels, samplers=anim_samplers))

    scenes = [
        Scene(
            name=raw.get("name"),
            nodes=[n for n in (_at(nodes, i) for i in raw.get("nodes", [])) if n is not None],
            extras=dict(raw.get("extras") or {}),
            extensions=dict(raw.get("extensions") or {}),
        )
        for raw in doc.get("scenes", [])
    ]

    graph = SceneGraph(
        asset=dict(doc.get("asset") or {"version": "2.0"}),
        scenes=scenes,
        scene=_at(scenes, doc.get("scene", 0)),
        nodes=nodes,
        meshes=meshes,
        accessors=accessors,
        materials=materials,
        textures=textures,
        images=images,
        cameras=cameras,
        skins=skins,
        animations=animations,
        extensions_used=list(doc.get("extensionsUsed", [])),
        extensions_required=list(doc.get("extensionsRequired", [])),
        extras=dict(doc.get("extras") or {}),
        extensions=dict(doc.get("extensions") or {}),
    )
    logger.debug(
        "Scene graph: %d nodes, %d meshes, %d accessors, %d materials",
        len(nodes), len(meshes), len(accessors), len(materials),
    )
    return graph


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


class _GraphWriter:
    """Assigns indices on first reference and packs the binary payload."""

    def __init__(self, graph: SceneGraph) -> None:
        self.graph = graph
        self.blob = bytearray()
        self.buffer_views: list[dict[str, Any]] = []
        self.indices: dict[str, dict[int, int]] = {}
        self.out: dict[str, list[dict[str, Any]]] = {}
        self.filled: set[int] = set()

    def _reserve(self, kind: str, obj: Any) -> int:
        table = self.indices.setdefault(kind, {})
        key = id(obj)
        if key not in table:
            items = self.out.setdefault(kind, [])
            table[key] = len(items)
            items.append({})
        return table[key]

    def _slot(self, kind: str, obj: Any) -> tuple[int, bool]:
        index = self._reserve(kind, obj)
        new = id(obj) not in self.filled
        self.filled.add(id(obj))
        return index, new

    def _add_view(self, data: bytes, target: int | None = None) -> int:
        while len(self.blob) % 4 != 0:
            self.blob.append(0)
        view: dict[str, Any] = {
            "buffer": 0,
            "byteOffset": len(self.blob),
            "byteLength": len(data),
        }
        if target is not None:
            view["target"] = target
        self.blob.extend(data)
        self.buffer_views.append(view)
        return len(self.buffer_views) - 1

    def accessor(self, acc: Accessor, target: int | None = None) -> int:
        index, new = self._slot("accessors", acc)
        if not new:
            return index
        raw: dict[str, Any] = {
            "componentType": int(acc.component_type),
            "count": acc.count,
            "type": acc.shape.value,
        }
        if acc.count > 0:
            raw["bufferView"] = self._add_view(acc.to_bytes(), target)
        if acc.normalized:
            raw["normalized"] = True
        if acc.min is not None and acc.max is not None:
            raw["min"] = list(acc.min)
            raw["max"] = list(acc.max)
        if acc.name:
            raw["name"] = acc.name
        _common(raw, acc)
        self.out["accessors"][index] = raw
        return index

    def image(self, image: Image) -> int:
        index, new = self._slot("images", image)
        if not new:
            return index
        raw: dict[str, Any] = {}
        if image.data is not None:
            raw["bufferView"] = self._add_view(image.data)
            raw["mimeType"] = image.mime_type or "image/png"
        elif image.uri is not None:
            raw["uri"] = image.uri
        if image.name:
            raw["name"] = image.name
        _common(raw, image)
        self.out["images"][index] = raw
        return index

    def texture(self, texture: Texture) -> int:
        index, new = self._slot("textures", texture)
        if not new:
            return index
        raw: dict[str, Any] = {}
        if texture.source is not None:
            raw["source"] = self.image(texture.source)
        if texture.sampler:
            samplers = self.out.setdefault("samplers", [])
            raw["sampler"] = len(samplers)
            samplers.append(dict(texture.sampler))
        if texture.name:
            raw["name"] = texture.name
        _common(raw, texture)
        self.out["textures"][index] = raw
        return index

    def _slot_info(self, slot: TextureSlot) -> dict[str, Any]:
        raw: dict[str, Any] = {"index": self.texture(slot.texture)}
        if slot.tex_coord:
            raw["texCoord"] = slot.tex_coord
        if slot.scale is not None:
            raw["scale"] = slot.scale
        if slot.strength is not None:
            raw["strength"] = slot.strength
        _common(raw, slot)
        return raw

    def material(self, mat: Material) -> int:
        index, new = self._slot("materials", mat)
        if not new:
            return index
        pbr: dict[str, Any] = {
            "baseColorFactor": list(mat.base_color),
            "metallicFactor": mat.metallic,
            "roughnessFactor": mat.roughness,
        }
        raw: dict[str, Any] = {"pbrMetallicRoughness": pbr}
        if mat.name:
            raw["name"] = mat.name
        for slot_name, slot in mat.textures.items():
            target = pbr if slot_name in _PBR_SLOTS else raw
            target[slot_name] = self._slot_info(slot)
        if any(mat.emissive):
            raw["emissiveFactor"] = list(mat.emissive)
        if mat.alpha_mode != "OPAQUE":
            raw["alphaMode"] = mat.alpha_mode
        if mat.alpha_cutoff is not None:
            raw["alphaCutoff"] = mat.alpha_cutoff
        if mat.double_sided:
            raw["doubleSided"] = True
        _common(raw, mat)
        self.out["materials"][index] = raw
        return index

    def mesh(self, mesh: Mesh) -> int:
        index, new = self._slot("meshes", mesh)
        if not new:
            return index
        prims = []
        for prim in mesh.primitives:
            p: dict[str, Any] = {
                "attributes": {
                    name: self.accessor(acc, pygltflib.ARRAY_BUFFER)
                    for name, acc in prim.attributes.items()
                },
                "mode": int(prim.mode),
            }
            if prim.indices is not None:
                p["indices"] = self.accessor(prim.indices, pygltflib.ELEMENT_ARRAY_BUFFER)
            if prim.material is not None:
                p["material"] = self.material(prim.material)
            _common(p, prim)
            prims.append(p)
        raw: dict[str, Any] = {"primitives": prims}
        if mesh.name:
            raw["name"] = mesh.name
        _common(raw, mesh)
        self.out["meshes"][index] = raw
        return index

    def camera(self, camera: Camera) -> int:
        index, new = self._slot("cameras", camera)
        if new:
            raw = dict(camera.definition)
            if camera.name:
                raw["name"] = camera.name
            self.out["cameras"][index] = raw
        return index

    def node(self, node: Node) -> int:
        index, new = self._slot("nodes", node)
        if not new:
            return index
        raw: dict[str, Any] = {}
        self.out["nodes"][index] = raw
        if node.name:
            raw["name"] = node.name
        if node.mesh is not None:
            raw["mesh"] = self.mesh(node.mesh)
        if node.children:
            raw["children"] = [self.node(c) for c in node.children]
        if node.matrix is not None:
            raw["matrix"] = list(node.matrix)
        else:
            if node.translation is not None:
                raw["translation"] = list(node.translation)
            if node.rotation is not None:
                raw["rotation"] = list(node.rotation)
            if node.scale is not None:
                raw["scale"] = list(node.scale)
        if node.camera is not None:
            raw["camera"] = self.camera(node.camera)
        if node.skin is not None:
            raw["skin"] = self.skin(node.skin)
        _common(raw, node)
        return index

    def skin(self, skin: Skin) -> int:
        index, new = self._slot("skins", skin)
        if not new:
            return index
        raw: dict[str, Any] = {"joints": [self.node(j) for j in skin.joints]}
        if skin.inverse_bind_matrices is not None:
            raw["inverseBindMatrices"] = self.accessor(skin.inverse_bind_matrices)
        if skin.skeleton is not None:
            raw["skeleton"] = self.node(skin.skeleton)
        if skin.name:
            raw["name"] = skin.name
        self.out["skins"][index] = raw
        return index

    def animation(self, anim: Animation) -> dict[str, Any]:
        sampler_index = {id(s): i for i, s in enumerate(anim.samplers)}
        raw: dict[str, Any] = {
            "samplers": [
                {
                    "input": self.accessor(s.input),
                    "output": self.accessor(s.output),
                    "interpolation": s.interpolation,
                }
                for s in anim.samplers
            ],
            "channels": [],
        }
        for channel in anim.channels:
            target: dict[str, Any] = {"path": channel.path}
            if channel.node is not None:
                target["node"] = self.node(channel.node)
            raw["channels"].append({"sampler": sampler_index[id(channel.sampler)], "target": target})
        if anim.name:
            raw["name"] = anim.name
        return raw

    def write(self) -> Container:
        graph = self.graph
        for node in graph.nodes:
            self._reserve("nodes", node)
        for node in graph.nodes:
            self.node(node)
        for mesh in graph.meshes:
            self.mesh(mesh)
        for material in graph.materials:
            self.material(material)

        doc: dict[str, Any] = {"asset": {**graph.asset, "version": "2.0"}}
        if graph.extensions_used:
            doc["extensionsUsed"] = list(graph.extensions_used)
        if graph.extensions_required:
            doc["extensionsRequired"] = list(graph.extensions_required)

        scenes = []
        for scene in graph.scenes:
            raw: dict[str, Any] = {"nodes": [self.node(n) for n in scene.nodes]}
            if scene.name:
                raw["name"] = scene.name
            _common(raw, scene)
            scenes.append(raw)
        if scenes:
            doc["scenes"] = scenes
            doc["scene"] = graph.scenes.index(graph.scene) if graph.scene in graph.scenes else 0

        animations = [self.animation(a) for a in graph.animations]

        for kind in (
            "nodes", "meshes", "materials", "textures", "images", "samplers",
            "cameras", "skins", "accessors",
        ):
            if self.out.get(kind):
                doc[kind] = self.out[kind]
        if animations:
            doc["animations"] = animations

        binary: bytes | None = None
        if self.blob:
            while len(self.blob) % 4 != 0:
                self.blob.append(0)
            binary = bytes(self.blob)
            doc["bufferViews"] = self.buffer_views
            doc["buffers"] = [{"byteLength": len(binary)}]
        _common(doc, graph)
        return Container(document=doc, binary=binary)


def _common(raw: dict[str, Any], obj: Any) -> None:
    if obj.extras:
        raw["extras"] = obj.extras
    if obj.extensions:
        raw["extensions"] = obj.extensions


def write_scene_graph(graph: SceneGraph) -> Container:
    """Serialise *graph* into a container with a freshly packed payload.

    Accessor bounds are only written when already known; computing missing
    ones is the job of :mod:`aecar.optimize.bounds`.
    """
    return _GraphWriter(graph).write()
