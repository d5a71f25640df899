"""Tests for the scene graph model, accessors, and graph <-> container I/O."""

from __future__ import annotations

import array
import base64
import math
import struct

import pytest

from aecar.container.codec import Container, read_container, write_container
from aecar.scene.accessors import Accessor, ComponentType, ElementShape, decode_elements
from aecar.scene.graph import Material, Mesh, Node, Primitive, PrimitiveMode, Scene, SceneGraph
from aecar.scene.io import read_scene_graph, write_scene_graph
from aecar.scene.transforms import (
    decompose_mat4,
    mat4_mul,
    quat_mul,
    transform_point,
    trs_to_mat4,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _build_triangle_graph(name: str = "Wall [7]") -> SceneGraph:
    positions = Accessor.from_elements(
        ComponentType.FLOAT, ElementShape.VEC3,
        [(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0)],
    )
    indices = Accessor.scalars(ComponentType.UNSIGNED_SHORT, [0, 1, 2])
    material = Material(name="Concrete", base_color=[0.5, 0.5, 0.5, 1.0], metallic=0.0)
    mesh = Mesh(name="WallMesh", primitives=[
        Primitive(attributes={"POSITION": positions}, indices=indices, material=material),
    ])
    child = Node(name=name, mesh=mesh, translation=(1.0, 2.0, 3.0))
    root = Node(name="Level 1", children=[child])
    scene = Scene(nodes=[root])
    return SceneGraph(
        scenes=[scene],
        scene=scene,
        nodes=[root, child],
        meshes=[mesh],
        accessors=[positions, indices],
        materials=[material],
    )


def _round_trip(graph: SceneGraph) -> SceneGraph:
    return read_scene_graph(read_container(write_container(write_scene_graph(graph))))


def _container(document: dict, binary: bytes) -> Container:
    return read_container(write_container(Container(document=document, binary=binary)))


# ---------------------------------------------------------------------------
# Accessors
# ---------------------------------------------------------------------------


class TestAccessor:
    def test_component_sizes(self):
        assert ComponentType.BYTE.size == 1
        assert ComponentType.UNSIGNED_SHORT.size == 2
        assert ComponentType.UNSIGNED_INT.size == 4
        assert ComponentType.FLOAT.size == 4

    def test_shape_components(self):
        assert ElementShape.SCALAR.components == 1
        assert ElementShape.VEC3.components == 3
        assert ElementShape.MAT4.components == 16

    def test_shape_from_gltf_string(self):
        assert ElementShape("VEC2") is ElementShape.VEC2

    def test_elements_and_count(self):
        acc = Accessor.from_elements(ComponentType.FLOAT, ElementShape.VEC2, [(1, 2), (3, 4)])
        assert acc.count == 2
        assert acc.element(1) == (3.0, 4.0)
        assert list(acc.elements()) == [(1.0, 2.0), (3.0, 4.0)]

    def test_compute_bounds(self):
        acc = Accessor.from_elements(
            ComponentType.FLOAT, ElementShape.VEC3, [(0, 5, -1), (2, -3, 4)]
        )
        assert acc.compute_bounds() == ([0.0, -3.0, -1.0], [2.0, 5.0, 4.0])

    def test_normalized_float_element(self):
        acc = Accessor.from_elements(
            ComponentType.UNSIGNED_BYTE, ElementShape.VEC2, [(255, 0)], normalized=True
        )
        assert acc.float_element(0) == (1.0, 0.0)

    def test_content_key_ignores_name(self):
        a = Accessor.scalars(ComponentType.UNSIGNED_SHORT, [0, 1, 2], name="a")
        b = Accessor.scalars(ComponentType.UNSIGNED_SHORT, [0, 1, 2], name="b")
        assert a.content_key() == b.content_key()

    def test_identity_equality(self):
        a = Accessor.scalars(ComponentType.UNSIGNED_SHORT, [0])
        b = Accessor.scalars(ComponentType.UNSIGNED_SHORT, [0])
        assert a != b
        assert len({a, b}) == 2


class TestDecodeElements:
    def test_tightly_packed(self):
        payload = struct.pack("<6f", 1, 2, 3, 4, 5, 6)
        data = decode_elements(payload, ComponentType.FLOAT, ElementShape.VEC3, 2)
        assert list(data) == [1.0, 2.0, 3.0, 4.0, 5.0, 6.0]

    def test_strided_with_offset(self):
        # 4 bytes of junk, then two VEC2 floats interleaved with 4 bytes of other data
        payload = b"\xFF" * 4 + struct.pack("<2f", 1, 2) + b"\x00" * 4 + struct.pack("<2f", 3, 4)
        data = decode_elements(
            payload, ComponentType.FLOAT, ElementShape.VEC2, 2, byte_offset=4, byte_stride=12
        )
        assert list(data) == [1.0, 2.0, 3.0, 4.0]

    def test_out_of_range(self):
        with pytest.raises(ValueError, match="exceeds"):
            decode_elements(b"\x00" * 8, ComponentType.FLOAT, ElementShape.VEC3, 1)

    def test_zero_count(self):
        data = decode_elements(b"", ComponentType.UNSIGNED_INT, ElementShape.SCALAR, 0)
        assert len(data) == 0
        assert data.typecode == "I"


# ---------------------------------------------------------------------------
# Transforms
# ---------------------------------------------------------------------------


class TestTransforms:
    def test_trs_round_trip(self):
        half = math.sqrt(0.5)
        m = trs_to_mat4((1.0, 2.0, 3.0), (0.0, half, 0.0, half), (2.0, 2.0, 2.0))
        t, r, s = decompose_mat4(m)
        assert t == pytest.approx((1.0, 2.0, 3.0))
        assert r == pytest.approx((0.0, half, 0.0, half))
        assert s == pytest.approx((2.0, 2.0, 2.0))

    def test_transform_point_applies_scale_then_translation(self):
        m = trs_to_mat4((1.0, 0.0, 0.0), (0.0, 0.0, 0.0, 1.0), (2.0, 2.0, 2.0))
        assert transform_point(m, (1.0, 1.0, 1.0)) == pytest.approx((3.0, 2.0, 2.0))

    def test_mat4_mul_composes(self):
        a = trs_to_mat4((1.0, 0.0, 0.0), (0.0, 0.0, 0.0, 1.0), (1.0, 1.0, 1.0))
        b = trs_to_mat4((0.0, 2.0, 0.0), (0.0, 0.0, 0.0, 1.0), (1.0, 1.0, 1.0))
        assert transform_point(mat4_mul(a, b), (0.0, 0.0, 0.0)) == pytest.approx((1.0, 2.0, 0.0))

    def test_quat_mul_identity(self):
        q = (0.0, 0.0, math.sqrt(0.5), math.sqrt(0.5))
        assert quat_mul((0.0, 0.0, 0.0, 1.0), q) == pytest.approx(q)

    def test_node_trs_defaults_to_identity(self):
        assert Node().trs() == ((0.0, 0.0, 0.0), (0.0, 0.0, 0.0, 1.0), (1.0, 1.0, 1.0))

    def test_node_matrix_takes_precedence(self):
        node = Node(translation=(9.0, 9.0, 9.0))
        node.matrix = trs_to_mat4((1.0, 2.0, 3.0), (0.0, 0.0, 0.0, 1.0), (1.0, 1.0, 1.0))
        t, _, _ = node.trs()
        assert t == pytest.approx((1.0, 2.0, 3.0))

    def test_set_trs_clears_matrix(self):
        node = Node(matrix=[1.0, 0, 0, 0, 0, 1.0, 0, 0, 0, 0, 1.0, 0, 5.0, 0, 0, 1.0])
        node.set_trs((5.0, 0.0, 0.0), None, None)
        assert node.matrix is None
        assert node.translation == (5.0, 0.0, 0.0)
        assert node.rotation is None


# ---------------------------------------------------------------------------
# Graph model
# ---------------------------------------------------------------------------


class TestSceneGraph:
    def test_primitives_iterates_all_meshes(self):
        graph = _build_triangle_graph()
        graph.meshes.append(Mesh(primitives=[Primitive(), Primitive()]))
        assert len(list(graph.primitives())) == 3

    def test_root_nodes_from_scene(self):
        graph = _build_triangle_graph()
        assert [n.name for n in graph.root_nodes()] == ["Level 1"]

    def test_root_nodes_without_scene(self):
        graph = _build_triangle_graph()
        graph.scenes, graph.scene = [], None
        assert [n.name for n in graph.root_nodes()] == ["Level 1"]

    def test_default_material_created_once(self):
        graph = _build_triangle_graph()
        first = graph.default_material()
        assert graph.default_material() is first
        assert first.base_color == [0.8, 0.8, 0.8, 1.0]
        assert first.metallic == 0.0
        assert first.roughness == 1.0
        assert len(graph.materials) == 2

    def test_index_list_generated_when_unindexed(self):
        prim = _build_triangle_graph().meshes[0].primitives[0]
        prim.indices = None
        assert prim.index_list() == [0, 1, 2]

    def test_material_content_key_ignores_name(self):
        assert Material(name="A").content_key() == Material(name="B").content_key()
        assert Material().content_key() != Material(metallic=0.5).content_key()


# ---------------------------------------------------------------------------
# Reading and writing
# ---------------------------------------------------------------------------


class TestSceneIO:
    def test_round_trip_preserves_structure(self):
        graph = _round_trip(_build_triangle_graph())

        assert [n.name for n in graph.nodes] == ["Level 1", "Wall [7]"]
        assert graph.nodes[0].children == [graph.nodes[1]]
        assert graph.nodes[1].translation == (1.0, 2.0, 3.0)
        assert graph.scene is graph.scenes[0]
        prim = graph.meshes[0].primitives[0]
        assert prim.mode is PrimitiveMode.TRIANGLES
        assert list(prim.position.elements()) == [(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0)]
        assert prim.index_list() == [0, 1, 2]
        assert prim.material.name == "Concrete"
        assert prim.material.base_color == [0.5, 0.5, 0.5, 1.0]

    def test_node_order_preserved_when_child_listed_first(self):
        graph = _build_triangle_graph()
        graph.nodes.reverse()
        out = _round_trip(graph)
        assert [n.name for n in out.nodes] == ["Wall [7]", "Level 1"]
        assert out.nodes[1].children == [out.nodes[0]]

    def test_writer_aligns_buffer_views(self):
        graph = _build_triangle_graph()
        container = write_scene_graph(graph)
        views = container.document["bufferViews"]
        assert all(v["byteOffset"] % 4 == 0 for v in views)
        assert container.document["buffers"] == [{"byteLength": len(container.binary)}]
        assert len(container.binary) % 4 == 0

    def test_writer_omits_unknown_bounds(self):
        doc = write_scene_graph(_build_triangle_graph()).document
        assert all("min" not in a for a in doc["accessors"])

    def test_writer_keeps_known_bounds(self):
        graph = _build_triangle_graph()
        positions = graph.accessors[0]
        positions.min, positions.max = positions.compute_bounds()
        doc = write_scene_graph(graph).document
        assert doc["accessors"][0]["min"] == [0.0, 0.0, 0.0]
        assert doc["accessors"][0]["max"] == [1.0, 1.0, 0.0]

    def test_extras_round_trip(self):
        graph = _build_triangle_graph()
        graph.nodes[1].extras = {"Mark": "W1", "Level": 2}
        out = _round_trip(graph)
        assert out.nodes[1].extras == {"Mark": "W1", "Level": 2}

    def test_non_dict_extras_ignored(self):
        doc = {"asset": {"version": "2.0"}, "nodes": [{"name": "n", "extras": "text"}]}
        graph = read_scene_graph(read_container(write_container(Container(document=doc))))
        assert graph.nodes[0].extras == {}

    def test_matrix_node(self):
        matrix = [1.0, 0, 0, 0, 0, 1.0, 0, 0, 0, 0, 1.0, 0, 4.0, 5.0, 6.0, 1.0]
        doc = {"asset": {"version": "2.0"}, "nodes": [{"name": "m", "matrix": matrix}]}
        graph = read_scene_graph(read_container(write_container(Container(document=doc))))
        assert graph.nodes[0].matrix == matrix
        assert graph.nodes[0].translation is None

    def test_unknown_mode_drops_primitive(self):
        binary = struct.pack("<9f", 0, 0, 0, 1, 0, 0, 0, 1, 0)
        doc = {
            "asset": {"version": "2.0"},
            "buffers": [{"byteLength": len(binary)}],
            "bufferViews": [{"buffer": 0, "byteLength": len(binary)}],
            "accessors": [{"bufferView": 0, "componentType": 5126, "count": 3, "type": "VEC3"}],
            "meshes": [{"primitives": [
                {"attributes": {"POSITION": 0}, "mode": 99},
                {"attributes": {"POSITION": 0}, "mode": 1},
            ]}],
        }
        graph = read_scene_graph(_container(doc, binary))
        assert [p.mode for p in graph.meshes[0].primitives] == [PrimitiveMode.LINES]

    def test_unreadable_accessor_becomes_empty(self):
        doc = {
            "asset": {"version": "2.0"},
            "buffers": [{"byteLength": 4}],
            "bufferViews": [{"buffer": 0, "byteLength": 4}],
            "accessors": [{"bufferView": 0, "componentType": 5126, "count": 3, "type": "VEC3"}],
        }
        graph = read_scene_graph(_container(doc, b"\x00" * 4))
        assert graph.accessors[0].count == 0

    def test_sparse_accessor(self):
        base = struct.pack("<3f", 0, 0, 0)
        sparse_idx = struct.pack("<H", 1) + b"\x00\x00"
        sparse_val = struct.pack("<f", 7.0)
        binary = base + sparse_idx + sparse_val
        doc = {
            "asset": {"version": "2.0"},
            "buffers": [{"byteLength": len(binary)}],
            "bufferViews": [
                {"buffer": 0, "byteOffset": 0, "byteLength": 12},
                {"buffer": 0, "byteOffset": 12, "byteLength": 4},
                {"buffer": 0, "byteOffset": 16, "byteLength": 4},
            ],
            "accessors": [{
                "bufferView": 0, "componentType": 5126, "count": 3, "type": "SCALAR",
                "sparse": {
                    "count": 1,
                    "indices": {"bufferView": 1, "componentType": 5123},
                    "values": {"bufferView": 2},
                },
            }],
        }
        graph = read_scene_graph(_container(doc, binary))
        assert list(graph.accessors[0].data) == [0.0, 7.0, 0.0]

    def test_data_uri_buffer(self):
        payload = struct.pack("<3f", 1, 2, 3)
        doc = {
            "asset": {"version": "2.0"},
            "buffers": [{
                "byteLength": 12,
                "uri": "data:application/octet-stream;base64," + base64.b64encode(payload).decode(),
            }],
            "bufferViews": [{"buffer": 0, "byteLength": 12}],
            "accessors": [{"bufferView": 0, "componentType": 5126, "count": 1, "type": "VEC3"}],
        }
        graph = read_scene_graph(read_container(write_container(Container(document=doc))))
        assert graph.accessors[0].element(0) == (1.0, 2.0, 3.0)

    def test_interleaved_buffer_view(self):
        binary = struct.pack("<6f", 1, 2, 3, 10, 20, 30) + struct.pack("<6f", 4, 5, 6, 40, 50, 60)
        doc = {
            "asset": {"version": "2.0"},
            "buffers": [{"byteLength": len(binary)}],
            "bufferViews": [{"buffer": 0, "byteLength": len(binary), "byteStride": 24}],
            "accessors": [
                {"bufferView": 0, "componentType": 5126, "count": 2, "type": "VEC3"},
                {"bufferView": 0, "byteOffset": 12, "componentType": 5126, "count": 2, "type": "VEC3"},
            ],
        }
        graph = read_scene_graph(_container(doc, binary))
        assert list(graph.accessors[0].elements()) == [(1.0, 2.0, 3.0), (4.0, 5.0, 6.0)]
        assert list(graph.accessors[1].elements()) == [(10.0, 20.0, 30.0), (40.0, 50.0, 60.0)]

    def test_accessor_data_is_typed(self):
        graph = _round_trip(_build_triangle_graph())
        indices = graph.meshes[0].primitives[0].indices
        assert indices.component_type is ComponentType.UNSIGNED_SHORT
        assert isinstance(indices.data, array.array)
        assert indices.data.typecode == "H"
