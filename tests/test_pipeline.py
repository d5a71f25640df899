"""Tests for the end-to-end upload entry point."""

from __future__ import annotations

import io
import zipfile

import pytest

from aecar.config import Settings
from aecar.container.codec import read_container, write_container
from aecar.errors import MalformedContainer
from aecar.pipeline import process_upload
from aecar.scene.accessors import Accessor, ComponentType, ElementShape
from aecar.scene.graph import Material, Mesh, Node, Primitive, Scene, SceneGraph
from aecar.scene.io import read_scene_graph, write_scene_graph
from aecar.usdz import synthesizer


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_IFC = """ISO-10303-21;
DATA;
#5= IFCBEAM('2O2Fr$t4X7Zf8NOew3FLOH',$,'W-Wide Flange:W12X26:424461',$,$,$,$,$,$);
#12= IFCPROPERTYSINGLEVALUE('Span','',IFCREAL(4.),$);
#20= IFCPROPERTYSET('p',$,'Pset_BeamCommon',$,(#12));
#21= IFCRELDEFINESBYPROPERTIES('r',$,$,$,(#5),#20);
#40= IFCMATERIAL('Steel',$,$);
#41= IFCRELASSOCIATESMATERIAL('m',$,$,$,(#5),#40);
ENDSEC;
END-ISO-10303-21;
"""


def _build_glb() -> bytes:
    """Two named parts, one with a Revit id, one with extras."""
    positions = Accessor.from_elements(
        ComponentType.FLOAT, ElementShape.VEC3,
        [(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0)],
    )
    material = Material(name="Steel", base_color=[2.0, -1.0, 0.5, 1.0])
    mesh = Mesh(name="Beam", primitives=[Primitive(attributes={"POSITION": positions}, material=material)])
    beam = Node(name="W12X26 [424461]", mesh=mesh, translation=(1.0, 2.0, 3.0))
    column = Node(name="Column", mesh=mesh, extras={"Mark": "C1", "Height": 3.0})
    scene = Scene(nodes=[beam, column])
    graph = SceneGraph(
        scenes=[scene], scene=scene, nodes=[beam, column], meshes=[mesh],
        accessors=[positions], materials=[material],
    )
    return write_container(write_scene_graph(graph))


def _settings(**overrides) -> Settings:
    return Settings(**overrides)


# ---------------------------------------------------------------------------
# process_upload
# ---------------------------------------------------------------------------


class TestProcessUpload:
    def test_glb_only(self):
        result = process_upload(_build_glb(), settings=_settings())

        assert [a.id for a in result.annotations] == ["ann_0", "ann_1"]
        assert result.annotations[0].metadata == {
            "revit_element_id": "424461",
            "family_type": "W12X26",
        }
        assert result.annotations[0].position.x == 1.0
        assert result.annotations[1].metadata == {"Mark": "C1", "Height": "3"}
        assert result.ifc_enriched == 0
        assert result.glb_only == 2
        assert result.warnings == []

    def test_with_ifc(self):
        result = process_upload(_build_glb(), _IFC, settings=_settings())

        assert result.ifc_enriched == 1
        assert result.glb_only == 1
        assert result.annotations[0].metadata == {"Span": "4", "Material": "Steel"}

    def test_ifc_bytes(self):
        result = process_upload(_build_glb(), _IFC.encode("utf-8"), settings=_settings())
        assert result.ifc_enriched == 1

    def test_unparseable_ifc_degrades(self):
        result = process_upload(_build_glb(), b"this is not IFC", settings=_settings())

        assert result.ifc_enriched == 0
        assert result.glb_only == 2
        assert any("IFC" in w for w in result.warnings)
        assert result.usdz is not None

    def test_optimized_glb_is_valid(self):
        result = process_upload(_build_glb(), settings=_settings())
        container = read_container(result.optimized_glb)
        graph = read_scene_graph(container)

        prim = next(graph.primitives())
        assert "TEXCOORD_0" in prim.attributes
        assert prim.material.base_color == [0.8, 0.8, 0.8, 1.0]
        assert all("min" in a and "max" in a for a in container.document["accessors"])
        assert result.optimization.patched_accessors > 0
        assert result.optimization.failed == []

    def test_usdz_produced(self):
        result = process_upload(_build_glb(), settings=_settings(usdz_entry_name="scene.usda"))
        with zipfile.ZipFile(io.BytesIO(result.usdz)) as zf:
            assert zf.namelist() == ["scene.usda"]
            text = zf.read("scene.usda").decode("utf-8")
        assert 'def Xform "W12X26__424461_"' in text
        assert 'def Xform "Column"' in text

    def test_unindexed_quad_keeps_both_triangles(self):
        positions = Accessor.from_elements(
            ComponentType.FLOAT, ElementShape.VEC3,
            [(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0),
             (1.0, 0.0, 0.0), (1.0, 1.0, 0.0), (0.0, 1.0, 0.0)],
        )
        mesh = Mesh(name="Slab", primitives=[Primitive(attributes={"POSITION": positions})])
        node = Node(name="Slab [7]", mesh=mesh)
        scene = Scene(nodes=[node])
        graph = SceneGraph(
            scenes=[scene], scene=scene, nodes=[node], meshes=[mesh], accessors=[positions],
        )
        result = process_upload(write_container(write_scene_graph(graph)), settings=_settings())

        prim = next(read_scene_graph(read_container(result.optimized_glb)).primitives())
        assert len(prim.index_list()) == 6
        with zipfile.ZipFile(io.BytesIO(result.usdz)) as zf:
            text = zf.read("model.usda").decode("utf-8")
        assert "int[] faceVertexCounts = [3, 3]" in text

    def test_usdz_disabled(self):
        result = process_upload(_build_glb(), settings=_settings(build_usdz=False))
        assert result.usdz is None
        assert result.optimized_glb

    def test_usdz_failure_keeps_glb(self, monkeypatch: pytest.MonkeyPatch):
        def _broken(graph: SceneGraph) -> str:
            raise RuntimeError("no stage")

        monkeypatch.setattr(synthesizer, "build_stage", _broken)
        result = process_upload(_build_glb(), settings=_settings())

        assert result.usdz is None
        assert read_container(result.optimized_glb).document["meshes"]
        assert any("no stage" in w for w in result.warnings)

    def test_optimization_failure_keeps_original(self, monkeypatch: pytest.MonkeyPatch):
        def _broken(glb: bytes) -> tuple[bytes, int]:
            raise RuntimeError("patch failed")

        monkeypatch.setattr("aecar.optimize.pipeline.patch_accessor_bounds", _broken)
        glb = _build_glb()
        result = process_upload(glb, settings=_settings())

        assert result.optimized_glb == glb
        assert any("patch failed" in w for w in result.warnings)
        assert len(result.annotations) == 2

    def test_malformed_glb_rejected(self):
        with pytest.raises(MalformedContainer):
            process_upload(b"glTF" + bytes(30), _IFC, settings=_settings())

    def test_color_map(self):
        result = process_upload(
            _build_glb(), color_map={"STEEL": [0.2, 0.4, 0.6, 1.0]}, settings=_settings()
        )
        graph = read_scene_graph(read_container(result.optimized_glb))
        assert next(graph.primitives()).material.base_color == pytest.approx([0.2, 0.4, 0.6, 1.0])
