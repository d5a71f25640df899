"""Tests for annotation extraction and IFC enrichment."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from aecar.annotations.extractor import (
    enrich_annotations,
    extract_annotations,
    node_metadata,
    node_position,
    parse_node_name,
)
from aecar.exchange.elements import build_exchange_index
from aecar.models.annotation import Annotation, Position
from aecar.models.element import ExchangeElement, ExchangeIndex
from aecar.scene.graph import Node, SceneGraph


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _build_graph(*nodes: Node) -> SceneGraph:
    return SceneGraph(nodes=list(nodes))


def _build_index(*elements: tuple[str, dict[str, str]]) -> ExchangeIndex:
    return ExchangeIndex(elements=[
        ExchangeElement(entity_id=i, name=name, properties=props)
        for i, (name, props) in enumerate(elements, start=1)
    ])


# ---------------------------------------------------------------------------
# Position and metadata
# ---------------------------------------------------------------------------


class TestNodePosition:
    def test_translation(self):
        assert node_position(Node(translation=(1.0, 2.0, 3.0))) == Position(x=1, y=2, z=3)

    def test_matrix(self):
        matrix = [1.0, 0, 0, 0, 0, 1.0, 0, 0, 0, 0, 1.0, 0, 4.0, 5.0, 6.0, 1.0]
        assert node_position(Node(matrix=matrix)) == Position(x=4, y=5, z=6)

    def test_translation_preferred_over_matrix(self):
        matrix = [1.0, 0, 0, 0, 0, 1.0, 0, 0, 0, 0, 1.0, 0, 4.0, 5.0, 6.0, 1.0]
        node = Node(translation=(1.0, 1.0, 1.0), matrix=matrix)
        assert node_position(node) == Position(x=1, y=1, z=1)

    def test_origin_default(self):
        assert node_position(Node()) == Position()


class TestNodeMetadata:
    def test_revit_name(self):
        assert parse_node_name("Steel Beam [424461]") == {
            "revit_element_id": "424461",
            "family_type": "Steel Beam",
        }

    def test_name_without_id(self):
        assert parse_node_name("Level 1") == {}

    def test_bracket_only(self):
        assert parse_node_name("[12]") == {"revit_element_id": "12"}

    def test_extras_used_verbatim(self):
        node = Node(name="Beam [1]", extras={
            "Mark": "B1", "Length": 4.0, "Count": 3, "Structural": True, "Note": None,
            "Tags": ["a", "b"],
        })
        assert node_metadata(node) == {
            "Mark": "B1",
            "Length": "4",
            "Count": "3",
            "Structural": "true",
            "Note": "null",
            "Tags": '["a","b"]',
        }

    def test_empty_extras_fall_back_to_name(self):
        node = Node(name="Door [9]", extras={})
        assert node_metadata(node) == {"revit_element_id": "9", "family_type": "Door"}


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


class TestExtractAnnotations:
    def test_one_per_named_node(self):
        graph = _build_graph(
            Node(name="Steel Beam [424461]", translation=(1.0, 0.0, 0.0)),
            Node(),
            Node(name="   "),
            Node(name="Column [5]"),
        )
        annotations = extract_annotations(graph)

        assert [a.id for a in annotations] == ["ann_0", "ann_3"]
        assert annotations[0].label == "Steel Beam [424461]"
        assert annotations[0].position == Position(x=1.0, y=0.0, z=0.0)

    def test_scenario_revit_name_without_ifc(self):
        graph = _build_graph(Node(name="Steel Beam [424461]"))
        annotation = extract_annotations(graph)[0]
        assert annotation.metadata == {
            "revit_element_id": "424461",
            "family_type": "Steel Beam",
        }

    def test_annotations_are_immutable(self):
        annotation = extract_annotations(_build_graph(Node(name="A")))[0]
        with pytest.raises(ValidationError):
            annotation.label = "B"  # type: ignore[misc]


# ---------------------------------------------------------------------------
# Enrichment
# ---------------------------------------------------------------------------


class TestEnrichAnnotations:
    def test_without_exchange(self):
        annotations = [Annotation(id="ann_0", label="Beam [1]")]
        result = enrich_annotations(annotations, None)
        assert result.ifc_enriched == 0
        assert result.glb_only == 1
        assert result.annotations == annotations

    def test_match_replaces_metadata(self):
        annotations = [Annotation(
            id="ann_0",
            label="W12X26 [424461]",
            metadata={"revit_element_id": "424461", "family_type": "W12X26"},
        )]
        index = _build_index(("W-Wide Flange:W12X26:424461", {"Span": "4", "Material": "Steel"}))
        result = enrich_annotations(annotations, index)

        assert result.ifc_enriched == 1
        assert result.glb_only == 0
        assert result.annotations[0].metadata == {"Span": "4", "Material": "Steel"}
        assert result.annotations[0].label == "W12X26 [424461]"

    def test_counts_mixed(self):
        annotations = [
            Annotation(id="ann_0", label="Beam [1]"),
            Annotation(id="ann_1", label="Beam [2]"),
            Annotation(id="ann_2", label="No id"),
        ]
        index = _build_index(("Beam:2", {"Mark": "B2"}))
        result = enrich_annotations(annotations, index)

        assert result.ifc_enriched == 1
        assert result.glb_only == 2
        assert result.annotations[1].metadata == {"Mark": "B2"}
        assert result.annotations[0].metadata == {}

    def test_name_must_end_with_id(self):
        annotations = [Annotation(id="ann_0", label="Beam [42]")]
        index = _build_index(("Beam:42:extra", {"Mark": "X"}))
        assert enrich_annotations(annotations, index).ifc_enriched == 0

    def test_original_annotations_untouched(self):
        original = Annotation(id="ann_0", label="Beam [1]", metadata={"a": "b"})
        enrich_annotations([original], _build_index(("Beam:1", {"Mark": "B1"})))
        assert original.metadata == {"a": "b"}

    def test_with_parsed_ifc(self):
        ifc = (
            "#5= IFCBEAM('g',$,'W-Wide Flange:W12X26:424461',$,$,$,$,$,$);\n"
            "#12= IFCPROPERTYSINGLEVALUE('Span','',IFCREAL(4.),$);\n"
            "#20= IFCPROPERTYSET('p',$,'Pset_BeamCommon',$,(#12));\n"
            "#21= IFCRELDEFINESBYPROPERTIES('r',$,$,$,(#5),#20);\n"
        )
        annotations = extract_annotations(_build_graph(Node(name="W12X26 [424461]")))
        result = enrich_annotations(annotations, build_exchange_index(ifc))
        assert result.annotations[0].metadata == {"Span": "4"}
