"""Derive one annotation per named scene node.

Position comes from the node's translation, else from its matrix, else the
origin.  Metadata comes from the node's extras when present; otherwise a
Revit-style name such as ``"Steel Beam [424461]"`` is split into an
element id and a family/type label.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from aecar.models.annotation import Annotation, AnnotationResult, Position
from aecar.models.element import ExchangeIndex
from aecar.scene.graph import Node, SceneGraph

logger = logging.getLogger(__name__)

_NAME_ID_RE = re.compile(r"^(.*?)\s*\[(\d+)\]\s*$", re.DOTALL)
_LABEL_ID_RE = re.compile(r"\[(\d+)\]")
_ELEMENT_NAME_ID_RE = re.compile(r":(\d+)$")


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def node_position(node: Node) -> Position:
    if node.translation is not None and len(node.translation) >= 3:
        x, y, z = node.translation[:3]
        return Position(x=x, y=y, z=z)
    if node.matrix is not None and len(node.matrix) == 16:
        m = node.matrix
        return Position(x=m[12], y=m[13], z=m[14])
    return Position()


def parse_node_name(name: str) -> dict[str, str]:
    """Split ``"<family type> [<digits>]"`` into metadata fields."""
    match = _NAME_ID_RE.match(name)
    if not match:
        return {}
    metadata = {"revit_element_id": match.group(2)}
    family_type = match.group(1).strip()
    if family_type:
        metadata["family_type"] = family_type
    return metadata


def node_metadata(node: Node) -> dict[str, str]:
    if node.extras:
        return {str(k): _stringify(v) for k, v in node.extras.items()}
    return parse_node_name(node.name or "")


def extract_annotations(graph: SceneGraph) -> list[Annotation]:
    """Return annotations for every node with a non-blank name.

    The id is derived from the node's index in the source container.
    """
    annotations: list[Annotation] = []
    for index, node in enumerate(graph.nodes):
        name = node.name
        if not isinstance(name, str) or not name.strip():
            continue
        annotations.append(Annotation(
            id=f"ann_{index}",
            label=name,
            position=node_position(node),
            metadata=node_metadata(node),
        ))
    logger.info("Extracted %d annotations from %d nodes", len(annotations), len(graph.nodes))
    return annotations


def enrich_annotations(
    annotations: list[Annotation],
    exchange: ExchangeIndex | None,
) -> AnnotationResult:
    """Replace metadata with IFC properties where element ids correlate.

    An annotation labelled ``"... [123456]"`` matches the IFC element whose
    name ends in ``":123456"``.  This naming convention comes from the Revit
    exporters and is only a heuristic join.  Matched metadata is replaced,
    not merged.
    """
    if exchange is None or exchange.is_empty:
        return AnnotationResult(annotations=list(annotations), glb_only=len(annotations))

    by_element_id: dict[str, dict[str, str]] = {}
    for element in exchange.elements:
        match = _ELEMENT_NAME_ID_RE.search(element.name)
        if match:
            by_element_id[match.group(1)] = element.properties

    enriched = 0
    result: list[Annotation] = []
    for ann in annotations:
        match = _LABEL_ID_RE.search(ann.label)
        props = by_element_id.get(match.group(1)) if match else None
        if props is None:
            result.append(ann)
            continue
        enriched += 1
        result.append(ann.model_copy(update={"metadata": dict(props)}))

    logger.info(
        "Annotations: %d IFC-enriched, %d GLB-only", enriched, len(result) - enriched
    )
    return AnnotationResult(
        annotations=result,
        ifc_enriched=enriched,
        glb_only=len(result) - enriched,
    )
