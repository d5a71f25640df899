"""Resolve IFC material associations to a single material name."""

from __future__ import annotations

import logging

from aecar.exchange.parser import EntityTable, IfcEntity

logger = logging.getLogger(__name__)


def _material_name(entity: IfcEntity | None) -> str | None:
    if entity is None or entity.type != "IFCMATERIAL":
        return None
    return entity.text(0)


def resolve_material_name(entity: IfcEntity | None, table: EntityTable) -> str | None:
    """Best-effort name for a RelatingMaterial entity.

    Tried in order: a direct IfcMaterial, the layer set name, the material
    of a single-layer set, then the first entry of a material list.  Only
    forward references a couple of hops deep are followed.
    """
    if entity is None:
        return None

    if entity.type == "IFCMATERIAL":
        return entity.text(0)

    if entity.type == "IFCMATERIALLAYERSETUSAGE":
        entity = table.resolve(entity.arg(0))
        if entity is None:
            return None

    if entity.type == "IFCMATERIALLAYERSET":
        # MaterialLayers, LayerSetName
        name = entity.text(1)
        if name:
            return name
        layers = entity.refs(0)
        if len(layers) == 1:
            layer = table.get(layers[0])
            if layer is not None and layer.type == "IFCMATERIALLAYER":
                return _material_name(table.resolve(layer.arg(0)))
        return None

    if entity.type == "IFCMATERIALLAYER":
        return _material_name(table.resolve(entity.arg(0)))

    if entity.type == "IFCMATERIALLIST":
        refs = entity.refs(0)
        return _material_name(table.get(refs[0])) if refs else None

    if entity.type == "IFCMATERIALCONSTITUENTSET":
        name = entity.text(0)
        if name:
            return name
        for constituent_id in entity.refs(2):
            constituent = table.get(constituent_id)
            if constituent is not None and constituent.type == "IFCMATERIALCONSTITUENT":
                return _material_name(table.resolve(constituent.arg(2)))
        return None

    return None


def index_materials(table: EntityTable) -> dict[int, str]:
    """Map related object ids to a material name.

    IFCRELASSOCIATESMATERIAL: RelatedObjects is argument 4 and
    RelatingMaterial argument 5.
    """
    index: dict[int, str] = {}
    for rel in table.by_type("IFCRELASSOCIATESMATERIAL"):
        name = resolve_material_name(table.get(rel.ref(5)), table)
        if not name:
            continue
        for element_id in rel.refs(4):
            index[element_id] = name
    logger.debug("Indexed materials for %d objects", len(index))
    return index
