"""Build the exchange index (elements, properties, materials) from IFC text."""

from __future__ import annotations

import logging

from aecar.config import ELEMENT_TYPES
from aecar.errors import ExchangeParseFailure
from aecar.exchange.materials import index_materials
from aecar.exchange.parser import EntityTable, parse_entities
from aecar.exchange.properties import index_properties
from aecar.models.element import ExchangeElement, ExchangeIndex

logger = logging.getLogger(__name__)


def collect_elements(
    table: EntityTable,
    properties: dict[int, dict[str, str]],
    materials: dict[int, str],
) -> list[ExchangeElement]:
    """Return recognised building elements in scan order.

    GlobalId is argument 0 and Name argument 2 for every IfcElement
    subtype.  The resolved material is stored under ``Material``.
    """
    elements: list[ExchangeElement] = []
    for entity in table:
        if entity.type not in ELEMENT_TYPES:
            continue
        props = dict(properties.get(entity.id, {}))
        material = materials.get(entity.id)
        if material:
            props["Material"] = material
        elements.append(ExchangeElement(
            entity_id=entity.id,
            guid=entity.text(0) or "",
            name=entity.text(2) or "",
            ifc_type=entity.type,
            properties=props,
        ))
    return elements


def build_exchange_index(text: str | bytes) -> ExchangeIndex:
    """Parse an IFC (STEP) buffer and index its elements.

    Raises
    ------
    ExchangeParseFailure
        If no entity declaration could be parsed at all.
    """
    table = parse_entities(text)
    if not len(table):
        raise ExchangeParseFailure("No IFC entity declarations found")

    properties = index_properties(table)
    materials = index_materials(table)
    elements = collect_elements(table, properties, materials)
    logger.info(
        "IFC index: %d entities, %d building elements", len(table), len(elements)
    )
    return ExchangeIndex(properties=properties, materials=materials, elements=elements)
