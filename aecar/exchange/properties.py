"""Index IFC property sets by the objects they are assigned to."""

from __future__ import annotations

import logging
import re

from aecar.exchange.parser import EntityTable, IfcEntity, text_value, unwrap_typed

logger = logging.getLogger(__name__)

_TRAILING_DOT_RE = re.compile(r"\d\.$")


def clean_value(value: str) -> str:
    """Normalise exporter artefacts: ``.T.`` -> ``true``, ``4.`` -> ``4``."""
    if value == ".T.":
        return "true"
    if value == ".F.":
        return "false"
    if _TRAILING_DOT_RE.search(value):
        return value[:-1]
    return value


def single_value(prop: IfcEntity) -> tuple[str, str] | None:
    """Return ``(name, value)`` for an IFCPROPERTYSINGLEVALUE.

    Args are Name, Description, NominalValue (type-wrapped), Unit.
    """
    name = prop.text(0)
    nominal = unwrap_typed(prop.arg(2))
    if not name or nominal is None:
        return None
    value = text_value(nominal)
    if value is None:
        return None
    return name, clean_value(value)


def extract_pset(pset: IfcEntity, table: EntityTable) -> dict[str, str]:
    """Flatten one IFCPROPERTYSET into name -> value.

    Only single-value properties are read; HasProperties is argument 4.
    """
    values: dict[str, str] = {}
    for prop_id in pset.refs(4):
        prop = table.get(prop_id)
        if prop is None or prop.type != "IFCPROPERTYSINGLEVALUE":
            continue
        pair = single_value(prop)
        if pair is not None:
            values[pair[0]] = pair[1]
    return values


def index_properties(table: EntityTable) -> dict[int, dict[str, str]]:
    """Map every related object id to its merged property values.

    Each IFCRELDEFINESBYPROPERTIES links RelatedObjects (argument 4) to a
    property set (argument 5).  Property sets are merged in scan order, so
    a later set overwrites an earlier key.
    """
    index: dict[int, dict[str, str]] = {}
    for rel in table.by_type("IFCRELDEFINESBYPROPERTIES"):
        pset = table.get(rel.ref(5))
        if pset is None or pset.type != "IFCPROPERTYSET":
            continue
        values = extract_pset(pset, table)
        for element_id in rel.refs(4):
            index.setdefault(element_id, {}).update(values)
    logger.debug("Indexed properties for %d objects", len(index))
    return index
