"""IFC (STEP text) parsing and property/material indexing."""

from aecar.exchange.elements import build_exchange_index
from aecar.exchange.parser import EntityTable, IfcEntity, parse_entities, split_args

__all__ = [
    "EntityTable",
    "IfcEntity",
    "build_exchange_index",
    "parse_entities",
    "split_args",
]
