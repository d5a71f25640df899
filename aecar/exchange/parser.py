"""STEP physical-file (IFC) entity parser.

Scans declarations of the form ``#<id> = <TYPE>(<args>);`` into an
:class:`EntityTable`.  Arguments stay raw strings; typed access goes
through the helpers on :class:`IfcEntity`, so nothing is converted until
a consumer asks for it.  Lines that do not match are skipped.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# A declaration may wrap across lines.  A quoted string may contain ';' and
# doubled quotes, so it is matched as a unit.
_ENTITY_RE = re.compile(
    r"#(\d+)\s*=\s*([A-Za-z0-9_]+)\s*\(((?:'(?:[^']|'')*'|[^;'])*)\)\s*;"
)
_REF_RE = re.compile(r"#(\d+)")
_TYPED_RE = re.compile(r"^[A-Za-z0-9_]+\((.*)\)$", re.DOTALL)
_X2_RE = re.compile(r"\\X2\\((?:[0-9A-Fa-f]{4})+)\\X0\\")
_X_RE = re.compile(r"\\X\\([0-9A-Fa-f]{2})")


def split_args(raw: str) -> list[str]:
    """Split a STEP argument string at top-level commas.

    Quoted strings (with ``''`` escapes) and nested parentheses are kept
    intact, so ``(#1,#2),'a,b'`` yields two arguments.
    """
    args: list[str] = []
    depth = 0
    in_str = False
    cur: list[str] = []
    i = 0
    n = len(raw)
    while i < n:
        c = raw[i]
        if in_str:
            cur.append(c)
            if c == "'":
                if i + 1 < n and raw[i + 1] == "'":
                    cur.append("'")
                    i += 1
                else:
                    in_str = False
        elif c == "'":
            in_str = True
            cur.append(c)
        elif c == "(":
            depth += 1
            cur.append(c)
        elif c == ")":
            depth -= 1
            cur.append(c)
        elif c == "," and depth == 0:
            args.append("".join(cur).strip())
            cur = []
        else:
            cur.append(c)
        i += 1
    tail = "".join(cur).strip()
    if tail or args:
        args.append(tail)
    return args


def decode_step_string(value: str) -> str:
    """Decode ``\\X2\\...\\X0\\`` and ``\\X\\hh`` escapes used by IFC exporters."""

    def _x2(match: re.Match[str]) -> str:
        hexes = match.group(1)
        return bytes.fromhex(hexes).decode("utf-16-be", errors="replace")

    value = _X2_RE.sub(_x2, value)
    return _X_RE.sub(lambda m: chr(int(m.group(1), 16)), value)


def text_value(arg: str | None) -> str | None:
    """Unquote a STEP string argument; ``$`` and ``*`` are null."""
    if arg is None or arg in ("$", "*", ""):
        return None
    if len(arg) >= 2 and arg.startswith("'") and arg.endswith("'"):
        return decode_step_string(arg[1:-1].replace("''", "'"))
    return arg


def ref_value(arg: str | None) -> int | None:
    """Return the entity id of a ``#id`` argument, else None."""
    if arg is None or not arg.startswith("#"):
        return None
    digits = arg[1:].strip()
    return int(digits) if digits.isdigit() else None


def ref_values(arg: str | None) -> list[int]:
    """Return every ``#id`` inside an argument such as ``(#12,#34)``."""
    if not arg:
        return []
    return [int(m) for m in _REF_RE.findall(arg)]


def unwrap_typed(arg: str | None) -> str | None:
    """Strip a type-tag wrapper: ``IFCTEXT('x')`` -> ``'x'``."""
    if arg is None or arg == "$":
        return None
    match = _TYPED_RE.match(arg)
    return match.group(1) if match else arg


@dataclass(frozen=True)
class IfcEntity:
    """One parsed declaration: id, type tag, and raw argument strings."""

    id: int
    type: str
    args: tuple[str, ...]

    def arg(self, index: int) -> str | None:
        return self.args[index] if 0 <= index < len(self.args) else None

    def text(self, index: int) -> str | None:
        return text_value(self.arg(index))

    def ref(self, index: int) -> int | None:
        return ref_value(self.arg(index))

    def refs(self, index: int) -> list[int]:
        return ref_values(self.arg(index))

    def is_a(self, type_name: str) -> bool:
        return self.type == type_name.upper()


class EntityTable:
    """Map of entity id -> :class:`IfcEntity` with on-demand resolution."""

    def __init__(self, entities: dict[int, IfcEntity] | None = None) -> None:
        self._entities: dict[int, IfcEntity] = entities or {}

    def __len__(self) -> int:
        return len(self._entities)

    def __iter__(self) -> Iterator[IfcEntity]:
        return iter(self._entities.values())

    def __contains__(self, entity_id: int) -> bool:
        return entity_id in self._entities

    def get(self, entity_id: int | None) -> IfcEntity | None:
        if entity_id is None:
            return None
        return self._entities.get(entity_id)

    def resolve(self, arg: str | None) -> IfcEntity | None:
        """Follow a ``#id`` argument to its entity."""
        return self.get(ref_value(arg))

    def by_type(self, type_name: str) -> list[IfcEntity]:
        wanted = type_name.upper()
        return [e for e in self._entities.values() if e.type == wanted]


def parse_entities(text: str | bytes) -> EntityTable:
    """Scan *text* and return every entity declaration found.

    Never raises on malformed content: unmatched declarations are skipped
    and an unusable file simply yields an empty table.
    """
    if isinstance(text, (bytes, bytearray)):
        text = bytes(text).decode("utf-8", errors="replace")

    entities: dict[int, IfcEntity] = {}
    for match in _ENTITY_RE.finditer(text):
        entity_id = int(match.group(1))
        entities[entity_id] = IfcEntity(
            id=entity_id,
            type=match.group(2).upper(),
            args=tuple(split_args(match.group(3))),
        )
    logger.debug("Parsed %d IFC entities", len(entities))
    return EntityTable(entities)
