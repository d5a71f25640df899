"""Typed accessor storage: component types, element shapes, and decoding."""

from __future__ import annotations

import array
import math
import struct
import sys
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any

import pygltflib


class ComponentType(IntEnum):
    """Scalar component encodings allowed in an accessor."""

    BYTE = pygltflib.BYTE
    UNSIGNED_BYTE = pygltflib.UNSIGNED_BYTE
    SHORT = pygltflib.SHORT
    UNSIGNED_SHORT = pygltflib.UNSIGNED_SHORT
    UNSIGNED_INT = pygltflib.UNSIGNED_INT
    FLOAT = pygltflib.FLOAT

    @property
    def size(self) -> int:
        return _COMPONENT_SIZES[self]

    @property
    def typecode(self) -> str:
        """``array``/``struct`` format character for this component."""
        return _TYPECODES[self]

    @property
    def is_float(self) -> bool:
        return self is ComponentType.FLOAT

    def normalize(self, value: float) -> float:
        """Map a normalized integer to its float value."""
        if self is ComponentType.FLOAT:
            return value
        if self is ComponentType.BYTE:
            return max(value / 127.0, -1.0)
        if self is ComponentType.UNSIGNED_BYTE:
            return value / 255.0
        if self is ComponentType.SHORT:
            return max(value / 32767.0, -1.0)
        if self is ComponentType.UNSIGNED_SHORT:
            return value / 65535.0
        return value / 4294967295.0


_COMPONENT_SIZES = {
    ComponentType.BYTE: 1,
    ComponentType.UNSIGNED_BYTE: 1,
    ComponentType.SHORT: 2,
    ComponentType.UNSIGNED_SHORT: 2,
    ComponentType.UNSIGNED_INT: 4,
    ComponentType.FLOAT: 4,
}

_TYPECODES = {
    ComponentType.BYTE: "b",
    ComponentType.UNSIGNED_BYTE: "B",
    ComponentType.SHORT: "h",
    ComponentType.UNSIGNED_SHORT: "H",
    ComponentType.UNSIGNED_INT: "I",
    ComponentType.FLOAT: "f",
}


class ElementShape(str, Enum):
    """Element layout: scalar through 4x4 matrix."""

    SCALAR = pygltflib.SCALAR
    VEC2 = pygltflib.VEC2
    VEC3 = pygltflib.VEC3
    VEC4 = pygltflib.VEC4
    MAT2 = pygltflib.MAT2
    MAT3 = pygltflib.MAT3
    MAT4 = pygltflib.MAT4

    @property
    def components(self) -> int:
        return _SHAPE_COMPONENTS[self]


_SHAPE_COMPONENTS = {
    ElementShape.SCALAR: 1,
    ElementShape.VEC2: 2,
    ElementShape.VEC3: 3,
    ElementShape.VEC4: 4,
    ElementShape.MAT2: 4,
    ElementShape.MAT3: 9,
    ElementShape.MAT4: 16,
}


def _new_array(component_type: ComponentType, values: Iterable[float] = ()) -> array.array:
    return array.array(component_type.typecode, values)


@dataclass(eq=False)
class Accessor:
    """A typed stream of elements, stored flat and tightly packed.

    Accessors compare by identity so they can key dicts while passes
    rewire references between them.
    """

    component_type: ComponentType
    shape: ElementShape
    data: array.array
    normalized: bool = False
    min: list[float] | None = None
    max: list[float] | None = None
    name: str | None = None
    extras: dict[str, Any] = field(default_factory=dict)
    extensions: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_elements(
        cls,
        component_type: ComponentType,
        shape: ElementShape,
        elements: Iterable[Sequence[float]],
        **kwargs: Any,
    ) -> Accessor:
        data = _new_array(component_type)
        for element in elements:
            data.extend(element)
        return cls(component_type=component_type, shape=shape, data=data, **kwargs)

    @classmethod
    def scalars(cls, component_type: ComponentType, values: Iterable[int], **kwargs: Any) -> Accessor:
        return cls(
            component_type=component_type,
            shape=ElementShape.SCALAR,
            data=_new_array(component_type, values),
            **kwargs,
        )

    @property
    def count(self) -> int:
        return len(self.data) // self.shape.components

    @property
    def has_bounds(self) -> bool:
        return self.min is not None and self.max is not None

    def element(self, index: int) -> tuple[float, ...]:
        n = self.shape.components
        return tuple(self.data[index * n:(index + 1) * n])

    def elements(self) -> Iterator[tuple[float, ...]]:
        n = self.shape.components
        data = self.data
        for start in range(0, len(data) - n + 1, n):
            yield tuple(data[start:start + n])

    def float_element(self, index: int) -> tuple[float, ...]:
        """Element *index* with normalization applied."""
        values = self.element(index)
        if not self.normalized:
            return tuple(float(v) for v in values)
        return tuple(self.component_type.normalize(v) for v in values)

    def scalar(self, index: int) -> int:
        return int(self.data[index])

    def compute_bounds(self) -> tuple[list[float], list[float]]:
        """Per-component min/max over every element."""
        n = self.shape.components
        lo = [math.inf] * n
        hi = [-math.inf] * n
        for element in self.elements():
            for j, v in enumerate(element):
                if v < lo[j]:
                    lo[j] = v
                if v > hi[j]:
                    hi[j] = v
        return lo, hi

    def content_key(self) -> tuple[Any, ...]:
        return (
            self.component_type,
            self.shape,
            self.normalized,
            self.data.tobytes(),
        )

    def to_bytes(self) -> bytes:
        """Little-endian, tightly packed payload."""
        if sys.byteorder == "little":
            return self.data.tobytes()
        swapped = array.array(self.data.typecode, self.data)
        swapped.byteswap()
        return swapped.tobytes()


def decode_elements(
    payload: bytes,
    component_type: ComponentType,
    shape: ElementShape,
    count: int,
    byte_offset: int = 0,
    byte_stride: int | None = None,
) -> array.array:
    """Read *count* elements from *payload* into a flat array.

    Raises ``ValueError`` when the described range runs past the payload.
    """
    n = shape.components
    element_size = component_type.size * n
    stride = byte_stride or element_size
    if count == 0:
        return _new_array(component_type)
    end = byte_offset + stride * (count - 1) + element_size
    if byte_offset < 0 or end > len(payload):
        raise ValueError(
            f"accessor range {byte_offset}..{end} exceeds payload of {len(payload)} bytes"
        )

    if stride == element_size:
        out = _new_array(component_type)
        out.frombytes(payload[byte_offset:end])
        if sys.byteorder != "little":
            out.byteswap()
        return out

    fmt = struct.Struct("<" + component_type.typecode * n)
    out = _new_array(component_type)
    for i in range(count):
        out.extend(fmt.unpack_from(payload, byte_offset + i * stride))
    return out
