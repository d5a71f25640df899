"""Post-serialization patch: add missing accessor min/max to a GLB.

The scene writer only emits bounds it already knows, and AR Quick Look
rejects accessors without them.  This pass re-reads the written container,
scans each unbounded accessor directly from the BIN payload, and rewrites
the JSON chunk.  The BIN chunk is carried over byte-for-byte.
"""

from __future__ import annotations

import logging
import math
import struct
from typing import Any

from aecar.container.codec import read_container, write_container
from aecar.scene.accessors import ComponentType, ElementShape

logger = logging.getLogger(__name__)


def scan_bounds(
    accessor: dict[str, Any],
    buffer_views: list[dict[str, Any]],
    binary: bytes,
) -> tuple[list[float], list[float]] | None:
    """Per-component min/max of *accessor* read from *binary*.

    Returns None when the accessor cannot be located in the payload or
    holds no finite value.
    """
    count = accessor.get("count", 0)
    view_index = accessor.get("bufferView")
    if not count or view_index is None or not 0 <= view_index < len(buffer_views):
        return None
    try:
        component_type = ComponentType(accessor["componentType"])
        shape = ElementShape(accessor["type"])
    except (KeyError, ValueError):
        return None

    view = buffer_views[view_index]
    if view.get("buffer", 0) != 0 or "uri" in view:
        return None

    n = shape.components
    fmt = struct.Struct("<" + component_type.typecode * n)
    offset = view.get("byteOffset", 0) + accessor.get("byteOffset", 0)
    stride = view.get("byteStride") or fmt.size

    lo = [math.inf] * n
    hi = [-math.inf] * n
    for i in range(count):
        values = fmt.unpack_from(binary, offset + i * stride)
        for j, v in enumerate(values):
            if component_type.is_float and not math.isfinite(v):
                continue
            if v < lo[j]:
                lo[j] = v
            if v > hi[j]:
                hi[j] = v

    if any(math.isinf(v) for v in lo + hi):
        return None
    return lo, hi


def patch_accessor_bounds(glb: bytes) -> tuple[bytes, int]:
    """Return *glb* with min/max filled in, and how many accessors changed."""
    container = read_container(glb)
    doc = container.document
    accessors = doc.get("accessors")
    buffer_views = doc.get("bufferViews")
    if not accessors or not buffer_views or container.binary is None:
        return glb, 0

    patched = 0
    for i, accessor in enumerate(accessors):
        if "min" in accessor and "max" in accessor:
            continue
        try:
            bounds = scan_bounds(accessor, buffer_views, container.binary)
        except struct.error as exc:
            logger.warning("Accessor %d runs past the BIN chunk: %s", i, exc)
            continue
        if bounds is None:
            continue
        accessor["min"], accessor["max"] = bounds
        patched += 1

    if not patched:
        return glb, 0
    logger.debug("Patched bounds on %d accessors", patched)
    return write_container(container), patched
