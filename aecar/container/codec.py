"""GLB container codec: 12-byte header plus JSON and BIN chunks.

Layout::

    magic(u32) version(u32) length(u32)
    chunk0: length(u32) type(u32 "JSON") payload (padded to 4 bytes)
    chunk1: length(u32) type(u32 "BIN\\0") payload      (optional)

All integers are little-endian.  The JSON payload may arrive padded with
NULs; it is always written back padded with ASCII spaces.
"""

from __future__ import annotations

import json
import logging
import struct
from dataclasses import dataclass
from typing import Any

from aecar.config import (
    BIN_CHUNK_TYPE,
    CHUNK_HEADER_SIZE,
    GLB_HEADER_SIZE,
    GLB_MAGIC,
    GLB_VERSION,
    JSON_CHUNK_TYPE,
)
from aecar.errors import MalformedContainer

logger = logging.getLogger(__name__)

_HEADER = struct.Struct("<III")
_CHUNK_HEADER = struct.Struct("<II")


@dataclass
class Container:
    """Decoded GLB: the structural document and the raw binary payload."""

    document: dict[str, Any]
    binary: bytes | None = None
    version: int = GLB_VERSION
    bin_chunk_header: bytes | None = None

    @property
    def has_binary(self) -> bool:
        return self.binary is not None


def _pad4(length: int) -> int:
    return (4 - length % 4) % 4


def read_container(data: bytes) -> Container:
    """Parse *data* as a GLB container.

    Raises
    ------
    MalformedContainer
        If the buffer is too short, the magic is wrong, the first chunk is
        not JSON, a chunk runs past the end of the buffer, or the JSON
        payload cannot be decoded.
    """
    data = bytes(data)
    if len(data) < GLB_HEADER_SIZE + CHUNK_HEADER_SIZE:
        raise MalformedContainer(
            f"Buffer too small to be a valid GLB file ({len(data)} bytes)"
        )

    magic, version, total_length = _HEADER.unpack_from(data, 0)
    if magic != GLB_MAGIC:
        raise MalformedContainer(
            f"Invalid GLB magic: 0x{magic:08X} (expected 0x{GLB_MAGIC:08X})"
        )
    if total_length != len(data):
        logger.debug(
            "GLB header declares %d bytes but buffer holds %d", total_length, len(data)
        )

    json_length, json_type = _CHUNK_HEADER.unpack_from(data, GLB_HEADER_SIZE)
    if json_type != JSON_CHUNK_TYPE:
        raise MalformedContainer(f"First chunk is not JSON (type: 0x{json_type:08X})")

    json_start = GLB_HEADER_SIZE + CHUNK_HEADER_SIZE
    json_end = json_start + json_length
    if json_end > len(data):
        raise MalformedContainer(
            f"JSON chunk length {json_length} exceeds buffer size {len(data)}"
        )

    raw_json = data[json_start:json_end].rstrip(b"\x00")
    try:
        document = json.loads(raw_json.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedContainer(f"JSON chunk is not valid JSON: {exc}") from exc
    if not isinstance(document, dict):
        raise MalformedContainer("JSON chunk does not contain an object")

    binary: bytes | None = None
    bin_header: bytes | None = None
    if json_end + CHUNK_HEADER_SIZE <= len(data):
        bin_length, _bin_type = _CHUNK_HEADER.unpack_from(data, json_end)
        bin_start = json_end + CHUNK_HEADER_SIZE
        if bin_start + bin_length > len(data):
            raise MalformedContainer(
                f"BIN chunk length {bin_length} exceeds buffer size {len(data)}"
            )
        bin_header = data[json_end:bin_start]
        binary = data[bin_start:bin_start + bin_length]

    return Container(
        document=document,
        binary=binary,
        version=version,
        bin_chunk_header=bin_header,
    )


def encode_json_chunk(document: dict[str, Any]) -> bytes:
    """Serialise *document* compactly, space-padded to a 4-byte boundary."""
    payload = json.dumps(
        document, separators=(",", ":"), ensure_ascii=False, allow_nan=False
    ).encode("utf-8")
    return payload + b" " * _pad4(len(payload))


def write_container(container: Container) -> bytes:
    """Serialise *container* back to GLB bytes.

    The BIN chunk header is copied verbatim when the container was read from
    bytes; otherwise a fresh one is emitted for the payload.
    """
    json_chunk = encode_json_chunk(container.document)

    parts = [_CHUNK_HEADER.pack(len(json_chunk), JSON_CHUNK_TYPE), json_chunk]
    if container.binary is not None:
        header = container.bin_chunk_header
        if header is None or len(header) != CHUNK_HEADER_SIZE:
            header = _CHUNK_HEADER.pack(len(container.binary), BIN_CHUNK_TYPE)
        parts.append(header)
        parts.append(container.binary)

    body = b"".join(parts)
    total_length = GLB_HEADER_SIZE + len(body)
    return _HEADER.pack(GLB_MAGIC, container.version, total_length) + body
