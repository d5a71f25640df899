"""Single-entry, uncompressed ZIP writer for USDZ packages.

USDZ requires stored (uncompressed) entries whose data starts on a
64-byte boundary.  The padding goes into a zero-filled extra field so the
file name in the local header matches the central directory.
"""

from __future__ import annotations

import struct
import zlib

from aecar.config import USDZ_ALIGNMENT, USDZ_PADDING_HEADER_ID

LOCAL_HEADER_SIGNATURE = 0x04034B50
CENTRAL_HEADER_SIGNATURE = 0x02014B50
END_OF_CENTRAL_DIR_SIGNATURE = 0x06054B50

LOCAL_HEADER_SIZE = 30
CENTRAL_HEADER_SIZE = 46
END_OF_CENTRAL_DIR_SIZE = 22
EXTRA_FIELD_HEADER_SIZE = 4

ZIP_VERSION = 20  # 2.0, stored entries
ZIP_STORED = 0

_LOCAL_HEADER = struct.Struct("<IHHHHHIIIHH")
_CENTRAL_HEADER = struct.Struct("<IHHHHHHIIIHHHHHII")
_END_OF_CENTRAL_DIR = struct.Struct("<IHHHHIIH")


def padding_extra_field(offset: int, alignment: int = USDZ_ALIGNMENT) -> bytes:
    """Return an extra field that moves *offset* up to the next *alignment*.

    An extra field needs at least its 4-byte header, so a gap smaller than
    that is widened by one full alignment unit.
    """
    gap = (alignment - offset % alignment) % alignment
    if gap == 0:
        return b""
    if gap < EXTRA_FIELD_HEADER_SIZE:
        gap += alignment
    body = gap - EXTRA_FIELD_HEADER_SIZE
    return struct.pack("<HH", USDZ_PADDING_HEADER_ID, body) + bytes(body)


def build_usdz(payload: bytes, entry_name: str = "model.usda") -> bytes:
    """Pack *payload* as the only entry of a USDZ archive."""
    name = entry_name.encode("utf-8")
    crc = zlib.crc32(payload) & 0xFFFFFFFF
    size = len(payload)

    extra = padding_extra_field(LOCAL_HEADER_SIZE + len(name))
    local_header = _LOCAL_HEADER.pack(
        LOCAL_HEADER_SIGNATURE,
        ZIP_VERSION,
        0,  # flags
        ZIP_STORED,
        0,  # mod time
        0,  # mod date
        crc,
        size,  # compressed size
        size,  # uncompressed size
        len(name),
        len(extra),
    )
    local_record = local_header + name + extra

    central_offset = len(local_record) + size
    central_header = _CENTRAL_HEADER.pack(
        CENTRAL_HEADER_SIGNATURE,
        ZIP_VERSION,  # made by
        ZIP_VERSION,  # needed to extract
        0,  # flags
        ZIP_STORED,
        0,  # mod time
        0,  # mod date
        crc,
        size,
        size,
        len(name),
        0,  # extra length
        0,  # comment length
        0,  # disk number
        0,  # internal attributes
        0,  # external attributes
        0,  # local header offset
    )
    central_record = central_header + name

    end_record = _END_OF_CENTRAL_DIR.pack(
        END_OF_CENTRAL_DIR_SIGNATURE,
        0,  # this disk
        0,  # disk with central directory
        1,  # entries on this disk
        1,  # total entries
        len(central_record),
        central_offset,
        0,  # comment length
    )
    return local_record + payload + central_record + end_record


def data_offset(archive: bytes) -> int:
    """Offset of the first entry's data, read back from its local header."""
    fields = _LOCAL_HEADER.unpack_from(archive, 0)
    if fields[0] != LOCAL_HEADER_SIGNATURE:
        raise ValueError("not a ZIP local file header")
    name_length, extra_length = fields[9], fields[10]
    return LOCAL_HEADER_SIZE + name_length + extra_length
