"""Block layout of the dependency-graph database file.

The file starts with a 1024-byte signature, followed by 4-byte aligned blocks:

* string: ``00`` + 30-bit length, 8-byte mtime, the string padded to 4 bytes
* empty: ``10`` + 30-bit size of the whole block, then any content
* node: ``11`` + 30-bit count, 1 stale bit + 31-bit title string offset,
  then ``count`` 4-byte offsets (top bit set for an inbound edge's node title,
  clear for a file string)
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

HEADER_SIZE = 1024
VERSION = b"CGN-demo"

BIT_STR = 0b00 << 30
BIT_EMPTY = 0b10 << 30
BIT_NODE = 0b11 << 30
TYPE_MASK = 0b11 << 30
LENGTH_MASK = ~TYPE_MASK & 0xFFFFFFFF

STALE_BIT = 1 << 31
EDGE_BIT = 1 << 31
OFFSET_MASK = EDGE_BIT - 1

_U32 = struct.Struct("=I")
_I64 = struct.Struct("=q")


class DBFormatError(ValueError):
    """Raised when a database file cannot be parsed."""


@dataclass
class StringBlock:
    """A string (a node title or a file path) with its recorded mtime."""

    offset: int
    text: str
    mtime: int = 0


@dataclass
class NodeBlock:
    """A graph node: its title string offset, stale flag and related offsets."""

    offset: int
    title_offset: int
    stale: bool = False
    rel_offsets: List[int] = field(default_factory=list)

    @property
    def file_offsets(self) -> List[int]:
        return [off for off in self.rel_offsets if not off & EDGE_BIT]

    @property
    def edge_offsets(self) -> List[int]:
        return [off & OFFSET_MASK for off in self.rel_offsets if off & EDGE_BIT]

    @property
    def block_size(self) -> int:
        return _U32.size * 2 + _U32.size * len(self.rel_offsets)


@dataclass
class ParsedDB:
    """All blocks of a database file, keyed or ordered by their file offset."""

    size: int
    strings: Dict[int, StringBlock] = field(default_factory=dict)
    nodes: List[NodeBlock] = field(default_factory=list)
    empty_blocks: Dict[int, int] = field(default_factory=dict)


def _padded(length: int) -> int:
    return (length + 3) // 4 * 4


def _encode_text(text: str) -> bytes:
    return text.encode("utf-8", "surrogateescape")


def parse_db(data: bytes) -> ParsedDB:
    """Parse the whole content of a database file."""
    if len(data) < HEADER_SIZE or data[: len(VERSION)] != VERSION:
        raise DBFormatError("version conflict")

    db = ParsedDB(size=len(data))
    pos = HEADER_SIZE
    while pos < len(data):
        if pos + _U32.size > len(data):
            raise DBFormatError(f"unexpected EOF, blkoff={pos}")
        (title,) = _U32.unpack_from(data, pos)
        block_type = title & TYPE_MASK
        body_len = title & LENGTH_MASK

        if block_type == BIT_EMPTY:
            if body_len < _U32.size or body_len % _U32.size:
                raise DBFormatError(f"invalid empty block size {body_len}, blkoff={pos}")
            db.empty_blocks[pos] = body_len
            pos += body_len

        elif block_type == BIT_STR:
            size = _U32.size + _I64.size + _padded(body_len)
            if pos + size > len(data):
                raise DBFormatError(f"unexpected EOF, (str)blkoff={pos}")
            (mtime,) = _I64.unpack_from(data, pos + _U32.size)
            start = pos + _U32.size + _I64.size
            text = data[start:start + body_len].decode("utf-8", "surrogateescape")
            db.strings[pos] = StringBlock(offset=pos, text=text, mtime=mtime)
            pos += size

        elif block_type == BIT_NODE:
            size = _U32.size * 2 + body_len * _U32.size
            if pos + size > len(data):
                raise DBFormatError(f"unexpected EOF, (node)blkoff={pos}")
            (name_off,) = _U32.unpack_from(data, pos + _U32.size)
            rels = list(struct.unpack_from(f"={body_len}I", data, pos + 2 * _U32.size))
            db.nodes.append(
                NodeBlock(
                    offset=pos,
                    title_offset=name_off & OFFSET_MASK,
                    stale=bool(name_off & STALE_BIT),
                    rel_offsets=rels,
                )
            )
            pos += size

        else:
            raise DBFormatError(f"Invalid block type {block_type} off={pos}")
    return db


def encode_header() -> bytes:
    """The file signature that starts every database file."""
    return VERSION.ljust(HEADER_SIZE, b"\0")


def encode_string_block(text: str, mtime: int = 0) -> bytes:
    """Encode a string block; its size is 12 bytes plus the padded string."""
    raw = _encode_text(text)
    if len(raw) > LENGTH_MASK:
        raise ValueError("string too long for a database block")
    return (
        _U32.pack(len(raw) | BIT_STR)
        + _I64.pack(mtime)
        + raw.ljust(_padded(len(raw)), b"\0")
    )


def encode_node_block(title_offset: int, stale: bool, rel_offsets: Iterable[int]) -> bytes:
    """Encode a node block from its title offset, stale flag and related offsets."""
    rels = list(rel_offsets)
    if not 0 <= title_offset <= OFFSET_MASK:
        raise ValueError(f"title offset out of range: {title_offset}")
    name_off = title_offset | (STALE_BIT if stale else 0)
    return (
        _U32.pack(len(rels) | BIT_NODE)
        + _U32.pack(name_off)
        + struct.pack(f"={len(rels)}I", *rels)
    )


def encode_empty_block(size: int) -> bytes:
    """Encode an unused block of ``size`` bytes (a positive multiple of 4)."""
    if size < _U32.size or size % _U32.size or size > LENGTH_MASK:
        raise ValueError(f"invalid empty block size {size}")
    return _U32.pack(size | BIT_EMPTY).ljust(size, b"\0")