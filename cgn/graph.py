"""Dependency graph of build nodes, persisted in a block database file."""

from __future__ import annotations

import enum
import os
import struct
import sys
from dataclasses import dataclass
from typing import BinaryIO, Dict, Iterable, List, Optional, Tuple

from .filedb import (
    EDGE_BIT,
    OFFSET_MASK,
    DBFormatError,
    NodeBlock,
    ParsedDB,
    encode_empty_block,
    encode_header,
    encode_node_block,
    encode_string_block,
    parse_db,
)
from .logger import Logger
from .tools import stat_mtime

_IS_WINDOWS = sys.platform.startswith("win")
_U32_SIZE = 4
_I64 = struct.Struct("=q")


class NodeStatus(enum.Enum):
    LATEST = "Latest"
    STALE = "Stale"
    UNKNOWN = "Unknown"


@dataclass(eq=False)
class _GraphString:
    """A string known to the database, with its block offset and mtimes."""

    text: str
    offset: int = 0
    mem_mtime: int = 0
    db_mtime: int = 0


class GraphNode:
    """A node of the build graph; ``files[0]`` is the node's output."""

    def __init__(self, title: _GraphString) -> None:
        self._title = title
        self._files: List[_GraphString] = []
        self._inbound: List[GraphNode] = []
        self._outbound: List[GraphNode] = []
        self._status = NodeStatus.UNKNOWN
        self._max_mtime = 0
        self._init_state_is_stale = False
        self._db = NodeBlock(offset=0, title_offset=0)

    @property
    def name(self) -> str:
        return self._title.text

    @property
    def status(self) -> NodeStatus:
        return self._status

    @property
    def files(self) -> List[str]:
        return [block.text for block in self._files]

    @property
    def sources(self) -> Tuple["GraphNode", ...]:
        """Nodes with an edge into this one."""
        return tuple(self._inbound)

    @property
    def targets(self) -> Tuple["GraphNode", ...]:
        """Nodes this one has an edge to."""
        return tuple(self._outbound)

    @property
    def default_stale(self) -> bool:
        """Whether the node starts out stale when the database is loaded."""
        return self._init_state_is_stale

    def __repr__(self) -> str:
        return f"GraphNode({self.name!r}, {self._status.value})"


def _stat_folder(folder: str) -> Dict[str, int]:
    try:
        with os.scandir(folder) as entries:
            return {entry.name: entry.stat().st_mtime_ns for entry in entries}
    except (FileNotFoundError, NotADirectoryError):
        return {}


class Graph:
    """A build graph whose edges run from an early node to a late node."""

    def __init__(self, logger: Optional[Logger] = None) -> None:
        self.logger = logger if logger is not None else Logger()
        self._nodes: Dict[str, GraphNode] = {}
        self._strings: Dict[str, _GraphString] = {}
        self._pending_strings: Dict[_GraphString, None] = {}
        self._pending_nodes: Dict[GraphNode, None] = {}
        self._recycle_pool: Dict[int, int] = {}
        self._folder_cached: set = set()
        self._mtime_cache: Dict[str, int] = {}
        self._file: Optional[BinaryIO] = None

    # ---- nodes and edges -------------------------------------------------

    def _graph_string(self, text: str) -> _GraphString:
        block = self._strings.get(text)
        if block is None:
            block = self._strings[text] = _GraphString(text)
            self._pending_strings[block] = None
        return block

    def get_node(self, name: str) -> GraphNode:
        """Return the node called ``name``, creating it if needed."""
        node = self._nodes.get(name)
        if node is None:
            node = self._nodes[name] = GraphNode(self._graph_string(name))
            self._pending_nodes[node] = None
        return node

    def set_unknown_as_default_state(self, node: GraphNode) -> None:
        if not node._init_state_is_stale:
            return
        node._init_state_is_stale = False
        self._pending_nodes[node] = None

    def set_stale_as_default_state(self, node: GraphNode) -> None:
        if node._init_state_is_stale:
            return
        node._init_state_is_stale = True
        self._pending_nodes[node] = None

    def add_edge(self, source: GraphNode, target: GraphNode) -> None:
        source._outbound.append(target)
        target._inbound.append(source)

    def remove_inbound_edges(self, node: GraphNode) -> None:
        """Drop every edge into ``node``."""
        for source in node._inbound:
            source._outbound.remove(node)
        node._inbound.clear()
        self._pending_nodes[node] = None

    # ---- status ----------------------------------------------------------

    def test_status(self, node: GraphNode) -> None:
        """Decide whether an Unknown node is Latest or Stale."""
        if node._status is not NodeStatus.UNKNOWN:
            return
        stale = False
        node._max_mtime = 0
        for block in node._files:
            if not os.path.exists(block.text):
                stale = True
                break
            if not os.path.isfile(block.text):
                raise RuntimeError(f"{block.text} is not regular file.")
            stale = self._stat_and_cache(block.text) != block.mem_mtime
            node._max_mtime = max(node._max_mtime, block.mem_mtime)
            if stale:
                break

        for source in node._inbound:
            if stale:
                break
            if source._status is NodeStatus.UNKNOWN:
                self.test_status(source)
            stale = source._status is NodeStatus.STALE
            node._max_mtime = max(node._max_mtime, source._max_mtime)

        if node._files:
            stale = stale or node._files[0].mem_mtime < node._max_mtime
        node._status = NodeStatus.STALE if stale else NodeStatus.LATEST

    def set_node_status_to_latest(self, node: GraphNode) -> None:
        """Record the current mtime of the node's files and mark it Latest."""
        if node._status is NodeStatus.LATEST:
            return
        for block in node._files:
            block.mem_mtime = self._stat_and_cache(block.text)
            self._pending_strings[block] = None
        assert all(src._status is NodeStatus.LATEST for src in node._inbound)
        node._status = NodeStatus.LATEST

    def set_node_status_to_unknown(self, node: Optional[GraphNode] = None) -> None:
        """Mark ``node`` and everything reachable from it Unknown; all nodes if None."""
        if node is None:
            for each in self._nodes.values():
                each._status = NodeStatus.UNKNOWN
            return
        if node._status is NodeStatus.UNKNOWN:
            return
        node._status = NodeStatus.UNKNOWN
        for target in list(node._outbound):
            self.set_node_status_to_unknown(target)

    def set_node_status_to_stale(self, node: GraphNode) -> None:
        """Mark everything downstream Unknown and ``node`` itself Stale."""
        self.set_node_status_to_unknown(node)
        node._status = NodeStatus.STALE

    def set_node_files(self, node: GraphNode, files: Iterable[str]) -> None:
        """Replace the node's files; a change resets it and its dependants."""
        files = [os.fspath(path) for path in files]
        wanted = set(files)
        if len(node._files) == len(files) and all(b.text in wanted for b in node._files):
            return
        node._files = [self._graph_string(path) for path in files]
        self.set_node_status_to_unknown(node)
        self._pending_nodes[node] = None

    # ---- mtime cache -----------------------------------------------------

    def clear_mtime_cache(self) -> None:
        self._folder_cached.clear()
        self._mtime_cache.clear()

    def clear_file0_mtime_cache(self, node: GraphNode) -> None:
        """Forget the cached mtime of the node's output file."""
        if not node._files:
            raise ValueError(f"node {node.name} has no files")
        key = node._files[0].text.replace("/", os.sep)
        self._mtime_cache.pop(key, None)
        self._folder_cached.discard(os.path.dirname(key) or ".")

    def _stat_and_cache(self, path: str) -> int:
        if not _IS_WINDOWS:
            return stat_mtime(path)
        path = path.replace("/", os.sep)
        parent = os.path.dirname(path)
        folder = parent or "."
        if folder not in self._folder_cached:
            for name, mtime in _stat_folder(folder).items():
                self._mtime_cache[os.path.join(folder, name) if parent else name] = mtime
            self._folder_cached.add(folder)
        return self._mtime_cache.get(path, 0)

    # ---- database --------------------------------------------------------

    def _reset(self) -> None:
        self._nodes.clear()
        self._strings.clear()
        self._pending_strings.clear()
        self._pending_nodes.clear()
        self._recycle_pool.clear()

    def _close_file(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    def _create_new(self, filename: str, errmsg: str = "") -> None:
        if errmsg:
            self.logger.paragraph("GraphDB load error: " + errmsg)
        self.logger.println("Create new GraphDB: " + filename)
        try:
            os.remove(filename)
        except FileNotFoundError:
            pass
        self._reset()
        self._file = open(filename, "w+b")
        self._file.write(encode_header())

    def _load_blocks(self, db: ParsedDB) -> None:
        by_offset: Dict[int, _GraphString] = {}
        for offset, block in db.strings.items():
            entry = self._strings.get(block.text)
            if entry is None:
                entry = self._strings[block.text] = _GraphString(block.text)
            if entry.offset == 0:
                entry.offset = offset
                entry.mem_mtime = entry.db_mtime = block.mtime
                self._pending_strings.pop(entry, None)
            by_offset[offset] = entry

        by_title: Dict[int, GraphNode] = {}
        waiting: Dict[int, List[GraphNode]] = {}
        for blk in db.nodes:
            title = by_offset.get(blk.title_offset)
            if title is None:
                raise DBFormatError(f"node {blk.offset} no title found.")
            node = self._nodes.get(title.text)
            if node is None:
                node = self._nodes[title.text] = GraphNode(title)
            node._title = title
            by_title[blk.title_offset] = node
            for target in waiting.pop(blk.title_offset, []):
                self.add_edge(node, target)

            node._init_state_is_stale = blk.stale
            for rel in blk.rel_offsets:
                real = rel & OFFSET_MASK
                if not rel & EDGE_BIT:
                    block = by_offset.get(real)
                    if block is None:
                        raise DBFormatError(
                            f"node[off={blk.offset}] cannot find file string by offset={real}"
                        )
                    node._files.append(block)
                elif real in by_title:
                    self.add_edge(by_title[real], node)
                else:
                    waiting.setdefault(real, []).append(node)
            if blk.stale:
                node._status = NodeStatus.STALE
            node._db = NodeBlock(
                offset=blk.offset,
                title_offset=blk.title_offset,
                stale=blk.stale,
                rel_offsets=list(blk.rel_offsets),
            )

        pending = sum(len(targets) for targets in waiting.values())
        if pending:
            raise DBFormatError(
                f"some GraphNode record missing, there still have {pending} edges cached."
            )
        self._recycle_pool.update(db.empty_blocks)

    def _log_loaded(self, size: int) -> None:
        lines = [f"GraphDB load(): {len(self._nodes)} GraphNodes loaded. (file size {size} bytes)"]
        for name, node in self._nodes.items():
            lines.append(f" Node[{name}] off={node._db.offset} status={node._status.value}")
            lines.extend(f"   |--> {target.name}" for target in node._outbound)
            lines.extend(f"   | mtime={b.mem_mtime} {b.text}" for b in node._files)
        lines.append("=" * 65)
        self.logger.verbose_paragraph("\n".join(lines) + "\n")

    def db_load(self, filename) -> None:
        """Load the graph from ``filename``; start a new database if it is missing or invalid."""
        filename = os.fspath(filename)
        self._close_file()
        try:
            with open(filename, "rb") as fin:
                data = fin.read()
        except OSError:
            self._create_new(filename)
            return
        try:
            self._load_blocks(parse_db(data))
        except DBFormatError as exc:
            self._create_new(filename, str(exc))
            return
        self._log_loaded(len(data))
        self._file = open(filename, "r+b")

    def _mark_recycle(self, offset: int, size: int) -> None:
        self.logger.verbose_paragraph(f"GraphDB: recycle OFFSET {offset} -> {offset + size}\n")
        self._file.seek(offset)
        self._file.write(encode_empty_block(size)[:_U32_SIZE])
        self._recycle_pool[offset] = size

    def db_flush(self) -> None:
        """Write pending strings and nodes to the database file."""
        out = self._file
        if out is None:
            if self._pending_strings or self._pending_nodes:
                raise RuntimeError("GraphDB not loaded")
            return

        for block in list(self._pending_strings):
            if block.offset == 0:
                out.seek(0, os.SEEK_END)
                block.offset = out.tell()
                block.db_mtime = block.mem_mtime
                out.write(encode_string_block(block.text, block.mem_mtime))
                self.logger.verbose_paragraph(
                    f"GraphDB new string '{block.text}' blk_off={block.offset}"
                )
            elif block.db_mtime != block.mem_mtime:
                out.seek(block.offset + _U32_SIZE)
                out.write(_I64.pack(block.mem_mtime))
                self.logger.verbose_paragraph(
                    f"GraphDB update mtime {block.text} {block.db_mtime} -> {block.mem_mtime}"
                )
                block.db_mtime = block.mem_mtime
        self._pending_strings.clear()

        for node in list(self._pending_nodes):
            rels = [block.offset for block in node._files]
            rels.extend(src._title.offset | EDGE_BIT for src in node._inbound)
            rels = rels[:1] + sorted(rels[1:])
            db = node._db
            stale = node._init_state_is_stale
            if db.offset and stale == db.stale and rels == db.rel_offsets:
                continue

            encoded = encode_node_block(node._title.offset, stale, rels)
            if db.offset and len(rels) == len(db.rel_offsets):
                out.seek(db.offset + _U32_SIZE)
                out.write(encoded[_U32_SIZE:])
            else:
                if db.offset:
                    self._mark_recycle(db.offset, db.block_size)
                out.seek(0, os.SEEK_END)
                db.offset = out.tell()
                out.write(encoded)
                db.title_offset = node._title.offset
            db.stale = stale
            db.rel_offsets = rels
            self.logger.verbose_paragraph(
                f"GraphDB upsert Node[{node.name}] : "
                + "".join(f"{path}, " for path in node.files)
            )
        self._pending_nodes.clear()
        out.flush()

    def close(self) -> None:
        """Flush pending changes and close the database file."""
        if self._file is None:
            return
        try:
            self.db_flush()
        finally:
            self._close_file()

    def __enter__(self) -> "Graph":
        return self

    def __exit__(self, *args) -> None:
        self.close()