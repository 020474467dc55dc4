"""Storage of committed configurations, looked up by content, id or name.

Committed configurations are written as ``<id>.cfg`` files into a storage
directory and read back when the manager is created.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, FrozenSet, Optional, Tuple, Union

from .configuration import Configuration
from .graph import Graph, GraphNode

_MASK64 = (1 << 64) - 1
_ID_MODULUS = 0xFFFFFFFF
_ID_PROBES = 20

_ContentKey = FrozenSet[Tuple[str, str]]


def format_id(value: int) -> str:
    """Render the low 32 bits of ``value`` as eight upper-case hex digits."""
    return f"{value & 0xFFFFFFFF:08X}"


def _content_key(cfg: Configuration) -> _ContentKey:
    return frozenset(cfg.visited.items())


def _read_cfg_file(path: Path) -> Configuration:
    """Read ``key = value`` lines; a final line without a newline is ignored."""
    cfg = Configuration()
    text = path.read_text(encoding="utf-8")
    for line in text.split("\n")[:-1]:
        if not line:
            continue
        eq = line.find("=")
        if eq < 0:
            continue
        key = (line[: eq - 1] if eq > 0 else line).strip(" ")
        value = line[eq + 1:].strip(" ")
        if key and value:
            cfg[key] = value
    return cfg


class ConfigurationManager:
    """Keeps committed configurations and the names assigned to them."""

    def __init__(self, storage_dir: Union[str, os.PathLike], graph: Graph) -> None:
        self.storage_dir = Path(storage_dir)
        self.graph = graph
        self._named: Dict[str, Configuration] = {}
        self._by_id: Dict[str, Configuration] = {}
        self._by_content: Dict[_ContentKey, str] = {}

        if not self.storage_dir.exists():
            self.storage_dir.mkdir()
        elif not self.storage_dir.is_dir():
            raise NotADirectoryError(f"CfgMgr: dir required {self.storage_dir}")

        for path in sorted(self.storage_dir.iterdir()):
            if not path.is_file() or path.suffix != ".cfg":
                continue
            cfg = _read_cfg_file(path)
            cfg.id = path.stem
            self._by_id[path.stem] = cfg
            self._by_content[_content_key(cfg)] = path.stem

    @staticmethod
    def _node_name(name: str, cfg: Configuration) -> str:
        return f"C-{name}-{cfg.id}"

    def set_name(self, name: str, cfg_id: str) -> None:
        """Point ``name`` at the configuration ``cfg_id``; unknown ids are ignored.

        Renaming marks the node of the previous assignment stale.
        """
        target = self._by_id.get(cfg_id)
        if target is None:
            return
        last = self._named.get(name)
        if last is not None:
            if last is target:
                return
            self.graph.set_node_status_to_stale(
                self.graph.get_node(self._node_name(name, last))
            )
        node = self.graph.get_node(self._node_name(name, target))
        self._named[name] = target
        self.graph.set_stale_as_default_state(node)
        self.graph.set_node_status_to_latest(node)

    def get(self, name: str) -> Tuple[Configuration, Optional[GraphNode]]:
        """Return an unlocked copy of the named configuration and its graph node.

        An unknown name gives an empty configuration and ``None``.
        """
        cfg = self._named.get(name)
        if cfg is None:
            return Configuration(), None
        return cfg.copy(), self.graph.get_node(self._node_name(name, cfg))

    def _new_id(self, want: int) -> str:
        for probe in range(_ID_PROBES):
            candidate = format_id(((probe + want) & _MASK64) % _ID_MODULUS)
            if candidate not in self._by_id:
                return candidate
        raise RuntimeError("Too Many conflictions, please update the hash algorithm.")

    def commit(self, cfg: Configuration) -> str:
        """Store a locked configuration and return its id.

        A configuration with the same content as one stored before gets the
        same id; a new one is also written to ``<id>.cfg``.
        """
        if not cfg.locked:
            raise ValueError("configuration must be locked before commit")
        if cfg.id:
            return cfg.id

        key = _content_key(cfg)
        found = self._by_content.get(key)
        if found is not None:
            cfg.id = found
            return found

        want = len(cfg.visited) ^ (~cfg.hash_helper & _MASK64)
        new_id = self._new_id(want)
        cfg.id = new_id
        self._by_id[new_id] = cfg
        self._by_content[key] = new_id

        with open(self.storage_dir / f"{new_id}.cfg", "w", encoding="utf-8", newline="\n") as fout:
            fout.write("".join(f"{k} = {v}\n" for k, v in cfg.items()))
        return new_id