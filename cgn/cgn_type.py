"""Analysis results: typed info entries grouped in tables, and target results."""

from __future__ import annotations

import copy
import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import ClassVar, Dict, List, Optional, Type, TypeVar

from .configuration import Configuration
from .graph import GraphNode
from .logger import fmt_list
from .tools import remove_duplicates

InfoT = TypeVar("InfoT", bound="BaseInfo")


class NinjaLevel(enum.IntEnum):
    """How much of a dependency's ninja output a dependant must wait for."""

    NONEED = 0
    DYNDEP = 1
    FULL = 2


class BaseInfo(ABC):
    """An entry of an :class:`InfoTable`, keyed by its class ``name``."""

    name: ClassVar[str] = ""

    @abstractmethod
    def merge_entry(self, other: Optional["BaseInfo"]) -> bool:
        """Merge ``other`` into this entry; return False if nothing was merged."""

    @abstractmethod
    def to_string(self, kind: str = "h") -> str:
        """Describe the entry; ``h`` is abbreviated, ``H`` complete."""


@dataclass
class LinkAndRunInfo(BaseInfo):
    """Files to link against, and files a program needs when it runs.

    ``runtime_files`` maps a path inside the output directory to its origin.
    """

    name: ClassVar[str] = "LinkAndRunInfo"

    shared_files: List[str] = field(default_factory=list)
    static_files: List[str] = field(default_factory=list)
    object_files: List[str] = field(default_factory=list)
    runtime_files: Dict[str, str] = field(default_factory=dict)

    def merge_entry(self, other: Optional[BaseInfo]) -> bool:
        if other is None:
            return False
        if not isinstance(other, LinkAndRunInfo):
            raise TypeError(f"cannot merge {type(other).__name__} into LinkAndRunInfo")
        self.shared_files = remove_duplicates(self.shared_files + other.shared_files)
        self.static_files = remove_duplicates(self.static_files + other.static_files)
        self.object_files = remove_duplicates(self.object_files + other.object_files)
        for key, value in other.runtime_files.items():
            self.runtime_files.setdefault(key, value)
        return True

    def to_string(self, kind: str = "h") -> str:
        limit = 5 if kind == "h" else 999
        indent = " " * 7
        runtime = dict(sorted(self.runtime_files.items()))
        return (
            "{\n"
            f"  obj: {fmt_list(self.object_files, indent, limit)}\n"
            f"  dll: {fmt_list(self.shared_files, indent, limit)}\n"
            f"    a: {fmt_list(self.static_files, indent, limit)}\n"
            f"   rt: {fmt_list(runtime, indent, limit)}\n"
            "}"
        )


@dataclass
class InfoTable:
    """Info entries keyed by the name of their type."""

    infos: Dict[str, BaseInfo] = field(default_factory=dict)

    def set(self, info: BaseInfo) -> None:
        """Store a copy of ``info`` under its type's name."""
        self.infos[info.name] = copy.deepcopy(info)

    def get(self, info_type: Type[InfoT], create: bool = False) -> Optional[InfoT]:
        """Return the entry of ``info_type``; with ``create`` add an empty one if missing."""
        found = self.infos.get(info_type.name)
        if found is None and create:
            found = self.infos[info_type.name] = info_type()
        return found  # type: ignore[return-value]

    def merge_entry(self, name: str, info: BaseInfo) -> None:
        """Merge ``info`` into the entry ``name``, adding it if missing."""
        existing = self.infos.get(name)
        if existing is not None:
            existing.merge_entry(info)
            return
        fresh = type(info)()
        if fresh.merge_entry(info):
            self.infos[name] = fresh

    def merge_from(self, other: "InfoTable") -> None:
        """Merge every entry of ``other`` into this table."""
        for name, info in other.infos.items():
            self.merge_entry(name, info)

    def __len__(self) -> int:
        return len(self.infos)


@dataclass(eq=False)
class CGNTarget(InfoTable):
    """The result of analysing a target."""

    factory_label: str = ""
    trimmed_cfg: Configuration = field(default_factory=Configuration)
    anode: Optional[GraphNode] = None
    errmsg: str = ""
    ninja_entry: str = ""
    ninja_dep_level: NinjaLevel = NinjaLevel.NONEED
    outputs: List[str] = field(default_factory=list)

    def to_string(self, kind: str = "h") -> str:
        """Human readable summary: ``h`` abbreviated, ``H`` complete; other kinds give ``""``."""
        if kind not in ("h", "H"):
            return ""
        text = f"factory: {self.factory_label}#{self.trimmed_cfg.id}\n"
        if self.errmsg:
            return text + "error: " + self.errmsg
        return text + "".join(
            f"[{name}] {info.to_string(kind)}\n" for name, info in self.infos.items()
        )