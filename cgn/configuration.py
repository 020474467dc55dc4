"""Key/value build configuration that tracks which keys were read.

Keys start out "remaining" and become "visited" when read. Locking drops all
keys that were never visited; a locked configuration cannot be changed and
cannot read keys that were not visited before.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Tuple


class ConfigurationLockedError(RuntimeError):
    """Raised when a locked configuration is modified or newly visited."""

    def __init__(self) -> None:
        super().__init__("Configuration locked.")


def _wrap32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - (1 << 32) if value & 0x80000000 else value


def _hash_one(value: str) -> int:
    first = value.encode("utf-8", "surrogateescape")[0]
    if first >= 0x80:
        first -= 0x100
    return _wrap32(first << (len(value) % 20))


class Configuration:
    """A mapping of configuration keys to non-empty string values."""

    def __init__(self, values: Mapping[str, str] | None = None) -> None:
        self._visited: Dict[str, str] = {}
        self._remain: Dict[str, str] = {}
        self._hash_helper = 0
        self._locked = False
        self.id = ""
        for key, value in (values or {}).items():
            self.set(key, value)

    @property
    def locked(self) -> bool:
        return self._locked

    @property
    def hash_helper(self) -> int:
        """Order-independent sum over the values, used for content lookups."""
        return self._hash_helper

    @property
    def visited(self) -> Mapping[str, str]:
        """Read-only view of the keys visited so far."""
        return MappingProxyType(self._visited)

    def get(self, key: str) -> str:
        """Return the value of ``key`` (empty if unset), marking it visited."""
        if key in self._visited:
            return self._visited[key]
        if key in self._remain:
            if self._locked:
                raise ConfigurationLockedError()
            value = self._remain.pop(key)
            self._visited[key] = value
            return value
        return ""

    def set(self, key: str, value: str) -> None:
        """Assign ``value`` to ``key``; an empty value removes the key."""
        if self._locked:
            raise ConfigurationLockedError()
        if key in self._visited:
            table = self._visited
        elif key in self._remain:
            table = self._remain
        else:
            table = None

        if not value:
            if table is None:
                return
            old = table.pop(key)
            self._hash_helper = _wrap32(self._hash_helper - _hash_one(old))
            self.id = ""
            return

        if table is not None and table[key] == value:
            return
        if table is not None:
            self._hash_helper = _wrap32(self._hash_helper - _hash_one(table[key]))
            table[key] = value
        else:
            self._visited[key] = value
        self._hash_helper = _wrap32(self._hash_helper + _hash_one(value))
        self.id = ""

    def __getitem__(self, key: str) -> str:
        return self.get(key)

    def __setitem__(self, key: str, value: str) -> None:
        self.set(key, value)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        if key in self._visited:
            return True
        if self._locked or key not in self._remain:
            return False
        self._visited[key] = self._remain.pop(key)
        return True

    def __len__(self) -> int:
        return len(self._visited) + len(self._remain)

    def _visit_all(self) -> None:
        if not self._remain:
            return
        if self._locked:
            raise ConfigurationLockedError()
        self._visited.update(self._remain)
        self._remain.clear()

    def __iter__(self) -> Iterator[str]:
        self._visit_all()
        return iter(list(self._visited))

    def items(self) -> List[Tuple[str, str]]:
        """All key/value pairs, visiting every key."""
        self._visit_all()
        return list(self._visited.items())

    def visit_keys(self, other: "Configuration") -> None:
        """Visit every key of ``other`` in this configuration."""
        for key in other:
            self.get(key)

    def visit_all_keys(self) -> None:
        """Mark every key as visited."""
        self._visited.update(self._remain)
        self._remain.clear()

    def trim_lock(self) -> None:
        """Drop the keys never visited and lock the configuration."""
        for value in self._remain.values():
            self._hash_helper = _wrap32(self._hash_helper - _hash_one(value))
        self.id = ""
        self._remain.clear()
        self._locked = True

    def copy(self) -> "Configuration":
        """An unlocked copy with every key unvisited, keeping the id."""
        clone = Configuration()
        clone._remain = {**self._remain, **self._visited}
        clone._hash_helper = self._hash_helper
        clone.id = self.id
        return clone

    def __repr__(self) -> str:
        state = "locked" if self._locked else "open"
        return (
            f"Configuration(id={self.id!r}, {state}, "
            f"visited={self._visited!r}, remain={self._remain!r})"
        )