"""File globbing where ``*`` matches within one path part and a leading ``**`` recurses."""

from __future__ import annotations

import os
from typing import List

SEP = os.sep


def match_name(name: str, pattern: str) -> bool:
    """Match one path part against a pattern in which ``*`` matches any run of characters."""
    parts = pattern.split("*")
    if len(parts) == 1:
        return name == pattern
    head, *middle, tail = parts
    if len(name) < len(head) + len(tail):
        return False
    if not name.startswith(head) or not name.endswith(tail):
        return False
    rest = name[len(head):len(name) - len(tail)]
    pos = 0
    for part in middle:
        if not part:
            continue
        found = rest.find(part, pos)
        if found < 0:
            return False
        pos = found + len(part)
    return True


def _result_path(path: str, base: str) -> str:
    if not base:
        return os.path.abspath(path)
    try:
        return os.path.relpath(path, base)
    except ValueError:
        return path


def _sorted_entries(directory: str):
    with os.scandir(directory) as entries:
        return sorted(entries, key=lambda entry: entry.name)


def _recursive(out: List[str], directory: str, suffix: str, base: str) -> None:
    for entry in _sorted_entries(directory):
        if entry.is_dir():
            _recursive(out, entry.path, suffix, base)
        if entry.is_file() and len(entry.name) > len(suffix) and entry.name.endswith(suffix):
            out.append(_result_path(entry.path, base))


def _work(out: List[str], prefix: str, tail: str, base: str) -> None:
    if not os.path.exists(prefix):
        return
    if not tail and os.path.isfile(prefix):
        out.append(_result_path(prefix, base))
        return
    if not os.path.isdir(prefix):
        return

    want_word, sep, next_tail = tail.partition(SEP)
    want_dir = bool(sep)

    if not want_dir and "**" in tail:
        _recursive(out, prefix, tail[2:], base)
        return

    for entry in _sorted_entries(prefix):
        if entry.is_symlink():
            continue
        if want_dir and entry.is_dir() and match_name(entry.name, want_word):
            _work(out, entry.path, next_tail, base)
        if not want_dir and entry.is_file() and match_name(entry.name, want_word):
            out.append(_result_path(entry.path, base))


def file_glob(pattern: str, base: str = ".") -> List[str]:
    """Return files matching ``pattern``.

    Results are relative to ``base``, or absolute when ``base`` is empty.
    ``**`` may appear only at the start of the last path part.
    """
    if SEP != "/":
        pattern = pattern.replace("/", SEP)

    first = pattern.find("**")
    if first >= 0 and pattern.find(SEP, first) >= 0:
        raise ValueError("** must be in the last part.")
    last = pattern.rfind("**")
    if last > 0 and pattern[last - 1] != SEP:
        raise ValueError("** must be the prefix of last part.")

    out: List[str] = []
    star = pattern.find("*")
    if star >= 0:
        cut = pattern.rfind(SEP, 0, star)
        if cut < 0:
            _work(out, ".", pattern, base)
        else:
            _work(out, pattern[:cut] or SEP, pattern[cut + 1:], base)
    else:
        _work(out, pattern, "", base)
    return out