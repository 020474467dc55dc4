"""Helpers for paths, labels, shell quoting, files and the host platform."""

from __future__ import annotations

import os
import platform
import re
import string
import subprocess
import sys
from dataclasses import dataclass
from typing import Dict, Iterable, List

_IS_WINDOWS = os.name == "nt"

_BASH_SPECIAL = frozenset("$#&*?|><(){}[]'\"~!\\ ")
_CMD_SPECIAL = frozenset(",^;=% \t")

_SEPARATORS = re.compile(r"[\\/]" if _IS_WINDOWS else r"/")
_ASCII_LOWER = str.maketrans(string.ascii_uppercase, string.ascii_lowercase)

_WINDOWS_CPUS = {
    "AMD64": "x86_64",
    "X86_64": "x86_64",
    "ARM": "arm",
    "ARM64": "arm64",
    "IA64": "ia64",
    "X86": "x86",
}


class LabelError(ValueError):
    """Raised for a target label that cannot be resolved."""


@dataclass(frozen=True)
class HostInfo:
    """Operating system (``win``, ``linux``, ``mac``) and CPU of the host."""

    os: str = ""
    cpu: str = ""
    glibc_version: str = ""
    glibc_release: str = ""


def _swap_u32(value: int) -> int:
    return int.from_bytes(value.to_bytes(4, "big"), sys.byteorder)


def host_to_u32be(value: int) -> int:
    """Return the 32-bit integer whose in-memory bytes are ``value`` in big-endian order."""
    return _swap_u32(value)


def u32be_to_host(value: int) -> int:
    """Inverse of :func:`host_to_u32be`."""
    return int.from_bytes(value.to_bytes(4, sys.byteorder), "big")


def shell_escape(text: str) -> str:
    """Escape shell metacharacters: ``^`` for cmd.exe, backslash for POSIX shells."""
    if _IS_WINDOWS:
        return "".join(f"^{ch}" if ch in _CMD_SPECIAL else ch for ch in text)
    return "".join(f"\\{ch}" if ch in _BASH_SPECIAL else ch for ch in text)


def get_host_info() -> HostInfo:
    """Describe the host operating system and CPU."""
    machine = platform.machine()
    if sys.platform.startswith("win"):
        return HostInfo(os="win", cpu=_WINDOWS_CPUS.get(machine.upper(), ""))
    if sys.platform == "darwin":
        return HostInfo(os="mac", cpu=machine)
    if sys.platform.startswith("linux"):
        return HostInfo(os="linux", cpu=machine)
    return HostInfo()


def _lexically_normal(path: str) -> str:
    """Normalise ``path`` without touching the filesystem, keeping a trailing separator."""
    if not path:
        return ""
    drive, rest = os.path.splitdrive(path)
    absolute = bool(rest) and _SEPARATORS.match(rest[0]) is not None
    raw = _SEPARATORS.split(rest)
    if absolute:
        raw = raw[1:]
    trailing = bool(raw) and raw[-1] in ("", ".", "..")

    stack: List[str] = []
    for part in raw:
        if part in ("", "."):
            continue
        if part == "..":
            if stack and stack[-1] != "..":
                stack.pop()
            elif not absolute:
                stack.append(part)
            continue
        stack.append(part)

    prefix = drive + (os.sep if absolute else "")
    if not stack:
        return prefix if absolute else drive + "."
    body = os.sep.join(stack)
    if trailing and stack[-1] != "..":
        body += os.sep
    return prefix + body


def locale_path(path: str) -> str:
    """Normalise ``path`` and use the host separator; the path need not exist.

    A path that reduces to ``.`` becomes the empty string.
    """
    normal = _lexically_normal(os.fspath(path))
    return "" if normal == "." else normal


def _absolute(path: str) -> str:
    return path if os.path.isabs(path) else os.path.join(os.getcwd(), path)


def _relative(path: str, base: str) -> str:
    try:
        return os.path.relpath(os.path.realpath(path), os.path.realpath(base))
    except ValueError:
        return ""


def rebase_path(path: str, new_base: str, current_base: str = ".") -> str:
    """Express ``path`` relative to ``new_base``.

    A relative ``path`` is taken to be inside ``current_base``. An empty
    ``new_base`` yields an absolute path with host separators.
    """
    if not new_base:
        return locale_path(_absolute(path))
    if os.path.isabs(path) or os.path.isabs(new_base):
        source, target = _absolute(path), _absolute(new_base)
    else:
        source = os.path.join(".", current_base, path)
        target = os.path.join(".", new_base)
    return locale_path(_relative(source, target))


def parent_path(path: str) -> str:
    """Return the parent of ``path``, or an empty string when it has none."""
    return os.path.dirname(path)


def read_kvfile(path: str) -> Dict[str, str]:
    """Read ``key = value`` lines; ``#`` and ``;`` start comment lines.

    The character just before ``=`` is taken as padding, as in ``key = value``.
    Pairs with an empty key or value are dropped. A missing file gives ``{}``.
    """
    result: Dict[str, str] = {}
    try:
        with open(path, encoding="utf-8") as fin:
            lines = fin.read().split("\n")
    except OSError:
        return result
    for line in lines:
        if not line or line[0] in "#;":
            continue
        eq = line.find("=")
        if eq < 0:
            continue
        key = (line[: eq - 1] if eq > 0 else line).strip(" ")
        value = line[eq + 1:].strip(" ")
        if key and value:
            result[key] = value
    return result


def stat_mtime(path: str) -> int:
    """Modification time of ``path`` in nanoseconds, 0 if it does not exist.

    A file whose mtime lies in the epoch's first second reports 1, so that it
    is not mistaken for a missing file.
    """
    try:
        st = os.stat(path)
    except (FileNotFoundError, NotADirectoryError):
        return 0
    if st.st_mtime_ns // 1_000_000_000 == 0:
        return 1
    return st.st_mtime_ns


def set_permission(path: str, mode: str) -> None:
    """Set the permission bits of ``path`` from the octal digits found in ``mode``."""
    bits = 0
    for ch in mode:
        if "0" <= ch <= "7":
            bits = bits * 8 + int(ch)
    os.chmod(path, bits)


def absolute_label(label: str, base: str) -> str:
    """Resolve ``label`` (``:lib``, ``../:lib``, ``../../pkg``) against ``base``.

    Labels starting with ``@`` or ``/`` are already absolute and returned as is.
    """
    if not label and not base:
        raise LabelError("Invalid label : empty label and base")
    if label and label[0] in "@/":
        return label

    colon = base.rfind(":")
    if colon >= 0:
        base = base[:colon]

    raw = f"{base}/{label}"
    name_part = ""
    colon = raw.rfind(":")
    if colon >= 0:
        raw, name_part = raw[:colon], raw[colon:]

    root = raw.find("//")
    if root < 0 or not (root == 0 or raw[0] == "@"):
        raise LabelError(f"Invalid label : {base} {label}")

    resolved = raw[: root + 1]
    marks = [len(resolved)]
    for part in raw[len(resolved):].split("/"):
        if part == "..":
            marks.pop()
            if not marks:
                raise LabelError(f"Invalid label : {base} {label}")
            resolved = resolved[: marks[-1]]
        elif part and part != ".":
            resolved += "/" + part
            marks.append(len(resolved))

    return resolved + ("/" if len(marks) == 1 else "") + name_part


def remove_duplicates(items: Iterable[str]) -> List[str]:
    """Drop repeated entries, keeping the first occurrence of each in order."""
    return list(dict.fromkeys(items))


def get_lowercase_extension(filename: str) -> str:
    """Text after the last ``.``, with ASCII letters lowered; empty if there is no dot."""
    dot = filename.rfind(".")
    if dot < 0:
        return ""
    return filename[dot + 1:].translate(_ASCII_LOWER)


def _preferred_separators(path: str) -> str:
    return path.replace("\\", os.sep).replace("/", os.sep)


def win_copy(src: str, dst: str) -> int:
    """Copy a file or folder with the Windows ``copy``/``xcopy`` commands.

    Returns the command's exit status, or -1 if it could not be started.
    """
    src = _preferred_separators(src)
    dst = _preferred_separators(dst)
    try:
        if os.path.isdir(src):
            cmd = f'xcopy /S /E /H /Y /F /I "{src}" "{dst}"'
        else:
            cmd = f'copy /Y "{src}" "{dst}"'
        return subprocess.run(cmd, shell=True, check=False).returncode
    except (OSError, ValueError):
        return -1