"""Writer for ninja build files. Sections are emitted verbatim, without escaping."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Union

_WORD = re.compile(r"[^ \t\n]*[ \t\n]|[^ \t\n]+")
_ESCAPED = {"\n", " ", "$"}


def _render_variables(variables: dict) -> str:
    return "".join(f"\n    {key} = {value}" for key, value in variables.items())


@dataclass
class BuildSection:
    """``build <outputs> | <implicit> : <rule> <inputs> | <implicit> || <order-only>``."""

    rule: str = ""
    outputs: List[str] = field(default_factory=list)
    implicit_outputs: List[str] = field(default_factory=list)
    inputs: List[str] = field(default_factory=list)
    implicit_inputs: List[str] = field(default_factory=list)
    order_only: List[str] = field(default_factory=list)
    variables: dict = field(default_factory=dict)

    def render(self) -> str:
        if not self.outputs or not self.rule:
            raise ValueError("NinjaFile: empty outputs or rule.")

        def words(items: Iterable[str]) -> str:
            return "".join(f"{item} " for item in items)

        text = "build " + words(self.outputs)
        if self.implicit_outputs:
            text += "|" + words(self.implicit_outputs)
        text += f": {self.rule} " + words(self.inputs)
        if self.implicit_inputs:
            text += "|" + words(self.implicit_inputs)
        if self.order_only:
            text += "||" + words(self.order_only)
        return text + _render_variables(self.variables)


@dataclass
class RuleSection:
    name: str = ""
    command: str = ""
    generator: bool = False
    variables: dict = field(default_factory=dict)

    def render(self) -> str:
        return f"rule {self.name}\n    command = {self.command}" + _render_variables(self.variables)


@dataclass
class CommentSection:
    """A comment, word-wrapped at ``word_wrap`` columns; negative disables wrapping."""

    comment: str = ""
    word_wrap: int = 80

    def render(self) -> str:
        if self.word_wrap < 0:
            return self.comment
        lines: List[str] = []
        line = ""
        for match in _WORD.finditer(self.comment):
            token = match.group()
            word_len = len(token.rstrip(" \t\n")) if token[-1] in " \t\n" else len(token)
            if line and len(line) + word_len > self.word_wrap:
                lines.append("# " + line)
                line = ""
            line += token
        if line:
            lines.append("# " + line)
        return "\n".join(lines)


@dataclass
class IncludeSection:
    file: str = ""

    def render(self) -> str:
        return f"include {self.file}"


@dataclass
class Subninja:
    file: str = ""

    def render(self) -> str:
        return f"subninja {self.file}"


@dataclass
class GlobalVariable:
    key: str = ""
    value: str = ""

    def render(self) -> str:
        return f"{self.key} = {self.value}"


Section = Union[BuildSection, RuleSection, CommentSection, IncludeSection, Subninja, GlobalVariable]


class NinjaFile:
    """A ninja file assembled from sections and written by :meth:`flush`.

    Used as a context manager it is flushed on exit.
    """

    def __init__(self, filepath: Union[str, os.PathLike]) -> None:
        self.filepath = os.fspath(filepath)
        self.sections: List[Section] = []
        self._includes: List[IncludeSection] = []

    def _append(self, section):
        self.sections.append(section)
        return section

    def append_build(self) -> BuildSection:
        return self._append(BuildSection())

    def append_rule(self) -> RuleSection:
        return self._append(RuleSection())

    def append_comment(self, comment: str = "") -> CommentSection:
        return self._append(CommentSection(comment=comment))

    def append_include(self, file: str = "") -> IncludeSection:
        section = self._append(IncludeSection(file=file))
        self._includes.append(section)
        return section

    def append_subninja(self, file: str = "") -> Subninja:
        return self._append(Subninja(file=file))

    def append_variable(self, key: str = "", value: str = "") -> GlobalVariable:
        return self._append(GlobalVariable(key=key, value=value))

    def is_file_included(self, file: str) -> bool:
        return any(section.file == file for section in self._includes)

    def render(self) -> str:
        return "".join(section.render() + "\n\n" for section in self.sections)

    def flush(self) -> None:
        """Write all sections to the file, creating its directory if needed."""
        parent = os.path.dirname(self.filepath)
        if parent and not os.path.exists(parent):
            os.makedirs(parent, exist_ok=True)
        text = self.render()
        with open(self.filepath, "w", encoding="utf-8", newline="\n") as fout:
            fout.write(text)

    def __enter__(self) -> "NinjaFile":
        return self

    def __exit__(self, *args) -> None:
        self.flush()


def parse_ninja_str(text: str) -> str:
    """Undo ninja escaping of newline, space and dollar."""
    out: List[str] = []
    chars = iter(text)
    for ch in chars:
        if ch != "$":
            out.append(ch)
            continue
        nxt = next(chars, None)
        if nxt is None:
            out.append(ch)
        elif nxt in _ESCAPED:
            out.append(nxt)
        else:
            out.append(ch)
            out.append(nxt)
    return "".join(out)


def escape_path(text: str) -> str:
    """Escape newline, space and dollar with a leading ``$``."""
    return "".join(f"${ch}" if ch in _ESCAPED else ch for ch in text)


def escape_paths(items: Iterable[str]) -> List[str]:
    return [escape_path(item) for item in items]