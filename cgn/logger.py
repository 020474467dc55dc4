"""Console logger with single-line overprinting and a verbose mode."""

from __future__ import annotations

import os
import shutil
import sys
from collections.abc import Iterable, Mapping
from itertools import islice
from typing import Optional, TextIO

BLACK = "\x1b[30m"
RED = "\x1b[31m"
GREEN = "\x1b[32m"
YELLOW = "\x1b[33m"
BLUE = "\x1b[34m"
PURPLE = "\x1b[35m"
CYAN = "\x1b[36m"
WHITE = "\x1b[37m"
RESET = "\x1b[0m"

_CLEAR_TO_EOL = "\x1b[K"
_ELLIPSIS = "..."


def _detect_color(stream: TextIO) -> bool:
    force = os.environ.get("CLICOLOR_FORCE")
    if force and force != "0":
        return True
    isatty = getattr(stream, "isatty", None)
    if isatty is None or not isatty():
        return False
    return os.environ.get("TERM") != "dumb"


def _elide_middle(text: str, width: int) -> str:
    if len(text) <= width:
        return text
    if width <= len(_ELLIPSIS):
        return text[:width]
    keep = (width - len(_ELLIPSIS)) // 2
    tail = text[len(text) - keep:] if keep else ""
    return text[:keep] + _ELLIPSIS + tail


def fmt_list(items: Iterable, indent: str, maxlen: int = 5) -> str:
    """Format up to ``maxlen`` entries of a list or mapping, followed by the total count."""
    if isinstance(items, Mapping):
        entries = (f"{key}: {value}, " for key, value in items.items())
    else:
        entries = (f"{item}, " for item in items)
    count = len(items)  # type: ignore[arg-type]
    body = ("\n" + indent).join(islice(entries, maxlen))
    return f"{body}({count} element{'s' if count > 1 else ''})"


class Logger:
    """Writes progress lines, overprinting them unless verbose mode is on."""

    def __init__(
        self,
        verbose: bool = False,
        stream: Optional[TextIO] = None,
        width: Optional[int] = None,
    ) -> None:
        self._stream = stream
        self._width = width
        self._have_blank_line = True
        self._supports_color = _detect_color(self.stream)
        self._verbose = False
        self._smart_terminal = True
        self.verbose = verbose

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    @property
    def verbose(self) -> bool:
        return self._verbose

    @verbose.setter
    def verbose(self, enable: bool) -> None:
        self._verbose = bool(enable)
        self._smart_terminal = not self._verbose

    def _terminal_width(self) -> int:
        if self._width is not None:
            return self._width
        return shutil.get_terminal_size().columns

    def fmt_color(self, text: str, color: str = GREEN) -> str:
        """Wrap ``text`` in a colour escape if the output supports colour."""
        return f"{color}{text}{RESET}" if self._supports_color else text

    def println(self, title: str, body: Optional[str] = None, title_color: str = GREEN) -> None:
        """Overprint the current line; print a full paragraph in verbose mode.

        Called with a single argument, that argument is the body.
        """
        if body is None:
            title, body = "", title
        full = (self.fmt_color(title, title_color) if title else "") + body
        if self._verbose:
            self.paragraph(full)
            return
        out = self.stream
        if self._smart_terminal:
            out.write("\r" + _elide_middle(full, self._terminal_width()) + _CLEAR_TO_EOL)
            self._have_blank_line = False
        else:
            out.write(full + "\n")
        out.flush()

    def paragraph(self, text: str) -> None:
        """Print ``text`` on a new line without overprinting earlier output."""
        if not text:
            return
        out = self.stream
        if not self._have_blank_line:
            out.write("\n")
        out.write(text if text.endswith("\n") else text + "\n")
        out.flush()
        self._have_blank_line = True

    def verbose_paragraph(self, text: str) -> None:
        """Same as :meth:`paragraph`, but only in verbose mode."""
        if self._verbose:
            self.paragraph(text)