"""Command line entry point."""

from __future__ import annotations

import os
import shutil
import sys
from typing import Dict, List, Optional, Sequence, Tuple

from .fileglob import file_glob
from .tools import absolute_label, rebase_path, win_copy

SINGLE_OPTIONS = frozenset({"scriptcc_debug", "verbose", "winenv"})
SHORT_OPTIONS = {"C": "cgn-out", "V": "verbose"}
DEFAULT_CGN_OUT = "cgn-out"
ROOT_STAMP = ".cgn_out_root.stamp"

_ANALYSIS_COMMANDS = frozenset({"analyse", "analyze", "build", "run", "query", "preload"})

_HELP = (
    "     analyse <target_label>\n"
    "     build   <target_label>\n"
    "     run     <target_label>\n"
    "     query   <target_label> <config name>\n"
    "     preload\n"
    "     clean\n"
    "  Options:\n"
    "     -C / --cgn-out + <dir_name>\n"
    "     -V / --verbose\n"
    "     --winenv\n"
    "     --scriptcc_debug\n"
    "     --scriptcc + xxx.exe\n"
)


class UsageError(ValueError):
    """Raised for a command line that cannot be parsed."""


def parse_args(argv: Sequence[str]) -> Tuple[List[str], Dict[str, str]]:
    """Split ``argv`` into positional arguments and options.

    Options start with ``-`` or ``--``; flags take no value, every other
    option takes the next argument. ``cgn-out`` defaults to ``cgn-out``.
    """
    args: List[str] = []
    options: Dict[str, str] = {}
    items = iter(argv)
    for item in items:
        if not item.startswith("-"):
            args.append(item)
            continue
        key = item[2:] if item.startswith("--") else item[1:]
        key = SHORT_OPTIONS.get(key, key)
        if key in SINGLE_OPTIONS:
            options[key] = ""
            continue
        value = next(items, None)
        if value is None:
            raise UsageError(f"option '{item}' requires a value")
        options[key] = value

    if "cgn-out" in options:
        if not options["cgn-out"]:
            raise UsageError("Invalid cgn-out dir")
    else:
        options["cgn-out"] = DEFAULT_CGN_OUT
    return args, options


def show_helper(prog: str) -> int:
    """Print usage to standard error and return the failure status."""
    sys.stderr.write(f"{prog}\n{_HELP}\n")
    sys.stderr.flush()
    return 1


def _run_tool(prog: str, args: List[str]) -> int:
    if len(args) == 4 and args[1] == "abslabel":
        print(absolute_label(args[2], args[3]))
        return 0
    if len(args) > 4 and args[1] == "rebase":
        print(rebase_path(args[2], args[3], args[4]))
        return 0
    if len(args) == 4 and args[1] == "wincp":
        return win_copy(args[2], args[3])
    if len(args) == 3 and args[1] == "fileglob":
        for path in file_glob(args[2]):
            print(path)
        return 0
    return show_helper(prog)


def _clean(cgn_out: str) -> int:
    print("Cleaning...")
    if os.path.exists(os.path.join(cgn_out, ROOT_STAMP)):
        shutil.rmtree(cgn_out)
    else:
        sys.stderr.write(
            f"{cgn_out}\nWarning: it seems not a cgn-out folder, do nothing.\n"
        )
    return 0


def _analysis_command(prog: str, args: List[str]) -> int:
    command = args[0]
    if command in ("analyse", "analyze", "build", "run") and len(args) != 2:
        return show_helper(prog)
    if command == "query" and len(args) < 2:
        return show_helper(prog)
    sys.stderr.write(f"'{command}' needs the target analysis engine, which is not available.\n")
    return 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the command line; return the process exit status."""
    prog = os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else "cgn"
    if argv is None:
        argv = sys.argv[1:]

    try:
        args, options = parse_args(argv)
    except UsageError as exc:
        sys.stderr.write(f"{exc}\n")
        return show_helper(prog)
    if not args:
        return show_helper(prog)

    command = args[0]
    try:
        if command in _ANALYSIS_COMMANDS:
            return _analysis_command(prog, args)
        if command == "tool":
            return _run_tool(prog, args)
        if command == "clean":
            return _clean(options["cgn-out"])
    except Exception as exc:  # report every failure on the console
        sys.stderr.write(f"\n---EXCEPTION---\n{exc}\n")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())