# cgn

`cgn` holds the building blocks of a build system that names targets with
labels such as `//hello:world` or `@cell//project:lib` and writes ninja build
files for them:

- `cgn.tools`: label resolution (`absolute_label`), path helpers
  (`rebase_path`, `locale_path`, `parent_path`), shell escaping
  (`shell_escape`), `key = value` file reading (`read_kvfile`), file mtimes in
  nanoseconds (`stat_mtime`), permissions from octal digits
  (`set_permission`), host description (`get_host_info`, `HostInfo`) and small
  list and name helpers (`remove_duplicates`, `get_lowercase_extension`);
- `cgn.fileglob`: `file_glob` with `*` inside one path part and a `**`
  prefix on the last part that searches recursively; `match_name` for a
  single name;
- `cgn.ninja_file`: `NinjaFile` assembled from build, rule, comment, include,
  subninja and variable sections, plus `escape_path`, `escape_paths` and
  `parse_ninja_str`;
- `cgn.configuration`: `Configuration`, a key/value mapping that tracks which
  keys were read and can be trimmed and locked (`trim_lock`); a locked one
  raises `ConfigurationLockedError` on change;
- `cgn.configuration_mgr`: `ConfigurationManager`, which commits locked
  configurations under content-derived ids, writes them as `<id>.cfg` files,
  reads them back and assigns names;
- `cgn.graph`: `Graph` of `GraphNode`s with `NodeStatus` (Latest, Stale,
  Unknown) decided from file mtimes and inbound edges, stored in a binary
  database file (`db_load`, `db_flush`, `close`);
- `cgn.filedb`: the block layout of that database (`parse_db` and the
  `encode_*` functions);
- `cgn.cgn_type`: analysis results, `CGNTarget`, with `InfoTable` entries such
  as `LinkAndRunInfo`;
- `cgn.logger`: `Logger`, a console logger that overprints one line or prints
  paragraphs in verbose mode, and `fmt_list`.

## Installing

```
pip install .
```

## Command line

```
cgn tool abslabel <label> <base>
cgn tool rebase <path> <new_base> <current_base>
cgn tool fileglob <pattern>
cgn tool wincp <src> <dst>
cgn clean
```

- `tool abslabel` prints the label resolved against the base label.
- `tool rebase` prints the path expressed relative to `new_base`, a relative
  path being taken as inside `current_base`.
- `tool fileglob` prints every file matching the pattern.
- `tool wincp` copies with the Windows `copy`/`xcopy` commands and returns
  their exit status.
- `clean` removes the output directory, but only when it holds the
  `.cgn_out_root.stamp` marker.

Options: `-C` / `--cgn-out <dir>` sets the output directory used by `clean`
(default `cgn-out`). `-V` / `--verbose`, `--winenv`, `--scriptcc_debug` and
`--scriptcc <compiler>` are accepted but have no effect on the commands above.

## What is not included

There is no target analysis engine: build scripts are not compiled or loaded,
and targets are not analysed or built. The commands `analyse` (or `analyze`),
`build`, `run`, `query` and `preload` check their arguments, then report that
the analysis engine is not available and exit with status 1. `ninja` is never
run.

## Library use

```python
from cgn.tools import absolute_label
from cgn.ninja_file import NinjaFile

absolute_label(":lib1", "//hello/cpp1")     # '//hello/cpp1:lib1'

with NinjaFile("out/build.ninja") as ninja:
    rule = ninja.append_rule()
    rule.name, rule.command = "cc", "cc -c $in -o $out"
    build = ninja.append_build()
    build.rule = "cc"
    build.outputs.append("a.o")
    build.inputs.append("a.c")
```

The file is written when the `with` block ends (or on `flush()`). Sections
are written as given: paths are not escaped for you; use `escape_path` where
needed.

## Tests

```
pip install .[test]
pytest
```