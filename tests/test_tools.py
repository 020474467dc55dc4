import os
import shlex
import subprocess
import sys
from unittest import mock

import pytest

from cgn import tools
from cgn.tools import (
    HostInfo,
    LabelError,
    absolute_label,
    get_host_info,
    get_lowercase_extension,
    host_to_u32be,
    locale_path,
    parent_path,
    read_kvfile,
    rebase_path,
    remove_duplicates,
    set_permission,
    shell_escape,
    stat_mtime,
    u32be_to_host,
    win_copy,
)


@pytest.mark.parametrize("value", [0, 1, 0x12345678, 0xFFFFFFFF, 0xA0B0C0D0])
def test_u32be_round_trip(value):
    assert u32be_to_host(host_to_u32be(value)) == value
    assert host_to_u32be(value).to_bytes(4, sys.byteorder) == value.to_bytes(4, "big")


def test_shell_escape_posix_round_trips_through_shlex():
    original = "my file$(x)&[y]{z}'q'\"w\"~!#*?|<>"
    with mock.patch.object(tools, "_IS_WINDOWS", False):
        escaped = shell_escape(original)
    assert shlex.split(escaped) == [original]


def test_shell_escape_posix_leaves_plain_text():
    with mock.patch.object(tools, "_IS_WINDOWS", False):
        assert shell_escape("abc/def.cc") == "abc/def.cc"
        assert shell_escape("$") == "\\$"


def test_shell_escape_windows_caret():
    original = "a,b;c=d%e f"
    with mock.patch.object(tools, "_IS_WINDOWS", True):
        escaped = shell_escape(original)
    assert escaped.replace("^", "") == original
    assert escaped.count("^") == 5
    assert "\\" not in escaped


def test_get_host_info_linux():
    with mock.patch("cgn.tools.sys.platform", "linux"), mock.patch(
        "cgn.tools.platform.machine", return_value="aarch64"
    ):
        info = get_host_info()
    assert info == HostInfo(os="linux", cpu="aarch64")


def test_get_host_info_mac():
    with mock.patch("cgn.tools.sys.platform", "darwin"), mock.patch(
        "cgn.tools.platform.machine", return_value="arm64"
    ):
        info = get_host_info()
    assert (info.os, info.cpu) == ("mac", "arm64")


def test_get_host_info_windows_maps_cpu():
    with mock.patch("cgn.tools.sys.platform", "win32"), mock.patch(
        "cgn.tools.platform.machine", return_value="AMD64"
    ):
        info = get_host_info()
    assert (info.os, info.cpu) == ("win", "x86_64")


def test_locale_path_normalises():
    assert locale_path("a/./b/../c") == os.path.join("a", "c")


def test_locale_path_keeps_trailing_separator():
    result = locale_path("a/b/")
    assert result.endswith(os.sep)
    assert result.rstrip(os.sep) == os.path.join("a", "b")


def test_locale_path_dot_is_empty():
    assert locale_path(".") == ""


def test_rebase_path_absolute(tmp_path):
    target = tmp_path / "a" / "b.txt"
    assert rebase_path(str(target), str(tmp_path)) == os.path.join("a", "b.txt")


def test_rebase_path_empty_base_gives_absolute(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    result = rebase_path("x", "")
    assert os.path.isabs(result)
    assert result == os.path.join(os.getcwd(), "x")


def test_rebase_path_relative_uses_current_base(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert rebase_path("f.c", "out", "src") == os.path.join("..", "src", "f.c")


def test_parent_path(tmp_path):
    assert parent_path(os.path.join("a", "b")) == "a"
    assert parent_path(str(tmp_path / "x")) == str(tmp_path)


def test_read_kvfile(tmp_path):
    path = tmp_path / "kv.txt"
    path.write_text(
        "name = value\n# comment = x\n; other = y\nempty = \n  k2  =  v2 \n\nnoeq\n",
        encoding="utf-8",
    )
    assert read_kvfile(str(path)) == {"name": "value", "k2": "v2"}


def test_read_kvfile_missing(tmp_path):
    assert read_kvfile(str(tmp_path / "missing.txt")) == {}


def test_stat_mtime_missing(tmp_path):
    assert stat_mtime(str(tmp_path / "missing")) == 0


def test_stat_mtime_under_regular_file(tmp_path):
    f = tmp_path / "file"
    f.write_text("x")
    assert stat_mtime(str(f / "child")) == 0


def test_stat_mtime_reports_nanoseconds(tmp_path):
    f = tmp_path / "file"
    f.write_text("x")
    os.utime(f, ns=(5_000_000_000, 5_000_000_000))
    assert stat_mtime(str(f)) == 5_000_000_000
    assert stat_mtime(str(f)) == os.stat(f).st_mtime_ns


def test_stat_mtime_zero_becomes_one(tmp_path):
    f = tmp_path / "file"
    f.write_text("x")
    os.utime(f, ns=(0, 0))
    assert stat_mtime(str(f)) == 1


def test_set_permission_parses_octal_digits(tmp_path):
    f = tmp_path / "file"
    with mock.patch("cgn.tools.os.chmod") as chmod:
        set_permission(str(f), "0755")
    chmod.assert_called_once_with(str(f), 0o755)


def test_absolute_label_source_example():
    assert absolute_label(":lib1", "//hello/cpp1") == "//hello/cpp1:lib1"


def test_absolute_label_passes_absolute_labels():
    assert absolute_label("@cell//proj:x", "//other") == "@cell//proj:x"
    assert absolute_label("//a/b", "//other") == "//a/b"


def test_absolute_label_parent_equivalence():
    assert absolute_label("../:lib1", "//hello/cpp1") == absolute_label(":lib1", "//hello")
    assert absolute_label("./x/../:a", "//p/q") == absolute_label(":a", "//p/q")


def test_absolute_label_strips_base_name_and_keeps_cell():
    result = absolute_label(":x", "@cell//project:lib")
    assert result == absolute_label(":x", "@cell//project")
    assert result.startswith("@cell//")
    assert absolute_label(result, "//unused") == result


def test_absolute_label_too_many_parents():
    with pytest.raises(LabelError):
        absolute_label("../../..", "//a")


def test_absolute_label_invalid_base():
    with pytest.raises(LabelError):
        absolute_label(":x", "project")


def test_remove_duplicates_keeps_first_order():
    assert remove_duplicates(["b", "a", "b", "c", "a"]) == ["b", "a", "c"]
    assert remove_duplicates([]) == []


@pytest.mark.parametrize("name", ["Foo.TXT", "a.b.Cc", "x.cpp"])
def test_get_lowercase_extension(name):
    expected = name.rsplit(".", 1)[1].lower()
    assert get_lowercase_extension(name) == expected


def test_get_lowercase_extension_without_dot():
    assert get_lowercase_extension("Makefile") == ""


def test_win_copy_file_command():
    done = subprocess.CompletedProcess(args="", returncode=3)
    with mock.patch("cgn.tools.subprocess.run", return_value=done) as run:
        rv = win_copy("a/b", "c\\d")
    assert rv == 3
    cmd = run.call_args.args[0]
    assert cmd.startswith("copy /Y ")
    assert f'"{os.path.join("a", "b")}"' in cmd
    assert f'"{os.path.join("c", "d")}"' in cmd


def test_win_copy_directory_command(tmp_path):
    done = subprocess.CompletedProcess(args="", returncode=0)
    with mock.patch("cgn.tools.subprocess.run", return_value=done) as run:
        rv = win_copy(str(tmp_path), str(tmp_path / "dst"))
    assert rv == 0
    assert run.call_args.args[0].startswith("xcopy ")


def test_win_copy_failure_returns_minus_one():
    with mock.patch("cgn.tools.subprocess.run", side_effect=OSError("boom")):
        assert win_copy("a", "b") == -1