import os

import pytest

from cgn.cli import UsageError, main, parse_args, show_helper


def test_parse_args_defaults_cgn_out():
    args, options = parse_args(["build", "//hello:world"])
    assert args == ["build", "//hello:world"]
    assert options == {"cgn-out": "cgn-out"}


def test_parse_args_short_options_expand():
    args, options = parse_args(["-C", "out_dir", "-V", "analyse", "//a:b"])
    assert args == ["analyse", "//a:b"]
    assert options["cgn-out"] == "out_dir"
    assert options["verbose"] == ""


def test_parse_args_long_value_and_flags():
    _, options = parse_args(["--scriptcc", "clang++", "--winenv", "--scriptcc_debug", "x"])
    assert options["scriptcc"] == "clang++"
    assert options["winenv"] == ""
    assert options["scriptcc_debug"] == ""


def test_parse_args_missing_value_raises():
    with pytest.raises(UsageError):
        parse_args(["build", "--scriptcc"])


def test_parse_args_empty_cgn_out_raises():
    with pytest.raises(UsageError):
        parse_args(["--cgn-out", "", "build"])


def test_show_helper_returns_one(capsys):
    assert show_helper("prog") == 1
    err = capsys.readouterr().err
    assert err.startswith("prog\n")
    assert "-C / --cgn-out + <dir_name>" in err


def test_main_without_command_shows_help(capsys):
    assert main([]) == 1
    assert "Options:" in capsys.readouterr().err


def test_main_missing_option_value_shows_help(capsys):
    assert main(["build", "-C"]) == 1
    assert "Options:" in capsys.readouterr().err


def test_tool_abslabel(capsys):
    assert main(["tool", "abslabel", ":lib1", "//hello/cpp1"]) == 0
    assert capsys.readouterr().out == "//hello/cpp1:lib1\n"


def test_tool_abslabel_invalid_reports_exception(capsys):
    assert main(["tool", "abslabel", "x", "noroot"]) == 1
    assert "---EXCEPTION---" in capsys.readouterr().err


def test_tool_unknown_shows_help(capsys):
    assert main(["tool", "nothing"]) == 1
    assert "Options:" in capsys.readouterr().err


def test_tool_fileglob(tmp_path, monkeypatch, capsys):
    (tmp_path / "a.txt").write_text("a")
    (tmp_path / "b.log").write_text("b")
    monkeypatch.chdir(tmp_path)
    assert main(["tool", "fileglob", "*.txt"]) == 0
    assert capsys.readouterr().out.splitlines() == ["a.txt"]


def test_clean_removes_marked_folder(tmp_path, capsys):
    out = tmp_path / "out"
    out.mkdir()
    (out / ".cgn_out_root.stamp").write_text("")
    assert main(["-C", str(out), "clean"]) == 0
    assert not out.exists()
    assert "Cleaning..." in capsys.readouterr().out


def test_clean_keeps_unmarked_folder(tmp_path, capsys):
    out = tmp_path / "out"
    out.mkdir()
    assert main(["--cgn-out", str(out), "clean"]) == 0
    assert out.is_dir()
    assert "it seems not a cgn-out folder" in capsys.readouterr().err


@pytest.mark.parametrize("argv", [["build"], ["analyse", "a", "b"], ["run"], ["query"]])
def test_analysis_commands_check_arguments(argv, capsys):
    assert main(argv) == 1
    assert "Options:" in capsys.readouterr().err


def test_unknown_command_is_ignored(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert main(["gn"]) == 0
    assert os.listdir(tmp_path) == []