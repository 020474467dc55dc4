import pytest

from cgn.configuration import Configuration, ConfigurationLockedError


def test_set_and_get():
    cfg = Configuration()
    cfg["os"] = "linux"
    assert cfg["os"] == "linux"
    assert cfg.get("cpu") == ""
    assert len(cfg) == 1


def test_constructor_values():
    cfg = Configuration({"os": "linux", "cpu": "x86_64"})
    assert sorted(cfg.items()) == [("cpu", "x86_64"), ("os", "linux")]


def test_empty_value_removes_key():
    cfg = Configuration({"os": "linux"})
    cfg["os"] = ""
    assert len(cfg) == 0
    assert cfg.hash_helper == 0
    cfg["missing"] = ""
    assert len(cfg) == 0


def test_hash_helper_depends_only_on_content():
    a = Configuration()
    a["x"] = "one"
    a["y"] = "two"
    b = Configuration()
    b["y"] = "two"
    b["x"] = "zero"
    b["x"] = "one"
    assert a.hash_helper == b.hash_helper
    a["x"] = ""
    a["y"] = ""
    assert a.hash_helper == 0


def test_assignment_clears_id():
    cfg = Configuration({"os": "linux"})
    cfg.id = "ABCD"
    cfg["os"] = "linux"
    assert cfg.id == "ABCD"
    cfg["os"] = "mac"
    assert cfg.id == ""


def test_copy_moves_everything_to_remain():
    cfg = Configuration({"os": "linux", "cpu": "arm64"})
    cfg.id = "ID1"
    clone = cfg.copy()
    assert clone.id == "ID1"
    assert clone.hash_helper == cfg.hash_helper
    assert dict(clone.visited) == {}
    assert len(clone) == 2
    assert not clone.locked


def test_trim_lock_drops_unvisited():
    cfg = Configuration({"os": "linux", "cpu": "arm64"}).copy()
    assert cfg["os"] == "linux"
    cfg.trim_lock()
    assert cfg.locked
    assert cfg.items() == [("os", "linux")]
    assert cfg["cpu"] == ""
    assert cfg.hash_helper == Configuration({"os": "linux"}).hash_helper


def test_locked_rejects_assignment():
    cfg = Configuration({"os": "linux"})
    cfg.trim_lock()
    with pytest.raises(ConfigurationLockedError, match="Configuration locked."):
        cfg["os"] = "mac"
    assert cfg["os"] == "linux"
    assert cfg.locked


def test_contains_visits_key():
    cfg = Configuration({"os": "linux"}).copy()
    assert "os" in cfg
    assert "cpu" not in cfg
    assert dict(cfg.visited) == {"os": "linux"}


def test_contains_when_locked_only_visited():
    cfg = Configuration({"os": "linux"}).copy()
    cfg.trim_lock()
    assert "os" not in cfg


def test_visit_keys_from_other():
    cfg = Configuration({"os": "linux", "cpu": "arm64", "opt": "on"}).copy()
    other = Configuration({"os": "x", "opt": "y"})
    cfg.visit_keys(other)
    assert sorted(cfg.visited) == ["opt", "os"]


def test_visit_all_keys_then_lock_keeps_all():
    cfg = Configuration({"os": "linux", "cpu": "arm64"}).copy()
    cfg.visit_all_keys()
    cfg.trim_lock()
    assert sorted(cfg) == ["cpu", "os"]


def test_iteration_visits_all():
    cfg = Configuration({"a": "1", "b": "2"}).copy()
    assert sorted(cfg) == ["a", "b"]
    assert sorted(cfg.visited) == ["a", "b"]
    with pytest.raises(TypeError):
        cfg.visited["c"] = "3"


def test_copy_is_independent():
    cfg = Configuration({"a": "1"})
    clone = cfg.copy()
    clone["a"] = "2"
    assert cfg["a"] == "1"
    assert clone["a"] == "2"