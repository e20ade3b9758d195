from __future__ import annotations

import os
from pathlib import Path

import pytest

from haxos import config


@pytest.fixture
def tmp_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = tmp_path / "home"
    home.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("HOME", str(home))
    return home


def test_get_data_root_prefers_haxos_data_home(haxos_data_home: Path) -> None:
    """
    HAXOS_DATA_HOME wins when present.
    """
    assert config.get_data_root() == haxos_data_home


def test_get_data_root_defaults_to_local_share_and_ignores_xdg(
    tmp_home: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """
    If HAXOS_DATA_HOME is not set:
    - ignore XDG_DATA_HOME
    - default to ~/.local/share
    """
    monkeypatch.delenv("HAXOS_DATA_HOME", raising=False)
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_home / "xdg_should_be_ignored"))

    expected = Path(os.path.expanduser("~")) / ".local" / "share"
    assert config.get_data_root() == expected
    assert expected.is_dir()


def test_packaged_defaults_describe_the_sample_network() -> None:
    cfg = config.load_system_config()

    assert cfg.get_path("kernel.query_timeout_ms") == 1000
    assert cfg.network["subnet"] == "192.168.1.0/24"
    names = [m["name"] for m in cfg.machines]
    assert names == ["workstation1", "workstation2", "server1"]
    assert "rtaskd 1030 authenticate" in cfg.machines[2]["startup"]
    assert "sh" in cfg.tasks
    assert cfg.logging["level"] == "WARNING"
    assert isinstance(cfg.ui["theme"]["style"], dict)


def test_missing_defaults_file_is_reported() -> None:
    with pytest.raises(FileNotFoundError):
        config.load_defaults_yaml("nope.yaml")


def test_get_path() -> None:
    cfg = config.YAMLConfig({"a": {"b": {"c": 1}}, "flat": 2})
    assert cfg.get_path("a.b.c") == 1
    assert cfg.get_path("a.x", "dflt") == "dflt"
    assert cfg.get_path("flat.deeper", 0) == 0
    assert cfg.get_path("", 5) == 5
    assert cfg.get("flat") == 2
    assert cfg.kernel == {}
    assert cfg.machines == []


def test_as_dict_is_a_copy() -> None:
    cfg = config.YAMLConfig({"a": {"b": 1}})
    copy = cfg.as_dict()
    copy["a"]["b"] = 2
    assert cfg.get_path("a.b") == 1


def test_merge_config_is_deep_and_replaces_lists() -> None:
    base = {"kernel": {"query_timeout_ms": 1000, "ephemeral_ports": {"low": 1}}, "machines": [1, 2]}
    override = {"kernel": {"query_timeout_ms": 50}, "machines": [3]}

    merged = config.merge_config(base, override)

    assert merged == {
        "kernel": {"query_timeout_ms": 50, "ephemeral_ports": {"low": 1}},
        "machines": [3],
    }
    assert base["kernel"]["query_timeout_ms"] == 1000


def test_load_config_overlays_user_file(tmp_path: Path) -> None:
    user = tmp_path / "haxos.yaml"
    user.write_text(
        "kernel:\n  query_timeout_ms: 250\n"
        "machines:\n  - name: solo\n    address: 192.168.1.99\n    terminal: true\n",
        encoding="utf-8",
    )
    cfg = config.load_config(user)

    assert cfg.get_path("kernel.query_timeout_ms") == 250
    assert cfg.get_path("kernel.ephemeral_ports.low") == 49152
    assert [m["name"] for m in cfg.machines] == ["solo"]


def test_load_config_errors(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        config.load_config(tmp_path / "missing.yaml")

    bad = tmp_path / "list.yaml"
    bad.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError):
        config.load_config(bad)


def test_empty_user_file_means_defaults(tmp_path: Path) -> None:
    empty = tmp_path / "empty.yaml"
    empty.write_text("", encoding="utf-8")
    assert config.load_config(empty).as_dict() == config.load_system_config().as_dict()


def test_resolve_data_path(tmp_path: Path) -> None:
    sample = config.resolve_data_path("sample")
    assert (sample / "passwords.lst").is_file()
    assert config.resolve_data_path(tmp_path) == tmp_path


def test_markup_table_covers_ansi_colours() -> None:
    for name in config.MARKUP_COLORS.values():
        assert name in config.ANSI_COLORS
        assert name in config.ANSI_BACKGROUNDS
