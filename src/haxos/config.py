# HaxOS — Cooperative Task Kernel and Virtual Network Simulator
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Configuration and data root resolution for HaxOS.

Handles:
- Data root resolution (HAXOS_DATA_HOME, ~/.local/share)
- Packaged YAML defaults loading (haxos/defaults/*.yaml)
- User config overlay (deep merge over the packaged defaults)
- ANSI colour constants and the Hax colour markup table
"""

from __future__ import annotations

import copy
import os
from importlib import resources as importlib_resources
from pathlib import Path
from typing import Any

import yaml

# -----------------------
# Terminal colour constants
# -----------------------

ANSI_COLORS: dict[str, str] = {
    "black": "\033[30m",
    "red": "\033[31m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "blue": "\033[34m",
    "magenta": "\033[35m",
    "cyan": "\033[36m",
    "white": "\033[37;1m",
    "reset": "\033[0m",
    "dim": "\033[2m",
}

ANSI_BACKGROUNDS: dict[str, str] = {
    "black": "\033[40m",
    "red": "\033[41m",
    "green": "\033[42m",
    "yellow": "\033[43m",
    "blue": "\033[44m",
    "magenta": "\033[45m",
    "cyan": "\033[46m",
    "white": "\033[47m",
}

# Hax markup: "&" + foreground letter + background letter.
# "-" leaves a slot unchanged, "&00" resets both.
MARKUP_COLORS: dict[str, str] = {
    "k": "black",
    "r": "red",
    "g": "green",
    "y": "yellow",
    "b": "blue",
    "m": "magenta",
    "c": "cyan",
    "w": "white",
}

MARKUP_RESET = "&00"


# -----------------------
# Config model wrapper
# -----------------------


class YAMLConfig:
    """Simple config wrapper over a nested dict."""

    def __init__(self, config_dict: dict[str, Any]):
        self._config = config_dict

    @property
    def kernel(self) -> dict[str, Any]:
        return self._section("kernel")

    @property
    def network(self) -> dict[str, Any]:
        return self._section("network")

    @property
    def machines(self) -> list[dict[str, Any]]:
        machines = self._config.get("machines", [])
        return machines if isinstance(machines, list) else []

    @property
    def tasks(self) -> dict[str, Any]:
        return self._section("tasks")

    @property
    def ui(self) -> dict[str, Any]:
        return self._section("ui")

    @property
    def logging(self) -> dict[str, Any]:
        return self._section("logging")

    def _section(self, key: str) -> dict[str, Any]:
        val = self._config.get(key, {})
        return val if isinstance(val, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._config.get(key, default)

    def get_path(self, path: str, default: Any = None) -> Any:
        """
        Nested lookup using dot-separated path.
        Example: get_path("kernel.query_timeout_ms", 1000)
        """
        if not path:
            return default

        cur: Any = self._config
        for part in path.split("."):
            if not isinstance(cur, dict):
                return default
            if part not in cur:
                return default
            cur = cur[part]
        return cur

    def as_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self._config)


# -----------------------
# Data root
# -----------------------


def get_data_root() -> Path:
    """Get the data root directory for HaxOS.

    Resolution order:
    1. HAXOS_DATA_HOME environment variable (if set)
    2. ~/.local/share (default, XDG_DATA_HOME is ignored)
    """
    haxos_data_home = os.getenv("HAXOS_DATA_HOME")
    if haxos_data_home:
        root = Path(haxos_data_home)
    else:
        root = Path.home() / ".local" / "share"

    root.mkdir(parents=True, exist_ok=True)
    return root


# -----------------------
# Packaged defaults loading
# -----------------------


def _defaults_dir() -> Path:
    """Return the installed path to the packaged defaults directory."""
    return Path(
        importlib_resources.files("haxos.defaults")
    )  # type: ignore[arg-type]


def resolve_data_path(path: str | Path) -> Path:
    """Host path of a mount source.

    Relative paths point into the packaged defaults (``sample`` is the
    bundled /sample tree); absolute and ``~`` paths are used as given.
    """
    candidate = Path(path).expanduser()
    if candidate.is_absolute():
        return candidate
    return _defaults_dir() / candidate


def _load_yaml_file(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Config YAML {path.name} must load to a mapping/dict.")
    return data


def load_defaults_yaml(filename: str) -> dict[str, Any]:
    """
    Load a YAML file from haxos/defaults/.
    """
    defaults_dir = _defaults_dir()
    path = defaults_dir / filename
    if not path.exists():
        raise FileNotFoundError(
            f"Missing defaults YAML: {filename} "
            f"(looked in {defaults_dir})"
        )
    return _load_yaml_file(path)


def merge_config(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep-merge override into a copy of base. Lists are replaced."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_system_config() -> YAMLConfig:
    """
    Load system.yaml from packaged defaults and return a YAMLConfig wrapper.
    """
    return YAMLConfig(load_defaults_yaml("system.yaml"))


def load_config(path: Path | str | None = None) -> YAMLConfig:
    """Packaged defaults, overlaid with a user YAML file when given."""
    data = load_defaults_yaml("system.yaml")
    if path is not None:
        user_path = Path(path).expanduser()
        if not user_path.exists():
            raise FileNotFoundError(f"Config file not found: {user_path}")
        data = merge_config(data, _load_yaml_file(user_path))
    return YAMLConfig(data)
