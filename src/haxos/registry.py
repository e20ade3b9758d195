# HaxOS — Cooperative Task Kernel and Virtual Network Simulator
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Task registry: command name -> task factory.

The packaged table lives in the ``tasks`` section of system.yaml:

    tasks:
      hello: "haxos.samples.hello:Hello"
      chatserver:
        target: "haxos.samples.chatserver:ChatServer"
        summary: "multi-user chat relay"
"""

from __future__ import annotations

import importlib
import logging
from dataclasses import dataclass
from typing import Any

from .config import load_system_config
from .interfaces import ConfigModel
from .kernel import TaskFactory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaskEntry:
    name: str
    factory: TaskFactory
    summary: str = ""


def resolve_target(target: str) -> Any:
    """Import ``package.module:attr``."""
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Task target must look like 'module:attr', got {target!r}")
    module = importlib.import_module(module_name)
    try:
        return getattr(module, attr)
    except AttributeError:
        raise ValueError(f"{module_name} has no attribute {attr!r}") from None


class TaskRegistry:
    def __init__(self) -> None:
        self._entries: dict[str, TaskEntry] = {}

    def register(self, name: str, factory: TaskFactory, summary: str = "") -> None:
        if not summary:
            doc = (getattr(factory, "__doc__", None) or "").strip()
            summary = doc.splitlines()[0] if doc else ""
        self._entries[name.lower()] = TaskEntry(name.lower(), factory, summary)

    def get(self, name: str) -> TaskFactory | None:
        entry = self._entries.get(name.lower())
        return entry.factory if entry is not None else None

    def summary(self, name: str) -> str:
        entry = self._entries.get(name.lower())
        return entry.summary if entry is not None else ""

    def names(self) -> list[str]:
        return sorted(self._entries)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    @classmethod
    def from_config(cls, cfg: ConfigModel) -> TaskRegistry:
        """Build a registry from the ``tasks`` config section.

        Raises:
            ValueError: for malformed entries or targets that do not import
        """
        registry = cls()
        tasks = cfg.get_path("tasks", {}) or {}
        if not isinstance(tasks, dict):
            raise ValueError("Config section 'tasks' must be a mapping")

        for name, spec in tasks.items():
            summary = ""
            if isinstance(spec, dict):
                summary = str(spec.get("summary", ""))
                spec = spec.get("target")
            if not isinstance(spec, str):
                raise ValueError(f"Task {name!r} has no target")
            try:
                factory = resolve_target(spec)
            except ImportError as e:
                raise ValueError(f"Task {name!r}: cannot import {spec}: {e}") from e
            registry.register(str(name), factory, summary)

        logger.debug("Registered %d tasks", len(registry))
        return registry


def default_registry() -> TaskRegistry:
    """Registry built from the packaged system.yaml."""
    return TaskRegistry.from_config(load_system_config())
