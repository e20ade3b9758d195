# HaxOS — Cooperative Task Kernel and Virtual Network Simulator
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Protocol definitions for dependency injection.

These interfaces separate the kernel from its external collaborators:
the storage engine, the display behind a terminal and the configuration
source.
"""

from __future__ import annotations

from typing import Any, Protocol


class Storage(Protocol):
    """Protocol for the file system behind the kernel facade.

    Paths given to a Storage are always absolute and normalised.
    """

    def read(self, path: str) -> str | None:
        """Return file content, or None if there is no such file."""
        ...

    def write(self, path: str, content: str) -> None:
        """Create or replace a file (parent directories are implicit)."""
        ...

    def exists(self, path: str) -> bool:
        """True for files and directories."""
        ...

    def is_dir(self, path: str) -> bool:
        """True if path is a directory."""
        ...

    def list_dir(self, path: str) -> list[str] | None:
        """Sorted child names, or None if path is not a directory."""
        ...


class Display(Protocol):
    """Protocol for the output side of a terminal."""

    def write(self, text: str) -> None:
        """Emit text exactly as given (no newline added)."""
        ...


class ConfigModel(Protocol):
    """Protocol for configuration access."""

    def get_path(self, path: str, default: Any = None) -> Any:
        """Dotted-path lookup with default."""
        ...
