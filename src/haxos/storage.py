# HaxOS — Cooperative Task Kernel and Virtual Network Simulator
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
In-memory storage implementation for HaxOS.

Machines in the simulator have no persistent disks: content lives for the
lifetime of the process. Host files can be copied in with mount().
"""

from __future__ import annotations

import logging
import posixpath
from pathlib import Path

logger = logging.getLogger(__name__)


def normalize_path(path: str) -> str:
    """Absolute, POSIX-normalised form ("/" for the root)."""
    return posixpath.normpath("/" + path.replace("\\", "/").lstrip("/"))


class MemoryStorage:
    """Memory implementation of the Storage protocol.

    Directories are implicit: a directory exists as long as some file lives
    under it, or it was created explicitly with make_dir().
    """

    def __init__(self, files: dict[str, str] | None = None):
        self._files: dict[str, str] = {}
        self._dirs: set[str] = {"/"}
        for path, content in (files or {}).items():
            self.write(path, content)

    # ----------------------------------------------------------------
    # Storage protocol
    # ----------------------------------------------------------------

    def read(self, path: str) -> str | None:
        return self._files.get(normalize_path(path))

    def write(self, path: str, content: str) -> None:
        path = normalize_path(path)
        if path in self._dirs:
            raise IsADirectoryError(path)
        self._files[path] = content
        self._add_parents(path)

    def exists(self, path: str) -> bool:
        path = normalize_path(path)
        return path in self._files or path in self._dirs

    def is_dir(self, path: str) -> bool:
        return normalize_path(path) in self._dirs

    def list_dir(self, path: str) -> list[str] | None:
        path = normalize_path(path)
        if path not in self._dirs:
            return None
        prefix = path.rstrip("/") + "/"
        children = set()
        for entry in list(self._files) + list(self._dirs):
            if entry != path and entry.startswith(prefix):
                children.add(entry[len(prefix):].split("/", 1)[0])
        return sorted(children)

    # ----------------------------------------------------------------
    # Extras
    # ----------------------------------------------------------------

    def make_dir(self, path: str) -> None:
        path = normalize_path(path)
        if path in self._files:
            raise NotADirectoryError(path)
        self._dirs.add(path)
        self._add_parents(path)

    def remove(self, path: str) -> bool:
        return self._files.pop(normalize_path(path), None) is not None

    def mount(self, mount_point: str, source: Path | str) -> int:
        """Copy a host file or directory tree into storage.

        Args:
            mount_point: destination path inside the machine
            source: host file or directory (text files, UTF-8)

        Returns:
            Number of files copied
        """
        source = Path(source)
        mount_point = normalize_path(mount_point)
        if not source.exists():
            raise FileNotFoundError(f"Mount source not found: {source}")

        if source.is_file():
            self.write(mount_point, source.read_text(encoding="utf-8"))
            return 1

        self.make_dir(mount_point)
        count = 0
        for host_path in sorted(source.rglob("*")):
            if host_path.name.startswith("__"):
                continue
            relative = host_path.relative_to(source).as_posix()
            target = posixpath.join(mount_point, relative)
            if host_path.is_dir():
                self.make_dir(target)
            else:
                self.write(target, host_path.read_text(encoding="utf-8"))
                count += 1
        logger.debug("Mounted %s at %s (%d files)", source, mount_point, count)
        return count

    def _add_parents(self, path: str) -> None:
        parent = posixpath.dirname(path)
        while parent not in self._dirs:
            self._dirs.add(parent)
            parent = posixpath.dirname(parent)
