# HaxOS — Cooperative Task Kernel and Virtual Network Simulator
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Log file setup and the crash log.

- configure_logging(): one file handler under <data_root>/haxos/logs
- write_crash_log(): append-only record of faults raised by task code
"""

from __future__ import annotations

import logging
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any

from . import config as cfg_module

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def logs_dir() -> Path:
    """<data_root>/haxos/logs (not created here)."""
    return cfg_module.get_data_root() / "haxos" / "logs"


def configure_logging(cfg: Any = None, level: str | None = None) -> Path | None:
    """Route the ``haxos`` logger hierarchy to a log file.

    Level resolution: explicit argument, then ``logging.level`` from the
    config, then WARNING. Returns the log file path, or None when
    ``logging.file`` is disabled.
    """
    get_path = getattr(cfg, "get_path", None)
    if level is None and get_path is not None:
        level = get_path("logging.level", None)
    level_name = str(level or "WARNING").upper()

    root = logging.getLogger("haxos")
    root.setLevel(getattr(logging, level_name, logging.WARNING))

    enabled = get_path("logging.file", True) if get_path is not None else True
    if not enabled:
        return None

    directory = logs_dir()
    directory.mkdir(parents=True, exist_ok=True)
    log_path = directory / "haxos.log"

    # Don't stack handlers when called twice (tests, restarts)
    for handler in list(root.handlers):
        if getattr(handler, "_haxos_file", False):
            root.removeHandler(handler)
            handler.close()

    handler = logging.FileHandler(log_path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._haxos_file = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    return log_path


def write_crash_log(
    error: BaseException,
    where: str = "",
    task: str = "",
    machine: str = "",
    args: list[str] | tuple[str, ...] | None = None,
) -> None:
    """Write an entry to the crash log.

    Logs faults raised out of task code (start/stop/handlers) and the
    console loop. Only creates the log directory when actually needed.
    Appends to crash.log (never overwrites).
    """
    try:
        directory = logs_dir()
        directory.mkdir(parents=True, exist_ok=True)
        crash_log_path = directory / "crash.log"

        lines = [datetime.now().isoformat()]
        if where:
            lines.append(f"where={where}")
        if machine:
            lines.append(f"machine={machine}")
        if task:
            lines.append(f"task={task}")
        if args:
            lines.append(f"args={' '.join(args)}")

        lines.append(f"error={type(error).__name__}: {error}")
        lines.append("traceback:")
        lines.append(
            "".join(
                traceback.format_exception(
                    type(error), error, error.__traceback__
                )
            ).rstrip()
        )
        lines.append("----")

        with crash_log_path.open("a", encoding="utf-8") as f:
            f.write("\n".join(lines) + "\n")

    except Exception:
        # If we can't write the crash log, fail silently
        # (we're already in an error state)
        pass
