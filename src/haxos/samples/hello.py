# HaxOS — Cooperative Task Kernel and Virtual Network Simulator
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""Prints a greeting and exits."""

from __future__ import annotations

from ..task import Task


class Hello(Task):
    """Print "Hello world" and exit."""

    def start(self) -> None:
        self.terminal.writeln("Hello world")
