# HaxOS — Cooperative Task Kernel and Virtual Network Simulator
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

from __future__ import annotations

from ..task import InteractiveTask


class Greeting(InteractiveTask):
    """Ask for a name and greet it."""

    def start(self) -> None:
        super().start()
        self.terminal.writeln("What is your name?")

    def stop(self) -> None:
        self.terminal.writeln("Bye!")
        super().stop()

    def handle(self, data: bytes) -> None:
        if data:
            self.terminal.writeln(f"Hello {self.to_text(data)}!")
        self.stop_self()
