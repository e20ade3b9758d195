# HaxOS — Cooperative Task Kernel and Virtual Network Simulator
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Banner grabbing: bannergrab ADDRESS PORT

Opens a session with a null packet, prints whatever the service answers
first, then closes the session with another null packet.
"""

from __future__ import annotations

from ..errors import AddressError
from ..task import Task
from ..utils import is_integer


class BannerGrab(Task):
    """Print the greeting of a remote service."""

    def start(self) -> None:
        self.terminal.writeln("&w-BannerGrab v1.0 banner grabbing tool&00")
        if len(self.args) < 2 or not is_integer(self.args[1]):
            self.terminal.writeln("&y-Usage: bannergrab ADDRESS PORT&00")
            return
        try:
            request = self.kernel.new_datagram(self.args[0], int(self.args[1]))
        except (AddressError, ValueError) as e:
            self.terminal.writeln(f"&r-bannergrab: {e}&00")
            return

        with self.kernel.open_sync_port(owner=self) as channel:
            try:
                response = channel.query(request)
                if response is None:
                    self.terminal.writeln("&w-grabbed banner: &r-NONE&00")
                elif response.is_null:
                    self.terminal.writeln("&w-grabbed banner: &g-EMPTY&00")
                else:
                    self.terminal.writeln(f"&w-grabbed banner: &g-{response.text}&00")
            finally:
                channel.publish(request)
