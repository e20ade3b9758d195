# HaxOS — Cooperative Task Kernel and Virtual Network Simulator
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""Interactive client for datagram services: telnet ADDRESS PORT"""

from __future__ import annotations

from ..channel import AsyncChannel, close_channel
from ..datagram import Datagram
from ..errors import AddressError
from ..task import InteractiveTask
from ..utils import is_integer


class Telnet(InteractiveTask):
    """Connect the terminal to a remote service."""

    def __init__(self, context) -> None:
        super().__init__(context)
        self.channel: AsyncChannel | None = None
        self.remote: Datagram | None = None

    def start(self) -> None:
        super().start()
        if len(self.args) < 2 or not is_integer(self.args[1]):
            self.terminal.writeln("&y-Usage: telnet ADDRESS PORT&00")
            self.stop_self()
            return
        try:
            self.remote = self.kernel.new_datagram(self.args[0], int(self.args[1]))
        except (AddressError, ValueError) as e:
            self.terminal.writeln(f"&r-telnet: {e}&00")
            self.stop_self()
            return

        self.channel = self.kernel.open_port(owner=self)
        self.channel.subscribe(self.receive)
        self.terminal.writeln(
            f"&w-connected to {self.remote.address_string}:{self.remote.port}, "
            f"press ESC to disconnect&00"
        )
        self.channel.publish(self.remote)

    def stop(self) -> None:
        close_channel(self.channel)
        self.channel = None
        super().stop()

    def handle(self, data: bytes) -> None:
        if not data:
            self.channel.publish(self.remote)
            self.terminal.writeln("&w-connection closed&00")
            self.stop_self()
            return
        self.channel.publish(self.remote.with_data(data))

    def receive(self, datagram: Datagram) -> None:
        if datagram.key != self.remote.key:
            return
        if datagram.is_null:
            self.channel.publish(self.remote)
            self.terminal.writeln("&w-connection closed by remote host&00")
            self.stop_self()
            return
        self.terminal.write(datagram.data.decode("utf-8", errors="replace"))
