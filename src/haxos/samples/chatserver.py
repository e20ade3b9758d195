# HaxOS — Cooperative Task Kernel and Virtual Network Simulator
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Chat relay: chatserver PORT

Clients are tracked by (address, port). Joins and leaves are announced to
everyone, including the client concerned; messages go to every other
client prefixed with the sender's tag:

    [192.168.1.10:49152] : has joined
    [192.168.1.10:49152] : hello all
"""

from __future__ import annotations

import logging

from ..channel import AsyncChannel, close_channel
from ..datagram import Datagram
from ..errors import ChannelError
from ..sessions import SessionEvent, SessionTable, peer_tag
from ..task import Task
from ..utils import is_integer

logger = logging.getLogger(__name__)


class ChatServer(Task):
    """Multi-user chat relay."""

    resident = True

    def __init__(self, context) -> None:
        super().__init__(context)
        self.channel: AsyncChannel | None = None
        self.clients = SessionTable()

    def start(self) -> None:
        self.terminal.writeln("&w-ChatServer v1.0 sample chat server task&00")
        if len(self.args) < 1 or not is_integer(self.args[0]):
            self.terminal.writeln("&y-Usage: chatserver PORT&00")
            self.stop_self()
            return

        port = int(self.args[0])
        try:
            self.channel = self.kernel.open_port(port, owner=self)
        except ChannelError as e:
            self.terminal.writeln(f"&r-chatserver: {e}&00")
            self.stop_self()
            return
        self.channel.subscribe(self.receive)
        self.terminal.writeln(
            f"&w-chat server listening for data on port {port} "
            f"(use 'kill' command to shut down)&00"
        )

    def stop(self) -> None:
        close_channel(self.channel)
        self.channel = None

    def receive(self, datagram: Datagram) -> None:
        key = datagram.key
        tag = peer_tag(key)
        event = self.clients.track(datagram)

        if event is SessionEvent.JOIN:
            payload = f"{tag} : has joined\n".encode()
            self.send(key, payload)
        elif event is SessionEvent.LEAVE:
            payload = f"{tag} : has left\n".encode()
            self.send(key, payload)
        else:
            payload = f"{tag} : ".encode() + datagram.data
        logger.debug("chat %s %s", event.value, tag)

        for other in self.clients.others(key):
            self.send(other, payload)

    def send(self, key: tuple[int, int], payload: bytes) -> None:
        self.channel.publish(Datagram(key[0], key[1], payload))
