# HaxOS — Cooperative Task Kernel and Virtual Network Simulator
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
rtaskd: serve a task over the network.

    rtaskd PORT TASK [ARGS...]

Every client (address, port) gets its own instance of TASK, attached to a
terminal whose input is the client's datagrams and whose output is sent
back to the client. Sessions follow the null-packet convention:

- first datagram from a new client opens a session (payload ignored)
- a null packet from the client stops its task
- when the task ends, the client receives a null packet; the client's own
  closing null for that session is then dropped instead of opening a new one
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import partial

from ..channel import AsyncChannel, Channel, close_channel
from ..datagram import Datagram
from ..errors import ChannelError, TaskError
from ..events import EventLoop
from ..registry import default_registry
from ..sessions import SessionEvent, SessionTable, peer_tag
from ..task import Task, TaskHandle
from ..terminal import Terminal
from ..utils import is_integer

logger = logging.getLogger(__name__)


class DatagramDisplay:
    """Display that sends output to a remote peer.

    Everything written during one event-loop turn goes out as a single
    datagram, so a banner and the prompt that follows it arrive together.
    """

    def __init__(self, channel: Channel, key: tuple[int, int], loop: EventLoop) -> None:
        self.channel = channel
        self.key = key
        self.loop = loop
        self._buffer: list[str] = []
        self._scheduled = False

    def write(self, text: str) -> None:
        if not text:
            return
        self._buffer.append(text)
        if not self._scheduled:
            self._scheduled = True
            self.loop.post(self.flush)

    def flush(self) -> None:
        self._scheduled = False
        if not self._buffer:
            return
        payload = "".join(self._buffer).encode("utf-8")
        self._buffer.clear()
        if self.channel.closed:
            return
        self.channel.publish(Datagram(self.key[0], self.key[1], payload))


@dataclass
class RemoteSession:
    terminal: Terminal
    display: DatagramDisplay
    handle: TaskHandle | None = None
    left: bool = False


class RemoteTaskDaemon(Task):
    """Serve a task to network clients: rtaskd PORT TASK [ARGS...]"""

    resident = True

    def __init__(self, context) -> None:
        super().__init__(context)
        self.channel: AsyncChannel | None = None
        self.factory = None
        self.table = SessionTable()
        self.sessions: dict[tuple[int, int], RemoteSession] = {}
        # Peers whose session this side ended
        self.hung_up: set[tuple[int, int]] = set()

    def start(self) -> None:
        if len(self.args) < 2 or not is_integer(self.args[0]):
            self.terminal.writeln("&y-Usage: rtaskd PORT TASK [ARGS...]&00")
            self.stop_self()
            return

        registry = self.kernel.registry or default_registry()
        self.factory = registry.get(self.args[1])
        if self.factory is None:
            self.terminal.writeln(f"&r-rtaskd: unknown task: {self.args[1]}&00")
            self.stop_self()
            return

        port = int(self.args[0])
        try:
            self.channel = self.kernel.open_port(port, owner=self)
        except ChannelError as e:
            self.terminal.writeln(f"&r-rtaskd: {e}&00")
            self.stop_self()
            return
        self.channel.subscribe(self.receive)
        logger.info("%s: rtaskd serving %s on port %d", self.kernel.name, self.args[1], port)

    def stop(self) -> None:
        for session in list(self.sessions.values()):
            if session.handle is not None:
                self.kernel.stop_task(session.handle)
        close_channel(self.channel)
        self.channel = None

    def receive(self, datagram: Datagram) -> None:
        if datagram.key in self.hung_up:
            self.hung_up.discard(datagram.key)
            if datagram.is_null:
                return
        event = self.table.track(datagram)
        if event is SessionEvent.JOIN:
            self._open(datagram.key)
            return

        session = self.sessions.get(datagram.key)
        if session is None:
            return
        if event is SessionEvent.LEAVE:
            session.left = True
            if session.handle is not None:
                self.kernel.stop_task(session.handle)
        else:
            session.terminal.dispatch(datagram.data)

    def _open(self, key: tuple[int, int]) -> None:
        display = DatagramDisplay(self.channel, key, self.kernel.loop)
        session = RemoteSession(
            terminal=Terminal(display=display, name=f"rtaskd{peer_tag(key)}"),
            display=display,
        )
        self.sessions[key] = session
        logger.debug("rtaskd: session %s opened", peer_tag(key))
        try:
            session.handle = self.kernel.launch(
                self.factory,
                self.args[2:],
                cwd=self.pwd,
                terminal=session.terminal,
                name=self.args[1].lower(),
                on_exit=partial(self._closed, key),
            )
        except TaskError as e:
            # on_exit has already closed the session
            logger.warning("rtaskd: %s for %s", e, peer_tag(key))

    def _closed(self, key: tuple[int, int], handle: TaskHandle) -> None:
        session = self.sessions.pop(key, None)
        self.table.discard(key)
        if session is None:
            return
        session.display.flush()
        if self.channel is not None and not self.channel.closed:
            self.channel.publish(Datagram(key[0], key[1]))
            if not session.left:
                self.hung_up.add(key)
        logger.debug("rtaskd: session %s closed", peer_tag(key))
