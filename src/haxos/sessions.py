# HaxOS — Cooperative Task Kernel and Virtual Network Simulator
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Sessions by convention.

The kernel has no session object. A server on an AsyncChannel identifies
clients by their (address, port) key:

- first datagram from an unknown key   -> JOIN (key remembered)
- null packet from a known key         -> LEAVE (key forgotten)
- anything else                        -> MESSAGE

After LEAVE the same key joins again like a stranger.
"""

from __future__ import annotations

import enum
from collections.abc import Iterator

from .datagram import Datagram, address_to_string

Key = tuple[int, int]


class SessionEvent(enum.Enum):
    JOIN = "join"
    LEAVE = "leave"
    MESSAGE = "message"


def peer_tag(key: Key) -> str:
    """``[a.b.c.d:port]`` label used in chat-style relays."""
    address, port = key
    return f"[{address_to_string(address)}:{port}]"


class SessionTable:
    """Known peers, in join order."""

    def __init__(self) -> None:
        self._peers: dict[Key, None] = {}

    def track(self, datagram: Datagram) -> SessionEvent:
        key = datagram.key
        if key not in self._peers:
            self._peers[key] = None
            return SessionEvent.JOIN
        if datagram.is_null:
            del self._peers[key]
            return SessionEvent.LEAVE
        return SessionEvent.MESSAGE

    def discard(self, key: Key) -> bool:
        if key in self._peers:
            del self._peers[key]
            return True
        return False

    def clear(self) -> None:
        self._peers.clear()

    peer_tag = staticmethod(peer_tag)

    @property
    def peers(self) -> list[Key]:
        return list(self._peers)

    def others(self, key: Key) -> list[Key]:
        return [k for k in self._peers if k != key]

    def __contains__(self, key: object) -> bool:
        return key in self._peers

    def __iter__(self) -> Iterator[Key]:
        return iter(list(self._peers))

    def __len__(self) -> int:
        return len(self._peers)
