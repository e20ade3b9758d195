# HaxOS — Cooperative Task Kernel and Virtual Network Simulator
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Network endpoints bound to local ports.

- SyncChannel: ephemeral port, blocking request/response via query()
- AsyncChannel: explicit port, one receive callback

Both publish fire-and-forget datagrams and release their port on close().
Channels are created by the kernel (open_sync_port / open_port), which
also owns the PortTable and routes inbound datagrams to receive().
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from .datagram import MAX_PORT, Datagram
from .errors import (
    ChannelClosedError,
    ChannelError,
    PortInUseError,
    QueryInProgressError,
)
from .terminal import Subscription

if TYPE_CHECKING:
    from .kernel import Kernel  # pragma: no cover

logger = logging.getLogger(__name__)

ReceiveHandler = Callable[[Datagram], None]


# -----------------------
# Port table
# -----------------------


class PortTable:
    """Local port -> open channel. A port is bound by at most one channel."""

    def __init__(self, low: int = 49152, high: int = 65535) -> None:
        if not 0 < low <= high <= MAX_PORT:
            raise ValueError(f"Invalid ephemeral port range: {low}-{high}")
        self.low = low
        self.high = high
        self._bound: dict[int, Channel] = {}
        self._cursor = low

    def bind(self, channel: Channel, port: int) -> None:
        if not 0 <= port <= MAX_PORT:
            raise ChannelError(f"Port out of range: {port}")
        if port in self._bound:
            raise PortInUseError(port)
        self._bound[port] = channel

    def allocate(self) -> int:
        """Next free ephemeral port.

        Allocation rotates through the range, so a port released a moment
        ago is not handed out again straight away.
        """
        span = self.high - self.low + 1
        for offset in range(span):
            port = self.low + (self._cursor - self.low + offset) % span
            if port not in self._bound:
                self._cursor = port + 1 if port < self.high else self.low
                return port
        raise ChannelError(
            f"No free ephemeral ports in {self.low}-{self.high}"
        )

    def release(self, channel: Channel) -> bool:
        if self._bound.get(channel.port) is channel:
            del self._bound[channel.port]
            return True
        return False

    def lookup(self, port: int) -> Channel | None:
        return self._bound.get(port)

    def owned_by(self, owner: Any) -> list[Channel]:
        return [c for c in self._bound.values() if c.owner is owner]

    @property
    def ports(self) -> list[int]:
        return sorted(self._bound)

    def __len__(self) -> int:
        return len(self._bound)


# -----------------------
# Channels
# -----------------------


class Channel:
    """Base endpoint: publish, close, receive."""

    def __init__(self, kernel: Kernel, port: int, owner: Any = None) -> None:
        self.kernel = kernel
        self.port = port
        self.owner = owner
        self.closed = False

    def publish(self, datagram: Datagram) -> None:
        """Send without waiting for anything."""
        if self.closed:
            raise ChannelClosedError(f"Channel on port {self.port} is closed")
        self.kernel.transmit(self.port, datagram)

    def close(self) -> None:
        """Release the port. Safe to call more than once."""
        if self.closed:
            return
        self.closed = True
        self.kernel.ports.release(self)
        self._closed()
        logger.debug("Closed %r", self)

    def receive(self, datagram: Datagram) -> None:
        """Inbound datagram addressed to this channel's port."""
        raise NotImplementedError

    def _closed(self) -> None:
        pass

    def __enter__(self) -> Channel:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"<{type(self).__name__} port={self.port} {state}>"


def close_channel(channel: Channel | None) -> None:
    """Close an optional channel (no-op for None)."""
    if channel is not None:
        channel.close()


class SyncChannel(Channel):
    """Blocking request/response endpoint.

    Only one query may be in flight. Datagrams that arrive outside a query,
    or from anyone but the queried peer, are dropped.
    """

    def __init__(self, kernel: Kernel, port: int, owner: Any = None) -> None:
        super().__init__(kernel, port, owner)
        self._expected: tuple[int, int] | None = None
        self._response: Datagram | None = None

    @property
    def querying(self) -> bool:
        return self._expected is not None

    def query(
        self, datagram: Datagram, timeout_ms: int | None = None
    ) -> Datagram | None:
        """Send datagram and wait for the peer's first reply.

        Returns None when nothing arrives within timeout_ms (a normal
        outcome, not an error) or when the channel is closed meanwhile.

        Raises:
            ChannelClosedError: if the channel is already closed
            QueryInProgressError: if another query has not resolved yet
        """
        if self.closed:
            raise ChannelClosedError(f"Channel on port {self.port} is closed")
        if self._expected is not None:
            raise QueryInProgressError(
                f"Channel on port {self.port} already has a query in flight"
            )
        if timeout_ms is None:
            timeout_ms = self.kernel.query_timeout_ms

        self._response = None
        self._expected = datagram.key
        try:
            self.publish(datagram)
            self.kernel.loop.wait_for(
                lambda: self._response is not None or self.closed,
                timeout_ms / 1000.0,
            )
            return self._response
        finally:
            self._expected = None
            self._response = None

    def receive(self, datagram: Datagram) -> None:
        if self._expected is None or self._response is not None:
            logger.debug("%r dropped unsolicited %r", self, datagram)
            return
        if datagram.key != self._expected:
            logger.debug("%r dropped %r (not from queried peer)", self, datagram)
            return
        self._response = datagram

    def _closed(self) -> None:
        self.kernel.loop.wake()


class AsyncChannel(Channel):
    """Callback endpoint. At most one active receive subscription."""

    def __init__(self, kernel: Kernel, port: int, owner: Any = None) -> None:
        super().__init__(kernel, port, owner)
        self._subscription: Subscription | None = None

    def subscribe(self, on_receive: ReceiveHandler) -> Subscription:
        if self.closed:
            raise ChannelClosedError(f"Channel on port {self.port} is closed")
        if self._subscription is not None:
            raise ChannelError(
                f"Channel on port {self.port} already has a receiver"
            )
        self._subscription = Subscription(handler=on_receive, owner=self.owner)
        return self._subscription

    def unsubscribe(self) -> bool:
        if self._subscription is None:
            return False
        self._subscription.active = False
        self._subscription = None
        return True

    @property
    def subscribed(self) -> bool:
        return self._subscription is not None

    def receive(self, datagram: Datagram) -> None:
        sub = self._subscription
        if sub is None:
            logger.debug("%r has no receiver, dropped %r", self, datagram)
            return
        sub.handler(datagram)

    def _closed(self) -> None:
        self.unsubscribe()
