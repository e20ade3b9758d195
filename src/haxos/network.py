# HaxOS — Cooperative Task Kernel and Virtual Network Simulator
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Flat virtual network.

A Network is one switched segment: kernels attach to it by address, frames
are routed by destination address and delivered on the shared event loop.
Segments can be linked; a frame whose destination is not on the local
segment is forwarded to a linked segment whose subnet contains it
(address-range forwarding), then to any other reachable segment.

Each segment also keeps a small name directory (domain -> address).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .datagram import (
    Packet,
    Subnet,
    address_to_string,
    coerce_address,
    is_dotted_quad,
    string_to_address,
)
from .errors import AddressError
from .events import EventLoop

if TYPE_CHECKING:
    from .kernel import Kernel  # pragma: no cover

logger = logging.getLogger(__name__)


class Network:
    def __init__(
        self,
        subnet: Subnet | str = "0.0.0.0/0",
        loop: EventLoop | None = None,
        name: str = "lan",
    ) -> None:
        self.subnet = Subnet.parse(subnet) if isinstance(subnet, str) else subnet
        self.loop = loop if loop is not None else EventLoop(name)
        self.name = name
        self._hosts: dict[int, Kernel] = {}
        self._links: list[Network] = []
        self._domains: dict[str, int] = {}

    def __repr__(self) -> str:
        return f"<Network {self.name} {self.subnet} hosts={len(self._hosts)}>"

    # -----------------------
    # Topology
    # -----------------------

    def attach(self, kernel: Kernel) -> None:
        """Plug a kernel in at kernel.address."""
        address = kernel.address
        if not self.subnet.contains(address):
            raise AddressError(
                f"{address_to_string(address)} is outside {self.subnet}"
            )
        current = self._hosts.get(address)
        if current is not None and current is not kernel:
            raise AddressError(
                f"{address_to_string(address)} is already in use on {self.name}"
            )
        self._hosts[address] = kernel
        kernel.network = self
        logger.debug("%s attached %s", self.name, kernel)

    def detach(self, kernel: Kernel) -> bool:
        if self._hosts.get(kernel.address) is not kernel:
            return False
        del self._hosts[kernel.address]
        if kernel.network is self:
            kernel.network = None
        return True

    @property
    def hosts(self) -> list[Kernel]:
        return [self._hosts[a] for a in sorted(self._hosts)]

    def host(self, address: int) -> Kernel | None:
        return self._hosts.get(address)

    def link(self, other: Network) -> None:
        """Connect two segments (both directions)."""
        if other is self:
            raise ValueError("Cannot link a network to itself")
        if other.loop is not self.loop:
            raise ValueError("Linked networks must share one event loop")
        if other not in self._links:
            self._links.append(other)
        if self not in other._links:
            other._links.append(self)

    @property
    def links(self) -> tuple[Network, ...]:
        return tuple(self._links)

    # -----------------------
    # Forwarding
    # -----------------------

    def transmit(self, frame: bytes) -> bool:
        """Route a wire frame. Returns False when it was dropped.

        Delivery itself is queued on the event loop, in transmit order.
        """
        destination = Packet.peek_destination(frame)
        if self._route(frame, destination, set()):
            return True
        logger.debug(
            "%s dropped frame for unknown host %s",
            self.name,
            address_to_string(destination),
        )
        return False

    def _route(self, frame: bytes, destination: int, visited: set[int]) -> bool:
        visited.add(id(self))

        host = self._hosts.get(destination)
        if host is not None:
            self.loop.post(host.deliver, frame)
            return True

        # Segments that claim the address first, then everything else
        candidates = [n for n in self._links if id(n) not in visited]
        candidates.sort(key=lambda n: not n.subnet.contains(destination))
        for segment in candidates:
            if id(segment) in visited:
                continue
            if segment._route(frame, destination, visited):
                return True
        return False

    # -----------------------
    # Directory
    # -----------------------

    def register_domain(self, name: str, address: int | str) -> None:
        name = name.strip().lower()
        if not name or is_dotted_quad(name):
            raise AddressError(f"Invalid domain name: {name!r}")
        self._domains[name] = coerce_address(address)

    @property
    def domains(self) -> dict[str, int]:
        return dict(self._domains)

    def resolve(self, name: str) -> int | None:
        """Dotted quads resolve to themselves; names go through the
        directories of this segment and every reachable linked one."""
        if is_dotted_quad(name):
            return string_to_address(name)
        return self._lookup(name.strip().lower(), set())

    def _lookup(self, name: str, visited: set[int]) -> int | None:
        visited.add(id(self))
        if name in self._domains:
            return self._domains[name]
        for segment in self._links:
            if id(segment) in visited:
                continue
            found = segment._lookup(name, visited)
            if found is not None:
                return found
        return None
