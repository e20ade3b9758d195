# HaxOS — Cooperative Task Kernel and Virtual Network Simulator
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Datagrams and network addresses.

Addresses are unsigned 32-bit integers written as dotted quads
(``192.168.1.10``). Subnets use CIDR notation (``192.168.1.0/24``).

Two shapes of message exist:

- ``Datagram``: what tasks see. ``address``/``port`` name the destination
  when sending and the source when receiving.
- ``Packet``: what travels over the network. Carries both endpoints.

Frame format (big-endian):
  0..3    src_address
  4..5    src_port
  6..9    dst_address
  10..11  dst_port
  12..    payload
"""

from __future__ import annotations

import re
import struct
from dataclasses import dataclass, field, replace

from .errors import AddressError

MAX_ADDRESS = 0xFFFFFFFF
MAX_PORT = 0xFFFF

_HEADER = struct.Struct("!IHIH")
HEADER_SIZE = _HEADER.size

_DOTTED_QUAD = re.compile(r"^(\d{1,3})\.(\d{1,3})\.(\d{1,3})\.(\d{1,3})$")


# -----------------------
# Address helpers
# -----------------------


def is_dotted_quad(text: str) -> bool:
    """True if text looks like a.b.c.d with every octet in 0..255."""
    m = _DOTTED_QUAD.match(text.strip()) if isinstance(text, str) else None
    if not m:
        return False
    return all(int(octet) <= 255 for octet in m.groups())


def string_to_address(text: str) -> int:
    """Convert a dotted quad into its 32-bit integer form.

    Raises:
        AddressError: if text is not a valid dotted quad
    """
    if not is_dotted_quad(text):
        raise AddressError(f"Invalid address: {text!r}")
    a, b, c, d = (int(x) for x in _DOTTED_QUAD.match(text.strip()).groups())
    return (a << 24) | (b << 16) | (c << 8) | d


def address_to_string(address: int) -> str:
    """Convert a 32-bit integer address into dotted quad form."""
    if not 0 <= address <= MAX_ADDRESS:
        raise AddressError(f"Address out of range: {address}")
    return ".".join(
        str((address >> shift) & 0xFF) for shift in (24, 16, 8, 0)
    )


def coerce_address(address: int | str) -> int:
    """Accept either an int or a dotted quad."""
    if isinstance(address, str):
        return string_to_address(address)
    if not 0 <= int(address) <= MAX_ADDRESS:
        raise AddressError(f"Address out of range: {address}")
    return int(address)


@dataclass(frozen=True)
class Subnet:
    """An address range in CIDR notation."""

    network: int
    prefix: int

    def __post_init__(self) -> None:
        if not 0 <= self.prefix <= 32:
            raise AddressError(f"Invalid prefix length: {self.prefix}")
        # Normalise host bits away so 10.0.0.7/8 == 10.0.0.0/8
        object.__setattr__(self, "network", self.network & self.mask)

    @classmethod
    def parse(cls, text: str) -> Subnet:
        """Parse ``a.b.c.d/n``. A bare address is treated as ``/32``."""
        text = text.strip()
        if "/" in text:
            addr_part, prefix_part = text.split("/", 1)
            if not prefix_part.isdigit():
                raise AddressError(f"Invalid subnet: {text!r}")
            prefix = int(prefix_part)
        else:
            addr_part, prefix = text, 32
        return cls(string_to_address(addr_part), prefix)

    @property
    def mask(self) -> int:
        if self.prefix == 0:
            return 0
        return (MAX_ADDRESS << (32 - self.prefix)) & MAX_ADDRESS

    def contains(self, address: int) -> bool:
        return (address & self.mask) == self.network

    def __contains__(self, address: int) -> bool:
        return self.contains(address)

    def __str__(self) -> str:
        return f"{address_to_string(self.network)}/{self.prefix}"


LOOPBACK = Subnet.parse("127.0.0.0/8")


# -----------------------
# Datagram
# -----------------------


@dataclass(frozen=True)
class Datagram:
    """Addressed message unit exchanged over channels.

    An empty payload is a *null packet*: by convention it opens or closes a
    session and carries no user data. The kernel does not interpret it.
    """

    address: int
    port: int
    data: bytes = field(default=b"")

    def __post_init__(self) -> None:
        if not 0 <= self.address <= MAX_ADDRESS:
            raise AddressError(f"Address out of range: {self.address}")
        if not 0 <= self.port <= MAX_PORT:
            raise ValueError(f"Port out of range: {self.port}")
        if isinstance(self.data, (bytearray, memoryview)):
            object.__setattr__(self, "data", bytes(self.data))
        elif not isinstance(self.data, bytes):
            raise TypeError("Datagram payload must be bytes")

    @property
    def is_null(self) -> bool:
        return not self.data

    @property
    def key(self) -> tuple[int, int]:
        return (self.address, self.port)

    @property
    def address_string(self) -> str:
        return address_to_string(self.address)

    @property
    def text(self) -> str:
        return self.data.decode("utf-8", errors="replace").strip()

    def with_data(self, data: bytes) -> Datagram:
        return replace(self, data=data)

    def __repr__(self) -> str:
        return (
            f"Datagram({self.address_string}:{self.port}, "
            f"payload={self.data[:32]!r}{'...' if len(self.data) > 32 else ''})"
        )


@dataclass(frozen=True)
class Packet:
    """Datagram on the wire, with both endpoints."""

    src_address: int
    src_port: int
    dst_address: int
    dst_port: int
    data: bytes = b""

    def to_bytes(self) -> bytes:
        return _HEADER.pack(
            self.src_address & MAX_ADDRESS,
            self.src_port & MAX_PORT,
            self.dst_address & MAX_ADDRESS,
            self.dst_port & MAX_PORT,
        ) + bytes(self.data)

    @classmethod
    def from_bytes(cls, frame: bytes) -> Packet:
        if len(frame) < HEADER_SIZE:
            raise ValueError(
                f"Frame too short: {len(frame)} bytes "
                f"(header is {HEADER_SIZE})"
            )
        src, sport, dst, dport = _HEADER.unpack_from(frame)
        return cls(src, sport, dst, dport, bytes(frame[HEADER_SIZE:]))

    @staticmethod
    def peek_destination(frame: bytes) -> int:
        """Destination address of a frame without decoding the payload."""
        if len(frame) < HEADER_SIZE:
            raise ValueError("Frame too short")
        return _HEADER.unpack_from(frame)[2]

    @property
    def destination(self) -> Datagram:
        return Datagram(self.dst_address, self.dst_port, self.data)

    @property
    def source(self) -> Datagram:
        """The datagram as seen by the receiving channel."""
        return Datagram(self.src_address, self.src_port, self.data)
