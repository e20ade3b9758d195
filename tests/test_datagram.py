from __future__ import annotations

import pytest

from haxos.datagram import (
    HEADER_SIZE,
    LOOPBACK,
    Datagram,
    Packet,
    Subnet,
    address_to_string,
    coerce_address,
    is_dotted_quad,
    string_to_address,
)
from haxos.errors import AddressError

# -------------------------------------------------------------------
# Addresses
# -------------------------------------------------------------------


def test_dotted_quad_to_integer_and_back() -> None:
    assert string_to_address("192.168.1.10") == 0xC0A8010A
    assert address_to_string(0xC0A8010A) == "192.168.1.10"
    assert address_to_string(0) == "0.0.0.0"
    assert string_to_address("255.255.255.255") == 0xFFFFFFFF


@pytest.mark.parametrize("text", ["256.1.1.1", "1.2.3", "a.b.c.d", "", "1.2.3.4.5"])
def test_invalid_dotted_quads_are_rejected(text: str) -> None:
    assert not is_dotted_quad(text)
    with pytest.raises(AddressError):
        string_to_address(text)


def test_address_error_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        coerce_address("not-an-address")
    with pytest.raises(AddressError):
        coerce_address(-1)
    assert coerce_address("10.0.0.1") == coerce_address(0x0A000001)


# -------------------------------------------------------------------
# Subnets
# -------------------------------------------------------------------


def test_subnet_parse_normalises_host_bits() -> None:
    net = Subnet.parse("10.0.0.7/8")
    assert str(net) == "10.0.0.0/8"
    assert net == Subnet.parse("10.0.0.0/8")


def test_subnet_contains() -> None:
    net = Subnet.parse("192.168.1.0/24")
    assert net.contains(string_to_address("192.168.1.200"))
    assert string_to_address("192.168.2.1") not in net
    assert Subnet.parse("0.0.0.0/0").contains(string_to_address("8.8.8.8"))
    assert string_to_address("127.0.0.1") in LOOPBACK


def test_bare_address_is_a_host_route() -> None:
    net = Subnet.parse("10.1.2.3")
    assert net.prefix == 32
    assert net.contains(string_to_address("10.1.2.3"))
    assert not net.contains(string_to_address("10.1.2.4"))


def test_subnet_rejects_bad_prefix() -> None:
    with pytest.raises(AddressError):
        Subnet.parse("10.0.0.0/33")
    with pytest.raises(AddressError):
        Subnet.parse("10.0.0.0/x")


# -------------------------------------------------------------------
# Datagrams
# -------------------------------------------------------------------


def test_null_datagram() -> None:
    d = Datagram(string_to_address("10.0.0.1"), 80)
    assert d.is_null
    assert d.key == (0x0A000001, 80)
    assert d.address_string == "10.0.0.1"
    assert not d.with_data(b"x").is_null


def test_datagram_text_is_stripped() -> None:
    d = Datagram(1, 2, b"  hello\n")
    assert d.text == "hello"
    assert d.data == b"  hello\n"


def test_datagram_validation() -> None:
    with pytest.raises(ValueError):
        Datagram(1, 70000)
    with pytest.raises(TypeError):
        Datagram(1, 1, "text")  # type: ignore[arg-type]
    assert isinstance(Datagram(1, 1, bytearray(b"ab")).data, bytes)


# -------------------------------------------------------------------
# Wire frames
# -------------------------------------------------------------------


def test_packet_frame_layout() -> None:
    packet = Packet(
        string_to_address("10.0.0.5"), 4000, string_to_address("10.0.0.1"), 6666, b"hi"
    )
    frame = packet.to_bytes()

    assert len(frame) == HEADER_SIZE + 2
    assert frame[:4] == bytes([10, 0, 0, 5])
    assert frame[4:6] == (4000).to_bytes(2, "big")
    assert Packet.peek_destination(frame) == string_to_address("10.0.0.1")

    decoded = Packet.from_bytes(frame)
    assert decoded == packet
    assert decoded.source == Datagram(string_to_address("10.0.0.5"), 4000, b"hi")
    assert decoded.destination.key == (string_to_address("10.0.0.1"), 6666)


def test_short_frames_are_rejected() -> None:
    with pytest.raises(ValueError):
        Packet.from_bytes(b"\x00" * (HEADER_SIZE - 1))
    with pytest.raises(ValueError):
        Packet.peek_destination(b"")
