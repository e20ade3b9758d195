from __future__ import annotations

from haxos.datagram import Datagram, string_to_address
from haxos.sessions import SessionEvent, SessionTable, peer_tag

A = (string_to_address("10.0.0.5"), 4000)
B = (string_to_address("10.0.0.6"), 4000)


def packet(key, data: bytes = b"") -> Datagram:
    return Datagram(key[0], key[1], data)


def test_first_datagram_joins_even_with_payload() -> None:
    table = SessionTable()
    assert table.track(packet(A, b"hello")) is SessionEvent.JOIN
    assert A in table


def test_join_message_leave_rejoin() -> None:
    table = SessionTable()
    assert table.track(packet(A)) is SessionEvent.JOIN
    assert table.track(packet(A, b"hi")) is SessionEvent.MESSAGE
    assert table.track(packet(A)) is SessionEvent.LEAVE
    assert A not in table
    # a leaver is a stranger again
    assert table.track(packet(A, b"back")) is SessionEvent.JOIN


def test_peers_in_join_order_and_others() -> None:
    table = SessionTable()
    table.track(packet(B))
    table.track(packet(A))
    assert table.peers == [B, A]
    assert table.others(A) == [B]
    assert list(table) == [B, A]
    assert len(table) == 2


def test_discard_and_clear() -> None:
    table = SessionTable()
    table.track(packet(A))
    assert table.discard(A)
    assert not table.discard(A)
    table.track(packet(B))
    table.clear()
    assert len(table) == 0


def test_peer_tag() -> None:
    assert peer_tag(A) == "[10.0.0.5:4000]"
    assert SessionTable.peer_tag(B) == "[10.0.0.6:4000]"
