import socket
import time

import pytest

import client_utils
import server
from transport import Transport


def wait_for(poll, timeout=1.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        result = poll()
        if result:
            return result
        time.sleep(0.01)
    return poll()


@pytest.fixture
def live_transport():
    t = Transport(host="127.0.0.1", tcp_port=0, udp_port=0)
    t.open()
    yield t
    t.close()


def test_nothing_pending_returns_empty(live_transport):
    assert live_transport.accept_pending() == []
    assert live_transport.drain_datagrams() == []


def test_reliable_accept_and_read(live_transport):
    tcp_port = live_transport.tcp_sock.getsockname()[1]
    client = socket.create_connection(("127.0.0.1", tcp_port))
    try:
        accepted = wait_for(live_transport.accept_pending)
        assert len(accepted) == 1
        conn, addr = accepted[0]
        assert addr[0] == "127.0.0.1"
        assert live_transport.read_reliable(conn) is None

        client.sendall(client_utils.encode_join(6000))
        assert wait_for(lambda: live_transport.read_reliable(conn)) == client_utils.encode_join(6000)

        client.close()
        assert wait_for(lambda: live_transport.read_reliable(conn) == b"")
        live_transport.close_peer(conn)
    finally:
        client.close()


def test_datagrams_drained_in_order(live_transport):
    udp_port = live_transport.udp_sock.getsockname()[1]
    client = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    client.bind(("127.0.0.1", 0))
    try:
        for pid in (1, 2, 3):
            client.sendto(client_utils.encode_start_request(pid), ("127.0.0.1", udp_port))

        received = []
        deadline = time.time() + 1.0
        while len(received) < 3 and time.time() < deadline:
            received.extend(live_transport.drain_datagrams())
            time.sleep(0.01)
        assert [data for data, _ in received] == [client_utils.encode_start_request(p) for p in (1, 2, 3)]

        assert live_transport.send_datagram(client.getsockname(), b"\x04")
        client.settimeout(1.0)
        assert client.recvfrom(16)[0] == b"\x04"
    finally:
        client.close()


def test_bind_conflict_raises(live_transport):
    tcp_port = live_transport.tcp_sock.getsockname()[1]
    other = Transport(host="127.0.0.1", tcp_port=tcp_port, udp_port=0)
    with pytest.raises(OSError):
        other.open()
    other.close()


def test_main_exits_non_zero_when_bind_fails(monkeypatch):
    class BrokenServer:
        def __init__(self):
            self.transport = Transport()

        def open(self):
            raise OSError("address in use")

    monkeypatch.setattr(server, "GameServer", BrokenServer)
    assert server.main() == 1
