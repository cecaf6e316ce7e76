import random

import pytest

from simulation import Simulation
from tests.helpers import open_grid


class FakeConn:
    def __init__(self, addr):
        self.addr = addr
        self.inbox = []        # queued reads: bytes, or b"" for closure
        self.sent = []
        self.closed = False


class FakeTransport:
    """In-memory stand-in with the same interface as transport.Transport."""

    def __init__(self):
        self.opened = False
        self.incoming = []     # FakeConn waiting to be accepted
        self.datagrams = []    # (data, addr) waiting to be drained
        self.outbox = []       # (addr, packet) sent
        self.fail_sends_to = set()

    def connect(self, ip="10.0.0.5", port=40000):
        conn = FakeConn((ip, port))
        self.incoming.append(conn)
        return conn

    def open(self):
        self.opened = True

    def accept_pending(self):
        accepted = [(conn, conn.addr) for conn in self.incoming]
        self.incoming = []
        return accepted

    def read_reliable(self, conn):
        if conn.inbox:
            return conn.inbox.pop(0)
        return None

    def send_reliable(self, conn, data):
        conn.sent.append(data)
        return True

    def close_peer(self, conn):
        conn.closed = True

    def drain_datagrams(self):
        drained = self.datagrams
        self.datagrams = []
        return drained

    def send_datagram(self, addr, packet):
        if addr in self.fail_sends_to:
            return False
        self.outbox.append((addr, packet))
        return True

    def close(self):
        self.opened = False


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def sim():
    return Simulation(rng=random.Random(1234))


@pytest.fixture
def running_sim(sim):
    """Two players, match running on a map without breakable walls."""
    sim.add_player(1)
    sim.add_player(2)
    assert sim.start_game()
    sim.grid = open_grid()
    return sim
