# transport.py
import socket
from protocol_constants import *
import server_utils


class Transport:
    """
    Non-blocking TCP listener plus UDP socket.
    Every read drains until the OS reports it would block, so one call per
    tick services everything that is queued.
    """

    def __init__(self, host=SERVER_HOST, tcp_port=SERVER_TCP_PORT, udp_port=SERVER_UDP_PORT):
        self.host = host
        self.tcp_port = tcp_port
        self.udp_port = udp_port
        self.tcp_sock = None
        self.udp_sock = None

    def open(self):
        """Bind both sockets. OSError propagates so the caller can exit."""
        self.tcp_sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.tcp_sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.tcp_sock.bind((self.host, self.tcp_port))
        self.tcp_sock.listen(MAX_PLAYERS)
        self.tcp_sock.setblocking(False)

        self.udp_sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.udp_sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.udp_sock.bind((self.host, self.udp_port))
        self.udp_sock.setblocking(False)

        server_utils.log_message(f"[SERVER] TCP listening on {self.host}:{self.tcp_port}")
        server_utils.log_message(f"[SERVER] UDP listening on {self.host}:{self.udp_port}")

    def accept_pending(self):
        """Accept every queued reliable connection; returns [(conn, addr)]."""
        accepted = []
        while True:
            try:
                conn, addr = self.tcp_sock.accept()
            except BlockingIOError:
                break
            except OSError as e:
                server_utils.log_message(f"[WARN] accept failed: {e}")
                break
            conn.setblocking(False)
            accepted.append((conn, addr))
        return accepted

    def read_reliable(self, conn):
        """
        Returns bytes read, None if nothing is pending, or b"" once the
        peer has closed or the connection errored.
        """
        try:
            return conn.recv(BUFFER_SIZE)
        except BlockingIOError:
            return None
        except OSError:
            return b""

    def send_reliable(self, conn, data: bytes):
        try:
            conn.sendall(data)
        except OSError:
            return False
        return True

    def close_peer(self, conn):
        try:
            conn.close()
        except OSError:
            pass

    def drain_datagrams(self):
        """Read every queued datagram; returns [(data, addr)] in arrival order."""
        datagrams = []
        while True:
            try:
                data, addr = self.udp_sock.recvfrom(BUFFER_SIZE)
            except BlockingIOError:
                break
            except ConnectionResetError:
                # ICMP port-unreachable from an earlier sendto (Windows)
                continue
            except OSError as e:
                server_utils.log_message(f"[WARN] recvfrom failed: {e}")
                break
            datagrams.append((data, addr))
        return datagrams

    def send_datagram(self, addr, packet: bytes):
        return server_utils.send_packet(self.udp_sock, addr, packet)

    def close(self):
        for sock in (self.tcp_sock, self.udp_sock):
            if sock is not None:
                sock.close()
        self.tcp_sock = None
        self.udp_sock = None
