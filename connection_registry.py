# connection_registry.py
import time
from protocol_constants import *
import server_utils


class ClientState:
    def __init__(self, player_id, conn, peer_addr, udp_addr):
        self.player_id = player_id
        self.conn = conn              # reliable channel, only watched for closure
        self.peer_addr = peer_addr
        self.udp_addr = udp_addr      # unreliable destination for snapshots
        self.joined_at = time.time()
        self.packet_count_sent = 0
        self.packet_count_received = 0
        self.last_seen = time.time()


class PendingPeer:
    def __init__(self, conn, addr):
        self.conn = conn
        self.addr = addr
        self.buffer = b""


class ConnectionRegistry:
    """
    Admits reliable peers, hands out player slots and remembers each
    player's UDP destination.
    """

    def __init__(self, simulation, transport, max_players=MAX_PLAYERS, on_event=None):
        self.simulation = simulation
        self.transport = transport
        self.max_players = max_players
        self.on_event = on_event
        self.pending = {}          # conn -> PendingPeer
        self.clients = {}          # player_id -> ClientState
        self.next_player_id = 1    # never reused within the process
        self.departed = []         # stats rows of disconnected players

    def _event(self, kind, player_id, detail=""):
        if self.on_event:
            self.on_event(kind, player_id, detail)

    # --- Reliable channel servicing ---
    def service(self):
        for conn, addr in self.transport.accept_pending():
            if self.slots_exhausted():
                self._reject(conn, addr)
                continue
            # Stays pending, and holds its socket, until it sends a Join or closes.
            self.pending[conn] = PendingPeer(conn, addr)
            server_utils.log_message(f"[ADMIT] Reliable connection from {addr}")

        for peer in list(self.pending.values()):
            self._read_pending(peer)

        for client in list(self.clients.values()):
            self._watch_client(client)

    def _read_pending(self, peer):
        data = self.transport.read_reliable(peer.conn)
        if data is None:
            return
        if data == b"":
            server_utils.log_message(f"[ADMIT] {peer.addr} closed before joining")
            self._drop_pending(peer)
            return

        peer.buffer += data
        if len(peer.buffer) < server_utils.JOIN_SIZE:
            return

        listen_port = server_utils.decode_join(peer.buffer)
        if listen_port is None:
            server_utils.log_message(f"[WARN] Malformed join from {peer.addr}, closing")
            self._drop_pending(peer)
            return
        self.admit(peer, listen_port)

    def slots_exhausted(self):
        return self.next_player_id > self.max_players

    def _reject(self, conn, addr):
        server_utils.log_message(f"[ADMIT] Rejected {addr} (all {self.max_players} slots assigned)")
        self.transport.close_peer(conn)
        self._event("REJECT", 0, str(addr))

    def _drop_pending(self, peer):
        self.pending.pop(peer.conn, None)
        self.transport.close_peer(peer.conn)

    def admit(self, peer, listen_port):
        """Assign the next slot, register the player and reply with its id."""
        del self.pending[peer.conn]

        if self.slots_exhausted():
            self._reject(peer.conn, peer.addr)
            return None

        player_id = self.next_player_id
        self.next_player_id += 1

        udp_addr = (peer.addr[0], listen_port)
        self.clients[player_id] = ClientState(player_id, peer.conn, peer.addr, udp_addr)
        self.simulation.add_player(player_id)
        self.transport.send_reliable(peer.conn, server_utils.encode_connect_response(player_id))

        server_utils.log_message(f"[ADMIT] Player {player_id} from {peer.addr}, snapshots -> {udp_addr}")
        self._event("JOIN", player_id, str(udp_addr))
        return player_id

    def _watch_client(self, client):
        # Anything a joined peer sends on the reliable channel is discarded;
        # the read only exists to notice closure.
        data = self.transport.read_reliable(client.conn)
        if data == b"":
            self.drop_client(client.player_id)

    def drop_client(self, player_id):
        """Forget the transport mapping; the simulated player stays."""
        client = self.clients.pop(player_id, None)
        if client is None:
            return False
        self.transport.close_peer(client.conn)
        self.departed.append(self.client_row(client))
        server_utils.log_message(f"[ADMIT] Player {player_id} disconnected "
                                 f"(sent {client.packet_count_sent}, received {client.packet_count_received})")
        self._event("LEAVE", player_id, str(client.peer_addr))
        return True

    # --- Queries ---
    def destinations(self):
        return [(pid, c.udp_addr) for pid, c in sorted(self.clients.items())]

    def note_sent(self, player_id):
        client = self.clients.get(player_id)
        if client:
            client.packet_count_sent += 1

    def note_received(self, player_id):
        client = self.clients.get(player_id)
        if client:
            client.packet_count_received += 1
            client.last_seen = time.time()

    @staticmethod
    def client_row(client):
        now = time.time()
        return {
            'player_id': client.player_id,
            'udp_addr': str(client.udp_addr),
            'connected_seconds': now - client.joined_at,
            'idle_seconds': now - client.last_seen,
            'packets_sent': client.packet_count_sent,
            'packets_received': client.packet_count_received,
        }

    def client_stats(self):
        """Per-player traffic rows, departed players included."""
        current = [self.client_row(c) for _, c in sorted(self.clients.items())]
        return self.departed + current

    def close_all(self):
        for peer in list(self.pending.values()):
            self._drop_pending(peer)
        for player_id in list(self.clients):
            self.drop_client(player_id)
