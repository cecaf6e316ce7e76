# server_utils.py
import struct
from protocol_constants import *

JOIN_SIZE = struct.calcsize(JOIN_FMT)
INPUT_SIZE = struct.calcsize(INPUT_FMT)
REQUEST_SIZE = struct.calcsize(REQUEST_FMT)


def log_message(msg):
    print(msg)


def valid_player_id(player_id):
    return 1 <= player_id <= MAX_PLAYERS


# --- Encoders (server -> client) ---
def encode_connect_response(player_id: int) -> bytes:
    return struct.pack(CONNECT_RESPONSE_FMT, MSG_CONNECT_RESPONSE, player_id)


def encode_world_state(cells, winner: int, running: bool) -> bytes:
    """
    WorldState layout:
      offset 0      tag (B)
      offset 1      grid, GRID_CELLS cell-state bytes, row-major
      offset 226    winner id (B) 0=none, 1-4=player, 5=draw
      offset 227    game running (B) 0/1
    """
    return struct.pack(WORLD_STATE_FMT, MSG_WORLD_STATE, bytes(cells), winner, 1 if running else 0)


# --- Decoders (client -> server) ---
def decode_join(data: bytes):
    """Returns the declared UDP listen port, or None for a malformed join."""
    if len(data) < JOIN_SIZE:
        return None
    tag, listen_port = struct.unpack(JOIN_FMT, data[:JOIN_SIZE])
    if tag != MSG_JOIN or listen_port == 0:
        return None
    return listen_port


def decode_datagram(data: bytes):
    """
    Classify an inbound UDP datagram by its leading tag.
    Returns (msg_type, player_id, command) with command None for
    start/restart requests, or None if the datagram must be dropped.
    """
    if not data:
        return None
    msg_type = data[0]

    if msg_type == MSG_INPUT:
        if len(data) < INPUT_SIZE:
            return None
        _, player_id, command = struct.unpack(INPUT_FMT, data[:INPUT_SIZE])
        if command not in COMMAND_NAMES:
            return None
    elif msg_type in (MSG_START_REQUEST, MSG_RESTART_REQUEST):
        if len(data) < REQUEST_SIZE:
            return None
        _, player_id = struct.unpack(REQUEST_FMT, data[:REQUEST_SIZE])
        command = None
    else:
        return None

    if not valid_player_id(player_id):
        return None
    return msg_type, player_id, command


def send_packet(sock, addr, packet: bytes):
    """
    Send one datagram to addr.
    Returns False when the OS refuses it; the caller decides what to log.
    """
    try:
        sock.sendto(packet, addr)
    except OSError:
        return False
    return True
