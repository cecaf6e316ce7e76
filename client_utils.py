# client_utils.py
import struct
import time
from protocol_constants import *

WORLD_STATE_SIZE = struct.calcsize(WORLD_STATE_FMT)
CONNECT_RESPONSE_SIZE = struct.calcsize(CONNECT_RESPONSE_FMT)


def current_time_ms():
    return int(time.time() * 1000)


def encode_join(listen_port: int) -> bytes:
    return struct.pack(JOIN_FMT, MSG_JOIN, listen_port)


def encode_input(player_id: int, command: int) -> bytes:
    return struct.pack(INPUT_FMT, MSG_INPUT, player_id, command)


def encode_start_request(player_id: int) -> bytes:
    return struct.pack(REQUEST_FMT, MSG_START_REQUEST, player_id)


def encode_restart_request(player_id: int) -> bytes:
    return struct.pack(REQUEST_FMT, MSG_RESTART_REQUEST, player_id)


def decode_connect_response(raw: bytes):
    """Returns the assigned player id, or None if invalid."""
    if len(raw) < CONNECT_RESPONSE_SIZE:
        return None
    tag, player_id = struct.unpack(CONNECT_RESPONSE_FMT, raw[:CONNECT_RESPONSE_SIZE])
    if tag != MSG_CONNECT_RESPONSE or not 1 <= player_id <= MAX_PLAYERS:
        return None
    return player_id


def parse_world_state(raw: bytes):
    """
    Parse a WorldState datagram into:
      {'grid': [[...] * GRID_WIDTH] * GRID_HEIGHT, 'winner': int, 'running': bool}
    Returns None if parse fails.
    """
    if len(raw) < WORLD_STATE_SIZE or raw[0] != MSG_WORLD_STATE:
        return None
    _, cells, winner, running = struct.unpack(WORLD_STATE_FMT, raw[:WORLD_STATE_SIZE])
    flat = list(cells)
    grid = [flat[y * GRID_WIDTH:(y + 1) * GRID_WIDTH] for y in range(GRID_HEIGHT)]
    return {'grid': grid, 'winner': winner, 'running': bool(running)}


def find_player(grid, player_id):
    """Locate a player's marker in a parsed grid; None if not visible."""
    marker = PLAYER_CELLS[player_id]
    for y, row in enumerate(grid):
        for x, cell in enumerate(row):
            if cell == marker:
                return (x, y)
    return None
