import pytest

from protocol_constants import *
import server_utils
import client_utils


def test_join_layout():
    assert client_utils.encode_join(0x1389) == bytes([MSG_JOIN, 0x13, 0x89])
    assert server_utils.decode_join(client_utils.encode_join(40000)) == 40000


@pytest.mark.parametrize("raw", [
    b"",
    bytes([MSG_JOIN, 0x13]),
    bytes([MSG_INPUT, 0x13, 0x89]),
    bytes([MSG_JOIN, 0x00, 0x00]),
])
def test_decode_join_rejects_bad_payloads(raw):
    assert server_utils.decode_join(raw) is None


def test_connect_response_layout():
    assert server_utils.encode_connect_response(3) == bytes([MSG_CONNECT_RESPONSE, 3])
    assert client_utils.decode_connect_response(bytes([MSG_CONNECT_RESPONSE, 3])) == 3
    assert client_utils.decode_connect_response(bytes([MSG_CONNECT_RESPONSE, 7])) is None
    assert client_utils.decode_connect_response(bytes([MSG_CONNECT_RESPONSE])) is None


def test_client_packet_layouts():
    assert client_utils.encode_input(2, CMD_PLACE_BOMB) == bytes([MSG_INPUT, 2, CMD_PLACE_BOMB])
    assert client_utils.encode_start_request(1) == bytes([MSG_START_REQUEST, 1])
    assert client_utils.encode_restart_request(4) == bytes([MSG_RESTART_REQUEST, 4])


def test_decode_datagram_dispatch():
    assert server_utils.decode_datagram(client_utils.encode_input(2, CMD_WEST)) == (MSG_INPUT, 2, CMD_WEST)
    assert server_utils.decode_datagram(client_utils.encode_start_request(1)) == (MSG_START_REQUEST, 1, None)
    assert server_utils.decode_datagram(client_utils.encode_restart_request(4)) == (MSG_RESTART_REQUEST, 4, None)


def test_decode_datagram_ignores_trailing_bytes():
    assert server_utils.decode_datagram(bytes([MSG_INPUT, 1, CMD_EAST, 0xFF])) == (MSG_INPUT, 1, CMD_EAST)


@pytest.mark.parametrize("raw", [
    b"",
    bytes([0x7F, 1, 0]),                      # unknown tag
    bytes([MSG_WORLD_STATE, 1, 0]),           # server-only tag
    bytes([MSG_INPUT, 1]),                    # undersized input
    bytes([MSG_START_REQUEST]),               # undersized request
    bytes([MSG_INPUT, 0, CMD_EAST]),          # slot out of range
    bytes([MSG_INPUT, 5, CMD_EAST]),
    bytes([MSG_RESTART_REQUEST, 9]),
    bytes([MSG_INPUT, 1, 5]),                 # unknown command
])
def test_decode_datagram_drops_malformed(raw):
    assert server_utils.decode_datagram(raw) is None


def test_world_state_layout():
    cells = [CELL_EMPTY] * GRID_CELLS
    cells[0] = CELL_PLAYER_1
    cells[GRID_CELLS - 1] = CELL_BOMB
    packet = server_utils.encode_world_state(cells, WINNER_DRAW, True)

    assert len(packet) == 1 + GRID_CELLS + 2
    assert packet[0] == MSG_WORLD_STATE
    assert packet[1] == CELL_PLAYER_1
    assert packet[GRID_CELLS] == CELL_BOMB
    assert packet[GRID_CELLS + 1] == WINNER_DRAW
    assert packet[GRID_CELLS + 2] == 1


def test_parse_world_state():
    cells = [CELL_EMPTY] * GRID_CELLS
    cells[2 * GRID_WIDTH + 5] = CELL_PLAYER_3
    packet = server_utils.encode_world_state(cells, 2, False)

    state = client_utils.parse_world_state(packet)
    assert state['winner'] == 2
    assert state['running'] is False
    assert state['grid'][2][5] == CELL_PLAYER_3
    assert client_utils.find_player(state['grid'], 3) == (5, 2)
    assert client_utils.find_player(state['grid'], 1) is None
    assert client_utils.parse_world_state(packet[:-1]) is None
