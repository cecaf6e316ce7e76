# protocol_constants.py
SERVER_HOST = "0.0.0.0"
SERVER_TCP_PORT = 5000   # reliable channel (admission only)
SERVER_UDP_PORT = 5001   # unreliable channel (inputs + snapshots)

# Grid
GRID_WIDTH = 15
GRID_HEIGHT = 15
GRID_CELLS = GRID_WIDTH * GRID_HEIGHT
MAX_PLAYERS = 4

# Message types (leading tag byte)
MSG_CONNECT_RESPONSE = 0x01
MSG_START_REQUEST = 0x02
MSG_INPUT = 0x03
MSG_WORLD_STATE = 0x04
MSG_JOIN = 0x05
MSG_RESTART_REQUEST = 0x06

# Packet formats (for struct.pack/unpack)
JOIN_FMT = '!BH'                       # tag, listen_port           -> 3 bytes
CONNECT_RESPONSE_FMT = '!BB'           # tag, player_id             -> 2 bytes
INPUT_FMT = '!BBB'                     # tag, player_id, command    -> 3 bytes
REQUEST_FMT = '!BB'                    # tag, player_id             -> 2 bytes
WORLD_STATE_FMT = '!B%dsBB' % GRID_CELLS   # tag, grid, winner, running -> 228 bytes

# Cell states
CELL_EMPTY = 0
CELL_WALL = 1
CELL_BREAKABLE = 2
CELL_PLAYER_1 = 3
CELL_PLAYER_2 = 4
CELL_PLAYER_3 = 5
CELL_PLAYER_4 = 6
CELL_BOMB = 7
CELL_EXPLOSION = 8

PLAYER_CELLS = {1: CELL_PLAYER_1, 2: CELL_PLAYER_2, 3: CELL_PLAYER_3, 4: CELL_PLAYER_4}

# Commands
CMD_NORTH = 0
CMD_SOUTH = 1
CMD_WEST = 2
CMD_EAST = 3
CMD_PLACE_BOMB = 4

COMMAND_NAMES = {
    CMD_NORTH: "NORTH",
    CMD_SOUTH: "SOUTH",
    CMD_WEST: "WEST",
    CMD_EAST: "EAST",
    CMD_PLACE_BOMB: "BOMB",
}

# Winner byte
WINNER_NONE = 0
WINNER_DRAW = 5

# Spawn corners per slot (x, y)
SPAWN_POINTS = {
    1: (0, 0),
    2: (GRID_WIDTH - 1, 0),
    3: (0, GRID_HEIGHT - 1),
    4: (GRID_WIDTH - 1, GRID_HEIGHT - 1),
}

# Gameplay
BOMB_TIMER = 5.0
EXPLOSION_TIMER = 0.5
BOMB_RANGE = 2
MAX_BOMBS_PER_PLAYER = 1
BREAKABLE_WALL_CHANCE = 0.6
SPAWN_SAFE_ZONE = 3
MIN_PLAYERS_TO_START = 2

# Default behavior / limits
TICK_RATE_HZ = 30
BUFFER_SIZE = 4096
SEND_LOG_EVERY = 20
CPU_SAMPLE_EVERY = 10
