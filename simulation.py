# simulation.py
from protocol_constants import *
from map_generator import generate_map
from server_utils import log_message

STATUS_IDLE = "IDLE"
STATUS_RUNNING = "RUNNING"
STATUS_ENDED = "ENDED"

# (dx, dy) per movement command; North is towards row 0
DIRECTIONS = {
    CMD_NORTH: (0, -1),
    CMD_SOUTH: (0, 1),
    CMD_WEST: (-1, 0),
    CMD_EAST: (1, 0),
}


class Player:
    def __init__(self, player_id):
        self.player_id = player_id
        self.x, self.y = SPAWN_POINTS[player_id]
        self.alive = True

    def respawn(self):
        self.x, self.y = SPAWN_POINTS[self.player_id]
        self.alive = True


class Bomb:
    def __init__(self, x, y, owner_id, timer=BOMB_TIMER):
        self.x = x
        self.y = y
        self.owner_id = owner_id
        self.timer = timer


class Explosion:
    def __init__(self, x, y, timer=EXPLOSION_TIMER):
        self.x = x
        self.y = y
        self.timer = timer


def in_bounds(x, y):
    return 0 <= x < GRID_WIDTH and 0 <= y < GRID_HEIGHT


class Simulation:
    """
    Authoritative game state: base grid, players, bombs, explosions and
    match status. Only the tick loop mutates it.
    """

    def __init__(self, rng=None):
        self.rng = rng
        self.grid = generate_map(rng)
        self.players = {}      # player_id -> Player
        self.bombs = []
        self.explosions = []
        self.status = STATUS_IDLE
        self.winner = WINNER_NONE
        self.players_at_start = 0

    # --- Roster ---
    def add_player(self, player_id):
        if player_id in self.players or player_id not in SPAWN_POINTS:
            return False
        player = Player(player_id)
        self.players[player_id] = player
        log_message(f"[GAME] Player {player_id} added at ({player.x},{player.y})")
        return True

    def remove_player(self, player_id):
        if self.players.pop(player_id, None) is None:
            return False
        log_message(f"[GAME] Player {player_id} removed")
        return True

    # --- Match lifecycle ---
    def reset(self):
        """
        Fresh map, no bombs or explosions, everyone back at their corner.
        Stops a running match and clears the winner; start_game() resumes play.
        """
        self.grid = generate_map(self.rng)
        self.status = STATUS_IDLE
        self.winner = WINNER_NONE
        self.bombs = []
        self.explosions = []
        for player in self.players.values():
            player.respawn()

    def start_game(self):
        if self.status == STATUS_RUNNING:
            return False
        if len(self.players) < MIN_PLAYERS_TO_START:
            log_message(f"[GAME] Start rejected: {len(self.players)} player(s) registered")
            return False

        self.reset()
        self.status = STATUS_RUNNING
        self.players_at_start = len(self.players)
        log_message(f"[GAME] Match started with {self.players_at_start} players")
        return True

    def is_running(self):
        return self.status == STATUS_RUNNING

    # --- Commands ---
    def process_command(self, player_id, command):
        if self.status != STATUS_RUNNING:
            return False
        player = self.players.get(player_id)
        if player is None or not player.alive:
            return False

        if command == CMD_PLACE_BOMB:
            return self.place_bomb(player)

        delta = DIRECTIONS.get(command)
        if delta is None:
            return False
        nx, ny = player.x + delta[0], player.y + delta[1]
        if not self.is_walkable(nx, ny, player_id):
            return False
        player.x, player.y = nx, ny
        return True

    def is_walkable(self, x, y, mover_id=None):
        if not in_bounds(x, y):
            return False
        if self.grid[y * GRID_WIDTH + x] in (CELL_WALL, CELL_BREAKABLE):
            return False
        if self.bomb_at(x, y) is not None:
            return False
        for pid, other in self.players.items():
            if pid != mover_id and other.alive and other.x == x and other.y == y:
                return False
        return True

    def bomb_at(self, x, y):
        for bomb in self.bombs:
            if bomb.x == x and bomb.y == y:
                return bomb
        return None

    def place_bomb(self, player):
        if self.bomb_at(player.x, player.y) is not None:
            return False
        owned = sum(1 for b in self.bombs if b.owner_id == player.player_id)
        if owned >= MAX_BOMBS_PER_PLAYER:
            return False
        self.bombs.append(Bomb(player.x, player.y, player.player_id))
        return True

    # --- Per-tick advance ---
    def advance(self, dt):
        if self.status != STATUS_RUNNING:
            return

        # Age lingering explosions before new ones appear so a blast is
        # always lethal on the tick it detonates.
        for explosion in self.explosions:
            explosion.timer -= dt
        self.explosions = [e for e in self.explosions if e.timer > 0]

        remaining = []
        detonating = []
        for bomb in self.bombs:
            bomb.timer -= dt
            if bomb.timer <= 0:
                detonating.append(bomb)
            else:
                remaining.append(bomb)
        self.bombs = remaining
        for bomb in detonating:
            self.detonate(bomb)

        self.apply_hazards()
        self.check_match_end()

    def detonate(self, bomb):
        self.explosions.append(Explosion(bomb.x, bomb.y))
        for dx, dy in DIRECTIONS.values():
            for step in range(1, BOMB_RANGE + 1):
                x, y = bomb.x + dx * step, bomb.y + dy * step
                if not in_bounds(x, y):
                    break
                idx = y * GRID_WIDTH + x
                if self.grid[idx] == CELL_WALL:
                    break
                self.explosions.append(Explosion(x, y))
                if self.grid[idx] == CELL_BREAKABLE:
                    self.grid[idx] = CELL_EMPTY
                    break

    def apply_hazards(self):
        burning = {(e.x, e.y) for e in self.explosions}
        for player in self.players.values():
            if player.alive and (player.x, player.y) in burning:
                player.alive = False
                log_message(f"[GAME] Player {player.player_id} died at ({player.x},{player.y})")

    def alive_count(self):
        return sum(1 for p in self.players.values() if p.alive)

    def check_match_end(self):
        alive = self.alive_count()
        if alive == 0:
            self.winner = WINNER_DRAW
        elif alive == 1 and self.players_at_start >= MIN_PLAYERS_TO_START:
            self.winner = next(pid for pid, p in self.players.items() if p.alive)
        else:
            return

        self.status = STATUS_ENDED
        if self.winner == WINNER_DRAW:
            log_message("[GAME] Match ended in a draw")
        else:
            log_message(f"[GAME] Match ended, winner: Player {self.winner}")

    # --- Snapshot ---
    def snapshot_grid(self):
        """
        Composite the base grid with explosions, then living players, then
        bombs. Later layers overwrite earlier ones.
        """
        cells = list(self.grid)
        for explosion in self.explosions:
            cells[explosion.y * GRID_WIDTH + explosion.x] = CELL_EXPLOSION
        for pid, player in self.players.items():
            if player.alive:
                cells[player.y * GRID_WIDTH + player.x] = PLAYER_CELLS[pid]
        for bomb in self.bombs:
            cells[bomb.y * GRID_WIDTH + bomb.x] = CELL_BOMB
        return cells
