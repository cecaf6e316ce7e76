# map_generator.py
import random
from protocol_constants import *


def is_permanent_wall(x, y):
    return x % 2 == 1 and y % 2 == 1


def in_safe_zone(x, y):
    """True if (x, y) lies in the square kept clear around a spawn corner."""
    near_left = x < SPAWN_SAFE_ZONE
    near_right = x > GRID_WIDTH - 1 - SPAWN_SAFE_ZONE
    near_top = y < SPAWN_SAFE_ZONE
    near_bottom = y > GRID_HEIGHT - 1 - SPAWN_SAFE_ZONE
    return (near_left or near_right) and (near_top or near_bottom)


def generate_map(rng=None):
    """
    Build a fresh row-major grid of GRID_CELLS cell states.
    Permanent walls sit on the odd/odd lattice; every other cell outside the
    spawn safe zones becomes a breakable wall with BREAKABLE_WALL_CHANCE.
    """
    if rng is None:
        rng = random.Random()

    grid = [CELL_EMPTY] * GRID_CELLS
    for y in range(GRID_HEIGHT):
        for x in range(GRID_WIDTH):
            idx = y * GRID_WIDTH + x
            if is_permanent_wall(x, y):
                grid[idx] = CELL_WALL
            elif not in_safe_zone(x, y) and rng.random() < BREAKABLE_WALL_CHANCE:
                grid[idx] = CELL_BREAKABLE
    return grid
