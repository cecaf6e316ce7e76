from protocol_constants import *
from map_generator import is_permanent_wall


def open_grid():
    """Lattice walls only, no breakable walls."""
    return [CELL_WALL if is_permanent_wall(i % GRID_WIDTH, i // GRID_WIDTH) else CELL_EMPTY
            for i in range(GRID_CELLS)]
