# =============================================================================
# World Model
# =============================================================================
"""
Static description of George's grid world.

This module provides:
- TileType / Action enums
- Distraction and chore tile groupings
- WorldDefinition: where everything sits on the default map
- create_initial_grid(): builds the default 9x9 grid
- find_tile(): locate the unique start / goal tiles

Grid Layout:
------------
The grid is a plain list of rows, each row a list of TileType values.
Position (row, col) = (0, 0) is the top-left corner. The default world
is surrounded by a wall border so George can never walk off the map,
but the environment also treats out-of-bounds moves as blocked.

    # # # # # # # # #
    # S . . . T . . #      S = George (start), G = ice cream (goal)
    # C . # . . H . #      T/F/P/D = distractions
    ...                    H/C = homework and chores

Nothing in here has behaviour beyond lookup. All mutation happens in
GridWorldEnv during an episode.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, List, Optional, Tuple


class TileType(IntEnum):
    """Cell types. The generic DISTRACTION tile is numbered after the chores."""
    EMPTY = 0
    WALL = 1
    KID = 2  # Start
    ICE_CREAM = 3  # Goal
    TV = 4
    FRIENDS = 5
    PLAYGROUND = 6
    HOMEWORK = 7
    CHORE = 8
    CHORE_FEED_DOG = 9
    CHORE_CLEAN_ROOM = 10
    CHORE_TAKE_OUT_TRASH = 11
    CHORE_READING_PRACTICE = 12
    DISTRACTION = 13  # Generic distraction, type comes from config


class Action(IntEnum):
    """The four movement actions, in fixed enumeration order."""
    UP = 0
    DOWN = 1
    LEFT = 2
    RIGHT = 3


# Type aliases
State = Tuple[int, int]
Grid = List[List[TileType]]

ACTIONS: List[Action] = [Action.UP, Action.DOWN, Action.LEFT, Action.RIGHT]

ACTION_OFFSETS: Dict[Action, Tuple[int, int]] = {
    Action.UP: (-1, 0),
    Action.DOWN: (1, 0),
    Action.LEFT: (0, -1),
    Action.RIGHT: (0, 1),
}

DISTRACTION_KEYS: Tuple[str, ...] = ("TV", "FRIENDS", "PLAYGROUND")

DISTRACTION_TILE_TYPES: Dict[str, TileType] = {
    "TV": TileType.TV,
    "FRIENDS": TileType.FRIENDS,
    "PLAYGROUND": TileType.PLAYGROUND,
}

# Distraction kind implied by the tile itself. The generic DISTRACTION
# tile implies nothing and resolves through the config.
TILE_TO_DISTRACTION: Dict[TileType, str] = {
    TileType.TV: "TV",
    TileType.FRIENDS: "FRIENDS",
    TileType.PLAYGROUND: "PLAYGROUND",
}

DISTRACTION_TILES = frozenset({
    TileType.TV,
    TileType.FRIENDS,
    TileType.PLAYGROUND,
    TileType.DISTRACTION,
})

CHORE_TILES = frozenset({
    TileType.HOMEWORK,
    TileType.CHORE,
    TileType.CHORE_FEED_DOG,
    TileType.CHORE_CLEAN_ROOM,
    TileType.CHORE_TAKE_OUT_TRASH,
    TileType.CHORE_READING_PRACTICE,
})


class TileNotFoundError(ValueError):
    """Raised when a grid lacks a required start or goal tile."""

    def __init__(self, tile: TileType):
        self.tile = TileType(tile)
        super().__init__(f"Tile of type {self.tile.name} not found in grid.")


def position_key(position: State) -> str:
    """Canonical "row,col" key used by layout and label maps."""
    return f"{position[0]},{position[1]}"


def parse_position_key(key: str) -> State:
    """Inverse of position_key."""
    row, col = key.split(",")
    return int(row), int(col)


def is_distraction_tile(tile: TileType) -> bool:
    return tile in DISTRACTION_TILES


def is_chore_tile(tile: TileType) -> bool:
    return tile in CHORE_TILES


def find_tile(grid: Grid, tile: TileType) -> State:
    """
    Find the first cell holding `tile` in row-major order.

    Raises:
    -------
    TileNotFoundError
        If no cell holds the tile.
    """
    for r, row in enumerate(grid):
        for c, value in enumerate(row):
            if value == tile:
                return (r, c)
    raise TileNotFoundError(tile)


def clone_grid(grid: Grid) -> Grid:
    """Copy a grid, normalising every cell to TileType."""
    return [[TileType(cell) for cell in row] for row in grid]


# =============================================================================
# Default world
# =============================================================================

@dataclass(frozen=True)
class FunSpot:
    position: State
    type: str


@dataclass(frozen=True)
class ChoreSpot:
    position: State
    label: str
    type: TileType


@dataclass(frozen=True)
class WorldDefinition:
    """
    Where everything sits on a map.

    The grid itself is derived from this with create_initial_grid(),
    and the distraction layout / chore label maps in WorldConfig are
    derived from fun_spots and chores.
    """
    size: int
    kid_start: State
    ice_cream: State
    walls: Tuple[State, ...] = ()
    fun_spots: Tuple[FunSpot, ...] = ()
    chores: Tuple[ChoreSpot, ...] = ()

    def distraction_layout(self) -> Dict[str, str]:
        return {position_key(spot.position): spot.type for spot in self.fun_spots}

    def chore_assignments(self) -> Dict[str, str]:
        return {position_key(chore.position): chore.label for chore in self.chores}


WORLD_DEFINITION = WorldDefinition(
    size=9,
    kid_start=(1, 1),
    ice_cream=(7, 4),
    walls=((2, 3), (3, 3), (5, 2), (5, 3)),
    fun_spots=(
        FunSpot((1, 5), "TV"),
        FunSpot((4, 2), "FRIENDS"),
        FunSpot((6, 3), "PLAYGROUND"),
    ),
    chores=(
        ChoreSpot((2, 1), "Feed the dog", TileType.CHORE_FEED_DOG),
        ChoreSpot((4, 5), "Clean your room", TileType.CHORE_CLEAN_ROOM),
        ChoreSpot((2, 6), "Do your math worksheet", TileType.HOMEWORK),
        ChoreSpot((5, 6), "Take out the trash", TileType.CHORE_TAKE_OUT_TRASH),
        ChoreSpot((6, 5), "Practice reading", TileType.CHORE_READING_PRACTICE),
        ChoreSpot((7, 1), "Practice reading", TileType.CHORE_READING_PRACTICE),
        ChoreSpot((4, 4), "Practice reading", TileType.CHORE_READING_PRACTICE),
    ),
)

GRID_SIZE = WORLD_DEFINITION.size


def create_initial_grid(
    world: WorldDefinition = WORLD_DEFINITION,
    default_distraction_type: str = "PLAYGROUND",
) -> Grid:
    """
    Build a grid from a world definition.

    Parameters:
    -----------
    world : WorldDefinition
        Map description (defaults to George's 9x9 house)
    default_distraction_type : str
        Tile used for fun spots whose type has no dedicated tile

    Returns:
    --------
    Grid
        size x size grid with a wall border
    """
    size = world.size
    grid: Grid = [[TileType.EMPTY for _ in range(size)] for _ in range(size)]

    for i in range(size):
        grid[0][i] = TileType.WALL
        grid[size - 1][i] = TileType.WALL
        grid[i][0] = TileType.WALL
        grid[i][size - 1] = TileType.WALL

    def place(pos: State, tile: TileType) -> None:
        grid[pos[0]][pos[1]] = tile

    place(world.kid_start, TileType.KID)
    place(world.ice_cream, TileType.ICE_CREAM)
    for chore in world.chores:
        place(chore.position, chore.type)

    default_fun_tile = DISTRACTION_TILE_TYPES.get(default_distraction_type, TileType.PLAYGROUND)
    for spot in world.fun_spots:
        place(spot.position, DISTRACTION_TILE_TYPES.get(spot.type, default_fun_tile))

    # Walls last so they win over anything placed on the same cell
    for wall in world.walls:
        place(wall, TileType.WALL)

    return grid


def render_ascii(grid: Grid, agent_pos: Optional[State] = None) -> str:
    """Small text rendering, handy in the CLI and when debugging."""
    symbols = {
        TileType.EMPTY: ".",
        TileType.WALL: "#",
        TileType.KID: "S",
        TileType.ICE_CREAM: "G",
        TileType.TV: "T",
        TileType.FRIENDS: "F",
        TileType.PLAYGROUND: "P",
        TileType.DISTRACTION: "D",
        TileType.HOMEWORK: "H",
    }
    lines = []
    for r, row in enumerate(grid):
        chars = []
        for c, tile in enumerate(row):
            if agent_pos is not None and (r, c) == tuple(agent_pos):
                chars.append("@")
            else:
                chars.append(symbols.get(tile, "C"))
        lines.append(" ".join(chars))
    return "\n".join(lines)
