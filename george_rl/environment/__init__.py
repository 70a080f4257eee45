# =============================================================================
# Environment Module
# =============================================================================
"""
George's world and the simulation that runs on it.

This module provides:
- world: tile types, actions, the default house layout, grid helpers
- GridWorldEnv: the episode state machine (time, energy, chores, fun)
- GridWorldGymEnv / make_env: the same simulation behind the Gymnasium API
- RouteHistory / EpisodeLogger: recent routes and JSONL episode logs

Why a Custom Grid World?
------------------------
The interesting part is not navigation itself but the budget trade-offs:
1. TIME: every move costs time; chores give some back
2. ENERGY: moves and chores drain it; fun spots restore it
3. GATING: the ice cream only counts after enough chores
4. TEMPTATION: fun spots pay out once per episode

A tabular agent can learn all of this in a few thousand episodes, which
makes the learning dynamics easy to watch.
"""

from george_rl.environment.grid_world_env import GridWorldEnv, bucket
from george_rl.environment.gym_env import GridWorldGymEnv, make_env
from george_rl.environment.route_history import EpisodeLogger, RouteHistory, RouteHistoryEntry
from george_rl.environment.state import (
    FailureReason,
    ObservedState,
    ResourceSnapshot,
    StepResult,
    StepStatus,
)
from george_rl.environment.world import (
    Action,
    TileNotFoundError,
    TileType,
    create_initial_grid,
    find_tile,
)

__all__ = [
    "GridWorldEnv",
    "bucket",
    "GridWorldGymEnv",
    "make_env",
    "EpisodeLogger",
    "RouteHistory",
    "RouteHistoryEntry",
    "FailureReason",
    "ObservedState",
    "ResourceSnapshot",
    "StepResult",
    "StepStatus",
    "Action",
    "TileNotFoundError",
    "TileType",
    "create_initial_grid",
    "find_tile",
]
