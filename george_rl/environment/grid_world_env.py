# =============================================================================
# Grid World Environment
# =============================================================================
"""
The episode state machine for George's grid world.

George starts at home and wants ice cream. Before the ice cream counts,
he has to finish a number of chores, and he has to get there before
bedtime (time) and before he melts down (energy).

Key Mechanics:
--------------
1. TIME: every move costs time_cost_per_move. Time <= 0 is "bedtime"
   and the episode fails.
2. ENERGY: every move costs energy_move_cost, chores cost extra.
   Energy <= 0 is a meltdown and the episode fails.
3. CHORES: each distinct chore tile pays chore_reward and gives back
   chore_time_bonus the first time. The goal only counts as a success
   after required_chores have been done.
4. DISTRACTIONS: TV / friends / playground pay a one-time fun reward and
   an energy boost, at the cost of extra time.
5. REVISITS: allowed, but plain, chore and distraction revisits apply
   revisit_penalty.

STEP ORDER:
Pay move cost -> blocked? (stay, check failure) -> move -> tile effect
-> check failure -> in progress.

REWARD:
Exactly one branch applies per step (blocked, distraction, chore, goal,
plain) on top of the base step reward. A successful goal REPLACES the
step reward with goal + distractions_visited * distraction_bonus.
"""

import logging
import math
from typing import TYPE_CHECKING, Dict, Optional, Set

from george_rl.environment.state import (
    FailureReason,
    ObservedState,
    ResourceSnapshot,
    StepResult,
    StepStatus,
)
from george_rl.environment.world import (
    ACTION_OFFSETS,
    Action,
    Grid,
    State,
    TILE_TO_DISTRACTION,
    TileType,
    clone_grid,
    find_tile,
    is_chore_tile,
    is_distraction_tile,
    position_key,
)

if TYPE_CHECKING:
    from george_rl.config import DistractionTypeConfig, WorldConfig

logger = logging.getLogger(__name__)

# Same order as the visit-mask bits: UP, DOWN, LEFT, RIGHT
NEIGHBOR_OFFSETS = [(-1, 0), (1, 0), (0, -1), (0, 1)]


def bucket(value: float, bucket_size: float) -> int:
    """Coarse discretization: higher bucket size = coarser grouping."""
    return max(0, math.ceil(value / max(bucket_size, 1)))


class GridWorldEnv:
    """
    One episode's worth of mutable state over a fixed grid.

    Example:
    --------
    >>> env = GridWorldEnv(create_initial_grid(), WorldConfig())
    >>> state = env.reset()
    >>> result = env.step(Action.RIGHT)
    >>> result.status, result.reward
    (<StepStatus.IN_PROGRESS: 'IN_PROGRESS'>, -1.0)
    """

    def __init__(self, grid: Grid, config: "WorldConfig"):
        """
        Initialize the environment.

        Parameters:
        -----------
        grid : Grid
            Tile layout. Copied, so later edits to the caller's grid do
            not leak into a running episode.
        config : WorldConfig
            Economy, distraction and reward settings

        Raises:
        -------
        TileNotFoundError
            If the grid has no start (KID) or no goal (ICE_CREAM) tile.
        """
        self.grid = clone_grid(grid)
        self.size = len(self.grid)
        self.config = config
        self.agent_start_pos = find_tile(self.grid, TileType.KID)
        self.goal_pos = find_tile(self.grid, TileType.ICE_CREAM)

        # Episode-specific state
        self.agent_pos: State = self.agent_start_pos
        self.time_remaining: float = config.time_limit
        self.energy: float = config.energy
        self.visit_counts: Dict[str, int] = {}
        self.distractions_visited: Set[str] = set()
        self.chores_completed: Set[str] = set()
        self.chores_done_count = 0
        self._reset_episode_state()

    def _reset_episode_state(self) -> None:
        self.agent_pos = self.agent_start_pos
        self.time_remaining = self.config.time_limit
        self.energy = self.config.energy
        self.visit_counts = {position_key(self.agent_start_pos): 1}
        self.distractions_visited = set()
        self.chores_completed = set()
        self.chores_done_count = 0

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    def get_agent_start_state(self) -> State:
        return self.agent_start_pos

    def get_remaining_steps(self) -> float:
        return self.time_remaining

    def get_resources(self) -> ResourceSnapshot:
        return ResourceSnapshot(
            time_remaining=self.time_remaining,
            energy=self.energy,
            chores_done=self.chores_done_count,
            required_chores=self.config.required_chores,
            fun_visited=len(self.distractions_visited),
        )

    def visit_count(self, position: State) -> int:
        return self.visit_counts.get(position_key(position), 0)

    def chore_label(self, position: State) -> Optional[str]:
        """Display label for a chore cell, if one is assigned."""
        return self.config.chore_assignments.get(position_key(position))

    # -------------------------------------------------------------------------
    # Episode API
    # -------------------------------------------------------------------------

    def reset(self) -> ObservedState:
        """
        Start a new episode.

        George goes back to the start tile with full time and energy,
        and the start tile counts as visited once.
        """
        self._reset_episode_state()
        return self._observe()

    def step(self, action: Action) -> StepResult:
        """
        Take one move.

        Parameters:
        -----------
        action : Action
            UP / DOWN / LEFT / RIGHT (plain ints 0-3 are accepted)

        Returns:
        --------
        StepResult
            Next observed state, reward for this move, and status
        """
        try:
            dr, dc = ACTION_OFFSETS[Action(action)]
        except ValueError:
            raise ValueError(f"Invalid action: {action!r}. Must be one of 0-3") from None

        r, c = self.agent_pos
        next_row, next_col = r + dr, c + dc
        next_key = position_key((next_row, next_col))

        # Base per-move costs, paid even when the move is blocked
        self.time_remaining -= self.config.time_cost_per_move
        self.energy -= self.config.energy_move_cost
        reward = self.config.rewards.step

        if self._is_blocked(next_row, next_col):
            failure = self._check_resource_failure()
            if failure is not None:
                return failure
            return StepResult(self._observe(), reward, False, StepStatus.IN_PROGRESS)

        # Move succeeds
        self.agent_pos = (next_row, next_col)
        current_count = self.visit_counts.get(next_key, 0)
        is_first_visit = current_count == 0
        self.visit_counts[next_key] = current_count + 1

        tile = self.grid[next_row][next_col]

        if is_distraction_tile(tile):
            if is_first_visit:
                distraction = self._distraction_type(next_key, tile)
                reward += distraction.fun_reward * self.config.fun_reward_scale
                self.time_remaining -= distraction.time_penalty
                self.energy = min(self.config.energy_cap, self.energy + distraction.energy_boost)
                self.distractions_visited.add(next_key)
            else:
                reward += self.config.rewards.revisit_penalty

        elif is_chore_tile(tile):
            if next_key not in self.chores_completed:
                self.chores_completed.add(next_key)
                self.chores_done_count += 1
                reward += self.config.rewards.chore_reward
                self.time_remaining += self.config.chore_time_bonus
            else:
                reward += self.config.rewards.revisit_penalty
            self.energy -= self.config.chore_energy_cost

        elif tile == TileType.ICE_CREAM:
            if self._can_celebrate():
                bonus = len(self.distractions_visited) * self.config.rewards.distraction_bonus
                return StepResult(
                    self._observe(),
                    self.config.rewards.goal + bonus,
                    True,
                    StepStatus.SUCCESS,
                )
            reward += self.config.rewards.early_ice_cream_penalty

        elif not is_first_visit:
            reward += self.config.rewards.revisit_penalty

        failure = self._check_resource_failure()
        if failure is not None:
            return failure

        return StepResult(self._observe(), reward, False, StepStatus.IN_PROGRESS)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _is_blocked(self, row: int, col: int) -> bool:
        if row < 0 or row >= self.size or col < 0 or col >= len(self.grid[row]):
            return True
        return self.grid[row][col] == TileType.WALL

    def _check_resource_failure(self) -> Optional[StepResult]:
        """Terminal FAILURE result if time or energy ran out, else None."""
        if self.time_remaining <= 0:
            logger.debug("Bedtime at %s (time=%s)", self.agent_pos, self.time_remaining)
            return StepResult(
                self._observe(),
                self.config.rewards.resolve_bedtime_failure(),
                True,
                StepStatus.FAILURE,
                FailureReason.BEDTIME,
            )
        if self.energy <= 0:
            logger.debug("Meltdown at %s (energy=%s)", self.agent_pos, self.energy)
            return StepResult(
                self._observe(),
                self.config.rewards.resolve_meltdown_failure(),
                True,
                StepStatus.FAILURE,
                FailureReason.MELTDOWN,
            )
        return None

    def _distraction_key(self, cell_key: str, tile: TileType) -> str:
        # Per-cell override > kind implied by the tile > configured default
        return (
            self.config.distraction_layout.get(cell_key)
            or TILE_TO_DISTRACTION.get(tile)
            or self.config.default_distraction_type
        )

    def _distraction_type(self, cell_key: str, tile: TileType) -> "DistractionTypeConfig":
        types = self.config.distraction_types
        kind = self._distraction_key(cell_key, tile)
        return types.get(kind) or types[self.config.default_distraction_type]

    def _can_celebrate(self) -> bool:
        return (
            self.chores_done_count >= self.config.required_chores
            and self.time_remaining >= 0
            and self.energy > 0
        )

    def _observe(self) -> ObservedState:
        r, c = self.agent_pos
        visit_mask = 0
        for bit, (dr, dc) in enumerate(NEIGHBOR_OFFSETS):
            if self.visit_counts.get(position_key((r + dr, c + dc)), 0) > 0:
                visit_mask |= 1 << bit

        return ObservedState(
            position=self.agent_pos,
            visit_mask=visit_mask,
            time_bucket=bucket(self.time_remaining, self.config.time_bucket_size),
            energy_bucket=bucket(self.energy, self.config.energy_bucket_size),
            chores_done=self.chores_done_count,
        )


# =============================================================================
# Quick test
# =============================================================================
if __name__ == "__main__":
    from george_rl.config import create_default_config
    from george_rl.environment.world import create_initial_grid, render_ascii

    print("Testing GridWorldEnv...")
    print()

    env = GridWorldEnv(create_initial_grid(), create_default_config())
    state = env.reset()
    print(render_ascii(env.grid, env.agent_pos))
    print()
    print(f"Start state: {state}")
    print(f"Resources:   {env.get_resources()}")
    print()

    for action in [Action.RIGHT, Action.DOWN, Action.LEFT, Action.UP]:
        result = env.step(action)
        print(f"  {action.name:5s} -> pos={result.next_state.position} "
              f"reward={result.reward:.1f} status={result.status.value}")

    print()
    print("✓ GridWorldEnv test passed!")
