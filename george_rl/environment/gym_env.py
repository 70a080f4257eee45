# =============================================================================
# Gymnasium Adapter
# =============================================================================
"""
Gymnasium-compatible wrapper around GridWorldEnv.

GridWorldEnv has its own small interface (reset() -> ObservedState,
step() -> StepResult) that the Q-learning agent drives directly. This
adapter exposes the same simulation through the standard Gymnasium API
so that any policy function, random baselines, or third-party tooling
can be evaluated on George's world.

Observation:
------------
Box of 6 integers:
    [row, col, visit_mask, time_bucket, energy_bucket, chores_done]
Use ObservedState.from_array() to get the structured form back.

Episode end:
------------
- terminated: SUCCESS or FAILURE reported by the environment
- truncated:  episode_hard_cap steps taken without termination
"""

from typing import Any, Dict, Optional, Tuple

import gymnasium as gym
import numpy as np
from gymnasium import spaces

from george_rl.environment.grid_world_env import GridWorldEnv
from george_rl.environment.state import FailureReason
from george_rl.environment.world import ACTIONS, Action


class GridWorldGymEnv(gym.Env):
    """
    Gymnasium environment for George's grid world.

    Example:
    --------
    >>> env = make_env()
    >>> obs, info = env.reset(seed=0)
    >>> obs, reward, terminated, truncated, info = env.step(3)  # RIGHT
    >>> info["status"]
    'IN_PROGRESS'
    """

    metadata = {"render_modes": ["ansi"]}

    # Human-readable action names for debugging/visualization
    ACTION_NAMES = [action.name.lower() for action in ACTIONS]

    def __init__(self, grid, config, render_mode: Optional[str] = None):
        super().__init__()
        self.env = GridWorldEnv(grid, config)
        self.config = config
        self.render_mode = render_mode
        self.max_steps = config.episode_hard_cap

        self.action_space = spaces.Discrete(len(ACTIONS))
        self.observation_space = spaces.Box(
            low=0,
            high=np.iinfo(np.int32).max,
            shape=(6,),
            dtype=np.int64,
        )

        self._step_count = 0

    def reset(
        self,
        *,
        seed: Optional[int] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> Tuple[np.ndarray, Dict[str, Any]]:
        """Reset the environment (the simulation itself is deterministic)."""
        super().reset(seed=seed)
        state = self.env.reset()
        self._step_count = 0
        return state.to_array(), self._info(state)

    def step(
        self, action: int
    ) -> Tuple[np.ndarray, float, bool, bool, Dict[str, Any]]:
        result = self.env.step(Action(int(action)))
        self._step_count += 1

        terminated = result.done
        truncated = not terminated and self._step_count >= self.max_steps

        info = self._info(result.next_state)
        info["status"] = result.status.value
        info["action_name"] = self.ACTION_NAMES[int(action)]
        if result.failure_reason is not None:
            info["failure_reason"] = result.failure_reason.value
        elif truncated:
            info["failure_reason"] = FailureReason.STEP_CAP.value

        return result.next_state.to_array(), float(result.reward), terminated, truncated, info

    def render(self) -> Optional[str]:
        if self.render_mode == "ansi":
            from george_rl.environment.world import render_ascii

            return render_ascii(self.env.grid, self.env.agent_pos)
        return None

    def _info(self, state) -> Dict[str, Any]:
        return {
            "observed_state": state,
            "resources": self.env.get_resources().to_dict(),
            "step_count": self._step_count,
            "status": "IN_PROGRESS",
        }

    @property
    def agent_pos(self):
        return self.env.agent_pos


# =============================================================================
# Convenience functions
# =============================================================================

def make_env(grid=None, config=None, **kwargs) -> GridWorldGymEnv:
    """
    Create the Gymnasium environment with sensible defaults.

    Parameters:
    -----------
    grid : Grid, optional
        Tile layout (default: George's 9x9 house)
    config : WorldConfig, optional
        World configuration (default: create_default_config())
    **kwargs
        Passed to GridWorldGymEnv
    """
    # Import here to avoid a circular import with george_rl.config
    from george_rl.config import create_default_config
    from george_rl.environment.world import create_initial_grid

    if config is None:
        config = create_default_config()
    if grid is None:
        grid = create_initial_grid(default_distraction_type=config.default_distraction_type)
    return GridWorldGymEnv(grid, config, **kwargs)
