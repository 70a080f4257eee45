# =============================================================================
# Environment State Types
# =============================================================================
"""
Value types passed between the environment and the agent.

ObservedState is the ONLY thing the agent sees. The environment keeps
the exact time/energy and the full visit history to itself and hands
out a coarse, discretized view:

    position      (row, col)
    visit_mask    4 bits, one per neighbour (UP, DOWN, LEFT, RIGHT)
    time_bucket   ceil(time_remaining / time_bucket_size)
    energy_bucket ceil(energy / energy_bucket_size)
    chores_done   number of distinct chores completed

Keeping the state this small is what makes tabular Q-learning
tractable on a 9x9 map.
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional

import numpy as np

from george_rl.environment.world import State


class StepStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


class FailureReason(str, Enum):
    """Why an episode failed."""
    BEDTIME = "BEDTIME"  # Time ran out
    MELTDOWN = "MELTDOWN"  # Energy ran out
    STEP_CAP = "STEP_CAP"  # Hard step cap hit without termination


@dataclass(frozen=True)
class ObservedState:
    """Discretized state surfaced to the agent."""
    position: State
    visit_mask: int
    time_bucket: int
    energy_bucket: int
    chores_done: int

    def to_array(self) -> np.ndarray:
        """Flat integer vector, used as the gymnasium observation."""
        return np.array(
            [
                self.position[0],
                self.position[1],
                self.visit_mask,
                self.time_bucket,
                self.energy_bucket,
                self.chores_done,
            ],
            dtype=np.int64,
        )

    @classmethod
    def from_array(cls, obs: np.ndarray) -> "ObservedState":
        row, col, mask, time_bucket, energy_bucket, chores = (int(v) for v in obs)
        return cls(
            position=(row, col),
            visit_mask=mask,
            time_bucket=time_bucket,
            energy_bucket=energy_bucket,
            chores_done=chores,
        )


@dataclass(frozen=True)
class ResourceSnapshot:
    """Point-in-time view of George's resources, for display."""
    time_remaining: float
    energy: float
    chores_done: int
    required_chores: int
    fun_visited: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class StepResult:
    """
    Outcome of a single env.step().

    `done` is True exactly when status is SUCCESS or FAILURE.
    `failure_reason` is only set on FAILURE.
    """
    next_state: ObservedState
    reward: float
    done: bool
    status: StepStatus
    failure_reason: Optional[FailureReason] = None
