# =============================================================================
# Training Messages
# =============================================================================
"""
Commands (host -> scheduler) and responses (scheduler -> host).

The scheduler runs in its own execution context and never shares
mutable state with the host. Everything that crosses the boundary is
one of the frozen dataclasses below, identified by its `type` tag:

    Commands                    Responses
    --------                    ---------
    RESET       grid, config    BATCH_UPDATE  stats, routes, path, ...
    SET_CONFIG  config          STATE         training_state, episode, ...
    START       batch_size      ERROR         message
    PAUSE

Grids and configs are treated as immutable snapshots. Batches carry a
deep copy of the Q-table.

Every Reset carries a generation number, and every response echoes the
generation of the Reset that produced it. Responses already queued when
the host resets can then be told apart from the new run.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Tuple, Union

from george_rl.agents.q_learning import QTable
from george_rl.config import WorldConfig
from george_rl.environment.route_history import RouteHistoryEntry
from george_rl.environment.state import FailureReason, ResourceSnapshot, StepStatus
from george_rl.environment.world import Grid, State


class TrainingState(str, Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    COMPLETE = "COMPLETE"


@dataclass(frozen=True)
class EpisodeResult:
    """Stats for one finished episode. `episode` is 1-based."""
    episode: int
    steps: int
    total_reward: float
    status: StepStatus
    failure_reason: Optional[FailureReason] = None

    @property
    def success(self) -> bool:
        return self.status == StepStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "episode": self.episode,
            "steps": self.steps,
            "total_reward": self.total_reward,
            "status": self.status.value,
            "failure_reason": self.failure_reason.value if self.failure_reason else None,
        }


def initial_resources(config: WorldConfig) -> ResourceSnapshot:
    """Resources at the start of an episode, before any step."""
    return ResourceSnapshot(
        time_remaining=config.time_limit,
        energy=config.energy,
        chores_done=0,
        required_chores=config.required_chores,
        fun_visited=0,
    )


# =============================================================================
# Commands
# =============================================================================

@dataclass(frozen=True)
class ResetCommand:
    type: ClassVar[str] = "RESET"
    grid: Grid
    config: WorldConfig
    generation: int = 0


@dataclass(frozen=True)
class SetConfigCommand:
    type: ClassVar[str] = "SET_CONFIG"
    config: WorldConfig


@dataclass(frozen=True)
class StartCommand:
    type: ClassVar[str] = "START"
    batch_size: int = 0


@dataclass(frozen=True)
class PauseCommand:
    type: ClassVar[str] = "PAUSE"


Command = Union[ResetCommand, SetConfigCommand, StartCommand, PauseCommand]

COMMAND_TYPES: Tuple[type, ...] = (ResetCommand, SetConfigCommand, StartCommand, PauseCommand)


# =============================================================================
# Responses
# =============================================================================

@dataclass(frozen=True)
class BatchUpdate:
    type: ClassVar[str] = "BATCH_UPDATE"
    stats: Tuple[EpisodeResult, ...]
    routes: Tuple[RouteHistoryEntry, ...]
    agent_path: Tuple[State, ...]
    resources: ResourceSnapshot
    current_episode: int
    training_state: TrainingState
    q_table: QTable = field(default_factory=dict)
    generation: int = 0


@dataclass(frozen=True)
class StateChange:
    type: ClassVar[str] = "STATE"
    training_state: TrainingState
    current_episode: int
    resources: ResourceSnapshot
    generation: int = 0


@dataclass(frozen=True)
class ErrorResponse:
    type: ClassVar[str] = "ERROR"
    message: str
    generation: int = 0


Response = Union[BatchUpdate, StateChange, ErrorResponse]

RESPONSE_TYPES: Tuple[type, ...] = (BatchUpdate, StateChange, ErrorResponse)
