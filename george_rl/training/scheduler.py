# =============================================================================
# Training Scheduler
# =============================================================================
"""
Runs Q-learning episodes one at a time without blocking the host.

The scheduler owns one GridWorldEnv and one QLearningAgent. It reacts to
commands (Reset / SetConfig / Start / Pause) and, while running, trains
one episode per scheduled tick, batching the results for the host.

Scheduling Loop:
----------------

    START ──▶ schedule(tick) ──▶ tick: train 1 episode ──▶ batch full? ──▶ emit
                  ▲                        │
                  └──── still running ◀────┘

Each tick is a separate callback on an event loop (asyncio's
call_later), never a tight loop. A Pause or Reset that arrives between
two ticks cancels the pending callback before the next episode starts.
An episode that is already running always finishes first.

Batch Flushing:
---------------
- RUNNING:  emitted when batch_size episodes have accumulated; an empty
  RUNNING batch is never sent.
- PAUSED / COMPLETE: always emitted, even with an empty batch, so the
  host learns about the state change.

Failures:
---------
A command or episode that raises is reported as an ErrorResponse
followed by a StateChange with the state training was left in. A failed
episode leaves training PAUSED; a failed Reset leaves it IDLE.

Delay between ticks: max(1, floor(1000 / max(speed, 1))) ms.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from george_rl.agents.q_learning import QLearningAgent
from george_rl.config import WorldConfig, create_default_config
from george_rl.environment.grid_world_env import GridWorldEnv
from george_rl.environment.route_history import RouteHistoryEntry
from george_rl.environment.state import ResourceSnapshot
from george_rl.environment.world import Grid, State, clone_grid, create_initial_grid
from george_rl.training.messages import (
    BatchUpdate,
    Command,
    EpisodeResult,
    ErrorResponse,
    PauseCommand,
    ResetCommand,
    Response,
    SetConfigCommand,
    StartCommand,
    StateChange,
    TrainingState,
    initial_resources,
)

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10


def episode_delay(speed: float) -> float:
    """Seconds to wait between episodes. Never less than 1 ms."""
    millis = max(1, math.floor(1000 / max(speed, 1)))
    return millis / 1000.0


@dataclass
class SchedulerState:
    """Everything the scheduler owns. Only the scheduler mutates it."""
    grid: Grid
    config: WorldConfig
    env: Optional[GridWorldEnv] = None
    agent: Optional[QLearningAgent] = None
    is_running: bool = False
    training_state: TrainingState = TrainingState.IDLE
    current_episode: int = 0
    batch_size: int = DEFAULT_BATCH_SIZE
    batch_stats: List[EpisodeResult] = field(default_factory=list)
    batch_routes: List[RouteHistoryEntry] = field(default_factory=list)
    last_path: List[State] = field(default_factory=list)
    resources: Optional[ResourceSnapshot] = None
    timer: Any = None  # Pending call_later handle
    generation: int = 0  # Echoed on every response


class TrainingScheduler:
    """
    Command handler and episode loop.

    Parameters:
    -----------
    emit : callable
        Receives every Response. Must not block.
    loop : event loop
        Anything with asyncio's `call_later(delay, callback)` returning a
        handle with `cancel()`.
    grid, config : optional
        Initial snapshot used if Start arrives before any Reset
    seed : int, optional
        Seed for the agent's exploration RNG (applied on every rebuild)

    Example:
    --------
    >>> loop = asyncio.new_event_loop()
    >>> scheduler = TrainingScheduler(responses.put, loop)
    >>> scheduler.handle(ResetCommand(grid, config))
    >>> scheduler.handle(StartCommand(batch_size=10))
    >>> loop.run_forever()
    """

    def __init__(
        self,
        emit: Callable[[Response], None],
        loop: Any,
        grid: Optional[Grid] = None,
        config: Optional[WorldConfig] = None,
        seed: Optional[int] = None,
    ):
        config = config if config is not None else create_default_config()
        grid = grid if grid is not None else create_initial_grid(
            default_distraction_type=config.default_distraction_type
        )
        self.emit = emit
        self.loop = loop
        self.seed = seed
        self.state = SchedulerState(grid=clone_grid(grid), config=config)
        self.state.resources = initial_resources(config)

    # -------------------------------------------------------------------------
    # Command entry point
    # -------------------------------------------------------------------------

    def handle(self, command: Command) -> None:
        """
        Apply one command. Never raises: failures become ErrorResponse.
        """
        try:
            if isinstance(command, ResetCommand):
                self._reset(command.grid, command.config, command.generation)
            elif isinstance(command, SetConfigCommand):
                self._set_config(command.config)
            elif isinstance(command, StartCommand):
                self._start(command.batch_size)
            elif isinstance(command, PauseCommand):
                self._pause()
            else:
                tag = getattr(command, "type", type(command).__name__)
                logger.warning("Unknown command: %s", tag)
                self.emit(self._error(f"Unknown command: {tag}"))
        except Exception as exc:
            logger.exception("Command %s failed", type(command).__name__)
            self.emit(self._error(str(exc) or type(exc).__name__))
            self.emit(self._state_change())

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def _reset(self, grid: Grid, config: WorldConfig, generation: int = 0) -> None:
        self.state.generation = generation
        self._cancel_timer()
        self.state.is_running = False
        self.state.training_state = TrainingState.IDLE
        self.state.env = None
        self.state.agent = None
        config.validate()
        self.state.grid = clone_grid(grid)
        self.state.config = config
        self._reset_environment()
        logger.info("Scheduler reset (%dx%d grid)", len(grid), len(grid[0]) if grid else 0)
        self.emit(self._state_change())

    def _reset_environment(self) -> None:
        s = self.state
        s.env = None
        s.agent = None
        s.current_episode = 0
        s.batch_stats = []
        s.batch_routes = []
        s.resources = initial_resources(s.config)
        s.last_path = []
        s.training_state = TrainingState.IDLE

        # May raise TileNotFoundError; env/agent stay None in that case
        s.env = GridWorldEnv(s.grid, s.config)
        s.agent = QLearningAgent(s.config, seed=self.seed)
        s.last_path = [s.env.get_agent_start_state()]

    def _set_config(self, config: WorldConfig) -> None:
        config.validate()
        s = self.state
        s.config = config
        if s.agent is not None:
            s.agent.set_config(config)
        else:
            s.agent = QLearningAgent(config, seed=self.seed)
        s.env = None
        s.env = GridWorldEnv(s.grid, config)
        s.resources = initial_resources(config)
        logger.info("Config updated (episode %d)", s.current_episode)

    def _start(self, batch_size: int) -> None:
        s = self.state
        if s.env is None or s.agent is None:
            self._reset_environment()

        s.batch_size = batch_size if batch_size and batch_size > 0 else DEFAULT_BATCH_SIZE

        if s.is_running:
            return

        s.is_running = True
        s.training_state = TrainingState.RUNNING
        logger.info("Training started at episode %d (batch size %d)", s.current_episode, s.batch_size)
        self.emit(self._state_change())
        self._schedule_next_episode()

    def _pause(self) -> None:
        s = self.state
        s.is_running = False
        self._cancel_timer()
        if s.agent is None:
            self.emit(self._state_change())
            return
        s.training_state = TrainingState.PAUSED
        logger.info("Training paused at episode %d", s.current_episode)
        self._flush_batch(TrainingState.PAUSED)

    # -------------------------------------------------------------------------
    # Episode loop
    # -------------------------------------------------------------------------

    def _schedule_next_episode(self) -> None:
        self._cancel_timer()
        self.state.timer = self.loop.call_later(
            episode_delay(self.state.config.speed), self._on_tick
        )

    def _cancel_timer(self) -> None:
        if self.state.timer is not None:
            self.state.timer.cancel()
            self.state.timer = None

    def _on_tick(self) -> None:
        self.state.timer = None
        try:
            self.run_episode()
        except Exception as exc:
            logger.exception("Episode %d failed", self.state.current_episode + 1)
            self.state.is_running = False
            self.state.training_state = TrainingState.PAUSED
            self.emit(self._error(str(exc) or type(exc).__name__))
            self.emit(self._state_change())

    def run_episode(self) -> None:
        """Train one episode and reschedule. Normally called by the loop."""
        s = self.state
        if not s.is_running or s.env is None or s.agent is None:
            return

        if s.current_episode >= s.config.episodes:
            self._complete()
            return

        outcome = s.agent.train_episode(s.env)
        s.current_episode += 1

        s.batch_stats.append(
            EpisodeResult(
                episode=s.current_episode,
                steps=outcome.steps,
                total_reward=outcome.total_reward,
                status=outcome.status,
                failure_reason=outcome.failure_reason,
            )
        )
        s.batch_routes.append(RouteHistoryEntry.from_path(outcome.path, outcome.total_reward))
        s.last_path = list(outcome.path)
        s.resources = outcome.resources

        reached_limit = s.current_episode >= s.config.episodes
        if reached_limit:
            self._complete()
            return

        if len(s.batch_stats) >= s.batch_size:
            self._flush_batch(TrainingState.RUNNING)

        if s.is_running:
            self._schedule_next_episode()

    def _complete(self) -> None:
        s = self.state
        s.is_running = False
        s.training_state = TrainingState.COMPLETE
        self._cancel_timer()
        logger.info("Training complete after %d episodes", s.current_episode)
        self._flush_batch(TrainingState.COMPLETE)

    # -------------------------------------------------------------------------
    # Output
    # -------------------------------------------------------------------------

    def _flush_batch(self, training_state: TrainingState) -> None:
        s = self.state
        if s.agent is None:
            return
        if not s.batch_stats and training_state == TrainingState.RUNNING:
            return

        self.emit(
            BatchUpdate(
                stats=tuple(s.batch_stats),
                routes=tuple(s.batch_routes),
                agent_path=tuple(s.last_path),
                resources=s.resources,
                current_episode=s.current_episode,
                training_state=training_state,
                q_table=s.agent.snapshot_q_table(),
                generation=s.generation,
            )
        )
        s.batch_stats = []
        s.batch_routes = []

    def _state_change(self) -> StateChange:
        s = self.state
        return StateChange(
            training_state=s.training_state,
            current_episode=s.current_episode,
            resources=s.resources,
            generation=s.generation,
        )

    def _error(self, message: str) -> ErrorResponse:
        return ErrorResponse(message, generation=self.state.generation)
