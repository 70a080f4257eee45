# =============================================================================
# Training Session
# =============================================================================
"""
Host-side view of a training run.

TrainingSession is what a UI (or a script, or the Flask demo) holds on
to. It owns a TrainingWorker, posts commands to it, and folds the
responses it pumps back into plain attributes:

    episode_stats    EpisodeResult list, oldest first
                     (capped at max(config.episodes, 500))
    route_history    RouteHistory, newest first (capped at 1000)
    agent_path       path of the most recent episode
    resources        latest ResourceSnapshot
    current_episode  episodes trained so far
    training_state   IDLE / RUNNING / PAUSED / COMPLETE
    q_table          latest Q-table snapshot
    last_error       message of the most recent ErrorResponse

Config changes:
---------------
Changing a knob that reshapes the problem (epsilon, the time or energy
budget and costs, required chores, the fun scale, or any reward) throws
away what was learned and re-initialises. Anything else (learning rate,
discount, decay, speed, layout labels) is applied live via SetConfig.

Example:
--------
>>> session = run_training(config=create_default_config(episodes=200))
>>> summarize_stats(session.episode_stats)["success_rate"]
"""

import logging
import time
from typing import Any, Callable, List, Optional

from george_rl.agents.q_learning import QTable
from george_rl.config import WorldConfig, create_default_config
from george_rl.environment.route_history import RouteHistory
from george_rl.environment.state import ResourceSnapshot
from george_rl.environment.world import (
    Grid,
    State,
    TileType,
    clone_grid,
    create_initial_grid,
    find_tile,
)
from george_rl.evaluation.heatmap import (
    PolicyHeatmap,
    RouteHeatmap,
    compute_policy_heatmap,
    compute_route_heatmap,
)
from george_rl.training.messages import (
    BatchUpdate,
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
from george_rl.training.scheduler import DEFAULT_BATCH_SIZE
from george_rl.training.worker import TrainingWorker

logger = logging.getLogger(__name__)

MAX_ROUTE_HISTORY = 1000
MIN_STATS_HISTORY = 500

# Changing any of these invalidates the learned Q-table
FUNDAMENTAL_FIELDS = (
    "epsilon",
    "time_limit",
    "time_cost_per_move",
    "chore_time_bonus",
    "fun_reward_scale",
    "energy",
    "energy_move_cost",
    "chore_energy_cost",
    "required_chores",
    "rewards",
)


def requires_reinitialization(old: WorldConfig, new: WorldConfig) -> bool:
    return any(getattr(old, name) != getattr(new, name) for name in FUNDAMENTAL_FIELDS)


class TrainingSession:
    """
    Host-side consumer of scheduler responses.

    Parameters:
    -----------
    grid : Grid, optional
        Tile layout (default: George's house)
    config : WorldConfig, optional
        Default: create_default_config()
    worker : TrainingWorker, optional
        Injected for tests; otherwise one is created (and started lazily)
    batch_size : int
        Episodes per BatchUpdate
    on_response : callable, optional
        Called with every response after it has been applied
    """

    def __init__(
        self,
        grid: Optional[Grid] = None,
        config: Optional[WorldConfig] = None,
        worker: Optional[TrainingWorker] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        seed: Optional[int] = None,
        on_response: Optional[Callable[[Response], None]] = None,
    ):
        self.config = (config if config is not None else create_default_config()).validate()
        self.grid = clone_grid(grid) if grid is not None else create_initial_grid(
            default_distraction_type=self.config.default_distraction_type
        )
        self.worker = worker if worker is not None else TrainingWorker(seed=seed)
        self.batch_size = batch_size
        self.on_response = on_response

        self.episode_stats: List[EpisodeResult] = []
        self.route_history = RouteHistory(max_routes=MAX_ROUTE_HISTORY)
        self.agent_path: List[State] = []
        self.resources: ResourceSnapshot = initial_resources(self.config)
        self.current_episode = 0
        self.training_state = TrainingState.IDLE
        self.q_table: QTable = {}
        self.last_error: Optional[str] = None
        self.generation = 0
        self._initialized = False
        self._awaiting_reset = False

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    def initialize(self) -> bool:
        """
        Clear local progress and post a Reset.

        Returns False (and records last_error) if the grid has no start
        tile; nothing is posted in that case.
        """
        try:
            start = find_tile(self.grid, TileType.KID)
        except ValueError as exc:
            self.last_error = str(exc)
            logger.warning("Cannot initialise training: %s", exc)
            return False

        self.episode_stats = []
        self.route_history.clear()
        self.agent_path = [start]
        self.resources = initial_resources(self.config)
        self.current_episode = 0
        self.training_state = TrainingState.IDLE
        self.q_table = {}
        self.last_error = None

        self.generation += 1
        self._awaiting_reset = True
        self.worker.post(
            ResetCommand(grid=clone_grid(self.grid), config=self.config, generation=self.generation)
        )
        self._initialized = True
        return True

    def start(self) -> bool:
        """Start (or resume) training. From IDLE or COMPLETE this starts over."""
        if not self._initialized or self.training_state in (TrainingState.IDLE, TrainingState.COMPLETE):
            if not self.initialize():
                return False
        self.worker.post(StartCommand(batch_size=self.batch_size))
        self.training_state = TrainingState.RUNNING
        return True

    def pause(self) -> None:
        self.worker.post(PauseCommand())

    def stop(self) -> None:
        """Pause if running and shut the worker thread down."""
        if self.worker.is_alive and self.training_state == TrainingState.RUNNING:
            self.worker.post(PauseCommand())
            self.pump(timeout=0.1)
        self.worker.close()

    def update_config(self, config: WorldConfig) -> None:
        """
        Apply a new config. Fundamental changes re-initialise training;
        the rest are sent live.
        """
        config.validate()
        old = self.config
        self.config = config
        if not self._initialized:
            return
        if requires_reinitialization(old, config):
            logger.info("Fundamental config change, re-initialising")
            self.initialize()
        else:
            self.worker.post(SetConfigCommand(config=config))

    def update_grid(self, grid: Grid) -> None:
        """Replace the layout. Training starts over if it had begun."""
        self.grid = clone_grid(grid)
        if self._initialized:
            self.initialize()

    # -------------------------------------------------------------------------
    # Responses
    # -------------------------------------------------------------------------

    def pump(self, timeout: Optional[float] = 0.0) -> int:
        """
        Apply waiting responses.

        Waits up to `timeout` for the first one (0 = don't wait), then
        drains whatever else has arrived. Returns the number applied.
        """
        first = self.worker.get(timeout=timeout) if timeout else None
        responses = ([first] if first is not None else []) + self.worker.drain()
        for response in responses:
            self.apply(response)
        return len(responses)

    def apply(self, response: Response) -> None:
        """
        Fold one response into the session.

        Responses from an earlier generation (queued before the latest
        initialize()) are dropped without reaching on_response.
        """
        if response.generation != self.generation:
            logger.debug("Dropping %s from generation %d", response.type, response.generation)
            return
        if isinstance(response, BatchUpdate):
            self._apply_batch(response)
        elif isinstance(response, StateChange):
            self._apply_state_change(response)
        elif isinstance(response, ErrorResponse):
            self.last_error = response.message
            logger.warning("Training error: %s", response.message)
        if self.on_response is not None:
            self.on_response(response)

    def _apply_state_change(self, change: StateChange) -> None:
        # The first StateChange of a generation answers its Reset. If a Start
        # was posted right behind that Reset, its IDLE is already out of date.
        acknowledges_reset = self._awaiting_reset
        self._awaiting_reset = False
        if not (
            acknowledges_reset
            and change.training_state == TrainingState.IDLE
            and self.training_state == TrainingState.RUNNING
        ):
            self.training_state = change.training_state
        self.current_episode = change.current_episode
        self.resources = change.resources

    def _apply_batch(self, update: BatchUpdate) -> None:
        if update.stats:
            cap = max(self.config.episodes, MIN_STATS_HISTORY)
            self.episode_stats.extend(update.stats)
            if len(self.episode_stats) > cap:
                self.episode_stats = self.episode_stats[-cap:]
        if update.routes:
            self.route_history.extend(update.routes)
        if update.agent_path:
            self.agent_path = list(update.agent_path)
        self.resources = update.resources
        self.current_episode = update.current_episode
        self.training_state = update.training_state
        self.q_table = update.q_table

    def wait_for(
        self,
        states: Any,
        timeout: float = 30.0,
        poll: float = 0.05,
    ) -> bool:
        """
        Pump until training_state is one of `states`.

        Returns False on timeout, or as soon as an error is reported.
        """
        if isinstance(states, TrainingState):
            states = (states,)
        deadline = time.monotonic() + timeout
        while self.training_state not in states:
            if self.last_error:
                return False
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            self.pump(timeout=min(poll, remaining))
        return True

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    @property
    def grid_size(self) -> int:
        return len(self.grid)

    def route_heatmap(self) -> Optional[RouteHeatmap]:
        return compute_route_heatmap(self.route_history, self.grid_size)

    def policy_heatmap(self) -> Optional[PolicyHeatmap]:
        return compute_policy_heatmap(self.q_table, self.grid_size)

    def __enter__(self) -> "TrainingSession":
        return self

    def __exit__(self, *exc) -> None:
        self.stop()


def run_training(
    grid: Optional[Grid] = None,
    config: Optional[WorldConfig] = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
    seed: Optional[int] = None,
    timeout: Optional[float] = None,
    on_response: Optional[Callable[[Response], None]] = None,
) -> TrainingSession:
    """
    Train to completion and return the finished session.

    Parameters:
    -----------
    timeout : float, optional
        Seconds to wait for COMPLETE (default: generous estimate from
        episodes and speed)

    Raises:
    -------
    RuntimeError
        If the grid is unusable, the worker reports an error, or training
        does not complete in time
    """
    session = TrainingSession(
        grid=grid,
        config=config,
        batch_size=batch_size,
        seed=seed,
        on_response=on_response,
    )
    if timeout is None:
        per_episode = 1.0 / max(session.config.speed, 1)
        timeout = 60.0 + session.config.episodes * per_episode * 2

    try:
        if not session.start():
            raise RuntimeError(f"Could not start training: {session.last_error}")
        done = session.wait_for((TrainingState.COMPLETE,), timeout=timeout)
        if session.last_error:
            raise RuntimeError(f"Training failed: {session.last_error}")
        if not done:
            raise RuntimeError(f"Training did not complete within {timeout:.0f}s")
    finally:
        session.stop()
    return session
