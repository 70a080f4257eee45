# =============================================================================
# Tabular Q-Learning Agent
# =============================================================================
"""
Tabular Q-learning with epsilon-greedy exploration.

Q-Learning Explained:
---------------------
The agent keeps a table Q[state][action] estimating the discounted
return of taking `action` in `state` and acting greedily afterwards.
After every transition (s, a, r, s') it nudges the estimate towards
the one-step target:

    Q(s, a) <- Q(s, a) + alpha * (r + gamma * max_a' Q(s', a') - Q(s, a))

Where:
- alpha = learning_rate  (how far to move towards the target)
- gamma = discount_factor (how much future reward matters)
- max_a' Q(s', a') = best value recorded for the next state (0 if none)

Exploration:
------------
With probability epsilon a random action is taken, otherwise the best
known one. Epsilon decays after every episode:

    epsilon <- max(min_epsilon, epsilon * epsilon_decay)

so George explores a lot early and mostly exploits later.

The table grows lazily: unseen (state, action) pairs are worth 0.
"""

import copy
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Optional

import numpy as np

from george_rl.agents.state_encoding import state_to_key
from george_rl.environment.state import (
    FailureReason,
    ObservedState,
    ResourceSnapshot,
    StepStatus,
)
from george_rl.environment.world import ACTIONS, Action, State

if TYPE_CHECKING:
    from george_rl.config import WorldConfig
    from george_rl.environment.grid_world_env import GridWorldEnv

logger = logging.getLogger(__name__)

QTable = Dict[str, Dict[Action, float]]


@dataclass
class EpisodeOutcome:
    """What one call to train_episode() produced."""
    steps: int
    total_reward: float
    status: StepStatus
    path: List[State]
    remaining_steps: float
    resources: ResourceSnapshot
    failure_reason: Optional[FailureReason] = None

    @property
    def success(self) -> bool:
        return self.status == StepStatus.SUCCESS


class QLearningAgent:
    """
    Q-learning agent for George's grid world.

    Example:
    --------
    >>> agent = QLearningAgent(config, seed=42)
    >>> for _ in range(config.episodes):
    ...     outcome = agent.train_episode(env)
    >>> agent.best_action(env.reset())
    """

    def __init__(self, config: "WorldConfig", seed: Optional[int] = None):
        """
        Parameters:
        -----------
        config : WorldConfig
            Supplies learning rate, discount, epsilon schedule and the
            per-episode step cap
        seed : int, optional
            Seed for the exploration RNG
        """
        self.config = config
        self.actions: List[Action] = list(ACTIONS)
        self.q_table: QTable = {}
        self.current_epsilon = config.epsilon
        self.rng = np.random.default_rng(seed)

    @property
    def epsilon(self) -> float:
        return self.current_epsilon

    # -------------------------------------------------------------------------
    # Value table
    # -------------------------------------------------------------------------

    def get_q_value(self, state: ObservedState, action: Action) -> float:
        """Stored value, or 0 for a pair that was never updated."""
        return self.q_table.get(state_to_key(state), {}).get(Action(action), 0.0)

    def _max_q(self, state: ObservedState) -> float:
        values = self.q_table.get(state_to_key(state))
        if not values:
            return 0.0
        return max(values.values())

    def update_q_value(
        self,
        state: ObservedState,
        action: Action,
        reward: float,
        next_state: ObservedState,
    ) -> float:
        """
        Bellman backup for one transition.

        Returns:
        --------
        float
            The new Q(state, action)
        """
        old_q = self.get_q_value(state, action)
        max_next_q = self._max_q(next_state)

        new_q = old_q + self.config.learning_rate * (
            reward + self.config.discount_factor * max_next_q - old_q
        )

        self.q_table.setdefault(state_to_key(state), {})[Action(action)] = new_q
        return new_q

    # -------------------------------------------------------------------------
    # Acting
    # -------------------------------------------------------------------------

    def best_action(self, state: ObservedState) -> Action:
        """Greedy action. Ties go to the first action in UP, DOWN, LEFT, RIGHT."""
        values = self.q_table.get(state_to_key(state), {})
        best = self.actions[0]
        max_q = float("-inf")
        for action in self.actions:
            q = values.get(action, 0.0)
            if q > max_q:
                max_q = q
                best = action
        return best

    def choose_action(self, state: ObservedState) -> Action:
        """Epsilon-greedy action selection."""
        if self.rng.random() < self.current_epsilon:
            return self.actions[int(self.rng.integers(len(self.actions)))]
        return self.best_action(state)

    # -------------------------------------------------------------------------
    # Training
    # -------------------------------------------------------------------------

    def train_episode(self, env: "GridWorldEnv") -> EpisodeOutcome:
        """
        Run one full episode, learning from every transition.

        The loop ends when the environment terminates or after
        episode_hard_cap steps (recorded as a FAILURE). Epsilon decays
        once at the end.
        """
        state = env.reset()
        path: List[State] = [state.position]
        total_reward = 0.0
        steps = 0
        done = False
        status = StepStatus.FAILURE
        failure_reason: Optional[FailureReason] = None

        while not done and steps < self.config.episode_hard_cap:
            action = self.choose_action(state)
            result = env.step(action)
            self.update_q_value(state, action, result.reward, result.next_state)

            state = result.next_state
            path.append(state.position)
            total_reward += result.reward
            steps += 1
            done = result.done
            if done:
                status = result.status
                failure_reason = result.failure_reason

        if not done:
            failure_reason = FailureReason.STEP_CAP

        self.current_epsilon = max(
            self.config.min_epsilon, self.current_epsilon * self.config.epsilon_decay
        )

        logger.debug(
            "Episode finished: status=%s steps=%d reward=%.2f epsilon=%.4f",
            status.value, steps, total_reward, self.current_epsilon,
        )

        return EpisodeOutcome(
            steps=steps,
            total_reward=total_reward,
            status=status,
            path=path,
            remaining_steps=env.get_remaining_steps(),
            resources=env.get_resources(),
            failure_reason=failure_reason,
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def get_q_table(self) -> QTable:
        """The live table. Callers must not mutate it."""
        return self.q_table

    def snapshot_q_table(self) -> QTable:
        """Independent copy, safe to hand to another thread."""
        return copy.deepcopy(self.q_table)

    def reset(self) -> None:
        """Forget everything learned and restart the epsilon schedule."""
        self.q_table = {}
        self.current_epsilon = self.config.epsilon

    def set_config(self, new_config: "WorldConfig") -> None:
        """
        Swap in a new configuration.

        The table is kept. Epsilon restarts from the new starting value
        only if that starting value changed; otherwise decay continues.
        """
        should_reset_epsilon = new_config.epsilon != self.config.epsilon
        self.config = new_config
        if should_reset_epsilon:
            logger.info("Epsilon changed, restarting exploration at %s", new_config.epsilon)
            self.current_epsilon = new_config.epsilon
