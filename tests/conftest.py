"""Shared fixtures: small grids, test configs and a manual event loop."""

import pytest

from george_rl.config import DistractionTypeConfig, RewardsConfig, WorldConfig
from george_rl.environment.world import TileType

W = TileType.WALL
K = TileType.KID
G = TileType.ICE_CREAM
E = TileType.EMPTY


def make_test_grid():
    """4x5 walled grid: start (1,1), goal (1,3), open row below."""
    return [
        [W, W, W, W, W],
        [W, K, E, G, W],
        [W, E, E, E, W],
        [W, W, W, W, W],
    ]


def make_test_config(**overrides) -> WorldConfig:
    """No chores, no distraction economy, easy to reason about by hand."""
    params = dict(
        learning_rate=0.1,
        discount_factor=0.9,
        epsilon=1.0,
        epsilon_decay=0.99,
        min_epsilon=0.01,
        episodes=10,
        episode_hard_cap=30,
        speed=1,
        time_limit=20,
        time_cost_per_move=1,
        chore_time_bonus=0,
        required_chores=0,
        time_bucket_size=1,
        fun_reward_scale=1,
        energy=10,
        energy_move_cost=0,
        chore_energy_cost=0,
        energy_bucket_size=1,
        distraction_types={
            "TV": DistractionTypeConfig("TV", fun_reward=5, time_penalty=1, energy_boost=1),
            "FRIENDS": DistractionTypeConfig("Friends", fun_reward=5, time_penalty=1, energy_boost=1),
            "PLAYGROUND": DistractionTypeConfig("Playground", fun_reward=5, time_penalty=1, energy_boost=1),
        },
        distraction_layout={},
        default_distraction_type="PLAYGROUND",
        chore_assignments={},
        rewards=RewardsConfig(
            goal=100,
            step=-1,
            failure=-50,
            distraction_bonus=0,
            chore_reward=0,
            revisit_penalty=-0.5,
            early_ice_cream_penalty=-5,
            bedtime_failure=None,
            meltdown_failure=None,
        ),
    )
    params.update(overrides)
    return WorldConfig(**params).validate()


class FakeHandle:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeLoop:
    """
    Stand-in for an asyncio loop: call_later only records the callback.

    Tests advance time explicitly with run_next() / run_until_idle().
    """

    def __init__(self):
        self.handles = []

    def call_later(self, delay, callback):
        handle = FakeHandle(delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self):
        return [h for h in self.handles if not h.cancelled]

    def run_next(self) -> bool:
        pending = self.pending
        if not pending:
            return False
        handle = pending[0]
        self.handles.remove(handle)
        handle.callback()
        return True

    def run_until_idle(self, limit: int = 10_000) -> int:
        ran = 0
        while ran < limit and self.run_next():
            ran += 1
        return ran


@pytest.fixture
def test_grid():
    return make_test_grid()


@pytest.fixture
def test_config():
    return make_test_config()


@pytest.fixture
def fake_loop():
    return FakeLoop()
