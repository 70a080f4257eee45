import numpy as np
import pytest

from george_rl.environment.gym_env import GridWorldGymEnv, make_env
from george_rl.environment.state import ObservedState
from george_rl.environment.world import Action

from tests.conftest import make_test_config, make_test_grid


def test_spaces_and_reset():
    env = GridWorldGymEnv(make_test_grid(), make_test_config())
    obs, info = env.reset(seed=0)

    assert env.action_space.n == 4
    assert obs.shape == (6,)
    assert env.observation_space.contains(obs)
    assert ObservedState.from_array(obs).position == (1, 1)
    assert info["resources"]["time_remaining"] == 20
    assert info["status"] == "IN_PROGRESS"


def test_step_to_goal_terminates():
    env = GridWorldGymEnv(make_test_grid(), make_test_config())
    env.reset()
    env.step(Action.RIGHT)
    obs, reward, terminated, truncated, info = env.step(int(Action.RIGHT))

    assert terminated
    assert not truncated
    assert reward == 100.0
    assert info["status"] == "SUCCESS"
    assert info["action_name"] == "right"
    assert "failure_reason" not in info
    assert env.agent_pos == (1, 3)


def test_failure_reason_in_info():
    env = GridWorldGymEnv(make_test_grid(), make_test_config(time_limit=1))
    env.reset()
    _, reward, terminated, _, info = env.step(Action.DOWN)
    assert terminated
    assert info["failure_reason"] == "BEDTIME"
    assert reward == -50


def test_truncation_at_hard_cap():
    env = GridWorldGymEnv(make_test_grid(), make_test_config(episode_hard_cap=3, time_limit=100))
    env.reset()
    results = [env.step(Action.UP) for _ in range(3)]
    assert [r[3] for r in results] == [False, False, True]
    assert results[-1][4]["failure_reason"] == "STEP_CAP"


def test_render_ansi():
    env = GridWorldGymEnv(make_test_grid(), make_test_config(), render_mode="ansi")
    env.reset()
    text = env.render()
    assert "@" in text
    assert GridWorldGymEnv(make_test_grid(), make_test_config()).render() is None


def test_make_env_defaults_to_house():
    env = make_env()
    obs, _ = env.reset()
    assert tuple(obs[:2]) == (1, 1)
    assert env.max_steps == 200
    assert isinstance(obs, np.ndarray)


def test_invalid_action_rejected():
    env = make_env(make_test_grid(), make_test_config())
    env.reset()
    with pytest.raises(ValueError):
        env.step(9)
