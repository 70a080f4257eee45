import pytest

from george_rl.agents.q_learning import QLearningAgent
from george_rl.environment.grid_world_env import GridWorldEnv
from george_rl.environment.state import FailureReason, StepStatus
from george_rl.evaluation.metrics import (
    EvaluationSuite,
    choose_cohort_size,
    choose_rolling_window,
    compute_average_reward,
    compute_cohorts,
    compute_success_rate,
    compute_trend,
    greedy_policy,
    rolling_series,
    summarize_stats,
)
from george_rl.training.messages import EpisodeResult

from tests.conftest import make_test_config, make_test_grid


def _stats(rewards, successes=None):
    successes = successes or [r > 0 for r in rewards]
    return [
        EpisodeResult(
            episode=i + 1,
            steps=5,
            total_reward=float(r),
            status=StepStatus.SUCCESS if ok else StepStatus.FAILURE,
            failure_reason=None if ok else FailureReason.BEDTIME,
        )
        for i, (r, ok) in enumerate(zip(rewards, successes))
    ]


def test_success_rate_and_average():
    assert compute_success_rate([]) == 0.0
    assert compute_success_rate([True, False, True, True]) == 0.75
    assert compute_average_reward([]) == 0.0
    assert compute_average_reward(_stats([1, 2, 3])) == pytest.approx(2.0)


@pytest.mark.parametrize(
    "n, expected",
    [(0, 1), (10, 10), (50, 50), (400, 50), (401, 100), (800, 100), (801, 150), (5000, 150)],
)
def test_rolling_window_choice(n, expected):
    assert choose_rolling_window(n) == expected


@pytest.mark.parametrize("n, expected", [(10, 50), (601, 100), (1201, 200)])
def test_cohort_size_choice(n, expected):
    assert choose_cohort_size(n) == expected


def test_rolling_series_averages_trailing_window():
    stats = _stats([-1, 3, 5, -3])
    series = rolling_series(stats, window=2)

    assert [p["episode"] for p in series] == [1, 2, 3, 4]
    assert [p["moving_avg_reward"] for p in series] == [-1.0, 1.0, 4.0, 1.0]
    assert [p["moving_success_rate"] for p in series] == [0.0, 50.0, 100.0, 50.0]
    assert series[0]["status"] == "FAILURE"


def test_rolling_series_rounds_to_two_decimals():
    series = rolling_series(_stats([1, 1, 2]), window=3)
    assert series[-1]["moving_avg_reward"] == 1.33


def test_cohorts():
    stats = _stats([1] * 50 + [-1] * 50 + [2] * 10)
    cohorts = compute_cohorts(stats)

    assert len(cohorts) == 3
    assert cohorts[0]["start_episode"] == 1
    assert cohorts[0]["end_episode"] == 50
    assert cohorts[0]["midpoint"] == 26
    assert cohorts[0]["success_rate"] == 100.0
    assert cohorts[1]["avg_reward"] == -1.0
    assert cohorts[2]["midpoint"] == 106


def test_trend_compares_recent_with_early():
    stats = _stats([-2] * 10 + [0] * 10 + [4] * 10)
    trend = compute_trend(stats)

    assert trend["window"] == 10
    assert trend["reward_delta"] == pytest.approx(6.0)
    assert trend["success_delta"] == pytest.approx(100.0)


def test_trend_window_never_below_one():
    assert compute_trend(_stats([5]))["window"] == 1
    assert compute_trend(_stats([5]))["reward_delta"] == 0.0


def test_summarize_stats():
    stats = _stats([-1, 8, 3, 8])
    summary = summarize_stats(stats)

    assert summary["best_episode"].episode == 2
    assert summary["average_reward"] == pytest.approx(4.5)
    assert summary["success_rate"] == pytest.approx(75.0)
    assert summary["rolling_window"] == 4
    assert len(summary["chart_data"]) == 4
    assert len(summary["cohort_data"]) == 1


def test_summarize_empty():
    summary = summarize_stats([])
    assert summary["best_episode"] is None
    assert summary["chart_data"] == []


def test_evaluation_suite_with_trained_agent():
    grid = make_test_grid()
    config = make_test_config(epsilon=1.0, epsilon_decay=0.99, min_epsilon=0.3, learning_rate=0.5)
    env = GridWorldEnv(grid, config)
    agent = QLearningAgent(config, seed=3)
    for _ in range(500):
        agent.train_episode(env)

    metrics = EvaluationSuite(grid, config).evaluate(greedy_policy(agent), num_episodes=3)

    assert metrics["num_episodes"] == 3
    assert metrics["success_rate"] == 1.0
    assert metrics["mean_length"] == pytest.approx(2.0)
    episode = metrics["episodes"][0]
    assert episode["path"] == [(1, 1), (1, 2), (1, 3)]
    assert episode["status"] == "SUCCESS"


def test_evaluation_suite_records_step_cap_failures():
    config = make_test_config(required_chores=1, episode_hard_cap=4, time_limit=100)
    metrics = EvaluationSuite(make_test_grid(), config).evaluate(lambda obs: 0, num_episodes=2)

    assert metrics["success_rate"] == 0.0
    episode = metrics["episodes"][0]
    assert episode["steps"] == 4
    assert episode["failure_reason"] == "STEP_CAP"
    assert episode["status"] == "FAILURE"
