# =============================================================================
# Evaluation Metrics
# =============================================================================
"""
Metrics for training progress and policy evaluation.

Training statistics operate on a list of EpisodeResult (episode order).
EvaluationSuite rolls a fixed policy through the Gymnasium adapter.
"""

import math
from typing import Any, Callable, Dict, List, Optional, Sequence

import numpy as np

from george_rl.environment.state import ObservedState


def compute_success_rate(
    successes: Sequence[bool],
) -> float:
    """
    Compute success rate.

    Parameters:
    -----------
    successes : Sequence[bool]
        Success flag per episode

    Returns:
    --------
    float
        Success rate (0.0 to 1.0)
    """
    if not successes:
        return 0.0
    return sum(bool(s) for s in successes) / len(successes)


def compute_average_reward(stats: Sequence[Any]) -> float:
    if not stats:
        return 0.0
    return float(np.mean([s.total_reward for s in stats]))


def choose_rolling_window(num_episodes: int) -> int:
    """Wider windows for longer histories: 50, 100 (>400) or 150 (>800)."""
    base = 150 if num_episodes > 800 else 100 if num_episodes > 400 else 50
    return max(1, min(base, num_episodes))


def choose_cohort_size(num_episodes: int) -> int:
    return 200 if num_episodes > 1200 else 100 if num_episodes > 600 else 50


def rolling_series(
    stats: Sequence[Any],
    window: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """
    Per-episode moving averages.

    Each point averages the last `window` episodes up to and including
    itself (fewer at the start of the history).

    Returns:
    --------
    list of dict
        episode, reward, moving_avg_reward, moving_success_rate (%),
        steps, status
    """
    if not stats:
        return []
    window = window or choose_rolling_window(len(stats))

    rewards = np.array([s.total_reward for s in stats], dtype=float)
    successes = np.array([1.0 if s.success else 0.0 for s in stats])

    # Prefix sums make every window O(1)
    reward_cum = np.concatenate([[0.0], np.cumsum(rewards)])
    success_cum = np.concatenate([[0.0], np.cumsum(successes)])

    series = []
    for i, s in enumerate(stats):
        start = max(0, i - window + 1)
        n = i + 1 - start
        series.append({
            "episode": s.episode,
            "reward": round(float(s.total_reward), 2),
            "moving_avg_reward": round(float((reward_cum[i + 1] - reward_cum[start]) / n), 2),
            "moving_success_rate": round(float((success_cum[i + 1] - success_cum[start]) / n * 100), 2),
            "steps": s.steps,
            "status": s.status.value,
        })
    return series


def compute_cohorts(
    stats: Sequence[Any],
    cohort_size: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Split the history into consecutive cohorts and summarise each."""
    cohort_size = cohort_size or choose_cohort_size(len(stats))
    cohorts = []
    for i in range(0, len(stats), cohort_size):
        chunk = stats[i:i + cohort_size]
        start_episode = chunk[0].episode
        end_episode = chunk[-1].episode
        cohorts.append({
            "midpoint": int(math.floor((start_episode + end_episode) / 2 + 0.5)),
            "start_episode": start_episode,
            "end_episode": end_episode,
            "avg_reward": round(compute_average_reward(chunk), 2),
            "success_rate": round(compute_success_rate([s.success for s in chunk]) * 100, 2),
        })
    return cohorts


def compute_trend(
    stats: Sequence[Any],
    rolling_window: Optional[int] = None,
) -> Dict[str, float]:
    """
    Compare the earliest and the most recent episodes.

    Window = max(1, min(len // 3, rolling_window)).

    Returns:
    --------
    dict
        reward_delta, success_delta (percentage points), window
    """
    if not stats:
        return {"reward_delta": 0.0, "success_delta": 0.0, "window": 0}

    rolling_window = rolling_window or choose_rolling_window(len(stats))
    window = max(1, min(len(stats) // 3, rolling_window))
    early = stats[:window]
    recent = stats[-window:]

    def success_pct(chunk):
        return compute_success_rate([s.success for s in chunk]) * 100

    return {
        "reward_delta": compute_average_reward(recent) - compute_average_reward(early),
        "success_delta": success_pct(recent) - success_pct(early),
        "window": window,
    }


def summarize_stats(stats: Sequence[Any]) -> Dict[str, Any]:
    """
    Everything the stats panel shows, in one dict.

    Example:
    --------
    >>> summary = summarize_stats(session.episode_stats)
    >>> print(f"Success rate: {summary['success_rate']:.1f}%")
    """
    if not stats:
        return {
            "best_episode": None,
            "average_reward": 0.0,
            "success_rate": 0.0,
            "chart_data": [],
            "cohort_data": [],
            "rolling_window": 0,
            "trend": {"reward_delta": 0.0, "success_delta": 0.0, "window": 0},
        }

    # First of the highest rewards wins
    best = stats[0]
    for s in stats[1:]:
        if s.total_reward > best.total_reward:
            best = s

    rolling_window = choose_rolling_window(len(stats))
    return {
        "best_episode": best,
        "average_reward": compute_average_reward(stats),
        "success_rate": compute_success_rate([s.success for s in stats]) * 100,
        "chart_data": rolling_series(stats, rolling_window),
        "cohort_data": compute_cohorts(stats),
        "rolling_window": rolling_window,
        "trend": compute_trend(stats, rolling_window),
    }


# =============================================================================
# Policy evaluation
# =============================================================================

def greedy_policy(agent) -> Callable[[np.ndarray], int]:
    """Wrap a trained QLearningAgent as a policy over gym observations."""
    def policy(obs: np.ndarray) -> int:
        return int(agent.best_action(ObservedState.from_array(obs)))
    return policy


class EvaluationSuite:
    """
    Runs a policy on George's world and computes metrics.

    Example:
    --------
    >>> suite = EvaluationSuite(grid, config)
    >>> metrics = suite.evaluate(greedy_policy(agent), num_episodes=20)
    >>> print(f"Success rate: {metrics['success_rate']:.1%}")
    """

    def __init__(self, grid=None, config=None, seed: int = 42):
        """
        Parameters:
        -----------
        grid : Grid, optional
            Defaults to George's house
        config : WorldConfig, optional
            Defaults to create_default_config()
        seed : int
            Base seed, episode i is reset with seed + i
        """
        self.grid = grid
        self.config = config
        self.seed = seed

    def evaluate(
        self,
        policy_fn: Callable[[np.ndarray], int],
        num_episodes: int = 100,
        verbose: bool = False,
    ) -> Dict[str, Any]:
        """
        Run evaluation.

        Returns:
        --------
        dict
            success_rate, mean/std reward and length, failure reasons,
            and per-episode records (with paths)
        """
        from george_rl.environment.gym_env import make_env

        env = make_env(self.grid, self.config)

        successes = []
        rewards = []
        lengths = []
        episodes_data = []

        for ep in range(num_episodes):
            obs, info = env.reset(seed=self.seed + ep)
            path = [env.agent_pos]
            actions = []

            done = False
            ep_reward = 0.0
            ep_length = 0
            terminated = False

            while not done:
                action = policy_fn(obs)
                actions.append(int(action))

                obs, reward, terminated, truncated, info = env.step(action)
                done = terminated or truncated
                path.append(env.agent_pos)

                ep_reward += reward
                ep_length += 1

            success = terminated and info["status"] == "SUCCESS"
            successes.append(success)
            rewards.append(ep_reward)
            lengths.append(ep_length)

            episodes_data.append({
                "success": success,
                "status": info["status"] if terminated else "FAILURE",
                "failure_reason": info.get("failure_reason"),
                "reward": ep_reward,
                "steps": ep_length,
                "max_steps": env.max_steps,
                "actions": actions,
                "path": path,
            })

            if verbose and (ep + 1) % 20 == 0:
                current_sr = compute_success_rate(successes)
                print(f"Episode {ep+1}/{num_episodes}: Success rate = {current_sr:.1%}")

        env.close()

        metrics = {
            "success_rate": compute_success_rate(successes),
            "mean_reward": float(np.mean(rewards)) if rewards else 0.0,
            "std_reward": float(np.std(rewards)) if rewards else 0.0,
            "mean_length": float(np.mean(lengths)) if lengths else 0.0,
            "std_length": float(np.std(lengths)) if lengths else 0.0,
            "num_episodes": num_episodes,
            "episodes": episodes_data,
        }

        if verbose:
            print("\n=== Evaluation Results ===")
            print(f"Success rate: {metrics['success_rate']:.1%}")
            print(f"Mean reward:  {metrics['mean_reward']:.3f} ± {metrics['std_reward']:.3f}")
            print(f"Mean length:  {metrics['mean_length']:.1f} ± {metrics['std_length']:.1f}")

        return metrics
