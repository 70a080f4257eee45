#!/usr/bin/env python3
# =============================================================================
# Train Q-Learning Agent
# =============================================================================
"""
Train George's Q-learning agent on the default house (or a YAML config).

Training runs on the background worker exactly as an interactive host
would drive it; this script just pumps the batches and prints progress.

Usage:
------
# Basic training
python scripts/train_qlearning.py

# Custom settings
python scripts/train_qlearning.py --episodes 5000 --speed 1000 --batch-size 50

# From a config file, logging every episode
python scripts/train_qlearning.py --config configs/tight_budget.yaml --log-dir data/episodes
"""

import argparse
import os
import sys

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Train Q-learning agent in George's grid world")

    # Config
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to a WorldConfig YAML file (default: built-in defaults)"
    )
    parser.add_argument(
        "--save-config",
        type=str,
        default=None,
        help="Write the resolved config to this YAML path"
    )

    # Training
    parser.add_argument(
        "--episodes",
        type=int,
        default=None,
        help="Number of training episodes (default: from config, 2000)"
    )
    parser.add_argument(
        "--speed",
        type=float,
        default=None,
        help="Episodes per second (default: from config, 50)"
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=10,
        help="Episodes per progress batch (default: 10)"
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=42,
        help="Random seed for exploration (default: 42)"
    )

    # Output
    parser.add_argument(
        "--log-dir",
        type=str,
        default=None,
        help="Write a JSONL line per episode into this directory"
    )
    parser.add_argument(
        "--no-paths",
        action="store_true",
        help="Leave paths out of the episode log"
    )
    parser.add_argument(
        "--eval-episodes",
        type=int,
        default=20,
        help="Greedy evaluation episodes after training (0 to skip)"
    )

    return parser.parse_args()


def main():
    """Main training function."""
    args = parse_args()

    from george_rl.config import create_default_config, load_config
    from george_rl.environment.route_history import EpisodeLogger
    from george_rl.environment.world import create_initial_grid, render_ascii
    from george_rl.training.messages import BatchUpdate, TrainingState
    from george_rl.training.session import TrainingSession
    from george_rl.evaluation.metrics import summarize_stats

    config = load_config(args.config) if args.config else create_default_config()
    overrides = {}
    if args.episodes is not None:
        overrides["episodes"] = args.episodes
    if args.speed is not None:
        overrides["speed"] = args.speed
    if overrides:
        config = config.replace(**overrides).validate()

    grid = create_initial_grid(default_distraction_type=config.default_distraction_type)

    print("=" * 60)
    print("Q-Learning Training")
    print("=" * 60)
    print(f"Episodes:       {config.episodes}")
    print(f"Speed:          {config.speed} episodes/s")
    print(f"Batch size:     {args.batch_size}")
    print(f"Learning rate:  {config.learning_rate}")
    print(f"Discount:       {config.discount_factor}")
    print(f"Time / energy:  {config.time_limit} / {config.energy}")
    print(f"Chores needed:  {config.required_chores}")
    print(f"Seed:           {args.seed}")
    print("=" * 60)
    print(render_ascii(grid))
    print()

    if args.save_config:
        config.save(args.save_config)
        print(f"Saved config to: {args.save_config}")

    episode_logger = None
    if args.log_dir:
        episode_logger = EpisodeLogger(args.log_dir, include_paths=not args.no_paths)
        print(f"Logging episodes to: {episode_logger.filepath}")

    def on_response(response):
        if not isinstance(response, BatchUpdate) or not response.stats:
            return
        if episode_logger is not None:
            for result, route in zip(response.stats, response.routes):
                episode_logger.log_episode(result, route)
        successes = sum(1 for s in response.stats if s.success)
        mean_reward = sum(s.total_reward for s in response.stats) / len(response.stats)
        print(f"Episode {response.current_episode:>6}/{config.episodes}  "
              f"batch success {successes}/{len(response.stats)}  "
              f"mean reward {mean_reward:8.2f}")

    session = TrainingSession(
        grid=grid,
        config=config,
        batch_size=args.batch_size,
        seed=args.seed,
        on_response=on_response,
    )

    try:
        if not session.start():
            print(f"Could not start training: {session.last_error}")
            return 1
        timeout = 60.0 + config.episodes * 2.0 / max(config.speed, 1)
        if not session.wait_for(TrainingState.COMPLETE, timeout=timeout):
            print(f"\nTraining stopped early: {session.last_error or 'timed out'}")
    except KeyboardInterrupt:
        print("\nInterrupted, pausing...")
    finally:
        session.stop()

    summary = summarize_stats(session.episode_stats)
    trend = summary["trend"]

    print("\n" + "=" * 60)
    print("Training Complete!")
    print("=" * 60)
    print(f"Episodes trained:  {session.current_episode}")
    print(f"Success rate:      {summary['success_rate']:.1f}%")
    print(f"Average reward:    {summary['average_reward']:.2f}")
    if summary["best_episode"] is not None:
        best = summary["best_episode"]
        print(f"Best episode:      #{best.episode} ({best.total_reward:.1f})")
    print(f"Reward trend:      {trend['reward_delta']:+.2f} (window {trend['window']})")
    print(f"Success trend:     {trend['success_delta']:+.1f} pts")
    print(f"Q-table states:    {len(session.q_table)}")

    if args.eval_episodes > 0 and session.q_table:
        from george_rl.agents.q_learning import QLearningAgent
        from george_rl.evaluation.failure_analysis import FailureAnalyzer
        from george_rl.evaluation.metrics import EvaluationSuite, greedy_policy

        print("\nRunning greedy evaluation...")
        agent = QLearningAgent(config, seed=args.seed)
        agent.q_table.update(session.q_table)
        metrics = EvaluationSuite(grid, config, seed=args.seed).evaluate(
            greedy_policy(agent), num_episodes=args.eval_episodes
        )
        print(f"Greedy success rate: {metrics['success_rate']:.1%}")
        print(f"Greedy mean reward:  {metrics['mean_reward']:.2f}")

        analyzer = FailureAnalyzer()
        for episode in metrics["episodes"]:
            analyzer.categorize(episode)
        if analyzer.failures:
            print()
            analyzer.print_summary()

    return 0


if __name__ == "__main__":
    sys.exit(main())
