# =============================================================================
# Failure Analysis
# =============================================================================
"""
Analyze and categorize George's failed episodes.

A failure rate alone does not say what to tune. This module sorts
failures into buckets that each point at a different knob.

Failure Modes in the Grid World:
--------------------------------

1. BEDTIME
   - The time budget ran out before reaching the ice cream
   - Often too many detours to fun spots
   - Knobs: time_limit, chore_time_bonus, distraction time penalties

2. MELTDOWN
   - Energy hit zero
   - Chores drain energy faster than fun spots restore it
   - Knobs: energy, chore_energy_cost, energy boosts

3. STEP_CAP
   - The per-episode hard cap stopped the episode
   - The agent never ran out of resources but never finished either

4. STUCK/LOOPING
   - Bouncing between the same two or three cells
   - Usually against a wall, or an early-ice-cream penalty loop
   - Cause: exploration failure

Episodes are plain dicts, as produced by EvaluationSuite.evaluate:
    success, status, failure_reason, steps, max_steps, actions, path
"""

from collections import Counter
from typing import Any, Dict, List, Optional

import numpy as np

from george_rl.environment.state import FailureReason


class FailureAnalyzer:
    """
    Analyze agent failures and categorize them.

    Example:
    --------
    >>> analyzer = FailureAnalyzer()
    >>> for episode in metrics["episodes"]:
    ...     analyzer.categorize(episode)
    >>> analyzer.print_summary()
    """

    CATEGORIES = [
        "bedtime",
        "meltdown",
        "step_cap",
        "stuck_looping",
        "other",
    ]

    _REASON_TO_CATEGORY = {
        FailureReason.BEDTIME: "bedtime",
        FailureReason.MELTDOWN: "meltdown",
        FailureReason.STEP_CAP: "step_cap",
    }

    def __init__(self, loop_window: int = 8):
        """
        Parameters:
        -----------
        loop_window : int
            Number of trailing path positions inspected for looping
        """
        self.loop_window = loop_window
        self.failures: List[Dict[str, Any]] = []
        self.category_counts = Counter()

    def categorize(
        self,
        episode: Dict[str, Any],
    ) -> str:
        """
        Categorize a failed episode.

        An explicit failure reason wins. Episodes without one (for example
        truncated rollouts recorded elsewhere) are checked for looping.

        Returns:
        --------
        str
            Failure category, or "not_failure" for successful episodes
        """
        if episode.get("success", False):
            return "not_failure"

        path = [tuple(p) for p in episode.get("path", [])]
        actions = list(episode.get("actions", []))
        length = episode.get("steps", len(actions))

        reason = self._parse_reason(episode.get("failure_reason"))
        looping = self._detect_loop(path, actions)
        if reason is not None:
            category = self._REASON_TO_CATEGORY[reason]
        elif looping:
            category = "stuck_looping"
        else:
            category = "other"

        self.failures.append({
            "category": category,
            "length": length,
            "reward": episode.get("reward"),
            "looping": looping,
            "actions": actions,
            "path": path,
        })
        self.category_counts[category] += 1

        return category

    @staticmethod
    def _parse_reason(value: Any) -> Optional[FailureReason]:
        if value is None:
            return None
        try:
            return FailureReason(value)
        except ValueError:
            return None

    def _detect_loop(self, path: List[Any], actions: List[int]) -> bool:
        """
        Detect if George is stuck in a loop.

        Looks at the last `loop_window` positions: two or fewer distinct
        cells means bouncing. Falls back to alternating opposite moves
        when no path was recorded.
        """
        if len(path) >= self.loop_window:
            if len(set(path[-self.loop_window:])) <= 2:
                return True

        if len(actions) >= self.loop_window:
            recent = actions[-self.loop_window:]
            # UP/DOWN = 0/1, LEFT/RIGHT = 2/3: opposites share a pair
            opposite_flips = sum(
                1 for i in range(1, len(recent))
                if recent[i] != recent[i - 1] and recent[i] // 2 == recent[i - 1] // 2
            )
            if opposite_flips >= len(recent) - 2:
                return True

        return False

    def summary(self) -> Dict[str, Any]:
        """
        Get summary of all analyzed failures.

        Returns:
        --------
        dict
            total_failures, and per category: count, percentage, avg_length
        """
        total = len(self.failures)

        if total == 0:
            return {"total_failures": 0, "categories": {}}

        category_lengths = {cat: [] for cat in self.CATEGORIES}
        for failure in self.failures:
            category_lengths[failure["category"]].append(failure["length"])

        return {
            "total_failures": total,
            "categories": {
                cat: {
                    "count": self.category_counts[cat],
                    "percentage": self.category_counts[cat] / total * 100,
                    "avg_length": float(np.mean(category_lengths[cat])),
                }
                for cat in self.CATEGORIES
                if self.category_counts[cat] > 0
            },
        }

    def print_summary(self) -> None:
        summary = self.summary()

        print("=== Failure Analysis ===")
        print(f"Total failures: {summary['total_failures']}")
        print()

        if not summary["categories"]:
            print("No failures categorized.")
            return

        sorted_cats = sorted(
            summary["categories"].items(),
            key=lambda x: x[1]["count"],
            reverse=True,
        )

        print(f"{'Category':<18} {'Count':<8} {'%':<8} {'Avg Len':<10}")
        print("-" * 44)
        for cat, stats in sorted_cats:
            print(f"{cat:<18} {stats['count']:<8} "
                  f"{stats['percentage']:.1f}%    {stats['avg_length']:.1f}")

    def get_examples(self, category: str, n: int = 5) -> List[Dict[str, Any]]:
        examples = [f for f in self.failures if f["category"] == category]
        return examples[:n]


# =============================================================================
# Quick test
# =============================================================================
if __name__ == "__main__":
    print("Testing failure analysis...")
    print()

    analyzer = FailureAnalyzer()

    test_episodes = [
        {"success": False, "failure_reason": "BEDTIME", "steps": 35, "path": []},
        {"success": False, "failure_reason": "MELTDOWN", "steps": 22, "path": []},
        {"success": False, "failure_reason": "STEP_CAP", "steps": 200, "path": []},
        {"success": False, "steps": 10, "path": [(1, 1), (1, 2)] * 5},
        {"success": False, "steps": 3, "path": [(1, 1), (1, 2), (2, 2), (3, 2)]},
        {"success": True, "steps": 12, "path": []},
    ]

    for episode in test_episodes:
        category = analyzer.categorize(episode)
        print(f"{str(episode.get('failure_reason')):<10} steps={episode['steps']:<4} -> {category}")

    print()
    analyzer.print_summary()

    print()
    print("✓ Failure analysis test passed!")
