# =============================================================================
# Evaluation Module
# =============================================================================
"""
Read-only views over training progress.

This module provides:
- Heatmaps over route history and the Q-table
- Training statistics (rolling averages, cohorts, trend)
- Policy evaluation through the Gymnasium adapter
- Failure mode analysis

Key Metrics Explained:
----------------------

1. SUCCESS RATE
   - % of episodes where George reached the ice cream with enough chores
   - Reported as a percentage in the training stats

2. ROLLING AVERAGES
   - Window of 50, 100 or 150 episodes depending on history length
   - Smooths out epsilon-greedy noise

3. COHORTS
   - Consecutive blocks of 50, 100 or 200 episodes
   - Shows the learning curve as a handful of points

4. TREND
   - Recent window minus early window, for reward and success rate
   - Positive = still improving
"""

from george_rl.evaluation.failure_analysis import FailureAnalyzer
from george_rl.evaluation.heatmap import (
    HeatmapCell,
    PolicyHeatmap,
    PolicyHeatmapCell,
    RouteHeatmap,
    band_for_ratio,
    compute_policy_heatmap,
    compute_route_heatmap,
)
from george_rl.evaluation.metrics import (
    EvaluationSuite,
    compute_average_reward,
    compute_cohorts,
    compute_success_rate,
    compute_trend,
    greedy_policy,
    rolling_series,
    summarize_stats,
)

__all__ = [
    "FailureAnalyzer",
    "HeatmapCell",
    "PolicyHeatmap",
    "PolicyHeatmapCell",
    "RouteHeatmap",
    "band_for_ratio",
    "compute_policy_heatmap",
    "compute_route_heatmap",
    "EvaluationSuite",
    "compute_average_reward",
    "compute_cohorts",
    "compute_success_rate",
    "compute_trend",
    "greedy_policy",
    "rolling_series",
    "summarize_stats",
]
