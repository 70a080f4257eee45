# =============================================================================
# Heatmap Projection
# =============================================================================
"""
Read-only per-cell views over route history and the Q-table.

Two projections:

1. ROUTE HEATMAP: where has George been lately, weighted by how well
   those episodes went. Each route counts each cell once, with weight
   max(reward, 0.1), tripled for positive-reward routes so successful
   paths light up near the goal.

2. POLICY HEATMAP: what the agent believes. For every state key, take
   the best-valued action; average those best values per cell, count
   the contributing states, and report the most common best action.
   Values are min/max normalised across cells so negative values still
   spread over [0, 1].

Both map a normalised ratio onto three bands:
    > 0.66 high, > 0.33 medium, otherwise low

Both return None when there is nothing to show (no routes / no table).
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional

from george_rl.agents.state_encoding import key_to_position
from george_rl.environment.route_history import RouteHistoryEntry
from george_rl.environment.world import Action, position_key, parse_position_key


@dataclass(frozen=True)
class HeatmapCell:
    score: float
    band: str


@dataclass(frozen=True)
class PolicyHeatmapCell:
    row: int
    col: int
    best_action: Optional[Action]
    best_value: float
    normalized_value: float
    visit_count: int
    band: str


@dataclass(frozen=True)
class RouteHeatmap:
    heatmap: List[List[Optional[HeatmapCell]]]


@dataclass(frozen=True)
class PolicyHeatmap:
    heatmap: List[List[Optional[PolicyHeatmapCell]]]


def band_for_ratio(ratio: float) -> str:
    if ratio > 0.66:
        return "high"
    if ratio > 0.33:
        return "medium"
    return "low"


def _empty_grid(size: int) -> List[List[None]]:
    return [[None for _ in range(size)] for _ in range(size)]


def _in_bounds(row: int, col: int, size: int) -> bool:
    return 0 <= row < size and 0 <= col < size


def compute_route_heatmap(
    route_history: Iterable[RouteHistoryEntry],
    size: int,
    max_routes: int = 200,
) -> Optional[RouteHeatmap]:
    """
    Aggregate the most recent routes into a 3-band heatmap.

    Parameters:
    -----------
    route_history : iterable of RouteHistoryEntry
        Newest first
    size : int
        Grid size
    max_routes : int
        Only the first max_routes entries are used
    """
    recent = list(route_history)[:max_routes]
    if not recent:
        return None

    cell_scores: Dict[str, float] = {}
    for route in recent:
        unique_positions = {position_key(p) for p in route.path}
        weight = max(route.reward, 0.1) * (3 if route.reward > 0 else 1)
        for key in unique_positions:
            cell_scores[key] = cell_scores.get(key, 0.0) + weight

    max_score = max(cell_scores.values()) or 1
    heatmap = _empty_grid(size)
    for key, score in cell_scores.items():
        r, c = parse_position_key(key)
        if not _in_bounds(r, c, size):
            continue
        heatmap[r][c] = HeatmapCell(score=score, band=band_for_ratio(score / max_score))

    return RouteHeatmap(heatmap=heatmap)


def compute_policy_heatmap(
    q_table: Optional[Mapping[str, Mapping[Action, float]]],
    size: int,
) -> Optional[PolicyHeatmap]:
    """
    Approximate a value heatmap from the Q-table.

    Malformed state keys and states without any recorded action are
    skipped. Returns None for a missing or empty table.
    """
    if not q_table:
        return None

    totals: Dict[str, float] = {}
    counts: Dict[str, int] = {}
    action_counts: Dict[str, Dict[Action, int]] = {}

    for state_key, actions in q_table.items():
        try:
            row, col = key_to_position(state_key)
        except ValueError:
            continue

        best_action: Optional[Action] = None
        best_value = float("-inf")
        for action, value in actions.items():
            if value is not None and value > best_value:
                best_value = value
                best_action = Action(action)
        if best_action is None:
            continue

        key = position_key((row, col))
        totals[key] = totals.get(key, 0.0) + best_value
        counts[key] = counts.get(key, 0) + 1
        cell_actions = action_counts.setdefault(key, {})
        cell_actions[best_action] = cell_actions.get(best_action, 0) + 1

    if not totals:
        return None

    averages = {key: totals[key] / max(counts[key], 1) for key in totals}
    max_avg = max(averages.values())
    min_avg = min(averages.values())
    value_range = (max_avg - min_avg) or 1

    heatmap = _empty_grid(size)
    for key, avg in averages.items():
        r, c = parse_position_key(key)
        if not _in_bounds(r, c, size):
            continue

        # Majority best action; ties keep the first one seen
        majority: Optional[Action] = None
        for action, count in action_counts[key].items():
            if majority is None or count > action_counts[key][majority]:
                majority = action

        normalized = (avg - min_avg) / value_range
        heatmap[r][c] = PolicyHeatmapCell(
            row=r,
            col=c,
            best_action=majority,
            best_value=avg,
            normalized_value=normalized,
            visit_count=counts[key],
            band=band_for_ratio(normalized),
        )

    return PolicyHeatmap(heatmap=heatmap)
