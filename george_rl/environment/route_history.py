# =============================================================================
# Route History & Episode Log
# =============================================================================
"""
Recording utilities for the routes George takes.

This module provides:
- RouteHistoryEntry: the path of one episode plus its total reward
- RouteHistory: capped, most-recent-first in-memory history (feeds the
  route heatmap)
- EpisodeLogger: append-only JSONL log of episode results

Storage Format: JSONL (JSON Lines)
-----------------------------------
Each line is one episode:
    {"episode": 12, "steps": 31, "total_reward": 84.0, "status": "SUCCESS",
     "failure_reason": null, "path": [[1, 1], [1, 2], ...], "ts": "..."}

Append-friendly and streamable, so a long training run can be logged
without holding it all in memory. Q-tables are never written; only
what George did.
"""

import json
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Deque, Dict, Iterable, Iterator, List, Optional, Tuple

from george_rl.environment.world import State


@dataclass(frozen=True)
class RouteHistoryEntry:
    """The full position path of one episode and its total reward."""
    path: Tuple[State, ...]
    reward: float

    def to_dict(self) -> Dict[str, Any]:
        return {"path": [list(p) for p in self.path], "reward": self.reward}

    @classmethod
    def from_path(cls, path: Iterable[State], reward: float) -> "RouteHistoryEntry":
        return cls(tuple(tuple(p) for p in path), float(reward))


class RouteHistory:
    """
    Most-recent-first route history with a fixed capacity.

    Example:
    --------
    >>> history = RouteHistory(max_routes=1000)
    >>> history.extend(batch_routes)     # routes in episode order
    >>> history[0]                       # newest route
    """

    def __init__(self, max_routes: int = 1000):
        self.max_routes = max_routes
        self._routes: Deque[RouteHistoryEntry] = deque(maxlen=max_routes)

    def add(self, entry: RouteHistoryEntry) -> None:
        self._routes.appendleft(entry)

    def extend(self, entries: Iterable[RouteHistoryEntry]) -> None:
        """Add routes given oldest-first (as they arrive in a batch)."""
        for entry in entries:
            self.add(entry)

    def clear(self) -> None:
        self._routes.clear()

    def recent(self, n: Optional[int] = None) -> List[RouteHistoryEntry]:
        routes = list(self._routes)
        return routes if n is None else routes[:n]

    def __len__(self) -> int:
        return len(self._routes)

    def __iter__(self) -> Iterator[RouteHistoryEntry]:
        return iter(self._routes)

    def __getitem__(self, index: int) -> RouteHistoryEntry:
        return self._routes[index]


class EpisodeLogger:
    """
    Lightweight JSONL logger for training runs.

    Stores one line per episode: index, steps, reward, status, failure
    reason and (optionally) the path.
    """

    def __init__(
        self,
        save_dir: str = "data/episodes",
        filename: str = "training_log.jsonl",
        include_paths: bool = True,
    ):
        self.save_dir = Path(save_dir)
        self.filepath = self.save_dir / filename
        self.include_paths = include_paths
        self.save_dir.mkdir(parents=True, exist_ok=True)

    def log_episode(
        self,
        result: Any,
        route: Optional[RouteHistoryEntry] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Log a completed episode (compact format).

        Parameters:
        -----------
        result : EpisodeResult
            Stats for the episode
        route : RouteHistoryEntry, optional
            Path taken, stored when include_paths is set
        metadata : dict, optional
            Extra fields merged into the line
        """
        entry = {
            "episode": result.episode,
            "steps": result.steps,
            "total_reward": result.total_reward,
            "status": str(getattr(result.status, "value", result.status)),
            "failure_reason": getattr(result.failure_reason, "value", result.failure_reason),
            "ts": datetime.now().isoformat(),
            **(metadata or {}),
        }
        if self.include_paths and route is not None:
            entry["path"] = [list(p) for p in route.path]

        with open(self.filepath, "a") as f:
            json.dump(entry, f)
            f.write("\n")

    def load_all(self) -> List[Dict[str, Any]]:
        """Load every logged episode."""
        if not self.filepath.exists():
            return []

        entries = []
        with open(self.filepath, "r") as f:
            for line in f:
                if line.strip():
                    entries.append(json.loads(line))
        return entries

    def get_stats(self) -> Dict[str, Any]:
        """Counts, success rate and averages over the whole log."""
        entries = self.load_all()

        if not entries:
            return {"total_episodes": 0}

        successful = [e for e in entries if e["status"] == "SUCCESS"]
        return {
            "total_episodes": len(entries),
            "successful_episodes": len(successful),
            "success_rate": len(successful) / len(entries),
            "avg_steps": sum(e["steps"] for e in entries) / len(entries),
            "avg_reward": sum(e["total_reward"] for e in entries) / len(entries),
        }
