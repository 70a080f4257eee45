# =============================================================================
# Agents Module
# =============================================================================
"""
Tabular Q-learning for George.

Learning Loop:
--------------

┌─────────────────┐  action  ┌──────────────────┐
│ QLearningAgent  │─────────▶│   GridWorldEnv   │
│  (Q-table,      │          │  (time, energy,  │
│   epsilon)      │◀─────────│   chores, fun)   │
└─────────────────┘  reward, └──────────────────┘
        │            next state
        ▼
Q(s,a) += lr * (r + gamma * max_a' Q(s',a') - Q(s,a))

States are string keys "r,c|mask|t{time}|e{energy}|c{chores}" built by
state_to_key, so the table stays a plain dict of dicts.
"""

from george_rl.agents.q_learning import EpisodeOutcome, QLearningAgent, QTable
from george_rl.agents.state_encoding import key_to_position, parse_state_key, state_to_key

__all__ = [
    "EpisodeOutcome",
    "QLearningAgent",
    "QTable",
    "key_to_position",
    "parse_state_key",
    "state_to_key",
]
