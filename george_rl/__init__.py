# =============================================================================
# George's Grid World RL
# =============================================================================
"""
Main package for the George grid-world Q-learning sandbox.

George starts at his spot in the house and wants to reach the ice
cream. He has a time budget (bedtime) and an energy budget (meltdown),
must finish a number of chores before the ice cream counts, and can
detour to fun spots that cost time but give reward and energy.

Subpackages:
- environment: world model, the GridWorldEnv state machine, the
  Gymnasium adapter and route history
- agents: tabular Q-learning agent and state encoding
- training: messages, the asynchronous scheduler, its worker thread
  and the host-side session
- evaluation: heatmaps, training metrics and failure analysis

Configuration lives in george_rl.config (WorldConfig).
"""

__version__ = "0.1.0"

from george_rl.config import WorldConfig, create_default_config, load_config

__all__ = ["WorldConfig", "create_default_config", "load_config"]
