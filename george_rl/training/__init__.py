# =============================================================================
# Training Module
# =============================================================================
"""
Asynchronous training for the Q-learning agent.

Training Pipeline Overview:
---------------------------

┌─────────────────┐ commands ┌─────────────────┐ call_later ┌─────────────────┐
│ TrainingSession │─────────▶│ TrainingWorker  │───────────▶│TrainingScheduler│
│  (host thread)  │          │ (own thread +   │            │ (1 episode per  │
│                 │◀─────────│  event loop)    │◀───────────│  tick, batches) │
└─────────────────┘responses └─────────────────┘    emit    └─────────────────┘

The host never blocks on training: it posts commands and pumps
responses (BatchUpdate / StateChange / ErrorResponse) whenever it likes.
"""

from george_rl.training.messages import (
    BatchUpdate,
    EpisodeResult,
    ErrorResponse,
    PauseCommand,
    ResetCommand,
    SetConfigCommand,
    StartCommand,
    StateChange,
    TrainingState,
)
from george_rl.training.scheduler import DEFAULT_BATCH_SIZE, TrainingScheduler, episode_delay
from george_rl.training.session import TrainingSession, run_training
from george_rl.training.worker import TrainingWorker

__all__ = [
    "BatchUpdate",
    "EpisodeResult",
    "ErrorResponse",
    "PauseCommand",
    "ResetCommand",
    "SetConfigCommand",
    "StartCommand",
    "StateChange",
    "TrainingState",
    "DEFAULT_BATCH_SIZE",
    "TrainingScheduler",
    "episode_delay",
    "TrainingSession",
    "run_training",
    "TrainingWorker",
]
