# =============================================================================
# World Configuration
# =============================================================================
"""
Configuration management for George's grid world.

This module provides:
- WorldConfig: every tunable knob of a training run
- RewardsConfig / DistractionTypeConfig: nested sub-configs
- YAML load/save and validation

Knob Groups:
------------
1. LEARNING: learning_rate (alpha), discount_factor (gamma), epsilon,
   epsilon_decay, min_epsilon
2. EPISODE BUDGET: episodes, episode_hard_cap, speed (episodes/sec when
   training in the background)
3. TIME ECONOMY: time_limit ("time before bedtime"), time_cost_per_move,
   chore_time_bonus, required_chores, time_bucket_size
4. ENERGY ECONOMY: energy, energy_move_cost, chore_energy_cost,
   energy_bucket_size, max_energy (optional cap for distraction boosts)
5. DISTRACTIONS: per-type table, per-cell layout, default type
6. REWARDS: see RewardsConfig

Example config:
---------------
```yaml
learning_rate: 0.1
discount_factor: 0.99
episodes: 2000
time_limit: 35
rewards:
  goal: 100
  step: -1
  failure: -100
  bedtime_failure: null   # falls back to failure
distraction_layout:
  "1,5": TV
```
"""

import math
from dataclasses import asdict, dataclass, field, fields, replace as dc_replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from george_rl.environment.world import DISTRACTION_KEYS, WORLD_DEFINITION


class InvalidConfigError(ValueError):
    """Raised when a WorldConfig fails validation."""


@dataclass
class DistractionTypeConfig:
    """Trade-off offered by one kind of distraction."""
    label: str
    fun_reward: float
    time_penalty: float
    energy_boost: float


@dataclass
class RewardsConfig:
    """
    Reward table.

    bedtime_failure / meltdown_failure are optional overrides for the
    generic failure penalty. None means "use failure".
    """
    goal: float = 100.0
    step: float = -1.0
    failure: float = -100.0
    distraction_bonus: float = 5.0  # Per distinct distraction, paid on success
    chore_reward: float = 10.0
    revisit_penalty: float = -1.0
    early_ice_cream_penalty: float = -25.0
    bedtime_failure: Optional[float] = -100.0
    meltdown_failure: Optional[float] = -100.0

    def resolve_bedtime_failure(self) -> float:
        return self.failure if self.bedtime_failure is None else self.bedtime_failure

    def resolve_meltdown_failure(self) -> float:
        return self.failure if self.meltdown_failure is None else self.meltdown_failure


def default_distraction_types() -> Dict[str, DistractionTypeConfig]:
    return {
        "TV": DistractionTypeConfig("Watch TV", fun_reward=12, time_penalty=3, energy_boost=1),
        "FRIENDS": DistractionTypeConfig("Play with friends", fun_reward=8, time_penalty=2, energy_boost=3),
        "PLAYGROUND": DistractionTypeConfig("Go to the playground", fun_reward=5, time_penalty=1, energy_boost=4),
    }


@dataclass
class WorldConfig:
    """
    Complete configuration for one training run.

    Can be loaded from YAML or created programmatically. Treat instances
    as immutable snapshots once handed to the scheduler: use replace()
    to derive a modified copy.
    """
    # Learning
    learning_rate: float = 0.1
    discount_factor: float = 0.99
    epsilon: float = 1.0
    epsilon_decay: float = 0.9995
    min_epsilon: float = 0.01

    # Episode budget
    episodes: int = 2000
    episode_hard_cap: int = 200
    speed: float = 50.0

    # Time economy
    time_limit: float = 35.0
    time_cost_per_move: float = 1.0
    chore_time_bonus: float = 4.0
    required_chores: int = 3
    time_bucket_size: float = 4.0
    fun_reward_scale: float = 1.0

    # Energy economy
    energy: float = 30.0
    energy_move_cost: float = 1.0
    chore_energy_cost: float = 2.0
    energy_bucket_size: float = 3.0
    max_energy: Optional[float] = None  # None: capped at starting energy

    # Distractions and chores
    distraction_types: Dict[str, DistractionTypeConfig] = field(
        default_factory=default_distraction_types
    )
    distraction_layout: Dict[str, str] = field(
        default_factory=WORLD_DEFINITION.distraction_layout
    )
    default_distraction_type: str = "PLAYGROUND"
    chore_assignments: Dict[str, str] = field(
        default_factory=WORLD_DEFINITION.chore_assignments
    )

    # Rewards
    rewards: RewardsConfig = field(default_factory=RewardsConfig)

    @property
    def energy_cap(self) -> float:
        return self.energy if self.max_energy is None else self.max_energy

    def validate(self) -> "WorldConfig":
        """
        Check the invariants the environment relies on.

        - every numeric knob is finite
        - bucket sizes are >= 1 (they divide the resources)
        - the default distraction type and every layout entry name a
          configured distraction type

        Returns self so it can be chained.
        """
        def check_finite(name: str, value: Any) -> None:
            if value is None:
                return
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidConfigError(f"{name} must be a number, got {value!r}")
            if not math.isfinite(value):
                raise InvalidConfigError(f"{name} must be finite, got {value!r}")

        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, (int, float)) or value is None:
                check_finite(f.name, value)
        for f in fields(self.rewards):
            check_finite(f"rewards.{f.name}", getattr(self.rewards, f.name))
        for key, distraction in self.distraction_types.items():
            for attr in ("fun_reward", "time_penalty", "energy_boost"):
                check_finite(f"distraction_types.{key}.{attr}", getattr(distraction, attr))

        if self.time_bucket_size < 1:
            raise InvalidConfigError("time_bucket_size must be >= 1")
        if self.energy_bucket_size < 1:
            raise InvalidConfigError("energy_bucket_size must be >= 1")
        if self.episode_hard_cap < 1:
            raise InvalidConfigError("episode_hard_cap must be >= 1")
        if self.default_distraction_type not in self.distraction_types:
            raise InvalidConfigError(
                f"default_distraction_type {self.default_distraction_type!r} "
                f"is not one of {sorted(self.distraction_types)}"
            )
        for cell, kind in self.distraction_layout.items():
            if kind not in self.distraction_types:
                raise InvalidConfigError(
                    f"distraction_layout[{cell!r}] names unknown type {kind!r}"
                )
        return self

    def replace(self, **changes: Any) -> "WorldConfig":
        """Return a copy with some fields changed."""
        return dc_replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    def save(self, path: str) -> None:
        """Save configuration to YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "WorldConfig":
        """Create from dictionary."""
        d = dict(d)
        # Handle nested configs
        if "rewards" in d and isinstance(d["rewards"], dict):
            d["rewards"] = RewardsConfig(**d["rewards"])
        if "distraction_types" in d and isinstance(d["distraction_types"], dict):
            d["distraction_types"] = {
                key: value if isinstance(value, DistractionTypeConfig) else DistractionTypeConfig(**value)
                for key, value in d["distraction_types"].items()
            }

        known = {f.name for f in fields(cls)}
        unknown = set(d) - known
        if unknown:
            raise InvalidConfigError(f"Unknown config keys: {sorted(unknown)}")

        return cls(**d)


def load_config(path: str) -> WorldConfig:
    """
    Load configuration from YAML file.

    Parameters:
    -----------
    path : str
        Path to YAML config file

    Returns:
    --------
    WorldConfig
        Loaded and validated configuration
    """
    with open(path, "r") as f:
        d = yaml.safe_load(f) or {}

    return WorldConfig.from_dict(d).validate()


def create_default_config(**overrides: Any) -> WorldConfig:
    """Create the default configuration, optionally overriding fields."""
    return WorldConfig(**overrides).validate()


# =============================================================================
# Quick test
# =============================================================================
if __name__ == "__main__":
    import tempfile

    print("Testing world configuration...")
    print()

    config = create_default_config()

    print("=== Default Config ===")
    print(f"Episodes:       {config.episodes}")
    print(f"Time limit:     {config.time_limit}")
    print(f"Energy:         {config.energy}")
    print(f"Required chores:{config.required_chores}")
    print(f"Distractions:   {sorted(config.distraction_types)}")
    print()

    with tempfile.NamedTemporaryFile(suffix=".yaml", delete=False) as f:
        config.save(f.name)
        print(f"Saved to: {f.name}")

        loaded = load_config(f.name)
        assert loaded == config

    print()
    print("✓ World configuration test passed!")
