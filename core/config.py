"""
Agent Configuration - Network shape and PPO hyperparameters

Defaults follow the values the agent has always been tuned with:
a 275-wide observation, two hidden layers (128, 64), gamma 0.99,
lambda 0.95, clip 0.2, Adam at 1e-3, 4 epochs of 64-step minibatches.
"""

from dataclasses import dataclass, asdict, fields
from typing import Dict, Any, Tuple
import os
import json


@dataclass
class AgentConfig:
    """All knobs of a PPOAgent"""
    # Architecture
    observation_size: int = 275
    hidden_sizes: Tuple[int, ...] = (128, 64)

    # Advantage estimation
    gamma: float = 0.99
    gae_lambda: float = 0.95

    # PPO update
    clip_eps: float = 0.2
    value_coef: float = 0.5
    entropy_coef: float = 0.01
    learning_rate: float = 1e-3
    train_epochs: int = 4
    minibatch_size: int = 64
    normalize_advantages: bool = False

    # When to train: after this many rewarded steps (0 = only when asked)
    rollout_size: int = 512
    update_on_episode_end: bool = False

    # Runtime
    seed: int = 0
    tick_hz: float = 20.0

    def __post_init__(self):
        self.hidden_sizes = tuple(int(h) for h in self.hidden_sizes)

    def validate(self) -> 'AgentConfig':
        """Raise ValueError on settings the network or trainer cannot use"""
        if self.observation_size <= 0:
            raise ValueError(f"observation_size must be positive, got {self.observation_size}")
        if not self.hidden_sizes:
            raise ValueError("hidden_sizes must name at least one layer")
        if any(h <= 0 for h in self.hidden_sizes):
            raise ValueError(f"hidden layer widths must be positive, got {list(self.hidden_sizes)}")
        if not 0.0 <= self.gamma <= 1.0:
            raise ValueError(f"gamma must be in [0, 1], got {self.gamma}")
        if not 0.0 <= self.gae_lambda <= 1.0:
            raise ValueError(f"gae_lambda must be in [0, 1], got {self.gae_lambda}")
        if self.clip_eps <= 0.0:
            raise ValueError(f"clip_eps must be positive, got {self.clip_eps}")
        if self.learning_rate <= 0.0:
            raise ValueError(f"learning_rate must be positive, got {self.learning_rate}")
        if self.train_epochs < 1 or self.minibatch_size < 1:
            raise ValueError("train_epochs and minibatch_size must be at least 1")
        if self.rollout_size < 0:
            raise ValueError(f"rollout_size cannot be negative, got {self.rollout_size}")
        if self.tick_hz <= 0.0:
            raise ValueError(f"tick_hz must be positive, got {self.tick_hz}")
        return self

    @classmethod
    def from_env(cls) -> 'AgentConfig':
        """Load overrides from PPO_* environment variables"""
        config = cls()
        for f in fields(cls):
            raw = os.getenv('PPO_' + f.name.upper())
            if raw is None:
                continue
            default = getattr(config, f.name)
            if f.name == 'hidden_sizes':
                value = tuple(int(h) for h in raw.split(',') if h.strip())
            elif isinstance(default, bool):
                value = raw.lower() in ('1', 'true', 'yes')
            elif isinstance(default, int):
                value = int(raw)
            else:
                value = float(raw)
            setattr(config, f.name, value)
        return config

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AgentConfig':
        """Build from a dict, ignoring unknown keys"""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['hidden_sizes'] = list(self.hidden_sizes)
        return data

    def save(self, filepath: str):
        """Save configuration to file"""
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, filepath: str) -> 'AgentConfig':
        """Load configuration from file"""
        with open(filepath, 'r') as f:
            data = json.load(f)
        return cls.from_dict(data)
