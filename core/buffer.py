"""
Experience Buffer - Ordered log of everything collected since the last update.

Steps (observation, action, log-probs, value) are recorded on every inference
call; rewards and episode boundaries arrive separately from the host. The two
logs are aligned only when a batch is drained for training.
"""

from dataclasses import dataclass, field
from typing import List
import logging

import numpy as np

logger = logging.getLogger(__name__)


@dataclass
class RolloutBatch:
    """Aligned arrays for one training update (length = number of steps)."""
    observations: np.ndarray   # (N, obs_dim)
    actions: np.ndarray        # (N, action_count)
    log_probs: np.ndarray      # (N, action_count)
    values: np.ndarray         # (N,)
    rewards: np.ndarray        # (N,)
    dones: np.ndarray          # (N,) bool

    @property
    def size(self) -> int:
        return self.observations.shape[0]


@dataclass
class ExperienceBuffer:
    """Stores trajectory data for PPO updates."""
    observations: List[np.ndarray] = field(default_factory=list)
    actions: List[np.ndarray] = field(default_factory=list)
    log_probs: List[np.ndarray] = field(default_factory=list)
    values: List[float] = field(default_factory=list)
    rewards: List[float] = field(default_factory=list)
    dones: List[bool] = field(default_factory=list)

    def record_step(self, obs: np.ndarray, action: np.ndarray,
                    log_probs: np.ndarray, value: float):
        self.observations.append(np.array(obs, copy=True))
        self.actions.append(np.array(action, copy=True))
        self.log_probs.append(np.array(log_probs, copy=True))
        self.values.append(float(value))

    def replace_last_action(self, action: np.ndarray, log_probs: np.ndarray):
        """Overwrite the newest step's action, e.g. with the one actually executed."""
        if not self.observations:
            return
        self.actions[-1] = np.array(action, copy=True)
        self.log_probs[-1] = np.array(log_probs, copy=True)

    def record_reward(self, reward: float):
        self.rewards.append(float(reward))
        self.dones.append(False)

    def end_episode(self, final_reward: float = 0.0) -> bool:
        """
        Close the current episode.

        If rewards lag behind steps, the terminal reward is appended as a new
        done transition. Otherwise the newest reward is marked done and its
        value is left unchanged. Returns True when a transition was appended.
        """
        if len(self.rewards) < len(self.observations):
            self.rewards.append(float(final_reward))
            self.dones.append(True)
            return True
        if self.dones:
            self.dones[-1] = True
        return False

    def clear(self):
        self.observations.clear()
        self.actions.clear()
        self.log_probs.clear()
        self.values.clear()
        self.rewards.clear()
        self.dones.clear()

    @property
    def size(self) -> int:
        return len(self.observations)

    @property
    def reward_count(self) -> int:
        return len(self.rewards)

    @property
    def pending_rewards(self) -> int:
        """Steps still waiting for a reward."""
        return max(0, len(self.observations) - len(self.rewards))

    @property
    def is_terminal(self) -> bool:
        return bool(self.dones) and self.dones[-1]

    def batch(self) -> RolloutBatch:
        """
        Align rewards with steps.

        Missing rewards count as 0 (not done). Rewards reported past the last
        step belong to that step: they are summed into it and their done
        flags are carried over.
        """
        n = self.size
        rewards = np.zeros(n, dtype=np.float32)
        dones = np.zeros(n, dtype=bool)

        k = min(n, len(self.rewards))
        rewards[:k] = self.rewards[:k]
        dones[:k] = self.dones[:k]
        if len(self.rewards) > n and n > 0:
            extra = len(self.rewards) - n
            logger.debug(f"Folding {extra} trailing rewards into the last step")
            rewards[-1] += sum(self.rewards[n:])
            dones[-1] = dones[-1] or any(self.dones[n:])
        elif k < n:
            logger.debug(f"{n - k} steps have no reward yet, using 0")

        return RolloutBatch(
            observations=np.stack(self.observations) if n else np.zeros((0, 0), dtype=np.float32),
            actions=np.stack(self.actions) if n else np.zeros((0, 0), dtype=np.float32),
            log_probs=np.stack(self.log_probs) if n else np.zeros((0, 0), dtype=np.float32),
            values=np.asarray(self.values, dtype=np.float32),
            rewards=rewards,
            dones=dones,
        )
