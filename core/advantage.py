"""
Generalized Advantage Estimation over one buffer of transitions.
"""

from typing import Tuple

import numpy as np


class AdvantageEstimator:
    """
    Backward GAE recursion:

        mask       = 1 - done[t]
        delta      = r[t] + gamma * next_value * mask - v[t]
        gae        = delta + gamma * lambda * gae * mask
        return[t]  = gae + v[t]

    next_value starts at the bootstrap value (0 when the tail is terminal).
    Advantages are returned unnormalized.
    """

    def __init__(self, gamma: float = 0.99, gae_lambda: float = 0.95):
        self.gamma = gamma
        self.gae_lambda = gae_lambda

    def estimate(self, rewards: np.ndarray, values: np.ndarray, dones: np.ndarray,
                 bootstrap_value: float = 0.0) -> Tuple[np.ndarray, np.ndarray]:
        rewards = np.asarray(rewards, dtype=np.float64)
        values = np.asarray(values, dtype=np.float64)
        dones = np.asarray(dones, dtype=np.float64)
        n = rewards.shape[0]

        advantages = np.zeros(n, dtype=np.float64)
        next_value = float(bootstrap_value)
        last_gae = 0.0

        for t in reversed(range(n)):
            mask = 1.0 - dones[t]
            delta = rewards[t] + self.gamma * next_value * mask - values[t]
            last_gae = delta + self.gamma * self.gae_lambda * last_gae * mask
            advantages[t] = last_gae
            next_value = values[t]

        returns = advantages + values
        return advantages, returns
