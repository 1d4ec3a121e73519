"""
Adam optimizer over a Network's parameter arena.

Moments share the network's arena layout, so every tensor gets its own
element-wise first/second moment while one global step counter drives the
bias correction. Optimizer state is never persisted; loading weights resets it.
"""

import numpy as np

from .network import Network


class Adam:
    def __init__(self, network: Network, learning_rate: float = 1e-3,
                 beta1: float = 0.9, beta2: float = 0.999, eps: float = 1e-8):
        self.network = network
        self.learning_rate = learning_rate
        self.beta1 = beta1
        self.beta2 = beta2
        self.eps = eps
        self.reset()

    def reset(self):
        """Zero both moments and the step counter."""
        self.m = np.zeros(self.network.arena.shape, dtype=np.float64)
        self.v = np.zeros(self.network.arena.shape, dtype=np.float64)
        self.t = 0

    def moments(self, name: str):
        """(first, second) moment views for one named tensor."""
        return self.network.views(self.m)[name], self.network.views(self.v)[name]

    def step(self, grads: np.ndarray, scale: float = 1.0) -> float:
        """
        Apply one update from an arena-shaped gradient.

        Returns the bias-corrected step size used.
        """
        g = grads.astype(np.float64) * scale
        self.t += 1
        self.m = self.beta1 * self.m + (1.0 - self.beta1) * g
        self.v = self.beta2 * self.v + (1.0 - self.beta2) * g * g
        lr_t = (self.learning_rate * np.sqrt(1.0 - self.beta2 ** self.t)
                / (1.0 - self.beta1 ** self.t))
        update = lr_t * self.m / (np.sqrt(self.v) + self.eps)
        self.network.arena -= update.astype(self.network.arena.dtype)
        return lr_t
