"""
Policy/Value Network - MLP body with a Bernoulli policy head and a value head.

Implemented in pure NumPy with a hand-written backward pass.

Architecture:
  Body:   [Linear -> ReLU] x len(hidden_sizes)
  Policy: Linear -> sigmoid, one independent logistic unit per action
  Value:  Linear -> scalar

All parameters live in one contiguous arena; each tensor is a view into it
addressed by a fixed slot (name, offset, shape) laid out at construction.
Gradients and optimizer moments use the same layout, so a whole update is a
handful of vector operations over the arena.
"""

from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from .codec import ACTION_COUNT

LOG_PROB_EPS = 1e-6


class ParamSlot(NamedTuple):
    name: str
    offset: int
    shape: Tuple[int, ...]

    @property
    def size(self) -> int:
        return int(np.prod(self.shape))


class ForwardTrace(NamedTuple):
    """Everything the backward pass needs from one forward pass."""
    hidden: np.ndarray
    logits: np.ndarray
    probs: np.ndarray
    value: np.ndarray
    activations: List[np.ndarray]   # [input, layer0 out, layer1 out, ...]


def sigmoid(z: np.ndarray) -> np.ndarray:
    """Logistic function that never overflows exp()."""
    e = np.exp(-np.abs(z))
    return np.where(z >= 0, 1.0 / (1.0 + e), e / (1.0 + e)).astype(z.dtype, copy=False)


def clamp_probs(probs: np.ndarray) -> np.ndarray:
    return np.clip(probs, LOG_PROB_EPS, 1.0 - LOG_PROB_EPS)


def log_prob(probs: np.ndarray, action: np.ndarray) -> np.ndarray:
    """Per-action Bernoulli log-probability a*log(p) + (1-a)*log(1-p)."""
    p = clamp_probs(probs)
    return action * np.log(p) + (1.0 - action) * np.log(1.0 - p)


def entropy(probs: np.ndarray) -> np.ndarray:
    """Per-action Bernoulli entropy."""
    p = clamp_probs(probs)
    return -(p * np.log(p) + (1.0 - p) * np.log(1.0 - p))


def sample_action(probs: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    """Independent Bernoulli draw for every action."""
    return (rng.random(probs.shape) < probs).astype(probs.dtype)


def deterministic_action(probs: np.ndarray) -> np.ndarray:
    """Evaluation readout: press every action whose probability exceeds 0.5."""
    return (probs > 0.5).astype(probs.dtype)


class Network:
    """
    Shared MLP body with policy and value heads.

    Accepts a single observation (obs_dim,) or a batch (batch, obs_dim);
    outputs keep the same leading shape.
    """

    def __init__(self, observation_size: int, hidden_sizes: Sequence[int],
                 action_count: int = ACTION_COUNT, seed: Optional[int] = None,
                 rng: Optional[np.random.Generator] = None,
                 dtype=np.float32):
        hidden_sizes = tuple(int(h) for h in hidden_sizes)
        if observation_size <= 0 or action_count <= 0:
            raise ValueError("observation_size and action_count must be positive")
        if not hidden_sizes or any(h <= 0 for h in hidden_sizes):
            raise ValueError(f"Invalid hidden layer widths: {list(hidden_sizes)}")

        self.observation_size = int(observation_size)
        self.hidden_sizes = hidden_sizes
        self.action_count = int(action_count)
        self.dtype = np.dtype(dtype)

        self.slots = self._layout()
        self.arena = np.zeros(sum(s.size for s in self.slots), dtype=self.dtype)
        self._params = self.views(self.arena)

        self._init_weights(rng if rng is not None else np.random.default_rng(seed))

    # ---------- layout ----------

    def _layout(self) -> List[ParamSlot]:
        slots = []
        offset = 0

        def add(name, shape):
            nonlocal offset
            slot = ParamSlot(name, offset, shape)
            slots.append(slot)
            offset += slot.size

        prev = self.observation_size
        for i, width in enumerate(self.hidden_sizes):
            add(f'body_w{i}', (width, prev))
            add(f'body_b{i}', (width,))
            prev = width
        add('policy_w', (self.action_count, prev))
        add('policy_b', (self.action_count,))
        add('value_w', (prev,))
        add('value_b', (1,))
        return slots

    def views(self, flat: np.ndarray) -> Dict[str, np.ndarray]:
        """Named tensor views into any arena-shaped flat buffer."""
        return {s.name: flat[s.offset:s.offset + s.size].reshape(s.shape)
                for s in self.slots}

    def zeros_like_arena(self) -> np.ndarray:
        return np.zeros_like(self.arena)

    def _init_weights(self, rng: np.random.Generator):
        """He initialization for weights, zeros for biases."""
        for slot in self.slots:
            param = self._params[slot.name]
            if slot.name.endswith('_b') or slot.name.startswith('body_b'):
                param[...] = 0.0
                continue
            fan_in = slot.shape[-1]
            scale = np.sqrt(2.0 / max(1, fan_in))
            param[...] = rng.standard_normal(slot.shape) * scale

    # ---------- accessors ----------

    @property
    def num_layers(self) -> int:
        return len(self.hidden_sizes)

    @property
    def parameter_count(self) -> int:
        return int(self.arena.size)

    @property
    def architecture(self) -> Dict[str, object]:
        return {
            'observation_size': self.observation_size,
            'hidden_sizes': list(self.hidden_sizes),
            'action_count': self.action_count,
        }

    def layer(self, index: int) -> Tuple[np.ndarray, np.ndarray]:
        return self._params[f'body_w{index}'], self._params[f'body_b{index}']

    @property
    def policy_w(self) -> np.ndarray:
        return self._params['policy_w']

    @property
    def policy_b(self) -> np.ndarray:
        return self._params['policy_b']

    @property
    def value_w(self) -> np.ndarray:
        return self._params['value_w']

    @property
    def value_b(self) -> np.ndarray:
        return self._params['value_b']

    def parameters(self) -> Dict[str, np.ndarray]:
        """Live views of every tensor, in layout order."""
        return self._params

    def get_params(self) -> Dict[str, np.ndarray]:
        """Get all parameters as a dict of copies."""
        return {name: value.copy() for name, value in self._params.items()}

    def set_params(self, params: Dict[str, np.ndarray]):
        """Copy values into the existing buffers; shapes must match."""
        for name, value in params.items():
            if name not in self._params:
                continue
            target = self._params[name]
            value = np.asarray(value, dtype=self.dtype)
            if value.shape != target.shape:
                raise ValueError(f"Shape mismatch for {name}: "
                                 f"{value.shape} != {target.shape}")
            target[...] = value

    # ---------- forward ----------

    def _as_input(self, obs: np.ndarray) -> np.ndarray:
        return np.asarray(obs, dtype=self.dtype)

    def forward_body(self, obs: np.ndarray) -> np.ndarray:
        x = self._as_input(obs)
        for i in range(self.num_layers):
            w, b = self.layer(i)
            x = np.maximum(x @ w.T + b, 0.0)
        return x

    def policy_logits(self, hidden: np.ndarray) -> np.ndarray:
        return hidden @ self.policy_w.T + self.policy_b

    def policy_head(self, hidden: np.ndarray) -> np.ndarray:
        return sigmoid(self.policy_logits(hidden))

    def value_head(self, hidden: np.ndarray):
        value = hidden @ self.value_w + self.value_b[0]
        return value

    def forward(self, obs: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Returns (probs, value)."""
        hidden = self.forward_body(obs)
        return self.policy_head(hidden), self.value_head(hidden)

    def forward_with_trace(self, obs: np.ndarray) -> ForwardTrace:
        x = self._as_input(obs)
        activations = [x]
        for i in range(self.num_layers):
            w, b = self.layer(i)
            x = np.maximum(x @ w.T + b, 0.0)
            activations.append(x)
        logits = self.policy_logits(x)
        return ForwardTrace(
            hidden=x,
            logits=logits,
            probs=sigmoid(logits),
            value=self.value_head(x),
            activations=activations,
        )

    # ---------- backward ----------

    def backward(self, trace: ForwardTrace, d_logits: np.ndarray,
                 d_value: np.ndarray) -> np.ndarray:
        """
        Backpropagate head gradients through the network.

        d_logits: (batch, action_count) loss gradient w.r.t. pre-sigmoid logits
        d_value:  (batch,) loss gradient w.r.t. the value output

        Returns an arena-shaped gradient summed over the batch.
        """
        grads = self.zeros_like_arena()
        g = self.views(grads)

        hidden = np.atleast_2d(trace.hidden)
        d_logits = np.atleast_2d(d_logits).astype(self.dtype, copy=False)
        d_value = np.atleast_1d(d_value).astype(self.dtype, copy=False)

        g['policy_w'][...] = d_logits.T @ hidden
        g['policy_b'][...] = d_logits.sum(axis=0)
        g['value_w'][...] = d_value @ hidden
        g['value_b'][0] = d_value.sum()

        # Both heads feed the shared hidden representation
        d_hidden = d_logits @ self.policy_w + np.outer(d_value, self.value_w)

        for i in reversed(range(self.num_layers)):
            inp = np.atleast_2d(trace.activations[i])
            out = np.atleast_2d(trace.activations[i + 1])
            d_pre = d_hidden * (out > 0.0)
            g[f'body_w{i}'][...] = d_pre.T @ inp
            g[f'body_b{i}'][...] = d_pre.sum(axis=0)
            if i > 0:
                w, _ = self.layer(i)
                d_hidden = d_pre @ w

        return grads
