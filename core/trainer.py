"""
PPO Trainer - Clipped-surrogate policy update with manual backpropagation.

For every minibatch:
1. Forward pass with trace to recompute probabilities, value and log-probs
2. Per-action ratio exp(cur_logp - old_logp)
3. Policy gradient on each logit: -A * ratio * (a - p) while |ratio - 1| <= clip,
   zero outside the band
4. Entropy bonus gradient on each logit: entropy_coef * z * p * (1 - p)
5. Value gradient: 2 * (V - R) * value_coef
6. Backprop both heads through the ReLU body, sum over the minibatch,
   scale by 1/minibatch_size and take one Adam step

Zeroing the gradient outside the clip band approximates PPO's
min(ratio * A, clip(ratio) * A) rule; it does not follow the unclipped branch
when that one is smaller. The entropy term is the exact gradient of
-entropy_coef * H(p); |z * p * (1 - p)| never exceeds ~0.224, so its pull on
any logit is bounded by 0.224 * entropy_coef.
"""

from typing import Dict, Optional
import logging

import numpy as np

from .advantage import AdvantageEstimator
from .buffer import ExperienceBuffer, RolloutBatch
from .config import AgentConfig
from .network import Network, log_prob, entropy
from .optimizer import Adam

logger = logging.getLogger(__name__)


class PPOTrainer:
    """Runs train_epochs passes of minibatch PPO over one rollout."""

    def __init__(self, network: Network, config: AgentConfig = None,
                 rng: Optional[np.random.Generator] = None):
        config = config or AgentConfig()
        self.network = network
        self.clip_eps = config.clip_eps
        self.value_coef = config.value_coef
        self.entropy_coef = config.entropy_coef
        self.train_epochs = config.train_epochs
        self.minibatch_size = config.minibatch_size
        self.normalize_advantages = config.normalize_advantages
        self.rng = rng if rng is not None else np.random.default_rng(config.seed)
        self.optimizer = Adam(network, learning_rate=config.learning_rate)

    def head_gradients(self, trace, actions: np.ndarray, old_log_probs: np.ndarray,
                       advantages: np.ndarray, returns: np.ndarray) -> Dict[str, np.ndarray]:
        """Loss gradients w.r.t. the policy logits and the value output, plus diagnostics."""
        probs = trace.probs.astype(np.float64)
        logits = trace.logits.astype(np.float64)
        values = np.asarray(trace.value, dtype=np.float64)

        cur_log_probs = log_prob(probs, actions)
        ratio = np.exp(cur_log_probs - old_log_probs)
        in_band = np.abs(ratio - 1.0) <= self.clip_eps
        adv = advantages[:, None]

        d_logits = np.where(in_band, -adv * ratio * (actions - probs), 0.0)
        d_logits += self.entropy_coef * logits * probs * (1.0 - probs)
        d_value = 2.0 * (values - returns) * self.value_coef

        clipped = np.clip(ratio, 1.0 - self.clip_eps, 1.0 + self.clip_eps)
        return {
            'd_logits': d_logits,
            'd_value': d_value,
            'policy_loss': float(np.mean(-np.minimum(ratio * adv, clipped * adv))),
            'value_loss': float(np.mean((values - returns) ** 2)),
            'entropy': float(np.mean(entropy(probs))),
            'approx_kl': float(np.mean(old_log_probs - cur_log_probs)),
            'clip_fraction': float(np.mean(~in_band)),
        }

    def update(self, batch: RolloutBatch, advantages: np.ndarray,
               returns: np.ndarray) -> Dict[str, float]:
        """Update all parameters in place. The caller owns clearing the buffer."""
        n = batch.size
        if n == 0:
            return {}

        advantages = np.asarray(advantages, dtype=np.float64)
        returns = np.asarray(returns, dtype=np.float64)
        if self.normalize_advantages and n > 1:
            advantages = (advantages - advantages.mean()) / (advantages.std() + 1e-8)

        actions = batch.actions.astype(np.float64)
        old_log_probs = batch.log_probs.astype(np.float64)
        mb_size = min(self.minibatch_size, n)

        totals = {'policy_loss': 0.0, 'value_loss': 0.0, 'entropy': 0.0,
                  'approx_kl': 0.0, 'clip_fraction': 0.0}
        steps = 0
        skipped = 0

        for epoch in range(self.train_epochs):
            indices = self.rng.permutation(n)
            for start in range(0, n, mb_size):
                mb = indices[start:start + mb_size]

                trace = self.network.forward_with_trace(batch.observations[mb])
                heads = self.head_gradients(trace, actions[mb], old_log_probs[mb],
                                            advantages[mb], returns[mb])
                grads = self.network.backward(trace, heads['d_logits'], heads['d_value'])

                if not np.all(np.isfinite(grads)):
                    skipped += 1
                    logger.warning(f"Skipping minibatch with non-finite gradients "
                                   f"(epoch {epoch}, size {len(mb)})")
                    continue

                self.optimizer.step(grads, scale=1.0 / len(mb))
                for key in totals:
                    totals[key] += heads[key]
                steps += 1

        stats = {key: value / max(steps, 1) for key, value in totals.items()}
        stats['optimizer_steps'] = steps
        stats['skipped_minibatches'] = skipped
        stats['samples'] = n
        logger.debug(f"PPO update over {n} steps: {stats}")
        return stats

    def consume(self, buffer: ExperienceBuffer, estimator: AdvantageEstimator,
                bootstrap_value: float = 0.0) -> Dict[str, float]:
        """
        Train on everything in buffer, then clear it.

        bootstrap_value is ignored when the buffer's tail is terminal.
        """
        batch = buffer.batch()
        if batch.size == 0:
            buffer.clear()
            return {}
        if batch.dones[-1]:
            bootstrap_value = 0.0
        advantages, returns = estimator.estimate(
            batch.rewards, batch.values, batch.dones, bootstrap_value)
        stats = self.update(batch, advantages, returns)
        stats['mean_advantage'] = float(np.mean(advantages))
        stats['mean_return'] = float(np.mean(returns))
        buffer.clear()
        return stats
