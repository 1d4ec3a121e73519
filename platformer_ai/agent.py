"""
PPO Agent - Online Proximal Policy Optimization for a real-time platformer.

The host drives the agent once per tick:
1. receive_observation(record)  -> encode, forward, sample, buffer a step
2. get_action(deterministic)    -> named action set to apply
3. store_reward(r) / end_episode(terminal_reward)
4. update_policy()              -> GAE + PPO over the buffer, then clear it

Updates also fire on their own once rollout_size rewarded steps are buffered.
They run at the next episode end or the next observation, never inside
store_reward, so the newest reward can still be marked terminal. Each agent
owns its network, optimizer and buffer; nothing is shared between instances.
"""

from typing import Any, Dict, List, Optional, Union
import json
import logging
import os

import numpy as np

from core.advantage import AdvantageEstimator
from core.buffer import ExperienceBuffer
from core.codec import VectorCodec
from core.config import AgentConfig
from core.network import Network, sample_action, deterministic_action, log_prob
from core.trainer import PPOTrainer
from core.weights import WeightStore

logger = logging.getLogger(__name__)


def to_native(obj):
    """Convert numpy scalars/arrays to JSON-serializable Python values."""
    if isinstance(obj, (np.integer,)):
        return int(obj)
    if isinstance(obj, (np.floating,)):
        return float(obj)
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, dict):
        return {k: to_native(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_native(v) for v in obj]
    return obj


class PPOAgent:
    """
    Single-owner agent: one network, one optimizer, one experience buffer.

    Not thread-safe; inference and training must not run concurrently on the
    same instance.
    """

    def __init__(self, config: Union[AgentConfig, Dict[str, Any], None] = None):
        if isinstance(config, dict):
            config = AgentConfig.from_dict(config)
        self.config = (config or AgentConfig()).validate()

        init_seed, sample_seed, shuffle_seed = np.random.SeedSequence(self.config.seed).spawn(3)
        self.rng = np.random.default_rng(sample_seed)

        self.codec = VectorCodec(observation_size=self.config.observation_size)
        self.network = Network(
            observation_size=self.config.observation_size,
            hidden_sizes=self.config.hidden_sizes,
            rng=np.random.default_rng(init_seed),
        )
        self.buffer = ExperienceBuffer()
        self.estimator = AdvantageEstimator(self.config.gamma, self.config.gae_lambda)
        self.trainer = PPOTrainer(self.network, self.config,
                                  rng=np.random.default_rng(shuffle_seed))
        self.weight_store = WeightStore()

        # Latest forward pass
        self._last_obs: Optional[np.ndarray] = None
        self._last_probs: Optional[np.ndarray] = None
        self._last_value = 0.0
        self._last_sample: Optional[np.ndarray] = None
        self._last_action: Optional[np.ndarray] = None
        self._step_buffered = False

        # Automatic updates only fire while training
        self.training = True

        # Training stats
        self.total_steps = 0
        self.episodes_completed = 0
        self.updates = 0
        self.episode_rewards: List[float] = []
        self.training_log: List[Dict[str, float]] = []
        self._episode_reward = 0.0

    @property
    def observation_size(self) -> int:
        return self.config.observation_size

    @property
    def last_value(self) -> float:
        return self._last_value

    @property
    def last_probs(self) -> Optional[np.ndarray]:
        return None if self._last_probs is None else self._last_probs.copy()

    # ---------- inference boundary ----------

    def receive_observation(self, record) -> None:
        """
        Encode the host observation, run the network and buffer a step.

        A full rollout is trained here, before the new step is recorded, with
        this observation's value as the bootstrap. By then the host has moved
        on, so the newest reward can no longer be marked terminal.
        """
        obs = self.codec.encode(record)
        if self._rollout_full():
            _, next_value = self.network.forward(obs)
            self._update(float(next_value))

        probs, value = self.network.forward(obs)
        sample = sample_action(probs, self.rng)

        self.buffer.record_step(obs, sample, log_prob(probs, sample), float(value))

        self._last_obs = obs
        self._last_probs = probs
        self._last_value = float(value)
        self._last_sample = sample
        self._last_action = sample
        self._step_buffered = True
        self.total_steps += 1

    def get_action(self, deterministic: bool = False) -> Dict[str, bool]:
        """
        Action for the latest observation.

        Stochastic mode returns the Bernoulli sample drawn on receipt; the
        deterministic readout thresholds each probability at 0.5. Whichever is
        returned is what the buffered step records. All actions are off until
        the first observation arrives.
        """
        if self._last_probs is None:
            return self.codec.no_action()

        if deterministic:
            action = deterministic_action(self._last_probs)
        else:
            action = self._last_sample

        if self._step_buffered and not np.array_equal(action, self._last_action):
            self.buffer.replace_last_action(action, log_prob(self._last_probs, action))
        self._last_action = action
        return self.codec.decode(action)

    # ---------- reward boundary ----------

    def store_reward(self, reward: float) -> None:
        self.buffer.record_reward(reward)
        self._episode_reward += float(reward)

    def end_episode(self, terminal_reward: float = 0.0) -> None:
        """
        Mark an episode boundary.

        When the last step has no reward yet, terminal_reward becomes its
        (terminal) reward; otherwise the newest reward is flagged terminal and
        terminal_reward is not added.
        """
        if self.buffer.end_episode(terminal_reward):
            self._episode_reward += float(terminal_reward)

        self.episodes_completed += 1
        self.episode_rewards.append(self._episode_reward)
        logger.debug(f"Episode {self.episodes_completed} finished, "
                     f"reward {self._episode_reward:.3f}")
        self._episode_reward = 0.0

        if (self.training and self.config.update_on_episode_end) or self._rollout_full():
            self.update_policy()

    def _rollout_full(self) -> bool:
        size = self.config.rollout_size
        return (self.training and size > 0 and self.buffer.size >= size
                and self.buffer.pending_rewards == 0)

    # ---------- training trigger ----------

    def update_policy(self) -> Optional[Dict[str, float]]:
        """Train on the buffered experience. No-op on an empty buffer."""
        return self._update(self._last_value)

    def _update(self, bootstrap_value: float) -> Optional[Dict[str, float]]:
        if self.buffer.size == 0:
            self.buffer.clear()
            return None

        stats = self.trainer.consume(self.buffer, self.estimator,
                                     bootstrap_value=bootstrap_value)
        self._step_buffered = False
        self.updates += 1
        self.training_log.append(stats)

        # Cached outputs came from the old weights
        if self._last_obs is not None:
            self._last_probs, value = self.network.forward(self._last_obs)
            self._last_value = float(value)

        logger.info(f"Update {self.updates}: {stats['samples']} steps | "
                    f"policy loss {stats['policy_loss']:.4f} | "
                    f"value loss {stats['value_loss']:.4f} | "
                    f"entropy {stats['entropy']:.4f} | "
                    f"clip frac {stats['clip_fraction']:.3f}")
        return stats

    # ---------- persistence boundary ----------

    def save_weights(self, path: str) -> None:
        self.weight_store.save(self.network, path)

    def load_weights(self, path: str) -> None:
        """
        Replace the network weights from path and reset optimizer momentum.

        Raises ArchitectureMismatchError or WeightFormatError; on either the
        running weights are untouched.
        """
        self.weight_store.load(self.network, path)
        self.trainer.optimizer.reset()
        if self._last_obs is not None:
            self._last_probs, value = self.network.forward(self._last_obs)
            self._last_value = float(value)

    def get_stats(self) -> Dict[str, Any]:
        recent = self.episode_rewards[-100:]
        return {
            'total_steps': self.total_steps,
            'episodes_completed': self.episodes_completed,
            'updates': self.updates,
            'buffered_steps': self.buffer.size,
            'avg_reward': float(np.mean(recent)) if recent else 0.0,
        }

    def save(self, path: str):
        """Save a checkpoint directory (weights + config + training stats)."""
        os.makedirs(path, exist_ok=True)
        self.save_weights(os.path.join(path, 'weights.json'))
        self.config.save(os.path.join(path, 'config.json'))

        stats = to_native({
            'total_steps': self.total_steps,
            'episodes_completed': self.episodes_completed,
            'updates': self.updates,
            'episode_rewards': self.episode_rewards[-1000:],
            'training_log': self.training_log[-100:],
        })
        with open(os.path.join(path, 'training_stats.json'), 'w') as f:
            json.dump(stats, f, indent=2)

    def load(self, path: str):
        """Load a checkpoint directory written by save()."""
        self.load_weights(os.path.join(path, 'weights.json'))

        stats_path = os.path.join(path, 'training_stats.json')
        if os.path.exists(stats_path):
            with open(stats_path, 'r') as f:
                stats = json.load(f)
            self.total_steps = stats.get('total_steps', 0)
            self.episodes_completed = stats.get('episodes_completed', 0)
            self.updates = stats.get('updates', 0)
            self.episode_rewards = stats.get('episode_rewards', [])
            self.training_log = stats.get('training_log', [])
