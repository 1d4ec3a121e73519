"""
Agent Core - Self-contained PPO learner for a multi-binary action space

Everything an online agent needs, written against plain NumPy arrays:
- VectorCodec: host observation record -> fixed-length vector, action vector -> named actions
- Network: ReLU MLP body, Bernoulli policy head, scalar value head, manual backward pass
- ExperienceBuffer: steps, rewards and episode boundaries since the last update
- AdvantageEstimator: Generalized Advantage Estimation
- PPOTrainer + Adam: clipped-surrogate minibatch updates
- WeightStore: JSON persistence with architecture validation
"""

from .codec import (
    VectorCodec, Observation, Tile, observation_from_record,
    ACTION_NAMES, ACTION_COUNT, DEFAULT_OBSERVATION_SIZE,
)
from .network import (
    Network, ForwardTrace, sigmoid, log_prob, entropy,
    sample_action, deterministic_action,
)
from .buffer import ExperienceBuffer, RolloutBatch
from .advantage import AdvantageEstimator
from .optimizer import Adam
from .trainer import PPOTrainer
from .weights import WeightStore
from .config import AgentConfig
from .errors import (
    AgentError, WeightStoreError, ArchitectureMismatchError, WeightFormatError,
)

__all__ = [
    'VectorCodec',
    'Observation',
    'Tile',
    'observation_from_record',
    'ACTION_NAMES',
    'ACTION_COUNT',
    'DEFAULT_OBSERVATION_SIZE',
    'Network',
    'ForwardTrace',
    'sigmoid',
    'log_prob',
    'entropy',
    'sample_action',
    'deterministic_action',
    'ExperienceBuffer',
    'RolloutBatch',
    'AdvantageEstimator',
    'Adam',
    'PPOTrainer',
    'WeightStore',
    'AgentConfig',
    'AgentError',
    'WeightStoreError',
    'ArchitectureMismatchError',
    'WeightFormatError',
]
