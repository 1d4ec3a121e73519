"""
Vector Codec - Bridges host observations and actions to the network.

The host hands over a loosely keyed dictionary every tick. It is mapped once
into a typed Observation (versioned, so the host layout can evolve), then
flattened into a fixed-length float vector:

  [x, y, vx, vy, grounded, dashes_left, wallcheck, grab, progress.x, progress.y]
  + MAX_ENTITIES x [x, y, width, height]   (zero padded)
  + GRID_SIZE x GRID_SIZE tile codes         (row-major, centred on the player)

Default total: 10 + 40 + 225 = 275. Missing fields become zero and the result
is always padded or truncated to the configured observation size; encoding
never raises on host data.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Sequence, Tuple, Union
import math

import numpy as np


ACTION_NAMES: Tuple[str, ...] = ("left", "right", "up", "down", "jump", "dash", "grab")
ACTION_COUNT = len(ACTION_NAMES)

NUM_SCALAR_FEATURES = 10
MAX_ENTITIES = 10
ENTITY_FEATURES = 4   # x, y, width, height
GRID_SIZE = 15
DEFAULT_OBSERVATION_SIZE = (NUM_SCALAR_FEATURES + MAX_ENTITIES * ENTITY_FEATURES
                            + GRID_SIZE * GRID_SIZE)
# = 10 + 40 + 225 = 275

CURRENT_RECORD_VERSION = 1


class Tile(IntEnum):
    EMPTY = 0
    SOLID = 1
    SPIKE_UP = 2
    SPIKE_RIGHT = 3
    SPIKE_DOWN = 4
    SPIKE_LEFT = 5


@dataclass
class Observation:
    """Typed view of one host observation."""
    x: float = 0.0
    y: float = 0.0
    vx: float = 0.0
    vy: float = 0.0
    grounded: bool = False
    dashes_left: int = 0
    wallcheck: bool = False
    grab: bool = False
    progress: Tuple[float, float] = (0.0, 0.0)
    enemies: List[Tuple[float, float, float, float]] = field(default_factory=list)
    grid: List[int] = field(default_factory=list)


# ---------- host record mapping ----------

# Largest magnitude a float32 slot can hold
_FLOAT32_MAX = float(np.finfo(np.float32).max)


def _finite(value: Any) -> bool:
    """True for real numbers that fit a float32 slot."""
    if not isinstance(value, (int, float, np.integer, np.floating)):
        return False
    try:
        return math.isfinite(value) and abs(float(value)) <= _FLOAT32_MAX
    except (OverflowError, TypeError):
        return False


def _is_sequence(value: Any) -> bool:
    if isinstance(value, np.ndarray):
        return value.ndim > 0
    return isinstance(value, (list, tuple))


def _as_float(value: Any) -> float:
    return float(value) if _finite(value) else 0.0


def _as_int(value: Any) -> int:
    return int(value) if _finite(value) else 0


def _as_bool(value: Any) -> bool:
    if isinstance(value, (bool, np.bool_, int, np.integer)):
        return bool(value)
    return False


def _as_pair(value: Any) -> Tuple[float, float]:
    if value is None:
        return (0.0, 0.0)
    if hasattr(value, 'x') and hasattr(value, 'y'):
        return (_as_float(value.x), _as_float(value.y))
    if _is_sequence(value) and len(value) >= 2:
        return (_as_float(value[0]), _as_float(value[1]))
    return (0.0, 0.0)


def _as_entities(value: Any) -> List[Tuple[float, float, float, float]]:
    """
    Accept a flat [x, y, w, h, x, y, w, h, ...] list or a list of 4-tuples.
    In the nested form, items that are not 4+ long sequences are skipped.
    """
    if not _is_sequence(value) or len(value) == 0:
        return []
    entities = []
    if _is_sequence(value[0]):
        for item in value:
            if _is_sequence(item) and len(item) >= ENTITY_FEATURES:
                entities.append(tuple(_as_float(v) for v in item[:ENTITY_FEATURES]))
    else:
        for i in range(len(value) // ENTITY_FEATURES):
            chunk = value[i * ENTITY_FEATURES:(i + 1) * ENTITY_FEATURES]
            entities.append(tuple(_as_float(v) for v in chunk))
    return entities


def _as_grid(value: Any) -> List[int]:
    """Flatten a row-major grid given either flat or as nested rows."""
    if not _is_sequence(value):
        return []
    cells = []
    for item in value:
        if _is_sequence(item):
            cells.extend(_as_int(v) for v in item)
        else:
            cells.append(_as_int(item))
    return cells


def _map_record_v1(record: Dict[str, Any]) -> Observation:
    return Observation(
        x=_as_float(record.get('x')),
        y=_as_float(record.get('y')),
        vx=_as_float(record.get('vx')),
        vy=_as_float(record.get('vy')),
        grounded=_as_bool(record.get('grounded')),
        dashes_left=_as_int(record.get('dashes_left')),
        wallcheck=_as_bool(record.get('wallcheck')),
        grab=_as_bool(record.get('grab')),
        progress=_as_pair(record.get('progress')),
        enemies=_as_entities(record.get('enemies')),
        grid=_as_grid(record.get('grid')),
    )


RECORD_MAPPINGS = {
    1: _map_record_v1,
}


def observation_from_record(record: Dict[str, Any],
                            version: int = CURRENT_RECORD_VERSION) -> Observation:
    """
    Map a host observation dictionary into an Observation.

    Unknown keys are ignored and wrong-typed values fall back to zero/false.
    An unknown mapping version is a programming error and raises ValueError.
    """
    if version not in RECORD_MAPPINGS:
        raise ValueError(f"Unknown observation record version: {version}")
    if not isinstance(record, dict):
        return Observation()
    return RECORD_MAPPINGS[version](record)


# ---------- codec ----------

class VectorCodec:
    """
    Converts observations to fixed-length vectors and action vectors to
    named action sets.
    """

    def __init__(self, observation_size: int = DEFAULT_OBSERVATION_SIZE,
                 max_entities: int = MAX_ENTITIES, grid_size: int = GRID_SIZE,
                 record_version: int = CURRENT_RECORD_VERSION):
        self.observation_size = observation_size
        self.max_entities = max_entities
        self.grid_size = grid_size
        self.record_version = record_version

    @property
    def natural_size(self) -> int:
        """Length of the layout before padding/truncation."""
        return (NUM_SCALAR_FEATURES + self.max_entities * ENTITY_FEATURES
                + self.grid_size * self.grid_size)

    def encode(self, observation: Union[Observation, Dict[str, Any]]) -> np.ndarray:
        """Encode an Observation (or raw host record) as float32[observation_size]."""
        if not isinstance(observation, Observation):
            observation = observation_from_record(observation, self.record_version)

        vec = np.zeros(self.natural_size, dtype=np.float32)
        vec[:NUM_SCALAR_FEATURES] = (
            observation.x, observation.y, observation.vx, observation.vy,
            float(observation.grounded), float(observation.dashes_left),
            float(observation.wallcheck), float(observation.grab),
            observation.progress[0], observation.progress[1],
        )

        offset = NUM_SCALAR_FEATURES
        for i, entity in enumerate(observation.enemies[:self.max_entities]):
            start = offset + i * ENTITY_FEATURES
            vec[start:start + ENTITY_FEATURES] = entity

        offset += self.max_entities * ENTITY_FEATURES
        cells = observation.grid[:self.grid_size * self.grid_size]
        if cells:
            vec[offset:offset + len(cells)] = [float(c) for c in cells]

        if self.natural_size == self.observation_size:
            return vec
        out = np.zeros(self.observation_size, dtype=np.float32)
        n = min(self.observation_size, self.natural_size)
        out[:n] = vec[:n]
        return out

    def decode(self, action: Sequence[float]) -> Dict[str, bool]:
        """Map action index i to ACTION_NAMES[i]; values above 0.5 are pressed."""
        action = np.asarray(action, dtype=np.float32).reshape(-1)
        return {name: bool(i < action.shape[0] and action[i] > 0.5)
                for i, name in enumerate(ACTION_NAMES)}

    @staticmethod
    def no_action() -> Dict[str, bool]:
        return {name: False for name in ACTION_NAMES}
