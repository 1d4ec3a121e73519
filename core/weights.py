"""
Weight Store - JSON persistence for Network parameters.

File layout (one object):

    {
      "observation_size": 275,
      "hidden_sizes": [128, 64],
      "body_weights":   [[...], [...]],   # one row-major (out x in) list per layer
      "body_biases":    [[...], [...]],
      "policy_weights": [...],            # row-major (action_count x last_hidden)
      "policy_biases":  [...],
      "value_weights":  [...],
      "value_bias":     0.0
    }

Loading validates everything before touching the network, so a failed load
leaves the running weights exactly as they were.
"""

from typing import Any, Dict, List
import json
import logging
import os

import numpy as np

from .errors import ArchitectureMismatchError, WeightFormatError
from .network import Network

logger = logging.getLogger(__name__)

REQUIRED_KEYS = (
    'observation_size', 'hidden_sizes', 'body_weights', 'body_biases',
    'policy_weights', 'policy_biases', 'value_weights', 'value_bias',
)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _float_list(values: Any, expected: int, what: str, path: str) -> np.ndarray:
    """Flat list of JSON numbers; strings, bools and nested lists are rejected."""
    if not isinstance(values, list) or not all(_is_number(v) for v in values):
        raise WeightFormatError(f"{what} is not a list of numbers", path)
    try:
        arr = np.asarray(values, dtype=np.float64)
    except OverflowError as e:
        raise WeightFormatError(f"{what} has values out of range: {e}", path) from e
    if arr.ndim != 1 or arr.shape[0] != expected:
        raise WeightFormatError(
            f"{what} has {arr.size} values, expected {expected}", path)
    if not np.all(np.isfinite(arr)):
        raise WeightFormatError(f"{what} contains non-finite values", path)
    return arr


class WeightStore:
    """Saves and loads Network parameters."""

    @staticmethod
    def to_dict(network: Network) -> Dict[str, Any]:
        weights = []
        biases = []
        for i in range(network.num_layers):
            w, b = network.layer(i)
            weights.append(w.reshape(-1).tolist())
            biases.append(b.tolist())
        return {
            'observation_size': network.observation_size,
            'hidden_sizes': list(network.hidden_sizes),
            'body_weights': weights,
            'body_biases': biases,
            'policy_weights': network.policy_w.reshape(-1).tolist(),
            'policy_biases': network.policy_b.tolist(),
            'value_weights': network.value_w.tolist(),
            'value_bias': float(network.value_b[0]),
        }

    def save(self, network: Network, path: str):
        """Write the network's parameters and architecture to path."""
        parent = os.path.dirname(os.path.abspath(path))
        os.makedirs(parent, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(network), f, indent=2)
        logger.info(f"Saved {network.parameter_count} parameters to {path}")

    @staticmethod
    def read(path: str) -> Dict[str, Any]:
        """Read and structurally check a weights file without applying it."""
        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except OSError as e:
            raise WeightFormatError(f"Cannot read weights file: {e}", path) from e
        except ValueError as e:
            raise WeightFormatError(f"Weights file is not valid JSON: {e}", path) from e

        if not isinstance(data, dict):
            raise WeightFormatError("Weights file must contain a JSON object", path)
        missing = [k for k in REQUIRED_KEYS if k not in data]
        if missing:
            raise WeightFormatError(f"Missing keys: {', '.join(missing)}", path)

        hidden = data['hidden_sizes']
        if (not isinstance(hidden, list)
                or not all(isinstance(h, int) and h > 0 for h in hidden)):
            raise WeightFormatError("hidden_sizes must be a list of positive ints", path)
        if not isinstance(data['observation_size'], int) or data['observation_size'] <= 0:
            raise WeightFormatError("observation_size must be a positive int", path)
        return data

    def read_metadata(self, path: str) -> Dict[str, Any]:
        """Architecture summary of a weights file (for inspection tools)."""
        data = self.read(path)
        hidden: List[int] = data['hidden_sizes']
        action_count = len(data['policy_biases']) if isinstance(data['policy_biases'], list) else 0
        prev = data['observation_size']
        count = 0
        for h in hidden:
            count += h * prev + h
            prev = h
        count += action_count * prev + action_count + prev + 1
        return {
            'observation_size': data['observation_size'],
            'hidden_sizes': hidden,
            'action_count': action_count,
            'parameter_count': count,
        }

    def load(self, network: Network, path: str):
        """
        Load parameters from path into network.

        Raises ArchitectureMismatchError when the file's topology differs from
        the network's and WeightFormatError when the file is unusable. The
        network is only modified once the whole file has been validated.
        """
        data = self.read(path)

        hidden = data['hidden_sizes']
        if len(hidden) != network.num_layers:
            raise ArchitectureMismatchError(
                f"File has {len(hidden)} hidden layers, network has {network.num_layers}",
                path)
        if tuple(hidden) != network.hidden_sizes:
            raise ArchitectureMismatchError(
                f"Hidden widths {hidden} differ from {list(network.hidden_sizes)}", path)
        if data['observation_size'] != network.observation_size:
            raise ArchitectureMismatchError(
                f"Observation size {data['observation_size']} differs from "
                f"{network.observation_size}", path)

        body_w = data['body_weights']
        body_b = data['body_biases']
        if (not isinstance(body_w, list) or not isinstance(body_b, list)
                or len(body_w) != network.num_layers or len(body_b) != network.num_layers):
            raise WeightFormatError("body_weights/body_biases do not match hidden_sizes", path)

        params = {}
        for slot in network.slots:
            size = slot.size
            if slot.name.startswith('body_w'):
                i = int(slot.name[len('body_w'):])
                flat = _float_list(body_w[i], size, f"body_weights[{i}]", path)
            elif slot.name.startswith('body_b'):
                i = int(slot.name[len('body_b'):])
                flat = _float_list(body_b[i], size, f"body_biases[{i}]", path)
            elif slot.name == 'policy_w':
                flat = _float_list(data['policy_weights'], size, "policy_weights", path)
            elif slot.name == 'policy_b':
                flat = _float_list(data['policy_biases'], size, "policy_biases", path)
            elif slot.name == 'value_w':
                flat = _float_list(data['value_weights'], size, "value_weights", path)
            else:
                flat = _float_list([data['value_bias']], size, "value_bias", path)
            params[slot.name] = flat.reshape(slot.shape)

        network.set_params(params)
        logger.info(f"Loaded {network.parameter_count} parameters from {path}")
