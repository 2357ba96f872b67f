"""
Common contract for the trainable classifiers plus the input checks and
serialization helpers they share.
"""
from typing import Any, Dict, List, Optional, Sequence, Tuple
import json

import numpy as np

from config import Config
from models.exceptions import EmptyInputError, NotTrainedError

FORMAT_VERSION = Config.MODEL_FORMAT_VERSION


def as_training_arrays(features: Sequence[Sequence[float]],
                       labels: Sequence[int]) -> Tuple[np.ndarray, np.ndarray]:
    """Validate and convert a training set to (n_samples, n_features) floats and int labels"""
    if len(features) == 0:
        raise EmptyInputError("Training data is empty")
    if len(features) != len(labels):
        raise ValueError(
            f"Got {len(features)} feature rows but {len(labels)} labels")
    X = np.asarray(features, dtype=np.float64)
    if X.ndim != 2 or X.shape[1] == 0:
        raise ValueError("Features must be a non-empty 2-D array")
    y = np.asarray(labels, dtype=np.int64)
    return X, y


def check_binary_labels(y: np.ndarray) -> None:
    """Binary models only accept labels 0 (benign) and 1 (attack)"""
    unexpected = sorted(set(np.unique(y).tolist()) - {0, 1})
    if unexpected:
        raise ValueError(f"Labels must be 0 or 1, got {unexpected}")


def as_feature_row(features: Sequence[float], n_features: Optional[int] = None) -> np.ndarray:
    x = np.asarray(features, dtype=np.float64).reshape(-1)
    if n_features is not None and x.shape[0] != n_features:
        raise ValueError(f"Expected {n_features} features, got {x.shape[0]}")
    return x


def majority_label(labels: Sequence[int]) -> int:
    """Most frequent label; equal counts resolve to the lowest label"""
    classes, counts = np.unique(np.asarray(labels, dtype=np.int64), return_counts=True)
    return int(classes[np.argmax(counts)])


def check_format(data: Dict[str, Any], model: str) -> None:
    version = data.get("format_version")
    if version != FORMAT_VERSION:
        raise ValueError(f"Unsupported {model} format version: {version!r}")
    if data.get("model") != model:
        raise ValueError(f"Expected a serialized {model}, got {data.get('model')!r}")


class Classifier:
    """Interface: trainable binary classifier over numeric feature vectors"""

    model_name = "classifier"

    def __init__(self):
        self.is_trained = False

    def train(self, features: Sequence[Sequence[float]], labels: Sequence[int]) -> None:
        raise NotImplementedError

    def predict(self, features: Sequence[float]) -> int:
        raise NotImplementedError

    def predict_proba(self, features: Sequence[float]) -> List[float]:
        raise NotImplementedError

    def predict_batch(self, features: Sequence[Sequence[float]]) -> List[int]:
        return [self.predict(row) for row in features]

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError

    def _require_trained(self) -> None:
        if not self.is_trained:
            raise NotTrainedError(self.model_name)

    def save(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Classifier':
        raise NotImplementedError

    @classmethod
    def load(cls, data: str) -> 'Classifier':
        return cls.from_dict(json.loads(data))
