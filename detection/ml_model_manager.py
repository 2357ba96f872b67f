from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union
import json
import logging

import numpy as np

from detection.ml_base import FORMAT_VERSION, as_training_arrays, check_binary_labels
from detection.ml_feature_extractor import FeatureVector, FEATURE_NAMES
from detection.ml_random_forest import RandomForestClassifier
from detection.ml_neural_network import NeuralNetworkClassifier

logger = logging.getLogger(__name__)

Features = Union[FeatureVector, Sequence[float]]

MODEL_KINDS = ("random_forest", "neural_network", "ensemble")


@dataclass(frozen=True)
class PredictionResult:
    is_attack: bool
    attack_type: str
    confidence: float  # 0-100
    probability: float  # probability of the attack class
    features: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'is_attack': self.is_attack,
            'attack_type': self.attack_type,
            'confidence': self.confidence,
            'probability': self.probability,
            'features': dict(self.features)
        }


def _as_row(features: Features) -> List[float]:
    if isinstance(features, FeatureVector):
        return features.to_list()
    return [float(v) for v in features]


def features_to_dict(row: Sequence[float]) -> Dict[str, float]:
    return {
        (FEATURE_NAMES[i] if i < len(FEATURE_NAMES) else f"feature_{i}"): float(v)
        for i, v in enumerate(row)
    }


def _label(is_attack: bool) -> str:
    return "malicious" if is_attack else "benign"


class ModelManager:
    """Owns the random forest and neural network and combines their predictions"""

    def __init__(
        self,
        random_forest: Optional[RandomForestClassifier] = None,
        neural_network: Optional[NeuralNetworkClassifier] = None,
        seed: Optional[int] = None,
    ):
        rng = np.random.default_rng(seed)
        self.random_forest = random_forest or RandomForestClassifier(rng=rng)
        self.neural_network = neural_network or NeuralNetworkClassifier(rng=rng)

    def _validate_training_set(self, rows: List[List[float]], labels: Sequence[int]) -> None:
        """Reject a training set either model would refuse, before either is retrained"""
        X, y = as_training_arrays(rows, labels)
        check_binary_labels(y)
        input_size = self.neural_network.input_size
        if input_size is not None and X.shape[1] != input_size:
            raise ValueError(f"Expected {input_size} features, got {X.shape[1]}")

    def train_all(self, features: Sequence[Features], labels: Sequence[int]) -> None:
        rows = [_as_row(f) for f in features]
        self._validate_training_set(rows, labels)

        logger.info("Training Random Forest...")
        self.random_forest.train(rows, labels)

        logger.info("Training Neural Network...")
        self.neural_network.train(rows, labels)

    def predict_random_forest(self, features: Features) -> PredictionResult:
        row = _as_row(features)
        prediction = self.random_forest.predict(row)
        proba = self.random_forest.predict_proba(row)
        return PredictionResult(
            is_attack=prediction == 1,
            attack_type=_label(prediction == 1),
            confidence=max(proba) * 100,
            probability=proba[1],
            features=features_to_dict(row)
        )

    def predict_neural_network(self, features: Features) -> PredictionResult:
        row = _as_row(features)
        prediction = self.neural_network.predict(row)
        proba = self.neural_network.predict_proba(row)
        return PredictionResult(
            is_attack=prediction == 1,
            attack_type=_label(prediction == 1),
            confidence=max(proba) * 100,
            probability=proba[1],
            features=features_to_dict(row)
        )

    def predict(self, model_kind: str, features: Features) -> PredictionResult:
        if model_kind == "random_forest":
            return self.predict_random_forest(features)
        if model_kind == "neural_network":
            return self.predict_neural_network(features)
        if model_kind == "ensemble":
            return self.predict_ensemble(features)
        raise ValueError(f"Unknown model kind: {model_kind!r} (expected one of {MODEL_KINDS})")

    def predict_ensemble(self, features: Features) -> PredictionResult:
        """Average both models' confidence and attack probability"""
        rf = self.predict_random_forest(features)
        nn = self.predict_neural_network(features)

        avg_confidence = (rf.confidence + nn.confidence) / 2
        avg_probability = (rf.probability + nn.probability) / 2
        is_attack = avg_probability > 0.5

        return PredictionResult(
            is_attack=is_attack,
            attack_type=_label(is_attack),
            confidence=avg_confidence,
            probability=avg_probability,
            features=rf.features
        )

    def get_status(self) -> Dict[str, Any]:
        return {
            'random_forest': {
                'trained': self.random_forest.is_trained,
                'trees': self.random_forest.tree_count,
            },
            'neural_network': {
                'trained': self.neural_network.is_trained,
                'epochs': self.neural_network.epochs,
                'final_loss': (self.neural_network.loss_history[-1]
                               if self.neural_network.loss_history else None),
            },
        }

    def save_models(self) -> str:
        return json.dumps({
            'format_version': FORMAT_VERSION,
            'random_forest': self.random_forest.to_dict(),
            'neural_network': self.neural_network.to_dict(),
        })

    def load_models(self, data: str) -> None:
        parsed = json.loads(data)
        if parsed.get('format_version') != FORMAT_VERSION:
            raise ValueError(f"Unsupported model bundle version: {parsed.get('format_version')!r}")
        self.random_forest = RandomForestClassifier.from_dict(parsed['random_forest'])
        self.neural_network = NeuralNetworkClassifier.from_dict(parsed['neural_network'])
        logger.info("Loaded random forest and neural network from saved bundle")
