"""
Feed-forward classifier: one ReLU hidden layer and a softmax output,
trained with per-sample stochastic gradient descent on cross-entropy loss.
"""
from typing import Any, Dict, List, Optional, Sequence
import logging

import numpy as np

from config import Config
from detection.ml_base import (
    Classifier, FORMAT_VERSION, as_training_arrays, as_feature_row, check_format
)

logger = logging.getLogger(__name__)


def relu(x: np.ndarray) -> np.ndarray:
    return np.maximum(0.0, x)


def softmax(x: np.ndarray) -> np.ndarray:
    shifted = np.exp(x - np.max(x))
    return shifted / shifted.sum()


class NeuralNetworkClassifier(Classifier):

    model_name = "neural_network"

    def __init__(
        self,
        input_size: Optional[int] = None,
        hidden_size: int = Config.NN_HIDDEN_SIZE,
        output_size: int = 2,
        learning_rate: float = Config.NN_LEARNING_RATE,
        epochs: int = Config.NN_EPOCHS,
        rng: Optional[np.random.Generator] = None,
    ):
        super().__init__()
        self.input_size = input_size
        self.hidden_size = hidden_size
        self.output_size = output_size
        self.learning_rate = learning_rate
        self.epochs = epochs
        self.rng = rng if rng is not None else np.random.default_rng()
        self.loss_history: List[float] = []

        self.weights: List[np.ndarray] = []
        self.biases: List[np.ndarray] = []
        # Input standardization learned from the training set
        self.feature_mean: Optional[np.ndarray] = None
        self.feature_scale: Optional[np.ndarray] = None

    def _initialize_weights(self) -> None:
        # He initialization for the ReLU layer, small Gaussian for the output layer
        self.weights = [
            self.rng.normal(0.0, np.sqrt(2.0 / self.input_size), size=(self.input_size, self.hidden_size)),
            self.rng.normal(0.0, np.sqrt(1.0 / self.hidden_size), size=(self.hidden_size, self.output_size)),
        ]
        self.biases = [np.zeros(self.hidden_size), np.zeros(self.output_size)]

    def _standardize(self, x: np.ndarray) -> np.ndarray:
        return (x - self.feature_mean) / self.feature_scale

    def _forward(self, x: np.ndarray):
        hidden_in = x @ self.weights[0] + self.biases[0]
        hidden = relu(hidden_in)
        output = softmax(hidden @ self.weights[1] + self.biases[1])
        return hidden_in, hidden, output

    def train(self, features: Sequence[Sequence[float]], labels: Sequence[int]) -> None:
        X, y = as_training_arrays(features, labels)
        if self.input_size is None:
            self.input_size = X.shape[1]
        elif X.shape[1] != self.input_size:
            raise ValueError(f"Expected {self.input_size} features, got {X.shape[1]}")
        if y.min() < 0 or y.max() >= self.output_size:
            raise ValueError(f"Labels must be in [0, {self.output_size - 1}]")

        self.feature_mean = X.mean(axis=0)
        scale = X.std(axis=0)
        self.feature_scale = np.where(scale > 0, scale, 1.0)
        X = self._standardize(X)

        self._initialize_weights()
        self.loss_history = []
        logger.info(f"Training neural network: {self.epochs} epochs on {len(y)} samples")

        for epoch in range(self.epochs):
            total_loss = 0.0
            for i in self.rng.permutation(len(y)):
                total_loss += self._train_step(X[i], int(y[i]))

            mean_loss = total_loss / len(y)
            self.loss_history.append(mean_loss)
            if epoch % 10 == 0:
                logger.debug(f"Epoch {epoch}, Loss: {mean_loss:.4f}")

        self.is_trained = True

    def _train_step(self, x: np.ndarray, label: int) -> float:
        hidden_in, hidden, output = self._forward(x)
        loss = -np.log(output[label] + 1e-10)

        grad_out = output.copy()
        grad_out[label] -= 1.0
        grad_hidden = (self.weights[1] @ grad_out) * (hidden_in > 0)

        self.weights[1] -= self.learning_rate * np.outer(hidden, grad_out)
        self.biases[1] -= self.learning_rate * grad_out
        self.weights[0] -= self.learning_rate * np.outer(x, grad_hidden)
        self.biases[0] -= self.learning_rate * grad_hidden
        return float(loss)

    def predict_proba(self, features: Sequence[float]) -> List[float]:
        self._require_trained()
        x = self._standardize(as_feature_row(features, self.input_size))
        _, _, output = self._forward(x)
        return [float(p) for p in output]

    def predict(self, features: Sequence[float]) -> int:
        proba = self.predict_proba(features)
        # Ties go to the lowest class
        return int(np.argmax(proba))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "format_version": FORMAT_VERSION,
            "model": self.model_name,
            "input_size": self.input_size,
            "hidden_size": self.hidden_size,
            "output_size": self.output_size,
            "learning_rate": self.learning_rate,
            "epochs": self.epochs,
            "is_trained": self.is_trained,
            "weights": [w.tolist() for w in self.weights],
            "biases": [b.tolist() for b in self.biases],
            "feature_mean": None if self.feature_mean is None else self.feature_mean.tolist(),
            "feature_scale": None if self.feature_scale is None else self.feature_scale.tolist(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'NeuralNetworkClassifier':
        check_format(data, cls.model_name)
        network = cls(
            input_size=data["input_size"],
            hidden_size=data["hidden_size"],
            output_size=data["output_size"],
            learning_rate=data["learning_rate"],
            epochs=data["epochs"],
        )
        network.weights = [np.asarray(w, dtype=np.float64) for w in data["weights"]]
        network.biases = [np.asarray(b, dtype=np.float64) for b in data["biases"]]
        if data.get("feature_mean") is not None:
            network.feature_mean = np.asarray(data["feature_mean"], dtype=np.float64)
            network.feature_scale = np.asarray(data["feature_scale"], dtype=np.float64)
        network.is_trained = bool(data.get("is_trained")) and bool(network.weights)
        return network
