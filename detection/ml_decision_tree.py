"""
Decision tree classifier grown by information gain.
Nodes are stored in a flat list and reference their children by index.
"""
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional, Sequence, Tuple
import logging

import numpy as np

from detection.ml_base import (
    Classifier, FORMAT_VERSION, as_training_arrays, as_feature_row, check_format, majority_label
)

logger = logging.getLogger(__name__)

# Gains at or below this are treated as no improvement
MIN_GAIN = 1e-12


@dataclass
class TreeNode:
    value: int
    feature_index: Optional[int] = None
    threshold: Optional[float] = None
    left: Optional[int] = None
    right: Optional[int] = None

    @property
    def is_leaf(self) -> bool:
        return self.feature_index is None


def entropy(labels: np.ndarray) -> float:
    """Shannon entropy of a label array, in bits"""
    if labels.size == 0:
        return 0.0
    _, counts = np.unique(labels, return_counts=True)
    p = counts / labels.size
    return float(-(p * np.log2(p)).sum())


def _row_entropy(counts: np.ndarray) -> np.ndarray:
    """Entropy (bits) of each row of a (m, n_classes) count matrix"""
    totals = counts.sum(axis=1, keepdims=True)
    with np.errstate(divide='ignore', invalid='ignore'):
        p = np.where(totals > 0, counts / totals, 0.0)
        terms = np.where(p > 0, p * np.log2(p), 0.0)
    return -terms.sum(axis=1)


def information_gain(labels: np.ndarray, left_mask: np.ndarray) -> float:
    n = labels.size
    left = labels[left_mask]
    right = labels[~left_mask]
    child = (left.size / n) * entropy(left) + (right.size / n) * entropy(right)
    return entropy(labels) - child


class DecisionTree(Classifier):
    """Binary-split decision tree; left branch takes values <= threshold"""

    model_name = "decision_tree"

    def __init__(self, max_depth: int = 20, min_samples_split: int = 2):
        super().__init__()
        self.max_depth = max_depth
        self.min_samples_split = min_samples_split
        self.nodes: List[TreeNode] = []
        self.n_features: Optional[int] = None

    def train(self, features: Sequence[Sequence[float]], labels: Sequence[int]) -> None:
        X, y = as_training_arrays(features, labels)
        self.fit_arrays(X, y)

    def fit_arrays(self, X: np.ndarray, y: np.ndarray) -> None:
        """Grow the tree from already-validated arrays"""
        self.nodes = []
        self.n_features = X.shape[1]
        self._build(X, y, depth=0)
        self.is_trained = True
        logger.debug(f"Grew tree with {len(self.nodes)} nodes (depth {self.depth()})")

    def _build(self, X: np.ndarray, y: np.ndarray, depth: int) -> int:
        index = len(self.nodes)
        node = TreeNode(value=majority_label(y))
        self.nodes.append(node)

        if (depth >= self.max_depth
                or y.size < self.min_samples_split
                or np.unique(y).size == 1):
            return index

        split = self._best_split(X, y)
        if split is None:
            return index

        feature_index, threshold = split
        left_mask = X[:, feature_index] <= threshold
        node.feature_index = feature_index
        node.threshold = threshold
        node.left = self._build(X[left_mask], y[left_mask], depth + 1)
        node.right = self._build(X[~left_mask], y[~left_mask], depth + 1)
        return index

    def _best_split(self, X: np.ndarray, y: np.ndarray) -> Optional[Tuple[int, float]]:
        """Search every observed value of every feature as a threshold.

        Scans features in order and thresholds in ascending order; the first
        candidate with the strictly highest gain wins.
        """
        n = y.size
        classes, y_idx = np.unique(y, return_inverse=True)
        one_hot = np.eye(classes.size)[y_idx]
        totals = one_hot.sum(axis=0)
        parent_entropy = _row_entropy(totals.reshape(1, -1))[0]

        best_gain = MIN_GAIN
        best: Optional[Tuple[int, float]] = None

        for feature_index in range(X.shape[1]):
            order = np.argsort(X[:, feature_index], kind='mergesort')
            values = X[order, feature_index]
            # Split after position i whenever the next value differs
            boundaries = np.nonzero(values[1:] != values[:-1])[0]
            if boundaries.size == 0:
                continue

            cumulative = np.cumsum(one_hot[order], axis=0)
            left_counts = cumulative[boundaries]
            right_counts = totals - left_counts
            n_left = boundaries + 1
            n_right = n - n_left

            child_entropy = (n_left / n) * _row_entropy(left_counts) \
                + (n_right / n) * _row_entropy(right_counts)
            gains = parent_entropy - child_entropy

            candidate = int(np.argmax(gains))
            if gains[candidate] > best_gain:
                best_gain = float(gains[candidate])
                best = (feature_index, float(values[boundaries[candidate]]))

        return best

    def predict(self, features: Sequence[float]) -> int:
        self._require_trained()
        x = as_feature_row(features, self.n_features)
        node = self.nodes[0]
        while not node.is_leaf:
            node = self.nodes[node.left if x[node.feature_index] <= node.threshold else node.right]
        return node.value

    def predict_proba(self, features: Sequence[float]) -> List[float]:
        """Hard leaf vote as a two-class distribution"""
        label = self.predict(features)
        return [1.0, 0.0] if label == 0 else [0.0, 1.0]

    def depth(self) -> int:
        if not self.nodes:
            return 0

        def walk(index: int) -> int:
            node = self.nodes[index]
            if node.is_leaf:
                return 0
            return 1 + max(walk(node.left), walk(node.right))

        return walk(0)

    def feature_importance(self) -> Dict[int, int]:
        """Number of splits made on each feature index"""
        self._require_trained()
        counts: Dict[int, int] = {}
        for node in self.nodes:
            if not node.is_leaf:
                counts[node.feature_index] = counts.get(node.feature_index, 0) + 1
        return counts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "format_version": FORMAT_VERSION,
            "model": self.model_name,
            "max_depth": self.max_depth,
            "min_samples_split": self.min_samples_split,
            "n_features": self.n_features,
            "is_trained": self.is_trained,
            "nodes": [asdict(node) for node in self.nodes],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DecisionTree':
        check_format(data, cls.model_name)
        tree = cls(max_depth=data["max_depth"], min_samples_split=data["min_samples_split"])
        tree.n_features = data.get("n_features")
        tree.nodes = [TreeNode(**node) for node in data["nodes"]]
        tree.is_trained = bool(data.get("is_trained")) and bool(tree.nodes)
        return tree
