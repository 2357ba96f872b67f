"""
Bagged ensemble of decision trees.
Each tree is trained on its own bootstrap resample; predictions are a majority vote.
"""
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Sequence
import logging

import numpy as np

from config import Config
from detection.ml_base import (
    Classifier, FORMAT_VERSION, as_training_arrays, as_feature_row, check_binary_labels,
    check_format, majority_label
)
from detection.ml_decision_tree import DecisionTree
from models.exceptions import NotTrainedError

logger = logging.getLogger(__name__)


class RandomForestClassifier(Classifier):
    """Random forest for binary (0/1) labels"""

    model_name = "random_forest"

    def __init__(
        self,
        num_trees: int = Config.FOREST_TREES,
        max_depth: int = Config.FOREST_MAX_DEPTH,
        min_samples_split: int = Config.FOREST_MIN_SAMPLES_SPLIT,
        rng: Optional[np.random.Generator] = None,
        n_jobs: int = 1,
    ):
        super().__init__()
        if num_trees < 1:
            raise ValueError("num_trees must be at least 1")
        self.num_trees = num_trees
        self.max_depth = max_depth
        self.min_samples_split = min_samples_split
        self.n_jobs = n_jobs
        self.rng = rng if rng is not None else np.random.default_rng()
        self._trees: List[DecisionTree] = []
        self.n_features: Optional[int] = None

    @property
    def tree_count(self) -> int:
        """Number of trained trees"""
        return len(self._trees)

    def _bootstrap_indices(self, n_samples: int) -> List[np.ndarray]:
        # Drawn up front so results do not depend on worker scheduling
        return [self.rng.integers(0, n_samples, size=n_samples) for _ in range(self.num_trees)]

    def _grow_tree(self, X: np.ndarray, y: np.ndarray, indices: np.ndarray) -> DecisionTree:
        tree = DecisionTree(self.max_depth, self.min_samples_split)
        tree.fit_arrays(X[indices], y[indices])
        return tree

    def train(self, features: Sequence[Sequence[float]], labels: Sequence[int]) -> None:
        X, y = as_training_arrays(features, labels)
        check_binary_labels(y)
        samples = self._bootstrap_indices(len(y))

        logger.info(f"Training random forest: {self.num_trees} trees on {len(y)} samples")
        if self.n_jobs > 1:
            with ThreadPoolExecutor(max_workers=self.n_jobs) as pool:
                trees = list(pool.map(lambda idx: self._grow_tree(X, y, idx), samples))
        else:
            trees = [self._grow_tree(X, y, idx) for idx in samples]

        self._trees = trees
        self.n_features = X.shape[1]
        self.is_trained = True

    def _require_trained(self) -> None:
        super()._require_trained()
        if not self._trees:
            raise NotTrainedError(self.model_name)

    def _votes(self, features: Sequence[float]) -> List[int]:
        self._require_trained()
        x = as_feature_row(features, self.n_features)
        return [tree.predict(x) for tree in self._trees]

    def predict(self, features: Sequence[float]) -> int:
        return majority_label(self._votes(features))

    def predict_proba(self, features: Sequence[float]) -> List[float]:
        """Fraction of trees voting for class 0 and class 1"""
        votes = self._votes(features)
        total = len(votes)
        return [votes.count(0) / total, votes.count(1) / total]

    def feature_importance(self) -> Dict[int, float]:
        """Share of all splits in the forest made on each feature index"""
        self._require_trained()
        totals: Dict[int, int] = {}
        for tree in self._trees:
            for feature_index, count in tree.feature_importance().items():
                totals[feature_index] = totals.get(feature_index, 0) + count
        splits = sum(totals.values())
        if not splits:
            return {}
        return {k: v / splits for k, v in sorted(totals.items())}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "format_version": FORMAT_VERSION,
            "model": self.model_name,
            "num_trees": self.num_trees,
            "max_depth": self.max_depth,
            "min_samples_split": self.min_samples_split,
            "n_features": self.n_features,
            "is_trained": self.is_trained,
            "trees": [tree.to_dict() for tree in self._trees],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RandomForestClassifier':
        check_format(data, cls.model_name)
        forest = cls(
            num_trees=data["num_trees"],
            max_depth=data["max_depth"],
            min_samples_split=data["min_samples_split"],
        )
        forest.n_features = data.get("n_features")
        forest._trees = [DecisionTree.from_dict(t) for t in data["trees"]]
        forest.is_trained = bool(data.get("is_trained")) and bool(forest._trees)
        return forest
