"""
Brute-force k-nearest-neighbor gesture classifier.

Compares a feature vector against every sample in the dataset snapshot
(n stays in the hundreds, so no index structure), takes the k closest
by Euclidean distance and majority-votes their labels.
"""

import logging
from typing import Optional

import numpy as np

from asl_tracker.core.types import Neighbor, PredictionResult
from asl_tracker.modules.recognition.voting import majority_vote
from asl_tracker.modules.utils.logger import log_timing

logger = logging.getLogger(__name__)

DEFAULT_K = 7


class KNNClassifier:
    """Classifies feature vectors against a read-only dataset view.

    The dataset is any object exposing ``snapshot()`` that returns a
    DatasetSnapshot (see modules.storage.sample_store). The classifier
    never mutates it.
    """

    def __init__(self, dataset, k: int = DEFAULT_K):
        if k < 1:
            raise ValueError("k must be >= 1, got %r" % (k,))
        self._dataset = dataset
        self._k = int(k)

    @property
    def k(self) -> int:
        return self._k

    @log_timing
    def classify(self, vector, k: Optional[int] = None) -> Optional[PredictionResult]:
        """Predict the label of a feature vector.

        Args:
            vector: (D,) feature vector from FeatureNormalizer
            k: neighbors to consult (defaults to the configured k)

        Returns:
            PredictionResult, or None when the dataset is empty
        """
        k = self._k if k is None else k
        if k < 1:
            raise ValueError("k must be >= 1, got %r" % (k,))

        snapshot = self._dataset.snapshot()
        if len(snapshot) == 0:
            return None

        query = np.asarray(vector, dtype=np.float64).reshape(-1)
        if query.shape[0] != snapshot.dim:
            raise ValueError(
                "Feature vector has %d dims, dataset has %d" % (query.shape[0], snapshot.dim)
            )

        distances = np.sqrt(np.sum((snapshot.matrix - query) ** 2, axis=1))
        # Stable sort: equal distances keep dataset order
        order = np.argsort(distances, kind="stable")[:min(k, len(snapshot))]

        neighbors = tuple(
            Neighbor(
                sample_id=snapshot.ids[i],
                label=snapshot.labels[i],
                distance=float(distances[i]),
            )
            for i in order
        )
        best, best_count = majority_vote(n.label for n in neighbors)

        return PredictionResult(
            label=best,
            confidence=best_count / len(neighbors),
            neighbors=neighbors,
        )
