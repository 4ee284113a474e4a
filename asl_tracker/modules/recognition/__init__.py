"""Gesture recognition module."""
from .feature_normalizer import FeatureNormalizer, landmarks_to_vector
from .knn_classifier import KNNClassifier
from .stabilizer import Stabilizer
from .voting import majority_vote

__all__ = [
    "FeatureNormalizer",
    "landmarks_to_vector",
    "KNNClassifier",
    "Stabilizer",
    "majority_vote",
]
