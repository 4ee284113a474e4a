"""
Tests for Feature Normalization
================================
"""

import pytest
import numpy as np
import sys
from collections import namedtuple
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from asl_tracker.core.types import FEATURE_DIM
from asl_tracker.modules.recognition.feature_normalizer import (
    FeatureNormalizer, landmarks_to_array, landmarks_to_vector,
)
from hand_fixtures import create_mock_hand, OPEN_PALM, FIST


Point = namedtuple("Point", ["x", "y", "z"])


class TestFeatureNormalizer:
    """Test suite for FeatureNormalizer."""

    @pytest.fixture
    def normalizer(self):
        return FeatureNormalizer()

    @pytest.fixture
    def hand(self):
        return create_mock_hand(OPEN_PALM)

    def test_output_shape_and_dtype(self, normalizer, hand):
        """A 21-point hand yields a 63-dim float32 vector."""
        vec = normalizer.normalize(hand)

        assert vec.shape == (FEATURE_DIM,)
        assert vec.dtype == np.float32

    def test_vector_is_read_only(self, normalizer, hand):
        """Feature vectors are immutable once created."""
        vec = normalizer.normalize(hand)

        with pytest.raises(ValueError):
            vec[0] = 1.0

    def test_translation_invariance(self, normalizer, hand):
        """Shifting every point by a constant leaves the output unchanged."""
        shifted = [
            {"x": p["x"] + 0.21, "y": p["y"] - 0.13, "z": p["z"] + 0.05}
            for p in hand
        ]

        np.testing.assert_allclose(
            normalizer.normalize(hand), normalizer.normalize(shifted), atol=1e-6
        )

    def test_scale_invariance(self, normalizer, hand):
        """Uniform scaling about the box center leaves the output unchanged."""
        pts = landmarks_to_array(hand)
        center = (pts.min(axis=0) + pts.max(axis=0)) / 2.0
        scaled = center + (pts - center) * 2.5

        np.testing.assert_allclose(
            normalizer.normalize(hand), normalizer.normalize(scaled), atol=1e-6
        )

    def test_mock_hand_size_does_not_matter(self, normalizer):
        """A larger hand elsewhere in frame normalizes the same."""
        small = create_mock_hand(FIST, base_x=0.3, base_y=0.5, scale=0.5)
        large = create_mock_hand(FIST, base_x=0.6, base_y=0.7, scale=1.5)

        np.testing.assert_allclose(
            normalizer.normalize(small), normalizer.normalize(large), atol=1e-5
        )

    def test_determinism(self, normalizer, hand):
        """Identical input gives bit-identical output."""
        a = normalizer.normalize(hand)
        b = normalizer.normalize(hand)

        assert a.tobytes() == b.tobytes()

    def test_output_bounded(self, normalizer, hand):
        """Centered and divided by the largest extent: every value in [-0.5, 0.5]."""
        vec = normalizer.normalize(hand)

        assert np.all(np.abs(vec) <= 0.5 + 1e-6)
        assert np.isclose(np.max(np.abs(vec)), 0.5)

    def test_empty_input_raises(self, normalizer):
        """Zero landmarks is a precondition violation."""
        with pytest.raises(ValueError):
            normalizer.normalize([])

    def test_single_point_is_finite(self, normalizer):
        """A degenerate input uses the epsilon floor instead of dividing by zero."""
        vec = normalizer.normalize([{"x": 0.4, "y": 0.4, "z": 0.0}])

        assert vec.shape == (3,)
        assert np.all(np.isfinite(vec))
        assert np.all(vec == 0.0)

    def test_missing_z_defaults_to_zero(self, normalizer):
        """Points without z behave as z = 0."""
        with_z = [{"x": 0.0, "y": 0.0, "z": 0.0}, {"x": 1.0, "y": 0.5, "z": 0.0}]
        without_z = [{"x": 0.0, "y": 0.0}, {"x": 1.0, "y": 0.5, "z": None}]

        np.testing.assert_array_equal(
            normalizer.normalize(with_z), normalizer.normalize(without_z)
        )

    def test_known_values(self, normalizer):
        """Two points: centered on the midpoint, scaled by the widest axis."""
        vec = normalizer.normalize([{"x": 0.0, "y": 0.0, "z": 0.0},
                                    {"x": 2.0, "y": 1.0, "z": 0.0}])

        np.testing.assert_allclose(vec, [-0.5, -0.25, 0.0, 0.5, 0.25, 0.0])

    def test_accepts_point_shapes(self, normalizer, hand):
        """Dicts, attribute objects, tuples and arrays are interchangeable."""
        as_objects = [Point(p["x"], p["y"], p["z"]) for p in hand]
        as_tuples = [(p["x"], p["y"], p["z"]) for p in hand]
        as_array = np.array(as_tuples)

        expected = normalizer.normalize(hand)
        for variant in (as_objects, as_tuples, as_array):
            np.testing.assert_array_equal(normalizer.normalize(variant), expected)

    def test_two_column_array(self, normalizer):
        """An (L, 2) array gets a zero z column."""
        vec = normalizer.normalize(np.array([[0.0, 0.0], [1.0, 1.0]]))

        assert vec.shape == (6,)
        assert vec[2] == 0.0 and vec[5] == 0.0

    def test_batch(self, normalizer):
        """Batch normalization stacks individual results."""
        hands = [create_mock_hand(OPEN_PALM), create_mock_hand(FIST)]
        batch = normalizer.normalize_batch(hands)

        assert batch.shape == (2, FEATURE_DIM)
        np.testing.assert_array_equal(batch[1], normalizer.normalize(hands[1]))

    def test_invalid_epsilon(self):
        with pytest.raises(ValueError):
            FeatureNormalizer(epsilon=0)

    def test_module_shortcut(self, normalizer, hand):
        np.testing.assert_array_equal(landmarks_to_vector(hand), normalizer.normalize(hand))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
