"""
Feature normalization: hand landmarks → position/scale invariant vector.

Layout (3 × L dimensions, 63 for a 21-point hand):
    [x0, y0, z0, x1, y1, z1, ...] each coordinate centred on the
    bounding-box midpoint and divided by the largest box extent.

No rotation normalization is applied; hand orientation is part of the
feature.
"""

import numpy as np

DEFAULT_EPSILON = 1e-5


def _point_xyz(point):
    """Read (x, y, z) from a mapping, an attribute object, or a sequence."""
    if isinstance(point, dict):
        x, y, z = point["x"], point["y"], point.get("z")
    elif hasattr(point, "x") and hasattr(point, "y"):
        x, y, z = point.x, point.y, getattr(point, "z", None)
    else:
        coords = list(point)
        if len(coords) < 2:
            raise ValueError("Landmark needs at least x and y, got %r" % (point,))
        x, y = coords[0], coords[1]
        z = coords[2] if len(coords) > 2 else None
    return float(x), float(y), float(z) if z is not None else 0.0


def landmarks_to_array(landmarks):
    """Convert a landmark sequence into an (L, 3) float64 array.

    Accepts dicts with x/y[/z], objects exposing .x/.y/.z, (x, y[, z])
    sequences, or an (L, 2) / (L, 3) array. Missing z defaults to 0.
    """
    if isinstance(landmarks, np.ndarray):
        arr = np.asarray(landmarks, dtype=np.float64)
        if arr.ndim != 2 or arr.shape[1] not in (2, 3):
            raise ValueError("Expected (L, 2) or (L, 3) landmarks, got %s" % str(arr.shape))
        if arr.shape[1] == 2:
            arr = np.hstack([arr, np.zeros((arr.shape[0], 1))])
        points = np.nan_to_num(arr, nan=0.0)
    else:
        points = np.array([_point_xyz(p) for p in landmarks], dtype=np.float64).reshape(-1, 3)

    if points.shape[0] == 0:
        raise ValueError("Cannot normalize an empty landmark set")
    return points


class FeatureNormalizer:
    """Converts raw hand landmarks to a fixed-size feature vector.

    Translation invariant (centred on the bounding-box midpoint) and
    uniform-scale invariant (divided by the largest box extent, floored
    at ``epsilon`` so flat or single-point inputs stay finite).
    """

    def __init__(self, epsilon: float = DEFAULT_EPSILON):
        if epsilon <= 0:
            raise ValueError("epsilon must be positive")
        self._epsilon = float(epsilon)

    @property
    def epsilon(self) -> float:
        return self._epsilon

    def normalize(self, landmarks) -> np.ndarray:
        """Convert L landmarks → read-only (3L,) float32 feature vector."""
        points = landmarks_to_array(landmarks)

        mins = points.min(axis=0)
        maxs = points.max(axis=0)
        center = (mins + maxs) / 2.0
        scale = max(float(np.max(maxs - mins)), self._epsilon)

        vector = ((points - center) / scale).astype(np.float32).reshape(-1)
        vector.setflags(write=False)
        return vector

    def normalize_batch(self, landmark_sets) -> np.ndarray:
        """Normalize several landmark sets of equal length.

        Returns:
            np.ndarray of shape (N, 3L), dtype float32
        """
        vectors = [self.normalize(lm) for lm in landmark_sets]
        if not vectors:
            return np.zeros((0, 0), dtype=np.float32)
        return np.vstack(vectors)


_default_normalizer = FeatureNormalizer()


def landmarks_to_vector(landmarks) -> np.ndarray:
    """Module-level shortcut using the default epsilon."""
    return _default_normalizer.normalize(landmarks)
