"""
Shared domain types for the ASL Live Gesture Tracker.

Centralizes enums and data classes used across modules to eliminate
circular imports and ensure type consistency.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import numpy as np


# =============================================================================
# Landmark Geometry
# =============================================================================

NUM_LANDMARKS = 21
FEATURE_DIM = NUM_LANDMARKS * 3


# =============================================================================
# Text Edits
# =============================================================================

class TextEditKind(Enum):
    """The three semantic edits a committed label can trigger."""
    APPEND = "append"
    SPACE = "space"
    DELETE = "delete"


@dataclass(frozen=True)
class TextEdit:
    kind: TextEditKind
    text: str = ""

    @classmethod
    def for_label(cls, label: str, space_label: str = "Space",
                  delete_label: str = "Delete") -> "TextEdit":
        """Map a gesture label to its text edit."""
        if label == space_label:
            return cls(TextEditKind.SPACE, " ")
        if label == delete_label:
            return cls(TextEditKind.DELETE)
        return cls(TextEditKind.APPEND, label)


# =============================================================================
# Data Containers
# =============================================================================

@dataclass(frozen=True)
class Sample:
    """A labelled training sample owned by the SampleStore.

    ``vector`` is a read-only float32 array; ``meta`` holds the capture
    timestamp and raw landmarks when known.
    """
    id: int
    label: str
    vector: np.ndarray = field(repr=False)
    meta: Optional[Dict[str, Any]] = field(default=None, repr=False)

    def to_record(self) -> dict:
        """Convert to the JSON record layout used by the durable store."""
        return {
            "id": self.id,
            "label": self.label,
            "vector": [float(v) for v in self.vector],
            "meta": self.meta,
        }


@dataclass(frozen=True)
class Neighbor:
    sample_id: int
    label: str
    distance: float


@dataclass(frozen=True)
class PredictionResult:
    """Container for nearest-neighbor classification output."""
    label: str
    confidence: float
    neighbors: Tuple[Neighbor, ...] = ()

    def __repr__(self):
        return f"PredictionResult({self.label}, conf={self.confidence:.2f}, k={len(self.neighbors)})"


@dataclass(frozen=True)
class CommitEvent:
    """A confirmed, irreversible text edit emitted by the stabilizer."""
    label: str
    edit: TextEdit
    timestamp_ms: float
    stability: float = 1.0
    manual: bool = False


class FrameResult:
    """Result of a single pipeline iteration."""

    __slots__ = (
        "hand_detected", "prediction", "majority_label", "stability",
        "commit", "captured_ids", "timestamp_ms",
    )

    def __init__(self, timestamp_ms: float):
        self.hand_detected = False
        self.prediction: Optional[PredictionResult] = None
        self.majority_label: Optional[str] = None
        self.stability = 0.0
        self.commit: Optional[CommitEvent] = None
        self.captured_ids: List[int] = []
        self.timestamp_ms = timestamp_ms

    def __repr__(self):
        label = self.prediction.label if self.prediction else None
        return f"FrameResult(t={self.timestamp_ms:.0f}, label={label}, commit={self.commit is not None})"
