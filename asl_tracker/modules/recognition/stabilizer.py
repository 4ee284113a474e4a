"""
Multi-frame stabilization and commit debouncing for auto-typing.

Turns the jittery per-frame prediction stream into discrete text commits:
    - Majority vote over a FIFO window of recent labels
    - Losing the hand clears the window immediately (no decay)
    - A stable label commits once its gap has elapsed since the last
      commit; repeating the same label needs twice the gap, so a held
      pose does not type itself over and over while an intentional
      double letter is still possible after a pause.
"""

import logging
from collections import deque
from typing import Optional

from asl_tracker.core.types import CommitEvent, PredictionResult, TextEdit
from asl_tracker.modules.recognition.voting import majority_vote

logger = logging.getLogger(__name__)


class Stabilizer:
    """Explicit window + commit-state machine.

    ``observe(prediction, now_ms)`` is the only transition. The
    stabilizer is idle while the window is empty and tracking otherwise.
    """

    def __init__(self, config: Optional[dict] = None, text_output=None):
        config = config or {}
        self._window_size = config.get("window_size", 8)
        self._stability_threshold = config.get("stability_threshold", 0.7)
        self._base_gap_ms = config.get("base_gap_ms", 900)
        self._delete_gap_ms = config.get("delete_gap_ms", 450)
        self._repeat_gap_factor = config.get("repeat_gap_factor", 2)
        self._space_label = config.get("space_label", "Space")
        self._delete_label = config.get("delete_label", "Delete")
        self.auto_commit = bool(config.get("auto_commit", True))

        if self._window_size < 1:
            raise ValueError("window_size must be >= 1")

        self._text_output = text_output

        # Window of recent predicted labels
        self._window = deque(maxlen=self._window_size)
        self._majority_label = None
        self._stability = 0.0

        # Commit state
        self._last_committed_label = None
        self._last_commit_ms = 0.0

    def observe(self, prediction: Optional[PredictionResult], now_ms: float) -> Optional[CommitEvent]:
        """Feed one frame's prediction (None = no hand / no prediction).

        Returns:
            CommitEvent if this observation committed a symbol, else None
        """
        if prediction is None:
            if self._window:
                logger.debug("Prediction lost, clearing window of %d", len(self._window))
            self._window.clear()
            self._majority_label = None
            self._stability = 0.0
            return None

        self._window.append(prediction.label)
        self._majority_label, count = majority_vote(self._window)
        self._stability = count / len(self._window)

        if not self.auto_commit or self._majority_label is None:
            return None
        if self._stability < self._stability_threshold:
            return None
        if not self._commit_allowed(self._majority_label, now_ms):
            return None

        return self._commit(self._majority_label, now_ms)

    def gap_for(self, label: str) -> float:
        """Minimum gap in ms before ``label`` may commit."""
        return self._delete_gap_ms if label == self._delete_label else self._base_gap_ms

    def _commit_allowed(self, label: str, now_ms: float) -> bool:
        gap = self.gap_for(label)
        elapsed = now_ms - self._last_commit_ms
        if elapsed <= gap:
            return False
        return label != self._last_committed_label or elapsed > gap * self._repeat_gap_factor

    def _commit(self, label: str, now_ms: float) -> CommitEvent:
        event = CommitEvent(
            label=label,
            edit=self.edit_for(label),
            timestamp_ms=now_ms,
            stability=self._stability,
        )
        if self._text_output is not None:
            self._text_output.apply(event.edit)
        self._last_committed_label = label
        self._last_commit_ms = now_ms
        logger.debug("Committed '%s' at %.0fms (stability %.2f)", label, now_ms, self._stability)
        return event

    def edit_for(self, label: str) -> TextEdit:
        return TextEdit.for_label(label, self._space_label, self._delete_label)

    def reset(self):
        """Clear window and commit state."""
        self._window.clear()
        self._majority_label = None
        self._stability = 0.0
        self._last_committed_label = None
        self._last_commit_ms = 0.0

    @property
    def window(self) -> tuple:
        return tuple(self._window)

    @property
    def majority_label(self) -> Optional[str]:
        return self._majority_label

    @property
    def stability(self) -> float:
        return self._stability

    @property
    def last_committed_label(self) -> Optional[str]:
        return self._last_committed_label

    @property
    def last_commit_ms(self) -> float:
        return self._last_commit_ms

    @property
    def is_tracking(self) -> bool:
        return bool(self._window)
