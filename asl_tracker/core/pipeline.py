"""
Core pipeline orchestrator for the gesture typing system.
Encapsulates the normalize -> classify -> stabilize cycle for each
landmark frame, plus the capture operations that feed the dataset.

Architecture:
    Landmark provider -> FeatureNormalizer -> KNNClassifier (SampleStore)
    -> Stabilizer -> TextBuffer

Frames are processed strictly one at a time, in arrival order.
"""

import time
import logging
from typing import Optional

from asl_tracker.core.events import EventBus, Events
from asl_tracker.core.types import CommitEvent, FrameResult

logger = logging.getLogger(__name__)


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class GesturePipeline:
    """Composable gesture typing pipeline.

    Owns no dataset state: the classifier reads the store's snapshot and
    captures go through SampleCapture into the store.
    """

    def __init__(
        self,
        store,
        normalizer,
        classifier,
        stabilizer,
        capture,
        text_output,
        analytics=None,
        gesture_logger=None,
        event_bus=None,
        clock=monotonic_ms,
    ):
        self._store = store
        self._normalizer = normalizer
        self._classifier = classifier
        self._stabilizer = stabilizer
        self._capture = capture
        self._text = text_output
        self._analytics = analytics
        self._gesture_logger = gesture_logger
        self._bus = event_bus or EventBus()
        self._clock = clock

        # State
        self._last_landmarks = None
        self._last_prediction = None
        self._hand_present = False
        self._frame_count = 0

    def process_frame(self, landmarks, now_ms: Optional[float] = None) -> FrameResult:
        """Run one landmark frame (None = no hand) through the pipeline."""
        now_ms = self._clock() if now_ms is None else now_ms
        result = FrameResult(now_ms)
        self._frame_count += 1

        hand_detected = landmarks is not None and len(landmarks) > 0
        result.hand_detected = hand_detected
        self._last_landmarks = landmarks if hand_detected else None

        if self._analytics is not None:
            self._analytics.record_frame(hand_detected)

        if hand_detected != self._hand_present:
            self._hand_present = hand_detected
            self._bus.emit(Events.HAND_DETECTED if hand_detected else Events.HAND_LOST)

        # --- Classification ---
        prediction = None
        if hand_detected and len(self._store) > 0:
            vector = self._normalizer.normalize(landmarks)
            prediction = self._classifier.classify(vector)
        result.prediction = prediction
        self._last_prediction = prediction

        if prediction is not None:
            if self._analytics is not None:
                self._analytics.record_prediction(prediction.label, prediction.confidence)
            self._bus.emit(Events.PREDICTION, label=prediction.label,
                           confidence=prediction.confidence)

        # --- Stabilization ---
        commit = self._stabilizer.observe(prediction, now_ms)
        result.majority_label = self._stabilizer.majority_label
        result.stability = self._stabilizer.stability
        if commit is not None:
            result.commit = commit
            self._on_commit(commit)

        # --- Burst capture ---
        result.captured_ids = self._capture.poll(self._last_landmarks, now_ms)
        if result.captured_ids and self._analytics is not None:
            self._analytics.record_capture(len(result.captured_ids))

        return result

    def _on_commit(self, commit: CommitEvent):
        if self._analytics is not None:
            self._analytics.record_commit(commit.label)
        if self._gesture_logger is not None:
            self._gesture_logger.log_commit(commit, text_length=len(self._text))
        self._bus.emit(Events.TEXT_COMMITTED, label=commit.label,
                       edit=commit.edit, text=self._text.text, manual=commit.manual)

    def commit_current(self, now_ms: Optional[float] = None) -> Optional[CommitEvent]:
        """Commit the latest raw prediction on demand.

        Applies the text edit without touching the stabilizer's commit
        timing. Returns None when there is no current prediction.
        """
        if self._last_prediction is None:
            return None
        now_ms = self._clock() if now_ms is None else now_ms
        label = self._last_prediction.label
        commit = CommitEvent(
            label=label,
            edit=self._stabilizer.edit_for(label),
            timestamp_ms=now_ms,
            stability=self._stabilizer.stability,
            manual=True,
        )
        self._text.apply(commit.edit)
        self._on_commit(commit)
        return commit

    def capture_sample(self, label: str) -> int:
        """Store the current frame's landmarks under ``label``."""
        sample_id = self._capture.capture(label, self._last_landmarks)
        if self._analytics is not None:
            self._analytics.record_capture()
        return sample_id

    def start_burst(self, label: str, now_ms: Optional[float] = None):
        """Start a burst capture driven by subsequent frames."""
        now_ms = self._clock() if now_ms is None else now_ms
        return self._capture.start_burst(label, self._last_landmarks, now_ms)

    def clear_text(self):
        self._text.clear()

    def reset_dataset(self):
        """Delete every stored sample and resync the mirror."""
        self._store.clear().result()
        self._store.reload()
        logger.info("All samples deleted")

    def build_state(self) -> dict:
        """Build a state dict for UI collaborators."""
        prediction = self._last_prediction
        return {
            "hand_detected": self._hand_present,
            "prediction": prediction.label if prediction else None,
            "confidence": prediction.confidence if prediction else None,
            "majority_label": self._stabilizer.majority_label,
            "stability": self._stabilizer.stability,
            "auto_commit": self._stabilizer.auto_commit,
            "text": self._text.text,
            "dataset_size": len(self._store),
            "dataset_stats": self._store.stats_by_label(),
            "active_bursts": len(self._capture.active_bursts),
            "frame_count": self._frame_count,
        }

    @property
    def text(self) -> str:
        return self._text.text

    @property
    def last_prediction(self):
        return self._last_prediction

    @property
    def frame_count(self) -> int:
        return self._frame_count
