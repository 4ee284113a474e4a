"""
Training-sample capture: single shots and timed bursts.

Bursts are cooperative jobs polled once per processed frame, so capture
never runs concurrently with classification. A burst ticks every
``burst_interval_ms``; a tick with a hand in view stores the current
landmarks, a tick without one is skipped, and the job ends once
``burst_count`` samples are stored. Overlapping bursts are allowed and
interleave; cancel_bursts() drops any still waiting for a hand.
"""

import time
import logging
from typing import List, Optional

from asl_tracker.core.errors import NoHandError
from asl_tracker.core.events import EventBus, Events
from asl_tracker.modules.recognition.feature_normalizer import FeatureNormalizer, landmarks_to_array

logger = logging.getLogger(__name__)


def _has_hand(landmarks) -> bool:
    return landmarks is not None and len(landmarks) > 0


class BurstJob:
    """One running burst: label, samples still to store and next due time."""

    __slots__ = ("label", "remaining", "interval_ms", "next_due_ms", "captured_ids")

    def __init__(self, label: str, count: int, interval_ms: float, start_ms: float):
        self.label = label
        self.remaining = count
        self.interval_ms = interval_ms
        self.next_due_ms = start_ms + interval_ms
        self.captured_ids: List[int] = []

    @property
    def finished(self) -> bool:
        return self.remaining <= 0

    def __repr__(self):
        return f"BurstJob({self.label}, remaining={self.remaining}, captured={len(self.captured_ids)})"


class SampleCapture:
    """Stores labelled landmark snapshots in the sample store."""

    def __init__(self, store, normalizer: Optional[FeatureNormalizer] = None,
                 config: Optional[dict] = None, event_bus: Optional[EventBus] = None,
                 gesture_logger=None):
        config = config or {}
        self._store = store
        self._normalizer = normalizer or FeatureNormalizer()
        self._burst_count = config.get("burst_count", 10)
        self._burst_interval_ms = config.get("burst_interval_ms", 100)
        self._bus = event_bus or EventBus()
        self._gesture_logger = gesture_logger
        self._bursts: List[BurstJob] = []

    def capture(self, label: str, landmarks, burst: bool = False) -> int:
        """Normalize ``landmarks`` and add them under ``label``.

        Raises:
            NoHandError: no landmarks available
        """
        if not _has_hand(landmarks):
            raise NoHandError("No hand detected.")
        points = landmarks_to_array(landmarks)
        vector = self._normalizer.normalize(points)
        meta = {
            "timestamp": int(time.time() * 1000),
            "landmarks": [{"x": float(x), "y": float(y), "z": float(z)} for x, y, z in points],
        }
        sample_id = self._store.add(label, vector, meta)

        if self._gesture_logger is not None:
            self._gesture_logger.log_capture(label, sample_id, burst=burst)
        self._bus.emit(Events.SAMPLE_CAPTURED, label=label, sample_id=sample_id, burst=burst)
        return sample_id

    def start_burst(self, label: str, landmarks, now_ms: float,
                    count: Optional[int] = None, interval_ms: Optional[float] = None) -> BurstJob:
        """Schedule a burst; requires a hand in view when started."""
        if not _has_hand(landmarks):
            raise NoHandError("No hand detected.")
        if not isinstance(label, str) or not label:
            raise ValueError("Sample label must be a non-empty string")
        job = BurstJob(
            label,
            self._burst_count if count is None else count,
            self._burst_interval_ms if interval_ms is None else interval_ms,
            now_ms,
        )
        self._bursts.append(job)
        logger.info("Burst started: %s (%d samples every %.0fms)", label, job.remaining, job.interval_ms)
        self._bus.emit(Events.BURST_STARTED, label=label)
        return job

    def poll(self, landmarks, now_ms: float) -> List[int]:
        """Run every due burst tick. Returns ids captured by this poll."""
        captured = []
        for job in list(self._bursts):
            if now_ms < job.next_due_ms:
                continue
            job.next_due_ms += job.interval_ms
            if not _has_hand(landmarks):
                continue
            sample_id = self.capture(job.label, landmarks, burst=True)
            job.captured_ids.append(sample_id)
            job.remaining -= 1
            captured.append(sample_id)
            if job.finished:
                self._bursts.remove(job)
                logger.info("Burst finished: %s (%d captured)", job.label, len(job.captured_ids))
                self._bus.emit(Events.BURST_FINISHED, label=job.label,
                               sample_ids=list(job.captured_ids))
        return captured

    def cancel_bursts(self):
        self._bursts.clear()

    @property
    def active_bursts(self) -> List[BurstJob]:
        return list(self._bursts)
