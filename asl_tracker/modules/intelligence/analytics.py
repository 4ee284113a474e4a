"""
Dataset statistics and session analytics.

count_by_label() is the read-only label → count view consumed by the
sample store and UI collaborators. Analytics tracks what happened during
a live session: frames, hand presence, predictions and commits.
"""

import time
import logging
from datetime import datetime
from collections import Counter, defaultdict
from typing import Dict, Iterable

logger = logging.getLogger(__name__)


def count_by_label(samples: Iterable) -> Dict[str, int]:
    """Label → count for any iterable of objects with a ``label``, sorted by label."""
    counts = Counter(s.label for s in samples)
    return {label: counts[label] for label in sorted(counts)}


def format_samples_info(stats: Dict[str, int]) -> str:
    """One-line dataset summary, e.g. 'Samples: A: 3 | B: 2'."""
    if not stats:
        return "No samples yet."
    return "Samples: " + " | ".join(f"{label}: {count}" for label, count in sorted(stats.items()))


def format_sample_row(sample) -> str:
    """'#12  2026-01-31 12:00:00  21 points' for one stored sample."""
    meta = sample.meta or {}
    timestamp = meta.get("timestamp")
    when = (datetime.fromtimestamp(timestamp / 1000.0).strftime("%Y-%m-%d %H:%M:%S")
            if isinstance(timestamp, (int, float)) and not isinstance(timestamp, bool) else "No time")
    landmarks = meta.get("landmarks")
    points = len(landmarks) if isinstance(landmarks, list) and landmarks else "?"
    return f"#{sample.id}  {when}  {points} points"


class Analytics:
    """Collects and analyzes per-session recognition statistics."""

    def __init__(self):
        self._session_start = time.time()
        self._prediction_counts = Counter()
        self._commit_counts = Counter()
        self._confidence_history = defaultdict(list)
        self._total_frames = 0
        self._detection_frames = 0
        self._captured = 0

    def record_frame(self, hand_detected: bool):
        """Record a processed frame."""
        self._total_frames += 1
        if hand_detected:
            self._detection_frames += 1

    def record_prediction(self, label: str, confidence: float):
        self._prediction_counts[label] += 1
        self._confidence_history[label].append(confidence)

    def record_commit(self, label: str):
        self._commit_counts[label] += 1

    def record_capture(self, count: int = 1):
        self._captured += count

    @property
    def session_duration(self) -> float:
        return time.time() - self._session_start

    @property
    def detection_rate(self) -> float:
        """Percentage of frames with a hand in view."""
        if self._total_frames == 0:
            return 0.0
        return self._detection_frames / self._total_frames * 100

    @property
    def total_commits(self) -> int:
        return sum(self._commit_counts.values())

    def get_summary(self) -> dict:
        """Generate the session analytics summary."""
        avg_confidences = {}
        for label, confs in self._confidence_history.items():
            if confs:
                avg_confidences[label] = round(sum(confs) / len(confs), 3)

        return {
            "session_duration_s": round(self.session_duration, 1),
            "total_frames": self._total_frames,
            "detection_frames": self._detection_frames,
            "detection_rate_pct": round(self.detection_rate, 1),
            "prediction_counts": dict(self._prediction_counts),
            "commit_counts": dict(self._commit_counts),
            "avg_confidences": avg_confidences,
            "samples_captured": self._captured,
            "most_predicted": self._prediction_counts.most_common(1)[0][0] if self._prediction_counts else None,
        }

    def print_summary(self):
        """Log a formatted analytics summary."""
        summary = self.get_summary()
        logger.info("=" * 60)
        logger.info("SESSION ANALYTICS")
        logger.info("=" * 60)
        logger.info("Duration:        %.1fs", summary["session_duration_s"])
        logger.info("Total Frames:    %d", summary["total_frames"])
        logger.info("Detection Rate:  %.1f%%", summary["detection_rate_pct"])
        logger.info("Captured:        %d", summary["samples_captured"])
        logger.info("-" * 40)
        logger.info("Predictions:")
        for label, count in sorted(summary["prediction_counts"].items(), key=lambda x: -x[1]):
            conf = summary["avg_confidences"].get(label, 0)
            logger.info("  %-18s %4d  (avg conf: %.2f)", label, count, conf)
        logger.info("-" * 40)
        logger.info("Commits:")
        for label, count in sorted(summary["commit_counts"].items(), key=lambda x: -x[1]):
            logger.info("  %-18s %4d", label, count)
        logger.info("=" * 60)
