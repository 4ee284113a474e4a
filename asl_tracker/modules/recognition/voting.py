"""
Majority vote shared by the classifier and the stabilizer.

Ties go to the label that first reached the winning count while scanning
in order: the leader only changes when a count strictly exceeds the
current maximum.
"""

from collections import OrderedDict
from typing import Iterable, Optional, Tuple


def majority_vote(labels: Iterable[str]) -> Tuple[Optional[str], int]:
    """Return (best_label, best_count); (None, 0) for an empty scan."""
    counts = OrderedDict()
    best, best_count = None, 0
    for label in labels:
        counts[label] = counts.get(label, 0) + 1
        if counts[label] > best_count:
            best_count = counts[label]
            best = label
    return best, best_count
