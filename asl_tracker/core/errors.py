"""
Runtime error types.

Precondition violations (empty landmarks, k < 1, empty labels) raise
plain ValueError. The classes here cover failures a caller is expected to
report to the user, kept distinct from the "no prediction" absence state.
"""

from typing import List, NamedTuple, Optional


class WriteFailure(NamedTuple):
    """A durable write that did not complete."""
    sample_id: Optional[int]
    label: Optional[str]
    error: BaseException


class TrackerError(Exception):
    """Base class for tracker runtime failures."""


class PersistenceError(TrackerError):
    """A durable store operation failed.

    The in-memory mirror may have diverged; call SampleStore.reload()
    to reconcile.
    """

    def __init__(self, message: str, failures: Optional[List[WriteFailure]] = None):
        super().__init__(message)
        self.failures = list(failures or [])


class ImportFormatError(TrackerError, ValueError):
    """An import payload does not match the dataset document schema."""


class NoHandError(TrackerError):
    """A capture was requested while no hand is in frame."""
