"""
Lightweight event bus for decoupled inter-module communication.

The pipeline and the sample store publish what happened (predictions,
commits, captures, persistence failures); UI and logging collaborators
subscribe without the core knowing about them.

Usage:
    bus = EventBus()
    bus.subscribe(Events.TEXT_COMMITTED, on_commit)
    bus.emit(Events.TEXT_COMMITTED, label="A", text="HA")
"""

import logging
import threading
from collections import defaultdict
from typing import Callable

logger = logging.getLogger(__name__)


class EventBus:
    """Thread-safe publish/subscribe event bus.

    Store write failures are reported from the writer thread, so
    listener registration and dispatch are guarded by a lock.
    """

    _instance = None

    def __new__(cls):
        """Singleton pattern: one bus per application."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self._listeners = defaultdict(list)  # event_name -> [(priority, callback)]
        self._lock = threading.Lock()
        self._initialized = True

    def subscribe(self, event_name: str, callback: Callable, priority: int = 0):
        """Register a listener for an event.

        Args:
            event_name: Event to listen for
            callback: Function to call. Receives **kwargs from emit().
            priority: Higher priority callbacks run first (default 0)
        """
        with self._lock:
            self._listeners[event_name].append((priority, callback))
            self._listeners[event_name].sort(key=lambda x: -x[0])
        logger.debug("Subscribed to '%s': %s (priority=%d)",
                     event_name, getattr(callback, "__name__", callback), priority)

    def emit(self, event_name: str, **kwargs):
        """Emit an event to all registered listeners."""
        with self._lock:
            listeners = list(self._listeners.get(event_name, []))

        for priority, callback in listeners:
            try:
                callback(**kwargs)
            except Exception as e:
                logger.error("Event handler error [%s -> %s]: %s",
                             event_name, getattr(callback, "__name__", callback), e)

    def reset(self):
        """Reset singleton state (for testing)."""
        with self._lock:
            self._listeners.clear()


# =============================================================================
# Standard Event Names (constants to avoid typos)
# =============================================================================

class Events:
    """Standard event names used throughout the system."""

    # Frame events
    HAND_DETECTED = "hand_detected"
    HAND_LOST = "hand_lost"
    PREDICTION = "prediction"
    TEXT_COMMITTED = "text_committed"

    # Dataset events
    SAMPLE_CAPTURED = "sample_captured"
    BURST_STARTED = "burst_started"
    BURST_FINISHED = "burst_finished"
    DATASET_RELOADED = "dataset_reloaded"
    STORE_WRITE_FAILED = "store_write_failed"
    IMPORT_COMPLETED = "import_completed"
    IMPORT_FAILED = "import_failed"
