"""
Sample store: in-memory dataset mirror over the durable record store.

The store is the only owner of the dataset. The classifier reads it
through immutable snapshots; nothing else mutates it.

Write model:
    - add() reserves an id, updates the mirror synchronously and queues
      the durable insert without waiting, so a just-captured sample is
      usable by the very next classification.
    - delete/clear/replace only touch the durable side; call reload()
      once their future resolves to bring the mirror back in line.
    - A failed optimistic insert is never rolled back silently. It is
      logged, recorded as a WriteFailure, published as
      Events.STORE_WRITE_FAILED and raised by flush(); reload() drops
      the unpersisted sample from the mirror.
"""

import logging
import threading
from concurrent.futures import Future, wait
from typing import Dict, Iterable, List, Optional

import numpy as np

from asl_tracker.core.errors import PersistenceError, WriteFailure
from asl_tracker.core.events import EventBus, Events
from asl_tracker.core.types import Sample
from asl_tracker.modules.intelligence.analytics import count_by_label
from asl_tracker.modules.storage.record_store import RecordStore

logger = logging.getLogger(__name__)


def _freeze_vector(vector) -> np.ndarray:
    arr = np.array(vector, dtype=np.float32).reshape(-1)
    arr.setflags(write=False)
    return arr


class DatasetSnapshot:
    """Immutable view of the dataset at one version.

    Holds the samples plus a float64 (n, D) matrix for vectorised
    distance computation.
    """

    __slots__ = ("version", "samples", "ids", "labels", "matrix", "dim")

    def __init__(self, version: int, samples: tuple):
        self.version = version
        self.samples = samples
        self.ids = tuple(s.id for s in samples)
        self.labels = tuple(s.label for s in samples)
        if samples:
            self.matrix = np.vstack([s.vector for s in samples]).astype(np.float64)
            self.dim = self.matrix.shape[1]
        else:
            self.matrix = np.zeros((0, 0), dtype=np.float64)
            self.dim = 0
        self.matrix.setflags(write=False)

    def __len__(self):
        return len(self.samples)

    def __iter__(self):
        return iter(self.samples)


class SampleStore:
    """Durable CRUD over samples with a synchronously updated mirror."""

    def __init__(self, record_store: Optional[RecordStore] = None, event_bus: Optional[EventBus] = None,
                 db_path: str = ":memory:"):
        self._records = record_store or RecordStore(db_path)
        self._bus = event_bus or EventBus()

        self._samples: List[Sample] = []
        self._version = 0
        self._snapshot: Optional[DatasetSnapshot] = None

        # In-flight durable writes and unreported failures, keyed by sample id
        self._lock = threading.Lock()
        self._pending: Dict[Future, Sample] = {}
        self._failures: Dict[int, WriteFailure] = {}
        self._reported: set = set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self):
        """Open the durable store and load the mirror from it."""
        self._records.open()
        self.reload()
        return self

    def close(self):
        """Wait for in-flight writes, then close the durable store."""
        try:
            self.flush()
        except PersistenceError as e:
            logger.error("Closing with %d unpersisted samples: %s", len(e.failures), e)
        finally:
            self._records.close()

    def __enter__(self):
        return self.open()

    def __exit__(self, *args):
        self.close()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add(self, label: str, vector, meta: Optional[dict] = None, wait: bool = False) -> int:
        """Add a sample and return its id.

        The mirror is updated before returning; the durable insert runs
        in the background unless ``wait`` is set, in which case a failed
        insert raises PersistenceError.
        """
        if not isinstance(label, str) or not label:
            raise ValueError("Sample label must be a non-empty string")
        frozen = _freeze_vector(vector)
        if frozen.size == 0:
            raise ValueError("Sample vector must not be empty")
        if self._samples and frozen.shape[0] != self._samples[0].vector.shape[0]:
            raise ValueError(
                "Sample vector has %d dims, dataset has %d"
                % (frozen.shape[0], self._samples[0].vector.shape[0])
            )

        sample = Sample(id=self._records.reserve_id(), label=label, vector=frozen, meta=meta)
        self._samples.append(sample)
        self._touch()

        future = self._records.insert(sample.to_record())
        with self._lock:
            self._pending[future] = sample
        future.add_done_callback(lambda f, s=sample: self._on_insert_done(f, s))

        if wait:
            try:
                future.result()
            except Exception as e:
                with self._lock:
                    self._failures.pop(sample.id, None)
                    self._reported.add(sample.id)
                raise PersistenceError(
                    "Failed to persist sample #%d (%s): %s" % (sample.id, label, e),
                    [WriteFailure(sample.id, label, e)],
                ) from e
        return sample.id

    def _on_insert_done(self, future: Future, sample: Sample):
        with self._lock:
            self._pending.pop(future, None)
        error = future.exception()
        if error is None:
            return
        with self._lock:
            if sample.id not in self._reported:
                self._failures[sample.id] = WriteFailure(sample.id, sample.label, error)
        logger.error("Sample #%d (%s) not persisted, mirror has diverged: %s",
                     sample.id, sample.label, error)
        self._bus.emit(Events.STORE_WRITE_FAILED, sample_id=sample.id,
                       label=sample.label, error=error)

    def flush(self, timeout: Optional[float] = None):
        """Wait for in-flight writes; raise PersistenceError on any failure."""
        with self._lock:
            pending = dict(self._pending)
        if pending:
            wait(list(pending), timeout=timeout)

        with self._lock:
            # Done callbacks may still be running after wait() returns
            for future, sample in pending.items():
                if future.done() and future.exception() is not None and sample.id not in self._reported:
                    self._failures.setdefault(
                        sample.id, WriteFailure(sample.id, sample.label, future.exception()),
                    )
            failures = list(self._failures.values())
            self._reported.update(self._failures)
            self._failures = {}
        if failures:
            raise PersistenceError(
                "%d sample write(s) failed; call reload() to reconcile" % len(failures),
                failures,
            )

    def get_all(self) -> Future:
        """Every live durable record, ordered by id."""
        return self._records.scan_all()

    def delete_by_ids(self, ids: Iterable[int]) -> Future:
        """Delete rows by id; unknown ids are ignored."""
        return self._records.delete_ids(ids)

    def delete_by_label(self, label: str) -> Future:
        """Delete the rows matching ``label`` when the command runs."""
        return self._records.delete_label(label)

    def clear(self) -> Future:
        return self._records.delete_all()

    def replace_all(self, records: Iterable[dict]) -> Future:
        """Replace every row with ``records`` in one transaction (new ids)."""
        cleaned = [
            {"label": r["label"], "vector": list(r["vector"]), "meta": r.get("meta")}
            for r in records
        ]
        return self._records.replace_all(cleaned)

    # ------------------------------------------------------------------
    # Mirror
    # ------------------------------------------------------------------

    def reload(self):
        """Re-read the durable store into the mirror (blocking)."""
        records = self.get_all().result()
        samples = []
        dim = None
        for record in records:
            label, vector = record.get("label"), record.get("vector")
            if not label or not isinstance(vector, list) or not vector:
                logger.warning("Skipping record #%s: missing label or vector", record.get("id"))
                continue
            if dim is None:
                dim = len(vector)
            elif len(vector) != dim:
                logger.warning("Skipping record #%s: %d dims, expected %d",
                               record.get("id"), len(vector), dim)
                continue
            samples.append(Sample(
                id=record["id"], label=label, vector=_freeze_vector(vector), meta=record.get("meta"),
            ))

        self._samples = samples
        self._touch()
        logger.info("Dataset reloaded: %d samples", len(samples))
        self._bus.emit(Events.DATASET_RELOADED, count=len(samples))

    def _touch(self):
        self._version += 1
        self._snapshot = None

    def snapshot(self) -> DatasetSnapshot:
        """Read-only view for the classifier, cached per version."""
        if self._snapshot is None or self._snapshot.version != self._version:
            self._snapshot = DatasetSnapshot(self._version, tuple(self._samples))
        return self._snapshot

    def stats_by_label(self) -> Dict[str, int]:
        """Label → sample count over the mirror, sorted by label."""
        return count_by_label(self._samples)

    def samples_for_label(self, label: str) -> tuple:
        """Mirror samples carrying ``label``, ordered by id."""
        return tuple(sorted((s for s in self._samples if s.label == label), key=lambda s: s.id))

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def samples(self) -> tuple:
        return tuple(self._samples)

    @property
    def labels(self) -> list:
        return list(self.stats_by_label())

    @property
    def version(self) -> int:
        return self._version

    @property
    def pending_writes(self) -> int:
        with self._lock:
            return len(self._pending)

    @property
    def write_failures(self) -> List[WriteFailure]:
        """Failures not yet reported through flush()."""
        with self._lock:
            return list(self._failures.values())

    def __len__(self):
        return len(self._samples)
