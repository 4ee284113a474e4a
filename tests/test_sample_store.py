"""
Tests for the Durable Sample Store
===================================
"""

import pytest
import sqlite3
import threading
import numpy as np
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from asl_tracker.core.errors import PersistenceError
from asl_tracker.core.events import EventBus, Events
from asl_tracker.core.types import Sample
from asl_tracker.modules.intelligence.analytics import format_sample_row
from asl_tracker.modules.storage.record_store import RecordStore
from asl_tracker.modules.storage.sample_store import SampleStore


VEC_A = [0.1, 0.2, 0.3]
VEC_B = [0.9, 0.8, 0.7]


@pytest.fixture
def bus():
    bus = EventBus()
    bus.reset()
    yield bus
    bus.reset()


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "data" / "samples.db")


@pytest.fixture
def records(db_path):
    return RecordStore(db_path)


@pytest.fixture
def store(records, bus):
    store = SampleStore(records, event_bus=bus).open()
    yield store
    store.close()


class TestRecordStore:
    """Test suite for the writer-thread record store."""

    def test_creates_parent_directory(self, db_path):
        with RecordStore(db_path) as records:
            assert records.is_open
        assert Path(db_path).exists()

    def test_operations_run_in_order(self, records):
        with records:
            first = records.insert({"label": "A", "vector": VEC_A})
            second = records.insert({"label": "B", "vector": VEC_B})
            rows = records.scan_all().result()

        assert [first.result(), second.result()] == [1, 2]
        assert [r["label"] for r in rows] == ["A", "B"]

    def test_closed_store_rejects_commands(self, records):
        future = records.scan_all()

        with pytest.raises(RuntimeError):
            future.result()

    def test_count_by_label(self, records):
        with records:
            for label in ["B", "A", "B"]:
                records.insert({"label": label, "vector": VEC_A})
            counts = records.count_by_label().result()

        assert counts == {"A": 1, "B": 2}

    def test_failed_command_rolls_back(self, records):
        with records:
            records.insert({"label": "A", "vector": VEC_A}).result()

            def half_write(conn):
                conn.execute("DELETE FROM samples")
                raise sqlite3.OperationalError("disk I/O error")

            with pytest.raises(sqlite3.OperationalError):
                records.submit(half_write).result()
            rows = records.scan_all().result()

        assert len(rows) == 1


class TestSampleStore:
    """Test suite for SampleStore CRUD and mirror behaviour."""

    def test_add_updates_mirror_synchronously(self, store):
        sample_id = store.add("A", VEC_A)

        assert len(store) == 1
        assert store.samples[0].id == sample_id
        assert store.samples[0].vector.dtype == np.float32
        assert store.snapshot().ids == (sample_id,)

    def test_add_persists(self, store):
        sample_id = store.add("A", VEC_A, meta={"timestamp": 1})
        store.flush()

        rows = store.get_all().result()
        assert len(rows) == 1
        assert rows[0]["id"] == sample_id
        assert rows[0]["label"] == "A"
        assert rows[0]["vector"] == pytest.approx(VEC_A, rel=1e-6)
        assert rows[0]["meta"] == {"timestamp": 1}

    def test_add_wait(self, store):
        store.add("A", VEC_A, wait=True)

        assert store.pending_writes == 0
        assert len(store.get_all().result()) == 1

    def test_add_rejects_bad_input(self, store):
        with pytest.raises(ValueError):
            store.add("", VEC_A)
        with pytest.raises(ValueError):
            store.add("A", [])
        store.add("A", VEC_A)
        with pytest.raises(ValueError):
            store.add("B", [1.0, 2.0])
        assert len(store) == 1

    def test_ids_are_unique_and_increasing(self, store):
        ids = [store.add("A", VEC_A) for _ in range(5)]

        assert ids == sorted(set(ids))

    def test_delete_by_ids_idempotent(self, store):
        a = store.add("A", VEC_A)
        store.add("B", VEC_B)
        store.flush()

        assert store.delete_by_ids([a]).result() == 1
        assert store.delete_by_ids([a]).result() == 0
        assert store.delete_by_ids([999]).result() == 0
        store.reload()

        assert [s.label for s in store.samples] == ["B"]

    def test_delete_by_label(self, store):
        a1 = store.add("A", VEC_A)
        store.add("B", VEC_B)
        a2 = store.add("A", VEC_A)
        store.flush()

        assert store.delete_by_label("A").result() == [a1, a2]
        assert store.delete_by_label("A").result() == []
        store.reload()

        assert store.stats_by_label() == {"B": 1}

    def test_clear_does_not_reuse_ids(self, store):
        store.add("A", VEC_A)
        last = store.add("A", VEC_A)
        store.flush()

        store.clear().result()
        store.reload()
        assert len(store) == 0

        assert store.add("B", VEC_B) > last

    def test_replace_all_assigns_new_ids(self, store):
        old = store.add("A", VEC_A)
        store.flush()

        new_ids = store.replace_all([
            {"id": 500, "label": "X", "vector": VEC_A},
            {"id": 501, "label": "Y", "vector": VEC_B, "meta": {"k": 1}},
        ]).result()
        store.reload()

        assert len(new_ids) == 2
        assert min(new_ids) > old
        assert 500 not in new_ids
        assert [s.label for s in store.samples] == ["X", "Y"]
        assert store.samples[1].meta == {"k": 1}

    def test_reopen_reloads_samples(self, db_path, bus):
        with SampleStore(RecordStore(db_path), event_bus=bus) as first:
            ids = [first.add(label, VEC_A) for label in "ABC"]

        with SampleStore(RecordStore(db_path), event_bus=bus) as second:
            assert [s.id for s in second.samples] == ids
            assert second.stats_by_label() == {"A": 1, "B": 1, "C": 1}
            assert second.add("D", VEC_B) > max(ids)

    def test_reopen_after_clear_does_not_reuse_ids(self, db_path, bus):
        with SampleStore(RecordStore(db_path), event_bus=bus) as first:
            last = first.add("A", VEC_A)
            first.flush()
            first.clear().result()

        with SampleStore(RecordStore(db_path), event_bus=bus) as second:
            assert len(second) == 0
            assert second.add("B", VEC_B) > last

    def test_reload_skips_mismatched_dimensions(self, store, records):
        store.add("A", VEC_A, wait=True)
        records.insert({"label": "bad", "vector": [1.0, 2.0]}).result()

        store.reload()

        assert [s.label for s in store.samples] == ["A"]

    def test_reload_emits_event(self, store, bus):
        counts = []
        bus.subscribe(Events.DATASET_RELOADED, lambda count: counts.append(count))
        store.add("A", VEC_A, wait=True)

        store.reload()

        assert counts == [1]

    def test_snapshot_cached_per_version(self, store):
        store.add("A", VEC_A)
        first = store.snapshot()

        assert store.snapshot() is first

        store.add("B", VEC_B)
        second = store.snapshot()

        assert second is not first
        assert len(first) == 1
        assert len(second) == 2
        assert second.matrix.shape == (2, 3)
        assert not second.matrix.flags.writeable

    def test_stats_by_label_sorted(self, store):
        for label in ["B", "A", "B"]:
            store.add(label, VEC_A)

        assert list(store.stats_by_label().items()) == [("A", 1), ("B", 2)]
        assert store.labels == ["A", "B"]

    def test_samples_for_label(self, store):
        b1 = store.add("B", VEC_A)
        a1 = store.add("A", VEC_A)
        b2 = store.add("B", VEC_B)

        assert [s.id for s in store.samples_for_label("B")] == [b1, b2]
        assert [s.id for s in store.samples_for_label("A")] == [a1]
        assert store.samples_for_label("C") == ()


class TestSampleRows:
    """One-line sample descriptions for listings."""

    def test_full_meta(self):
        sample = Sample(id=7, label="A", vector=np.zeros(3, dtype=np.float32),
                        meta={"timestamp": 1700000000000, "landmarks": [{"x": 0, "y": 0, "z": 0}] * 21})
        row = format_sample_row(sample)

        assert row.startswith("#7  ")
        assert row.endswith("21 points")
        assert "No time" not in row

    def test_missing_meta(self):
        sample = Sample(id=3, label="A", vector=np.zeros(3, dtype=np.float32))

        assert format_sample_row(sample) == "#3  No time  ? points"


class TestWriteFailures:
    """A failed optimistic insert is surfaced, never silently dropped."""

    @pytest.fixture
    def broken_insert(self, records, monkeypatch):
        def failing_insert(conn, record):
            raise sqlite3.OperationalError("disk I/O error")
        monkeypatch.setattr(records, "_insert", failing_insert)

    def test_flush_raises(self, store, broken_insert):
        sample_id = store.add("A", VEC_A)

        # Mirror is optimistic
        assert len(store) == 1

        with pytest.raises(PersistenceError) as exc_info:
            store.flush()

        failures = exc_info.value.failures
        assert [f.sample_id for f in failures] == [sample_id]
        assert failures[0].label == "A"
        assert isinstance(failures[0].error, sqlite3.OperationalError)

        # Reported once
        store.flush()

    def test_failure_event(self, store, bus, broken_insert):
        received = []
        failed = threading.Event()

        def on_failed(**kwargs):
            received.append(kwargs)
            failed.set()

        bus.subscribe(Events.STORE_WRITE_FAILED, on_failed)
        sample_id = store.add("A", VEC_A)

        assert failed.wait(timeout=5)
        assert received[0]["sample_id"] == sample_id
        assert received[0]["label"] == "A"

    def test_reload_heals_mirror(self, store, broken_insert):
        store.add("A", VEC_A)
        with pytest.raises(PersistenceError):
            store.flush()

        store.reload()

        assert len(store) == 0

    def test_add_wait_raises(self, store, broken_insert):
        with pytest.raises(PersistenceError) as exc_info:
            store.add("A", VEC_A, wait=True)

        assert len(exc_info.value.failures) == 1
        # Already reported to the caller
        store.flush()
        assert store.write_failures == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
