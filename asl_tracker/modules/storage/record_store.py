"""
Durable keyed record store backed by SQLite, with a single writer thread.

Every operation is queued as a command and answered with a
concurrent.futures.Future, so callers choose whether to wait. The writer
thread owns the only connection and executes commands strictly in
submission order.

Records are plain dicts: {id, label, vector (list of floats), meta}.
Ids come from an AUTOINCREMENT key and are never reused, including after
a full clear.
"""

import os
import json
import queue
import sqlite3
import logging
import threading
from concurrent.futures import Future
from typing import Iterable, List

logger = logging.getLogger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS samples (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        label TEXT NOT NULL,
        vector TEXT NOT NULL,
        meta TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_samples_label ON samples(label)",
)

_STOP = object()


class RecordStore:
    """SQLite sample table served by one background writer thread."""

    def __init__(self, db_path: str = ":memory:", timeout_s: float = 5.0):
        self._db_path = db_path
        self._timeout_s = timeout_s
        self._queue = queue.Queue()
        self._thread = None
        self._running = False
        self._id_lock = threading.Lock()
        self._next_id = 1

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self):
        """Start the writer thread and create the schema."""
        if self._running:
            return self
        ready = Future()
        self._running = True
        self._thread = threading.Thread(
            target=self._writer_loop, args=(ready,), name="record-store", daemon=True,
        )
        self._thread.start()
        # Propagates connection/schema errors to the caller
        ready.result(timeout=self._timeout_s)
        last_id = self.submit(self._max_id).result(timeout=self._timeout_s)
        with self._id_lock:
            self._next_id = last_id + 1
        logger.info("Record store opened: %s (next id %d)", self._db_path, self._next_id)
        return self

    def close(self):
        """Drain queued commands and stop the writer thread."""
        if not self._running:
            return
        self._queue.put(_STOP)
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=self._timeout_s)
        self._running = False
        logger.info("Record store closed")

    def __enter__(self):
        return self.open()

    def __exit__(self, *args):
        self.close()

    @property
    def is_open(self) -> bool:
        return self._running

    @property
    def db_path(self) -> str:
        return self._db_path

    # ------------------------------------------------------------------
    # Command queue
    # ------------------------------------------------------------------

    def submit(self, op, *args) -> Future:
        """Queue ``op(connection, *args)`` on the writer thread."""
        future = Future()
        if not self._running:
            future.set_exception(RuntimeError("Record store is not open"))
            return future
        self._queue.put((op, args, future))
        return future

    def _writer_loop(self, ready: Future):
        try:
            if self._db_path != ":memory:" and os.path.dirname(self._db_path):
                os.makedirs(os.path.dirname(self._db_path), exist_ok=True)
            conn = sqlite3.connect(self._db_path, timeout=self._timeout_s)
            for statement in _SCHEMA:
                conn.execute(statement)
            conn.commit()
        except Exception as e:
            logger.error("Failed to open record store %s: %s", self._db_path, e)
            self._running = False
            ready.set_exception(e)
            return
        ready.set_result(True)

        try:
            while True:
                item = self._queue.get()
                if item is _STOP:
                    break
                op, args, future = item
                if not future.set_running_or_notify_cancel():
                    continue
                try:
                    result = op(conn, *args)
                    conn.commit()
                except Exception as e:
                    conn.rollback()
                    logger.error("Record store %s failed: %s", getattr(op, "__name__", op), e)
                    future.set_exception(e)
                else:
                    future.set_result(result)
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Id allocation
    # ------------------------------------------------------------------

    def reserve_id(self) -> int:
        """Reserve a fresh id synchronously (thread-safe)."""
        with self._id_lock:
            sample_id = self._next_id
            self._next_id += 1
        return sample_id

    def _reserve_ids(self, n: int) -> List[int]:
        with self._id_lock:
            ids = list(range(self._next_id, self._next_id + n))
            self._next_id += n
        return ids

    # ------------------------------------------------------------------
    # Public operations (all return Futures)
    # ------------------------------------------------------------------

    def insert(self, record: dict) -> Future:
        """Insert a record; a missing id is reserved first. Resolves to the id."""
        record = dict(record)
        if record.get("id") is None:
            record["id"] = self.reserve_id()
        return self.submit(self._insert, record)

    def scan_all(self) -> Future:
        """Resolves to every record ordered by id."""
        return self.submit(self._scan_all)

    def delete_ids(self, ids: Iterable[int]) -> Future:
        """Resolves to the number of rows removed."""
        return self.submit(self._delete_ids, [int(i) for i in ids])

    def delete_label(self, label: str) -> Future:
        """Resolves to the ids that matched ``label`` and were removed."""
        return self.submit(self._delete_label, label)

    def delete_all(self) -> Future:
        return self.submit(self._delete_all)

    def replace_all(self, records: Iterable[dict]) -> Future:
        """Transactional clear + insert with fresh ids. Resolves to the new ids."""
        return self.submit(self._replace_all, [dict(r) for r in records])

    def count_by_label(self) -> Future:
        return self.submit(self._count_by_label)

    # ------------------------------------------------------------------
    # Writer-thread operations
    # ------------------------------------------------------------------

    @staticmethod
    def _max_id(conn) -> int:
        row = conn.execute("SELECT seq FROM sqlite_sequence WHERE name = 'samples'").fetchone()
        seq = row[0] if row else 0
        max_row = conn.execute("SELECT MAX(id) FROM samples").fetchone()
        return max(seq or 0, (max_row[0] or 0) if max_row else 0)

    @staticmethod
    def _encode(record: dict) -> tuple:
        meta = record.get("meta")
        return (
            record["id"],
            record["label"],
            json.dumps([float(v) for v in record["vector"]]),
            json.dumps(meta) if meta is not None else None,
        )

    def _insert(self, conn, record: dict) -> int:
        conn.execute(
            "INSERT INTO samples (id, label, vector, meta) VALUES (?, ?, ?, ?)",
            self._encode(record),
        )
        return record["id"]

    @staticmethod
    def _scan_all(conn) -> List[dict]:
        records = []
        for row_id, label, vector, meta in conn.execute(
            "SELECT id, label, vector, meta FROM samples ORDER BY id"
        ):
            try:
                decoded_vector = json.loads(vector)
                decoded_meta = json.loads(meta) if meta is not None else None
            except (TypeError, ValueError) as e:
                logger.warning("Skipping corrupt record #%s: %s", row_id, e)
                continue
            records.append({
                "id": row_id,
                "label": label,
                "vector": decoded_vector,
                "meta": decoded_meta,
            })
        return records

    @staticmethod
    def _delete_ids(conn, ids: List[int]) -> int:
        if not ids:
            return 0
        cursor = conn.executemany("DELETE FROM samples WHERE id = ?", [(i,) for i in ids])
        return cursor.rowcount

    def _delete_label(self, conn, label: str) -> List[int]:
        ids = self._ids_for_label(conn, label)
        self._delete_ids(conn, ids)
        return ids

    @staticmethod
    def _delete_all(conn) -> int:
        return conn.execute("DELETE FROM samples").rowcount

    def _replace_all(self, conn, records: List[dict]) -> List[int]:
        conn.execute("DELETE FROM samples")
        ids = self._reserve_ids(len(records))
        rows = []
        for new_id, record in zip(ids, records):
            record["id"] = new_id
            rows.append(self._encode(record))
        conn.executemany(
            "INSERT INTO samples (id, label, vector, meta) VALUES (?, ?, ?, ?)", rows,
        )
        return ids

    @staticmethod
    def _ids_for_label(conn, label: str) -> List[int]:
        return [row[0] for row in conn.execute(
            "SELECT id FROM samples WHERE label = ? ORDER BY id", (label,)
        )]

    @staticmethod
    def _count_by_label(conn) -> dict:
        return {label: count for label, count in conn.execute(
            "SELECT label, COUNT(*) FROM samples GROUP BY label ORDER BY label"
        )}
