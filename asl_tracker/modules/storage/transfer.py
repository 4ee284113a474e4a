"""
Dataset import / export.

Document format::

    {
      "schema": 1,
      "exportedAt": "2026-01-31T12:00:00.000Z",
      "samples": [{"id": 1, "label": "A", "vector": [...], "meta": {...}}, ...]
    }

Import also accepts a bare list of sample objects. Imported ids are
ignored and regenerated by the store. A payload is validated completely
before the store is touched, so a malformed file never half-imports.
"""

import json
import math
import logging
from datetime import datetime, timezone
from numbers import Real

from asl_tracker.core.errors import ImportFormatError, PersistenceError, TrackerError
from asl_tracker.core.events import EventBus, Events
from asl_tracker.core.types import FEATURE_DIM

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def export_document(store) -> dict:
    """Build the export document from the durable store (ids included)."""
    samples = store.get_all().result()
    return {
        "schema": SCHEMA_VERSION,
        "exportedAt": _timestamp(),
        "samples": samples,
    }


def export_to_file(store, path: str) -> int:
    """Write the export document to ``path``. Returns the sample count."""
    document = export_document(store)
    try:
        with open(path, "w") as f:
            json.dump(document, f, indent=2)
    except OSError as e:
        raise TrackerError("Cannot write %s: %s" % (path, e)) from e
    logger.info("Exported %d samples to %s", len(document["samples"]), path)
    return len(document["samples"])


def parse_import(payload, dim=FEATURE_DIM) -> list:
    """Validate an import payload and return clean {label, vector, meta} records.

    Every vector must have ``dim`` entries (the landmark feature size by
    default); with ``dim=None`` the first sample sets the dimension.

    Raises:
        ImportFormatError: the payload does not match the document schema
    """
    if isinstance(payload, dict):
        if "schema" in payload and payload["schema"] != SCHEMA_VERSION:
            raise ImportFormatError("Unsupported dataset schema: %r" % (payload["schema"],))
        samples = payload.get("samples")
        if not isinstance(samples, list):
            raise ImportFormatError("Dataset document has no 'samples' list")
    elif isinstance(payload, list):
        samples = payload
    else:
        raise ImportFormatError("Expected a dataset document or a list of samples, got %s"
                                % type(payload).__name__)

    records = []
    for index, sample in enumerate(samples):
        if not isinstance(sample, dict):
            raise ImportFormatError("Sample %d is not an object" % index)

        label = sample.get("label")
        if not isinstance(label, str) or not label:
            raise ImportFormatError("Sample %d has no label" % index)

        vector = sample.get("vector")
        if not isinstance(vector, list) or not vector:
            raise ImportFormatError("Sample %d (%s) has no vector" % (index, label))
        if not all(isinstance(v, Real) and not isinstance(v, bool) and math.isfinite(v) for v in vector):
            raise ImportFormatError("Sample %d (%s) has non-numeric vector entries" % (index, label))
        if dim is None:
            dim = len(vector)
        elif len(vector) != dim:
            raise ImportFormatError(
                "Sample %d (%s) has %d dims, expected %d" % (index, label, len(vector), dim)
            )

        records.append({
            "label": label,
            "vector": [float(v) for v in vector],
            "meta": sample.get("meta"),
        })
    return records


def import_document(store, payload, event_bus=None, dim=FEATURE_DIM) -> int:
    """Replace the store's contents with ``payload`` and reload the mirror.

    Returns the number of imported samples.
    """
    bus = event_bus or EventBus()
    try:
        records = parse_import(payload, dim=dim)
    except ImportFormatError as e:
        logger.error("Import rejected: %s", e)
        bus.emit(Events.IMPORT_FAILED, error=e)
        raise

    try:
        store.replace_all(records).result()
    except Exception as e:
        logger.error("Import failed in the durable store: %s", e)
        bus.emit(Events.IMPORT_FAILED, error=e)
        raise PersistenceError("Import failed, previous samples kept: %s" % e) from e
    store.reload()
    logger.info("Imported %d samples", len(records))
    bus.emit(Events.IMPORT_COMPLETED, count=len(records))
    return len(records)


def import_from_file(store, path: str, event_bus=None, dim=FEATURE_DIM) -> int:
    """Load a JSON dataset file and import it."""
    try:
        with open(path, "r") as f:
            payload = json.load(f)
    except (OSError, ValueError) as e:
        if isinstance(e, ValueError):
            error = ImportFormatError("%s is not valid JSON: %s" % (path, e))
        else:
            error = TrackerError("Cannot read %s: %s" % (path, e))
        logger.error("Import rejected: %s", error)
        (event_bus or EventBus()).emit(Events.IMPORT_FAILED, error=error)
        raise error from e
    return import_document(store, payload, event_bus=event_bus, dim=dim)
