"""Durable sample storage and dataset import/export."""
from .record_store import RecordStore
from .sample_store import SampleStore, DatasetSnapshot

__all__ = ["RecordStore", "SampleStore", "DatasetSnapshot"]
