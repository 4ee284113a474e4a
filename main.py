#!/usr/bin/env python3
"""
ASL Live Gesture Tracker
Command-line entry point and application wiring.

The live camera / landmark model is an external collaborator; this CLI
manages the training set and replays recorded landmark frames through
the recognition pipeline.

Usage:
    python main.py stats                       # Samples per label
    python main.py list [A]                    # Sample ids per label
    python main.py export [asl_dataset.json]   # Dump the durable store
    python main.py import asl_dataset.json     # Replace the store
    python main.py delete-label A              # Drop one label
    python main.py delete-ids 3 4 5            # Drop specific samples
    python main.py reset --yes                 # Delete ALL samples
    python main.py replay session.json         # Feed recorded frames
"""

import sys
import json
import argparse
import logging

from asl_tracker.core.errors import TrackerError
from asl_tracker.core.events import EventBus, Events
from asl_tracker.core.pipeline import GesturePipeline
from asl_tracker.modules.control.capture import SampleCapture
from asl_tracker.modules.control.text_output import TextBuffer
from asl_tracker.modules.intelligence.analytics import Analytics, format_sample_row, format_samples_info
from asl_tracker.modules.recognition.feature_normalizer import FeatureNormalizer
from asl_tracker.modules.recognition.knn_classifier import KNNClassifier
from asl_tracker.modules.recognition.stabilizer import Stabilizer
from asl_tracker.modules.storage import transfer
from asl_tracker.modules.storage.record_store import RecordStore
from asl_tracker.modules.storage.sample_store import SampleStore
from asl_tracker.modules.utils.config import Config
from asl_tracker.modules.utils.logger import setup_logging, GestureLogger

logger = logging.getLogger(__name__)


class GestureTrackerApp:
    """Wires the store, recognition modules and pipeline from config."""

    def __init__(self, config: Config):
        self._config = config
        self._bus = EventBus()

        db_path = config.resolve_path(config.get("storage.db_path", "data/samples.db"))
        self.store = SampleStore(RecordStore(db_path), event_bus=self._bus)

        self.normalizer = FeatureNormalizer(config.get("recognition.feature_epsilon", 1e-5))
        self.classifier = KNNClassifier(self.store, k=config.get("recognition.k", 7))
        self.text = TextBuffer()
        self.stabilizer = Stabilizer(config.stabilizer, text_output=self.text)

        self.analytics = Analytics()
        self.gesture_logger = GestureLogger()
        self.capture = SampleCapture(
            self.store, self.normalizer, config.capture,
            event_bus=self._bus, gesture_logger=self.gesture_logger,
        )
        self.pipeline = GesturePipeline(
            store=self.store,
            normalizer=self.normalizer,
            classifier=self.classifier,
            stabilizer=self.stabilizer,
            capture=self.capture,
            text_output=self.text,
            analytics=self.analytics,
            gesture_logger=self.gesture_logger,
            event_bus=self._bus,
        )

        self._bus.subscribe(Events.STORE_WRITE_FAILED, self._on_write_failed)

    def _on_write_failed(self, **kwargs):
        logger.warning("Sample #%s (%s) was not saved; reload to resync",
                       kwargs.get("sample_id"), kwargs.get("label"))

    def __enter__(self):
        self.store.open()
        return self

    def __exit__(self, *args):
        self.store.close()

    def replay(self, frames, auto_commit: bool = True) -> str:
        """Feed recorded frames through the pipeline; returns the typed text."""
        self.stabilizer.auto_commit = auto_commit
        if len(self.store) == 0:
            logger.warning("Dataset is empty, no predictions will be made")
        for frame in frames:
            result = self.pipeline.process_frame(frame.get("landmarks"), now_ms=frame["t"])
            if result.commit is not None:
                logger.info("t=%.0fms  commit %-8s -> %r",
                            result.timestamp_ms, result.commit.label, self.text.text)
        self.analytics.print_summary()
        return self.text.text


def load_frames(path: str) -> list:
    """Load a replay file: {"frames": [{"t": ms, "landmarks": [...]|null}]} or a bare list."""
    with open(path, "r") as f:
        payload = json.load(f)
    frames = payload.get("frames") if isinstance(payload, dict) else payload
    if not isinstance(frames, list):
        raise ValueError("%s has no frame list" % path)
    for index, frame in enumerate(frames):
        if not isinstance(frame, dict) or not isinstance(frame.get("t"), (int, float)):
            raise ValueError("Frame %d in %s needs a numeric 't'" % (index, path))
    return frames


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="ASL Live Gesture Tracker")
    parser.add_argument("--config", type=str, default=None, help="Path to config.yaml")
    parser.add_argument("--db", type=str, default=None, help="Sample database path")
    parser.add_argument("--log-level", type=str, default=None, help="Logging level")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("stats", help="Show samples per label")

    p_list = sub.add_parser("list", help="List sample ids, capture time and point count")
    p_list.add_argument("label", nargs="?", default=None)

    p_export = sub.add_parser("export", help="Export the dataset to JSON")
    p_export.add_argument("path", nargs="?", default=None)

    p_import = sub.add_parser("import", help="Replace the dataset from JSON")
    p_import.add_argument("path")

    p_label = sub.add_parser("delete-label", help="Delete all samples for a label")
    p_label.add_argument("label")

    p_ids = sub.add_parser("delete-ids", help="Delete samples by id")
    p_ids.add_argument("ids", nargs="+", type=int)

    p_reset = sub.add_parser("reset", help="Delete ALL saved samples")
    p_reset.add_argument("--yes", action="store_true", help="Confirm deletion")

    p_replay = sub.add_parser("replay", help="Replay recorded landmark frames")
    p_replay.add_argument("path")
    p_replay.add_argument("--no-auto-type", action="store_true", help="Disable auto-commit")

    return parser.parse_args(argv)


def run_command(app: GestureTrackerApp, args, config: Config) -> int:
    store = app.store
    if args.command == "stats":
        print(format_samples_info(store.stats_by_label()))
        print("Total: %d" % len(store))
    elif args.command == "list":
        labels = [args.label] if args.label else list(store.stats_by_label())
        if not labels:
            print("No samples yet.")
        for label in labels:
            samples = store.samples_for_label(label)
            if not samples:
                print("No samples for %r." % label)
                continue
            print("%s: %d" % (label, len(samples)))
            for sample in samples:
                print("  " + format_sample_row(sample))
    elif args.command == "export":
        path = args.path or config.get("storage.export_file", "asl_dataset.json")
        count = transfer.export_to_file(store, path)
        print("Exported %d samples to %s" % (count, path))
    elif args.command == "import":
        count = transfer.import_from_file(store, args.path)
        print("Imported %d samples" % count)
    elif args.command == "delete-label":
        ids = store.delete_by_label(args.label).result()
        store.reload()
        print("Deleted %d samples for %r" % (len(ids), args.label))
    elif args.command == "delete-ids":
        removed = store.delete_by_ids(args.ids).result()
        store.reload()
        print("Deleted %d samples" % removed)
    elif args.command == "reset":
        if not args.yes:
            print("Refusing to delete ALL saved samples without --yes")
            return 1
        app.pipeline.reset_dataset()
        print("All samples deleted")
    elif args.command == "replay":
        text = app.replay(load_frames(args.path), auto_commit=not args.no_auto_type)
        print(text)
    return 0


def main(argv=None) -> int:
    args = parse_args(argv)

    config = Config()
    config.load(config_path=args.config)
    if args.db:
        config.set("storage.db_path", args.db)

    log_cfg = config.get_section("logging")
    setup_logging(
        level=args.log_level or log_cfg.get("level", "INFO"),
        log_file=log_cfg.get("file"),
        max_size_mb=log_cfg.get("max_size_mb", 10),
        backup_count=log_cfg.get("backup_count", 3),
    )
    logger.debug("ASL Live Gesture Tracker %s", config.get("system.version", "1.0.0"))

    try:
        with GestureTrackerApp(config) as app:
            return run_command(app, args, config)
    except TrackerError as e:
        logger.error("%s", e)
        return 2


if __name__ == "__main__":
    sys.exit(main())
