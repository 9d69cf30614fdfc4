#!/usr/bin/env python3
"""
CLI for the EgadSync file tracker.

Usage:
    python -m src.cli watch /path/to/folder --interval 60
    python -m src.cli resume
    python -m src.cli state
    python -m src.cli forget
    python -m src.cli scan /path/to/folder
"""

import argparse
import dataclasses
import json
import logging
import signal
import sys
from pathlib import Path

from dotenv import load_dotenv

from src.tracker import (
    EventType,
    FileTracker,
    PathError,
    PersistenceError,
    ScanError,
    SnapshotBuilder,
    StateStore,
    TrackerConfig,
    TrackerEvent,
    summarize,
)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger("cli")


def setup_logging(verbose: bool = False, log_file: str = None) -> None:
    """Configure console logging, plus a DEBUG file log when requested."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
    )
    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
        root_logger = logging.getLogger()
        root_logger.setLevel(logging.DEBUG)
        root_logger.addHandler(file_handler)


class GracefulShutdown:
    """Handle graceful shutdown on SIGINT/SIGTERM."""

    def __init__(self):
        self.should_exit = False
        signal.signal(signal.SIGINT, self._handler)
        signal.signal(signal.SIGTERM, self._handler)

    def _handler(self, signum, frame):
        logger.info("Received shutdown signal, stopping...")
        self.should_exit = True


def build_config(args) -> TrackerConfig:
    config = TrackerConfig.from_env(db_path=Path(args.db) if args.db else None)
    if getattr(args, "interval", None) is not None:
        config = dataclasses.replace(config, poll_interval_seconds=args.interval)
    return config


def log_event(event: TrackerEvent) -> None:
    """Log a tracker event the way the host UI would display it."""
    if event.event_type == EventType.CHANGES:
        counts = ", ".join(
            f"{len(paths)} {kind.value}" for kind, paths in summarize(event.batch).items() if paths
        )
        logger.info(f"Changes in {event.root} ({counts}):")
        for record in event.batch:
            logger.info(f"  {record}")
    elif event.event_type == EventType.ERROR:
        logger.error(event.message)
    else:
        logger.info(f"Tracking {event.event_type.value}: {event.root}")


def run_until_shutdown(tracker: FileTracker, subscription) -> int:
    """Print events until a signal arrives or the loop fails."""
    shutdown = GracefulShutdown()

    while not shutdown.should_exit:
        event = subscription.get(timeout=0.5)
        if event is None:
            continue
        log_event(event)
        if event.event_type == EventType.ERROR:
            return 1

    tracker.close()
    for event in subscription.drain():
        log_event(event)
    return 0


def cmd_watch(args) -> int:
    """Track a folder until interrupted."""
    config = build_config(args)

    with FileTracker(config) as tracker:
        subscription = tracker.subscribe()
        try:
            tracker.start(Path(args.root))
        except PathError as e:
            logger.error(str(e))
            return 1
        except ScanError as e:
            logger.error(f"Initial scan failed: {e}")
            return 1
        except PersistenceError as e:
            logger.warning(f"Tracking without saved state: {e}")

        logger.info(f"Database: {config.db_path}")
        logger.info("Press Ctrl+C to stop")
        return run_until_shutdown(tracker, subscription)


def cmd_resume(args) -> int:
    """Resume tracking the persisted root, if it was active."""
    config = build_config(args)

    with FileTracker(config) as tracker:
        subscription = tracker.subscribe()
        try:
            tracker.resume()
        except PersistenceError as e:
            logger.warning(f"Tracking without saved state: {e}")

        if not tracker.status():
            persisted = tracker.get_persisted_state()
            if persisted is None:
                logger.info("No saved state to resume")
            else:
                logger.info(f"Last root: {persisted.root_target} (active={persisted.active}), not resumed")
            return 0

        logger.info("Press Ctrl+C to stop")
        return run_until_shutdown(tracker, subscription)


def cmd_state(args) -> int:
    """Print the persisted state as JSON."""
    config = build_config(args)
    state = StateStore(config.db_path).load()
    print(json.dumps(state.to_dict() if state else None, indent=2))
    return 0


def cmd_forget(args) -> int:
    """Mark the persisted state inactive, or delete it with --purge."""
    config = build_config(args)
    try:
        if args.purge:
            StateStore(config.db_path).clear()
            logger.info(f"Deleted saved state in {config.db_path}")
        else:
            FileTracker(config).stop()
            logger.info("Monitoring will not resume on next start")
    except PersistenceError as e:
        logger.error(str(e))
        return 1
    return 0


def cmd_scan(args) -> int:
    """Take a one-off snapshot and list its files."""
    config = build_config(args)
    try:
        snapshot = SnapshotBuilder(config).build(Path(args.root))
    except (PathError, ScanError) as e:
        logger.error(str(e))
        return 1

    for path in sorted(snapshot):
        meta = snapshot[path]
        print(f"{meta.size:>12}  {meta.modified_time:.3f}  {path}")
    logger.info(f"{len(snapshot)} file(s)")
    return 0


def main(argv=None) -> int:
    load_dotenv()

    parser = argparse.ArgumentParser(
        description="EgadSync file change tracker",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-file", default=None, help="Also write debug logs to this file")
    parser.add_argument("--db", default=None, help="State database path (or EGADSYNC_DB_PATH env)")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    watch_parser = subparsers.add_parser("watch", help="Track a folder until interrupted")
    watch_parser.add_argument("root", help="Root directory to track")
    watch_parser.add_argument("--interval", type=float, default=None, help="Seconds between scans")
    watch_parser.set_defaults(func=cmd_watch)

    resume_parser = subparsers.add_parser("resume", help="Resume tracking the saved root")
    resume_parser.add_argument("--interval", type=float, default=None, help="Seconds between scans")
    resume_parser.set_defaults(func=cmd_resume)

    state_parser = subparsers.add_parser("state", help="Show the saved state")
    state_parser.set_defaults(func=cmd_state)

    forget_parser = subparsers.add_parser("forget", help="Do not resume tracking on next start")
    forget_parser.add_argument("--purge", action="store_true", help="Delete the saved root as well")
    forget_parser.set_defaults(func=cmd_forget)

    scan_parser = subparsers.add_parser("scan", help="List the files a snapshot would record")
    scan_parser.add_argument("root", help="Root directory to scan")
    scan_parser.set_defaults(func=cmd_scan)

    args = parser.parse_args(argv)
    setup_logging(args.verbose, args.log_file)

    if not args.command:
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
