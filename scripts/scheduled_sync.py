#!/usr/bin/env python3
"""
Scheduled change polling for a directory.

Each cycle searches the directory for entries created or modified since the
last committed watermark, logs one event per change, and commits the new
watermark to the checkpoint file:
- Changes made by the identities in modifiers_names_to_filter_out are skipped
- A failed cycle commits nothing; the next one resumes from the old watermark
- The same change can be reported twice, never skipped

Designed to be run on a schedule (cron, a systemd timer) with --once, or as
a long-running poller.

Usage:
    python scripts/scheduled_sync.py [--config CONFIG_PATH] [--object-class NAME]...
                                     [--once | --cycles N] [--since TOKEN]
"""

import argparse
import sys
import time
from datetime import datetime

import structlog

from dirsync.directory.memory import InMemoryDirectory
from dirsync.directory.schema import MappingSchemaTranslator
from dirsync.models.config import AppConfig
from dirsync.models.entry import ObjectClass
from dirsync.sync.checkpoint_store import JsonFileCheckpointStore
from dirsync.sync.handlers import LoggingChangeHandler
from dirsync.sync.models import SyncReport, SyncToken
from dirsync.sync.sync_coordinator import SyncCoordinator
from dirsync.utils.config_loader import ConfigLoader
from dirsync.utils.logging_config import configure_logging_from_config

log = structlog.stdlib.get_logger()


def build_coordinator(config: AppConfig) -> SyncCoordinator:
    """
    Wire the directory, translator, checkpoint store and coordinator.

    Args:
        config: Loaded application configuration

    Returns:
        SyncCoordinator ready to poll
    """
    if config.directory.fixture_path:
        directory = InMemoryDirectory.from_yaml(config.directory.fixture_path)
    else:
        directory = InMemoryDirectory()

    translator = MappingSchemaTranslator.from_config(config.directory)
    checkpoint_store = JsonFileCheckpointStore(config.sync.checkpoint_path)

    return SyncCoordinator.from_config(
        config,
        connection=directory,
        translator=translator,
        checkpoint_store=checkpoint_store,
    )


def run_cycles(
    coordinator: SyncCoordinator,
    object_classes: list[ObjectClass],
    cycles: int | None,
    poll_interval_seconds: float,
    since: SyncToken | None = None,
) -> list[SyncReport]:
    """
    Poll every object class ``cycles`` times (forever when None).

    ``since`` only applies to the first cycle; later cycles resume from the
    committed watermarks.
    """
    handler = LoggingChangeHandler()
    reports: list[SyncReport] = []
    cycle = 0

    while cycles is None or cycle < cycles:
        if cycle > 0:
            time.sleep(poll_interval_seconds)

        log.info("polling_cycle_started", cycle=cycle + 1, object_classes=[str(oc) for oc in object_classes])
        for object_class in object_classes:
            reports.append(
                coordinator.sync_object_class(
                    object_class, handler, since=since if cycle == 0 else None
                )
            )
        cycle += 1

    return reports


def print_summary(reports: list[SyncReport]) -> None:
    print("\n" + "=" * 60)
    print("SYNCHRONIZATION SUMMARY")
    print("=" * 60)

    for report in reports:
        status = "SUCCESS" if report.success else "FAILED"
        print(f"[{report.object_class}] Status: {status}")
        print(f"  Resumed From: {report.token_before or '(now)'}")
        if report.success:
            print(f"  Committed: {report.token_after}")
            print(f"  Entries Found: {report.entries_found}")
            print(f"  Entries Delivered: {report.entries_delivered}")
        else:
            for error in report.errors:
                print(f"  Error: {error}")
        print(f"  Attempts: {report.attempts}")
        print(f"  Duration: {report.duration_seconds:.2f} seconds")

    print("=" * 60)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the scheduled sync script."""
    parser = argparse.ArgumentParser(description="Scheduled change polling for a directory")
    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration file",
        default=None,
    )
    parser.add_argument(
        "--object-class",
        dest="object_classes",
        action="append",
        help="Object class to poll (repeatable); defaults to every configured class",
        default=None,
    )
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "--once",
        action="store_true",
        help="Run a single cycle and exit",
    )
    group.add_argument(
        "--cycles",
        type=int,
        help="Number of cycles to run before exiting",
        default=None,
    )
    parser.add_argument(
        "--since",
        type=str,
        help="Watermark (YYYYMMDDHHMMSSZ) the first cycle resumes from",
        default=None,
    )

    args = parser.parse_args(argv)

    start_time = datetime.now()
    try:
        config_loader = ConfigLoader()
        config = config_loader.load_config(args.config)
        configure_logging_from_config(config.logging)
        config_loader.validate_config(config)

        coordinator = build_coordinator(config)
    except Exception as e:
        log.error("scheduled_sync_setup_failed", error=str(e), error_type=type(e).__name__)
        print(f"Setup failed: {e}", file=sys.stderr)
        return 1

    names = args.object_classes or list(config.directory.object_classes)
    object_classes = [ObjectClass(name=name) for name in names]
    cycles = 1 if args.once else args.cycles
    since = SyncToken(value=args.since) if args.since else None

    log.info(
        "scheduled_sync_started",
        object_classes=names,
        cycles=cycles,
        since=args.since,
        timestamp=start_time.isoformat(),
    )

    try:
        reports = run_cycles(
            coordinator,
            object_classes,
            cycles=cycles,
            poll_interval_seconds=config.sync.poll_interval_seconds,
            since=since,
        )
    except KeyboardInterrupt:
        log.info("scheduled_sync_interrupted")
        return 0

    print_summary(reports)

    return 0 if all(report.success for report in reports) else 1


if __name__ == "__main__":
    sys.exit(main())
