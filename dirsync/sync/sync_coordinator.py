"""Synchronization coordinator for orchestrating polling cycles."""

import time
from datetime import datetime
from typing import Callable, Iterable

import structlog

from dirsync.directory.connection import DirectoryConnection
from dirsync.directory.schema import SchemaTranslator
from dirsync.exceptions import TransportError
from dirsync.models.config import AppConfig
from dirsync.models.entry import ObjectClass, OperationOptions
from dirsync.sync.checkpoint_store import CheckpointStore
from dirsync.sync.handlers import ChangeHandler
from dirsync.sync.models import ScanSummary, SyncReport, SyncToken
from dirsync.sync.observers import ScanObserver
from dirsync.sync.scanner import ChangeScanner
from dirsync.sync.watermark import Clock, latest_sync_token
from dirsync.utils.retry import exponential_backoff_retry

log = structlog.stdlib.get_logger()


class SyncCoordinator:
    """Runs polling cycles: resume from the committed token, scan, report.

    Cycles run one after another; the coordinator is the place that
    serializes polling per object class. A failed cycle is reported, not
    raised, and the next cycle resumes from the last committed token.
    """

    def __init__(
        self,
        scanner: ChangeScanner,
        max_retries: int = 0,
        retry_base_delay: float = 1.0,
        retry_max_delay: float = 60.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize sync coordinator.

        Args:
            scanner: Change scanner; its advancer holds the committed tokens
            max_retries: Scan retries after a transport failure
            retry_base_delay: Initial retry delay in seconds
            retry_max_delay: Maximum retry delay in seconds
            sleep: Function used to wait between retries
        """
        self._scanner = scanner
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._retry_max_delay = retry_max_delay
        self._sleep = sleep

        log.info("sync_coordinator_initialized", max_retries=max_retries)

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        connection: DirectoryConnection,
        translator: SchemaTranslator,
        checkpoint_store: CheckpointStore | None = None,
        observer: ScanObserver | None = None,
        clock: Clock | None = None,
    ) -> "SyncCoordinator":
        scanner = ChangeScanner.from_config(
            config,
            connection,
            translator,
            checkpoint_store=checkpoint_store,
            observer=observer,
            clock=clock,
        )
        return cls(
            scanner,
            max_retries=config.sync.max_retries,
            retry_base_delay=config.sync.retry_base_delay,
            retry_max_delay=config.sync.retry_max_delay,
        )

    @property
    def scanner(self) -> ChangeScanner:
        return self._scanner

    def get_latest_sync_token(self, object_class: ObjectClass) -> SyncToken:
        """Token that makes the next cycle report only changes from now on."""
        return latest_sync_token(object_class, self._scanner.clock)

    def get_committed_token(self, object_class: ObjectClass) -> SyncToken | None:
        """Last token committed for an object class, or None before the first cycle."""
        return self._scanner.advancer.last_committed(object_class.name)

    def sync_object_class(
        self,
        object_class: ObjectClass,
        handler: ChangeHandler,
        options: OperationOptions | None = None,
        since: SyncToken | None = None,
    ) -> SyncReport:
        """
        Run one polling cycle for an object class.

        Transport failures are retried with exponential backoff. A retried
        scan starts again from the same committed token, so events delivered
        by the failed attempt may be delivered again.

        Args:
            object_class: Class to poll
            handler: Receives change events (and the token, if capable)
            options: Attribute selection hints
            since: Token to resume from instead of the committed one

        Returns:
            SyncReport; ``errors`` is non-empty when nothing was committed
        """
        start_time = datetime.now()
        attempts = 0

        try:
            if since is None:
                since = self.get_committed_token(object_class)
        except Exception as e:
            return self._failed_report(object_class, None, attempts, start_time, e)

        log.info(
            "sync_cycle_started",
            object_class=object_class.name,
            since=str(since) if since is not None else None,
        )

        def attempt_scan() -> ScanSummary:
            nonlocal attempts
            attempts += 1
            return self._scanner.scan(object_class, since, handler, options)

        retrying_scan = exponential_backoff_retry(
            max_retries=self._max_retries,
            base_delay=self._retry_base_delay,
            max_delay=self._retry_max_delay,
            exceptions=(TransportError,),
            sleep=self._sleep,
        )(attempt_scan)

        try:
            summary = retrying_scan()
        except Exception as e:
            return self._failed_report(object_class, since, attempts, start_time, e)

        end_time = datetime.now()
        duration = (end_time - start_time).total_seconds()

        report = SyncReport(
            object_class=object_class.name,
            token_before=str(since) if since is not None else None,
            token_after=str(summary.token),
            entries_found=summary.entries_found,
            entries_delivered=summary.entries_delivered,
            attempts=attempts,
            duration_seconds=duration,
            start_time=start_time,
            end_time=end_time,
        )

        log.info(
            "sync_cycle_completed",
            object_class=object_class.name,
            token_before=report.token_before,
            token_after=report.token_after,
            entries_found=report.entries_found,
            entries_delivered=report.entries_delivered,
            attempts=attempts,
            duration_seconds=duration,
        )

        return report

    def sync_all(
        self,
        object_classes: Iterable[ObjectClass],
        handler: ChangeHandler,
        options: OperationOptions | None = None,
    ) -> list[SyncReport]:
        """Run one cycle per object class, in order; a failure does not stop the rest."""
        return [self.sync_object_class(oc, handler, options) for oc in object_classes]

    def _failed_report(
        self,
        object_class: ObjectClass,
        since: SyncToken | None,
        attempts: int,
        start_time: datetime,
        error: Exception,
    ) -> SyncReport:
        end_time = datetime.now()
        duration = (end_time - start_time).total_seconds()

        log.error(
            "sync_cycle_failed",
            object_class=object_class.name,
            error=str(error),
            error_type=type(error).__name__,
            attempts=attempts,
            duration_seconds=duration,
        )

        return SyncReport(
            object_class=object_class.name,
            token_before=str(since) if since is not None else None,
            token_after=None,
            attempts=max(1, attempts),
            duration_seconds=duration,
            start_time=start_time,
            end_time=end_time,
            errors=[f"Sync failed: {type(error).__name__}: {error}"],
        )
