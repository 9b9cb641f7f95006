"""Observability hooks called by the change scanner."""

from collections import Counter

import structlog

from dirsync.models.entry import DirectoryEntry
from dirsync.sync.models import ChangeEvent, ScanSummary

log = structlog.stdlib.get_logger()


class ScanObserver:
    """No-op hooks; subclasses override what they need."""

    def search_started(
        self, object_class: str, base_context: str, filter_text: str, attributes: list[str]
    ) -> None:
        pass

    def entry_found(self, entry: DirectoryEntry) -> None:
        pass

    def entry_rejected(self, entry: DirectoryEntry) -> None:
        pass

    def event_delivered(self, event: ChangeEvent) -> None:
        pass

    def scan_completed(self, summary: ScanSummary) -> None:
        pass

    def scan_failed(self, object_class: str, filter_text: str | None, error: BaseException) -> None:
        pass


class LoggingScanObserver(ScanObserver):
    """Emits structured log events for each scan step."""

    def __init__(self, logger: structlog.stdlib.BoundLogger | None = None):
        self._log = logger or log

    def search_started(
        self, object_class: str, base_context: str, filter_text: str, attributes: list[str]
    ) -> None:
        self._log.info(
            "change_search_started",
            object_class=object_class,
            base_context=base_context,
            filter=filter_text,
            attributes=attributes,
        )

    def entry_found(self, entry: DirectoryEntry) -> None:
        self._log.debug("change_entry_found", dn=entry.dn)

    def entry_rejected(self, entry: DirectoryEntry) -> None:
        self._log.debug("change_entry_rejected", dn=entry.dn)

    def scan_completed(self, summary: ScanSummary) -> None:
        self._log.info(
            "change_search_completed",
            object_class=summary.object_class,
            base_context=summary.base_context,
            filter=summary.filter_text,
            entries_found=summary.entries_found,
            entries_delivered=summary.entries_delivered,
            token=str(summary.token),
        )

    def scan_failed(self, object_class: str, filter_text: str | None, error: BaseException) -> None:
        self._log.error(
            "change_search_failed",
            object_class=object_class,
            filter=filter_text,
            error=str(error),
            error_type=type(error).__name__,
        )


class CountingScanObserver(ScanObserver):
    """Counts hook calls; handy in tests and health checks."""

    def __init__(self) -> None:
        self.counts: Counter[str] = Counter()
        self.filters: list[str] = []
        self.summaries: list[ScanSummary] = []
        self.errors: list[BaseException] = []

    def search_started(
        self, object_class: str, base_context: str, filter_text: str, attributes: list[str]
    ) -> None:
        self.counts["search_started"] += 1
        self.filters.append(filter_text)

    def entry_found(self, entry: DirectoryEntry) -> None:
        self.counts["entry_found"] += 1

    def entry_rejected(self, entry: DirectoryEntry) -> None:
        self.counts["entry_rejected"] += 1

    def event_delivered(self, event: ChangeEvent) -> None:
        self.counts["event_delivered"] += 1

    def scan_completed(self, summary: ScanSummary) -> None:
        self.counts["scan_completed"] += 1
        self.summaries.append(summary)

    def scan_failed(self, object_class: str, filter_text: str | None, error: BaseException) -> None:
        self.counts["scan_failed"] += 1
        self.errors.append(error)


class CompositeScanObserver(ScanObserver):
    """Fans each hook out to several observers."""

    def __init__(self, *observers: ScanObserver):
        self._observers = observers

    def search_started(
        self, object_class: str, base_context: str, filter_text: str, attributes: list[str]
    ) -> None:
        for observer in self._observers:
            observer.search_started(object_class, base_context, filter_text, attributes)

    def entry_found(self, entry: DirectoryEntry) -> None:
        for observer in self._observers:
            observer.entry_found(entry)

    def entry_rejected(self, entry: DirectoryEntry) -> None:
        for observer in self._observers:
            observer.entry_rejected(entry)

    def event_delivered(self, event: ChangeEvent) -> None:
        for observer in self._observers:
            observer.event_delivered(event)

    def scan_completed(self, summary: ScanSummary) -> None:
        for observer in self._observers:
            observer.scan_completed(summary)

    def scan_failed(self, object_class: str, filter_text: str | None, error: BaseException) -> None:
        for observer in self._observers:
            observer.scan_failed(object_class, filter_text, error)
