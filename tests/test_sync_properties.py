"""Property-based tests for the synchronization coordinator.

**Feature: directory-change-polling, Property 12: Retry on transport failure**
**Feature: directory-change-polling, Property 13: Failed cycles are reported, not raised**
"""

from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from conftest import ADMIN_DN, BASE_DN, SYNC_DN, FixedClock, group, person
from dirsync.directory.connection import SearchScope
from dirsync.directory.memory import InMemoryDirectory
from dirsync.directory.schema import MappingSchemaTranslator
from dirsync.exceptions import DirectoryError
from dirsync.models.config import AppConfig, DirectoryConfig, SyncConfig
from dirsync.models.entry import ObjectClass
from dirsync.sync.checkpoint_store import InMemoryCheckpointStore, JsonFileCheckpointStore
from dirsync.sync.handlers import CollectingHandler
from dirsync.sync.models import SyncToken
from dirsync.sync.scanner import ChangeScanner
from dirsync.sync.sync_coordinator import SyncCoordinator

ACCOUNT = ObjectClass(name="__ACCOUNT__")
GROUP = ObjectClass(name="__GROUP__")


class FlakyConnection:
    """Delegates to a directory after failing the first ``failures`` searches."""

    def __init__(self, directory: InMemoryDirectory, failures: int):
        self._directory = directory
        self._failures = failures
        self.calls = 0

    def search(self, base: str, filter_text: str, scope: SearchScope, attributes: list[str]):
        self.calls += 1
        if self.calls <= self._failures:
            raise DirectoryError(f"connection reset (attempt {self.calls})")
        return self._directory.search(base, filter_text, scope, attributes)


@pytest.fixture
def directory(clock: FixedClock) -> InMemoryDirectory:
    return InMemoryDirectory.from_records(
        [
            person(
                "uid=a,ou=people,dc=example,dc=com",
                "a",
                createTimestamp="20240101000100Z",
                creatorsName=ADMIN_DN,
            ),
            person(
                "uid=s,ou=people,dc=example,dc=com",
                "s",
                createTimestamp="20240101000200Z",
                creatorsName=SYNC_DN,
            ),
            group(
                "cn=g,ou=groups,dc=example,dc=com",
                "g",
                createTimestamp="20240101000300Z",
                creatorsName=ADMIN_DN,
            ),
        ],
        clock=clock,
    )


def make_coordinator(
    connection,
    translator: MappingSchemaTranslator,
    clock: FixedClock,
    store=None,
    max_retries: int = 3,
    sleeps: list[float] | None = None,
) -> SyncCoordinator:
    config = AppConfig(
        directory=DirectoryConfig(base_context=BASE_DN, modifiers_names_to_filter_out=[SYNC_DN]),
        sync=SyncConfig(max_retries=max_retries, retry_base_delay=0.5, retry_max_delay=1.5),
    )
    scanner = ChangeScanner.from_config(
        config, connection, translator, checkpoint_store=store or InMemoryCheckpointStore(), clock=clock
    )
    recorded = sleeps if sleeps is not None else []
    return SyncCoordinator(
        scanner,
        max_retries=config.sync.max_retries,
        retry_base_delay=config.sync.retry_base_delay,
        retry_max_delay=config.sync.retry_max_delay,
        sleep=recorded.append,
    )


@given(st.integers(min_value=0, max_value=6), st.integers(min_value=0, max_value=4))
@settings(max_examples=60)
def test_transport_failures_are_retried_up_to_the_limit(failures: int, max_retries: int):
    """A cycle succeeds when failures <= max_retries, and is reported as failed otherwise."""
    clock = FixedClock()
    directory = InMemoryDirectory.from_records(
        [person("uid=a,ou=people,dc=example,dc=com", "a", createTimestamp="20240101000100Z")],
        clock=clock,
    )
    translator = MappingSchemaTranslator.from_config(DirectoryConfig(base_context=BASE_DN))
    connection = FlakyConnection(directory, failures)
    sleeps: list[float] = []
    coordinator = make_coordinator(connection, translator, clock, max_retries=max_retries, sleeps=sleeps)
    handler = CollectingHandler()

    report = coordinator.sync_object_class(ACCOUNT, handler, since=SyncToken(value="20240101000000Z"))

    if failures <= max_retries:
        assert report.success
        assert report.attempts == failures + 1
        assert report.entries_delivered == 1
        assert coordinator.get_committed_token(ACCOUNT) == SyncToken(value=report.token_after)
    else:
        assert not report.success
        assert report.attempts == max_retries + 1
        assert report.token_after is None
        assert "TransportError" in report.errors[0]
        assert coordinator.get_committed_token(ACCOUNT) is None
    assert sleeps == [min(0.5 * 2**i, 1.5) for i in range(min(failures, max_retries))]


class TestSyncObjectClass:
    def test_successful_cycle_report(
        self, directory: InMemoryDirectory, translator: MappingSchemaTranslator, clock: FixedClock
    ) -> None:
        coordinator = make_coordinator(directory, translator, clock)
        handler = CollectingHandler()

        report = coordinator.sync_object_class(ACCOUNT, handler, since=SyncToken(value="20240101000000Z"))

        assert report.success
        assert report.object_class == "__ACCOUNT__"
        assert report.token_before == "20240101000000Z"
        assert report.token_after == "20240101010000Z"
        assert (report.entries_found, report.entries_delivered) == (3, 1)
        assert report.attempts == 1
        assert report.end_time >= report.start_time
        assert handler.final_token == SyncToken(value="20240101010000Z")

    def test_next_cycle_resumes_from_committed_token(
        self, directory: InMemoryDirectory, translator: MappingSchemaTranslator, clock: FixedClock
    ) -> None:
        coordinator = make_coordinator(directory, translator, clock)
        coordinator.sync_object_class(ACCOUNT, CollectingHandler(), since=SyncToken(value="20240101000000Z"))

        clock.advance(120)
        directory.modify("uid=a,ou=people,dc=example,dc=com", {"mail": "a@example.com"}, modifier=ADMIN_DN)
        handler = CollectingHandler()
        report = coordinator.sync_object_class(ACCOUNT, handler)

        assert report.token_before == "20240101010000Z"
        assert report.token_after == "20240101010200Z"
        assert [event.obj.attributes["mail"] for event in handler.events] == [["a@example.com"]]

    def test_first_cycle_without_checkpoint_starts_from_now(
        self, directory: InMemoryDirectory, translator: MappingSchemaTranslator, clock: FixedClock
    ) -> None:
        coordinator = make_coordinator(directory, translator, clock)

        report = coordinator.sync_object_class(ACCOUNT, CollectingHandler())

        assert report.token_before is None
        assert report.entries_found == 0
        assert report.token_after == str(coordinator.get_latest_sync_token(ACCOUNT))

    def test_invalid_token_is_reported_without_retrying(
        self, directory: InMemoryDirectory, translator: MappingSchemaTranslator, clock: FixedClock
    ) -> None:
        sleeps: list[float] = []
        coordinator = make_coordinator(directory, translator, clock, sleeps=sleeps)

        report = coordinator.sync_object_class(ACCOUNT, CollectingHandler(), since=SyncToken(value=42))

        assert not report.success
        assert report.attempts == 1
        assert "InvalidArgumentError" in report.errors[0]
        assert sleeps == []
        assert directory.searches == []

    def test_unknown_object_class_is_reported(
        self, directory: InMemoryDirectory, translator: MappingSchemaTranslator, clock: FixedClock
    ) -> None:
        report = make_coordinator(directory, translator, clock).sync_object_class(
            ObjectClass(name="__PRINTER__"), CollectingHandler()
        )

        assert not report.success
        assert "__PRINTER__" in report.errors[0]

    def test_unreadable_checkpoint_is_reported(
        self, tmp_path: Path, directory: InMemoryDirectory, translator: MappingSchemaTranslator, clock: FixedClock
    ) -> None:
        path = tmp_path / "checkpoints.json"
        path.write_text("{broken")
        coordinator = make_coordinator(directory, translator, clock, store=JsonFileCheckpointStore(path))

        report = coordinator.sync_object_class(ACCOUNT, CollectingHandler())

        assert not report.success
        assert report.token_before is None
        assert "Failed to load sync state" in report.errors[0]
        assert directory.searches == []

    def test_checkpoint_survives_restart(
        self, tmp_path: Path, directory: InMemoryDirectory, translator: MappingSchemaTranslator, clock: FixedClock
    ) -> None:
        path = tmp_path / "checkpoints.json"
        first = make_coordinator(directory, translator, clock, store=JsonFileCheckpointStore(path))
        first.sync_object_class(ACCOUNT, CollectingHandler(), since=SyncToken(value="20240101000000Z"))

        restarted = make_coordinator(directory, translator, clock, store=JsonFileCheckpointStore(path))

        assert restarted.get_committed_token(ACCOUNT) == SyncToken(value="20240101010000Z")


class TestSyncAll:
    def test_one_report_per_object_class_in_order(
        self, directory: InMemoryDirectory, translator: MappingSchemaTranslator, clock: FixedClock
    ) -> None:
        coordinator = make_coordinator(directory, translator, clock)
        for object_class in (ACCOUNT, GROUP):
            coordinator.sync_object_class(object_class, CollectingHandler(), since=SyncToken(value="20240101000000Z"))

        clock.advance(60)
        directory.modify("cn=g,ou=groups,dc=example,dc=com", {"description": "renamed"}, modifier=ADMIN_DN)
        handler = CollectingHandler()
        reports = coordinator.sync_all([ACCOUNT, GROUP], handler)

        assert [report.object_class for report in reports] == ["__ACCOUNT__", "__GROUP__"]
        assert all(report.success for report in reports)
        assert [event.obj.object_class for event in handler.events] == ["__GROUP__"]
        assert len(handler.final_tokens) == 2

    def test_failure_of_one_class_does_not_stop_the_rest(
        self, directory: InMemoryDirectory, translator: MappingSchemaTranslator, clock: FixedClock
    ) -> None:
        coordinator = make_coordinator(directory, translator, clock)

        reports = coordinator.sync_all([ObjectClass(name="__PRINTER__"), GROUP], CollectingHandler())

        assert [report.success for report in reports] == [False, True]


class TestLatestSyncToken:
    def test_latest_token_uses_scanner_clock(
        self, directory: InMemoryDirectory, translator: MappingSchemaTranslator, clock: FixedClock
    ) -> None:
        coordinator = make_coordinator(directory, translator, clock)
        clock.set("20250615123456Z")

        assert coordinator.get_latest_sync_token(GROUP) == SyncToken(value="20250615123456Z")

    def test_from_config(self, directory: InMemoryDirectory, translator: MappingSchemaTranslator, clock: FixedClock) -> None:
        config = AppConfig(directory=DirectoryConfig(base_context=BASE_DN))

        coordinator = SyncCoordinator.from_config(config, directory, translator, clock=clock)

        assert coordinator.scanner.base_context == BASE_DN
        assert coordinator.get_committed_token(ACCOUNT) is None
