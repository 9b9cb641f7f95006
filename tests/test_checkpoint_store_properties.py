"""Property-based tests for checkpoint persistence.

Feature: directory-change-polling
"""

from datetime import datetime, timezone
from pathlib import Path

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from dirsync.sync.checkpoint_store import InMemoryCheckpointStore, JsonFileCheckpointStore
from dirsync.sync.models import SyncState
from dirsync.utils.generalized_time import format_generalized_time


@st.composite
def sync_state_strategy(draw: st.DrawFn, object_class: str | None = None) -> SyncState:
    """Generate a random committed SyncState."""
    if object_class is None:
        object_class = draw(st.sampled_from(["__ACCOUNT__", "__GROUP__", "__ALL__", "posixGroup"]))
    committed = draw(
        st.datetimes(min_value=datetime(2000, 1, 1), max_value=datetime(2100, 1, 1))
    ).replace(tzinfo=timezone.utc)
    found = draw(st.integers(min_value=0, max_value=10_000))
    delivered = draw(st.integers(min_value=0, max_value=found))
    return SyncState(
        object_class=object_class,
        token=format_generalized_time(committed),
        last_sync_timestamp=committed,
        entries_found=found,
        entries_delivered=delivered,
    )


@given(states=st.lists(sync_state_strategy(), min_size=1, max_size=10))
@settings(max_examples=50, suppress_health_check=[HealthCheck.function_scoped_fixture])
def test_json_store_returns_last_saved_state_per_class(tmp_path: Path, states: list[SyncState]):
    """The file store keeps one state per object class: the last one saved.

    **Feature: directory-change-polling, Property 6: Checkpoint persistence**
    """
    path = tmp_path / f"checkpoints-{id(states)}.json"
    store = JsonFileCheckpointStore(path)

    expected: dict[str, SyncState] = {}
    for state in states:
        store.save(state)
        expected[state.object_class] = state

    reopened = JsonFileCheckpointStore(path)
    for object_class, state in expected.items():
        assert reopened.load(object_class) == state
    assert [p.name for p in tmp_path.iterdir() if p.name.startswith(".checkpoint-")] == []


class TestJsonFileCheckpointStore:
    def test_missing_file_means_no_checkpoint(self, tmp_path: Path) -> None:
        store = JsonFileCheckpointStore(tmp_path / "none.json")

        assert store.load("__ACCOUNT__") is None

    def test_save_creates_parent_directories(self, tmp_path: Path) -> None:
        path = tmp_path / "state" / "nested" / "checkpoints.json"
        state = SyncState(
            object_class="__ACCOUNT__",
            token="20240101000000Z",
            last_sync_timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )

        JsonFileCheckpointStore(path).save(state)

        assert path.exists()
        assert JsonFileCheckpointStore(path).load("__ACCOUNT__").token == "20240101000000Z"

    def test_corrupt_file_raises_runtime_error(self, tmp_path: Path) -> None:
        path = tmp_path / "checkpoints.json"
        path.write_text("{not json")

        with pytest.raises(RuntimeError, match="Failed to load sync state"):
            JsonFileCheckpointStore(path).load("__ACCOUNT__")

    def test_non_object_document_raises_runtime_error(self, tmp_path: Path) -> None:
        path = tmp_path / "checkpoints.json"
        path.write_text("[1, 2, 3]")

        with pytest.raises(RuntimeError):
            JsonFileCheckpointStore(path).load("__ACCOUNT__")

    def test_invalid_state_raises_runtime_error(self, tmp_path: Path) -> None:
        path = tmp_path / "checkpoints.json"
        path.write_text('{"__ACCOUNT__": {"object_class": "__ACCOUNT__"}}')

        with pytest.raises(RuntimeError):
            JsonFileCheckpointStore(path).load("__ACCOUNT__")

    def test_unwritable_location_raises_runtime_error(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("")
        state = SyncState(
            object_class="__ACCOUNT__",
            token="20240101000000Z",
            last_sync_timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )

        with pytest.raises(RuntimeError, match="Failed to save sync state"):
            JsonFileCheckpointStore(blocker / "checkpoints.json").save(state)


class TestInMemoryCheckpointStore:
    def test_save_and_load(self) -> None:
        store = InMemoryCheckpointStore()
        state = SyncState(
            object_class="__GROUP__",
            token="20240101000000Z",
            last_sync_timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )

        store.save(state)

        assert store.load("__GROUP__") == state
        assert store.load("__ACCOUNT__") is None
        assert store.save_count == 1
