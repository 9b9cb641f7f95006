"""Persistence of committed watermarks per object class."""

import json
import os
import tempfile
from pathlib import Path
from typing import Protocol

import structlog
from pydantic import ValidationError

from dirsync.sync.models import SyncState

log = structlog.stdlib.get_logger()


class CheckpointStore(Protocol):
    """Keeps the last committed sync state of each object class."""

    def load(self, object_class: str) -> SyncState | None: ...

    def save(self, state: SyncState) -> None: ...


class InMemoryCheckpointStore:
    """Checkpoint store that lives as long as the process."""

    def __init__(self) -> None:
        self._states: dict[str, SyncState] = {}
        self.save_count = 0

    def load(self, object_class: str) -> SyncState | None:
        return self._states.get(object_class)

    def save(self, state: SyncState) -> None:
        self._states[state.object_class] = state
        self.save_count += 1


class JsonFileCheckpointStore:
    """Stores sync states in a single JSON document keyed by object class."""

    def __init__(self, path: str | Path):
        """
        Initialize checkpoint store.

        Args:
            path: JSON file to read and write; created on first save
        """
        self._path = Path(path)
        log.info("checkpoint_store_initialized", path=str(self._path))

    def _read_all(self) -> dict[str, dict]:
        if not self._path.exists():
            return {}
        with open(self._path, "r") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Checkpoint file {self._path} does not hold a JSON object")
        return data

    def load(self, object_class: str) -> SyncState | None:
        """
        Load the committed state of an object class.

        Args:
            object_class: Connector object class name

        Returns:
            SyncState if one was committed, None otherwise

        Raises:
            RuntimeError: If the file cannot be read or parsed
        """
        log.debug("loading_sync_state", object_class=object_class, path=str(self._path))

        try:
            raw = self._read_all().get(object_class)
            if raw is None:
                log.info("no_sync_state_found", object_class=object_class)
                return None
            state = SyncState.model_validate(raw)
        except (OSError, ValueError, ValidationError) as e:
            log.error(
                "failed_to_load_sync_state",
                object_class=object_class,
                path=str(self._path),
                error=str(e),
            )
            raise RuntimeError(f"Failed to load sync state: {e}") from e

        log.info("sync_state_loaded", object_class=object_class, token=state.token)
        return state

    def save(self, state: SyncState) -> None:
        """
        Save the committed state of an object class.

        The document is rewritten through a temporary file and an atomic
        rename, so a crash never leaves a half-written checkpoint.

        Raises:
            RuntimeError: If the file cannot be written
        """
        log.info(
            "saving_sync_state",
            object_class=state.object_class,
            token=state.token,
            entries_found=state.entries_found,
            entries_delivered=state.entries_delivered,
        )

        try:
            data = self._read_all()
            data[state.object_class] = state.model_dump(mode="json")

            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self._path.parent, prefix=".checkpoint-", suffix=".json")
            try:
                with os.fdopen(fd, "w") as f:
                    json.dump(data, f, indent=2, sort_keys=True)
                os.replace(tmp_path, self._path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except (OSError, ValueError) as e:
            log.error(
                "failed_to_save_sync_state",
                object_class=state.object_class,
                path=str(self._path),
                error=str(e),
            )
            raise RuntimeError(f"Failed to save sync state: {e}") from e

        log.info("sync_state_saved", object_class=state.object_class)
