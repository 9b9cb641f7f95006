"""In-memory directory implementing the connection interface."""

import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator

import structlog
import yaml

from dirsync.directory.connection import SearchScope
from dirsync.directory.dn import is_descendant_or_self, normalize_dn, parent_dn
from dirsync.directory.filter import parse_filter
from dirsync.exceptions import DirectoryError, FilterSyntaxError
from dirsync.models.entry import DirectoryEntry
from dirsync.utils.generalized_time import format_generalized_time

log = structlog.stdlib.get_logger()

OPERATIONAL_ATTRIBUTES: frozenset[str] = frozenset(
    {
        "modifytimestamp",
        "createtimestamp",
        "modifiersname",
        "creatorsname",
        "entryuuid",
        "entrycsn",
    }
)


class MemorySearchCursor:
    """Cursor over a materialized result list.

    ``fail_after`` makes iteration raise ``DirectoryError`` once that many
    entries have been yielded, to simulate a connection dropping mid-search.
    """

    def __init__(
        self,
        entries: list[DirectoryEntry],
        fail_after: int | None = None,
        on_close: Callable[["MemorySearchCursor"], None] | None = None,
    ):
        self._entries = entries
        self._fail_after = fail_after
        self._on_close = on_close
        self.closed = False

    def __iter__(self) -> Iterator[DirectoryEntry]:
        for index, entry in enumerate(self._entries):
            if self.closed:
                raise DirectoryError("Cursor is closed")
            if self._fail_after is not None and index >= self._fail_after:
                raise DirectoryError(f"Connection lost after {index} entries")
            yield entry

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._on_close is not None:
            self._on_close(self)


class InMemoryDirectory:
    """A directory tree held in memory.

    Entries keep insertion order, which is also the order searches return
    them in. ``add`` and ``modify`` maintain the operational attributes a
    real server would (timestamps, creator/modifier names, entryUUID).
    """

    def __init__(self, clock: Callable[[], datetime] | None = None):
        """
        Initialize an empty directory.

        Args:
            clock: Source of the current time for operational timestamps
        """
        self._entries: dict[str, DirectoryEntry] = {}
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.fail_on_search: DirectoryError | None = None
        self.fail_after: int | None = None
        self.searches: list[tuple[str, str, SearchScope, list[str]]] = []
        self.open_cursors: list[MemorySearchCursor] = []
        self.closed_cursors: list[MemorySearchCursor] = []

    # Loading

    @classmethod
    def from_records(
        cls,
        records: Iterable[dict[str, Any]],
        clock: Callable[[], datetime] | None = None,
    ) -> "InMemoryDirectory":
        """
        Build a directory from ``{"dn": ..., "attributes": {...}}`` records.

        Records are stored as given; entries without an entryUUID receive one
        derived from their DN.
        """
        directory = cls(clock=clock)
        for record in records:
            entry = DirectoryEntry.model_validate(record)
            if not entry.has_attribute("entryUUID"):
                entry.attributes["entryUUID"] = [str(uuid.uuid5(uuid.NAMESPACE_URL, normalize_dn(entry.dn)))]
            directory._entries[normalize_dn(entry.dn)] = entry
        log.info("in_memory_directory_loaded", entry_count=len(directory._entries))
        return directory

    @classmethod
    def from_yaml(
        cls, path: str | Path, clock: Callable[[], datetime] | None = None
    ) -> "InMemoryDirectory":
        """
        Load a directory fixture from a YAML file with a top-level ``entries`` list.

        Raises:
            DirectoryError: If the file cannot be read or has the wrong shape
        """
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise DirectoryError(f"Failed to load directory fixture {path}: {e}") from e

        records = data.get("entries") if isinstance(data, dict) else None
        if not isinstance(records, list):
            raise DirectoryError(f"Directory fixture {path} must contain an 'entries' list")
        return cls.from_records(records, clock=clock)

    # Mutation

    def _now(self) -> str:
        return format_generalized_time(self._clock())

    def add(
        self,
        dn: str,
        attributes: dict[str, Any],
        creator: str = "cn=admin",
        timestamp: str | None = None,
    ) -> DirectoryEntry:
        """Add an entry, stamping createTimestamp, creatorsName and entryUUID."""
        key = normalize_dn(dn)
        if key in self._entries:
            raise DirectoryError(f"Entry already exists: {dn}")
        entry = DirectoryEntry(dn=dn, attributes=attributes)
        entry.attributes["createTimestamp"] = [timestamp or self._now()]
        entry.attributes["creatorsName"] = [creator]
        if not entry.has_attribute("entryUUID"):
            entry.attributes["entryUUID"] = [str(uuid.uuid4())]
        self._entries[key] = entry
        return entry

    def modify(
        self,
        dn: str,
        changes: dict[str, Any],
        modifier: str = "cn=admin",
        timestamp: str | None = None,
    ) -> DirectoryEntry:
        """Replace attribute values (None removes), stamping modifyTimestamp and modifiersName."""
        key = normalize_dn(dn)
        if key not in self._entries:
            raise DirectoryError(f"No such entry: {dn}")
        current = self._entries[key]
        attributes = {k: list(v) for k, v in current.attributes.items()}
        stamped = dict(changes)
        stamped["modifyTimestamp"] = timestamp or self._now()
        stamped["modifiersName"] = modifier
        for name, value in stamped.items():
            for existing in [k for k in attributes if k.lower() == name.lower()]:
                del attributes[existing]
            if value is not None:
                attributes[name] = value if isinstance(value, list) else [value]
        entry = DirectoryEntry(dn=current.dn, attributes=attributes)
        self._entries[key] = entry
        return entry

    def delete(self, dn: str) -> None:
        if self._entries.pop(normalize_dn(dn), None) is None:
            raise DirectoryError(f"No such entry: {dn}")

    def get(self, dn: str) -> DirectoryEntry | None:
        return self._entries.get(normalize_dn(dn))

    def __len__(self) -> int:
        return len(self._entries)

    # DirectoryConnection

    def search(
        self,
        base: str,
        filter_text: str,
        scope: SearchScope,
        attributes: list[str],
    ) -> MemorySearchCursor:
        """
        Search entries under ``base`` matching ``filter_text``.

        Raises:
            DirectoryError: If the filter is malformed or a failure is injected
        """
        self.searches.append((base, filter_text, scope, list(attributes)))
        if self.fail_on_search is not None:
            raise self.fail_on_search

        try:
            node = parse_filter(filter_text)
        except FilterSyntaxError as e:
            raise DirectoryError(f"Invalid search filter: {e}") from e

        results = [
            entry.project(attributes, set(OPERATIONAL_ATTRIBUTES))
            for entry in self._entries.values()
            if self._in_scope(entry.dn, base, scope) and node.matches(entry)
        ]
        log.debug(
            "in_memory_search",
            base=base,
            filter=filter_text,
            scope=scope.value,
            result_count=len(results),
        )

        cursor = MemorySearchCursor(results, fail_after=self.fail_after, on_close=self._cursor_closed)
        self.open_cursors.append(cursor)
        return cursor

    def _cursor_closed(self, cursor: MemorySearchCursor) -> None:
        self.open_cursors.remove(cursor)
        self.closed_cursors.append(cursor)

    @staticmethod
    def _in_scope(dn: str, base: str, scope: SearchScope) -> bool:
        if scope == SearchScope.BASE:
            return normalize_dn(dn) == normalize_dn(base)
        if scope == SearchScope.ONE_LEVEL:
            return parent_dn(dn) == normalize_dn(base)
        return is_descendant_or_self(dn, base)
