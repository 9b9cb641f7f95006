"""Directory connection interface consumed by the change scanner."""

from enum import Enum
from typing import Iterator, Protocol

from dirsync.models.entry import DirectoryEntry


class SearchScope(str, Enum):
    """How far below the base DN a search reaches."""

    BASE = "base"
    ONE_LEVEL = "one"
    SUBTREE = "sub"


class SearchCursor(Protocol):
    """
    Iterable result of a search.

    Iteration yields entries in server order and raises ``DirectoryError`` on
    I/O failure. ``close`` releases the server-side resources and must be
    safe to call after a failure.
    """

    def __iter__(self) -> Iterator[DirectoryEntry]: ...

    def close(self) -> None: ...


class DirectoryConnection(Protocol):
    """Read access to a directory server."""

    def search(
        self,
        base: str,
        filter_text: str,
        scope: SearchScope,
        attributes: list[str],
    ) -> SearchCursor:
        """
        Start a search.

        Raises:
            DirectoryError: If the request cannot be issued
        """
        ...
