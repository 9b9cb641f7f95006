"""Change handler capabilities.

A handler always receives change events. Receiving the final resume token is
a separate capability: a handler opts in by subclassing ``SyncTokenHandler``.
"""

from abc import ABC, abstractmethod
from typing import Callable

import structlog

from dirsync.sync.models import ChangeEvent, SyncToken

log = structlog.stdlib.get_logger()


class ChangeHandler(ABC):
    """Receives change events, one call per accepted entry, in scan order."""

    @abstractmethod
    def handle(self, event: ChangeEvent) -> None:
        """Process one event. Raising aborts the scan without committing a token."""


class SyncTokenHandler(ABC):
    """Receives the resume token once a scan has completed."""

    @abstractmethod
    def handle_result(self, token: SyncToken) -> None:
        """Called exactly once per successful scan, after the last event."""


def accepts_final_token(handler: object) -> bool:
    """True if the handler declared the final-token capability."""
    return isinstance(handler, SyncTokenHandler)


class CallbackHandler(ChangeHandler):
    """Adapts a plain function to ``ChangeHandler``."""

    def __init__(self, callback: Callable[[ChangeEvent], None]):
        self._callback = callback

    def handle(self, event: ChangeEvent) -> None:
        self._callback(event)


class CollectingHandler(ChangeHandler, SyncTokenHandler):
    """Keeps every event and the final token in memory."""

    def __init__(self) -> None:
        self.events: list[ChangeEvent] = []
        self.final_tokens: list[SyncToken] = []

    def handle(self, event: ChangeEvent) -> None:
        self.events.append(event)

    def handle_result(self, token: SyncToken) -> None:
        self.final_tokens.append(token)

    @property
    def final_token(self) -> SyncToken | None:
        return self.final_tokens[-1] if self.final_tokens else None

    @property
    def uids(self) -> list[str]:
        return [event.uid for event in self.events]


class LoggingChangeHandler(ChangeHandler, SyncTokenHandler):
    """Logs each change; used by the scheduled sync script."""

    def __init__(self) -> None:
        self.event_count = 0

    def handle(self, event: ChangeEvent) -> None:
        self.event_count += 1
        log.info(
            "change_received",
            delta_type=event.delta_type.value,
            object_class=event.obj.object_class,
            uid=event.obj.uid,
            name=event.obj.name,
            token=str(event.token),
        )

    def handle_result(self, token: SyncToken) -> None:
        log.info("sync_token_received", token=str(token), event_count=self.event_count)
