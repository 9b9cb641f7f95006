"""Watermark advancement across polling cycles.

A cycle captures its resume watermark before the search starts and publishes
it only after the scan has finished. Any change that lands while the search
runs is therefore at or after the published watermark and is found again by
the next cycle. Changes can be delivered twice; none are skipped.
"""

from datetime import datetime, timezone
from enum import Enum

import structlog

from dirsync.exceptions import SyncStateError
from dirsync.sync.checkpoint_store import CheckpointStore
from dirsync.sync.handlers import accepts_final_token
from dirsync.sync.models import SyncState, SyncToken
from dirsync.sync.watermark import Clock, current_watermark, max_watermark

log = structlog.stdlib.get_logger()


class CycleState(str, Enum):
    IDLE = "IDLE"
    WATERMARK_CAPTURED = "WATERMARK_CAPTURED"
    SCANNING = "SCANNING"
    COMPLETED = "COMPLETED"


class WatermarkAdvancer:
    """Drives one polling cycle at a time through capture, scan and commit.

    Cycles for the same advancer must not overlap; the caller serializes them.
    """

    def __init__(self, checkpoint_store: CheckpointStore | None = None, clock: Clock | None = None):
        """
        Initialize advancer.

        Args:
            checkpoint_store: Where committed watermarks are persisted (optional)
            clock: Time source for captured watermarks
        """
        self._store = checkpoint_store
        self._clock = clock
        self._state = CycleState.IDLE
        self._object_class: str | None = None
        self._captured: str | None = None
        self._committed: dict[str, str] = {}

    @property
    def state(self) -> CycleState:
        return self._state

    @property
    def captured(self) -> SyncToken | None:
        """Resume token of the cycle in progress."""
        return SyncToken(value=self._captured) if self._captured is not None else None

    def _require(self, expected: CycleState, action: str) -> None:
        if self._state != expected:
            raise SyncStateError(
                f"Cannot {action} while cycle is {self._state.value}, expected {expected.value}"
            )

    def last_committed(self, object_class: str) -> SyncToken | None:
        """Authoritative checkpoint of an object class, or None if none was committed."""
        watermark = self._committed.get(object_class)
        if watermark is None and self._store is not None:
            state = self._store.load(object_class)
            if state is not None:
                watermark = state.token
                self._committed[object_class] = watermark
        return SyncToken(value=watermark) if watermark is not None else None

    def capture(self, object_class: str, floor: str | None = None) -> SyncToken:
        """
        Capture the resume watermark for a new cycle.

        The watermark is never earlier than the last committed one or
        ``floor``; if the clock went backwards the earlier bound is reused.

        Args:
            object_class: Object class being polled
            floor: Lower bound for the watermark (the cycle's search watermark)

        Returns:
            Token every event of this cycle is tagged with
        """
        self._require(CycleState.IDLE, "capture a watermark")

        now = current_watermark(self._clock)
        watermark = now
        previous = self.last_committed(object_class)
        for bound in (previous.value if previous else None, floor):
            if bound is not None:
                watermark = max_watermark(watermark, bound)
        if watermark != now:
            log.warning(
                "clock_regression_detected",
                object_class=object_class,
                now=now,
                watermark=watermark,
            )

        self._object_class = object_class
        self._captured = watermark
        self._state = CycleState.WATERMARK_CAPTURED
        log.debug("watermark_captured", object_class=object_class, watermark=watermark)
        return SyncToken(value=watermark)

    def begin_scan(self) -> None:
        self._require(CycleState.WATERMARK_CAPTURED, "begin scanning")
        self._state = CycleState.SCANNING

    def commit(
        self,
        handler: object | None = None,
        entries_found: int = 0,
        entries_delivered: int = 0,
    ) -> SyncToken:
        """
        Publish the captured watermark as the new checkpoint.

        The handler receives the token first (if it accepts final tokens),
        then the checkpoint store is updated. A failure in either leaves the
        cycle aborted and the previous checkpoint in place.

        Returns:
            The committed token
        """
        self._require(CycleState.SCANNING, "commit")
        assert self._object_class is not None and self._captured is not None
        object_class, watermark = self._object_class, self._captured
        token = SyncToken(value=watermark)
        self._state = CycleState.COMPLETED

        try:
            if handler is not None and accepts_final_token(handler):
                handler.handle_result(token)

            if self._store is not None:
                self._store.save(
                    SyncState(
                        object_class=object_class,
                        token=watermark,
                        last_sync_timestamp=datetime.now(timezone.utc),
                        entries_found=entries_found,
                        entries_delivered=entries_delivered,
                    )
                )
        except Exception as e:
            self.abort(e)
            raise

        self._committed[object_class] = watermark
        log.info("watermark_committed", object_class=object_class, watermark=watermark)
        self._reset()
        return token

    def abort(self, error: BaseException | None = None) -> None:
        """Abandon the cycle in progress; the last committed watermark stays authoritative."""
        if self._state == CycleState.IDLE:
            return
        previous = self._committed.get(self._object_class or "")
        log.warning(
            "cycle_aborted",
            object_class=self._object_class,
            state=self._state.value,
            captured=self._captured,
            committed=previous,
            error=str(error) if error else None,
        )
        self._reset()

    def _reset(self) -> None:
        self._state = CycleState.IDLE
        self._object_class = None
        self._captured = None
