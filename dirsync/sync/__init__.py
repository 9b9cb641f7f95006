"""Change polling: watermarks, scanning, advancement and coordination."""

from dirsync.sync.acceptance import (
    AcceptancePredicate,
    accept_all,
    default_acceptance_predicate,
    make_acceptance_predicate,
)
from dirsync.sync.advancer import CycleState, WatermarkAdvancer
from dirsync.sync.checkpoint_store import (
    CheckpointStore,
    InMemoryCheckpointStore,
    JsonFileCheckpointStore,
)
from dirsync.sync.handlers import (
    CallbackHandler,
    ChangeHandler,
    CollectingHandler,
    LoggingChangeHandler,
    SyncTokenHandler,
)
from dirsync.sync.models import (
    ChangeEvent,
    ScanSummary,
    SyncDeltaType,
    SyncReport,
    SyncState,
    SyncToken,
)
from dirsync.sync.observers import CountingScanObserver, LoggingScanObserver, ScanObserver
from dirsync.sync.query_builder import ChangeQuery, build_change_filter
from dirsync.sync.scanner import ChangeScanner
from dirsync.sync.sync_coordinator import SyncCoordinator
from dirsync.sync.watermark import current_watermark, latest_sync_token, watermark_from_token

__all__ = [
    "AcceptancePredicate",
    "CallbackHandler",
    "ChangeEvent",
    "ChangeHandler",
    "ChangeQuery",
    "ChangeScanner",
    "CheckpointStore",
    "CollectingHandler",
    "CountingScanObserver",
    "CycleState",
    "InMemoryCheckpointStore",
    "JsonFileCheckpointStore",
    "LoggingChangeHandler",
    "LoggingScanObserver",
    "ScanObserver",
    "ScanSummary",
    "SyncCoordinator",
    "SyncDeltaType",
    "SyncReport",
    "SyncState",
    "SyncToken",
    "SyncTokenHandler",
    "WatermarkAdvancer",
    "accept_all",
    "build_change_filter",
    "current_watermark",
    "default_acceptance_predicate",
    "latest_sync_token",
    "make_acceptance_predicate",
    "watermark_from_token",
]
