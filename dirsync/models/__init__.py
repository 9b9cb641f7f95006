"""Data models for directory change polling."""

from dirsync.models.config import (
    AppConfig,
    DirectoryConfig,
    LoggingConfig,
    ObjectClassMapping,
    SyncConfig,
)
from dirsync.models.entry import (
    ConnectorObject,
    DirectoryEntry,
    ObjectClass,
    ObjectClassInfo,
    OperationOptions,
)

__all__ = [
    "AppConfig",
    "ConnectorObject",
    "DirectoryConfig",
    "DirectoryEntry",
    "LoggingConfig",
    "ObjectClass",
    "ObjectClassInfo",
    "ObjectClassMapping",
    "OperationOptions",
    "SyncConfig",
]
