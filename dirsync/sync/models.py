"""Data models for synchronization operations."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from dirsync.models.entry import ConnectorObject


class SyncToken(BaseModel):
    """Opaque checkpoint handed to and received from callers.

    The value is normally a watermark string; anything else is rejected when
    the token is used to resume.
    """

    model_config = ConfigDict(frozen=True)

    value: Any = Field(default=..., description="Token value (a generalized time watermark)")

    def __str__(self) -> str:
        return str(self.value)


class SyncDeltaType(str, Enum):
    """Kind of change reported for an object."""

    CREATE_OR_UPDATE = "CREATE_OR_UPDATE"


class ChangeEvent(BaseModel):
    """One change notification delivered to a handler."""

    model_config = ConfigDict(frozen=True)

    delta_type: SyncDeltaType = Field(default=SyncDeltaType.CREATE_OR_UPDATE)
    token: SyncToken = Field(
        default=..., description="Resume token of the scan that found the change"
    )
    obj: ConnectorObject = Field(default=..., description="Translated object")

    @property
    def uid(self) -> str:
        return self.obj.uid


class ScanSummary(BaseModel):
    """Result counters of one scan."""

    object_class: str = Field(..., description="Object class that was scanned")
    base_context: str = Field(..., description="Search base")
    filter_text: str = Field(..., description="Search filter sent to the directory")
    token: SyncToken = Field(..., description="Resume token committed by the scan")
    entries_found: int = Field(default=0, ge=0, description="Entries returned by the search")
    entries_delivered: int = Field(
        default=0, ge=0, description="Entries accepted and delivered to the handler"
    )

    @property
    def entries_rejected(self) -> int:
        """Entries filtered out by the acceptance predicate."""
        return self.entries_found - self.entries_delivered


class SyncState(BaseModel):
    """Committed checkpoint for one object class."""

    object_class: str = Field(default=..., description="Connector object class name")
    token: str = Field(default=..., description="Committed watermark")
    last_sync_timestamp: datetime = Field(default=..., description="When the watermark was committed")
    entries_found: int = Field(default=0, ge=0, description="Entries found by the committing scan")
    entries_delivered: int = Field(
        default=0, ge=0, description="Entries delivered by the committing scan"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "object_class": "__ACCOUNT__",
                "token": "20240101000000Z",
                "last_sync_timestamp": "2024-01-01T00:00:03Z",
                "entries_found": 12,
                "entries_delivered": 10,
            }
        }
    }


class SyncReport(BaseModel):
    """Report of one polling cycle as seen by the coordinator."""

    object_class: str = Field(..., description="Object class that was synchronized")
    token_before: str | None = Field(default=None, description="Watermark the cycle resumed from")
    token_after: str | None = Field(default=None, description="Watermark committed by the cycle")
    entries_found: int = Field(default=0, ge=0)
    entries_delivered: int = Field(default=0, ge=0)
    attempts: int = Field(default=1, ge=1, description="Scan attempts including retries")
    duration_seconds: float = Field(default=0.0, ge=0.0, description="Cycle duration in seconds")
    start_time: datetime = Field(..., description="Cycle start timestamp")
    end_time: datetime = Field(..., description="Cycle end timestamp")
    errors: list[str] = Field(
        default_factory=list, description="List of errors encountered during the cycle"
    )

    @property
    def success(self) -> bool:
        """Check if the cycle committed a new watermark."""
        return len(self.errors) == 0
