"""Watermarks: second-precision generalized time checkpoints."""

from datetime import datetime, timezone
from typing import Any, Callable

import structlog

from dirsync.exceptions import InvalidArgumentError
from dirsync.models.entry import ObjectClass
from dirsync.sync.models import SyncToken
from dirsync.utils.generalized_time import format_generalized_time, parse_generalized_time

log = structlog.stdlib.get_logger()

Clock = Callable[[], datetime]


def system_clock() -> datetime:
    return datetime.now(timezone.utc)


def current_watermark(clock: Clock | None = None) -> str:
    """
    Return a watermark for the present instant.

    Fractional seconds are dropped so the value compares cleanly against the
    directory's own second-precision timestamps.

    Args:
        clock: Time source; defaults to the system clock

    Returns:
        Watermark such as ``20240101000000Z``
    """
    now = (clock or system_clock)()
    return format_generalized_time(now.replace(microsecond=0))


def latest_sync_token(object_class: ObjectClass | None = None, clock: Clock | None = None) -> SyncToken:
    """Token a caller can store now to receive only changes made from here on.

    The value does not depend on the object class.
    """
    return SyncToken(value=current_watermark(clock))


def normalize_watermark(value: str) -> str:
    """
    Bring a generalized time string to canonical UTC ``YYYYMMDDHHMMSSZ`` form.

    Fractions are truncated, offsets converted to UTC, missing minutes or
    seconds read as zero.

    Raises:
        InvalidArgumentError: If the value is not generalized time
    """
    try:
        dt = parse_generalized_time(value)
    except ValueError as e:
        raise InvalidArgumentError(f"Synchronization token is not a timestamp: {value!r}") from e
    return format_generalized_time(dt.replace(microsecond=0))


def watermark_from_token(token: SyncToken | Any) -> str:
    """
    Extract the watermark carried by a sync token.

    Args:
        token: Token received from the caller

    Returns:
        Canonical watermark string

    Raises:
        InvalidArgumentError: If the token value is not a string timestamp
    """
    value = token.value if isinstance(token, SyncToken) else token
    if not isinstance(value, str):
        log.error("invalid_sync_token", token_type=type(value).__name__)
        raise InvalidArgumentError(
            f"Synchronization token is not string, it is {type(value).__name__}"
        )
    return normalize_watermark(value)


def watermark_datetime(watermark: str) -> datetime:
    """Return the instant a watermark stands for."""
    return parse_generalized_time(watermark)


def max_watermark(first: str, second: str) -> str:
    """Return the chronologically later of two watermarks."""
    return first if watermark_datetime(first) >= watermark_datetime(second) else second
