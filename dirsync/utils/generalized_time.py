"""Generalized time (RFC 4517) parsing and formatting."""

import re
from datetime import datetime, timedelta, timezone

_GENERALIZED_TIME_RE = re.compile(
    r"""
    ^(?P<year>\d{4})(?P<month>\d{2})(?P<day>\d{2})(?P<hour>\d{2})
    (?:(?P<minute>\d{2})(?:(?P<second>\d{2}))?)?
    (?:[.,](?P<fraction>\d+))?
    (?P<tz>Z|[+-]\d{2}(?:\d{2})?)?$
    """,
    re.VERBOSE,
)


def parse_generalized_time(value: str) -> datetime:
    """
    Parse a generalized time string into an aware UTC datetime.

    Accepts hour, minute or second precision, an optional fraction applied to
    the least significant unit present, and a ``Z`` or ``+hh[mm]`` suffix.
    Values without a zone are treated as UTC.

    Args:
        value: Generalized time text, e.g. ``20240101000500Z``

    Returns:
        Timezone-aware datetime in UTC

    Raises:
        ValueError: If the text is not generalized time
    """
    match = _GENERALIZED_TIME_RE.match(value.strip())
    if match is None:
        raise ValueError(f"Not a generalized time value: {value!r}")

    parts = match.groupdict()
    minute_given = parts["minute"] is not None
    second_given = parts["second"] is not None

    dt = datetime(
        int(parts["year"]),
        int(parts["month"]),
        int(parts["day"]),
        int(parts["hour"]),
        int(parts["minute"] or 0),
        int(parts["second"] or 0),
        tzinfo=timezone.utc,
    )

    if parts["fraction"]:
        fraction = float(f"0.{parts['fraction']}")
        if second_given:
            unit = timedelta(seconds=1)
        elif minute_given:
            unit = timedelta(minutes=1)
        else:
            unit = timedelta(hours=1)
        try:
            dt += unit * fraction
        except OverflowError as e:
            raise ValueError(f"Generalized time value out of range: {value!r}") from e

    tz = parts["tz"]
    if tz and tz != "Z":
        sign = 1 if tz[0] == "+" else -1
        offset = timedelta(hours=int(tz[1:3]), minutes=int(tz[3:5] or 0))
        try:
            dt -= sign * offset
        except OverflowError as e:
            raise ValueError(f"Generalized time value out of range in UTC: {value!r}") from e

    return dt


def format_generalized_time(dt: datetime, fraction: bool = False) -> str:
    """
    Format a datetime as UTC generalized time.

    Args:
        dt: Datetime to format; naive values are assumed to be UTC
        fraction: Include milliseconds when True

    Returns:
        ``YYYYMMDDHHMMSSZ`` or ``YYYYMMDDHHMMSS.mmmZ``
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)

    text = (
        f"{dt.year:04d}{dt.month:02d}{dt.day:02d}"
        f"{dt.hour:02d}{dt.minute:02d}{dt.second:02d}"
    )
    if fraction:
        text += f".{dt.microsecond // 1000:03d}"
    return text + "Z"


def is_generalized_time(value: str) -> bool:
    """Check whether a string parses as generalized time."""
    try:
        parse_generalized_time(value)
    except ValueError:
        return False
    return True
