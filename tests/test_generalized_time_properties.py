"""Property-based tests for generalized time parsing and formatting.

Feature: directory-change-polling
"""

from datetime import datetime, timedelta, timezone

import pytest
import structlog
from hypothesis import given, settings
from hypothesis import strategies as st

from dirsync.utils.generalized_time import (
    format_generalized_time,
    is_generalized_time,
    parse_generalized_time,
)

log = structlog.stdlib.get_logger()

utc_datetimes = st.datetimes(
    min_value=datetime(1970, 1, 1), max_value=datetime(2999, 12, 31)
).map(lambda dt: dt.replace(tzinfo=timezone.utc))


@given(utc_datetimes)
@settings(max_examples=100)
def test_formatted_time_parses_back_to_the_same_second(dt: datetime):
    """Formatting drops sub-second precision and nothing else.

    **Feature: directory-change-polling, Property 1: Second-precision watermarks**
    """
    text = format_generalized_time(dt)

    assert len(text) == 15
    assert text.endswith("Z")
    assert parse_generalized_time(text) == dt.replace(microsecond=0)


@given(utc_datetimes, utc_datetimes)
@settings(max_examples=100)
def test_lexical_order_matches_chronological_order(first: datetime, second: datetime):
    """Canonical watermarks sort the same way as the instants they stand for."""
    a = format_generalized_time(first)
    b = format_generalized_time(second)

    assert (a < b) == (first.replace(microsecond=0) < second.replace(microsecond=0))


class TestParsing:
    """Accepted generalized time forms."""

    def test_utc_with_seconds(self) -> None:
        assert parse_generalized_time("20240101000500Z") == datetime(
            2024, 1, 1, 0, 5, 0, tzinfo=timezone.utc
        )

    def test_minute_precision(self) -> None:
        assert parse_generalized_time("202401011230Z") == datetime(
            2024, 1, 1, 12, 30, tzinfo=timezone.utc
        )

    def test_hour_precision_with_fraction(self) -> None:
        assert parse_generalized_time("2024010112.5Z") == datetime(
            2024, 1, 1, 12, 30, tzinfo=timezone.utc
        )

    def test_fractional_seconds(self) -> None:
        parsed = parse_generalized_time("20240101000500.250Z")
        assert parsed == datetime(2024, 1, 1, 0, 5, 0, 250000, tzinfo=timezone.utc)

    def test_positive_offset_is_converted_to_utc(self) -> None:
        assert parse_generalized_time("20240101120000+0130") == datetime(
            2024, 1, 1, 10, 30, tzinfo=timezone.utc
        )

    def test_negative_offset_is_converted_to_utc(self) -> None:
        assert parse_generalized_time("20231231230000-02") == datetime(
            2024, 1, 1, 1, 0, tzinfo=timezone.utc
        )

    def test_missing_zone_is_read_as_utc(self) -> None:
        assert parse_generalized_time("20240101000000") == datetime(2024, 1, 1, tzinfo=timezone.utc)

    @pytest.mark.parametrize(
        "value",
        ["", "yesterday", "2024-01-01T00:00:00Z", "20241301000000Z", "2024010100000Z0", "20240101"],
    )
    def test_rejects_malformed_values(self, value: str) -> None:
        assert not is_generalized_time(value)
        with pytest.raises(ValueError):
            parse_generalized_time(value)


class TestFormatting:
    def test_naive_datetime_is_treated_as_utc(self) -> None:
        assert format_generalized_time(datetime(2024, 1, 1, 0, 5)) == "20240101000500Z"

    def test_aware_datetime_is_converted_to_utc(self) -> None:
        cet = timezone(timedelta(hours=1))
        assert format_generalized_time(datetime(2024, 1, 1, 1, 0, tzinfo=cet)) == "20240101000000Z"

    def test_fraction_keeps_milliseconds(self) -> None:
        dt = datetime(2024, 1, 1, 0, 0, 0, 123456, tzinfo=timezone.utc)
        assert format_generalized_time(dt, fraction=True) == "20240101000000.123Z"
