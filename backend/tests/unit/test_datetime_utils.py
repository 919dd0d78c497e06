"""
Unit tests for datetime utilities.

Tests institution timezone handling and calendar date parsing.
"""

import pytest
from datetime import date, datetime, timedelta, timezone

from utils.datetime_utils import (
    INSTITUTION_TZ,
    ensure_institution_tz,
    institution_now,
    is_weekend,
    local_date_of,
    next_action_date,
    parse_date_string,
)


class TestInstitutionTimezone:
    """Test institution timezone utilities."""

    def test_institution_now_returns_timezone_aware_datetime(self):
        now = institution_now()

        assert now.tzinfo is not None
        assert now.tzinfo == INSTITUTION_TZ

    def test_institution_tz_is_utc_minus_3(self):
        assert INSTITUTION_TZ.utcoffset(None).total_seconds() == -3 * 3600

    def test_ensure_institution_tz_with_naive_datetime(self):
        """Naive values (as read back from SQLite) are taken as local time."""
        result = ensure_institution_tz(datetime(2024, 1, 1, 10, 0))

        assert result.tzinfo == INSTITUTION_TZ
        assert result.hour == 10

    def test_ensure_institution_tz_converts_aware_datetime(self):
        result = ensure_institution_tz(datetime(2024, 1, 1, 1, 0, tzinfo=timezone.utc))

        assert result.tzinfo == INSTITUTION_TZ
        assert result.day == 31
        assert result.hour == 22

    def test_ensure_institution_tz_with_none(self):
        assert ensure_institution_tz(None) is None

    def test_local_date_of_utc_timestamp_after_local_midnight(self):
        # 01:30 UTC on Jan 2 is still Jan 1 at the institution
        assert local_date_of(datetime(2024, 1, 2, 1, 30, tzinfo=timezone.utc)) == date(2024, 1, 1)


class TestParseDateString:
    """Dates are parsed from the exact string, never through a timezone."""

    def test_parses_valid_date(self):
        assert parse_date_string("2024-03-15") == date(2024, 3, 15)

    def test_strips_surrounding_whitespace(self):
        assert parse_date_string(" 2024-03-15 ") == date(2024, 3, 15)

    @pytest.mark.parametrize("value", [
        "2024/03/15",
        "15-03-2024",
        "2024-3-15",
        "2024-03-15T10:00:00",
        "2024-03-15T00:00:00-03:00",
        "",
        "tomorrow",
    ])
    def test_rejects_other_formats(self, value):
        with pytest.raises(ValueError, match="Invalid date format"):
            parse_date_string(value)

    def test_rejects_impossible_calendar_date(self):
        with pytest.raises(ValueError, match="Invalid calendar date"):
            parse_date_string("2023-02-29")

    def test_rejects_non_string(self):
        with pytest.raises(ValueError):
            parse_date_string(None)  # type: ignore[arg-type]


class TestNextActionDate:
    """Weekends roll forward to Monday."""

    def test_weekday_is_today(self):
        wednesday = date(2024, 1, 10)
        assert next_action_date(wednesday) == wednesday

    def test_saturday_moves_to_monday(self):
        assert next_action_date(date(2024, 1, 6)) == date(2024, 1, 8)

    def test_sunday_moves_to_monday(self):
        assert next_action_date(date(2024, 1, 7)) == date(2024, 1, 8)

    def test_friday_stays(self):
        assert next_action_date(date(2024, 1, 5)) == date(2024, 1, 5)

    def test_is_weekend(self):
        monday = date(2024, 1, 8)
        assert [is_weekend(monday + timedelta(days=i)) for i in range(7)] == [
            False, False, False, False, False, True, True
        ]
