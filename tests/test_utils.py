"""Tests for shared utility functions."""

from datetime import date, datetime, time, timedelta, timezone

import pytest

from team_scheduler.utils import (
    day_of_week,
    ensure_utc,
    is_valid_email,
    normalize_email,
    parse_date,
    parse_time_of_day,
)


class TestEmail:
    def test_normalize(self):
        assert normalize_email("  Jane.Doe@Example.COM ") == "jane.doe@example.com"

    @pytest.mark.parametrize("value", ["a@b.co", " jane@customer.test "])
    def test_valid(self, value):
        assert is_valid_email(value)

    @pytest.mark.parametrize("value", [None, "", "jane", "jane@", "@x.com", "ja ne@x.com", "jane@host"])
    def test_invalid(self, value):
        assert not is_valid_email(value)


class TestDates:
    def test_parse_date(self):
        assert parse_date(" 2025-03-18 ") == date(2025, 3, 18)

    def test_parse_date_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_date("18/03/2025")

    def test_parse_time_of_day(self):
        assert parse_time_of_day("09:30") == time(9, 30)

    @pytest.mark.parametrize(
        "value,expected",
        [(date(2025, 3, 16), 0), (date(2025, 3, 17), 1), (date(2025, 3, 18), 2), (date(2025, 3, 22), 6)],
    )
    def test_day_of_week_sunday_is_zero(self, value, expected):
        assert day_of_week(value) == expected


class TestEnsureUtc:
    def test_naive_taken_as_utc(self):
        assert ensure_utc(datetime(2025, 3, 18, 9)) == datetime(2025, 3, 18, 9, tzinfo=timezone.utc)

    def test_aware_converted(self):
        plus_two = timezone(timedelta(hours=2))
        result = ensure_utc(datetime(2025, 3, 18, 11, tzinfo=plus_two))
        assert result.hour == 9
        assert result.tzinfo == timezone.utc
