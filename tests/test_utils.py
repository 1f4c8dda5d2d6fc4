"""Tests for shared date and time helpers."""

from datetime import date, datetime, time

import pytest

from booking_engine.utils import add_minutes, format_time, parse_date, parse_time


class TestParseDate:
    def test_iso_string(self):
        assert parse_date("2025-03-17") == date(2025, 3, 17)

    def test_strips_whitespace(self):
        assert parse_date(" 2025-03-17 ") == date(2025, 3, 17)

    def test_date_passes_through(self):
        assert parse_date(date(2025, 3, 17)) == date(2025, 3, 17)

    def test_datetime_is_truncated(self):
        assert parse_date(datetime(2025, 3, 17, 10, 30)) == date(2025, 3, 17)

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_date("17/03/2025")


class TestParseTime:
    def test_hh_mm(self):
        assert parse_time("09:30") == time(9, 30)

    def test_time_passes_through(self):
        assert parse_time(time(14, 0)) == time(14, 0)

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_time("half nine")


class TestAddMinutes:
    def test_simple(self):
        assert add_minutes(time(9, 45), 30) == time(10, 15)

    def test_up_to_midnight_boundary(self):
        assert add_minutes(time(23, 0), 59) == time(23, 59)

    def test_crossing_midnight(self):
        with pytest.raises(ValueError, match="midnight"):
            add_minutes(time(23, 45), 30)


class TestFormatTime:
    def test_zero_padded(self):
        assert format_time(time(9, 5)) == "09:05"
