"""Tests for the pure availability calculator."""

from datetime import datetime

import pytest

from booking_engine.scheduling.availability import compute_slots, fits_working_hours
from booking_engine.schemas.scheduling_schema import BookingStatus
from tests.conftest import MONDAY, SUNDAY, TUESDAY, hm, make_booking, make_window


def _times(*values: str):
    return [hm(v) for v in values]


class TestScenarios:
    def test_open_morning_half_hour_slots(self):
        slots = compute_slots([make_window()], [], MONDAY, 30, 30)
        assert list(slots) == _times("09:00", "09:30", "10:00", "10:30", "11:00", "11:30")

    def test_confirmed_booking_removes_its_slot(self):
        bookings = [make_booking("10:00", "10:30")]
        slots = compute_slots([make_window()], bookings, MONDAY, 30, 30)
        assert list(slots) == _times("09:00", "09:30", "10:30", "11:00", "11:30")


class TestEdgeCases:
    def test_back_to_back_with_existing_booking_is_allowed(self):
        bookings = [make_booking("09:00", "09:45")]
        slots = compute_slots([make_window()], bookings, MONDAY, 15, 15)
        assert list(slots)[0] == hm("09:45")

    def test_window_shorter_than_service_yields_nothing(self):
        slots = compute_slots([make_window(start="09:00", end="09:20")], [], MONDAY, 30, 15)
        assert list(slots) == []

    def test_no_window_on_date_is_empty_not_error(self):
        assert list(compute_slots([make_window()], [], TUESDAY, 30, 30)) == []
        assert list(compute_slots([make_window()], [], SUNDAY, 30, 30)) == []

    def test_last_slot_must_end_by_window_end(self):
        slots = list(compute_slots([make_window()], [], MONDAY, 90, 30))
        assert slots[-1] == hm("10:30")

    def test_finer_granularity(self):
        slots = list(compute_slots([make_window(end="10:00")], [], MONDAY, 30, 15))
        assert slots == _times("09:00", "09:15", "09:30")

    def test_long_booking_blocks_partial_candidates(self):
        bookings = [make_booking("09:50", "10:20")]
        slots = list(compute_slots([make_window()], bookings, MONDAY, 30, 30))
        assert hm("09:30") not in slots
        assert hm("10:00") not in slots
        assert hm("10:30") in slots

    def test_cancelled_booking_is_ignored(self):
        bookings = [make_booking("10:00", "10:30", status=BookingStatus.CANCELLED)]
        slots = list(compute_slots([make_window()], bookings, MONDAY, 30, 30))
        assert hm("10:00") in slots

    def test_bookings_on_other_dates_are_ignored(self):
        bookings = [make_booking("10:00", "10:30", day=TUESDAY)]
        slots = list(compute_slots([make_window()], bookings, MONDAY, 30, 30))
        assert hm("10:00") in slots

    def test_start_after_drops_earlier_candidates(self):
        cutoff = datetime.combine(MONDAY, hm("10:00"))
        slots = list(compute_slots([make_window()], [], MONDAY, 30, 30, start_after=cutoff))
        assert slots == _times("10:30", "11:00", "11:30")


class TestMultipleWindows:
    def test_split_day_windows(self):
        windows = [make_window(end="10:00"), make_window(start="13:00", end="14:00")]
        slots = list(compute_slots(windows, [], MONDAY, 30, 30))
        assert slots == _times("09:00", "09:30", "13:00", "13:30")

    def test_unsorted_windows_produce_ordered_slots(self):
        windows = [make_window(start="13:00", end="14:00"), make_window(end="10:00")]
        slots = list(compute_slots(windows, [], MONDAY, 30, 30))
        assert slots == sorted(slots)

    def test_overlapping_windows_do_not_duplicate(self):
        windows = [make_window(end="10:00"), make_window(start="09:30", end="10:30")]
        slots = list(compute_slots(windows, [], MONDAY, 30, 30))
        assert slots == _times("09:00", "09:30", "10:00")

    def test_other_weekdays_ignored(self):
        windows = [make_window(day_of_week=1), make_window(day_of_week=0, end="10:00")]
        slots = list(compute_slots(windows, [], MONDAY, 30, 30))
        assert slots == _times("09:00", "09:30")


class TestPurity:
    def test_sequence_is_restartable(self):
        slots = compute_slots([make_window()], [], MONDAY, 30, 30)
        assert list(slots) == list(slots)

    def test_identical_inputs_identical_output(self):
        bookings = [make_booking("10:00", "10:30")]
        first = list(compute_slots([make_window()], bookings, MONDAY, 30, 30))
        second = list(compute_slots([make_window()], bookings, MONDAY, 30, 30))
        assert first == second

    def test_first(self):
        assert compute_slots([make_window()], [], MONDAY, 30, 30).first() == hm("09:00")
        assert compute_slots([make_window()], [], TUESDAY, 30, 30).first() is None

    def test_invalid_duration(self):
        with pytest.raises(ValueError, match="service_duration"):
            compute_slots([make_window()], [], MONDAY, 0, 30)

    def test_invalid_granularity(self):
        with pytest.raises(ValueError, match="slot_granularity"):
            compute_slots([make_window()], [], MONDAY, 30, 0)


class TestFitsWorkingHours:
    def test_inside_window(self):
        assert fits_working_hours([make_window()], MONDAY, hm("11:30"), 30)

    def test_before_window(self):
        assert not fits_working_hours([make_window()], MONDAY, hm("08:30"), 30)

    def test_runs_past_window_end(self):
        assert not fits_working_hours([make_window()], MONDAY, hm("11:45"), 30)

    def test_wrong_weekday(self):
        assert not fits_working_hours([make_window()], TUESDAY, hm("10:00"), 30)

    def test_spanning_two_windows_is_rejected(self):
        windows = [make_window(end="10:00"), make_window(start="10:00", end="12:00")]
        assert not fits_working_hours(windows, MONDAY, hm("09:45"), 30)
