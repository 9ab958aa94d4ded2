import time
from datetime import date, datetime, timedelta, timezone

import pytest

from booking.civil_time import (
    civil_clock_of,
    civil_date_of,
    civil_datetime,
    day_range,
    duration_minutes,
    format_time_slot,
    month_range,
    parse_civil_date,
    parse_clock,
    parse_time_slot_interval,
    to_civil_iso,
)


class TestCivilDateTime:
    """Wall-clock inputs resolve to fixed UTC-5 instants."""

    def test_resolves_to_utc_minus_five(self):
        assert civil_datetime("2026-01-09", 20, 0) == datetime(2026, 1, 10, 1, 0, tzinfo=timezone.utc)

    def test_accepts_date_objects(self):
        assert civil_datetime(date(2026, 1, 9), 8) == civil_datetime("2026-01-09", 8, 0)

    @pytest.mark.parametrize("hour", range(24))
    def test_round_trips_every_hour(self, hour):
        instant = civil_datetime("2026-01-09", hour, 30)
        assert to_civil_iso(instant) == f"2026-01-09T{hour:02d}:30:00.000-05:00"

    def test_round_trips_across_year_boundary(self):
        instant = civil_datetime("2025-12-31", 23, 45) + timedelta(minutes=30)
        assert to_civil_iso(instant) == "2026-01-01T00:15:00.000-05:00"

    def test_independent_of_process_timezone(self, monkeypatch):
        if not hasattr(time, "tzset"):
            pytest.skip("time.tzset is unavailable on this platform")
        expected = civil_datetime("2026-01-09", 20, 0)
        monkeypatch.setenv("TZ", "Asia/Tokyo")
        time.tzset()
        try:
            assert civil_datetime("2026-01-09", 20, 0) == expected
            assert to_civil_iso(expected) == "2026-01-09T20:00:00.000-05:00"
        finally:
            monkeypatch.undo()
            time.tzset()

    @pytest.mark.parametrize("hour,minute", [(24, 0), (-1, 0), (10, 60)])
    def test_rejects_out_of_range_clock(self, hour, minute):
        with pytest.raises(ValueError):
            civil_datetime("2026-01-09", hour, minute)


class TestParsing:
    """Boundary string formats."""

    @pytest.mark.parametrize("value", ["2026/01/09", "2026-1-9", "2026-02-30", "", "09-01-2026"])
    def test_rejects_bad_dates(self, value):
        with pytest.raises(ValueError):
            parse_civil_date(value)

    def test_parses_clock_with_single_digit_hour(self):
        assert parse_clock("7:05") == (7, 5)

    @pytest.mark.parametrize("value", ["24:00", "7:5", "07:60", "0700", "ab:cd"])
    def test_rejects_bad_clocks(self, value):
        with pytest.raises(ValueError):
            parse_clock(value)

    def test_format_time_slot_pads_hours(self):
        assert format_time_slot("9:00", "17:00") == "09:00-17:00"


class TestTimeSlotInterval:
    """Slot strings become absolute intervals, wrapping past midnight when needed."""

    def test_same_day_slot(self):
        start, end = parse_time_slot_interval("2026-01-09", "09:00-11:00")
        assert to_civil_iso(start) == "2026-01-09T09:00:00.000-05:00"
        assert to_civil_iso(end) == "2026-01-09T11:00:00.000-05:00"

    def test_overnight_slot_ends_next_day(self):
        start, end = parse_time_slot_interval("2026-01-09", "22:00-02:00")
        assert to_civil_iso(start) == "2026-01-09T22:00:00.000-05:00"
        assert to_civil_iso(end) == "2026-01-10T02:00:00.000-05:00"
        assert duration_minutes(start, end) == 4 * 60

    def test_equal_clocks_span_a_full_day(self):
        start, end = parse_time_slot_interval("2026-01-09", "08:00-08:00")
        assert end - start == timedelta(hours=24)

    def test_overnight_slot_at_month_end(self):
        _, end = parse_time_slot_interval("2026-01-31", "23:00-01:00")
        assert to_civil_iso(end) == "2026-02-01T01:00:00.000-05:00"

    def test_accepts_midnight_instant_as_booking_date(self):
        midnight = civil_datetime("2026-01-09", 0, 0)
        assert parse_time_slot_interval(midnight, "10:00-12:00") == parse_time_slot_interval("2026-01-09", "10:00-12:00")

    def test_rejects_slot_without_separator(self):
        with pytest.raises(ValueError):
            parse_time_slot_interval("2026-01-09", "10:00")


class TestCalendarBucketing:
    """Day and month buckets use Bogotá dates, not UTC dates."""

    def test_late_evening_utc_instant_belongs_to_previous_civil_day(self):
        instant = datetime(2026, 1, 10, 3, 0, tzinfo=timezone.utc)
        assert civil_date_of(instant) == date(2026, 1, 9)
        assert civil_clock_of(instant) == "22:00"

    def test_day_range_is_half_open_civil_day(self):
        start, end = day_range("2026-01-09")
        assert to_civil_iso(start) == "2026-01-09T00:00:00.000-05:00"
        assert to_civil_iso(end) == "2026-01-10T00:00:00.000-05:00"

    def test_month_range_wraps_december(self):
        start, end = month_range("2026-12")
        assert to_civil_iso(start) == "2026-12-01T00:00:00.000-05:00"
        assert to_civil_iso(end) == "2027-01-01T00:00:00.000-05:00"

    @pytest.mark.parametrize("value", ["2026-13", "2026-1", "202601"])
    def test_month_range_rejects_bad_months(self, value):
        with pytest.raises(ValueError):
            month_range(value)

    def test_naive_instants_are_rejected(self):
        with pytest.raises(ValueError):
            to_civil_iso(datetime(2026, 1, 9, 20, 0))


class TestFixedOffset:
    """The civil zone is a constant UTC-5, whatever the tz database says about the past."""

    @pytest.mark.parametrize("civil_date", ["1900-06-01", "1992-06-01", "1993-01-15", "2026-07-01"])
    def test_offset_is_always_minus_five(self, civil_date):
        instant = civil_datetime(civil_date, 12, 0)
        assert instant.utcoffset() == timedelta(hours=-5)
        assert to_civil_iso(instant) == f"{civil_date}T12:00:00.000-05:00"


class TestCalendarLimits:
    """Dates near the end of the calendar fail as ValueError, never OverflowError."""

    @pytest.mark.parametrize("value", ["9999-12-30", "9999-12-31"])
    def test_rejects_dates_past_latest_supported(self, value):
        with pytest.raises(ValueError):
            parse_civil_date(value)

    def test_latest_supported_date_allows_overnight_slot(self):
        start, end = parse_time_slot_interval("9999-12-29", "22:00-22:00")
        assert to_civil_iso(end) == "9999-12-30T22:00:00.000-05:00"
        assert end.astimezone(timezone.utc).year == 9999

    def test_day_range_of_last_date(self):
        with pytest.raises(ValueError):
            day_range(date.max)

    def test_month_range_of_last_month(self):
        with pytest.raises(ValueError):
            month_range("9999-12")
