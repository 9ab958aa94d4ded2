from datetime import timedelta

import pytest

from booking.civil_time import civil_datetime, parse_time_slot_interval
from booking.rules import BookingRules, RuleEngine


class TestCheckDuration:
    """Durations are whole hours between the configured bounds."""

    @pytest.mark.parametrize("slot", ["10:00-11:00", "20:00-02:00", "08:00-08:00"])
    def test_allows_whole_hours_up_to_a_day(self, slot):
        start, end = parse_time_slot_interval("2026-01-09", slot)
        assert RuleEngine.check_duration(start, end, BookingRules()).allowed

    def test_rejects_partial_hours(self):
        start, end = parse_time_slot_interval("2026-01-09", "10:00-11:30")
        result = RuleEngine.check_duration(start, end, BookingRules())
        assert not result.allowed
        assert "whole number of hours" in result.reason

    def test_rejects_more_than_configured_maximum(self):
        start, end = parse_time_slot_interval("2026-01-09", "08:00-17:00")
        result = RuleEngine.check_duration(start, end, BookingRules(max_duration_hours=8))
        assert not result.allowed
        assert "between 1 and 8 hours" in result.reason

    def test_rejects_empty_interval(self):
        start = civil_datetime("2026-01-09", 10)
        assert not RuleEngine.check_duration(start, start, BookingRules()).allowed


class TestCheckBookingWindow:
    def test_past_start_allowed_by_default(self):
        now = civil_datetime("2026-01-09", 12)
        assert RuleEngine.check_booking_window(now - timedelta(hours=3), now, BookingRules()).allowed

    def test_past_start_rejected_when_configured(self):
        now = civil_datetime("2026-01-09", 12)
        result = RuleEngine.check_booking_window(now - timedelta(hours=3), now, BookingRules(allow_past=False))
        assert not result.allowed
        assert result.reason == "Requested time is in the past."

    def test_advance_limit(self):
        now = civil_datetime("2026-01-09", 12)
        rules = BookingRules(max_days_advance=30)
        assert RuleEngine.check_booking_window(now + timedelta(days=30), now, rules).allowed
        assert not RuleEngine.check_booking_window(now + timedelta(days=31), now, rules).allowed

    def test_zero_advance_limit_disables_check(self):
        now = civil_datetime("2026-01-09", 12)
        assert RuleEngine.check_booking_window(now + timedelta(days=365), now, BookingRules(max_days_advance=0)).allowed


class TestMinimumLeadTime:
    """Starts closer than min_hours_advance to now are refused unless past bookings are allowed."""

    def test_rejects_start_inside_lead_time(self):
        now = civil_datetime("2026-01-09", 12)
        result = RuleEngine.check_booking_window(
            now + timedelta(hours=1), now, BookingRules(allow_past=False, min_hours_advance=2)
        )
        assert not result.allowed
        assert result.reason == "Bookings must be made at least 2 hours in advance."

    def test_accepts_start_exactly_at_lead_time(self):
        now = civil_datetime("2026-01-09", 12)
        rules = BookingRules(allow_past=False, min_hours_advance=2)
        assert RuleEngine.check_booking_window(now + timedelta(hours=2), now, rules).allowed

    def test_past_start_still_reported_as_past(self):
        now = civil_datetime("2026-01-09", 12)
        result = RuleEngine.check_booking_window(
            now - timedelta(hours=1), now, BookingRules(allow_past=False, min_hours_advance=2)
        )
        assert result.reason == "Requested time is in the past."

    def test_allow_past_disables_lead_time(self):
        now = civil_datetime("2026-01-09", 12)
        rules = BookingRules(allow_past=True, min_hours_advance=2)
        assert RuleEngine.check_booking_window(now + timedelta(minutes=30), now, rules).allowed
