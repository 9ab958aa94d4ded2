"""Rule evaluation logic for charger bookings."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from booking.civil_time import duration_minutes, ensure_aware

MIN_DURATION_HOURS = 1
MAX_DURATION_HOURS = 24


@dataclass(frozen=True)
class BookingRules:
    min_duration_hours: int = MIN_DURATION_HOURS
    max_duration_hours: int = MAX_DURATION_HOURS
    # None disables the advance window.
    max_days_advance: int | None = None
    # Lead time only applies when past starts are not allowed.
    min_hours_advance: int = 0
    allow_past: bool = True


@dataclass
class RuleCheckResult:
    allowed: bool
    reason: str | None = None


class RuleEngine:
    @staticmethod
    def check_duration(start_time: datetime, end_time: datetime, rules: BookingRules) -> RuleCheckResult:
        minutes = duration_minutes(start_time, end_time)

        if minutes <= 0:
            return RuleCheckResult(allowed=False, reason="End time must be after start time.")

        if minutes % 60 != 0:
            return RuleCheckResult(allowed=False, reason="Bookings must last a whole number of hours.")

        hours = minutes // 60
        if hours < rules.min_duration_hours or hours > rules.max_duration_hours:
            return RuleCheckResult(
                allowed=False,
                reason=(
                    f"Duration must be between {rules.min_duration_hours} and "
                    f"{rules.max_duration_hours} hours."
                ),
            )

        return RuleCheckResult(allowed=True)

    @staticmethod
    def check_booking_window(start_time: datetime, now: datetime, rules: BookingRules) -> RuleCheckResult:
        ensure_aware(start_time)
        ensure_aware(now)

        if not rules.allow_past:
            if start_time < now:
                return RuleCheckResult(allowed=False, reason="Requested time is in the past.")
            if rules.min_hours_advance and start_time < now + timedelta(hours=rules.min_hours_advance):
                return RuleCheckResult(
                    allowed=False,
                    reason=f"Bookings must be made at least {rules.min_hours_advance} hours in advance.",
                )

        if rules.max_days_advance:
            latest_allowed = now + timedelta(days=rules.max_days_advance)
            if start_time > latest_allowed:
                return RuleCheckResult(
                    allowed=False,
                    reason=(
                        "Requested time exceeds advance booking window "
                        f"({rules.max_days_advance} days)."
                    ),
                )

        return RuleCheckResult(allowed=True)
